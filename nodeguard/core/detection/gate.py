from __future__ import annotations

from threading import Lock


class ActivationGate:
    """
    Process-wide on switch for node wrapping.

    Two states, Disabled -> Enabled, and no way back within a process.
    """

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> bool:
        """Switch the gate on. Returns True only for the call that flipped it."""

        with self._lock:
            if self._enabled:
                return False
            self._enabled = True
            return True

    def __bool__(self) -> bool:
        return self._enabled

    def __repr__(self) -> str:
        state = "enabled" if self._enabled else "disabled"
        return f"ActivationGate({state})"
