from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Protocol, runtime_checkable

from .exceptions import UnauthorizedMutationError


@runtime_checkable
class ReportingSink(Protocol):
    """Where diagnostics go. The guard never formats output beyond the message."""

    def error(self, err: BaseException) -> None: ...

    def info(self, msg: str) -> None: ...


class LoggingSink:
    """Forward diagnostics to a stdlib logger.

    Handler and format configuration belong to the host application.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("nodeguard.detection")

    def error(self, err: BaseException) -> None:
        extra: Dict[str, Any] = {"error_type": err.__class__.__name__}
        if isinstance(err, UnauthorizedMutationError):
            extra.update(
                {
                    "mutation_key": repr(err.key),
                    "shape": err.shape,
                    "location": err.location,
                    "fingerprint": err.fingerprint,
                }
            )
        self.logger.error("%s", err, extra=extra)

    def info(self, msg: str) -> None:
        self.logger.info("%s", msg)


@dataclass(frozen=True)
class RecordedDiagnostic:
    level: str
    message: str
    error: Optional[BaseException] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "level": self.level,
            "message": self.message,
            "recorded_at": self.recorded_at.isoformat(),
        }
        if isinstance(self.error, UnauthorizedMutationError):
            payload["key"] = repr(self.error.key)
            payload["shape"] = self.error.shape
            payload["location"] = self.error.location
            payload["fingerprint"] = self.error.fingerprint
        return payload


class RecordingSink:
    """
    Keep the most recent diagnostics in memory, optionally forwarding them.

    Backs the diagnostics API and the CLI check command. Bounded: once
    ``maxlen`` entries are held the oldest ones drop off.
    """

    def __init__(self, *, maxlen: int = 500, forward: Optional[ReportingSink] = None) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self.forward = forward
        self._entries: Deque[RecordedDiagnostic] = deque(maxlen=maxlen)
        self._lock = Lock()

    def error(self, err: BaseException) -> None:
        with self._lock:
            self._entries.append(RecordedDiagnostic(level="error", message=str(err), error=err))
        if self.forward is not None:
            self.forward.error(err)

    def info(self, msg: str) -> None:
        with self._lock:
            self._entries.append(RecordedDiagnostic(level="info", message=msg))
        if self.forward is not None:
            self.forward.info(msg)

    def entries(self, level: Optional[str] = None) -> List[RecordedDiagnostic]:
        with self._lock:
            items = list(self._entries)
        if level is None:
            return items
        return [e for e in items if e.level == level]

    def errors(self) -> List[BaseException]:
        return [e.error for e in self.entries("error") if e.error is not None]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
