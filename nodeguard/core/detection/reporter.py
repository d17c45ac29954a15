from __future__ import annotations

import _collections_abc
import hashlib
import logging
import os
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple

from .exceptions import UnauthorizedMutationError

log = logging.getLogger("nodeguard.detection")

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_SKIPPED_FILES = {"<frozen _collections_abc>"}
if getattr(_collections_abc, "__file__", None):
    _SKIPPED_FILES.add(os.path.abspath(_collections_abc.__file__))


def _is_guard_frame(filename: str) -> bool:
    if filename in _SKIPPED_FILES:
        return True
    path = os.path.abspath(filename)
    return os.path.dirname(path) == _PACKAGE_DIR or path in _SKIPPED_FILES


def capture_call_site() -> Tuple[str, Optional[str]]:
    """Return (stack_text, location) for the code that triggered a write.

    Frames belonging to the guard itself (wrappers, policies, the reporter and
    the collections.abc mixins they lean on) are dropped so the same call site
    always yields the same text regardless of which wrapper path was taken.
    """

    frames = [f for f in traceback.extract_stack() if not _is_guard_frame(f.filename)]
    stack_text = "".join(traceback.format_list(frames))
    location = None
    if frames:
        last = frames[-1]
        location = f"{last.filename}:{last.lineno} in {last.name}"
    return stack_text, location


def stack_fingerprint(stack_text: str) -> str:
    return hashlib.sha256(stack_text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class MutationReport:
    """One disallowed write.

    The fingerprint is only used to deduplicate diagnostics; nothing routes
    on it.
    """

    key: Hashable
    shape: str
    stack: str
    location: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def fingerprint(self) -> str:
        return stack_fingerprint(self.stack)

    @classmethod
    def capture(cls, *, key: Hashable, shape: str) -> "MutationReport":
        stack_text, location = capture_call_site()
        return cls(key=key, shape=shape, stack=stack_text, location=location)

    def to_error(self) -> UnauthorizedMutationError:
        return UnauthorizedMutationError(
            self.key,
            shape=self.shape,
            location=self.location,
            fingerprint=self.fingerprint,
        )

    def to_payload(self) -> Dict[str, Any]:
        key = self.key if isinstance(self.key, (str, int, float, bool)) or self.key is None else repr(self.key)
        return {
            "key": key,
            "shape": self.shape,
            "location": self.location,
            "fingerprint": self.fingerprint,
            "created_at": self.created_at.isoformat(),
        }


class MutationReporter:
    """
    Deduplicated emission of unauthorized mutation diagnostics.

    Invariants
    - At most one diagnostic per unique call stack for the reporter's lifetime.
    - Only fingerprints are retained, never the reports themselves.
    - Sink failures propagate to the caller.
    """

    def __init__(self, sink: Any) -> None:
        self.sink = sink
        self._seen: Set[str] = set()
        self._lock = Lock()

    def report(self, report: MutationReport) -> bool:
        """Emit report through the sink unless its call site was seen before.

        Returns True when a diagnostic was emitted.
        """

        error = report.to_error()
        with self._lock:
            if error.fingerprint in self._seen:
                log.debug(
                    "duplicate_mutation_suppressed",
                    extra={"mutation_key": repr(report.key), "fingerprint": error.fingerprint},
                )
                return False
            self._seen.add(error.fingerprint)

        self.sink.error(error)
        return True

    def seen_fingerprints(self) -> List[str]:
        with self._lock:
            return sorted(self._seen)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
