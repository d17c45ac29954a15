from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from nodeguard.core.detection.wrappers import unwrap


def to_jsonable(obj: Any) -> Any:
    """
    Convert node data and diagnostics into JSON-serializable values.

    Notes:
    - Guarded handles are unwrapped first, so nothing read here is reported
      and no new wrappers are created.
    - Objects with a to_payload() method (reports, recorded diagnostics) are
      exported through it.
    - Anything unknown falls back to its string form.
    """

    obj = unwrap(obj)

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if isinstance(obj, Path):
        return str(obj)

    to_payload = getattr(obj, "to_payload", None)
    if callable(to_payload):
        return to_jsonable(to_payload())

    if isinstance(obj, BaseException):
        return {"error": obj.__class__.__name__, "message": str(obj)}

    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))

    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (set, frozenset)):
        return sorted((to_jsonable(x) for x in obj), key=repr)

    if isinstance(obj, Sequence) and not isinstance(obj, (bytes, bytearray)):
        return [to_jsonable(x) for x in obj]

    return str(obj)
