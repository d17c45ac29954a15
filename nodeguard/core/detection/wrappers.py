"""Transparent read/write handles over nodes and the values reachable from them.

A handle answers reads and isinstance checks like the object it wraps, but it
is not an instance of that type at the C level. Encoders that check the exact
type, json.dumps among them, reject handles: pass unwrap(value) or
nodeguard.utils.json_safe.to_jsonable(value) to them instead.
"""

from __future__ import annotations

import copy
import dataclasses
import enum
import operator
import types
import weakref
from collections.abc import Mapping, MutableMapping, MutableSequence, MutableSet, Sequence
from threading import Lock
from typing import Any, Callable, Hashable, Iterator, Optional

from .access import ATTRIBUTE_ACCESS, ITEM_ACCESS, FieldAccess


def _forward_compare(op: Callable[[Any, Any], Any]) -> Callable[[Any, Any], Any]:
    def compare(self: "GuardedObject", other: Any) -> Any:
        return op(self._nodeguard_target, unwrap(other))

    compare.__name__ = f"__{op.__name__}__"
    return compare


class GuardedObject:
    """
    Read/write transparent handle over exactly one underlying object.

    Every read goes through the policy's read path, every write and delete
    through its write path. The handle reports the underlying object's class
    from ``__class__`` so isinstance checks keep working.

    Invariants
    - One wrapper per underlying object (see ReferenceMap).
    - The wrapper holds the only strong reference the guard keeps to the
      underlying object.
    """

    __slots__ = ("_nodeguard_target", "_nodeguard_policy", "_nodeguard_detector", "__weakref__")

    _nodeguard_access: FieldAccess = ITEM_ACCESS

    def __init__(self, target: Any, policy: Any, detector: Any) -> None:
        object.__setattr__(self, "_nodeguard_target", target)
        object.__setattr__(self, "_nodeguard_policy", policy)
        object.__setattr__(self, "_nodeguard_detector", detector)

    @property  # type: ignore[misc]
    def __class__(self):
        return type(self._nodeguard_target)

    def _nodeguard_read(self, key: Hashable, access: Optional[FieldAccess] = None) -> Any:
        return self._nodeguard_policy.read(
            self._nodeguard_detector,
            self._nodeguard_target,
            key,
            access or self._nodeguard_access,
        )

    def _nodeguard_write(
        self, key: Hashable, value: Any, perform=None, access: Optional[FieldAccess] = None
    ) -> Any:
        return self._nodeguard_policy.write(
            self._nodeguard_detector,
            self._nodeguard_target,
            key,
            value,
            access or self._nodeguard_access,
            perform=perform,
        )

    def _nodeguard_delete(self, key: Hashable, perform=None, access: Optional[FieldAccess] = None) -> Any:
        return self._nodeguard_policy.delete(
            self._nodeguard_detector,
            self._nodeguard_target,
            key,
            access or self._nodeguard_access,
            perform=perform,
        )

    def __repr__(self) -> str:
        return repr(self._nodeguard_target)

    def __str__(self) -> str:
        return str(self._nodeguard_target)

    def __eq__(self, other: Any) -> bool:
        return self._nodeguard_target == unwrap(other)

    def __ne__(self, other: Any) -> bool:
        return self._nodeguard_target != unwrap(other)

    def __hash__(self) -> int:
        return hash(self._nodeguard_target)

    def __bool__(self) -> bool:
        return bool(self._nodeguard_target)

    def __copy__(self) -> Any:
        return copy.copy(self._nodeguard_target)

    def __deepcopy__(self, memo: dict) -> Any:
        return copy.deepcopy(self._nodeguard_target, memo)


class GuardedMapping(GuardedObject, MutableMapping):
    __slots__ = ()

    def __getitem__(self, key: Hashable) -> Any:
        return self._nodeguard_read(key)

    def __setitem__(self, key: Hashable, value: Any) -> None:
        self._nodeguard_write(key, value)

    def __delitem__(self, key: Hashable) -> None:
        self._nodeguard_delete(key)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._nodeguard_target)

    def __reversed__(self) -> Iterator[Any]:
        return reversed(self._nodeguard_target)

    def __len__(self) -> int:
        return len(self._nodeguard_target)

    def __contains__(self, key: object) -> bool:
        # membership must not wrap the value behind the key
        return key in self._nodeguard_target

    def get(self, key: Hashable, default: Any = None) -> Any:
        if key in self._nodeguard_target:
            return self[key]
        return default

    def popitem(self) -> tuple:
        target = self._nodeguard_target
        try:
            key = next(reversed(target))
        except TypeError:
            key = next(iter(target), _MISSING)
        except StopIteration:
            key = _MISSING
        if key is _MISSING:
            raise KeyError("popitem(): mapping is empty")
        value = self[key]
        del self[key]
        return key, value

    def copy(self) -> dict:
        return dict(self.items())

    def __or__(self, other: Any) -> Any:
        if not isinstance(other, Mapping):
            return NotImplemented
        merged = self.copy()
        merged.update(unwrap(other))
        return merged

    def __ror__(self, other: Any) -> Any:
        if not isinstance(other, Mapping):
            return NotImplemented
        merged = dict(unwrap(other))
        merged.update(self.items())
        return merged

    def __ior__(self, other: Any) -> "GuardedMapping":
        # each merged key is a separate write
        self.update(unwrap(other))
        return self


class GuardedSequence(GuardedObject, MutableSequence):
    __slots__ = ()

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            items = [self._nodeguard_read(i) for i in range(*index.indices(len(self._nodeguard_target)))]
            return tuple(items) if isinstance(self._nodeguard_target, tuple) else items
        return self._nodeguard_read(index)

    def __setitem__(self, index: Any, value: Any) -> None:
        self._nodeguard_write(index, value)

    def __delitem__(self, index: Any) -> None:
        self._nodeguard_delete(index)

    def __len__(self) -> int:
        return len(self._nodeguard_target)

    def __contains__(self, value: object) -> bool:
        return unwrap(value) in self._nodeguard_target

    def index(self, value: Any, *args: Any) -> int:
        return self._nodeguard_target.index(unwrap(value), *args)

    def count(self, value: Any) -> int:
        return self._nodeguard_target.count(unwrap(value))

    def insert(self, index: int, value: Any) -> None:
        target = self._nodeguard_target
        self._nodeguard_write(index, value, perform=lambda: target.insert(index, unwrap(value)))

    def sort(self, *, key: Any = None, reverse: bool = False) -> None:
        target = self._nodeguard_target
        self._nodeguard_write("sort", None, perform=lambda: target.sort(key=key, reverse=reverse))

    def reverse(self) -> None:
        target = self._nodeguard_target
        self._nodeguard_write("reverse", None, perform=target.reverse)

    def clear(self) -> None:
        target = self._nodeguard_target
        self._nodeguard_delete("clear", perform=target.clear)

    def copy(self) -> list:
        return list(self)

    def __add__(self, other: Any) -> Any:
        return list(self) + list(other)

    def __radd__(self, other: Any) -> Any:
        return list(other) + list(self)

    def __mul__(self, n: int) -> list:
        return list(self) * n

    __rmul__ = __mul__

    __lt__ = _forward_compare(operator.lt)
    __le__ = _forward_compare(operator.le)
    __gt__ = _forward_compare(operator.gt)
    __ge__ = _forward_compare(operator.ge)


class GuardedSet(GuardedObject, MutableSet):
    __slots__ = ()

    @classmethod
    def _from_iterable(cls, it: Any) -> set:
        return set(it)

    def __contains__(self, value: object) -> bool:
        return unwrap(value) in self._nodeguard_target

    def __iter__(self) -> Iterator[Any]:
        return iter(self._nodeguard_target)

    def __len__(self) -> int:
        return len(self._nodeguard_target)

    def add(self, value: Any) -> None:
        target = self._nodeguard_target
        self._nodeguard_write(value, value, perform=lambda: target.add(unwrap(value)))

    def discard(self, value: Any) -> None:
        target = self._nodeguard_target
        self._nodeguard_delete(value, perform=lambda: target.discard(unwrap(value)))


class GuardedRecord(GuardedObject):
    """Wrapper for attribute-addressed objects (dataclasses, namespaces, classes).

    Special methods are looked up on the wrapper's type, never through
    __getattr__, so each record class gets its own subclass forwarding the
    protocols that class defines (see record_wrapper_type).
    """

    __slots__ = ()

    _nodeguard_access = ATTRIBUTE_ACCESS

    def __getattr__(self, name: str) -> Any:
        value = self._nodeguard_read(name)
        # Rebind Python-level methods so writes made inside them hit the guard.
        if (
            isinstance(value, types.MethodType)
            and value.__self__ is self._nodeguard_target
            and isinstance(value.__func__, types.FunctionType)
        ):
            return types.MethodType(value.__func__, self)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        self._nodeguard_write(name, value)

    def __delattr__(self, name: str) -> None:
        self._nodeguard_delete(name)

    def __dir__(self) -> list:
        return dir(self._nodeguard_target)


def _record_len(self: GuardedRecord) -> int:
    return len(self._nodeguard_target)


def _record_contains(self: GuardedRecord, value: Any) -> bool:
    return unwrap(value) in self._nodeguard_target


def _record_iter(self: GuardedRecord) -> Iterator[Any]:
    policy = self._nodeguard_policy
    detector = self._nodeguard_detector
    values = iter(self._nodeguard_target)
    return (policy.wrap_value(detector, value) for value in values)


def _record_reversed(self: GuardedRecord) -> Iterator[Any]:
    policy = self._nodeguard_policy
    detector = self._nodeguard_detector
    values = reversed(self._nodeguard_target)
    return (policy.wrap_value(detector, value) for value in values)


def _record_getitem(self: GuardedRecord, key: Any) -> Any:
    return self._nodeguard_read(key, ITEM_ACCESS)


def _record_setitem(self: GuardedRecord, key: Any, value: Any) -> None:
    self._nodeguard_write(key, value, access=ITEM_ACCESS)


def _record_delitem(self: GuardedRecord, key: Any) -> None:
    self._nodeguard_delete(key, access=ITEM_ACCESS)


# Callables are never wrapped (see is_wrappable), so __call__ is not listed.
_RECORD_PROTOCOL = {
    "__lt__": _forward_compare(operator.lt),
    "__le__": _forward_compare(operator.le),
    "__gt__": _forward_compare(operator.gt),
    "__ge__": _forward_compare(operator.ge),
    "__len__": _record_len,
    "__contains__": _record_contains,
    "__iter__": _record_iter,
    "__reversed__": _record_reversed,
    "__getitem__": _record_getitem,
    "__setitem__": _record_setitem,
    "__delitem__": _record_delitem,
}

_record_types: "weakref.WeakKeyDictionary[type, type]" = weakref.WeakKeyDictionary()
_record_types_lock = Lock()


def _defines(cls: type, name: str) -> bool:
    for klass in cls.__mro__:
        if klass is object:
            return False
        if name in klass.__dict__:
            return klass.__dict__[name] is not None
    return False


def record_wrapper_type(cls: type) -> type:
    """Return the GuardedRecord subclass for instances of cls.

    The subclass carries exactly the protocol methods cls defines below
    object, so len(), iter(), ordering and friends fail on the wrapper with
    the same TypeError they raise on the record itself.
    """

    with _record_types_lock:
        wrapper_type = _record_types.get(cls)
        if wrapper_type is None:
            namespace = {name: method for name, method in _RECORD_PROTOCOL.items() if _defines(cls, name)}
            namespace["__slots__"] = ()
            wrapper_type = type(f"Guarded{cls.__name__}", (GuardedRecord,), namespace)
            _record_types[cls] = wrapper_type
        return wrapper_type


class _Missing:
    pass


_MISSING = _Missing()


def create_wrapper(target: Any, policy: Any, detector: Any) -> GuardedObject:
    """Pick the wrapper shape for target and build it."""

    if isinstance(target, Mapping):
        return GuardedMapping(target, policy, detector)
    if isinstance(target, Sequence) and not isinstance(target, (str, bytes, bytearray)):
        return GuardedSequence(target, policy, detector)
    if isinstance(target, set):
        return GuardedSet(target, policy, detector)
    return record_wrapper_type(type(target))(target, policy, detector)


_OPAQUE_TYPES = (
    str,
    bytes,
    bytearray,
    memoryview,
    int,
    float,
    complex,
    frozenset,
    range,
    enum.Enum,
)


def is_wrappable(value: Any) -> bool:
    """Return True when reads of value should go through a wrapper.

    Only mutable containers and records qualify. Immutable scalars, callables,
    classes and modules are handed back as they are.
    """

    if value is None or isinstance(value, _OPAQUE_TYPES):
        return False
    if isinstance(value, GuardedObject):
        return False
    if isinstance(value, (type, types.ModuleType)) or callable(value):
        return False
    if isinstance(value, (Mapping, Sequence, set)):
        return True
    if dataclasses.is_dataclass(value):
        return True
    return hasattr(value, "__dict__")


def is_guarded(value: Any) -> bool:
    return isinstance(value, GuardedObject)


def unwrap(value: Any) -> Any:
    """Return the object behind a wrapper, or value itself if it is not wrapped."""

    if isinstance(value, GuardedObject):
        return object.__getattribute__(value, "_nodeguard_target")
    return value


def guarded_policy(value: Any) -> Optional[Any]:
    if isinstance(value, GuardedObject):
        return object.__getattribute__(value, "_nodeguard_policy")
    return None
