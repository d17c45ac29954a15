from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional

from .access import FieldAccess
from .exceptions import MutationRejectedError, NodeGuardConfigurationError
from .reporter import MutationReport
from .wrappers import is_wrappable, unwrap


class _Marker:
    __slots__ = ("_label",)

    def __init__(self, label: str) -> None:
        self._label = label

    def __repr__(self) -> str:
        return self._label


PASS_THROUGH = _Marker("PASS_THROUGH")
"""Returned by an ``on_get`` hook to hand the raw value back unwrapped."""

DELETED = _Marker("DELETED")
"""Value passed to ``on_set`` hooks when the field is being deleted."""


@dataclass(frozen=True)
class RouteTo:
    """Returned by an ``on_get`` hook to wrap the value under another policy."""

    policy: "InterceptionPolicy"


GetHook = Callable[[Hashable, Any], Any]
SetHook = Callable[[Hashable, Any], Optional[bool]]


@dataclass(frozen=True)
class InterceptionPolicy:
    """
    Reusable read/write interception handler for one object shape.

    Hooks
    - on_get(key, value): PASS_THROUGH, RouteTo(policy), an override value,
      or None to fall through to the default read.
    - on_set(key, value): True allows the write, False rejects it
      (MutationRejectedError), None leaves it to the violation path.

    Invariants
    - Stateless and immutable; one instance serves every wrapper of a shape.
    - Violations never stop a write. The write is reported, then applied.
    """

    name: str
    on_get: Optional[GetHook] = None
    on_set: Optional[SetHook] = None

    def read(self, detector: Any, target: Any, key: Hashable, access: FieldAccess) -> Any:
        value = access.get(target, key)

        if self.on_get is not None:
            result = self.on_get(key, value)
            if result is PASS_THROUGH:
                return value
            if isinstance(result, RouteTo):
                return detector.wrap(value, result.policy) if is_wrappable(value) else value
            if result is not None:
                return result

        # Fixed fields must come back as the exact original object, otherwise
        # identity checks against the unwrapped value break.
        if access.is_read_only(target, key):
            return value

        return self.wrap_value(detector, value)

    def wrap_value(self, detector: Any, value: Any) -> Any:
        """Default read handling for values reached without a field key, e.g. by iteration."""

        if is_wrappable(value):
            return detector.wrap(value, GENERIC_POLICY)
        return value

    def write(
        self,
        detector: Any,
        target: Any,
        key: Hashable,
        value: Any,
        access: FieldAccess,
        perform: Optional[Callable[[], Any]] = None,
    ) -> Any:
        if perform is None:
            def perform() -> None:
                access.set(target, key, unwrap(value))

        if not self._permits(key, value):
            detector.reporter.report(MutationReport.capture(key=key, shape=self.name))

        return perform()

    def delete(
        self,
        detector: Any,
        target: Any,
        key: Hashable,
        access: FieldAccess,
        perform: Optional[Callable[[], Any]] = None,
    ) -> Any:
        if perform is None:
            def perform() -> None:
                access.delete(target, key)

        return self.write(detector, target, key, DELETED, access, perform=perform)

    def _permits(self, key: Hashable, value: Any) -> bool:
        if self.on_set is None:
            return False

        handled = self.on_set(key, value)
        if handled is None:
            return False
        if handled is False:
            raise MutationRejectedError(key, shape=self.name)
        return True


def create_policy(
    name: str,
    *,
    on_get: Optional[GetHook] = None,
    on_set: Optional[SetHook] = None,
) -> InterceptionPolicy:
    """Build an InterceptionPolicy from optional hooks."""

    if not isinstance(name, str) or not name.strip():
        raise NodeGuardConfigurationError("policy name must be a non-empty string")
    if on_get is not None and not callable(on_get):
        raise NodeGuardConfigurationError("on_get must be callable")
    if on_set is not None and not callable(on_set):
        raise NodeGuardConfigurationError("on_set must be callable")

    return InterceptionPolicy(name=name, on_get=on_get, on_set=on_set)


def _contains(keys: Any, key: Hashable) -> bool:
    try:
        return key in keys
    except TypeError:
        # slices and other unhashable keys are never allow-listed
        return False


def allow_list_policy(
    name: str,
    allowed: Iterable[Hashable],
    *,
    routes: Optional[Mapping[Hashable, InterceptionPolicy]] = None,
) -> InterceptionPolicy:
    """Build a policy from a declarative allow-list.

    Keys in ``allowed`` are read raw and written freely. Keys in ``routes``
    are read through the given policy instead of the generic one; writes to
    them are still checked.
    """

    allowed_keys = frozenset(allowed)
    routed = dict(routes or {})

    for key, target_policy in routed.items():
        if not isinstance(target_policy, InterceptionPolicy):
            raise NodeGuardConfigurationError(f"route for {key!r} must be an InterceptionPolicy")
        if key in allowed_keys:
            raise NodeGuardConfigurationError(f"{key!r} cannot be both allowed and routed")

    def on_get(key: Hashable, value: Any) -> Any:
        if _contains(routed, key):
            return RouteTo(routed[key])
        if _contains(allowed_keys, key):
            return PASS_THROUGH
        return None

    def on_set(key: Hashable, value: Any) -> Optional[bool]:
        if _contains(allowed_keys, key):
            return True
        return None

    return create_policy(name, on_get=on_get, on_set=on_set)


GENERIC_POLICY = create_policy("generic")
