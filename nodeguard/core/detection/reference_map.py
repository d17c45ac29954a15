from __future__ import annotations

import weakref
from threading import Lock
from typing import Any, Callable, Dict, Optional

WrapperFactory = Callable[[Any, Any], Any]


class ReferenceMap:
    """
    Identity memoization from an underlying object to the wrapper built for it.

    Every time a wrapper is created for an object it is stored here, so the
    same wrapper is reused for that object instead of building a new one.
    This keeps reference equality: ``wrap(obj, p) is wrap(obj, p)``.

    Invariants
    - Lookup is by identity (id + liveness), never by value equality.
    - Keyed by target only; the policy of the first wrap wins.
    - Non-owning: the table keeps a weak reference to each wrapper, and only
      the wrapper holds its target. Dicts and lists cannot be weakly
      referenced, so the target itself is never stored. An entry goes away
      as soon as its wrapper is collected.
    - While a wrapper is alive its target is alive, so the id key cannot be
      reused by another object for the lifetime of the entry.
    """

    def __init__(self, factory: WrapperFactory) -> None:
        self._factory = factory
        self._entries: Dict[int, weakref.ref] = {}
        self._lock = Lock()

    def wrap(self, target: Any, policy: Any) -> Any:
        key = id(target)
        with self._lock:
            existing = self._lookup(key, target)
            if existing is not None:
                return existing

            wrapped = self._factory(target, policy)
            self._entries[key] = weakref.ref(wrapped, self._make_cleanup(key))
            return wrapped

    def get(self, target: Any) -> Optional[Any]:
        with self._lock:
            return self._lookup(id(target), target)

    def __contains__(self, target: Any) -> bool:
        return self.get(target) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for ref in list(self._entries.values()) if ref() is not None)

    def _lookup(self, key: int, target: Any) -> Optional[Any]:
        ref = self._entries.get(key)
        if ref is None:
            return None
        wrapped = ref()
        if wrapped is None or wrapped._nodeguard_target is not target:
            return None
        return wrapped

    def _make_cleanup(self, key: int) -> Callable[[weakref.ref], None]:
        owner_ref = weakref.ref(self)

        def _cleanup(ref: weakref.ref) -> None:
            owner = owner_ref()
            # The slot may already hold a newer wrapper for a reused id.
            if owner is not None and owner._entries.get(key) is ref:
                owner._entries.pop(key, None)

        return _cleanup
