import gc
import weakref

from nodeguard.core.detection.policy import GENERIC_POLICY
from nodeguard.core.detection.reference_map import ReferenceMap
from nodeguard.core.detection.shapes import NODE_POLICY
from nodeguard.core.detection.wrappers import create_wrapper, guarded_policy, unwrap


class _Record:
    def __init__(self, name):
        self.name = name


def _make_map(calls=None) -> ReferenceMap:
    def factory(target, policy):
        if calls is not None:
            calls.append(target)
        return create_wrapper(target, policy, None)

    return ReferenceMap(factory)


def test_reference_map_returns_same_wrapper_for_same_target():
    calls = []
    refs = _make_map(calls)
    target = {"a": 1}

    first = refs.wrap(target, GENERIC_POLICY)
    second = refs.wrap(target, GENERIC_POLICY)

    assert first is second
    assert unwrap(first) is target
    assert len(calls) == 1


def test_reference_map_uses_identity_not_equality():
    refs = _make_map()
    a = {"a": 1}
    b = {"a": 1}

    wa = refs.wrap(a, GENERIC_POLICY)
    wb = refs.wrap(b, GENERIC_POLICY)

    assert wa is not wb
    assert unwrap(wa) is a
    assert unwrap(wb) is b


def test_reference_map_keeps_first_policy_for_a_target():
    refs = _make_map()
    target = {"id": "n1"}

    as_node = refs.wrap(target, NODE_POLICY)
    again = refs.wrap(target, GENERIC_POLICY)

    assert again is as_node
    assert guarded_policy(again) is NODE_POLICY


def test_reference_map_does_not_keep_targets_or_wrappers_alive():
    refs = _make_map()
    target = _Record("n1")
    target_ref = weakref.ref(target)

    wrapped = refs.wrap(target, GENERIC_POLICY)
    wrapper_ref = weakref.ref(wrapped)
    assert len(refs) == 1
    assert target in refs

    del wrapped
    del target
    gc.collect()

    assert wrapper_ref() is None
    assert target_ref() is None
    assert len(refs) == 0


def test_reference_map_rebuilds_after_wrapper_is_collected():
    calls = []
    refs = _make_map(calls)
    target = {"a": 1}

    wrapped = refs.wrap(target, GENERIC_POLICY)
    del wrapped
    gc.collect()

    assert refs.get(target) is None
    rebuilt = refs.wrap(target, GENERIC_POLICY)
    assert unwrap(rebuilt) is target
    assert len(calls) == 2
