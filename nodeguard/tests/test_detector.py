import pytest

from nodeguard.core.detection import detector as detector_module
from nodeguard.core.detection.config import DetectionConfig
from nodeguard.core.detection.detector import PERFORMANCE_NOTICE, NodeMutationDetector
from nodeguard.core.detection.gate import ActivationGate
from nodeguard.core.detection.sinks import RecordingSink
from nodeguard.core.detection.wrappers import is_guarded


def _make_node() -> dict:
    return {"id": "node-1", "title": "Hello", "internal": {"content": ""}}


def test_activation_gate_is_one_way_and_idempotent():
    gate = ActivationGate()
    assert gate.enabled is False
    assert not gate

    assert gate.enable() is True
    assert gate.enable() is False
    assert gate.enabled is True
    assert not hasattr(gate, "disable")


def test_disabled_detector_returns_nodes_unchanged():
    detector = NodeMutationDetector(sink=RecordingSink())
    node = _make_node()

    assert detector.wrap_node(node) is node
    assert detector.wrap_node(None) is None
    assert len(detector.references) == 0


def test_enabled_detector_returns_memoized_wrapper():
    detector = NodeMutationDetector(enabled=True, sink=RecordingSink())
    node = _make_node()

    wrapped = detector.wrap_node(node)

    assert wrapped is not node
    assert is_guarded(wrapped)
    assert wrapped == node
    assert detector.wrap_node(node) is wrapped
    assert detector.wrap_node(None) is None


def test_non_record_values_are_returned_unchanged():
    detector = NodeMutationDetector(enabled=True, sink=RecordingSink())

    assert detector.wrap_node("node-1") == "node-1"
    assert detector.wrap_node(42) == 42


def test_enable_emits_performance_notice_once():
    sink = RecordingSink()
    detector = NodeMutationDetector(sink=sink)
    node = _make_node()

    assert detector.wrap_node(node) is node

    detector.enable()
    detector.enable()

    infos = sink.entries("info")
    assert [e.message for e in infos] == [PERFORMANCE_NOTICE]
    assert "overhead" in infos[0].message
    assert is_guarded(detector.wrap_node(node))


def test_detector_enabled_from_start_emits_no_notice():
    sink = RecordingSink()
    detector = NodeMutationDetector(enabled=True, sink=sink)

    detector.enable()

    assert sink.entries("info") == []


def test_detector_from_config_uses_recording_sink():
    detector = NodeMutationDetector.from_config(
        DetectionConfig(detect_node_mutations=True, max_recorded_reports=3)
    )

    assert detector.enabled is True
    assert isinstance(detector.sink, RecordingSink)


def test_detector_rejects_non_policy_node_policy():
    with pytest.raises(TypeError):
        NodeMutationDetector(node_policy="node")


def test_module_entry_points_use_default_detector(monkeypatch):
    sink = RecordingSink()
    isolated = NodeMutationDetector(sink=sink)
    monkeypatch.setattr(detector_module, "_default_detector", isolated)
    node = _make_node()

    assert detector_module.get_default_detector() is isolated
    assert detector_module.is_node_mutations_detection_enabled() is False
    assert detector_module.wrap_node(node) is node

    detector_module.enable_node_mutations_detection()

    assert detector_module.is_node_mutations_detection_enabled() is True
    wrapped = detector_module.wrap_node(node)
    assert is_guarded(wrapped)
    assert detector_module.wrap_node(node) is wrapped
    assert len(sink.entries("info")) == 1
