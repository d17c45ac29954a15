import json
from datetime import UTC, datetime

import pytest

from nodeguard.core.detection.detector import NodeMutationDetector
from nodeguard.core.detection.exceptions import UnauthorizedMutationError
from nodeguard.core.detection.reporter import MutationReport
from nodeguard.core.detection.sinks import RecordingSink
from nodeguard.core.detection.wrappers import unwrap
from nodeguard.utils.json_safe import to_jsonable


def test_to_jsonable_unwraps_guarded_nodes_without_reporting():
    sink = RecordingSink()
    detector = NodeMutationDetector(enabled=True, sink=sink)
    created = datetime(2024, 1, 2, tzinfo=UTC)
    node = {"id": "node-1", "meta": {"created": created, "tags": {"b", "a"}}, "children": []}

    out = to_jsonable(detector.wrap_node(node))

    assert out == {
        "id": "node-1",
        "meta": {"created": created.isoformat(), "tags": ["a", "b"]},
        "children": [],
    }
    assert sink.entries() == []
    assert len(detector.references) == 0


def test_to_jsonable_exports_reports_and_errors():
    report = MutationReport(key="title", shape="node", stack="frame")

    assert to_jsonable(report)["key"] == "title"
    assert to_jsonable(UnauthorizedMutationError("title", shape="node"))["error"] == "UnauthorizedMutationError"


def test_guarded_nodes_are_encoded_through_to_jsonable_or_unwrap():
    detector = NodeMutationDetector(enabled=True, sink=RecordingSink())
    node = {"id": "node-1", "meta": {"tags": ["a"]}}
    wrapped = detector.wrap_node(node)

    # the C encoder checks the exact type, so a handle is rejected
    with pytest.raises(TypeError):
        json.dumps(wrapped)

    assert json.loads(json.dumps(to_jsonable(wrapped))) == node
    assert json.loads(json.dumps(unwrap(wrapped))) == node
