import logging

import pytest

from nodeguard.core.detection.detector import NodeMutationDetector
from nodeguard.core.detection.exceptions import SANCTIONED_MUTATION_APIS, UnauthorizedMutationError
from nodeguard.core.detection.reporter import MutationReport, MutationReporter, stack_fingerprint
from nodeguard.core.detection.sinks import LoggingSink, RecordingSink


class _ExplodingSink:
    def error(self, err):
        raise RuntimeError("sink down")

    def info(self, msg):
        raise RuntimeError("sink down")


def _make_node() -> dict:
    return {"id": "node-1", "title": "Hello", "fields": {}, "internal": {"content": ""}}


def test_same_call_site_reports_once_and_still_writes():
    sink = RecordingSink()
    detector = NodeMutationDetector(enabled=True, sink=sink)
    node = _make_node()
    wrapped = detector.wrap_node(node)

    for i in range(2):
        wrapped["title"] = f"changed-{i}"

    assert node["title"] == "changed-1"
    assert len(sink.errors()) == 1
    assert len(detector.reporter) == 1


def test_distinct_call_sites_each_report():
    sink = RecordingSink()
    detector = NodeMutationDetector(enabled=True, sink=sink)
    wrapped = detector.wrap_node(_make_node())

    wrapped["title"] = "one"
    wrapped["title"] = "two"

    assert len(sink.errors()) == 2


def test_diagnostic_points_at_caller_and_sanctioned_apis():
    sink = RecordingSink()
    detector = NodeMutationDetector(enabled=True, sink=sink)
    wrapped = detector.wrap_node(_make_node())

    wrapped["title"] = "changed"

    (err,) = sink.errors()
    assert isinstance(err, UnauthorizedMutationError)
    assert err.location is not None
    assert "test_mutation_reporter.py" in err.location
    assert "test_diagnostic_points_at_caller_and_sanctioned_apis" in err.location
    for api in SANCTIONED_MUTATION_APIS:
        assert api in str(err)
    assert len(err.fingerprint) == 64


def test_reporter_dedupes_by_stack_fingerprint():
    sink = RecordingSink()
    reporter = MutationReporter(sink)

    a = MutationReport(key="title", shape="node", stack="frame-a")
    a_again = MutationReport(key="other", shape="node", stack="frame-a")
    b = MutationReport(key="title", shape="node", stack="frame-b")

    assert reporter.report(a) is True
    assert reporter.report(a_again) is False
    assert reporter.report(b) is True

    assert len(sink.errors()) == 2
    assert reporter.seen_fingerprints() == sorted([stack_fingerprint("frame-a"), stack_fingerprint("frame-b")])


def test_report_payload_is_json_safe():
    report = MutationReport(key=slice(0, 2), shape="generic", stack="frame", location="x.py:1 in f")
    payload = report.to_payload()

    assert payload["key"] == "slice(0, 2, None)"
    assert payload["shape"] == "generic"
    assert payload["location"] == "x.py:1 in f"
    assert payload["fingerprint"] == stack_fingerprint("frame")
    assert isinstance(payload["created_at"], str)


def test_sink_failures_propagate():
    detector = NodeMutationDetector(enabled=True, sink=_ExplodingSink())
    wrapped = detector.wrap_node(_make_node())

    with pytest.raises(RuntimeError):
        wrapped["title"] = "changed"


def test_logging_sink_emits_structured_error(caplog):
    caplog.set_level(logging.INFO, logger="nodeguard.detection")
    detector = NodeMutationDetector(enabled=True, sink=LoggingSink())
    wrapped = detector.wrap_node(_make_node())

    wrapped["title"] = "changed"

    records = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(records) == 1
    assert records[0].mutation_key == "'title'"
    assert records[0].shape == "node"
    assert "create_node" in records[0].getMessage()


def test_recording_sink_forwards_and_bounds_entries():
    inner = RecordingSink()
    sink = RecordingSink(maxlen=2, forward=inner)

    sink.info("one")
    sink.info("two")
    sink.error(UnauthorizedMutationError("k", shape="node"))

    assert [e.level for e in sink.entries()] == ["info", "error"]
    assert len(inner.entries()) == 3

    with pytest.raises(ValueError):
        RecordingSink(maxlen=0)
