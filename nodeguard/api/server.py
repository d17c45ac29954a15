from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query

from nodeguard.api.middleware import DetectionAccessLogMiddleware
from nodeguard.api.models import DetectionStatusOut, DiagnosticOut, DiagnosticsOut, HealthOut
from nodeguard.core.detection.detector import NodeMutationDetector, get_default_detector
from nodeguard.core.detection.sinks import RecordingSink

log = logging.getLogger("nodeguard.api")


def _recording_sink(detector: NodeMutationDetector) -> Optional[RecordingSink]:
    sink = detector.sink
    return sink if isinstance(sink, RecordingSink) else None


def create_app(*, detector: Optional[NodeMutationDetector] = None) -> FastAPI:
    """Create the diagnostics app.

    Notes:
    - Defaults to the process-wide detector, which is the one wrap_node()
      uses. Pass a detector explicitly to inspect an isolated one.
    - Enabling is one-way; there is no endpoint to disable detection.

    """

    detector = detector if detector is not None else get_default_detector()

    app = FastAPI(title="nodeguard diagnostics", version="0.1")
    app.state.detector = detector
    app.add_middleware(DetectionAccessLogMiddleware, detector=detector)

    def _status() -> DetectionStatusOut:
        return DetectionStatusOut(
            enabled=detector.enabled,
            live_wrappers=len(detector.references),
            reported_call_sites=len(detector.reporter),
            recording=_recording_sink(detector) is not None,
        )

    @app.get("/health", response_model=HealthOut)
    def health() -> HealthOut:
        return HealthOut(ok=True, detection_enabled=detector.enabled)

    @app.get("/detection", response_model=DetectionStatusOut)
    def detection_status() -> DetectionStatusOut:
        return _status()

    @app.post("/detection/enable", response_model=DetectionStatusOut)
    def detection_enable() -> DetectionStatusOut:
        was_enabled = detector.enabled
        detector.enable()
        if not was_enabled:
            log.info("detection_enabled_via_api")
        return _status()

    @app.get("/detection/reports", response_model=DiagnosticsOut)
    def detection_reports(
        limit: int = Query(default=100, ge=1, le=1000),
        level: Optional[str] = Query(default="error"),
    ) -> DiagnosticsOut:
        sink = _recording_sink(detector)
        if sink is None:
            raise HTTPException(status_code=404, detail="recording_disabled")

        if level not in (None, "error", "info"):
            raise HTTPException(status_code=400, detail="invalid_level")

        entries = sink.entries(level)
        items = [DiagnosticOut(**_diagnostic_fields(e.to_payload())) for e in entries[-limit:]]
        return DiagnosticsOut(total=len(entries), items=items)

    return app


def _diagnostic_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    allowed = set(DiagnosticOut.model_fields)
    return {k: v for k, v in payload.items() if k in allowed}
