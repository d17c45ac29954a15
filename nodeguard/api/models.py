from __future__ import annotations

from pydantic import BaseModel, Field
from typing import List, Optional


class HealthOut(BaseModel):
    ok: bool = True
    detection_enabled: bool


class DetectionStatusOut(BaseModel):
    """Activation state of the detector behind the API."""

    enabled: bool
    live_wrappers: int
    reported_call_sites: int
    recording: bool = Field(description="Whether the sink keeps diagnostics for /detection/reports")


class DiagnosticOut(BaseModel):
    """One recorded diagnostic (an unauthorized mutation or an info notice)."""

    level: str
    message: str
    recorded_at: str
    key: Optional[str] = None
    shape: Optional[str] = None
    location: Optional[str] = None
    fingerprint: Optional[str] = None


class DiagnosticsOut(BaseModel):
    total: int
    items: List[DiagnosticOut] = Field(default_factory=list)
