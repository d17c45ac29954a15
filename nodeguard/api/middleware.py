from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("nodeguard.api")

DETECTION_HEADER = "X-NodeGuard-Detection"


class DetectionAccessLogMiddleware(BaseHTTPMiddleware):
    """Access logging plus a response header carrying the detection state.

    The header is read after the handler runs, so a request that enables
    detection already reports "enabled".
    """

    def __init__(self, app, *, detector) -> None:
        super().__init__(app)
        self._detector = detector

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.monotonic()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            response.headers[DETECTION_HEADER] = "enabled" if self._detector.enabled else "disabled"
            return response
        finally:
            dur_ms = int((time.monotonic() - start) * 1000)
            log.info(
                "api_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": getattr(response, "status_code", None),
                    "duration_ms": dur_ms,
                    "detection_enabled": self._detector.enabled,
                },
            )
