"""nodeguard diagnostics API.

Optional FastAPI service exposing the detection state and the diagnostics
recorded by a detector. Meant for local development dashboards.
"""

from .server import create_app  # noqa: F401
