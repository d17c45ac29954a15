from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DETECT_ENV_VAR = "NODEGUARD_DETECT_NODE_MUTATIONS"
LOG_LEVEL_ENV_VAR = "NODEGUARD_LOG_LEVEL"
MAX_REPORTS_ENV_VAR = "NODEGUARD_MAX_RECORDED_REPORTS"

_TRUTHY = {"1", "true", "TRUE", "True", "yes", "YES", "on", "ON"}


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip() in _TRUTHY


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    """Read an integer environment variable, falling back to default on junk."""

    raw = env.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return value if value > 0 else int(default)


def _env_log_level(env: Mapping[str, str], name: str) -> Optional[str]:
    """Return a valid level name, or None when unset or unrecognised."""

    level = env.get(name, "").strip().upper()
    if not level or not isinstance(logging.getLevelName(level), int):
        return None
    return level


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    """Process configuration for node mutation detection.

    Notes:
    - Read once, at import of the detector module, to seed the default
      detector. Later changes to the environment have no effect on it.
    - The activation flag only ever moves from disabled to enabled; use
      enable_node_mutations_detection() rather than re-reading config.
    - log_level is None unless the environment names a valid level; the
      host's logging setup is then left alone.

    """

    detect_node_mutations: bool = False
    log_level: Optional[str] = None
    max_recorded_reports: int = 500

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DetectionConfig":
        env = os.environ if env is None else env
        return cls(
            detect_node_mutations=_env_flag(env, DETECT_ENV_VAR),
            log_level=_env_log_level(env, LOG_LEVEL_ENV_VAR),
            max_recorded_reports=_env_int(env, MAX_REPORTS_ENV_VAR, 500),
        )
