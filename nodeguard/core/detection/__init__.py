"""Development-time detection of unauthorized node mutation.

Nodes handed out by the node store are meant to change only through the
sanctioned APIs (create_node, create_node_field, create_parent_child_link).
When detection is enabled, wrap_node() returns a transparent handle that
reports any other write, once per call site, and still applies it.

Notes:
- Disabled by default. Set NODEGUARD_DETECT_NODE_MUTATIONS=1 or call
  enable_node_mutations_detection() early in the process.
- Wrapping adds overhead to every field read; keep it out of production.
"""

from .config import DetectionConfig
from .detector import (
    NodeMutationDetector,
    enable_node_mutations_detection,
    get_default_detector,
    is_node_mutations_detection_enabled,
    wrap_node,
)
from .exceptions import (
    MutationRejectedError,
    NodeGuardConfigurationError,
    NodeGuardError,
    UnauthorizedMutationError,
)
from .gate import ActivationGate
from .policy import DELETED, GENERIC_POLICY, PASS_THROUGH, InterceptionPolicy, RouteTo, allow_list_policy, create_policy
from .reference_map import ReferenceMap
from .reporter import MutationReport, MutationReporter
from .shapes import NODE_INTERNAL_POLICY, NODE_POLICY
from .sinks import LoggingSink, RecordingSink, ReportingSink
from .wrappers import GuardedObject, is_guarded, unwrap

__all__ = [
    "DetectionConfig",
    "NodeMutationDetector",
    "wrap_node",
    "enable_node_mutations_detection",
    "is_node_mutations_detection_enabled",
    "get_default_detector",
    "NodeGuardError",
    "UnauthorizedMutationError",
    "MutationRejectedError",
    "NodeGuardConfigurationError",
    "ActivationGate",
    "InterceptionPolicy",
    "RouteTo",
    "PASS_THROUGH",
    "DELETED",
    "create_policy",
    "allow_list_policy",
    "GENERIC_POLICY",
    "NODE_INTERNAL_POLICY",
    "NODE_POLICY",
    "ReferenceMap",
    "MutationReport",
    "MutationReporter",
    "ReportingSink",
    "LoggingSink",
    "RecordingSink",
    "GuardedObject",
    "is_guarded",
    "unwrap",
]
