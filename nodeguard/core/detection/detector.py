from __future__ import annotations

import logging
from typing import Any, Optional

from .config import DetectionConfig
from .gate import ActivationGate
from .policy import InterceptionPolicy
from .reference_map import ReferenceMap
from .reporter import MutationReporter
from .shapes import NODE_POLICY
from .sinks import LoggingSink, RecordingSink, ReportingSink
from .wrappers import create_wrapper, is_wrappable

log = logging.getLogger("nodeguard.detection")

PERFORMANCE_NOTICE = (
    "Node mutation detection is enabled. Every node is wrapped to intercept reads "
    "and writes, which adds measurable overhead; use it during development only."
)


class NodeMutationDetector:
    """
    Owns everything needed to guard nodes in one process.

    Responsibilities
    - Activation gate (disabled -> enabled, one way)
    - Identity memoization of wrappers
    - Deduplicated reporting of unauthorized writes

    Hosts normally use the module level default detector through wrap_node()
    and enable_node_mutations_detection(); separate instances are useful for
    isolated checks and tests.
    """

    def __init__(
        self,
        *,
        enabled: bool = False,
        sink: Optional[ReportingSink] = None,
        node_policy: InterceptionPolicy = NODE_POLICY,
    ) -> None:
        if not isinstance(node_policy, InterceptionPolicy):
            raise TypeError("node_policy must be an InterceptionPolicy")

        self.sink = sink if sink is not None else LoggingSink()
        self.node_policy = node_policy
        self.reporter = MutationReporter(self.sink)
        self.references = ReferenceMap(self._create_wrapper)
        self._gate = ActivationGate(enabled)

    @classmethod
    def from_config(
        cls, config: DetectionConfig, *, sink: Optional[ReportingSink] = None
    ) -> "NodeMutationDetector":
        if config.log_level is not None:
            logging.getLogger("nodeguard").setLevel(config.log_level)
        if sink is None:
            sink = RecordingSink(maxlen=config.max_recorded_reports, forward=LoggingSink())
        return cls(enabled=config.detect_node_mutations, sink=sink)

    @property
    def enabled(self) -> bool:
        return self._gate.enabled

    def enable(self) -> None:
        """Turn detection on for the rest of the process. Idempotent."""

        if self._gate.enable():
            self.sink.info(PERFORMANCE_NOTICE)

    def wrap(self, target: Any, policy: InterceptionPolicy) -> Any:
        return self.references.wrap(target, policy)

    def wrap_node(self, node: Any = None) -> Any:
        """Return node itself when detection is off, else its guarded handle."""

        if node is None or not self._gate.enabled:
            return node
        if not is_wrappable(node):
            return node
        return self.wrap(node, self.node_policy)

    def _create_wrapper(self, target: Any, policy: InterceptionPolicy) -> Any:
        log.debug(
            "wrapper_created",
            extra={"policy": policy.name, "target_type": type(target).__name__},
        )
        return create_wrapper(target, policy, self)

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"NodeMutationDetector({state}, wrappers={len(self.references)})"


_default_detector = NodeMutationDetector.from_config(DetectionConfig.from_env())


def get_default_detector() -> NodeMutationDetector:
    return _default_detector


def enable_node_mutations_detection() -> None:
    _default_detector.enable()


def is_node_mutations_detection_enabled() -> bool:
    return _default_detector.enabled


def wrap_node(node: Any = None) -> Any:
    return _default_detector.wrap_node(node)
