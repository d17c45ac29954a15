from __future__ import annotations

from typing import Any, Optional


SANCTIONED_MUTATION_APIS = ("create_node", "create_node_field", "create_parent_child_link")


class NodeGuardError(Exception):
    """
    Base exception for all node guard failures.
    """

    pass


class UnauthorizedMutationError(NodeGuardError):
    """
    Describes a write to a node field outside the active allow-list.

    The guard never raises this. Instances are handed to the reporting sink
    while the write itself still goes through.
    """

    def __init__(
        self,
        key: Any,
        *,
        shape: str,
        location: Optional[str] = None,
        fingerprint: str = "",
    ) -> None:
        self.key = key
        self.shape = shape
        self.location = location
        self.fingerprint = fingerprint

        apis = ", ".join(SANCTIONED_MUTATION_APIS[:-1]) + f" and/or {SANCTIONED_MUTATION_APIS[-1]}"
        where = f" at {location}" if location else ""
        super().__init__(
            f"Mutating nodes directly is not allowed (attempted to set {key!r} on a "
            f"{shape} object{where}). Use {apis} instead."
        )


class MutationRejectedError(NodeGuardError, TypeError):
    """
    Raised when a policy hook explicitly rejects a write.
    """

    def __init__(self, key: Any, *, shape: str) -> None:
        self.key = key
        self.shape = shape
        super().__init__(f"Write to {key!r} rejected by the {shape} policy")


class NodeGuardConfigurationError(NodeGuardError):
    """
    Raised when policies are misconfigured or invalid.
    """

    pass
