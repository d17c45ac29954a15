"""Interception policies for the three object shapes reachable from a node.

- generic: any nested object. Reads wrap, every write is a violation.
- node internal: the node's system-owned bookkeeping object.
- node: the top-level record handed out by the node store.
"""

from __future__ import annotations

from .policy import GENERIC_POLICY, allow_list_policy

INTERNAL_FIELD = "internal"
FIELD_OWNERS_FIELD = "field_owners"
CONTENT_FIELD = "content"
RESOLVED_FIELD = "__resolved"
FIELDS_FIELD = "fields"
CHILDREN_FIELD = "children"

NODE_INTERNAL_MUTABLE_FIELDS = frozenset({FIELD_OWNERS_FIELD, CONTENT_FIELD})
NODE_MUTABLE_FIELDS = frozenset({RESOLVED_FIELD, FIELDS_FIELD, CHILDREN_FIELD})

NODE_INTERNAL_POLICY = allow_list_policy("node-internal", NODE_INTERNAL_MUTABLE_FIELDS)

NODE_POLICY = allow_list_policy(
    "node",
    NODE_MUTABLE_FIELDS,
    routes={INTERNAL_FIELD: NODE_INTERNAL_POLICY},
)

__all__ = [
    "GENERIC_POLICY",
    "NODE_INTERNAL_POLICY",
    "NODE_POLICY",
    "INTERNAL_FIELD",
    "FIELD_OWNERS_FIELD",
    "CONTENT_FIELD",
    "RESOLVED_FIELD",
    "FIELDS_FIELD",
    "CHILDREN_FIELD",
    "NODE_INTERNAL_MUTABLE_FIELDS",
    "NODE_MUTABLE_FIELDS",
]
