"""
Normalized node/edge model shared by the gateway and both stores.

The local store persists this model as-is (including status). The primary
store persists a denormalized projection of it, one row per edge, and has
no notion of status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STATUS_NEW = "new"
STATUS_EXISTING = "existing"


@dataclass
class Node:
    """A graph node.

    Attributes:
        id: Unique node id
        label: Display name
        type: Entity type tag
        status: "new" or "existing" (local store only)
        properties: Property map
    """

    id: str
    label: str
    type: str
    status: str = STATUS_EXISTING
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "status": self.status,
            "properties": self.properties,
        }


@dataclass
class Edge:
    """A directed graph edge.

    Attributes:
        id: Unique edge id
        source: Source node id
        target: Target node id
        relationship_type: Relationship tag
        status: "new" or "existing" (local store only)
        properties: Property map
    """

    id: str
    source: str
    target: str
    relationship_type: str
    status: str = STATUS_EXISTING
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "relationshipType": self.relationship_type,
            "status": self.status,
            "properties": self.properties,
        }


@dataclass
class Graph:
    """Nodes and edges returned by a read."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
