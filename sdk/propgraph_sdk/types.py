"""
Graph types for the PropGraph SDK.

This module defines the client-side property graph model:
- ChangeStatus: NEW for proposed items, EXISTING for persisted ones
- Node / Edge: immutable graph items with typed properties
- GraphData: a nodes + edges pair (the shape of every merged view)

Invariants:
    - Items are frozen; edits produce new instances via with_patch()
    - Property values are str, int, float, bool or None
    - Wire format is camelCase JSON (relationshipType)
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Mapping, Union

PropertyValue = Union[str, int, float, bool, None]


class ChangeStatus(str, Enum):
    """Lifecycle status of a graph item."""

    EXISTING = "existing"
    NEW = "new"


def _patch_kwargs(cls: type, patch: Mapping[str, Any]) -> dict[str, Any]:
    """Validate patch keys against dataclass fields.

    Raises:
        ValueError: If the patch tries to change the id or names an unknown field
    """
    allowed = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "id":
            raise ValueError("Item id cannot be patched")
        if key not in allowed:
            raise ValueError(f"Unknown field '{key}' for {cls.__name__}")
        if key == "properties":
            value = dict(value)
        elif key == "status":
            value = ChangeStatus(value)
        kwargs[key] = value
    return kwargs


@dataclass(frozen=True)
class Node:
    """A node in the property graph.

    Attributes:
        id: Globally unique node id
        label: Display name
        type: Open string tag (e.g. "Person")
        status: NEW or EXISTING
        properties: Property map
    """

    id: str
    label: str
    type: str
    status: ChangeStatus = ChangeStatus.EXISTING
    properties: dict[str, PropertyValue] = field(default_factory=dict)

    def with_patch(self, patch: Mapping[str, Any]) -> Node:
        """Return a copy with the patch applied."""
        return replace(self, **_patch_kwargs(Node, patch))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "status": self.status.value,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            type=data.get("type", "Unknown"),
            status=ChangeStatus(data.get("status", ChangeStatus.EXISTING.value)),
            properties=dict(data.get("properties") or {}),
        )


@dataclass(frozen=True)
class Edge:
    """A directed edge in the property graph.

    Attributes:
        id: Unique edge id
        source: Source node id
        target: Target node id
        relationship_type: Open string tag (e.g. "KNOWS")
        status: NEW or EXISTING
        properties: Property map
    """

    id: str
    source: str
    target: str
    relationship_type: str
    status: ChangeStatus = ChangeStatus.EXISTING
    properties: dict[str, PropertyValue] = field(default_factory=dict)

    def touches(self, node_id: str) -> bool:
        """True if either endpoint is node_id."""
        return self.source == node_id or self.target == node_id

    def with_patch(self, patch: Mapping[str, Any]) -> Edge:
        """Return a copy with the patch applied."""
        return replace(self, **_patch_kwargs(Edge, patch))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "relationshipType": self.relationship_type,
            "status": self.status.value,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Edge:
        return cls(
            id=data["id"],
            source=data["source"],
            target=data["target"],
            relationship_type=data.get("relationshipType", data.get("relationship_type", "")),
            status=ChangeStatus(data.get("status", ChangeStatus.EXISTING.value)),
            properties=dict(data.get("properties") or {}),
        )


@dataclass(frozen=True)
class GraphData:
    """A nodes + edges pair."""

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def edge_ids(self) -> set[str]:
        return {e.id for e in self.edges}

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GraphData:
        return cls(
            nodes=tuple(Node.from_dict(n) for n in data.get("nodes", [])),
            edges=tuple(Edge.from_dict(e) for e in data.get("edges", [])),
        )


@dataclass(frozen=True)
class GraphStats:
    """Editor statistics over the merged view."""

    total_nodes: int
    total_edges: int
    new_nodes: int
    new_edges: int
