"""
Overlay tracker for graph edits.

The tracker reconciles an immutable base snapshot (the last fetched graph)
with pending user edits, kept as four deltas:
- created nodes/edges (status NEW)
- modified items (partial patches keyed by id, base items only)
- deleted node ids and deleted edge ids (tombstones, base items only)

The merged view is recomputed after every mutation, so readers always see a
complete snapshot and never a partially applied one.

Invariants:
    - Node and edge ids are unique within the merged view
    - Every edge in the merged view has both endpoints in the merged view
    - Deleting a node removes every edge touching it in the same mutation
    - A deleted created item is purged, a deleted base item is tombstoned
    - promote() is the only way a created item enters the base snapshot
    - Tombstones are applied last, so patches never resurrect deleted items

How to change safely:
    - Every public mutator must end with _refresh()
    - Keep dict insertion order; it defines merged view ordering
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Union

from .errors import DanglingEdgeError, DuplicateIdError, UnknownItemError
from .types import ChangeStatus, Edge, GraphData, GraphStats, Node

logger = logging.getLogger(__name__)

NodeDraft = Union[Node, Mapping[str, Any]]
EdgeDraft = Union[Edge, Mapping[str, Any]]


@dataclass(frozen=True)
class Overlay:
    """Read-only snapshot of the pending deltas.

    Attributes:
        created_nodes: User-created nodes, in creation order
        created_edges: User-created edges, in creation order
        modified_nodes: Patches for base nodes, keyed by node id
        modified_edges: Patches for base edges, keyed by edge id
        deleted_node_ids: Tombstoned base node ids
        deleted_edge_ids: Tombstoned base edge ids
    """

    created_nodes: tuple[Node, ...] = ()
    created_edges: tuple[Edge, ...] = ()
    modified_nodes: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    modified_edges: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    deleted_node_ids: frozenset[str] = frozenset()
    deleted_edge_ids: frozenset[str] = frozenset()

    @property
    def is_clean(self) -> bool:
        """True if there are no pending edits at all."""
        return not (
            self.created_nodes
            or self.created_edges
            or self.modified_nodes
            or self.modified_edges
            or self.deleted_node_ids
            or self.deleted_edge_ids
        )


class OverlayTracker:
    """Tracks user edits on top of a base snapshot.

    Example:
        >>> tracker = OverlayTracker(base)
        >>> tracker.add_node(Node(id="n1", label="Alice", type="Person"))
        >>> tracker.merged_view().nodes[-1].status
        <ChangeStatus.NEW: 'new'>
        >>> tracker.promote(["n1"], [])
    """

    def __init__(self, base: GraphData | None = None) -> None:
        self._base_nodes: dict[str, Node] = {}
        self._base_edges: dict[str, Edge] = {}
        self._created_nodes: dict[str, Node] = {}
        self._created_edges: dict[str, Edge] = {}
        self._modified_nodes: dict[str, dict[str, Any]] = {}
        self._modified_edges: dict[str, dict[str, Any]] = {}
        self._deleted_node_ids: set[str] = set()
        self._deleted_edge_ids: set[str] = set()
        self._view = GraphData()
        self.reset_to(base or GraphData())

    # --- Views ---

    def merged_view(self) -> GraphData:
        """Return the base snapshot with all pending edits applied."""
        return self._view

    @property
    def base(self) -> GraphData:
        """The current base snapshot."""
        return GraphData(
            nodes=tuple(self._base_nodes.values()),
            edges=tuple(self._base_edges.values()),
        )

    @property
    def overlay(self) -> Overlay:
        """Snapshot of the pending deltas."""
        return Overlay(
            created_nodes=tuple(self._created_nodes.values()),
            created_edges=tuple(self._created_edges.values()),
            modified_nodes=MappingProxyType(
                {k: dict(v) for k, v in self._modified_nodes.items()}
            ),
            modified_edges=MappingProxyType(
                {k: dict(v) for k, v in self._modified_edges.items()}
            ),
            deleted_node_ids=frozenset(self._deleted_node_ids),
            deleted_edge_ids=frozenset(self._deleted_edge_ids),
        )

    def stats(self) -> GraphStats:
        """Counts over the merged view and the created set."""
        return GraphStats(
            total_nodes=len(self._view.nodes),
            total_edges=len(self._view.edges),
            new_nodes=len(self._created_nodes),
            new_edges=len(self._created_edges),
        )

    # --- Nodes ---

    def add_node(self, draft: NodeDraft) -> Node:
        """Create a node with status NEW.

        Raises:
            DuplicateIdError: If the id is already used by a base or created node
        """
        node = draft if isinstance(draft, Node) else Node.from_dict(draft)
        if node.id in self._base_nodes or node.id in self._created_nodes:
            raise DuplicateIdError("Node", node.id)

        node = replace(node, status=ChangeStatus.NEW, properties=dict(node.properties))
        self._created_nodes[node.id] = node
        self._refresh()
        return node

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> None:
        """Apply a partial update to a node.

        Created nodes are patched in place; base nodes accumulate the patch in
        the modified set.

        Raises:
            UnknownItemError: If node_id is neither a base nor a created node
            ValueError: If the patch names the id or an unknown field
        """
        if node_id in self._created_nodes:
            self._created_nodes[node_id] = self._created_nodes[node_id].with_patch(patch)
        elif node_id in self._base_nodes:
            merged = {**self._modified_nodes.get(node_id, {}), **patch}
            # validates the combined patch before recording it
            self._base_nodes[node_id].with_patch(merged)
            self._modified_nodes[node_id] = merged
        else:
            raise UnknownItemError("Node", node_id)
        self._refresh()

    def delete_node(self, node_id: str) -> None:
        """Delete a node and every edge touching it.

        Deleting an unknown or already deleted node is a no-op.
        """
        if node_id in self._created_nodes:
            del self._created_nodes[node_id]
        elif node_id in self._base_nodes and node_id not in self._deleted_node_ids:
            self._deleted_node_ids.add(node_id)
            self._modified_nodes.pop(node_id, None)
        else:
            return

        cascaded = 0
        for edge_id, edge in list(self._created_edges.items()):
            if edge.touches(node_id):
                del self._created_edges[edge_id]
                cascaded += 1
        for edge_id, edge in self._base_edges.items():
            if edge_id in self._deleted_edge_ids:
                continue
            # endpoints may have been moved by a pending patch
            if edge_id in self._modified_edges:
                edge = edge.with_patch(self._modified_edges[edge_id])
            if edge.touches(node_id):
                self._deleted_edge_ids.add(edge_id)
                self._modified_edges.pop(edge_id, None)
                cascaded += 1

        logger.debug("Deleted node", extra={"node_id": node_id, "cascaded_edges": cascaded})
        self._refresh()

    # --- Edges ---

    def add_edge(self, draft: EdgeDraft) -> Edge:
        """Create an edge with status NEW.

        Raises:
            DuplicateIdError: If the id is already used by a base or created edge
            DanglingEdgeError: If an endpoint is missing from the merged view
        """
        edge = draft if isinstance(draft, Edge) else Edge.from_dict(draft)
        if edge.id in self._base_edges or edge.id in self._created_edges:
            raise DuplicateIdError("Edge", edge.id)
        self._check_endpoints(edge)

        edge = replace(edge, status=ChangeStatus.NEW, properties=dict(edge.properties))
        self._created_edges[edge.id] = edge
        self._refresh()
        return edge

    def update_edge(self, edge_id: str, patch: Mapping[str, Any]) -> None:
        """Apply a partial update to an edge.

        Raises:
            UnknownItemError: If edge_id is neither a base nor a created edge
            DanglingEdgeError: If the patch points an endpoint at a missing node
            ValueError: If the patch names the id or an unknown field
        """
        if edge_id in self._created_edges:
            updated = self._created_edges[edge_id].with_patch(patch)
            self._check_endpoints(updated)
            self._created_edges[edge_id] = updated
        elif edge_id in self._base_edges:
            merged = {**self._modified_edges.get(edge_id, {}), **patch}
            updated = self._base_edges[edge_id].with_patch(merged)
            if edge_id not in self._deleted_edge_ids:
                self._check_endpoints(updated)
            self._modified_edges[edge_id] = merged
        else:
            raise UnknownItemError("Edge", edge_id)
        self._refresh()

    def delete_edge(self, edge_id: str) -> None:
        """Delete an edge. Unknown or already deleted ids are a no-op."""
        if edge_id in self._created_edges:
            del self._created_edges[edge_id]
        elif edge_id in self._base_edges and edge_id not in self._deleted_edge_ids:
            self._deleted_edge_ids.add(edge_id)
            self._modified_edges.pop(edge_id, None)
        else:
            return
        self._refresh()

    # --- Reconciliation ---

    def promote(self, node_ids: Iterable[str], edge_ids: Iterable[str]) -> None:
        """Move saved created items into the base snapshot as EXISTING.

        Ids not present in the created set are ignored, so promoting twice
        is the same as promoting once.
        """
        promoted = 0
        for node_id in node_ids:
            node = self._created_nodes.pop(node_id, None)
            if node is not None:
                self._base_nodes[node_id] = replace(node, status=ChangeStatus.EXISTING)
                promoted += 1
        for edge_id in edge_ids:
            edge = self._created_edges.pop(edge_id, None)
            if edge is not None:
                self._base_edges[edge_id] = replace(edge, status=ChangeStatus.EXISTING)
                promoted += 1

        if promoted:
            logger.debug("Promoted items into base snapshot", extra={"count": promoted})
        self._refresh()

    def reset_to(self, new_base: GraphData) -> None:
        """Replace the base snapshot and discard every pending edit."""
        self._base_nodes = {}
        for node in new_base.nodes:
            self._base_nodes.setdefault(node.id, node)
        self._base_edges = {}
        for edge in new_base.edges:
            self._base_edges.setdefault(edge.id, edge)

        self._created_nodes.clear()
        self._created_edges.clear()
        self._modified_nodes.clear()
        self._modified_edges.clear()
        self._deleted_node_ids.clear()
        self._deleted_edge_ids.clear()
        self._refresh()

    # --- Internals ---

    def _check_endpoints(self, edge: Edge) -> None:
        visible = self._view.node_ids()
        missing = [nid for nid in (edge.source, edge.target) if nid not in visible]
        if missing:
            raise DanglingEdgeError(edge.id, missing)

    def _refresh(self) -> None:
        nodes = [
            node.with_patch(self._modified_nodes[node.id])
            if node.id in self._modified_nodes
            else node
            for node in self._base_nodes.values()
        ]
        nodes.extend(self._created_nodes.values())
        nodes = [n for n in nodes if n.id not in self._deleted_node_ids]
        visible = {n.id for n in nodes}

        edges = [
            edge.with_patch(self._modified_edges[edge.id])
            if edge.id in self._modified_edges
            else edge
            for edge in self._base_edges.values()
        ]
        edges.extend(self._created_edges.values())
        edges = [
            e
            for e in edges
            if e.id not in self._deleted_edge_ids
            and e.source in visible
            and e.target in visible
        ]

        self._view = GraphData(nodes=tuple(nodes), edges=tuple(edges))
