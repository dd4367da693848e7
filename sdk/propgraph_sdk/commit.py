"""
Commit selection: picks the overlay items that a save must persist.

Only created items are ever written. Modified and deleted base items are
editor-local until a delete endpoint is called explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

from .overlay import Overlay
from .types import ChangeStatus, Edge, Node


@dataclass(frozen=True)
class CommitSelection:
    """Items selected for a write request."""

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    @property
    def edge_ids(self) -> list[str]:
        return [e.id for e in self.edges]


def select_for_commit(overlay: Overlay) -> CommitSelection:
    """Return the created items that are still NEW and not deleted."""
    return CommitSelection(
        nodes=tuple(
            n
            for n in overlay.created_nodes
            if n.status == ChangeStatus.NEW and n.id not in overlay.deleted_node_ids
        ),
        edges=tuple(
            e
            for e in overlay.created_edges
            if e.status == ChangeStatus.NEW and e.id not in overlay.deleted_edge_ids
        ),
    )
