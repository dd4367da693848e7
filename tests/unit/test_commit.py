"""
Unit tests for commit selection.
"""

from sdk.propgraph_sdk.commit import select_for_commit
from sdk.propgraph_sdk.overlay import OverlayTracker
from sdk.propgraph_sdk.types import Edge, GraphData, Node


def make_tracker() -> OverlayTracker:
    return OverlayTracker(
        GraphData(
            nodes=(Node(id="p1", label="Alice", type="Person"),),
            edges=(),
        )
    )


class TestSelectForCommit:
    """Tests for select_for_commit."""

    def test_clean_overlay_selects_nothing(self):
        selection = select_for_commit(make_tracker().overlay)
        assert selection.is_empty

    def test_selects_created_items_in_order(self):
        tracker = make_tracker()
        tracker.add_node(Node(id="n1", label="Bob", type="Person"))
        tracker.add_node(Node(id="n2", label="Carol", type="Person"))
        tracker.add_edge(Edge(id="e1", source="p1", target="n1", relationship_type="KNOWS"))

        selection = select_for_commit(tracker.overlay)

        assert selection.node_ids == ["n1", "n2"]
        assert selection.edge_ids == ["e1"]
        assert not selection.is_empty

    def test_modified_and_deleted_base_items_not_selected(self):
        tracker = make_tracker()
        tracker.update_node("p1", {"label": "Alicia"})

        assert select_for_commit(tracker.overlay).is_empty

        tracker.delete_node("p1")
        assert select_for_commit(tracker.overlay).is_empty

    def test_deleted_created_items_not_selected(self):
        tracker = make_tracker()
        tracker.add_node(Node(id="n1", label="Bob", type="Person"))
        tracker.add_edge(Edge(id="e1", source="p1", target="n1", relationship_type="KNOWS"))
        tracker.delete_node("n1")

        assert select_for_commit(tracker.overlay).is_empty

    def test_promoted_items_not_selected_again(self):
        tracker = make_tracker()
        tracker.add_node(Node(id="n1", label="Bob", type="Person"))
        tracker.promote(["n1"], [])

        assert select_for_commit(tracker.overlay).is_empty
