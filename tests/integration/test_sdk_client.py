"""
Integration tests for the SDK client and editor session against a mock
gateway transport.

Tests cover:
- Request shapes and forwarded headers
- ApiError on non-2xx responses
- Session load, save, promotion and retry after failure
"""

import json

import httpx
import pytest

from sdk.propgraph_sdk.client import EditorSession, GraphClient
from sdk.propgraph_sdk.errors import ApiError
from sdk.propgraph_sdk.types import ChangeStatus, Edge, Node

BASE_GRAPH = {
    "success": True,
    "nodes": [
        {"id": "p1", "label": "Alice", "type": "Person", "status": "existing", "properties": {}},
        {"id": "p2", "label": "Bob", "type": "Person", "status": "existing", "properties": {}},
    ],
    "edges": [
        {
            "id": "e12",
            "source": "p1",
            "target": "p2",
            "relationshipType": "KNOWS",
            "status": "existing",
            "properties": {},
        }
    ],
    "metadata": {
        "source": "primary",
        "databricksEnabled": True,
        "databricksError": None,
        "timestamp": "2026-01-01T00:00:00+00:00",
        "duration": "12ms",
    },
}


class FakeGateway:
    """Records requests and replies with canned gateway responses."""

    def __init__(self, write_source="primary", write_status=200):
        self.write_source = write_source
        self.write_status = write_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content) if request.content else None

        if request.method == "GET" and request.url.path == "/api/graph":
            return httpx.Response(200, json=BASE_GRAPH)
        if request.method == "POST" and request.url.path == "/api/graph":
            if self.write_status != 200:
                return httpx.Response(
                    self.write_status,
                    json={
                        "success": False,
                        "message": "Failed to write to database: disk I/O error",
                        "metadata": {"source": "error"},
                    },
                )
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "message": f"Wrote {len(body['nodes'])} nodes and {len(body['edges'])} edges",
                    "target": "Databricks",
                    "jobId": "job_1",
                    "writtenNodes": len(body["nodes"]),
                    "writtenEdges": len(body["edges"]),
                    "metadata": {"source": self.write_source},
                },
            )
        if request.method == "PATCH" and request.url.path == "/api/graph/status":
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "message": "ok",
                    "updatedNodes": len(body["nodeIds"]),
                    "updatedEdges": len(body["edgeIds"]),
                },
            )
        if request.method == "DELETE" and request.url.path.startswith("/api/graph/edge/"):
            return httpx.Response(404, json={"success": False, "message": "Edge ghost not found"})
        return httpx.Response(200, json={"success": True, "deleted": True})

    def last(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path][-1]


def make_client(gateway, **kwargs):
    return GraphClient("http://gateway.test", transport=httpx.MockTransport(gateway), **kwargs)


class TestGraphClient:
    """Tests for GraphClient."""

    @pytest.mark.asyncio
    async def test_fetch_forwards_identity_and_table(self):
        gateway = FakeGateway()
        async with make_client(
            gateway,
            access_token="dapi-token",
            email="alice@example.com",
            table_name="main.graph.edges",
        ) as client:
            result = await client.fetch_graph()

        request = gateway.requests[0]
        assert request.headers["X-Forwarded-Access-Token"] == "dapi-token"
        assert request.headers["X-Forwarded-Email"] == "alice@example.com"
        assert request.url.params["tableName"] == "main.graph.edges"
        assert result.source == "primary"
        assert [n.id for n in result.graph.nodes] == ["p1", "p2"]
        assert result.graph.edges[0].relationship_type == "KNOWS"

    @pytest.mark.asyncio
    async def test_no_token_sends_no_identity_headers(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            await client.fetch_graph()

        request = gateway.requests[0]
        assert "X-Forwarded-Access-Token" not in request.headers
        assert "tableName" not in request.url.params

    @pytest.mark.asyncio
    async def test_write_sends_wire_format(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            await client.write_graph(
                [Node(id="n1", label="Carol", type="Person", status=ChangeStatus.NEW)],
                [Edge(id="e1", source="p1", target="n1", relationship_type="KNOWS", status=ChangeStatus.NEW)],
            )

        body = json.loads(gateway.last("POST", "/api/graph").content)
        assert body["nodes"][0]["status"] == "new"
        assert body["edges"][0]["relationshipType"] == "KNOWS"

    @pytest.mark.asyncio
    async def test_error_response_raises_api_error(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.delete_edge("ghost")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Edge ghost not found"

    @pytest.mark.asyncio
    async def test_unreachable_gateway_raises_api_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with GraphClient("http://gateway.test", transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.health()

        assert exc_info.value.status_code == 0


class TestEditorSession:
    """Tests for EditorSession."""

    @pytest.mark.asyncio
    async def test_load_resets_tracker(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            session = EditorSession(client)
            session.tracker.add_node(Node(id="stale", label="Stale", type="Thing"))

            view = await session.load()

        assert view.node_ids() == {"p1", "p2"}
        assert session.tracker.overlay.is_clean
        assert session.last_metadata["source"] == "primary"

    @pytest.mark.asyncio
    async def test_save_nothing_pending(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            session = EditorSession(client)
            await session.load()

            result = await session.save()

        assert result.success is True
        assert result.message == "No new changes to save"
        assert all(r.method == "GET" for r in gateway.requests)

    @pytest.mark.asyncio
    async def test_save_promotes_on_success(self):
        gateway = FakeGateway()
        async with make_client(gateway) as client:
            session = EditorSession(client)
            await session.load()
            session.tracker.add_node({"id": "n1", "label": "Carol", "type": "Person"})
            session.tracker.add_edge({"id": "e1", "source": "p1", "target": "n1", "relationshipType": "KNOWS"})
            session.tracker.update_node("p2", {"label": "Robert"})

            result = await session.save()

        assert result.success is True
        assert result.source == "primary"
        assert (result.written_nodes, result.written_edges) == (1, 1)
        body = json.loads(gateway.last("POST", "/api/graph").content)
        assert [n["id"] for n in body["nodes"]] == ["n1"]
        assert [e["id"] for e in body["edges"]] == ["e1"]

        view = session.tracker.merged_view()
        assert all(n.status == ChangeStatus.EXISTING for n in view.nodes)
        assert all(e.status == ChangeStatus.EXISTING for e in view.edges)
        # modified base items stay pending
        assert "p2" in session.tracker.overlay.modified_nodes
        assert not [r for r in gateway.requests if r.method == "PATCH"]

    @pytest.mark.asyncio
    async def test_fallback_save_marks_items_existing(self):
        gateway = FakeGateway(write_source="fallback")
        async with make_client(gateway) as client:
            session = EditorSession(client)
            await session.load()
            session.tracker.add_node({"id": "n1", "label": "Carol", "type": "Person"})

            result = await session.save()

        assert result.source == "fallback"
        body = json.loads(gateway.last("PATCH", "/api/graph/status").content)
        assert body == {"nodeIds": ["n1"], "edgeIds": [], "status": "existing"}

    @pytest.mark.asyncio
    async def test_failed_save_keeps_items_new(self):
        gateway = FakeGateway(write_status=500)
        async with make_client(gateway) as client:
            session = EditorSession(client)
            await session.load()
            session.tracker.add_node({"id": "n1", "label": "Carol", "type": "Person"})

            result = await session.save()

            assert result.success is False
            assert result.source == "error"
            assert result.message == "Failed to write to database: disk I/O error"
            assert [n.id for n in session.tracker.overlay.created_nodes] == ["n1"]

            gateway.write_status = 200
            retry = await session.save()

        assert retry.success is True
        assert session.tracker.overlay.created_nodes == ()
