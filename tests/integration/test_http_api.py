"""
Integration tests for the HTTP API.

Runs the FastAPI app in-process with a real SQLite file and a fake primary
connection factory.

Tests cover:
- Graph read/write envelopes and provenance metadata
- Table name validation before any store call
- Status update, deletes, reseed, job status and health
- Error responses
"""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from backend.propgraph_server.api.app import create_app
from backend.propgraph_server.config import DatabricksSettings, Settings
from backend.propgraph_server.errors import LocalStoreError
from backend.propgraph_server.store.remote_store import RemoteStore

TOKEN_HEADERS = {
    "X-Forwarded-Access-Token": "dapi-user-token",
    "X-Forwarded-Email": "alice@example.com",
}

NEW_GRAPH = {
    "nodes": [
        {"id": "n1", "label": "Alice", "type": "Person", "status": "new", "properties": {}},
        {"id": "n2", "label": "Bob", "type": "Person", "status": "new", "properties": {}},
    ],
    "edges": [
        {
            "id": "e1",
            "source": "n1",
            "target": "n2",
            "relationshipType": "KNOWS",
            "status": "new",
            "properties": {},
        }
    ],
}


def make_connection(rows=None, error=None):
    """Fake databricks.sql.connect returning a MagicMock connection."""
    cursor = MagicMock()
    cursor.fetchall.return_value = rows or []
    if error is not None:
        cursor.execute.side_effect = error
    connection = MagicMock()
    connection.cursor.return_value = cursor
    return MagicMock(return_value=connection)


class TestHttpApi:
    """Tests for the gateway HTTP API."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def connect(self):
        return make_connection(error=RuntimeError("connect ECONNREFUSED 10.0.0.1:443"))

    @pytest.fixture
    def client(self, data_dir, connect):
        settings = Settings(
            db_path=os.path.join(data_dir, "graph.db"),
            seed_on_empty=True,
            databricks=DatabricksSettings(
                host="example.cloud.databricks.com",
                http_path="/sql/1.0/warehouses/abc",
            ),
        )
        app = create_app(settings, remote_store=RemoteStore(settings.databricks, connect=connect))
        with TestClient(app) as client:
            yield client

    # --- Health / job ---

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == {"type": "SQLite", "nodeCount": 8, "edgeCount": 7}
        assert body["databricks"]["configured"] is True
        assert body["databricks"]["table"] == "main.default.property_graph_entity_edges"

    def test_job_status(self, client):
        response = client.get("/api/job/job_123_abc")

        assert response.status_code == 200
        assert response.json()["jobId"] == "job_123_abc"
        assert response.json()["status"] == "SUCCESS"

    # --- Read ---

    def test_read_without_token_uses_local_store(self, client, connect):
        response = client.get("/api/graph")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["nodes"]) == 8
        assert len(body["edges"]) == 7
        assert body["edges"][0]["relationshipType"] == "WORKS_AT"
        metadata = body["metadata"]
        assert metadata["source"] == "fallback"
        assert metadata["databricksEnabled"] is False
        assert metadata["databricksError"] is None
        assert set(metadata) == {"source", "databricksEnabled", "databricksError", "timestamp", "duration"}
        connect.assert_not_called()

    def test_read_primary_failure_falls_back(self, client, connect):
        response = client.get("/api/graph", headers=TOKEN_HEADERS)

        assert response.status_code == 200
        metadata = response.json()["metadata"]
        assert metadata["source"] == "fallback"
        assert metadata["databricksEnabled"] is True
        assert metadata["databricksError"] == "Unable to connect to Databricks"
        connect.assert_called_once()
        assert connect.call_args.kwargs["access_token"] == "dapi-user-token"

    def test_read_from_primary(self, data_dir):
        rows = [
            {
                "node_start_id": "alice",
                "node_start_key": "Person",
                "relationship": "KNOWS",
                "node_end_id": "bob",
                "node_end_key": "Person",
                "node_start_properties": "{}",
                "node_end_properties": "{}",
            }
        ]
        settings = Settings(
            db_path=os.path.join(data_dir, "graph.db"),
            databricks=DatabricksSettings(host="h.example.com", http_path="/sql/1.0/x"),
        )
        remote = RemoteStore(settings.databricks, connect=make_connection(rows=rows))

        with TestClient(create_app(settings, remote_store=remote)) as client:
            response = client.get("/api/graph", headers=TOKEN_HEADERS)

        body = response.json()
        assert body["metadata"]["source"] == "primary"
        assert [n["id"] for n in body["nodes"]] == ["alice", "bob"]
        assert body["edges"][0]["id"] == "edge_alice_bob_KNOWS"

    def test_injected_table_name_rejected_before_store_call(self, client, connect):
        response = client.get(
            "/api/graph",
            params={"tableName": "main.default.tbl; DROP TABLE x"},
            headers=TOKEN_HEADERS,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "Invalid table name format" in body["error"]
        connect.assert_not_called()

    # --- Write ---

    def test_empty_write_is_noop(self, client, connect):
        response = client.post(
            "/api/graph",
            params={"tableName": "not valid!"},
            json={"nodes": [], "edges": []},
            headers=TOKEN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "No new changes to write",
            "writtenNodes": 0,
            "writtenEdges": 0,
        }
        connect.assert_not_called()

    def test_write_falls_back_to_local_store(self, client):
        response = client.post("/api/graph", json=NEW_GRAPH, headers=TOKEN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["target"] == "SQLite (fallback)"
        assert body["writtenNodes"] == 2
        assert body["writtenEdges"] == 1
        assert body["jobId"].startswith("job_")
        assert body["metadata"]["source"] == "fallback"

        graph = client.get("/api/graph").json()
        created = [n for n in graph["nodes"] if n["id"] in ("n1", "n2")]
        assert [n["status"] for n in created] == ["new", "new"]

    def test_write_with_invalid_table_name(self, client):
        response = client.post("/api/graph", params={"tableName": "a.b.c.d"}, json=NEW_GRAPH)
        assert response.status_code == 400

    def test_write_missing_edges_rejected(self, client):
        response = client.post("/api/graph", json={"nodes": []})
        assert response.status_code == 422

    def test_write_total_failure(self, client):
        client.app.state.gateway.local.insert_graph = AsyncMock(
            side_effect=LocalStoreError("disk I/O error")
        )

        response = client.post("/api/graph", json=NEW_GRAPH, headers=TOKEN_HEADERS)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Failed to write to database: disk I/O error"
        assert body["metadata"]["source"] == "error"
        assert body["metadata"]["databricksError"] == "Unable to connect to Databricks"

    # --- Status ---

    def test_update_status(self, client):
        client.post("/api/graph", json=NEW_GRAPH)

        response = client.patch(
            "/api/graph/status",
            json={"nodeIds": ["n1", "n2"], "edgeIds": ["e1"], "status": "existing"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["updatedNodes"] == 2
        assert body["updatedEdges"] == 1
        graph = client.get("/api/graph").json()
        assert all(n["status"] == "existing" for n in graph["nodes"])

    def test_update_status_requires_status(self, client):
        response = client.patch("/api/graph/status", json={"nodeIds": ["n1"]})
        assert response.status_code == 422

    def test_update_status_rejects_unknown_status(self, client):
        response = client.patch(
            "/api/graph/status",
            json={"nodeIds": ["person_1"], "status": "bogus"},
        )

        assert response.status_code == 422
        graph = client.get("/api/graph").json()
        person = next(n for n in graph["nodes"] if n["id"] == "person_1")
        assert person["status"] in ("new", "existing")

    def test_write_rejects_unknown_status(self, client):
        graph = {
            "nodes": [{**NEW_GRAPH["nodes"][0], "status": "bogus"}],
            "edges": [{**NEW_GRAPH["edges"][0], "status": "deleted"}],
        }

        response = client.post("/api/graph", json=graph)

        assert response.status_code == 422
        ids = {n["id"] for n in client.get("/api/graph").json()["nodes"]}
        assert "n1" not in ids

    # --- Delete ---

    def test_delete_node(self, client, connect):
        response = client.delete("/api/graph/node/company_1", headers=TOKEN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["deleted"] is True
        assert body["target"] == "SQLite (fallback)"
        connect.assert_called_once()

        health = client.get("/health").json()
        assert health["database"]["nodeCount"] == 7
        # edges 1, 2, 5 and 6 touch company_1
        assert health["database"]["edgeCount"] == 3

    def test_delete_missing_node(self, client):
        response = client.delete("/api/graph/node/ghost")

        assert response.status_code == 200
        assert response.json()["deleted"] is False

    def test_delete_edge(self, client):
        response = client.delete("/api/graph/edge/edge_4")

        assert response.status_code == 200
        assert response.json()["deleted"] is True
        assert response.json()["target"] == "SQLite"

    def test_delete_unknown_edge(self, client):
        response = client.delete("/api/graph/edge/ghost")

        assert response.status_code == 404
        assert response.json()["message"] == "Edge ghost not found"

    # --- Seed ---

    def test_reseed(self, client):
        client.post("/api/graph", json=NEW_GRAPH)

        response = client.post("/api/graph/seed")

        assert response.status_code == 200
        body = response.json()
        assert body["nodeCount"] == 8
        assert body["edgeCount"] == 7
