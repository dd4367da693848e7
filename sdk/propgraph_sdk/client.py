"""
PropGraph Client for Python SDK.

This module provides the HTTP client for the PropGraph gateway and the editor
session that ties it to an OverlayTracker:
- GraphClient: Thin async wrapper over the gateway's JSON API
- EditorSession: load (fetch + reset) and save (select + write + promote)
- SaveResult: Outcome of a save, for user notification

Example:
    >>> async with GraphClient("http://localhost:8000", access_token=token) as client:
    ...     session = EditorSession(client)
    ...     await session.load()
    ...     session.tracker.add_node({"id": "n1", "label": "Alice", "type": "Person"})
    ...     result = await session.save()

Invariants:
    - Items are promoted only after the gateway confirms the write
    - A failed save leaves every item NEW so the user can retry
    - Non-2xx responses raise ApiError with the gateway's sanitized message
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from .commit import select_for_commit
from .errors import ApiError
from .overlay import OverlayTracker
from .types import ChangeStatus, Edge, GraphData, Node

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Forwarded-Access-Token"
EMAIL_HEADER = "X-Forwarded-Email"


@dataclass
class FetchResult:
    """Graph returned by the gateway with its provenance metadata."""

    graph: GraphData
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str | None:
        return self.metadata.get("source")


@dataclass
class SaveResult:
    """Outcome of EditorSession.save().

    Attributes:
        success: Whether the gateway accepted the write
        message: Gateway message (sanitized on failure)
        source: Store that served the write: primary, fallback or error
        written_nodes: Nodes written
        written_edges: Edges written
    """

    success: bool
    message: str
    source: str | None = None
    written_nodes: int = 0
    written_edges: int = 0


class GraphClient:
    """Async HTTP client for the PropGraph gateway.

    Args:
        base_url: Gateway URL, e.g. http://localhost:8000
        access_token: Caller's access token, forwarded to the primary store
        email: Caller's email, for gateway logs
        table_name: Primary table (catalog.schema.table); gateway default if omitted
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests)
    """

    def __init__(
        self,
        base_url: str,
        *,
        access_token: str | None = None,
        email: str | None = None,
        table_name: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {}
        if access_token:
            headers[ACCESS_TOKEN_HEADER] = access_token
        if email:
            headers[EMAIL_HEADER] = email

        self.table_name = table_name
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> GraphClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # --- Graph API ---

    async def fetch_graph(self) -> FetchResult:
        """Fetch the whole graph."""
        body = await self._request("GET", "/api/graph", params=self._table_params())
        return FetchResult(
            graph=GraphData.from_dict(body),
            metadata=body.get("metadata") or {},
        )

    async def write_graph(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> dict[str, Any]:
        """Write new nodes and edges. Returns the response body."""
        return await self._request(
            "POST",
            "/api/graph",
            params=self._table_params(),
            json={
                "nodes": [n.to_dict() for n in nodes],
                "edges": [e.to_dict() for e in edges],
            },
        )

    async def update_status(
        self,
        node_ids: Iterable[str],
        edge_ids: Iterable[str],
        status: ChangeStatus | str,
    ) -> dict[str, Any]:
        """Set status on items in the gateway's local store."""
        return await self._request(
            "PATCH",
            "/api/graph/status",
            json={
                "nodeIds": list(node_ids),
                "edgeIds": list(edge_ids),
                "status": ChangeStatus(status).value,
            },
        )

    async def delete_node(self, node_id: str) -> dict[str, Any]:
        """Delete a node and its edges from both stores."""
        return await self._request(
            "DELETE", f"/api/graph/node/{node_id}", params=self._table_params()
        )

    async def delete_edge(self, edge_id: str) -> dict[str, Any]:
        """Delete an edge from both stores."""
        return await self._request(
            "DELETE", f"/api/graph/edge/{edge_id}", params=self._table_params()
        )

    async def reseed(self) -> dict[str, Any]:
        """Reload the gateway's local store with its sample graph."""
        return await self._request("POST", "/api/graph/seed")

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/health")

    # --- Internals ---

    def _table_params(self) -> dict[str, str] | None:
        if self.table_name:
            return {"tableName": self.table_name}
        return None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Gateway request failed", extra={"method": method, "path": path})
            raise ApiError(f"Unable to reach gateway: {type(e).__name__}", status_code=0) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error:
            metadata = body.get("metadata") or {}
            message = body.get("message") or body.get("error") or f"HTTP {response.status_code}"
            raise ApiError(message, response.status_code, source=metadata.get("source"))
        return body


class EditorSession:
    """Editor workflow over a GraphClient and an OverlayTracker.

    The session does not own the client; close the client separately.
    """

    def __init__(self, client: GraphClient, tracker: OverlayTracker | None = None) -> None:
        self.client = client
        self.tracker = tracker or OverlayTracker()
        self.last_metadata: dict[str, Any] = {}

    async def load(self) -> GraphData:
        """Fetch the graph and make it the new base snapshot.

        Pending edits are discarded.
        """
        result = await self.client.fetch_graph()
        self.tracker.reset_to(result.graph)
        self.last_metadata = result.metadata
        logger.info(
            "Loaded graph",
            extra={
                "source": result.source,
                "node_count": len(result.graph.nodes),
                "edge_count": len(result.graph.edges),
            },
        )
        return self.tracker.merged_view()

    async def save(self) -> SaveResult:
        """Write pending created items and promote them on success.

        Modified and deleted base items are not persisted by a save.
        """
        selection = select_for_commit(self.tracker.overlay)
        if selection.is_empty:
            return SaveResult(success=True, message="No new changes to save")

        try:
            body = await self.client.write_graph(selection.nodes, selection.edges)
        except ApiError as e:
            logger.warning(
                "Save failed, items stay pending",
                extra={"status_code": e.status_code, "source": e.source},
            )
            return SaveResult(success=False, message=e.message, source=e.source or "error")

        metadata = body.get("metadata") or {}
        source = metadata.get("source")
        self.tracker.promote(selection.node_ids, selection.edge_ids)

        if source == "fallback":
            try:
                await self.client.update_status(
                    selection.node_ids, selection.edge_ids, ChangeStatus.EXISTING
                )
            except ApiError as e:
                logger.warning("Failed to mark saved items existing", extra={"error": e.message})

        return SaveResult(
            success=True,
            message=body.get("message", ""),
            source=source,
            written_nodes=body.get("writtenNodes", len(selection.nodes)),
            written_edges=body.get("writtenEdges", len(selection.edges)),
        )
