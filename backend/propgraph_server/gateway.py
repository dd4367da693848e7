"""
Persistence gateway: routes each request to the primary store with fallback
to the local store, and reports where the request was served from.

Per request (read or write):

    ATTEMPT_PRIMARY  -> success -> DONE(source=primary)
    ATTEMPT_PRIMARY  -> failure -> ATTEMPT_FALLBACK
    ATTEMPT_FALLBACK -> success -> DONE(source=fallback, error=sanitized primary error)
    ATTEMPT_FALLBACK -> failure -> FAILED(source=error) -> GatewayError

The primary is skipped entirely when the caller sent no access token or the
warehouse is not configured.

Deletes try the primary best-effort and then always apply to the local store.
Status updates only ever touch the local store, since status is not part of
the primary schema.

Invariants:
    - Exceptions never escape except as GatewayError or EdgeNotFoundError
    - Only sanitize() output is placed in results and errors
    - A failed primary write falls back with the entire original batch
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from .errors import EdgeNotFoundError, GatewayError
from .graph import Edge, Graph, Node
from .sanitizer import sanitize
from .store import LocalStore, RemoteStore, sample_graph

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Source(str, Enum):
    """Which store served a request."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass
class ProvenanceMetadata:
    """Where a request was served from and what went wrong on the way.

    Attributes:
        source: primary, fallback or error
        enabled_primary: Whether the primary store was attempted at all
        sanitized_error: Client-safe description of the primary (or fatal) error
        timestamp: Completion time (UTC)
        duration_ms: Request duration in milliseconds
    """

    source: Source
    enabled_primary: bool
    sanitized_error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: int = 0

    @property
    def target(self) -> str:
        """Human-readable store name for messages."""
        if self.source is Source.PRIMARY:
            return "Databricks"
        if self.enabled_primary:
            return "SQLite (fallback)"
        return "SQLite"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "databricksEnabled": self.enabled_primary,
            "databricksError": self.sanitized_error,
            "timestamp": self.timestamp.isoformat(),
            "duration": f"{self.duration_ms}ms",
        }


@dataclass
class ReadResult:
    graph: Graph
    metadata: ProvenanceMetadata


@dataclass
class WriteResult:
    written_nodes: int
    written_edges: int
    job_id: str
    metadata: ProvenanceMetadata

    @property
    def message(self) -> str:
        message = (
            f"Wrote {self.written_nodes} nodes and {self.written_edges} edges "
            f"to {self.metadata.target}"
        )
        if self.metadata.sanitized_error:
            message += f" (Databricks unavailable: {self.metadata.sanitized_error})"
        return message


@dataclass
class StatusResult:
    updated_nodes: int
    updated_edges: int
    status: str
    metadata: ProvenanceMetadata

    @property
    def message(self) -> str:
        return f"Updated {self.updated_nodes + self.updated_edges} items to status: {self.status}"


@dataclass
class DeleteResult:
    kind: str
    item_id: str
    deleted: bool
    metadata: ProvenanceMetadata

    @property
    def message(self) -> str:
        message = f"Deleted {self.kind} {self.item_id} from {self.metadata.target}"
        if self.metadata.sanitized_error:
            message += f" (Databricks unavailable: {self.metadata.sanitized_error})"
        return message


class PersistenceGateway:
    """Dual-backend router over a RemoteStore and a LocalStore.

    The gateway owns no connections; it holds references to the two stores,
    which open a connection per operation.

    Example:
        >>> gateway = PersistenceGateway(local_store, remote_store)
        >>> result = await gateway.fetch_graph(token, "main.default.edges")
        >>> result.metadata.source
        <Source.FALLBACK: 'fallback'>
    """

    def __init__(self, local: LocalStore, remote: RemoteStore) -> None:
        self.local = local
        self.remote = remote

    def primary_enabled(self, access_token: str | None) -> bool:
        """True if the primary store should be attempted for this caller."""
        return bool(access_token) and self.remote.configured

    # --- Read / write ---

    async def fetch_graph(self, access_token: str | None, table: str) -> ReadResult:
        """Read the whole graph from the primary, or the local store."""
        graph, metadata = await self._route(
            "read",
            access_token,
            primary=lambda: self.remote.read_graph(access_token, table),
            fallback=self.local.read_graph,
        )
        return ReadResult(graph=graph, metadata=metadata)

    async def write_graph(
        self,
        access_token: str | None,
        table: str,
        nodes: list[Node],
        edges: list[Edge],
    ) -> WriteResult:
        """Persist a batch of new nodes and edges.

        On the primary, each resolvable edge becomes one row and rows are
        inserted one by one. If the primary fails at any point, the whole
        batch is written to the local store in one transaction.
        """

        async def fallback() -> int:
            await self.local.insert_graph(nodes, edges)
            return len(edges)

        written_edges, metadata = await self._route(
            "write",
            access_token,
            primary=lambda: self.remote.write_graph(access_token, table, nodes, edges),
            fallback=fallback,
        )
        return WriteResult(
            written_nodes=len(nodes),
            written_edges=written_edges,
            job_id=f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}",
            metadata=metadata,
        )

    async def update_status(
        self,
        node_ids: list[str],
        edge_ids: list[str],
        status: str,
    ) -> StatusResult:
        """Set status in the local store. The primary has no status column."""
        started = time.monotonic()
        try:
            updated_nodes, updated_edges = await self.local.update_status(node_ids, edge_ids, status)
        except Exception as e:
            logger.error("Status update failed", extra={"error": str(e)}, exc_info=True)
            message = sanitize(e)
            raise GatewayError(
                f"Failed to update status: {message}",
                self._metadata(Source.ERROR, False, None, started),
            ) from e
        return StatusResult(
            updated_nodes=updated_nodes,
            updated_edges=updated_edges,
            status=status,
            metadata=self._metadata(Source.FALLBACK, False, None, started),
        )

    # --- Deletes ---

    async def delete_node(self, access_token: str | None, table: str, node_id: str) -> DeleteResult:
        """Delete a node and its edges from both stores."""
        deleted, metadata = await self._delete_everywhere(
            "delete_node",
            access_token,
            primary=lambda: self.remote.delete_node(access_token, table, node_id),
            local=lambda: self.local.delete_node(node_id),
        )
        return DeleteResult(kind="node", item_id=node_id, deleted=deleted, metadata=metadata)

    async def delete_edge(self, access_token: str | None, table: str, edge_id: str) -> DeleteResult:
        """Delete an edge from both stores.

        The edge is looked up in the local store first to recover the
        (source, target, relationship) triple the primary matches on.

        Raises:
            EdgeNotFoundError: If the local store does not know the edge
        """
        started = time.monotonic()
        try:
            edge = await self.local.get_edge(edge_id)
        except Exception as e:
            logger.error("Edge lookup failed", extra={"edge_id": edge_id}, exc_info=True)
            raise GatewayError(
                f"Failed to delete edge: {sanitize(e)}",
                self._metadata(Source.ERROR, self.primary_enabled(access_token), None, started),
            ) from e
        if edge is None:
            raise EdgeNotFoundError(edge_id)

        deleted, metadata = await self._delete_everywhere(
            "delete_edge",
            access_token,
            primary=lambda: self.remote.delete_edge(access_token, table, edge),
            local=lambda: self.local.delete_edge(edge_id),
        )
        return DeleteResult(kind="edge", item_id=edge_id, deleted=deleted, metadata=metadata)

    # --- Local store maintenance ---

    async def reseed(self) -> tuple[int, int]:
        """Replace the local store contents with the sample graph."""
        started = time.monotonic()
        try:
            await self.local.reseed(sample_graph())
            return await self.local.count()
        except Exception as e:
            logger.error("Reseed failed", exc_info=True)
            raise GatewayError(
                f"Failed to reseed database: {sanitize(e)}",
                self._metadata(Source.ERROR, False, None, started),
            ) from e

    async def health(self) -> dict[str, Any]:
        """Liveness and diagnostics."""
        report: dict[str, Any] = {
            "status": "ok",
            "database": {"type": "SQLite", "nodeCount": None, "edgeCount": None},
            "databricks": {
                "configured": self.remote.configured,
                "host": self.remote.settings.host,
                "table": self.remote.settings.table,
                "authMode": "user_token_only",
            },
        }
        try:
            node_count, edge_count = await self.local.count()
        except Exception as e:
            logger.error("Health check failed", extra={"error": str(e)})
            report["status"] = "error"
            report["database"]["error"] = sanitize(e)
        else:
            report["database"]["nodeCount"] = node_count
            report["database"]["edgeCount"] = edge_count
        return report

    # --- Routing ---

    async def _route(
        self,
        operation: str,
        access_token: str | None,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> tuple[T, ProvenanceMetadata]:
        started = time.monotonic()
        enabled = self.primary_enabled(access_token)
        primary_error: Exception | None = None

        if enabled:
            try:
                result = await primary()
            except Exception as e:
                primary_error = e
                logger.warning(
                    "Primary store failed, falling back to local store",
                    extra={"operation": operation, "error": sanitize(e)},
                )
            else:
                return result, self._metadata(Source.PRIMARY, enabled, None, started)

        try:
            result = await fallback()
        except Exception as e:
            logger.error(
                "Local store failed",
                extra={"operation": operation, "error": str(e)},
                exc_info=True,
            )
            metadata = self._metadata(Source.ERROR, enabled, sanitize(primary_error or e), started)
            verb = "fetch graph data" if operation == "read" else "write to database"
            raise GatewayError(f"Failed to {verb}: {sanitize(e)}", metadata) from e

        metadata = self._metadata(Source.FALLBACK, enabled, sanitize(primary_error), started)
        logger.info(
            "Request served",
            extra={"operation": operation, "source": metadata.source.value, "duration_ms": metadata.duration_ms},
        )
        return result, metadata

    async def _delete_everywhere(
        self,
        operation: str,
        access_token: str | None,
        primary: Callable[[], Awaitable[None]],
        local: Callable[[], Awaitable[bool]],
    ) -> tuple[bool, ProvenanceMetadata]:
        started = time.monotonic()
        enabled = self.primary_enabled(access_token)
        primary_error: Exception | None = None

        if enabled:
            try:
                await primary()
            except Exception as e:
                primary_error = e
                logger.warning(
                    "Primary store delete failed, applying to local store only",
                    extra={"operation": operation, "error": sanitize(e)},
                )

        try:
            deleted = await local()
        except Exception as e:
            logger.error("Local store delete failed", extra={"operation": operation}, exc_info=True)
            item = "node" if operation == "delete_node" else "edge"
            raise GatewayError(
                f"Failed to delete {item}: {sanitize(e)}",
                self._metadata(Source.ERROR, enabled, sanitize(primary_error or e), started),
            ) from e

        source = Source.PRIMARY if enabled and primary_error is None else Source.FALLBACK
        return deleted, self._metadata(source, enabled, sanitize(primary_error), started)

    def _metadata(
        self,
        source: Source,
        enabled: bool,
        sanitized_error: str | None,
        started: float,
    ) -> ProvenanceMetadata:
        return ProvenanceMetadata(
            source=source,
            enabled_primary=enabled,
            sanitized_error=sanitized_error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
