"""
Primary store adapter for a Databricks SQL warehouse.

The warehouse keeps the graph as one denormalized edge table: each row is an
edge carrying a snapshot of both endpoint nodes.

    node_start_id          TEXT   source node id
    node_start_key         TEXT   source node type
    relationship           TEXT   relationship type
    node_end_id            TEXT   target node id
    node_end_key           TEXT   target node type
    node_start_properties  TEXT   source properties (JSON)
    node_end_properties    TEXT   target properties (JSON)

There is no status column and no synthetic edge id; edges are identified by
(node_start_id, node_end_id, relationship).

Invariants:
    - Every operation authenticates with the caller's access token
    - Every operation opens a fresh connection and closes it before returning
    - Values are bound as statement parameters; only the validated table name
      is interpolated
    - Edge inserts run sequentially in input order with no rollback
    - Client exceptions leave this module as PrimaryStoreError

How to change safely:
    - Keep rows_to_graph() and edge_to_row() symmetric
    - Validate table names before they reach this module
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from databricks import sql as databricks_sql

from ..config import DatabricksSettings
from ..errors import ErrorKind, PrimaryNotConfiguredError, PrimaryStoreError
from ..graph import STATUS_EXISTING, Edge, Graph, Node
from ..sanitizer import classify

logger = logging.getLogger(__name__)

ConnectFn = Callable[..., Any]

# Error classes lead the message and are SNAKE_CASE, e.g. "[TABLE_OR_VIEW_NOT_FOUND] ..."
_ERROR_CLASS_RE = re.compile(r"\s*\[([A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+)\]")
_SQL_STATE_RE = re.compile(r"SQLSTATE:\s*([0-9A-Z]{5})")

INSERT_EDGE_SQL = """
    INSERT INTO {table} (
        node_start_id,
        node_start_key,
        relationship,
        node_end_id,
        node_end_key,
        node_start_properties,
        node_end_properties
    ) VALUES (
        :node_start_id,
        :node_start_key,
        :relationship,
        :node_end_id,
        :node_end_key,
        :node_start_properties,
        :node_end_properties
    )
"""

DELETE_NODE_SQL = """
    DELETE FROM {table}
    WHERE node_start_id = :node_id OR node_end_id = :node_id
"""

DELETE_EDGE_SQL = """
    DELETE FROM {table}
    WHERE node_start_id = :source
      AND node_end_id = :target
      AND relationship = :relationship
"""


def edge_id_for(source: str, target: str, relationship: str) -> str:
    """Synthetic edge id for a warehouse row."""
    return f"edge_{source}_{target}_{relationship}"


def _parse_properties(raw: Any, node_id: str) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        value = json.loads(raw or "{}")
    except (TypeError, json.JSONDecodeError):
        logger.warning("Failed to parse node properties", extra={"node_id": node_id})
        return {}
    return value if isinstance(value, dict) else {}


def rows_to_graph(rows: Iterable[Mapping[str, Any]]) -> Graph:
    """Normalize denormalized edge rows into nodes and edges.

    Each row yields its two endpoint nodes (first occurrence of an id wins,
    later rows never overwrite it) and exactly one edge.
    """
    nodes: dict[str, Node] = {}
    edges: list[Edge] = []

    for row in rows:
        start_id = row["node_start_id"]
        end_id = row["node_end_id"]
        relationship = row["relationship"]

        if start_id not in nodes:
            nodes[start_id] = Node(
                id=start_id,
                label=start_id,
                type=row.get("node_start_key") or "Unknown",
                status=STATUS_EXISTING,
                properties=_parse_properties(row.get("node_start_properties"), start_id),
            )
        if end_id not in nodes:
            nodes[end_id] = Node(
                id=end_id,
                label=end_id,
                type=row.get("node_end_key") or "Unknown",
                status=STATUS_EXISTING,
                properties=_parse_properties(row.get("node_end_properties"), end_id),
            )

        edges.append(
            Edge(
                id=edge_id_for(start_id, end_id, relationship),
                source=start_id,
                target=end_id,
                relationship_type=relationship,
                status=STATUS_EXISTING,
            )
        )

    return Graph(nodes=list(nodes.values()), edges=edges)


def edge_to_row(edge: Edge, source: Node, target: Node) -> dict[str, Any]:
    """Denormalize one edge and its endpoints into statement parameters."""
    return {
        "node_start_id": source.id,
        "node_start_key": source.type,
        "relationship": edge.relationship_type,
        "node_end_id": target.id,
        "node_end_key": target.type,
        "node_start_properties": json.dumps(source.properties),
        "node_end_properties": json.dumps(target.properties),
    }


def to_store_error(exc: BaseException) -> PrimaryStoreError:
    """Translate a client exception into a PrimaryStoreError."""
    if isinstance(exc, PrimaryStoreError):
        return exc

    message = str(exc) or type(exc).__name__

    match = _ERROR_CLASS_RE.match(message)
    error_class = match.group(1) if match else None
    match = _SQL_STATE_RE.search(message)
    sql_state = match.group(1) if match else None

    status_code = None
    context = getattr(exc, "context", None)
    if isinstance(context, Mapping):
        try:
            status_code = int(context["http-code"])
        except (KeyError, TypeError, ValueError):
            status_code = None

    if isinstance(exc, TimeoutError):
        kind = ErrorKind.TIMEOUT
    elif isinstance(exc, ConnectionError):
        kind = ErrorKind.CONNECTION_FAILURE
    else:
        kind = classify(message)

    error = PrimaryStoreError(
        message,
        kind=kind,
        error_class=error_class,
        status_code=status_code,
        sql_state=sql_state,
    )
    if status_code is not None or error_class is not None:
        error.kind = classify(error)
    return error


def _row_as_dict(row: Any) -> Mapping[str, Any]:
    if hasattr(row, "asDict"):
        return row.asDict()
    return dict(row)


class RemoteStore:
    """Databricks SQL adapter for the denormalized edge table.

    Args:
        settings: Warehouse configuration
        connect: Connection factory, defaults to databricks.sql.connect
    """

    def __init__(
        self,
        settings: DatabricksSettings,
        connect: ConnectFn | None = None,
    ) -> None:
        self.settings = settings
        self._connect = connect or databricks_sql.connect

    @property
    def configured(self) -> bool:
        return self.settings.configured

    # --- Public API ---

    async def read_graph(self, access_token: str | None, table: str) -> Graph:
        """Read the whole edge table and normalize it."""
        graph = await self._run("read", self._read_sync, access_token, table)
        logger.info(
            "Read graph from primary store",
            extra={"table": table, "node_count": len(graph.nodes), "edge_count": len(graph.edges)},
        )
        return graph

    async def write_graph(
        self,
        access_token: str | None,
        table: str,
        nodes: list[Node],
        edges: list[Edge],
    ) -> int:
        """Insert one row per resolvable edge.

        Returns:
            Number of rows inserted
        """
        written = await self._run("write", self._write_sync, access_token, table, nodes, edges)
        logger.info(
            "Wrote graph to primary store",
            extra={
                "table": table,
                "node_count": len(nodes),
                "edge_count": len(edges),
                "rows_written": written,
            },
        )
        return written

    async def delete_node(self, access_token: str | None, table: str, node_id: str) -> None:
        """Delete every row that references node_id at either end."""
        await self._run(
            "delete_node",
            self._execute_sync,
            access_token,
            DELETE_NODE_SQL.format(table=table),
            {"node_id": node_id},
        )

    async def delete_edge(self, access_token: str | None, table: str, edge: Edge) -> None:
        """Delete rows matching the edge's (source, target, relationship)."""
        await self._run(
            "delete_edge",
            self._execute_sync,
            access_token,
            DELETE_EDGE_SQL.format(table=table),
            {
                "source": edge.source,
                "target": edge.target,
                "relationship": edge.relationship_type,
            },
        )

    # --- Internals ---

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args),
                timeout=self.settings.query_timeout_seconds,
            )
        except Exception as e:
            error = to_store_error(e)
            logger.error(
                "Primary store operation failed",
                extra={"operation": operation, **error.diagnostics()},
            )
            raise error from e

    def _open(self, access_token: str | None) -> Any:
        if not self.configured:
            raise PrimaryNotConfiguredError("Databricks not configured")
        if not access_token:
            raise PrimaryNotConfiguredError("User access token required")

        connection = self._connect(
            server_hostname=self.settings.host,
            http_path=self.settings.http_path,
            access_token=access_token,
        )
        logger.debug("Connected to primary store", extra={"host": self.settings.host})
        return connection

    def _close(self, connection: Any) -> None:
        try:
            connection.close()
        except Exception:
            logger.warning("Error closing primary store connection", exc_info=True)

    def _read_sync(self, access_token: str | None, table: str) -> Graph:
        connection = self._open(access_token)
        try:
            cursor = connection.cursor()
            try:
                cursor.execute(f"SELECT * FROM {table}")
                rows = cursor.fetchall()
            finally:
                cursor.close()
        finally:
            self._close(connection)
        return rows_to_graph(_row_as_dict(row) for row in rows)

    def _write_sync(
        self,
        access_token: str | None,
        table: str,
        nodes: list[Node],
        edges: list[Edge],
    ) -> int:
        by_id = {node.id: node for node in nodes}
        statement = INSERT_EDGE_SQL.format(table=table)
        written = 0

        connection = self._open(access_token)
        try:
            cursor = connection.cursor()
            try:
                for edge in edges:
                    source = by_id.get(edge.source)
                    target = by_id.get(edge.target)
                    if source is None or target is None:
                        logger.warning(
                            "Skipping edge with endpoint outside the batch",
                            extra={"edge_id": edge.id},
                        )
                        continue
                    cursor.execute(statement, edge_to_row(edge, source, target))
                    written += 1
            finally:
                cursor.close()
        finally:
            self._close(connection)
        return written

    def _execute_sync(
        self,
        access_token: str | None,
        statement: str,
        parameters: dict[str, Any],
    ) -> None:
        connection = self._open(access_token)
        try:
            cursor = connection.cursor()
            try:
                cursor.execute(statement, parameters)
            finally:
                cursor.close()
        finally:
            self._close(connection)
