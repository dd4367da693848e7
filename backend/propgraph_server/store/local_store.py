"""
Local SQLite store for PropGraph.

This module manages the single SQLite database that backs the gateway when the
primary warehouse is unavailable or not authorized for the caller:
- Nodes and edges in normalized form, including the local-only status column
- Bulk inserts in one transaction (all-or-nothing)
- Point status updates and cascading deletes

The store is owned by the app and passed to the gateway; there is no
module-level connection. Every operation opens its own connection and closes
it when done, even on error.

Invariants:
    - Multi-row writes run inside one transaction
    - Reads return rows in creation order
    - Deleting a node deletes every edge touching it in the same transaction
    - sqlite3 errors leave this module as LocalStoreError

How to change safely:
    - Schema changes must be additive (CREATE ... IF NOT EXISTS)
    - Use transactions for all write operations

Table schema:
    nodes:
        - id TEXT PRIMARY KEY
        - label TEXT
        - type TEXT
        - status TEXT ('new' | 'existing')
        - properties TEXT (JSON)
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)

    edges:
        - id TEXT PRIMARY KEY
        - source TEXT -> nodes.id
        - target TEXT -> nodes.id
        - relationship_type TEXT
        - status TEXT
        - properties TEXT (JSON)
        - created_at INTEGER
        - updated_at INTEGER
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..errors import LocalStoreError
from ..graph import Edge, Graph, Node

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _loads(raw: str | None, item_id: str) -> dict[str, Any]:
    try:
        value = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning("Unparseable properties in local store", extra={"item_id": item_id})
        return {}
    return value if isinstance(value, dict) else {}


class LocalStore:
    """SQLite store for normalized node/edge data.

    Example:
        >>> store = LocalStore("/var/lib/propgraph/graph.db")
        >>> await store.initialize()
        >>> await store.insert_graph([node_a, node_b], [edge_ab])
        >>> graph = await store.read_graph()
    """

    def __init__(
        self,
        db_path: str,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the local store.

        Args:
            db_path: SQLite database file
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._lock = asyncio.Lock()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation.

        Yields:
            SQLite connection in autocommit mode

        Raises:
            LocalStoreError: If SQLite fails
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Unable to open local store: {e}") from e
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            raise LocalStoreError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one IMMEDIATE transaction."""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS nodes (
                id TEXT PRIMARY KEY,
                label TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'existing',
                properties TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_type ON nodes(type);
            CREATE INDEX IF NOT EXISTS idx_nodes_status ON nodes(status);

            CREATE TABLE IF NOT EXISTS edges (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                target TEXT NOT NULL,
                relationship_type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'existing',
                properties TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                FOREIGN KEY (source) REFERENCES nodes(id),
                FOREIGN KEY (target) REFERENCES nodes(id)
            );

            CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source);
            CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target);
            CREATE INDEX IF NOT EXISTS idx_edges_relationship_type ON edges(relationship_type);
            CREATE INDEX IF NOT EXISTS idx_edges_status ON edges(status);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._lock:
            with self._get_connection() as conn:
                self._create_schema(conn)
        logger.info("Initialized local store", extra={"db_path": str(self.db_path)})

    # --- Reads ---

    async def get_all_nodes(self) -> list[Node]:
        """Return all nodes in creation order."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM nodes ORDER BY created_at, rowid").fetchall()
        return [self._row_to_node(row) for row in rows]

    async def get_all_edges(self) -> list[Edge]:
        """Return all edges in creation order."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM edges ORDER BY created_at, rowid").fetchall()
        return [self._row_to_edge(row) for row in rows]

    async def read_graph(self) -> Graph:
        """Return the full node and edge tables."""
        return Graph(nodes=await self.get_all_nodes(), edges=await self.get_all_edges())

    async def get_edge(self, edge_id: str) -> Edge | None:
        """Get an edge by ID."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM edges WHERE id = ?", (edge_id,)).fetchone()
        return self._row_to_edge(row) if row else None

    async def count(self) -> tuple[int, int]:
        """Return (node_count, edge_count)."""
        with self._get_connection() as conn:
            node_count = conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
            edge_count = conn.execute("SELECT COUNT(*) FROM edges").fetchone()[0]
        return node_count, edge_count

    async def is_empty(self) -> bool:
        """True if the store holds no nodes."""
        node_count, _ = await self.count()
        return node_count == 0

    # --- Writes ---

    async def insert_graph(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Insert nodes and edges in one transaction.

        Nodes are inserted before edges so edges may reference nodes from the
        same batch. Any failure rolls back the whole batch.
        """
        nodes = list(nodes)
        edges = list(edges)
        now = _now_ms()

        with self._transaction() as conn:
            self._insert_nodes(conn, nodes, now)
            self._insert_edges(conn, edges, now)

        logger.info(
            "Inserted graph batch into local store",
            extra={"node_count": len(nodes), "edge_count": len(edges)},
        )

    async def update_status(
        self,
        node_ids: Iterable[str],
        edge_ids: Iterable[str],
        status: str,
    ) -> tuple[int, int]:
        """Set status on the given nodes and edges in one transaction.

        Returns:
            Tuple of (updated_nodes, updated_edges) row counts
        """
        now = _now_ms()
        updated_nodes = 0
        updated_edges = 0

        with self._transaction() as conn:
            for node_id in node_ids:
                cursor = conn.execute(
                    "UPDATE nodes SET status = ?, updated_at = ? WHERE id = ?",
                    (status, now, node_id),
                )
                updated_nodes += cursor.rowcount
            for edge_id in edge_ids:
                cursor = conn.execute(
                    "UPDATE edges SET status = ?, updated_at = ? WHERE id = ?",
                    (status, now, edge_id),
                )
                updated_edges += cursor.rowcount

        logger.info(
            "Updated item status",
            extra={"status": status, "node_count": updated_nodes, "edge_count": updated_edges},
        )
        return updated_nodes, updated_edges

    async def delete_node(self, node_id: str) -> bool:
        """Delete a node and its edges.

        Returns:
            True if the node existed
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM edges WHERE source = ? OR target = ?", (node_id, node_id))
            cursor = conn.execute("DELETE FROM nodes WHERE id = ?", (node_id,))
            return cursor.rowcount > 0

    async def delete_edge(self, edge_id: str) -> bool:
        """Delete an edge.

        Returns:
            True if the edge existed
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM edges WHERE id = ?", (edge_id,))
            return cursor.rowcount > 0

    async def clear(self) -> None:
        """Delete all nodes and edges."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM edges")
            conn.execute("DELETE FROM nodes")
        logger.info("Cleared local store")

    async def reseed(self, graph: Graph) -> None:
        """Replace the store contents with graph in one transaction."""
        now = _now_ms()
        with self._transaction() as conn:
            conn.execute("DELETE FROM edges")
            conn.execute("DELETE FROM nodes")
            self._insert_nodes(conn, graph.nodes, now)
            self._insert_edges(conn, graph.edges, now)
        logger.info(
            "Reseeded local store",
            extra={"node_count": len(graph.nodes), "edge_count": len(graph.edges)},
        )

    # --- Row mapping ---

    def _insert_nodes(self, conn: sqlite3.Connection, nodes: Iterable[Node], now: int) -> None:
        conn.executemany(
            """
            INSERT INTO nodes (id, label, type, status, properties, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (n.id, n.label, n.type, n.status, json.dumps(n.properties), now, now)
                for n in nodes
            ],
        )

    def _insert_edges(self, conn: sqlite3.Connection, edges: Iterable[Edge], now: int) -> None:
        conn.executemany(
            """
            INSERT INTO edges (id, source, target, relationship_type, status, properties,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    e.id,
                    e.source,
                    e.target,
                    e.relationship_type,
                    e.status,
                    json.dumps(e.properties),
                    now,
                    now,
                )
                for e in edges
            ],
        )

    def _row_to_node(self, row: sqlite3.Row) -> Node:
        return Node(
            id=row["id"],
            label=row["label"],
            type=row["type"],
            status=row["status"],
            properties=_loads(row["properties"], row["id"]),
        )

    def _row_to_edge(self, row: sqlite3.Row) -> Edge:
        return Edge(
            id=row["id"],
            source=row["source"],
            target=row["target"],
            relationship_type=row["relationship_type"],
            status=row["status"],
            properties=_loads(row["properties"], row["id"]),
        )
