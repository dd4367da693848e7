"""
Store module for PropGraph - the two persistence backends.

This module handles:
- Local SQLite store (normalized nodes/edges, status column, transactions)
- Primary Databricks SQL adapter (denormalized edge table)
- Sample graph for seeding the local store

Invariants:
    - Each store operation opens and closes its own connection
    - Store adapters raise StoreError subclasses only
"""

from .local_store import LocalStore
from .remote_store import RemoteStore, edge_to_row, rows_to_graph
from .seed import sample_graph

__all__ = [
    "LocalStore",
    "RemoteStore",
    "edge_to_row",
    "rows_to_graph",
    "sample_graph",
]
