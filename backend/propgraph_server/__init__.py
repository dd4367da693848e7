"""
PropGraph Server - property graph persistence gateway.

Serves an editor's graph over HTTP from two stores:
- Primary: a Databricks SQL warehouse table, one denormalized row per edge,
  accessed with the caller's forwarded access token
- Fallback: a local SQLite database with normalized nodes and edges

Every response carries provenance metadata naming the store that served it.
"""

__version__ = "1.0.0"
