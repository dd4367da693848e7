"""
PropGraph Test Suite.

This package contains:
- unit/: Unit tests (no I/O): overlay, commit selection, sanitizer, row transforms
- integration/: Integration tests (SQLite, FastAPI TestClient, mock HTTP transport)
"""
