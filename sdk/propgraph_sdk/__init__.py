"""
PropGraph Python SDK - editor-side library for the PropGraph gateway.

This SDK provides:
- Graph types (Node, Edge, GraphData) with NEW/EXISTING change status
- OverlayTracker: pending edits over an immutable base snapshot
- select_for_commit: picks the created items a save must persist
- GraphClient and EditorSession for talking to the gateway

Example:
    >>> from sdk.propgraph_sdk import EditorSession, GraphClient
    >>>
    >>> async with GraphClient("http://localhost:8000") as client:
    ...     session = EditorSession(client)
    ...     await session.load()
    ...     session.tracker.add_node({"id": "n1", "label": "Alice", "type": "Person"})
    ...     result = await session.save()

Invariants:
    - The merged view never contains duplicate ids or dangling edges
    - Items become EXISTING only after a confirmed save

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import EditorSession, FetchResult, GraphClient, SaveResult
from .commit import CommitSelection, select_for_commit
from .errors import (
    ApiError,
    DanglingEdgeError,
    DuplicateIdError,
    PropGraphError,
    UnknownItemError,
)
from .overlay import Overlay, OverlayTracker
from .types import ChangeStatus, Edge, GraphData, GraphStats, Node

__all__ = [
    # Types
    "ChangeStatus",
    "Edge",
    "GraphData",
    "GraphStats",
    "Node",
    # Overlay
    "Overlay",
    "OverlayTracker",
    "CommitSelection",
    "select_for_commit",
    # Client
    "EditorSession",
    "FetchResult",
    "GraphClient",
    "SaveResult",
    # Errors
    "ApiError",
    "DanglingEdgeError",
    "DuplicateIdError",
    "PropGraphError",
    "UnknownItemError",
]
