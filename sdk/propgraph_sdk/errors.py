"""
Error types for PropGraph SDK.

This module defines all exception types raised by the SDK:
- PropGraphError: Base exception
- DuplicateIdError: Item id already used by the base snapshot or overlay
- DanglingEdgeError: Edge endpoint missing from the merged view
- UnknownItemError: Item id unknown to the editor
- ApiError: Gateway returned a non-success HTTP response

Invariants:
    - All errors inherit from PropGraphError
    - Errors include context for debugging
    - ApiError messages are the gateway's sanitized text, never raw store errors
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PropGraphError(Exception):
    """Base exception for all PropGraph SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "PROPGRAPH_ERROR"
        self.details = details or {}


class DuplicateIdError(PropGraphError):
    """Item id collides with an existing item.

    Raised when:
    - add_node uses an id present in the base snapshot or created set
    - add_edge uses an id present in the base snapshot or created set
    """

    def __init__(self, item_kind: str, item_id: str) -> None:
        super().__init__(
            f"{item_kind} id '{item_id}' already exists",
            code="DUPLICATE_ID",
            details={"item_kind": item_kind, "item_id": item_id},
        )
        self.item_kind = item_kind
        self.item_id = item_id


class DanglingEdgeError(PropGraphError):
    """Edge references a node that is not in the merged view."""

    def __init__(self, edge_id: str, missing_node_ids: list[str]) -> None:
        super().__init__(
            f"Edge '{edge_id}' references missing node(s): {', '.join(missing_node_ids)}",
            code="DANGLING_EDGE",
            details={"edge_id": edge_id, "missing_node_ids": missing_node_ids},
        )
        self.edge_id = edge_id
        self.missing_node_ids = missing_node_ids


class UnknownItemError(PropGraphError):
    """Item id is neither in the base snapshot nor in the created set."""

    def __init__(self, item_kind: str, item_id: str) -> None:
        super().__init__(
            f"Unknown {item_kind.lower()} '{item_id}'",
            code="UNKNOWN_ITEM",
            details={"item_kind": item_kind, "item_id": item_id},
        )
        self.item_kind = item_kind
        self.item_id = item_id


class ApiError(PropGraphError):
    """Gateway request failed.

    Attributes:
        status_code: HTTP status code
        source: Provenance source reported by the gateway ("error" on 500)
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="API_ERROR",
            details={"status_code": status_code, "source": source},
        )
        self.status_code = status_code
        self.source = source
