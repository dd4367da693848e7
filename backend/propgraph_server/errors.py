"""
Store error taxonomy for the PropGraph gateway.

Store adapters translate their client library exceptions into StoreError at
their boundary, so everything above the adapters (gateway, sanitizer, HTTP
layer) works with one closed error type instead of probing driver objects.

Invariants:
    - ErrorKind is closed; new failure modes map onto an existing kind
    - StoreError keeps the raw message for server-side logs only
    - GatewayError.message is always sanitized and safe to send to clients
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .gateway import ProvenanceMetadata


class ErrorKind(str, Enum):
    """Client-facing failure categories."""

    AUTH_FAILURE = "auth_failure"
    NOT_CONFIGURED = "not_configured"
    CONNECTION_FAILURE = "connection_failure"
    TIMEOUT = "timeout"
    RESOURCE_NOT_FOUND = "resource_not_found"
    SYNTAX_ERROR = "syntax_error"
    UNKNOWN = "unknown"


class StoreError(Exception):
    """Base exception for store failures.

    Attributes:
        message: Raw error message (server-side diagnostics only)
        kind: Failure category, UNKNOWN when the adapter could not tell
        error_class: Structured error class reported by the store, if any
        status_code: HTTP-like status reported by the store client, if any
        sql_state: SQLSTATE reported by the store, if any
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        error_class: Optional[str] = None,
        status_code: Optional[int] = None,
        sql_state: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.error_class = error_class
        self.status_code = status_code
        self.sql_state = sql_state

    def diagnostics(self) -> dict[str, object]:
        """Fields for structured server-side logging."""
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "error_kind": self.kind.value,
            "error_class": self.error_class,
            "status_code": self.status_code,
            "sql_state": self.sql_state,
        }


class PrimaryStoreError(StoreError):
    """The primary (warehouse) store failed."""


class PrimaryNotConfiguredError(PrimaryStoreError):
    """The primary store is not configured or no user token was supplied."""

    def __init__(self, message: str = "Primary store not configured") -> None:
        super().__init__(message, kind=ErrorKind.NOT_CONFIGURED)


class LocalStoreError(StoreError):
    """The local SQLite store failed."""


class InvalidTableNameError(ValueError):
    """Table name failed allow-list validation."""


class EdgeNotFoundError(LookupError):
    """Edge id is unknown to the local store."""

    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Edge {edge_id} not found")
        self.edge_id = edge_id


class GatewayError(Exception):
    """A request failed on every usable store.

    Attributes:
        message: Sanitized, client-safe message
        metadata: Provenance of the failed request (source="error")
    """

    def __init__(self, message: str, metadata: "ProvenanceMetadata") -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata
