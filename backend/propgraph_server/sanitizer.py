"""
Error sanitizer: maps store errors to short client-safe messages.

Full error details stay in server logs. The output of sanitize() is the only
error text the gateway ever sends to a caller.

Resolution order:
    1. Structured error class (TABLE_OR_VIEW_NOT_FOUND, PARSE_SYNTAX_ERROR, ...)
    2. HTTP-like status code (401/403, 404, 500, 503)
    3. Error kind assigned by the store adapter
    4. Substring matches on the message text
    5. First line of the raw message, truncated to MAX_MESSAGE_LENGTH
"""

from __future__ import annotations

from typing import Optional, Union

from .errors import ErrorKind, StoreError

MAX_MESSAGE_LENGTH = 150

AUTH_FAILED = "Databricks authentication failed"
NOT_CONFIGURED = "Databricks not configured"
CONNECTION_FAILED = "Unable to connect to Databricks"
TIMED_OUT = "Databricks connection timed out"
HOST_NOT_FOUND = "Databricks host not found"
TABLE_NOT_FOUND = "Database table not found"
SCHEMA_NOT_FOUND = "Database schema not found"
INVALID_SYNTAX = "Invalid query syntax"

_ERROR_CLASS_MESSAGES = {
    "TABLE_OR_VIEW_NOT_FOUND": TABLE_NOT_FOUND,
    "SCHEMA_NOT_FOUND": SCHEMA_NOT_FOUND,
    "PARSE_SYNTAX_ERROR": INVALID_SYNTAX,
}

_ERROR_CLASS_KINDS = {
    "TABLE_OR_VIEW_NOT_FOUND": ErrorKind.RESOURCE_NOT_FOUND,
    "SCHEMA_NOT_FOUND": ErrorKind.RESOURCE_NOT_FOUND,
    "PARSE_SYNTAX_ERROR": ErrorKind.SYNTAX_ERROR,
}

_STATUS_MESSAGES = {
    401: (AUTH_FAILED, ErrorKind.AUTH_FAILURE),
    403: (AUTH_FAILED, ErrorKind.AUTH_FAILURE),
    404: ("Databricks resource not found", ErrorKind.RESOURCE_NOT_FOUND),
    500: ("Databricks server error", ErrorKind.UNKNOWN),
    503: ("Databricks service unavailable", ErrorKind.CONNECTION_FAILURE),
}

_KIND_MESSAGES = {
    ErrorKind.AUTH_FAILURE: AUTH_FAILED,
    ErrorKind.NOT_CONFIGURED: NOT_CONFIGURED,
    ErrorKind.CONNECTION_FAILURE: CONNECTION_FAILED,
    ErrorKind.TIMEOUT: TIMED_OUT,
    ErrorKind.RESOURCE_NOT_FOUND: TABLE_NOT_FOUND,
    ErrorKind.SYNTAX_ERROR: INVALID_SYNTAX,
}

# Checked in order against the lower-cased message; first match wins.
_MESSAGE_PATTERNS: tuple[tuple[tuple[str, ...], str, ErrorKind], ...] = (
    (
        ("econnrefused", "connection refused", "failed to connect", "could not connect"),
        CONNECTION_FAILED,
        ErrorKind.CONNECTION_FAILURE,
    ),
    (("timeout", "timed out", "etimedout"), TIMED_OUT, ErrorKind.TIMEOUT),
    (
        ("enotfound", "dns", "name or service not known", "nodename nor servname"),
        HOST_NOT_FOUND,
        ErrorKind.CONNECTION_FAILURE,
    ),
    (("not configured",), NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED),
    (("authentication", "unauthorized", "401", "403"), AUTH_FAILED, ErrorKind.AUTH_FAILURE),
    (("connect",), CONNECTION_FAILED, ErrorKind.CONNECTION_FAILURE),
)

ErrorInput = Union[StoreError, BaseException, str, None]


def _message_of(error: ErrorInput) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, StoreError):
        return error.message
    return str(error) or type(error).__name__


def _match_message(text: str) -> Optional[tuple[str, ErrorKind]]:
    lowered = text.lower()
    for needles, message, kind in _MESSAGE_PATTERNS:
        if any(needle in lowered for needle in needles):
            return message, kind
    if "table" in lowered and "not found" in lowered:
        return TABLE_NOT_FOUND, ErrorKind.RESOURCE_NOT_FOUND
    return None


def sanitize(error: ErrorInput) -> Optional[str]:
    """Return a client-safe message for error, or None if there is no error."""
    if error is None:
        return None

    if isinstance(error, StoreError):
        if error.error_class:
            message = _ERROR_CLASS_MESSAGES.get(
                error.error_class, f"Database error: {error.error_class}"
            )
            return message[:MAX_MESSAGE_LENGTH]
        if error.status_code is not None:
            if error.status_code in _STATUS_MESSAGES:
                return _STATUS_MESSAGES[error.status_code][0]
            return f"Databricks error (HTTP {error.status_code})"
        if error.kind is not ErrorKind.UNKNOWN:
            matched = _match_message(error.message)
            # keep the DNS-specific wording when the text says so
            if matched is not None and matched[1] is error.kind:
                return matched[0]
            return _KIND_MESSAGES[error.kind]

    if isinstance(error, TimeoutError):
        return TIMED_OUT

    text = _message_of(error)
    matched = _match_message(text)
    if matched is not None:
        return matched[0]

    lines = text.splitlines()
    first_line = lines[0] if lines else ""
    return first_line[:MAX_MESSAGE_LENGTH]


def classify(error: ErrorInput) -> ErrorKind:
    """Return the ErrorKind for error, using the same precedence as sanitize()."""
    if error is None:
        return ErrorKind.UNKNOWN

    if isinstance(error, StoreError):
        if error.error_class:
            return _ERROR_CLASS_KINDS.get(error.error_class, ErrorKind.UNKNOWN)
        if error.status_code is not None:
            return _STATUS_MESSAGES.get(error.status_code, ("", ErrorKind.UNKNOWN))[1]
        if error.kind is not ErrorKind.UNKNOWN:
            return error.kind

    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT

    matched = _match_message(_message_of(error))
    return matched[1] if matched is not None else ErrorKind.UNKNOWN
