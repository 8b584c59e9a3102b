"""Error taxonomy for roam-organize.

Core functions raise these; the CLI renders them as ``Error: ...`` lines or,
with ``--json-errors``, as structured JSON carrying an error code.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for programmatic consumers."""

    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    INDEX_UNAVAILABLE = "INDEX_UNAVAILABLE"
    NOT_A_HEADLINE = "NOT_A_HEADLINE"
    NO_ID_LINK = "NO_ID_LINK"
    UNKNOWN_NODE = "UNKNOWN_NODE"
    NOTE_EXISTS = "NOTE_EXISTS"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    FILE_ERROR = "FILE_ERROR"


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


class OrganizeError(Exception):
    """Base class for all errors raised by roam-organize."""

    default_code = ErrorCode.FILE_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_json(self) -> str:
        return format_error_json(self.code.value, self.message, self.details)


class ConfigurationError(OrganizeError):
    """Raised when configuration is missing, unreadable or declares an unknown kind."""

    default_code = ErrorCode.CONFIG_INVALID


class IndexUnavailableError(OrganizeError):
    """Raised when the node index database cannot be opened."""

    default_code = ErrorCode.INDEX_UNAVAILABLE


class NotAHeadlineError(OrganizeError):
    """Raised when a position is not inside any headline."""

    default_code = ErrorCode.NOT_A_HEADLINE


class NoIdLinkError(OrganizeError):
    """Raised when a headline title carries no [[id:...]] link."""

    default_code = ErrorCode.NO_ID_LINK


class UnknownNodeError(OrganizeError):
    """Raised when the index has no node with the requested id."""

    default_code = ErrorCode.UNKNOWN_NODE


class NoteExistsError(OrganizeError):
    default_code = ErrorCode.NOTE_EXISTS


class TemplateNotFoundError(OrganizeError):
    default_code = ErrorCode.TEMPLATE_NOT_FOUND
