"""Centralized error handling and custom exceptions for autopr."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for client communication."""

    # General errors
    INTERNAL_ERROR = "internal_error"
    CONFIGURATION_ERROR = "configuration_error"

    # Remote repository errors
    TRANSPORT_ERROR = "transport_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Suggestion engine errors
    ENGINE_ERROR = "engine_error"
    MALFORMED_RESPONSE = "malformed_response"

    # Protocol and session errors
    INVALID_COMMAND = "invalid_command"
    PRECONDITION_FAILED = "precondition_failed"
    SESSION_BUSY = "session_busy"
    SESSION_LIMIT_EXCEEDED = "session_limit_exceeded"


class AutoPRError(Exception):
    """Base exception for all autopr errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AutoPRError):
    """A required setting is missing or invalid."""

    def __init__(self, setting: str, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{setting}': {reason}",
            code=ErrorCode.CONFIGURATION_ERROR,
            details={"setting": setting, "reason": reason},
        )


class RepositoryError(AutoPRError):
    """Errors raised by the remote repository client."""

    pass


class TransportError(RepositoryError):
    """Network failure or unexpected HTTP status from the repository service."""

    def __init__(self, reason: str, status_code: int | None = None, url: str | None = None):
        message = f"Repository request failed: {reason}"
        if status_code is not None:
            message = f"Repository request failed with status {status_code}: {reason}"
        super().__init__(
            message=message,
            code=ErrorCode.TRANSPORT_ERROR,
            details={"status_code": status_code, "url": url, "reason": reason},
        )
        self.status_code = status_code


class NotFoundError(RepositoryError):
    """Requested remote resource does not exist."""

    def __init__(self, resource: str):
        super().__init__(
            message=f"Not found: {resource}",
            code=ErrorCode.NOT_FOUND,
            details={"resource": resource},
        )


class ConflictError(RepositoryError):
    """Stale SHA precondition or duplicate remote resource."""

    def __init__(self, resource: str, reason: str):
        super().__init__(
            message=f"Conflict on {resource}: {reason}",
            code=ErrorCode.CONFLICT,
            details={"resource": resource, "reason": reason},
        )


class SuggestionError(AutoPRError):
    """Errors raised by the suggestion engine client."""

    pass


class EngineError(SuggestionError):
    """Suggestion engine call failed (transport, quota, empty output)."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"Suggestion engine failed during {operation}: {reason}",
            code=ErrorCode.ENGINE_ERROR,
            details={"operation": operation, "reason": reason},
        )


class MalformedResponseError(SuggestionError):
    """Engine output does not match the expected structure."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Malformed engine response: {reason}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"reason": reason},
        )


class InvalidCommandError(AutoPRError):
    """Client sent an unparseable frame or an unknown command tag."""

    def __init__(self, reason: str | None = None):
        super().__init__(
            message="Invalid command",
            code=ErrorCode.INVALID_COMMAND,
            details={"reason": reason} if reason else {},
        )


class PreconditionFailedError(AutoPRError):
    """Command is not valid in the current session state."""

    def __init__(self, message: str):
        super().__init__(message=message, code=ErrorCode.PRECONDITION_FAILED)


class SessionBusyError(AutoPRError):
    """Another command is still running in this session."""

    def __init__(self, session_id: str):
        super().__init__(
            message="Session is busy with another command",
            code=ErrorCode.SESSION_BUSY,
            details={"session_id": session_id},
        )


class SessionLimitExceededError(AutoPRError):
    """Maximum number of sessions exceeded."""

    def __init__(self, max_sessions: int):
        super().__init__(
            message=f"Maximum sessions ({max_sessions}) exceeded",
            code=ErrorCode.SESSION_LIMIT_EXCEEDED,
            details={"max_sessions": max_sessions},
        )
