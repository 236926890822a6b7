"""
Custom exceptions for the glucose exporter.

This module provides structured error handling with clear error codes
so failures can be logged and reported consistently.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # LibreLinkUp API Errors (1xxx)
    LIBRELINK_AUTH_FAILED = "LIBRELINK_1001"
    LIBRELINK_REQUEST_FAILED = "LIBRELINK_1002"
    LIBRELINK_TRANSPORT_ERROR = "LIBRELINK_1003"
    LIBRELINK_PROTOCOL_ERROR = "LIBRELINK_1004"
    LIBRELINK_REMOTE_REJECTED = "LIBRELINK_1005"
    LIBRELINK_DEADLINE_EXCEEDED = "LIBRELINK_1006"


class GlucoseExporterError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        self.original_error = original_error
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        """Returns the complete error message with code and details."""
        parts = [f"[{self.error_code.value}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for structured logging."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }
        if self.original_error:
            result["cause"] = f"{type(self.original_error).__name__}: {self.original_error}"
        return result


class RequestError(GlucoseExporterError):
    """Raised when a LibreLinkUp API request fails."""

    def __init__(
        self,
        message: str = "LibreLinkUp API request failed",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
        error_code: ErrorCode = ErrorCode.LIBRELINK_REQUEST_FAILED,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            original_error=original_error,
        )


class TransportError(RequestError):
    """Raised when the connection to LibreLinkUp fails."""

    def __init__(
        self,
        message: str = "Failed to connect to LibreLinkUp servers",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
        error_code: ErrorCode = ErrorCode.LIBRELINK_TRANSPORT_ERROR,
    ):
        super().__init__(
            message=message,
            details=details,
            original_error=original_error,
            error_code=error_code,
        )


class DeadlineExceededError(TransportError):
    """Raised when a request is attempted after the caller's deadline."""

    def __init__(
        self,
        endpoint: str,
        message: str = "Deadline exceeded before request completed",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            details=f"Endpoint: {endpoint}",
            original_error=original_error,
            error_code=ErrorCode.LIBRELINK_DEADLINE_EXCEEDED,
        )
        self.endpoint = endpoint


class ProtocolError(RequestError):
    """Raised when a response cannot be decoded or a redirect cannot be followed."""

    def __init__(
        self,
        message: str = "Unexpected response from LibreLinkUp",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            details=details,
            original_error=original_error,
            error_code=ErrorCode.LIBRELINK_PROTOCOL_ERROR,
        )


class RemoteRejectionError(RequestError):
    """Raised when LibreLinkUp answers with a non-success status."""

    def __init__(
        self,
        status: Optional[int] = None,
        message: str = "LibreLinkUp rejected the request",
        http_status: Optional[int] = None,
    ):
        if http_status is not None:
            details = f"HTTP status: {http_status}"
        else:
            details = f"Status: {status}"
        super().__init__(
            message=message,
            details=details,
            error_code=ErrorCode.LIBRELINK_REMOTE_REJECTED,
        )
        self.status = status
        self.http_status = http_status


class AuthError(GlucoseExporterError):
    """Raised when LibreLinkUp authentication fails."""

    def __init__(
        self,
        message: str = "Failed to authenticate with LibreLinkUp",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.LIBRELINK_AUTH_FAILED,
            details=details,
            original_error=original_error,
        )
