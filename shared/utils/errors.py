"""
Custom error classes for directory services.

Provides structured error handling with error codes,
context information, and proper exception chaining.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass


@dataclass
class ErrorContext:
    """Error context information."""
    service: str
    operation: str
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}


class DataProcessingError(Exception):
    """Base exception for service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        result = {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

        if self.context:
            result["context"] = {
                "service": self.context.service,
                "operation": self.context.operation,
                "correlation_id": self.context.correlation_id,
                "metadata": self.context.metadata,
            }

        return result


class ConfigurationError(DataProcessingError):
    """Error raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            context=context,
            details=details or {}
        )
        self.config_key = config_key
        self.config_value = config_value

        if config_key:
            self.details["config_key"] = config_key
        if config_value is not None:
            self.details["config_value"] = str(config_value)


class DirectoryError(DataProcessingError):
    """Base class for errors that abort a directory poll cycle.

    None of these are fatal: the previously published snapshot stays
    current and the next timer tick retries.
    """


class TransportError(DirectoryError):
    """Error raised when a page cannot be retrieved from upstream."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        cursor: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="TRANSPORT_ERROR",
            context=context,
            details=details or {}
        )
        self.url = url
        self.status = status
        self.cursor = cursor

        if url:
            self.details["url"] = url
        if status is not None:
            self.details["status"] = status
        if cursor is not None:
            self.details["cursor"] = cursor


class EmptyResultError(DirectoryError):
    """Error raised when a poll cycle drained zero records."""

    def __init__(
        self,
        message: str = "Discarding empty update (subgraph_deployments)",
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="EMPTY_RESULT",
            context=context,
            details=details or {}
        )


class ParseError(DirectoryError):
    """Error raised when a raw record does not have the expected shape."""

    def __init__(
        self,
        message: str,
        record_index: Optional[int] = None,
        errors: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="PARSE_ERROR",
            context=context,
            details=details or {}
        )
        self.record_index = record_index
        self.errors = errors

        if record_index is not None:
            self.details["record_index"] = record_index
        if errors is not None:
            self.details["errors"] = errors


def create_error_context(
    service: str,
    operation: str,
    correlation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> ErrorContext:
    """Create error context."""
    return ErrorContext(
        service=service,
        operation=operation,
        correlation_id=correlation_id,
        metadata=metadata or {}
    )
