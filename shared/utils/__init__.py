"""
Utility modules for directory services.

Provides common utilities for:
- Structured logging
- OpenTelemetry tracing
- Error handling
"""

from .logging import setup_logging
from .tracing import setup_tracing, trace_async_function
from .errors import (
    DataProcessingError,
    ConfigurationError,
    DirectoryError,
    TransportError,
    EmptyResultError,
    ParseError,
)

__all__ = [
    "setup_logging",
    "setup_tracing",
    "trace_async_function",
    "DataProcessingError",
    "ConfigurationError",
    "DirectoryError",
    "TransportError",
    "EmptyResultError",
    "ParseError",
]
