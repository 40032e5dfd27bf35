"""
Custom exceptions for the Sui object-change pipeline with structured error context.

This module provides the exception hierarchy used throughout the pipeline.
Each exception includes context information for debugging and monitoring.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── APIExtractionError
    │   │   ├── NetworkError (retryable)
    │   │   ├── RateLimitError (retryable)
    │   │   ├── RPCError
    │   │   └── RPCResponseError
    │   └── RequestLimitError (fatal)
    ├── TransformationError
    │   └── BulkResponseMismatchError (fatal)
    ├── LoadError
    │   ├── DocumentStoreError
    │   └── MissingObjectSnapshotError (fatal)
    ├── CheckpointError
    ├── ConfigurationError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (object id, cursor, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that are expected to clear up on their own.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """


class NonRetryableError(ETLException):
    """
    Mixin for errors that retrying cannot fix.

    Use this for permanent errors like:
    - An RPC response that breaks the expected contract
    - Programming errors in stage wiring
    """


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for failures talking to the chain."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a Sui JSON-RPC call fails.

    Context should include:
        - rpc_url: The endpoint that failed
        - method: JSON-RPC method name
        - status_code: HTTP status code (if applicable)
    """
    pass


class NetworkError(RetryableError, APIExtractionError):
    """Timeouts, connection failures and 5xx responses."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """Rate limiting errors (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds the node asked us to wait
        if retry_after:
            self.context["retry_after"] = retry_after


class RPCError(APIExtractionError):
    """
    The node answered with a JSON-RPC error object.

    Context should include:
        - code: JSON-RPC error code
        - rpc_message: Error message reported by the node
    """
    pass


class RPCResponseError(APIExtractionError):
    """The response body could not be decoded into the expected shape."""
    pass


class RequestLimitError(NonRetryableError, ExtractionError):
    """
    A request asked for more results than the node serves per call.

    This is a caller bug, so it is not an APIExtractionError and is never
    retried or answered with the per-item fallback.

    Context should include:
        - method: JSON-RPC method name
        - limit: Maximum accepted
        - requested: Number asked for
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for enrichment failures."""
    pass


class BulkResponseMismatchError(NonRetryableError, TransformationError):
    """
    A multi-get returned a different number of results than requested.

    Results are matched to requests by position, so this means the node no
    longer honours that contract. The pipeline must stop.

    Context should include:
        - requested: Number of objects requested
        - received: Number of results returned
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class DocumentStoreError(LoadError):
    """
    Exception raised when a document store operation fails.

    Context should include:
        - operation: delete or upsert
        - object_id: Object id of the document key
        - version: Version of the document key
    """
    pass


class MissingObjectSnapshotError(NonRetryableError, LoadError):
    """A created/mutated change reached the loader without its object."""
    pass


# ============================================================================
# Checkpoint / Configuration Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Exception raised when checkpoint management fails.

    Context should include:
        - source_name: Name of the checkpointed source
        - cursor: The cursor that failed to persist (if applicable)
        - operation: Operation that failed (read, write)
    """
    pass


class ConfigurationError(NonRetryableError):
    """Invalid settings detected at startup."""
    pass
