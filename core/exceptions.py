"""
Custom exceptions for the ingestion engine with structured error context.

This module provides the exception hierarchy used throughout the
fetch -> normalize -> write -> checkpoint loop. Each exception includes
context information for debugging and monitoring.

Exception Hierarchy:
    IngestionError (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── AuthError
    │   ├── CredentialExpiredError
    │   ├── CursorExpiredError
    │   ├── RateLimitError
    │   ├── TransientError
    │   └── UnknownError
    ├── TransformationError
    │   └── ValidationError
    ├── LoadError
    │   └── WriteError
    ├── CheckpointError
    └── RetryableError / NonRetryableError (mixins)

Rate limiting and cursor expiry are absorbed inside the fetch client and
never reach the orchestrator. Everything else propagates.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionError(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, cursor, batch size, etc.)
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

        self.context["error_timestamp"] = self.timestamp.isoformat()

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


class ConfigurationError(IngestionError):
    """
    Raised at startup when required settings are missing or invalid.

    Context should include:
        - missing_fields: Names of the absent environment variables
    """
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(IngestionError):
    """
    Mixin for errors that a later attempt may resolve.

    Use this for:
    - Network timeouts and connection failures
    - Rate limiting (HTTP 429)
    - Server errors (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        attempts: int = 0
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        if attempts:
            self.context["attempts"] = attempts


class NonRetryableError(IngestionError):
    """
    Mixin for errors that must not be retried.

    Use this for:
    - Authentication failures (HTTP 401, 403)
    - An expired stream token
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(IngestionError):
    """Base exception for event source failures."""
    pass


class AuthError(NonRetryableError, ExtractionError):
    """
    The API key was rejected by the rate-limited endpoint.

    Context should include:
        - status_code: 401 or 403
        - endpoint: The endpoint that rejected the request
    """
    pass


class CredentialExpiredError(NonRetryableError, ExtractionError):
    """
    The time-limited stream token was rejected by the privileged endpoint.

    Progress is checkpointed before this reaches the entrypoint; the run can
    be resumed with a fresh token.
    """
    pass


class CursorExpiredError(ExtractionError):
    """The source rejected the pagination cursor as invalid or expired."""
    pass


class RateLimitError(RetryableError, ExtractionError):
    """Rate limiting (HTTP 429) carrying the server's wait hint."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after is not None:
            self.context["retry_after"] = retry_after


class TransientError(RetryableError, ExtractionError):
    """
    Network failure, timeout or 5xx that persisted through every retry.

    Fatal for the current run, resumable on restart.
    """
    pass


class UnknownError(ExtractionError):
    """
    Any fetch failure that does not fit another category.

    Context should include:
        - status_code: HTTP status code (if a response was received)
        - response_body: Response body (truncated)
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(IngestionError):
    """Base exception for record normalization failures."""
    pass


class ValidationError(TransformationError):
    """
    A raw record is missing its identifier or carries an unparseable timestamp.

    Context should include:
        - field_name: Name of the field that failed validation
        - field_value: Value that failed validation
        - record_index: Position of the record in its page (batch form)
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(IngestionError):
    """Base exception for destination write failures."""
    pass


class WriteError(LoadError):
    """
    The staging -> merge transaction failed and was rolled back.

    Context should include:
        - operation: Step that failed (STAGE, MERGE, TRUNCATE)
        - batch_size: Number of rows in the failed batch
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(IngestionError):
    """
    Exception raised when the cursor checkpoint cannot be read or written.

    Context should include:
        - operation: Operation that failed (load, save)
        - cursor_token: The checkpoint value involved
        - events_ingested: The progress counter involved
    """
    pass
