"""
Custom exceptions for the synchronization pipeline with structured error context.

Exception Hierarchy:
    SyncException (base)
    ├── AuthError
    ├── RemoteError
    │   ├── RemoteHttpError
    │   ├── RemoteFault
    │   │   └── SessionExpiredError
    │   └── RemoteParseError
    ├── NormalizationError
    ├── PersistenceError
    ├── EnumerationError
    └── RetryableError / NonRetryableError (mixins)

Per-target errors (remote, normalization, persistence) are absorbed by the
batch driver and reported as failed outcomes. AuthError and EnumerationError
abort the whole pass.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all synchronization errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job, target id, etc.)
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
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        shown = {k: v for k, v in self.context.items() if k != "error_timestamp"}
        if shown:
            context_str = ", ".join(f"{k}={v}" for k, v in shown.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
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

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Non-2xx transport responses
    - Remote faults raised by the platform
    """
    pass


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Missing or rejected credentials
    - Responses that contain no usable record
    - Records that cannot be normalized or stored
    """
    pass


# ============================================================================
# Session Errors
# ============================================================================

class AuthError(NonRetryableError):
    """
    Credentials absent, login rejected or token unusable.

    Fatal to the whole batch pass.
    """
    pass


# ============================================================================
# Remote Errors
# ============================================================================

class RemoteError(SyncException):
    """Base exception for remote API failures."""
    pass


class RemoteHttpError(RetryableError, RemoteError):
    """
    Transport-level failure.

    Context should include:
        - operation: SOAP operation name
        - status_code: HTTP status code (if a response arrived)
        - response_body: Response body (truncated)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        if status_code is not None:
            self.context["status_code"] = status_code


class RemoteFault(RetryableError, RemoteError):
    """The response payload carried a SOAP fault."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        fault_code: Optional[str] = None
    ):
        super().__init__(message, context, original_exception)
        self.fault_code = fault_code
        if fault_code is not None:
            self.context["fault_code"] = fault_code


class SessionExpiredError(RemoteFault):
    """Fault signalling that the session token is no longer accepted."""
    pass


class RemoteParseError(NonRetryableError, RemoteError):
    """No record could be located in an otherwise successful response."""
    pass


# ============================================================================
# Transformation / Load Errors
# ============================================================================

class NormalizationError(NonRetryableError):
    """
    A raw record could not be turned into a local record.

    Context should include:
        - entity: Entity being normalized
        - field_name: Field that failed (if applicable)
    """
    pass


class PersistenceError(NonRetryableError):
    """
    A store write failed for one target.

    Context should include:
        - operation: Store operation name
        - key: Natural key of the record
    """
    pass


class EnumerationError(NonRetryableError):
    """The target enumeration query failed; no pass can run."""
    pass
