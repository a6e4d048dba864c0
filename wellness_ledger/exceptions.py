"""
Exception hierarchy for the wellness ledger
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)

RETRY_LATER_MESSAGE = "Could not record; will retry."


class WellnessLedgerError(Exception):
    """
    Base exception for all wellness ledger errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise WellnessLedgerError(
            message="Failed to award daily challenge",
            user_id="uid-123",
            operation="complete_daily_challenge",
            context={"date_key": "2024-01-01"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(WellnessLedgerError):
    """
    Raised when caller input fails validation

    Example:
        raise ValidationError(
            message="Intensity must be between 1 and 10",
            field="intensity",
            value=12,
            user_id="uid-123"
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        super().__init__(
            message=message,
            context={"field": field, "value": value},
            **kwargs
        )


class InvalidDateKey(ValidationError):
    """A string that should be a YYYY-MM-DD calendar day is not one. Never retried."""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            message=f"'{value}' is not a valid YYYY-MM-DD date",
            field="date_key",
            value=value,
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(WellnessLedgerError):
    """Base class for document store errors"""
    pass


class TransientStorageError(StorageError):
    """Store unreachable or a read/write failed; the caller may retry later"""

    def __init__(self, message: str = "Document store unavailable", **kwargs):
        kwargs.setdefault("user_message", RETRY_LATER_MESSAGE)
        super().__init__(message=message, **kwargs)


class TransactionConflict(StorageError):
    """
    A concurrent writer changed a document this transaction read.

    Raised by a single commit attempt; the transaction runner retries it.
    """

    def __init__(self, paths: Optional[list] = None, **kwargs):
        self.paths = list(paths or [])
        super().__init__(
            message=f"Transaction conflict on {', '.join(self.paths) or 'unknown paths'}",
            context={"paths": self.paths},
            **kwargs
        )

    def _log_error(self) -> None:
        # Conflicts are expected under contention and retried
        logger.debug(f"TransactionConflict: {self.message}")


class ConflictRetryExhausted(StorageError):
    """Optimistic retries gave up; treated like TransientStorageError by callers"""

    def __init__(self, attempts: int, **kwargs):
        self.attempts = attempts
        kwargs.setdefault("user_message", RETRY_LATER_MESSAGE)
        super().__init__(
            message=f"Transaction abandoned after {attempts} conflicting attempts",
            **kwargs
        )


# ==========================================
# External API Errors
# ==========================================

class ExternalAPIError(WellnessLedgerError):
    """
    Base class for external service failures
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        self.service = service
        self.status_code = status_code
        kwargs.setdefault(
            "user_message",
            f"We're having trouble connecting to {service or 'an external service'}. Please try again later."
        )
        super().__init__(
            message=message,
            context={"service": service, "status_code": status_code},
            **kwargs
        )


class ServiceUnavailable(ExternalAPIError):
    """Text generation backend could not be reached or refused the request"""

    def __init__(self, message: str = "Text generation service unavailable", **kwargs):
        kwargs.setdefault("service", "text generation")
        super().__init__(message=message, **kwargs)


class EmptyResponse(ExternalAPIError):
    """Text generation backend answered with no usable text"""

    def __init__(self, message: str = "Text generation returned an empty response", **kwargs):
        kwargs.setdefault("service", "text generation")
        super().__init__(message=message, **kwargs)


# ==========================================
# Access Errors
# ==========================================

class AuthenticationError(WellnessLedgerError):
    """Bearer key missing or not one of API_KEYS"""

    def __init__(self, message: str = "Missing or unknown API key", **kwargs):
        kwargs.setdefault("user_message", "A valid API key is required.")
        super().__init__(message=message, **kwargs)

    def _log_error(self) -> None:
        logger.warning(f"{self.__class__.__name__}: {self.message}")


class AuthorizationError(AuthenticationError):
    """Key is valid but scoped to a different user than the one requested"""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            message=f"API key may not act for user {user_id}",
            user_id=user_id,
            user_message="This API key cannot access that user's ledger.",
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(WellnessLedgerError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> WellnessLedgerError:
    """
    Wrap driver exceptions (psycopg, ...) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate WellnessLedgerError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="store.get", context={"path": path})
    """
    import psycopg

    if isinstance(error, WellnessLedgerError):
        return error

    if isinstance(error, (psycopg.OperationalError, psycopg.InterfaceError, OSError, TimeoutError)):
        return TransientStorageError(
            message=f"Document store unavailable: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return StorageError(
            message=f"Document store query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return WellnessLedgerError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
