"""
Error Handling for the onboarding service

This module provides:
1. The exception hierarchy raised by the attempt lifecycle and scoring engine
2. Structured error information for logging and API responses
3. Helpers to render and log errors in one consistent format
"""

import logging
import traceback
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, validator

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes"""
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    NOT_FOUND_ERROR = "not_found_error"

    # Attempt lifecycle errors
    INVALID_TRANSITION = "invalid_transition"
    PREREQUISITE_NOT_MET = "prerequisite_not_met"
    ATTEMPT_CLOSED = "attempt_closed"
    ATTEMPT_FROZEN = "attempt_frozen"
    CONFLICT = "conflict"

    # Database errors
    DATABASE_ERROR = "database_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    class Config:
        use_enum_values = True

    @validator('stack_trace', pre=True, always=False)
    def validate_stack_trace(cls, v):
        """Split a string stack trace into lines"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class OnboardingError(Exception):
    """Base exception class for all onboarding service errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            stack_trace=traceback.format_exc() if include_stack_trace else None,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).dict()

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {self.cause}"
        return base_str


class ValidationError(OnboardingError):
    """Raised when input is malformed and cannot be clamped into range"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class AuthenticationError(OnboardingError):
    """Raised when the caller carries no usable identity"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.AUTHENTICATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details
        )


class NotFoundError(OnboardingError):
    """Raised when a referenced test, question, attempt or response does not exist"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details["resource_type"] = resource_type
        details["resource_id"] = str(resource_id)
        super().__init__(
            message=f"{resource_type} with ID {resource_id} not found",
            code=ErrorCode.NOT_FOUND_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AttemptError(OnboardingError):
    """Base class for attempt lifecycle errors"""
    pass


class InvalidTransitionError(AttemptError):
    """Raised when a status change is not allowed by the attempt state machine"""

    def __init__(self, current: Any, target: Any, details: Optional[Dict[str, Any]] = None):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        details = dict(details or {})
        details.update({"current_status": current_value, "target_status": target_value})
        super().__init__(
            message=f"Cannot move attempt from '{current_value}' to '{target_value}'",
            code=ErrorCode.INVALID_TRANSITION,
            severity=ErrorSeverity.WARNING,
            details=details
        )
        self.current = current
        self.target = target


class PrerequisiteNotMetError(AttemptError):
    """Raised when a test is started before the previous test in sequence is complete"""

    def __init__(self, test_id: str, previous_test_id: Optional[str] = None):
        super().__init__(
            message="The previous test in the sequence must be completed first",
            code=ErrorCode.PREREQUISITE_NOT_MET,
            severity=ErrorSeverity.WARNING,
            details={"test_id": test_id, "previous_test_id": previous_test_id}
        )


class AttemptClosedError(AttemptError):
    """Raised when a candidate write targets an attempt that is no longer in progress"""

    def __init__(self, attempt_id: str, status: Any, reason: Optional[str] = None):
        status_value = getattr(status, "value", status)
        message = f"Attempt {attempt_id} is not accepting answers (status: {status_value})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code=ErrorCode.ATTEMPT_CLOSED,
            severity=ErrorSeverity.WARNING,
            details={"attempt_id": attempt_id, "status": status_value}
        )


class AttemptFrozenError(AttemptError):
    """Raised when an administratively locked attempt is written to"""

    def __init__(self, attempt_id: str, locked_by: Optional[str] = None):
        super().__init__(
            message=f"Attempt {attempt_id} is locked",
            code=ErrorCode.ATTEMPT_FROZEN,
            severity=ErrorSeverity.WARNING,
            details={"attempt_id": attempt_id, "locked_by": locked_by}
        )


class ConflictError(OnboardingError):
    """Raised when a write is based on a stale version of an attempt"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.CONFLICT,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause
        )


class DatabaseError(OnboardingError):
    """Raised when the persistence layer fails"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Database error: {message}",
            code=ErrorCode.DATABASE_ERROR,
            severity=ErrorSeverity.ERROR,
            cause=cause,
            context=context
        )


def convert_exception(error: Exception, context: Optional[Dict[str, Any]] = None) -> OnboardingError:
    """Wrap an arbitrary exception in an OnboardingError"""
    if isinstance(error, OnboardingError):
        return error
    return OnboardingError(
        message=str(error) or type(error).__name__,
        cause=error,
        context=context
    )


def error_response(
    error: Union[OnboardingError, Exception],
    include_details: bool = True
) -> Dict[str, Any]:
    """
    Generate a standardized API error response.

    Args:
        error: The error to render
        include_details: Whether to include error details

    Returns:
        Error response dictionary
    """
    error_info = convert_exception(error).to_error_info()

    response = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


def log_error(
    error: Union[OnboardingError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = False,
    context: Optional[Dict[str, Any]] = None,
    target: Optional[logging.Logger] = None
) -> None:
    """
    Log an error in the standard ``ERROR [code]: message`` format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to append the current traceback
        context: Additional context to include
        target: Logger to write to (defaults to this module's logger)
    """
    error = convert_exception(error, context=context)
    if context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {error.cause}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    (target or logger).log(level, message)
