"""
Custom exceptions for CipherWatch.

Provides structured error handling with error codes. Every error the engine
raises to a caller derives from ``CipherWatchError``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for CipherWatch."""
    # General errors (1xxx)
    UNKNOWN_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    CONFIGURATION_ERROR = "E1002"

    # Data errors (2xxx)
    DATA_NOT_FOUND = "E2000"
    INSUFFICIENT_HISTORY = "E2001"

    # Service errors (4xxx)
    SERVICE_UNAVAILABLE = "E4000"
    SERVICE_TIMEOUT = "E4001"

    # Persistence errors (5xxx)
    PERSISTENCE_ERROR = "E5000"
    DUPLICATE_RECORD = "E5001"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subject_id: Optional[str] = None
    resource_id: Optional[str] = None
    service_name: str = "cipherwatch"
    additional: Dict[str, Any] = field(default_factory=dict)


class CipherWatchError(Exception):
    """
    Base exception for CipherWatch.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or ErrorContext()
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code.value,
            "error_type": type(self).__name__,
            "message": self.message,
            "timestamp": self.context.timestamp.isoformat(),
        }
        if self.context.subject_id:
            result["subject_id"] = self.context.subject_id
        if self.context.resource_id:
            result["resource_id"] = self.context.resource_id
        if self.context.additional:
            result["details"] = self.context.additional
        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class InvalidEvent(CipherWatchError):
    """Malformed or out-of-range input event."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **kwargs):
        super().__init__(message=message, error_code=ErrorCode.VALIDATION_ERROR, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.context.additional["field"] = field


class ConfigurationError(CipherWatchError):
    """Threshold table or settings could not be loaded. Fatal at construction."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        super().__init__(message=message, error_code=ErrorCode.CONFIGURATION_ERROR, **kwargs)
        self.source = source
        if source:
            self.context.additional["source"] = source


class InsufficientHistory(CipherWatchError):
    """Subject has no history and no default baseline was supplied."""

    def __init__(self, subject_id: str, **kwargs):
        super().__init__(
            message=f"No activity history for subject {subject_id}",
            error_code=ErrorCode.INSUFFICIENT_HISTORY,
            **kwargs,
        )
        self.subject_id = subject_id
        self.context.subject_id = subject_id


class NarrativeUnavailable(CipherWatchError):
    """Narrative provider failed or timed out. Recovered with the template narrative."""

    def __init__(self, message: str, provider: str = "unknown", timed_out: bool = False, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.SERVICE_TIMEOUT if timed_out else ErrorCode.SERVICE_UNAVAILABLE,
            **kwargs,
        )
        self.provider = provider
        self.timed_out = timed_out


class RecordNotFound(CipherWatchError):
    """Requested record does not exist."""

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        super().__init__(
            message=f"{resource_type} {resource_id} not found",
            error_code=ErrorCode.DATA_NOT_FOUND,
            **kwargs,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.context.resource_id = resource_id


class PersistenceError(CipherWatchError):
    """Store write failed or would overwrite an immutable record."""

    def __init__(self, message: str, duplicate: bool = False, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.DUPLICATE_RECORD if duplicate else ErrorCode.PERSISTENCE_ERROR,
            **kwargs,
        )
        self.duplicate = duplicate
