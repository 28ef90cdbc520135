"""
Error Taxonomy for the Post Synchronization Core

This module defines the exceptions raised by remote store adapters and the
post components:
- Error categories and severities for classification
- A common base exception carrying context and the original error
- Validation, query, write and subscription errors
- Extraction of human-readable messages for surfacing in state

Nothing here is fatal: components catch these at their boundary and turn
them into observable error state.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of errors for classification."""
    VALIDATION = "validation"  # Local input errors, never reach the store
    STORE_QUERY = "store_query"  # Load/refresh failures
    STORE_WRITE = "store_write"  # Insert failures
    SUBSCRIPTION = "subscription"  # Live channel failed or dropped
    SYSTEM = "system"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class ErrorContext:
    """Context information for errors."""
    service: str
    operation: str
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class FeedSyncError(Exception):
    """Base exception class for FeedSync errors."""
    
    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context
        self.original_error = original_error
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)


class ValidationError(FeedSyncError):
    """Draft failed local validation."""
    
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            recoverable=False,
            **kwargs
        )
        self.field = field


class StoreQueryError(FeedSyncError):
    """Loading posts from the remote store failed."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STORE_QUERY,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class StoreWriteError(FeedSyncError):
    """Inserting a post into the remote store failed."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STORE_WRITE,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class SubscriptionError(FeedSyncError):
    """The live change channel could not be established or dropped."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.SUBSCRIPTION,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


def error_message(error: BaseException, default: str) -> str:
    """Return the human-readable message of an error, or ``default``."""
    if isinstance(error, FeedSyncError) and error.message:
        return error.message
    
    message = getattr(error, "message", None)
    if isinstance(message, str) and message.strip():
        return message
    
    text = str(error).strip()
    return text or default
