"""
Structured error handling for the idle tab closer.

Provides custom exception types, error context, and recovery strategies.
"""
from __future__ import annotations

import traceback as traceback_module
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryStrategy(Enum):
    """Error recovery strategies."""
    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"
    REPORT = "report"
    CONTINUE = "continue"


@dataclass
class ErrorContext:
    """
    Context information about an error.

    Captures everything needed to understand and debug an error.
    """

    error_type: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)

    # Tab context
    tab_id: Optional[int] = None
    url: Optional[str] = None

    # Operation context
    operation: Optional[str] = None

    # Stack trace
    traceback: Optional[str] = None

    # Additional metadata
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'error_type': self.error_type,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'tab_id': self.tab_id,
            'url': self.url,
            'operation': self.operation,
            'traceback': self.traceback,
            'metadata': self.metadata
        }


class TabEngineError(Exception):
    """
    Base exception for all engine errors.

    All custom exceptions should inherit from this.
    """

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    recovery_strategy: RecoveryStrategy = RecoveryStrategy.CONTINUE

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        **kwargs
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(
            error_type=self.__class__.__name__,
            message=message
        )

        # Allow overriding context fields
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)


class TabNotFoundError(TabEngineError):
    """Operation targets a tab that is no longer tracked."""
    severity = ErrorSeverity.LOW
    recovery_strategy = RecoveryStrategy.REPORT


class PersistenceError(TabEngineError):
    """Snapshot, settings or history could not be read or written."""
    severity = ErrorSeverity.HIGH
    recovery_strategy = RecoveryStrategy.CONTINUE


class MalformedPatternError(TabEngineError):
    """Exclusion rule pattern cannot be compiled."""
    severity = ErrorSeverity.LOW
    recovery_strategy = RecoveryStrategy.SKIP


class TabServiceError(TabEngineError):
    """The browser's tab API rejected a request."""
    severity = ErrorSeverity.MEDIUM
    recovery_strategy = RecoveryStrategy.RETRY


class ConfigurationError(TabEngineError):
    """Invalid configuration."""
    severity = ErrorSeverity.CRITICAL
    recovery_strategy = RecoveryStrategy.ABORT


@dataclass
class ErrorHandler:
    """
    Records handled errors and tells callers how to recover.
    """

    # Configuration
    max_history: int = 200
    capture_traceback: bool = False

    # Error history
    errors: List[ErrorContext] = field(default_factory=list)

    def handle_error(
        self,
        error: Exception,
        operation: Optional[str] = None,
        tab_id: Optional[int] = None,
        url: Optional[str] = None,
        **metadata
    ) -> RecoveryStrategy:
        """
        Handle an error and determine recovery strategy.

        Args:
            error: The exception that occurred
            operation: Name of the failing operation (e.g. "persist", "sweep")
            tab_id: Tab the operation was working on, if any
            url: Address involved, if any

        Returns:
            RecoveryStrategy to use
        """
        # Create error context
        if isinstance(error, TabEngineError):
            context = error.context
        else:
            context = ErrorContext(
                error_type=type(error).__name__,
                message=str(error)
            )

        if operation and context.operation is None:
            context.operation = operation
        if tab_id is not None and context.tab_id is None:
            context.tab_id = tab_id
        if url and context.url is None:
            context.url = url
        if metadata:
            context.metadata.update(metadata)
        if self.capture_traceback and error.__traceback__ is not None:
            context.traceback = "".join(
                traceback_module.format_exception(type(error), error, error.__traceback__)
            )

        # Store error
        self.errors.append(context)
        if len(self.errors) > self.max_history:
            del self.errors[0]

        # Determine recovery strategy
        if isinstance(error, TabEngineError):
            return error.recovery_strategy
        return RecoveryStrategy.CONTINUE

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all errors."""
        error_counts = {}
        for error in self.errors:
            error_type = error.error_type
            error_counts[error_type] = error_counts.get(error_type, 0) + 1

        return {
            'total_errors': len(self.errors),
            'error_counts': error_counts,
            'recent_errors': [e.to_dict() for e in self.errors[-5:]]
        }

    def clear_errors(self) -> None:
        """Clear error history."""
        self.errors.clear()
