"""
Error taxonomy and error reporting for record gateway operations.
"""

import logging
import traceback
from datetime import datetime
from typing import Dict, Any, List, Optional, Union

from classbook.services.notifications import BaseNotifier


# Gateway-wide logger, separate from the per-module loggers
record_logger = logging.getLogger('record_gateway')


class RecordErrorSeverity:
    """Error severity levels for record operations."""
    LOW = "low"           # Reported, caller continues normally
    MEDIUM = "medium"     # Operation degraded or partially applied
    HIGH = "high"         # Operation failed
    CRITICAL = "critical"


class RecordErrorCategory:
    """Error categories for record operations."""
    BACKEND_FAILURE = "backend_failure"
    NOT_FOUND = "not_found"
    PARTIAL_BATCH_FAILURE = "partial_batch_failure"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class RecordError(Exception):
    """Base exception for record gateway errors with enhanced metadata."""

    def __init__(
        self,
        message: str,
        category: str = RecordErrorCategory.UNKNOWN,
        severity: str = RecordErrorSeverity.MEDIUM,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        record_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.table = table
        self.operation = operation
        self.record_id = record_id
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            'message': self.message,
            'category': self.category,
            'severity': self.severity,
            'table': self.table,
            'operation': self.operation,
            'record_id': self.record_id,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': repr(self.original_exception) if self.original_exception else None
        }


class BackendFailureError(RecordError):
    """The backend answered with ``success: false``."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=RecordErrorCategory.BACKEND_FAILURE,
            severity=RecordErrorSeverity.HIGH,
            **kwargs
        )


class RecordNotFoundError(RecordError):
    """A lookup by identifier returned no data."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=RecordErrorCategory.NOT_FOUND,
            severity=RecordErrorSeverity.LOW,
            **kwargs
        )


class PartialBatchFailureError(RecordError):
    """Some records of a batch mutation were rejected."""

    def __init__(self, message: str, failures: Optional[List[Dict[str, Any]]] = None, **kwargs):
        details = kwargs.get('details', {})
        details['failures'] = failures or []
        kwargs['details'] = details

        super().__init__(
            message,
            category=RecordErrorCategory.PARTIAL_BATCH_FAILURE,
            severity=RecordErrorSeverity.HIGH,
            **kwargs
        )
        self.failures = failures or []


class RecordTransportError(RecordError):
    """Network, protocol or response parsing failure."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=RecordErrorCategory.TRANSPORT,
            severity=RecordErrorSeverity.HIGH,
            **kwargs
        )


class RecordErrorHandler:
    """Logs record errors and forwards user-facing messages to a notifier."""

    def __init__(self, notifier: Optional[BaseNotifier] = None, max_log_entries: int = 1000):
        self.notifier = notifier
        self._error_log: List[Dict[str, Any]] = []
        self._max_log_entries = max_log_entries

    def log_error(
        self,
        error: Union[RecordError, Exception],
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an error with full context.

        Args:
            error: The error to log
            context: Additional context information (operation, record id, ...)
        """
        if isinstance(error, RecordError):
            error_dict = error.to_dict()
        else:
            error_dict = {
                'message': str(error),
                'category': RecordErrorCategory.UNKNOWN,
                'severity': RecordErrorSeverity.HIGH,
                'timestamp': datetime.utcnow().isoformat(),
                'traceback': traceback.format_exc()
            }

        if context:
            error_dict.update(context)

        severity = error_dict.get('severity', RecordErrorSeverity.MEDIUM)
        log_message = f"Record Error [{severity.upper()}]: {error_dict['message']}"
        extra = {'record_error': error_dict}

        if severity == RecordErrorSeverity.CRITICAL:
            record_logger.critical(log_message, extra=extra)
        elif severity == RecordErrorSeverity.HIGH:
            record_logger.error(log_message, extra=extra)
        elif severity == RecordErrorSeverity.MEDIUM:
            record_logger.warning(log_message, extra=extra)
        else:
            record_logger.info(log_message, extra=extra)

        self._error_log.append(error_dict)
        if len(self._error_log) > self._max_log_entries:
            self._error_log.pop(0)

    def notify(self, *messages: Optional[str]) -> None:
        """Show messages to the user; empty messages are skipped."""
        if self.notifier is None:
            return
        for message in messages:
            if message:
                self.notifier.error(message)

    def get_recent_errors(
        self,
        limit: int = 50,
        category_filter: Optional[str] = None,
        table_filter: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get recent errors with optional filtering."""
        filtered_errors = self._error_log.copy()

        if category_filter:
            filtered_errors = [e for e in filtered_errors if e.get('category') == category_filter]

        if table_filter:
            filtered_errors = [e for e in filtered_errors if e.get('table') == table_filter]

        return filtered_errors[-limit:]

    def clear_errors(self) -> None:
        self._error_log.clear()
