"""
Audit Logger

Every significant action in the core is logged:
1. Store mutations (transactions, categories, settings)
2. Persistence failures (which are recovered, never raised)
3. Receipt scans and CSV exports

The audit logger:
- Never raises (a failing log call must not break a mutation)
- Writes structured JSON lines through structlog
- Keeps a bounded in-memory history for the settings/debug screen
"""

from collections import deque
from typing import Optional

import structlog

from finanz.config import get_settings
from finanz.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Central audit logging service."""

    def __init__(self, history_size: Optional[int] = None):
        """
        Initialize audit logger.

        Args:
            history_size: How many events to keep in memory.
                         Defaults to the configured audit_history_size.
        """
        if history_size is None:
            history_size = get_settings().app.audit_history_size
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("finanz.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        log_dict = event.to_log_dict()
        log_dict.pop("description", None)

        try:
            if event.severity is AuditSeverity.ERROR:
                self._logger.error(event.description, **log_dict)
            elif event.severity is AuditSeverity.WARNING:
                self._logger.warning(event.description, **log_dict)
            elif event.severity is AuditSeverity.DEBUG:
                self._logger.debug(event.description, **log_dict)
            else:
                self._logger.info(event.description, **log_dict)
        except Exception as e:
            # Logging must never break the caller
            structlog.get_logger("finanz.audit").error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )

        self._history.append(event)

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._history)
        events.reverse()
        return events[:limit]
