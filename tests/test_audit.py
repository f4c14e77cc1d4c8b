"""
Tests for the audit logger.
"""

from uuid import uuid4

from finanz.audit import AuditLogger
from finanz.models.audit import AuditEventBuilder, AuditEventType


class TestAuditLogger:
    """Tests for logging and the in-memory history."""

    def test_recent_events_newest_first(self):
        """Test history order and limit."""
        logger = AuditLogger(history_size=10)
        logger.log(AuditEventBuilder.transaction_added(uuid4(), "expense", "1"))
        logger.log(AuditEventBuilder.csv_exported(1))
        logger.log(AuditEventBuilder.user_mode_changed("zzp"))

        events = logger.recent_events(limit=2)
        assert [e.event_type for e in events] == [
            AuditEventType.USER_MODE_CHANGED,
            AuditEventType.CSV_EXPORTED,
        ]

    def test_history_is_bounded(self):
        """Test old events fall out of the history."""
        logger = AuditLogger(history_size=3)
        for count in range(5):
            logger.log(AuditEventBuilder.csv_exported(count))
        details = [e.details["row_count"] for e in logger.recent_events()]
        assert details == [4, 3, 2]

    def test_every_severity_is_logged(self):
        """Test events of all severities are accepted."""
        logger = AuditLogger(history_size=10)
        logger.log(AuditEventBuilder.receipt_scan_discarded())
        logger.log(AuditEventBuilder.snapshot_load_failed("transactions", "bad"))
        logger.log(AuditEventBuilder.snapshot_save_failed("transactions", "full"))
        logger.log(AuditEventBuilder.csv_exported(0))
        assert len(logger.recent_events()) == 4

    def test_default_history_size_from_settings(self):
        """Test the configured history size is used by default."""
        logger = AuditLogger()
        for count in range(250):
            logger.log(AuditEventBuilder.csv_exported(count))
        assert len(logger.recent_events(limit=1000)) == 200
