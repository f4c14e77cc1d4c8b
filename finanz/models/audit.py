"""
Audit Models for FinanzApp

Every state change of the store, every persistence failure and every
receipt scan produces an AuditEvent. Events go to the structured log and a
bounded in-memory history; they are never persisted with the user's data.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Settings
    USER_MODE_CHANGED = "user_mode_changed"
    BUDGET_UPDATED = "budget_updated"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_LOAD_FAILED = "snapshot_load_failed"
    SNAPSHOT_SAVE_FAILED = "snapshot_save_failed"

    # Receipt scanning
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"
    RECEIPT_SCAN_DISCARDED = "receipt_scan_discarded"

    # Export
    CSV_EXPORTED = "csv_exported"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=datetime.now)

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'category', 'snapshot')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx.id, tx.type.value, str(tx.amount))
        event = AuditEventBuilder.snapshot_load_failed("transactions", str(exc))
    """

    @staticmethod
    def transaction_added(
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {transaction_type} {amount}",
            details={"type": transaction_type, "amount": amount},
        )

    @staticmethod
    def transaction_updated(transaction_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction updated",
        )

    @staticmethod
    def transaction_deleted(transaction_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: UUID,
        name: str,
        cascaded: Optional[list[str]] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        details: dict[str, Any] = {"name": name}
        if cascaded:
            details["subcategories_removed"] = cascaded
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            description=f"Category {verb}: {name}",
            details=details,
        )

    @staticmethod
    def user_mode_changed(mode: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_MODE_CHANGED,
            description=f"User mode set to {mode}",
            details={"mode": mode},
        )

    @staticmethod
    def budget_updated(monthly: str, weekly: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            description="Budget limits updated",
            details={"monthly": monthly, "weekly": weekly},
        )

    @staticmethod
    def snapshot_loaded(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            description="Snapshots loaded",
            details=counts,
        )

    @staticmethod
    def snapshot_load_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description=f"Could not read '{key}', using defaults",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def snapshot_save_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            description=f"Could not write '{key}'",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def receipt_scanned(
        found_fields: list[str],
        line_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            entity_type="receipt",
            description=f"Receipt scanned: {len(found_fields)} fields found in {line_count} lines",
            details={"found_fields": found_fields, "line_count": line_count},
        )

    @staticmethod
    def receipt_scan_failed(error_message: str, attempts: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            description=f"Text recognition failed after {attempts} attempts",
            details={"attempts": attempts},
            error_message=error_message,
        )

    @staticmethod
    def receipt_scan_crashed(error_message: str, error_type: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="receipt",
            description="Receipt scan failed unexpectedly",
            details={"error_type": error_type},
            error_message=error_message,
        )

    @staticmethod
    def receipt_scan_discarded() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="receipt",
            description="Receipt scan cancelled; result discarded",
        )

    @staticmethod
    def csv_exported(row_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_EXPORTED,
            description=f"Exported {row_count} transactions to CSV",
            details={"row_count": row_count},
        )
