"""Audit logging package."""

from finanz.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
