"""Governance: hash-chained audit logging of segment revisions."""

from geomatricula.governance.audit import AuditEntry, AuditLogger

__all__ = ["AuditEntry", "AuditLogger"]
