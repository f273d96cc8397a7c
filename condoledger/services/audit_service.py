"""Audit service for logging ledger mutations."""

from sqlalchemy.orm import Session

from condoledger.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Entries are added to the caller's session so they commit (or roll back)
    together with the change they describe.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int | None,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("bill", "payment", "soa_batch", ...)
            entity_id: Primary key of the entity (None for tenant-wide actions)
            action: Action performed ("create", "delete", "distribute", ...)
            actor: Operator who performed the action (optional)
            changes: Optional JSON snapshot of changed fields

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=changes,
        )
        db.add(audit)
        return audit


__all__ = ["AuditService"]
