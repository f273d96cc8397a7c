"""Audit log model for tracking ledger mutations."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from condoledger.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry written in the same transaction as the change it records.

    Records who (actor) did what (action) to which entity (entity_type,
    entity_id) and an optional snapshot of the change.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50), index=False)
    """Entity type being audited: "bill", "payment", "soa_batch", ..."""

    entity_id: Mapped[int | None] = mapped_column(nullable=True, index=False)
    """Primary key of the entity being audited. None for tenant-wide actions."""

    action: Mapped[str] = mapped_column(String(50), index=False)
    """Action performed: "create", "delete", "distribute", ..."""

    actor: Mapped[str | None] = mapped_column(String(64), nullable=True, index=False)
    """Operator who performed the action. None for system actions."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, index=False)
    """Optional JSON snapshot: {"total_amount": "2160.00", "bills": 5}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor={self.actor}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
