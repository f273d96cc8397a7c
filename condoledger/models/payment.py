"""Payment ORM model: one recorded receipt (OR#/AR#)."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.money import ZERO


class PaymentStatus(str, Enum):
    """Lifecycle of a recorded payment. Voiding is handled outside the engine."""

    CONFIRMED = "CONFIRMED"
    VOIDED = "VOIDED"


class Payment(Base, BaseModel):
    """A payment received for a unit.

    The breakdown columns record what the payer intended; allocation itself
    follows the fixed component priority. Advance fields steer how a surplus
    is split between the advance pools.
    """

    __tablename__ = "payments"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    or_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False, default="CASH")
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Intended breakdown
    electric_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    water_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    dues_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    sp_assessment_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    advance_dues_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    advance_util_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    other_advance_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Outcome of allocation
    advance_dues_credited: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    advance_util_credited: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )

    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.CONFIRMED
    )
    recorded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821
    allocations: Mapped[list["BillPayment"]] = relationship(  # noqa: F821
        "BillPayment",
        back_populates="payment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_payment_tenant_or", "tenant_id", "or_number", unique=True),
        Index("idx_payment_unit_date", "unit_id", "payment_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, or_number={self.or_number!r}, unit_id={self.unit_id}, "
            f"total={self.total_amount})>"
        )


__all__ = ["Payment", "PaymentStatus"]
