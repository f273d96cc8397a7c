"""Per-unit, per-period manual billing adjustment."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel


class BillingAdjustment(Base, BaseModel):
    """Manual inputs for one unit's bill in one billing period.

    ``sp_assessment`` overrides the tenant SP rate when not NULL.
    """

    __tablename__ = "billing_adjustments"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    billing_period: Mapped[date] = mapped_column(Date, nullable=False)

    sp_assessment: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discounts: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    other_charges: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        Index("idx_adjustment_unit_period", "unit_id", "billing_period", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<BillingAdjustment(unit_id={self.unit_id}, period={self.billing_period}, "
            f"sp={self.sp_assessment}, discounts={self.discounts}, other={self.other_charges})>"
        )


__all__ = ["BillingAdjustment"]
