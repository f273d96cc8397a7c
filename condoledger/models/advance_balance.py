"""Per-unit advance (prepaid) balance pools."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.money import ZERO


class AdvancePool(str, Enum):
    """Advance pools a unit can hold."""

    DUES = "DUES"
    """Offsets association dues"""

    UTILITIES = "UTILITIES"
    """Offsets electric and water"""


class UnitAdvanceBalance(Base, BaseModel):
    """Running prepaid balances of one unit. Both pools are never negative."""

    __tablename__ = "unit_advance_balances"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, unique=True)
    advance_dues: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    advance_utilities: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )

    unit: Mapped["Unit"] = relationship("Unit", back_populates="advance_balance")  # noqa: F821

    __table_args__ = (
        CheckConstraint("advance_dues >= 0", name="ck_advance_dues_non_negative"),
        CheckConstraint("advance_utilities >= 0", name="ck_advance_utilities_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<UnitAdvanceBalance(unit_id={self.unit_id}, dues={self.advance_dues}, "
            f"utilities={self.advance_utilities})>"
        )


__all__ = ["UnitAdvanceBalance", "AdvancePool"]
