"""Meter reading ORM model (entered by an external collaborator)."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel


class MeterType(str, Enum):
    """Metered utility."""

    ELECTRIC = "ELECTRIC"
    WATER = "WATER"


class MeterReading(Base, BaseModel):
    """Consumption of one unit meter over one metering period.

    ``billing_period`` is the first day of the month the reading closes. A bill
    for month X consumes the readings of month X-1.
    """

    __tablename__ = "meter_readings"

    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    meter_type: Mapped[MeterType] = mapped_column(SQLEnum(MeterType), nullable=False)
    billing_period: Mapped[date] = mapped_column(Date, nullable=False)
    previous_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    present_reading: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    consumption: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    unit: Mapped["Unit"] = relationship("Unit")  # noqa: F821

    __table_args__ = (
        Index("idx_reading_unit_type_period", "unit_id", "meter_type", "billing_period", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<MeterReading(unit_id={self.unit_id}, type={self.meter_type}, "
            f"period={self.billing_period}, consumption={self.consumption})>"
        )


__all__ = ["MeterReading", "MeterType"]
