"""Unit ORM model (the billable space)."""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.models.tenant_settings import UsageClass


class Unit(Base, BaseModel):
    """A condominium unit.

    Owner and floor management live outside the engine; the engine only reads
    the fields that drive charges.
    """

    __tablename__ = "units"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_number: Mapped[str] = mapped_column(String(32), nullable=False)
    floor_level: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    unit_type: Mapped[UsageClass] = mapped_column(
        SQLEnum(UsageClass),
        nullable=False,
        default=UsageClass.RESIDENTIAL,
        comment="Selects the water tier table",
    )
    area: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, comment="Floor area in sqm")
    parking_area: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00"), comment="Parking area in sqm"
    )
    has_sp_assessment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    bills: Mapped[list["Bill"]] = relationship(  # noqa: F821
        "Bill",
        back_populates="unit",
    )
    advance_balance: Mapped["UnitAdvanceBalance | None"] = relationship(  # noqa: F821
        "UnitAdvanceBalance",
        back_populates="unit",
        uselist=False,
    )

    __table_args__ = (
        Index("idx_unit_tenant_number", "tenant_id", "unit_number", unique=True),
        Index("idx_unit_tenant_floor", "tenant_id", "floor_level"),
    )

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, unit_number={self.unit_number!r}, area={self.area})>"


__all__ = ["Unit"]
