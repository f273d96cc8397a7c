"""Tenant rate configuration consumed by the billing engine."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel


class UsageClass(str, Enum):
    """Water tier table a unit is billed against."""

    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"


class TenantSettings(Base, BaseModel):
    """Rates and billing schedule for one tenant (condominium corporation).

    Read-only to the engine. Administrative configuration owns mutation.
    """

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Tenant this configuration belongs to",
    )

    # Electric
    electric_rate: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, comment="Rate per kWh"
    )
    electric_min_charge: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), comment="Minimum electric charge"
    )

    # Dues
    dues_rate_per_sqm: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="Association dues per square meter"
    )
    parking_rate_per_sqm: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True, comment="Parking-area dues per sqm; NULL disables parking dues"
    )

    # Penalty / assessment
    penalty_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("10.00"), comment="Penalty rate in percent"
    )
    sp_assessment_rate: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), comment="Flat SP assessment per unit"
    )
    sp_assessment_cycle: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Label of the current SP assessment window"
    )

    # Billing schedule
    reading_day: Mapped[int] = mapped_column(Integer, nullable=False, default=26)
    statement_day: Mapped[int] = mapped_column(Integer, nullable=False, default=27)
    due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=6)

    water_tiers: Mapped[list["WaterTierRate"]] = relationship(
        "WaterTierRate",
        back_populates="settings",
        cascade="all, delete-orphan",
        order_by="WaterTierRate.tier",
    )

    def __repr__(self) -> str:
        return f"<TenantSettings(id={self.id}, tenant_id={self.tenant_id!r})>"


class WaterTierRate(Base, BaseModel):
    """One row of a 7-tier water table.

    ``upper_bound`` is exclusive and NULL for the open-ended last tier.
    The charge for a volume in this tier is ``base_amount`` plus
    ``excess_rate * (volume - excess_from)`` when ``excess_rate`` is set.
    """

    __tablename__ = "water_tier_rates"

    settings_id: Mapped[int] = mapped_column(
        ForeignKey("tenant_settings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    usage_class: Mapped[UsageClass] = mapped_column(SQLEnum(UsageClass), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    upper_bound: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    excess_rate: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    excess_from: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    settings: Mapped["TenantSettings"] = relationship("TenantSettings", back_populates="water_tiers")

    __table_args__ = (
        Index("idx_water_tier_unique", "settings_id", "usage_class", "tier", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<WaterTierRate(class={self.usage_class}, tier={self.tier}, "
            f"upper_bound={self.upper_bound}, base={self.base_amount})>"
        )


__all__ = ["TenantSettings", "WaterTierRate", "UsageClass"]
