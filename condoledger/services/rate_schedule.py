"""Rate schedule resolution for a tenant and billing period.

The schedule is an immutable value built once per engine call and threaded
through every calculation, so a generation run is reproducible from its
inputs alone.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from condoledger.models.tenant_settings import TenantSettings, UsageClass, WaterTierRate
from condoledger.money import ZERO
from condoledger.services.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

TIER_COUNT = 7


@dataclass(frozen=True)
class WaterTier:
    """One water tier. ``upper_bound`` is exclusive; None means open-ended."""

    tier: int
    upper_bound: Decimal | None
    base_amount: Decimal
    excess_rate: Decimal = ZERO
    excess_from: Decimal = ZERO


@dataclass(frozen=True)
class RateSchedule:
    """Rates in force for one tenant and billing period."""

    tenant_id: str
    period: date
    electric_rate: Decimal
    electric_min_charge: Decimal
    dues_rate_per_sqm: Decimal
    penalty_rate: Decimal
    sp_assessment_rate: Decimal
    water_tiers: dict[UsageClass, tuple[WaterTier, ...]] = field(default_factory=dict)
    parking_rate_per_sqm: Decimal | None = None
    sp_assessment_cycle: str | None = None
    reading_day: int = 26
    statement_day: int = 27
    due_day: int = 6

    def tiers_for(self, usage_class: UsageClass) -> tuple[WaterTier, ...]:
        try:
            return self.water_tiers[usage_class]
        except KeyError:
            raise ConfigurationMissing(
                f"No {usage_class.value.lower()} water tier table for tenant {self.tenant_id}"
            ) from None

    def assessment_cycle(self) -> str:
        """Cycle key SP assessments are de-duplicated on (default: billing year)."""
        return self.sp_assessment_cycle or str(self.period.year)


def validate_tier_table(tiers: tuple[WaterTier, ...] | list[WaterTier], label: str = "water") -> tuple[WaterTier, ...]:
    """Check a tier table is complete and ordered.

    Raises:
        ConfigurationMissing: If tiers are missing, unordered, or the last
            tier is not open-ended
    """
    ordered = tuple(sorted(tiers, key=lambda t: t.tier))
    if [t.tier for t in ordered] != list(range(1, TIER_COUNT + 1)):
        raise ConfigurationMissing(f"{label} tier table must define tiers 1-{TIER_COUNT}")

    previous = None
    for tier in ordered[:-1]:
        if tier.upper_bound is None:
            raise ConfigurationMissing(f"{label} tier {tier.tier} is missing its upper bound")
        if previous is not None and tier.upper_bound <= previous:
            raise ConfigurationMissing(f"{label} tier boundaries must be strictly increasing")
        previous = tier.upper_bound

    if ordered[-1].upper_bound is not None:
        raise ConfigurationMissing(f"{label} tier {TIER_COUNT} must be open-ended")
    return ordered


def _tier_from_row(row: WaterTierRate) -> WaterTier:
    return WaterTier(
        tier=row.tier,
        upper_bound=Decimal(row.upper_bound) if row.upper_bound is not None else None,
        base_amount=Decimal(row.base_amount),
        excess_rate=Decimal(row.excess_rate or 0),
        excess_from=Decimal(row.excess_from or 0),
    )


def build_schedule(settings: TenantSettings, period: date) -> RateSchedule:
    """Build a RateSchedule from a TenantSettings row."""
    tables: dict[UsageClass, list[WaterTier]] = {}
    for row in settings.water_tiers:
        tables.setdefault(row.usage_class, []).append(_tier_from_row(row))

    water_tiers = {
        usage_class: validate_tier_table(rows, usage_class.value.lower())
        for usage_class, rows in tables.items()
    }

    return RateSchedule(
        tenant_id=settings.tenant_id,
        period=period,
        electric_rate=Decimal(settings.electric_rate),
        electric_min_charge=Decimal(settings.electric_min_charge),
        dues_rate_per_sqm=Decimal(settings.dues_rate_per_sqm),
        penalty_rate=Decimal(settings.penalty_rate),
        sp_assessment_rate=Decimal(settings.sp_assessment_rate),
        water_tiers=water_tiers,
        parking_rate_per_sqm=(
            Decimal(settings.parking_rate_per_sqm)
            if settings.parking_rate_per_sqm is not None
            else None
        ),
        sp_assessment_cycle=settings.sp_assessment_cycle,
        reading_day=settings.reading_day,
        statement_day=settings.statement_day,
        due_day=settings.due_day,
    )


def rate_for(session: Session, tenant_id: str, period: date) -> RateSchedule:
    """Resolve the rate schedule of a tenant for a billing period.

    Raises:
        ConfigurationMissing: If the tenant has no settings or tier tables
    """
    stmt = (
        select(TenantSettings)
        .where(TenantSettings.tenant_id == tenant_id)
        .options(selectinload(TenantSettings.water_tiers))
    )
    settings = session.execute(stmt).scalar_one_or_none()
    if settings is None:
        logger.error("Tenant settings missing for tenant %s", tenant_id)
        raise ConfigurationMissing(f"Tenant settings not found for tenant {tenant_id}")

    schedule = build_schedule(settings, period)
    for usage_class in UsageClass:
        schedule.tiers_for(usage_class)
    return schedule


def default_water_tiers() -> dict[UsageClass, tuple[WaterTier, ...]]:
    """Water tables in use when the tenant went live.

    Tiers 1-3 are flat; tiers 4-7 add a per-cu.m excess over a fixed base.
    """
    residential = (
        WaterTier(1, Decimal("2"), Decimal("80.00")),
        WaterTier(2, Decimal("6"), Decimal("200.00")),
        WaterTier(3, Decimal("11"), Decimal("370.00")),
        WaterTier(4, Decimal("21"), Decimal("370.00"), Decimal("40.00"), Decimal("10")),
        WaterTier(5, Decimal("31"), Decimal("770.00"), Decimal("45.00"), Decimal("20")),
        WaterTier(6, Decimal("41"), Decimal("1220.00"), Decimal("50.00"), Decimal("30")),
        WaterTier(7, None, Decimal("1720.00"), Decimal("55.00"), Decimal("40")),
    )
    commercial = (
        WaterTier(1, Decimal("2"), Decimal("200.00")),
        WaterTier(2, Decimal("6"), Decimal("250.00")),
        WaterTier(3, Decimal("11"), Decimal("740.00")),
        WaterTier(4, Decimal("21"), Decimal("740.00"), Decimal("55.00"), Decimal("10")),
        WaterTier(5, Decimal("31"), Decimal("1290.00"), Decimal("60.00"), Decimal("20")),
        WaterTier(6, Decimal("41"), Decimal("1890.00"), Decimal("65.00"), Decimal("30")),
        WaterTier(7, None, Decimal("2540.00"), Decimal("85.00"), Decimal("40")),
    )
    return {UsageClass.RESIDENTIAL: residential, UsageClass.COMMERCIAL: commercial}


def water_tier_rows(tables: dict[UsageClass, tuple[WaterTier, ...]] | None = None) -> list[WaterTierRate]:
    """Materialize tier tables as WaterTierRate rows (for seeding settings)."""
    tables = tables or default_water_tiers()
    rows = []
    for usage_class, tiers in tables.items():
        for tier in tiers:
            rows.append(
                WaterTierRate(
                    usage_class=usage_class,
                    tier=tier.tier,
                    upper_bound=tier.upper_bound,
                    base_amount=tier.base_amount,
                    excess_rate=tier.excess_rate,
                    excess_from=tier.excess_from,
                )
            )
    return rows
