"""Shared fixtures: in-memory database, tenant configuration and factories."""

import os

# Point the application engine at an in-memory database before any
# condoledger import creates it
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from condoledger.models import (
    Base,
    Bill,
    BillStatus,
    BillType,
    MeterReading,
    MeterType,
    TenantSettings,
    Unit,
    UsageClass,
)
from condoledger.services.billing_period import billing_dates
from condoledger.services.rate_schedule import water_tier_rows

TENANT = "acacia-tower"


@pytest.fixture
def db_engine():
    """Create test database engine with the ledger schema."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def tenant_settings(db_session):
    """Tenant rates used across scenarios (₱10.01/kWh, ₱60/sqm dues, 10% penalty)."""
    settings = TenantSettings(
        tenant_id=TENANT,
        electric_rate=Decimal("10.01"),
        electric_min_charge=Decimal("0.00"),
        dues_rate_per_sqm=Decimal("60.00"),
        parking_rate_per_sqm=None,
        penalty_rate=Decimal("10.00"),
        sp_assessment_rate=Decimal("0.00"),
        sp_assessment_cycle=None,
        reading_day=26,
        statement_day=27,
        due_day=6,
        water_tiers=water_tier_rows(),
    )
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture
def unit_factory(db_session):
    """Create persisted units."""

    def make_unit(
        unit_number: str = "101",
        area: str = "36.00",
        floor_level: str = "1F",
        unit_type: UsageClass = UsageClass.RESIDENTIAL,
        parking_area: str = "0.00",
        has_sp_assessment: bool = False,
        owner_name: str | None = "Maria Santos",
        tenant_id: str = TENANT,
    ) -> Unit:
        unit = Unit(
            tenant_id=tenant_id,
            unit_number=unit_number,
            floor_level=floor_level,
            owner_name=owner_name,
            unit_type=unit_type,
            area=Decimal(area),
            parking_area=Decimal(parking_area),
            has_sp_assessment=has_sp_assessment,
            is_active=True,
        )
        db_session.add(unit)
        db_session.commit()
        return unit

    return make_unit


@pytest.fixture
def readings_factory(db_session):
    """Record electric and water consumption of a unit for a reading month."""

    def add_readings(unit: Unit, month: date, electric: str = "103", water: str = "5") -> None:
        for meter_type, consumption in ((MeterType.ELECTRIC, electric), (MeterType.WATER, water)):
            db_session.add(
                MeterReading(
                    unit_id=unit.id,
                    meter_type=meter_type,
                    billing_period=month,
                    previous_reading=Decimal("1000.00"),
                    present_reading=Decimal("1000.00") + Decimal(consumption),
                    consumption=Decimal(consumption),
                )
            )
        db_session.commit()

    return add_readings


@pytest.fixture
def bill_factory(db_session):
    """Create persisted bills directly from component amounts."""
    counter = {"n": 0}

    def make_bill(
        unit: Unit,
        month: date,
        bill_type: BillType = BillType.REGULAR,
        bill_number: str | None = None,
        **components,
    ) -> Bill:
        counter["n"] += 1
        dates = billing_dates(month, 26, 27, 6)
        bill = Bill(
            tenant_id=unit.tenant_id,
            unit_id=unit.id,
            bill_number=bill_number or f"MT-{month:%Y%m}-{counter['n']:04d}",
            bill_type=bill_type,
            billing_month=dates.billing_month,
            billing_period_start=dates.period_start,
            billing_period_end=dates.period_end,
            statement_date=dates.statement_date,
            due_date=dates.due_date,
            status=BillStatus.UNPAID,
            is_locked=False,
        )
        for field in (
            "electric_amount",
            "water_amount",
            "dues_amount",
            "parking_fee",
            "sp_assessment",
            "other_charges",
            "penalty_amount",
            "discounts",
            "advance_dues_applied",
            "advance_util_applied",
        ):
            setattr(bill, field, Decimal(components.get(field, "0.00")))
        bill.electric_consumption = Decimal("0.00")
        bill.water_consumption = Decimal("0.00")
        bill.total_amount = bill.computed_total()
        bill.paid_amount = Decimal("0.00")
        bill.balance = bill.total_amount
        db_session.add(bill)
        db_session.commit()
        return bill

    return make_bill
