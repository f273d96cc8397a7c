"""Unit tests for rate schedule resolution."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from condoledger.models.tenant_settings import TenantSettings, UsageClass
from condoledger.services.errors import ConfigurationMissing
from condoledger.services.rate_schedule import (
    RateSchedule,
    WaterTier,
    build_schedule,
    default_water_tiers,
    rate_for,
    validate_tier_table,
    water_tier_rows,
)


TENANT = "acacia-tower"


def _residential():
    return list(default_water_tiers()[UsageClass.RESIDENTIAL])


class TestValidateTierTable:
    def test_accepts_unordered_input(self):
        tiers = list(reversed(_residential()))

        ordered = validate_tier_table(tiers)

        assert [tier.tier for tier in ordered] == [1, 2, 3, 4, 5, 6, 7]

    def test_rejects_missing_tier(self):
        tiers = [tier for tier in _residential() if tier.tier != 4]

        with pytest.raises(ConfigurationMissing):
            validate_tier_table(tiers)

    def test_rejects_non_increasing_bounds(self):
        tiers = _residential()
        tiers[2] = replace(tiers[2], upper_bound=Decimal("6"))

        with pytest.raises(ConfigurationMissing):
            validate_tier_table(tiers)

    def test_rejects_bounded_last_tier(self):
        tiers = _residential()
        tiers[6] = replace(tiers[6], upper_bound=Decimal("100"))

        with pytest.raises(ConfigurationMissing):
            validate_tier_table(tiers)

    def test_rejects_open_middle_tier(self):
        tiers = _residential()
        tiers[3] = WaterTier(4, None, Decimal("370.00"))

        with pytest.raises(ConfigurationMissing):
            validate_tier_table(tiers)


class TestRateSchedule:
    @pytest.fixture
    def schedule(self):
        return RateSchedule(
            tenant_id=TENANT,
            period=date(2025, 11, 1),
            electric_rate=Decimal("10.01"),
            electric_min_charge=Decimal("0.00"),
            dues_rate_per_sqm=Decimal("60.00"),
            penalty_rate=Decimal("10.00"),
            sp_assessment_rate=Decimal("0.00"),
            water_tiers={UsageClass.RESIDENTIAL: tuple(_residential())},
        )

    def test_missing_usage_class_is_configuration_error(self, schedule):
        with pytest.raises(ConfigurationMissing):
            schedule.tiers_for(UsageClass.COMMERCIAL)

    def test_assessment_cycle_defaults_to_year(self, schedule):
        assert schedule.assessment_cycle() == "2025"

    def test_configured_assessment_cycle(self, schedule):
        assert replace(schedule, sp_assessment_cycle="2025-H2").assessment_cycle() == "2025-H2"


def test_build_schedule_from_settings_row():
    settings = TenantSettings(
        tenant_id=TENANT,
        electric_rate=Decimal("10.0100"),
        electric_min_charge=Decimal("50.00"),
        dues_rate_per_sqm=Decimal("60.00"),
        parking_rate_per_sqm=Decimal("25.00"),
        penalty_rate=Decimal("10.00"),
        sp_assessment_rate=Decimal("1000.00"),
        sp_assessment_cycle=None,
        reading_day=25,
        statement_day=28,
        due_day=10,
        water_tiers=water_tier_rows(),
    )

    schedule = build_schedule(settings, date(2025, 11, 1))

    assert schedule.electric_rate == Decimal("10.01")
    assert schedule.parking_rate_per_sqm == Decimal("25.00")
    assert schedule.due_day == 10
    assert len(schedule.tiers_for(UsageClass.COMMERCIAL)) == 7


def test_rate_for_loads_tenant_settings(db_session, tenant_settings):
    schedule = rate_for(db_session, TENANT, date(2025, 11, 1))

    assert schedule.tenant_id == TENANT
    assert schedule.dues_rate_per_sqm == Decimal("60.00")
    assert schedule.tiers_for(UsageClass.RESIDENTIAL)[0].base_amount == Decimal("80.00")


def test_rate_for_unknown_tenant(db_session):
    with pytest.raises(ConfigurationMissing):
        rate_for(db_session, "unknown-tower", date(2025, 11, 1))
