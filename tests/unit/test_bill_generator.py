"""Unit tests for bill computation."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from condoledger.models.bill import Bill, BillStatus, BillType
from condoledger.models.billing_adjustment import BillingAdjustment
from condoledger.models.tenant_settings import UsageClass
from condoledger.models.unit import Unit
from condoledger.services.advance_ledger import AdvanceBalances
from condoledger.services.bill_generator import (
    DISCOUNT_EXCEEDS_CHARGES,
    MISSING_READINGS,
    NO_ADJUSTMENT,
    SP_ALREADY_APPLIED,
    BillGenerator,
    SkipUnit,
    UnitBillingInputs,
)
from condoledger.services.errors import ValidationError
from condoledger.services.rate_schedule import RateSchedule, default_water_tiers

NOVEMBER = date(2025, 11, 1)


@pytest.fixture
def schedule():
    return RateSchedule(
        tenant_id="acacia-tower",
        period=NOVEMBER,
        electric_rate=Decimal("10.01"),
        electric_min_charge=Decimal("0.00"),
        dues_rate_per_sqm=Decimal("60.00"),
        penalty_rate=Decimal("10.00"),
        sp_assessment_rate=Decimal("1000.00"),
        water_tiers=default_water_tiers(),
    )


@pytest.fixture
def generator(schedule):
    return BillGenerator(schedule)


@pytest.fixture
def unit():
    return Unit(
        id=1,
        tenant_id="acacia-tower",
        unit_number="101",
        floor_level="1F",
        unit_type=UsageClass.RESIDENTIAL,
        area=Decimal("36.00"),
        parking_area=Decimal("0.00"),
        has_sp_assessment=False,
    )


def regular_inputs(unit, **kwargs):
    kwargs.setdefault("electric_consumption", Decimal("103"))
    kwargs.setdefault("water_consumption", Decimal("5"))
    return UnitBillingInputs(unit=unit, **kwargs)


def adjustment(sp=None, discounts="0.00", other="0.00", remarks=None):
    return BillingAdjustment(
        sp_assessment=Decimal(sp) if sp is not None else None,
        discounts=Decimal(discounts),
        other_charges=Decimal(other),
        remarks=remarks,
    )


class TestRegularBill:
    def test_components_and_total(self, generator, unit):
        draft = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))

        assert draft.electric_amount == Decimal("1031.03")
        assert draft.water_amount == Decimal("200.00")
        assert draft.dues_amount == Decimal("2160.00")
        assert draft.penalty_amount == Decimal("0.00")
        assert draft.total_amount == Decimal("3391.03")

    def test_schedule_dates(self, generator, unit):
        draft = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))

        assert draft.dates.period_start == date(2025, 10, 27)
        assert draft.dates.statement_date == date(2025, 11, 27)
        assert draft.dates.due_date == date(2025, 12, 6)

    def test_missing_reading_skips_unit(self, generator, unit):
        with pytest.raises(SkipUnit) as exc_info:
            generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit, water_consumption=None))

        assert exc_info.value.reason == MISSING_READINGS

    def test_negative_consumption_rejected(self, generator, unit):
        with pytest.raises(ValidationError):
            generator.build(
                BillType.REGULAR, NOVEMBER, regular_inputs(unit, electric_consumption=Decimal("-5"))
            )

    def test_electric_minimum_charge(self, schedule, unit):
        generator = BillGenerator(replace(schedule, electric_min_charge=Decimal("150.00")))

        draft = generator.build(
            BillType.REGULAR, NOVEMBER, regular_inputs(unit, electric_consumption=Decimal("0"))
        )

        assert draft.electric_amount == Decimal("150.00")

    def test_parking_dues(self, schedule, unit):
        unit.parking_area = Decimal("12.50")
        generator = BillGenerator(replace(schedule, parking_rate_per_sqm=Decimal("50.00")))

        draft = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))

        assert draft.parking_fee == Decimal("625.00")

    def test_commercial_unit_uses_commercial_tiers(self, generator, unit):
        unit.unit_type = UsageClass.COMMERCIAL

        draft = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))

        assert draft.water_amount == Decimal("250.00")

    def test_penalty_and_past_dues(self, generator, unit):
        october = Bill(
            bill_number="MT-202510-0001",
            bill_type=BillType.REGULAR,
            billing_month=date(2025, 10, 1),
            total_amount=Decimal("3000.00"),
            penalty_amount=Decimal("0.00"),
            paid_amount=Decimal("0.00"),
            balance=Decimal("3000.00"),
            status=BillStatus.OVERDUE,
        )

        draft = generator.build(
            BillType.REGULAR, NOVEMBER, regular_inputs(unit, prior_open_bills=[october])
        )

        assert draft.penalty_amount == Decimal("300.00")
        assert draft.past_dues == Decimal("3000.00")
        # Carry-forward is reported, never added to the total
        assert draft.total_amount == Decimal("3691.03")


class TestAdvanceApplication:
    def test_advance_dues_offsets_dues(self, generator, unit):
        inputs = regular_inputs(unit, advance=AdvanceBalances(dues=Decimal("800.00"), utilities=Decimal("0.00")))

        draft = generator.build(BillType.REGULAR, NOVEMBER, inputs)

        assert draft.advance_dues_applied == Decimal("800.00")
        assert draft.total_amount == Decimal("2591.03")

    def test_advance_capped_at_charges(self, generator, unit):
        inputs = regular_inputs(
            unit, advance=AdvanceBalances(dues=Decimal("5000.00"), utilities=Decimal("5000.00"))
        )

        draft = generator.build(BillType.REGULAR, NOVEMBER, inputs)

        assert draft.advance_dues_applied == Decimal("2160.00")
        assert draft.advance_util_applied == Decimal("1231.03")
        assert draft.total_amount == Decimal("0.00")


class TestAssessmentAndAdjustments:
    def test_sp_assessment_charged_once_per_cycle(self, generator, unit):
        unit.has_sp_assessment = True

        first = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))
        again = generator.build(
            BillType.REGULAR, NOVEMBER, regular_inputs(unit, sp_cycles_billed=frozenset({"2025"}))
        )

        assert first.sp_assessment == Decimal("1000.00")
        assert first.sp_assessment_cycle == "2025"
        assert again.sp_assessment == Decimal("0.00")
        assert SP_ALREADY_APPLIED in again.warnings

    def test_adjustment_overrides_sp_rate(self, generator, unit):
        draft = generator.build(
            BillType.REGULAR, NOVEMBER, regular_inputs(unit, adjustment=adjustment(sp="500.00"))
        )

        assert draft.sp_assessment == Decimal("500.00")

    def test_adjustment_discounts_and_other_charges(self, generator, unit):
        inputs = regular_inputs(
            unit, adjustment=adjustment(discounts="91.03", other="100.00", remarks="Lobby repair")
        )

        draft = generator.build(BillType.REGULAR, NOVEMBER, inputs)

        assert draft.other_charges == Decimal("100.00")
        assert draft.discounts == Decimal("91.03")
        assert draft.total_amount == Decimal("3400.00")
        assert draft.remarks == "Lobby repair"

    def test_discount_exceeding_charges_skips_unit(self, generator, unit):
        inputs = regular_inputs(unit, adjustment=adjustment(discounts="99999.00"))

        with pytest.raises(SkipUnit) as exc_info:
            generator.build(BillType.REGULAR, NOVEMBER, inputs)

        assert exc_info.value.reason == DISCOUNT_EXCEEDS_CHARGES


class TestAdjustmentBill:
    def test_only_adjustment_charges(self, generator, unit):
        inputs = UnitBillingInputs(unit=unit, adjustment=adjustment(other="250.00"))

        draft = generator.build(BillType.ADJUSTMENT, NOVEMBER, inputs)

        assert draft.bill_type == BillType.ADJUSTMENT
        assert draft.electric_amount == Decimal("0.00")
        assert draft.dues_amount == Decimal("0.00")
        assert draft.total_amount == Decimal("250.00")

    def test_without_adjustment_skips(self, generator, unit):
        with pytest.raises(SkipUnit) as exc_info:
            generator.build(BillType.ADJUSTMENT, NOVEMBER, UnitBillingInputs(unit=unit))

        assert exc_info.value.reason == NO_ADJUSTMENT

    def test_discount_only_adjustment_skips(self, generator, unit):
        inputs = UnitBillingInputs(unit=unit, adjustment=adjustment(discounts="100.00"))

        with pytest.raises(SkipUnit) as exc_info:
            generator.build(BillType.ADJUSTMENT, NOVEMBER, inputs)

        assert exc_info.value.reason == NO_ADJUSTMENT


class TestOpeningBalance:
    def test_amount_in_other_charges(self, generator, unit):
        inputs = UnitBillingInputs(unit=unit, opening_amount=Decimal("12500.00"))

        draft = generator.build(BillType.OPENING_BALANCE, date(2025, 10, 1), inputs)

        assert draft.other_charges == Decimal("12500.00")
        assert draft.total_amount == Decimal("12500.00")
        assert draft.remarks == "Opening balance"

    def test_non_positive_amount_rejected(self, generator, unit):
        inputs = UnitBillingInputs(unit=unit, opening_amount=Decimal("0"))

        with pytest.raises(ValidationError):
            generator.build(BillType.OPENING_BALANCE, date(2025, 10, 1), inputs)


def test_apply_to_copies_amounts(generator, unit):
    draft = generator.build(BillType.REGULAR, NOVEMBER, regular_inputs(unit))
    bill = Bill(bill_number="MT-202511-0001")

    draft.apply_to(bill)

    assert bill.total_amount == Decimal("3391.03")
    assert bill.balance == Decimal("3391.03")
    assert bill.paid_amount == Decimal("0.00")
    assert bill.status == BillStatus.UNPAID
    assert bill.total_amount == bill.computed_total()
