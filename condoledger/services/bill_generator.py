"""Bill computation for one unit and one billing month.

BillGenerator is pure: it reads the inputs gathered by BillingService and
returns a BillDraft (or raises SkipUnit). It never touches the session, so a
draft can be previewed without writing anything.

Carry-forward past dues are reported on the draft but never folded into the
bill total.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence

from condoledger.models.bill import Bill, BillStatus, BillType
from condoledger.models.billing_adjustment import BillingAdjustment
from condoledger.models.tenant_settings import UsageClass
from condoledger.models.unit import Unit
from condoledger.money import ZERO, money_sum, to_money
from condoledger.services.advance_ledger import AdvanceBalances
from condoledger.services.billing_period import BillingDates, billing_dates
from condoledger.services.errors import ValidationError
from condoledger.services.penalty_calculator import PenaltyCalculator
from condoledger.services.rate_schedule import RateSchedule
from condoledger.services.tier_calculator import TierCalculator

logger = logging.getLogger(__name__)

# Skip reasons reported per unit
MISSING_READINGS = "missing_readings"
DISCOUNT_EXCEEDS_CHARGES = "discount_exceeds_charges"
ALREADY_EXISTS = "already_exists"
NO_ADJUSTMENT = "no_adjustment"
ADJUSTMENT_ALREADY_BILLED = "adjustment_already_billed"

# Warnings reported per created bill
SP_ALREADY_APPLIED = "sp_assessment_already_applied"


class SkipUnit(Exception):
    """Raised when a unit cannot be billed; the rest of the run continues."""

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or reason)


@dataclass
class UnitBillingInputs:
    """Everything the generator needs to know about one unit."""

    unit: Unit
    electric_consumption: Decimal | None = None
    water_consumption: Decimal | None = None
    prior_open_bills: Sequence[Bill] = ()
    adjustment: BillingAdjustment | None = None
    advance: AdvanceBalances = AdvanceBalances(dues=ZERO, utilities=ZERO)
    sp_cycles_billed: frozenset[str] = frozenset()
    opening_amount: Decimal | None = None
    remarks: str | None = None


@dataclass
class BillDraft:
    """Computed bill, not yet persisted."""

    bill_type: BillType
    dates: BillingDates
    electric_consumption: Decimal = ZERO
    water_consumption: Decimal = ZERO
    electric_amount: Decimal = ZERO
    water_amount: Decimal = ZERO
    dues_amount: Decimal = ZERO
    parking_fee: Decimal = ZERO
    sp_assessment: Decimal = ZERO
    sp_assessment_cycle: str | None = None
    other_charges: Decimal = ZERO
    penalty_amount: Decimal = ZERO
    discounts: Decimal = ZERO
    advance_dues_applied: Decimal = ZERO
    advance_util_applied: Decimal = ZERO
    past_dues: Decimal = ZERO
    warnings: list[str] = field(default_factory=list)
    remarks: str | None = None

    def gross_charges(self) -> Decimal:
        return money_sum(
            [
                self.electric_amount,
                self.water_amount,
                self.dues_amount,
                self.parking_fee,
                self.sp_assessment,
                self.other_charges,
                self.penalty_amount,
            ]
        )

    @property
    def total_amount(self) -> Decimal:
        return (
            self.gross_charges()
            - self.discounts
            - self.advance_dues_applied
            - self.advance_util_applied
        )

    def apply_to(self, bill: Bill) -> Bill:
        """Copy the computed amounts and dates onto a Bill row."""
        bill.bill_type = self.bill_type
        bill.billing_month = self.dates.billing_month
        bill.billing_period_start = self.dates.period_start
        bill.billing_period_end = self.dates.period_end
        bill.statement_date = self.dates.statement_date
        bill.due_date = self.dates.due_date
        bill.electric_consumption = self.electric_consumption
        bill.water_consumption = self.water_consumption
        bill.electric_amount = self.electric_amount
        bill.water_amount = self.water_amount
        bill.dues_amount = self.dues_amount
        bill.parking_fee = self.parking_fee
        bill.sp_assessment = self.sp_assessment
        bill.sp_assessment_cycle = self.sp_assessment_cycle
        bill.other_charges = self.other_charges
        bill.penalty_amount = self.penalty_amount
        bill.discounts = self.discounts
        bill.advance_dues_applied = self.advance_dues_applied
        bill.advance_util_applied = self.advance_util_applied
        bill.total_amount = self.total_amount
        bill.paid_amount = ZERO
        bill.status = BillStatus.UNPAID
        bill.remarks = self.remarks
        bill.refresh_balance()
        return bill


class BillGenerator:
    """Compute bills from a RateSchedule, dispatching on BillType."""

    def __init__(self, schedule: RateSchedule):
        self.schedule = schedule
        self.penalties = PenaltyCalculator(schedule.penalty_rate)
        self._tier_calculators: dict[UsageClass, TierCalculator] = {}

    def build(self, bill_type: BillType, billing_month: date, inputs: UnitBillingInputs) -> BillDraft:
        """Compute the bill of one unit.

        Raises:
            SkipUnit: If the unit cannot be billed this run
            ValidationError: If readings or amounts are malformed
        """
        builders = {
            BillType.REGULAR: self._build_regular,
            BillType.ADJUSTMENT: self._build_adjustment,
            BillType.OPENING_BALANCE: self._build_opening_balance,
        }
        dates = billing_dates(
            billing_month,
            self.schedule.reading_day,
            self.schedule.statement_day,
            self.schedule.due_day,
        )
        draft = builders[bill_type](dates, inputs)
        draft.past_dues = self.past_dues(inputs.prior_open_bills)
        return draft

    # Component charges

    def electric_charge(self, consumption: Decimal) -> Decimal:
        if consumption < 0:
            raise ValidationError(f"Electric consumption cannot be negative: {consumption}")
        amount = to_money(consumption * self.schedule.electric_rate)
        return max(amount, to_money(self.schedule.electric_min_charge))

    def water_charge(self, usage_class: UsageClass, volume: Decimal) -> Decimal:
        calculator = self._tier_calculators.get(usage_class)
        if calculator is None:
            calculator = TierCalculator(self.schedule.tiers_for(usage_class))
            self._tier_calculators[usage_class] = calculator
        return calculator.charge(volume)

    def dues_charge(self, unit: Unit) -> Decimal:
        return to_money(Decimal(unit.area) * self.schedule.dues_rate_per_sqm)

    def parking_charge(self, unit: Unit) -> Decimal:
        if self.schedule.parking_rate_per_sqm is None or not unit.parking_area:
            return ZERO
        return to_money(Decimal(unit.parking_area) * self.schedule.parking_rate_per_sqm)

    def sp_charge(
        self, inputs: UnitBillingInputs, use_tenant_rate: bool = True
    ) -> tuple[Decimal, str | None, str | None]:
        """SP assessment as (amount, cycle, warning).

        The adjustment override wins over the tenant rate. A cycle already
        charged on another bill of the unit is never charged twice.
        """
        adjustment = inputs.adjustment
        if adjustment is not None and adjustment.sp_assessment is not None:
            amount = to_money(adjustment.sp_assessment)
        elif use_tenant_rate and inputs.unit.has_sp_assessment:
            amount = to_money(self.schedule.sp_assessment_rate)
        else:
            amount = ZERO

        if amount <= ZERO:
            return ZERO, None, None

        cycle = self.schedule.assessment_cycle()
        if cycle in inputs.sp_cycles_billed:
            logger.info("SP assessment for cycle %s already billed to unit %s", cycle, inputs.unit.id)
            return ZERO, None, SP_ALREADY_APPLIED
        return amount, cycle, None

    @staticmethod
    def past_dues(prior_open_bills: Sequence[Bill]) -> Decimal:
        """Carry-forward: sum of prior open bills' balances."""
        return money_sum(bill.balance for bill in prior_open_bills)

    @staticmethod
    def _adjustment_amounts(adjustment: BillingAdjustment | None) -> tuple[Decimal, Decimal]:
        if adjustment is None:
            return ZERO, ZERO
        discounts = to_money(adjustment.discounts)
        other = to_money(adjustment.other_charges)
        if discounts < 0 or other < 0:
            raise ValidationError("Adjustment discounts and other charges cannot be negative")
        return discounts, other

    @staticmethod
    def _check_discounts(draft: BillDraft) -> None:
        if draft.discounts > draft.gross_charges():
            raise SkipUnit(DISCOUNT_EXCEEDS_CHARGES)

    @staticmethod
    def _apply_advance(draft: BillDraft, advance: AdvanceBalances) -> None:
        """Offset dues and utilities from the advance pools."""
        owed = draft.gross_charges() - draft.discounts
        dues_applied = max(ZERO, min(advance.dues, draft.dues_amount, owed))
        owed -= dues_applied
        utilities = draft.electric_amount + draft.water_amount
        util_applied = max(ZERO, min(advance.utilities, utilities, owed))
        draft.advance_dues_applied = dues_applied
        draft.advance_util_applied = util_applied

    # Bill types

    def _build_regular(self, dates: BillingDates, inputs: UnitBillingInputs) -> BillDraft:
        if inputs.electric_consumption is None or inputs.water_consumption is None:
            raise SkipUnit(MISSING_READINGS)

        unit = inputs.unit
        electric = Decimal(inputs.electric_consumption)
        water = Decimal(inputs.water_consumption)
        discounts, other = self._adjustment_amounts(inputs.adjustment)
        sp_amount, sp_cycle, sp_warning = self.sp_charge(inputs)

        draft = BillDraft(
            bill_type=BillType.REGULAR,
            dates=dates,
            electric_consumption=to_money(electric),
            water_consumption=to_money(water),
            electric_amount=self.electric_charge(electric),
            water_amount=self.water_charge(unit.unit_type, water),
            dues_amount=self.dues_charge(unit),
            parking_fee=self.parking_charge(unit),
            sp_assessment=sp_amount,
            sp_assessment_cycle=sp_cycle,
            other_charges=other,
            penalty_amount=self.penalties.penalty_for(inputs.prior_open_bills),
            discounts=discounts,
            remarks=inputs.adjustment.remarks if inputs.adjustment is not None else None,
        )
        if sp_warning:
            draft.warnings.append(sp_warning)

        self._check_discounts(draft)
        self._apply_advance(draft, inputs.advance)
        return draft

    def _build_adjustment(self, dates: BillingDates, inputs: UnitBillingInputs) -> BillDraft:
        if inputs.adjustment is None:
            raise SkipUnit(NO_ADJUSTMENT)

        discounts, other = self._adjustment_amounts(inputs.adjustment)
        sp_amount, sp_cycle, sp_warning = self.sp_charge(inputs, use_tenant_rate=False)
        if sp_amount == ZERO and other == ZERO:
            raise SkipUnit(NO_ADJUSTMENT)

        draft = BillDraft(
            bill_type=BillType.ADJUSTMENT,
            dates=dates,
            sp_assessment=sp_amount,
            sp_assessment_cycle=sp_cycle,
            other_charges=other,
            discounts=discounts,
            remarks=inputs.adjustment.remarks,
        )
        if sp_warning:
            draft.warnings.append(sp_warning)
        self._check_discounts(draft)
        return draft

    def _build_opening_balance(self, dates: BillingDates, inputs: UnitBillingInputs) -> BillDraft:
        amount = to_money(inputs.opening_amount)
        if amount <= ZERO:
            raise ValidationError(f"Opening balance must be positive, got {amount}")
        return BillDraft(
            bill_type=BillType.OPENING_BALANCE,
            dates=dates,
            other_charges=amount,
            remarks=inputs.remarks or "Opening balance",
        )


__all__ = [
    "BillGenerator",
    "BillDraft",
    "UnitBillingInputs",
    "SkipUnit",
    "MISSING_READINGS",
    "DISCOUNT_EXCEEDS_CHARGES",
    "ALREADY_EXISTS",
    "NO_ADJUSTMENT",
    "ADJUSTMENT_ALREADY_BILLED",
    "SP_ALREADY_APPLIED",
]
