"""Billing service: bill generation, deletion, opening balances and adjustments.

Each public method is one transaction: it commits on success and rolls back
and re-raises on any error, so a rejected call leaves no partial writes.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from condoledger.models.advance_balance import AdvancePool
from condoledger.models.bill import OPEN_STATUSES, Bill, BillStatus, BillType
from condoledger.models.billing_adjustment import BillingAdjustment
from condoledger.models.meter_reading import MeterReading, MeterType
from condoledger.models.unit import Unit
from condoledger.money import ZERO, to_money
from condoledger.services.advance_ledger import AdvanceBalanceLedger, AdvanceBalances
from condoledger.services.audit_service import AuditService
from condoledger.services.bill_generator import (
    ADJUSTMENT_ALREADY_BILLED,
    ALREADY_EXISTS,
    BillDraft,
    BillGenerator,
    SkipUnit,
    UnitBillingInputs,
)
from condoledger.services.billing_period import month_label, parse_billing_month, shift_month
from condoledger.services.errors import (
    ConflictError,
    LockedResourceError,
    NotFoundError,
    ValidationError,
)
from condoledger.services.invariants import check_bill, input_money
from condoledger.services.rate_schedule import rate_for

logger = logging.getLogger(__name__)

BILL_NUMBER_PREFIXES = {
    BillType.REGULAR: "MT",
    BillType.ADJUSTMENT: "ADJ",
}


class BillSummary(NamedTuple):
    """One generated (or previewed) bill."""

    unit_id: int
    unit_number: str
    bill_id: int | None
    bill_number: str | None
    total_amount: Decimal
    past_dues: Decimal
    amount_due: Decimal
    warnings: tuple[str, ...] = ()


class SkippedUnit(NamedTuple):
    """A unit the run did not bill, and why."""

    unit_id: int
    unit_number: str
    reason: str


class GenerationResult(NamedTuple):
    """Outcome of a generation run."""

    created: list[BillSummary]
    skipped: list[SkippedUnit]
    preview: bool = False


class BillingService:
    """Bill lifecycle operations for one tenant at a time."""

    def __init__(self, db: Session):
        """Initialize billing service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # Generation

    def generate_bills(
        self,
        tenant_id: str,
        period: str | date,
        unit_ids: Iterable[int] | None = None,
        regenerate: bool = False,
        actor: str | None = None,
        bill_type: BillType = BillType.REGULAR,
        preview: bool = False,
    ) -> GenerationResult:
        """Generate the bills of a billing month.

        Args:
            tenant_id: Tenant to bill
            period: Billing month ("YYYY-MM" or any date in the month)
            unit_ids: Restrict the run to these units (default: all active)
            regenerate: Replace existing bills that have no payments
            actor: Operator recorded on the bills and audit entries
            bill_type: REGULAR or ADJUSTMENT
            preview: Compute summaries without writing anything

        Returns:
            GenerationResult with created bill summaries and skipped units

        Raises:
            ValidationError: If the period or bill type is invalid
            ConfigurationMissing: If the tenant has no rate configuration
            LockedResourceError: If a bill to be replaced is locked
            ConflictError: If regenerate would replace a bill with payments, or
                a concurrent run wrote the same unit's bill first
        """
        if bill_type == BillType.OPENING_BALANCE:
            raise ValidationError("Opening balances are recorded with record_opening_balance")

        month = parse_billing_month(period)
        try:
            schedule = rate_for(self.db, tenant_id, month)
            units = self._units(tenant_id, unit_ids)
            existing = self._existing_bills(tenant_id, month, bill_type, [u.id for u in units])
            self._check_replaceable(existing.values(), regenerate)

            generator = BillGenerator(schedule)
            ledger = AdvanceBalanceLedger(self.db, actor=actor)
            readings = self._readings([u.id for u in units], shift_month(month, -1))
            other_type = BillType.ADJUSTMENT if bill_type == BillType.REGULAR else BillType.REGULAR
            other_bills = self._existing_bills(tenant_id, month, other_type, [u.id for u in units])

            created: list[BillSummary] = []
            skipped: list[SkippedUnit] = []

            for unit in units:
                current = existing.get(unit.id)
                if current is not None and not regenerate:
                    skipped.append(SkippedUnit(unit.id, unit.unit_number, ALREADY_EXISTS))
                    continue

                adjustment = self._adjustment(unit.id, month)
                if unit.id in other_bills:
                    if bill_type == BillType.ADJUSTMENT:
                        skipped.append(
                            SkippedUnit(unit.id, unit.unit_number, ADJUSTMENT_ALREADY_BILLED)
                        )
                        continue
                    # The adjustment was already billed out of cycle
                    adjustment = None

                advance = ledger.balance(unit.id)
                if current is not None:
                    advance = AdvanceBalances(
                        dues=advance.dues + to_money(current.advance_dues_applied),
                        utilities=advance.utilities + to_money(current.advance_util_applied),
                    )

                inputs = UnitBillingInputs(
                    unit=unit,
                    electric_consumption=readings.get((unit.id, MeterType.ELECTRIC)),
                    water_consumption=readings.get((unit.id, MeterType.WATER)),
                    prior_open_bills=self._prior_open_bills(unit.id, month),
                    adjustment=adjustment,
                    advance=advance,
                    sp_cycles_billed=self._sp_cycles_billed(unit.id, exclude=current),
                )

                try:
                    draft = generator.build(bill_type, month, inputs)
                except SkipUnit as skip:
                    logger.info("Skipping unit %s for %s: %s", unit.unit_number, month_label(month), skip.reason)
                    skipped.append(SkippedUnit(unit.id, unit.unit_number, skip.reason))
                    continue

                if preview:
                    created.append(self._summary(unit, None, draft))
                    continue

                if current is not None:
                    self._restore_advance(ledger, current, reason="regenerate")
                    bill = current
                else:
                    bill = Bill(
                        tenant_id=tenant_id,
                        unit_id=unit.id,
                        bill_number=self._bill_number(bill_type, month, unit),
                    )
                    self.db.add(bill)

                draft.apply_to(bill)
                bill.generated_by = actor
                self._debit_advance(ledger, unit.id, draft)
                self.db.flush()
                check_bill(bill)

                AuditService.log(
                    self.db,
                    "bill",
                    bill.id,
                    "regenerate" if current is not None else "create",
                    actor=actor,
                    changes={"bill_number": bill.bill_number, "total_amount": str(bill.total_amount)},
                )
                created.append(self._summary(unit, bill, draft))

            if preview:
                self.db.rollback()
            else:
                self.db.commit()
                logger.info(
                    f"Generated {len(created)} {bill_type.value} bills for {tenant_id} "
                    f"{month_label(month)} ({len(skipped)} skipped)"
                )
            return GenerationResult(created=created, skipped=skipped, preview=preview)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error generating bills for {tenant_id} {month_label(month)}: {e}")
            raise ConflictError(
                f"Bills for {month_label(month)} were written by a concurrent run, retry the request"
            ) from e
        except Exception:
            self.db.rollback()
            raise

    def delete_bills_for_period(self, tenant_id: str, period: str | date, actor: str | None = None) -> int:
        """Delete the REGULAR and ADJUSTMENT bills of a billing month.

        All-or-nothing: if any bill of the month is locked or has payments,
        nothing is deleted. Advance applied on deleted bills goes back to the
        unit's ledger.

        Returns:
            Number of bills deleted

        Raises:
            LockedResourceError: If any bill is locked
            ConflictError: If no bill is locked but some have payments

        Either error's details list every blocking bill with its reason.
        """
        month = parse_billing_month(period)
        try:
            stmt = (
                select(Bill)
                .where(
                    Bill.tenant_id == tenant_id,
                    Bill.billing_month == month,
                    Bill.bill_type != BillType.OPENING_BALANCE,
                )
                .options(selectinload(Bill.payments))
                .order_by(Bill.bill_number)
                .with_for_update()
            )
            bills = list(self.db.execute(stmt).scalars())

            blocked = []
            for b in bills:
                if b.is_locked:
                    blocked.append({"bill_number": b.bill_number, "reason": "locked"})
                if b.payments or to_money(b.paid_amount) > ZERO:
                    blocked.append(
                        {
                            "bill_number": b.bill_number,
                            "reason": "has_payments",
                            "paid_amount": str(b.paid_amount),
                        }
                    )
            if blocked:
                # Any locked bill makes the whole request 423
                error = (
                    LockedResourceError
                    if any(item["reason"] == "locked" for item in blocked)
                    else ConflictError
                )
                raise error(
                    f"{len({item['bill_number'] for item in blocked})} bill(s) for "
                    f"{month_label(month)} are locked or have payments",
                    details=blocked,
                )

            ledger = AdvanceBalanceLedger(self.db, actor=actor)
            for bill in bills:
                self._restore_advance(ledger, bill, reason="delete")
                AuditService.log(
                    self.db,
                    "bill",
                    bill.id,
                    "delete",
                    actor=actor,
                    changes={"bill_number": bill.bill_number, "total_amount": str(bill.total_amount)},
                )
                self.db.delete(bill)

            self.db.commit()
            logger.info(f"Deleted {len(bills)} bills for {tenant_id} {month_label(month)}")
            return len(bills)
        except Exception:
            self.db.rollback()
            raise

    # Opening balances and adjustments

    def record_opening_balance(
        self,
        tenant_id: str,
        unit_id: int,
        amount,
        remarks: str | None = None,
        period: str | date | None = None,
        actor: str | None = None,
    ) -> Bill:
        """Create or update a unit's opening balance bill.

        Args:
            amount: Debt carried over from before go-live
            period: Billing month to file it under (default: last month)

        Raises:
            LockedResourceError: If the existing opening balance is locked
            ConflictError: If the new amount is below what was already paid
        """
        amount = input_money(amount, "opening balance")
        try:
            unit = self._unit(tenant_id, unit_id)
            stmt = (
                select(Bill)
                .where(Bill.unit_id == unit.id, Bill.bill_type == BillType.OPENING_BALANCE)
                .with_for_update()
            )
            bill = self.db.execute(stmt).scalar_one_or_none()

            if bill is not None:
                if bill.is_locked:
                    raise LockedResourceError(f"Opening balance {bill.bill_number} is locked")
                if amount < to_money(bill.paid_amount):
                    raise ConflictError(
                        f"Opening balance {amount} is below the {bill.paid_amount} already paid",
                        details={"bill_number": bill.bill_number, "paid_amount": str(bill.paid_amount)},
                    )

            if period is not None:
                month = parse_billing_month(period)
            elif bill is not None:
                month = bill.billing_month
            else:
                month = shift_month(date.today().replace(day=1), -1)

            schedule = rate_for(self.db, tenant_id, month)
            draft = BillGenerator(schedule).build(
                BillType.OPENING_BALANCE,
                month,
                UnitBillingInputs(unit=unit, opening_amount=amount, remarks=remarks),
            )

            action = "update"
            if bill is None:
                action = "create"
                bill = Bill(tenant_id=tenant_id, unit_id=unit.id, bill_number=f"OB-{unit.unit_number}")
                self.db.add(bill)
                draft.apply_to(bill)
            else:
                bill.billing_month = draft.dates.billing_month
                bill.billing_period_start = draft.dates.period_start
                bill.billing_period_end = draft.dates.period_end
                bill.statement_date = draft.dates.statement_date
                bill.due_date = draft.dates.due_date
                bill.other_charges = amount
                bill.total_amount = draft.total_amount
                bill.remarks = draft.remarks
                bill.refresh_balance()

            bill.generated_by = actor
            self.db.flush()
            check_bill(bill)
            AuditService.log(
                self.db,
                "bill",
                bill.id,
                f"opening_balance_{action}",
                actor=actor,
                changes={"amount": str(amount)},
            )
            self.db.commit()
            self.db.refresh(bill)
            logger.info(f"Recorded opening balance {amount} for unit {unit.unit_number}")
            return bill
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error recording opening balance for unit {unit_id}: {e}")
            raise ConflictError(
                f"Opening balance of unit {unit_id} was written by a concurrent request"
            ) from e
        except Exception:
            self.db.rollback()
            raise

    def set_adjustment(
        self,
        tenant_id: str,
        unit_id: int,
        period: str | date,
        sp_assessment=None,
        discounts=ZERO,
        other_charges=ZERO,
        remarks: str | None = None,
        actor: str | None = None,
    ) -> BillingAdjustment:
        """Create or replace the adjustment of a unit for a billing month.

        Raises:
            ValidationError: If any amount is negative
        """
        month = parse_billing_month(period)
        sp = input_money(sp_assessment, "sp_assessment") if sp_assessment is not None else None
        discounts = input_money(discounts, "discounts")
        other_charges = input_money(other_charges, "other_charges")
        if discounts < 0 or other_charges < 0 or (sp is not None and sp < 0):
            raise ValidationError("Adjustment amounts cannot be negative")

        try:
            unit = self._unit(tenant_id, unit_id)
            adjustment = self._adjustment(unit.id, month)
            if adjustment is None:
                adjustment = BillingAdjustment(tenant_id=tenant_id, unit_id=unit.id, billing_period=month)
                self.db.add(adjustment)

            adjustment.sp_assessment = sp
            adjustment.discounts = discounts
            adjustment.other_charges = other_charges
            adjustment.remarks = remarks
            self.db.flush()

            AuditService.log(
                self.db,
                "billing_adjustment",
                adjustment.id,
                "set",
                actor=actor,
                changes={
                    "period": month_label(month),
                    "sp_assessment": str(sp) if sp is not None else None,
                    "discounts": str(discounts),
                    "other_charges": str(other_charges),
                },
            )
            self.db.commit()
            self.db.refresh(adjustment)
            return adjustment
        except Exception:
            self.db.rollback()
            raise

    def apply_sp_assessment(
        self, tenant_id: str, period: str | date, amount=None, actor: str | None = None
    ) -> int:
        """Set the SP assessment on every active unit's adjustment for a month.

        Args:
            amount: Override amount (default: the tenant SP rate)

        Returns:
            Number of units updated
        """
        month = parse_billing_month(period)
        try:
            if amount is None:
                amount = rate_for(self.db, tenant_id, month).sp_assessment_rate
            amount = input_money(amount, "sp_assessment")
            if amount <= ZERO:
                raise ValidationError(f"SP assessment must be positive, got {amount}")

            count = 0
            for unit in self._units(tenant_id, None):
                adjustment = self._adjustment(unit.id, month)
                if adjustment is None:
                    adjustment = BillingAdjustment(
                        tenant_id=tenant_id,
                        unit_id=unit.id,
                        billing_period=month,
                        discounts=ZERO,
                        other_charges=ZERO,
                    )
                    self.db.add(adjustment)
                adjustment.sp_assessment = amount
                count += 1

            self.db.flush()
            AuditService.log(
                self.db,
                "billing_adjustment",
                None,
                "apply_sp_assessment",
                actor=actor,
                changes={"tenant_id": tenant_id, "period": month_label(month), "amount": str(amount), "units": count},
            )
            self.db.commit()
            logger.info(f"Applied SP assessment {amount} to {count} units for {month_label(month)}")
            return count
        except Exception:
            self.db.rollback()
            raise

    def clear_sp_assessment(self, tenant_id: str, period: str | date, actor: str | None = None) -> int:
        """Remove SP assessment overrides for a month.

        Adjustments left with nothing in them are deleted.

        Returns:
            Number of adjustments cleared
        """
        month = parse_billing_month(period)
        try:
            stmt = select(BillingAdjustment).where(
                BillingAdjustment.tenant_id == tenant_id,
                BillingAdjustment.billing_period == month,
                BillingAdjustment.sp_assessment.is_not(None),
            )
            adjustments = list(self.db.execute(stmt).scalars())
            for adjustment in adjustments:
                adjustment.sp_assessment = None
                if (
                    to_money(adjustment.discounts) == ZERO
                    and to_money(adjustment.other_charges) == ZERO
                    and not adjustment.remarks
                ):
                    self.db.delete(adjustment)

            AuditService.log(
                self.db,
                "billing_adjustment",
                None,
                "clear_sp_assessment",
                actor=actor,
                changes={"tenant_id": tenant_id, "period": month_label(month), "cleared": len(adjustments)},
            )
            self.db.commit()
            return len(adjustments)
        except Exception:
            self.db.rollback()
            raise

    def refresh_overdue(self, tenant_id: str, as_of: date | None = None) -> int:
        """Mark unlocked UNPAID bills past their due date as OVERDUE.

        Returns:
            Number of bills marked overdue
        """
        as_of = as_of or date.today()
        try:
            stmt = select(Bill).where(
                Bill.tenant_id == tenant_id,
                Bill.status == BillStatus.UNPAID,
                Bill.is_locked.is_(False),
                Bill.due_date < as_of,
                Bill.balance > 0,
            )
            bills = list(self.db.execute(stmt).scalars())
            for bill in bills:
                bill.status = BillStatus.OVERDUE
            self.db.commit()
            if bills:
                logger.info(f"Marked {len(bills)} bills overdue for {tenant_id} as of {as_of}")
            return len(bills)
        except Exception:
            self.db.rollback()
            raise

    def past_dues(self, unit_id: int, period: str | date) -> Decimal:
        """Carry-forward balance of a unit before a billing month."""
        return BillGenerator.past_dues(self._prior_open_bills(unit_id, parse_billing_month(period)))

    # Helpers

    def _unit(self, tenant_id: str, unit_id: int) -> Unit:
        unit = self.db.get(Unit, unit_id)
        if unit is None or unit.tenant_id != tenant_id:
            raise NotFoundError(f"Unit {unit_id} not found for tenant {tenant_id}")
        return unit

    def _units(self, tenant_id: str, unit_ids: Iterable[int] | None) -> list[Unit]:
        stmt = select(Unit).where(Unit.tenant_id == tenant_id, Unit.is_active.is_(True))
        if unit_ids is not None:
            wanted = set(unit_ids)
            stmt = stmt.where(Unit.id.in_(wanted))
        units = list(self.db.execute(stmt.order_by(Unit.floor_level, Unit.unit_number)).scalars())
        if unit_ids is not None:
            missing = wanted - {unit.id for unit in units}
            if missing:
                raise NotFoundError(
                    f"Active units not found: {sorted(missing)}", details={"unit_ids": sorted(missing)}
                )
        return units

    def _existing_bills(
        self, tenant_id: str, month: date, bill_type: BillType, unit_ids: list[int]
    ) -> dict[int, Bill]:
        if not unit_ids:
            return {}
        stmt = (
            select(Bill)
            .where(
                Bill.tenant_id == tenant_id,
                Bill.billing_month == month,
                Bill.bill_type == bill_type,
                Bill.unit_id.in_(unit_ids),
            )
            .options(selectinload(Bill.payments))
            .with_for_update()
        )
        return {bill.unit_id: bill for bill in self.db.execute(stmt).scalars()}

    @staticmethod
    def _check_replaceable(bills: Iterable[Bill], regenerate: bool) -> None:
        bills = list(bills)
        locked = [bill.bill_number for bill in bills if bill.is_locked]
        if locked:
            raise LockedResourceError(
                f"Bills are locked and cannot be regenerated: {', '.join(locked)}",
                details={"bill_numbers": locked},
            )
        if not regenerate:
            return
        paid = [
            bill.bill_number
            for bill in bills
            if bill.payments or to_money(bill.paid_amount) > ZERO
        ]
        if paid:
            raise ConflictError(
                f"Bills with payments cannot be regenerated: {', '.join(paid)}",
                details={"bill_numbers": paid},
            )

    def _readings(self, unit_ids: list[int], reading_month: date) -> dict[tuple[int, MeterType], Decimal]:
        if not unit_ids:
            return {}
        stmt = select(MeterReading).where(
            MeterReading.unit_id.in_(unit_ids),
            MeterReading.billing_period == reading_month,
        )
        return {
            (reading.unit_id, reading.meter_type): Decimal(reading.consumption)
            for reading in self.db.execute(stmt).scalars()
        }

    def _adjustment(self, unit_id: int, month: date) -> BillingAdjustment | None:
        stmt = select(BillingAdjustment).where(
            BillingAdjustment.unit_id == unit_id,
            BillingAdjustment.billing_period == month,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _prior_open_bills(self, unit_id: int, month: date) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(
                Bill.unit_id == unit_id,
                Bill.billing_month < month,
                Bill.status.in_(OPEN_STATUSES),
                Bill.balance > 0,
            )
            .order_by(Bill.billing_month, Bill.bill_number)
        )
        return list(self.db.execute(stmt).scalars())

    def _sp_cycles_billed(self, unit_id: int, exclude: Bill | None = None) -> frozenset[str]:
        stmt = select(Bill).where(
            Bill.unit_id == unit_id,
            Bill.sp_assessment > 0,
            Bill.sp_assessment_cycle.is_not(None),
        )
        return frozenset(
            bill.sp_assessment_cycle
            for bill in self.db.execute(stmt).scalars()
            if exclude is None or bill.id != exclude.id
        )

    @staticmethod
    def _bill_number(bill_type: BillType, month: date, unit: Unit) -> str:
        """Number of a unit's bill, e.g. ``MT-202511-101``.

        (unit, month, type) is unique and unit numbers are unique per tenant,
        so concurrent runs never need a shared counter.
        """
        prefix = BILL_NUMBER_PREFIXES[bill_type]
        return f"{prefix}-{month.year:04d}{month.month:02d}-{unit.unit_number}"

    @staticmethod
    def _debit_advance(ledger: AdvanceBalanceLedger, unit_id: int, draft: BillDraft) -> None:
        if draft.advance_dues_applied > ZERO:
            ledger.debit(unit_id, AdvancePool.DUES, draft.advance_dues_applied, reason="bill")
        if draft.advance_util_applied > ZERO:
            ledger.debit(unit_id, AdvancePool.UTILITIES, draft.advance_util_applied, reason="bill")

    @staticmethod
    def _restore_advance(ledger: AdvanceBalanceLedger, bill: Bill, reason: str) -> None:
        if to_money(bill.advance_dues_applied) > ZERO:
            ledger.credit(bill.unit_id, AdvancePool.DUES, bill.advance_dues_applied, reason=reason)
        if to_money(bill.advance_util_applied) > ZERO:
            ledger.credit(bill.unit_id, AdvancePool.UTILITIES, bill.advance_util_applied, reason=reason)

    @staticmethod
    def _summary(unit: Unit, bill: Bill | None, draft: BillDraft) -> BillSummary:
        return BillSummary(
            unit_id=unit.id,
            unit_number=unit.unit_number,
            bill_id=bill.id if bill is not None else None,
            bill_number=bill.bill_number if bill is not None else None,
            total_amount=draft.total_amount,
            past_dues=draft.past_dues,
            amount_due=draft.total_amount + draft.past_dues,
            warnings=tuple(draft.warnings),
        )


__all__ = ["BillingService", "GenerationResult", "BillSummary", "SkippedUnit"]
