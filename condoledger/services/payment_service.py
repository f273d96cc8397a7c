"""Payment recording.

One payment is one transaction: the Payment row, its BillPayment
allocations, the bill updates, the advance ledger credit and the audit
entry are committed together or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from condoledger.config import settings
from condoledger.models.advance_balance import AdvancePool
from condoledger.models.bill import Bill
from condoledger.models.bill_payment import ALLOCATION_FIELDS, BillPayment
from condoledger.models.payment import Payment, PaymentStatus
from condoledger.models.unit import Unit
from condoledger.money import ZERO, money_sum, to_money
from condoledger.services.advance_ledger import AdvanceBalanceLedger, AdvanceBalances
from condoledger.services.audit_service import AuditService
from condoledger.services.errors import (
    ConflictError,
    LockedResourceError,
    NotFoundError,
    ValidationError,
)
from condoledger.services.invariants import check_bill, check_payment
from condoledger.services.payment_allocator import PaymentAllocator, sort_bills

logger = logging.getLogger(__name__)

BREAKDOWN_FIELDS = (
    "electric_amount",
    "water_amount",
    "dues_amount",
    "penalty_amount",
    "sp_assessment_amount",
    "advance_dues_amount",
    "advance_util_amount",
    "other_advance_amount",
)


@dataclass
class PaymentInput:
    """A payment as entered by the cashier.

    Breakdown fields are optional; when any is given they must sum to
    ``total_amount``.
    """

    tenant_id: str
    unit_id: int
    total_amount: Decimal
    payment_date: date
    or_number: str | None = None
    payment_method: str = "CASH"
    reference_number: str | None = None
    electric_amount: Decimal | None = None
    water_amount: Decimal | None = None
    dues_amount: Decimal | None = None
    penalty_amount: Decimal | None = None
    sp_assessment_amount: Decimal | None = None
    advance_dues_amount: Decimal | None = None
    advance_util_amount: Decimal | None = None
    other_advance_amount: Decimal | None = None
    recorded_by: str | None = None
    remarks: str | None = None

    def breakdown(self) -> dict[str, Decimal]:
        """Given breakdown fields as money (missing ones omitted)."""
        return {
            name: to_money(getattr(self, name))
            for name in BREAKDOWN_FIELDS
            if getattr(self, name) is not None
        }


class AllocationSummary(NamedTuple):
    """How much of the payment went to one bill."""

    bill_id: int
    bill_number: str
    amount: Decimal
    components: dict[str, Decimal]
    balance: Decimal
    status: str


class PaymentResult(NamedTuple):
    """Outcome of recording a payment."""

    payment_id: int
    allocations: list[AllocationSummary]
    advance_credited: AdvanceBalances


class PaymentService:
    """Record payments against a unit's open bills."""

    def __init__(self, db: Session):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db
        self.allocator = PaymentAllocator()

    def record_payment(
        self,
        payment_input: PaymentInput,
        target_bill_ids: Iterable[int] | None = None,
        advance_dues_share: Decimal | None = None,
    ) -> PaymentResult:
        """Record a payment and allocate it.

        Args:
            payment_input: Payment details
            target_bill_ids: Restrict allocation to these bills (default:
                every open unlocked bill of the unit, oldest first)
            advance_dues_share: Share of an unassigned surplus credited to
                advance dues (default: settings.advance_dues_share)

        Returns:
            PaymentResult with the payment id, per-bill allocations and the
            advance credited

        Raises:
            ValidationError: If amounts are invalid or the breakdown does not
                sum to the total
            NotFoundError: If the unit or a target bill does not exist
            LockedResourceError: If a target bill is locked
            ConflictError: If the OR number is already used by the tenant
        """
        total, breakdown = self._validate(payment_input)
        dues_share = self._dues_share(advance_dues_share)

        try:
            unit = self.db.get(Unit, payment_input.unit_id)
            if unit is None or unit.tenant_id != payment_input.tenant_id:
                raise NotFoundError(
                    f"Unit {payment_input.unit_id} not found for tenant {payment_input.tenant_id}"
                )

            if payment_input.or_number:
                self._check_or_number(payment_input.tenant_id, payment_input.or_number)

            bills = self._target_bills(unit, target_bill_ids)
            plan = self.allocator.allocate(total, bills)

            payment = Payment(
                tenant_id=payment_input.tenant_id,
                unit_id=unit.id,
                or_number=payment_input.or_number,
                payment_date=payment_input.payment_date,
                payment_method=payment_input.payment_method,
                reference_number=payment_input.reference_number,
                total_amount=total,
                status=PaymentStatus.CONFIRMED,
                recorded_by=payment_input.recorded_by,
                remarks=payment_input.remarks,
                **{name: breakdown.get(name, ZERO) for name in BREAKDOWN_FIELDS},
            )
            self.db.add(payment)

            summaries = []
            for planned in plan.allocations:
                bill = planned.bill
                allocation = BillPayment(
                    payment=payment,
                    bill=bill,
                    total_amount=planned.total,
                    **{ALLOCATION_FIELDS[name]: amount for name, amount in planned.components.items()},
                )
                self.db.add(allocation)
                bill.paid_amount = to_money(bill.paid_amount) + planned.total
                bill.refresh_balance()
                summaries.append(
                    AllocationSummary(
                        bill_id=bill.id,
                        bill_number=bill.bill_number,
                        amount=planned.total,
                        components=dict(planned.components),
                        balance=to_money(bill.balance),
                        status=bill.status.value,
                    )
                )

            dues_credit, util_credit = self.allocator.split_surplus(
                plan.surplus,
                dues_intent=breakdown.get("advance_dues_amount", ZERO)
                + breakdown.get("other_advance_amount", ZERO),
                util_intent=breakdown.get("advance_util_amount", ZERO),
                dues_share=dues_share,
            )
            payment.advance_dues_credited = dues_credit
            payment.advance_util_credited = util_credit

            self.db.flush()

            ledger = AdvanceBalanceLedger(self.db, actor=payment_input.recorded_by)
            reason = f"payment {payment.or_number or payment.id}"
            if dues_credit > ZERO:
                ledger.credit(unit.id, AdvancePool.DUES, dues_credit, reason=reason)
            if util_credit > ZERO:
                ledger.credit(unit.id, AdvancePool.UTILITIES, util_credit, reason=reason)

            check_payment(payment)
            for planned in plan.allocations:
                check_bill(planned.bill)

            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "create",
                actor=payment_input.recorded_by,
                changes={
                    "or_number": payment.or_number,
                    "total_amount": str(total),
                    "bills": [summary.bill_number for summary in summaries],
                    "advance_dues_credited": str(dues_credit),
                    "advance_util_credited": str(util_credit),
                },
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error recording payment {payment_input.or_number}: {e}")
            raise ConflictError(
                f"Payment conflicts with an existing record (OR# {payment_input.or_number})"
            ) from e
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Recorded payment {payment.or_number or payment.id} of {total} for unit "
            f"{unit.unit_number}: {len(summaries)} bill(s), advance {dues_credit}/{util_credit}"
        )
        return PaymentResult(
            payment_id=payment.id,
            allocations=summaries,
            advance_credited=AdvanceBalances(dues=dues_credit, utilities=util_credit),
        )

    def get_payment(self, payment_id: int) -> Payment:
        """Load a payment with its allocations.

        Raises:
            NotFoundError: If the payment does not exist
        """
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .options(selectinload(Payment.allocations))
        )
        payment = self.db.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    # Helpers

    @staticmethod
    def _validate(payment_input: PaymentInput) -> tuple[Decimal, dict[str, Decimal]]:
        try:
            total = to_money(payment_input.total_amount)
            breakdown = payment_input.breakdown()
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ValidationError(f"Invalid payment amount: {e}") from e

        if total <= ZERO:
            raise ValidationError(f"Payment amount must be positive, got {total}")
        negative = [name for name, amount in breakdown.items() if amount < ZERO]
        if negative:
            raise ValidationError("Payment breakdown cannot be negative", details={"fields": negative})
        if breakdown and money_sum(breakdown.values()) != total:
            raise ValidationError(
                f"Payment breakdown sums to {money_sum(breakdown.values())}, not {total}",
                details={"breakdown": {name: str(amount) for name, amount in breakdown.items()}},
            )
        if payment_input.payment_date is None:
            raise ValidationError("Payment date is required")
        return total, breakdown

    @staticmethod
    def _dues_share(override: Decimal | None) -> Decimal:
        try:
            share = Decimal(str(override)) if override is not None else settings.advance_dues_share
        except ArithmeticError as e:
            raise ValidationError(f"Invalid advance dues share {override!r}") from e
        if not share.is_finite() or share < 0 or share > 1:
            raise ValidationError(f"Advance dues share must be between 0 and 1, got {share}")
        return share

    def _check_or_number(self, tenant_id: str, or_number: str) -> None:
        stmt = select(Payment.id).where(Payment.tenant_id == tenant_id, Payment.or_number == or_number)
        if self.db.execute(stmt).first() is not None:
            raise ConflictError(
                f"OR# {or_number} is already recorded for tenant {tenant_id}",
                details={"or_number": or_number},
            )

    def _target_bills(self, unit: Unit, target_bill_ids: Iterable[int] | None) -> list[Bill]:
        stmt = select(Bill).where(Bill.unit_id == unit.id).options(selectinload(Bill.payments))

        if target_bill_ids is None:
            stmt = stmt.where(Bill.is_locked.is_(False), Bill.balance > 0)
            return sort_bills(list(self.db.execute(stmt.with_for_update()).scalars()))

        wanted = set(target_bill_ids)
        bills = list(self.db.execute(stmt.where(Bill.id.in_(wanted)).with_for_update()).scalars())
        missing = wanted - {bill.id for bill in bills}
        if missing:
            raise NotFoundError(
                f"Bills not found for unit {unit.unit_number}: {sorted(missing)}",
                details={"bill_ids": sorted(missing)},
            )
        locked = [bill.bill_number for bill in bills if bill.is_locked]
        if locked:
            raise LockedResourceError(
                f"Locked bills cannot receive payments: {', '.join(locked)}",
                details={"bill_numbers": locked},
            )
        return sort_bills(bills)


__all__ = ["PaymentService", "PaymentInput", "PaymentResult", "AllocationSummary", "BREAKDOWN_FIELDS"]
