"""Integration tests for recording and allocating payments."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from condoledger.models import AdvancePool, Bill, BillPayment, BillStatus, Payment
from condoledger.services import payment_service as payment_module
from condoledger.services.advance_ledger import AdvanceBalanceLedger
from condoledger.services.errors import (
    ConflictError,
    InsufficientAdvance,
    InvariantViolation,
    LockedResourceError,
    NotFoundError,
    ValidationError,
)
from condoledger.services.payment_service import PaymentInput, PaymentService

TENANT = "acacia-tower"
SEPTEMBER = date(2025, 9, 1)
OCTOBER = date(2025, 10, 1)


def payment(unit, amount, or_number="OR-1001", payment_date=date(2025, 11, 10), **breakdown):
    return PaymentInput(
        tenant_id=TENANT,
        unit_id=unit.id,
        total_amount=Decimal(amount),
        payment_date=payment_date,
        or_number=or_number,
        recorded_by="cashier",
        **{name: Decimal(value) for name, value in breakdown.items()},
    )


@pytest.fixture
def two_open_bills(unit_factory, bill_factory):
    unit = unit_factory()
    september = bill_factory(unit, SEPTEMBER, dues_amount="3000.00")
    october = bill_factory(unit, OCTOBER, dues_amount="1500.00")
    return unit, september, october


class TestRecordPayment:
    def test_settles_bills_oldest_first_and_splits_surplus(self, db_session, two_open_bills):
        unit, september, october = two_open_bills

        result = PaymentService(db_session).record_payment(payment(unit, "5000.00"))

        assert [a.bill_id for a in result.allocations] == [september.id, october.id]
        assert [a.amount for a in result.allocations] == [Decimal("3000.00"), Decimal("1500.00")]
        assert db_session.get(Bill, september.id).status == BillStatus.PAID
        assert db_session.get(Bill, october.id).status == BillStatus.PAID
        assert result.advance_credited.dues == Decimal("250.00")
        assert result.advance_credited.utilities == Decimal("250.00")

        balances = AdvanceBalanceLedger(db_session).balance(unit.id)
        assert balances == (Decimal("250.00"), Decimal("250.00"))

        stored = PaymentService(db_session).get_payment(result.payment_id)
        assert stored.advance_dues_credited + stored.advance_util_credited == Decimal("500.00")
        assert len(stored.allocations) == 2

    def test_partial_payment(self, db_session, two_open_bills):
        unit, september, october = two_open_bills

        result = PaymentService(db_session).record_payment(payment(unit, "1000.00"))

        assert len(result.allocations) == 1
        bill = db_session.get(Bill, september.id)
        assert bill.paid_amount == Decimal("1000.00")
        assert bill.balance == Decimal("2000.00")
        assert bill.status == BillStatus.PARTIAL
        assert db_session.get(Bill, october.id).status == BillStatus.UNPAID
        assert result.advance_credited == (Decimal("0.00"), Decimal("0.00"))

    def test_allocation_components(self, db_session, unit_factory, bill_factory):
        unit = unit_factory()
        bill = bill_factory(
            unit,
            OCTOBER,
            penalty_amount="100.00",
            sp_assessment="500.00",
            dues_amount="2000.00",
            water_amount="200.00",
            electric_amount="1000.00",
        )

        PaymentService(db_session).record_payment(payment(unit, "700.00"))

        allocation = db_session.execute(select(BillPayment).where(BillPayment.bill_id == bill.id)).scalar_one()
        assert allocation.penalty_amount == Decimal("100.00")
        assert allocation.sp_assessment_amount == Decimal("500.00")
        assert allocation.dues_amount == Decimal("100.00")
        assert allocation.electric_amount == Decimal("0.00")

    def test_explicit_advance_intent(self, db_session, unit_factory):
        unit = unit_factory()

        result = PaymentService(db_session).record_payment(
            payment(unit, "1000.00", advance_util_amount="1000.00")
        )

        assert result.allocations == []
        assert result.advance_credited == (Decimal("0.00"), Decimal("1000.00"))

    def test_dues_share_override(self, db_session, unit_factory):
        unit = unit_factory()

        result = PaymentService(db_session).record_payment(
            payment(unit, "100.01"), advance_dues_share=Decimal("0.7")
        )

        assert result.advance_credited == (Decimal("70.01"), Decimal("30.00"))


class TestPaymentTargets:
    def test_locked_target_rejected(self, db_session, two_open_bills):
        unit, september, _ = two_open_bills
        september.is_locked = True
        db_session.commit()

        with pytest.raises(LockedResourceError):
            PaymentService(db_session).record_payment(payment(unit, "500.00"), target_bill_ids=[september.id])

    def test_default_skips_locked_bills(self, db_session, two_open_bills):
        unit, september, october = two_open_bills
        september.is_locked = True
        db_session.commit()

        result = PaymentService(db_session).record_payment(payment(unit, "500.00"))

        assert [a.bill_id for a in result.allocations] == [october.id]
        assert db_session.get(Bill, september.id).paid_amount == Decimal("0.00")

    def test_explicit_target(self, db_session, two_open_bills):
        unit, september, october = two_open_bills

        result = PaymentService(db_session).record_payment(payment(unit, "1500.00"), target_bill_ids=[october.id])

        assert [a.bill_id for a in result.allocations] == [october.id]
        assert db_session.get(Bill, september.id).status == BillStatus.UNPAID

    def test_unknown_target(self, db_session, two_open_bills):
        unit, _, _ = two_open_bills

        with pytest.raises(NotFoundError):
            PaymentService(db_session).record_payment(payment(unit, "500.00"), target_bill_ids=[9999])


class TestPaymentValidation:
    def test_breakdown_must_sum_to_total(self, db_session, two_open_bills):
        unit, _, _ = two_open_bills

        with pytest.raises(ValidationError):
            PaymentService(db_session).record_payment(
                payment(unit, "1000.00", dues_amount="600.00", water_amount="300.00")
            )

    @pytest.mark.parametrize("amount", ["0.00", "-50.00"])
    def test_non_positive_amount(self, db_session, two_open_bills, amount):
        unit, _, _ = two_open_bills

        with pytest.raises(ValidationError):
            PaymentService(db_session).record_payment(payment(unit, amount))

    @pytest.mark.parametrize("amount", ["NaN", "Infinity"])
    def test_non_finite_amount(self, db_session, two_open_bills, amount):
        unit, _, _ = two_open_bills

        with pytest.raises(ValidationError):
            PaymentService(db_session).record_payment(payment(unit, amount))

        assert db_session.execute(select(func.count(Payment.id))).scalar_one() == 0

    def test_non_finite_breakdown(self, db_session, two_open_bills):
        unit, _, _ = two_open_bills

        with pytest.raises(ValidationError):
            PaymentService(db_session).record_payment(payment(unit, "100.00", dues_amount="NaN"))

    def test_duplicate_or_number(self, db_session, two_open_bills):
        unit, _, _ = two_open_bills
        service = PaymentService(db_session)
        service.record_payment(payment(unit, "100.00", or_number="OR-7"))

        with pytest.raises(ConflictError):
            service.record_payment(payment(unit, "100.00", or_number="OR-7"))

        assert db_session.execute(select(func.count(Payment.id))).scalar_one() == 1

    def test_unknown_unit(self, db_session, unit_factory):
        unit_factory()
        missing = PaymentInput(
            tenant_id=TENANT, unit_id=9999, total_amount=Decimal("100.00"), payment_date=date(2025, 11, 10)
        )

        with pytest.raises(NotFoundError):
            PaymentService(db_session).record_payment(missing)

    def test_invariant_failure_rolls_back(self, db_session, two_open_bills, monkeypatch):
        unit, september, _ = two_open_bills

        def fail(_payment):
            raise InvariantViolation("forced")

        monkeypatch.setattr(payment_module, "check_payment", fail)

        with pytest.raises(InvariantViolation):
            PaymentService(db_session).record_payment(payment(unit, "5000.00"))

        assert db_session.execute(select(func.count(Payment.id))).scalar_one() == 0
        assert db_session.get(Bill, september.id).paid_amount == Decimal("0.00")
        assert AdvanceBalanceLedger(db_session).balance(unit.id) == (Decimal("0.00"), Decimal("0.00"))


class TestAdvanceLedger:
    def test_credit_and_debit(self, db_session, unit_factory):
        unit = unit_factory()
        ledger = AdvanceBalanceLedger(db_session, actor="admin")

        assert ledger.credit(unit.id, AdvancePool.DUES, Decimal("500.00")) == Decimal("500.00")
        assert ledger.debit(unit.id, AdvancePool.DUES, Decimal("200.00")) == Decimal("300.00")
        assert ledger.balance(unit.id) == (Decimal("300.00"), Decimal("0.00"))
        assert ledger.balance(unit.id).for_pool(AdvancePool.DUES) == Decimal("300.00")

    def test_debit_beyond_balance(self, db_session, unit_factory):
        unit = unit_factory()
        ledger = AdvanceBalanceLedger(db_session)
        ledger.credit(unit.id, AdvancePool.UTILITIES, Decimal("100.00"))

        with pytest.raises(InsufficientAdvance):
            ledger.debit(unit.id, AdvancePool.UTILITIES, Decimal("100.01"))

    def test_debit_without_pool(self, db_session, unit_factory):
        unit = unit_factory()

        with pytest.raises(InsufficientAdvance):
            AdvanceBalanceLedger(db_session).debit(unit.id, AdvancePool.DUES, Decimal("1.00"))

    def test_non_positive_amount(self, db_session, unit_factory):
        unit = unit_factory()

        with pytest.raises(ValidationError):
            AdvanceBalanceLedger(db_session).credit(unit.id, AdvancePool.DUES, Decimal("0"))

    def test_non_finite_amount(self, db_session, unit_factory):
        unit = unit_factory()

        with pytest.raises(ValidationError):
            AdvanceBalanceLedger(db_session).credit(unit.id, AdvancePool.DUES, Decimal("NaN"))

    def test_unknown_unit(self, db_session):
        with pytest.raises(NotFoundError):
            AdvanceBalanceLedger(db_session).credit(9999, AdvancePool.DUES, Decimal("10.00"))
