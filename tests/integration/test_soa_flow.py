"""Integration tests for Statement-of-Account batches."""

from datetime import date
from decimal import Decimal

import pytest

from condoledger.models import Bill, SOABatch, SOABatchStatus, SOAFilterType
from condoledger.services.errors import (
    ConflictError,
    LockedResourceError,
    NotFoundError,
    ValidationError,
)
from condoledger.services.payment_service import PaymentInput, PaymentService
from condoledger.services.soa_service import SOAService

TENANT = "acacia-tower"
AS_OF = date(2025, 11, 15)


def pay(db_session, unit, bill, amount, payment_date, or_number):
    PaymentService(db_session).record_payment(
        PaymentInput(
            tenant_id=TENANT,
            unit_id=unit.id,
            total_amount=Decimal(amount),
            payment_date=payment_date,
            or_number=or_number,
        ),
        target_bill_ids=[bill.id],
    )


@pytest.fixture
def statement_history(db_session, unit_factory, bill_factory):
    """Four months of bills for unit 101; October partly paid."""
    unit = unit_factory("101", floor_level="1F")
    bills = {
        "aug": bill_factory(unit, date(2025, 8, 1), dues_amount="1000.00"),
        "sep": bill_factory(unit, date(2025, 9, 1), dues_amount="2000.00"),
        "oct": bill_factory(unit, date(2025, 10, 1), dues_amount="1500.00"),
        "nov": bill_factory(unit, date(2025, 11, 1), dues_amount="3000.00"),
    }
    pay(db_session, unit, bills["oct"], "500.00", date(2025, 10, 20), "OR-500")
    return unit, bills


class TestGenerateBatch:
    def test_aging_and_balance(self, db_session, statement_history):
        batch = SOAService(db_session).generate_batch(TENANT, AS_OF, actor="admin")

        assert batch.batch_number == "SOA-2025-11-001"
        assert batch.status == SOABatchStatus.GENERATED
        assert batch.total_units == 1

        document = batch.documents[0]
        assert document.over_90 == Decimal("1000.00")
        assert document.days_61_90 == Decimal("2000.00")
        assert document.days_31_60 == Decimal("1000.00")
        assert document.current == Decimal("0.00")
        assert document.current_balance == Decimal("7000.00")
        assert document.total_billed == Decimal("7500.00")
        assert document.total_paid == Decimal("500.00")
        assert len(document.bills) == 4

    def test_snapshot_contents(self, db_session, statement_history):
        batch = SOAService(db_session).generate_batch(TENANT, AS_OF)

        data = batch.documents[0].soa_data
        assert data["billing_month"] == "2025-11"
        assert data["summary"]["current_balance"] == "7000.00"
        assert data["summary"]["current_month_due"] == "3000.00"
        assert [line["aging_bucket"] for line in data["bills"]] == [
            "over_90",
            "days_61_90",
            "days_31_60",
            None,
        ]
        assert "7,000.00" in data["display"]["current_balance"]
        # Running balance ends at what was billed minus what was paid
        assert data["transactions"][-1]["balance"] == "7000.00"
        assert [t["type"] for t in data["transactions"]].count("PAYMENT") == 1

    def test_payment_after_as_of_excluded(self, db_session, statement_history):
        unit, bills = statement_history
        pay(db_session, unit, bills["nov"], "1000.00", date(2025, 11, 20), "OR-501")

        document = SOAService(db_session).generate_batch(TENANT, AS_OF).documents[0]

        assert document.total_paid == Decimal("500.00")
        assert document.current_balance == Decimal("7000.00")

    def test_later_bills_excluded(self, db_session, statement_history, bill_factory):
        unit, _ = statement_history
        bill_factory(unit, date(2025, 12, 1), dues_amount="3000.00")

        document = SOAService(db_session).generate_batch(TENANT, AS_OF).documents[0]

        assert document.total_billed == Decimal("7500.00")

    def test_batch_numbers_increment(self, db_session, statement_history):
        service = SOAService(db_session)

        first = service.generate_batch(TENANT, AS_OF)
        second = service.generate_batch(TENANT, AS_OF)

        assert first.batch_number == "SOA-2025-11-001"
        assert second.batch_number == "SOA-2025-11-002"

    def test_deleted_batch_number_not_reused(self, db_session, statement_history):
        service = SOAService(db_session)
        first = service.generate_batch(TENANT, AS_OF)
        service.delete_batch(first.id)

        second = service.generate_batch(TENANT, AS_OF)

        assert second.batch_number == "SOA-2025-11-002"

    def test_counter_starts_after_existing_batches(self, db_session, statement_history):
        db_session.add(
            SOABatch(
                batch_number="SOA-2025-11-007",
                tenant_id=TENANT,
                as_of_date=AS_OF,
                billing_month=date(2025, 11, 1),
            )
        )
        db_session.commit()

        batch = SOAService(db_session).generate_batch(TENANT, AS_OF)

        assert batch.batch_number == "SOA-2025-11-008"

    def test_floor_filter(self, db_session, statement_history, unit_factory):
        unit_factory("201", floor_level="2F")
        service = SOAService(db_session)

        batch = service.generate_batch(TENANT, AS_OF, filter_type=SOAFilterType.FLOOR, filter_value="2F")

        assert [d.unit_number for d in batch.documents] == ["201"]
        assert batch.documents[0].current_balance == Decimal("0.00")

    def test_filter_requires_value(self, db_session, statement_history):
        with pytest.raises(ValidationError):
            SOAService(db_session).generate_batch(TENANT, AS_OF, filter_type=SOAFilterType.FLOOR)

    def test_no_matching_units(self, db_session, statement_history):
        with pytest.raises(NotFoundError):
            SOAService(db_session).generate_batch(
                TENANT, AS_OF, filter_type=SOAFilterType.UNIT, filter_value="999"
            )


class TestDistributeBatch:
    def test_distribute_locks_bills(self, db_session, statement_history):
        _, bills = statement_history
        service = SOAService(db_session)
        batch = service.generate_batch(TENANT, AS_OF)

        result = service.distribute_batch(batch.id, actor="admin")

        assert result.bills_locked == 4
        assert service.get_batch(batch.id).status == SOABatchStatus.DISTRIBUTED
        for bill in bills.values():
            locked = db_session.get(Bill, bill.id)
            assert locked.is_locked
            assert locked.locked_by == "admin"

    def test_distribute_twice_locked(self, db_session, statement_history):
        service = SOAService(db_session)
        batch = service.generate_batch(TENANT, AS_OF)
        service.distribute_batch(batch.id)

        with pytest.raises(LockedResourceError):
            service.distribute_batch(batch.id)

    def test_cancelled_batch_conflicts(self, db_session, statement_history):
        service = SOAService(db_session)
        batch = service.generate_batch(TENANT, AS_OF)
        batch.status = SOABatchStatus.CANCELLED
        db_session.commit()

        with pytest.raises(ConflictError):
            service.distribute_batch(batch.id)

        assert service.get_batch(batch.id).distributed_at is None

    def test_earlier_lock_stamp_kept(self, db_session, statement_history):
        _, bills = statement_history
        service = SOAService(db_session)
        first = service.generate_batch(TENANT, AS_OF)
        second = service.generate_batch(TENANT, AS_OF)
        service.distribute_batch(first.id, actor="first")

        service.distribute_batch(second.id, actor="second")

        assert db_session.get(Bill, bills["aug"].id).locked_by == "first"

    def test_locked_bills_reject_payment_targets(self, db_session, statement_history):
        unit, bills = statement_history
        service = SOAService(db_session)
        service.distribute_batch(service.generate_batch(TENANT, AS_OF).id)

        with pytest.raises(LockedResourceError):
            pay(db_session, unit, bills["nov"], "100.00", date(2025, 11, 16), "OR-502")


class TestDeleteBatch:
    def test_delete_generated_batch(self, db_session, statement_history):
        service = SOAService(db_session)
        batch = service.generate_batch(TENANT, AS_OF)

        service.delete_batch(batch.id)

        with pytest.raises(NotFoundError):
            service.get_batch(batch.id)

    def test_distributed_batch_cannot_be_deleted(self, db_session, statement_history):
        service = SOAService(db_session)
        batch = service.generate_batch(TENANT, AS_OF)
        service.distribute_batch(batch.id)

        with pytest.raises(LockedResourceError):
            service.delete_batch(batch.id)
