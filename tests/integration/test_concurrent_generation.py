"""Integration tests for generation runs interleaved with another session.

These use a file-backed database so each session holds its own connection
and a commit from one is visible to the other.
"""

from datetime import date

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from condoledger.models import Base, Bill, SOABatch
from condoledger.services.bill_generator import BillGenerator
from condoledger.services.billing_service import BillingService
from condoledger.services.errors import ConflictError
from condoledger.services.soa_aggregator import SOAAggregator
from condoledger.services.soa_service import SOAService

TENANT = "acacia-tower"
OCTOBER = date(2025, 10, 1)


@pytest.fixture
def db_engine(tmp_path):
    """File-backed engine; overrides the in-memory one from conftest."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def other_session(db_engine):
    """A second, independent session on the same database."""
    session = sessionmaker(bind=db_engine)()
    yield session
    session.close()


def interleave(monkeypatch, cls, name, action):
    """Run ``action`` once, the first time ``cls.name`` is called."""
    original = getattr(cls, name)
    fired = []

    def wrapper(self, *args, **kwargs):
        if not fired:
            fired.append(True)
            action()
        return original(self, *args, **kwargs)

    monkeypatch.setattr(cls, name, wrapper)


class TestConcurrentBillGeneration:
    @pytest.fixture
    def units(self, tenant_settings, unit_factory, readings_factory):
        first = unit_factory("101")
        second = unit_factory("102")
        readings_factory(first, OCTOBER)
        readings_factory(second, OCTOBER)
        return first.id, second.id

    def test_runs_for_different_units_both_commit(self, db_session, other_session, units, monkeypatch):
        first_id, second_id = units
        interleave(
            monkeypatch,
            BillGenerator,
            "build",
            lambda: BillingService(other_session).generate_bills(TENANT, "2025-11", unit_ids=[second_id]),
        )

        result = BillingService(db_session).generate_bills(TENANT, "2025-11", unit_ids=[first_id])

        assert [s.bill_number for s in result.created] == ["MT-202511-101"]
        numbers = db_session.execute(select(Bill.bill_number).order_by(Bill.bill_number)).scalars().all()
        assert numbers == ["MT-202511-101", "MT-202511-102"]

    def test_runs_for_same_unit_conflict(self, db_session, other_session, units, monkeypatch):
        first_id, _ = units
        interleave(
            monkeypatch,
            BillGenerator,
            "build",
            lambda: BillingService(other_session).generate_bills(TENANT, "2025-11", unit_ids=[first_id]),
        )

        with pytest.raises(ConflictError):
            BillingService(db_session).generate_bills(TENANT, "2025-11", unit_ids=[first_id])

        # The losing run rolled back; the winner's bill stands alone
        count = db_session.execute(select(func.count(Bill.id))).scalar_one()
        assert count == 1


class TestConcurrentBatchGeneration:
    def test_batches_get_distinct_numbers(self, db_session, other_session, unit_factory, monkeypatch):
        unit_factory("101")
        as_of = date(2025, 11, 15)
        interleave(
            monkeypatch,
            SOAAggregator,
            "aggregate",
            lambda: SOAService(other_session).generate_batch(TENANT, as_of),
        )

        batch = SOAService(db_session).generate_batch(TENANT, as_of)

        assert batch.batch_number == "SOA-2025-11-002"
        stmt = select(SOABatch.batch_number).order_by(SOABatch.batch_number)
        numbers = db_session.execute(stmt).scalars().all()
        assert numbers == ["SOA-2025-11-001", "SOA-2025-11-002"]
