"""SOA batch generation, distribution and deletion."""

import logging
from datetime import date, datetime, timezone
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from condoledger.models.bill import Bill
from condoledger.models.bill_payment import BillPayment
from condoledger.models.soa import (
    SOABatch,
    SOABatchSequence,
    SOABatchStatus,
    SOADocument,
    SOAFilterType,
)
from condoledger.models.unit import Unit
from condoledger.money import ZERO
from condoledger.services.audit_service import AuditService
from condoledger.services.errors import (
    ConflictError,
    LockedResourceError,
    NotFoundError,
    ValidationError,
)
from condoledger.services.soa_aggregator import SOAAggregator

logger = logging.getLogger(__name__)


class DistributionResult(NamedTuple):
    """Outcome of distributing a batch."""

    batch_id: int
    bills_locked: int
    distributed_at: datetime


class SOAService:
    """Statement-of-Account batches."""

    def __init__(self, db: Session):
        """Initialize SOA service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def generate_batch(
        self,
        tenant_id: str,
        as_of_date: date,
        filter_type: SOAFilterType = SOAFilterType.ALL,
        filter_value: str | None = None,
        actor: str | None = None,
        remarks: str | None = None,
    ) -> SOABatch:
        """Generate frozen statements for the units matching a filter.

        Args:
            tenant_id: Tenant to generate for
            as_of_date: Statement date; its month is the billing month
            filter_type: ALL, FLOOR (by floor level) or UNIT (by unit number)
            filter_value: Floor level or unit number for FLOOR/UNIT

        Returns:
            The persisted SOABatch with its documents

        Raises:
            ValidationError: If a FLOOR/UNIT filter has no value
            NotFoundError: If no active unit matches the filter
            ConflictError: If a concurrent generation took the batch number
        """
        filter_type = SOAFilterType(filter_type)
        if filter_type != SOAFilterType.ALL and not filter_value:
            raise ValidationError(f"{filter_type.value} filter requires a filter value")

        aggregator = SOAAggregator(as_of_date)
        try:
            units = self._units(tenant_id, filter_type, filter_value)
            if not units:
                raise NotFoundError(
                    f"No active units match {filter_type.value} {filter_value or ''}".strip(),
                    details={"filter_type": filter_type.value, "filter_value": filter_value},
                )

            statements = [
                (unit, aggregator.aggregate(unit, self._bills(unit.id, aggregator.cutoff)))
                for unit in units
            ]

            batch = SOABatch(
                batch_number=self._next_batch_number(tenant_id, aggregator.cutoff),
                tenant_id=tenant_id,
                as_of_date=as_of_date,
                billing_month=aggregator.cutoff,
                filter_type=filter_type,
                filter_value=filter_value if filter_type != SOAFilterType.ALL else None,
                status=SOABatchStatus.GENERATED,
                generated_by=actor,
                remarks=remarks,
            )
            self.db.add(batch)

            total_amount = ZERO
            total_balance = ZERO
            for unit, statement in statements:
                document = SOADocument(
                    unit_id=unit.id,
                    unit_number=unit.unit_number,
                    owner_name=unit.owner_name,
                    floor_level=unit.floor_level,
                    total_billed=statement.total_billed,
                    total_paid=statement.total_paid,
                    current_balance=statement.current_balance,
                    current=statement.aging.current,
                    days_31_60=statement.aging.days_31_60,
                    days_61_90=statement.aging.days_61_90,
                    over_90=statement.aging.over_90,
                    soa_data=statement.to_json(),
                    bills=list(statement.bills),
                )
                batch.documents.append(document)
                total_amount += statement.total_billed
                total_balance += statement.current_balance

            batch.total_units = len(units)
            batch.total_amount = total_amount
            batch.total_balance = total_balance
            self.db.flush()

            AuditService.log(
                self.db,
                "soa_batch",
                batch.id,
                "generate",
                actor=actor,
                changes={
                    "batch_number": batch.batch_number,
                    "as_of_date": as_of_date.isoformat(),
                    "units": len(units),
                    "total_balance": str(total_balance),
                },
            )
            self.db.commit()
            self.db.refresh(batch)
            logger.info(
                f"Generated SOA batch {batch.batch_number} for {tenant_id}: "
                f"{len(units)} units, balance {total_balance}"
            )
            return batch
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error generating SOA batch for {tenant_id}: {e}")
            raise ConflictError(
                f"SOA batch for {tenant_id} {as_of_date.isoformat()} conflicts with a concurrent "
                "generation, retry the request"
            ) from e
        except Exception:
            self.db.rollback()
            raise

    def distribute_batch(self, batch_id: int, actor: str | None = None) -> DistributionResult:
        """Mark a batch distributed and lock every bill it references.

        Bills locked earlier keep their original lock stamp.

        Raises:
            NotFoundError: If the batch does not exist
            LockedResourceError: If the batch is already distributed
            ConflictError: If the batch was cancelled
        """
        try:
            batch = self._batch(batch_id, for_update=True)
            if batch.status == SOABatchStatus.DISTRIBUTED:
                raise LockedResourceError(
                    f"SOA batch {batch.batch_number} was already distributed",
                    details={"status": batch.status.value},
                )
            if batch.status != SOABatchStatus.GENERATED:
                raise ConflictError(
                    f"SOA batch {batch.batch_number} is {batch.status.value}, not GENERATED",
                    details={"status": batch.status.value},
                )

            now = datetime.now(timezone.utc)
            bills: dict[int, Bill] = {}
            for document in batch.documents:
                for bill in document.bills:
                    bills[bill.id] = bill

            newly_locked = 0
            for bill in bills.values():
                if bill.is_locked:
                    continue
                bill.is_locked = True
                bill.locked_at = now
                bill.locked_by = actor
                newly_locked += 1

            batch.status = SOABatchStatus.DISTRIBUTED
            batch.distributed_at = now
            batch.distributed_by = actor

            AuditService.log(
                self.db,
                "soa_batch",
                batch.id,
                "distribute",
                actor=actor,
                changes={
                    "batch_number": batch.batch_number,
                    "bills_locked": len(bills),
                    "newly_locked": newly_locked,
                },
            )
            self.db.commit()
            logger.info(
                f"Distributed SOA batch {batch.batch_number}: {len(bills)} bills locked "
                f"({newly_locked} newly)"
            )
            return DistributionResult(batch_id=batch.id, bills_locked=len(bills), distributed_at=now)
        except Exception:
            self.db.rollback()
            raise

    def delete_batch(self, batch_id: int, actor: str | None = None) -> None:
        """Delete a batch that has not been distributed.

        Raises:
            NotFoundError: If the batch does not exist
            LockedResourceError: If the batch was distributed
        """
        try:
            batch = self._batch(batch_id, for_update=True)
            if batch.status == SOABatchStatus.DISTRIBUTED:
                raise LockedResourceError(
                    f"SOA batch {batch.batch_number} was distributed and cannot be deleted"
                )

            AuditService.log(
                self.db,
                "soa_batch",
                batch.id,
                "delete",
                actor=actor,
                changes={"batch_number": batch.batch_number, "documents": len(batch.documents)},
            )
            self.db.delete(batch)
            self.db.commit()
            logger.info(f"Deleted SOA batch {batch.batch_number}")
        except Exception:
            self.db.rollback()
            raise

    def get_batch(self, batch_id: int) -> SOABatch:
        """Load a batch with its documents.

        Raises:
            NotFoundError: If the batch does not exist
        """
        return self._batch(batch_id)

    # Helpers

    def _batch(self, batch_id: int, for_update: bool = False) -> SOABatch:
        stmt = (
            select(SOABatch)
            .where(SOABatch.id == batch_id)
            .options(selectinload(SOABatch.documents).selectinload(SOADocument.bills))
        )
        if for_update:
            stmt = stmt.with_for_update()
        batch = self.db.execute(stmt).scalar_one_or_none()
        if batch is None:
            raise NotFoundError(f"SOA batch {batch_id} not found")
        return batch

    def _units(self, tenant_id: str, filter_type: SOAFilterType, filter_value: str | None) -> list[Unit]:
        stmt = select(Unit).where(Unit.tenant_id == tenant_id, Unit.is_active.is_(True))
        if filter_type == SOAFilterType.FLOOR:
            stmt = stmt.where(Unit.floor_level == filter_value)
        elif filter_type == SOAFilterType.UNIT:
            stmt = stmt.where(Unit.unit_number == filter_value)
        return list(self.db.execute(stmt.order_by(Unit.floor_level, Unit.unit_number)).scalars())

    def _bills(self, unit_id: int, cutoff: date) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.unit_id == unit_id, Bill.billing_month <= cutoff)
            .options(selectinload(Bill.payments).selectinload(BillPayment.payment))
            .order_by(Bill.billing_month, Bill.bill_number)
        )
        return list(self.db.execute(stmt).scalars())

    def _next_batch_number(self, tenant_id: str, month: date) -> str:
        """Take the next number from the month's counter row.

        The increment is one UPDATE, so a concurrent generation waits on the
        row lock and reads the committed value. The first batch of a month
        creates the row; two first batches racing surface as IntegrityError.
        """
        prefix = f"SOA-{month.year:04d}-{month.month:02d}-"
        stmt = (
            update(SOABatchSequence)
            .where(
                SOABatchSequence.tenant_id == tenant_id,
                SOABatchSequence.billing_month == month,
            )
            .values(last_number=SOABatchSequence.last_number + 1)
            .returning(SOABatchSequence.last_number)
            .execution_options(synchronize_session=False)
        )
        number = self.db.execute(stmt).scalar_one_or_none()
        if number is None:
            number = self._highest_batch_number(tenant_id, prefix) + 1
            self.db.add(SOABatchSequence(tenant_id=tenant_id, billing_month=month, last_number=number))
            self.db.flush()
        return f"{prefix}{number:03d}"

    def _highest_batch_number(self, tenant_id: str, prefix: str) -> int:
        stmt = select(SOABatch.batch_number).where(
            SOABatch.tenant_id == tenant_id,
            SOABatch.batch_number.startswith(prefix),
        )
        highest = 0
        for batch_number in self.db.execute(stmt).scalars():
            tail = batch_number[len(prefix):]
            if tail.isdigit():
                highest = max(highest, int(tail))
        return highest


__all__ = ["SOAService", "DistributionResult"]
