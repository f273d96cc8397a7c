"""Per-unit advance (prepaid) balance ledger.

Credits and debits run inside the caller's transaction; the calling service
owns commit and rollback.
"""

import logging
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from condoledger.models.advance_balance import AdvancePool, UnitAdvanceBalance
from condoledger.models.unit import Unit
from condoledger.money import ZERO, to_money
from condoledger.services.audit_service import AuditService
from condoledger.services.errors import InsufficientAdvance, NotFoundError, ValidationError
from condoledger.services.invariants import input_money

logger = logging.getLogger(__name__)

POOL_FIELDS = {
    AdvancePool.DUES: "advance_dues",
    AdvancePool.UTILITIES: "advance_utilities",
}


class AdvanceBalances(NamedTuple):
    """Snapshot of a unit's advance pools."""

    dues: Decimal
    utilities: Decimal

    def for_pool(self, pool: AdvancePool) -> Decimal:
        return self.dues if pool == AdvancePool.DUES else self.utilities


class AdvanceBalanceLedger:
    """Credit, debit and query the advance pools of units."""

    def __init__(self, db: Session, actor: str | None = None):
        """Initialize ledger.

        Args:
            db: SQLAlchemy session (shared with the calling service)
            actor: Operator recorded on audit entries
        """
        self.db = db
        self.actor = actor

    def _load(self, unit_id: int) -> UnitAdvanceBalance | None:
        stmt = (
            select(UnitAdvanceBalance)
            .where(UnitAdvanceBalance.unit_id == unit_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _load_or_create(self, unit_id: int) -> UnitAdvanceBalance:
        row = self._load(unit_id)
        if row is not None:
            return row

        unit = self.db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError(f"Unit {unit_id} not found")

        row = UnitAdvanceBalance(
            tenant_id=unit.tenant_id,
            unit_id=unit_id,
            advance_dues=ZERO,
            advance_utilities=ZERO,
        )
        self.db.add(row)
        self.db.flush()
        return row

    @staticmethod
    def _check_amount(amount) -> Decimal:
        amount = input_money(amount, "advance amount")
        if amount <= ZERO:
            raise ValidationError(f"Advance amount must be positive, got {amount}")
        return amount

    def balance(self, unit_id: int) -> AdvanceBalances:
        """Current pools of a unit (zero when the unit never had an advance)."""
        row = self._load(unit_id)
        if row is None:
            return AdvanceBalances(dues=ZERO, utilities=ZERO)
        return AdvanceBalances(
            dues=to_money(row.advance_dues),
            utilities=to_money(row.advance_utilities),
        )

    def credit(self, unit_id: int, pool: AdvancePool, amount, reason: str | None = None) -> Decimal:
        """Add ``amount`` to a pool and return the new pool balance.

        Raises:
            ValidationError: If amount is not positive
            NotFoundError: If the unit does not exist
        """
        amount = self._check_amount(amount)
        row = self._load_or_create(unit_id)
        field = POOL_FIELDS[pool]
        new_balance = to_money(getattr(row, field)) + amount
        setattr(row, field, new_balance)

        AuditService.log(
            self.db,
            "advance_balance",
            row.id,
            "credit",
            actor=self.actor,
            changes={"unit_id": unit_id, "pool": pool.value, "amount": str(amount), "reason": reason},
        )
        logger.info("Credited %s to %s advance of unit %s (now %s)", amount, pool.value, unit_id, new_balance)
        return new_balance

    def debit(self, unit_id: int, pool: AdvancePool, amount, reason: str | None = None) -> Decimal:
        """Take ``amount`` from a pool and return the new pool balance.

        Raises:
            ValidationError: If amount is not positive
            InsufficientAdvance: If the pool holds less than ``amount``
        """
        amount = self._check_amount(amount)
        row = self._load(unit_id)
        field = POOL_FIELDS[pool]
        available = to_money(getattr(row, field)) if row is not None else ZERO
        if amount > available:
            raise InsufficientAdvance(
                f"Unit {unit_id} has {available} in {pool.value} advance, cannot debit {amount}",
                details={"unit_id": unit_id, "pool": pool.value, "available": str(available)},
            )

        new_balance = available - amount
        setattr(row, field, new_balance)

        AuditService.log(
            self.db,
            "advance_balance",
            row.id,
            "debit",
            actor=self.actor,
            changes={"unit_id": unit_id, "pool": pool.value, "amount": str(amount), "reason": reason},
        )
        logger.info("Debited %s from %s advance of unit %s (now %s)", amount, pool.value, unit_id, new_balance)
        return new_balance


__all__ = ["AdvanceBalanceLedger", "AdvanceBalances", "POOL_FIELDS"]
