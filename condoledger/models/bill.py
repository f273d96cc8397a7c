"""Bill ORM model: one bill per (unit, billing month, bill type)."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.money import ZERO, to_money


class BillType(str, Enum):
    """Kinds of bills the generator can produce."""

    REGULAR = "REGULAR"
    """Monthly bill from meter readings, dues and adjustments"""

    OPENING_BALANCE = "OPENING_BALANCE"
    """Debt migrated from before the system went live"""

    ADJUSTMENT = "ADJUSTMENT"
    """Out-of-cycle bill carrying only adjustment charges"""


class BillStatus(str, Enum):
    """Payment status derived from balance."""

    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


OPEN_STATUSES = (BillStatus.UNPAID, BillStatus.PARTIAL, BillStatus.OVERDUE)

# Charge components in payment allocation priority (punitive/fixed before usage).
ALLOCATION_ORDER = ("penalty", "sp_assessment", "dues", "parking", "water", "electric", "other")

# Deductions (discounts) are absorbed from the lowest priority component upward.
DEDUCTION_ORDER = tuple(reversed(ALLOCATION_ORDER))

COMPONENT_FIELDS = {
    "penalty": "penalty_amount",
    "sp_assessment": "sp_assessment",
    "dues": "dues_amount",
    "parking": "parking_fee",
    "water": "water_amount",
    "electric": "electric_amount",
    "other": "other_charges",
}


def _absorb(components: dict[str, Decimal], amount: Decimal, order: tuple[str, ...]) -> Decimal:
    """Subtract ``amount`` from components in ``order``; return what could not be absorbed."""
    remaining = amount
    for name in order:
        if remaining <= 0:
            break
        take = min(components[name], remaining)
        components[name] -= take
        remaining -= take
    return remaining


class Bill(Base, BaseModel):
    """A unit's bill for one billing month.

    ``total_amount`` is always the signed sum of the component columns:
    charges (electric, water, dues, parking, SP assessment, other, penalty)
    minus deductions (discounts, advance dues applied, advance utilities
    applied). Carry-forward past dues are never part of it.
    """

    __tablename__ = "bills"

    bill_number: Mapped[str] = mapped_column(String(48), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    bill_type: Mapped[BillType] = mapped_column(
        SQLEnum(BillType), nullable=False, default=BillType.REGULAR
    )

    # Period
    billing_month: Mapped[date] = mapped_column(Date, nullable=False, comment="First day of month")
    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Consumption snapshot
    electric_consumption: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    water_consumption: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    # Charges
    electric_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    water_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    dues_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    parking_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    sp_assessment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    other_charges: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    # Deductions
    discounts: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    advance_dues_applied: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    advance_util_applied: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )

    # Totals
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus), nullable=False, default=BillStatus.UNPAID, index=True
    )

    sp_assessment_cycle: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Assessment window the SP charge belongs to"
    )

    # Lock (set once by SOA distribution)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    generated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    unit: Mapped["Unit"] = relationship("Unit", back_populates="bills")  # noqa: F821
    payments: Mapped[list["BillPayment"]] = relationship(  # noqa: F821
        "BillPayment",
        back_populates="bill",
    )
    soa_documents: Mapped[list["SOADocument"]] = relationship(  # noqa: F821
        "SOADocument",
        secondary="soa_document_bills",
        back_populates="bills",
    )

    __table_args__ = (
        Index("idx_bill_unit_month_type", "unit_id", "billing_month", "bill_type", unique=True),
        Index("idx_bill_tenant_number", "tenant_id", "bill_number", unique=True),
        Index("idx_bill_tenant_month", "tenant_id", "billing_month"),
    )

    def charge_components(self) -> dict[str, Decimal]:
        """Gross charge per component, keyed by allocation name."""
        return {name: to_money(getattr(self, field)) for name, field in COMPONENT_FIELDS.items()}

    def gross_charges(self) -> Decimal:
        return sum(self.charge_components().values(), ZERO)

    def total_deductions(self) -> Decimal:
        return (
            to_money(self.discounts)
            + to_money(self.advance_dues_applied)
            + to_money(self.advance_util_applied)
        )

    def computed_total(self) -> Decimal:
        """Signed sum of the component columns."""
        return self.gross_charges() - self.total_deductions()

    def net_components(self) -> dict[str, Decimal]:
        """Amount owed per component after deductions.

        Advance dues reduces dues (then parking), advance utilities reduces
        electric then water, discounts are absorbed in DEDUCTION_ORDER. The
        values sum to ``computed_total()`` whenever deductions do not exceed
        charges.
        """
        components = self.charge_components()
        leftover = _absorb(components, to_money(self.advance_dues_applied), ("dues", "parking"))
        leftover += _absorb(
            components, to_money(self.advance_util_applied), ("electric", "water")
        )
        _absorb(components, to_money(self.discounts) + leftover, DEDUCTION_ORDER)
        return components

    def paid_components(self) -> dict[str, Decimal]:
        """Sum of allocations already recorded against each component."""
        paid = {name: ZERO for name in ALLOCATION_ORDER}
        for allocation in self.payments:
            for name, amount in allocation.components().items():
                paid[name] += amount
        return paid

    def outstanding_components(self) -> dict[str, Decimal]:
        net = self.net_components()
        paid = self.paid_components()
        return {name: max(ZERO, net[name] - paid[name]) for name in ALLOCATION_ORDER}

    def refresh_balance(self) -> None:
        """Recompute ``balance`` and ``status`` from total and paid amounts."""
        total = to_money(self.total_amount)
        paid = to_money(self.paid_amount)
        self.balance = max(ZERO, total - paid)
        if self.balance == ZERO:
            self.status = BillStatus.PAID
        elif paid > ZERO:
            self.status = BillStatus.PARTIAL
        elif self.status not in (BillStatus.UNPAID, BillStatus.OVERDUE):
            self.status = BillStatus.UNPAID

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES and to_money(self.balance) > ZERO

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, bill_number={self.bill_number!r}, unit_id={self.unit_id}, "
            f"month={self.billing_month}, type={self.bill_type}, total={self.total_amount}, "
            f"paid={self.paid_amount}, status={self.status})>"
        )


__all__ = [
    "Bill",
    "BillType",
    "BillStatus",
    "OPEN_STATUSES",
    "ALLOCATION_ORDER",
    "DEDUCTION_ORDER",
    "COMPONENT_FIELDS",
]
