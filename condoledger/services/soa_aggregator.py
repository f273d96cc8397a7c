"""Statement-of-Account aggregation.

Builds a point-in-time, aged statement of one unit from its bills and the
payments allocated to them. Only payments dated on or before the as-of date
count, so a statement regenerated later for the same date reads the same.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from condoledger.models.bill import Bill
from condoledger.models.payment import PaymentStatus
from condoledger.models.unit import Unit
from condoledger.money import ZERO, money_sum, to_money
from condoledger.services.billing_period import month_label
from condoledger.services.locale_service import format_amount, format_statement_date

BUCKETS = ("current", "days_31_60", "days_61_90", "over_90")


def bucket_for(days: int) -> str:
    """Aging bucket of a bill ``days`` old."""
    if days <= 30:
        return "current"
    if days <= 60:
        return "days_31_60"
    if days <= 90:
        return "days_61_90"
    return "over_90"


@dataclass
class AgingBuckets:
    current: Decimal = ZERO
    days_31_60: Decimal = ZERO
    days_61_90: Decimal = ZERO
    over_90: Decimal = ZERO

    def add(self, bucket: str, amount: Decimal) -> None:
        setattr(self, bucket, getattr(self, bucket) + amount)

    @property
    def total(self) -> Decimal:
        return money_sum(getattr(self, bucket) for bucket in BUCKETS)

    def to_dict(self) -> dict[str, str]:
        return {bucket: str(getattr(self, bucket)) for bucket in BUCKETS}


@dataclass
class StatementOfAccount:
    """Aged statement of one unit as of a date."""

    unit: Unit
    as_of: date
    cutoff: date
    bills: list[Bill] = field(default_factory=list)
    total_billed: Decimal = ZERO
    total_paid: Decimal = ZERO
    current_month_due: Decimal = ZERO
    aging: AgingBuckets = field(default_factory=AgingBuckets)
    bill_lines: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)

    @property
    def current_balance(self) -> Decimal:
        return self.aging.total + self.current_month_due

    def to_json(self) -> dict[str, Any]:
        """Serializable snapshot stored in SOADocument.soa_data."""
        return {
            "unit": {
                "id": self.unit.id,
                "unit_number": self.unit.unit_number,
                "owner_name": self.unit.owner_name,
                "floor_level": self.unit.floor_level,
                "area": str(self.unit.area),
            },
            "as_of_date": self.as_of.isoformat(),
            "billing_month": month_label(self.cutoff),
            "summary": {
                "total_billed": str(self.total_billed),
                "total_paid": str(self.total_paid),
                "current_month_due": str(self.current_month_due),
                "current_balance": str(self.current_balance),
            },
            "aging": self.aging.to_dict(),
            "bills": self.bill_lines,
            "transactions": self.transactions,
            "display": {
                "as_of_date": format_statement_date(self.as_of),
                "total_billed": format_amount(self.total_billed),
                "total_paid": format_amount(self.total_paid),
                "current_balance": format_amount(self.current_balance),
                "aging": {bucket: format_amount(getattr(self.aging, bucket)) for bucket in BUCKETS},
            },
        }


class SOAAggregator:
    """Aggregate bills into statements as of one date."""

    def __init__(self, as_of: date):
        self.as_of = as_of
        self.cutoff = as_of.replace(day=1)

    def paid_as_of(self, bill: Bill) -> Decimal:
        """Amount allocated to ``bill`` by confirmed payments dated on or before as-of."""
        return money_sum(
            allocation.total_amount
            for allocation in bill.payments
            if allocation.payment.status == PaymentStatus.CONFIRMED
            and allocation.payment.payment_date <= self.as_of
        )

    def aggregate(self, unit: Unit, bills: Sequence[Bill]) -> StatementOfAccount:
        """Build the statement of ``unit`` from its bills.

        Bills after the as-of month are ignored. Bills of earlier months are
        aged by days since their billing month; the as-of month's own bills
        count in full toward the current balance.
        """
        statement = StatementOfAccount(unit=unit, as_of=self.as_of, cutoff=self.cutoff)
        included = sorted(
            (bill for bill in bills if bill.billing_month <= self.cutoff),
            key=lambda bill: (bill.billing_month, bill.bill_number),
        )

        for bill in included:
            total = to_money(bill.total_amount)
            paid = self.paid_as_of(bill)
            balance = max(ZERO, total - paid)

            statement.bills.append(bill)
            statement.total_billed += total
            statement.total_paid += paid

            days = (self.as_of - bill.billing_month).days
            bucket = None
            if bill.billing_month < self.cutoff:
                if balance > ZERO:
                    bucket = bucket_for(days)
                    statement.aging.add(bucket, balance)
            else:
                statement.current_month_due += balance

            statement.bill_lines.append(self._bill_line(bill, paid, balance, days, bucket))

        statement.transactions = self._transactions(included)
        return statement

    @staticmethod
    def _bill_line(bill: Bill, paid: Decimal, balance: Decimal, days: int, bucket: str | None) -> dict[str, Any]:
        return {
            "bill_id": bill.id,
            "bill_number": bill.bill_number,
            "bill_type": bill.bill_type.value,
            "billing_month": month_label(bill.billing_month),
            "due_date": bill.due_date.isoformat(),
            "components": {name: str(amount) for name, amount in bill.charge_components().items()},
            "discounts": str(to_money(bill.discounts)),
            "advance_dues_applied": str(to_money(bill.advance_dues_applied)),
            "advance_util_applied": str(to_money(bill.advance_util_applied)),
            "total_amount": str(to_money(bill.total_amount)),
            "paid_amount": str(paid),
            "balance": str(balance),
            "days_outstanding": days,
            "aging_bucket": bucket,
        }

    def _transactions(self, bills: Sequence[Bill]) -> list[dict[str, Any]]:
        """Dated ledger: bills as debits, payments as credits, running balance."""
        entries = []
        for bill in bills:
            entries.append(
                (bill.statement_date, 0, bill.bill_number, "BILL", to_money(bill.total_amount), ZERO)
            )

        credits: dict[int, list] = {}
        for bill in bills:
            for allocation in bill.payments:
                payment = allocation.payment
                if payment.status != PaymentStatus.CONFIRMED or payment.payment_date > self.as_of:
                    continue
                entry = credits.setdefault(
                    payment.id,
                    [payment.payment_date, 1, payment.or_number or f"PAY-{payment.id}", "PAYMENT", ZERO, ZERO],
                )
                entry[5] += to_money(allocation.total_amount)
        entries.extend(tuple(entry) for entry in credits.values())
        entries.sort(key=lambda entry: (entry[0], entry[1], entry[2]))

        running = ZERO
        ledger = []
        for entry_date, _, reference, kind, debit, credit in entries:
            running += debit - credit
            ledger.append(
                {
                    "date": entry_date.isoformat(),
                    "reference": reference,
                    "type": kind,
                    "debit": str(debit),
                    "credit": str(credit),
                    "balance": str(running),
                }
            )
        return ledger


__all__ = ["SOAAggregator", "StatementOfAccount", "AgingBuckets", "bucket_for", "BUCKETS"]
