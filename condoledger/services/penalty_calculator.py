"""Overdue penalty, computed once when a bill is generated."""

from decimal import Decimal
from typing import Iterable

from condoledger.models.bill import Bill, BillType
from condoledger.money import ZERO, to_money


class PenaltyCalculator:
    """Penalty of ``rate`` percent on the immediately preceding unpaid bill."""

    def __init__(self, rate_percent: Decimal):
        self.rate_percent = Decimal(rate_percent)

    @staticmethod
    def preceding_unpaid_bill(prior_open_bills: Iterable[Bill]) -> Bill | None:
        """Latest prior open bill that accrues penalty.

        Opening balances hold migrated debt and never accrue penalty.
        """
        candidates = [
            bill
            for bill in prior_open_bills
            if bill.bill_type != BillType.OPENING_BALANCE and to_money(bill.balance) > ZERO
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda bill: (bill.billing_month, bill.bill_number))

    @staticmethod
    def principal_of(bill: Bill) -> Decimal:
        """Outstanding amount of ``bill`` excluding its own penalty."""
        principal = to_money(bill.total_amount) - to_money(bill.penalty_amount)
        return max(ZERO, min(to_money(bill.balance), principal))

    def penalty_for(self, prior_open_bills: Iterable[Bill]) -> Decimal:
        """Penalty to freeze into a new bill."""
        if self.rate_percent <= 0:
            return ZERO
        preceding = self.preceding_unpaid_bill(prior_open_bills)
        if preceding is None:
            return ZERO
        return to_money(self.principal_of(preceding) * self.rate_percent / Decimal(100))
