"""Payment allocation across open bills and their charge components.

The allocator is pure: it plans how a payment amount spreads over bills
(oldest first) and components (fixed priority), and how any surplus splits
between the advance pools. PaymentService persists the plan.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from condoledger.models.bill import ALLOCATION_ORDER, Bill
from condoledger.money import ZERO, money_floor, money_sum, to_money

# Component that absorbs any rounding remainder inside an allocation
REMAINDER_COMPONENT = "dues"


@dataclass
class BillAllocation:
    """Planned allocation of part of a payment to one bill."""

    bill: Bill
    components: dict[str, Decimal]

    @property
    def total(self) -> Decimal:
        return money_sum(self.components.values())


@dataclass
class AllocationPlan:
    """Allocations in bill order plus the unallocated surplus."""

    allocations: list[BillAllocation] = field(default_factory=list)
    surplus: Decimal = ZERO

    @property
    def allocated(self) -> Decimal:
        return money_sum(allocation.total for allocation in self.allocations)


def sort_bills(bills: Sequence[Bill]) -> list[Bill]:
    """Oldest billing month first, then bill number."""
    return sorted(bills, key=lambda bill: (bill.billing_month, bill.bill_number))


class PaymentAllocator:
    """Plans allocations in ALLOCATION_ORDER."""

    @staticmethod
    def allocate_within(bill: Bill, amount: Decimal) -> dict[str, Decimal]:
        """Spread ``amount`` over the outstanding components of one bill.

        Each component is capped at its outstanding net amount. Whatever is
        left after the walk goes to dues.
        """
        outstanding = bill.outstanding_components()
        components = {name: ZERO for name in ALLOCATION_ORDER}
        remaining = to_money(amount)
        for name in ALLOCATION_ORDER:
            if remaining <= ZERO:
                break
            take = min(outstanding[name], remaining)
            components[name] = take
            remaining -= take
        if remaining > ZERO:
            components[REMAINDER_COMPONENT] += remaining
        return components

    def allocate(self, amount: Decimal, bills: Sequence[Bill]) -> AllocationPlan:
        """Plan the allocation of ``amount`` over ``bills``.

        Locked and settled bills are never targets; callers that name bills
        explicitly must reject locked ones before planning.
        """
        plan = AllocationPlan()
        remaining = to_money(amount)
        for bill in sort_bills(bills):
            if remaining <= ZERO:
                break
            if bill.is_locked or not bill.is_open:
                continue
            applied = min(remaining, to_money(bill.balance))
            plan.allocations.append(BillAllocation(bill=bill, components=self.allocate_within(bill, applied)))
            remaining -= applied
        plan.surplus = remaining
        return plan

    @staticmethod
    def split_surplus(
        surplus: Decimal,
        dues_intent: Decimal = ZERO,
        util_intent: Decimal = ZERO,
        dues_share: Decimal = Decimal("0.50"),
    ) -> tuple[Decimal, Decimal]:
        """Split a surplus into (advance dues, advance utilities).

        Explicit advance intent wins; otherwise ``dues_share`` applies.
        Utilities get the rounded-down share and dues get the rest.
        """
        surplus = to_money(surplus)
        if surplus <= ZERO:
            return ZERO, ZERO

        dues_intent = to_money(dues_intent)
        util_intent = to_money(util_intent)
        intent = dues_intent + util_intent
        if intent > ZERO:
            utilities = money_floor(surplus * util_intent / intent)
        else:
            utilities = money_floor(surplus * (Decimal(1) - Decimal(dues_share)))
        return surplus - utilities, utilities


__all__ = ["PaymentAllocator", "AllocationPlan", "BillAllocation", "sort_bills", "REMAINDER_COMPONENT"]
