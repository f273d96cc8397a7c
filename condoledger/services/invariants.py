"""Write-time monetary invariant checks.

Called by the services right before commit. A failing check raises
InvariantViolation, which makes the service roll the whole operation back.
Caller-supplied amounts go through ``input_money`` first.
"""

from decimal import Decimal

from condoledger.models.bill import Bill
from condoledger.models.bill_payment import BillPayment
from condoledger.models.payment import Payment
from condoledger.money import ZERO, money_sum, to_money
from condoledger.services.errors import InvariantViolation, ValidationError


def input_money(value, label: str = "amount") -> Decimal:
    """Convert a caller-supplied amount, raising ValidationError if it is not money."""
    try:
        return to_money(value)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ValidationError(f"Invalid {label}: {e}", details={"field": label}) from e


def check_bill(bill: Bill) -> None:
    """Component sum, balance and paid-amount invariants of one bill."""
    total = to_money(bill.total_amount)
    paid = to_money(bill.paid_amount)

    if total != bill.computed_total():
        raise InvariantViolation(
            f"Bill {bill.bill_number} total {total} does not match its components",
            details={"bill_number": bill.bill_number, "computed": str(bill.computed_total())},
        )
    if total < ZERO:
        raise InvariantViolation(f"Bill {bill.bill_number} has a negative total {total}")
    if total - paid < ZERO:
        raise InvariantViolation(
            f"Bill {bill.bill_number} is overpaid: total {total}, paid {paid}",
            details={"bill_number": bill.bill_number},
        )
    if to_money(bill.balance) != total - paid:
        raise InvariantViolation(f"Bill {bill.bill_number} balance is out of sync")

    allocated = money_sum(allocation.total_amount for allocation in bill.payments)
    if allocated != paid:
        raise InvariantViolation(
            f"Bill {bill.bill_number} paid amount {paid} differs from allocations {allocated}",
            details={"bill_number": bill.bill_number},
        )


def check_bill_payment(allocation: BillPayment) -> None:
    """An allocation's components sum to its total."""
    components = money_sum(allocation.components().values())
    if components != to_money(allocation.total_amount):
        raise InvariantViolation(
            f"Allocation to bill {allocation.bill_id} components sum to {components}, "
            f"not {allocation.total_amount}"
        )


def check_payment(payment: Payment) -> None:
    """A payment is fully accounted for by its allocations and advance credits."""
    for allocation in payment.allocations:
        check_bill_payment(allocation)

    accounted = (
        money_sum(allocation.total_amount for allocation in payment.allocations)
        + to_money(payment.advance_dues_credited)
        + to_money(payment.advance_util_credited)
    )
    if accounted != to_money(payment.total_amount):
        raise InvariantViolation(
            f"Payment of {payment.total_amount} accounts for {accounted}",
            details={"or_number": payment.or_number},
        )


__all__ = ["check_bill", "check_bill_payment", "check_payment"]
