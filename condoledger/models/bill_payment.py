"""BillPayment ORM model: how much of one payment went to one bill."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.money import ZERO, to_money

# Allocation component name -> BillPayment column
ALLOCATION_FIELDS = {
    "penalty": "penalty_amount",
    "sp_assessment": "sp_assessment_amount",
    "dues": "dues_amount",
    "parking": "parking_amount",
    "water": "water_amount",
    "electric": "electric_amount",
    "other": "other_amount",
}


class BillPayment(Base, BaseModel):
    """Allocation edge between a Payment and a Bill.

    The component columns always sum to ``total_amount``.
    """

    __tablename__ = "bill_payments"

    payment_id: Mapped[int] = mapped_column(ForeignKey("payments.id"), nullable=False, index=True)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id"), nullable=False, index=True)

    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    sp_assessment_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    dues_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    parking_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    water_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    electric_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    other_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment: Mapped["Payment"] = relationship("Payment", back_populates="allocations")  # noqa: F821
    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")  # noqa: F821

    __table_args__ = (Index("idx_bill_payment_pair", "payment_id", "bill_id", unique=True),)

    def components(self) -> dict[str, Decimal]:
        return {name: to_money(getattr(self, field)) for name, field in ALLOCATION_FIELDS.items()}

    def __repr__(self) -> str:
        return (
            f"<BillPayment(payment_id={self.payment_id}, bill_id={self.bill_id}, "
            f"total={self.total_amount})>"
        )


__all__ = ["BillPayment", "ALLOCATION_FIELDS"]
