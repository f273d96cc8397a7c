"""Statement-of-Account batch and document models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Table
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condoledger.models import Base, BaseModel
from condoledger.money import ZERO


class SOABatchStatus(str, Enum):
    """Lifecycle of an SOA batch."""

    GENERATED = "GENERATED"
    DISTRIBUTED = "DISTRIBUTED"
    CANCELLED = "CANCELLED"


class SOAFilterType(str, Enum):
    """Which units a batch covers."""

    ALL = "ALL"
    FLOOR = "FLOOR"
    UNIT = "UNIT"


soa_document_bills = Table(
    "soa_document_bills",
    Base.metadata,
    Column("document_id", ForeignKey("soa_documents.id", ondelete="CASCADE"), primary_key=True),
    Column("bill_id", ForeignKey("bills.id", ondelete="CASCADE"), primary_key=True),
)


class SOABatch(Base, BaseModel):
    """One SOA generation run. Immutable once distributed."""

    __tablename__ = "soa_batches"

    batch_number: Mapped[str] = mapped_column(String(32), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    filter_type: Mapped[SOAFilterType] = mapped_column(
        SQLEnum(SOAFilterType), nullable=False, default=SOAFilterType.ALL
    )
    filter_value: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[SOABatchStatus] = mapped_column(
        SQLEnum(SOABatchStatus), nullable=False, default=SOABatchStatus.GENERATED
    )

    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    total_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)

    generated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    distributed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    distributed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    documents: Mapped[list["SOADocument"]] = relationship(
        "SOADocument",
        back_populates="batch",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_soa_batch_tenant_number", "tenant_id", "batch_number", unique=True),)

    def __repr__(self) -> str:
        return (
            f"<SOABatch(id={self.id}, batch_number={self.batch_number!r}, "
            f"as_of={self.as_of_date}, status={self.status})>"
        )


class SOADocument(Base, BaseModel):
    """Frozen SOA of one unit inside a batch."""

    __tablename__ = "soa_documents"

    batch_id: Mapped[int] = mapped_column(
        ForeignKey("soa_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    unit_number: Mapped[str] = mapped_column(String(32), nullable=False)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    floor_level: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    total_billed: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    current: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    days_31_60: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    days_61_90: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    over_90: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)

    soa_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    """Serialized point-in-time SOA (aging buckets and full line detail)."""

    batch: Mapped["SOABatch"] = relationship("SOABatch", back_populates="documents")
    bills: Mapped[list["Bill"]] = relationship(  # noqa: F821
        "Bill",
        secondary=soa_document_bills,
        back_populates="soa_documents",
    )

    def __repr__(self) -> str:
        return (
            f"<SOADocument(id={self.id}, batch_id={self.batch_id}, unit={self.unit_number!r}, "
            f"current_balance={self.current_balance})>"
        )


class SOABatchSequence(Base, BaseModel):
    """Last batch number handed out per tenant and billing month.

    Incremented with a single UPDATE so concurrent generations serialize on
    the row instead of reading the same maximum.
    """

    __tablename__ = "soa_batch_sequences"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_soa_sequence_tenant_month", "tenant_id", "billing_month", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<SOABatchSequence(tenant_id={self.tenant_id!r}, month={self.billing_month}, "
            f"last_number={self.last_number})>"
        )


__all__ = [
    "SOABatch",
    "SOABatchSequence",
    "SOADocument",
    "SOABatchStatus",
    "SOAFilterType",
    "soa_document_bills",
]
