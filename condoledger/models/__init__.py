"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from condoledger.models.audit_log import AuditLog  # noqa: E402
from condoledger.models.advance_balance import AdvancePool, UnitAdvanceBalance  # noqa: E402
from condoledger.models.bill import Bill, BillStatus, BillType  # noqa: E402
from condoledger.models.bill_payment import BillPayment  # noqa: E402
from condoledger.models.billing_adjustment import BillingAdjustment  # noqa: E402
from condoledger.models.meter_reading import MeterReading, MeterType  # noqa: E402
from condoledger.models.payment import Payment, PaymentStatus  # noqa: E402
from condoledger.models.soa import (  # noqa: E402
    SOABatch,
    SOABatchSequence,
    SOABatchStatus,
    SOADocument,
    SOAFilterType,
)
from condoledger.models.tenant_settings import (  # noqa: E402
    TenantSettings,
    UsageClass,
    WaterTierRate,
)
from condoledger.models.unit import Unit  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AuditLog",
    "AdvancePool",
    "UnitAdvanceBalance",
    "Bill",
    "BillStatus",
    "BillType",
    "BillPayment",
    "BillingAdjustment",
    "MeterReading",
    "MeterType",
    "Payment",
    "PaymentStatus",
    "SOABatch",
    "SOABatchSequence",
    "SOABatchStatus",
    "SOADocument",
    "SOAFilterType",
    "TenantSettings",
    "WaterTierRate",
    "Unit",
    "UsageClass",
]
