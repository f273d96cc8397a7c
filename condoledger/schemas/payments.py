"""Pydantic schemas for payment recording."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class RecordPaymentPayload(BaseModel):
    """Request payload for POST /api/payments."""

    tenant_id: str
    unit_id: int
    total_amount: Decimal = Field(..., description="Amount received")
    payment_date: date
    or_number: str | None = Field(None, description="Official/acknowledgement receipt number")
    payment_method: str = "CASH"
    reference_number: str | None = None

    # Optional breakdown; when given it must sum to total_amount
    electric_amount: Decimal | None = None
    water_amount: Decimal | None = None
    dues_amount: Decimal | None = None
    penalty_amount: Decimal | None = None
    sp_assessment_amount: Decimal | None = None
    advance_dues_amount: Decimal | None = None
    advance_util_amount: Decimal | None = None
    other_advance_amount: Decimal | None = None

    target_bill_ids: list[int] | None = Field(None, description="Allocate only to these bills")
    advance_dues_share: Decimal | None = Field(
        None, description="Share of an unassigned surplus credited to advance dues"
    )
    recorded_by: str | None = None
    remarks: str | None = None


class AllocationResponse(BaseModel):
    bill_id: int
    bill_number: str
    amount: Decimal
    components: dict[str, Decimal]
    balance: Decimal
    status: str


class PaymentResponse(BaseModel):
    """Response schema for a recorded payment."""

    payment_id: int
    allocations: list[AllocationResponse]
    advance_dues_credited: Decimal
    advance_util_credited: Decimal
