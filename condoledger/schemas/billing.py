"""Pydantic schemas for bill generation and deletion."""

from decimal import Decimal

from pydantic import BaseModel, Field

from condoledger.models.bill import BillType


class GenerateBillsPayload(BaseModel):
    """Request payload for POST /api/billing/generate."""

    tenant_id: str = Field(..., description="Tenant to bill")
    billing_month: str = Field(..., description="Billing month as YYYY-MM")
    unit_ids: list[int] | None = Field(None, description="Restrict to these units")
    regenerate: bool = Field(False, description="Replace existing bills without payments")
    bill_type: BillType = Field(BillType.REGULAR, description="REGULAR or ADJUSTMENT")
    preview: bool = Field(False, description="Compute without saving")
    actor: str | None = Field(None, description="Operator generating the bills")


class BillSummaryResponse(BaseModel):
    unit_id: int
    unit_number: str
    bill_id: int | None = None
    bill_number: str | None = None
    total_amount: Decimal
    past_dues: Decimal
    amount_due: Decimal
    warnings: list[str] = []


class SkippedUnitResponse(BaseModel):
    unit_id: int
    unit_number: str
    reason: str


class GenerateBillsResponse(BaseModel):
    """Response schema for a generation run."""

    created: list[BillSummaryResponse]
    skipped: list[SkippedUnitResponse]
    preview: bool = False


class DeleteBillsPayload(BaseModel):
    """Request payload for POST /api/billing/delete."""

    tenant_id: str
    billing_month: str = Field(..., description="Billing month as YYYY-MM")
    actor: str | None = None


class DeleteBillsResponse(BaseModel):
    deleted: int


class AdvanceBalanceResponse(BaseModel):
    """Advance pools of one unit."""

    unit_id: int
    advance_dues: Decimal
    advance_utilities: Decimal
