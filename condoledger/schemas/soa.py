"""Pydantic schemas for SOA batches."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from condoledger.models.soa import SOABatchStatus, SOAFilterType


class GenerateBatchPayload(BaseModel):
    """Request payload for POST /api/soa/batches."""

    tenant_id: str
    as_of_date: date
    filter_type: SOAFilterType = SOAFilterType.ALL
    filter_value: str | None = Field(None, description="Floor level or unit number")
    actor: str | None = None
    remarks: str | None = None


class ActorPayload(BaseModel):
    actor: str | None = None


class SOADocumentResponse(BaseModel):
    id: int
    unit_id: int
    unit_number: str
    owner_name: str | None = None
    floor_level: str
    total_billed: Decimal
    total_paid: Decimal
    current_balance: Decimal
    current: Decimal
    days_31_60: Decimal
    days_61_90: Decimal
    over_90: Decimal

    model_config = ConfigDict(from_attributes=True)


class SOABatchResponse(BaseModel):
    """Response schema for a generated batch."""

    id: int
    batch_number: str
    tenant_id: str
    as_of_date: date
    billing_month: date
    filter_type: SOAFilterType
    filter_value: str | None = None
    status: SOABatchStatus
    total_units: int
    total_amount: Decimal
    total_balance: Decimal
    documents: list[SOADocumentResponse] = []

    model_config = ConfigDict(from_attributes=True)


class DistributionResponse(BaseModel):
    batch_id: int
    bills_locked: int
    distributed_at: datetime
