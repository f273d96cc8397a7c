"""Bill generation and deletion API routes."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from condoledger.schemas.billing import (
    BillSummaryResponse,
    DeleteBillsPayload,
    DeleteBillsResponse,
    GenerateBillsPayload,
    GenerateBillsResponse,
    SkippedUnitResponse,
)
from condoledger.services import get_db
from condoledger.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/generate", response_model=GenerateBillsResponse, status_code=status.HTTP_200_OK)
async def generate_bills(
    payload: GenerateBillsPayload,
    db: Session = Depends(get_db),
) -> GenerateBillsResponse:
    """
    Generate (or preview) the bills of a billing month.

    Returns:
        200: Created bill summaries and skipped units
        404: A requested unit does not exist
        409: Regenerate would replace a bill with payments, or a concurrent run
             wrote the same bill
        422: Invalid billing month
        423: A bill to be replaced is locked
        500: Tenant rate configuration missing
    """
    result = BillingService(db).generate_bills(
        tenant_id=payload.tenant_id,
        period=payload.billing_month,
        unit_ids=payload.unit_ids,
        regenerate=payload.regenerate,
        actor=payload.actor,
        bill_type=payload.bill_type,
        preview=payload.preview,
    )
    logger.info(
        f"Bill generation for {payload.tenant_id} {payload.billing_month}: "
        f"{len(result.created)} created, {len(result.skipped)} skipped"
    )
    return GenerateBillsResponse(
        created=[BillSummaryResponse(**summary._asdict()) for summary in result.created],
        skipped=[SkippedUnitResponse(**skipped._asdict()) for skipped in result.skipped],
        preview=result.preview,
    )


@router.post("/delete", response_model=DeleteBillsResponse)
async def delete_bills(
    payload: DeleteBillsPayload,
    db: Session = Depends(get_db),
) -> DeleteBillsResponse:
    """
    Delete all bills of a billing month (all-or-nothing).

    Returns:
        200: Number of bills deleted
        409: A bill has payments (no bill locked)
        423: A bill is locked (details list every blocking bill)
    """
    deleted = BillingService(db).delete_bills_for_period(
        payload.tenant_id, payload.billing_month, actor=payload.actor
    )
    return DeleteBillsResponse(deleted=deleted)
