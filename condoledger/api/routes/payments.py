"""Payment recording API routes."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from condoledger.schemas.payments import AllocationResponse, PaymentResponse, RecordPaymentPayload
from condoledger.services import get_db
from condoledger.services.payment_service import PaymentInput, PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payload: RecordPaymentPayload,
    db: Session = Depends(get_db),
) -> PaymentResponse:
    """
    Record a payment and allocate it to the unit's open bills.

    Returns:
        201: Payment id, allocations and advance credited
        404: Unit or target bill not found
        409: Duplicate OR number
        422: Invalid amounts or breakdown
        423: A target bill is locked
    """
    payment_input = PaymentInput(
        **payload.model_dump(exclude={"target_bill_ids", "advance_dues_share"})
    )
    result = PaymentService(db).record_payment(
        payment_input,
        target_bill_ids=payload.target_bill_ids,
        advance_dues_share=payload.advance_dues_share,
    )
    return PaymentResponse(
        payment_id=result.payment_id,
        allocations=[AllocationResponse(**allocation._asdict()) for allocation in result.allocations],
        advance_dues_credited=result.advance_credited.dues,
        advance_util_credited=result.advance_credited.utilities,
    )
