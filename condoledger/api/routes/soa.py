"""Statement-of-Account batch API routes."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from condoledger.schemas.soa import (
    ActorPayload,
    DistributionResponse,
    GenerateBatchPayload,
    SOABatchResponse,
)
from condoledger.services import get_db
from condoledger.services.soa_service import SOAService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/soa/batches", tags=["soa"])


@router.post("", response_model=SOABatchResponse, status_code=status.HTTP_201_CREATED)
async def generate_batch(
    payload: GenerateBatchPayload,
    db: Session = Depends(get_db),
) -> SOABatchResponse:
    """
    Generate an SOA batch.

    Returns:
        201: The batch with its documents
        404: No unit matches the filter
        422: FLOOR/UNIT filter without a value
    """
    batch = SOAService(db).generate_batch(
        payload.tenant_id,
        payload.as_of_date,
        filter_type=payload.filter_type,
        filter_value=payload.filter_value,
        actor=payload.actor,
        remarks=payload.remarks,
    )
    return SOABatchResponse.model_validate(batch)


@router.get("/{batch_id}", response_model=SOABatchResponse)
async def get_batch(batch_id: int, db: Session = Depends(get_db)) -> SOABatchResponse:
    """Fetch a batch with its documents."""
    return SOABatchResponse.model_validate(SOAService(db).get_batch(batch_id))


@router.post("/{batch_id}/distribute", response_model=DistributionResponse)
async def distribute_batch(
    batch_id: int,
    payload: ActorPayload | None = None,
    db: Session = Depends(get_db),
) -> DistributionResponse:
    """
    Distribute a batch, locking every bill it references.

    Returns:
        200: Number of bills locked
        404: Batch not found
        409: Batch was cancelled
        423: Batch already distributed
    """
    actor = payload.actor if payload is not None else None
    result = SOAService(db).distribute_batch(batch_id, actor=actor)
    return DistributionResponse(**result._asdict())


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(batch_id: int, db: Session = Depends(get_db)) -> None:
    """
    Delete a batch that has not been distributed.

    Returns:
        204: Deleted
        404: Batch not found
        423: Batch was distributed
    """
    SOAService(db).delete_batch(batch_id)
