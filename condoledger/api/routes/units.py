"""Unit lookup API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from condoledger.models.unit import Unit
from condoledger.schemas.billing import AdvanceBalanceResponse
from condoledger.services import get_db
from condoledger.services.advance_ledger import AdvanceBalanceLedger
from condoledger.services.errors import NotFoundError

router = APIRouter(prefix="/api/units", tags=["units"])


@router.get("/{unit_id}/advance-balance", response_model=AdvanceBalanceResponse)
async def get_advance_balance(unit_id: int, db: Session = Depends(get_db)) -> AdvanceBalanceResponse:
    """Current advance dues and utilities of a unit."""
    if db.get(Unit, unit_id) is None:
        raise NotFoundError(f"Unit {unit_id} not found")
    balances = AdvanceBalanceLedger(db).balance(unit_id)
    return AdvanceBalanceResponse(
        unit_id=unit_id,
        advance_dues=balances.dues,
        advance_utilities=balances.utilities,
    )
