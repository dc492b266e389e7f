# backend/app/routes/paion.py

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.services import paion_service
from app.utils.auth import current_user

router = APIRouter(prefix="/api/paion", tags=["pAION"])


@router.get("/balance")
def get_balance(address: str = Depends(current_user)):
    detailed = paion_service.get_detailed_balance(address)
    return {
        "success": True,
        "data": {
            "balance": paion_service.get_balance(address),
            "details": detailed,
        },
    }


@router.get("/transactions")
def get_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Optional[str] = None,
    address: str = Depends(current_user),
):
    history = paion_service.get_transaction_history(address, limit, offset, type)
    return {"success": True, "data": history}
