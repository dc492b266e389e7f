# backend/app/routes/affiliate.py

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.models.affiliate import CreateSubscriptionPayload, VerifySubscriptionPayload
from app.services import affiliate_service, affiliate_subscription_service
from app.utils.auth import current_user
from app.utils.errors import Unauthorized

router = APIRouter(prefix="/api/affiliate", tags=["Affiliate"])


# -------------------------------------------------
# SUBSCRIPTION
# -------------------------------------------------
@router.get("/subscription")
def subscription_status(address: str = Depends(current_user)):
    return {"success": True, "data": affiliate_subscription_service.get_status(address)}


@router.get("/subscription/quote")
def subscription_quote():
    return {"success": True, "data": affiliate_subscription_service.get_price_quote()}


@router.post("/subscription")
def create_subscription(data: CreateSubscriptionPayload, address: str = Depends(current_user)):
    subscription = affiliate_subscription_service.create_subscription(
        address,
        data.quote.model_dump(),
        data.transaction_hash,
        days=data.duration_days,
    )
    return {"success": True, "data": subscription}


@router.post("/subscription/verify")
def verify_subscription(data: VerifySubscriptionPayload, address: str = Depends(current_user)):
    subscription = affiliate_subscription_service.verify_and_activate(data.transaction_hash)
    if subscription["user_address"] != address:
        raise Unauthorized("Subscription belongs to another user")
    return {"success": True, "data": subscription}


@router.get("/subscription/history")
def subscription_history(address: str = Depends(current_user)):
    return {"success": True, "data": affiliate_subscription_service.get_history(address)}


# -------------------------------------------------
# NETWORK
# -------------------------------------------------
@router.get("/sponsor")
def sponsor(address: str = Depends(current_user)):
    return {"success": True, "data": affiliate_service.get_sponsor(address)}


@router.get("/stats")
def stats(address: str = Depends(current_user)):
    return {"success": True, "data": affiliate_service.get_stats(address)}


@router.get("/network")
def network(
    tier: Optional[str] = None,
    level_min: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "joined_at",
    order: str = "desc",
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    address: str = Depends(current_user),
):
    page = affiliate_service.get_network(
        address,
        tier=tier,
        level_min=level_min,
        search=search,
        sort_by=sort_by,
        order=order,
        limit=limit,
        offset=offset,
    )
    return {"success": True, "data": page}
