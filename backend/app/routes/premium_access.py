# backend/app/routes/premium_access.py

from fastapi import APIRouter, Depends

from app.models.premium import PremiumAccessPayload
from app.services import tier_service
from app.utils.auth import current_user

router = APIRouter(prefix="/api/premium-access", tags=["Premium Access"])


@router.get("")
def get_premium_access(address: str = Depends(current_user)):
    return {"success": True, "data": tier_service.premium_access_summary(address)}


@router.post("")
def use_premium_access(data: PremiumAccessPayload, address: str = Depends(current_user)):
    recorded = tier_service.record_premium_access(address, data.creator_id, data.channel_id)
    return {
        "success": True,
        "recorded": recorded,
        "data": tier_service.premium_access_summary(address),
    }


@router.delete("")
def remove_premium_access(creator_id: str, channel_id: str, address: str = Depends(current_user)):
    removed = tier_service.remove_premium_access(address, creator_id, channel_id)
    return {"success": True, "removed": removed}


@router.get("/check")
def check_premium_access(creator_id: str, channel_id: str, address: str = Depends(current_user)):
    tier = tier_service.get_user_tier(address)
    records = tier_service.get_premium_access_records(address)
    return {
        "success": True,
        "data": {
            "tier": tier,
            "canAccessForFree": tier_service.can_access_premium_for_free(
                records, tier, creator_id, channel_id
            ),
            "remaining": tier_service.remaining_free_access(records, tier),
            **tier_service.feature_access(tier),
        },
    }
