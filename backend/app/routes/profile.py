# backend/app/routes/profile.py

from fastapi import APIRouter, Depends

from app.models.profile import ClaimAchievementPayload, ClaimLevelRewardPayload
from app.services import progression_service
from app.services.profile_service import get_profile, get_profile_by_identifier, public_profile
from app.utils.auth import current_user
from app.utils.errors import NotFound

router = APIRouter(prefix="/api/profile", tags=["Profile"])


def _own_profile(address: str):
    profile = get_profile(address)
    if not profile:
        raise NotFound("Profile not found")
    return profile


# "me" routes are declared first so /{identifier} doesn't swallow them
@router.get("/me/achievements")
def my_achievements(address: str = Depends(current_user)):
    profile = _own_profile(address)
    return {"success": True, "data": progression_service.list_achievements(profile)}


@router.post("/me/achievements/claim")
def claim_achievement(data: ClaimAchievementPayload, address: str = Depends(current_user)):
    result = progression_service.claim_achievement(address, data.achievement_name)
    return {"success": True, "data": result}


@router.get("/me/level-rewards")
def my_level_rewards(address: str = Depends(current_user)):
    profile = _own_profile(address)
    return {
        "success": True,
        "data": {
            "profile_level": profile.get("profile_level") or 1,
            "rewards": progression_service.level_rewards(profile),
        },
    }


@router.post("/me/level-rewards/claim")
def claim_level_reward(data: ClaimLevelRewardPayload, address: str = Depends(current_user)):
    result = progression_service.claim_level_reward(address, data.level)
    return {"success": True, "data": result}


@router.post("/me/fix-level")
def fix_level(address: str = Depends(current_user)):
    return {"success": True, "data": progression_service.fix_level_calculation(address)}


@router.get("/{identifier}")
def get_public_profile(identifier: str):
    profile = get_profile_by_identifier(identifier)
    if not profile:
        raise NotFound("Profile not found")

    data = public_profile(profile)
    data["level_progress"] = progression_service.level_progress(profile.get("total_xp"))
    return {"success": True, "data": data}
