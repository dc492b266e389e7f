# backend/app/routes/bots.py

from fastapi import APIRouter, Depends, status

from app.models.bots import CyclePaymentPayload, FollowBotPayload
from app.services import bot_following_service
from app.utils.auth import current_user

router = APIRouter(prefix="/api/bots/following", tags=["Bots"])


@router.get("")
def list_following(address: str = Depends(current_user)):
    return {"success": True, "data": bot_following_service.list_followed_bots(address)}


@router.post("", status_code=status.HTTP_201_CREATED)
def follow(data: FollowBotPayload, address: str = Depends(current_user)):
    bot = bot_following_service.follow_bot(address, data.bot_id, data.name, data.type)
    return {"success": True, "data": bot}


@router.delete("/{bot_id}")
def unfollow(bot_id: str, address: str = Depends(current_user)):
    bot_following_service.unfollow_bot(address, bot_id)
    return {"success": True, "message": "Bot unfollowed"}


@router.post("/{bot_id}/toggle")
def toggle(bot_id: str, address: str = Depends(current_user)):
    return {"success": True, "data": bot_following_service.toggle_bot(address, bot_id)}


@router.get("/{bot_id}/cycle")
def cycle(bot_id: str, address: str = Depends(current_user)):
    return {"success": True, "data": bot_following_service.get_cycle(address, bot_id)}


@router.post("/{bot_id}/pay")
def pay(bot_id: str, data: CyclePaymentPayload, address: str = Depends(current_user)):
    info = bot_following_service.pay_for_cycle(address, bot_id, data.transaction_hash)
    return {"success": True, "data": info}
