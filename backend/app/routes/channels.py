# backend/app/routes/channels.py

from fastapi import APIRouter, Depends, status

from app.models.channels import ChannelSubscribePayload
from app.services import channel_subscription_service
from app.utils.auth import current_user

router = APIRouter(prefix="/api/channels", tags=["Channels"])


@router.get("/subscriptions")
def my_subscriptions(address: str = Depends(current_user)):
    return {"success": True, "data": channel_subscription_service.user_channels(address)}


@router.post("/subscriptions", status_code=status.HTTP_201_CREATED)
def subscribe(data: ChannelSubscribePayload, address: str = Depends(current_user)):
    subscription = channel_subscription_service.subscribe(address, data.model_dump())
    return {"success": True, "data": subscription}


@router.delete("/subscriptions/{channel_id}")
def unsubscribe(channel_id: str, address: str = Depends(current_user)):
    subscription = channel_subscription_service.unsubscribe(address, channel_id)
    return {"success": True, "data": subscription}


@router.get("/{channel_id}/subscribers")
def subscribers(channel_id: str):
    return {
        "success": True,
        "data": {
            "channel_id": channel_id,
            "subscriber_count": channel_subscription_service.subscriber_count(channel_id),
        },
    }
