from typing import Optional

from pydantic import BaseModel


class ChannelSubscribePayload(BaseModel):
    channel_id: str
    creator_address: str
    channel_name: Optional[str] = None
    channel_type: str = "free"
    price_paid: float = 0
    transaction_hash: Optional[str] = None
    duration_days: int = 30
