from typing import Optional

from pydantic import BaseModel


class FollowBotPayload(BaseModel):
    bot_id: str
    name: str
    type: str


class CyclePaymentPayload(BaseModel):
    transaction_hash: Optional[str] = None
