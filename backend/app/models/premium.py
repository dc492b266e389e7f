from pydantic import BaseModel


class PremiumAccessPayload(BaseModel):
    creator_id: str
    channel_id: str
