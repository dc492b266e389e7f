from typing import Optional

from pydantic import BaseModel


class TrackReferralPayload(BaseModel):
    referral_code: str
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    referrer_url: Optional[str] = None


class DefaultCodePayload(BaseModel):
    username: Optional[str] = None


class ProcessReferralPayload(BaseModel):
    session_id: str
