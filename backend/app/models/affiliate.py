from typing import Optional

from pydantic import BaseModel


class PriceQuote(BaseModel):
    usdc_price: float
    sui_price: float
    sui_usd_rate: float
    valid_until: Optional[str] = None


class CreateSubscriptionPayload(BaseModel):
    transaction_hash: str
    quote: PriceQuote
    duration_days: int = 30


class VerifySubscriptionPayload(BaseModel):
    transaction_hash: str


class RaffleBonusEvent(BaseModel):
    event_type: str
    user_address: str
    ticket_id: str
    transaction_hash: str
    raffle_id: Optional[str] = None
