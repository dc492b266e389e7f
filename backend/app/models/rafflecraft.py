from typing import Optional

from pydantic import BaseModel


class QuizSubmission(BaseModel):
    user_address: str
    question_id: str
    answer: str
    time_taken_seconds: Optional[int] = None


class MintTicketPayload(BaseModel):
    user_address: str
    transaction_hash: str
    amount_paid_sui: float


class SelectWinnerPayload(BaseModel):
    week_number: int
    ticket_id: str
