# backend/app/routes/rafflecraft.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.models.affiliate import RaffleBonusEvent
from app.models.rafflecraft import MintTicketPayload, QuizSubmission, SelectWinnerPayload
from app.services import affiliate_subscription_service, raffle_management_service, rafflecraft_service
from app.utils.auth import admin_user, current_user
from app.utils.helpers import is_sui_address, utcnow

logger = logging.getLogger("aionet-backend.rafflecraft")

router = APIRouter(prefix="/api/rafflecraft", tags=["RaffleCraft"])
quiz_router = APIRouter(prefix="/api/quiz", tags=["RaffleCraft"])


@router.get("/quiz/current")
def current_quiz():
    data = rafflecraft_service.get_current_week_quiz()
    data["countdown"] = raffle_management_service.countdown(data["raffle"]["end_date"], utcnow())
    return {"success": True, "data": data}


@router.post("/quiz/submit")
def submit_quiz(data: QuizSubmission):
    result = rafflecraft_service.submit_quiz_answer(
        data.user_address,
        data.question_id,
        data.answer,
        data.time_taken_seconds,
    )
    return {"success": True, "data": result}


@router.get("/eligibility")
def eligibility(address: str = Depends(current_user)):
    return {"success": True, "data": rafflecraft_service.check_user_eligibility(address)}


@router.post("/tickets/mint")
def mint_ticket(data: MintTicketPayload):
    ticket = rafflecraft_service.mint_raffle_ticket(
        data.user_address,
        data.transaction_hash,
        data.amount_paid_sui,
    )
    return {"success": True, "data": ticket}


@router.get("/user/{address}")
def user_raffle_data(address: str, week: Optional[int] = None):
    return {
        "success": True,
        "data": {
            "tickets": rafflecraft_service.get_user_tickets(address, week),
            "eligibility": rafflecraft_service.check_user_eligibility(address),
            "quiz_stats": rafflecraft_service.get_user_quiz_stats(address),
        },
    }


@router.get("/history")
def history(limit: int = Query(10, ge=1, le=100)):
    return {
        "success": True,
        "data": {
            "raffles": rafflecraft_service.get_raffle_history(limit),
            "winners": rafflecraft_service.get_winners_history(limit),
        },
    }


# -------------------------------------------------
# TICKET → AFFILIATE BONUS WEBHOOK
# -------------------------------------------------
@router.post("/bonus")
def ticket_bonus(event: RaffleBonusEvent):
    if event.event_type not in affiliate_subscription_service.BONUS_EVENT_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported event_type")
    if not is_sui_address(event.user_address):
        raise HTTPException(status_code=400, detail="Invalid user_address")

    applied = affiliate_subscription_service.process_rafflecraft_bonus(
        event.user_address,
        event.ticket_id,
        event.transaction_hash,
        event.raffle_id,
    )
    return {
        "success": True,
        "bonus_applied": applied,
        "message": "Bonus applied" if applied else "Bonus already processed for this ticket",
    }


# -------------------------------------------------
# ADMIN
# -------------------------------------------------
@router.get("/admin/stats")
def admin_stats(_admin: str = Depends(admin_user)):
    return {"success": True, "data": raffle_management_service.get_raffle_statistics()}


@router.post("/admin/select-winner")
def admin_select_winner(data: SelectWinnerPayload, _admin: str = Depends(admin_user)):
    result = raffle_management_service.select_winner_manually(data.week_number, data.ticket_id)
    return {"success": True, "data": result}


@router.post("/admin/process-raffles")
def admin_process_raffles(_admin: str = Depends(admin_user)):
    processed = raffle_management_service.process_completed_raffles()
    created = raffle_management_service.create_next_week_raffle()
    return {"success": True, "data": {"processed": processed, "created": created}}


@quiz_router.get("/stats")
def quiz_stats(address: str = Depends(current_user)):
    return {"success": True, "data": rafflecraft_service.get_user_quiz_stats(address)}
