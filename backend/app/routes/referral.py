# backend/app/routes/referral.py

from fastapi import APIRouter, Depends, Query, Request, status

from app.models.referral import DefaultCodePayload, ProcessReferralPayload, TrackReferralPayload
from app.services import referral_service
from app.utils.auth import current_user
from app.utils.rate_limit import client_ip

router = APIRouter(prefix="/api/referral", tags=["Referral"])


# -------------------------------------------------
# TRACKING
# -------------------------------------------------
@router.post("/track")
def track(data: TrackReferralPayload, request: Request):
    session = referral_service.track_click(
        data.referral_code,
        session_id=data.session_id,
        user_agent=data.user_agent or request.headers.get("user-agent"),
        referrer_url=data.referrer_url,
        ip_address=client_ip(request),
    )
    return {
        "success": True,
        "sessionId": session["session_id"],
        "message": "Referral click tracked successfully",
    }


@router.get("/track")
def session(session_id: str = Query(..., min_length=1)):
    return {"success": True, "session": referral_service.get_session(session_id)}


@router.post("/process")
def process(data: ProcessReferralPayload, address: str = Depends(current_user)):
    return {"success": True, "data": referral_service.process_signup(data.session_id, address)}


# -------------------------------------------------
# CODES
# -------------------------------------------------
@router.get("/codes")
def codes(address: str = Depends(current_user)):
    return {"success": True, "data": referral_service.list_codes(address)}


@router.post("/codes/default", status_code=status.HTTP_201_CREATED)
def default_code(data: DefaultCodePayload, address: str = Depends(current_user)):
    return {"success": True, "data": referral_service.create_default_code(address, data.username)}
