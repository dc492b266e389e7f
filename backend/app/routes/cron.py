# backend/app/routes/cron.py

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from app import config
from app.services import raffle_management_service

logger = logging.getLogger("aionet-backend.cron")

router = APIRouter(prefix="/api/cron", tags=["Cron"])


def _check_secret(authorization: Optional[str]) -> None:
    secret = config.CRON_SECRET
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/process-raffles")
def process_raffles(authorization: Optional[str] = Header(default=None)):
    _check_secret(authorization)

    logger.info("⏰ Cron: processing raffles")
    processed = raffle_management_service.process_completed_raffles()
    created = raffle_management_service.create_next_week_raffle()
    stats = raffle_management_service.get_raffle_statistics()

    return {
        "success": True,
        "processed": processed,
        "new_raffle": created,
        "statistics": stats,
    }
