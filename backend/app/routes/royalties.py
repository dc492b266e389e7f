# backend/app/routes/royalties.py

from fastapi import APIRouter

from app.services import royalties_service
from app.utils.helpers import utcnow

router = APIRouter(prefix="/api/royalties", tags=["Royalties"])


@router.get("/metrics")
def get_metrics():
    return {"success": True, "data": royalties_service.get_metrics()}


@router.post("/metrics")
def create_snapshot():
    snapshot = royalties_service.create_snapshot(
        "manual",
        metadata={"triggered_by": "api", "timestamp": utcnow().isoformat()},
    )
    return {"success": True, "data": snapshot, "message": "Snapshot created"}


@router.get("/share/{address}")
def get_share(address: str):
    return {"success": True, "data": royalties_service.get_user_share(address)}
