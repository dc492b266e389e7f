# backend/app/routes/admin.py

from fastapi import APIRouter, Depends

from app.models.notifications import BroadcastPayload
from app.services import channel_report_service, notification_service, paion_service
from app.utils.auth import admin_user

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/paion-stats")
def paion_stats(_admin: str = Depends(admin_user)):
    return {"success": True, "data": paion_service.get_total_stats()}


@router.get("/reports/dashboard")
def reports_dashboard(_admin: str = Depends(admin_user)):
    return {"success": True, "data": channel_report_service.get_admin_dashboard()}


@router.post("/notifications/broadcast")
def broadcast(data: BroadcastPayload, _admin: str = Depends(admin_user)):
    payload = data.model_dump(exclude={"addresses"})
    sent = notification_service.broadcast(payload, data.addresses)
    return {"success": True, "sent": sent}
