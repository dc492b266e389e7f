# backend/app/routes/channel_reports.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.config import is_admin
from app.models.reports import ChannelReportPayload, ChannelReportUpdate
from app.services import channel_report_service
from app.utils.auth import admin_user, current_user
from app.utils.rate_limit import client_ip

router = APIRouter(prefix="/api/channel-reports", tags=["Channel Reports"])


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_report(data: ChannelReportPayload, request: Request):
    report = channel_report_service.create_report(
        data.model_dump(),
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return {"success": True, "report": report, "message": "Report submitted successfully"}


@router.get("")
def list_reports(
    channel_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: str = Depends(admin_user),
):
    return {"success": True, **channel_report_service.list_reports(channel_id, status, limit, offset)}


@router.get("/statistics")
def statistics(channel_id: Optional[str] = None, channel_ids: Optional[str] = None):
    if channel_id:
        return {"success": True, "statistics": channel_report_service.get_channel_statistics(channel_id)}

    if channel_ids:
        ids = [c.strip() for c in channel_ids.split(",") if c.strip()]
        return {"success": True, "statistics": channel_report_service.get_statistics_map(ids)}

    return {"success": True, **channel_report_service.get_flagged_overview()}


@router.get("/{report_id}")
def get_report(report_id: UUID, address: str = Depends(current_user)):
    report = channel_report_service.get_report(str(report_id))
    if report["reporter_address"] != address and not is_admin(address):
        raise HTTPException(status_code=403, detail="Not allowed to view this report")
    return {"success": True, "report": report}


@router.patch("/{report_id}")
def update_report(report_id: UUID, data: ChannelReportUpdate, admin: str = Depends(admin_user)):
    report = channel_report_service.update_report(str(report_id), data.model_dump(exclude_unset=True), admin)
    return {"success": True, "report": report}


@router.delete("/{report_id}")
def delete_report(report_id: UUID, _admin: str = Depends(admin_user)):
    channel_report_service.delete_report(str(report_id))
    return {"success": True, "message": "Report deleted"}
