from typing import Optional, List

from pydantic import BaseModel


class ChannelReportPayload(BaseModel):
    reporter_address: str
    channel_id: str
    channel_name: str
    creator_address: str
    creator_name: Optional[str] = None
    report_category: str
    report_description: str
    evidence_urls: List[str] = []


class ChannelReportUpdate(BaseModel):
    status: Optional[str] = None
    admin_notes: Optional[str] = None
    severity: Optional[str] = None
    priority: Optional[int] = None
