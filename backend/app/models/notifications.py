from typing import Optional, Dict, Any, List

from pydantic import BaseModel


class NotificationPayload(BaseModel):
    user_address: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    priority: int = 1
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    image_url: Optional[str] = None
    metadata: Dict[str, Any] = {}
    scheduled_for: Optional[str] = None
    expires_at: Optional[str] = None


class BulkNotificationUpdate(BaseModel):
    user_address: str
    action: str
    filters: Dict[str, Any] = {}


class NotificationUpdate(BaseModel):
    read: bool = True


class NotificationSettingsPayload(BaseModel):
    browser_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    disabled_categories: Optional[List[str]] = None


class BroadcastPayload(BaseModel):
    title: str
    message: str
    type: str = "info"
    category: str = "platform"
    priority: int = 1
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    addresses: Optional[List[str]] = None
