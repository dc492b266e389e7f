from typing import Optional

from pydantic import BaseModel


class CoursePayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    icon_name: Optional[str] = None
    duration: Optional[str] = None
    difficulty: Optional[str] = None
    price: Optional[float] = None
    required_tier: Optional[str] = None
    is_locked: Optional[bool] = None
    students_count: Optional[int] = None
    rating: Optional[float] = None


class LessonPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    video_url: Optional[str] = None
    order_index: Optional[int] = None


class PurchasePayload(BaseModel):
    price_paid: float
    transaction_hash: Optional[str] = None
