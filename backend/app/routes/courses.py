# backend/app/routes/courses.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, status

from app.models.courses import CoursePayload, LessonPayload, PurchasePayload
from app.services import course_service
from app.services.tier_service import get_user_tier
from app.utils.auth import admin_user, current_user

router = APIRouter(prefix="/api/courses", tags=["Courses"])
lessons_router = APIRouter(prefix="/api/lessons", tags=["Courses"])


def _with_access(course, address: Optional[str]):
    if address:
        tier = get_user_tier(address)
        purchased = course_service.has_purchased(address, str(course["id"]))
    else:
        tier, purchased = "NOMAD", False
    course["can_access"] = course_service.can_access_course(course, tier, purchased)
    return course


@router.get("")
def list_courses(x_user_address: Optional[str] = Header(default=None)):
    courses = [_with_access(c, x_user_address) for c in course_service.list_courses()]
    return {"success": True, "data": courses}


@router.get("/{course_id}")
def get_course(course_id: UUID, x_user_address: Optional[str] = Header(default=None)):
    course = _with_access(course_service.get_course(str(course_id)), x_user_address)
    return {"success": True, "data": course}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(data: CoursePayload, _admin: str = Depends(admin_user)):
    return {"success": True, "data": course_service.create_course(data.model_dump(exclude_none=True))}


@router.patch("/{course_id}")
def update_course(course_id: UUID, data: CoursePayload, _admin: str = Depends(admin_user)):
    course = course_service.update_course(str(course_id), data.model_dump(exclude_unset=True))
    return {"success": True, "data": course}


@router.delete("/{course_id}")
def delete_course(course_id: UUID, _admin: str = Depends(admin_user)):
    course_service.delete_course(str(course_id))
    return {"success": True, "message": "Course deleted"}


@router.post("/{course_id}/lessons", status_code=status.HTTP_201_CREATED)
def create_lesson(course_id: UUID, data: LessonPayload, _admin: str = Depends(admin_user)):
    lesson = course_service.create_lesson(str(course_id), data.model_dump(exclude_none=True))
    return {"success": True, "data": lesson}


@router.post("/{course_id}/lessons/{lesson_id}/complete")
def complete_lesson(course_id: UUID, lesson_id: UUID, address: str = Depends(current_user)):
    course_service.mark_lesson_completed(address, str(course_id), str(lesson_id))
    return {"success": True, "data": course_service.course_progress(address, str(course_id))}


@router.get("/{course_id}/progress")
def progress(course_id: UUID, address: str = Depends(current_user)):
    return {"success": True, "data": course_service.course_progress(address, str(course_id))}


@router.post("/{course_id}/purchase")
def purchase(course_id: UUID, data: PurchasePayload, address: str = Depends(current_user)):
    record = course_service.record_purchase(address, str(course_id), data.price_paid, data.transaction_hash)
    return {"success": True, "data": record}


@lessons_router.patch("/{lesson_id}")
def update_lesson(lesson_id: UUID, data: LessonPayload, _admin: str = Depends(admin_user)):
    lesson = course_service.update_lesson(str(lesson_id), data.model_dump(exclude_unset=True))
    return {"success": True, "data": lesson}


@lessons_router.delete("/{lesson_id}")
def delete_lesson(lesson_id: UUID, _admin: str = Depends(admin_user)):
    course_service.delete_lesson(str(lesson_id))
    return {"success": True, "message": "Lesson deleted"}
