# backend/app/services/course_service.py

import logging
from typing import Dict, Any, List, Optional

import psycopg2.errors

from app.db import fetch_one, fetch_all, execute
from app.services import sui_client
from app.services.tier_service import normalize_tier, tier_at_least
from app.utils.errors import Conflict, NotFound, ValidationFailed
from app.utils.helpers import to_float

logger = logging.getLogger("aionet-backend.courses")

DIFFICULTIES = ("Beginner", "Intermediate", "Advanced")
COURSE_FIELDS = (
    "title",
    "description",
    "icon_name",
    "duration",
    "difficulty",
    "price",
    "required_tier",
    "is_locked",
    "students_count",
    "rating",
)
LESSON_FIELDS = ("title", "description", "duration", "video_url", "order_index")


def can_access_course(course: Dict[str, Any], tier: str, purchased: bool) -> bool:
    if course.get("is_locked"):
        return False

    tier = normalize_tier(tier)
    if course.get("required_tier") and not tier_at_least(tier, course["required_tier"]):
        return False

    if to_float(course.get("price")) > 0 and not purchased:
        return tier == "ROYAL"

    return True


def progress_summary(completed: int, total: int) -> Dict[str, Any]:
    return {
        "completed_lessons": completed,
        "total_lessons": total,
        "progress_percent": round(completed / total * 100, 2) if total else 0,
    }


# -------------------------------------------------
# COURSES
# -------------------------------------------------
def _validate_course(data: Dict[str, Any]) -> None:
    if "difficulty" in data and data["difficulty"] not in DIFFICULTIES:
        raise ValidationFailed(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    if data.get("required_tier"):
        data["required_tier"] = normalize_tier(data["required_tier"])


def list_courses() -> List[Dict[str, Any]]:
    return fetch_all("SELECT * FROM courses ORDER BY created_at ASC")


def get_course(course_id: str) -> Dict[str, Any]:
    course = fetch_one("SELECT * FROM courses WHERE id = %s", (course_id,))
    if not course:
        raise NotFound("Course not found")
    course["lessons"] = list_lessons(course_id)
    return course


def create_course(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in data.items() if k in COURSE_FIELDS and v is not None}
    if not fields.get("title"):
        raise ValidationFailed("title is required")
    _validate_course(fields)

    columns = ", ".join(fields)
    placeholders = ", ".join(["%s"] * len(fields))
    row = execute(
        f"INSERT INTO courses ({columns}) VALUES ({placeholders}) RETURNING *",
        tuple(fields.values()),
        returning=True,
    )
    logger.info("📚 Course created: %s", row["title"])
    return row


def update_course(course_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in data.items() if k in COURSE_FIELDS}
    if not fields:
        return get_course(course_id)
    _validate_course(fields)

    assignments = ", ".join(f"{column} = %s" for column in fields)
    row = execute(
        f"UPDATE courses SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING *",
        tuple(fields.values()) + (course_id,),
        returning=True,
    )
    if not row:
        raise NotFound("Course not found")
    return row


def delete_course(course_id: str) -> None:
    row = execute("DELETE FROM courses WHERE id = %s RETURNING id", (course_id,), returning=True)
    if not row:
        raise NotFound("Course not found")
    logger.info("🗑 Course %s deleted", course_id)


# -------------------------------------------------
# LESSONS
# -------------------------------------------------
def list_lessons(course_id: str) -> List[Dict[str, Any]]:
    return fetch_all(
        "SELECT * FROM lessons WHERE course_id = %s ORDER BY order_index ASC",
        (course_id,),
    )


def create_lesson(course_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    if not fetch_one("SELECT id FROM courses WHERE id = %s", (course_id,)):
        raise NotFound("Course not found")

    fields = {k: v for k, v in data.items() if k in LESSON_FIELDS and v is not None}
    if not fields.get("title"):
        raise ValidationFailed("title is required")
    fields["course_id"] = course_id

    columns = ", ".join(fields)
    placeholders = ", ".join(["%s"] * len(fields))
    return execute(
        f"INSERT INTO lessons ({columns}) VALUES ({placeholders}) RETURNING *",
        tuple(fields.values()),
        returning=True,
    )


def update_lesson(lesson_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in data.items() if k in LESSON_FIELDS}
    if not fields:
        raise ValidationFailed("Nothing to update")

    assignments = ", ".join(f"{column} = %s" for column in fields)
    row = execute(
        f"UPDATE lessons SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING *",
        tuple(fields.values()) + (lesson_id,),
        returning=True,
    )
    if not row:
        raise NotFound("Lesson not found")
    return row


def delete_lesson(lesson_id: str) -> None:
    row = execute("DELETE FROM lessons WHERE id = %s RETURNING id", (lesson_id,), returning=True)
    if not row:
        raise NotFound("Lesson not found")


# -------------------------------------------------
# PROGRESS & PURCHASES
# -------------------------------------------------
def mark_lesson_completed(address: str, course_id: str, lesson_id: str) -> Dict[str, Any]:
    lesson = fetch_one(
        "SELECT id FROM lessons WHERE id = %s AND course_id = %s",
        (lesson_id, course_id),
    )
    if not lesson:
        raise NotFound("Lesson not found")

    return execute(
        """
        INSERT INTO user_course_progress (user_address, course_id, lesson_id, is_completed, completed_at)
        VALUES (%s, %s, %s, TRUE, CURRENT_TIMESTAMP)
        ON CONFLICT (user_address, lesson_id) DO UPDATE SET
            is_completed = TRUE,
            completed_at = CURRENT_TIMESTAMP,
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        (address, course_id, lesson_id),
        returning=True,
    )


def course_progress(address: str, course_id: str) -> Dict[str, Any]:
    total = fetch_one("SELECT COUNT(*) AS total FROM lessons WHERE course_id = %s", (course_id,))
    done = fetch_one(
        """
        SELECT COUNT(*) AS total FROM user_course_progress
        WHERE user_address = %s AND course_id = %s AND is_completed = TRUE
        """,
        (address, course_id),
    )
    return progress_summary(int(done["total"]) if done else 0, int(total["total"]) if total else 0)


def has_purchased(address: str, course_id: str) -> bool:
    return fetch_one(
        """
        SELECT id FROM course_purchases
        WHERE user_address = %s AND course_id = %s AND is_verified = TRUE
        """,
        (address, course_id),
    ) is not None


def record_purchase(
    address: str,
    course_id: str,
    price_paid: float,
    tx_hash: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Records a course purchase once its payment is confirmed on Sui.
    Only verified purchases unlock priced courses.
    """
    course = fetch_one("SELECT id, price FROM courses WHERE id = %s", (course_id,))
    if not course:
        raise NotFound("Course not found")

    price = to_float(course.get("price"))
    if price > 0:
        if not tx_hash:
            raise ValidationFailed("Transaction hash required for a priced course")
        if to_float(price_paid) < price:
            raise ValidationFailed(f"Course costs {price:g}, got {to_float(price_paid):g}", "UNDERPAID")
        if not sui_client.is_transaction_successful(tx_hash):
            raise ValidationFailed("Transaction not confirmed on Sui", "PAYMENT_NOT_VERIFIED")

    try:
        row = execute(
            """
            INSERT INTO course_purchases (user_address, course_id, price_paid, transaction_hash, is_verified)
            VALUES (%s, %s, %s, %s, TRUE)
            ON CONFLICT (user_address, course_id) DO UPDATE SET
                price_paid = EXCLUDED.price_paid,
                transaction_hash = EXCLUDED.transaction_hash,
                is_verified = TRUE,
                purchase_date = CURRENT_TIMESTAMP
            WHERE course_purchases.is_verified = FALSE
            RETURNING *
            """,
            (address, course_id, price_paid, tx_hash),
            returning=True,
        )
    except psycopg2.errors.UniqueViolation:
        raise Conflict("Transaction already used for a purchase", "DUPLICATE_TRANSACTION")

    if row:
        execute(
            "UPDATE courses SET students_count = students_count + 1 WHERE id = %s",
            (course_id,),
        )
        logger.info("🎓 %s purchased course %s", address, course_id)
        return row

    return fetch_one(
        "SELECT * FROM course_purchases WHERE user_address = %s AND course_id = %s",
        (address, course_id),
    )
