# backend/app/services/notification_service.py

import logging
from typing import Dict, Any, List, Optional

from app.config import ADMIN_WALLET_ADDRESS
from app.db import get_db, fetch_one, fetch_all, execute, Json
from app.utils.errors import NotFound, ValidationFailed

logger = logging.getLogger("aionet-backend.notifications")

NOTIFICATION_TYPES = ("info", "success", "warning", "error")
NOTIFICATION_CATEGORIES = ("platform", "trade", "system", "community", "promotion", "affiliate")
REQUIRED_FIELDS = ("user_address", "title", "message", "type", "category")
DEFAULT_LIMIT = 50


# -------------------------------------------------
# SETTINGS
# -------------------------------------------------
def get_settings(address: str) -> Dict[str, Any]:
    row = fetch_one(
        "SELECT * FROM notification_settings WHERE user_address = %s",
        (address,),
    )
    if row:
        return row
    return {
        "user_address": address,
        "browser_enabled": True,
        "email_enabled": False,
        "disabled_categories": [],
    }


def update_settings(address: str, settings: Dict[str, Any]) -> Dict[str, Any]:
    current = get_settings(address)
    merged = {
        "browser_enabled": settings.get("browser_enabled", current["browser_enabled"]),
        "email_enabled": settings.get("email_enabled", current["email_enabled"]),
        "disabled_categories": settings.get("disabled_categories", current["disabled_categories"]) or [],
    }
    return execute(
        """
        INSERT INTO notification_settings
            (user_address, browser_enabled, email_enabled, disabled_categories)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (user_address) DO UPDATE SET
            browser_enabled = EXCLUDED.browser_enabled,
            email_enabled = EXCLUDED.email_enabled,
            disabled_categories = EXCLUDED.disabled_categories,
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        (address, merged["browser_enabled"], merged["email_enabled"], Json(merged["disabled_categories"])),
        returning=True,
    )


def category_enabled(settings: Dict[str, Any], category: str) -> bool:
    return category not in (settings.get("disabled_categories") or [])


# -------------------------------------------------
# LIST
# -------------------------------------------------
def like_escape(text: str) -> str:
    """Escapes LIKE wildcards so a search matches them literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _where(address: str, filters: Dict[str, Any]):
    clauses = ["user_address = %s"]
    params: List[Any] = [address]

    for column in ("category", "type", "priority"):
        if filters.get(column) is not None:
            clauses.append(f"{column} = %s")
            params.append(filters[column])

    if filters.get("read") is not None:
        clauses.append("read = %s")
        params.append(filters["read"])

    if filters.get("search"):
        clauses.append("(title ILIKE %s ESCAPE '\\' OR message ILIKE %s ESCAPE '\\')")
        pattern = f"%{like_escape(filters['search'])}%"
        params.extend([pattern, pattern])

    return " AND ".join(clauses), params


def summarize(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    stats = {"total": len(rows), "unread": 0, "by_category": {}, "by_type": {}}
    for row in rows:
        if not row.get("read"):
            stats["unread"] += 1
        category = row.get("category")
        kind = row.get("type")
        stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
        stats["by_type"][kind] = stats["by_type"].get(kind, 0) + 1
    return stats


def list_notifications(
    address: str,
    filters: Optional[Dict[str, Any]] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
    include_stats: bool = False,
) -> Dict[str, Any]:
    filters = filters or {}
    where, params = _where(address, filters)

    total_row = fetch_one(f"SELECT COUNT(*) AS total FROM notifications WHERE {where}", tuple(params))
    total = int(total_row["total"]) if total_row else 0

    rows = fetch_all(
        f"""
        SELECT * FROM notifications
        WHERE {where}
        ORDER BY created_at DESC
        LIMIT %s OFFSET %s
        """,
        tuple(params + [limit, offset]),
    )

    stats = None
    if include_stats:
        everything = fetch_all(
            "SELECT type, category, read FROM notifications WHERE user_address = %s",
            (address,),
        )
        stats = summarize(everything)

    return {
        "notifications": rows,
        "stats": stats,
        "filters": filters,
        "pagination": {
            "limit": limit,
            "offset": offset,
            "total": total,
            "has_more": offset + len(rows) < total,
        },
    }


# -------------------------------------------------
# CREATE
# -------------------------------------------------
def create_notification(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Inserts one notification. Returns None when the user has muted the category.
    """
    missing = [field for field in REQUIRED_FIELDS if not payload.get(field)]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

    address = payload["user_address"]
    settings = get_settings(address)
    if not category_enabled(settings, payload["category"]):
        logger.info("ℹ️ %s muted '%s' notifications, skipping", address, payload["category"])
        return None

    return execute(
        """
        INSERT INTO notifications
            (user_address, title, message, type, category, priority,
             action_url, action_label, image_url, metadata, scheduled_for, expires_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, CURRENT_TIMESTAMP), %s)
        RETURNING *
        """,
        (
            address,
            payload["title"],
            payload["message"],
            payload["type"],
            payload["category"],
            payload.get("priority") or 1,
            payload.get("action_url"),
            payload.get("action_label"),
            payload.get("image_url"),
            Json(payload.get("metadata") or {}),
            payload.get("scheduled_for"),
            payload.get("expires_at"),
        ),
        returning=True,
    )


# -------------------------------------------------
# UPDATE / DELETE
# -------------------------------------------------
def bulk_update(address: str, action: str, filters: Optional[Dict[str, Any]] = None) -> int:
    read = action == "mark_all_read"
    where, params = _where(address, filters or {})

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            f"UPDATE notifications SET read = %s WHERE {where}",
            tuple([read] + params),
        )
        updated = cur.rowcount
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    return updated


def set_read(address: str, notification_id: str, read: bool = True) -> Dict[str, Any]:
    row = execute(
        """
        UPDATE notifications SET read = %s
        WHERE id = %s AND user_address = %s
        RETURNING *
        """,
        (read, notification_id, address),
        returning=True,
    )
    if not row:
        raise NotFound("Notification not found")
    return row


def delete_notification(address: str, notification_id: str) -> None:
    row = execute(
        "DELETE FROM notifications WHERE id = %s AND user_address = %s RETURNING id",
        (notification_id, address),
        returning=True,
    )
    if not row:
        raise NotFound("Notification not found")


def broadcast(payload: Dict[str, Any], addresses: Optional[List[str]] = None) -> int:
    if not addresses:
        addresses = [row["address"] for row in fetch_all("SELECT address FROM user_profiles")]

    sent = 0
    for address in addresses:
        if create_notification(dict(payload, user_address=address)):
            sent += 1

    logger.info("📣 Broadcast '%s' delivered to %s/%s users", payload.get("title"), sent, len(addresses))
    return sent


# -------------------------------------------------
# PLATFORM TEMPLATES
# -------------------------------------------------
def bot_activated(address: str, bot_name: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Trading Bot Activated",
        "message": f"Your {bot_name} bot is now following the market.",
        "type": "success",
        "category": "trade",
        "priority": 2,
        "action_url": "/copy-trading",
        "action_label": "View Bot",
        "metadata": {"bot_name": bot_name},
    }


def bot_deactivated(address: str, bot_name: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Trading Bot Stopped",
        "message": f"Your {bot_name} bot has been stopped.",
        "type": "info",
        "category": "trade",
        "priority": 2,
        "action_url": "/copy-trading",
        "action_label": "View Bot",
        "metadata": {"bot_name": bot_name},
    }


def bot_error(address: str, bot_name: str, error: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Trading Bot Error",
        "message": f"{bot_name} ran into a problem: {error}",
        "type": "error",
        "category": "trade",
        "priority": 4,
        "action_url": "/copy-trading",
        "action_label": "Check Bot",
        "metadata": {"bot_name": bot_name, "error": error},
    }


def cycle_completed(address: str, bot_name: str, cycle_number: int) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Trading Cycle Completed",
        "message": f"{bot_name} completed cycle {cycle_number}. A new cycle has started.",
        "type": "success",
        "category": "trade",
        "priority": 2,
        "action_url": "/copy-trading",
        "action_label": "View Cycle",
        "metadata": {"bot_name": bot_name, "cycle_number": cycle_number},
    }


def affiliate_subscription_expiring(address: str, days_left: int) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Affiliate Access Expiring",
        "message": f"Your affiliate access expires in {days_left} day(s). Renew to keep earning.",
        "type": "warning",
        "category": "affiliate",
        "priority": 3,
        "action_url": "/affiliate-controls",
        "action_label": "Renew",
        "metadata": {"days_left": days_left},
    }


def commission_earned(address: str, amount: float, referred_address: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Commission Earned",
        "message": f"You earned {amount:g} from your referral network.",
        "type": "success",
        "category": "affiliate",
        "priority": 2,
        "action_url": "/affiliate-controls",
        "action_label": "View Earnings",
        "metadata": {"amount": amount, "referred_address": referred_address},
    }


def referral_bonus(address: str, referred_username: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "New Referral",
        "message": f"{referred_username} joined using your referral code.",
        "type": "success",
        "category": "affiliate",
        "priority": 2,
        "action_url": "/affiliate-controls",
        "action_label": "View Network",
        "metadata": {"referred_username": referred_username},
    }


def platform_update(address: str, title: str, message: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": title,
        "message": message,
        "type": "info",
        "category": "platform",
        "priority": 1,
    }


def maintenance_scheduled(address: str, starts_at: str, duration: str) -> Dict[str, Any]:
    return {
        "user_address": address,
        "title": "Scheduled Maintenance",
        "message": f"The platform will be under maintenance from {starts_at} for {duration}.",
        "type": "warning",
        "category": "system",
        "priority": 3,
        "metadata": {"starts_at": starts_at, "duration": duration},
    }


def new_channel_report(report: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_address": ADMIN_WALLET_ADDRESS,
        "title": "New Channel Report Submitted",
        "message": (
            f"Channel '{report.get('channel_name')}' was reported for "
            f"{report.get('report_category')}."
        ),
        "type": "warning",
        "category": "system",
        "priority": 3,
        "action_url": "/admin/reports",
        "action_label": "Review Report",
        "metadata": {
            "report_id": str(report.get("id")),
            "channel_id": report.get("channel_id"),
            "reporter_address": report.get("reporter_address"),
        },
    }
