# backend/app/services/channel_report_service.py

import datetime
import logging
from typing import Dict, Any, List, Optional

from app.db import fetch_one, fetch_all, execute, Json
from app.services import notification_service
from app.utils.errors import NotFound, RateLimited, ValidationFailed
from app.utils.helpers import utcnow

logger = logging.getLogger("aionet-backend.channel-reports")

REPORT_CATEGORIES = (
    "content_mismatch",
    "not_delivering",
    "inactive_channel",
    "inappropriate_content",
    "spam_or_scam",
    "other",
)
REPORT_STATUSES = ("pending", "under_review", "resolved", "dismissed")
SEVERITIES = ("low", "medium", "high", "critical")

REQUIRED_FIELDS = (
    "reporter_address",
    "channel_id",
    "channel_name",
    "creator_address",
    "report_category",
    "report_description",
)
MIN_DESCRIPTION_LENGTH = 20
REPEAT_WINDOW = datetime.timedelta(hours=24)
FLAGGED_LIST_LIMIT = 50

UPDATABLE_FIELDS = ("status", "admin_notes", "severity", "priority")


# -------------------------------------------------
# STATISTICS (pure)
# -------------------------------------------------
def warning_level(active_reports: int) -> str:
    if active_reports >= 10:
        return "high"
    if active_reports >= 5:
        return "medium"
    if active_reports >= 2:
        return "low"
    return "none"


def compute_statistics(reports: List[Dict[str, Any]]) -> Dict[str, Any]:
    stats: Dict[str, Any] = {
        "total_reports": len(reports),
        "pending_reports": 0,
        "resolved_reports": 0,
        "dismissed_reports": 0,
        "last_report_date": None,
    }
    for category in REPORT_CATEGORIES:
        stats[f"{category}_count"] = 0

    for report in reports:
        status = report.get("status")
        if status in ("pending", "under_review"):
            stats["pending_reports"] += 1
        elif status == "resolved":
            stats["resolved_reports"] += 1
        elif status == "dismissed":
            stats["dismissed_reports"] += 1

        category = report.get("report_category")
        if category in REPORT_CATEGORIES:
            stats[f"{category}_count"] += 1

        created = report.get("created_at")
        if created and (stats["last_report_date"] is None or created > stats["last_report_date"]):
            stats["last_report_date"] = created

    level = warning_level(stats["total_reports"] - stats["dismissed_reports"])
    stats["warning_level"] = level
    stats["is_flagged"] = level != "none"
    return stats


def with_warning_flag(stats: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if stats is None:
        return None
    data = dict(stats)
    data["has_warning"] = bool(data.get("is_flagged")) and data.get("warning_level") != "none"
    return data


def summarize_flagged(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "total_channels_with_reports": len(rows),
        "flagged_channels": sum(1 for r in rows if r.get("is_flagged")),
        "high_warning_channels": sum(1 for r in rows if r.get("warning_level") == "high"),
        "medium_warning_channels": sum(1 for r in rows if r.get("warning_level") == "medium"),
        "low_warning_channels": sum(1 for r in rows if r.get("warning_level") == "low"),
        "total_reports_across_all_channels": sum(r.get("total_reports") or 0 for r in rows),
    }


# -------------------------------------------------
# VALIDATION (pure)
# -------------------------------------------------
def validate_report(payload: Dict[str, Any]) -> None:
    missing = [field for field in REQUIRED_FIELDS if not payload.get(field)]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

    if payload["report_category"] not in REPORT_CATEGORIES:
        raise ValidationFailed("Invalid report category")

    if len(payload["report_description"].strip()) < MIN_DESCRIPTION_LENGTH:
        raise ValidationFailed(
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters long"
        )


# -------------------------------------------------
# DB
# -------------------------------------------------
def refresh_statistics(channel_id: str) -> Dict[str, Any]:
    reports = fetch_all(
        """
        SELECT status, report_category, created_at, channel_name, creator_address
        FROM channel_reports
        WHERE channel_id = %s
        ORDER BY created_at DESC
        """,
        (channel_id,),
    )
    stats = compute_statistics(reports)
    latest = reports[0] if reports else {}

    columns = [
        "total_reports",
        "pending_reports",
        "resolved_reports",
        "dismissed_reports",
    ] + [f"{c}_count" for c in REPORT_CATEGORIES] + [
        "is_flagged",
        "warning_level",
        "last_report_date",
    ]
    values = [stats[c] for c in columns]

    assignments = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
    placeholders = ", ".join(["%s"] * (len(columns) + 3))

    return execute(
        f"""
        INSERT INTO channel_report_statistics
            (channel_id, channel_name, creator_address, {", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT (channel_id) DO UPDATE SET
            {assignments},
            channel_name = COALESCE(EXCLUDED.channel_name, channel_report_statistics.channel_name),
            creator_address = COALESCE(EXCLUDED.creator_address, channel_report_statistics.creator_address),
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        tuple([channel_id, latest.get("channel_name"), latest.get("creator_address")] + values),
        returning=True,
    )


def create_report(
    payload: Dict[str, Any],
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    validate_report(payload)
    now = now or utcnow()

    recent = fetch_one(
        """
        SELECT id FROM channel_reports
        WHERE reporter_address = %s AND channel_id = %s AND created_at >= %s
        LIMIT 1
        """,
        (payload["reporter_address"], payload["channel_id"], now - REPEAT_WINDOW),
    )
    if recent:
        raise RateLimited(
            "You have already reported this channel recently. "
            "Please wait 24 hours before submitting another report."
        )

    report = execute(
        """
        INSERT INTO channel_reports
            (reporter_address, channel_id, channel_name, creator_address, creator_name,
             report_category, report_description, evidence_urls, metadata)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        (
            payload["reporter_address"],
            payload["channel_id"],
            payload["channel_name"],
            payload["creator_address"],
            payload.get("creator_name"),
            payload["report_category"],
            payload["report_description"].strip(),
            Json(payload.get("evidence_urls") or []),
            Json({
                "user_agent": user_agent,
                "ip_address": ip_address,
                "submitted_at": now.isoformat(),
            }),
        ),
        returning=True,
    )

    refresh_statistics(payload["channel_id"])

    try:
        notification_service.create_notification(notification_service.new_channel_report(report))
    except Exception as e:
        logger.error("❌ Admin notification for report %s failed: %s", report["id"], e)

    logger.info("🚩 Channel %s reported by %s", payload["channel_id"], payload["reporter_address"])
    return report


def list_reports(
    channel_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    clauses = []
    params: List[Any] = []
    if channel_id:
        clauses.append("channel_id = %s")
        params.append(channel_id)
    if status:
        clauses.append("status = %s")
        params.append(status)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    total = fetch_one(f"SELECT COUNT(*) AS total FROM channel_reports {where}", tuple(params))
    rows = fetch_all(
        f"""
        SELECT * FROM channel_reports {where}
        ORDER BY created_at DESC
        LIMIT %s OFFSET %s
        """,
        tuple(params + [limit, offset]),
    )
    return {
        "reports": rows,
        "pagination": {
            "total": int(total["total"]) if total else 0,
            "limit": limit,
            "offset": offset,
        },
    }


def get_report(report_id: str) -> Dict[str, Any]:
    report = fetch_one("SELECT * FROM channel_reports WHERE id = %s", (report_id,))
    if not report:
        raise NotFound("Report not found")
    return report


def update_report(report_id: str, changes: Dict[str, Any], admin_address: str) -> Dict[str, Any]:
    report = get_report(report_id)
    updates = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}

    if "status" in updates and updates["status"] not in REPORT_STATUSES:
        raise ValidationFailed("Invalid status")
    if "severity" in updates and updates["severity"] not in SEVERITIES:
        raise ValidationFailed("Invalid severity")
    if "priority" in updates and not 1 <= int(updates["priority"]) <= 5:
        raise ValidationFailed("Priority must be between 1 and 5")

    if not updates:
        return report

    if updates.get("status") in ("resolved", "dismissed"):
        updates["resolved_at"] = utcnow()
        updates["resolved_by"] = admin_address

    assignments = ", ".join(f"{column} = %s" for column in updates)
    updated = execute(
        f"""
        UPDATE channel_reports
        SET {assignments}, updated_at = CURRENT_TIMESTAMP
        WHERE id = %s
        RETURNING *
        """,
        tuple(updates.values()) + (report_id,),
        returning=True,
    )

    refresh_statistics(report["channel_id"])
    logger.info("✅ Report %s updated by %s", report_id, admin_address)
    return updated


def delete_report(report_id: str) -> None:
    report = get_report(report_id)
    execute("DELETE FROM channel_reports WHERE id = %s", (report_id,))
    refresh_statistics(report["channel_id"])
    logger.info("🗑 Report %s deleted", report_id)


def get_channel_statistics(channel_id: str) -> Optional[Dict[str, Any]]:
    row = fetch_one(
        "SELECT * FROM channel_report_statistics WHERE channel_id = %s",
        (channel_id,),
    )
    return with_warning_flag(row)


def get_statistics_map(channel_ids: List[str]) -> Dict[str, Any]:
    rows = fetch_all(
        "SELECT * FROM channel_report_statistics WHERE channel_id = ANY(%s)",
        (channel_ids,),
    )
    return {row["channel_id"]: with_warning_flag(row) for row in rows}


def get_flagged_overview() -> Dict[str, Any]:
    flagged = fetch_all(
        """
        SELECT * FROM channel_report_statistics
        WHERE is_flagged = TRUE
        ORDER BY total_reports DESC
        LIMIT %s
        """,
        (FLAGGED_LIST_LIMIT,),
    )
    everything = fetch_all(
        "SELECT is_flagged, warning_level, total_reports FROM channel_report_statistics"
    )
    return {
        "flagged_channels": [with_warning_flag(row) for row in flagged],
        "summary": summarize_flagged(everything),
    }


def get_admin_dashboard() -> Dict[str, Any]:
    status_counts = fetch_all(
        "SELECT status, COUNT(*) AS count FROM channel_reports GROUP BY status"
    )
    recent = fetch_all(
        "SELECT * FROM channel_reports ORDER BY created_at DESC LIMIT 10"
    )
    overview = get_flagged_overview()
    return {
        "reports_by_status": {row["status"]: int(row["count"]) for row in status_counts},
        "recent_reports": recent,
        "flagged_channels": overview["flagged_channels"],
        "summary": overview["summary"],
    }
