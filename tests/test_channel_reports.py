"""Unit tests for channel report validation and warning statistics."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.services import channel_report_service
from app.services.channel_report_service import (
    compute_statistics,
    summarize_flagged,
    validate_report,
    warning_level,
    with_warning_flag,
)
from app.utils.errors import RateLimited, ValidationFailed


def _payload(**overrides) -> dict:
    payload = {
        "reporter_address": "0xreporter",
        "channel_id": "ch-1",
        "channel_name": "Alpha Calls",
        "creator_address": "0xcreator",
        "report_category": "not_delivering",
        "report_description": "Paid for signals but nothing was posted in weeks.",
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(
    "active, expected",
    [(0, "none"), (1, "none"), (2, "low"), (4, "low"), (5, "medium"), (9, "medium"), (10, "high"), (42, "high")],
)
def test_warning_levels(active: int, expected: str) -> None:
    assert warning_level(active) == expected


def test_dismissed_reports_do_not_count_towards_warning() -> None:
    reports = [
        {"status": "pending", "report_category": "spam_or_scam"},
        {"status": "dismissed", "report_category": "spam_or_scam"},
        {"status": "dismissed", "report_category": "other"},
    ]
    stats = compute_statistics(reports)
    assert stats["total_reports"] == 3
    assert stats["dismissed_reports"] == 2
    assert stats["warning_level"] == "none"
    assert not stats["is_flagged"]


def test_statistics_counts() -> None:
    first = datetime(2026, 1, 1, tzinfo=timezone.utc)
    last = datetime(2026, 2, 1, tzinfo=timezone.utc)
    reports = [
        {"status": "pending", "report_category": "content_mismatch", "created_at": first},
        {"status": "under_review", "report_category": "content_mismatch", "created_at": last},
        {"status": "resolved", "report_category": "inactive_channel", "created_at": first},
    ]
    stats = compute_statistics(reports)
    assert stats["pending_reports"] == 2
    assert stats["resolved_reports"] == 1
    assert stats["content_mismatch_count"] == 2
    assert stats["inactive_channel_count"] == 1
    assert stats["last_report_date"] == last
    assert stats["warning_level"] == "low"
    assert stats["is_flagged"]


def test_has_warning_flag() -> None:
    assert with_warning_flag(None) is None
    assert with_warning_flag({"is_flagged": True, "warning_level": "high"})["has_warning"]
    assert not with_warning_flag({"is_flagged": False, "warning_level": "none"})["has_warning"]


def test_flagged_summary() -> None:
    rows = [
        {"is_flagged": True, "warning_level": "high", "total_reports": 12},
        {"is_flagged": True, "warning_level": "low", "total_reports": 2},
        {"is_flagged": False, "warning_level": "none", "total_reports": 1},
    ]
    assert summarize_flagged(rows) == {
        "total_channels_with_reports": 3,
        "flagged_channels": 2,
        "high_warning_channels": 1,
        "medium_warning_channels": 0,
        "low_warning_channels": 1,
        "total_reports_across_all_channels": 15,
    }


def test_description_minimum_length_after_trim() -> None:
    with pytest.raises(ValidationFailed):
        validate_report(_payload(report_description="   too short        "))


def test_missing_fields() -> None:
    with pytest.raises(ValidationFailed, match="channel_name"):
        validate_report(_payload(channel_name=""))


def test_unknown_category() -> None:
    with pytest.raises(ValidationFailed):
        validate_report(_payload(report_category="boring"))


def test_repeat_report_within_a_day(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(channel_report_service, "fetch_one", lambda sql, params=(): {"id": "r1"})
    with pytest.raises(RateLimited, match="24 hours"):
        channel_report_service.create_report(_payload())


def test_create_report_survives_notification_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    inserted = {"id": "r9", **_payload()}
    refreshed = []

    def broken_notify(payload):
        raise RuntimeError("Database connection failed")

    monkeypatch.setattr(channel_report_service, "fetch_one", lambda sql, params=(): None)
    monkeypatch.setattr(channel_report_service, "execute", lambda sql, params=(), returning=False: inserted)
    monkeypatch.setattr(channel_report_service, "refresh_statistics", refreshed.append)
    monkeypatch.setattr(channel_report_service.notification_service, "create_notification", broken_notify)

    report = channel_report_service.create_report(_payload(), user_agent="pytest", ip_address="1.2.3.4")

    assert report["id"] == "r9"
    assert refreshed == ["ch-1"]
