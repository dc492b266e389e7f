"""Unit tests for ROYAL royalty analytics."""

from __future__ import annotations

from datetime import datetime, timezone

from app.services.royalties_service import calculate_user_share, summarize_distributions, weekly_change


def test_weekly_change_never_goes_negative() -> None:
    assert weekly_change(120.5, 100.0) == 20.5
    assert weekly_change(80.0, 100.0) == 0.0
    assert weekly_change(80.0, None) == 0.0


def test_user_share() -> None:
    assert calculate_user_share(1, 4) == 0.25
    assert calculate_user_share(0, 4) == 0.0
    assert calculate_user_share(2, 0) == 0.0


def test_summary_counts_completed_distributions_only() -> None:
    rows = [
        {
            "status": "completed",
            "amount_sui": "10.5",
            "amount_usd": 26.25,
            "recipient_count": 2,
            "recipient_addresses": ["0xa", "0xb"],
            "distributed_at": datetime(2026, 6, 1, tzinfo=timezone.utc),
        },
        {
            "status": "completed",
            "amount_sui": 4.5,
            "amount_usd": 11.25,
            "recipient_count": 3,
            "recipient_addresses": ["0xb", "0xc", "0xd"],
            "distributed_at": datetime(2026, 6, 8, tzinfo=timezone.utc),
        },
        {"status": "failed", "amount_sui": 99, "recipient_count": 9, "recipient_addresses": ["0xe"]},
    ]

    summary = summarize_distributions(rows)

    assert summary["totalDistributed"] == 15.0
    assert summary["totalDistributedUSD"] == 37.5
    assert summary["totalDistributions"] == 2
    assert summary["avgRecipientsPerDistribution"] == 2.5
    assert summary["uniqueRecipients"] == 4
    assert summary["lastDistributionDate"] == "2026-06-08T00:00:00+00:00"


def test_summary_without_distributions() -> None:
    summary = summarize_distributions([])
    assert summary["totalDistributed"] == 0
    assert summary["avgRecipientsPerDistribution"] == 0
    assert summary["lastDistributionDate"] is None
