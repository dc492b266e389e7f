"""Unit tests for RaffleCraft quiz, streaks and raffle bookkeeping."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import psycopg2.errors
import pytest

from app.services import raffle_management_service, rafflecraft_service
from app.services.raffle_management_service import (
    countdown,
    pick_winner,
    process_completed_raffles,
    select_winner_manually,
    summarize_raffles,
)
from app.services.rafflecraft_service import (
    answers_match,
    compute_quiz_stats,
    compute_streaks,
    eligibility,
    mint_raffle_ticket,
    submit_quiz_answer,
)
from app.utils.errors import Conflict, NotFound, Unauthorized, ValidationFailed

NOW = datetime(2026, 4, 6, 10, 0, tzinfo=timezone.utc)
ADDRESS = "0x" + "b" * 64
TX_HASH = "0x" + "c" * 64


def test_answers_compare_case_insensitively_after_trim() -> None:
    assert answers_match("  Sui Network ", "sui network")
    assert not answers_match("Solana", "Sui")
    assert not answers_match(None, "Sui")


def test_streaks_over_weeks() -> None:
    attempts = [
        {"week_number": 1, "is_correct": True},
        {"week_number": 2, "is_correct": True},
        {"week_number": 3, "is_correct": False},
        {"week_number": 4, "is_correct": True},
        {"week_number": 5, "is_correct": True},
        {"week_number": 6, "is_correct": True},
    ]
    assert compute_streaks(attempts) == {"best_streak": 3, "current_streak": 3}


def test_streak_week_counts_if_any_attempt_correct() -> None:
    attempts = [
        {"week_number": 2, "is_correct": False},
        {"week_number": 2, "is_correct": True},
        {"week_number": 1, "is_correct": True},
    ]
    assert compute_streaks(attempts) == {"best_streak": 2, "current_streak": 2}


def test_streak_broken_by_latest_week() -> None:
    attempts = [
        {"week_number": 1, "is_correct": True},
        {"week_number": 2, "is_correct": False},
    ]
    assert compute_streaks(attempts) == {"best_streak": 1, "current_streak": 0}


def test_quiz_stats() -> None:
    attempts = [
        {"week_number": 1, "is_correct": True, "points_earned": 10, "time_taken_seconds": 30, "attempted_at": NOW - timedelta(days=7)},
        {"week_number": 2, "is_correct": False, "points_earned": 0, "time_taken_seconds": 50, "attempted_at": NOW},
    ]
    stats = compute_quiz_stats(attempts, tickets_minted=1)
    assert stats["total_attempts"] == 2
    assert stats["correct_answers"] == 1
    assert stats["total_points_earned"] == 10
    assert stats["quiz_participation_weeks"] == 2
    assert stats["accuracy_rate"] == 50.0
    assert stats["average_time_per_quiz"] == 40.0
    assert stats["tickets_minted"] == 1
    assert stats["last_attempt_at"] == NOW.isoformat()


def test_quiz_stats_empty() -> None:
    stats = compute_quiz_stats([], tickets_minted=0)
    assert stats["accuracy_rate"] == 0
    assert stats["best_streak"] == 0
    assert stats["last_attempt_at"] is None


def test_eligibility_rules() -> None:
    raffle = {"week_number": 3}
    assert not eligibility(None, [], False)["can_mint"]
    assert eligibility(raffle, [], False)["reason"] == "Complete this week's quiz first"
    assert not eligibility(raffle, [{"is_correct": False}], False)["can_mint"]
    assert not eligibility(raffle, [{"is_correct": True}], True)["can_mint"]

    ok = eligibility(raffle, [{"is_correct": True}], False)
    assert ok["can_mint"] and ok["quiz_completed"] and ok["answer_correct"]


def test_countdown_breakdown() -> None:
    end = NOW + timedelta(days=2, hours=3, minutes=4, seconds=5)
    result = countdown(end, NOW)
    assert (result["days"], result["hours"], result["minutes"], result["seconds"]) == (2, 3, 4, 5)
    assert not result["expired"]


def test_countdown_never_negative() -> None:
    result = countdown(NOW - timedelta(hours=1), NOW)
    assert result["total_seconds"] == 0
    assert result["days"] == 0
    assert result["expired"]


def test_pick_winner() -> None:
    tickets = [{"id": i} for i in range(5)]
    assert pick_winner([]) is None
    assert pick_winner(tickets) in tickets


def test_raffle_statistics_summary() -> None:
    raffles = [
        {"status": "completed", "total_tickets_sold": 10, "prize_pool_sui": "10"},
        {"status": "completed", "total_tickets_sold": 4, "prize_pool_sui": 4},
        {"status": "active", "total_tickets_sold": 1, "prize_pool_sui": 1},
    ]
    stats = summarize_raffles(raffles)
    assert stats["total_raffles"] == 3
    assert stats["total_tickets_sold"] == 15
    assert stats["total_prize_distributed"] == 14
    assert stats["active_raffles"] == 1
    assert stats["average_participation"] == 5.0


def test_submit_rejects_bad_address() -> None:
    with pytest.raises(ValidationFailed):
        submit_quiz_answer("0x123", "q1", "answer")


def test_submit_unknown_question(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rafflecraft_service, "fetch_one", lambda sql, params=(): None)
    with pytest.raises(NotFound, match="Quiz question not found"):
        submit_quiz_answer(ADDRESS, "q1", "answer")


def test_submit_second_attempt_same_week(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        rafflecraft_service,
        "fetch_one",
        lambda sql, params=(): {"id": "q1", "week_number": 4, "correct_answer": "A"},
    )
    monkeypatch.setattr(rafflecraft_service, "_week_attempts", lambda address, week: [{"is_correct": False}])
    with pytest.raises(Conflict, match="already attempted"):
        submit_quiz_answer(ADDRESS, "q1", "A")


def test_mint_requires_eligibility(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        rafflecraft_service,
        "check_user_eligibility",
        lambda address: {"can_mint": False, "reason": "Quiz answer was incorrect"},
    )
    with pytest.raises(Unauthorized, match="Cannot mint ticket: Quiz answer was incorrect"):
        mint_raffle_ticket(ADDRESS, TX_HASH, 1.0)


def test_mint_validates_amount_and_hash() -> None:
    with pytest.raises(ValidationFailed):
        mint_raffle_ticket(ADDRESS, "abc", 1.0)
    with pytest.raises(ValidationFailed):
        mint_raffle_ticket(ADDRESS, TX_HASH, 0)


def test_concurrent_attempt_hits_unique_guard(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(failures={"INSERT INTO user_quiz_attempts": psycopg2.errors.UniqueViolation("dup")})
    monkeypatch.setattr(
        rafflecraft_service,
        "fetch_one",
        lambda sql, params=(): {"id": "q1", "week_number": 4, "correct_answer": "A"},
    )
    monkeypatch.setattr(rafflecraft_service, "_week_attempts", lambda address, week: [])
    monkeypatch.setattr(rafflecraft_service, "get_db", lambda: conn)

    with pytest.raises(Conflict) as exc:
        submit_quiz_answer(ADDRESS, "q1", "A")

    assert exc.value.code == "ALREADY_ATTEMPTED"
    assert conn.rollbacks == 1


def _eligible(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        rafflecraft_service,
        "check_user_eligibility",
        lambda address: {"can_mint": True, "reason": "Eligible to mint ticket", "week_number": 4},
    )


def test_mint_rechecks_ticket_under_raffle_lock(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    _eligible(monkeypatch)
    conn = fake_db(rows={
        "FROM weekly_raffles": {"id": "r4", "status": "active"},
        "FROM raffle_tickets WHERE owner_address": {"id": "t-first"},
    })
    monkeypatch.setattr(rafflecraft_service, "get_db", lambda: conn)

    with pytest.raises(Conflict) as exc:
        mint_raffle_ticket(ADDRESS, TX_HASH, 1.0)

    assert exc.value.code == "ALREADY_MINTED"
    assert conn.statements[0][0].endswith("FOR UPDATE")
    assert not conn.ran("INSERT INTO raffle_tickets")
    assert conn.commits == 0


def test_mint_assigns_next_ticket_number(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    _eligible(monkeypatch)
    conn = fake_db(rows={
        "FROM weekly_raffles": {"id": "r4", "status": "active"},
        "MAX(ticket_number)": {"next": 7},
        "INSERT INTO raffle_tickets": {"id": "t7", "ticket_number": 7},
    })
    monkeypatch.setattr(rafflecraft_service, "get_db", lambda: conn)

    ticket = mint_raffle_ticket(ADDRESS, TX_HASH, 1.5)

    assert ticket["ticket_number"] == 7
    assert conn.params_for("INSERT INTO raffle_tickets")[1] == 7
    assert conn.ran("UPDATE weekly_raffles")
    assert conn.commits == 1


def test_mint_into_closed_raffle(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    _eligible(monkeypatch)
    conn = fake_db(rows={"FROM weekly_raffles": {"id": "r4", "status": "completed"}})
    monkeypatch.setattr(rafflecraft_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        mint_raffle_ticket(ADDRESS, TX_HASH, 1.0)


TICKET = {"id": "t1", "owner_address": ADDRESS, "ticket_number": 1, "transaction_hash": TX_HASH}


def test_process_skips_raffle_closed_meanwhile(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"FROM weekly_raffles WHERE week_number": {"id": "r4", "week_number": 4, "status": "completed"}})
    monkeypatch.setattr(raffle_management_service, "fetch_all", lambda sql, params=(): [{"week_number": 4}])
    monkeypatch.setattr(raffle_management_service, "get_db", lambda: conn)

    assert process_completed_raffles(NOW) == []
    assert not conn.ran("INSERT INTO raffle_winners")
    assert conn.commits == 0


def test_process_draws_winner_under_lock(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    raffle = {"id": "r4", "week_number": 4, "status": "active", "prize_pool_sui": 3}
    conn = fake_db(rows={
        "FROM weekly_raffles WHERE week_number": raffle,
        "FROM raffle_tickets WHERE week_number": [TICKET],
    })
    monkeypatch.setattr(raffle_management_service, "fetch_all", lambda sql, params=(): [{"week_number": 4}])
    monkeypatch.setattr(raffle_management_service, "get_db", lambda: conn)

    results = process_completed_raffles(NOW)

    assert results[0]["success"]
    assert results[0]["winner_address"] == ADDRESS
    assert conn.ran("AND status = 'active'")
    assert conn.ran("INSERT INTO raffle_winners")
    assert conn.commits == 1


def test_manual_selection_after_completion_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"FROM weekly_raffles": {"id": "r4", "week_number": 4, "status": "completed"}})
    monkeypatch.setattr(raffle_management_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        select_winner_manually(4, "t1")

    assert not conn.ran("INSERT INTO raffle_winners")


def test_declare_winner_refuses_when_status_changed(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    raffle = {"id": "r4", "week_number": 4, "status": "active"}
    conn = fake_db(rows={
        "FROM weekly_raffles": raffle,
        "FROM raffle_tickets WHERE id": TICKET,
        "COUNT(*)": {"total": 1},
    })
    conn.rowcount = 0
    monkeypatch.setattr(raffle_management_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        select_winner_manually(4, "t1")

    assert not conn.ran("INSERT INTO raffle_winners")
    assert conn.rollbacks == 1
