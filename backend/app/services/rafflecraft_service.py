# backend/app/services/rafflecraft_service.py

import logging
from typing import Dict, Any, List, Optional

import psycopg2.errors

from app.db import get_db, fetch_one, fetch_all
from app.utils.errors import Conflict, NotFound, Unauthorized, ValidationFailed
from app.utils.helpers import looks_like_sui_hex, to_float

logger = logging.getLogger("aionet-backend.rafflecraft")

PUBLIC_QUESTION_FIELDS = (
    "id",
    "week_number",
    "question_text",
    "question_type",
    "options",
    "difficulty",
    "category",
    "points_reward",
)


# -------------------------------------------------
# PURE HELPERS
# -------------------------------------------------
def answers_match(user_answer: Optional[str], correct_answer: Optional[str]) -> bool:
    return (user_answer or "").strip().lower() == (correct_answer or "").strip().lower()


def compute_streaks(attempts: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Streaks over weekly results, oldest week first.
    A week is a success when any attempt in it was correct.
    """
    weeks: Dict[int, bool] = {}
    for attempt in attempts:
        week = attempt.get("week_number")
        if week is None:
            continue
        weeks[week] = weeks.get(week, False) or bool(attempt.get("is_correct"))

    best = current = 0
    for week in sorted(weeks):
        if weeks[week]:
            current += 1
            best = max(best, current)
        else:
            current = 0

    return {"best_streak": best, "current_streak": current}


def compute_quiz_stats(attempts: List[Dict[str, Any]], tickets_minted: int) -> Dict[str, Any]:
    total = len(attempts)
    correct = sum(1 for a in attempts if a.get("is_correct"))
    timed = [a["time_taken_seconds"] for a in attempts if a.get("time_taken_seconds") is not None]
    last = max((a["attempted_at"] for a in attempts if a.get("attempted_at")), default=None)

    stats = {
        "total_attempts": total,
        "correct_answers": correct,
        "total_points_earned": sum(int(a.get("points_earned") or 0) for a in attempts),
        "quiz_participation_weeks": len({a.get("week_number") for a in attempts}),
        "accuracy_rate": round(correct / total * 100, 2) if total else 0,
        "average_time_per_quiz": round(sum(timed) / len(timed), 2) if timed else 0,
        "tickets_minted": tickets_minted,
        "last_attempt_at": last.isoformat() if last else None,
    }
    stats.update(compute_streaks(attempts))
    return stats


def eligibility(
    raffle: Optional[Dict[str, Any]],
    attempts: List[Dict[str, Any]],
    has_ticket: bool,
) -> Dict[str, Any]:
    if raffle is None:
        return {
            "can_mint": False,
            "reason": "No active raffle",
            "quiz_completed": False,
            "answer_correct": False,
        }

    completed = bool(attempts)
    correct = any(a.get("is_correct") for a in attempts)

    if not completed:
        reason = "Complete this week's quiz first"
    elif not correct:
        reason = "Quiz answer was incorrect"
    elif has_ticket:
        reason = "You already have a ticket for this week"
    else:
        reason = None

    return {
        "can_mint": reason is None,
        "reason": reason or "Eligible to mint ticket",
        "quiz_completed": completed,
        "answer_correct": correct,
    }


# -------------------------------------------------
# READS
# -------------------------------------------------
def get_active_raffle() -> Optional[Dict[str, Any]]:
    return fetch_one(
        """
        SELECT * FROM weekly_raffles
        WHERE status = 'active'
        ORDER BY week_number DESC
        LIMIT 1
        """
    )


def _question_for_week(week_number: int) -> Optional[Dict[str, Any]]:
    return fetch_one(
        """
        SELECT * FROM quiz_questions
        WHERE week_number = %s AND is_active = TRUE
        ORDER BY created_at DESC
        LIMIT 1
        """,
        (week_number,),
    )


def get_current_week_quiz() -> Dict[str, Any]:
    raffle = get_active_raffle()
    if not raffle:
        raise NotFound("No active raffle this week")

    question = _question_for_week(raffle["week_number"])
    if not question:
        raise NotFound("No quiz question for this week")

    return {
        "question": {field: question.get(field) for field in PUBLIC_QUESTION_FIELDS},
        "raffle": {
            "week_number": raffle["week_number"],
            "start_date": raffle["start_date"],
            "end_date": raffle["end_date"],
            "prize_pool_sui": to_float(raffle.get("prize_pool_sui")),
            "ticket_price_sui": to_float(raffle.get("ticket_price_sui")),
            "total_tickets_sold": raffle.get("total_tickets_sold") or 0,
        },
    }


def _week_attempts(address: str, week_number: int) -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT * FROM user_quiz_attempts
        WHERE user_address = %s AND week_number = %s
        """,
        (address, week_number),
    )


def _has_ticket(address: str, week_number: int) -> bool:
    return fetch_one(
        "SELECT id FROM raffle_tickets WHERE owner_address = %s AND week_number = %s LIMIT 1",
        (address, week_number),
    ) is not None


def check_user_eligibility(address: str) -> Dict[str, Any]:
    raffle = get_active_raffle()
    if raffle is None:
        return eligibility(None, [], False)

    week = raffle["week_number"]
    result = eligibility(raffle, _week_attempts(address, week), _has_ticket(address, week))
    result["week_number"] = week
    return result


def get_user_tickets(address: str, week_number: Optional[int] = None) -> List[Dict[str, Any]]:
    if week_number is not None:
        return fetch_all(
            """
            SELECT * FROM raffle_tickets
            WHERE owner_address = %s AND week_number = %s
            ORDER BY minted_at DESC
            """,
            (address, week_number),
        )
    return fetch_all(
        "SELECT * FROM raffle_tickets WHERE owner_address = %s ORDER BY minted_at DESC",
        (address,),
    )


def get_raffle_history(limit: int = 10) -> List[Dict[str, Any]]:
    return fetch_all(
        "SELECT * FROM weekly_raffles ORDER BY week_number DESC LIMIT %s",
        (limit,),
    )


def get_winners_history(limit: int = 10) -> List[Dict[str, Any]]:
    return fetch_all(
        "SELECT * FROM raffle_winners ORDER BY created_at DESC LIMIT %s",
        (limit,),
    )


def get_user_quiz_stats(address: str) -> Dict[str, Any]:
    attempts = fetch_all(
        """
        SELECT week_number, is_correct, points_earned, time_taken_seconds, attempted_at
        FROM user_quiz_attempts
        WHERE user_address = %s
        """,
        (address,),
    )
    tickets = fetch_one(
        "SELECT COUNT(*) AS total FROM raffle_tickets WHERE owner_address = %s",
        (address,),
    )
    return compute_quiz_stats(attempts, int(tickets["total"]) if tickets else 0)


# -------------------------------------------------
# WRITES
# -------------------------------------------------
def submit_quiz_answer(
    address: str,
    question_id: str,
    answer: str,
    time_taken_seconds: Optional[int] = None,
) -> Dict[str, Any]:
    if not address or not question_id or answer is None:
        raise ValidationFailed("Missing required fields: user_address, question_id, answer")
    if not looks_like_sui_hex(address):
        raise ValidationFailed("Invalid wallet address")

    question = fetch_one("SELECT * FROM quiz_questions WHERE id = %s", (question_id,))
    if not question:
        raise NotFound("Quiz question not found")

    week = question["week_number"]
    if _week_attempts(address, week):
        raise Conflict("You have already attempted this week's quiz", "ALREADY_ATTEMPTED")

    correct = answers_match(answer, question["correct_answer"])
    points = int(question.get("points_reward") or 0) if correct else 0

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO user_quiz_attempts
                (user_address, week_number, quiz_question_id, user_answer, is_correct,
                 time_taken_seconds, points_earned, can_mint_ticket)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (address, week, question_id, answer, correct, time_taken_seconds, points, correct),
        )
        attempt = cur.fetchone()
        conn.commit()
    except psycopg2.errors.UniqueViolation:
        conn.rollback()
        raise Conflict("You have already attempted this week's quiz", "ALREADY_ATTEMPTED")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("📝 Quiz attempt by %s week %s: %s", address, week, "correct" if correct else "wrong")
    return {
        "attempt": attempt,
        "is_correct": correct,
        "points_earned": points,
        "can_mint_ticket": correct,
        "correct_answer": question["correct_answer"],
        "explanation": question.get("explanation"),
    }


def mint_raffle_ticket(address: str, tx_hash: str, amount_sui: float) -> Dict[str, Any]:
    if not looks_like_sui_hex(address):
        raise ValidationFailed("Invalid wallet address")
    if not looks_like_sui_hex(tx_hash):
        raise ValidationFailed("Invalid transaction hash")
    if amount_sui is None or amount_sui <= 0:
        raise ValidationFailed("Amount must be greater than 0")

    status = check_user_eligibility(address)
    if not status["can_mint"]:
        raise Unauthorized(f"Cannot mint ticket: {status['reason']}", "NOT_ELIGIBLE")

    week = status["week_number"]

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            "SELECT id, status FROM weekly_raffles WHERE week_number = %s FOR UPDATE",
            (week,),
        )
        raffle = cur.fetchone()
        if not raffle or raffle.get("status") != "active":
            raise Conflict("This week's raffle is closed", "RAFFLE_CLOSED")

        # re-checked under the raffle lock so parallel mints serialize here
        cur.execute(
            "SELECT id FROM raffle_tickets WHERE owner_address = %s AND week_number = %s LIMIT 1",
            (address, week),
        )
        if cur.fetchone():
            raise Conflict("You already have a ticket for this week", "ALREADY_MINTED")

        cur.execute(
            "SELECT COALESCE(MAX(ticket_number), 0) + 1 AS next FROM raffle_tickets WHERE week_number = %s",
            (week,),
        )
        ticket_number = cur.fetchone()["next"]

        cur.execute(
            """
            INSERT INTO raffle_tickets
                (week_number, ticket_number, owner_address, transaction_hash, amount_paid_sui)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
            """,
            (week, ticket_number, address, tx_hash, amount_sui),
        )
        ticket = cur.fetchone()
        cur.execute(
            """
            UPDATE weekly_raffles
            SET total_tickets_sold = total_tickets_sold + 1,
                prize_pool_sui = prize_pool_sui + %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE week_number = %s
            """,
            (amount_sui, week),
        )
        conn.commit()
    except psycopg2.errors.UniqueViolation as e:
        conn.rollback()
        if e.diag.constraint_name == "raffle_tickets_week_owner_key":
            raise Conflict("You already have a ticket for this week", "ALREADY_MINTED")
        raise Conflict("Transaction already used for a ticket", "DUPLICATE_TRANSACTION")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("🎟 Ticket #%s minted for %s (week %s)", ticket_number, address, week)
    return ticket
