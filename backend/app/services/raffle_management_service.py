# backend/app/services/raffle_management_service.py

import datetime
import logging
import secrets
from typing import Dict, Any, List, Optional

from app.db import get_db, fetch_one, fetch_all
from app.utils.errors import Conflict, NotFound
from app.utils.helpers import DAY, normalize_dt, to_float, utcnow

logger = logging.getLogger("aionet-backend.raffle-management")

RAFFLE_LENGTH = 7 * DAY
DEFAULT_TICKET_PRICE_SUI = 1


def countdown(end_date, now: datetime.datetime) -> Dict[str, Any]:
    end = normalize_dt(end_date)
    remaining = int((end - now).total_seconds()) if end else 0
    remaining = max(0, remaining)

    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    return {
        "days": days,
        "hours": hours,
        "minutes": minutes,
        "seconds": seconds,
        "total_seconds": remaining,
        "expired": remaining == 0,
    }


def pick_winner(tickets: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not tickets:
        return None
    return tickets[secrets.randbelow(len(tickets))]


def _declare_winner(cur, raffle: Dict[str, Any], ticket: Dict[str, Any], total: int, method: str) -> None:
    cur.execute(
        """
        UPDATE weekly_raffles
        SET status = 'completed',
            winner_address = %s,
            winning_ticket_number = %s,
            winning_transaction_hash = %s,
            winner_selected_at = CURRENT_TIMESTAMP,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = %s AND status = 'active'
        """,
        (ticket["owner_address"], ticket["ticket_number"], ticket["transaction_hash"], raffle["id"]),
    )
    if cur.rowcount != 1:
        raise Conflict("Raffle already completed", "RAFFLE_COMPLETED")

    cur.execute(
        "UPDATE raffle_tickets SET is_winning_ticket = TRUE WHERE id = %s",
        (ticket["id"],),
    )
    cur.execute(
        """
        INSERT INTO raffle_winners
            (week_number, winner_address, winning_ticket_id, prize_amount_sui,
             total_tickets_in_raffle, selection_method)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (
            raffle["week_number"],
            ticket["owner_address"],
            ticket["id"],
            raffle.get("prize_pool_sui") or 0,
            total,
            method,
        ),
    )


def _lock_raffle(cur, week_number: int) -> Optional[Dict[str, Any]]:
    cur.execute(
        "SELECT * FROM weekly_raffles WHERE week_number = %s FOR UPDATE",
        (week_number,),
    )
    return cur.fetchone()


def process_completed_raffles(now: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
    """
    Closes every active raffle whose end date has passed.
    Each raffle is re-read under a row lock, so a raffle an admin closed
    in the meantime is skipped instead of getting a second winner.
    """
    now = now or utcnow()
    due = fetch_all(
        "SELECT week_number FROM weekly_raffles WHERE status = 'active' AND end_date < %s ORDER BY week_number",
        (now,),
    )

    results = []
    for candidate in due:
        week = candidate["week_number"]
        conn = get_db()
        try:
            cur = conn.cursor()
            raffle = _lock_raffle(cur, week)
            if not raffle or raffle.get("status") != "active":
                conn.rollback()
                logger.info("ℹ️ Raffle week %s already closed, skipping", week)
                continue

            cur.execute(
                "SELECT * FROM raffle_tickets WHERE week_number = %s",
                (week,),
            )
            tickets = cur.fetchall()
            winner = pick_winner(tickets)

            if winner is None:
                cur.execute(
                    "UPDATE weekly_raffles SET status = 'completed', updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                    (raffle["id"],),
                )
            else:
                _declare_winner(cur, raffle, winner, len(tickets), "random")

            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error("❌ Failed to process raffle week %s: %s", week, e)
            results.append({"week_number": week, "success": False, "error": str(e)})
            continue
        finally:
            conn.close()

        logger.info(
            "🏆 Raffle week %s completed, winner: %s",
            week,
            winner["owner_address"] if winner else "none",
        )
        results.append({
            "week_number": week,
            "success": True,
            "winner_address": winner["owner_address"] if winner else None,
            "winning_ticket_number": winner["ticket_number"] if winner else None,
            "total_tickets": len(tickets),
        })

    return results


def select_winner_manually(week_number: int, ticket_id: str) -> Dict[str, Any]:
    conn = get_db()
    try:
        cur = conn.cursor()
        raffle = _lock_raffle(cur, week_number)
        if not raffle:
            raise NotFound("Raffle not found")
        if raffle.get("status") != "active":
            raise Conflict("Raffle already completed", "RAFFLE_COMPLETED")

        cur.execute(
            "SELECT * FROM raffle_tickets WHERE id = %s AND week_number = %s",
            (ticket_id, week_number),
        )
        ticket = cur.fetchone()
        if not ticket:
            raise NotFound("Ticket not found")

        cur.execute(
            "SELECT COUNT(*) AS total FROM raffle_tickets WHERE week_number = %s",
            (week_number,),
        )
        total = cur.fetchone()["total"]
        _declare_winner(cur, raffle, ticket, total, "manual")
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("🏆 Manual winner for week %s: %s", week_number, ticket["owner_address"])
    return {
        "week_number": week_number,
        "winner_address": ticket["owner_address"],
        "winning_ticket_number": ticket["ticket_number"],
    }


def create_next_week_raffle(now: Optional[datetime.datetime] = None) -> Optional[Dict[str, Any]]:
    """Opens the next weekly raffle. No-op while one is still active."""
    now = now or utcnow()

    if fetch_one("SELECT id FROM weekly_raffles WHERE status = 'active' LIMIT 1"):
        return None

    previous = fetch_one("SELECT * FROM weekly_raffles ORDER BY week_number DESC LIMIT 1")
    week_number = (previous["week_number"] + 1) if previous else 1
    start = normalize_dt(previous["end_date"]) if previous else now
    price = previous.get("ticket_price_sui") if previous else DEFAULT_TICKET_PRICE_SUI

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO weekly_raffles
                (week_number, start_date, end_date, status, ticket_price_sui, max_attempts_per_user)
            VALUES (%s, %s, %s, 'active', %s, 1)
            RETURNING *
            """,
            (week_number, start, start + RAFFLE_LENGTH, price or DEFAULT_TICKET_PRICE_SUI),
        )
        raffle = cur.fetchone()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("🎲 Raffle week %s opened", week_number)
    return raffle


def summarize_raffles(raffles: List[Dict[str, Any]]) -> Dict[str, Any]:
    completed = [r for r in raffles if r.get("status") == "completed"]
    tickets = sum(int(r.get("total_tickets_sold") or 0) for r in raffles)
    return {
        "total_raffles": len(raffles),
        "total_tickets_sold": tickets,
        "total_prize_distributed": sum(to_float(r.get("prize_pool_sui")) for r in completed),
        "active_raffles": sum(1 for r in raffles if r.get("status") == "active"),
        "average_participation": round(tickets / len(raffles), 2) if raffles else 0,
    }


def get_raffle_statistics() -> Dict[str, Any]:
    raffles = fetch_all("SELECT status, total_tickets_sold, prize_pool_sui FROM weekly_raffles")
    return summarize_raffles(raffles)
