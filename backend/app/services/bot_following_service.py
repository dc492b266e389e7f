# backend/app/services/bot_following_service.py

import datetime
import logging
import random
from typing import Dict, Any, List, Optional

import psycopg2.errors

from app.db import get_db, fetch_one, fetch_all, execute
from app.services import notification_service
from app.services.tier_service import BOT_TYPES, can_access_bot_type, get_user_tier, normalize_tier
from app.utils.errors import Conflict, NotFound, Unauthorized, ValidationFailed
from app.utils.helpers import normalize_dt, to_float, utcnow

logger = logging.getLogger("aionet-backend.bots")

START_PROFIT = 1000.0
CYCLE_TARGET_MULTIPLIER = 1.1
CYCLE_PRICE_USDC = 25

HOURLY_GROWTH_RATES = {
    "crypto": 0.008,
    "forex": 0.006,
    "stock": 0.004,
}
DEFAULT_HOURLY_RATE = 0.005


# -------------------------------------------------
# PROFIT CYCLE (pure)
# -------------------------------------------------
def random_factor() -> float:
    return 0.8 + random.random() * 0.4


def ensure_cycle_fields(bot: Dict[str, Any]) -> Dict[str, Any]:
    """Bots followed before cycles existed start from the base profit."""
    if bot.get("cycle_start_profit") is None or bot.get("cycle_target_profit") is None:
        bot = dict(bot)
        bot["cycle_start_profit"] = START_PROFIT
        bot["current_profit"] = START_PROFIT
        bot["cycle_target_profit"] = START_PROFIT * CYCLE_TARGET_MULTIPLIER
        bot["profit_percentage"] = 0
    return bot


def simulate_profit(
    bot: Dict[str, Any],
    now: datetime.datetime,
    factor: Optional[float] = None,
) -> Dict[str, Any]:
    bot = ensure_cycle_fields(bot)
    factor = random_factor() if factor is None else factor

    start = to_float(bot["cycle_start_profit"], START_PROFIT)
    target = to_float(bot["cycle_target_profit"], start * CYCLE_TARGET_MULTIPLIER)
    started_at = normalize_dt(bot.get("cycle_start_date")) or now
    hours = max(0.0, (now - started_at).total_seconds() / 3600)

    rate = HOURLY_GROWTH_RATES.get(bot.get("type"), DEFAULT_HOURLY_RATE)
    growth = (1 + rate * factor) ** hours - 1
    current = start * (1 + growth)

    span = target - start
    percent = (current - start) / span * 100 if span > 0 else 100.0

    updated = dict(bot)
    updated["current_profit"] = round(current, 2)
    updated["profit_percentage"] = round(max(0.0, min(100.0, percent)), 2)
    return updated


def cycle_info(bot: Dict[str, Any]) -> Dict[str, Any]:
    percent = to_float(bot.get("profit_percentage"))
    return {
        "profitPercentage": percent,
        "cycleNumber": bot.get("cycles_paid") or 1,
        "isPaid": bool(bot.get("is_paid")),
        "isCompleted": percent >= 100,
        "currentProfit": to_float(bot.get("current_profit")),
        "targetProfit": to_float(bot.get("cycle_target_profit")),
        "startProfit": to_float(bot.get("cycle_start_profit")),
    }


def cycle_payment_required(tier: str, bot_type: str) -> bool:
    tier = normalize_tier(tier)
    if tier == "ROYAL":
        return False
    if tier == "PRO":
        return bot_type != "crypto"
    return True


# -------------------------------------------------
# DB
# -------------------------------------------------
def _get_bot(address: str, bot_id: str) -> Dict[str, Any]:
    bot = fetch_one(
        "SELECT * FROM followed_bots WHERE user_address = %s AND bot_id = %s",
        (address, bot_id),
    )
    if not bot:
        raise NotFound("Bot is not followed")
    return bot


def _save_progress(bot: Dict[str, Any]) -> None:
    execute(
        """
        UPDATE followed_bots
        SET cycle_start_profit = %s,
            current_profit = %s,
            cycle_target_profit = %s,
            profit_percentage = %s,
            last_update = CURRENT_TIMESTAMP
        WHERE user_address = %s AND bot_id = %s
        """,
        (
            bot["cycle_start_profit"],
            bot["current_profit"],
            bot["cycle_target_profit"],
            bot["profit_percentage"],
            bot["user_address"],
            bot["bot_id"],
        ),
    )


def advance_cycle(bot: Dict[str, Any], now: datetime.datetime) -> Dict[str, Any]:
    """Current cycle state; completed cycles stay frozen at 100% until paid."""
    if bot.get("status") != "active" or to_float(bot.get("profit_percentage")) >= 100:
        return ensure_cycle_fields(bot)
    return simulate_profit(bot, now)


def refresh_bot(bot: Dict[str, Any], now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    updated = advance_cycle(bot, now or utcnow())
    if updated is not bot:
        _save_progress(updated)
    return updated


def list_followed_bots(address: str) -> List[Dict[str, Any]]:
    bots = fetch_all(
        "SELECT * FROM followed_bots WHERE user_address = %s ORDER BY followed_at DESC",
        (address,),
    )
    now = utcnow()
    result = []
    for bot in bots:
        refreshed = refresh_bot(bot, now)
        refreshed["cycle"] = cycle_info(refreshed)
        result.append(refreshed)
    return result


def follow_bot(address: str, bot_id: str, name: str, bot_type: str) -> Dict[str, Any]:
    if bot_type not in BOT_TYPES:
        raise ValidationFailed(f"Unknown bot type: {bot_type}")

    tier = get_user_tier(address)
    if not can_access_bot_type(tier, bot_type):
        raise Unauthorized(f"{bot_type.title()} bots require ROYAL status", "TIER_REQUIRED")

    row = execute(
        """
        INSERT INTO followed_bots
            (user_address, bot_id, name, type, status, cycles_paid, is_paid,
             cycle_start_profit, current_profit, cycle_target_profit, profit_percentage)
        VALUES (%s, %s, %s, %s, 'active', 1, TRUE, %s, %s, %s, 0)
        ON CONFLICT (user_address, bot_id) DO NOTHING
        RETURNING *
        """,
        (
            address,
            bot_id,
            name,
            bot_type,
            START_PROFIT,
            START_PROFIT,
            START_PROFIT * CYCLE_TARGET_MULTIPLIER,
        ),
        returning=True,
    )
    if row is None:
        raise Conflict("Bot already followed", "ALREADY_FOLLOWING")

    _notify(notification_service.bot_activated(address, name))
    logger.info("🤖 %s followed %s bot %s", address, bot_type, bot_id)
    return row


def unfollow_bot(address: str, bot_id: str) -> None:
    row = execute(
        "DELETE FROM followed_bots WHERE user_address = %s AND bot_id = %s RETURNING bot_id",
        (address, bot_id),
        returning=True,
    )
    if not row:
        raise NotFound("Bot is not followed")
    logger.info("🤖 %s unfollowed %s", address, bot_id)


def toggle_bot(address: str, bot_id: str) -> Dict[str, Any]:
    bot = _get_bot(address, bot_id)
    status = "stopped" if bot.get("status") == "active" else "active"
    row = execute(
        """
        UPDATE followed_bots SET status = %s, last_update = CURRENT_TIMESTAMP
        WHERE user_address = %s AND bot_id = %s
        RETURNING *
        """,
        (status, address, bot_id),
        returning=True,
    )

    template = notification_service.bot_activated if status == "active" else notification_service.bot_deactivated
    _notify(template(address, bot["name"]))
    return row


def get_cycle(address: str, bot_id: str) -> Dict[str, Any]:
    bot = refresh_bot(_get_bot(address, bot_id))
    info = cycle_info(bot)
    info["paymentRequired"] = info["isCompleted"] and cycle_payment_required(
        get_user_tier(address), bot.get("type")
    )
    info["cyclePriceUsdc"] = CYCLE_PRICE_USDC
    return info


def pay_for_cycle(address: str, bot_id: str, tx_hash: Optional[str] = None) -> Dict[str, Any]:
    """
    Starts the next cycle once the current one reached its target.
    The bot row is locked so the payment and the reset land together, once.
    """
    tier = get_user_tier(address)

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            "SELECT * FROM followed_bots WHERE user_address = %s AND bot_id = %s FOR UPDATE",
            (address, bot_id),
        )
        locked = cur.fetchone()
        if not locked:
            raise NotFound("Bot is not followed")

        bot = advance_cycle(locked, utcnow())
        if not cycle_info(bot)["isCompleted"]:
            raise Conflict("Current cycle is not completed yet", "CYCLE_NOT_COMPLETED")

        completed_cycle = bot.get("cycles_paid") or 1

        if cycle_payment_required(tier, bot.get("type")):
            if not tx_hash:
                raise ValidationFailed("Transaction hash required for cycle payment")
            cur.execute(
                """
                INSERT INTO bot_cycle_payments (user_address, bot_id, cycle_number, amount_usdc, transaction_hash)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (address, bot_id, completed_cycle + 1, CYCLE_PRICE_USDC, tx_hash),
            )

        start = to_float(bot["current_profit"], START_PROFIT)
        cur.execute(
            """
            UPDATE followed_bots
            SET cycle_start_profit = %s,
                current_profit = %s,
                cycle_target_profit = %s,
                profit_percentage = 0,
                cycles_paid = cycles_paid + 1,
                is_paid = TRUE,
                cycle_start_date = CURRENT_TIMESTAMP,
                last_update = CURRENT_TIMESTAMP
            WHERE user_address = %s AND bot_id = %s AND cycles_paid = %s
            RETURNING *
            """,
            (start, start, round(start * CYCLE_TARGET_MULTIPLIER, 2), address, bot_id, completed_cycle),
        )
        row = cur.fetchone()
        if row is None:
            raise Conflict("Cycle was already renewed", "CYCLE_ALREADY_PAID")
        conn.commit()
    except psycopg2.errors.UniqueViolation:
        conn.rollback()
        raise Conflict("Transaction already used for a cycle payment", "DUPLICATE_TRANSACTION")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    _notify(notification_service.cycle_completed(address, bot["name"], completed_cycle))
    logger.info("💸 %s started cycle %s on %s", address, completed_cycle + 1, bot_id)
    return cycle_info(row)


def _notify(payload: Dict[str, Any]) -> None:
    try:
        notification_service.create_notification(payload)
    except Exception as e:
        logger.error("❌ Bot notification failed: %s", e)
