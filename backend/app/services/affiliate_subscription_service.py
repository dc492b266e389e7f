# backend/app/services/affiliate_subscription_service.py

import datetime
import logging
import math
from typing import Dict, Any, Optional, List

import psycopg2
import psycopg2.errors

from app.config import PLATFORM_WALLET_ADDRESS
from app.db import get_db, fetch_one, fetch_all, execute
from app.services import sui_client
from app.utils.errors import Conflict, NotFound, ValidationFailed
from app.utils.helpers import DAY, days_remaining, normalize_dt, to_float, utcnow, isoformat

logger = logging.getLogger("aionet-backend.affiliate-subscriptions")

TRIAL_DAYS = 30
SUBSCRIPTION_DAYS = 30
MONTHLY_PRICE_USDC = 30.00
QUOTE_VALIDITY = datetime.timedelta(minutes=5)
RAFFLECRAFT_BONUS_DAYS = 7

BONUS_EVENT_TYPES = ("ticket_purchased", "ticket_minted")


# -------------------------------------------------
# STATUS (pure)
# -------------------------------------------------
def compute_status(profile: Dict[str, Any], now: datetime.datetime) -> Dict[str, Any]:
    """
    Derives the affiliate access state from the profile columns.

    `persist` holds column updates the caller must write back:
    a fresh trial for profiles that never had one, or `expired`
    once a paid subscription lapses.
    """
    status = profile.get("affiliate_subscription_status") or "trial"
    trial_expires = normalize_dt(profile.get("affiliate_trial_expires_at"))
    sub_expires = normalize_dt(profile.get("affiliate_subscription_expires_at"))
    persist: Dict[str, Any] = {}

    if trial_expires is None and sub_expires is None and status not in ("expired", "cancelled"):
        trial_expires = now + TRIAL_DAYS * DAY
        status = "trial"
        persist = {
            "affiliate_subscription_status": "trial",
            "affiliate_trial_started_at": now,
            "affiliate_trial_expires_at": trial_expires,
        }

    if status == "trial" and trial_expires is not None:
        expires_at = trial_expires
        is_active = now < trial_expires
    elif status == "active" and sub_expires is not None:
        expires_at = sub_expires
        is_active = now < sub_expires
        if not is_active:
            status = "expired"
            persist = {"affiliate_subscription_status": "expired"}
    else:
        expires_at = sub_expires or trial_expires
        is_active = False

    return {
        "status": status,
        "is_active": is_active,
        "is_trial": status == "trial",
        "expires_at": isoformat(expires_at),
        "days_remaining": days_remaining(expires_at, now) if is_active else 0,
        "persist": persist,
    }


def sui_price_for(usdc: float, rate: float) -> float:
    """SUI amount for a USDC price, rounded up to the nearest MIST."""
    return math.ceil(usdc / rate * 1e9) / 1e9


# -------------------------------------------------
# DB
# -------------------------------------------------
PROFILE_COLUMNS_SQL = """
    SELECT address,
           affiliate_subscription_status,
           affiliate_trial_started_at,
           affiliate_trial_expires_at,
           affiliate_subscription_expires_at,
           affiliate_subscription_auto_renew
    FROM user_profiles
    WHERE address = %s
"""


def _load_profile(address: str) -> Dict[str, Any]:
    profile = fetch_one(PROFILE_COLUMNS_SQL, (address,))
    if not profile:
        raise NotFound("Profile not found")
    return profile


def _update_profile(cur, address: str, changes: Dict[str, Any]) -> None:
    if not changes:
        return
    assignments = ", ".join(f"{column} = %s" for column in changes)
    cur.execute(
        f"UPDATE user_profiles SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE address = %s",
        tuple(changes.values()) + (address,),
    )


def _persist(address: str, changes: Dict[str, Any]) -> None:
    if not changes:
        return
    assignments = ", ".join(f"{column} = %s" for column in changes)
    execute(
        f"UPDATE user_profiles SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE address = %s",
        tuple(changes.values()) + (address,),
    )


def get_status(address: str, now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    result = compute_status(_load_profile(address), now)

    if result["persist"]:
        _persist(address, result.pop("persist"))
        logger.info("🛠 Affiliate status for %s updated to %s", address, result["status"])
    else:
        result.pop("persist")

    return result


def get_price_quote(now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    rate = sui_client.get_sui_usd_rate()
    return {
        "usdc_price": MONTHLY_PRICE_USDC,
        "sui_usd_rate": rate,
        "sui_price": sui_price_for(MONTHLY_PRICE_USDC, rate),
        "duration_days": SUBSCRIPTION_DAYS,
        "valid_until": (now + QUOTE_VALIDITY).isoformat(),
    }


def create_subscription(
    address: str,
    quote: Dict[str, Any],
    tx_hash: str,
    days: int = SUBSCRIPTION_DAYS,
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    now = now or utcnow()

    valid_until = normalize_dt(quote.get("valid_until"))
    if valid_until is not None and valid_until < now:
        raise ValidationFailed("Price quote has expired", "QUOTE_EXPIRED")

    status = get_status(address, now)

    # stack on top of a running paid subscription
    starts_at = now
    if status["is_active"] and status["status"] == "active":
        starts_at = normalize_dt(status["expires_at"])
    expires_at = starts_at + days * DAY

    try:
        row = execute(
            """
            INSERT INTO affiliate_subscriptions
                (user_address, subscription_type, status, price_usdc, price_sui,
                 sui_usd_rate, duration_days, starts_at, expires_at, transaction_hash)
            VALUES (%s, 'monthly', 'pending', %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                address,
                quote.get("usdc_price", MONTHLY_PRICE_USDC),
                quote.get("sui_price"),
                quote.get("sui_usd_rate"),
                days,
                starts_at,
                expires_at,
                tx_hash,
            ),
            returning=True,
        )
    except psycopg2.errors.UniqueViolation:
        raise Conflict("Transaction already used for a subscription", "DUPLICATE_TRANSACTION")

    logger.info("✅ Pending affiliate subscription for %s (%s)", address, tx_hash)
    return row


def verify_and_activate(tx_hash: str) -> Dict[str, Any]:
    subscription = fetch_one(
        "SELECT * FROM affiliate_subscriptions WHERE transaction_hash = %s",
        (tx_hash,),
    )
    if not subscription:
        raise NotFound("Subscription not found")

    if subscription.get("payment_verified"):
        return subscription

    tx = sui_client.get_transaction(tx_hash)
    if not sui_client.transaction_succeeded(tx):
        raise ValidationFailed("Transaction not confirmed on Sui", "PAYMENT_NOT_VERIFIED")

    received = sui_client.amount_received(tx, PLATFORM_WALLET_ADDRESS)
    if received <= 0:
        raise ValidationFailed("Transaction did not pay the platform wallet", "PAYMENT_NOT_VERIFIED")

    expected = to_float(subscription.get("price_sui"))
    if expected and received < expected:
        raise ValidationFailed(f"Expected {expected:g} SUI, received {received:g}", "UNDERPAID")

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE affiliate_subscriptions
            SET status = 'active', payment_verified = TRUE, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING *
            """,
            (subscription["id"],),
        )
        updated = cur.fetchone()
        cur.execute(
            """
            UPDATE user_profiles
            SET affiliate_subscription_status = 'active',
                affiliate_subscription_expires_at = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE address = %s
            """,
            (subscription["expires_at"], subscription["user_address"]),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("✅ Affiliate subscription activated for %s", subscription["user_address"])
    return updated


def get_history(address: str) -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT * FROM affiliate_subscriptions
        WHERE user_address = %s
        ORDER BY created_at DESC
        """,
        (address,),
    )


# -------------------------------------------------
# RAFFLECRAFT BONUS
# -------------------------------------------------
def process_rafflecraft_bonus(
    address: str,
    ticket_id: str,
    tx_hash: str,
    raffle_id: Optional[str] = None,
    days: int = RAFFLECRAFT_BONUS_DAYS,
    now: Optional[datetime.datetime] = None,
) -> bool:
    """
    Grants bonus days for a raffle ticket purchase.
    Returns False when this ticket was already processed.

    The event row, the profile change and the bonus subscription commit
    together, so a failure part way leaves the ticket unprocessed.
    """
    now = now or utcnow()

    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO rafflecraft_bonus_events
                (user_address, ticket_purchase_id, ticket_transaction_hash, raffle_id, bonus_days)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (ticket_purchase_id) DO NOTHING
            RETURNING id
            """,
            (address, ticket_id, tx_hash, raffle_id, days),
        )
        event = cur.fetchone()
        if event is None:
            conn.rollback()
            logger.info("ℹ️ Bonus for ticket %s already processed", ticket_id)
            return False

        cur.execute(PROFILE_COLUMNS_SQL + " FOR UPDATE", (address,))
        profile = cur.fetchone()
        if not profile:
            raise NotFound("Profile not found")

        status = compute_status(profile, now)
        changes = status.pop("persist")
        bonus = days * DAY
        subscription_id = None

        if status["is_active"] and status["status"] == "trial":
            changes["affiliate_trial_expires_at"] = normalize_dt(status["expires_at"]) + bonus

        elif status["is_active"] and status["status"] == "active":
            changes["affiliate_subscription_expires_at"] = normalize_dt(status["expires_at"]) + bonus

        else:
            expires_at = now + bonus
            cur.execute(
                """
                INSERT INTO affiliate_subscriptions
                    (user_address, subscription_type, status, price_usdc, duration_days,
                     starts_at, expires_at, payment_verified, bonus_source, bonus_reference_id)
                VALUES (%s, 'bonus', 'active', 0, %s, %s, %s, TRUE, 'rafflecraft', %s)
                RETURNING id
                """,
                (address, days, now, expires_at, ticket_id),
            )
            row = cur.fetchone()
            subscription_id = row["id"] if row else None
            changes["affiliate_subscription_status"] = "active"
            changes["affiliate_subscription_expires_at"] = expires_at

        _update_profile(cur, address, changes)
        cur.execute(
            """
            UPDATE rafflecraft_bonus_events
            SET bonus_applied = TRUE, bonus_applied_at = %s, affiliate_subscription_id = %s
            WHERE id = %s
            """,
            (now, subscription_id, event["id"]),
        )
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()

    logger.info("✅ +%s affiliate days for %s (ticket %s)", days, address, ticket_id)
    return True
