# backend/app/services/channel_subscription_service.py

import datetime
import logging
from typing import Dict, Any, List, Optional

from app.db import fetch_one, fetch_all, execute
from app.services import tier_service
from app.utils.errors import NotFound, ValidationFailed
from app.utils.helpers import DAY, days_remaining, normalize_dt, utcnow

logger = logging.getLogger("aionet-backend.channel-subscriptions")

CHANNEL_TYPES = ("free", "premium", "vip")
DEFAULT_DURATION_DAYS = 30


def subscription_state(sub: Dict[str, Any], now: datetime.datetime) -> Dict[str, Any]:
    """Adds is_active / days_remaining; lapsed active rows come back as expired."""
    data = dict(sub)
    expiry = normalize_dt(sub.get("expiry_date"))
    status = sub.get("subscription_status") or "active"

    if status == "active" and expiry is not None and expiry <= now:
        status = "expired"

    active = status == "active" and (expiry is None or expiry > now)
    data["subscription_status"] = status
    data["is_active"] = active
    data["days_remaining"] = days_remaining(expiry, now) if active else 0
    return data


def renewal_start(existing: Optional[Dict[str, Any]], now: datetime.datetime) -> datetime.datetime:
    if existing and existing.get("subscription_status") == "active":
        expiry = normalize_dt(existing.get("expiry_date"))
        if expiry and expiry > now:
            return expiry
    return now


def _existing(address: str, channel_id: str) -> Optional[Dict[str, Any]]:
    return fetch_one(
        "SELECT * FROM channel_subscriptions WHERE user_address = %s AND channel_id = %s",
        (address, channel_id),
    )


def subscribe(address: str, payload: Dict[str, Any], now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()

    channel_id = payload.get("channel_id")
    creator_address = payload.get("creator_address")
    if not channel_id or not creator_address:
        raise ValidationFailed("channel_id and creator_address are required")

    channel_type = payload.get("channel_type") or "free"
    if channel_type not in CHANNEL_TYPES:
        raise ValidationFailed(f"channel_type must be one of {', '.join(CHANNEL_TYPES)}")

    tx_hash = payload.get("transaction_hash")
    price_paid = payload.get("price_paid") or 0
    duration = int(payload.get("duration_days") or DEFAULT_DURATION_DAYS)

    if channel_type != "free" and not tx_hash:
        if tier_service.record_premium_access(address, creator_address, channel_id):
            price_paid = 0
        elif not tier_service.can_access_premium_for_free(
            tier_service.get_premium_access_records(address),
            tier_service.get_user_tier(address),
            creator_address,
            channel_id,
        ):
            raise ValidationFailed("transaction_hash is required for paid channels", "PAYMENT_REQUIRED")
        else:
            price_paid = 0

    start = renewal_start(_existing(address, channel_id), now)
    expiry = start + duration * DAY

    row = execute(
        """
        INSERT INTO channel_subscriptions
            (user_address, creator_address, channel_id, channel_name, channel_type,
             subscription_status, price_paid, transaction_hash, joined_date, expiry_date, last_accessed)
        VALUES (%s, %s, %s, %s, %s, 'active', %s, %s, %s, %s, %s)
        ON CONFLICT (user_address, channel_id) DO UPDATE SET
            channel_type = EXCLUDED.channel_type,
            subscription_status = 'active',
            price_paid = EXCLUDED.price_paid,
            transaction_hash = EXCLUDED.transaction_hash,
            expiry_date = EXCLUDED.expiry_date,
            last_accessed = EXCLUDED.last_accessed,
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        (
            address,
            creator_address,
            channel_id,
            payload.get("channel_name"),
            channel_type,
            price_paid,
            tx_hash,
            now,
            expiry,
            now,
        ),
        returning=True,
    )

    logger.info("📺 %s subscribed to %s until %s", address, channel_id, expiry.isoformat())
    return subscription_state(row, now)


def user_channels(address: str, now: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
    now = now or utcnow()
    rows = fetch_all(
        "SELECT * FROM channel_subscriptions WHERE user_address = %s ORDER BY joined_date DESC",
        (address,),
    )

    result = []
    lapsed = []
    for row in rows:
        state = subscription_state(row, now)
        if row.get("subscription_status") == "active" and state["subscription_status"] == "expired":
            lapsed.append(row["id"])
        result.append(state)

    if lapsed:
        execute(
            """
            UPDATE channel_subscriptions
            SET subscription_status = 'expired', updated_at = CURRENT_TIMESTAMP
            WHERE id = ANY(%s::uuid[])
            """,
            ([str(i) for i in lapsed],),
        )
        logger.info("⌛ Marked %s channel subscriptions expired for %s", len(lapsed), address)

    return result


def unsubscribe(address: str, channel_id: str) -> Dict[str, Any]:
    row = execute(
        """
        UPDATE channel_subscriptions
        SET subscription_status = 'cancelled', updated_at = CURRENT_TIMESTAMP
        WHERE user_address = %s AND channel_id = %s
        RETURNING *
        """,
        (address, channel_id),
        returning=True,
    )
    if not row:
        raise NotFound("Subscription not found")
    return row


def subscriber_count(channel_id: str) -> int:
    row = fetch_one(
        """
        SELECT COUNT(*) AS total FROM channel_subscriptions
        WHERE channel_id = %s
          AND subscription_status = 'active'
          AND (expiry_date IS NULL OR expiry_date > CURRENT_TIMESTAMP)
        """,
        (channel_id,),
    )
    return int(row["total"]) if row else 0
