# backend/app/services/tier_service.py

import logging
from typing import Dict, Any, List, Optional

from app.db import fetch_one, fetch_all, execute

logger = logging.getLogger("aionet-backend.tiers")

TIERS = ("NOMAD", "PRO", "ROYAL")
TIER_RANK = {"NOMAD": 0, "PRO": 1, "ROYAL": 2}

# Free premium channel slots per tier
PREMIUM_ACCESS_LIMITS = {
    "NOMAD": 0,
    "PRO": 3,
    "ROYAL": 9,
}

BOT_TYPES = ("crypto", "forex", "stock")


def normalize_tier(value: Optional[str]) -> str:
    tier = (value or "").upper()
    return tier if tier in TIERS else "NOMAD"


def tier_at_least(tier: str, required: Optional[str]) -> bool:
    if not required:
        return True
    return TIER_RANK[normalize_tier(tier)] >= TIER_RANK[normalize_tier(required)]


# -------------------------------------------------
# TIER LOOKUP
# -------------------------------------------------
def get_user_tier(address: str) -> str:
    """
    Returns the user's tier. Unknown users are NOMAD.
    """
    row = fetch_one(
        "SELECT role_tier FROM user_profiles WHERE address = %s",
        (address,),
    )
    if not row:
        return "NOMAD"
    return normalize_tier(row.get("role_tier"))


def can_access_bot_type(tier: str, bot_type: str) -> bool:
    """
    NOMAD and PRO get crypto bots; forex and stock bots are ROYAL-only.
    """
    tier = normalize_tier(tier)
    if bot_type == "crypto":
        return True
    if bot_type in ("forex", "stock"):
        return tier == "ROYAL"
    return False


def feature_access(tier: str) -> Dict[str, bool]:
    tier = normalize_tier(tier)
    return {
        "canAccessCryptoBots": can_access_bot_type(tier, "crypto"),
        "canAccessForexBots": can_access_bot_type(tier, "forex"),
        "canAccessStockBots": can_access_bot_type(tier, "stock"),
    }


# -------------------------------------------------
# PREMIUM ACCESS SLOTS (pure)
# -------------------------------------------------
def premium_access_limit(tier: str) -> int:
    return PREMIUM_ACCESS_LIMITS[normalize_tier(tier)]


def _current_tier_records(records: List[Dict[str, Any]], tier: str) -> List[Dict[str, Any]]:
    # Slots used under another tier (before an upgrade/downgrade) don't count
    return [r for r in records if normalize_tier(r.get("tier")) == tier]


def _holds_slot(records, creator_id: str, channel_id: str) -> bool:
    return any(
        r.get("creator_id") == creator_id and r.get("channel_id") == channel_id
        for r in records
    )


def can_access_premium_for_free(
    records: List[Dict[str, Any]],
    tier: str,
    creator_id: str,
    channel_id: str,
) -> bool:
    tier = normalize_tier(tier)
    if tier == "NOMAD":
        return False

    current = _current_tier_records(records, tier)
    if _holds_slot(current, creator_id, channel_id):
        return True

    return len(current) < premium_access_limit(tier)


def remaining_free_access(records: List[Dict[str, Any]], tier: str) -> int:
    tier = normalize_tier(tier)
    used = len(_current_tier_records(records, tier))
    return max(0, premium_access_limit(tier) - used)


# -------------------------------------------------
# PREMIUM ACCESS SLOTS (db)
# -------------------------------------------------
def get_premium_access_records(address: str) -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT creator_id, channel_id, tier, accessed_at
        FROM premium_access
        WHERE user_address = %s
        ORDER BY accessed_at ASC
        """,
        (address,),
    )


def premium_access_summary(address: str) -> Dict[str, Any]:
    tier = get_user_tier(address)
    records = get_premium_access_records(address)
    current = _current_tier_records(records, tier)
    return {
        "tier": tier,
        "records": records,
        "premiumAccessCount": len(current),
        "premiumAccessLimit": premium_access_limit(tier),
        "remaining": remaining_free_access(records, tier),
    }


def record_premium_access(address: str, creator_id: str, channel_id: str) -> bool:
    """
    Uses one free slot for this channel.
    Returns False when nothing was recorded (NOMAD, already held, no slots left).
    """
    tier = get_user_tier(address)
    if tier == "NOMAD":
        return False

    records = get_premium_access_records(address)
    current = _current_tier_records(records, tier)

    if _holds_slot(current, creator_id, channel_id):
        return False
    if len(current) >= premium_access_limit(tier):
        return False

    execute(
        """
        INSERT INTO premium_access (user_address, creator_id, channel_id, tier)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (user_address, creator_id, channel_id, tier) DO NOTHING
        """,
        (address, creator_id, channel_id, tier),
    )
    logger.info("✅ Premium slot used by %s on %s/%s (%s)", address, creator_id, channel_id, tier)
    return True


def remove_premium_access(address: str, creator_id: str, channel_id: str) -> bool:
    row = execute(
        """
        DELETE FROM premium_access
        WHERE user_address = %s AND creator_id = %s AND channel_id = %s
        RETURNING id
        """,
        (address, creator_id, channel_id),
        returning=True,
    )
    return row is not None
