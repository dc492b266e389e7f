# backend/app/services/progression_service.py

import logging
from typing import Dict, Any, List, Optional

from app.db import get_db, execute, Json
from app.services import paion_service
from app.services.profile_service import get_profile
from app.utils.errors import Conflict, NotFound
from app.utils.helpers import utcnow

logger = logging.getLogger("aionet-backend.progression")

LEVEL_THRESHOLDS = [0, 100, 250, 450, 700, 1100, 1700, 2600, 3800, 5200]
MAX_LEVEL = len(LEVEL_THRESHOLDS)

# (name, xp, tokens, category)
ACHIEVEMENTS = [
    ("Personalize Your Profile", 50, 0, "Profile"),
    ("Advanced User Status", 200, 0, "Profile"),
    ("Follow AIONET on X", 50, 0, "Social Connections"),
    ("Automate Your Trades", 150, 0, "Crypto Bot Activities"),
    ("Crypto Copy Trading", 100, 0, "Crypto Bot Activities"),
    ("Master Trading Cycles (1)", 100, 0, "Crypto Bot Activities"),
    ("Master Trading Cycles (3)", 200, 0, "Crypto Bot Activities"),
    ("Master Trading Cycles (6)", 200, 0, "Crypto Bot Activities"),
    ("Mint Royal NFT Status", 300, 0, "User Upgrades"),
    ("Recruit PRO NFT Holders", 250, 0, "Referral Tiers"),
    ("Royal NFT Ambassadors", 300, 0, "Referral Tiers"),
    ("Build a NOMAD Network", 500, 0, "Referral Tiers"),
    ("Expand Your PRO Network", 600, 0, "Referral Tiers"),
    ("Elite ROYAL Network", 700, 0, "Referral Tiers"),
    ("Mentor Level 5 Users", 400, 0, "Referral Tiers"),
    ("Scale Level 5 Mentorship", 700, 0, "Referral Tiers"),
    ("Guide to Level 7", 600, 0, "Referral Tiers"),
    ("Lead to Level 9", 800, 0, "Referral Tiers"),
]

ORDINALS = {2: "2nd", 3: "3rd", 4: "4th", 5: "5th"}

# level -> pAION
LEVEL_REWARD_TOKENS = {
    2: 0,
    3: 0,
    4: 0,
    5: 0,
    6: 500,
    7: 2000,
    8: 6000,
    9: 15000,
    10: 35000,
}


# -------------------------------------------------
# LEVELS
# -------------------------------------------------
def calculate_level(xp) -> int:
    xp = xp or 0
    level = 1
    for i, threshold in enumerate(LEVEL_THRESHOLDS):
        if xp >= threshold:
            level = i + 1
    return max(1, min(level, MAX_LEVEL))


def level_progress(total_xp) -> Dict[str, Any]:
    total_xp = max(0, int(total_xp or 0))
    level = calculate_level(total_xp)
    current_level_xp = LEVEL_THRESHOLDS[level - 1]

    if level >= MAX_LEVEL:
        return {
            "level": level,
            "current_level_xp": current_level_xp,
            "next_level_xp": None,
            "xp_into_level": total_xp - current_level_xp,
            "xp_to_next": 0,
            "progress_percent": 100.0,
        }

    next_level_xp = LEVEL_THRESHOLDS[level]
    span = next_level_xp - current_level_xp
    into = total_xp - current_level_xp
    percent = into / span * 100 if span else 100.0

    return {
        "level": level,
        "current_level_xp": current_level_xp,
        "next_level_xp": next_level_xp,
        "xp_into_level": into,
        "xp_to_next": max(0, next_level_xp - total_xp),
        "progress_percent": round(max(0.0, min(100.0, percent)), 2),
    }


# -------------------------------------------------
# ACHIEVEMENTS
# -------------------------------------------------
def _catalog_entry(name: str) -> Optional[tuple]:
    for entry in ACHIEVEMENTS:
        if entry[0] == name:
            return entry
    return None


def is_achievement_unlocked(name: str, profile: Dict[str, Any]) -> bool:
    if name == "Personalize Your Profile":
        return bool(profile.get("profile_image_blob_id"))

    if name == "Advanced User Status":
        return (profile.get("profile_level") or 1) >= 5

    if name == "Follow AIONET on X":
        return any(
            link.get("platform") == "X" and link.get("following_aionet")
            for link in (profile.get("social_links") or [])
            if isinstance(link, dict)
        )

    if name == "Mint Royal NFT Status":
        return (profile.get("role_tier") or "").upper() == "ROYAL"

    return False


def _claimed_map(profile: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    return {
        item["name"]: item
        for item in (profile.get("achievements_data") or [])
        if isinstance(item, dict) and item.get("name")
    }


def list_achievements(profile: Dict[str, Any]) -> List[Dict[str, Any]]:
    stored = _claimed_map(profile)
    achievements = []
    for name, xp, tokens, category in ACHIEVEMENTS:
        record = stored.get(name, {})
        achievements.append({
            "name": name,
            "xp": xp,
            "tokens": tokens,
            "category": category,
            "unlocked": is_achievement_unlocked(name, profile),
            "claimed": bool(record.get("claimed")),
            "claimed_at": record.get("claimed_at"),
        })
    return achievements


def _locked_profile(cur, address: str) -> Dict[str, Any]:
    cur.execute(
        "SELECT * FROM user_profiles WHERE address = %s FOR UPDATE",
        (address,),
    )
    profile = cur.fetchone()
    if not profile:
        raise NotFound("Profile not found")
    return profile


def claim_achievement(address: str, name: str) -> Dict[str, Any]:
    """
    Awards the achievement's XP (and pAION, if any) exactly once.
    The profile row is locked while the claim and the ledger entry are written.
    """
    entry = _catalog_entry(name)
    if entry is None:
        raise NotFound(f"Unknown achievement: {name}")
    _, xp, tokens, _category = entry

    conn = get_db()
    try:
        cur = conn.cursor()
        profile = _locked_profile(cur, address)

        if not is_achievement_unlocked(name, profile):
            raise Conflict("Achievement is not unlocked yet", "ACHIEVEMENT_LOCKED")

        stored = _claimed_map(profile)
        if stored.get(name, {}).get("claimed"):
            raise Conflict("Achievement already claimed", "ALREADY_CLAIMED")

        current_xp = (profile.get("current_xp") or 0) + xp
        total_xp = (profile.get("total_xp") or 0) + xp
        new_level = calculate_level(total_xp)

        achievements = [
            item for item in (profile.get("achievements_data") or [])
            if not (isinstance(item, dict) and item.get("name") == name)
        ]
        achievements.append({
            "name": name,
            "xp": xp,
            "tokens": tokens,
            "unlocked": True,
            "claimed": True,
            "claimed_at": utcnow().isoformat(),
        })

        cur.execute(
            """
            UPDATE user_profiles
            SET current_xp = %s,
                total_xp = %s,
                profile_level = %s,
                achievements_data = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE address = %s
            """,
            (current_xp, total_xp, new_level, Json(achievements), address),
        )

        if tokens > 0:
            paion_service.credit(
                cur,
                address,
                tokens,
                f"Achievement reward: {name}",
                "achievement",
                source_id=name,
            )

        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("✅ %s claimed '%s' (+%s XP, level %s)", address, name, xp, new_level)
    return {
        "achievement": name,
        "xp_awarded": xp,
        "tokens_awarded": tokens,
        "current_xp": current_xp,
        "total_xp": total_xp,
        "profile_level": new_level,
    }


# -------------------------------------------------
# LEVEL REWARDS
# -------------------------------------------------
def _reward_description(level: int, tokens: int) -> str:
    if tokens == 0:
        return f"Unlock the {ORDINALS[level]} Affiliate Level"
    return f"Earn {tokens:,} pAION"


def _claimed_levels(profile: Dict[str, Any]) -> set:
    referral_data = profile.get("referral_data") or {}
    return {
        item.get("level")
        for item in (referral_data.get("level_rewards") or [])
        if isinstance(item, dict)
    }


def level_rewards(profile: Dict[str, Any]) -> List[Dict[str, Any]]:
    level = profile.get("profile_level") or calculate_level(profile.get("total_xp"))
    claimed_levels = _claimed_levels(profile)

    rewards = []
    for reward_level, tokens in sorted(LEVEL_REWARD_TOKENS.items()):
        available = level >= reward_level
        # zero-token rewards are granted just by reaching the level
        claimed = reward_level in claimed_levels or (tokens == 0 and available)
        rewards.append({
            "level": reward_level,
            "tokens": tokens,
            "description": _reward_description(reward_level, tokens),
            "available": available,
            "claimed": claimed,
        })
    return rewards


def claim_level_reward(address: str, level: int) -> Dict[str, Any]:
    if level not in LEVEL_REWARD_TOKENS:
        raise NotFound(f"No reward for level {level}")

    conn = get_db()
    try:
        cur = conn.cursor()
        profile = _locked_profile(cur, address)

        reward = next(r for r in level_rewards(profile) if r["level"] == level)
        if not reward["available"]:
            raise Conflict(f"Level {level} not reached yet", "LEVEL_NOT_REACHED")
        if reward["claimed"]:
            raise Conflict(f"Level {level} reward already claimed", "ALREADY_CLAIMED")

        referral_data = dict(profile.get("referral_data") or {})
        history = list(referral_data.get("level_rewards") or [])
        history.append({
            "level": level,
            "tokens": reward["tokens"],
            "claimed_at": utcnow().isoformat(),
        })
        referral_data["level_rewards"] = history

        cur.execute(
            """
            UPDATE user_profiles
            SET referral_data = %s, updated_at = CURRENT_TIMESTAMP
            WHERE address = %s
            """,
            (Json(referral_data), address),
        )
        paion_service.credit(
            cur,
            address,
            reward["tokens"],
            f"Level {level} reward",
            "level_reward",
            source_id=str(level),
        )

        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info("✅ %s claimed level %s reward (%s pAION)", address, level, reward["tokens"])
    return {"level": level, "tokens_awarded": reward["tokens"]}


def fix_level_calculation(address: str) -> Dict[str, Any]:
    profile = get_profile(address)
    if not profile:
        raise NotFound("Profile not found")

    stored = profile.get("profile_level") or 1
    correct = calculate_level(profile.get("total_xp"))

    if stored != correct:
        execute(
            """
            UPDATE user_profiles
            SET profile_level = %s, updated_at = CURRENT_TIMESTAMP
            WHERE address = %s
            """,
            (correct, address),
        )
        logger.info("🛠 Fixed level for %s: %s → %s", address, stored, correct)

    return {"previous_level": stored, "profile_level": correct, "fixed": stored != correct}
