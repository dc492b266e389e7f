# backend/app/services/leaderboard_service.py

import datetime
import logging
import math
import time
from collections import deque
from typing import Dict, Any, Callable, List, Optional

from app.db import fetch_all
from app.services.affiliate_service import MAX_NETWORK_DEPTH
from app.services.profile_service import display_username
from app.services.tier_service import TIERS, normalize_tier
from app.utils.errors import ValidationFailed
from app.utils.helpers import DAY, isoformat, normalize_dt, to_float, utcnow

logger = logging.getLogger("aionet-backend.leaderboard")

CATEGORIES = [
    {
        "id": "all",
        "name": "All Categories",
        "description": "Overall ranking based on profile level, XP and personal referrals",
        "scoreField": "overall_score",
    },
    {
        "id": "affiliates",
        "name": "Top Affiliates",
        "description": "Based on personal members, commissions from all levels, and total network members",
        "scoreField": "affiliate_score",
    },
    {
        "id": "traders",
        "name": "Top Copiers",
        "description": "Based on copy trading activity",
        "scoreField": "trading_score",
    },
    {
        "id": "xp",
        "name": "Top XP",
        "description": "Based on total experience points earned",
        "scoreField": "total_xp",
    },
]
CATEGORY_IDS = tuple(c["id"] for c in CATEGORIES)
TIME_PERIODS = {"weekly": 7, "monthly": 30, "all-time": None}

LEADERBOARD_TTL = 5 * 60
STATS_TTL = 10 * 60

TIER_MULTIPLIERS = {"ROYAL": 1.3, "PRO": 1.15}


class ResultCache:
    """Per-process TTL cache for computed leaderboards."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._store: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self.clock() >= entry["expires"]:
            del self._store[key]
            return None
        return entry["value"]

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._store[key] = {"value": value, "expires": self.clock() + ttl}

    def clear(self) -> None:
        self._store.clear()


cache = ResultCache()


# -------------------------------------------------
# SCORING (pure)
# -------------------------------------------------
def affiliate_score(direct: int, commissions: float, network: int) -> int:
    direct_score = direct * 20 + math.log10(direct + 1) * 60
    commission_score = min(commissions * 2, 1200)
    size_bonus = min(network * 5, 800)
    consistency_bonus = 150 if direct > 0 and network > direct else 0
    return round(direct_score + commission_score + size_bonus + consistency_bonus)


def _level_xp(profile: Dict[str, Any]):
    return int(profile.get("profile_level") or 1), int(profile.get("total_xp") or 0)


def trading_score(profile: Dict[str, Any]) -> int:
    level, xp = _level_xp(profile)
    return round(level * 10 + xp * 0.02)


def quiz_score(profile: Dict[str, Any]) -> int:
    level, xp = _level_xp(profile)
    return round(level * 5 + xp * 0.01)


def creator_score(profile: Dict[str, Any]) -> int:
    level, xp = _level_xp(profile)
    return round(level * 2 + xp * 0.005)


def overall_score(profile: Dict[str, Any], activity: List[int]) -> int:
    """
    XP and level form the base; each activity score adds a quarter.
    Higher tiers multiply the sum, and users active in several areas
    get a flat engagement bonus on top.
    """
    level, xp = _level_xp(profile)
    base = xp * 0.4 + level * 150
    multiplier = TIER_MULTIPLIERS.get(normalize_tier(profile.get("role_tier")), 1.0)

    active_areas = sum(1 for score in activity if score > 0)
    if active_areas >= 3:
        bonus = 500
    elif active_areas >= 2:
        bonus = 200
    else:
        bonus = 0

    return round((base + sum(activity) * 0.25) * multiplier + bonus)


def referral_counts(profiles: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    """Direct referrals and network size (down to MAX_NETWORK_DEPTH) per address."""
    children: Dict[str, List[Dict[str, Any]]] = {}
    for profile in profiles:
        referred_by = (profile.get("referral_data") or {}).get("referred_by")
        if referred_by:
            children.setdefault(referred_by, []).append(profile)

    counts = {}
    for profile in profiles:
        address = profile["address"]
        code = (profile.get("referral_data") or {}).get("referral_code")
        direct = len(children.get(code, [])) if code else 0

        network = 0
        visited = {address}
        queue = deque([(profile, 0)])
        while queue:
            parent, depth = queue.popleft()
            parent_code = (parent.get("referral_data") or {}).get("referral_code")
            if depth >= MAX_NETWORK_DEPTH or not parent_code:
                continue
            for child in children.get(parent_code, []):
                if child["address"] in visited:
                    continue
                visited.add(child["address"])
                network += 1
                queue.append((child, depth + 1))

        counts[address] = {"direct": direct, "network": network}
    return counts


def rank_users(
    profiles: List[Dict[str, Any]],
    commissions: Dict[str, float],
    category: str,
    since: Optional[datetime.datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Scores every registered profile and returns them best first with ranks.
    Network sizes count all profiles; `since` only narrows who gets ranked.
    """
    counts = referral_counts(profiles)
    entries = []

    for profile in profiles:
        if since is not None:
            active = normalize_dt(profile.get("updated_at") or profile.get("created_at"))
            if active is None or active < since:
                continue

        address = profile["address"]
        direct = counts[address]["direct"]
        network = counts[address]["network"]
        earned = to_float(commissions.get(address))

        affiliate = affiliate_score(direct, earned, network)
        trading = trading_score(profile)
        activity = [affiliate, trading, quiz_score(profile), creator_score(profile)]

        if category == "affiliates":
            score = affiliate
            metrics = {"direct_referrals": direct, "network_commissions": earned, "total_network_users": network}
        elif category == "traders":
            score = trading
            metrics = {"profile_level": profile.get("profile_level") or 1, "total_xp": profile.get("total_xp") or 0}
        elif category == "xp":
            score = int(profile.get("total_xp") or 0)
            metrics = {
                "current_xp": profile.get("current_xp") or 0,
                "profile_level": profile.get("profile_level") or 1,
                "achievements_count": len(profile.get("achievements_data") or []),
            }
        else:
            score = overall_score(profile, activity)
            metrics = {
                "profile_level": profile.get("profile_level") or 1,
                "direct_referrals": direct,
                "total_network_users": network,
            }

        entries.append({
            "address": address,
            "username": display_username(profile),
            "profileImageBlobId": profile.get("profile_image_blob_id"),
            "roleTier": normalize_tier(profile.get("role_tier")),
            "profileLevel": profile.get("profile_level") or 1,
            "currentXp": profile.get("current_xp") or 0,
            "totalXp": profile.get("total_xp") or 0,
            "joinDate": isoformat(profile.get("created_at")),
            "lastActive": isoformat(profile.get("updated_at")),
            "score": score,
            "metrics": metrics,
        })

    entries.sort(key=lambda e: (-e["score"], -int(e["totalXp"]), e["address"]))
    for rank, entry in enumerate(entries, start=1):
        entry["rank"] = rank
    return entries


def summarize_profiles(profiles: List[Dict[str, Any]]) -> Dict[str, Any]:
    tiers = {tier: 0 for tier in TIERS}
    for profile in profiles:
        tiers[normalize_tier(profile.get("role_tier"))] += 1

    total = len(profiles)
    levels = sum(int(p.get("profile_level") or 1) for p in profiles)
    return {
        "totalUsers": total,
        "tierDistribution": tiers,
        "averageLevel": round(levels / total, 2) if total else 0,
        "totalXP": sum(int(p.get("total_xp") or 0) for p in profiles),
        "totalReferrals": sum(1 for p in profiles if (p.get("referral_data") or {}).get("referred_by")),
    }


# -------------------------------------------------
# DB
# -------------------------------------------------
def _registered_profiles() -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT address, username, username_encrypted, role_tier, profile_level,
               current_xp, total_xp, profile_image_blob_id, achievements_data,
               referral_data, created_at, updated_at
        FROM user_profiles
        WHERE username IS NOT NULL OR username_encrypted IS NOT NULL
        """
    )


def _commission_totals() -> Dict[str, float]:
    rows = fetch_all(
        """
        SELECT affiliate_address, COALESCE(SUM(amount), 0) AS total
        FROM affiliate_commissions
        GROUP BY affiliate_address
        """
    )
    return {row["affiliate_address"]: to_float(row["total"]) for row in rows}


def get_leaderboard(
    category: str = "all",
    time_period: str = "all-time",
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    if category not in CATEGORY_IDS:
        raise ValidationFailed(f"category must be one of {', '.join(CATEGORY_IDS)}")
    if time_period not in TIME_PERIODS:
        raise ValidationFailed(f"time_period must be one of {', '.join(TIME_PERIODS)}")

    key = f"leaderboard:{category}:{time_period}"
    ranked = cache.get(key)
    if ranked is None:
        now = now or utcnow()
        days = TIME_PERIODS[time_period]
        since = now - days * DAY if days else None
        ranked = {
            "users": rank_users(_registered_profiles(), _commission_totals(), category, since),
            "lastUpdated": now.isoformat(),
        }
        cache.set(key, ranked, LEADERBOARD_TTL)
        logger.info("🏅 Leaderboard %s/%s rebuilt (%s users)", category, time_period, len(ranked["users"]))

    users = ranked["users"]
    return {
        "users": users[offset:offset + limit],
        "totalCount": len(users),
        "hasMore": offset + limit < len(users),
        "lastUpdated": ranked["lastUpdated"],
    }


def get_stats() -> Dict[str, Any]:
    stats = cache.get("stats")
    if stats is None:
        stats = summarize_profiles(_registered_profiles())
        cache.set("stats", stats, STATS_TTL)
    return stats
