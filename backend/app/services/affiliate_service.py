# backend/app/services/affiliate_service.py

import datetime
import logging
from collections import deque
from typing import Dict, Any, List, Optional

from app.db import fetch_one, fetch_all
from app.services.profile_service import display_username
from app.services.tier_service import normalize_tier
from app.utils.errors import NotFound
from app.utils.helpers import DAY, normalize_dt, to_float, utcnow

logger = logging.getLogger("aionet-backend.affiliate")

MAX_NETWORK_DEPTH = 5
MAX_AFFILIATE_LEVEL = 5
SPONSOR_AFFILIATE_LEVEL = 5

COMMISSION_RATES = {
    "NOMAD": 0.05,
    "PRO": 0.10,
    "ROYAL": 0.15,
}

SORT_FIELDS = ("joined_at", "username", "tier", "profile_level", "depth")


def affiliate_level(profile_level) -> int:
    level = int(profile_level or 1)
    return max(1, min(level, MAX_AFFILIATE_LEVEL))


def _referral(profile: Dict[str, Any]) -> Dict[str, Any]:
    return profile.get("referral_data") or {}


# -------------------------------------------------
# SPONSOR
# -------------------------------------------------
def get_sponsor(address: str) -> Dict[str, Any]:
    user = fetch_one(
        "SELECT address, referral_data FROM user_profiles WHERE address = %s",
        (address,),
    )
    if not user:
        raise NotFound("User not found")

    code = _referral(user).get("referred_by")
    if not code:
        raise NotFound("No sponsor found", "NO_SPONSOR")

    sponsor = fetch_one(
        """
        SELECT address, username, username_encrypted, role_tier, profile_level
        FROM user_profiles
        WHERE referral_data->>'referral_code' = %s
          AND address <> %s
        ORDER BY created_at ASC
        LIMIT 1
        """,
        (code, address),
    )
    if not sponsor:
        raise NotFound("No sponsor found", "NO_SPONSOR")

    return {
        "username": display_username(sponsor),
        "email": "",
        "address": sponsor["address"],
        "status": sponsor.get("role_tier") or "NOMAD",
        "profileLevel": sponsor.get("profile_level") or 1,
        "affiliateLevel": SPONSOR_AFFILIATE_LEVEL,
    }


# -------------------------------------------------
# NETWORK (pure)
# -------------------------------------------------
def build_network(root_address: str, profiles: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Breadth-first walk of the referral tree under root_address.
    Each profile appears at most once; the walk stops at MAX_NETWORK_DEPTH.
    """
    by_address = {p["address"]: p for p in profiles if p.get("address")}
    children: Dict[str, List[Dict[str, Any]]] = {}
    for profile in profiles:
        referred_by = _referral(profile).get("referred_by")
        if referred_by:
            children.setdefault(referred_by, []).append(profile)

    root = by_address.get(root_address)
    if root is None:
        return []

    members = []
    visited = {root_address}
    queue = deque([(root, 0)])

    while queue:
        parent, depth = queue.popleft()
        if depth >= MAX_NETWORK_DEPTH:
            continue

        code = _referral(parent).get("referral_code")
        if not code:
            continue

        for child in children.get(code, []):
            if child["address"] in visited:
                continue
            visited.add(child["address"])

            data = _referral(child)
            members.append({
                "address": child["address"],
                "username": display_username(child),
                "tier": normalize_tier(child.get("role_tier")),
                "profile_level": child.get("profile_level") or 1,
                "depth": depth + 1,
                "joined_at": normalize_dt(data.get("referral_date") or child.get("created_at")),
                "sponsor_address": parent["address"],
            })
            queue.append((child, depth + 1))

    return members


def compute_network_metrics(
    root_address: str,
    profiles: List[Dict[str, Any]],
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    now = now or utcnow()
    members = build_network(root_address, profiles)
    direct = [m for m in members if m["depth"] == 1]
    month_ago = now - 30 * DAY

    def tier_count(group, tier):
        return sum(1 for m in group if m["tier"] == tier)

    metrics = {
        "totalNetworkSize": len(members),
        "directReferrals": len(direct),
        "indirectReferrals": len(members) - len(direct),
        "networkDepth": max((m["depth"] for m in members), default=0),
        "monthlyGrowth": sum(1 for m in members if m["joined_at"] and m["joined_at"] >= month_ago),
        "personalNomadUsers": tier_count(direct, "NOMAD"),
        "personalProUsers": tier_count(direct, "PRO"),
        "personalRoyalUsers": tier_count(direct, "ROYAL"),
        "networkNomadUsers": tier_count(members, "NOMAD"),
        "networkProUsers": tier_count(members, "PRO"),
        "networkRoyalUsers": tier_count(members, "ROYAL"),
    }
    for level in range(5, 11):
        metrics[f"networkLevel{level}Users"] = sum(1 for m in members if m["profile_level"] == level)

    return metrics


def filter_and_sort_network(
    members: List[Dict[str, Any]],
    tier: Optional[str] = None,
    level_min: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "joined_at",
    order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    result = members

    if tier:
        wanted = tier.upper()
        result = [m for m in result if m["tier"] == wanted]

    if level_min:
        result = [m for m in result if (m["profile_level"] or 1) >= level_min]

    if search:
        needle = search.lower()
        result = [
            m for m in result
            if needle in (m["username"] or "").lower() or needle in m["address"].lower()
        ]

    if sort_by not in SORT_FIELDS:
        sort_by = "joined_at"

    epoch = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)

    def sort_key(member):
        value = member.get(sort_by)
        if sort_by == "joined_at":
            return value or epoch
        if sort_by == "username":
            return (value or "").lower()
        return value if value is not None else 0

    result = sorted(result, key=sort_key, reverse=(order.lower() != "asc"))

    return {
        "members": result[offset:offset + limit],
        "totalCount": len(result),
    }


# -------------------------------------------------
# COMMISSIONS
# -------------------------------------------------
def commission_rate(tier: str) -> float:
    return COMMISSION_RATES[normalize_tier(tier)]


def summarize_commissions(
    rows: List[Dict[str, Any]],
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    now = now or utcnow()
    month_ago = now - 30 * DAY

    total = pending = paid = monthly = 0.0
    breakdown = {"nomadCommissions": 0.0, "proCommissions": 0.0, "royalCommissions": 0.0}

    for row in rows:
        amount = to_float(row.get("amount"))
        total += amount

        if row.get("status") == "paid":
            paid += amount
        else:
            pending += amount

        created = normalize_dt(row.get("created_at"))
        if created and created >= month_ago:
            monthly += amount

        key = f"{normalize_tier(row.get('referred_tier')).lower()}Commissions"
        breakdown[key] += amount

    return {
        "totalEarned": total,
        "monthlyEarned": monthly,
        "pendingCommissions": pending,
        "paidCommissions": paid,
        "tierBreakdown": breakdown,
    }


def _network_profiles() -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT address, username, username_encrypted, role_tier, profile_level,
               referral_data, created_at
        FROM user_profiles
        WHERE referral_data IS NOT NULL
        """
    )


def get_stats(address: str) -> Dict[str, Any]:
    profile = fetch_one(
        "SELECT address, role_tier, profile_level FROM user_profiles WHERE address = %s",
        (address,),
    )
    if not profile:
        raise NotFound("User not found")

    now = utcnow()
    metrics = compute_network_metrics(address, _network_profiles(), now)

    commissions = fetch_all(
        """
        SELECT amount, status, referred_tier, created_at
        FROM affiliate_commissions
        WHERE affiliate_address = %s
        """,
        (address,),
    )
    summary = summarize_commissions(commissions, now)

    metrics.update(summary)
    metrics["networkValue"] = summary["totalEarned"]
    metrics["commissionRate"] = commission_rate(profile.get("role_tier"))
    metrics["userProfileLevel"] = profile.get("profile_level") or 1
    metrics["affiliateLevel"] = affiliate_level(profile.get("profile_level"))
    return metrics


def get_network(address: str, **filters) -> Dict[str, Any]:
    members = build_network(address, _network_profiles())
    page = filter_and_sort_network(members, **filters)
    for member in page["members"]:
        joined = member.get("joined_at")
        member["joined_at"] = joined.isoformat() if joined else None
    return page
