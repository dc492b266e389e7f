# backend/app/services/royalties_service.py

import datetime
import logging
from typing import Dict, Any, Optional, List

from app.config import ROYALTIES_WALLET_ADDRESS
from app.db import fetch_one, fetch_all, execute, Json
from app.services import sui_client
from app.utils.helpers import DAY, isoformat, to_float, utcnow

logger = logging.getLogger("aionet-backend.royalties")

SNAPSHOT_TYPES = ("daily", "weekly", "manual")


def get_royal_holders_count() -> int:
    # ROYAL status is mirrored onto the profile when the NFT is minted
    row = fetch_one("SELECT COUNT(*) AS total FROM user_profiles WHERE role_tier = 'ROYAL'")
    return int(row["total"]) if row else 0


def calculate_user_share(user_nft_count: int, total_holders: int) -> float:
    if not user_nft_count or not total_holders:
        return 0.0
    return user_nft_count / total_holders


def weekly_change(current_balance: float, snapshot_balance: Optional[float]) -> float:
    if snapshot_balance is None:
        return 0.0
    return max(0.0, current_balance - snapshot_balance)


def summarize_distributions(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    completed = [r for r in rows if r.get("status") == "completed"]
    recipients = set()
    for row in completed:
        recipients.update(row.get("recipient_addresses") or [])

    total_recipient_slots = sum(int(r.get("recipient_count") or 0) for r in completed)
    last = max((r["distributed_at"] for r in completed if r.get("distributed_at")), default=None)

    return {
        "totalDistributed": sum(to_float(r.get("amount_sui")) for r in completed),
        "totalDistributedUSD": sum(to_float(r.get("amount_usd")) for r in completed),
        "totalDistributions": len(completed),
        "avgRecipientsPerDistribution": (
            round(total_recipient_slots / len(completed), 2) if completed else 0
        ),
        "lastDistributionDate": isoformat(last),
        "uniqueRecipients": len(recipients),
    }


def _snapshot_on_or_before(cutoff: datetime.datetime) -> Optional[Dict[str, Any]]:
    return fetch_one(
        """
        SELECT balance_sui, snapshot_date, created_at
        FROM royalties_wallet_snapshots
        WHERE wallet_address = %s AND snapshot_date <= %s
        ORDER BY snapshot_date DESC, created_at DESC
        LIMIT 1
        """,
        (ROYALTIES_WALLET_ADDRESS, cutoff.date()),
    )


def _latest_snapshot() -> Optional[Dict[str, Any]]:
    return fetch_one(
        """
        SELECT snapshot_date, created_at
        FROM royalties_wallet_snapshots
        WHERE wallet_address = %s
        ORDER BY created_at DESC
        LIMIT 1
        """,
        (ROYALTIES_WALLET_ADDRESS,),
    )


def get_metrics(now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()

    holders = get_royal_holders_count()
    balance = sui_client.get_balance_sui(ROYALTIES_WALLET_ADDRESS)
    rate = sui_client.get_sui_usd_rate()

    week_ago = _snapshot_on_or_before(now - 7 * DAY)
    weekly = weekly_change(balance, to_float(week_ago["balance_sui"]) if week_ago else None)

    distributions = summarize_distributions(
        fetch_all("SELECT * FROM royalties_distributions")
    )
    latest = _latest_snapshot()

    return {
        "totalRoyalHolders": holders,
        "weeklyRoyaltiesAmount": weekly,
        "cumulativeRoyaltiesAmount": balance,
        "totalDistributed": distributions["totalDistributed"],
        "additionalData": {
            "totalDistributions": distributions["totalDistributions"],
            "totalDistributedUSD": distributions["totalDistributedUSD"],
            "avgRecipientsPerDistribution": distributions["avgRecipientsPerDistribution"],
            "lastDistributionDate": distributions["lastDistributionDate"],
            "uniqueRecipients": distributions["uniqueRecipients"],
            "currentWalletBalanceUSD": round(balance * rate, 2),
            "lastSnapshotDate": isoformat(latest["created_at"]) if latest else None,
        },
    }


def create_snapshot(snapshot_type: str = "manual", metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if snapshot_type not in SNAPSHOT_TYPES:
        snapshot_type = "manual"

    now = utcnow()
    balance = sui_client.get_balance_sui(ROYALTIES_WALLET_ADDRESS)
    rate = sui_client.get_sui_usd_rate()
    distributed = summarize_distributions(
        fetch_all("SELECT status, amount_sui, amount_usd FROM royalties_distributions")
    )["totalDistributed"]

    row = execute(
        """
        INSERT INTO royalties_wallet_snapshots
            (snapshot_date, wallet_address, balance_sui, balance_usd,
             total_distributed_to_date, royal_holders_count, snapshot_type, metadata)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        (
            now.date(),
            ROYALTIES_WALLET_ADDRESS,
            balance,
            round(balance * rate, 2),
            distributed,
            get_royal_holders_count(),
            snapshot_type,
            Json(metadata or {}),
        ),
        returning=True,
    )
    logger.info("📸 Royalties snapshot (%s): %s SUI", snapshot_type, balance)
    return row


def get_user_share(address: str) -> Dict[str, Any]:
    profile = fetch_one(
        "SELECT role_tier FROM user_profiles WHERE address = %s",
        (address,),
    )
    nft_count = 1 if profile and (profile.get("role_tier") or "").upper() == "ROYAL" else 0
    holders = get_royal_holders_count()
    share = calculate_user_share(nft_count, holders)
    balance = sui_client.get_balance_sui(ROYALTIES_WALLET_ADDRESS)
    return {
        "address": address,
        "royalNftCount": nft_count,
        "totalRoyalHolders": holders,
        "sharePercentage": round(share * 100, 4),
        "estimatedShareSui": balance * share,
    }
