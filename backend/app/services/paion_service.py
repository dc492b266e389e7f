# backend/app/services/paion_service.py

import logging
from typing import Dict, Any, Optional

from app.db import get_db, fetch_one, fetch_all, Json
from app.utils.errors import Conflict, ValidationFailed
from app.utils.helpers import to_float

logger = logging.getLogger("aionet-backend.paion")

TRANSACTION_TYPES = ("earned", "spent", "transfer_in", "transfer_out", "locked", "unlocked")
SOURCE_TYPES = (
    "achievement",
    "level_reward",
    "quiz",
    "swap",
    "marketplace",
    "referral",
    "manual",
    "transfer",
)


# -------------------------------------------------
# READS
# -------------------------------------------------
def get_balance(address: str) -> float:
    row = fetch_one(
        "SELECT balance FROM paion_balances WHERE user_address = %s",
        (address,),
    )
    return to_float(row["balance"]) if row else 0.0


def get_detailed_balance(address: str) -> Optional[Dict[str, Any]]:
    return fetch_one(
        "SELECT * FROM paion_balances WHERE user_address = %s",
        (address,),
    )


def get_transaction_history(
    address: str,
    limit: int = 20,
    offset: int = 0,
    transaction_type: Optional[str] = None,
) -> Dict[str, Any]:
    filters = ["user_address = %s"]
    params = [address]
    if transaction_type:
        filters.append("transaction_type = %s")
        params.append(transaction_type)

    where = " AND ".join(filters)
    total_row = fetch_one(f"SELECT COUNT(*) AS total FROM paion_transactions WHERE {where}", tuple(params))
    total = int(total_row["total"]) if total_row else 0

    rows = fetch_all(
        f"""
        SELECT * FROM paion_transactions
        WHERE {where}
        ORDER BY created_at DESC
        LIMIT %s OFFSET %s
        """,
        tuple(params + [limit, offset]),
    )

    return {
        "transactions": rows,
        "totalCount": total,
        "hasMore": offset + len(rows) < total,
    }


def get_total_stats() -> Dict[str, Any]:
    balances = fetch_one(
        "SELECT COALESCE(SUM(balance), 0) AS supply, COUNT(*) AS users FROM paion_balances"
    )
    transactions = fetch_one("SELECT COUNT(*) AS total FROM paion_transactions")
    return {
        "totalSupply": to_float(balances["supply"]) if balances else 0.0,
        "totalUsers": int(balances["users"]) if balances else 0,
        "totalTransactions": int(transactions["total"]) if transactions else 0,
    }


# -------------------------------------------------
# WRITES
# -------------------------------------------------
def _validate(amount: float, source_type: str) -> None:
    if amount <= 0:
        raise ValidationFailed("Amount must be greater than 0")
    if source_type not in SOURCE_TYPES:
        raise ValidationFailed(f"Unknown source_type: {source_type}")


def write_change(
    cur,
    address: str,
    change: float,
    transaction_type: str,
    description: str,
    source_type: str,
    source_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Moves the balance and writes the ledger row on an open cursor.
    The caller owns the transaction; the balance row stays locked until it ends.
    """
    cur.execute(
        """
        INSERT INTO paion_balances (user_address)
        VALUES (%s)
        ON CONFLICT (user_address) DO NOTHING
        """,
        (address,),
    )
    cur.execute(
        "SELECT balance FROM paion_balances WHERE user_address = %s FOR UPDATE",
        (address,),
    )
    row = cur.fetchone()
    before = to_float(row["balance"]) if row else 0.0
    after = before + change

    if after < 0:
        raise Conflict(
            f"Insufficient pAION balance. Current: {before:g}, Required: {abs(change):g}",
            "INSUFFICIENT_BALANCE",
        )

    cur.execute(
        """
        UPDATE paion_balances
        SET balance = %s,
            total_earned = total_earned + %s,
            total_spent = total_spent + %s,
            last_transaction_at = CURRENT_TIMESTAMP,
            updated_at = CURRENT_TIMESTAMP
        WHERE user_address = %s
        """,
        (after, max(change, 0), max(-change, 0), address),
    )
    cur.execute(
        """
        INSERT INTO paion_transactions
            (user_address, transaction_type, amount, balance_before, balance_after,
             description, source_type, source_id, metadata, status)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, 'completed')
        RETURNING *
        """,
        (
            address,
            transaction_type,
            change,
            before,
            after,
            description,
            source_type,
            source_id,
            Json(metadata or {}),
        ),
    )
    return {"success": True, "balance": after, "transaction": cur.fetchone()}


def credit(
    cur,
    address: str,
    amount: float,
    description: str,
    source_type: str,
    source_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """add_tokens for callers that already hold a transaction."""
    _validate(amount, source_type)
    return write_change(cur, address, amount, "earned", description, source_type, source_id, metadata)


def _apply_change(
    address: str,
    change: float,
    transaction_type: str,
    description: str,
    source_type: str,
    source_id: Optional[str],
    metadata: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    conn = get_db()
    try:
        cur = conn.cursor()
        result = write_change(
            cur, address, change, transaction_type, description, source_type, source_id, metadata
        )
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()

    return result


def add_tokens(
    address: str,
    amount: float,
    description: str,
    source_type: str,
    source_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _validate(amount, source_type)
    result = _apply_change(address, amount, "earned", description, source_type, source_id, metadata)
    logger.info("✅ %s earned %s pAION (%s)", address, amount, source_type)
    return result


def spend_tokens(
    address: str,
    amount: float,
    description: str,
    source_type: str,
    source_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _validate(amount, source_type)
    result = _apply_change(address, -amount, "spent", description, source_type, source_id, metadata)
    logger.info("✅ %s spent %s pAION (%s)", address, amount, source_type)
    return result
