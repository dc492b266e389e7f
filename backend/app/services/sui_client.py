# backend/app/services/sui_client.py

import logging
from typing import Optional, Dict, Any

import requests

from app.config import SUI_RPC_URL, COINGECKO_PRICE_URL

logger = logging.getLogger("aionet-backend.sui")

MIST_PER_SUI = 1_000_000_000
FALLBACK_SUI_USD_RATE = 2.50
SUI_COIN_TYPE = "0x2::sui::SUI"


def _rpc(method: str, params: list) -> Optional[Dict[str, Any]]:
    """
    Single JSON-RPC call against the Sui full node.
    Returns the `result` member, or None when the node can't be reached
    or answers with an error.
    """
    try:
        response = requests.post(
            SUI_RPC_URL,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error("❌ Sui RPC %s failed: %s", method, e)
        return None

    if not response.ok:
        logger.error("❌ Sui RPC %s HTTP %s: %s", method, response.status_code, response.text)
        return None

    try:
        body = response.json()
    except ValueError as e:
        logger.error("❌ Sui RPC %s returned invalid JSON: %s", method, e)
        return None

    if body.get("error"):
        logger.error("❌ Sui RPC %s error: %s", method, body["error"])
        return None

    return body.get("result")


def get_balance_sui(address: str) -> float:
    """Wallet SUI balance. 0 when the node is unavailable."""
    result = _rpc("suix_getBalance", [address])
    if not result:
        return 0.0
    return int(result.get("totalBalance", 0)) / MIST_PER_SUI


def get_transaction(tx_hash: str) -> Optional[Dict[str, Any]]:
    return _rpc(
        "sui_getTransactionBlock",
        [tx_hash, {"showEffects": True, "showInput": True, "showBalanceChanges": True}],
    )


def transaction_succeeded(tx: Optional[Dict[str, Any]]) -> bool:
    if not tx:
        return False
    status = ((tx.get("effects") or {}).get("status") or {}).get("status")
    return status == "success"


def is_transaction_successful(tx_hash: str) -> bool:
    return transaction_succeeded(get_transaction(tx_hash))


def amount_received(tx: Optional[Dict[str, Any]], recipient: str) -> float:
    """SUI credited to `recipient` by a transaction, read from its balance changes."""
    if not tx:
        return 0.0

    total = 0
    for change in tx.get("balanceChanges") or []:
        if change.get("coinType") != SUI_COIN_TYPE:
            continue
        owner = (change.get("owner") or {}).get("AddressOwner") or ""
        if owner.lower() != recipient.lower():
            continue
        amount = int(change.get("amount") or 0)
        if amount > 0:
            total += amount
    return total / MIST_PER_SUI


def get_sui_usd_rate() -> float:
    """SUI/USD from CoinGecko, falling back to a fixed rate."""
    try:
        response = requests.get(COINGECKO_PRICE_URL, timeout=10)
        response.raise_for_status()
        rate = float(response.json()["sui"]["usd"])
        if rate > 0:
            return rate
        logger.warning("⚠️ CoinGecko returned non-positive SUI price, using fallback")
    except (requests.RequestException, KeyError, TypeError, ValueError) as e:
        logger.warning("⚠️ SUI price lookup failed, using fallback: %s", e)

    return FALLBACK_SUI_USD_RATE
