"""Payment verification and RaffleCraft bonus days for affiliate subscriptions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.services import affiliate_subscription_service, sui_client
from app.services.affiliate_subscription_service import (
    process_rafflecraft_bonus,
    verify_and_activate,
)
from app.utils.errors import ValidationFailed

NOW = datetime(2026, 5, 10, 9, 30, tzinfo=timezone.utc)
ADDRESS = "0x" + "d" * 64
TX_HASH = "0x" + "e" * 64
PLATFORM = affiliate_subscription_service.PLATFORM_WALLET_ADDRESS


def _tx(recipient: str, mist: int, status: str = "success") -> dict:
    return {
        "effects": {"status": {"status": status}},
        "balanceChanges": [
            {"owner": {"AddressOwner": ADDRESS}, "coinType": sui_client.SUI_COIN_TYPE, "amount": str(-mist - 2000)},
            {"owner": {"AddressOwner": recipient}, "coinType": sui_client.SUI_COIN_TYPE, "amount": str(mist)},
        ],
    }


def _pending(monkeypatch: pytest.MonkeyPatch, tx: dict) -> None:
    subscription = {
        "id": "sub-1",
        "user_address": ADDRESS,
        "price_sui": 12.0,
        "payment_verified": False,
        "expires_at": NOW + timedelta(days=30),
    }
    monkeypatch.setattr(affiliate_subscription_service, "fetch_one", lambda sql, params=(): subscription)
    monkeypatch.setattr(sui_client, "get_transaction", lambda tx_hash: tx)


def test_amount_received_counts_only_the_recipient() -> None:
    tx = _tx(PLATFORM.upper().replace("0X", "0x"), 12_000_000_000)
    tx["balanceChanges"].append(
        {"owner": {"AddressOwner": PLATFORM}, "coinType": "0xabc::usdc::USDC", "amount": "5000000"}
    )

    assert sui_client.amount_received(tx, PLATFORM) == 12.0
    assert sui_client.amount_received(tx, "0x" + "f" * 64) == 0.0
    assert sui_client.amount_received(None, PLATFORM) == 0.0


def test_payment_to_another_wallet_is_rejected(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    _pending(monkeypatch, _tx("0x" + "f" * 64, 12_000_000_000))
    conn = fake_db()
    monkeypatch.setattr(affiliate_subscription_service, "get_db", lambda: conn)

    with pytest.raises(ValidationFailed) as exc:
        verify_and_activate(TX_HASH)

    assert exc.value.code == "PAYMENT_NOT_VERIFIED"
    assert conn.statements == []


def test_underpayment_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _pending(monkeypatch, _tx(PLATFORM, 11_500_000_000))

    with pytest.raises(ValidationFailed) as exc:
        verify_and_activate(TX_HASH)

    assert exc.value.code == "UNDERPAID"


def test_failed_transaction_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _pending(monkeypatch, _tx(PLATFORM, 12_000_000_000, status="failure"))

    with pytest.raises(ValidationFailed):
        verify_and_activate(TX_HASH)


def test_full_payment_activates(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    _pending(monkeypatch, _tx(PLATFORM, 12_000_000_000))
    conn = fake_db(rows={"UPDATE affiliate_subscriptions": {"id": "sub-1", "status": "active"}})
    monkeypatch.setattr(affiliate_subscription_service, "get_db", lambda: conn)

    updated = verify_and_activate(TX_HASH)

    assert updated["status"] == "active"
    assert conn.ran("UPDATE user_profiles")
    assert conn.commits == 1


def test_rpc_garbage_body_reads_as_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    class HtmlResponse:
        ok = True
        status_code = 200
        text = "<html>gateway</html>"

        def json(self):
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

    monkeypatch.setattr(sui_client.requests, "post", lambda *args, **kwargs: HtmlResponse())

    assert sui_client.get_transaction(TX_HASH) is None
    assert not sui_client.is_transaction_successful(TX_HASH)


# -------------------------------------------------
# RAFFLECRAFT BONUS
# -------------------------------------------------
def test_bonus_extends_running_trial(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    trial_end = NOW + timedelta(days=3)
    conn = fake_db(rows={
        "INSERT INTO rafflecraft_bonus_events": {"id": "event-1"},
        "FROM user_profiles": {
            "address": ADDRESS,
            "affiliate_subscription_status": "trial",
            "affiliate_trial_expires_at": trial_end,
        },
    })
    monkeypatch.setattr(affiliate_subscription_service, "get_db", lambda: conn)

    assert process_rafflecraft_bonus(ADDRESS, "ticket-1", TX_HASH, now=NOW)

    assert conn.statements[1][0].endswith("FOR UPDATE")
    assert conn.params_for("UPDATE user_profiles")[0] == trial_end + timedelta(days=7)
    assert conn.ran("SET bonus_applied = TRUE")
    assert not conn.ran("INSERT INTO affiliate_subscriptions")
    assert conn.commits == 1


def test_processed_ticket_is_not_applied_twice(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db()
    monkeypatch.setattr(affiliate_subscription_service, "get_db", lambda: conn)

    assert process_rafflecraft_bonus(ADDRESS, "ticket-1", TX_HASH, now=NOW) is False
    assert not conn.ran("FROM user_profiles")
    assert conn.commits == 0


def test_failed_bonus_leaves_ticket_unprocessed(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(
        rows={
            "INSERT INTO rafflecraft_bonus_events": {"id": "event-1"},
            "FROM user_profiles": {
                "address": ADDRESS,
                "affiliate_subscription_status": "expired",
                "affiliate_subscription_expires_at": NOW - timedelta(days=2),
            },
        },
        failures={"INSERT INTO affiliate_subscriptions": RuntimeError("connection reset")},
    )
    monkeypatch.setattr(affiliate_subscription_service, "get_db", lambda: conn)

    with pytest.raises(RuntimeError):
        process_rafflecraft_bonus(ADDRESS, "ticket-1", TX_HASH, now=NOW)

    # the event insert rolls back with the rest, so a retry can apply it
    assert conn.commits == 0
    assert conn.rollbacks == 1
    assert not conn.ran("SET bonus_applied = TRUE")
