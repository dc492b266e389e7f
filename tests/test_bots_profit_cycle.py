"""Unit tests for the copy-trading profit cycle simulation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import psycopg2.errors
import pytest

from app.services import bot_following_service
from app.services.bot_following_service import (
    CYCLE_TARGET_MULTIPLIER,
    START_PROFIT,
    cycle_info,
    cycle_payment_required,
    ensure_cycle_fields,
    random_factor,
    simulate_profit,
)
from app.utils.errors import Conflict, ValidationFailed

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _bot(bot_type: str = "crypto", hours_ago: float = 0) -> dict:
    return {
        "bot_id": "b1",
        "user_address": "0xabc",
        "type": bot_type,
        "status": "active",
        "cycle_start_date": NOW - timedelta(hours=hours_ago),
        "cycles_paid": 1,
        "is_paid": True,
        "cycle_start_profit": START_PROFIT,
        "current_profit": START_PROFIT,
        "cycle_target_profit": START_PROFIT * CYCLE_TARGET_MULTIPLIER,
        "profit_percentage": 0,
    }


def test_fresh_cycle_has_no_progress() -> None:
    bot = simulate_profit(_bot(hours_ago=0), NOW, factor=1.0)
    assert bot["current_profit"] == START_PROFIT
    assert bot["profit_percentage"] == 0


def test_crypto_growth_after_one_hour() -> None:
    bot = simulate_profit(_bot("crypto", hours_ago=1), NOW, factor=1.0)
    assert bot["current_profit"] == pytest.approx(1008.0)
    assert bot["profit_percentage"] == pytest.approx(8.0)


def test_forex_grows_slower_than_crypto() -> None:
    crypto = simulate_profit(_bot("crypto", hours_ago=5), NOW, factor=1.0)
    forex = simulate_profit(_bot("forex", hours_ago=5), NOW, factor=1.0)
    stock = simulate_profit(_bot("stock", hours_ago=5), NOW, factor=1.0)
    assert crypto["current_profit"] > forex["current_profit"] > stock["current_profit"]


def test_percentage_clamped_at_100() -> None:
    bot = simulate_profit(_bot("crypto", hours_ago=500), NOW, factor=1.2)
    assert bot["profit_percentage"] == 100
    assert cycle_info(bot)["isCompleted"]


def test_cycle_start_in_future_never_negative() -> None:
    bot = _bot()
    bot["cycle_start_date"] = NOW + timedelta(hours=3)
    assert simulate_profit(bot, NOW, factor=1.0)["profit_percentage"] == 0


def test_legacy_bot_migrated_to_base_profit() -> None:
    legacy = {"bot_id": "old", "type": "crypto", "cycle_start_profit": None}
    bot = ensure_cycle_fields(legacy)
    assert bot["cycle_start_profit"] == START_PROFIT
    assert bot["cycle_target_profit"] == pytest.approx(1100.0)


def test_random_factor_range() -> None:
    for _ in range(50):
        assert 0.8 <= random_factor() <= 1.2


def test_cycle_info_fields() -> None:
    info = cycle_info({**_bot(), "profit_percentage": 42.5, "cycles_paid": 3})
    assert info["cycleNumber"] == 3
    assert info["profitPercentage"] == 42.5
    assert not info["isCompleted"]
    assert info["targetProfit"] == pytest.approx(1100.0)


def test_cycle_payment_by_tier() -> None:
    assert cycle_payment_required("NOMAD", "crypto")
    assert not cycle_payment_required("PRO", "crypto")
    assert not cycle_payment_required("ROYAL", "forex")
    assert not cycle_payment_required("ROYAL", "crypto")


def _completed_row() -> dict:
    return {**_bot(hours_ago=48), "name": "Alpha", "profit_percentage": 100, "current_profit": 1100.0}


def test_pay_for_cycle_records_payment_and_resets_together(
    monkeypatch: pytest.MonkeyPatch, fake_db
) -> None:
    renewed = {**_bot(), "cycles_paid": 2, "cycle_start_profit": 1100.0, "current_profit": 1100.0}
    conn = fake_db(rows={"FROM followed_bots": _completed_row(), "UPDATE followed_bots": renewed})
    monkeypatch.setattr(bot_following_service, "get_db", lambda: conn)
    monkeypatch.setattr(bot_following_service, "get_user_tier", lambda address: "NOMAD")
    monkeypatch.setattr(bot_following_service, "_notify", lambda payload: None)

    info = bot_following_service.pay_for_cycle("0xabc", "b1", "0xtx1")

    assert conn.statements[0][0].endswith("FOR UPDATE")
    assert conn.ran("INSERT INTO bot_cycle_payments")
    assert conn.commits == 1
    assert info["cycleNumber"] == 2
    # the reset only applies to the cycle that was locked
    assert conn.params_for("UPDATE followed_bots")[-1] == 1


def test_reused_cycle_payment_hash_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(
        rows={"FROM followed_bots": _completed_row()},
        failures={"INSERT INTO bot_cycle_payments": psycopg2.errors.UniqueViolation("duplicate key")},
    )
    monkeypatch.setattr(bot_following_service, "get_db", lambda: conn)
    monkeypatch.setattr(bot_following_service, "get_user_tier", lambda address: "NOMAD")

    with pytest.raises(Conflict) as exc:
        bot_following_service.pay_for_cycle("0xabc", "b1", "0xtx1")

    assert exc.value.code == "DUPLICATE_TRANSACTION"
    assert not conn.ran("UPDATE followed_bots")
    assert conn.commits == 0
    assert conn.rollbacks == 1


def test_pay_for_unfinished_cycle_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    row = {**_bot(), "name": "Alpha", "cycle_start_date": datetime.now(timezone.utc)}
    conn = fake_db(rows={"FROM followed_bots": row})
    monkeypatch.setattr(bot_following_service, "get_db", lambda: conn)
    monkeypatch.setattr(bot_following_service, "get_user_tier", lambda address: "NOMAD")

    with pytest.raises(Conflict):
        bot_following_service.pay_for_cycle("0xabc", "b1", "0xtx1")

    assert not conn.ran("INSERT INTO bot_cycle_payments")


def test_nomad_needs_transaction_hash(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"FROM followed_bots": _completed_row()})
    monkeypatch.setattr(bot_following_service, "get_db", lambda: conn)
    monkeypatch.setattr(bot_following_service, "get_user_tier", lambda address: "NOMAD")

    with pytest.raises(ValidationFailed):
        bot_following_service.pay_for_cycle("0xabc", "b1")


def test_pro_crypto_cycle_is_free(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"FROM followed_bots": _completed_row(), "UPDATE followed_bots": _bot()})
    monkeypatch.setattr(bot_following_service, "get_db", lambda: conn)
    monkeypatch.setattr(bot_following_service, "get_user_tier", lambda address: "PRO")
    monkeypatch.setattr(bot_following_service, "_notify", lambda payload: None)

    bot_following_service.pay_for_cycle("0xabc", "b1")

    assert not conn.ran("INSERT INTO bot_cycle_payments")
    assert conn.commits == 1
