"""Unit tests for the pAION ledger writes."""

from __future__ import annotations

import pytest

from app.services import paion_service
from app.services.paion_service import add_tokens, spend_tokens
from app.utils.errors import Conflict, ValidationFailed

ADDRESS = "0x" + "a" * 64


def test_spend_beyond_balance_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"SELECT balance FROM paion_balances": {"balance": "40"}})
    monkeypatch.setattr(paion_service, "get_db", lambda: conn)

    with pytest.raises(Conflict) as exc:
        spend_tokens(ADDRESS, 100, "Marketplace item", "marketplace")

    assert exc.value.code == "INSUFFICIENT_BALANCE"
    assert "Current: 40, Required: 100" in exc.value.message
    assert not conn.ran("UPDATE paion_balances")
    assert not conn.ran("INSERT INTO paion_transactions")
    assert conn.rollbacks == 1
    assert conn.closed


def test_spend_within_balance(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={
        "SELECT balance FROM paion_balances": {"balance": 250},
        "INSERT INTO paion_transactions": {"id": "tx-1"},
    })
    monkeypatch.setattr(paion_service, "get_db", lambda: conn)

    result = spend_tokens(ADDRESS, 100, "Marketplace item", "marketplace")

    assert result["balance"] == 150
    ledger = conn.params_for("INSERT INTO paion_transactions")
    assert ledger[1:5] == ("spent", -100, 250.0, 150.0)
    assert conn.params_for("UPDATE paion_balances")[1:3] == (0, 100)
    assert conn.commits == 1


def test_balance_row_is_locked_before_reading(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"SELECT balance FROM paion_balances": {"balance": 0}})
    monkeypatch.setattr(paion_service, "get_db", lambda: conn)

    add_tokens(ADDRESS, 25, "Quiz reward", "quiz")

    read = [sql for sql, _ in conn.statements if sql.startswith("SELECT balance")][0]
    assert read.endswith("FOR UPDATE")


@pytest.mark.parametrize("amount, source", [(0, "quiz"), (-5, "quiz"), (10, "lottery")])
def test_invalid_writes_never_reach_the_database(
    monkeypatch: pytest.MonkeyPatch, fake_db, amount, source
) -> None:
    conn = fake_db()
    monkeypatch.setattr(paion_service, "get_db", lambda: conn)

    with pytest.raises(ValidationFailed):
        add_tokens(ADDRESS, amount, "Reward", source)

    assert conn.statements == []
