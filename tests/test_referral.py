"""Unit tests for referral codes, click tracking and signup conversion."""

from __future__ import annotations

import pytest

from app.services import notification_service, referral_service
from app.services.referral_service import base_code, normalize_code, process_signup, track_click
from app.utils.errors import Conflict, NotFound, ValidationFailed

SPONSOR = "0x" + "1" * 64
NEWCOMER = "0x" + "2" * 64
SESSION = "5d1c1d7e-3b0a-4a52-8d0e-6a0f5f3c9b21"


def test_codes_are_normalized() -> None:
    assert normalize_code(" alice-01 ") == "ALICE01"
    assert normalize_code(None) == ""
    assert len(normalize_code("x" * 40)) == referral_service.CODE_MAX_LENGTH


def test_short_usernames_fall_back_to_address() -> None:
    assert base_code(SPONSOR, "satoshi") == "SATOSHI"
    assert base_code("0xabcdef0123456789", "j!") == "ABCDEF01"


def test_click_on_unknown_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(referral_service, "fetch_one", lambda sql, params=(): None)

    with pytest.raises(NotFound):
        track_click("nobody")


def test_click_on_inactive_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(referral_service, "fetch_one", lambda sql, params=(): {"code": "ALICE", "is_active": False})

    with pytest.raises(NotFound):
        track_click("alice")


def test_click_generates_session_id(monkeypatch: pytest.MonkeyPatch) -> None:
    writes = []
    monkeypatch.setattr(referral_service, "fetch_one", lambda sql, params=(): {"code": "ALICE", "is_active": True})

    def execute(sql, params=(), returning=False):
        writes.append(params)
        return {"session_id": params[0], "referral_code": params[1]}

    monkeypatch.setattr(referral_service, "execute", execute)

    session = track_click("alice", user_agent="pytest", ip_address="10.0.0.1")

    assert session["referral_code"] == "ALICE"
    assert len(session["session_id"]) == 36
    assert writes[0][3:] == ("pytest", None)


def _session_db(fake_db, status: str = "active", owner: str = SPONSOR, referral_data=None):
    return fake_db(rows={
        "FROM referral_sessions": {"session_id": SESSION, "referral_code": "ALICE", "status": status},
        "FROM referral_codes": {"user_address": owner},
        "FROM user_profiles": {"address": NEWCOMER, "username": "newbie", "referral_data": referral_data or {}},
    })


def test_signup_links_sponsor_in_one_transaction(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = _session_db(fake_db)
    sent = []
    monkeypatch.setattr(referral_service, "get_db", lambda: conn)
    monkeypatch.setattr(notification_service, "create_notification", lambda payload: sent.append(payload))

    result = process_signup(SESSION, NEWCOMER)

    assert result == {"referral_code": "ALICE", "sponsor_address": SPONSOR, "referred_address": NEWCOMER}
    assert conn.statements[0][0].endswith("FOR UPDATE")
    assert conn.ran("SET status = 'converted'")
    assert conn.ran("usage_count = usage_count + 1")
    assert conn.commits == 1
    assert sent[0]["user_address"] == SPONSOR
    assert "newbie" in sent[0]["message"]


def test_converted_session_is_not_reused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = _session_db(fake_db, status="converted")
    monkeypatch.setattr(referral_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        process_signup(SESSION, NEWCOMER)

    assert conn.commits == 0
    assert conn.rollbacks == 1


def test_member_with_sponsor_keeps_it(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = _session_db(fake_db, referral_data={"referred_by": "BOB"})
    monkeypatch.setattr(referral_service, "get_db", lambda: conn)

    with pytest.raises(Conflict) as exc:
        process_signup(SESSION, NEWCOMER)

    assert exc.value.code == "ALREADY_REFERRED"
    assert not conn.ran("UPDATE user_profiles")


def test_own_code_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = _session_db(fake_db, owner=NEWCOMER)
    monkeypatch.setattr(referral_service, "get_db", lambda: conn)

    with pytest.raises(ValidationFailed):
        process_signup(SESSION, NEWCOMER)


def test_notification_failure_does_not_undo_signup(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = _session_db(fake_db)
    monkeypatch.setattr(referral_service, "get_db", lambda: conn)

    def broken(payload):
        raise RuntimeError("notifications down")

    monkeypatch.setattr(notification_service, "create_notification", broken)

    assert process_signup(SESSION, NEWCOMER)["sponsor_address"] == SPONSOR
    assert conn.commits == 1
