"""Unit tests for XP levels, achievements and level rewards."""

from __future__ import annotations

import pytest

from app.services import progression_service
from app.services.progression_service import (
    calculate_level,
    claim_achievement,
    claim_level_reward,
    is_achievement_unlocked,
    level_progress,
    level_rewards,
    list_achievements,
)
from app.utils.errors import Conflict, NotFound


def test_level_thresholds() -> None:
    assert calculate_level(0) == 1
    assert calculate_level(99) == 1
    assert calculate_level(100) == 2
    assert calculate_level(449) == 3
    assert calculate_level(700) == 5
    assert calculate_level(5200) == 10
    assert calculate_level(999999) == 10


def test_level_handles_missing_xp() -> None:
    assert calculate_level(None) == 1


def test_level_progress_mid_level() -> None:
    progress = level_progress(175)
    assert progress["level"] == 2
    assert progress["current_level_xp"] == 100
    assert progress["next_level_xp"] == 250
    assert progress["xp_into_level"] == 75
    assert progress["xp_to_next"] == 75
    assert progress["progress_percent"] == 50.0


def test_level_progress_at_max_level() -> None:
    progress = level_progress(9000)
    assert progress["level"] == 10
    assert progress["next_level_xp"] is None
    assert progress["xp_to_next"] == 0
    assert progress["progress_percent"] == 100.0


def test_profile_image_unlocks_personalize_achievement() -> None:
    assert is_achievement_unlocked("Personalize Your Profile", {"profile_image_blob_id": "blob"})
    assert not is_achievement_unlocked("Personalize Your Profile", {})


def test_follow_x_requires_following_flag() -> None:
    following = {"social_links": [{"platform": "X", "following_aionet": True}]}
    not_following = {"social_links": [{"platform": "X", "following_aionet": False}]}
    assert is_achievement_unlocked("Follow AIONET on X", following)
    assert not is_achievement_unlocked("Follow AIONET on X", not_following)


def test_royal_tier_unlocks_mint_achievement() -> None:
    assert is_achievement_unlocked("Mint Royal NFT Status", {"role_tier": "ROYAL"})
    assert not is_achievement_unlocked("Mint Royal NFT Status", {"role_tier": "PRO"})


def test_referral_achievements_stay_locked() -> None:
    profile = {"role_tier": "ROYAL", "profile_level": 10}
    assert not is_achievement_unlocked("Lead to Level 9", profile)


def test_list_achievements_marks_claimed() -> None:
    profile = {
        "profile_level": 6,
        "achievements_data": [{"name": "Advanced User Status", "claimed": True, "claimed_at": "2026-01-01"}],
    }
    by_name = {a["name"]: a for a in list_achievements(profile)}
    assert by_name["Advanced User Status"]["claimed"]
    assert by_name["Advanced User Status"]["unlocked"]
    assert not by_name["Personalize Your Profile"]["claimed"]


def test_zero_token_rewards_auto_claimed_once_reached() -> None:
    rewards = {r["level"]: r for r in level_rewards({"profile_level": 4})}
    assert rewards[3]["claimed"]
    assert rewards[4]["claimed"]
    assert not rewards[5]["claimed"]
    assert not rewards[5]["available"]
    assert rewards[2]["description"] == "Unlock the 2nd Affiliate Level"
    assert rewards[6]["description"] == "Earn 500 pAION"


def test_token_reward_claimed_flag_from_referral_data() -> None:
    profile = {"profile_level": 7, "referral_data": {"level_rewards": [{"level": 6}]}}
    rewards = {r["level"]: r for r in level_rewards(profile)}
    assert rewards[6]["claimed"]
    assert rewards[7]["available"] and not rewards[7]["claimed"]


def test_claim_level_reward_before_level_reached(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(rows={"FROM user_profiles": {"address": "0xabc", "profile_level": 5}})
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        claim_level_reward("0xabc", 6)

    assert conn.commits == 0
    assert conn.rollbacks == 1
    assert conn.closed


def test_claim_level_reward_twice_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    profile = {"address": "0xabc", "profile_level": 6, "referral_data": {"level_rewards": [{"level": 6}]}}
    conn = fake_db(rows={"FROM user_profiles": profile})
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        claim_level_reward("0xabc", 6)

    assert not conn.ran("INSERT INTO paion_transactions")


def test_claim_unknown_level_reward() -> None:
    with pytest.raises(NotFound):
        claim_level_reward("0xabc", 11)


def test_claim_level_reward_locks_profile_and_credits_in_one_transaction(
    monkeypatch: pytest.MonkeyPatch, fake_db
) -> None:
    conn = fake_db(rows={
        "FROM user_profiles": {"address": "0xabc", "profile_level": 6},
        "FROM paion_balances": {"balance": 0},
        "INSERT INTO paion_transactions": {"id": "t1"},
    })
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    result = claim_level_reward("0xabc", 6)

    assert result == {"level": 6, "tokens_awarded": 500}
    assert conn.statements[0][0].endswith("FOR UPDATE")
    assert conn.commits == 1
    stored = conn.params_for("UPDATE user_profiles")[0].adapted
    assert stored["level_rewards"][0]["level"] == 6
    ledger = conn.params_for("INSERT INTO paion_transactions")
    assert ledger[2] == 500
    assert ledger[6] == "level_reward"


def test_failed_credit_leaves_level_reward_unclaimed(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    conn = fake_db(
        rows={
            "FROM user_profiles": {"address": "0xabc", "profile_level": 6},
            "FROM paion_balances": {"balance": 0},
        },
        failures={"INSERT INTO paion_transactions": RuntimeError("ledger unavailable")},
    )
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    with pytest.raises(RuntimeError):
        claim_level_reward("0xabc", 6)

    # the referral_data update was issued but never committed
    assert conn.ran("UPDATE user_profiles")
    assert conn.commits == 0
    assert conn.rollbacks == 1


def test_claim_achievement_awards_xp(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    profile = {"address": "0xabc", "profile_image_blob_id": "blob", "total_xp": 90, "current_xp": 90}
    conn = fake_db(rows={"FROM user_profiles": profile})
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    result = claim_achievement("0xabc", "Personalize Your Profile")

    assert result["xp_awarded"] == 50
    assert result["total_xp"] == 140
    assert result["profile_level"] == 2
    assert conn.commits == 1
    assert not conn.ran("paion_transactions")


def test_claim_achievement_twice_is_refused(monkeypatch: pytest.MonkeyPatch, fake_db) -> None:
    profile = {
        "address": "0xabc",
        "profile_image_blob_id": "blob",
        "achievements_data": [{"name": "Personalize Your Profile", "claimed": True}],
    }
    conn = fake_db(rows={"FROM user_profiles": profile})
    monkeypatch.setattr(progression_service, "get_db", lambda: conn)

    with pytest.raises(Conflict):
        claim_achievement("0xabc", "Personalize Your Profile")

    assert conn.commits == 0
