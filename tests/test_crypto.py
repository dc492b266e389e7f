"""Unit tests for CryptoJS-compatible username decryption."""

from __future__ import annotations

import hashlib

from app.services.profile_service import display_username
from app.utils.crypto import cryptojs_decrypt, cryptojs_encrypt, evp_bytes_to_key

SALT = b"\x01\x02\x03\x04\x05\x06\x07\x08"


def test_evp_key_sizes() -> None:
    key, iv = evp_bytes_to_key(b"secret", SALT)
    assert len(key) == 32
    assert len(iv) == 16


def test_decrypt_with_matching_passphrase() -> None:
    token = cryptojs_encrypt("satoshi", "0xabcsalt", SALT)
    assert cryptojs_decrypt(token, "0xabcsalt") == "satoshi"


def test_wrong_passphrase_returns_none() -> None:
    token = cryptojs_encrypt("satoshi", "0xabcsalt", SALT)
    assert cryptojs_decrypt(token, "0xdefsalt") != "satoshi"


def test_garbage_payload_returns_none() -> None:
    assert cryptojs_decrypt("not-base64!!", "key") is None
    assert cryptojs_decrypt("aGVsbG8=", "key") is None


def test_display_username_decrypts_with_hashed_key(monkeypatch) -> None:
    from app.services import profile_service

    monkeypatch.setattr(profile_service, "ENCRYPTION_SALT", "pepper")
    address = "0x" + "1" * 56 + "deadbeef"
    key = hashlib.sha256((address + "pepper").encode()).hexdigest()
    profile = {
        "address": address,
        "username": None,
        "username_encrypted": cryptojs_encrypt("vitalik", key, SALT),
    }
    assert profile_service.encryption_key(address) == key
    assert display_username(profile) == "vitalik"


def test_display_username_accepts_raw_passphrase_rows(monkeypatch) -> None:
    from app.services import profile_service

    monkeypatch.setattr(profile_service, "ENCRYPTION_SALT", "pepper")
    address = "0x" + "1" * 56 + "deadbeef"
    profile = {
        "address": address,
        "username_encrypted": cryptojs_encrypt("vitalik", address + "pepper", SALT),
    }
    assert display_username(profile) == "vitalik"


def test_display_username_falls_back() -> None:
    profile = {"address": "0x" + "1" * 56 + "deadbeef", "username_encrypted": "bogus"}
    assert display_username(profile) == "User_deadbeef"
