# backend/app/services/profile_service.py

import hashlib
import logging
from typing import Dict, Any, Optional, List

from app.config import ENCRYPTION_SALT
from app.db import fetch_one, fetch_all
from app.utils.crypto import cryptojs_decrypt
from app.utils.helpers import fallback_username, is_sui_address

logger = logging.getLogger("aionet-backend.profiles")

PUBLIC_FIELDS = (
    "address",
    "username",
    "role_tier",
    "profile_level",
    "current_xp",
    "total_xp",
    "profile_image_blob_id",
    "social_links",
    "created_at",
)


def get_profile(address: str) -> Optional[Dict[str, Any]]:
    return fetch_one(
        "SELECT * FROM user_profiles WHERE address = %s",
        (address,),
    )


def get_profile_by_identifier(identifier: str) -> Optional[Dict[str, Any]]:
    """
    Looks a profile up by wallet address, falling back to a
    case-insensitive username match.
    """
    if is_sui_address(identifier):
        profile = get_profile(identifier)
        if profile:
            return profile

    return fetch_one(
        """
        SELECT * FROM user_profiles
        WHERE LOWER(username) = LOWER(%s)
        ORDER BY created_at ASC
        LIMIT 1
        """,
        (identifier,),
    )


def list_profiles(columns: str = "*") -> List[Dict[str, Any]]:
    return fetch_all(f"SELECT {columns} FROM user_profiles")


def encryption_key(address: str) -> str:
    """Hex SHA-256 of address + salt, the passphrase usernames are encrypted with."""
    return hashlib.sha256(f"{address}{ENCRYPTION_SALT}".encode("utf-8")).hexdigest()


def display_username(profile: Dict[str, Any]) -> str:
    """
    Usernames are encrypted client-side with CryptoJS, keyed on address + salt.
    Plain username wins when present; otherwise decrypt, otherwise fall back.
    Rows written before the key was hashed still decrypt with the raw passphrase.
    """
    address = profile.get("address") or ""

    if profile.get("username"):
        return profile["username"]

    encrypted = profile.get("username_encrypted")
    if encrypted:
        for passphrase in (encryption_key(address), f"{address}{ENCRYPTION_SALT}"):
            decrypted = cryptojs_decrypt(encrypted, passphrase)
            if decrypted:
                return decrypted
        logger.warning("⚠️ Could not decrypt username for %s", address)

    return fallback_username(address)


def public_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    data = {field: profile.get(field) for field in PUBLIC_FIELDS}
    data["username"] = display_username(profile)
    data["role_tier"] = profile.get("role_tier") or "NOMAD"
    return data
