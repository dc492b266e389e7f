# backend/app/services/referral_service.py

import logging
import re
import secrets
import uuid
from typing import Dict, Any, List, Optional

import psycopg2.errors

from app.db import get_db, fetch_one, fetch_all, execute, Json
from app.services import notification_service
from app.services.profile_service import display_username
from app.utils.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger("aionet-backend.referrals")

CODE_MAX_LENGTH = 16
MAX_CODE_ATTEMPTS = 5


def normalize_code(raw: Optional[str]) -> str:
    """Referral codes are case-insensitive; only A-Z and 0-9 survive."""
    return re.sub(r"[^A-Z0-9]", "", (raw or "").upper())[:CODE_MAX_LENGTH]


def base_code(address: str, username: Optional[str]) -> str:
    code = normalize_code(username)
    if len(code) < 3:
        code = normalize_code(address[2:10] if address.startswith("0x") else address)
    return code


# -------------------------------------------------
# CODES
# -------------------------------------------------
def list_codes(address: str) -> List[Dict[str, Any]]:
    return fetch_all(
        """
        SELECT * FROM referral_codes
        WHERE user_address = %s
        ORDER BY is_default DESC, created_at ASC
        """,
        (address,),
    )


def create_default_code(address: str, username: Optional[str] = None) -> Dict[str, Any]:
    existing = fetch_one(
        "SELECT * FROM referral_codes WHERE user_address = %s AND is_default",
        (address,),
    )
    if existing:
        return existing

    profile = fetch_one("SELECT * FROM user_profiles WHERE address = %s", (address,))
    if not profile:
        raise NotFound("Profile not found")

    base = base_code(address, username or display_username(profile))
    candidate = base
    for _ in range(MAX_CODE_ATTEMPTS):
        try:
            row = execute(
                """
                INSERT INTO referral_codes (code, user_address, is_default)
                VALUES (%s, %s, TRUE)
                RETURNING *
                """,
                (candidate, address),
                returning=True,
            )
        except psycopg2.errors.UniqueViolation as e:
            if e.diag.constraint_name == "referral_codes_default_key":
                # a parallel request created it first
                return fetch_one(
                    "SELECT * FROM referral_codes WHERE user_address = %s AND is_default",
                    (address,),
                )
            candidate = f"{base[:CODE_MAX_LENGTH - 4]}{secrets.token_hex(2).upper()}"
            continue

        # the profile carries the code the affiliate network is keyed on
        execute(
            """
            UPDATE user_profiles
            SET referral_data = COALESCE(referral_data, '{}'::jsonb) || %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE address = %s AND COALESCE(referral_data->>'referral_code', '') = ''
            """,
            (Json({"referral_code": row["code"]}), address),
        )
        logger.info("🔗 Default referral code %s created for %s", row["code"], address)
        return row

    raise Conflict("Could not allocate a unique referral code", "CODE_UNAVAILABLE")


# -------------------------------------------------
# TRACKING
# -------------------------------------------------
def track_click(
    raw_code: str,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer_url: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    code = normalize_code(raw_code)
    if not code:
        raise ValidationFailed("Referral code is required")

    row = fetch_one(
        "SELECT code, is_active FROM referral_codes WHERE code = %s",
        (code,),
    )
    if not row or not row.get("is_active"):
        raise NotFound("Invalid referral code", "INVALID_CODE")

    session_id = session_id or str(uuid.uuid4())
    session = execute(
        """
        INSERT INTO referral_sessions (session_id, referral_code, ip_address, user_agent, referrer_url)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (session_id) DO UPDATE SET
            referral_code = EXCLUDED.referral_code,
            ip_address = EXCLUDED.ip_address,
            user_agent = EXCLUDED.user_agent,
            referrer_url = EXCLUDED.referrer_url
        WHERE referral_sessions.status = 'active'
        RETURNING *
        """,
        (session_id, code, ip_address, user_agent, referrer_url),
        returning=True,
    )
    if not session:
        raise Conflict("Referral session already converted", "SESSION_CONVERTED")

    logger.info("👣 Referral click for %s (session %s)", code, session_id)
    return session


def get_session(session_id: str) -> Dict[str, Any]:
    session = fetch_one(
        "SELECT * FROM referral_sessions WHERE session_id = %s",
        (session_id,),
    )
    if not session:
        raise NotFound("Referral session not found")
    return session


def process_signup(session_id: str, address: str) -> Dict[str, Any]:
    """
    Links a new member to the code behind their referral session.
    The session, the profile and the code counter change in one transaction.
    """
    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(
            "SELECT * FROM referral_sessions WHERE session_id = %s FOR UPDATE",
            (session_id,),
        )
        session = cur.fetchone()
        if not session:
            raise NotFound("Referral session not found")
        if session.get("status") != "active":
            raise Conflict("Referral session already converted", "SESSION_CONVERTED")

        code = session["referral_code"]
        cur.execute(
            "SELECT user_address FROM referral_codes WHERE code = %s",
            (code,),
        )
        owner = cur.fetchone()
        if not owner:
            raise NotFound("Invalid referral code", "INVALID_CODE")
        if owner["user_address"] == address:
            raise ValidationFailed("You cannot use your own referral code", "SELF_REFERRAL")

        cur.execute(
            "SELECT * FROM user_profiles WHERE address = %s FOR UPDATE",
            (address,),
        )
        profile = cur.fetchone()
        if not profile:
            raise NotFound("Profile not found")
        if (profile.get("referral_data") or {}).get("referred_by"):
            raise Conflict("Profile already has a sponsor", "ALREADY_REFERRED")

        cur.execute(
            """
            UPDATE user_profiles
            SET referral_data = COALESCE(referral_data, '{}'::jsonb)
                    || jsonb_build_object('referred_by', %s::text, 'referral_date', CURRENT_TIMESTAMP),
                updated_at = CURRENT_TIMESTAMP
            WHERE address = %s
            """,
            (code, address),
        )
        cur.execute(
            """
            UPDATE referral_sessions
            SET status = 'converted', referred_address = %s, converted_at = CURRENT_TIMESTAMP
            WHERE session_id = %s
            """,
            (address, session_id),
        )
        cur.execute(
            "UPDATE referral_codes SET usage_count = usage_count + 1 WHERE code = %s",
            (code,),
        )
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()

    logger.info("✅ %s joined through referral code %s", address, code)

    try:
        notification_service.create_notification(
            notification_service.referral_bonus(owner["user_address"], display_username(profile))
        )
    except Exception as e:
        logger.error("❌ Referral notification for %s failed: %s", owner["user_address"], e)

    return {"referral_code": code, "sponsor_address": owner["user_address"], "referred_address": address}
