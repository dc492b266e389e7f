import datetime
import math
import re
from typing import Optional

SUI_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

DAY = datetime.timedelta(days=1)


# -------------------------------------------------
# TIME
# -------------------------------------------------
def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def normalize_dt(value: Optional[object]) -> Optional[datetime.datetime]:
    """
    Ensures dt from DB is timezone-aware for safe comparison.
    Handles str/datetime/None.
    """
    if value is None:
        return None

    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value

    # Handle string values: "2026-01-20T12:33:00+00" / "...Z"
    try:
        text = str(value).replace("Z", "+00:00")
        dt = datetime.datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt
    except ValueError:
        return None


def days_remaining(expires_at, now: datetime.datetime) -> int:
    """Whole days left (rounded up), never negative."""
    expires = normalize_dt(expires_at)
    if expires is None or expires <= now:
        return 0
    return math.ceil((expires - now) / DAY)


def isoformat(value) -> Optional[str]:
    dt = normalize_dt(value)
    return dt.isoformat() if dt else None


# -------------------------------------------------
# SUI
# -------------------------------------------------
def is_sui_address(address: Optional[str]) -> bool:
    """Strict 32-byte hex address."""
    return bool(address) and bool(SUI_ADDRESS_RE.match(address))


def looks_like_sui_hex(value: Optional[str], min_length: int = 42) -> bool:
    """Loose check used by the raffle endpoints (0x prefix + minimum length)."""
    return bool(value) and value.startswith("0x") and len(value) >= min_length


def fallback_username(address: str) -> str:
    return f"User_{address[-8:]}"


# -------------------------------------------------
# NUMBERS
# -------------------------------------------------
def to_float(value, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
