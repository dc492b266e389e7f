# backend/app/utils/auth.py

from typing import Optional

from fastapi import Header, HTTPException

from app.config import is_admin


def current_user(x_user_address: Optional[str] = Header(default=None)) -> str:
    """Wallet address set by the client after the zkLogin / wallet session."""
    if not x_user_address or not x_user_address.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Address header")
    return x_user_address.strip()


def admin_user(x_user_address: Optional[str] = Header(default=None)) -> str:
    address = current_user(x_user_address)
    if not is_admin(address):
        raise HTTPException(status_code=403, detail="Admin access required")
    return address
