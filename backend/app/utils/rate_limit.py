# backend/app/utils/rate_limit.py

import time
import logging
from typing import Dict, Tuple, Optional, Callable

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("aionet-backend.rate-limit")

DEFAULT_WINDOW_SECONDS = 60
DEFAULT_MAX_REQUESTS = 100

# Endpoint-specific limits: (window seconds, max requests). Trailing * = prefix match.
ENDPOINT_LIMITS: Dict[str, Tuple[int, int]] = {
    "/api/admin/*": (60, 20),
    "/api/profile": (60, 30),
    "/api/channel-reports": (60, 10),
    "/api/referral/track": (60, 10),
}


class RateLimiter:
    """
    In-memory fixed window limiter, one counter per identifier:endpoint.
    Per-process only; every worker keeps its own table.
    """

    def __init__(
        self,
        limits: Optional[Dict[str, Tuple[int, int]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.limits = ENDPOINT_LIMITS if limits is None else limits
        self.clock = clock
        self._store: Dict[str, Dict[str, float]] = {}

    def limits_for(self, endpoint: str) -> Tuple[int, int]:
        if endpoint in self.limits:
            return self.limits[endpoint]

        for pattern, limits in self.limits.items():
            if pattern.endswith("*") and endpoint.startswith(pattern[:-1]):
                return limits

        return DEFAULT_WINDOW_SECONDS, DEFAULT_MAX_REQUESTS

    def _cleanup(self, now: float) -> None:
        expired = [key for key, entry in self._store.items() if now > entry["reset"]]
        for key in expired:
            del self._store[key]

    def check(self, identifier: str, endpoint: str) -> Dict[str, float]:
        now = self.clock()
        self._cleanup(now)

        key = f"{identifier}:{endpoint}"
        window, max_requests = self.limits_for(endpoint)
        entry = self._store.get(key)

        if entry is None or now > entry["reset"]:
            entry = {"count": 1, "reset": now + window}
            self._store[key] = entry
            return {
                "allowed": True,
                "limit": max_requests,
                "remaining": max_requests - 1,
                "reset": entry["reset"],
            }

        entry["count"] += 1
        if entry["count"] > max_requests:
            return {"allowed": False, "limit": max_requests, "remaining": 0, "reset": entry["reset"]}

        return {
            "allowed": True,
            "limit": max_requests,
            "remaining": max_requests - entry["count"],
            "reset": entry["reset"],
        }

    def reset(self) -> None:
        self._store.clear()


rate_limiter = RateLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def client_identifier(request: Request) -> str:
    user_address = request.headers.get("x-user-address")
    if user_address:
        return user_address
    return client_ip(request)


# -------------------------------------------------
# MIDDLEWARE
# -------------------------------------------------
async def rate_limit_middleware(request: Request, call_next):
    path = request.url.path
    if not path.startswith("/api/"):
        return await call_next(request)

    identifier = client_identifier(request)
    result = rate_limiter.check(identifier, path)
    reset_epoch = int(result["reset"])

    headers = {
        "X-RateLimit-Limit": str(result["limit"]),
        "X-RateLimit-Remaining": str(int(result["remaining"])),
        "X-RateLimit-Reset": str(reset_epoch),
    }

    if not result["allowed"]:
        retry_after = max(0, int(result["reset"] - rate_limiter.clock()))
        logger.warning("⚠️ Rate limit hit for %s on %s", identifier, path)
        headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": "Too many requests",
                "code": "RATE_LIMITED",
                "retry_after": retry_after,
            },
            headers=headers,
        )

    response = await call_next(request)
    for name, value in headers.items():
        response.headers[name] = value
    return response
