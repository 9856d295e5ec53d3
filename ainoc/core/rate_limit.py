"""
Per-caller rate limiting for the chat endpoint

Each chat turn can fan out into several model calls and database reads, so the
endpoint is throttled per signed-in user (or per client IP when anonymous)
with an in-memory sliding window. Single-process only.
"""
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from fastapi import Depends, HTTPException, Request, status

from .auth import Authenticated, AuthState, get_auth_state
from .config import settings


class RateLimiter:
    """In-memory sliding-window rate limiter."""

    def __init__(self, cleanup_interval: int = 60):
        # {identifier: [timestamp, ...]}
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def _cleanup_old_entries(self, now: float, window_seconds: int):
        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds * 2
        for identifier in list(self._requests.keys()):
            self._requests[identifier] = [ts for ts in self._requests[identifier] if ts > cutoff]
            if not self._requests[identifier]:
                del self._requests[identifier]

        self._last_cleanup = now

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int = 60
    ) -> Tuple[bool, int, int]:
        """
        Check if a request is allowed under the rate limit.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        now = time.time()
        self._cleanup_old_entries(now, window_seconds)

        window_start = now - window_seconds
        in_window = [ts for ts in self._requests[identifier] if ts > window_start]
        self._requests[identifier] = in_window

        if len(in_window) >= max_requests:
            retry_after = int(min(in_window) + window_seconds - now) + 1
            return False, 0, retry_after

        in_window.append(now)
        return True, max_requests - len(in_window), 0

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


async def chat_rate_limit(
    request: Request,
    auth: AuthState = Depends(get_auth_state)
) -> None:
    """
    Dependency that throttles chat turns per caller.

    Usage:
        @router.post("/chat", dependencies=[Depends(chat_rate_limit)])
    """
    if isinstance(auth, Authenticated):
        identifier = f"chat:user:{auth.identity.id}"
    else:
        identifier = f"chat:ip:{_client_ip(request)}"

    limit = settings.CHAT_RATE_LIMIT_PER_MINUTE
    is_allowed, _, retry_after = rate_limiter.is_allowed(identifier, max_requests=limit)

    if not is_allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "Retry-After": str(retry_after),
            }
        )
