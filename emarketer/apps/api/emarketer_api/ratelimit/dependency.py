"""FastAPI dependency applying a rate-limit policy to a route.

Limiters live on ``app.state.rate_limiters`` (built at app creation) so tests
can swap in limiters with a fake clock or a tiny limit.

Usage:
    @router.post("/chat", dependencies=[Depends(rate_limit("chat"))])
"""

from typing import Callable, Optional

from fastapi import Request, Response

from emarketer_api.errors import RateLimited
from emarketer_api.observability.events import log_rate_limit_exceeded
from emarketer_api.ratelimit.limiter import (
    FixedWindowRateLimiter,
    RateLimitResult,
    build_rate_limiters,
)

KeyFunc = Callable[[Request], str]


def client_address(request: Request) -> str:
    """Default key: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_epoch_seconds),
    }


def _get_limiter(request: Request, policy: str) -> FixedWindowRateLimiter:
    limiters = getattr(request.app.state, "rate_limiters", None)
    if limiters is None:
        limiters = build_rate_limiters()
        request.app.state.rate_limiters = limiters
    return limiters[policy]


def rate_limit(policy: str, key_func: Optional[KeyFunc] = None):
    """Build a dependency enforcing ``policy``.

    Args:
        policy: "auth", "chat" or "api"
        key_func: Maps the request to a rate-limit key (default: client address)

    Raises:
        RateLimited: 429 when the window is exhausted
    """
    resolve_key = key_func or client_address

    async def _dependency(request: Request, response: Response) -> RateLimitResult:
        limiter = _get_limiter(request, policy)
        key = resolve_key(request)
        result = limiter.check(key)

        if not result.allowed:
            log_rate_limit_exceeded(
                policy=policy,
                key=key,
                path=request.url.path,
                retry_after_seconds=result.retry_after_seconds,
            )
            raise RateLimited(result, limiter.policy.message)

        response.headers.update(rate_limit_headers(result))
        return result

    return _dependency
