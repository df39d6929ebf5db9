"""
Per-client rate limiting for the chat endpoints.
"""

from fastapi import HTTPException, Request
from limits import parse
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from northpole.config import Settings


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


async def chat_rate_limit(request: Request) -> None:
    """Route dependency; counts chat turns per client address against the app's own limiter."""
    limiter: Limiter = request.app.state.limiter
    if not limiter.enabled:
        return

    settings: Settings = request.app.state.settings
    item = parse(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
    client = get_remote_address(request)
    if not limiter.limiter.hit(item, client, "chat"):
        logger.warning(f"Rate limit exceeded for {client} on {request.url.path}")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded: {item}",
        )
