"""
Fixed-window rate limits for the sensitive endpoints.

Limits are kept in process memory; each ``RateLimit`` instance works as
a FastAPI dependency keyed by the socket peer address (forwarding
headers are client-controlled), and ``check`` allows a finer
key (the login limit also keys on the submitted email).
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

storage = MemoryStorage()
limiter = FixedWindowRateLimiter(storage)

TOO_MANY_REQUESTS = "Muitas tentativas. Tente novamente mais tarde."


class RateLimit:
    def __init__(self, name: str, limit: str, detail: str = TOO_MANY_REQUESTS):
        self.name = name
        self.item = parse(limit)
        self.detail = detail

    def check(self, request: Request, extra: Optional[str] = None) -> None:
        key = request.client.host if request.client else "unknown"
        if extra:
            key = f"{key}:{extra.lower()}"
        if not limiter.hit(self.item, self.name, key):
            logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=self.detail
            )

    async def __call__(self, request: Request) -> None:
        self.check(request)


login_limiter = RateLimit("login", "5/minute")
forgot_password_limiter = RateLimit("forgot_password", "3 per 15 minutes")
whatsapp_recovery_limiter = RateLimit("whatsapp_recovery", "3 per 15 minutes")
verify_limiter = RateLimit("verify", "10 per 15 minutes")
reset_password_limiter = RateLimit("reset_password", "5 per 15 minutes")
contatos_limiter = RateLimit(
    "contatos", "30 per 15 minutes", "Muitas requisições. Tente novamente em 15 minutos."
)
contact_limiter = RateLimit(
    "contact", "5 per 15 minutes", "Muitas mensagens enviadas. Tente novamente em 15 minutos."
)


def reset_limits() -> None:
    """Clear every counter"""
    storage.reset()
