"""Async Redis access for the credential revocation list.

Signed-out access tokens are remembered by their ``jti`` until they would
have expired anyway.  Rate limit bookkeeping lives in the database.
"""

from typing import AsyncGenerator

import redis.asyncio as aioredis

from app.core.config import settings

REVOKED_CREDENTIAL_PREFIX = "bookswap:revoked:"


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """FastAPI dependency: yield a connected Redis client, close on teardown."""
    client: aioredis.Redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        yield client
    finally:
        await client.aclose()


class RevocationList:
    """Blacklist of credential ids, each entry expiring with its token."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        await self.client.setex(f"{REVOKED_CREDENTIAL_PREFIX}{jti}", max(ttl_seconds, 1), "1")

    async def is_revoked(self, jti: str) -> bool:
        return await self.client.exists(f"{REVOKED_CREDENTIAL_PREFIX}{jti}") == 1
