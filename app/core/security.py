"""Bearer credential helpers.

The identity provider signs access tokens with a shared HS256 secret and puts
the principal id in the ``sub`` claim.  ``create_access_token`` exists for
local development and tests; production tokens are minted externally.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire, "jti": uuid4().hex, "aud": settings.jwt_audience})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """Return the verified claims, or ``None`` for any invalid token."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.PyJWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Pull the credential out of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        return None
    return credential.strip()
