"""Session API routes.

Sign-up and sign-in happen at the identity provider; this service only
reports who the caller is and lets them revoke their current credential.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.core.dependencies import (
    get_current_principal,
    get_revocation_list,
    get_role_repository,
)
from app.core.redis_client import RevocationList
from app.domain.entities import Principal
from app.domain.repositories import IRoleRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def whoami(
    principal: Annotated[Principal, Depends(get_current_principal)],
    role_repo: Annotated[IRoleRepository, Depends(get_role_repository)],
) -> dict:
    """The caller's id and role.  Users without an assignment are ``user``."""
    role = await role_repo.get_role(principal.id)
    return {"user_id": str(principal.id), "role": role.value}


@router.post("/signout", status_code=status.HTTP_200_OK)
async def signout(
    principal: Annotated[Principal, Depends(get_current_principal)],
    revocation_list: Annotated[RevocationList, Depends(get_revocation_list)],
) -> dict:
    """Revoke the presented credential until it would have expired anyway."""
    if principal.jti and principal.expires_at:
        ttl = int(principal.expires_at - time.time())
        await revocation_list.revoke(principal.jti, ttl)
        logger.info("Credential jti=%s revoked (TTL=%ds) for user %s", principal.jti, ttl, principal.id)
    return {"success": True}
