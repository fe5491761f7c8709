"""Authorization guard: bearer credential -> principal -> role check."""

import logging
from typing import Optional
from uuid import UUID

from app.core.redis_client import RevocationList
from app.core.security import decode_access_token
from app.domain.entities import Principal, Role
from app.domain.exceptions import Forbidden, Unauthorized
from app.domain.repositories import IRoleRepository

logger = logging.getLogger(__name__)


class AuthorizationGuard:
    """Resolves callers and checks exact role assignments.  Read-only."""

    def __init__(
        self,
        role_repository: IRoleRepository,
        revocation_list: Optional[RevocationList] = None,
    ):
        self.role_repository = role_repository
        self.revocation_list = revocation_list

    async def resolve(self, credential: Optional[str]) -> Principal:
        if not credential:
            logger.info("Request without credential")
            raise Unauthorized()

        payload = decode_access_token(credential)
        if payload is None:
            raise Unauthorized()

        jti: Optional[str] = payload.get("jti")
        if jti and self.revocation_list and await self.revocation_list.is_revoked(jti):
            logger.info("Revoked credential presented: jti=%s", jti)
            raise Unauthorized()

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            raise Unauthorized()
        return Principal(id=user_id, credential=credential, jti=jti, expires_at=payload.get("exp"))

    async def require_role(self, credential: Optional[str], role: Role = Role.ADMIN) -> Principal:
        """Resolve the caller and demand an assignment of exactly ``role``.

        A missing assignment and an assignment to any other role are both
        denials; a moderator never satisfies an admin requirement.
        """
        principal = await self.resolve(credential)
        if not await self.role_repository.has_role(principal.id, role):
            logger.warning("User %s lacks required role %s", principal.id, role.value)
            raise Forbidden()
        return principal
