from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from ..domain.errors import MissingCredentialError
from ..domain.permissions import parse_page_permissions
from ..domain.ports.identity import IdentityVerifier
from ..domain.ports.sub_admin import SubAdminRepository
from ..domain.roles import (
    AdministratorRole,
    CoreAdministrator,
    DelegatedAdministrator,
    Identity,
    Unauthorized,
)

logger = logging.getLogger("portfolio.auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationResolver:
    """Classifies a bearer credential as core admin, delegate or unauthorized.

    The core admin email is injected so the resolver never reads global
    configuration.
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        sub_admins: SubAdminRepository,
        core_admin_email: str,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._verifier = verifier
        self._sub_admins = sub_admins
        self._core_admin_email = core_admin_email.strip().lower()
        self._clock = clock

    async def resolve(self, credential: str | None) -> AdministratorRole:
        if not credential:
            raise MissingCredentialError()

        identity = await self._verifier.verify(credential)
        return await self.classify(identity)

    async def classify(self, identity: Identity) -> AdministratorRole:
        email = identity.normalized_email
        if not email:
            return Unauthorized(identity)

        if email == self._core_admin_email:
            return CoreAdministrator(identity)

        profile = await self._sub_admins.get_active_by_email(email)
        if profile is None:
            return Unauthorized(identity)

        permissions = parse_page_permissions(profile.page_permissions)
        await self._record_login(profile.id, identity)
        return DelegatedAdministrator(
            identity=identity, profile=profile, permissions=permissions
        )

    async def _record_login(self, sub_admin_id: uuid.UUID, identity: Identity) -> None:
        try:
            await self._sub_admins.record_login(
                sub_admin_id, identity.subject_id, self._clock()
            )
        except Exception:
            # Login bookkeeping never blocks an authenticated request
            logger.warning(
                "Failed to record login for sub-admin %s", sub_admin_id, exc_info=True
            )
