from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..domain.errors import SubAdminNotFoundError
from ..domain.permissions import FULL_PERMISSIONS, PagePermissions, dump_page_permissions
from ..domain.ports.invitation import InvitationData, InvitationRepository
from ..domain.ports.sub_admin import SubAdminData, SubAdminRepository
from ..domain.roles import AdministratorRole, CoreAdministrator, DelegatedAdministrator
from .audit import AuditService

logger = logging.getLogger("portfolio.delegates")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Team:
    sub_admins: list[SubAdminData]
    pending_invitations: list[InvitationData]


class DelegateService:
    """Core-admin management of delegated administrators."""

    def __init__(
        self,
        sub_admins: SubAdminRepository,
        invitations: InvitationRepository,
        audit: AuditService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.sub_admins = sub_admins
        self.invitations = invitations
        self.audit = audit
        self.clock = clock

    async def _get(self, sub_admin_id: uuid.UUID) -> SubAdminData:
        sub_admin = await self.sub_admins.get(sub_admin_id)
        if sub_admin is None:
            raise SubAdminNotFoundError()
        return sub_admin

    async def list_team(self) -> Team:
        return Team(
            sub_admins=await self.sub_admins.list(),
            pending_invitations=await self.invitations.list_pending(),
        )

    async def update_permissions(
        self,
        caller: CoreAdministrator,
        sub_admin_id: uuid.UUID,
        permissions: PagePermissions,
    ) -> SubAdminData:
        sub_admin = await self._get(sub_admin_id)
        before = list(sub_admin.page_permissions or [])
        updated = await self.sub_admins.update_permissions(
            sub_admin, dump_page_permissions(permissions)
        )
        logger.info("Permissions updated for sub-admin %s", sub_admin_id)
        await self.audit.log(
            "sub_admin.permissions_update",
            "sub_admin",
            sub_admin_id,
            caller,
            before={"pagePermissions": before},
            after={"pagePermissions": updated.page_permissions},
        )
        return updated

    async def disable(
        self,
        caller: CoreAdministrator,
        sub_admin_id: uuid.UUID,
        reason: str | None = None,
    ) -> SubAdminData:
        sub_admin = await self._get(sub_admin_id)
        updated = await self.sub_admins.set_active(
            sub_admin,
            False,
            disabled_at=self.clock(),
            disabled_reason=reason or None,
        )
        logger.info("Sub-admin %s disabled", sub_admin_id)
        await self.audit.log(
            "sub_admin.disable", "sub_admin", sub_admin_id, caller, reason=reason
        )
        return updated

    async def enable(self, caller: CoreAdministrator, sub_admin_id: uuid.UUID) -> SubAdminData:
        sub_admin = await self._get(sub_admin_id)
        updated = await self.sub_admins.set_active(sub_admin, True)
        logger.info("Sub-admin %s enabled", sub_admin_id)
        await self.audit.log("sub_admin.enable", "sub_admin", sub_admin_id, caller)
        return updated

    async def delete(self, caller: CoreAdministrator, sub_admin_id: uuid.UUID) -> None:
        sub_admin = await self._get(sub_admin_id)
        await self.sub_admins.delete(sub_admin)
        logger.info("Sub-admin %s removed", sub_admin_id)
        await self.audit.log(
            "sub_admin.delete",
            "sub_admin",
            sub_admin_id,
            caller,
            before={"email": sub_admin.email},
        )


def describe_permissions(role: AdministratorRole) -> dict[str, Any]:
    """Permission summary for the caller's own session."""
    if isinstance(role, CoreAdministrator):
        return {
            "isCoreAdmin": True,
            "email": role.identity.normalized_email,
            "name": role.identity.name,
            "pagePermissions": dump_page_permissions(FULL_PERMISSIONS),
            "canAccessTeamManagement": True,
            "canAccessRequests": True,
        }
    if isinstance(role, DelegatedAdministrator):
        return {
            "isCoreAdmin": False,
            "subAdminId": str(role.profile.id),
            "email": role.profile.email,
            "name": role.profile.name,
            "pagePermissions": dump_page_permissions(role.permissions),
            "canAccessTeamManagement": False,
            "canAccessRequests": False,
        }
    raise ValueError("Unauthorized callers have no permission summary")
