"""Invitation lifecycle: invite, verify, accept and revoke."""
from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from ..domain.errors import (
    AlreadyAdministratorError,
    InvalidTargetError,
    InvitationAlreadyPendingError,
    InvitationExpiredError,
    InvitationNotFoundError,
    EmailMismatchError,
)
from ..domain.permissions import (
    DEFAULT_VIEW_PERMISSIONS,
    PagePermissions,
    dump_page_permissions,
)
from ..domain.ports.invitation import InvitationData, InvitationRepository, NewSubAdmin
from ..domain.ports.notifier import InviteNotifier
from ..domain.ports.sub_admin import SubAdminData, SubAdminRepository
from ..domain.roles import CoreAdministrator, Identity
from ..errors import NotFoundError
from .audit import AuditService

logger = logging.getLogger("portfolio.invitations")

# 32 random bytes, hex encoded: 256 bits of entropy
TOKEN_BYTES = 32
ACCEPT_INVITE_PATH = "/tree/admin/accept-invite"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedInvitation:
    invitation: InvitationData
    invite_link: str


class InvitationService:
    def __init__(
        self,
        invitations: InvitationRepository,
        sub_admins: SubAdminRepository,
        notifier: InviteNotifier,
        audit: AuditService,
        *,
        core_admin_email: str,
        frontend_url: str,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.invitations = invitations
        self.sub_admins = sub_admins
        self.notifier = notifier
        self.audit = audit
        self.core_admin_email = core_admin_email.strip().lower()
        self.frontend_url = frontend_url.rstrip("/")
        self.ttl = ttl
        self.clock = clock

    def build_invite_link(self, token: str) -> str:
        return f"{self.frontend_url}{ACCEPT_INVITE_PATH}?{urlencode({'token': token})}"

    async def invite(
        self,
        caller: CoreAdministrator,
        email: str,
        page_permissions: PagePermissions | None = None,
    ) -> IssuedInvitation:
        normalized = email.strip().lower()
        if normalized == self.core_admin_email:
            raise InvalidTargetError()

        # Disabled profiles still own their email
        if await self.sub_admins.get_by_email(normalized) is not None:
            raise AlreadyAdministratorError()

        if await self.invitations.get_pending_by_email(normalized) is not None:
            raise InvitationAlreadyPendingError()

        permissions = page_permissions or DEFAULT_VIEW_PERMISSIONS
        expires_at = self.clock() + self.ttl
        invitation = await self.invitations.create(
            email=normalized,
            invited_by=caller.identity.subject_id,
            invited_by_email=caller.identity.normalized_email,
            token=secrets.token_hex(TOKEN_BYTES),
            expires_at=expires_at,
            page_permissions=dump_page_permissions(permissions),
        )
        link = self.build_invite_link(invitation.token)
        logger.info("Invitation %s created for %s", invitation.id, normalized)

        await self._notify(invitation, link)
        await self.audit.log(
            "invitation.create",
            "invitation",
            invitation.id,
            caller,
            after={"email": normalized, "pagePermissions": invitation.page_permissions},
        )
        return IssuedInvitation(invitation=invitation, invite_link=link)

    async def _notify(self, invitation: InvitationData, link: str) -> None:
        try:
            await self.notifier.send_invite_notification(
                to=invitation.email,
                link=link,
                inviter_email=invitation.invited_by_email,
                expires_at=invitation.expires_at,
            )
        except Exception:
            logger.error(
                "Failed to send invitation email for invitation %s",
                invitation.id,
                exc_info=True,
            )

    async def _load_pending(self, token: str) -> InvitationData:
        invitation = await self.invitations.get_pending_by_token(token)
        if invitation is None:
            raise InvitationNotFoundError()

        if self.clock() > invitation.expires_at:
            await self.invitations.mark_expired(invitation.id)
            logger.info("Invitation %s expired on access", invitation.id)
            raise InvitationExpiredError()
        return invitation

    async def verify(self, token: str) -> InvitationData:
        return await self._load_pending(token)

    async def accept(self, token: str, identity: Identity) -> SubAdminData:
        invitation = await self._load_pending(token)

        if identity.normalized_email != invitation.email.lower():
            raise EmailMismatchError()

        now = self.clock()
        profile = await self.invitations.accept(
            invitation.id,
            now,
            NewSubAdmin(
                uid=identity.subject_id,
                email=invitation.email,
                name=identity.name,
                photo_url=identity.picture,
                invited_by=invitation.invited_by,
                invited_by_email=invitation.invited_by_email,
                page_permissions=list(invitation.page_permissions),
                created_at=now,
            ),
        )
        if profile is None:
            # Lost the race against a concurrent accept or expiry
            raise InvitationNotFoundError()

        logger.info("Invitation %s accepted by %s", invitation.id, invitation.email)
        await self.audit.log(
            "invitation.accept",
            "sub_admin",
            profile.id,
            None,
            after={"email": profile.email, "invitationId": str(invitation.id)},
        )
        return profile

    async def revoke(self, caller: CoreAdministrator, invitation_id: uuid.UUID) -> None:
        invitation = await self.invitations.get(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")

        await self.invitations.delete(invitation)
        logger.info("Invitation %s revoked", invitation_id)
        await self.audit.log(
            "invitation.revoke",
            "invitation",
            invitation_id,
            caller,
            before={"email": invitation.email, "status": invitation.status},
        )

    async def list_pending(self) -> list[InvitationData]:
        return await self.invitations.list_pending()
