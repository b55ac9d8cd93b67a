from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
import uuid

from .sub_admin import SubAdminData


class InvitationData(Protocol):
    id: uuid.UUID
    email: str
    invited_by: str
    invited_by_email: str
    token: str
    status: str
    expires_at: datetime
    created_at: datetime
    accepted_at: datetime | None
    page_permissions: list[dict[str, Any]]


@dataclass(frozen=True)
class NewSubAdmin:
    uid: str
    email: str
    name: str | None
    photo_url: str | None
    invited_by: str
    invited_by_email: str
    page_permissions: list[dict[str, Any]]
    created_at: datetime


class InvitationRepository(Protocol):
    async def create(
        self,
        *,
        email: str,
        invited_by: str,
        invited_by_email: str,
        token: str,
        expires_at: datetime,
        page_permissions: list[dict[str, Any]],
    ) -> InvitationData:
        ...

    async def get(self, invitation_id: uuid.UUID) -> InvitationData | None:
        ...

    async def get_pending_by_email(self, email: str) -> InvitationData | None:
        ...

    async def get_pending_by_token(self, token: str) -> InvitationData | None:
        ...

    async def list_pending(self) -> list[InvitationData]:
        ...

    async def mark_expired(self, invitation_id: uuid.UUID) -> bool:
        """Flip a pending invitation to expired; False if it was no longer pending."""
        ...

    async def accept(
        self,
        invitation_id: uuid.UUID,
        accepted_at: datetime,
        profile: NewSubAdmin,
    ) -> SubAdminData | None:
        """Flip pending to accepted and create the profile in one transaction.

        Returns None when the invitation was no longer pending.
        """
        ...

    async def delete(self, invitation: InvitationData) -> None:
        ...
