from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Executable, Result, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import AlreadyAdministratorError, InvitationAlreadyPendingError
from ..domain.ports.invitation import NewSubAdmin
from ..models.invitation import Invitation
from ..models.sub_admin import SubAdmin


class InvitationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _apply(self, statement: Executable) -> Result:
        try:
            result = await self.session.execute(statement)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return result

    async def create(
        self,
        *,
        email: str,
        invited_by: str,
        invited_by_email: str,
        token: str,
        expires_at: datetime,
        page_permissions: list[dict[str, Any]],
    ) -> Invitation:
        invitation = Invitation(
            email=email,
            invited_by=invited_by,
            invited_by_email=invited_by_email,
            token=token,
            status="pending",
            expires_at=expires_at,
            page_permissions=page_permissions,
        )
        self.session.add(invitation)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise InvitationAlreadyPendingError() from exc
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(invitation)
        return invitation

    async def get(self, invitation_id: uuid.UUID) -> Invitation | None:
        return await self.session.get(Invitation, invitation_id)

    async def get_pending_by_email(self, email: str) -> Invitation | None:
        result = await self.session.execute(
            select(Invitation).where(
                Invitation.email == email, Invitation.status == "pending"
            )
        )
        return result.scalar_one_or_none()

    async def get_pending_by_token(self, token: str) -> Invitation | None:
        result = await self.session.execute(
            select(Invitation).where(
                Invitation.token == token, Invitation.status == "pending"
            )
        )
        return result.scalar_one_or_none()

    async def list_pending(self) -> list[Invitation]:
        result = await self.session.execute(
            select(Invitation)
            .where(Invitation.status == "pending")
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_expired(self, invitation_id: uuid.UUID) -> bool:
        result = await self._apply(
            update(Invitation)
            .where(Invitation.id == invitation_id, Invitation.status == "pending")
            .values(status="expired")
        )
        return result.rowcount == 1

    async def accept(
        self,
        invitation_id: uuid.UUID,
        accepted_at: datetime,
        profile: NewSubAdmin,
    ) -> SubAdmin | None:
        try:
            result = await self.session.execute(
                update(Invitation)
                .where(Invitation.id == invitation_id, Invitation.status == "pending")
                .values(status="accepted", accepted_at=accepted_at)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return None

            sub_admin = SubAdmin(
                uid=profile.uid,
                email=profile.email,
                name=profile.name,
                photo_url=profile.photo_url,
                invited_by=profile.invited_by,
                invited_by_email=profile.invited_by_email,
                is_active=True,
                page_permissions=profile.page_permissions,
                created_at=profile.created_at,
                last_login_at=profile.created_at,
            )
            self.session.add(sub_admin)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise AlreadyAdministratorError() from exc
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(sub_admin)
        return sub_admin

    async def delete(self, invitation: Invitation) -> None:
        await self.session.delete(invitation)
        await self._commit()
