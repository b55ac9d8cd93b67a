from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.sub_admin import SubAdmin


class SubAdminRepository:
    def __init__(self, session: AsyncSession, session_factory: Callable[[], AsyncSession]):
        self.session = session
        # Login bookkeeping is written through its own session; a failed
        # write must not roll back (and expire) the profile the request holds.
        self.session_factory = session_factory

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def get(self, sub_admin_id: uuid.UUID) -> SubAdmin | None:
        return await self.session.get(SubAdmin, sub_admin_id)

    async def get_by_email(self, email: str) -> SubAdmin | None:
        result = await self.session.execute(
            select(SubAdmin).where(SubAdmin.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_active_by_email(self, email: str) -> SubAdmin | None:
        result = await self.session.execute(
            select(SubAdmin).where(
                SubAdmin.email == email.strip().lower(),
                SubAdmin.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def list(self) -> list[SubAdmin]:
        result = await self.session.execute(
            select(SubAdmin).order_by(SubAdmin.created_at.desc())
        )
        return list(result.scalars().all())

    async def record_login(
        self, sub_admin_id: uuid.UUID, uid: str, logged_in_at: datetime
    ) -> None:
        async with self.session_factory() as login_session:
            try:
                await login_session.execute(
                    update(SubAdmin)
                    .where(SubAdmin.id == sub_admin_id)
                    .values(uid=uid, last_login_at=logged_in_at)
                    .execution_options(synchronize_session=False)
                )
                await login_session.commit()
            except SQLAlchemyError:
                await login_session.rollback()
                raise

    async def update_permissions(
        self, sub_admin: SubAdmin, page_permissions: list[dict[str, Any]]
    ) -> SubAdmin:
        sub_admin.page_permissions = page_permissions
        await self._commit()
        await self.session.refresh(sub_admin)
        return sub_admin

    async def set_active(
        self,
        sub_admin: SubAdmin,
        is_active: bool,
        *,
        disabled_at: datetime | None = None,
        disabled_reason: str | None = None,
    ) -> SubAdmin:
        sub_admin.is_active = is_active
        sub_admin.disabled_at = disabled_at
        sub_admin.disabled_reason = disabled_reason
        await self._commit()
        await self.session.refresh(sub_admin)
        return sub_admin

    async def delete(self, sub_admin: SubAdmin) -> None:
        await self.session.delete(sub_admin)
        await self._commit()
