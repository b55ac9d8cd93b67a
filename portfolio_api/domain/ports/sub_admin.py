from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
import uuid


class SubAdminData(Protocol):
    id: uuid.UUID
    uid: str | None
    email: str
    name: str | None
    photo_url: str | None
    invited_by: str
    invited_by_email: str
    is_active: bool
    page_permissions: list[dict[str, Any]]
    created_at: datetime
    last_login_at: datetime | None
    disabled_at: datetime | None
    disabled_reason: str | None


class SubAdminRepository(Protocol):
    async def get(self, sub_admin_id: uuid.UUID) -> SubAdminData | None:
        ...

    async def get_by_email(self, email: str) -> SubAdminData | None:
        ...

    async def get_active_by_email(self, email: str) -> SubAdminData | None:
        ...

    async def list(self) -> list[SubAdminData]:
        ...

    async def record_login(
        self, sub_admin_id: uuid.UUID, uid: str, logged_in_at: datetime
    ) -> None:
        ...

    async def update_permissions(
        self, sub_admin: SubAdminData, page_permissions: list[dict[str, Any]]
    ) -> SubAdminData:
        ...

    async def set_active(
        self,
        sub_admin: SubAdminData,
        is_active: bool,
        *,
        disabled_at: datetime | None = None,
        disabled_reason: str | None = None,
    ) -> SubAdminData:
        ...

    async def delete(self, sub_admin: SubAdminData) -> None:
        ...
