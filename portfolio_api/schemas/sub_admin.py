from datetime import datetime
from uuid import UUID

from .common import CamelModel, PagePermissionEntry
from .invitation import InvitationRead


class SubAdminRead(CamelModel):
    id: UUID
    uid: str | None = None
    email: str
    name: str | None = None
    photo_url: str | None = None
    invited_by: str
    invited_by_email: str
    is_active: bool
    page_permissions: list[PagePermissionEntry]
    created_at: datetime
    last_login_at: datetime | None = None
    disabled_at: datetime | None = None
    disabled_reason: str | None = None


class TeamRead(CamelModel):
    sub_admins: list[SubAdminRead]
    pending_invitations: list[InvitationRead]


class PermissionsUpdate(CamelModel):
    page_permissions: list[PagePermissionEntry]


class DisableRequest(CamelModel):
    reason: str | None = None


class MyPermissionsRead(CamelModel):
    is_core_admin: bool
    sub_admin_id: str | None = None
    email: str | None = None
    name: str | None = None
    page_permissions: list[PagePermissionEntry]
    can_access_team_management: bool
    can_access_requests: bool
