from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from .common import CamelModel, PagePermissionEntry


class InvitationCreate(CamelModel):
    email: str
    page_permissions: list[PagePermissionEntry] | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        local, _, domain = normalized.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return normalized


class InvitationRead(CamelModel):
    id: UUID
    email: str
    invited_by: str
    invited_by_email: str
    status: str
    expires_at: datetime
    created_at: datetime
    accepted_at: datetime | None = None
    page_permissions: list[PagePermissionEntry]


class InvitationIssued(CamelModel):
    invitation: InvitationRead
    invite_link: str


class InvitationSummary(CamelModel):
    """What an invitee sees before accepting; the token is never echoed."""

    email: str
    invited_by_email: str
    expires_at: datetime
    page_permissions: list[PagePermissionEntry]
