from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field, field_validator

from ..domain.permissions import Action, AdminPage
from .common import CamelModel


class PendingRequestCreate(CamelModel):
    action: Action
    resource_type: str = Field(min_length=1, max_length=100)
    resource_id: str | None = None
    resource_name: str | None = None
    page: AdminPage
    data: dict[str, Any]
    previous_data: dict[str, Any] | None = None
    reason: str | None = None

    @field_validator("action")
    @classmethod
    def reject_view(cls, value: Action) -> Action:
        if value is Action.VIEW:
            raise ValueError("VIEW requests do not need approval")
        return value


class PendingRequestRead(CamelModel):
    id: UUID
    sub_admin_id: UUID
    sub_admin_email: str
    sub_admin_name: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    resource_name: str | None = None
    page: str
    data: dict[str, Any]
    previous_data: dict[str, Any] | None = None
    reason: str | None = None
    status: str
    created_at: datetime
    processed_at: datetime | None = None
    processed_by: str | None = None
    rejection_reason: str | None = None
    execution_status: str | None = None
    execution_message: str | None = None
    executed_at: datetime | None = None
    execution_attempts: int | None = None


class ProcessRequest(CamelModel):
    status: Literal["approved", "rejected"]
    rejection_reason: str | None = None


class ExecutionResultRead(CamelModel):
    success: bool
    message: str


class ProcessResultRead(CamelModel):
    status: str
    action_result: ExecutionResultRead | None = None
    request: PendingRequestRead


class RequestStats(CamelModel):
    total: int
    pending: int
    approved: int
    rejected: int
    execution_failed: int = 0
    by_page: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)


class PendingRequestList(CamelModel):
    requests: list[PendingRequestRead]
    stats: RequestStats | None = None
