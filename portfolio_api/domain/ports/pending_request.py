from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
import uuid


class PendingRequestData(Protocol):
    id: uuid.UUID
    sub_admin_id: uuid.UUID
    sub_admin_email: str
    sub_admin_name: str | None
    action: str
    resource_type: str
    resource_id: str | None
    resource_name: str | None
    page: str
    data: dict[str, Any]
    previous_data: dict[str, Any] | None
    reason: str | None
    status: str
    created_at: datetime
    processed_at: datetime | None
    processed_by: str | None
    rejection_reason: str | None
    execution_status: str | None
    execution_message: str | None
    executed_at: datetime | None
    execution_attempts: int


class PendingRequestRepository(Protocol):
    async def create(
        self,
        *,
        sub_admin_id: uuid.UUID,
        sub_admin_email: str,
        sub_admin_name: str | None,
        action: str,
        resource_type: str,
        page: str,
        data: dict[str, Any],
        resource_id: str | None = None,
        resource_name: str | None = None,
        previous_data: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> PendingRequestData:
        """Persist a new pending request.

        Raises DuplicateRequestError when the pending-uniqueness constraint fires.
        """
        ...

    async def find_pending_duplicate(
        self,
        sub_admin_id: uuid.UUID,
        action: str,
        resource_type: str,
        page: str,
        resource_id: str | None,
    ) -> PendingRequestData | None:
        ...

    async def get(self, request_id: uuid.UUID) -> PendingRequestData | None:
        ...

    async def list(self, status: str | None = None) -> list[PendingRequestData]:
        ...

    async def list_by_sub_admin(self, sub_admin_id: uuid.UUID) -> list[PendingRequestData]:
        ...

    async def decide(
        self,
        request_id: uuid.UUID,
        *,
        status: str,
        processed_by: str,
        processed_at: datetime,
        rejection_reason: str | None = None,
    ) -> bool:
        """Compare-and-set from pending; False when the request was already decided."""
        ...

    async def record_execution(
        self,
        request_id: uuid.UUID,
        *,
        execution_status: str,
        message: str,
        executed_at: datetime,
    ) -> PendingRequestData | None:
        ...

    async def delete(self, request_id: uuid.UUID) -> None:
        ...
