from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Executable, Result, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DuplicateRequestError
from ..models.pending_request import PendingRequest


class PendingRequestRepository:
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
    ) -> PendingRequest:
        request = PendingRequest(
            sub_admin_id=sub_admin_id,
            sub_admin_email=sub_admin_email,
            sub_admin_name=sub_admin_name,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            page=page,
            data=data,
            previous_data=previous_data,
            reason=reason,
            status="pending",
        )
        self.session.add(request)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            # uq_pending_requests_pending_target closes the check-then-insert race
            await self.session.rollback()
            raise DuplicateRequestError() from exc
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(request)
        return request

    async def find_pending_duplicate(
        self,
        sub_admin_id: uuid.UUID,
        action: str,
        resource_type: str,
        page: str,
        resource_id: str | None,
    ) -> PendingRequest | None:
        query = select(PendingRequest).where(
            PendingRequest.sub_admin_id == sub_admin_id,
            PendingRequest.action == action,
            PendingRequest.resource_type == resource_type,
            PendingRequest.page == page,
            PendingRequest.status == "pending",
        )
        if resource_id:
            query = query.where(PendingRequest.resource_id == resource_id)
        result = await self.session.execute(query.limit(1))
        return result.scalars().first()

    async def get(self, request_id: uuid.UUID) -> PendingRequest | None:
        return await self.session.get(PendingRequest, request_id, populate_existing=True)

    async def list(self, status: str | None = None) -> list[PendingRequest]:
        query = select(PendingRequest).order_by(PendingRequest.created_at.desc())
        if status is not None:
            query = query.where(PendingRequest.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_by_sub_admin(self, sub_admin_id: uuid.UUID) -> list[PendingRequest]:
        result = await self.session.execute(
            select(PendingRequest)
            .where(PendingRequest.sub_admin_id == sub_admin_id)
            .order_by(PendingRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def decide(
        self,
        request_id: uuid.UUID,
        *,
        status: str,
        processed_by: str,
        processed_at: datetime,
        rejection_reason: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {
            "status": status,
            "processed_by": processed_by,
            "processed_at": processed_at,
        }
        if rejection_reason:
            values["rejection_reason"] = rejection_reason
        result = await self._apply(
            update(PendingRequest)
            .where(PendingRequest.id == request_id, PendingRequest.status == "pending")
            .values(**values)
        )
        return result.rowcount == 1

    async def record_execution(
        self,
        request_id: uuid.UUID,
        *,
        execution_status: str,
        message: str,
        executed_at: datetime,
    ) -> PendingRequest | None:
        await self._apply(
            update(PendingRequest)
            .where(PendingRequest.id == request_id)
            .values(
                execution_status=execution_status,
                execution_message=message,
                executed_at=executed_at,
                execution_attempts=PendingRequest.execution_attempts + 1,
            )
        )
        request = await self.session.get(PendingRequest, request_id)
        if request is not None:
            await self.session.refresh(request)
        return request

    async def delete(self, request_id: uuid.UUID) -> None:
        request = await self.session.get(PendingRequest, request_id)
        if request is not None:
            await self.session.delete(request)
            await self._commit()
