"""Approval workflow for mutations proposed by delegated administrators.

Approving a request is a two-phase operation. The decision is committed
first with a compare-and-set on ``status = 'pending'``; the dispatcher then
replays the stored mutation and its outcome is persisted in the execution
columns. A failed execution leaves the request approved with
``execution_status = 'failed'`` so it can be retried by the core admin.
"""
from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..domain.errors import (
    AlreadyProcessedError,
    CoreAdminRequestError,
    DuplicateRequestError,
    NotAuthorizedError,
    NotRetryableError,
    PendingRequestNotFoundError,
    ProcessedRequestDeletionError,
    RequestOwnershipError,
)
from ..domain.permissions import Action, AdminPage
from ..domain.ports.pending_request import PendingRequestData, PendingRequestRepository
from ..domain.roles import AdministratorRole, CoreAdministrator, DelegatedAdministrator
from .audit import AuditService
from .dispatcher import ExecutionDispatcher, ExecutionOutcome

logger = logging.getLogger("portfolio.requests")


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExecutionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestProposal:
    action: Action
    resource_type: str
    page: AdminPage
    data: dict[str, Any] = field(default_factory=dict)
    resource_id: str | None = None
    resource_name: str | None = None
    previous_data: dict[str, Any] | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ProcessResult:
    request: PendingRequestData
    status: RequestStatus
    action_result: ExecutionOutcome | None = None


class PendingRequestService:
    def __init__(
        self,
        requests: PendingRequestRepository,
        dispatcher: ExecutionDispatcher,
        audit: AuditService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.requests = requests
        self.dispatcher = dispatcher
        self.audit = audit
        self.clock = clock

    async def submit(
        self, caller: AdministratorRole, proposal: RequestProposal
    ) -> PendingRequestData:
        if isinstance(caller, CoreAdministrator):
            raise CoreAdminRequestError()
        if not isinstance(caller, DelegatedAdministrator):
            raise NotAuthorizedError("Only sub-admins can create requests")

        profile = caller.profile
        duplicate = await self.requests.find_pending_duplicate(
            profile.id,
            proposal.action.value,
            proposal.resource_type,
            proposal.page.value,
            proposal.resource_id,
        )
        if duplicate is not None:
            raise DuplicateRequestError()

        request = await self.requests.create(
            sub_admin_id=profile.id,
            sub_admin_email=profile.email,
            sub_admin_name=profile.name,
            action=proposal.action.value,
            resource_type=proposal.resource_type,
            page=proposal.page.value,
            data=dict(proposal.data),
            resource_id=proposal.resource_id or None,
            resource_name=proposal.resource_name or None,
            previous_data=proposal.previous_data or None,
            reason=proposal.reason or None,
        )
        logger.info(
            "Pending request %s submitted by %s (%s %s on %s)",
            request.id,
            profile.email,
            request.action,
            request.resource_type,
            request.page,
        )
        await self.audit.log(
            "request.submit",
            "pending_request",
            request.id,
            caller,
            after={
                "action": request.action,
                "resourceType": request.resource_type,
                "resourceId": request.resource_id,
                "page": request.page,
            },
        )
        return request

    async def list(self, status: RequestStatus | None = None) -> list[PendingRequestData]:
        return await self.requests.list(status.value if status else None)

    async def list_mine(self, caller: DelegatedAdministrator) -> list[PendingRequestData]:
        return await self.requests.list_by_sub_admin(caller.profile.id)

    async def get(self, request_id: uuid.UUID) -> PendingRequestData:
        request = await self.requests.get(request_id)
        if request is None:
            raise PendingRequestNotFoundError()
        return request

    async def process(
        self,
        caller: CoreAdministrator,
        request_id: uuid.UUID,
        decision: RequestStatus,
        rejection_reason: str | None = None,
    ) -> ProcessResult:
        if decision is RequestStatus.PENDING:
            raise ValueError("A request can only be approved or rejected")

        request = await self.get(request_id)
        if request.status != RequestStatus.PENDING.value:
            raise AlreadyProcessedError()

        decided = await self.requests.decide(
            request_id,
            status=decision.value,
            processed_by=caller.identity.subject_id,
            processed_at=self.clock(),
            rejection_reason=(
                rejection_reason if decision is RequestStatus.REJECTED else None
            ),
        )
        if not decided:
            # Another process call won the compare-and-set
            raise AlreadyProcessedError()

        await self.audit.log(
            f"request.{'approve' if decision is RequestStatus.APPROVED else 'reject'}",
            "pending_request",
            request_id,
            caller,
            reason=rejection_reason,
        )

        if decision is RequestStatus.REJECTED:
            logger.info("Pending request %s rejected", request_id)
            return ProcessResult(request=await self.get(request_id), status=decision)

        outcome = await self._execute(caller, request)
        return ProcessResult(
            request=await self.get(request_id), status=decision, action_result=outcome
        )

    async def retry_execution(
        self, caller: CoreAdministrator, request_id: uuid.UUID
    ) -> ProcessResult:
        request = await self.get(request_id)
        if (
            request.status != RequestStatus.APPROVED.value
            or request.execution_status != ExecutionStatus.FAILED.value
        ):
            raise NotRetryableError()

        logger.info(
            "Retrying execution of request %s (attempt %d)",
            request_id,
            request.execution_attempts + 1,
        )
        outcome = await self._execute(caller, request)
        return ProcessResult(
            request=await self.get(request_id),
            status=RequestStatus.APPROVED,
            action_result=outcome,
        )

    async def _execute(
        self, caller: CoreAdministrator, request: PendingRequestData
    ) -> ExecutionOutcome:
        request_id, action, resource_type = request.id, request.action, request.resource_type
        outcome = await self.dispatcher.execute(request)
        status = ExecutionStatus.SUCCEEDED if outcome.success else ExecutionStatus.FAILED
        await self.requests.record_execution(
            request_id,
            execution_status=status.value,
            message=outcome.message,
            executed_at=self.clock(),
        )

        if outcome.success:
            logger.info("Pending request %s executed: %s", request_id, outcome.message)
        else:
            logger.error(
                "Approved request %s failed to execute (%s %s): %s. "
                "Manual reconciliation required.",
                request_id,
                action,
                resource_type,
                outcome.message,
            )
            await self.audit.log(
                "request.execution_failed",
                "pending_request",
                request_id,
                caller,
                reason=outcome.message,
            )
        return outcome

    async def remove(self, caller: AdministratorRole, request_id: uuid.UUID) -> None:
        request = await self.get(request_id)

        if not isinstance(caller, CoreAdministrator):
            if (
                not isinstance(caller, DelegatedAdministrator)
                or caller.profile.id != request.sub_admin_id
            ):
                raise RequestOwnershipError()
            if request.status != RequestStatus.PENDING.value:
                raise ProcessedRequestDeletionError()

        await self.requests.delete(request_id)
        logger.info("Pending request %s deleted", request_id)
        await self.audit.log(
            "request.delete",
            "pending_request",
            request_id,
            caller,
            before={"status": request.status},
        )

    async def stats(self) -> dict[str, Any]:
        return summarize(await self.requests.list())


def summarize(requests: list[PendingRequestData]) -> dict[str, Any]:
    statuses = Counter(request.status for request in requests)
    return {
        "total": len(requests),
        "pending": statuses[RequestStatus.PENDING.value],
        "approved": statuses[RequestStatus.APPROVED.value],
        "rejected": statuses[RequestStatus.REJECTED.value],
        "executionFailed": sum(
            1
            for request in requests
            if request.execution_status == ExecutionStatus.FAILED.value
        ),
        "byPage": dict(Counter(request.page for request in requests)),
        "byAction": dict(Counter(request.action for request in requests)),
    }
