import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import (
    get_admin_role,
    get_pending_request_service,
    require_core_admin,
    require_delegate,
)
from ..domain.errors import AccessDeniedError
from ..domain.roles import AdministratorRole, CoreAdministrator, DelegatedAdministrator
from ..schemas.common import ApiResponse
from ..schemas.pending_request import (
    ExecutionResultRead,
    PendingRequestCreate,
    PendingRequestList,
    PendingRequestRead,
    ProcessRequest,
    ProcessResultRead,
    RequestStats,
)
from ..services.pending_requests import (
    PendingRequestService,
    ProcessResult,
    RequestProposal,
    RequestStatus,
)

router = APIRouter(prefix="/pending-requests", tags=["pending-requests"])

EXECUTION_FAILED_MESSAGE = (
    "Request approved but execution failed. Manual reconciliation required."
)


def _process_response(result: ProcessResult, success_message: str) -> ApiResponse[ProcessResultRead]:
    outcome = result.action_result
    if result.status is RequestStatus.REJECTED:
        message = "Request rejected"
    elif outcome is not None and not outcome.success:
        message = EXECUTION_FAILED_MESSAGE
    else:
        message = success_message
    return ApiResponse(
        data=ProcessResultRead(
            status=result.status.value,
            action_result=(
                ExecutionResultRead(success=outcome.success, message=outcome.message)
                if outcome is not None
                else None
            ),
            request=PendingRequestRead.model_validate(result.request),
        ),
        message=message,
    )


@router.post(
    "",
    response_model=ApiResponse[PendingRequestRead],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def submit_request(
    payload: PendingRequestCreate,
    role: AdministratorRole = Depends(get_admin_role),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    request = await service.submit(
        role,
        RequestProposal(
            action=payload.action,
            resource_type=payload.resource_type,
            page=payload.page,
            data=payload.data,
            resource_id=payload.resource_id,
            resource_name=payload.resource_name,
            previous_data=payload.previous_data,
            reason=payload.reason,
        ),
    )
    return ApiResponse(
        data=PendingRequestRead.model_validate(request),
        message="Request submitted successfully. Waiting for core admin approval.",
    )


@router.get("", response_model=ApiResponse[PendingRequestList], response_model_exclude_none=True)
async def list_requests(
    status_filter: Literal["pending", "approved", "rejected"] | None = Query(
        default=None, alias="status"
    ),
    _caller: CoreAdministrator = Depends(require_core_admin),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    requests = await service.list(RequestStatus(status_filter) if status_filter else None)
    return ApiResponse(
        data=PendingRequestList(
            requests=[PendingRequestRead.model_validate(item) for item in requests],
            stats=RequestStats.model_validate(await service.stats()),
        )
    )


@router.get("/mine", response_model=ApiResponse[PendingRequestList], response_model_exclude_none=True)
async def list_my_requests(
    caller: DelegatedAdministrator = Depends(require_delegate),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    requests = await service.list_mine(caller)
    return ApiResponse(
        data=PendingRequestList(
            requests=[PendingRequestRead.model_validate(item) for item in requests]
        )
    )


@router.get("/stats", response_model=ApiResponse[RequestStats], response_model_exclude_none=True)
async def request_stats(
    _caller: CoreAdministrator = Depends(require_core_admin),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    return ApiResponse(data=RequestStats.model_validate(await service.stats()))


@router.get(
    "/{request_id}",
    response_model=ApiResponse[PendingRequestRead],
    response_model_exclude_none=True,
)
async def get_request(
    request_id: uuid.UUID,
    role: AdministratorRole = Depends(get_admin_role),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    request = await service.get(request_id)
    if isinstance(role, DelegatedAdministrator) and request.sub_admin_id != role.profile.id:
        raise AccessDeniedError("You can only view your own requests")
    return ApiResponse(data=PendingRequestRead.model_validate(request))


@router.put(
    "/{request_id}/process",
    response_model=ApiResponse[ProcessResultRead],
    response_model_exclude_none=True,
)
async def process_request(
    request_id: uuid.UUID,
    payload: ProcessRequest,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    result = await service.process(
        caller, request_id, RequestStatus(payload.status), payload.rejection_reason
    )
    return _process_response(result, "Request approved and executed successfully")


@router.post(
    "/{request_id}/retry-execution",
    response_model=ApiResponse[ProcessResultRead],
    response_model_exclude_none=True,
)
async def retry_request_execution(
    request_id: uuid.UUID,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    result = await service.retry_execution(caller, request_id)
    return _process_response(result, "Request executed successfully")


@router.delete("/{request_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_request(
    request_id: uuid.UUID,
    role: AdministratorRole = Depends(get_admin_role),
    service: PendingRequestService = Depends(get_pending_request_service),
):
    await service.remove(role, request_id)
    return ApiResponse(message="Request deleted successfully")
