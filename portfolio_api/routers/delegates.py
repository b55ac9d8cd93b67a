import uuid

from fastapi import APIRouter, Depends

from ..dependencies import get_admin_role, get_delegate_service, require_core_admin
from ..domain.roles import AdministratorRole, CoreAdministrator
from ..schemas.common import ApiResponse, to_page_permissions
from ..schemas.invitation import InvitationRead
from ..schemas.sub_admin import (
    DisableRequest,
    MyPermissionsRead,
    PermissionsUpdate,
    SubAdminRead,
    TeamRead,
)
from ..services.delegates import DelegateService, describe_permissions

router = APIRouter(prefix="/delegates", tags=["delegates"])
permissions_router = APIRouter(tags=["delegates"])


@router.get("", response_model=ApiResponse[TeamRead], response_model_exclude_none=True)
async def list_team(
    _caller: CoreAdministrator = Depends(require_core_admin),
    service: DelegateService = Depends(get_delegate_service),
):
    team = await service.list_team()
    return ApiResponse(
        data=TeamRead(
            sub_admins=[SubAdminRead.model_validate(item) for item in team.sub_admins],
            pending_invitations=[
                InvitationRead.model_validate(item) for item in team.pending_invitations
            ],
        )
    )


@router.put(
    "/{sub_admin_id}/permissions",
    response_model=ApiResponse[SubAdminRead],
    response_model_exclude_none=True,
)
async def update_permissions(
    sub_admin_id: uuid.UUID,
    payload: PermissionsUpdate,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: DelegateService = Depends(get_delegate_service),
):
    updated = await service.update_permissions(
        caller, sub_admin_id, to_page_permissions(payload.page_permissions)
    )
    return ApiResponse(
        data=SubAdminRead.model_validate(updated),
        message="Permissions updated successfully",
    )


@router.put(
    "/{sub_admin_id}/disable",
    response_model=ApiResponse[SubAdminRead],
    response_model_exclude_none=True,
)
async def disable_sub_admin(
    sub_admin_id: uuid.UUID,
    payload: DisableRequest | None = None,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: DelegateService = Depends(get_delegate_service),
):
    updated = await service.disable(caller, sub_admin_id, payload.reason if payload else None)
    return ApiResponse(
        data=SubAdminRead.model_validate(updated),
        message="Sub-admin disabled successfully",
    )


@router.put(
    "/{sub_admin_id}/enable",
    response_model=ApiResponse[SubAdminRead],
    response_model_exclude_none=True,
)
async def enable_sub_admin(
    sub_admin_id: uuid.UUID,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: DelegateService = Depends(get_delegate_service),
):
    updated = await service.enable(caller, sub_admin_id)
    return ApiResponse(
        data=SubAdminRead.model_validate(updated),
        message="Sub-admin enabled successfully",
    )


@router.delete("/{sub_admin_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_sub_admin(
    sub_admin_id: uuid.UUID,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: DelegateService = Depends(get_delegate_service),
):
    await service.delete(caller, sub_admin_id)
    return ApiResponse(message="Sub-admin removed successfully")


@permissions_router.get(
    "/my-permissions",
    response_model=ApiResponse[MyPermissionsRead],
    response_model_exclude_none=True,
)
async def my_permissions(role: AdministratorRole = Depends(get_admin_role)):
    return ApiResponse(data=MyPermissionsRead.model_validate(describe_permissions(role)))
