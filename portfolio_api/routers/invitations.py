import uuid

from fastapi import APIRouter, Depends, Request, status

from ..application.invite_rate_limit import InviteRateLimiter
from ..dependencies import (
    get_identity,
    get_invitation_service,
    get_invite_rate_limiter,
    require_core_admin,
)
from ..domain.roles import CoreAdministrator, Identity
from ..schemas.common import ApiResponse, to_page_permissions
from ..schemas.invitation import (
    InvitationCreate,
    InvitationIssued,
    InvitationRead,
    InvitationSummary,
)
from ..schemas.sub_admin import SubAdminRead
from ..services.invitations import InvitationService

router = APIRouter(prefix="/invitations", tags=["invitations"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def _limit_public_access(
    request: Request,
    limiter: InviteRateLimiter = Depends(get_invite_rate_limiter),
) -> None:
    await limiter.hit(request.url.path.rsplit("/", 1)[-1], _client_ip(request))


@router.post(
    "",
    response_model=ApiResponse[InvitationIssued],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    payload: InvitationCreate,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    permissions = (
        to_page_permissions(payload.page_permissions) if payload.page_permissions else None
    )
    issued = await service.invite(caller, payload.email, permissions)
    return ApiResponse(
        data=InvitationIssued(
            invitation=InvitationRead.model_validate(issued.invitation),
            invite_link=issued.invite_link,
        ),
        message="Invitation sent successfully",
    )


@router.get(
    "",
    response_model=ApiResponse[list[InvitationRead]],
    response_model_exclude_none=True,
)
async def list_invitations(
    _caller: CoreAdministrator = Depends(require_core_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    invitations = await service.list_pending()
    return ApiResponse(data=[InvitationRead.model_validate(item) for item in invitations])


@router.get(
    "/{token}/verify",
    response_model=ApiResponse[InvitationSummary],
    response_model_exclude_none=True,
    dependencies=[Depends(_limit_public_access)],
)
async def verify_invitation(
    token: str,
    service: InvitationService = Depends(get_invitation_service),
):
    invitation = await service.verify(token)
    return ApiResponse(data=InvitationSummary.model_validate(invitation))


@router.post(
    "/{token}/accept",
    response_model=ApiResponse[SubAdminRead],
    response_model_exclude_none=True,
    dependencies=[Depends(_limit_public_access)],
)
async def accept_invitation(
    token: str,
    identity: Identity = Depends(get_identity),
    service: InvitationService = Depends(get_invitation_service),
):
    profile = await service.accept(token, identity)
    return ApiResponse(
        data=SubAdminRead.model_validate(profile),
        message="Invitation accepted successfully. Welcome to the team!",
    )


@router.delete("/{invitation_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def revoke_invitation(
    invitation_id: uuid.UUID,
    caller: CoreAdministrator = Depends(require_core_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    await service.revoke(caller, invitation_id)
    return ApiResponse(message="Invitation revoked successfully")
