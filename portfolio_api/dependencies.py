import logging
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .application.invite_rate_limit import InviteRateLimiter
from .auth.identity import JwtIdentityVerifier
from .auth.resolver import AuthorizationResolver
from .config import get_settings
from .crud.audit_log import AuditLogRepository
from .crud.document import SqlDocumentStore
from .crud.invitation import InvitationRepository
from .crud.pending_request import PendingRequestRepository
from .crud.sub_admin import SubAdminRepository
from .database import AsyncSessionLocal, get_session
from .domain.errors import (
    AccessDeniedError,
    ApprovalRequiredError,
    CoreAdminOnlyError,
    MissingCredentialError,
    NotAuthorizedError,
)
from .domain.permissions import Action, AdminPage
from .domain.policy import Deny, RequiresApproval, decide
from .domain.ports.audit import AuditLogRepository as AuditLogRepositoryPort
from .domain.ports.document_store import DocumentStore
from .domain.ports.file_storage import FileStorage
from .domain.ports.identity import IdentityVerifier
from .domain.ports.invitation import InvitationRepository as InvitationRepositoryPort
from .domain.ports.notifier import InviteNotifier
from .domain.ports.pending_request import (
    PendingRequestRepository as PendingRequestRepositoryPort,
)
from .domain.ports.sub_admin import SubAdminRepository as SubAdminRepositoryPort
from .domain.roles import (
    AdministratorRole,
    CoreAdministrator,
    DelegatedAdministrator,
    Identity,
    Unauthorized,
)
from .infrastructure.cloudinary import CloudinaryStorage
from .infrastructure.resend import DisabledInviteNotifier, ResendInviteNotifier
from .services.approval_gate import ApprovalGate
from .services.audit import AuditService
from .services.delegates import DelegateService
from .services.dispatcher import ExecutionDispatcher
from .services.invitations import InvitationService
from .services.pending_requests import PendingRequestService

logger = logging.getLogger("portfolio.permissions")

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_sub_admin_repository(db: AsyncSession = Depends(get_db)) -> SubAdminRepositoryPort:
    return SubAdminRepository(db, AsyncSessionLocal)


def get_invitation_repository(db: AsyncSession = Depends(get_db)) -> InvitationRepositoryPort:
    return InvitationRepository(db)


def get_pending_request_repository(
    db: AsyncSession = Depends(get_db),
) -> PendingRequestRepositoryPort:
    return PendingRequestRepository(db)


def get_document_store(db: AsyncSession = Depends(get_db)) -> DocumentStore:
    return SqlDocumentStore(db)


def get_audit_repository() -> AuditLogRepositoryPort:
    return AuditLogRepository(AsyncSessionLocal)


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    settings = get_settings()
    return JwtIdentityVerifier(
        algorithm=settings.identity_jwt_algorithm,
        secret=settings.identity_jwt_secret,
        jwks_url=settings.identity_jwks_url,
        audience=settings.identity_jwt_audience,
        issuer=settings.identity_jwt_issuer,
    )


def get_file_storage() -> FileStorage | None:
    settings = get_settings()
    if not settings.file_storage_enabled:
        return None
    return CloudinaryStorage(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )


def get_invite_notifier() -> InviteNotifier:
    settings = get_settings()
    if not settings.resend_api_key:
        return DisabledInviteNotifier()
    return ResendInviteNotifier(
        api_key=settings.resend_api_key, sender=settings.invite_email_from
    )


def get_invite_rate_limiter(request: Request) -> InviteRateLimiter:
    settings = get_settings()
    return InviteRateLimiter(
        request.app.state.counters,
        max_attempts=settings.invite_rate_limit_attempts,
        window_seconds=settings.invite_rate_limit_window_seconds,
    )


def get_audit_service(
    repository: AuditLogRepositoryPort = Depends(get_audit_repository),
) -> AuditService:
    return AuditService(repository)


def get_execution_dispatcher(
    store: DocumentStore = Depends(get_document_store),
    file_storage: FileStorage | None = Depends(get_file_storage),
) -> ExecutionDispatcher:
    return ExecutionDispatcher(store, file_storage)


def get_pending_request_service(
    requests: PendingRequestRepositoryPort = Depends(get_pending_request_repository),
    dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
    audit: AuditService = Depends(get_audit_service),
) -> PendingRequestService:
    return PendingRequestService(requests, dispatcher, audit)


def get_approval_gate(
    requests: PendingRequestService = Depends(get_pending_request_service),
) -> ApprovalGate:
    return ApprovalGate(requests)


def get_invitation_service(
    invitations: InvitationRepositoryPort = Depends(get_invitation_repository),
    sub_admins: SubAdminRepositoryPort = Depends(get_sub_admin_repository),
    notifier: InviteNotifier = Depends(get_invite_notifier),
    audit: AuditService = Depends(get_audit_service),
) -> InvitationService:
    settings = get_settings()
    return InvitationService(
        invitations,
        sub_admins,
        notifier,
        audit,
        core_admin_email=settings.core_admin_email,
        frontend_url=settings.frontend_url,
        ttl=timedelta(days=settings.invitation_ttl_days),
    )


def get_delegate_service(
    sub_admins: SubAdminRepositoryPort = Depends(get_sub_admin_repository),
    invitations: InvitationRepositoryPort = Depends(get_invitation_repository),
    audit: AuditService = Depends(get_audit_service),
) -> DelegateService:
    return DelegateService(sub_admins, invitations, audit)


def get_authorization_resolver(
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    sub_admins: SubAdminRepositoryPort = Depends(get_sub_admin_repository),
) -> AuthorizationResolver:
    return AuthorizationResolver(
        verifier, sub_admins, core_admin_email=get_settings().core_admin_email
    )


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    """Any verified identity, admin or not (used by invitation acceptance)."""
    token = _bearer_token(credentials)
    if not token:
        raise MissingCredentialError()
    return await verifier.verify(token)


async def get_admin_role(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    resolver: AuthorizationResolver = Depends(get_authorization_resolver),
) -> CoreAdministrator | DelegatedAdministrator:
    role = await resolver.resolve(_bearer_token(credentials))
    if isinstance(role, Unauthorized):
        logger.info("Rejected non-admin identity %s", role.identity.normalized_email or "n/a")
        raise NotAuthorizedError()
    return role


async def require_core_admin(
    role: AdministratorRole = Depends(get_admin_role),
) -> CoreAdministrator:
    if not isinstance(role, CoreAdministrator):
        raise CoreAdminOnlyError()
    return role


async def require_delegate(
    role: AdministratorRole = Depends(get_admin_role),
) -> DelegatedAdministrator:
    if not isinstance(role, DelegatedAdministrator):
        raise AccessDeniedError("Access denied")
    return role


def raise_for_denial(decision: Deny | RequiresApproval) -> None:
    """Raise the HTTP error for a refused decision.

    Refusals that carry approval hints become ``APPROVAL_REQUIRED`` so a
    client can offer to submit a request instead.
    """
    if decision.data:
        raise ApprovalRequiredError(decision.message, details=decision.data)
    raise AccessDeniedError(decision.message)


def require_page_permission(page: AdminPage, action: Action) -> Callable:
    """Dependency enforcing a page permission on a direct write or read."""

    async def dependency(
        request: Request,
        role: AdministratorRole = Depends(get_admin_role),
    ) -> AdministratorRole:
        decision = decide(role, page, action)
        if isinstance(decision, (Deny, RequiresApproval)):
            logger.info(
                "Permission denied page=%s action=%s email=%s path=%s",
                page.value,
                action.value,
                role.identity.email,
                request.url.path,
            )
            raise_for_denial(decision)
        return role

    return dependency
