"""Domain failures of the admin access-control core.

Each class maps one failure of the resolver, invitation lifecycle or
approval workflow onto the HTTP error envelope via ``AppError``.
"""
from __future__ import annotations

from ..errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionError,
    ValidationError,
)


NOT_AUTHORIZED_MESSAGE = (
    "Access denied. You are not authorized to access this admin panel."
)
CORE_ADMIN_ONLY_MESSAGE = "Access denied. Only the core admin can perform this action."


class MissingCredentialError(AuthError):
    code = "MISSING_CREDENTIAL"
    message = "Unauthorized. No token provided."


class InvalidCredentialError(AuthError):
    code = "INVALID_CREDENTIAL"
    message = "Unauthorized. Invalid token."


class NotAuthorizedError(PermissionError):
    code = "NOT_AUTHORIZED"
    message = NOT_AUTHORIZED_MESSAGE


class CoreAdminOnlyError(PermissionError):
    code = "CORE_ADMIN_ONLY"
    message = CORE_ADMIN_ONLY_MESSAGE


class AccessDeniedError(PermissionError):
    """Plain denial; VIEW denials and callers without any permissions."""

    code = "ACCESS_DENIED"


class ApprovalRequiredError(PermissionError):
    """Write denial carrying approval hints in ``details``."""

    code = "APPROVAL_REQUIRED"


class InvalidTargetError(ConflictError):
    code = "INVALID_TARGET"
    message = "Cannot invite the core admin email"


class AlreadyAdministratorError(ConflictError):
    code = "ALREADY_ADMINISTRATOR"
    message = "This email is already a sub-admin"


class InvitationAlreadyPendingError(ConflictError):
    code = "INVITATION_ALREADY_PENDING"
    message = "An invitation is already pending for this email"


class InvitationNotFoundError(NotFoundError):
    code = "INVITATION_NOT_FOUND"
    message = "Invalid or expired invitation"


class InvitationExpiredError(ValidationError):
    code = "INVITATION_EXPIRED"
    message = "This invitation has expired"


class EmailMismatchError(PermissionError):
    code = "EMAIL_MISMATCH"
    message = "This invitation was sent to a different email address"


class SubAdminNotFoundError(NotFoundError):
    code = "SUB_ADMIN_NOT_FOUND"
    message = "Sub-admin not found"


class PendingRequestNotFoundError(NotFoundError):
    code = "REQUEST_NOT_FOUND"
    message = "Request not found"


class CoreAdminRequestError(ValidationError):
    code = "CORE_ADMIN_REQUEST"
    message = "Core admin does not need to create requests"


class DuplicateRequestError(ConflictError):
    code = "DUPLICATE_REQUEST"
    message = "A similar request is already pending"


class AlreadyProcessedError(ConflictError):
    code = "ALREADY_PROCESSED"
    message = "This request has already been processed"


class NotRetryableError(ConflictError):
    code = "NOT_RETRYABLE"
    message = "Only approved requests with a failed execution can be retried"


class RequestOwnershipError(PermissionError):
    code = "NOT_REQUEST_OWNER"
    message = "You can only delete your own requests"


class ProcessedRequestDeletionError(ConflictError):
    code = "REQUEST_ALREADY_DECIDED"
    message = "Cannot delete processed requests"
