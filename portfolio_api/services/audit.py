import logging
from typing import Any

from ..domain.ports.audit import AuditLogRepository
from ..domain.roles import (
    AdministratorRole,
    CoreAdministrator,
    DelegatedAdministrator,
)

logger = logging.getLogger("portfolio.audit")


def _actor(role: AdministratorRole | None) -> tuple[str | None, str | None, str]:
    if role is None:
        return None, None, "system"
    if isinstance(role, CoreAdministrator):
        return role.identity.subject_id, role.identity.normalized_email, "core_admin"
    if isinstance(role, DelegatedAdministrator):
        return str(role.profile.id), role.profile.email, "sub_admin"
    raise ValueError("Unauthorized callers cannot be recorded as audit actors")


class AuditService:
    """Records administrative events.

    Audit writes are best-effort: a failure is logged and never propagates
    to the operation being audited.
    """

    def __init__(self, repository: AuditLogRepository):
        self.repository = repository

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        actor: AdministratorRole | None = None,
        *,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> None:
        try:
            actor_id, actor_email, actor_type = _actor(actor)
            await self.repository.create(
                actor_id=actor_id,
                actor_email=actor_email,
                actor_type=actor_type,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                before=before,
                after=after,
                reason=reason,
            )
        except Exception:
            logger.warning(
                "Failed to write audit entry action=%s entity=%s/%s",
                action,
                entity_type,
                entity_id,
                exc_info=True,
            )
