from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.audit_log import AuditLog


class AuditLogRepository:
    """Writes audit entries in a session of their own.

    The request session is never committed or rolled back here, so an
    audit failure cannot leak into the operation being audited.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        *,
        actor_id: str | None,
        actor_email: str | None,
        actor_type: str,
        action: str,
        entity_type: str,
        entity_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> AuditLog:
        audit_log = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            actor_type=actor_type,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
            reason=reason,
        )
        async with self.session_factory() as audit_session:
            audit_session.add(audit_log)
            try:
                await audit_session.commit()
            except SQLAlchemyError:
                await audit_session.rollback()
                raise
            await audit_session.refresh(audit_log)
        return audit_log
