from __future__ import annotations

from typing import Any, Protocol


class AuditLogRepository(Protocol):
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
    ) -> Any:
        ...
