import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base

ACTOR_TYPES = ("core_admin", "sub_admin", "system")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[str | None] = mapped_column(String(128), index=True)
    actor_email: Mapped[str | None] = mapped_column(String(320))
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    action: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )  # e.g. 'invitation.create', 'request.approve'
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    before: Mapped[dict | None] = mapped_column(JSONB)
    after: Mapped[dict | None] = mapped_column(JSONB)
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "actor_type IN ('core_admin', 'sub_admin', 'system')",
            name="ck_audit_logs_actor_type",
        ),
    )

    @validates("actor_type")
    def validate_actor_type(self, key: str, value: str) -> str:
        if value not in ACTOR_TYPES:
            raise ValueError(
                f"Invalid actor_type '{value}'. "
                f"Must be one of: {', '.join(sorted(ACTOR_TYPES))}"
            )
        return value
