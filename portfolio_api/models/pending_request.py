import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

REQUEST_STATUSES = ("pending", "approved", "rejected")
EXECUTION_STATUSES = ("succeeded", "failed")


class PendingRequest(Base):
    __tablename__ = "pending_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    sub_admin_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )  # no FK: requests outlive a deleted sub-admin
    sub_admin_email: Mapped[str] = mapped_column(String(320), nullable=False)
    sub_admin_name: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(255))
    resource_name: Mapped[str | None] = mapped_column(String(255))
    page: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    previous_data: Mapped[dict | None] = mapped_column(JSONB)
    reason: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", server_default="pending", index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processed_by: Mapped[str | None] = mapped_column(String(128))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    # Execution phase of an approved request
    execution_status: Mapped[str | None] = mapped_column(String(20))
    execution_message: Mapped[str | None] = mapped_column(Text)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    execution_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    __table_args__ = (
        CheckConstraint(
            "action IN ('CREATE', 'UPDATE', 'DELETE')",
            name="ck_pending_requests_action",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_pending_requests_status",
        ),
        CheckConstraint(
            "execution_status IS NULL OR execution_status IN ('succeeded', 'failed')",
            name="ck_pending_requests_execution_status",
        ),
        Index(
            "uq_pending_requests_pending_target",
            "sub_admin_id",
            "action",
            "resource_type",
            "page",
            text("coalesce(resource_id, '')"),
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )
