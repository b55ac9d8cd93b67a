from .base import Base
from .sub_admin import SubAdmin
from .invitation import Invitation
from .pending_request import PendingRequest
from .document import Document
from .audit_log import AuditLog

__all__ = [
    "Base",
    "SubAdmin",
    "Invitation",
    "PendingRequest",
    "Document",
    "AuditLog",
]
