"""Profile file uploads (CV and avatars).

The core admin's upload goes live immediately and replaces the previous
file. A delegate's upload lands in a ``-pending`` folder and is published
only once the matching upload request is approved.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from ..dependencies import (
    get_admin_role,
    get_approval_gate,
    get_execution_dispatcher,
    get_file_storage,
    raise_for_denial,
)
from ..domain.permissions import Action, AdminPage
from ..domain.policy import Deny, Enqueued, RequiresApproval, decide
from ..domain.ports.file_storage import FileStorage, StorageKind
from ..domain.roles import AdministratorRole
from ..errors import AppError, ServiceUnavailableError, ValidationError
from ..schemas.common import ApiResponse
from ..schemas.content import StoredFileRead
from ..services.approval_gate import ApprovalGate
from ..services.dispatcher import FILE_SLOTS, ExecutionDispatcher, SpecialResourceType
from ..services.pending_requests import RequestProposal

logger = logging.getLogger("portfolio.files")

router = APIRouter(prefix="/files", tags=["files"])

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


class UploadSlot(str, Enum):
    CV = "cv"
    HOME_AVATAR = "home-avatar"
    ABOUT_AVATAR = "about-avatar"


@dataclass(frozen=True)
class UploadTarget:
    resource_type: SpecialResourceType
    folder: str
    content_types: frozenset[str]
    type_error: str

    @property
    def pending_folder(self) -> str:
        return f"{self.folder}-pending"


UPLOAD_TARGETS: dict[UploadSlot, UploadTarget] = {
    UploadSlot.CV: UploadTarget(
        SpecialResourceType.CV_UPLOAD,
        "cv",
        frozenset({"application/pdf"}),
        "Only PDF files are allowed",
    ),
    UploadSlot.HOME_AVATAR: UploadTarget(
        SpecialResourceType.HOME_AVATAR_UPLOAD,
        "avatars/home",
        IMAGE_CONTENT_TYPES,
        "Only image files are allowed",
    ),
    UploadSlot.ABOUT_AVATAR: UploadTarget(
        SpecialResourceType.ABOUT_AVATAR_UPLOAD,
        "avatars/about",
        IMAGE_CONTENT_TYPES,
        "Only image files are allowed",
    ),
}


async def _read_upload(upload: UploadFile, target: UploadTarget) -> bytes:
    if upload.content_type not in target.content_types:
        raise ValidationError(target.type_error)
    content = await upload.read(MAX_UPLOAD_BYTES + 1)
    if not content:
        raise ValidationError("No file uploaded")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("File exceeds the 10 MB limit")
    return content


async def _discard(storage: FileStorage, storage_id: str, kind: StorageKind) -> None:
    try:
        await storage.delete(storage_id, kind)
    except Exception:
        logger.warning("Failed to discard orphaned upload %s", storage_id, exc_info=True)


@router.post(
    "/{slot}",
    response_model=ApiResponse[StoredFileRead],
    response_model_exclude_none=True,
    responses={status.HTTP_202_ACCEPTED: {"model": ApiResponse[StoredFileRead]}},
)
async def upload_file(
    slot: UploadSlot,
    file: UploadFile = File(...),
    role: AdministratorRole = Depends(get_admin_role),
    storage: FileStorage | None = Depends(get_file_storage),
    gate: ApprovalGate = Depends(get_approval_gate),
    dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
):
    # Refuse before touching storage.
    decision = decide(role, AdminPage.PROFILE, Action.UPDATE)
    if isinstance(decision, Deny):
        raise_for_denial(decision)

    if storage is None:
        raise ServiceUnavailableError("File storage is not configured")

    target = UPLOAD_TARGETS[slot]
    file_slot = FILE_SLOTS[target.resource_type]
    content = await _read_upload(file, target)
    folder = target.pending_folder if isinstance(decision, RequiresApproval) else target.folder
    stored = await storage.upload(content, folder, file_slot.kind, filename=file.filename)

    data = {file_slot.url_field: stored.url, file_slot.id_field: stored.storage_id}
    if file_slot.name_field:
        data[file_slot.name_field] = file.filename
    try:
        outcome = await gate.decide_or_enqueue(
            role,
            AdminPage.PROFILE,
            Action.UPDATE,
            RequestProposal(
                action=Action.UPDATE,
                resource_type=target.resource_type.value,
                page=AdminPage.PROFILE,
                data=data,
                resource_name=file.filename or file_slot.label,
            ),
        )
    except AppError:
        await _discard(storage, stored.storage_id, file_slot.kind)
        raise
    if isinstance(outcome, Deny):
        raise_for_denial(outcome)

    file_name = file.filename if file_slot.name_field else None
    if isinstance(outcome, Enqueued):
        read = StoredFileRead(
            url=stored.url,
            storage_id=stored.storage_id,
            file_name=file_name,
            requires_approval=True,
            pending_request_id=outcome.pending_request_id,
        )
        body = ApiResponse[StoredFileRead](
            data=read, message=f"{file_slot.label} uploaded. Waiting for core admin approval."
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )

    await dispatcher.swap_profile_file(file_slot, data)
    read = StoredFileRead(url=stored.url, storage_id=stored.storage_id, file_name=file_name)
    logger.info("Published %s %s", slot.value, stored.storage_id)
    return ApiResponse(data=read, message=f"{file_slot.label} uploaded successfully")
