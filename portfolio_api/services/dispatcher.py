"""Replays the mutation recorded in an approved pending request.

Resource types resolve in two steps: the closed set of special kinds in
``SpecialResourceType`` has bespoke handlers, and everything else goes
through ``RESOURCE_KINDS``, which binds a resource type to one document
collection and its permission page.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..domain.permissions import Action, AdminPage
from ..domain.ports.document_store import DocumentStore
from ..domain.ports.file_storage import FileStorage, StorageKind
from ..domain.ports.pending_request import PendingRequestData

logger = logging.getLogger("portfolio.dispatcher")

PROFILE_COLLECTION = "profile"
PROFILE_DOCUMENT = "main"


@dataclass(frozen=True)
class ExecutionOutcome:
    success: bool
    message: str


@dataclass(frozen=True)
class ResourceKind:
    collection: str
    page: AdminPage
    path: str
    bulk_delete: bool = False
    public: bool = True
    order_by: str = "order"
    descending: bool = False


RESOURCE_KINDS: dict[str, ResourceKind] = {
    "profile": ResourceKind("profile", AdminPage.PROFILE, "profile"),
    "stat": ResourceKind("stats", AdminPage.PROFILE, "stats"),
    "contactInfo": ResourceKind("contactInfo", AdminPage.PROFILE, "contact-info"),
    "socialLink": ResourceKind("socialLinks", AdminPage.PROFILE, "social-links"),
    "skillCategory": ResourceKind("skillCategories", AdminPage.SKILLS, "skill-categories"),
    "additionalSkill": ResourceKind("additionalSkills", AdminPage.SKILLS, "additional-skills"),
    "toolTechnology": ResourceKind("toolsTechnologies", AdminPage.SKILLS, "tools"),
    "project": ResourceKind("projects", AdminPage.PROJECTS, "projects"),
    "education": ResourceKind("education", AdminPage.EDUCATION, "education"),
    "workExperience": ResourceKind("workExperience", AdminPage.EXPERIENCE, "work-experience"),
    "certification": ResourceKind("certifications", AdminPage.EXPERIENCE, "certifications"),
    "coreValue": ResourceKind("coreValues", AdminPage.ABOUT, "core-values"),
    "interest": ResourceKind("interests", AdminPage.ABOUT, "interests"),
    "learningGoal": ResourceKind("learningGoals", AdminPage.ABOUT, "learning-goals"),
    "funFact": ResourceKind("funFacts", AdminPage.ABOUT, "fun-facts"),
    "faq": ResourceKind("faqs", AdminPage.FAQS, "faqs"),
    "message": ResourceKind(
        "messages",
        AdminPage.MESSAGES,
        "messages",
        bulk_delete=True,
        public=False,
        order_by="createdAt",
        descending=True,
    ),
}

REORDERABLE_COLLECTIONS = frozenset(kind.collection for kind in RESOURCE_KINDS.values())


class SpecialResourceType(str, Enum):
    ABOUT_PROFILE = "aboutProfile"
    CV_UPLOAD = "cvUpload"
    HOME_AVATAR_UPLOAD = "homeAvatarUpload"
    ABOUT_AVATAR_UPLOAD = "aboutAvatarUpload"
    HOME_AVATAR_CROP_UPDATE = "homeAvatarCropUpdate"
    ABOUT_AVATAR_CROP_UPDATE = "aboutAvatarCropUpdate"
    REORDER = "reorder"


@dataclass(frozen=True)
class FileSlot:
    """Profile fields a stored file is published under."""

    url_field: str
    id_field: str
    kind: StorageKind
    name_field: str | None = None
    label: str = "File"

    def fields(self, data: Mapping[str, Any]) -> dict[str, Any]:
        names = [self.url_field, self.id_field]
        if self.name_field:
            names.append(self.name_field)
        return {name: data.get(name) for name in names}


FILE_SLOTS: dict[SpecialResourceType, FileSlot] = {
    SpecialResourceType.CV_UPLOAD: FileSlot(
        "cvUrl", "cvPublicId", "raw", name_field="cvFileName", label="CV"
    ),
    SpecialResourceType.HOME_AVATAR_UPLOAD: FileSlot(
        "homeAvatarUrl", "homeAvatarPublicId", "image", label="Home avatar"
    ),
    SpecialResourceType.ABOUT_AVATAR_UPLOAD: FileSlot(
        "aboutAvatarUrl", "aboutAvatarPublicId", "image", label="About avatar"
    ),
}

CROP_FIELDS: dict[SpecialResourceType, tuple[str, str]] = {
    SpecialResourceType.HOME_AVATAR_CROP_UPDATE: ("homeAvatarCrop", "Home avatar crop settings"),
    SpecialResourceType.ABOUT_AVATAR_CROP_UPDATE: ("aboutAvatarCrop", "About avatar crop settings"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Handler = Callable[[PendingRequestData], Awaitable[ExecutionOutcome]]


class ExecutionDispatcher:
    def __init__(
        self,
        store: DocumentStore,
        file_storage: FileStorage | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.file_storage = file_storage
        self.clock = clock
        self._special: dict[SpecialResourceType, Handler] = {
            SpecialResourceType.ABOUT_PROFILE: self._apply_about_profile,
            SpecialResourceType.REORDER: self._apply_reorder,
        }
        for resource_type in FILE_SLOTS:
            self._special[resource_type] = self._apply_file_swap
        for resource_type in CROP_FIELDS:
            self._special[resource_type] = self._apply_crop_update

    def _timestamp(self) -> str:
        return self.clock().isoformat()

    async def execute(self, request: PendingRequestData) -> ExecutionOutcome:
        # Read before any write; a failed write rolls the session back and
        # expires the ORM row behind ``request``.
        label = (request.id, request.action, request.resource_type)
        try:
            try:
                special = SpecialResourceType(request.resource_type)
            except ValueError:
                return await self._apply_generic(request)
            return await self._special[special](request)
        except Exception:
            logger.exception("Error executing approved request %s (%s %s)", *label)
            return ExecutionOutcome(False, "Failed to execute request")

    async def _merge_profile(self, fields: Mapping[str, Any]) -> None:
        await self.store.set(
            PROFILE_COLLECTION,
            PROFILE_DOCUMENT,
            {**fields, "updatedAt": self._timestamp()},
            merge=True,
        )

    async def _apply_about_profile(self, request: PendingRequestData) -> ExecutionOutcome:
        if request.action != Action.UPDATE.value:
            return ExecutionOutcome(False, f"Invalid action for {request.resource_type}")
        await self._merge_profile(request.data or {})
        return ExecutionOutcome(True, "Updated about profile content")

    async def _apply_file_swap(self, request: PendingRequestData) -> ExecutionOutcome:
        special = SpecialResourceType(request.resource_type)
        if request.action != Action.UPDATE.value:
            return ExecutionOutcome(False, f"Invalid action for {special.value}")
        slot = FILE_SLOTS[special]
        await self.swap_profile_file(slot, request.data or {})
        return ExecutionOutcome(True, f"{slot.label} upload approved and applied")

    async def swap_profile_file(self, slot: FileSlot, data: Mapping[str, Any]) -> None:
        """Publish a stored file on the profile and remove the one it replaces."""
        profile = await self.store.get(PROFILE_COLLECTION, PROFILE_DOCUMENT)
        previous_id = (profile or {}).get(slot.id_field)
        if previous_id and previous_id != data.get(slot.id_field):
            await self._delete_stored_file(previous_id, slot.kind)
        await self._merge_profile(slot.fields(data))

    async def _delete_stored_file(self, storage_id: str, kind: StorageKind) -> None:
        if self.file_storage is None:
            logger.warning("File storage not configured; leaving %s in place", storage_id)
            return
        try:
            await self.file_storage.delete(storage_id, kind)
        except Exception:
            logger.warning("Failed to delete replaced file %s", storage_id, exc_info=True)

    async def _apply_crop_update(self, request: PendingRequestData) -> ExecutionOutcome:
        special = SpecialResourceType(request.resource_type)
        if request.action != Action.UPDATE.value:
            return ExecutionOutcome(False, f"Invalid action for {special.value}")
        field_name, label = CROP_FIELDS[special]
        await self._merge_profile({field_name: (request.data or {}).get(field_name)})
        return ExecutionOutcome(True, f"{label} approved and applied")

    async def _apply_reorder(self, request: PendingRequestData) -> ExecutionOutcome:
        data = request.data or {}
        collection = data.get("collection")
        items = data.get("items") or []
        if collection not in REORDERABLE_COLLECTIONS:
            return ExecutionOutcome(False, f"Unknown collection for reorder: {collection}")
        await self.reorder(collection, items)
        return ExecutionOutcome(True, f"Reordered {len(items)} items in {collection}")

    async def reorder(self, collection: str, items: list[Mapping[str, Any]]) -> None:
        """Apply new ``order`` (and optional ``featured``) values atomically."""
        batch = self.store.batch()
        updated_at = self._timestamp()
        for item in items:
            fields: dict[str, Any] = {"order": item["order"], "updatedAt": updated_at}
            if item.get("featured") is not None:
                fields["featured"] = item["featured"]
            batch.update(collection, str(item["id"]), fields)
        await batch.commit()

    async def create_document(self, kind: ResourceKind, data: Mapping[str, Any]) -> str:
        return await self.store.add(
            kind.collection, {**data, "createdAt": self._timestamp()}
        )

    async def update_document(
        self, kind: ResourceKind, doc_id: str, data: Mapping[str, Any]
    ) -> None:
        await self.store.update(
            kind.collection, doc_id, {**data, "updatedAt": self._timestamp()}
        )

    async def delete_document(self, kind: ResourceKind, doc_id: str) -> None:
        await self.store.delete(kind.collection, doc_id)

    async def delete_many(self, collection: str, ids: list[Any]) -> None:
        batch = self.store.batch()
        for doc_id in ids:
            batch.delete(collection, str(doc_id))
        await batch.commit()

    async def _apply_generic(self, request: PendingRequestData) -> ExecutionOutcome:
        kind = RESOURCE_KINDS.get(request.resource_type)
        if kind is None:
            return ExecutionOutcome(False, f"Unknown resource type: {request.resource_type}")

        data = dict(request.data or {})
        if request.action == Action.CREATE.value:
            doc_id = await self.create_document(kind, data)
            return ExecutionOutcome(True, f"Created {request.resource_type} with ID: {doc_id}")

        if request.action == Action.UPDATE.value:
            if not request.resource_id:
                return ExecutionOutcome(False, "Resource ID required for update")
            await self.update_document(kind, request.resource_id, data)
            return ExecutionOutcome(
                True, f"Updated {request.resource_type}: {request.resource_id}"
            )

        if request.action == Action.DELETE.value:
            ids = data.get("ids")
            if kind.bulk_delete and isinstance(ids, list):
                await self.delete_many(kind.collection, ids)
                return ExecutionOutcome(True, f"Deleted {len(ids)} {kind.collection}")
            if not request.resource_id:
                return ExecutionOutcome(False, "Resource ID required for delete")
            await self.delete_document(kind, request.resource_id)
            return ExecutionOutcome(
                True, f"Deleted {request.resource_type}: {request.resource_id}"
            )

        return ExecutionOutcome(False, "Unknown action")
