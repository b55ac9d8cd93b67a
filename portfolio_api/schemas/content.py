from .common import CamelModel


class ReorderItem(CamelModel):
    id: str
    order: int
    featured: bool | None = None


class ReorderRequest(CamelModel):
    items: list[ReorderItem]
    reason: str | None = None


class BulkDeleteRequest(CamelModel):
    ids: list[str]
    reason: str | None = None


class QueuedChange(CamelModel):
    requires_approval: bool = True
    pending_request_id: str


class StoredFileRead(CamelModel):
    url: str
    storage_id: str
    file_name: str | None = None
    requires_approval: bool = False
    pending_request_id: str | None = None
