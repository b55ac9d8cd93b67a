from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

StorageKind = Literal["image", "raw"]


@dataclass(frozen=True)
class StoredFile:
    url: str
    storage_id: str


class FileStorage(Protocol):
    async def upload(
        self,
        content: bytes,
        folder: str,
        kind: StorageKind,
        *,
        filename: str | None = None,
    ) -> StoredFile:
        ...

    async def delete(self, storage_id: str, kind: StorageKind) -> None:
        ...
