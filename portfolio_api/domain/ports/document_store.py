from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class DocumentBatch(Protocol):
    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def commit(self) -> None:
        """Apply every queued operation atomically, or none of them."""
        ...


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        ...

    async def query(
        self,
        collection: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        ...

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Raises NotFoundError when the document does not exist."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    def batch(self) -> DocumentBatch:
        ...
