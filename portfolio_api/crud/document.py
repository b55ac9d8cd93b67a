"""SQL-backed document store over the ``documents`` table.

Documents are returned as plain dicts with their ``id`` merged in, the shape
the dispatcher and the content routers work with. Every write rolls the
session back on failure so the caller can keep using it to record the
outcome.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError
from ..models.document import Document

logger = logging.getLogger("portfolio.documents")


def _as_dict(document: Document) -> dict[str, Any]:
    return {**(document.data or {}), "id": document.id}


def _clean_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if key != "id"}


class SqlDocumentBatch:
    """Queue of updates and deletes committed in a single transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._operations: list[tuple[str, str, str, dict[str, Any] | None]] = []

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self._operations.append(("update", collection, doc_id, _clean_fields(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._operations.append(("delete", collection, doc_id, None))

    async def commit(self) -> None:
        try:
            for operation, collection, doc_id, fields in self._operations:
                if operation == "delete":
                    await self.session.execute(
                        delete(Document).where(
                            Document.collection == collection, Document.id == doc_id
                        )
                    )
                    continue
                result = await self.session.execute(
                    select(Document)
                    .where(Document.collection == collection, Document.id == doc_id)
                    .with_for_update()
                )
                document = result.scalar_one_or_none()
                if document is None:
                    raise NotFoundError(f"Document {collection}/{doc_id} not found")
                document.data = {**(document.data or {}), **(fields or {})}
            await self.session.commit()
        except (NotFoundError, SQLAlchemyError):
            await self.session.rollback()
            raise
        finally:
            self._operations.clear()


class SqlDocumentStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _load(self, collection: str, doc_id: str) -> Document | None:
        return await self.session.get(
            Document, (collection, doc_id), populate_existing=True
        )

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        document = await self._load(collection, doc_id)
        return _as_dict(document) if document is not None else None

    async def query(
        self,
        collection: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query = select(Document).where(Document.collection == collection)
        if filters:
            query = query.where(Document.data.contains(dict(filters)))
        if order_by is not None:
            ordering = Document.data[order_by]
            query = query.order_by(ordering.desc() if descending else ordering.asc())
        else:
            query = query.order_by(Document.created_at.asc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [_as_dict(document) for document in result.scalars().all()]

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self.session.add(Document(collection=collection, id=doc_id, data=_clean_fields(fields)))
        await self._commit()
        logger.debug("Added document %s/%s", collection, doc_id)
        return doc_id

    async def set(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        document = await self._load(collection, doc_id)
        if document is None:
            self.session.add(
                Document(collection=collection, id=doc_id, data=_clean_fields(fields))
            )
        elif merge:
            document.data = {**(document.data or {}), **_clean_fields(fields)}
        else:
            document.data = _clean_fields(fields)
        await self._commit()

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        document = await self._load(collection, doc_id)
        if document is None:
            raise NotFoundError(f"Document {collection}/{doc_id} not found")
        document.data = {**(document.data or {}), **_clean_fields(fields)}
        await self._commit()

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self.session.execute(
                delete(Document).where(
                    Document.collection == collection, Document.id == doc_id
                )
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    def batch(self) -> SqlDocumentBatch:
        return SqlDocumentBatch(self.session)
