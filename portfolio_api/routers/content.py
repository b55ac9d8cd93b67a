"""CRUD routers for the portfolio content collections.

One router is built per entry of ``RESOURCE_KINDS``. Reads are public
except for kinds flagged otherwise; writes are guarded per page, and
reorders and bulk deletes go through the approval gate.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from ..dependencies import (
    get_admin_role,
    get_approval_gate,
    get_document_store,
    get_execution_dispatcher,
    raise_for_denial,
    require_page_permission,
)
from ..domain.permissions import Action
from ..domain.policy import Deny, Enqueued
from ..domain.ports.document_store import DocumentStore
from ..domain.roles import AdministratorRole
from ..errors import NotFoundError, ValidationError
from ..schemas.common import ApiResponse
from ..schemas.content import BulkDeleteRequest, QueuedChange, ReorderRequest
from ..services.approval_gate import ApprovalGate
from ..services.dispatcher import (
    RESOURCE_KINDS,
    ExecutionDispatcher,
    ResourceKind,
    SpecialResourceType,
)
from ..services.pending_requests import RequestProposal

logger = logging.getLogger("portfolio.content")

Document = dict[str, Any]


def _queued_response(outcome: Enqueued, message: str) -> JSONResponse:
    body = ApiResponse[QueuedChange](
        data=QueuedChange(pending_request_id=outcome.pending_request_id),
        message=message,
    )
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


async def _load_or_404(store: DocumentStore, kind: ResourceKind, doc_id: str) -> Document:
    document = await store.get(kind.collection, doc_id)
    if document is None:
        raise NotFoundError("Item not found")
    return document


def build_router(resource_type: str, kind: ResourceKind) -> APIRouter:
    router = APIRouter(prefix=f"/{kind.path}", tags=[kind.path])
    read_guards = (
        [] if kind.public else [Depends(require_page_permission(kind.page, Action.VIEW))]
    )

    @router.get(
        "",
        response_model=ApiResponse[list[Document]],
        response_model_exclude_none=True,
        dependencies=read_guards,
    )
    async def list_documents(store: DocumentStore = Depends(get_document_store)):
        documents = await store.query(
            kind.collection, order_by=kind.order_by, descending=kind.descending
        )
        return ApiResponse(data=documents)

    @router.post(
        "",
        response_model=ApiResponse[Document],
        response_model_exclude_none=True,
        status_code=status.HTTP_201_CREATED,
    )
    async def create_document(
        payload: Document = Body(...),
        _role: AdministratorRole = Depends(require_page_permission(kind.page, Action.CREATE)),
        store: DocumentStore = Depends(get_document_store),
        dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
    ):
        doc_id = await dispatcher.create_document(kind, payload)
        return ApiResponse(
            data=await _load_or_404(store, kind, doc_id),
            message="Created successfully",
        )

    @router.put(
        "/reorder",
        response_model=ApiResponse[None],
        response_model_exclude_none=True,
        responses={status.HTTP_202_ACCEPTED: {"model": ApiResponse[QueuedChange]}},
    )
    async def reorder_documents(
        payload: ReorderRequest,
        role: AdministratorRole = Depends(get_admin_role),
        gate: ApprovalGate = Depends(get_approval_gate),
        dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
    ):
        items = [item.model_dump(exclude_none=True) for item in payload.items]
        outcome = await gate.decide_or_enqueue(
            role,
            kind.page,
            Action.UPDATE,
            RequestProposal(
                action=Action.UPDATE,
                resource_type=SpecialResourceType.REORDER.value,
                page=kind.page,
                data={"collection": kind.collection, "items": items},
                resource_id=kind.collection,
                resource_name=f"Reorder {kind.path}",
                reason=payload.reason,
            ),
        )
        if isinstance(outcome, Deny):
            raise_for_denial(outcome)
        if isinstance(outcome, Enqueued):
            return _queued_response(outcome, "Reorder submitted for approval")
        await dispatcher.reorder(kind.collection, items)
        return ApiResponse(message="Order updated successfully")

    if kind.bulk_delete:

        @router.delete(
            "",
            response_model=ApiResponse[None],
            response_model_exclude_none=True,
            responses={status.HTTP_202_ACCEPTED: {"model": ApiResponse[QueuedChange]}},
        )
        async def delete_documents(
            payload: BulkDeleteRequest,
            role: AdministratorRole = Depends(get_admin_role),
            gate: ApprovalGate = Depends(get_approval_gate),
            dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
        ):
            if not payload.ids:
                raise ValidationError("No ids provided")
            outcome = await gate.decide_or_enqueue(
                role,
                kind.page,
                Action.DELETE,
                RequestProposal(
                    action=Action.DELETE,
                    resource_type=resource_type,
                    page=kind.page,
                    data={"ids": payload.ids},
                    resource_name=f"{len(payload.ids)} {kind.path}",
                    reason=payload.reason,
                ),
            )
            if isinstance(outcome, Deny):
                raise_for_denial(outcome)
            if isinstance(outcome, Enqueued):
                return _queued_response(outcome, "Deletion submitted for approval")
            await dispatcher.delete_many(kind.collection, payload.ids)
            return ApiResponse(message=f"Deleted {len(payload.ids)} items")

    @router.get(
        "/{doc_id}",
        response_model=ApiResponse[Document],
        response_model_exclude_none=True,
        dependencies=read_guards,
    )
    async def get_document(doc_id: str, store: DocumentStore = Depends(get_document_store)):
        return ApiResponse(data=await _load_or_404(store, kind, doc_id))

    @router.put(
        "/{doc_id}",
        response_model=ApiResponse[Document],
        response_model_exclude_none=True,
    )
    async def update_document(
        doc_id: str,
        payload: Document = Body(...),
        _role: AdministratorRole = Depends(require_page_permission(kind.page, Action.UPDATE)),
        store: DocumentStore = Depends(get_document_store),
        dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
    ):
        await dispatcher.update_document(kind, doc_id, payload)
        return ApiResponse(
            data=await _load_or_404(store, kind, doc_id),
            message="Updated successfully",
        )

    @router.delete(
        "/{doc_id}",
        response_model=ApiResponse[None],
        response_model_exclude_none=True,
    )
    async def delete_document(
        doc_id: str,
        _role: AdministratorRole = Depends(require_page_permission(kind.page, Action.DELETE)),
        store: DocumentStore = Depends(get_document_store),
        dispatcher: ExecutionDispatcher = Depends(get_execution_dispatcher),
    ):
        await _load_or_404(store, kind, doc_id)
        await dispatcher.delete_document(kind, doc_id)
        logger.info("Deleted %s/%s", kind.collection, doc_id)
        return ApiResponse(message="Deleted successfully")

    return router


routers = [build_router(resource_type, kind) for resource_type, kind in RESOURCE_KINDS.items()]
