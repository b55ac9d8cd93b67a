"""
Repository tests against in-memory SQLite through a sync session adapter.

Partial unique indexes become full unique indexes on SQLite, so duplicate
checks are only exercised while the first row is still pending.
"""
import uuid
from datetime import timedelta

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from portfolio_api.crud.document import SqlDocumentStore
from portfolio_api.crud.invitation import InvitationRepository
from portfolio_api.crud.pending_request import PendingRequestRepository
from portfolio_api.domain.errors import (
    AlreadyAdministratorError,
    DuplicateRequestError,
    InvitationAlreadyPendingError,
)
from portfolio_api.domain.ports.invitation import NewSubAdmin
from portfolio_api.domain.roles import CoreAdministrator, Identity
from portfolio_api.errors import NotFoundError
from portfolio_api.models import Document, SubAdmin
from portfolio_api.services.audit import AuditService
from portfolio_api.services.dispatcher import ExecutionDispatcher
from portfolio_api.services.pending_requests import PendingRequestService, RequestStatus

from tests.fakes import NOW, FakeAuditRepository, FakeClock
from tests.sql_helpers import (
    AsyncSessionAdapter,
    block_document_updates,
    make_engine,
    unblock_document_updates,
)

CORE = CoreAdministrator(Identity("owner-uid", "owner@example.com"))


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    adapter = AsyncSessionAdapter.open(engine)
    yield adapter
    adapter.sync_session.close()


async def _seed(db: AsyncSessionAdapter, collection: str, doc_id: str, data: dict) -> None:
    db.add(Document(collection=collection, id=doc_id, data=data))
    await db.commit()


async def _create_request(repository: PendingRequestRepository, sub_admin_id: uuid.UUID, **overrides):
    fields = dict(
        sub_admin_id=sub_admin_id,
        sub_admin_email="helper@example.com",
        sub_admin_name="Helper",
        action="UPDATE",
        resource_type="project",
        page="projects",
        data={"title": "Renamed"},
        resource_id="p1",
        resource_name="Project One",
    )
    fields.update(overrides)
    return await repository.create(**fields)


def _new_sub_admin(email: str) -> NewSubAdmin:
    return NewSubAdmin(
        uid="helper-uid",
        email=email,
        name="Helper",
        photo_url=None,
        invited_by="owner-uid",
        invited_by_email="owner@example.com",
        page_permissions=[{"page": "projects", "permissions": ["VIEW"]}],
        created_at=NOW,
    )


class TestSqlDocumentStore:
    @pytest.mark.anyio
    async def test_add_get_update_and_delete(self, db) -> None:
        store = SqlDocumentStore(db)

        doc_id = await store.add("projects", {"id": "ignored", "title": "One", "order": 1})
        await store.update("projects", doc_id, {"title": "Renamed"})

        assert await store.get("projects", doc_id) == {"id": doc_id, "title": "Renamed", "order": 1}

        await store.delete("projects", doc_id)
        assert await store.get("projects", doc_id) is None

    @pytest.mark.anyio
    async def test_set_merges_or_replaces(self, db) -> None:
        store = SqlDocumentStore(db)

        await store.set("profile", "main", {"name": "Ada", "title": "Engineer"})
        await store.set("profile", "main", {"title": "Architect"}, merge=True)
        assert await store.get("profile", "main") == {
            "id": "main",
            "name": "Ada",
            "title": "Architect",
        }

        await store.set("profile", "main", {"name": "Grace"})
        assert await store.get("profile", "main") == {"id": "main", "name": "Grace"}

    @pytest.mark.anyio
    async def test_update_of_missing_document_raises(self, db) -> None:
        with pytest.raises(NotFoundError):
            await SqlDocumentStore(db).update("projects", "missing", {"title": "x"})

    @pytest.mark.anyio
    async def test_failed_write_rolls_back_and_session_stays_usable(self, engine, db) -> None:
        await _seed(db, "projects", "p1", {"title": "One"})
        store = SqlDocumentStore(db)
        block_document_updates(engine)

        with pytest.raises(SQLAlchemyError):
            await store.update("projects", "p1", {"title": "Renamed"})

        assert await store.get("projects", "p1") == {"id": "p1", "title": "One"}

    @pytest.mark.anyio
    async def test_batch_with_missing_document_changes_nothing(self, db) -> None:
        await _seed(db, "skills", "s1", {"name": "Python", "order": 1})
        await _seed(db, "skills", "s2", {"name": "SQL", "order": 2})
        store = SqlDocumentStore(db)

        batch = store.batch()
        batch.update("skills", "s1", {"order": 2})
        batch.update("skills", "missing", {"order": 1})
        with pytest.raises(NotFoundError):
            await batch.commit()

        assert (await store.get("skills", "s1"))["order"] == 1

    @pytest.mark.anyio
    async def test_batch_applies_updates_and_deletes_together(self, db) -> None:
        await _seed(db, "skills", "s1", {"name": "Python", "order": 1})
        await _seed(db, "skills", "s2", {"name": "SQL", "order": 2})
        store = SqlDocumentStore(db)

        batch = store.batch()
        batch.update("skills", "s1", {"id": "s9", "order": 5})
        batch.delete("skills", "s2")
        await batch.commit()

        assert await store.get("skills", "s1") == {"id": "s1", "name": "Python", "order": 5}
        assert await store.get("skills", "s2") is None


class TestPendingRequestRepository:
    @pytest.mark.anyio
    async def test_decide_is_compare_and_set(self, db) -> None:
        repository = PendingRequestRepository(db)
        request = await _create_request(repository, uuid.uuid4())

        assert await repository.decide(
            request.id, status="approved", processed_by="owner-uid", processed_at=NOW
        )
        assert not await repository.decide(
            request.id, status="rejected", processed_by="owner-uid", processed_at=NOW
        )

        stored = await repository.get(request.id)
        assert stored.status == "approved"
        assert stored.rejection_reason is None

    @pytest.mark.anyio
    async def test_duplicate_pending_target_is_rejected(self, db) -> None:
        repository = PendingRequestRepository(db)
        sub_admin_id = uuid.uuid4()
        await _create_request(repository, sub_admin_id)

        with pytest.raises(DuplicateRequestError):
            await _create_request(repository, sub_admin_id, data={"title": "Again"})

        requests = await repository.list()
        assert [request.data for request in requests] == [{"title": "Renamed"}]

    @pytest.mark.anyio
    async def test_record_execution_counts_attempts(self, db) -> None:
        repository = PendingRequestRepository(db)
        request = await _create_request(repository, uuid.uuid4())

        await repository.record_execution(
            request.id, execution_status="failed", message="boom", executed_at=NOW
        )
        stored = await repository.record_execution(
            request.id, execution_status="succeeded", message="done", executed_at=NOW
        )

        assert stored.execution_status == "succeeded"
        assert stored.execution_message == "done"
        assert stored.execution_attempts == 2


class TestInvitationRepository:
    async def _invite(self, repository: InvitationRepository, email: str, token: str):
        return await repository.create(
            email=email,
            invited_by="owner-uid",
            invited_by_email="owner@example.com",
            token=token,
            expires_at=NOW + timedelta(days=7),
            page_permissions=[{"page": "projects", "permissions": ["VIEW"]}],
        )

    @pytest.mark.anyio
    async def test_second_pending_invitation_for_email_is_rejected(self, db) -> None:
        repository = InvitationRepository(db)
        await self._invite(repository, "helper@example.com", "token-1")

        with pytest.raises(InvitationAlreadyPendingError):
            await self._invite(repository, "helper@example.com", "token-2")

        assert len(await repository.list_pending()) == 1

    @pytest.mark.anyio
    async def test_invitation_is_accepted_once(self, db) -> None:
        repository = InvitationRepository(db)
        invitation = await self._invite(repository, "helper@example.com", "token-1")

        sub_admin = await repository.accept(invitation.id, NOW, _new_sub_admin("helper@example.com"))
        again = await repository.accept(invitation.id, NOW, _new_sub_admin("helper@example.com"))

        assert sub_admin is not None
        assert sub_admin.email == "helper@example.com"
        assert sub_admin.is_active
        assert again is None
        assert await repository.get_pending_by_token("token-1") is None

    @pytest.mark.anyio
    async def test_accept_for_existing_administrator_keeps_invitation_pending(self, db) -> None:
        db.add(
            SubAdmin(
                uid="other-uid",
                email="helper@example.com",
                invited_by="owner-uid",
                invited_by_email="owner@example.com",
                is_active=True,
                page_permissions=[],
            )
        )
        await db.commit()
        repository = InvitationRepository(db)
        invitation = await self._invite(repository, "helper@example.com", "token-1")

        with pytest.raises(AlreadyAdministratorError):
            await repository.accept(invitation.id, NOW, _new_sub_admin("helper@example.com"))

        pending = await repository.get_pending_by_token("token-1")
        assert pending is not None
        assert pending.status == "pending"


class TestApprovedExecutionOverSql:
    @pytest.mark.anyio
    async def test_failed_execution_is_recorded_and_can_be_retried(self, engine, db) -> None:
        await _seed(db, "projects", "p1", {"title": "One"})
        requests = PendingRequestRepository(db)
        store = SqlDocumentStore(db)
        audit = FakeAuditRepository()
        service = PendingRequestService(
            requests,
            ExecutionDispatcher(store, clock=FakeClock()),
            AuditService(audit),
            clock=FakeClock(),
        )
        request = await _create_request(requests, uuid.uuid4())
        block_document_updates(engine)

        result = await service.process(CORE, request.id, RequestStatus.APPROVED)

        assert result.action_result.success is False
        assert result.request.status == "approved"
        assert result.request.execution_status == "failed"
        assert result.request.execution_attempts == 1
        assert audit.actions() == ["request.approve", "request.execution_failed"]

        unblock_document_updates(engine)
        retried = await service.retry_execution(CORE, request.id)

        assert retried.action_result.success is True
        assert retried.request.execution_status == "succeeded"
        assert retried.request.execution_attempts == 2
        assert (await store.get("projects", "p1"))["title"] == "Renamed"

    @pytest.mark.anyio
    async def test_documents_table_is_untouched_by_failed_execution(self, engine, db) -> None:
        await _seed(db, "projects", "p1", {"title": "One"})
        requests = PendingRequestRepository(db)
        service = PendingRequestService(
            requests,
            ExecutionDispatcher(SqlDocumentStore(db), clock=FakeClock()),
            AuditService(FakeAuditRepository()),
            clock=FakeClock(),
        )
        request = await _create_request(requests, uuid.uuid4())
        block_document_updates(engine)

        await service.process(CORE, request.id, RequestStatus.APPROVED)

        with engine.connect() as connection:
            stored = connection.execute(
                sa.select(Document.data).where(Document.id == "p1")
            ).scalar_one()
        assert stored == {"title": "One"}
