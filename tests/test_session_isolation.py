"""
Side writes (login bookkeeping, audit entries) run in sessions of their own,
so a failure there never rolls back or expires what the request session holds.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from portfolio_api.auth.resolver import AuthorizationResolver
from portfolio_api.crud.audit_log import AuditLogRepository
from portfolio_api.crud.sub_admin import SubAdminRepository
from portfolio_api.domain.permissions import Action, AdminPage
from portfolio_api.domain.roles import CoreAdministrator, DelegatedAdministrator, Identity
from portfolio_api.models import SubAdmin
from portfolio_api.services.audit import AuditService

from tests.fakes import NOW, FakeClock, FakeIdentityVerifier
from tests.sql_helpers import AsyncSessionAdapter, make_engine


def _side_session(*, fail: bool = False) -> MagicMock:
    session = MagicMock()
    error = OperationalError("UPDATE", {}, Exception("connection reset"))
    session.execute = AsyncMock(side_effect=error if fail else None)
    session.commit = AsyncMock(side_effect=error if fail else None)
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


@pytest.fixture
def main_session() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


class TestLoginBookkeeping:
    @pytest.mark.anyio
    async def test_record_login_commits_in_its_own_session(self, main_session) -> None:
        login_session = _side_session()
        session_factory = MagicMock(return_value=login_session)
        repository = SubAdminRepository(main_session, session_factory)

        await repository.record_login(uuid.uuid4(), "helper-uid", NOW)

        session_factory.assert_called_once()
        login_session.execute.assert_awaited_once()
        login_session.commit.assert_awaited_once()
        main_session.commit.assert_not_called()
        main_session.rollback.assert_not_called()

    @pytest.mark.anyio
    async def test_failed_login_write_leaves_request_session_alone(self, main_session) -> None:
        login_session = _side_session(fail=True)
        repository = SubAdminRepository(main_session, MagicMock(return_value=login_session))

        with pytest.raises(OperationalError):
            await repository.record_login(uuid.uuid4(), "helper-uid", NOW)

        login_session.rollback.assert_awaited_once()
        main_session.rollback.assert_not_called()
        main_session.commit.assert_not_called()

    @pytest.mark.anyio
    async def test_delegate_resolves_with_loaded_profile_when_login_write_fails(self) -> None:
        engine = make_engine()
        db = AsyncSessionAdapter.open(engine)
        db.add(
            SubAdmin(
                uid="helper-uid",
                email="helper@example.com",
                name="Helper",
                invited_by="owner-uid",
                invited_by_email="owner@example.com",
                is_active=True,
                page_permissions=[{"page": "projects", "permissions": ["VIEW", "UPDATE"]}],
            )
        )
        await db.commit()

        login_session = _side_session(fail=True)
        resolver = AuthorizationResolver(
            FakeIdentityVerifier({"helper": Identity("helper-uid", "helper@example.com")}),
            SubAdminRepository(db, MagicMock(return_value=login_session)),
            core_admin_email="owner@example.com",
            clock=FakeClock(),
        )

        role = await resolver.resolve("helper")

        assert isinstance(role, DelegatedAdministrator)
        assert role.permissions[AdminPage.PROJECTS] == frozenset({Action.VIEW, Action.UPDATE})
        # The profile was not expired by a rollback of the request session
        assert "email" in role.profile.__dict__
        assert role.profile.email == "helper@example.com"
        await db.close()


class TestAuditIsolation:
    @pytest.mark.anyio
    async def test_audit_entry_is_committed_in_its_own_session(self) -> None:
        audit_session = _side_session()
        session_factory = MagicMock(return_value=audit_session)
        service = AuditService(AuditLogRepository(session_factory))

        await service.log(
            "request.approve",
            "pending_request",
            uuid.uuid4(),
            CoreAdministrator(Identity("owner-uid", "owner@example.com")),
        )

        session_factory.assert_called_once()
        audit_session.add.assert_called_once()
        audit_session.commit.assert_awaited_once()
        entry = audit_session.add.call_args.args[0]
        assert entry.actor_type == "core_admin"
        assert entry.action == "request.approve"

    @pytest.mark.anyio
    async def test_failed_audit_commit_is_rolled_back_and_swallowed(self) -> None:
        audit_session = _side_session(fail=True)
        service = AuditService(AuditLogRepository(MagicMock(return_value=audit_session)))

        await service.log("invitation.create", "invitation", uuid.uuid4())

        audit_session.rollback.assert_awaited_once()
        audit_session.refresh.assert_not_called()
