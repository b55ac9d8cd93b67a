import pytest

from portfolio_api.auth.resolver import AuthorizationResolver
from portfolio_api.domain.errors import InvalidCredentialError, MissingCredentialError
from portfolio_api.domain.permissions import Action, AdminPage
from portfolio_api.domain.roles import (
    CoreAdministrator,
    DelegatedAdministrator,
    Identity,
    Unauthorized,
)

from tests.fakes import NOW, FakeClock, FakeIdentityVerifier, FakeSubAdmin, FakeSubAdminRepository

CORE_EMAIL = "Owner@Example.com"


def make_resolver(*profiles: FakeSubAdmin, **identities: Identity):
    sub_admins = FakeSubAdminRepository(*profiles)
    resolver = AuthorizationResolver(
        FakeIdentityVerifier(identities),
        sub_admins,
        core_admin_email=CORE_EMAIL,
        clock=FakeClock(),
    )
    return resolver, sub_admins


@pytest.mark.anyio
@pytest.mark.parametrize("credential", [None, ""])
async def test_missing_credential_is_rejected(credential) -> None:
    resolver, _ = make_resolver()

    with pytest.raises(MissingCredentialError):
        await resolver.resolve(credential)


@pytest.mark.anyio
async def test_invalid_credential_is_rejected() -> None:
    resolver, _ = make_resolver()

    with pytest.raises(InvalidCredentialError):
        await resolver.resolve("forged")


@pytest.mark.anyio
async def test_core_email_matches_case_insensitively() -> None:
    resolver, _ = make_resolver(owner=Identity("owner-uid", " OWNER@example.COM "))

    role = await resolver.resolve("owner")

    assert isinstance(role, CoreAdministrator)


@pytest.mark.anyio
async def test_active_delegate_gets_parsed_permissions_and_login_recorded() -> None:
    profile = FakeSubAdmin(
        email="helper@example.com",
        page_permissions=[{"page": "projects", "permissions": ["VIEW", "UPDATE"]}],
    )
    resolver, sub_admins = make_resolver(
        profile, helper=Identity("helper-uid", "Helper@Example.com")
    )

    role = await resolver.resolve("helper")

    assert isinstance(role, DelegatedAdministrator)
    assert role.profile is profile
    assert role.can(AdminPage.PROJECTS, Action.UPDATE)
    assert not role.can(AdminPage.PROJECTS, Action.DELETE)
    assert sub_admins.logins == [(profile.id, "helper-uid", NOW)]
    assert profile.uid == "helper-uid"


@pytest.mark.anyio
async def test_disabled_delegate_is_unauthorized() -> None:
    profile = FakeSubAdmin(email="helper@example.com", is_active=False)
    resolver, sub_admins = make_resolver(profile, helper=Identity("helper-uid", "helper@example.com"))

    role = await resolver.resolve("helper")

    assert isinstance(role, Unauthorized)
    assert sub_admins.logins == []


@pytest.mark.anyio
async def test_unknown_or_missing_email_is_unauthorized() -> None:
    resolver, _ = make_resolver(
        stranger=Identity("s-uid", "stranger@example.com"),
        anonymous=Identity("a-uid", None),
    )

    assert isinstance(await resolver.resolve("stranger"), Unauthorized)
    assert isinstance(await resolver.resolve("anonymous"), Unauthorized)


@pytest.mark.anyio
async def test_failed_login_bookkeeping_does_not_block_resolution() -> None:
    profile = FakeSubAdmin(email="helper@example.com")
    resolver, sub_admins = make_resolver(profile, helper=Identity("helper-uid", "helper@example.com"))
    sub_admins.fail_record_login = True

    role = await resolver.resolve("helper")

    assert isinstance(role, DelegatedAdministrator)
