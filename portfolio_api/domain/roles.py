from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .permissions import AdminPage, Action, PagePermissions


@dataclass(frozen=True)
class Identity:
    """Verified caller identity as reported by the identity provider."""

    subject_id: str
    email: str | None
    name: str | None = None
    picture: str | None = None

    @property
    def normalized_email(self) -> str:
        return (self.email or "").strip().lower()


@dataclass(frozen=True)
class CoreAdministrator:
    identity: Identity


@dataclass(frozen=True)
class DelegatedAdministrator:
    identity: Identity
    profile: Any
    permissions: PagePermissions = field(default_factory=dict)

    def can(self, page: AdminPage, action: Action) -> bool:
        return action in self.permissions.get(page, frozenset())


@dataclass(frozen=True)
class Unauthorized:
    identity: Identity


AdministratorRole = Union[CoreAdministrator, DelegatedAdministrator, Unauthorized]
