"""Permission decisions for administrator roles.

``decide`` is pure: it inspects the resolved role and never touches storage.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .permissions import DIRECT_ACTIONS, Action, AdminPage
from .roles import AdministratorRole, CoreAdministrator, DelegatedAdministrator


NO_PERMISSIONS_MESSAGE = "Access denied. No permissions found."


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    message: str
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class RequiresApproval:
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Enqueued:
    pending_request_id: str
    pending_request: Any = None


Decision = Union[Allow, Deny, RequiresApproval]


def view_denied_message(page: AdminPage) -> str:
    return f"Access denied. You do not have permission to view {page.value}."


def write_denied_message(action: Action) -> str:
    return f"You don't have {action.value} permission for this page."


def approval_required_message(action: Action) -> str:
    return (
        f"You have {action.value} permission, but changes require core admin "
        "approval. Please submit a request."
    )


def decide(role: AdministratorRole, page: AdminPage, action: Action) -> Decision:
    if isinstance(role, CoreAdministrator):
        return Allow()

    if not isinstance(role, DelegatedAdministrator):
        return Deny(NO_PERMISSIONS_MESSAGE)

    if not role.can(page, action):
        if action is Action.VIEW:
            return Deny(view_denied_message(page))
        return Deny(
            write_denied_message(action),
            {"requiresApproval": True, "page": page.value, "action": action.value},
        )

    if action in DIRECT_ACTIONS:
        return Allow()

    return RequiresApproval(
        approval_required_message(action),
        {
            "requiresApproval": True,
            "page": page.value,
            "action": action.value,
            "hasPermission": True,
        },
    )
