"""Pages, actions and per-page permission sets.

Permission sets are persisted as an ordered list of
``{"page": ..., "permissions": [...]}`` entries and handled in memory as a
mapping keyed by page.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

logger = logging.getLogger("portfolio.permissions")


class AdminPage(str, Enum):
    DASHBOARD = "dashboard"
    PROFILE = "profile"
    ABOUT = "about"
    SKILLS = "skills"
    PROJECTS = "projects"
    EDUCATION = "education"
    EXPERIENCE = "experience"
    FAQS = "faqs"
    MESSAGES = "messages"


class Action(str, Enum):
    VIEW = "VIEW"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Actions a delegate may perform without core admin sign-off.
DIRECT_ACTIONS = frozenset({Action.VIEW, Action.CREATE})
ALL_ACTIONS = frozenset(Action)

PagePermissions = Mapping[AdminPage, frozenset[Action]]

DEFAULT_VIEW_PERMISSIONS: dict[AdminPage, frozenset[Action]] = {
    page: frozenset({Action.VIEW}) for page in AdminPage
}
FULL_PERMISSIONS: dict[AdminPage, frozenset[Action]] = {
    page: ALL_ACTIONS for page in AdminPage
}


def parse_page_permissions(
    entries: Iterable[Mapping[str, Any]] | None,
) -> dict[AdminPage, frozenset[Action]]:
    """Build a page-keyed mapping from stored permission entries.

    Unknown pages and actions are dropped. Repeated pages are merged.
    """
    result: dict[AdminPage, frozenset[Action]] = {}
    for entry in entries or ():
        try:
            page = AdminPage(entry.get("page"))
        except ValueError:
            logger.warning("Ignoring permission entry for unknown page %r", entry.get("page"))
            continue
        actions: set[Action] = set(result.get(page, frozenset()))
        for raw_action in entry.get("permissions") or ():
            try:
                actions.add(Action(raw_action))
            except ValueError:
                logger.warning("Ignoring unknown action %r on page %s", raw_action, page.value)
        result[page] = frozenset(actions)
    return result


def dump_page_permissions(permissions: PagePermissions) -> list[dict[str, Any]]:
    """Serialize a page mapping back to the stored list form.

    Actions are written in VIEW, CREATE, UPDATE, DELETE order so stored
    documents are stable.
    """
    return [
        {
            "page": page.value,
            "permissions": [action.value for action in Action if action in actions],
        }
        for page, actions in permissions.items()
    ]
