from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..domain.permissions import Action, AdminPage

T = TypeVar("T")


class CamelModel(BaseModel):
    """Wire models use camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None
    message: str | None = None


class PagePermissionEntry(CamelModel):
    page: AdminPage
    permissions: list[Action]


def to_page_permissions(
    entries: list[PagePermissionEntry],
) -> dict[AdminPage, frozenset[Action]]:
    merged: dict[AdminPage, set[Action]] = {}
    for entry in entries:
        merged.setdefault(entry.page, set()).update(entry.permissions)
    return {page: frozenset(actions) for page, actions in merged.items()}
