"""Data-access collaborator interface and models."""

from __future__ import annotations

import json
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

Record = dict[str, Any]

# Prisma's "record to update/delete not found" error code, kept so stores
# that mirror Prisma error shapes are classified without subclassing.
RECORD_NOT_FOUND_CODE = "P2025"


class RecordNotFoundError(Exception):
    """Raised by a store when the selector of an update or delete matches nothing."""

    code = RECORD_NOT_FOUND_CODE

    def __init__(self, resource: str, where: dict[str, Any]) -> None:
        self.resource = resource
        self.where = where
        super().__init__(f"{resource} record not found for {json.dumps(where, default=str)}")


def is_record_not_found(error: BaseException) -> bool:
    """True if ``error`` reports a missing update/delete target."""
    if isinstance(error, RecordNotFoundError):
        return True
    return getattr(error, "code", None) == RECORD_NOT_FOUND_CODE


class FindManyArgs(BaseModel):
    """Arguments for listing records: equality filter, ordering, and paging."""

    model_config = ConfigDict(frozen=True)

    where: dict[str, Any] = Field(default_factory=dict)
    order_by: dict[str, Literal["asc", "desc"]] = Field(default_factory=dict)
    skip: int | None = Field(default=None, ge=0)
    take: int | None = Field(default=None, ge=0)


@runtime_checkable
class ResourceStore(Protocol):
    """Async persistence backend shared by every resource type.

    ``where`` selectors are unique lookups such as ``{"id": "..."}``. Relation
    fields in ``data`` arrive as ``{"connect": selector}``.
    """

    async def find_many(self, resource: str, args: FindManyArgs) -> list[Record]: ...

    async def find_one(self, resource: str, where: dict[str, Any]) -> Record | None: ...

    async def create(self, resource: str, data: dict[str, Any]) -> Record: ...

    async def update(self, resource: str, where: dict[str, Any], data: dict[str, Any]) -> Record: ...

    async def delete(self, resource: str, where: dict[str, Any]) -> Record: ...

    async def find_related(
        self, resource: str, where: dict[str, Any], relation: str
    ) -> Record | None: ...
