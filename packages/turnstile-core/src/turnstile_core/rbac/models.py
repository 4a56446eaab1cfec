"""Pydantic models for roles, grants, and resolved permissions."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Action(str, Enum):
    """CRUD verbs a grant can cover."""

    create = "create"
    read = "read"
    update = "update"
    delete = "delete"


class Possession(str, Enum):
    """Whether a grant covers any record or only the caller's own."""

    own = "own"
    any = "any"


ALL_ATTRIBUTES = "*"


class AttributeScope(BaseModel):
    """Set of attribute names a permission covers.

    Either an explicit allow-list (``mode="allow"``) or everything except a
    deny-list (``mode="all_except"``). The complement form is what lets
    ``["*", "!secret"]`` be expressed without knowing every attribute of the
    resource up front.
    """

    model_config = ConfigDict(frozen=True)

    mode: Literal["allow", "all_except"] = "allow"
    names: frozenset[str] = frozenset()

    @classmethod
    def nothing(cls) -> AttributeScope:
        return cls(mode="allow", names=frozenset())

    @classmethod
    def everything(cls) -> AttributeScope:
        return cls(mode="all_except", names=frozenset())

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> AttributeScope:
        """Build a scope from ``*``, ``name`` and ``!name`` patterns.

        Denials win over allowances of the same name.
        """
        star = False
        allowed: set[str] = set()
        denied: set[str] = set()
        for pattern in patterns:
            pattern = pattern.strip()
            if not pattern:
                continue
            if pattern == ALL_ATTRIBUTES:
                star = True
            elif pattern.startswith("!"):
                denied.add(pattern[1:])
            else:
                allowed.add(pattern)
        if star:
            return cls(mode="all_except", names=frozenset(denied))
        return cls(mode="allow", names=frozenset(allowed - denied))

    @property
    def unrestricted(self) -> bool:
        return self.mode == "all_except" and not self.names

    def allows(self, name: str) -> bool:
        if self.mode == "allow":
            return name in self.names
        return name not in self.names

    def union(self, other: AttributeScope) -> AttributeScope:
        """Return the smallest scope covering both ``self`` and ``other``."""
        if self.mode == "allow" and other.mode == "allow":
            return AttributeScope(mode="allow", names=self.names | other.names)
        if self.mode == "all_except" and other.mode == "all_except":
            return AttributeScope(mode="all_except", names=self.names & other.names)
        excluded, included = (
            (self, other) if self.mode == "all_except" else (other, self)
        )
        return AttributeScope(mode="all_except", names=excluded.names - included.names)

    def describe(self) -> str:
        if self.unrestricted:
            return ALL_ATTRIBUTES
        if self.mode == "all_except":
            return ", ".join([ALL_ATTRIBUTES, *(f"!{n}" for n in sorted(self.names))])
        return ", ".join(sorted(self.names)) or "(none)"


class Grant(BaseModel):
    """A single rule binding (resource, action, possession) to attribute patterns."""

    model_config = ConfigDict(frozen=True)

    resource: str = Field(min_length=1)
    action: Action
    possession: Possession = Possession.any
    attributes: tuple[str, ...] = (ALL_ATTRIBUTES,)

    @field_validator("attributes", mode="before")
    @classmethod
    def split_attributes(cls, v: Any) -> Any:
        # "title, description" and "*" are accepted alongside lists
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v

    @property
    def scope(self) -> AttributeScope:
        return AttributeScope.from_patterns(self.attributes)

    def matches(self, resource: str, action: Action, possession: Possession) -> bool:
        return (
            self.resource == resource
            and self.action == action
            and self.possession == possession
        )


class RoleDefinition(BaseModel):
    """A named bundle of grants, optionally extending other roles."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    extends: tuple[str, ...] = ()
    grants: tuple[Grant, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("role name cannot be empty or whitespace")
        return v


class Permission(BaseModel):
    """Outcome of resolving one (roles, resource, action, possession) query.

    Created per call and discarded afterwards.
    """

    model_config = ConfigDict(frozen=True)

    granted: bool
    roles: frozenset[str]
    resource: str
    action: Action
    possession: Possession
    attributes: AttributeScope = Field(default_factory=AttributeScope.nothing)

    @property
    def unrestricted(self) -> bool:
        return self.granted and self.attributes.unrestricted

    def allows(self, attribute: str) -> bool:
        return self.granted and self.attributes.allows(attribute)

    def filter(self, obj: Any) -> dict[str, Any]:
        """Shortcut for :func:`turnstile_core.rbac.filters.filter_object`."""
        from turnstile_core.rbac.filters import filter_object

        return filter_object(self, obj)
