"""Typed rejections raised by the operation gate."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any


def _quoted(values: Iterable[str], sep: str) -> str:
    return sep.join(json.dumps(v) for v in values)


class AccessError(Exception):
    """Base class for every rejection the gate raises."""


class PermissionDenied(AccessError):
    """No grant covers the requested (resource, action, possession)."""

    def __init__(self, resource: str, action: str, possession: str, roles: Iterable[str]) -> None:
        self.resource = resource
        self.action = action
        self.possession = possession
        self.roles = list(roles)
        super().__init__(
            f"Forbidden resource: {action}:{possession} on {resource} "
            f"is not granted for roles: {_quoted(self.roles, ',') or '(none)'}"
        )


class ForbiddenAttributes(AccessError):
    """A write payload names attributes outside the caller's grant."""

    _NOUNS = {"create": "creation", "update": "update"}

    def __init__(
        self, resource: str, action: str, attributes: Iterable[str], roles: Iterable[str]
    ) -> None:
        self.resource = resource
        self.action = action
        self.attributes = list(attributes)
        self.roles = list(roles)
        noun = self._NOUNS.get(action, action)
        super().__init__(
            f"providing the properties: {_quoted(self.attributes, ', ')} on {resource} "
            f"{noun} is forbidden for roles: {_quoted(self.roles, ',')}"
        )


class ResourceNotFound(AccessError):
    """The selector of an update or delete matched no record."""

    def __init__(self, where: dict[str, Any]) -> None:
        self.where = where
        super().__init__(
            f"No resource was found for {json.dumps(where, separators=(',', ':'), default=str)}"
        )


class RelationUnavailable(AccessError):
    """A relation was requested on a parent record that carries no ``id``.

    Happens when the caller's read grant hides ``id`` on the parent.
    """

    def __init__(self, resource: str, relation: str) -> None:
        self.resource = resource
        self.relation = relation
        super().__init__(f"Cannot resolve {resource}.{relation} without a parent id")
