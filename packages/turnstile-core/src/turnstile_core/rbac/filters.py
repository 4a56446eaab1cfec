"""Apply a resolved Permission to inbound payloads and outbound objects."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from turnstile_core.rbac.models import Permission


def invalid_attributes(permission: Permission, payload: Mapping[str, Any]) -> list[str]:
    """Keys of ``payload`` the permission does not allow, in payload order.

    Only top-level keys are checked; a relation value such as
    ``{"location": {"id": "l1"}}`` is judged by ``location`` alone.
    """
    if permission.attributes.unrestricted:
        return []
    return [key for key in payload if not permission.attributes.allows(key)]


def filter_object(permission: Permission, obj: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    """Shallow copy of ``obj`` holding only the attributes the permission allows."""
    data = obj.model_dump() if isinstance(obj, BaseModel) else obj
    if permission.attributes.unrestricted:
        return dict(data)
    return {key: value for key, value in data.items() if permission.attributes.allows(key)}
