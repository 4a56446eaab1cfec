"""Authorize, validate, dispatch, and filter one CRUD or relation operation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from turnstile_core.gate.errors import (
    ForbiddenAttributes,
    PermissionDenied,
    RelationUnavailable,
    ResourceNotFound,
)
from turnstile_core.gate.policies import OPERATION_POLICIES, OperationPolicy
from turnstile_core.interfaces.store import (
    FindManyArgs,
    Record,
    ResourceStore,
    is_record_not_found,
)
from turnstile_core.rbac.evaluator import PermissionEvaluator
from turnstile_core.rbac.filters import filter_object, invalid_attributes
from turnstile_core.rbac.models import Permission
from turnstile_core.resources.models import RESOURCES, ResourceDescriptor

logger = logging.getLogger(__name__)


def _role_list(roles: Iterable[str]) -> list[str]:
    """Caller roles in a stable order for error messages."""
    if isinstance(roles, (list, tuple)):
        return list(dict.fromkeys(roles))
    return sorted(roles)


class OperationGate:
    """Access-controlled CRUD over one resource type.

    Every call resolves a fresh Permission from the caller's roles before any
    store I/O. Reads are filtered per record; writes are rejected outright if
    the payload names a forbidden attribute. Roles are always passed in by
    the caller so the gate holds no per-request state.
    """

    def __init__(
        self,
        evaluator: PermissionEvaluator,
        store: ResourceStore,
        descriptor: ResourceDescriptor,
        is_not_found: Callable[[BaseException], bool] = is_record_not_found,
        policies: Mapping[str, OperationPolicy] = OPERATION_POLICIES,
    ) -> None:
        self._evaluator = evaluator
        self._store = store
        self._descriptor = descriptor
        self._is_not_found = is_not_found
        self._policies = policies

    @property
    def resource(self) -> str:
        return self._descriptor.name

    # -- helpers ---------------------------------------------------------------

    def _authorize(self, operation: str, roles: Iterable[str], resource: str | None = None) -> Permission:
        policy = self._policies[operation]
        resource = resource or self.resource
        roles = _role_list(roles)
        permission = self._evaluator.resolve(roles, resource, policy.action, policy.possession)
        if not permission.granted:
            logger.info(
                "Rejected %s on %s: %s:%s not granted",
                operation,
                resource,
                policy.action.value,
                policy.possession.value,
            )
            raise PermissionDenied(resource, policy.action.value, policy.possession.value, roles)
        return permission

    def _check_payload(
        self, permission: Permission, roles: list[str], data: Mapping[str, Any]
    ) -> None:
        forbidden = invalid_attributes(permission, data)
        if forbidden:
            logger.info(
                "Rejected %s on %s: forbidden attributes %s",
                permission.action.value,
                self.resource,
                forbidden,
            )
            raise ForbiddenAttributes(self.resource, permission.action.value, forbidden, roles)

    def _connect_relations(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Rewrite relation selectors into the store's connect shape.

        A relation given as ``None`` is dropped, same as when it is absent.
        """
        translated = dict(data)
        for name in self._descriptor.relation_names:
            if name not in translated:
                continue
            selector = translated.pop(name)
            if selector is not None:
                translated[name] = {"connect": selector}
        return translated

    # -- operations ------------------------------------------------------------

    async def find_many(self, roles: Iterable[str], args: FindManyArgs | None = None) -> list[Record]:
        permission = self._authorize("find_many", roles)
        results = await self._store.find_many(self.resource, args or FindManyArgs())
        return [filter_object(permission, result) for result in results]

    async def find_one(self, roles: Iterable[str], where: dict[str, Any]) -> Record | None:
        permission = self._authorize("find_one", roles)
        result = await self._store.find_one(self.resource, where)
        if result is None:
            return None
        return filter_object(permission, result)

    async def create(self, roles: Iterable[str], data: Mapping[str, Any]) -> Record:
        # The created record is returned unfiltered.
        roles = _role_list(roles)
        permission = self._authorize("create", roles)
        self._check_payload(permission, roles, data)
        return await self._store.create(self.resource, self._connect_relations(data))

    async def update(
        self, roles: Iterable[str], where: dict[str, Any], data: Mapping[str, Any]
    ) -> Record:
        roles = _role_list(roles)
        permission = self._authorize("update", roles)
        self._check_payload(permission, roles, data)
        try:
            return await self._store.update(self.resource, where, self._connect_relations(data))
        except Exception as e:
            if self._is_not_found(e):
                raise ResourceNotFound(where) from e
            raise

    async def delete(self, roles: Iterable[str], where: dict[str, Any]) -> Record:
        self._authorize("delete", roles)
        try:
            return await self._store.delete(self.resource, where)
        except Exception as e:
            if self._is_not_found(e):
                raise ResourceNotFound(where) from e
            raise

    async def resolve_relation(
        self, roles: Iterable[str], parent: Mapping[str, Any], relation: str
    ) -> Record | None:
        """Fetch and filter the record ``parent`` links to through ``relation``.

        The permission is resolved on the related resource independently of
        whatever the caller may do with the parent.
        """
        target = self._descriptor.relation(relation).target
        permission = self._authorize("resolve_relation", roles, resource=target)
        if parent.get("id") is None:
            raise RelationUnavailable(self.resource, relation)
        result = await self._store.find_related(self.resource, {"id": parent["id"]}, relation)
        if not result:
            return None
        return filter_object(permission, result)


def build_gates(
    evaluator: PermissionEvaluator,
    store: ResourceStore,
    resources: Mapping[str, ResourceDescriptor] = RESOURCES,
    is_not_found: Callable[[BaseException], bool] = is_record_not_found,
) -> dict[str, OperationGate]:
    """One gate per resource type, keyed by resource name."""
    return {
        name: OperationGate(evaluator, store, descriptor, is_not_found=is_not_found)
        for name, descriptor in resources.items()
    }
