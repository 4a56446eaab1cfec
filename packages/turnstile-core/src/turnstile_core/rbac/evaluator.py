"""Resolve a caller's roles into a single effective Permission."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from turnstile_core.rbac.hierarchy import RoleHierarchy
from turnstile_core.rbac.models import Action, AttributeScope, Permission, Possession

logger = logging.getLogger(__name__)


class PermissionEvaluator:
    """Pure permission resolution over a shared, read-only RoleHierarchy."""

    def __init__(self, hierarchy: RoleHierarchy) -> None:
        self._hierarchy = hierarchy

    @property
    def hierarchy(self) -> RoleHierarchy:
        return self._hierarchy

    def resolve(
        self,
        roles: Iterable[str],
        resource: str,
        action: Action | str,
        possession: Possession | str,
    ) -> Permission:
        """Resolve ``roles`` against (resource, action, possession).

        Grants from every role in the inheritance closure are considered.
        The attribute scope is the union of the matched grants' scopes, so
        the result does not depend on the order roles or grants appear in.
        """
        action = Action(action)
        possession = Possession(possession)
        roles = frozenset(roles)

        grants = self._hierarchy.grants_for(roles, resource, action, possession)
        if not grants:
            logger.debug(
                "Denied %s:%s on %s for roles %s", action.value, possession.value, resource, sorted(roles)
            )
            return Permission(
                granted=False,
                roles=roles,
                resource=resource,
                action=action,
                possession=possession,
                attributes=AttributeScope.nothing(),
            )

        scope = AttributeScope.nothing()
        for grant in grants:
            scope = scope.union(grant.scope)
            if scope.unrestricted:
                break

        logger.debug(
            "Granted %s:%s on %s for roles %s (attributes: %s)",
            action.value,
            possession.value,
            resource,
            sorted(roles),
            scope.describe(),
        )
        return Permission(
            granted=True,
            roles=roles,
            resource=resource,
            action=action,
            possession=possession,
            attributes=scope,
        )
