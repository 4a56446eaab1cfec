"""Static role hierarchy and grant table, loaded once from configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from turnstile_core.rbac.models import Action, Grant, Possession, RoleDefinition

logger = logging.getLogger(__name__)


class PolicyError(ValueError):
    """Raised when a policy file or mapping cannot be turned into a hierarchy."""


class RoleHierarchy:
    """Immutable role -> grants table with role inheritance.

    Roles may extend other roles; the graph must be acyclic. Lookups never
    mutate state, so one instance is shared by every request.
    """

    def __init__(
        self,
        roles: Mapping[str, RoleDefinition] | Iterable[RoleDefinition],
        any_implies_own: bool = False,
    ) -> None:
        if isinstance(roles, Mapping):
            roles = roles.values()
        table: dict[str, RoleDefinition] = {}
        for role in roles:
            if role.name in table:
                raise PolicyError(f"Duplicate role: {role.name!r}")
            table[role.name] = role
        self._roles = table
        self._any_implies_own = any_implies_own
        self._validate()

    # -- construction ----------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], any_implies_own: bool = False) -> RoleHierarchy:
        """Load ``{"roles": {name: {"extends": [...], "grants": [...]}}}``."""
        raw_roles = data.get("roles")
        if not isinstance(raw_roles, Mapping):
            raise PolicyError("Policy must contain a 'roles' mapping")
        definitions = []
        for name, body in raw_roles.items():
            body = body or {}
            parents = body.get("extends") or ()
            if isinstance(parents, str):
                parents = (parents,)
            try:
                definitions.append(
                    RoleDefinition(
                        name=name,
                        extends=tuple(parents),
                        grants=tuple(body.get("grants") or ()),
                    )
                )
            except ValidationError as e:
                raise PolicyError(f"Invalid role {name!r}: {e}") from e
        return cls(definitions, any_implies_own=any_implies_own)

    @classmethod
    def from_grant_list(
        cls, rows: Iterable[Mapping[str, Any]], any_implies_own: bool = False
    ) -> RoleHierarchy:
        """Load a flat ``[{role, resource, action: "read:any", attributes}]`` list.

        This is the ``grants.json`` layout used by accesscontrol-style tools.
        Rows whose ``action`` carries no possession default to ``any``.
        """
        grants: dict[str, list[Grant]] = {}
        extends: dict[str, list[str]] = {}
        for i, row in enumerate(rows):
            role = row.get("role")
            if not role:
                raise PolicyError(f"Grant row {i} has no role")
            if "$extend" in row:
                extends.setdefault(role, []).extend(row["$extend"])
                grants.setdefault(role, [])
                continue
            action, _, possession = str(row.get("action", "")).partition(":")
            try:
                grant = Grant(
                    resource=row.get("resource", ""),
                    action=action,
                    possession=row.get("possession") or possession or Possession.any,
                    attributes=row.get("attributes", "*"),
                )
            except ValidationError as e:
                raise PolicyError(f"Invalid grant row {i} for role {role!r}: {e}") from e
            grants.setdefault(role, []).append(grant)

        definitions = [
            RoleDefinition(name=name, extends=tuple(extends.get(name, ())), grants=tuple(role_grants))
            for name, role_grants in grants.items()
        ]
        return cls(definitions, any_implies_own=any_implies_own)

    # -- validation ------------------------------------------------------------

    def _validate(self) -> None:
        for role in self._roles.values():
            for parent in role.extends:
                if parent not in self._roles:
                    raise PolicyError(f"Role {role.name!r} extends unknown role {parent!r}")

        # Depth-first search with an explicit path stack to report the cycle.
        done: set[str] = set()

        def visit(name: str, path: list[str]) -> None:
            if name in path:
                cycle = " -> ".join([*path[path.index(name):], name])
                raise PolicyError(f"Role inheritance cycle: {cycle}")
            if name in done:
                return
            path.append(name)
            for parent in self._roles[name].extends:
                visit(parent, path)
            path.pop()
            done.add(name)

        for name in self._roles:
            visit(name, [])

    # -- lookups ---------------------------------------------------------------

    @property
    def any_implies_own(self) -> bool:
        return self._any_implies_own

    @property
    def role_names(self) -> list[str]:
        return list(self._roles)

    def get(self, name: str) -> RoleDefinition | None:
        return self._roles.get(name)

    def closure(self, roles: Iterable[str]) -> frozenset[str]:
        """Every known role reachable from ``roles`` through ``extends``."""
        seen: set[str] = set()
        stack = list(roles)
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            role = self._roles.get(name)
            if role is None:
                logger.debug("Ignoring unknown role %r", name)
                continue
            seen.add(name)
            stack.extend(role.extends)
        return frozenset(seen)

    def grants_for(
        self,
        roles: Iterable[str],
        resource: str,
        action: Action,
        possession: Possession,
    ) -> list[Grant]:
        """Grants in the closure of ``roles`` matching the query."""
        possessions = {possession}
        if self._any_implies_own and possession == Possession.own:
            possessions.add(Possession.any)

        matched = []
        for name in sorted(self.closure(roles)):
            for grant in self._roles[name].grants:
                if any(grant.matches(resource, action, p) for p in possessions):
                    matched.append(grant)
        return matched

    def to_mapping(self) -> dict[str, Any]:
        return {
            "roles": {
                name: {
                    "extends": list(role.extends),
                    "grants": [g.model_dump(mode="json") for g in role.grants],
                }
                for name, role in self._roles.items()
            }
        }


def load_policy(path: str | Path, any_implies_own: bool = False) -> RoleHierarchy:
    """Read a YAML or JSON policy file in either the nested or flat layout."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise PolicyError(f"Cannot read policy file {path}: {e}") from e

    try:
        if path.suffix == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise PolicyError(f"Invalid policy syntax in {path}: {e}") from e

    if isinstance(raw, list):
        hierarchy = RoleHierarchy.from_grant_list(raw, any_implies_own=any_implies_own)
    elif isinstance(raw, Mapping):
        hierarchy = RoleHierarchy.from_mapping(raw, any_implies_own=any_implies_own)
    else:
        raise PolicyError(f"Policy file {path} must hold a mapping or a list of grants")

    logger.info("Loaded %d roles from %s", len(hierarchy.role_names), path)
    return hierarchy


def default_policy(
    resources: Iterable[str] = ("Event", "Location"), any_implies_own: bool = False
) -> RoleHierarchy:
    """Built-in policy: ``user`` may do anything, ``admin`` extends ``user``.

    Every action is granted for both ``any`` and ``own``.
    """
    grants = tuple(
        Grant(resource=resource, action=action, possession=possession)
        for resource in resources
        for action in Action
        for possession in Possession
    )
    return RoleHierarchy(
        [
            RoleDefinition(name="user", grants=grants),
            RoleDefinition(name="admin", extends=("user",)),
        ],
        any_implies_own=any_implies_own,
    )
