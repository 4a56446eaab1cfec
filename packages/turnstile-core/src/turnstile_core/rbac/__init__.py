"""Role hierarchy, permission resolution, and attribute filtering."""

from turnstile_core.rbac.evaluator import PermissionEvaluator
from turnstile_core.rbac.filters import filter_object, invalid_attributes
from turnstile_core.rbac.hierarchy import PolicyError, RoleHierarchy, default_policy, load_policy
from turnstile_core.rbac.models import (
    ALL_ATTRIBUTES,
    Action,
    AttributeScope,
    Grant,
    Permission,
    Possession,
    RoleDefinition,
)

__all__ = [
    "ALL_ATTRIBUTES",
    "Action",
    "AttributeScope",
    "Grant",
    "Permission",
    "PermissionEvaluator",
    "PolicyError",
    "Possession",
    "RoleDefinition",
    "RoleHierarchy",
    "default_policy",
    "filter_object",
    "invalid_attributes",
    "load_policy",
]
