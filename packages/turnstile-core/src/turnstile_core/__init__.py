"""Turnstile Core - role and attribute based access control for CRUD operations."""

from turnstile_core.config import TurnstileConfig, load_config, load_hierarchy
from turnstile_core.gate import (
    AccessError,
    ForbiddenAttributes,
    OperationGate,
    PermissionDenied,
    RelationUnavailable,
    ResourceNotFound,
    build_gates,
)
from turnstile_core.interfaces import FindManyArgs, RecordNotFoundError, ResourceStore
from turnstile_core.rbac import (
    Action,
    Permission,
    PermissionEvaluator,
    Possession,
    RoleHierarchy,
    filter_object,
    invalid_attributes,
)
from turnstile_core.resources import EVENT, LOCATION, RESOURCES

__version__ = "0.1.0"

__all__ = [
    "EVENT",
    "LOCATION",
    "RESOURCES",
    "AccessError",
    "Action",
    "FindManyArgs",
    "ForbiddenAttributes",
    "OperationGate",
    "Permission",
    "PermissionDenied",
    "RelationUnavailable",
    "PermissionEvaluator",
    "Possession",
    "RecordNotFoundError",
    "ResourceNotFound",
    "ResourceStore",
    "RoleHierarchy",
    "TurnstileConfig",
    "build_gates",
    "filter_object",
    "invalid_attributes",
    "load_config",
    "load_hierarchy",
]
