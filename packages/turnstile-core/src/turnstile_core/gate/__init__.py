"""Per-operation access-control orchestration."""

from turnstile_core.gate.errors import (
    AccessError,
    ForbiddenAttributes,
    PermissionDenied,
    RelationUnavailable,
    ResourceNotFound,
)
from turnstile_core.gate.gate import OperationGate, build_gates
from turnstile_core.gate.policies import OPERATION_POLICIES, OperationPolicy

__all__ = [
    "AccessError",
    "ForbiddenAttributes",
    "OPERATION_POLICIES",
    "OperationGate",
    "OperationPolicy",
    "PermissionDenied",
    "RelationUnavailable",
    "ResourceNotFound",
    "build_gates",
]
