"""Per-operation access requirements, declared as data."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from turnstile_core.rbac.models import Action, Possession


class OperationPolicy(BaseModel):
    """The (action, possession) an operation must be granted on its resource."""

    model_config = ConfigDict(frozen=True)

    action: Action
    possession: Possession


OPERATION_POLICIES: dict[str, OperationPolicy] = {
    "find_many": OperationPolicy(action=Action.read, possession=Possession.any),
    "find_one": OperationPolicy(action=Action.read, possession=Possession.own),
    "create": OperationPolicy(action=Action.create, possession=Possession.any),
    "update": OperationPolicy(action=Action.update, possession=Possession.any),
    "delete": OperationPolicy(action=Action.delete, possession=Possession.any),
    # Evaluated against the related resource, not the parent.
    "resolve_relation": OperationPolicy(action=Action.read, possession=Possession.any),
}
