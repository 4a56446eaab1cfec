"""Shared test fixtures for Turnstile."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from turnstile_core.config.models import TurnstileConfig
from turnstile_core.interfaces.store import ResourceStore
from turnstile_core.rbac import PermissionEvaluator, RoleHierarchy


SAMPLE_POLICY = {
    "roles": {
        "viewer": {
            "grants": [
                {"resource": "Location", "action": "read", "possession": "any", "attributes": ["name"]},
            ],
        },
        "user": {
            "grants": [
                {"resource": "Event", "action": "create", "possession": "any", "attributes": ["title"]},
                {"resource": "Event", "action": "update", "possession": "any", "attributes": ["title", "location"]},
                {"resource": "Event", "action": "read", "possession": "own", "attributes": ["id", "title"]},
                {"resource": "Event", "action": "read", "possession": "any", "attributes": ["id", "title"]},
            ],
        },
        "editor": {
            "extends": ["user"],
            "grants": [
                {"resource": "Event", "action": "read", "possession": "any", "attributes": ["description"]},
            ],
        },
        "admin": {
            "extends": ["editor", "viewer"],
            "grants": [
                {"resource": "Event", "action": "create", "possession": "any", "attributes": "*"},
                {"resource": "Event", "action": "read", "possession": "any", "attributes": "*"},
                {"resource": "Event", "action": "read", "possession": "own", "attributes": "*"},
                {"resource": "Event", "action": "update", "possession": "any", "attributes": "*"},
                {"resource": "Event", "action": "delete", "possession": "any", "attributes": "*"},
                {"resource": "Location", "action": "read", "possession": "any", "attributes": "*"},
            ],
        },
    }
}


@pytest.fixture
def hierarchy() -> RoleHierarchy:
    return RoleHierarchy.from_mapping(SAMPLE_POLICY)


@pytest.fixture
def evaluator(hierarchy) -> PermissionEvaluator:
    return PermissionEvaluator(hierarchy)


@pytest.fixture
def sample_event():
    return {
        "id": "e1",
        "created_at": "2025-01-01T00:00:00+00:00",
        "updated_at": "2025-01-01T00:00:00+00:00",
        "title": "Launch",
        "description": "Product launch",
        "owner_id": "u1",
        "location_id": "l1",
    }


@pytest.fixture
def sample_location():
    return {"id": "l1", "name": "HQ", "address": "1 Main St", "capacity": 120}


@pytest.fixture
def mock_store(sample_event, sample_location):
    store = MagicMock(spec=ResourceStore)
    store.find_many = AsyncMock(return_value=[sample_event])
    store.find_one = AsyncMock(return_value=sample_event)
    store.create = AsyncMock(side_effect=lambda resource, data: {"id": "new", **data})
    store.update = AsyncMock(side_effect=lambda resource, where, data: {**where, **data})
    store.delete = AsyncMock(return_value=sample_event)
    store.find_related = AsyncMock(return_value=sample_location)
    return store


@pytest.fixture
def sample_config():
    return TurnstileConfig()
