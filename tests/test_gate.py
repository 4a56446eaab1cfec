"""Tests for OperationGate: authorization order, filtering, and error translation."""

from __future__ import annotations

import re
from unittest.mock import AsyncMock

import pytest

from turnstile_core.gate import (
    OPERATION_POLICIES,
    AccessError,
    ForbiddenAttributes,
    OperationGate,
    PermissionDenied,
    RelationUnavailable,
    ResourceNotFound,
    build_gates,
)
from turnstile_core.interfaces.store import FindManyArgs, RecordNotFoundError
from turnstile_core.rbac import (
    Action,
    Grant,
    PermissionEvaluator,
    Possession,
    RoleDefinition,
    RoleHierarchy,
    default_policy,
)
from turnstile_core.resources import EVENT, LOCATION


def _evaluator(**roles: list[Grant]) -> PermissionEvaluator:
    return PermissionEvaluator(
        RoleHierarchy([RoleDefinition(name=name, grants=tuple(grants)) for name, grants in roles.items()])
    )


@pytest.fixture
def event_gate(evaluator, mock_store) -> OperationGate:
    return OperationGate(evaluator, mock_store, EVENT)


def _store_calls(store) -> int:
    return sum(
        getattr(store, name).await_count
        for name in ("find_many", "find_one", "create", "update", "delete", "find_related")
    )


# -- Operation policy table ----------------------------------------------------


def test_operation_policies_table():
    assert OPERATION_POLICIES["find_many"].possession == Possession.any
    assert OPERATION_POLICIES["find_one"].possession == Possession.own
    assert OPERATION_POLICIES["create"].action == Action.create
    assert OPERATION_POLICIES["delete"].action == Action.delete


def test_build_gates_covers_every_resource(evaluator, mock_store):
    gates = build_gates(evaluator, mock_store)
    assert set(gates) == {"Event", "Location"}
    assert gates["Location"].resource == "Location"


# -- Denial happens before I/O -------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda g: g.find_many(["viewer"]),
        lambda g: g.find_one(["viewer"], {"id": "e1"}),
        lambda g: g.create(["viewer"], {"title": "x"}),
        lambda g: g.update(["viewer"], {"id": "e1"}, {"title": "x"}),
        lambda g: g.delete(["user"], {"id": "e1"}),
        lambda g: g.resolve_relation(["user"], {"id": "e1"}, "location"),
    ],
)
async def test_denied_operations_never_touch_store(event_gate, mock_store, call):
    with pytest.raises(PermissionDenied):
        await call(event_gate)
    assert _store_calls(mock_store) == 0


@pytest.mark.asyncio
async def test_permission_denied_carries_context(event_gate):
    with pytest.raises(PermissionDenied) as exc_info:
        await event_gate.delete(["user", "viewer"], {"id": "e1"})
    err = exc_info.value
    assert err.resource == "Event"
    assert err.action == "delete"
    assert err.possession == "any"
    assert err.roles == ["user", "viewer"]
    assert "delete:any on Event" in str(err)


@pytest.mark.asyncio
async def test_no_roles_is_denied(event_gate, mock_store):
    with pytest.raises(PermissionDenied, match=r"\(none\)"):
        await event_gate.find_many([])
    assert _store_calls(mock_store) == 0


# -- Reads ---------------------------------------------------------------------


@pytest.mark.asyncio
async def test_find_many_filters_each_record(event_gate, mock_store, sample_event):
    mock_store.find_many.return_value = [sample_event, {**sample_event, "id": "e2", "title": "Two"}]
    results = await event_gate.find_many(["user"])
    assert results == [{"id": "e1", "title": "Launch"}, {"id": "e2", "title": "Two"}]
    mock_store.find_many.assert_awaited_once_with("Event", FindManyArgs())


@pytest.mark.asyncio
async def test_find_many_passes_args(event_gate, mock_store):
    args = FindManyArgs(where={"title": "Launch"}, take=1)
    await event_gate.find_many(["user"], args)
    mock_store.find_many.assert_awaited_once_with("Event", args)


@pytest.mark.asyncio
async def test_find_one_uses_own_possession(mock_store):
    gate = OperationGate(
        _evaluator(reader=[Grant(resource="Event", action="read", possession="any")]),
        mock_store,
        EVENT,
    )
    with pytest.raises(PermissionDenied, match="read:own"):
        await gate.find_one(["reader"], {"id": "e1"})


@pytest.mark.asyncio
async def test_find_one_filters_result(event_gate, mock_store):
    result = await event_gate.find_one(["user"], {"id": "e1"})
    assert result == {"id": "e1", "title": "Launch"}
    mock_store.find_one.assert_awaited_once_with("Event", {"id": "e1"})


@pytest.mark.asyncio
async def test_find_one_missing_returns_none(event_gate, mock_store):
    mock_store.find_one.return_value = None
    assert await event_gate.find_one(["user"], {"id": "nope"}) is None


# -- Writes --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_rejects_forbidden_attributes_before_dispatch(event_gate, mock_store):
    with pytest.raises(ForbiddenAttributes) as exc_info:
        await event_gate.create(["user"], {"title": "x", "owner_id": "y", "secret": 1})
    err = exc_info.value
    assert err.attributes == ["owner_id", "secret"]
    assert str(err) == (
        'providing the properties: "owner_id", "secret" on Event creation '
        'is forbidden for roles: "user"'
    )
    mock_store.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_returns_unfiltered_record(event_gate, mock_store):
    mock_store.create = AsyncMock(return_value={"id": "new", "title": "x", "owner_id": "u9"})
    result = await event_gate.create(["user"], {"title": "x"})
    assert result == {"id": "new", "title": "x", "owner_id": "u9"}
    mock_store.create.assert_awaited_once_with("Event", {"title": "x"})


@pytest.mark.asyncio
async def test_create_translates_relation_to_connect(evaluator, mock_store):
    gate = OperationGate(evaluator, mock_store, EVENT)
    await gate.create(["admin"], {"title": "x", "location": {"id": "l1"}})
    mock_store.create.assert_awaited_once_with(
        "Event", {"title": "x", "location": {"connect": {"id": "l1"}}}
    )


@pytest.mark.asyncio
async def test_create_drops_null_relation(evaluator, mock_store):
    gate = OperationGate(evaluator, mock_store, EVENT)
    await gate.create(["admin"], {"title": "x", "location": None})
    mock_store.create.assert_awaited_once_with("Event", {"title": "x"})


@pytest.mark.asyncio
async def test_create_does_not_mutate_payload(evaluator, mock_store):
    gate = OperationGate(evaluator, mock_store, EVENT)
    payload = {"title": "x", "location": {"id": "l1"}}
    await gate.create(["admin"], payload)
    assert payload == {"title": "x", "location": {"id": "l1"}}


@pytest.mark.asyncio
async def test_create_store_errors_propagate(evaluator, mock_store):
    mock_store.create = AsyncMock(side_effect=RecordNotFoundError("Location", {"id": "gone"}))
    gate = OperationGate(evaluator, mock_store, EVENT)
    with pytest.raises(RecordNotFoundError):
        await gate.create(["admin"], {"title": "x", "location": {"id": "gone"}})


@pytest.mark.asyncio
async def test_update_checks_attributes_and_connects(event_gate, mock_store):
    with pytest.raises(ForbiddenAttributes, match="on Event update is forbidden"):
        await event_gate.update(["user"], {"id": "e1"}, {"description": "no"})
    mock_store.update.assert_not_awaited()

    await event_gate.update(["user"], {"id": "e1"}, {"title": "t", "location": {"id": "l2"}})
    mock_store.update.assert_awaited_once_with(
        "Event", {"id": "e1"}, {"title": "t", "location": {"connect": {"id": "l2"}}}
    )


@pytest.mark.asyncio
async def test_update_translates_not_found(event_gate, mock_store):
    cause = RecordNotFoundError("Event", {"id": "missing"})
    mock_store.update = AsyncMock(side_effect=cause)
    with pytest.raises(ResourceNotFound) as exc_info:
        await event_gate.update(["user"], {"id": "missing"}, {"title": "t"})
    assert exc_info.value.where == {"id": "missing"}
    assert exc_info.value.__cause__ is cause


@pytest.mark.asyncio
async def test_update_other_errors_propagate(event_gate, mock_store):
    mock_store.update = AsyncMock(side_effect=ConnectionError("db down"))
    with pytest.raises(ConnectionError):
        await event_gate.update(["user"], {"id": "e1"}, {"title": "t"})


@pytest.mark.asyncio
async def test_custom_not_found_classifier(evaluator, mock_store):
    class Missing(Exception):
        pass

    mock_store.delete = AsyncMock(side_effect=Missing())
    gate = OperationGate(evaluator, mock_store, EVENT, is_not_found=lambda e: isinstance(e, Missing))
    with pytest.raises(ResourceNotFound):
        await gate.delete(["admin"], {"id": "x"})


@pytest.mark.asyncio
async def test_prisma_style_error_code_is_not_found(evaluator, mock_store):
    class PrismaError(Exception):
        code = "P2025"

    mock_store.delete = AsyncMock(side_effect=PrismaError())
    gate = OperationGate(evaluator, mock_store, EVENT)
    with pytest.raises(ResourceNotFound, match=re.escape('{"id":"x"}')):
        await gate.delete(["admin"], {"id": "x"})


@pytest.mark.asyncio
async def test_delete_returns_deleted_record(evaluator, mock_store, sample_event):
    gate = OperationGate(evaluator, mock_store, EVENT)
    assert await gate.delete(["admin"], {"id": "e1"}) == sample_event
    mock_store.delete.assert_awaited_once_with("Event", {"id": "e1"})


# -- Relations -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_relation_uses_related_resource_permission(event_gate, mock_store):
    result = await event_gate.resolve_relation(["viewer"], {"id": "e1"}, "location")
    assert result == {"name": "HQ"}
    mock_store.find_related.assert_awaited_once_with("Event", {"id": "e1"}, "location")


@pytest.mark.asyncio
async def test_relation_missing_returns_none(event_gate, mock_store):
    mock_store.find_related.return_value = None
    assert await event_gate.resolve_relation(["viewer"], {"id": "e1"}, "location") is None


@pytest.mark.asyncio
async def test_unknown_relation_raises(event_gate):
    with pytest.raises(KeyError):
        await event_gate.resolve_relation(["viewer"], {"id": "e1"}, "organizer")


@pytest.mark.asyncio
async def test_relation_requires_parent_id(event_gate, mock_store):
    with pytest.raises(RelationUnavailable, match="Event.location") as exc_info:
        await event_gate.resolve_relation(["viewer"], {"title": "x"}, "location")
    assert isinstance(exc_info.value, AccessError)
    assert exc_info.value.resource == "Event"
    assert exc_info.value.relation == "location"
    mock_store.find_related.assert_not_awaited()


@pytest.mark.asyncio
async def test_default_policy_allows_single_reads(mock_store, sample_event):
    gate = OperationGate(PermissionEvaluator(default_policy()), mock_store, EVENT)
    for role in ("user", "admin"):
        assert await gate.find_many([role]) == [sample_event]
        assert await gate.find_one([role], {"id": "e1"}) == sample_event


# -- Scenarios -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_scenario_forbidden_owner_on_create(mock_store):
    evaluator = _evaluator(User=[Grant(resource="Event", action="create", attributes=["title"])])
    gate = OperationGate(evaluator, mock_store, EVENT)
    with pytest.raises(ForbiddenAttributes) as exc_info:
        await gate.create({"User"}, {"title": "x", "ownerId": "y"})
    assert exc_info.value.attributes == ["ownerId"]
    assert '"User"' in str(exc_info.value)
    mock_store.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_scenario_admin_reads_unfiltered(mock_store):
    evaluator = _evaluator(Admin=[Grant(resource="Event", action="read", attributes="*")])
    mock_store.find_many.return_value = [{"id": 1, "title": "x", "secret": "s"}]
    gate = OperationGate(evaluator, mock_store, EVENT)
    assert await gate.find_many({"Admin"}) == [{"id": 1, "title": "x", "secret": "s"}]


@pytest.mark.asyncio
async def test_scenario_related_location_independent_of_event(mock_store):
    evaluator = _evaluator(Viewer=[Grant(resource="Location", action="read", attributes=["name"])])
    gate = OperationGate(evaluator, mock_store, EVENT)

    with pytest.raises(PermissionDenied):
        await gate.find_many({"Viewer"})
    assert await gate.resolve_relation({"Viewer"}, {"id": "e1"}, "location") == {"name": "HQ"}


@pytest.mark.asyncio
async def test_scenario_update_missing_selector(mock_store):
    evaluator = _evaluator(Editor=[Grant(resource="Event", action="update")])
    mock_store.update = AsyncMock(side_effect=RecordNotFoundError("Event", {"id": "missing"}))
    gate = OperationGate(evaluator, mock_store, EVENT)
    with pytest.raises(ResourceNotFound) as exc_info:
        await gate.update({"Editor"}, {"id": "missing"}, {"title": "x"})
    assert str(exc_info.value) == 'No resource was found for {"id":"missing"}'


@pytest.mark.asyncio
async def test_location_gate_has_no_relations(evaluator, mock_store):
    gate = OperationGate(evaluator, mock_store, LOCATION)
    with pytest.raises(KeyError):
        await gate.resolve_relation(["admin"], {"id": "l1"}, "location")
