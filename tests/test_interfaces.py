"""Tests for turnstile_core.interfaces and resource descriptors."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from turnstile_core.interfaces import (
    FindManyArgs,
    RecordNotFoundError,
    ResourceStore,
    is_record_not_found,
)
from turnstile_core.resources import EVENT, LOCATION, RESOURCES, Relation, ResourceDescriptor


# ---------------------------------------------------------------------------
# Not-found classification
# ---------------------------------------------------------------------------


class TestIsRecordNotFound:
    def test_record_not_found_error(self):
        assert is_record_not_found(RecordNotFoundError("Event", {"id": "x"}))

    def test_error_code(self):
        err = RuntimeError("boom")
        err.code = "P2025"
        assert is_record_not_found(err)

    def test_other_errors(self):
        assert not is_record_not_found(RuntimeError("boom"))
        assert not is_record_not_found(KeyError("id"))

    def test_message_names_selector(self):
        err = RecordNotFoundError("Event", {"id": "x"})
        assert str(err) == 'Event record not found for {"id": "x"}'


# ---------------------------------------------------------------------------
# FindManyArgs
# ---------------------------------------------------------------------------


class TestFindManyArgs:
    def test_defaults(self):
        args = FindManyArgs()
        assert args.where == {}
        assert args.order_by == {}
        assert args.skip is None
        assert args.take is None

    def test_negative_paging_rejected(self):
        with pytest.raises(ValidationError):
            FindManyArgs(skip=-1)

    def test_bad_direction_rejected(self):
        with pytest.raises(ValidationError):
            FindManyArgs(order_by={"title": "sideways"})


# ---------------------------------------------------------------------------
# Structural subtyping
# ---------------------------------------------------------------------------


class _DuckStore:
    async def find_many(self, resource, args):
        return []

    async def find_one(self, resource, where):
        return None

    async def create(self, resource, data):
        return data

    async def update(self, resource, where, data):
        return data

    async def delete(self, resource, where):
        return where

    async def find_related(self, resource, where, relation):
        return None


def test_duck_typed_store_satisfies_protocol():
    assert isinstance(_DuckStore(), ResourceStore)


def test_incomplete_store_does_not_satisfy_protocol():
    class Partial:
        async def find_many(self, resource, args):
            return []

    assert not isinstance(Partial(), ResourceStore)


# ---------------------------------------------------------------------------
# Resource descriptors
# ---------------------------------------------------------------------------


class TestResourceDescriptors:
    def test_registry(self):
        assert RESOURCES == {"Event": EVENT, "Location": LOCATION}

    def test_event_relation(self):
        relation = EVENT.relation("location")
        assert relation.target == "Location"
        assert relation.foreign_key == "location_id"
        assert EVENT.relation_names == ["location"]

    def test_unknown_relation(self):
        with pytest.raises(KeyError):
            LOCATION.relation("events")

    def test_foreign_key_must_be_attribute(self):
        with pytest.raises(ValidationError):
            ResourceDescriptor(
                name="Ticket",
                attributes=("id",),
                relations=(Relation(name="event", target="Event", foreign_key="event_id"),),
            )
