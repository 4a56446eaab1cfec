"""Interfaces for the collaborators the operation gate depends on."""

from turnstile_core.interfaces.store import (
    FindManyArgs,
    Record,
    RecordNotFoundError,
    ResourceStore,
    is_record_not_found,
)

__all__ = [
    "FindManyArgs",
    "Record",
    "RecordNotFoundError",
    "ResourceStore",
    "is_record_not_found",
]
