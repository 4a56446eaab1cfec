"""Turnstile Lite: local SQLite storage and CLI for Turnstile."""

from __future__ import annotations

from turnstile_lite.store.sqlite_store import SQLiteStore

__all__ = ["SQLiteStore"]
