"""ResourceStore implementation backed by a local SQLite database."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from turnstile_core.interfaces.store import FindManyArgs, Record, RecordNotFoundError
from turnstile_core.resources.models import RESOURCES, ResourceDescriptor

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS records (
    resource TEXT NOT NULL,
    id TEXT NOT NULL,
    data_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (resource, id)
);
CREATE INDEX IF NOT EXISTS idx_records_created ON records(resource, created_at);
"""

_MANAGED = ("id", "created_at", "updated_at")


class SQLiteStore:
    """ResourceStore keeping every resource as JSON documents in one SQLite table.

    Relation fields arrive as ``{"connect": {"id": ...}}`` and are stored
    in the relation's foreign-key attribute. Calls run in a worker thread;
    a lock serializes them on the single connection.
    """

    def __init__(
        self,
        db_path: str = ".turnstile/data.db",
        resources: Mapping[str, ResourceDescriptor] = RESOURCES,
    ) -> None:
        if db_path != ":memory:":
            path = Path(db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(path)

        self.db_path = db_path
        self._resources = dict(resources)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            self.db_path, isolation_level=None, timeout=5, check_same_thread=False
        )
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    # -- helpers ---------------------------------------------------------------

    def _now_iso(self) -> str:
        return datetime.now(UTC).isoformat()

    def _descriptor(self, resource: str) -> ResourceDescriptor:
        try:
            return self._resources[resource]
        except KeyError:
            raise ValueError(f"Unknown resource: {resource!r}") from None

    def _row_to_record(self, row: tuple) -> Record:
        id_, data_json, created_at, updated_at = row
        return {"id": id_, "created_at": created_at, "updated_at": updated_at, **json.loads(data_json)}

    def _rows(self, resource: str) -> list[Record]:
        rows = self._conn.execute(
            "SELECT id, data_json, created_at, updated_at FROM records "
            "WHERE resource = ? ORDER BY created_at ASC, rowid ASC",
            (resource,),
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def _select(self, resource: str, where: Mapping[str, Any]) -> Record | None:
        if set(where) == {"id"}:
            row = self._conn.execute(
                "SELECT id, data_json, created_at, updated_at FROM records "
                "WHERE resource = ? AND id = ?",
                (resource, str(where["id"])),
            ).fetchone()
            return self._row_to_record(row) if row else None
        for record in self._rows(resource):
            if _matches(record, where):
                return record
        return None

    def _prepare(self, resource: str, data: Mapping[str, Any]) -> dict[str, Any]:
        """Validate attribute names and resolve relation connects into foreign keys."""
        descriptor = self._descriptor(resource)
        relations = {r.name: r for r in descriptor.relations}
        prepared: dict[str, Any] = {}
        for key, value in data.items():
            if key in relations:
                relation = relations[key]
                selector = value.get("connect") if isinstance(value, Mapping) else None
                if selector is None:
                    raise ValueError(f"{resource}.{key} expects a {{'connect': selector}} value")
                target = self._select(relation.target, selector)
                if target is None:
                    raise RecordNotFoundError(relation.target, dict(selector))
                prepared[relation.foreign_key] = target["id"]
            elif key in _MANAGED:
                continue
            elif key in descriptor.attributes:
                prepared[key] = value
            else:
                raise ValueError(f"Unknown attribute for {resource}: {key!r}")
        return prepared

    async def _run(self, fn, *args: Any) -> Any:
        def locked() -> Any:
            with self._lock:
                return fn(*args)

        return await asyncio.to_thread(locked)

    # -- sync implementations --------------------------------------------------

    def _find_many(self, resource: str, args: FindManyArgs) -> list[Record]:
        self._descriptor(resource)
        records = [r for r in self._rows(resource) if _matches(r, args.where)]
        # Missing values sort last in either direction.
        for field, direction in reversed(list(args.order_by.items())):
            present = [r for r in records if r.get(field) is not None]
            missing = [r for r in records if r.get(field) is None]
            present.sort(key=lambda r: r[field], reverse=direction == "desc")
            records = present + missing
        start = args.skip or 0
        end = start + args.take if args.take is not None else None
        return records[start:end]

    def _find_one(self, resource: str, where: dict[str, Any]) -> Record | None:
        self._descriptor(resource)
        return self._select(resource, where)

    def _create(self, resource: str, data: dict[str, Any]) -> Record:
        prepared = self._prepare(resource, data)
        record_id = str(data.get("id") or uuid.uuid4())
        now = self._now_iso()
        self._conn.execute(
            "INSERT INTO records (resource, id, data_json, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (resource, record_id, json.dumps(prepared), now, now),
        )
        return {"id": record_id, "created_at": now, "updated_at": now, **prepared}

    def _update(self, resource: str, where: dict[str, Any], data: dict[str, Any]) -> Record:
        existing = self._select(resource, where)
        if existing is None:
            raise RecordNotFoundError(resource, where)
        prepared = self._prepare(resource, data)
        merged = {k: v for k, v in existing.items() if k not in _MANAGED}
        merged.update(prepared)
        now = self._now_iso()
        self._conn.execute(
            "UPDATE records SET data_json = ?, updated_at = ? WHERE resource = ? AND id = ?",
            (json.dumps(merged), now, resource, existing["id"]),
        )
        return {"id": existing["id"], "created_at": existing["created_at"], "updated_at": now, **merged}

    def _delete(self, resource: str, where: dict[str, Any]) -> Record:
        existing = self._select(resource, where)
        if existing is None:
            raise RecordNotFoundError(resource, where)
        self._conn.execute(
            "DELETE FROM records WHERE resource = ? AND id = ?", (resource, existing["id"])
        )
        return existing

    def _find_related(self, resource: str, where: dict[str, Any], relation: str) -> Record | None:
        link = self._descriptor(resource).relation(relation)
        parent = self._select(resource, where)
        if parent is None or parent.get(link.foreign_key) is None:
            return None
        return self._select(link.target, {"id": parent[link.foreign_key]})

    # -- ResourceStore protocol ------------------------------------------------

    async def find_many(self, resource: str, args: FindManyArgs) -> list[Record]:
        return await self._run(self._find_many, resource, args)

    async def find_one(self, resource: str, where: dict[str, Any]) -> Record | None:
        return await self._run(self._find_one, resource, where)

    async def create(self, resource: str, data: dict[str, Any]) -> Record:
        return await self._run(self._create, resource, data)

    async def update(self, resource: str, where: dict[str, Any], data: dict[str, Any]) -> Record:
        return await self._run(self._update, resource, where, data)

    async def delete(self, resource: str, where: dict[str, Any]) -> Record:
        return await self._run(self._delete, resource, where)

    async def find_related(self, resource: str, where: dict[str, Any], relation: str) -> Record | None:
        return await self._run(self._find_related, resource, where, relation)

    # -- extras ----------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Count records grouped by resource."""
        rows = self._conn.execute(
            "SELECT resource, COUNT(*) FROM records GROUP BY resource"
        ).fetchall()
        counts = {name: 0 for name in self._resources}
        for resource, count in rows:
            counts[resource] = count
        return counts

    def close(self) -> None:
        self._conn.close()


def _matches(record: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
    return all(record.get(k) == v for k, v in where.items())
