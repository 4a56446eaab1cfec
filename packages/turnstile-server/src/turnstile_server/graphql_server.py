"""Strawberry GraphQL server exposing Event and Location through the operation gate."""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

import strawberry
from strawberry.scalars import JSON
from strawberry.types import Info

from turnstile_core.config.models import AuthConfig, TurnstileConfig
from turnstile_core.gate import OperationGate
from turnstile_core.interfaces.store import FindManyArgs

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    roles: list[str]
    gates: dict[str, OperationGate]


def _context(info: Info) -> RequestContext:
    return info.context["turnstile"]


def _gate(info: Info, resource: str) -> OperationGate:
    return _context(info).gates[resource]


def _roles(info: Info) -> list[str]:
    return _context(info).roles


# ---------------------------------------------------------------------------
# Output types. Every field is optional: attributes the caller may not see
# come back as null.
# ---------------------------------------------------------------------------


@strawberry.type
class Location:
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    name: str | None = None
    address: str | None = None
    capacity: int | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> "Location | None":
        if record is None:
            return None
        return cls(**{k: record.get(k) for k in _LOCATION_FIELDS})


@strawberry.type
class Event:
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    title: str | None = None
    description: str | None = None
    starts_at: str | None = None
    ends_at: str | None = None
    owner_id: str | None = None
    source_id: strawberry.Private[str | None] = None

    @classmethod
    def from_record(
        cls, record: dict[str, Any] | None, source_id: str | None = None
    ) -> "Event | None":
        if record is None:
            return None
        return cls(
            source_id=source_id or record.get("id"),
            **{k: record.get(k) for k in _EVENT_FIELDS},
        )

    @strawberry.field
    async def location(self, info: Info) -> Location | None:
        record = await _gate(info, "Event").resolve_relation(
            _roles(info), {"id": self.source_id}, "location"
        )
        return Location.from_record(record)


_LOCATION_FIELDS = ("id", "created_at", "updated_at", "name", "address", "capacity")
_EVENT_FIELDS = (
    "id",
    "created_at",
    "updated_at",
    "title",
    "description",
    "starts_at",
    "ends_at",
    "owner_id",
)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@strawberry.input
class WhereUniqueInput:
    id: str


@strawberry.input
class EventCreateInput:
    title: str | None = strawberry.UNSET
    description: str | None = strawberry.UNSET
    starts_at: str | None = strawberry.UNSET
    ends_at: str | None = strawberry.UNSET
    owner_id: str | None = strawberry.UNSET
    location: WhereUniqueInput | None = strawberry.UNSET


@strawberry.input
class EventUpdateInput(EventCreateInput):
    pass


@strawberry.input
class LocationCreateInput:
    name: str | None = strawberry.UNSET
    address: str | None = strawberry.UNSET
    capacity: int | None = strawberry.UNSET


@strawberry.input
class LocationUpdateInput(LocationCreateInput):
    pass


@strawberry.input
class FindManyInput:
    where: JSON | None = None
    order_by: JSON | None = None
    skip: int | None = None
    take: int | None = None


def _payload(data: Any) -> dict[str, Any]:
    """Fields the client actually sent, as a plain mapping in declaration order."""
    payload: dict[str, Any] = {}
    for key, value in vars(data).items():
        if value is strawberry.UNSET:
            continue
        if isinstance(value, WhereUniqueInput):
            value = {"id": value.id}
        payload[key] = value
    return payload


def _find_many_args(args: FindManyInput | None) -> FindManyArgs:
    if args is None:
        return FindManyArgs()
    return FindManyArgs(
        where=args.where or {},
        order_by=args.order_by or {},
        skip=args.skip,
        take=args.take,
    )


@strawberry.type
class Query:
    @strawberry.field
    async def events(self, info: Info, args: FindManyInput | None = None) -> list[Event]:
        records = await _gate(info, "Event").find_many(_roles(info), _find_many_args(args))
        return [Event.from_record(r) for r in records]

    @strawberry.field
    async def event(self, info: Info, where: WhereUniqueInput) -> Event | None:
        record = await _gate(info, "Event").find_one(_roles(info), {"id": where.id})
        return Event.from_record(record, source_id=where.id)

    @strawberry.field
    async def locations(self, info: Info, args: FindManyInput | None = None) -> list[Location]:
        records = await _gate(info, "Location").find_many(_roles(info), _find_many_args(args))
        return [Location.from_record(r) for r in records]

    @strawberry.field
    async def location(self, info: Info, where: WhereUniqueInput) -> Location | None:
        record = await _gate(info, "Location").find_one(_roles(info), {"id": where.id})
        return Location.from_record(record)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def create_event(self, info: Info, data: EventCreateInput) -> Event:
        record = await _gate(info, "Event").create(_roles(info), _payload(data))
        return Event.from_record(record)

    @strawberry.mutation
    async def update_event(
        self, info: Info, where: WhereUniqueInput, data: EventUpdateInput
    ) -> Event:
        record = await _gate(info, "Event").update(_roles(info), {"id": where.id}, _payload(data))
        return Event.from_record(record)

    @strawberry.mutation
    async def delete_event(self, info: Info, where: WhereUniqueInput) -> Event:
        record = await _gate(info, "Event").delete(_roles(info), {"id": where.id})
        return Event.from_record(record)

    @strawberry.mutation
    async def create_location(self, info: Info, data: LocationCreateInput) -> Location:
        record = await _gate(info, "Location").create(_roles(info), _payload(data))
        return Location.from_record(record)

    @strawberry.mutation
    async def update_location(
        self, info: Info, where: WhereUniqueInput, data: LocationUpdateInput
    ) -> Location:
        record = await _gate(info, "Location").update(_roles(info), {"id": where.id}, _payload(data))
        return Location.from_record(record)

    @strawberry.mutation
    async def delete_location(self, info: Info, where: WhereUniqueInput) -> Location:
        record = await _gate(info, "Location").delete(_roles(info), {"id": where.id})
        return Location.from_record(record)


schema = strawberry.Schema(query=Query, mutation=Mutation)


def roles_from_authorization(auth: AuthConfig, header: str | None) -> list[str]:
    """Roles for a ``Basic`` Authorization header; no or bad credentials give none."""
    if not header or not header.lower().startswith("basic "):
        return []
    try:
        decoded = base64.b64decode(header[6:].strip(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        logger.info("Malformed basic auth header")
        return []
    username, sep, password = decoded.partition(":")
    if not sep:
        return []
    roles = auth.roles_for(username, password)
    if roles is None:
        logger.info("Rejected credentials for %r", username)
        return []
    return roles


class GraphQLServer:
    """Thin wrapper that wires the strawberry schema to a set of gates."""

    def __init__(self, config: TurnstileConfig, gates: dict[str, OperationGate]):
        self._config = config
        self._gates = gates
        self._schema = schema

    def context_for(self, authorization: str | None) -> dict[str, Any]:
        roles = roles_from_authorization(self._config.auth, authorization)
        return {"turnstile": RequestContext(roles=roles, gates=self._gates)}

    def app(self):
        from strawberry.asgi import GraphQL

        server = self

        class _App(GraphQL):
            async def get_context(self, request, response=None) -> dict[str, Any]:
                return server.context_for(request.headers.get("authorization"))

        return _App(self._schema, graphql_ide="graphiql" if self._config.server.graphiql else None)

    def start(self) -> None:
        """Start the GraphQL server (blocking)."""
        import uvicorn

        logger.info("Serving GraphQL on %s:%d", self._config.server.host, self._config.server.port)
        uvicorn.run(self.app(), host=self._config.server.host, port=self._config.server.port)

    @property
    def schema(self) -> strawberry.Schema:
        return self._schema
