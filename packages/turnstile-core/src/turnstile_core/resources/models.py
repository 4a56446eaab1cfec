"""Static descriptors for the resource types exposed through the gate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Relation(BaseModel):
    """A to-one link from one resource to another, stored as a foreign key."""

    model_config = ConfigDict(frozen=True)

    name: str
    target: str
    foreign_key: str


class ResourceDescriptor(BaseModel):
    """Attribute names and relations of one resource type."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    attributes: tuple[str, ...]
    relations: tuple[Relation, ...] = ()

    @model_validator(mode="after")
    def check_foreign_keys(self) -> ResourceDescriptor:
        for relation in self.relations:
            if relation.foreign_key not in self.attributes:
                raise ValueError(
                    f"{self.name}.{relation.name} foreign key {relation.foreign_key!r} "
                    "is not an attribute"
                )
        return self

    def relation(self, name: str) -> Relation:
        for relation in self.relations:
            if relation.name == name:
                return relation
        raise KeyError(f"{self.name} has no relation {name!r}")

    @property
    def relation_names(self) -> list[str]:
        return [r.name for r in self.relations]


LOCATION = ResourceDescriptor(
    name="Location",
    attributes=("id", "created_at", "updated_at", "name", "address", "capacity"),
)

EVENT = ResourceDescriptor(
    name="Event",
    attributes=(
        "id",
        "created_at",
        "updated_at",
        "title",
        "description",
        "starts_at",
        "ends_at",
        "owner_id",
        "location_id",
    ),
    relations=(Relation(name="location", target="Location", foreign_key="location_id"),),
)

RESOURCES: dict[str, ResourceDescriptor] = {r.name: r for r in (EVENT, LOCATION)}
