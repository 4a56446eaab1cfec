from .models import EVENT, LOCATION, RESOURCES, Relation, ResourceDescriptor

__all__ = [
    "EVENT",
    "LOCATION",
    "RESOURCES",
    "Relation",
    "ResourceDescriptor",
]
