"""GraphQL transport for Turnstile.

Uses PEP 562 lazy imports so strawberry/uvicorn are only loaded when accessed.
"""

__all__ = ["GraphQLServer", "schema"]


def __getattr__(name: str):
    import importlib

    if name == "graphql_server":
        return importlib.import_module(".graphql_server", __name__)

    if name in {"GraphQLServer", "schema"}:
        mod = importlib.import_module(".graphql_server", __name__)
        return getattr(mod, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
