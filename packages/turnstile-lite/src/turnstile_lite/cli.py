"""CLI entry point for Turnstile."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.syntax import Syntax
from rich.table import Table

from turnstile_core.config import TurnstileConfig, load_config, load_hierarchy
from turnstile_core.config.loader import DEFAULT_CONFIG_TEMPLATE, DEFAULT_POLICY_TEMPLATE
from turnstile_core.log_setup import configure_logging
from turnstile_core.rbac import Action, PermissionEvaluator, PolicyError, Possession, RoleHierarchy

app = typer.Typer(
    name="turnstile",
    help="Role and attribute based access control for Event and Location records.",
)

config_app = typer.Typer(help="Manage Turnstile configuration.")
app.add_typer(config_app, name="config")

policy_app = typer.Typer(help="Inspect and scaffold the role policy.")
app.add_typer(policy_app, name="policy")

# Global state
_config: TurnstileConfig | None = None


def _get_config() -> TurnstileConfig:
    if _config is None:
        return load_config()
    return _config


def _get_hierarchy(cfg: TurnstileConfig) -> RoleHierarchy:
    try:
        return load_hierarchy(cfg)
    except PolicyError as e:
        rprint(f"[red]Policy error:[/red] {e}")
        raise typer.Exit(1)


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to turnstile.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------


@app.command()
def check(
    roles: list[str] = typer.Argument(..., help="Caller roles"),
    resource: str = typer.Option(..., "--resource", "-r", help="Resource type, e.g. Event"),
    action: Action = typer.Option(..., "--action", "-a", help="create, read, update or delete"),
    possession: Possession = typer.Option(Possession.any, "--possession", "-p", help="any or own"),
) -> None:
    """Resolve a permission and show the attributes it covers."""
    cfg = _get_config()
    evaluator = PermissionEvaluator(_get_hierarchy(cfg))
    permission = evaluator.resolve(roles, resource, action, possession)

    query = f"{action.value}:{possession.value} on {resource}"
    if not permission.granted:
        rprint(f"[red]Denied[/red] {query} for roles: {', '.join(roles)}")
        raise typer.Exit(1)
    rprint(f"[green]Granted[/green] {query}")
    rprint(f"[dim]Attributes:[/dim] {permission.attributes.describe()}")


# ---------------------------------------------------------------------------
# Policy commands
# ---------------------------------------------------------------------------


@policy_app.command("show")
def policy_show() -> None:
    """Show every role with its parents and grants."""
    cfg = _get_config()
    hierarchy = _get_hierarchy(cfg)

    table = Table(title=f"Roles ({len(hierarchy.role_names)})")
    table.add_column("Role", style="cyan")
    table.add_column("Extends", style="yellow")
    table.add_column("Resource")
    table.add_column("Action", style="green")
    table.add_column("Attributes")
    for name in hierarchy.role_names:
        role = hierarchy.get(name)
        extends = ", ".join(role.extends) or "-"
        if not role.grants:
            table.add_row(name, extends, "-", "-", "-")
            continue
        for i, grant in enumerate(role.grants):
            table.add_row(
                name if i == 0 else "",
                extends if i == 0 else "",
                grant.resource,
                f"{grant.action.value}:{grant.possession.value}",
                grant.scope.describe(),
            )
    rprint(table)


@policy_app.command("init")
def policy_init(
    path: str = typer.Argument("turnstile.policy.yaml", help="Where to write the policy"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing policy"),
) -> None:
    """Create a starter policy file."""
    target = Path(path)
    if target.exists() and not force:
        rprint(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_POLICY_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


# ---------------------------------------------------------------------------
# Config commands
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration (passwords masked)."""
    cfg = _get_config()
    data = cfg.model_dump()
    for user in data["auth"]["users"]:
        user["password"] = "***"
    rprint(Syntax(yaml.dump(data, default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default turnstile.yaml in current directory."""
    target = Path("turnstile.yaml")
    if target.exists() and not force:
        rprint("[yellow]turnstile.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
) -> None:
    """Run the GraphQL server."""
    from turnstile_core.gate import build_gates
    from turnstile_lite.store import SQLiteStore
    from turnstile_server.graphql_server import GraphQLServer

    cfg = _get_config()
    if host is not None:
        cfg.server.host = host
    if port is not None:
        cfg.server.port = port

    evaluator = PermissionEvaluator(_get_hierarchy(cfg))
    store = SQLiteStore(db_path=cfg.store.path)
    gates = build_gates(evaluator, store)
    rprint(f"[bold]Serving[/bold] GraphQL on http://{cfg.server.host}:{cfg.server.port}/graphql")
    GraphQLServer(cfg, gates).start()


@app.command()
def stats() -> None:
    """Show record counts per resource."""
    from turnstile_lite.store import SQLiteStore

    cfg = _get_config()
    store = SQLiteStore(db_path=cfg.store.path)
    try:
        counts = store.stats()
    finally:
        store.close()

    table = Table(title="Records")
    table.add_column("Resource", style="cyan")
    table.add_column("Count", justify="right")
    for resource, count in counts.items():
        table.add_row(resource, str(count))
    rprint(table)


if __name__ == "__main__":
    app()
