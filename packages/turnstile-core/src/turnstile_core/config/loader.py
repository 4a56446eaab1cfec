"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from turnstile_core.rbac.hierarchy import RoleHierarchy, default_policy, load_policy

from .models import TurnstileConfig


def load_config(cli_path: str | None = None) -> TurnstileConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./turnstile.yaml"),
        Path.home() / ".turnstile" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                raw = _expand_env_vars(raw)
                return TurnstileConfig(**raw)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e

    return TurnstileConfig()


def load_hierarchy(config: TurnstileConfig) -> RoleHierarchy:
    """Role hierarchy from the configured policy file, or the built-in policy."""
    if config.policy.path:
        return load_policy(config.policy.path, any_implies_own=config.policy.any_implies_own)
    return default_policy(any_implies_own=config.policy.any_implies_own)


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `turnstile config init`
DEFAULT_CONFIG_TEMPLATE = """\
# turnstile.yaml

# Role hierarchy and grants
policy:
  # path: "turnstile.policy.yaml"  # omit to use the built-in user/admin policy
  any_implies_own: false           # let read:any grants satisfy read:own checks

# Record storage
store:
  provider: "sqlite"
  path: ".turnstile/data.db"

# GraphQL server
server:
  host: "127.0.0.1"
  port: 4000
  graphiql: true

# Basic-auth users and their roles
auth:
  users:
    - username: "admin"
      password: "${TURNSTILE_ADMIN_PASSWORD}"
      roles: ["admin"]

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""

# Default policy template for `turnstile policy init`
DEFAULT_POLICY_TEMPLATE = """\
# turnstile.policy.yaml
#
# attributes: "*" for all, a list of names, or "!name" to deny one
# attribute from a "*" grant.

roles:
  viewer:
    grants:
      - {resource: Event, action: read, possession: any, attributes: ["id", "title", "starts_at", "ends_at"]}
      - {resource: Event, action: read, possession: own, attributes: ["id", "title", "starts_at", "ends_at"]}
      - {resource: Location, action: read, possession: any, attributes: ["id", "name"]}
      - {resource: Location, action: read, possession: own, attributes: ["id", "name"]}

  user:
    extends: [viewer]
    grants:
      - {resource: Event, action: create, possession: any, attributes: ["title", "description", "starts_at", "ends_at", "location"]}
      - {resource: Event, action: update, possession: any, attributes: ["title", "description", "starts_at", "ends_at", "location"]}
      - {resource: Event, action: read, possession: any, attributes: ["*", "!owner_id"]}

  admin:
    extends: [user]
    grants:
      - {resource: Event, action: create, possession: any}
      - {resource: Event, action: read, possession: any}
      - {resource: Event, action: read, possession: own}
      - {resource: Event, action: update, possession: any}
      - {resource: Event, action: delete, possession: any}
      - {resource: Location, action: create, possession: any}
      - {resource: Location, action: read, possession: any}
      - {resource: Location, action: read, possession: own}
      - {resource: Location, action: update, possession: any}
      - {resource: Location, action: delete, possession: any}
"""
