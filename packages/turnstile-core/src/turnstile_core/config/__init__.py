from .loader import load_config, load_hierarchy
from .models import (
    AuthConfig,
    AuthUser,
    PolicyConfig,
    ServerConfig,
    StoreConfig,
    TurnstileConfig,
)

__all__ = [
    "AuthConfig",
    "AuthUser",
    "PolicyConfig",
    "ServerConfig",
    "StoreConfig",
    "TurnstileConfig",
    "load_config",
    "load_hierarchy",
]
