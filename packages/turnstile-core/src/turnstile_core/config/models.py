import secrets

from pydantic import BaseModel, Field, field_validator
from typing import Literal


class PolicyConfig(BaseModel):
    path: str | None = None
    any_implies_own: bool = False


class StoreConfig(BaseModel):
    provider: Literal["sqlite"] = "sqlite"
    path: str = ".turnstile/data.db"


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=4000, gt=0, lt=65536)
    graphiql: bool = True


class AuthUser(BaseModel):
    username: str = Field(min_length=1)
    password: str
    roles: list[str] = Field(default_factory=list)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("username cannot be empty or whitespace")
        return v


class AuthConfig(BaseModel):
    users: list[AuthUser] = Field(default_factory=list)

    def roles_for(self, username: str, password: str) -> list[str] | None:
        """Roles of the matching user, or None when the credentials are wrong."""
        for user in self.users:
            if user.username == username and secrets.compare_digest(
                user.password.encode(), password.encode()
            ):
                return list(user.roles)
        return None


class TurnstileConfig(BaseModel):
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
