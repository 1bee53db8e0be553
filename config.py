# config.py

"""Application configuration utilities.

Values are loaded from an optional ``config.json`` located alongside this
file and may be overridden by environment variables. The
:func:`get_settings` helper merges the two sources and caches the result.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "change-me"


class StaffRole(str, Enum):
    """Roles a staff member can hold on a restaurant.

    Roles are ordered; a role grants everything the roles before it grant.
    """

    VIEWER = "viewer"
    EDITOR = "editor"
    MANAGER = "manager"
    OWNER = "owner"


# Lowest role the Postgres row-level security policies allow to write orders.
STORE_WRITE_ROLE = StaffRole.EDITOR


def roles_from(minimum: StaffRole) -> list[str]:
    """Return the role names ranked at or above ``minimum``."""
    roles = list(StaffRole)
    return [role.value for role in roles[roles.index(minimum):]]


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./orderdesk.db"
    secret_key: str = DEFAULT_SECRET_KEY
    jwt_algorithm: str = "HS256"
    error_dsn: str | None = None
    log_level: str = "INFO"
    allowed_origins: str = ""
    reason_max_length: int = 500
    min_mutation_role: StaffRole = StaffRole.EDITOR
    order_expiry_minutes: int = 30
    db_slow_query_ms: int = 200


@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    ``config.json`` is optional; when present its keys seed
    :class:`Settings` and environment variables override them. The result is
    cached to prevent repeated disk reads.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): v
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    return Settings(**merged)
