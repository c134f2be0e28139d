from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError
from jsonschema import validate as jsonschema_validate

from pgsetup.models import Flavor, PrimaryDescriptor
from pgsetup.services.errors import ConfigException

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "moray"
DEFAULT_ROLE = "moray"
DEFAULT_ADMIN_USER = "postgres"
DEFAULT_SENTINEL_PATH = "/var/tmp/.moray-pg-setup-done"
DEFAULT_POOL_SIZE = 4
DEFAULT_CONNECT_TIMEOUT = 4

# Checked in order; the first one set wins.
DATABASE_ENV_VARS = ("PGSETUP_DB_NAME", "MORAY_DB_NAME")

_IDENTIFIER = {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]{0,62}$"}

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["primary"],
    "properties": {
        "primary": {
            "type": "object",
            "required": ["address", "port"],
            "properties": {
                "address": {"type": "string", "minLength": 1},
                "port": {"type": "integer", "minimum": 1, "maximum": 65535},
            },
        },
        "database": _IDENTIFIER,
        "role": _IDENTIFIER,
        "admin_user": _IDENTIFIER,
        "sentinel_path": {"type": "string", "minLength": 1},
        "pg": {
            "type": "object",
            "properties": {
                "max_connections": {"type": "integer", "minimum": 1},
                "connect_timeout": {"type": "number", "exclusiveMinimum": 0},
                "query_timeout": {"type": "number", "exclusiveMinimum": 0},
            },
        },
    },
}


@dataclass(frozen=True)
class PoolSettings:
    max_connections: int = DEFAULT_POOL_SIZE
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    query_timeout: float | None = None


@dataclass(frozen=True)
class Settings:
    static_primary: PrimaryDescriptor
    flavor: Flavor = Flavor.SDC
    database: str = DEFAULT_DATABASE
    role: str = DEFAULT_ROLE
    admin_user: str = DEFAULT_ADMIN_USER
    sentinel_path: Path = Path(DEFAULT_SENTINEL_PATH)
    pool: PoolSettings = PoolSettings()


def validate_config(raw: Any) -> None:
    if not isinstance(raw, dict):
        raise ConfigException("configuration must be an object")
    try:
        jsonschema_validate(instance=raw, schema=CONFIG_SCHEMA)
    except ValidationError as exc:
        location = ".".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ConfigException(f"configuration is invalid at {location}: {exc.message}") from exc


def _database_from_env() -> str | None:
    for name in DATABASE_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None


def settings_from_dict(raw: dict[str, Any], *, flavor: Flavor = Flavor.SDC) -> Settings:
    """Validate a decoded config object and turn it into Settings.

    `PGSETUP_DB_NAME` (or the older `MORAY_DB_NAME`) in the environment
    takes precedence over `database`.
    """
    env_database = _database_from_env()
    if isinstance(raw, dict) and env_database:
        raw = {**raw, "database": env_database}
    validate_config(raw)
    primary = raw["primary"]
    pg = raw.get("pg", {})
    return Settings(
        static_primary=PrimaryDescriptor(address=primary["address"], port=primary["port"]),
        flavor=flavor,
        database=raw.get("database", DEFAULT_DATABASE),
        role=raw.get("role", DEFAULT_ROLE),
        admin_user=raw.get("admin_user", DEFAULT_ADMIN_USER),
        sentinel_path=Path(raw.get("sentinel_path", DEFAULT_SENTINEL_PATH)),
        pool=PoolSettings(
            max_connections=pg.get("max_connections", DEFAULT_POOL_SIZE),
            connect_timeout=pg.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT),
            query_timeout=pg.get("query_timeout"),
        ),
    )


def load_settings(path: Path, *, flavor: Flavor = Flavor.SDC) -> Settings:
    try:
        content = path.read_text()
    except OSError as exc:
        raise ConfigException(f"Unable to read config file {path}: {exc}") from exc
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigException(f"Invalid config file {path}: {exc}") from exc
    settings = settings_from_dict(raw, flavor=flavor)
    logger.debug(
        "Loaded config from %s: database=%s role=%s static_primary=%s flavor=%s",
        path,
        settings.database,
        settings.role,
        settings.static_primary,
        settings.flavor.value,
    )
    return settings
