"""Configuration loading utilities for the tabula provider."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError

HOST_ENV = "DB_HOST"
USER_ENV = "DB_USER"
PASSWORD_ENV = "DB_PASS"
NAME_ENV = "DB_NAME"


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """Connection settings for the MySQL server."""

    host: str | None
    user: str | None
    password: str | None
    name: str | None
    socket: str | None = None
    port: int = 3306
    charset: str = "utf8mb4"
    connect_timeout: int = 10

    def require_complete(self) -> DatabaseSettings:
        """Raise ConfigurationError unless host, user, password and name are all set."""
        required = (
            (HOST_ENV, self.host),
            (USER_ENV, self.user),
            (PASSWORD_ENV, self.password),
            (NAME_ENV, self.name),
        )
        for env_key, value in required:
            if not value:
                raise ConfigurationError(
                    f"DB connection error: environment variable ({env_key}) is not set."
                )
        return self


@dataclass(frozen=True, slots=True)
class SchemaSettings:
    """Location of the declarative schema description."""

    path: Path | None


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    database: DatabaseSettings
    schema: SchemaSettings

    def with_database_name(self, name: str) -> AppConfig:
        """Return a copy targeting a different database on the same server."""
        return replace(self, database=replace(self.database, name=name))


def split_host(raw: str | None) -> tuple[str | None, str | None]:
    """Split a ``host:socket`` value into its host and unix socket parts."""
    if not raw:
        return raw, None
    host, sep, socket = raw.partition(":")
    if not sep or not host:
        return raw, None
    return host, socket or None


def _default_config() -> dict[str, Any]:
    return {
        "database": {
            "host": None,
            "user": None,
            "password": None,
            "name": None,
            "port": 3306,
            "charset": "utf8mb4",
            "connect_timeout": 10,
        },
        "schema": {"path": None},
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "database.host": (HOST_ENV, str),
    "database.user": (USER_ENV, str),
    "database.password": (PASSWORD_ENV, str),
    "database.name": (NAME_ENV, str),
    "database.port": ("DB_PORT", int),
    "database.charset": ("DB_CHARSET", str),
    "database.connect_timeout": ("DB_CONNECT_TIMEOUT", int),
    "schema.path": (paths.SCHEMA_PATH_ENV, str),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    if expected_type is int:
        return int(raw.strip())
    # Passwords may legitimately carry surrounding whitespace.
    return raw


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        db_cfg = data["database"]
        host, socket = split_host(_optional_str(db_cfg["host"]))
        database = DatabaseSettings(
            host=host,
            socket=_optional_str(db_cfg.get("socket")) or socket,
            user=_optional_str(db_cfg["user"]),
            password=_optional_str(db_cfg["password"]),
            name=_optional_str(db_cfg["name"]),
            port=int(db_cfg["port"]),
            charset=str(db_cfg["charset"]),
            connect_timeout=int(db_cfg["connect_timeout"]),
        )
        schema_path = data["schema"]["path"]
        schema = SchemaSettings(path=paths.resolve_path(schema_path) if schema_path else None)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    return AppConfig(source_path=source_path, database=database, schema=schema)
