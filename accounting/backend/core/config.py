"""
Configuration Management.

Loads secrets from config/.env and settings from config/settings/*.yaml.

Secrets (.env):
    DB_PASSWORD, REDIS_PASSWORD, JWT_SECRET, JWT_REFRESH_SECRET, ENCRYPTION_KEY

Settings (YAML):
    application.yaml   - App identity, server, cors
    database.yaml      - Database and Redis connection settings
    logging.yaml       - Logging configuration
    features.yaml      - Feature flags
    security.yaml      - JWT, password policy, response headers
    observability.yaml - Health check configuration
    concurrency.yaml   - Thread pool and semaphore sizing
    modules.yaml       - Module manifest discovery
    integrations.yaml  - AI provider and mail server client settings
"""

from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import quote

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from accounting.backend.core.config_schema import (
    ApplicationSchema,
    ConcurrencySchema,
    DatabaseSchema,
    FeaturesSchema,
    IntegrationsSchema,
    LoggingSchema,
    ModulesSchema,
    ObservabilitySchema,
    SecuritySchema,
)


PROJECT_MARKER = ".project_root"


def find_project_root() -> Path:
    """Nearest directory at or above the working directory holding .project_root."""
    cwd = Path.cwd()
    for candidate in (cwd, *cwd.parents):
        if (candidate / PROJECT_MARKER).exists():
            return candidate
    raise RuntimeError(f"Project root not found. Ensure {PROJECT_MARKER} file exists.")


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Raw mapping from config/settings/<filename>; an empty file yields {}."""
    config_path = find_project_root() / "config" / "settings" / filename
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}


class Settings(BaseSettings):
    """Secrets loaded from config/.env. Only passwords, tokens, and keys."""

    db_password: str = ""
    redis_password: str = ""
    jwt_secret: str
    jwt_refresh_secret: str
    encryption_key: str

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Parse one settings file into its schema, naming the file on failure."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {filename}:\n{e}") from e


# attribute -> (settings file, schema)
_SECTIONS: dict[str, tuple[str, type]] = {
    "application": ("application.yaml", ApplicationSchema),
    "database": ("database.yaml", DatabaseSchema),
    "logging": ("logging.yaml", LoggingSchema),
    "features": ("features.yaml", FeaturesSchema),
    "security": ("security.yaml", SecuritySchema),
    "observability": ("observability.yaml", ObservabilitySchema),
    "concurrency": ("concurrency.yaml", ConcurrencySchema),
    "modules": ("modules.yaml", ModulesSchema),
    "integrations": ("integrations.yaml", IntegrationsSchema),
}


class AppConfig:
    """
    Typed view over config/settings/*.yaml.

    Every file is parsed eagerly, so a typo in any of them stops the
    process at startup instead of surfacing on the first request that
    reads the bad key. Sections are read-only after construction.
    """

    application: ApplicationSchema
    database: DatabaseSchema
    logging: LoggingSchema
    features: FeaturesSchema
    security: SecuritySchema
    observability: ObservabilitySchema
    concurrency: ConcurrencySchema
    modules: ModulesSchema
    integrations: IntegrationsSchema

    def __init__(self) -> None:
        for attribute, (filename, schema_cls) in _SECTIONS.items():
            object.__setattr__(self, attribute, _load_validated(schema_cls, filename))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"AppConfig is read-only, cannot set {name!r}")


@lru_cache
def get_settings() -> Settings:
    """Get cached secrets instance. Resolves .env path from project root."""
    env_path = find_project_root() / "config" / ".env"
    return Settings(_env_file=str(env_path))


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def get_database_url(async_driver: bool = True) -> str:
    """
    Database URL for the engine and Alembic.

    A non-empty `url_override` in database.yaml (local SQLite runs) is used
    as-is. Otherwise the PostgreSQL URL is assembled with URL.create so a
    DB_PASSWORD containing reserved characters is escaped.
    """
    db = get_app_config().database
    if db.url_override:
        return db.url_override

    url = URL.create(
        drivername="postgresql+asyncpg" if async_driver else "postgresql",
        username=db.user,
        password=get_settings().db_password,
        host=db.host,
        port=db.port,
        database=db.name,
    )
    return url.render_as_string(hide_password=False)


def get_redis_url() -> str:
    redis = get_app_config().database.redis
    password = get_settings().redis_password
    auth = f":{quote(password, safe='')}@" if password else ""
    return f"redis://{auth}{redis.host}:{redis.port}/{redis.db}"


def get_manifests_path() -> Path:
    """Absolute path of the directory scanned for module manifests."""
    configured = Path(get_app_config().modules.discovery.path)
    if configured.is_absolute():
        return configured
    return find_project_root() / configured
