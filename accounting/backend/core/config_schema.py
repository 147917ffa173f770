"""
Configuration Schemas.

One Pydantic model per file in config/settings/. Unknown keys are
rejected and numeric settings carry bounds, so a mistyped key or a zero
pool size fails at startup with the offending file named in the error.

    application.yaml   → ApplicationSchema
    database.yaml      → DatabaseSchema
    logging.yaml       → LoggingSchema
    features.yaml      → FeaturesSchema
    security.yaml      → SecuritySchema
    observability.yaml → ObservabilitySchema
    concurrency.yaml   → ConcurrencySchema
    modules.yaml       → ModulesSchema
    integrations.yaml  → IntegrationsSchema
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

Environment = Literal["development", "test", "staging", "production"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# application.yaml


class ServerSchema(_Section):
    host: str
    port: int = Field(ge=1, le=65535)


class CorsSchema(_Section):
    origins: list[str] = Field(default_factory=list)


class ApplicationSchema(_Section):
    name: str
    version: str
    description: str
    environment: Environment
    debug: bool
    api_prefix: str
    docs_enabled: bool
    server: ServerSchema
    cors: CorsSchema

    @field_validator("api_prefix")
    @classmethod
    def _prefix_is_absolute(cls, value: str) -> str:
        if not value.startswith("/") or value.endswith("/"):
            raise ValueError("api_prefix must start with '/' and have no trailing '/'")
        return value


# database.yaml


class RedisSchema(_Section):
    host: str
    port: int = Field(ge=1, le=65535)
    db: int = Field(ge=0)


class DatabaseSchema(_Section):
    host: str
    port: int = Field(ge=1, le=65535)
    name: str
    user: str
    # Full SQLAlchemy URL, e.g. sqlite+aiosqlite:///./accounting.db
    url_override: str | None = None
    pool_size: PositiveInt
    max_overflow: int = Field(ge=0)
    pool_timeout: PositiveInt
    pool_recycle: PositiveInt
    echo: bool
    redis: RedisSchema


# logging.yaml


class ConsoleHandlerSchema(_Section):
    enabled: bool


class FileHandlerSchema(_Section):
    enabled: bool
    path: str
    max_bytes: PositiveInt
    backup_count: int = Field(ge=0)


class HandlersSchema(_Section):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_Section):
    level: LogLevel
    format: Literal["json", "console"]
    handlers: HandlersSchema

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value


# features.yaml


class FeaturesSchema(_Section):
    api_detailed_errors: bool
    api_request_logging: bool
    security_headers_enabled: bool
    notifications_enabled: bool
    ai_agent_enabled: bool
    email_client_enabled: bool


# security.yaml


class JwtSchema(_Section):
    algorithm: Literal["HS256", "HS384", "HS512"]
    access_token_expire_minutes: PositiveInt
    refresh_token_expire_days: PositiveInt
    audience: str


class PasswordPolicySchema(_Section):
    min_length: int = Field(default=8, ge=1, le=128)


class SecurityHeadersSchema(_Section):
    x_content_type_options: str
    x_frame_options: Literal["DENY", "SAMEORIGIN"]
    referrer_policy: str
    hsts_enabled: bool
    hsts_max_age: int = Field(ge=0)


class SecretsValidationSchema(_Section):
    jwt_secret_min_length: int = Field(ge=16)


class SecuritySchema(_Section):
    jwt: JwtSchema
    password: PasswordPolicySchema = Field(default_factory=PasswordPolicySchema)
    headers: SecurityHeadersSchema
    secrets_validation: SecretsValidationSchema


# observability.yaml


class HealthChecksSchema(_Section):
    ready_timeout_seconds: PositiveInt


class ObservabilitySchema(_Section):
    health_checks: HealthChecksSchema


# concurrency.yaml


class ThreadPoolSchema(_Section):
    max_workers: PositiveInt


class SemaphoresSchema(_Section):
    """Upper bound on concurrent operations per downstream system."""

    database: PositiveInt
    redis: PositiveInt
    external_api: PositiveInt
    llm: PositiveInt
    smtp: PositiveInt


class ShutdownSchema(_Section):
    drain_seconds: int = Field(ge=0)


class ConcurrencySchema(_Section):
    thread_pool: ThreadPoolSchema
    semaphores: SemaphoresSchema
    shutdown: ShutdownSchema


# modules.yaml


class DiscoverySchema(_Section):
    path: str
    sync_on_startup: bool


class ModulesSchema(_Section):
    discovery: DiscoverySchema
    # Permission set of modules registered through the API without one
    default_permissions: list[str] = Field(min_length=1)

    @field_validator("default_permissions")
    @classmethod
    def _unique_permissions(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("default_permissions contains duplicates")
        return value


# integrations.yaml


class CircuitBreakerSchema(_Section):
    fail_max: PositiveInt
    timeout_duration: PositiveInt


class RetrySchema(_Section):
    max_attempts: PositiveInt
    backoff_multiplier: PositiveInt
    backoff_max: PositiveInt

    @model_validator(mode="after")
    def _backoff_bounds(self) -> "RetrySchema":
        if self.backoff_max < self.backoff_multiplier:
            raise ValueError("backoff_max must be >= backoff_multiplier")
        return self


class AIIntegrationSchema(_Section):
    openai_base_url: str
    openrouter_base_url: str
    request_timeout: PositiveInt
    circuit_breaker: CircuitBreakerSchema
    retry: RetrySchema

    @field_validator("openai_base_url", "openrouter_base_url")
    @classmethod
    def _valid_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"{value!r} is not an http(s) URL")
        return value.rstrip("/")


class EmailIntegrationSchema(_Section):
    smtp_timeout: PositiveInt
    imap_timeout: PositiveInt
    inbox_default_limit: int = Field(ge=1, le=100)


class IntegrationsSchema(_Section):
    ai: AIIntegrationSchema
    email: EmailIntegrationSchema
