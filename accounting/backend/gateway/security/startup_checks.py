"""
Startup Security Validation.

run_startup_checks() is the first thing the lifespan does after logging is
configured. Every check returns the problems it found; the application
refuses to start if any check found one, and all problems are reported
together so a broken deployment is fixed in one pass.
"""

from collections.abc import Callable

from cryptography.fernet import Fernet

from accounting.backend.core.config import AppConfig, Settings, get_app_config, get_manifests_path, get_settings
from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

MIN_PRODUCTION_PASSWORD_LENGTH = 8


class StartupSecurityError(RuntimeError):
    pass


def _secret_strength(app_config: AppConfig, settings: Settings) -> list[str]:
    minimum = app_config.security.secrets_validation.jwt_secret_min_length
    problems = [
        f"{name} is {len(value)} chars, minimum is {minimum}"
        for name, value in (("JWT_SECRET", settings.jwt_secret), ("JWT_REFRESH_SECRET", settings.jwt_refresh_secret))
        if len(value) < minimum
    ]
    if settings.jwt_secret == settings.jwt_refresh_secret:
        problems.append("JWT_REFRESH_SECRET must differ from JWT_SECRET")
    return problems


def _encryption_key(app_config: AppConfig, settings: Settings) -> list[str]:
    try:
        Fernet(settings.encryption_key.encode())
    except (ValueError, TypeError):
        return ["ENCRYPTION_KEY is not a valid Fernet key"]
    return []


def _module_manifests(app_config: AppConfig, settings: Settings) -> list[str]:
    if not app_config.modules.discovery.sync_on_startup:
        return []
    path = get_manifests_path()
    return [] if path.is_dir() else [f"module manifests directory does not exist: {path}"]


def _production_safety(app_config: AppConfig, settings: Settings) -> list[str]:
    """Development conveniences that must be off once environment is production."""
    application = app_config.application
    if application.environment != "production":
        return []

    problems = [
        f"{flag} is true in production environment"
        for flag, enabled in (
            ("debug", application.debug),
            ("api_detailed_errors", app_config.features.api_detailed_errors),
            ("docs_enabled", application.docs_enabled),
        )
        if enabled
    ]

    localhost_origins = [origin for origin in application.cors.origins if "localhost" in origin]
    if localhost_origins:
        problems.append(f"CORS origins contain localhost in production: {localhost_origins}")

    if not app_config.security.headers.hsts_enabled:
        problems.append("security.headers.hsts_enabled is false in production environment")

    min_length = app_config.security.password.min_length
    if min_length < MIN_PRODUCTION_PASSWORD_LENGTH:
        problems.append(
            f"security.password.min_length is {min_length}, "
            f"production requires at least {MIN_PRODUCTION_PASSWORD_LENGTH}"
        )

    ai = app_config.integrations.ai
    for name, url in (("openai_base_url", ai.openai_base_url), ("openrouter_base_url", ai.openrouter_base_url)):
        if url.startswith("http://"):
            problems.append(f"integrations.ai.{name} must use https in production: {url}")
    return problems


CHECKS: tuple[Callable[[AppConfig, Settings], list[str]], ...] = (
    _secret_strength,
    _encryption_key,
    _module_manifests,
    _production_safety,
)


def run_startup_checks() -> None:
    """
    Raises:
        StartupSecurityError: listing every failed check
    """
    app_config = get_app_config()
    settings = get_settings()

    errors = [problem for check in CHECKS for problem in check(app_config, settings)]
    if errors:
        for error in errors:
            logger.error("Startup security check failed", extra={"check": error})
        raise StartupSecurityError(
            f"Startup blocked: {len(errors)} security check(s) failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    logger.info(
        "Startup security checks passed",
        extra={"environment": app_config.application.environment, "checks_run": len(CHECKS)},
    )
