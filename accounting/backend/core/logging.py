"""
Centralized Logging Configuration.

Every module logs through structlog:

    logger = get_logger(__name__)
    logger.info("Client created", extra={"client_id": client.id})

setup_logging() reads config/settings/logging.yaml and routes all records,
including those of the standard library loggers used by uvicorn and
SQLAlchemy, through the same processor chain. A record carries:

    timestamp, level, logger, event, func_name, lineno
    source      web, cli, startup, discovery, ...
    request_id  HTTP requests only
    user_id, role, company_id  authenticated requests only

Values under keys that look like credentials (password, api_key, secret,
bearer tokens) are masked before rendering, so SMTP passwords and provider keys
never reach logs/system.jsonl.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

VALID_SOURCES = frozenset({"web", "cli", "api", "startup", "discovery", "internal", "unknown"})

SENSITIVE_KEY_PARTS = ("password", "api_key", "apikey", "access_token", "refresh_token", "secret", "authorization")
REDACTED = "***"

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive(str(k)) else _mask(v) for k, v in value.items()}
    return value


def redact_secrets(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Mask credential-like keys, including those nested under `extra`."""
    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        event_dict[key] = REDACTED if _is_sensitive(key) else _mask(value)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
        redact_secrets,
    ]


def _formatter(renderer: Processor, shared: list[Processor]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared)


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Configure structlog and the root logger.

    Arguments override the matching logging.yaml values; None keeps the
    configured value. Calling it again replaces the previous handlers.
    """
    from accounting.backend.core.config import find_project_root, get_app_config

    config = get_app_config().logging
    handlers_config = config.handlers
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = _formatter(structlog.processors.JSONRenderer(), shared)
    if (format_type or config.format) == "console":
        console_formatter = _formatter(structlog.dev.ConsoleRenderer(colors=True), shared)
    else:
        console_formatter = json_formatter

    handlers: list[logging.Handler] = []
    if handlers_config.console.enabled if enable_console is None else enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(console_formatter)
        handlers.append(console)

    if handlers_config.file.enabled if enable_file_logging is None else enable_file_logging:
        log_path = find_project_root() / handlers_config.file.path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=handlers_config.file.max_bytes,
            backupCount=handlers_config.file.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(json_formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, (level or config.level).upper()))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_user_context(user_id: str, role: str, company_id: str | None) -> None:
    """Attach the authenticated user to every log record of the current request."""
    structlog.contextvars.bind_contextvars(user_id=user_id, role=role, company_id=company_id)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log with an explicit `source`, for code running outside a request
    (CLI commands, startup hooks, module discovery). Sources outside
    VALID_SOURCES are recorded as "unknown".

        log_with_source(logger, "discovery", "info", "Modules synced", created=3)
    """
    log_method = getattr(logger, level.lower())
    log_method(message, source=source if source in VALID_SOURCES else "unknown", **kwargs)
