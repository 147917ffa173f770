#!/usr/bin/env python3
"""
Accounting Office CLI.

    accounting --service server --reload --verbose
    accounting --service server --action status
    accounting --service migrate --migrate-action upgrade
    accounting --service sync-modules
    accounting --service seed --admin-email admin@example.com
    accounting --service health
    accounting --service config

`python cli.py ...` works the same from a checkout.
"""

import asyncio
import os
import signal
import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path

import click
import structlog

from accounting.backend.core.logging import get_logger, setup_logging

PROJECT_ROOT = Path(__file__).parent
ALEMBIC_INI = PROJECT_ROOT / "accounting" / "backend" / "migrations" / "alembic.ini"

SERVICES = {
    "server": "FastAPI server (uvicorn)",
    "migrate": "Database migrations (alembic)",
    "sync-modules": "Register module manifests in the database",
    "seed": "Create the system company and first admin",
    "health": "Check configuration, secrets and the application",
    "config": "Display configuration (no secrets)",
    "info": "Show this information",
}

# alembic arguments per --migrate-action; {revision} and {message} are filled in
MIGRATE_COMMANDS = {
    "upgrade": ["upgrade", "{revision}"],
    "downgrade": ["downgrade", "{revision}"],
    "current": ["current"],
    "history": ["history", "--verbose"],
    "autogenerate": ["revision", "--autogenerate", "-m", "{message}"],
}


def fail(message: str, code: int = 1) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(code)


def validate_project_root() -> Path:
    if not (PROJECT_ROOT / ".project_root").exists():
        fail(".project_root not found. Run from project root.")
    return PROJECT_ROOT


def _log_level(verbose: bool, debug: bool) -> str:
    if debug:
        return "DEBUG"
    return "INFO" if verbose else "WARNING"


def _pids_on_port(port: int) -> list[int]:
    result = subprocess.run(["lsof", "-ti", f":{port}"], capture_output=True, text=True)
    return [int(pid) for pid in result.stdout.split()]


def _stop_server(logger, port: int) -> None:
    pids = _pids_on_port(port)
    if not pids:
        click.echo(f"No server running on port {port}.")
        return
    for pid in pids:
        os.kill(pid, signal.SIGINT)
        logger.info("Sent SIGINT", extra={"pid": pid, "port": port})
    click.echo(f"Server on port {port} stopped (PID: {', '.join(map(str, pids))}).")


def _server_status(port: int) -> None:
    pids = _pids_on_port(port)
    if pids:
        click.echo(f"Server is running on port {port} (PID: {', '.join(map(str, pids))}).")
    else:
        click.echo(f"Server is not running on port {port}.")


@click.command()
@click.option("--service", "-s", type=click.Choice(list(SERVICES)), default="info", help="What to run.")
@click.option(
    "--action", "-a",
    type=click.Choice(["start", "stop", "restart", "status"]),
    default="start",
    help="Server lifecycle action.",
)
@click.option("--verbose", "-v", is_flag=True, help="INFO level logging.")
@click.option("--debug", "-d", is_flag=True, help="DEBUG level logging.")
@click.option("--host", default=None, help="Server host (default: application.yaml).")
@click.option("--port", default=None, type=int, help="Server port (default: application.yaml).")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes.")
@click.option(
    "--migrate-action",
    type=click.Choice(list(MIGRATE_COMMANDS)),
    default="current",
    help="Alembic operation.",
)
@click.option("--revision", default="head", help="Target revision for upgrade/downgrade.")
@click.option("-m", "--message", default=None, help="Revision message for autogenerate.")
@click.option("--admin-email", default=None, help="First administrator's e-mail (seed).")
@click.option("--admin-password", default=None, help="First administrator's password (seed).")
def main(
    service: str,
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    migrate_action: str,
    revision: str,
    message: str | None,
    admin_email: str | None,
    admin_password: str | None,
) -> None:
    """
    Accounting Office CLI.

    \b
    Examples:
        accounting --service server --action restart --port 8099
        accounting --service migrate --migrate-action autogenerate -m "add offers"
        accounting --service seed --admin-email admin@example.com
    """
    validate_project_root()

    level = _log_level(verbose, debug)
    setup_logging(level=level, format_type="console", enable_file_logging=False)
    structlog.contextvars.bind_contextvars(source="cli")
    logger = get_logger(__name__)
    logger.debug("CLI invoked", extra={"service": service, "action": action, "log_level": level})

    if service == "server":
        manage_server(logger, action, host, port, reload)
    elif service == "migrate":
        run_migrations(logger, migrate_action, revision, message)
    elif service == "sync-modules":
        asyncio.run(sync_modules(logger))
    elif service == "seed":
        email = admin_email or click.prompt("Admin e-mail")
        password = admin_password or click.prompt("Admin password", hide_input=True, confirmation_prompt=True)
        asyncio.run(seed(logger, email, password))
    elif service == "health":
        check_health(logger)
    elif service == "config":
        show_config(logger)
    else:
        show_info(logger)


def manage_server(logger, action: str, host: str | None, port: int | None, reload: bool) -> None:
    from accounting.backend.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        fail("Could not load config/settings/application.yaml.")

    server_port = port or server_config.port
    if action == "status":
        _server_status(server_port)
        return
    if action in ("stop", "restart"):
        _stop_server(logger, server_port)
        if action == "stop":
            return
        time.sleep(2)

    server_host = host or server_config.host
    cmd = [sys.executable, "-m", "uvicorn", "accounting.backend.main:app", "--host", server_host, "--port", str(server_port)]
    if reload:
        cmd.append("--reload")

    logger.info("Starting server", extra={"host": server_host, "port": server_port, "reload": reload})
    click.echo(f"Starting server at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")
    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Server failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def alembic_command(migrate_action: str, revision: str, message: str | None) -> list[str]:
    if migrate_action == "autogenerate" and not message:
        fail("--message/-m required for autogenerate.")
    args = [part.format(revision=revision, message=message) for part in MIGRATE_COMMANDS[migrate_action]]
    return [sys.executable, "-m", "alembic", "-c", str(ALEMBIC_INI), *args]


def run_migrations(logger, migrate_action: str, revision: str, message: str | None) -> None:
    if not ALEMBIC_INI.exists():
        fail("accounting/backend/migrations/alembic.ini not found.")

    cmd = alembic_command(migrate_action, revision, message)
    logger.info("Running migrations", extra={"action": migrate_action, "revision": revision})
    click.echo(f"alembic {' '.join(cmd[5:])}\n")

    result = subprocess.run(cmd, cwd=PROJECT_ROOT)
    if result.returncode != 0:
        logger.error("Migration failed", extra={"exit_code": result.returncode})
        sys.exit(result.returncode)
    logger.info("Migration completed successfully")


async def sync_modules(logger) -> None:
    """Scan the manifests directory and upsert the modules table."""
    from accounting.backend.core.database import dispose_engine, session_scope
    from accounting.backend.services.module_discovery import get_module_discovery

    discovery = get_module_discovery()
    try:
        async with session_scope() as session:
            result = await discovery.sync_with_database(session)
    finally:
        await dispose_engine()

    stats = discovery.get_discovery_stats()
    logger.info("Modules synced", extra={"created": result.created, "updated": result.updated})
    click.echo(f"Discovered {stats.discovered_count} module(s): {', '.join(stats.modules_list) or '-'}")
    click.echo(f"Created: {result.created}, updated: {result.updated}")


async def seed(logger, admin_email: str, admin_password: str) -> None:
    from accounting.backend.core.database import dispose_engine, session_scope
    from accounting.backend.services.seed import SeedService

    try:
        async with session_scope() as session:
            admin, created = await SeedService(session).ensure_admin(admin_email, admin_password)
    finally:
        await dispose_engine()

    if created:
        click.echo(click.style(f"Admin {admin.email} created.", fg="green"))
    else:
        click.echo(f"Admin {admin.email} already exists, nothing to do.")
    logger.info("Seed finished", extra={"admin_id": admin.id, "created": created})


def _check_config() -> str:
    from accounting.backend.core.config import get_app_config

    return f"App: {get_app_config().application.name}"


def _check_secrets() -> None:
    from accounting.backend.core.config import get_settings

    get_settings()


def _check_security() -> None:
    from accounting.backend.gateway.security.startup_checks import run_startup_checks

    run_startup_checks()


def _check_app() -> str:
    from accounting.backend.main import get_app

    return f"Routes: {len(get_app().routes)}"


def _check_manifests() -> str:
    from accounting.backend.core.config import get_manifests_path
    from accounting.backend.services.module_discovery import get_module_discovery

    manifests = asyncio.run(get_module_discovery().discover_modules())
    return f"{len(manifests)} in {get_manifests_path()}"


HEALTH_CHECKS: list[tuple[str, Callable[[], str | None]]] = [
    ("YAML configuration", _check_config),
    ("Secrets (config/.env)", _check_secrets),
    ("Security startup checks", _check_security),
    ("FastAPI application", _check_app),
    ("Module manifests", _check_manifests),
]


def check_health(logger) -> None:
    """Run HEALTH_CHECKS in order; exit 1 if any of them raised."""
    click.echo("Checking application health...\n")
    click.echo("Health Check Results:")
    click.echo("-" * 50)

    failed = 0
    for name, check in HEALTH_CHECKS:
        try:
            detail = check()
        except Exception as e:
            logger.error("Health check failed", extra={"check": name, "error": str(e)})
            failed += 1
            status, detail = click.style("FAIL", fg="red"), str(e)
        else:
            status = click.style("PASS", fg="green")
        click.echo(f"  {status}  {name}{f' ({detail})' if detail else ''}")

    click.echo("-" * 50)
    if failed:
        click.echo(click.style(f"\n{failed} check(s) failed. See details above.", fg="yellow"))
        sys.exit(1)
    click.echo(click.style("\nAll checks passed!", fg="green"))


def show_config(logger) -> None:
    """Print the YAML-backed sections. Secrets live in config/.env and are never printed."""
    from accounting.backend.core.config import get_app_config

    try:
        app_config = get_app_config()
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        fail(f"Could not load configuration: {e}")

    for title in ("application", "database", "logging", "features", "modules", "integrations"):
        click.echo(f"\n{title.capitalize()} (from YAML):")
        click.echo("-" * 40)
        for key, value in getattr(app_config, title).model_dump().items():
            click.echo(f"  {key}: {value}")


def show_info(logger) -> None:
    from accounting.backend.core.config import get_app_config

    try:
        application = get_app_config().application
    except Exception as e:
        logger.error("Failed to load application configuration", extra={"error": str(e)})
        fail("Could not load application.yaml configuration.")

    click.echo(f"{application.name} {application.version}")
    click.echo("=" * 40)
    click.echo(application.description)
    click.echo("\nServices (--service):")
    for name, description in SERVICES.items():
        click.echo(f"  {name:<14} {description}")
    click.echo("\nServer actions (--action): start (default), stop, restart, status")


if __name__ == "__main__":
    main()
