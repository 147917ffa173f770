"""
Unit Tests for the cli.py entry point.

Logging setup is patched out: CliRunner swaps stdout for each invocation and
a handler bound to it would outlive the test.
"""

import sys
from unittest.mock import MagicMock, patch

import pytest
import structlog
from click.testing import CliRunner

import cli
from cli import alembic_command, main, validate_project_root


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging():
    with patch.object(cli, "setup_logging") as mock_setup:
        yield mock_setup
    structlog.contextvars.clear_contextvars()


class TestValidateProjectRoot:
    def test_returns_root_when_marker_exists(self, tmp_path):
        (tmp_path / ".project_root").touch()

        with patch.object(cli, "PROJECT_ROOT", tmp_path):
            assert validate_project_root() == tmp_path

    def test_exits_when_marker_missing(self, tmp_path):
        with patch.object(cli, "PROJECT_ROOT", tmp_path):
            with pytest.raises(SystemExit) as exc_info:
                validate_project_root()

        assert exc_info.value.code == 1


class TestMain:
    def test_help_lists_services(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "--service" in result.output
        assert "--migrate-action" in result.output

    def test_info_is_the_default(self, runner):
        result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "Accounting Office API" in result.output
        assert "sync-modules" in result.output

    @pytest.mark.parametrize(
        ("flags", "level"),
        [([], "WARNING"), (["-v"], "INFO"), (["-d"], "DEBUG"), (["-v", "-d"], "DEBUG")],
    )
    def test_verbosity_flags_pick_log_level(self, runner, _quiet_logging, flags, level):
        result = runner.invoke(main, [*flags, "--service", "info"])

        assert result.exit_code == 0
        assert _quiet_logging.call_args.kwargs["level"] == level

    def test_unknown_service_is_rejected(self, runner):
        result = runner.invoke(main, ["--service", "scheduler"])

        assert result.exit_code != 0
        assert "Invalid value" in result.output

    def test_config_prints_sections(self, runner):
        result = runner.invoke(main, ["--service", "config"])

        assert result.exit_code == 0
        assert "Application (from YAML):" in result.output
        assert "Features (from YAML):" in result.output
        assert "jwt_secret" not in result.output

    def test_seed_passes_options_through(self, runner):
        seed = MagicMock()

        with patch.object(cli, "seed", seed), patch.object(cli.asyncio, "run") as run:
            result = runner.invoke(
                main, ["--service", "seed", "--admin-email", "boss@example.com", "--admin-password", "Secret123!"]
            )

        assert result.exit_code == 0
        assert seed.call_args.args[1:] == ("boss@example.com", "Secret123!")
        run.assert_called_once_with(seed.return_value)


class TestServerActions:
    def test_status_reports_pids(self, runner):
        with patch.object(cli, "_pids_on_port", return_value=[4242]):
            result = runner.invoke(main, ["--service", "server", "--action", "status", "--port", "8099"])

        assert result.exit_code == 0
        assert "running on port 8099 (PID: 4242)" in result.output

    def test_stop_without_server(self, runner):
        with patch.object(cli, "_pids_on_port", return_value=[]), patch.object(cli.os, "kill") as kill:
            result = runner.invoke(main, ["--service", "server", "--action", "stop", "--port", "8099"])

        assert "No server running on port 8099" in result.output
        kill.assert_not_called()

    def test_start_runs_uvicorn(self, runner):
        with patch.object(cli.subprocess, "run") as run:
            result = runner.invoke(main, ["--service", "server", "--port", "8099", "--reload"])

        assert result.exit_code == 0
        cmd = run.call_args.args[0]
        assert cmd[:3] == [sys.executable, "-m", "uvicorn"]
        assert "accounting.backend.main:app" in cmd
        assert cmd[-3:] == ["--port", "8099", "--reload"]


class TestAlembicCommand:
    def test_upgrade_targets_revision(self):
        cmd = alembic_command("upgrade", "head", None)

        assert cmd[-2:] == ["upgrade", "head"]
        assert str(cli.ALEMBIC_INI) in cmd

    def test_autogenerate_uses_message(self):
        assert alembic_command("autogenerate", "head", "add offers")[-4:] == [
            "revision", "--autogenerate", "-m", "add offers",
        ]

    def test_autogenerate_requires_message(self):
        with pytest.raises(SystemExit) as exc_info:
            alembic_command("autogenerate", "head", None)

        assert exc_info.value.code == 1


class TestCheckHealth:
    def test_all_passing(self, runner):
        checks = [("First", lambda: "ok"), ("Second", lambda: None)]

        with patch.object(cli, "HEALTH_CHECKS", checks):
            result = runner.invoke(main, ["--service", "health"])

        assert result.exit_code == 0
        assert "First (ok)" in result.output
        assert "All checks passed!" in result.output

    def test_failure_exits_non_zero(self, runner):
        def broken():
            raise RuntimeError("JWT_SECRET missing")

        with patch.object(cli, "HEALTH_CHECKS", [("Secrets", broken)]):
            result = runner.invoke(main, ["--service", "health"])

        assert result.exit_code == 1
        assert "JWT_SECRET missing" in result.output
        assert "1 check(s) failed" in result.output
