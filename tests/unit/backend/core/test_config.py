"""
Unit Tests for Configuration Loading.

Loads the real YAML files from config/settings/ and checks the typed
schemas they produce. Secrets come from the environment set up in the
root conftest.
"""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from accounting.backend.core.config import (
    AppConfig,
    Settings,
    find_project_root,
    get_app_config,
    get_database_url,
    get_manifests_path,
    get_redis_url,
    get_settings,
    load_yaml_config,
)
from accounting.backend.core.config_schema import (
    ApplicationSchema,
    FeaturesSchema,
    IntegrationsSchema,
    ModulesSchema,
)


class TestFindProjectRoot:
    def test_finds_root_with_config_directory(self):
        root = find_project_root()

        assert (root / ".project_root").exists()
        assert (root / "config" / "settings").is_dir()

    def test_raises_when_no_marker_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()


class TestLoadYamlConfig:
    @pytest.mark.parametrize(
        "filename",
        [
            "application.yaml",
            "database.yaml",
            "features.yaml",
            "logging.yaml",
            "security.yaml",
            "observability.yaml",
            "concurrency.yaml",
            "modules.yaml",
            "integrations.yaml",
        ],
    )
    def test_loads_every_settings_file(self, filename):
        assert isinstance(load_yaml_config(filename), dict)

    def test_raises_for_nonexistent_file(self):
        with pytest.raises(FileNotFoundError):
            load_yaml_config("missing.yaml")


class TestAppConfig:
    def test_sections_are_typed(self):
        config = AppConfig()

        assert isinstance(config.application, ApplicationSchema)
        assert isinstance(config.features, FeaturesSchema)
        assert isinstance(config.modules, ModulesSchema)
        assert isinstance(config.integrations, IntegrationsSchema)

    def test_attribute_access(self):
        config = AppConfig()

        assert config.application.api_prefix == "/api/v1"
        assert config.modules.discovery.path == "manifests"
        assert config.integrations.ai.retry.max_attempts >= 1
        assert config.security.jwt.algorithm == "HS256"

    def test_rejects_yaml_with_unknown_fields(self):
        original = load_yaml_config

        def with_extra(filename):
            data = original(filename)
            if filename == "features.yaml":
                data["not_a_real_flag"] = True
            return data

        with patch("accounting.backend.core.config.load_yaml_config", side_effect=with_extra):
            with pytest.raises(ValueError, match="features.yaml"):
                AppConfig()

    def test_cached(self):
        assert get_app_config() is get_app_config()


class TestSettings:
    def test_secrets_from_environment(self):
        settings = get_settings()

        assert isinstance(settings, Settings)
        assert settings.jwt_secret
        assert settings.jwt_refresh_secret
        assert settings.encryption_key

    def test_secrets_are_required(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)

        with pytest.raises(Exception):
            Settings(_env_file=None)


class TestUrls:
    def test_override_wins(self):
        config = SimpleNamespace(database=SimpleNamespace(url_override="sqlite+aiosqlite:///dev.db"))

        with patch("accounting.backend.core.config.get_app_config", return_value=config):
            assert get_database_url() == "sqlite+aiosqlite:///dev.db"

    def test_postgres_url_is_assembled(self):
        url = get_database_url()

        assert url.startswith("postgresql+asyncpg://accounting:")
        assert url.endswith("@localhost:5432/accounting")
        assert get_database_url(async_driver=False).startswith("postgresql://")

    def test_redis_url(self):
        assert get_redis_url().startswith("redis://")
        assert get_redis_url().endswith("localhost:6379/0")

    def test_manifests_path_is_absolute(self):
        path = get_manifests_path()

        assert path.is_absolute()
        assert path == find_project_root() / "manifests"

    def test_absolute_manifests_path_is_kept(self, tmp_path):
        config = SimpleNamespace(modules=SimpleNamespace(discovery=SimpleNamespace(path=str(tmp_path))))

        with patch("accounting.backend.core.config.get_app_config", return_value=config):
            assert get_manifests_path() == Path(tmp_path)


class TestSchemaBounds:
    def test_api_prefix_must_be_absolute(self):
        raw = load_yaml_config("application.yaml")
        raw["api_prefix"] = "api/v1/"

        with pytest.raises(ValidationError, match="api_prefix"):
            ApplicationSchema(**raw)

    def test_unknown_environment_is_rejected(self):
        raw = load_yaml_config("application.yaml")
        raw["environment"] = "prod"

        with pytest.raises(ValidationError):
            ApplicationSchema(**raw)

    def test_ai_base_urls_are_normalized(self):
        raw = load_yaml_config("integrations.yaml")
        raw["ai"]["openai_base_url"] = "https://api.openai.com/v1/"

        assert IntegrationsSchema(**raw).ai.openai_base_url == "https://api.openai.com/v1"

    def test_retry_backoff_bounds(self):
        raw = load_yaml_config("integrations.yaml")
        raw["ai"]["retry"] = {"max_attempts": 3, "backoff_multiplier": 5, "backoff_max": 2}

        with pytest.raises(ValidationError, match="backoff_max"):
            IntegrationsSchema(**raw)

    def test_sections_are_immutable(self):
        config = AppConfig()

        with pytest.raises(ValidationError):
            config.features.notifications_enabled = False
        with pytest.raises(AttributeError):
            config.features = None
