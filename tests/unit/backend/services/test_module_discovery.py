"""
Unit Tests for Module Discovery.

Manifests are written to a temporary directory; nothing touches the
database except the sync tests, which mock the repository.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from accounting.backend.models.enums import ModuleSource
from accounting.backend.services.module_discovery import ModuleDiscoveryService, parse_manifest


def write_manifest(root: Path, directory: str, **overrides) -> Path:
    manifest = {
        "slug": directory,
        "name": directory.title(),
        "version": "1.0.0",
        "permissions": ["read", "write"],
        "defaultPermissions": ["read"],
        "isActive": True,
    }
    manifest.update(overrides)
    path = root / directory / "module.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(manifest), encoding="utf-8")
    return path


class TestParseManifest:
    def test_camel_case_keys_are_accepted(self, tmp_path):
        raw = json.dumps({
            "slug": "tasks",
            "name": "Tasks",
            "version": "2.1.0",
            "permissions": ["read", "write", "delete"],
            "defaultPermissions": ["read"],
            "isActive": False,
        })

        manifest = parse_manifest(tmp_path / "module.json", raw)

        assert manifest is not None
        assert manifest.default_permissions == ["read"]
        assert manifest.is_active is False

    def test_malformed_json_is_dropped(self, tmp_path):
        assert parse_manifest(tmp_path / "module.json", "{not json") is None

    @pytest.mark.parametrize(
        "broken",
        [
            {"slug": "Bad Slug", "name": "X", "version": "1.0.0", "permissions": ["read"]},
            {"slug": "ok", "name": "X", "version": "1.0", "permissions": ["read"]},
            {"slug": "ok", "name": "X", "version": "1.0.0", "permissions": []},
        ],
    )
    def test_invalid_manifest_is_dropped(self, tmp_path, broken):
        assert parse_manifest(tmp_path / "module.json", json.dumps(broken)) is None


class TestDiscoverModules:
    async def test_discovers_valid_manifests_only(self, tmp_path):
        # Arrange
        write_manifest(tmp_path, "clients")
        write_manifest(tmp_path, "tasks")
        broken = tmp_path / "broken" / "module.json"
        broken.parent.mkdir()
        broken.write_text("{", encoding="utf-8")
        (tmp_path / "no-manifest").mkdir()

        discovery = ModuleDiscoveryService(root=tmp_path)

        # Act
        manifests = await discovery.discover_modules()

        # Assert
        assert sorted(m.slug for m in manifests) == ["clients", "tasks"]
        assert discovery.get_default_permissions("tasks") == ["read"]
        assert discovery.get_discovery_stats().modules_list == ["clients", "tasks"]

    async def test_duplicate_slug_keeps_first_directory(self, tmp_path):
        write_manifest(tmp_path, "a-first", slug="clients", name="First")
        write_manifest(tmp_path, "b-second", slug="clients", name="Second")

        discovery = ModuleDiscoveryService(root=tmp_path)
        manifests = await discovery.discover_modules()

        assert len(manifests) == 1
        assert manifests[0].name == "First"

    async def test_missing_directory_discovers_nothing(self, tmp_path):
        discovery = ModuleDiscoveryService(root=tmp_path / "missing")

        assert await discovery.discover_modules() == []

    async def test_results_are_cached_until_cleared(self, tmp_path):
        write_manifest(tmp_path, "clients")
        discovery = ModuleDiscoveryService(root=tmp_path)
        await discovery.discover_modules()

        write_manifest(tmp_path, "tasks")
        assert len(await discovery.discover_modules()) == 1

        discovery.clear_cache()
        assert len(await discovery.discover_modules()) == 2

    def test_unknown_slug_has_no_defaults(self, tmp_path):
        discovery = ModuleDiscoveryService(root=tmp_path)

        assert discovery.get_default_permissions("nope") is None


class TestSyncWithDatabase:
    async def test_creates_new_and_updates_existing(self, tmp_path):
        # Arrange
        write_manifest(tmp_path, "clients")
        write_manifest(tmp_path, "tasks")
        discovery = ModuleDiscoveryService(root=tmp_path)

        existing_tasks = MagicMock()
        repo = MagicMock()
        repo.get_by_slug = AsyncMock(side_effect=lambda slug: existing_tasks if slug == "tasks" else None)
        repo.create = AsyncMock()
        repo.update_instance = AsyncMock()

        with patch("accounting.backend.services.module_discovery.ModuleRepository", return_value=repo):
            # Act
            result = await discovery.sync_with_database(AsyncMock())

        # Assert
        assert (result.created, result.updated) == (1, 1)
        create_kwargs = repo.create.call_args.kwargs
        assert create_kwargs["slug"] == "clients"
        assert create_kwargs["source"] == ModuleSource.FILE
        repo.update_instance.assert_awaited_once()
        assert repo.update_instance.call_args.args[0] is existing_tasks
