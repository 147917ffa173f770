"""
Module Discovery Service.

Scans the manifests directory for `<slug>/module.json` files, keeps the
validated manifests in a process-wide cache and synchronizes them into
the modules table.

Usage:
    from accounting.backend.services.module_discovery import get_module_discovery

    discovery = get_module_discovery()
    manifests = await discovery.discover_modules()
    result = await discovery.sync_with_database(session)
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.concurrency import run_blocking
from accounting.backend.core.config import get_manifests_path
from accounting.backend.core.logging import get_logger, log_with_source
from accounting.backend.models.enums import ModuleSource
from accounting.backend.repositories.module import ModuleRepository
from accounting.backend.schemas.module import DiscoveryStats, ModuleManifest, SyncResult

logger = get_logger(__name__)

MANIFEST_FILENAME = "module.json"


def _read_manifests(root: Path) -> list[tuple[Path, str]]:
    """Blocking directory walk. Returns (path, raw text) per manifest found."""
    if not root.is_dir():
        return []
    found = []
    for child in sorted(root.iterdir()):
        manifest = child / MANIFEST_FILENAME
        if child.is_dir() and manifest.is_file():
            found.append((manifest, manifest.read_text(encoding="utf-8")))
    return found


def parse_manifest(path: Path, raw: str) -> ModuleManifest | None:
    """Validate one manifest; invalid ones are logged and dropped."""
    try:
        return ModuleManifest.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        log_with_source(logger, "discovery", "warning", "Malformed module manifest", path=str(path), error=str(e))
    except pydantic.ValidationError as e:
        log_with_source(
            logger, "discovery", "warning", "Invalid module manifest",
            path=str(path),
            errors=[".".join(str(loc) for loc in err["loc"]) for err in e.errors()],
        )
    return None


class ModuleDiscoveryService:
    """
    Filesystem module registry.

    One instance per process (see get_module_discovery). Concurrent
    discover_modules() calls wait on the same lock, and only the first one
    scans while the cache is empty.
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self._cache: dict[str, ModuleManifest] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def root(self) -> Path:
        return self._root or get_manifests_path()

    async def discover_modules(self) -> list[ModuleManifest]:
        async with self._lock:
            if not self._loaded:
                await self._scan()
            return list(self._cache.values())

    async def _scan(self) -> None:
        raw_manifests = await run_blocking(_read_manifests, self.root)
        cache: dict[str, ModuleManifest] = {}
        for path, raw in raw_manifests:
            manifest = parse_manifest(path, raw)
            if manifest is None:
                continue
            if manifest.slug in cache:
                log_with_source(logger, "discovery", "warning", "Duplicate module slug", slug=manifest.slug, path=str(path))
                continue
            cache[manifest.slug] = manifest

        self._cache = cache
        self._loaded = True
        log_with_source(
            logger, "discovery", "info", "Modules discovered",
            path=str(self.root),
            count=len(cache),
        )

    def clear_cache(self) -> None:
        self._cache = {}
        self._loaded = False

    def get_default_permissions(self, slug: str) -> list[str] | None:
        manifest = self._cache.get(slug)
        return list(manifest.default_permissions) if manifest else None

    def get_discovery_stats(self) -> DiscoveryStats:
        return DiscoveryStats(
            discovered_count=len(self._cache),
            modules_list=sorted(self._cache),
        )

    async def sync_with_database(self, session: AsyncSession) -> SyncResult:
        """
        Upsert discovered manifests into the modules table.

        New modules are created, existing ones overwritten; both end up
        with source=file. Modules without a manifest are left untouched.
        """
        repo = ModuleRepository(session)
        created = updated = 0

        for manifest in await self.discover_modules():
            values: dict[str, Any] = {
                "name": manifest.name,
                "description": manifest.description,
                "version": manifest.version,
                "icon": manifest.icon,
                "category": manifest.category,
                "permissions": list(manifest.permissions),
                "default_permissions": list(manifest.default_permissions),
                "is_active": manifest.is_active,
                "source": ModuleSource.FILE,
            }
            existing = await repo.get_by_slug(manifest.slug)
            if existing is None:
                await repo.create(slug=manifest.slug, **values)
                created += 1
            else:
                await repo.update_instance(existing, **values)
                updated += 1

        log_with_source(logger, "discovery", "info", "Modules synced", created=created, updated=updated)
        return SyncResult(created=created, updated=updated)

    async def reload_modules(self, session: AsyncSession) -> SyncResult:
        async with self._lock:
            self.clear_cache()
        return await self.sync_with_database(session)


_discovery: ModuleDiscoveryService | None = None


def get_module_discovery() -> ModuleDiscoveryService:
    """Process-wide discovery service."""
    global _discovery
    if _discovery is None:
        _discovery = ModuleDiscoveryService()
    return _discovery