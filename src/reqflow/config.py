"""Parse user configuration for the resolver."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import requests
import yaml

from .cache import MetadataCache
from .constants import DEFAULT_CACHE_DIR, DEFAULT_REPOSITORY_URL
from .platform import IgnoreNothingFilter, PlatformRequirementFilter
from .pool import RepositorySet
from .repositories import PlatformRepository, repository_from_config
from .resolver import Resolver
from .stability import Stability

PACKAGIST_KEY = "packagist.org"


def _default_repositories() -> List[Dict[str, Any]]:
    return [{"type": "composer", "url": DEFAULT_REPOSITORY_URL, "name": PACKAGIST_KEY}]


@dataclass(frozen=True)
class ResolverConfig:
    minimum_stability: str = "stable"
    prefer_stable: bool = False
    platform: Dict[str, Union[str, bool]] = field(default_factory=dict)
    repositories: List[Dict[str, Any]] = field(default_factory=_default_repositories)
    cache_dir: str = DEFAULT_CACHE_DIR
    cache_ttl: Optional[float] = 300.0
    detect_platform: bool = True


def _check_stability(value: Any) -> str:
    return Stability.parse(str(value)).label


def _normalize_repositories(raw: Any) -> List[Dict[str, Any]]:
    """Accept a list of repository entries or Composer's ``{name: entry}`` mapping."""

    if raw is None:
        return []
    if isinstance(raw, Mapping):
        entries = []
        for key, value in raw.items():
            if value is False:
                entries.append({"name": str(key), "disabled": True})
            elif isinstance(value, Mapping):
                entries.append({"name": str(key), **value})
            else:
                raise ValueError(f"Repository {key} must be a mapping or false")
        return entries
    if not isinstance(raw, list):
        raise ValueError("'repositories' must be a list or a mapping")
    entries = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValueError("Each repository entry must be a mapping")
        # {"packagist.org": false} disables the default repository
        if len(item) == 1 and next(iter(item.values())) is False:
            entries.append({"name": str(next(iter(item))), "disabled": True})
        else:
            entries.append(dict(item))
    return entries


def _platform_overrides(raw: Any) -> Dict[str, Union[str, bool]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("'platform' must be a mapping of package names to versions")
    return {str(name).lower(): (value if value is False else str(value)) for name, value in raw.items()}


def load_config(path: Optional[Path] = None) -> ResolverConfig:
    if path is None:
        return ResolverConfig()
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return ResolverConfig()
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")

    defaults = ResolverConfig()
    repositories = _normalize_repositories(data.get("repositories"))
    cache_ttl = data.get("cache-ttl", defaults.cache_ttl)
    return ResolverConfig(
        minimum_stability=_check_stability(data.get("minimum-stability", defaults.minimum_stability)),
        prefer_stable=bool(data.get("prefer-stable", defaults.prefer_stable)),
        platform=_platform_overrides(data.get("platform")),
        repositories=repositories or defaults.repositories,
        cache_dir=str(data.get("cache-dir") or defaults.cache_dir),
        cache_ttl=float(cache_ttl) if cache_ttl is not None else None,
        detect_platform=bool(data.get("detect-platform", defaults.detect_platform)),
    )


def merge_manifest(config: ResolverConfig, manifest: Mapping[str, Any]) -> ResolverConfig:
    """Layer composer.json settings on top of *config*.

    Manifest repositories take priority over configured ones; the default
    repository stays last unless the manifest disables it.
    """

    changes: Dict[str, Any] = {}
    if "minimum-stability" in manifest:
        changes["minimum_stability"] = _check_stability(manifest["minimum-stability"])
    if "prefer-stable" in manifest:
        changes["prefer_stable"] = bool(manifest["prefer-stable"])

    settings = manifest.get("config") or {}
    if isinstance(settings, Mapping) and settings.get("platform"):
        platform = dict(config.platform)
        platform.update(_platform_overrides(settings["platform"]))
        changes["platform"] = platform

    manifest_repositories = _normalize_repositories(manifest.get("repositories"))
    if manifest_repositories:
        disabled = {entry["name"] for entry in manifest_repositories if entry.get("disabled")}
        merged = [entry for entry in manifest_repositories if not entry.get("disabled")]
        merged.extend(entry for entry in config.repositories if entry.get("name") not in disabled)
        changes["repositories"] = merged

    return replace(config, **changes) if changes else config


def build_repository_set(
    config: ResolverConfig,
    base_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> RepositorySet:
    cache = MetadataCache(config.cache_dir, max_age=config.cache_ttl)
    session = session or requests.Session()
    repositories = [
        repository_from_config(entry, cache=cache, session=session, base_dir=base_dir)
        for entry in config.repositories
        if not entry.get("disabled")
    ]
    return RepositorySet(repositories, minimum_stability=config.minimum_stability)


def build_platform_repository(config: ResolverConfig) -> PlatformRepository:
    return PlatformRepository(config.platform, detect=config.detect_platform)


def build_resolver(
    config: ResolverConfig,
    platform_filter: Optional[PlatformRequirementFilter] = None,
    base_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
    installed: Iterable[str] = (),
) -> Resolver:
    return Resolver(
        build_repository_set(config, base_dir=base_dir, session=session),
        platform_repository=build_platform_repository(config),
        platform_filter=platform_filter or IgnoreNothingFilter(),
        minimum_stability=config.minimum_stability,
        prefer_stable=config.prefer_stable,
        installed=installed,
    )
