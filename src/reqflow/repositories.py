"""Package repositories: in-memory, Composer (HTTP) and the local platform."""
from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import requests

from .cache import MetadataCache, cache_namespace
from .constants import DEFAULT_REPOSITORY_URL, PLATFORM_PACKAGE_RE, PLUGIN_API_VERSION, RUNTIME_API_VERSION
from .constraints import Constraint
from .exceptions import InvalidConstraintSyntax, InvalidVersionString, MetadataFetchError
from .fetchers import fetch_package_versions, fetch_search_results
from .models import Package, PackageLike, expand_minified, package_from_dict
from .versions import normalize

logger = logging.getLogger(__name__)

SearchResult = Dict[str, str]

_PHP_PROBE = (
    "echo json_encode(["
    "'php' => PHP_MAJOR_VERSION.'.'.PHP_MINOR_VERSION.'.'.PHP_RELEASE_VERSION,"
    "'int_size' => PHP_INT_SIZE,"
    "'extensions' => array_combine(get_loaded_extensions(), array_map('phpversion', get_loaded_extensions())),"
    "]);"
)


def is_platform_package(name: str) -> bool:
    return bool(PLATFORM_PACKAGE_RE.match(name))


def _packages_from_dicts(entries: Iterable[Mapping[str, Any]], repository: str) -> List[PackageLike]:
    packages: List[PackageLike] = []
    for entry in entries:
        try:
            packages.extend(package_from_dict(dict(entry), repository=repository))
        except (InvalidVersionString, InvalidConstraintSyntax, KeyError) as exc:
            logger.warning("Skipping invalid package entry %s in %s: %s", entry.get("name"), repository, exc)
    return packages


class BaseRepository:
    """Read-only view over the packages of one source."""

    def __init__(self, name: str, canonical: bool = True):
        self.name = name
        self.canonical = canonical

    def load_packages(self, name: str) -> List[PackageLike]:
        """Every package (and alias) published under exactly *name*."""
        raise NotImplementedError

    def find_packages(self, name: str, constraint: Optional[Constraint] = None) -> List[PackageLike]:
        packages = self.load_packages(name.lower())
        if constraint is None:
            return list(packages)
        return [package for package in packages if constraint.matches(package.version)]

    def has_package_name(self, name: str) -> bool:
        return bool(self.load_packages(name.lower()))

    def get_providers(self, name: str) -> List[PackageLike]:
        return []

    def search(self, query: str) -> List[SearchResult]:
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ArrayRepository(BaseRepository):
    def __init__(self, packages: Iterable[PackageLike] = (), name: str = "array", canonical: bool = True):
        super().__init__(name, canonical)
        self._packages: Dict[str, List[PackageLike]] = {}
        for package in packages:
            self.add_package(package)

    @classmethod
    def from_dicts(cls, entries: Iterable[Mapping[str, Any]], name: str = "array", canonical: bool = True) -> "ArrayRepository":
        return cls(_packages_from_dicts(entries, name), name=name, canonical=canonical)

    def add_package(self, package: PackageLike) -> None:
        self._packages.setdefault(package.name, []).append(package)

    def get_packages(self) -> List[PackageLike]:
        return [package for packages in self._packages.values() for package in packages]

    def load_packages(self, name: str) -> List[PackageLike]:
        return self._packages.get(name.lower(), [])

    def get_providers(self, name: str) -> List[PackageLike]:
        name = name.lower()
        return [
            package
            for package in self.get_packages()
            if package.name != name and (name in package.provides or name in package.replaces)
        ]

    def search(self, query: str) -> List[SearchResult]:
        terms = [re.escape(term) for term in query.split() if term]
        if not terms:
            return []
        pattern = re.compile("|".join(terms), re.IGNORECASE)
        results: Dict[str, SearchResult] = {}
        for package in self.get_packages():
            if package.name in results:
                continue
            if pattern.search(package.name) or pattern.search(package.description or ""):
                results[package.name] = {"name": package.pretty_name, "description": package.description or ""}
        return list(results.values())


class ComposerRepository(BaseRepository):
    """A repository speaking the Composer v2 metadata protocol (``/p2/<name>.json``)."""

    def __init__(
        self,
        url: str = DEFAULT_REPOSITORY_URL,
        cache: Optional[MetadataCache] = None,
        session: Optional[requests.Session] = None,
        canonical: bool = True,
        name: Optional[str] = None,
        search_url: Optional[str] = None,
    ):
        super().__init__(name or url.rstrip("/"), canonical)
        self.url = url.rstrip("/")
        self.cache = cache
        self.session = session or requests.Session()
        if search_url is None and "repo.packagist.org" in self.url:
            search_url = "https://packagist.org"
        self.search_url = search_url or self.url
        self._loaded: Dict[str, List[PackageLike]] = {}

    def _raw_metadata(self, package: str, refresh: bool = False) -> Dict[str, Any]:
        namespace = cache_namespace(self.url)
        cache_key = f"{package}.json"
        raw = None
        if self.cache and not refresh:
            raw = self.cache.load(namespace, cache_key)
            if raw is not None:
                logger.debug("Cache hit for %s in %s", package, self.name)
        if raw is None:
            raw = fetch_package_versions(self.url, package, session=self.session)
            if self.cache:
                self.cache.store(raw, namespace, cache_key)
        return raw

    def _versions(self, raw: Dict[str, Any], package: str) -> List[Dict[str, Any]]:
        versions = (raw.get("packages") or {}).get(package) or []
        if raw.get("minified") == "composer/2.0":
            versions = expand_minified(versions)
        return versions

    def _load(self, name: str, refresh: bool) -> List[PackageLike]:
        entries: List[Dict[str, Any]] = []
        for key in (name, f"{name}~dev"):
            entries.extend(self._versions(self._raw_metadata(key, refresh=refresh), name))
        return _packages_from_dicts(entries, self.name)

    def load_packages(self, name: str) -> List[PackageLike]:
        name = name.lower()
        if name in self._loaded:
            return self._loaded[name]
        if is_platform_package(name):
            return []
        try:
            packages = self._load(name, refresh=False)
        except MetadataFetchError as exc:
            logger.warning("Could not load %s from %s: %s", name, self.name, exc)
            packages = []
        self._loaded[name] = packages
        return packages

    def prime(self, name: str) -> List[PackageLike]:
        """Refetch *name* bypassing the cache; fetch errors propagate."""
        name = name.lower()
        packages = self._load(name, refresh=True)
        self._loaded[name] = packages
        return packages

    def search(self, query: str) -> List[SearchResult]:
        try:
            results = fetch_search_results(self.search_url, query, session=self.session)
        except MetadataFetchError as exc:
            logger.warning("Search failed on %s: %s", self.name, exc)
            return []
        return [{"name": item["name"], "description": item.get("description") or ""} for item in results]


class PlatformRepository(ArrayRepository):
    """The runtime the packages will be installed on (php, extensions, APIs).

    Overrides come from the ``platform`` configuration; ``False`` disables a
    package so requirements on it can never be met.
    """

    def __init__(
        self,
        overrides: Optional[Mapping[str, Union[str, bool]]] = None,
        detect: bool = False,
        php_binary: str = "php",
    ):
        super().__init__(name="platform", canonical=True)
        self.disabled: set = set()
        detected: Dict[str, str] = {
            "composer-plugin-api": PLUGIN_API_VERSION,
            "composer-runtime-api": RUNTIME_API_VERSION,
        }
        if detect:
            detected.update(self._detect(php_binary))
        for name, value in (overrides or {}).items():
            if value is False:
                self.disabled.add(name.lower())
                detected.pop(name.lower(), None)
            else:
                detected[name.lower()] = str(value)
        for name, version in detected.items():
            self._add(name, version)

    def _add(self, name: str, pretty_version: str) -> None:
        try:
            version = normalize(pretty_version)
        except InvalidVersionString:
            logger.debug("Unparseable platform version %s for %s, using 0", pretty_version, name)
            pretty_version, version = "0", normalize("0")
        self.add_package(
            Package(
                name=name,
                pretty_name=name,
                version=version,
                pretty_version=pretty_version,
                repository=self.name,
            )
        )

    @staticmethod
    def _detect(php_binary: str) -> Dict[str, str]:
        executable = shutil.which(php_binary)
        if not executable:
            logger.info("No %s binary found, platform detection skipped", php_binary)
            return {}
        try:
            completed = subprocess.run(
                [executable, "-r", _PHP_PROBE],
                capture_output=True,
                text=True,
                timeout=15,
                check=True,
            )
            probe = json.loads(completed.stdout)
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.warning("Platform detection through %s failed: %s", executable, exc)
            return {}
        versions = {"php": probe["php"]}
        if probe.get("int_size") == 8:
            versions["php-64bit"] = probe["php"]
        for extension, version in (probe.get("extensions") or {}).items():
            name = "ext-" + re.sub(r"[^a-z0-9]+", "-", extension.lower())
            versions[name] = version if isinstance(version, str) and version else probe["php"]
        return versions

    def find_package(self, name: str) -> Optional[PackageLike]:
        packages = self.load_packages(name)
        return packages[0] if packages else None

    def is_platform_package_disabled(self, name: str) -> bool:
        return name.lower() in self.disabled


def repository_from_config(
    entry: Mapping[str, Any],
    cache: Optional[MetadataCache] = None,
    session: Optional[requests.Session] = None,
    base_dir: Optional[Path] = None,
) -> BaseRepository:
    kind = str(entry.get("type", "composer")).lower()
    canonical = bool(entry.get("canonical", True))
    if kind == "composer":
        url = entry.get("url")
        if not url:
            raise ValueError("Composer repository entry missing 'url'")
        return ComposerRepository(url, cache=cache, session=session, canonical=canonical, name=entry.get("name"))
    if kind == "package":
        packages = entry.get("packages", entry.get("package"))
        if isinstance(packages, Mapping):
            packages = [packages]
        if not isinstance(packages, list):
            raise ValueError("Package repository entry needs a 'package' mapping or 'packages' list")
        return ArrayRepository.from_dicts(packages, name=str(entry.get("name", "package")), canonical=canonical)
    if kind == "file":
        path = Path(str(entry.get("path", "")))
        if base_dir and not path.is_absolute():
            path = base_dir / path
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = data.get("packages", data) if isinstance(data, dict) else data
        if isinstance(entries, dict):
            entries = [version for versions in entries.values() for version in (versions.values() if isinstance(versions, dict) else versions)]
        return ArrayRepository.from_dicts(entries, name=str(entry.get("name", path.name)), canonical=canonical)
    raise ValueError(f"Unsupported repository type: {kind}")
