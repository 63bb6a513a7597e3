"""Reading and writing composer.json, composer.lock and installed.json."""
from __future__ import annotations

import json
import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from .constants import MANIFEST_SECTIONS
from .exceptions import InvalidConstraintSyntax, InvalidVersionString, ManifestError
from .models import Package, package_from_dict

logger = logging.getLogger(__name__)

_REVERT_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class ManifestFile:
    """A composer.json on disk.

    :meth:`backup` records the exact bytes present before any change so that
    :meth:`revert` can put them back, or delete the file if it did not exist.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._backup: Optional[bytes] = None
        self._created = False
        self._backed_up = False

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Dict[str, Any]:
        if not self.exists:
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ManifestError(f"{self.path} does not contain valid JSON: {exc}") from exc
        except OSError as exc:
            raise ManifestError(f"{self.path} could not be read: {exc}") from exc
        if not isinstance(data, dict):
            raise ManifestError(f"{self.path} must contain a JSON object")
        return data

    def backup(self) -> None:
        self._created = not self.exists
        self._backup = None if self._created else self.path.read_bytes()
        self._backed_up = True

    @staticmethod
    def add_links(data: Dict[str, Any], section: str, links: Mapping[str, str]) -> Dict[str, Any]:
        if section not in MANIFEST_SECTIONS:
            raise ManifestError(f"Unknown link section {section}")
        current = data.get(section)
        if not isinstance(current, dict):
            current = {}
        for name, constraint in links.items():
            # replace entries that only differ in case
            for existing in [key for key in current if key.lower() == name.lower() and key != name]:
                del current[existing]
            current[name] = constraint
        data[section] = current
        return data

    @staticmethod
    def remove_links(data: Dict[str, Any], section: str, names: Iterable[str]) -> Dict[str, Any]:
        current = data.get(section)
        if not isinstance(current, dict):
            return data
        lowered = {name.lower() for name in names}
        for key in [key for key in current if key.lower() in lowered]:
            del current[key]
        if not current:
            data.pop(section, None)
        return data

    def write(self, data: Mapping[str, Any]) -> None:
        text = json.dumps(data, indent=4, ensure_ascii=False) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as exc:
            raise ManifestError(f"{self.path} could not be written: {exc}") from exc
        logger.debug("Wrote %s", self.path)

    def revert(self) -> None:
        if not self._backed_up:
            return
        if self._created:
            if self.exists:
                self.path.unlink()
                logger.warning("Removed %s", self.path)
            return
        assert self._backup is not None
        self.path.write_bytes(self._backup)
        logger.warning("Reverted %s to its original content", self.path)


@contextmanager
def manifest_transaction(manifest: ManifestFile) -> Iterator[ManifestFile]:
    """Restore *manifest* if the block fails or the process is interrupted.

    SIGINT/SIGTERM/SIGHUP revert the file and exit with ``128 + signum``.
    """

    manifest.backup()
    previous: Dict[int, Any] = {}

    def _on_signal(signum: int, frame: Any) -> None:
        logger.warning("Received %s, reverting %s", signal.Signals(signum).name, manifest.path)
        manifest.revert()
        raise SystemExit(128 + signum)

    if threading.current_thread() is threading.main_thread():
        for signum in _REVERT_SIGNALS:
            previous[signum] = signal.signal(signum, _on_signal)
    try:
        yield manifest
    except BaseException:
        manifest.revert()
        raise
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _real_packages(entries: Iterable[Mapping[str, Any]], repository: str) -> List[Package]:
    packages: List[Package] = []
    for entry in entries:
        try:
            built = package_from_dict(dict(entry), repository=repository)
        except (InvalidVersionString, InvalidConstraintSyntax, KeyError) as exc:
            logger.warning("Skipping invalid entry %s in %s: %s", entry.get("name"), repository, exc)
            continue
        packages.append(built[0])
    return packages


def read_installed_packages(working_dir: Path | str) -> Tuple[Dict[str, Package], Set[str]]:
    """Return the locked (or installed) packages by name and the dev package names.

    ``composer.lock`` wins over ``vendor/composer/installed.json``; both missing
    raises :class:`ManifestError`.
    """

    working_dir = Path(working_dir)
    lock_path = working_dir / "composer.lock"
    installed_path = working_dir / "vendor" / "composer" / "installed.json"

    if lock_path.is_file():
        data = _load_json(lock_path)
        regular = _real_packages(data.get("packages") or [], "lock")
        dev = _real_packages(data.get("packages-dev") or [], "lock")
        packages = {package.name: package for package in regular + dev}
        return packages, {package.name for package in dev}

    if installed_path.is_file():
        data = _load_json(installed_path)
        if isinstance(data, list):
            entries, dev_names = data, []
        else:
            entries, dev_names = data.get("packages") or [], data.get("dev-package-names") or []
        packages = {package.name: package for package in _real_packages(entries, "installed")}
        return packages, {name.lower() for name in dev_names}

    raise ManifestError(f"No composer.lock or vendor/composer/installed.json found in {working_dir}")


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ManifestError(f"{path} could not be read: {exc}") from exc
