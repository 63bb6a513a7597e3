"""Lightweight on-disk cache for repository metadata."""
from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize(segment: str) -> str:
    return _UNSAFE_RE.sub("~", segment.replace("/", "__"))


def cache_namespace(url: str) -> str:
    """Directory name used for the metadata of the repository at *url*."""
    stripped = re.sub(r"^[a-z]+://", "", url.rstrip("/"))
    return _sanitize(stripped)


class MetadataCache:
    def __init__(self, root: Path | str, max_age: Optional[float] = None):
        self.root = Path(root).expanduser()
        self.max_age = max_age

    def _path(self, *segments: str) -> Path:
        safe_segments = [_sanitize(segment) for segment in segments]
        path = self.root.joinpath(*safe_segments)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def is_fresh(self, *segments: str) -> bool:
        path = self._path(*segments)
        if not path.exists():
            return False
        if self.max_age is None:
            return True
        return time.time() - path.stat().st_mtime <= self.max_age

    def load(self, *segments: str) -> Optional[Dict[str, Any]]:
        if not self.is_fresh(*segments):
            return None
        path = self._path(*segments)
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except ValueError:
            logger.warning("Ignoring corrupt cache entry %s", path)
            return None

    def store(self, data: Dict[str, Any], *segments: str) -> None:
        path = self._path(*segments)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=True, indent=2, sort_keys=True)
