"""Functions that download metadata from Composer repositories."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .constants import VERSION
from .exceptions import MetadataFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
USER_AGENT = f"reqflow/{VERSION}"


def _request_json(url: str, session: Optional[requests.Session] = None, missing_ok: bool = False) -> Optional[Dict]:
    sess = session or requests.Session()
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    logger.debug("GET %s", url)
    try:
        response = sess.get(url, headers=headers, timeout=DEFAULT_TIMEOUT)
    except requests.RequestException as exc:
        raise MetadataFetchError(f"Failed to fetch {url}: {exc}") from exc
    if missing_ok and response.status_code == 404:
        return None
    if response.status_code >= 400:
        raise MetadataFetchError(f"Failed to fetch {url}: HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:  # pragma: no cover - network only
        raise MetadataFetchError(f"Invalid JSON from {url}") from exc


def fetch_package_versions(base_url: str, package: str, session: Optional[requests.Session] = None) -> Dict[str, Any]:
    """Return the ``p2`` metadata document for *package*, or ``{}`` when it is unknown."""

    url = f"{base_url.rstrip('/')}/p2/{package}.json"
    return _request_json(url, session=session, missing_ok=True) or {}


def fetch_search_results(base_url: str, query: str, session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    url = f"{base_url.rstrip('/')}/search.json"
    sess = session or requests.Session()
    try:
        response = sess.get(
            url,
            params={"q": query},
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise MetadataFetchError(f"Failed to search {url}: {exc}") from exc
    if response.status_code >= 400:
        raise MetadataFetchError(f"Failed to search {url}: HTTP {response.status_code}")
    try:
        payload = response.json()
    except ValueError as exc:  # pragma: no cover - network only
        raise MetadataFetchError(f"Invalid JSON from {url}") from exc
    results = payload.get("results") if isinstance(payload, dict) else None
    return [item for item in results or [] if isinstance(item, dict) and item.get("name")]
