"""Static data for the resolver."""
from __future__ import annotations

import re

VERSION = "0.1.0"

DEFAULT_REPOSITORY_URL = "https://repo.packagist.org"
DEFAULT_CACHE_DIR = "~/.cache/reqflow"
DEFAULT_MANIFEST = "composer.json"

LOG_FORMAT = "[%(levelname)s] %(message)s"

STABILITY_NAMES = ("dev", "alpha", "beta", "RC", "stable")

STABILITY_ALIASES = {
    "a": "alpha",
    "b": "beta",
    "p": "patch",
    "pl": "patch",
    "rc": "RC",
}

MODIFIER_PATTERN = r"[._-]?(?:(stable|beta|b|RC|alpha|a|patch|pl|p)((?:[.-]?\d+)*)?)?([.-]?dev)?"

PLATFORM_PACKAGE_RE = re.compile(
    r"^(?:php(?:-64bit|-ipv6|-zts|-debug)?|hhvm|(?:ext|lib)-[a-z0-9](?:[_.-]?[a-z0-9]+)*"
    r"|composer-(?:plugin|runtime)-api)$",
    re.IGNORECASE,
)

PLUGIN_API_VERSION = "2.6.0"
RUNTIME_API_VERSION = "2.2.2"

# Normalized form of an open ended branch such as 1.x-dev.
BRANCH_INFINITY = "9999999"

MANIFEST_SECTIONS = ("require", "require-dev")
