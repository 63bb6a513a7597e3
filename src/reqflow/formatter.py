"""Derive the constraint string written to composer.json for a package."""
from __future__ import annotations

import re
from typing import Optional

from .models import DEFAULT_BRANCH_ALIAS, PackageLike, resolve
from .stability import Stability, classify

_ALIAS_RE = re.compile(r"^(\d+\.\d+\.\d+)(\.9999999)-dev$")
_PATCH_SEGMENT_RE = re.compile(r"^0\D?")


def transform_version(version: str, pretty_version: str, stability: Stability) -> str:
    """Turn a normalized version into a caret constraint.

    ``1.2.1.0`` becomes ``^1.2``, ``0.3.2.0`` becomes ``^0.3.2`` and
    ``2.0.0.0-beta2`` becomes ``^2.0@beta``. Versions that do not have four
    numeric segments are returned as their pretty form.
    """

    parts = version.split(".")
    if len(parts) != 4 or not _PATCH_SEGMENT_RE.match(parts[3]):
        return pretty_version
    if parts[0] == "0":
        parts = parts[:3]
    else:
        parts = parts[:2]
    constraint = ".".join(parts)
    if stability != Stability.STABLE:
        constraint += "@" + stability.label
    return "^" + constraint


def _dev_alias_version(branch_alias: Optional[str]) -> Optional[str]:
    if not branch_alias or branch_alias == DEFAULT_BRANCH_ALIAS:
        return None
    match = _ALIAS_RE.match(branch_alias)
    if match is None:
        return None
    return (match.group(1) + ".0").replace(".9999999", ".0")


def find_recommended_require_version(package: PackageLike, fixed: bool = False) -> str:
    """Constraint to persist for *package*.

    * ``1.2.1``       -> ``^1.2``
    * ``v3.2.1``      -> ``^3.2``
    * ``0.3.2``       -> ``^0.3.2``
    * ``2.0-beta.1``  -> ``^2.0@beta``
    * ``dev-main``    -> ``^2.1@dev`` when aliased as ``2.1.x-dev``
    * ``dev-main``    -> ``dev-main`` otherwise

    With *fixed* the exact pretty version is returned.
    """

    if fixed:
        return package.pretty_version
    if not package.is_dev:
        return transform_version(package.version, package.pretty_version, classify(package.version))

    # aliases are reported through the branch they wrap
    real = resolve(package)
    alias_version = _dev_alias_version(real.branch_alias)
    if alias_version is None:
        return real.pretty_version
    return transform_version(alias_version, alias_version, Stability.DEV)
