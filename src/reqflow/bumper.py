"""Raise the lower bound of a constraint to an installed version."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping

from .constants import MANIFEST_SECTIONS
from .constraints import MatchAllConstraint, parse_constraints
from .models import DEFAULT_BRANCH_ALIAS, PackageLike, resolve
from .repositories import is_platform_package

logger = logging.getLogger(__name__)

_TRAILING_ZEROS_RE = re.compile(r"(?:\.(?:0|9999999))+(-dev)?$")
_SIMPLE_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")
_BRANCH_IN_CONSTRAINT_RE = re.compile(r"(?:^|[\s,|])dev-", re.IGNORECASE)


def _bump_pattern(major: str) -> "re.Pattern[str]":
    return re.compile(
        r"(?<=[, |])(?P<constraint>"
        + rf"\^{major}(?:\.\d+)*"
        + rf"|~{major}(?:\.\d+)?"
        + rf"|{major}(?:\.[*x])+"
        + r")(?=[, |@]|$)"
        + r"|^(?P<leading>"
        + rf"\^{major}(?:\.\d+)*"
        + rf"|~{major}(?:\.\d+)?"
        + rf"|{major}(?:\.[*x])+"
        + r")(?=[, |@]|$)"
    )


def bump_requirement(constraint_text: str, package: PackageLike) -> str:
    """Return *constraint_text* with its lower bound raised to *package*.

    * ``^1.0`` + 1.2.1            -> ``^1.2.1``
    * ``^1.2`` + 1.2.0            -> ``^1.2``
    * ``*`` + 1.2.0               -> ``>= 1.2``
    * ``^1.2 || ^2.3`` + 1.3.0    -> ``^1.3 || ^2.3``
    * ``^3@dev`` + 3.2.x-dev      -> ``^3.2@dev``
    * ``~2`` + 2.0-beta.1         -> ``~2``
    * ``dev-master`` + dev-master -> ``dev-master``

    The input is returned unchanged when it cannot be bumped or when the
    bumped constraint would be equivalent.
    """

    if constraint_text.startswith("dev-"):
        return constraint_text

    version = package.version
    if version.startswith("dev-"):
        alias = resolve(package).branch_alias
        # dev packages without a numeric branch alias cannot be processed
        if alias is None or alias == DEFAULT_BRANCH_ALIAS:
            return constraint_text
        version = alias

    # constraints naming branches are left alone
    if _BRANCH_IN_CONSTRAINT_RE.search(constraint_text):
        return constraint_text

    major = re.sub(r"^(\d+).*", r"\1", version)
    new_version = _TRAILING_ZEROS_RE.sub("", version)
    if not _SIMPLE_VERSION_RE.match(new_version):
        return constraint_text

    constraint = parse_constraints(constraint_text)
    if isinstance(constraint, MatchAllConstraint):
        return ">= " + new_version

    replacement = "^" + new_version
    matches = list(_bump_pattern(major).finditer(constraint_text))
    if not matches:
        return constraint_text

    modified = constraint_text
    for match in reversed(matches):
        group = "constraint" if match.group("constraint") is not None else "leading"
        start, end = match.span(group)
        modified = modified[:start] + replacement + modified[end:]

    if str(parse_constraints(modified)) == str(constraint):
        return constraint_text
    logger.debug("Bumped %s to %s for %s", constraint_text, modified, package.pretty_name)
    return modified


@dataclass
class BumpUpdate:
    section: str
    name: str
    previous: str
    constraint: str


def bump_links(
    manifest: Mapping[str, Any],
    installed: Mapping[str, PackageLike],
    sections: Iterable[str] = MANIFEST_SECTIONS,
) -> List[BumpUpdate]:
    """Compute the constraint changes for the given manifest sections.

    Platform packages and packages missing from *installed* are skipped.
    """

    updates: List[BumpUpdate] = []
    for section in sections:
        links = manifest.get(section)
        if not isinstance(links, Mapping):
            continue
        for name, constraint in links.items():
            if is_platform_package(name):
                continue
            package = installed.get(name.lower())
            if package is None:
                logger.debug("%s is not installed, leaving %s untouched", name, constraint)
                continue
            bumped = bump_requirement(str(constraint), resolve(package))
            if bumped != constraint:
                updates.append(BumpUpdate(section=section, name=name, previous=str(constraint), constraint=bumped))
    return updates
