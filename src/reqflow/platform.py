"""Which platform requirements (php, ext-*, lib-*) a command should enforce."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Pattern

from .constraints import Constraint, lower_bound_only
from .repositories import is_platform_package


def _names_to_regex(names: Iterable[str]) -> Optional[Pattern[str]]:
    patterns = [re.escape(name.strip().lower()).replace(r"\*", ".*") for name in names if name.strip()]
    if not patterns:
        return None
    return re.compile(r"^(?:" + "|".join(patterns) + r")$", re.IGNORECASE)


class PlatformRequirementFilter:
    def is_ignored(self, name: str) -> bool:
        raise NotImplementedError

    def is_upper_bound_ignored(self, name: str) -> bool:
        return False

    def filter_constraint(self, name: str, constraint: Constraint) -> Constraint:
        return constraint


class IgnoreNothingFilter(PlatformRequirementFilter):
    def is_ignored(self, name: str) -> bool:
        return False

    def __repr__(self) -> str:
        return "IgnoreNothingFilter()"


class IgnoreAllFilter(PlatformRequirementFilter):
    """Used for ``--ignore-platform-reqs``."""

    def is_ignored(self, name: str) -> bool:
        return is_platform_package(name)

    def __repr__(self) -> str:
        return "IgnoreAllFilter()"


class IgnoreListFilter(PlatformRequirementFilter):
    """Used for ``--ignore-platform-req``.

    Entries may contain ``*`` wildcards (``ext-*``). A trailing ``+``
    (``php+``) keeps enforcing the lower bound and only ignores the upper
    bound of requirements on that package.
    """

    def __init__(self, names: Iterable[str]):
        ignored: List[str] = []
        upper_bound: List[str] = []
        for entry in names:
            entry = entry.strip()
            if entry.endswith("+"):
                upper_bound.append(entry[:-1])
            elif entry:
                ignored.append(entry)
        self._names = tuple(ignored) + tuple(name + "+" for name in upper_bound)
        self._ignore_re = _names_to_regex(ignored)
        self._upper_bound_re = _names_to_regex(upper_bound)

    @property
    def names(self) -> tuple:
        return self._names

    def is_ignored(self, name: str) -> bool:
        if not is_platform_package(name) or self._ignore_re is None:
            return False
        return bool(self._ignore_re.match(name))

    def is_upper_bound_ignored(self, name: str) -> bool:
        if not is_platform_package(name) or self._upper_bound_re is None:
            return False
        return bool(self._upper_bound_re.match(name))

    def filter_constraint(self, name: str, constraint: Constraint) -> Constraint:
        if not self.is_upper_bound_ignored(name):
            return constraint
        return lower_bound_only(constraint)

    def __repr__(self) -> str:
        return f"IgnoreListFilter({list(self._names)!r})"


def platform_filter_from(ignore_all: bool = False, ignore_list: Iterable[str] = ()) -> PlatformRequirementFilter:
    """Build the filter matching ``--ignore-platform-reqs``/``--ignore-platform-req``."""

    if ignore_all:
        return IgnoreAllFilter()
    names = [part for entry in ignore_list for part in entry.split(",") if part.strip()]
    if names:
        return IgnoreListFilter(names)
    return IgnoreNothingFilter()
