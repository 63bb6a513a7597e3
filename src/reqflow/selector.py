"""Select the best version of a package from a repository set."""
from __future__ import annotations

import logging
from typing import List, Optional

from .constraints import Constraint, SingleConstraint, parse_constraints
from .models import DEFAULT_BRANCH_ALIAS, Link, PackageLike, is_alias, resolve
from .platform import IgnoreNothingFilter, PlatformRequirementFilter
from .pool import RepositorySet
from .repositories import PlatformRepository, is_platform_package
from .stability import Stability, extract_stability_flag
from .versions import compare_normalized, is_branch

logger = logging.getLogger(__name__)


class _NotFound:
    """Sentinel for "no candidate survived the filters"."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def _branch_rank(package: PackageLike) -> int:
    if package.version == DEFAULT_BRANCH_ALIAS:
        return 2
    if is_branch(package.version):
        return 2 if package.default_branch else 1
    return 0


def _compare_candidates(left: PackageLike, right: PackageLike) -> int:
    """Order candidates: releases, then feature branches, then the default branch.

    Feature branches are not ranked against each other, the first one seen
    stays.
    """

    left_rank, right_rank = _branch_rank(left), _branch_rank(right)
    if left_rank != right_rank:
        return -1 if left_rank < right_rank else 1
    if left_rank:
        return 0
    return compare_normalized(left.version, right.version)


class VersionSelector:
    """Pick the single best candidate for a package name.

    Selection never raises for missing packages: callers get ``NOT_FOUND`` and
    re-query with relaxed filters to explain why, they never use those
    relaxed answers as the selection itself.
    """

    def __init__(self, repository_set: RepositorySet, platform_repository: Optional[PlatformRepository] = None):
        self.repository_set = repository_set
        self.platform_repository = platform_repository

    def find_best_candidate(
        self,
        name: str,
        required_version: Optional[str] = None,
        preferred_stability: "str | Stability | None" = None,
        platform_filter: Optional[PlatformRequirementFilter] = None,
        allow_unacceptable_stabilities: bool = False,
        allow_shadowed_repositories: bool = False,
    ):
        """Return the best :data:`PackageLike` for *name* or :data:`NOT_FOUND`.

        Malformed *required_version* text raises ``InvalidConstraintSyntax``.
        """

        name = name.lower()
        platform_filter = platform_filter or IgnoreNothingFilter()
        pool = self.repository_set
        constraint: Optional[Constraint] = None
        if required_version:
            constraint = parse_constraints(required_version)
            flag = extract_stability_flag(required_version, pool.minimum_stability)
            if flag is not None:
                pool = pool.with_stability_flags({name: flag})

        candidates = pool.find_packages(
            name,
            constraint,
            allow_unacceptable_stabilities=allow_unacceptable_stabilities,
            allow_shadowed_repositories=allow_shadowed_repositories,
        )
        if not candidates:
            candidates = self._providers(pool, name, constraint, allow_unacceptable_stabilities)

        if self.platform_repository is not None:
            candidates = [
                candidate
                for candidate in candidates
                if not self.unsatisfied_platform_requirements(candidate, platform_filter)
            ]

        if not candidates:
            return NOT_FOUND

        preferred = Stability.parse(preferred_stability) if preferred_stability is not None else pool.minimum_stability
        package = self._pick(candidates, preferred, pool)

        # the default branch alias is an implementation detail, report the branch itself
        if is_alias(package) and package.version == DEFAULT_BRANCH_ALIAS:
            package = package.alias_of
        logger.debug("Selected %s for %s", package, name)
        return package

    def _providers(
        self,
        pool: RepositorySet,
        name: str,
        constraint: Optional[Constraint],
        allow_unacceptable_stabilities: bool,
    ) -> List[PackageLike]:
        providers: List[PackageLike] = []
        for provider in pool.get_providers(name):
            link = provider.provides.get(name) or provider.replaces.get(name)
            if link is None:
                continue
            if (
                constraint is not None
                and isinstance(link.constraint, SingleConstraint)
                and link.constraint.operator == "=="
                and not constraint.matches(link.constraint.version)
            ):
                continue
            if not allow_unacceptable_stabilities and not pool.is_package_acceptable(provider.names, provider.stability):
                continue
            providers.append(provider)
        return providers

    @staticmethod
    def _pick(candidates: List[PackageLike], preferred: Stability, pool: RepositorySet) -> PackageLike:
        package = candidates[0]
        for candidate in candidates[1:]:
            candidate_stability = candidate.stability
            current_stability = package.stability

            # less stable than preferred while we already hold something more stable
            if candidate_stability < preferred and current_stability > candidate_stability:
                continue
            # meets the preferred stability while the current pick does not
            if candidate_stability >= preferred and current_stability < preferred:
                package = candidate
                continue

            cmp = _compare_candidates(candidate, package)
            if cmp > 0:
                package = candidate
            elif cmp == 0:
                if is_alias(package) and not is_alias(candidate):
                    package = candidate
                elif is_alias(package) == is_alias(candidate) and pool.priority(candidate.repository) < pool.priority(
                    package.repository
                ):
                    package = candidate
        return package

    def unsatisfied_platform_requirements(
        self,
        candidate: PackageLike,
        platform_filter: Optional[PlatformRequirementFilter] = None,
    ) -> List[Link]:
        """Platform links of *candidate* the platform repository cannot satisfy."""

        if self.platform_repository is None:
            return []
        platform_filter = platform_filter or IgnoreNothingFilter()
        failing: List[Link] = []
        for target, link in resolve(candidate).requires.items():
            if not is_platform_package(target) or platform_filter.is_ignored(target):
                continue
            provided = self.platform_repository.find_package(target)
            if provided is None:
                failing.append(link)
                continue
            constraint = platform_filter.filter_constraint(target, link.constraint)
            if not constraint.matches(provided.version):
                failing.append(link)
        return failing

    def platform_exception_details(self, candidate: PackageLike) -> List[str]:
        """Human readable reasons why *candidate* does not fit the platform."""

        if self.platform_repository is None:
            return []
        details: List[str] = []
        package = resolve(candidate)
        for link in self.unsatisfied_platform_requirements(candidate):
            prefix = f"{package.pretty_name} {package.pretty_version} requires {link.target} {link.pretty_constraint}"
            provided = self.platform_repository.find_package(link.target)
            if provided is None:
                if self.platform_repository.is_platform_package_disabled(link.target):
                    details.append(
                        f"{prefix} but it is disabled by your platform config. "
                        f'Enable it again by removing "{link.target}" from the platform configuration.'
                    )
                else:
                    details.append(f"{prefix} but it is not present.")
                continue
            details.append(f"{prefix} which does not match your installed version {provided.pretty_version}.")
        return details
