"""Turn package tokens into (name, constraint) pairs, explaining every failure.

The :class:`Resolver` is what commands talk to. It owns one
:class:`~reqflow.selector.VersionSelector` for the configured repositories and,
when the happy-path lookup finds nothing, re-queries it with relaxed filters
to work out which filter excluded the package:

1. the platform (php, extensions) rejected every otherwise valid version,
2. the package only exists below the minimum stability, or a canonical
   repository hides an acceptable version in a lower priority repository,
3. both of the above,
4. a canonical repository hides a version matching the requested constraint,
5. no version matches the requested constraint,
6. the name looks like a typo of a known package,
7. nothing is known about the name at all.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, NoReturn, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .exceptions import (
    ConstraintUnsatisfiable,
    PackageNotFound,
    PlatformMismatch,
    RepositoryShadowConflict,
    StabilityMismatch,
)
from .formatter import find_recommended_require_version
from .models import PackageLike
from .platform import IgnoreAllFilter, IgnoreNothingFilter, PlatformRequirementFilter
from .pool import RepositorySet
from .repositories import PlatformRepository
from .selector import NOT_FOUND, VersionSelector
from .stability import Stability

logger = logging.getLogger(__name__)

_REQUIREMENT_RE = re.compile(r"^([^=: ]+)[=: ](.*)$")
_TOO_STRICT_RE = re.compile(r"^\d+(\.\d+)?$")

PLATFORM_MESSAGE = "your PHP version, PHP extensions and Composer version"


@dataclass
class Resolution:
    """Outcome of resolving one requirement token."""

    name: str
    constraint: str
    version: Optional[str] = None
    repository: Optional[str] = None
    virtual: bool = False


def parse_requirement(token: str) -> Tuple[str, Optional[str]]:
    """Split ``name``, ``name:constraint``, ``name=constraint`` or ``name constraint``."""

    token = token.strip()
    if not token:
        raise ValueError("Empty package requirement")
    match = _REQUIREMENT_RE.match(token)
    if match is None:
        return token, None
    name, constraint = match.group(1), match.group(2).strip()
    if not constraint:
        raise ValueError(f'Missing version constraint after "{name}" in "{token}"')
    if _TOO_STRICT_RE.match(constraint):
        logger.warning(
            'The "%s" constraint for "%s" appears too strict and will likely not match what you want.',
            constraint,
            name,
        )
    return name, constraint


def _platform_suffix(details: List[str]) -> str:
    if not details:
        return ""
    return ":\n  - " + "\n  - ".join(details)


class Resolver:
    def __init__(
        self,
        repository_set: RepositorySet,
        platform_repository: Optional[PlatformRepository] = None,
        platform_filter: Optional[PlatformRequirementFilter] = None,
        minimum_stability: "str | Stability | None" = None,
        prefer_stable: bool = False,
        installed: Iterable[str] = (),
    ):
        repositories = repository_set.repositories
        if platform_repository is not None and platform_repository not in repositories:
            # php and ext-* are required at the version the platform provides
            repositories = [platform_repository, *repositories]
        if repositories is not repository_set.repositories or (
            minimum_stability is not None and Stability.parse(minimum_stability) != repository_set.minimum_stability
        ):
            repository_set = RepositorySet(
                repositories,
                minimum_stability if minimum_stability is not None else repository_set.minimum_stability,
                repository_set.stability_flags,
            )
        self.repository_set = repository_set
        self.platform_repository = platform_repository
        self.platform_filter = platform_filter or IgnoreNothingFilter()
        self.minimum_stability = repository_set.minimum_stability
        self.prefer_stable = prefer_stable
        self.selector = VersionSelector(repository_set, platform_repository)
        self._similar: Dict[str, List[str]] = {}
        self.installed = {name.lower() for name in installed}

    @property
    def preferred_stability(self) -> Stability:
        return Stability.STABLE if self.prefer_stable else self.minimum_stability

    def find_best_version_and_name_for_package(
        self,
        name: str,
        required_version: Optional[str] = None,
        fixed: bool = False,
    ) -> Tuple[str, str]:
        """Return ``(pretty_name, constraint)`` to write to the manifest.

        Raises a :class:`~reqflow.exceptions.ResolutionError` subclass when no
        acceptable version exists.
        """

        resolution = self.resolve(name, required_version, fixed=fixed)
        return resolution.name, resolution.constraint

    def resolve(self, name: str, required_version: Optional[str] = None, fixed: bool = False) -> Resolution:
        package = self.selector.find_best_candidate(
            name,
            required_version,
            self.preferred_stability,
            self.platform_filter,
        )
        if package is NOT_FOUND:
            # platform packages are only known in the locally installed version
            if self.platform_filter.is_ignored(name):
                return Resolution(name=name, constraint=required_version or "*", virtual=True)
            providers = self.repository_set.get_providers(name)
            if providers:
                logger.info("%s does not exist but is provided by %d packages", name, len(providers))
                return Resolution(name=name, constraint=required_version or "*", virtual=True)
            self._diagnose(name, required_version)

        if package.name != name.lower():
            # the name is virtual and only satisfied through provide/replace
            return Resolution(
                name=name,
                constraint=required_version or "*",
                repository=package.repository,
                virtual=True,
            )

        if required_version:
            constraint = required_version
        else:
            constraint = find_recommended_require_version(package, fixed=fixed)
        logger.info("Using version %s for %s", constraint, package.pretty_name)
        return Resolution(
            name=package.pretty_name,
            constraint=constraint,
            version=package.pretty_version,
            repository=package.repository,
        )

    def _find(self, name: str, required_version: Optional[str], platform_filter: PlatformRequirementFilter, **relaxations):
        return self.selector.find_best_candidate(
            name,
            required_version,
            self.preferred_stability,
            platform_filter,
            **relaxations,
        )

    def _shadow_conflict(self, name: str, shadowed: PackageLike, reason: str) -> Optional[RepositoryShadowConflict]:
        shadowing = self.repository_set.shadowing_repository(name)
        if shadowing is None or shadowing.name == shadowed.repository:
            return None
        return RepositoryShadowConflict(
            package=name,
            message=(
                f"Package {name} exists in {shadowed.repository} and {shadowing.name} which has a higher "
                f"repository priority. The packages from the higher priority repository {reason} and are "
                "therefore not installable. That repository is canonical so the lower priority repo's "
                "packages are not installable."
            ),
            shadowing_repository=shadowing.name,
            shadowed_repository=str(shadowed.repository),
        )

    def _diagnose(self, name: str, required_version: Optional[str]) -> NoReturn:
        ignore_all = IgnoreAllFilter()
        filters_platform = not isinstance(self.platform_filter, IgnoreAllFilter)
        minimum = self.minimum_stability.label

        if filters_platform:
            candidate = self._find(name, required_version, ignore_all)
            if candidate is not NOT_FOUND:
                details = self.selector.platform_exception_details(candidate)
                raise PlatformMismatch(
                    package=name,
                    message=f"Package {name} has requirements incompatible with {PLATFORM_MESSAGE}"
                    + _platform_suffix(details),
                    details=details,
                )

        unstable = self._find(name, required_version, self.platform_filter, allow_unacceptable_stabilities=True)
        if unstable is not NOT_FOUND:
            shadowed = self._find(name, required_version, self.platform_filter, allow_shadowed_repositories=True)
            if shadowed is not NOT_FOUND:
                conflict = self._shadow_conflict(name, shadowed, "do not match your minimum-stability")
                if conflict is not None:
                    raise conflict
            raise StabilityMismatch(
                package=name,
                message=(
                    f"Could not find a version of package {name} matching your minimum-stability ({minimum}). "
                    "Require it with an explicit version constraint allowing its desired stability."
                ),
                minimum_stability=minimum,
                found_stability=unstable.stability.label,
            )

        if filters_platform:
            candidate = self._find(name, required_version, ignore_all, allow_unacceptable_stabilities=True)
            if candidate is not NOT_FOUND:
                additional = ""
                if self._find(name, required_version, ignore_all) is NOT_FOUND:
                    additional = (
                        f'\n\nAdditionally, the package was only found with a stability of "{candidate.stability.label}" '
                        f'while your minimum stability is "{minimum}".'
                    )
                details = self.selector.platform_exception_details(candidate)
                raise PlatformMismatch(
                    package=name,
                    message=f"Could not find package {name} in any version matching {PLATFORM_MESSAGE}"
                    + _platform_suffix(details)
                    + additional,
                    details=details,
                )

        if required_version:
            shadowed = self._find(name, required_version, self.platform_filter, allow_shadowed_repositories=True)
            if shadowed is not NOT_FOUND:
                conflict = self._shadow_conflict(name, shadowed, f"do not match the constraint {required_version}")
                if conflict is not None:
                    raise conflict
            existing = self._find(
                name,
                None,
                ignore_all,
                allow_unacceptable_stabilities=True,
                allow_shadowed_repositories=True,
            )
            if existing is not NOT_FOUND:
                raise ConstraintUnsatisfiable(
                    package=name,
                    message=(
                        f"Could not find a version of package {name} matching the constraint {required_version}. "
                        f"The newest available version is {existing.pretty_version}."
                    ),
                    constraint=required_version,
                )

        similar = self.find_similar(name)
        if name.lower() in {candidate.lower() for candidate in similar}:
            raise PackageNotFound(
                package=name,
                message=(
                    f"Could not find package {name}. It was however found via repository search, "
                    "which indicates a consistency issue with the repository."
                ),
            )
        if similar:
            heading = "one of these" if len(similar) > 1 else "this"
            raise PackageNotFound(
                package=name,
                message=f"Could not find package {name}.\n\nDid you mean {heading}?\n    " + "\n    ".join(similar),
                suggestions=similar,
            )
        raise PackageNotFound(
            package=name,
            message=(
                f"Could not find a matching version of package {name}. Check the package spelling, your version "
                f"constraint and that the package is available in a stability which matches your "
                f"minimum-stability ({minimum})."
            ),
        )

    def find_similar(self, name: str, limit: int = 5) -> List[str]:
        """Names returned by repository search, closest (Levenshtein) first.

        Packages that are already installed are never suggested.
        """

        key = name.lower()
        if key not in self._similar:
            distances: Dict[str, int] = {}
            for result in self.repository_set.search(name):
                if result["name"].lower() in self.installed:
                    continue
                distances.setdefault(result["name"], Levenshtein.distance(key, result["name"].lower()))
            ranked = sorted(distances, key=lambda candidate: distances[candidate])
            self._similar[key] = ranked
        return self._similar[key][:limit]

    def resolve_all(self, tokens: Iterable[str], fixed: bool = False) -> List[Resolution]:
        resolutions: Dict[str, Resolution] = {}
        for token in tokens:
            name, constraint = parse_requirement(token)
            resolution = self.resolve(name, constraint, fixed=fixed)
            resolutions[resolution.name.lower()] = resolution
        return list(resolutions.values())

    def resolve_requirements(self, tokens: Iterable[str], fixed: bool = False) -> Dict[str, str]:
        """Resolve every token, keeping the order they were given in."""

        return {resolution.name: resolution.constraint for resolution in self.resolve_all(tokens, fixed=fixed)}
