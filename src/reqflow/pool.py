"""Priority ordered view over several repositories."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .constraints import Constraint
from .models import PackageLike, is_alias
from .repositories import BaseRepository, SearchResult
from .stability import Stability, is_acceptable

logger = logging.getLogger(__name__)


class RepositorySet:
    """Candidate pool for version selection.

    Repositories added first have the higher priority. Once a canonical
    repository knows a package name, lower priority repositories are not
    consulted for that name at all, even if they hold newer or better
    matching versions.
    """

    def __init__(
        self,
        repositories: Iterable[BaseRepository] = (),
        minimum_stability: "str | Stability" = Stability.STABLE,
        stability_flags: Optional[Mapping[str, "str | Stability"]] = None,
    ):
        self.repositories: List[BaseRepository] = list(repositories)
        self.minimum_stability = Stability.parse(minimum_stability)
        self.stability_flags: Dict[str, Stability] = {
            name.lower(): Stability.parse(value) for name, value in (stability_flags or {}).items()
        }

    def add_repository(self, repository: BaseRepository) -> None:
        self.repositories.append(repository)

    def with_stability_flags(self, flags: Mapping[str, "str | Stability"]) -> "RepositorySet":
        merged: Dict[str, "str | Stability"] = dict(self.stability_flags)
        merged.update(flags)
        return RepositorySet(self.repositories, self.minimum_stability, merged)

    def priority(self, repository_name: Optional[str]) -> int:
        for index, repository in enumerate(self.repositories):
            if repository.name == repository_name:
                return index
        return len(self.repositories)

    def is_package_acceptable(self, names: Iterable[str], stability: Stability) -> bool:
        for name in names:
            if is_acceptable(stability, self.minimum_stability, self.stability_flags.get(name)):
                return True
        return False

    def find_packages(
        self,
        name: str,
        constraint: Optional[Constraint] = None,
        allow_unacceptable_stabilities: bool = False,
        allow_shadowed_repositories: bool = False,
    ) -> List[PackageLike]:
        """Packages named *name*, merged across repositories in priority order.

        ``allow_unacceptable_stabilities`` skips the minimum-stability filter and
        ``allow_shadowed_repositories`` keeps looking past canonical
        repositories; both exist for building diagnostics.
        """

        name = name.lower()
        seen: Set[Tuple[str, str, str, bool]] = set()
        candidates: List[PackageLike] = []
        for repository in self.repositories:
            for package in repository.find_packages(name, constraint):
                key = (repository.name, package.name, package.version, is_alias(package))
                if key in seen:
                    continue
                seen.add(key)
                if allow_unacceptable_stabilities or self.is_package_acceptable(package.names, package.stability):
                    candidates.append(package)
            if not allow_shadowed_repositories and repository.canonical and repository.has_package_name(name):
                logger.debug("%s found in canonical repository %s, skipping lower priorities", name, repository.name)
                break
        return candidates

    def find_candidates(self, name: str, constraint: Optional[Constraint] = None) -> List[PackageLike]:
        return self.find_packages(name, constraint)

    def shadowing_repository(self, name: str) -> Optional[BaseRepository]:
        """The canonical repository that hides *name* from lower priorities, if any."""

        name = name.lower()
        for index, repository in enumerate(self.repositories):
            if repository.canonical and repository.has_package_name(name):
                if index < len(self.repositories) - 1:
                    return repository
                return None
        return None

    def get_providers(self, name: str) -> List[PackageLike]:
        providers: List[PackageLike] = []
        for repository in self.repositories:
            providers.extend(repository.get_providers(name))
        return providers

    def search(self, query: str) -> List[SearchResult]:
        results: Dict[str, SearchResult] = {}
        for repository in self.repositories:
            for result in repository.search(query):
                results.setdefault(result["name"].lower(), result)
        return list(results.values())
