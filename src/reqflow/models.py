"""Dataclasses shared across resolver components."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .constraints import Constraint, parse_constraints
from .stability import Stability, classify
from .versions import is_dev, normalize, normalize_branch


DEFAULT_BRANCH_ALIAS = "9999999-dev"


@dataclass(frozen=True)
class Link:
    """A requirement from one package to another (require/provide/replace)."""

    source: str
    target: str
    constraint: Constraint
    pretty_constraint: str

    def __str__(self) -> str:
        return f"{self.source} -> {self.target} {self.pretty_constraint}"


@dataclass(frozen=True, eq=False)
class Package:
    name: str
    pretty_name: str
    version: str
    pretty_version: str
    requires: Dict[str, Link] = field(default_factory=dict)
    provides: Dict[str, Link] = field(default_factory=dict)
    replaces: Dict[str, Link] = field(default_factory=dict)
    branch_alias: Optional[str] = None
    repository: Optional[str] = None
    description: Optional[str] = None
    default_branch: bool = False

    @property
    def stability(self) -> Stability:
        return classify(self.version)

    @property
    def is_dev(self) -> bool:
        return is_dev(self.version)

    @property
    def names(self) -> List[str]:
        return [self.name, *self.provides, *self.replaces]

    def __str__(self) -> str:
        return f"{self.pretty_name} {self.pretty_version}"


@dataclass(frozen=True, eq=False)
class AliasPackage:
    """A package seen under another version, e.g. ``dev-main`` as ``2.1.x-dev``.

    The wrapped package is never owned or modified; use :func:`resolve` to get
    at the real release data.
    """

    alias_of: "PackageLike"
    version: str
    pretty_version: str

    def __post_init__(self) -> None:
        if self.alias_of is self:
            raise ValueError("An alias cannot wrap itself")

    @property
    def name(self) -> str:
        return self.alias_of.name

    @property
    def pretty_name(self) -> str:
        return self.alias_of.pretty_name

    @property
    def requires(self) -> Dict[str, Link]:
        return self.alias_of.requires

    @property
    def provides(self) -> Dict[str, Link]:
        return self.alias_of.provides

    @property
    def replaces(self) -> Dict[str, Link]:
        return self.alias_of.replaces

    @property
    def repository(self) -> Optional[str]:
        return self.alias_of.repository

    @property
    def description(self) -> Optional[str]:
        return self.alias_of.description

    @property
    def branch_alias(self) -> Optional[str]:
        return None

    @property
    def default_branch(self) -> bool:
        return self.alias_of.default_branch

    @property
    def names(self) -> List[str]:
        return self.alias_of.names

    @property
    def stability(self) -> Stability:
        return classify(self.version)

    @property
    def is_dev(self) -> bool:
        return is_dev(self.version)

    def __str__(self) -> str:
        return f"{self.pretty_name} {self.pretty_version} (alias of {self.alias_of.pretty_version})"


PackageLike = Union[Package, AliasPackage]


def resolve(package: PackageLike) -> Package:
    """Unwrap any number of alias layers down to the real package."""

    seen = set()
    while isinstance(package, AliasPackage):
        if id(package) in seen:
            raise ValueError(f"Alias cycle detected for {package.pretty_name}")
        seen.add(id(package))
        package = package.alias_of
    return package


def is_alias(package: PackageLike) -> bool:
    return isinstance(package, AliasPackage)


def _build_links(source: str, section: object, pretty_version: str) -> Dict[str, Link]:
    links: Dict[str, Link] = {}
    if not isinstance(section, dict):
        return links
    for target, raw in section.items():
        pretty = str(raw)
        expression = pretty_version if pretty == "self.version" else pretty
        links[target.lower()] = Link(
            source=source,
            target=target.lower(),
            constraint=parse_constraints(expression),
            pretty_constraint=pretty,
        )
    return links


def _branch_alias(data: Dict[str, Any], version: str, pretty_version: str) -> Optional[Tuple[str, str]]:
    """Return ``(normalized, pretty)`` for the alias of a dev branch."""
    if not is_dev(version):
        return None
    aliases = (data.get("extra") or {}).get("branch-alias") or {}
    if isinstance(aliases, dict):
        for source_branch, target in aliases.items():
            if source_branch not in {pretty_version, version}:
                continue
            if not isinstance(target, str) or not target.endswith("-dev"):
                continue
            alias = normalize_branch(target[:-4])
            if alias.startswith("dev-"):
                continue
            return alias, target
    if data.get("default-branch") is True:
        return DEFAULT_BRANCH_ALIAS, DEFAULT_BRANCH_ALIAS
    return None


def package_from_dict(data: Dict[str, Any], repository: Optional[str] = None) -> List[PackageLike]:
    """Build a package (and its branch alias, if any) from Composer metadata.

    Raises ``InvalidVersionString``/``InvalidConstraintSyntax`` for malformed
    entries; repositories decide whether to skip them.
    """

    pretty_name = str(data["name"])
    pretty_version = str(data.get("version", ""))
    version = data.get("version_normalized") or normalize(pretty_version)
    name = pretty_name.lower()
    alias = _branch_alias(data, version, pretty_version)
    package = Package(
        name=name,
        pretty_name=pretty_name,
        version=version,
        pretty_version=pretty_version,
        requires=_build_links(name, data.get("require"), pretty_version),
        provides=_build_links(name, data.get("provide"), pretty_version),
        replaces=_build_links(name, data.get("replace"), pretty_version),
        branch_alias=alias[0] if alias else None,
        repository=repository,
        description=data.get("description"),
        default_branch=data.get("default-branch") is True,
    )
    packages: List[PackageLike] = [package]
    if alias:
        packages.append(AliasPackage(alias_of=package, version=alias[0], pretty_version=alias[1]))
    return packages


def expand_minified(versions: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Restore a Composer 2 minified version list.

    Each entry only lists the keys that changed since the previous one and
    ``"__unset"`` marks keys that were removed.
    """

    expanded: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None
    for entry in versions:
        if current is None:
            current = copy.deepcopy(entry)
        else:
            for key, value in entry.items():
                if value == "__unset":
                    current.pop(key, None)
                else:
                    current[key] = copy.deepcopy(value)
        expanded.append(copy.deepcopy(current))
    return expanded
