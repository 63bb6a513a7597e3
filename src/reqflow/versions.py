"""Helpers for dealing with Composer-style version strings."""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from itertools import zip_longest
from typing import Iterable, List, Optional, Tuple

from .constants import BRANCH_INFINITY, MODIFIER_PATTERN, STABILITY_ALIASES
from .exceptions import InvalidVersionString

_CLASSICAL_RE = re.compile(r"^v?(\d{1,5})(\.\d+)?(\.\d+)?(\.\d+)?" + MODIFIER_PATTERN + r"$", re.IGNORECASE)
_DATETIME_RE = re.compile(
    r"^v?(\d{4}(?:[.:-]?\d{2}){1,6}(?:[.:-]?\d{1,3}){0,2})" + MODIFIER_PATTERN + r"$", re.IGNORECASE
)
_ALIAS_RE = re.compile(r"^([^,\s]+) +as +([^,\s]+)$")
_STABILITY_FLAG_RE = re.compile(r"@(?:stable|RC|beta|alpha|dev)$", re.IGNORECASE)
_REFERENCE_RE = re.compile(r"^(dev-[^,\s@]+?|[^,\s@]+?\.x-dev)#.+$", re.IGNORECASE)
_BUILD_RE = re.compile(r"^([^,\s+]+)\+\S+$")
_DEV_SUFFIX_RE = re.compile(r"^(.*?)[.-]?dev$", re.IGNORECASE)
_BRANCH_RE = re.compile(r"^v?(\d+)(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?$")
_SUFFIX_RE = re.compile(r"^(?:(alpha|beta|RC|patch)([\d.]*))?-?(dev)?$")

_SUFFIX_RANK = {"dev": 0, "alpha": 1, "beta": 2, "RC": 3, "": 4, "patch": 5}


def expand_stability(stability: str) -> str:
    lowered = stability.lower()
    if lowered == "rc":
        return "RC"
    return STABILITY_ALIASES.get(lowered, lowered)


def normalize_branch(name: str) -> str:
    """Turn a branch name into its normalized version.

    Numeric branches such as ``2.1.x`` become ``2.1.9999999.9999999-dev``,
    anything else is prefixed with ``dev-``.
    """

    name = name.strip()
    match = _BRANCH_RE.match(name)
    if match:
        version = ""
        for index in range(1, 5):
            part = match.group(index)
            version += part.replace("*", "x").replace("X", "x") if part else ".x"
        return version.replace("x", BRANCH_INFINITY) + "-dev"
    return "dev-" + name


def normalize(version: str, full_version: Optional[str] = None) -> str:
    """Normalize a version string to the four segment form used for comparisons."""

    version = version.strip()
    original = full_version if full_version is not None else version

    alias = _ALIAS_RE.match(version)
    if alias:
        version = alias.group(1)
    if _STABILITY_FLAG_RE.search(version):
        version = version[: version.rfind("@")]
    reference = _REFERENCE_RE.match(version)
    if reference:
        version = reference.group(1)

    if version.lower() in {"master", "trunk", "default"}:
        return "dev-" + version
    if version.lower().startswith("dev-"):
        return "dev-" + version[4:]

    build = _BUILD_RE.match(version)
    if build:
        version = build.group(1)

    index = 0
    normalized = ""
    match = _CLASSICAL_RE.match(version)
    if match:
        normalized = match.group(1) + "".join(match.group(i) or ".0" for i in (2, 3, 4))
        index = 5
    else:
        match = _DATETIME_RE.match(version)
        if match:
            normalized = re.sub(r"\D", ".", match.group(1))
            index = 2

    if match:
        stability, number, dev = match.group(index), match.group(index + 1), match.group(index + 2)
        if stability:
            if stability.lower() == "stable":
                return normalized
            normalized += "-" + expand_stability(stability) + (number.lstrip(".-") if number else "")
        if dev:
            normalized += "-dev"
        return normalized

    dev_match = _DEV_SUFFIX_RE.match(version)
    if dev_match and dev_match.group(1):
        branch = normalize_branch(dev_match.group(1))
        if not branch.startswith("dev-"):
            return branch

    raise InvalidVersionString(f'Invalid version string "{original}"')


def is_branch(version: str) -> bool:
    return version.startswith("dev-")


def is_dev(version: str) -> bool:
    return version.startswith("dev-") or version.endswith("-dev")


def _split(normalized: str) -> Tuple[Tuple[int, ...], int, Tuple[int, ...], int]:
    main, _, suffix = normalized.partition("-")
    try:
        numbers = tuple(int(part) for part in main.split(".") if part != "")
    except ValueError as exc:
        raise InvalidVersionString(f'Invalid version string "{normalized}"') from exc
    match = _SUFFIX_RE.match(suffix)
    if not match:
        raise InvalidVersionString(f'Invalid version string "{normalized}"')
    stability, stability_number, dev = match.group(1), match.group(2), match.group(3)
    if stability is None:
        rank = _SUFFIX_RANK["dev"] if dev else _SUFFIX_RANK[""]
        return numbers, rank, (), 1
    extra = tuple(int(part) for part in (stability_number or "").split(".") if part != "")
    return numbers, _SUFFIX_RANK[stability], extra, 0 if dev else 1


def _compare_numbers(left: Tuple[int, ...], right: Tuple[int, ...]) -> int:
    for left_part, right_part in zip_longest(left, right, fillvalue=0):
        if left_part != right_part:
            return -1 if left_part < right_part else 1
    return 0


def _strip_zeros(numbers: Tuple[int, ...]) -> Tuple[int, ...]:
    trimmed = list(numbers)
    while trimmed and trimmed[-1] == 0:
        trimmed.pop()
    return tuple(trimmed)


@total_ordering
@dataclass(frozen=True)
class Version:
    """Comparable representation of a normalized Composer version.

    Numeric segments compare numerically, suffixes rank
    ``dev < alpha < beta < RC < (none) < patch`` and ``dev-*`` branches sort
    above every numeric version.
    """

    normalized: str
    branch: Optional[str]
    numbers: Tuple[int, ...]
    rank: int
    extra: Tuple[int, ...]
    dev_flag: int

    def __init__(self, normalized: str):
        object.__setattr__(self, "normalized", normalized)
        if is_branch(normalized):
            object.__setattr__(self, "branch", normalized[4:])
            parts: Tuple[Tuple[int, ...], int, Tuple[int, ...], int] = ((), 0, (), 0)
        else:
            object.__setattr__(self, "branch", None)
            parts = _split(normalized)
        object.__setattr__(self, "numbers", parts[0])
        object.__setattr__(self, "rank", parts[1])
        object.__setattr__(self, "extra", parts[2])
        object.__setattr__(self, "dev_flag", parts[3])

    @classmethod
    def parse(cls, version: str) -> "Version":
        return cls(normalize(version))

    def _compare(self, other: "Version") -> int:
        if self.branch is not None or other.branch is not None:
            if self.branch is None:
                return -1
            if other.branch is None:
                return 1
            if self.branch == other.branch:
                return 0
            return -1 if self.branch < other.branch else 1
        result = _compare_numbers(self.numbers, other.numbers)
        if result:
            return result
        if self.rank != other.rank:
            return -1 if self.rank < other.rank else 1
        result = _compare_numbers(self.extra, other.extra)
        if result:
            return result
        if self.dev_flag != other.dev_flag:
            return -1 if self.dev_flag < other.dev_flag else 1
        return 0

    def __lt__(self, other: "Version") -> bool:  # type: ignore[override]
        return self._compare(other) < 0

    def __eq__(self, other: object) -> bool:  # type: ignore[override]
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) == 0

    def __hash__(self) -> int:  # type: ignore[override]
        return hash((self.branch, _strip_zeros(self.numbers), self.rank, _strip_zeros(self.extra), self.dev_flag))

    def __str__(self) -> str:  # type: ignore[override]
        return self.normalized


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0, or 1 comparing two version strings."""

    return Version.parse(a)._compare(Version.parse(b))


def compare_normalized(a: str, b: str) -> int:
    """Same as :func:`compare_versions` for strings that are already normalized."""

    return Version(a)._compare(Version(b))


def sort_versions(versions: Iterable[str], reverse: bool = False) -> List[str]:
    return sorted(versions, key=Version.parse, reverse=reverse)
