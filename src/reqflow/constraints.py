"""Version constraint model and the parser for Composer constraint strings."""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from .constants import MODIFIER_PATTERN
from .exceptions import InvalidConstraintSyntax, InvalidVersionString
from .versions import Version, is_branch, normalize

_VERSION_PATTERN = r"v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?" + MODIFIER_PATTERN + r"(?:\+\S+)?"
_VERSION_RE = re.compile(r"^" + _VERSION_PATTERN + r"$", re.IGNORECASE)
_TILDE_RE = re.compile(r"^~" + _VERSION_PATTERN + r"$", re.IGNORECASE)
_CARET_RE = re.compile(r"^\^" + _VERSION_PATTERN + r"$", re.IGNORECASE)
_WILDCARD_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.[xX*])+$")
_MATCH_ALL_RE = re.compile(r"^v?[xX*](?:\.[xX*])*$")
_OPERATOR_RE = re.compile(r"^(<>|!=|>=?|<=?|==?)?\s*(.*)$")
_OPERATOR_SPACE_RE = re.compile(r"(<>|!=|>=|<=|==|=|<|>|~|\^)\s+")
_STABILITY_FLAG_RE = re.compile(r"^([^,\s]*?)@(stable|RC|beta|alpha|dev)$", re.IGNORECASE)
_REFERENCE_RE = re.compile(r"^(dev-[^,\s@]+?|[^,\s@]+?\.x-dev)#.+$", re.IGNORECASE)
_INLINE_ALIAS_RE = re.compile(r"^([^,\s]+) +as +([^,\s]+)$")
_DANGLING_OR_RE = re.compile(r"^\s*\|\||\|\|\s*$")
_DANGLING_AND_RE = re.compile(r"^\s*,|,\s*$|,\s*,")
_UNSTABLE_SUFFIX_RE = re.compile(r"-" + MODIFIER_PATTERN + r"$", re.IGNORECASE)
_BRANCH_RECOVERY_RE = re.compile(r"^[0-9a-zA-Z./-]+$")

_OPERATORS = {"=": "==", "==": "==", "!=": "!=", "<>": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


def _as_version(version: str) -> Version:
    try:
        return Version(version)
    except InvalidVersionString:
        return Version.parse(version)


class Constraint:
    """Predicate over normalized versions."""

    pretty: Optional[str] = None

    def matches(self, version: str) -> bool:
        raise NotImplementedError

    @property
    def pretty_string(self) -> str:
        return self.pretty if self.pretty is not None else str(self)


@dataclass(frozen=True)
class MatchAllConstraint(Constraint):
    pretty: Optional[str] = field(default=None, compare=False)

    def matches(self, version: str) -> bool:
        return True

    def __str__(self) -> str:
        return "*"


@dataclass(frozen=True)
class SingleConstraint(Constraint):
    """A single comparator such as ``>= 1.0.0.0``."""

    operator: str
    version: str
    pretty: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.operator not in _OPERATORS.values():
            raise InvalidConstraintSyntax(f"Unsupported operator: {self.operator}")

    def matches(self, version: str) -> bool:
        if is_branch(version) or is_branch(self.version):
            # branches only ever compare by name
            if self.operator == "==":
                return version == self.version
            if self.operator == "!=":
                return version != self.version
            return False
        cmp = _as_version(version)._compare(_as_version(self.version))
        if self.operator == "==":
            return cmp == 0
        if self.operator == "!=":
            return cmp != 0
        if self.operator == "<":
            return cmp < 0
        if self.operator == "<=":
            return cmp <= 0
        if self.operator == ">":
            return cmp > 0
        return cmp >= 0

    def __str__(self) -> str:
        # a bare >= or < bound would re-parse with -dev appended
        if self.operator in {"<", ">="} and not is_branch(self.version) and "-" not in self.version:
            return f"{self.operator} {self.version}-stable"
        return f"{self.operator} {self.version}"


@dataclass(frozen=True)
class MultiConstraint(Constraint):
    """Conjunction (``conjunctive=True``) or disjunction of constraints."""

    constraints: Tuple[Constraint, ...]
    conjunctive: bool = True
    pretty: Optional[str] = field(default=None, compare=False)

    def matches(self, version: str) -> bool:
        if self.conjunctive:
            return all(constraint.matches(version) for constraint in self.constraints)
        return any(constraint.matches(version) for constraint in self.constraints)

    def __str__(self) -> str:
        separator = ", " if self.conjunctive else " || "
        return separator.join(str(constraint) for constraint in self.constraints)


def _bump(parts: Sequence[Optional[str]], position: int, increment: int = 1) -> str:
    numbers = [int(part) if part else 0 for part in parts]
    for index in range(3, -1, -1):
        if index > position - 1:
            numbers[index] = 0
        elif index == position - 1:
            numbers[index] += increment
    return ".".join(str(number) for number in numbers)


def _has_modifier(match: "re.Match[str]") -> bool:
    return bool(match.group(5) or match.group(7))


def _parse_tilde(token: str, match: "re.Match[str]") -> List[Constraint]:
    parts = [match.group(index) for index in range(1, 5)]
    position = max(index for index, part in enumerate(parts, start=1) if part is not None)
    suffix = "" if _has_modifier(match) else "-dev"
    low = normalize(token[1:] + suffix)
    high = _bump(parts, max(1, position - 1)) + "-dev"
    return [SingleConstraint(">=", low), SingleConstraint("<", high)]


def _parse_caret(token: str, match: "re.Match[str]") -> List[Constraint]:
    parts = [match.group(index) for index in range(1, 5)]
    major, minor, patch = parts[0], parts[1], parts[2]
    if major != "0" or minor is None:
        position = 1
    elif minor != "0" or patch is None:
        position = 2
    else:
        position = 3
    suffix = "" if _has_modifier(match) else "-dev"
    low = normalize(token[1:] + suffix)
    high = _bump(parts, position) + "-dev"
    return [SingleConstraint(">=", low), SingleConstraint("<", high)]


def _parse_wildcard(match: "re.Match[str]") -> List[Constraint]:
    parts = [match.group(1), match.group(2), match.group(3), None]
    position = 3 if parts[2] is not None else 2 if parts[1] is not None else 1
    low = _bump(parts, position, 0) + "-dev"
    high = _bump(parts, position) + "-dev"
    if low == "0.0.0.0-dev":
        return [SingleConstraint("<", high)]
    return [SingleConstraint(">=", low), SingleConstraint("<", high)]


def _parse_hyphen(token: str) -> List[Constraint]:
    lower, upper = (part.strip() for part in token.split(" - ", 1))
    low_match = _VERSION_RE.match(lower)
    high_match = _VERSION_RE.match(upper)
    if not low_match or not high_match:
        raise InvalidConstraintSyntax(f"Could not parse version constraint {token}")
    low = normalize(lower + ("" if _has_modifier(low_match) else "-dev"))
    constraints: List[Constraint] = [SingleConstraint(">=", low)]
    if (high_match.group(2) is not None and high_match.group(3) is not None) or _has_modifier(high_match):
        constraints.append(SingleConstraint("<=", normalize(upper)))
    else:
        normalize(upper)
        parts = [high_match.group(index) for index in range(1, 5)]
        position = 1 if parts[1] is None else 2
        constraints.append(SingleConstraint("<", _bump(parts, position) + "-dev"))
    return constraints


def _parse_operator(token: str) -> List[Constraint]:
    match = _OPERATOR_RE.match(token)
    assert match is not None
    operator, raw = match.group(1), match.group(2)
    try:
        version = normalize(raw)
    except InvalidVersionString:
        # foo-dev is accepted as the branch dev-foo unless an operator was given
        if raw.endswith("-dev") and _BRANCH_RECOVERY_RE.match(raw) and not operator:
            version = normalize("dev-" + raw[:-4])
        else:
            raise
    op = _OPERATORS[operator or "="]
    if op in {"<", ">="} and not _UNSTABLE_SUFFIX_RE.search(raw) and not raw.lower().startswith("dev-"):
        version += "-dev"
    return [SingleConstraint(op, version)]


def _parse_single(token: str) -> List[Constraint]:
    flag = _STABILITY_FLAG_RE.match(token)
    if flag:
        token = flag.group(1) or "*"
    reference = _REFERENCE_RE.match(token)
    if reference:
        token = reference.group(1)
    if token.startswith("~>"):
        raise InvalidConstraintSyntax(
            f'Could not parse version constraint {token}: Invalid operator "~>", you probably meant to use the "~" operator'
        )
    if _MATCH_ALL_RE.match(token):
        return [MatchAllConstraint()]
    try:
        match = _TILDE_RE.match(token)
        if match:
            return _parse_tilde(token, match)
        match = _CARET_RE.match(token)
        if match:
            return _parse_caret(token, match)
        match = _WILDCARD_RE.match(token)
        if match:
            return _parse_wildcard(match)
        if " - " in token:
            return _parse_hyphen(token)
        return _parse_operator(token)
    except InvalidVersionString as exc:
        raise InvalidConstraintSyntax(f"Could not parse version constraint {token}: {exc}") from exc


def _tokenize(part: str) -> List[str]:
    collapsed = _OPERATOR_SPACE_RE.sub(r"\1", part.strip())
    raw = [token for token in re.split(r"[\s,]+", collapsed) if token]
    tokens: List[str] = []
    index = 0
    while index < len(raw):
        if index + 2 < len(raw) and raw[index + 1] == "-":
            tokens.append(f"{raw[index]} - {raw[index + 2]}")
            index += 3
            continue
        tokens.append(raw[index])
        index += 1
    return tokens


def _combine(constraints: List[Constraint], conjunctive: bool) -> Constraint:
    if conjunctive:
        constraints = [item for item in constraints if not isinstance(item, MatchAllConstraint)] or [MatchAllConstraint()]
    elif any(isinstance(item, MatchAllConstraint) for item in constraints):
        return MatchAllConstraint()
    if len(constraints) == 1:
        return constraints[0]
    return MultiConstraint(tuple(constraints), conjunctive=conjunctive)


def parse_constraints(text: str) -> Constraint:
    """Parse a constraint expression such as ``^1.2 || >=2.0,<2.5``.

    ``||`` (or a single ``|``) separates alternatives and binds weaker than
    the comma/space separated conjunctions inside each alternative.
    """

    pretty = text
    stripped = text.strip()
    alias = _INLINE_ALIAS_RE.match(stripped)
    if alias:
        stripped = alias.group(1)
    if not stripped:
        raise InvalidConstraintSyntax("Could not parse version constraint: empty string")
    if _DANGLING_OR_RE.search(stripped):
        raise InvalidConstraintSyntax(f'Could not parse version constraint {text}: dangling "||"')

    alternatives: List[Constraint] = []
    for part in re.split(r"\s*\|\|?\s*", stripped):
        if _DANGLING_AND_RE.search(part):
            raise InvalidConstraintSyntax(f'Could not parse version constraint {text}: dangling ","')
        tokens = _tokenize(part)
        if not tokens:
            raise InvalidConstraintSyntax(f"Could not parse version constraint {text}: empty alternative")
        conjunction: List[Constraint] = []
        for token in tokens:
            conjunction.extend(_parse_single(token))
        alternatives.append(_combine(conjunction, conjunctive=True))

    return replace(_combine(alternatives, conjunctive=False), pretty=pretty)


def lower_bound_only(constraint: Constraint) -> Constraint:
    """Drop the upper bounds of *constraint*, keeping what it requires at least."""

    if isinstance(constraint, SingleConstraint):
        if constraint.operator in {"<", "<="}:
            return MatchAllConstraint()
        if constraint.operator == "==" and not is_branch(constraint.version):
            return SingleConstraint(">=", constraint.version)
        return constraint
    if isinstance(constraint, MultiConstraint):
        relaxed = [lower_bound_only(item) for item in constraint.constraints]
        return _combine(relaxed, constraint.conjunctive)
    return constraint
