"""Stability ranks and the minimum-stability policy."""
from __future__ import annotations

import re
from enum import IntEnum
from typing import Optional

from .constants import MODIFIER_PATTERN, STABILITY_NAMES

_MODIFIER_RE = re.compile(MODIFIER_PATTERN + r"(?:\+.*)?$", re.IGNORECASE)
_FLAG_RE = re.compile(r"^[^,\s@]*?@(stable|RC|beta|alpha|dev)$", re.IGNORECASE)
_OPERATOR_PREFIX_RE = re.compile(r"^[<>=!~^\s]+")


class Stability(IntEnum):
    DEV = 0
    ALPHA = 1
    BETA = 2
    RC = 3
    STABLE = 4

    @classmethod
    def parse(cls, value: "str | Stability") -> "Stability":
        if isinstance(value, Stability):
            return value
        lowered = value.strip().lower()
        for name in STABILITY_NAMES:
            if name.lower() == lowered:
                return cls[name.upper()]
        raise ValueError(f'Invalid stability "{value}", expected one of {", ".join(STABILITY_NAMES)}')

    @property
    def label(self) -> str:
        return STABILITY_NAMES[self.value]

    def __str__(self) -> str:  # type: ignore[override]
        return self.label


def classify(version: str) -> Stability:
    """Return the stability of a pretty or normalized version string."""

    version = re.sub(r"#.+$", "", version.strip())
    lowered = version.lower()
    if lowered.startswith("dev-") or lowered.endswith("-dev"):
        return Stability.DEV
    match = _MODIFIER_RE.search(lowered)
    if match is None:
        return Stability.STABLE
    if match.group(3):
        return Stability.DEV
    modifier = match.group(1)
    if modifier in {"beta", "b"}:
        return Stability.BETA
    if modifier in {"alpha", "a"}:
        return Stability.ALPHA
    if modifier == "rc":
        return Stability.RC
    return Stability.STABLE


def is_acceptable(
    candidate: Stability,
    minimum: Stability,
    explicit_override: Optional[Stability] = None,
) -> bool:
    """A candidate passes when it meets the floor or the per-package override."""

    if candidate >= minimum:
        return True
    return explicit_override is not None and candidate >= explicit_override


def extract_stability_flag(constraint_text: str, minimum: Stability) -> Optional[Stability]:
    """Derive the per-package override implied by an explicit requirement.

    ``foo/bar:@dev`` or ``foo/bar:dev-main`` ask for an unstable package
    explicitly, which lifts the minimum-stability floor for that package only.
    Returns ``None`` when the requirement is not less stable than *minimum*.
    """

    flagged: Optional[Stability] = None
    for alternative in re.split(r"\s*\|\|?\s*", constraint_text.strip()):
        for part in re.split(r"[\s,]+", alternative):
            if not part:
                continue
            flag = _FLAG_RE.match(part)
            if flag:
                stability = Stability.parse(flag.group(1))
            else:
                stability = classify(_OPERATOR_PREFIX_RE.sub("", part))
            if flagged is None or stability < flagged:
                flagged = stability
    if flagged is None or flagged >= minimum:
        return None
    return flagged
