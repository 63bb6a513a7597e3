"""Custom exceptions raised by the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class ReqflowError(Exception):
    """Base class for every error reqflow reports to its callers."""


class MetadataFetchError(ReqflowError, RuntimeError):
    """Raised when metadata for a package cannot be retrieved."""


class ManifestError(ReqflowError):
    """Raised when composer.json cannot be read or written."""


class InvalidVersionString(ReqflowError, ValueError):
    """Raised when a version string cannot be normalized."""


class InvalidConstraintSyntax(ReqflowError, ValueError):
    """Raised when a constraint expression cannot be parsed."""


@dataclass(eq=False)
class ResolutionError(ReqflowError):
    package: str
    message: str

    def __str__(self) -> str:  # type: ignore[override]
        return self.message


@dataclass(eq=False)
class PackageNotFound(ResolutionError):
    suggestions: List[str] = field(default_factory=list)


@dataclass(eq=False)
class StabilityMismatch(ResolutionError):
    minimum_stability: str = "stable"
    found_stability: Optional[str] = None


@dataclass(eq=False)
class PlatformMismatch(ResolutionError):
    details: List[str] = field(default_factory=list)


@dataclass(eq=False)
class ConstraintUnsatisfiable(ResolutionError):
    constraint: Optional[str] = None


@dataclass(eq=False)
class RepositoryShadowConflict(ResolutionError):
    shadowing_repository: str = ""
    shadowed_repository: str = ""
