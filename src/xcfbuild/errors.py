"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across the pipeline."""

    CONFIGURATION = "E_CONFIGURATION"
    INTEGRITY = "E_INTEGRITY"
    TOOLCHAIN = "E_TOOLCHAIN"
    CONSISTENCY = "E_CONSISTENCY"


class XcfBuildError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ConfigurationError(XcfBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIGURATION, hint=hint, context=context)


class IntegrityError(XcfBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INTEGRITY, hint=hint, context=context)


class ToolchainError(XcfBuildError):
    """An external tool exited with a non-zero status.

    ``output`` holds the complete combined stdout/stderr of the invocation;
    the ``output`` context entry only keeps its tail for display.
    """

    argv: tuple[str, ...]
    returncode: int
    output: str

    def __init__(
        self,
        message: str,
        *,
        argv: tuple[str, ...] = (),
        returncode: int = -1,
        output: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {
            "command": " ".join(argv),
            "returncode": str(returncode),
            "output": output[-2000:],
        }
        merged.update(context or {})
        super().__init__(message, code=ErrorCode.TOOLCHAIN, hint=hint, context=merged)
        self.argv = argv
        self.returncode = returncode
        self.output = output


class ConsistencyError(XcfBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONSISTENCY, hint=hint, context=context)


class InvalidIdentifier(ConfigurationError):
    """A product, library or target component uses characters outside [A-Za-z0-9_]."""


class MalformedManifest(ConsistencyError):
    """Bundle manifest is missing or is not a property list dictionary."""


class UnsupportedManifestVersion(ConsistencyError):
    """Bundle manifest has an unexpected package type or format version."""


class InvalidManifestEntry(ConsistencyError):
    """A bundle manifest entry is missing a field or has a mistyped one."""


class UnsupportedManifestEntry(ConsistencyError):
    """A bundle manifest entry names an unknown (platform, variant) pair."""


class DuplicateTargetInManifest(ConsistencyError):
    """Two bundle manifest entries claim the same target."""


class EmptyManifest(ConsistencyError):
    """A bundle manifest lists no libraries."""


class InconsistentLibraryName(ConsistencyError):
    """Bundle manifest entries disagree on the library name."""


class MergeSetMismatch(ConsistencyError):
    """Architectures of one platform group installed different static libraries."""


class EmptyBuildArtifact(ConsistencyError):
    """An install tree holds no header or no static library."""


class AdvisoryWarning(UserWarning):
    """Base class for conditions that are reported but never abort a run."""


class ArtifactLocationWarning(AdvisoryWarning):
    """A recognized artifact was installed outside its expected root."""


class UnknownArtifactWarning(AdvisoryWarning):
    """An installed file matches no known artifact category."""


class HeaderDivergenceWarning(AdvisoryWarning):
    """A header differs between architectures of one platform group."""


class StaleArtifactWarning(AdvisoryWarning):
    """A reused install tree was built from different inputs."""


__all__ = [
    "AdvisoryWarning",
    "ArtifactLocationWarning",
    "ConfigurationError",
    "ConsistencyError",
    "DuplicateTargetInManifest",
    "EmptyBuildArtifact",
    "EmptyManifest",
    "ErrorCode",
    "HeaderDivergenceWarning",
    "InconsistentLibraryName",
    "IntegrityError",
    "InvalidIdentifier",
    "InvalidManifestEntry",
    "MalformedManifest",
    "MergeSetMismatch",
    "StaleArtifactWarning",
    "ToolchainError",
    "UnknownArtifactWarning",
    "UnsupportedManifestEntry",
    "UnsupportedManifestVersion",
    "XcfBuildError",
]
