"""Bundle manifest model shared by dependency resolution and packaging."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

PACKAGE_TYPE = "XFWK"
FORMAT_VERSION = "1.0"


@dataclass(frozen=True, slots=True)
class ExternalManifestEntry:
    """One sub-bundle of a multi-platform bundle."""

    identifier: str
    library_path: str
    architectures: tuple[str, ...]
    platform: str
    platform_variant: str | None = None
    headers_path: str | None = None

    @property
    def library_name(self) -> str:
        return PurePosixPath(self.library_path).name


@dataclass(frozen=True, slots=True)
class BundleManifest:
    libraries: tuple[ExternalManifestEntry, ...]
    package_type: str = PACKAGE_TYPE
    format_version: str = FORMAT_VERSION


__all__ = ["BundleManifest", "ExternalManifestEntry", "FORMAT_VERSION", "PACKAGE_TYPE"]
