"""Core typed dataclasses for targets, build results and merged artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Self

from .errors import ConfigurationError, InvalidIdentifier

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
TARGET_SEPARATOR = "-"

LEGACY_PLATFORM_NAMES = {
    "macOS": "MacOSX",
    "iOS": "iPhoneOS",
    "iOS_Simulator": "iPhoneSimulator",
    "tvOS": "AppleTVOS",
    "tvOS_Simulator": "AppleTVSimulator",
    "watchOS": "WatchOS",
    "watchOS_Simulator": "WatchSimulator",
}

PLATFORM_VERSION_NAMES = {
    "macOS": "macos",
    "iOS": "ios",
    "iOS_Simulator": "ios-simulator",
    "tvOS": "tvos",
    "tvOS_Simulator": "tvos-simulator",
    "watchOS": "watchos",
    "watchOS_Simulator": "watchos-simulator",
}

HOST_CPU_NAMES = {
    "arm64": "aarch64",
    "arm64e": "aarch64",
    "x86_64": "x86_64",
    "i386": "i386",
    "armv7": "arm",
    "armv7s": "arm",
    "armv7k": "arm",
    "arm64_32": "arm",
}


def validate_identifier(name: str, *, kind: str = "identifier") -> str:
    """Return *name* unchanged if it only uses ASCII letters, digits and underscore."""
    if not IDENTIFIER_PATTERN.fullmatch(name):
        raise InvalidIdentifier(
            f"Invalid {kind}: {name!r}.",
            hint="Use only ASCII letters, digits and underscore.",
            context={"kind": kind, "value": name},
        )
    return name


def legacy_platform_name(platform: str) -> str:
    return LEGACY_PLATFORM_NAMES.get(platform, platform.replace("_", ""))


def platform_version_name(platform: str, sdk: str) -> str:
    if platform == "macOS" and sdk == "iOS":
        return "mac-catalyst"
    return PLATFORM_VERSION_NAMES.get(platform, platform.lower().replace("_", "-"))


@dataclass(frozen=True, slots=True, order=True)
class PlatformGroup:
    """The (sdk, platform) pair shared by every architecture of one sub-bundle."""

    sdk: str
    platform: str

    @property
    def dir_name(self) -> str:
        return f"{self.sdk}{TARGET_SEPARATOR}{self.platform}"

    @property
    def is_mac_catalyst(self) -> bool:
        return self.sdk == "iOS" and self.platform == "macOS"

    def __str__(self) -> str:
        return self.dir_name


@dataclass(frozen=True, slots=True, order=True)
class TargetTriple:
    """One cross-compiled build variant."""

    sdk: str
    platform: str
    arch: str

    def __post_init__(self) -> None:
        validate_identifier(self.sdk, kind="target sdk")
        validate_identifier(self.platform, kind="target platform")
        validate_identifier(self.arch, kind="target arch")

    @classmethod
    def parse(cls, value: str) -> Self:
        """Parse ``sdk-platform-arch``."""
        components = value.split(TARGET_SEPARATOR)
        if len(components) != 3 or any(not c or "/" in c for c in components):
            raise ConfigurationError(
                f"Invalid target {value!r}.",
                hint="Targets are written sdk-platform-arch, e.g. iOS-iOS_Simulator-arm64.",
                context={"target": value},
            )
        sdk, platform, arch = components
        return cls(sdk=sdk, platform=platform, arch=arch)

    @property
    def dir_name(self) -> str:
        return TARGET_SEPARATOR.join((self.sdk, self.platform, self.arch))

    @property
    def group(self) -> PlatformGroup:
        return PlatformGroup(sdk=self.sdk, platform=self.platform)

    @property
    def legacy_platform_name(self) -> str:
        return legacy_platform_name(self.platform)

    @property
    def platform_version_name(self) -> str:
        return platform_version_name(self.platform, self.sdk)

    @property
    def host_triple(self) -> str:
        cpu = HOST_CPU_NAMES.get(self.arch, self.arch)
        return f"{cpu}-apple-darwin"

    @property
    def is_native_macos(self) -> bool:
        return self.sdk == "macOS" and self.platform == "macOS"

    def __str__(self) -> str:
        return self.dir_name


class TargetState(StrEnum):
    PENDING = "pending"
    SOURCE_READY = "source-ready"
    PATCHED = "patched"
    CONFIGURED = "configured"
    BUILT = "built"
    INSTALLED = "installed"
    COLLECTED = "collected"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """What one target installed. Paths are relative to ``install_dir``."""

    target: TargetTriple
    install_dir: Path
    headers: tuple[Path, ...]
    static_libraries: tuple[Path, ...]


@dataclass(frozen=True, slots=True)
class TargetBuild:
    artifact: BuildArtifact
    states: tuple[TargetState, ...]
    skipped: bool = False


@dataclass(frozen=True, slots=True)
class MergedPlatformArtifact:
    """Fused outputs of one platform group, consumed once by the assembler."""

    group: PlatformGroup
    archs: tuple[str, ...]
    fat_archives: tuple[Path, ...]
    static_library: Path
    headers_dir: Path
    dynamic_library: Path
    header_divergences: tuple[PurePosixPath, ...] = field(default=())


__all__ = [
    "BuildArtifact",
    "IDENTIFIER_PATTERN",
    "MergedPlatformArtifact",
    "PlatformGroup",
    "TargetBuild",
    "TargetState",
    "TargetTriple",
    "legacy_platform_name",
    "platform_version_name",
    "validate_identifier",
]
