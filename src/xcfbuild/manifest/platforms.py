"""Mapping between bundle platform names and build targets."""

from __future__ import annotations

from collections.abc import Iterable

from xcfbuild.errors import ConfigurationError
from xcfbuild.models import PlatformGroup

# (bundle platform, variant) -> (sdk, platform)
PLATFORM_TABLE: dict[tuple[str, str | None], tuple[str, str]] = {
    ("macos", None): ("macOS", "macOS"),
    ("ios", None): ("iOS", "iOS"),
    ("ios", "simulator"): ("iOS", "iOS_Simulator"),
    ("ios", "maccatalyst"): ("iOS", "macOS"),
    ("tvos", None): ("tvOS", "tvOS"),
    ("tvos", "simulator"): ("tvOS", "tvOS_Simulator"),
    ("watchos", None): ("watchOS", "watchOS"),
    ("watchos", "simulator"): ("watchOS", "watchOS_Simulator"),
}

_REVERSE_TABLE = {value: key for key, value in PLATFORM_TABLE.items()}


def group_for(platform: str, variant: str | None) -> PlatformGroup | None:
    resolved = PLATFORM_TABLE.get((platform, variant))
    if resolved is None:
        return None
    sdk, target_platform = resolved
    return PlatformGroup(sdk=sdk, platform=target_platform)


def bundle_platform(group: PlatformGroup) -> tuple[str, str | None]:
    """Return the (platform, variant) pair a bundle manifest uses for *group*."""
    try:
        return _REVERSE_TABLE[(group.sdk, group.platform)]
    except KeyError:
        raise ConfigurationError(
            f"Platform group {group} has no bundle platform.",
            hint="Only Apple sdk/platform pairs can be packaged.",
            context={"group": str(group)},
        ) from None


def library_identifier(group: PlatformGroup, archs: Iterable[str]) -> str:
    """Sub-bundle identifier, e.g. ``ios-arm64_x86_64-simulator``."""
    platform, variant = bundle_platform(group)
    identifier = f"{platform}-{'_'.join(sorted(archs))}"
    if variant is not None:
        identifier += f"-{variant}"
    return identifier


__all__ = ["PLATFORM_TABLE", "bundle_platform", "group_for", "library_identifier"]
