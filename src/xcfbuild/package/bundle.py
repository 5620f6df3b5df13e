"""Sub-bundle layout of the static and dynamic bundles."""

from __future__ import annotations

import plistlib
import shutil
from pathlib import Path

from xcfbuild.manifest import ExternalManifestEntry, bundle_platform, library_identifier
from xcfbuild.models import MergedPlatformArtifact

HEADERS_DIR = "Headers"
MODULES_DIR = "Modules"
MODULE_MAP = "module.modulemap"
FRAMEWORK_INFO = "Info.plist"

# CFBundleSupportedPlatforms values.
SUPPORTED_PLATFORM_NAMES = {
    ("macos", None): "MacOSX",
    ("ios", None): "iPhoneOS",
    ("ios", "simulator"): "iPhoneSimulator",
    ("ios", "maccatalyst"): "MacOSX",
    ("tvos", None): "AppleTVOS",
    ("tvos", "simulator"): "AppleTVSimulator",
    ("watchos", None): "WatchOS",
    ("watchos", "simulator"): "WatchSimulator",
}


def static_module_map(product_name: str) -> str:
    return (
        f"module {product_name} {{\n"
        f'\tumbrella header "{product_name}/{product_name}.h"\n'
        "\texport *\n"
        f'\tlink "{product_name}"\n'
        "}\n"
    )


def framework_module_map(product_name: str) -> str:
    return (
        f"framework module {product_name} {{\n"
        f'\tumbrella header "{product_name}.h"\n'
        "\texport *\n"
        "\tmodule * { export * }\n"
        "}\n"
    )


def framework_info(
    product_name: str,
    *,
    version: str,
    bundle_identifier: str,
    supported_platform: str,
    min_os_version: str | None,
) -> bytes:
    payload: dict[str, object] = {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleExecutable": product_name,
        "CFBundleIdentifier": bundle_identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": product_name,
        "CFBundlePackageType": "FMWK",
        "CFBundleShortVersionString": version,
        "CFBundleSupportedPlatforms": [supported_platform],
        "CFBundleVersion": version,
    }
    if min_os_version is not None:
        payload["MinimumOSVersion"] = min_os_version
    return plistlib.dumps(payload, fmt=plistlib.FMT_XML, sort_keys=True)


def write_static_subbundle(
    merged: MergedPlatformArtifact,
    bundle_dir: Path,
    *,
    product_name: str,
) -> ExternalManifestEntry:
    """``<id>/lib<Product>.a`` plus ``<id>/Headers/<Product>/`` and its module map."""
    identifier = library_identifier(merged.group, merged.archs)
    platform, variant = bundle_platform(merged.group)
    subbundle = bundle_dir / identifier
    headers = subbundle / HEADERS_DIR

    subbundle.mkdir(parents=True)
    shutil.copyfile(merged.static_library, subbundle / merged.static_library.name)
    shutil.copytree(merged.headers_dir, headers / product_name)
    (headers / MODULE_MAP).write_text(static_module_map(product_name), encoding="utf-8")

    return ExternalManifestEntry(
        identifier=identifier,
        library_path=merged.static_library.name,
        architectures=merged.archs,
        platform=platform,
        platform_variant=variant,
        headers_path=HEADERS_DIR,
    )


def write_dynamic_subbundle(
    merged: MergedPlatformArtifact,
    bundle_dir: Path,
    *,
    product_name: str,
    version: str,
    bundle_identifier: str,
    min_os_version: str | None,
) -> ExternalManifestEntry:
    """``<id>/<Product>.framework/{<Product>, Headers, Modules, Info.plist}``."""
    identifier = library_identifier(merged.group, merged.archs)
    platform, variant = bundle_platform(merged.group)
    framework_name = f"{product_name}.framework"
    framework = bundle_dir / identifier / framework_name

    framework.mkdir(parents=True)
    shutil.copyfile(merged.dynamic_library, framework / product_name)
    (framework / product_name).chmod(0o755)
    shutil.copytree(merged.headers_dir, framework / HEADERS_DIR)
    modules = framework / MODULES_DIR
    modules.mkdir()
    (modules / MODULE_MAP).write_text(framework_module_map(product_name), encoding="utf-8")
    (framework / FRAMEWORK_INFO).write_bytes(
        framework_info(
            product_name,
            version=version,
            bundle_identifier=bundle_identifier,
            supported_platform=SUPPORTED_PLATFORM_NAMES[(platform, variant)],
            min_os_version=min_os_version,
        )
    )

    return ExternalManifestEntry(
        identifier=identifier,
        library_path=framework_name,
        architectures=merged.archs,
        platform=platform,
        platform_variant=variant,
    )


__all__ = [
    "framework_info",
    "framework_module_map",
    "static_module_map",
    "write_dynamic_subbundle",
    "write_static_subbundle",
]
