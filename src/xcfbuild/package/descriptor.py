"""``Package.swift`` descriptor referencing the released bundle archives."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

SWIFT_TOOLS_VERSION = "5.3"

# sdk -> PackageDescription platform
SWIFT_PLATFORMS = {
    "macOS": "macOS",
    "iOS": "iOS",
    "tvOS": "tvOS",
    "watchOS": "watchOS",
}


@dataclass(frozen=True, slots=True)
class BinaryTarget:
    name: str
    url: str
    checksum: str


def render_package_descriptor(
    product_name: str,
    targets: Sequence[BinaryTarget],
    *,
    platforms: Mapping[str, str],
) -> str:
    """Render a package exposing one library product per binary target.

    *platforms* maps an SDK name to its minimum version; SDKs without a
    PackageDescription counterpart are left out.
    """
    platform_lines = [
        f'\t\t.{SWIFT_PLATFORMS[sdk]}("{version}")'
        for sdk, version in sorted(platforms.items())
        if sdk in SWIFT_PLATFORMS
    ]
    product_lines = [
        f'\t\t.library(name: "{target.name}", targets: ["{target.name}"])' for target in targets
    ]
    target_lines = [
        f'\t\t.binaryTarget(name: "{target.name}", url: "{target.url}", '
        f'checksum: "{target.checksum}")'
        for target in targets
    ]

    lines = [
        f"// swift-tools-version:{SWIFT_TOOLS_VERSION}",
        "import PackageDescription",
        "",
        "",
        f"/* Binary package definition for {product_name}. */",
        "",
        "let package = Package(",
        f'\tname: "{product_name}",',
    ]
    if platform_lines:
        lines += ["\tplatforms: [", ",\n".join(platform_lines), "\t],"]
    lines += [
        "\tproducts: [",
        ",\n".join(product_lines),
        "\t],",
        "\ttargets: [",
        ",\n".join(target_lines),
        "\t]",
        ")",
        "",
    ]
    return "\n".join(lines)


__all__ = ["BinaryTarget", "SWIFT_TOOLS_VERSION", "render_package_descriptor"]
