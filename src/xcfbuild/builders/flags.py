"""Compiler and linker flags for one cross-compiled target."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from xcfbuild.config import BuildConfig
from xcfbuild.manifest import DependencyMap
from xcfbuild.models import TargetTriple

XCRUN = "xcrun"
COMPILER = "clang"


def sysroot(developer_dir: Path, target: TargetTriple, sdk_version: str = "") -> Path:
    """``<Developer>/Platforms/<Legacy>.platform/Developer/SDKs/<Legacy><version>.sdk``.

    Mac Catalyst targets have the macOS platform, hence the MacOSX SDK.
    """
    legacy = target.legacy_platform_name
    return (
        developer_dir
        / "Platforms"
        / f"{legacy}.platform"
        / "Developer"
        / "SDKs"
        / f"{legacy}{sdk_version}.sdk"
    )


def platform_flags(
    target: TargetTriple,
    *,
    developer_dir: Path,
    sdk_version: str = "",
    min_version: str | None = None,
) -> tuple[str, ...]:
    """Sysroot, architecture and deployment target; shared by compile and link steps."""
    flags = ["-isysroot", str(sysroot(developer_dir, target, sdk_version)), "-arch", target.arch]
    if min_version:
        if target.group.is_mac_catalyst:
            flags += ["-target", f"{target.arch}-apple-ios{min_version}-macabi"]
        else:
            flags.append(f"-m{target.platform_version_name}-version-min={min_version}")
    return tuple(flags)


def compiler_flags(
    target: TargetTriple,
    *,
    developer_dir: Path,
    sdk_version: str = "",
    min_version: str | None = None,
    disable_bitcode: bool = False,
) -> tuple[str, ...]:
    flags = list(
        platform_flags(
            target,
            developer_dir=developer_dir,
            sdk_version=sdk_version,
            min_version=min_version,
        )
    )
    if not disable_bitcode and not target.is_native_macos:
        flags.append("-fembed-bitcode")
    flags.append("-fPIC")
    return tuple(flags)


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Environment and configure arguments of one target build."""

    target: TargetTriple
    env: Mapping[str, str] = field(default_factory=dict)
    configure_args: tuple[str, ...] = ()

    def xcrun(self, *argv: str) -> tuple[str, ...]:
        return (XCRUN, *argv)


def target_toolchain(
    target: TargetTriple,
    *,
    config: BuildConfig,
    developer_dir: Path,
    install_dir: Path,
    dependencies: DependencyMap,
) -> Toolchain:
    base = compiler_flags(
        target,
        developer_dir=developer_dir,
        sdk_version=config.sdk_version(target),
        min_version=config.min_sdk_version(target),
        disable_bitcode=config.disable_bitcode,
    )
    include_flags = dependencies.compiler_flags(target)
    link_flags = dependencies.linker_flags(target)
    search_flags = tuple(flag for flag in link_flags if flag.startswith(("-L", "-F")))
    libraries = tuple(flag for flag in link_flags if flag not in search_flags)

    env = {
        "CC": COMPILER,
        "CFLAGS": " ".join((*base, *include_flags)),
        "CPPFLAGS": " ".join(include_flags),
        "LDFLAGS": " ".join((*base, *search_flags)),
        "LIBS": " ".join(libraries),
    }
    configure_args = (
        f"--prefix={install_dir}",
        f"--host={target.host_triple}",
        "--enable-static",
        "--disable-shared",
        *config.configure_args,
    )
    return Toolchain(target=target, env=env, configure_args=configure_args)


__all__ = [
    "Toolchain",
    "compiler_flags",
    "platform_flags",
    "sysroot",
    "target_toolchain",
]
