"""Inventory of an install tree."""

from __future__ import annotations

from pathlib import Path, PurePath

from xcfbuild.errors import ArtifactLocationWarning, EmptyBuildArtifact, UnknownArtifactWarning
from xcfbuild.models import BuildArtifact, TargetTriple
from xcfbuild.observability import StructuredLogger

EXCLUDED_NAMES = frozenset({".DS_Store"})

# suffix -> (kind, accepted roots)
ARTIFACT_KINDS: dict[str, tuple[str, tuple[PurePath, ...]]] = {
    ".a": ("static library", (PurePath("lib"),)),
    ".h": ("header", (PurePath("include"),)),
    "": ("binary", (PurePath("bin"), PurePath("sbin"))),
    ".la": ("libtool archive", (PurePath("lib"),)),
    ".pc": ("pkg-config file", (PurePath("lib/pkgconfig"),)),
}


def collect_artifact(
    target: TargetTriple,
    install_dir: Path,
    *,
    logger: StructuredLogger,
) -> BuildArtifact:
    """Walk *install_dir* once and classify every file.

    Misplaced or unknown files are reported as advisory warnings; an
    install tree without a header or without a static library is an error.
    """
    headers: list[Path] = []
    static_libraries: list[Path] = []

    for path in sorted(install_dir.rglob("*")):
        if path.name in EXCLUDED_NAMES or path.is_dir():
            continue
        relative = path.relative_to(install_dir)
        kind = ARTIFACT_KINDS.get(relative.suffix)
        if kind is None:
            logger.advise(
                UnknownArtifactWarning,
                f"Found unknown file: {relative}",
                operation="collect",
                target=str(target),
                stage="collected",
                extra={"path_root": str(install_dir)},
            )
            continue

        kind_name, roots = kind
        if not any(relative.is_relative_to(root) for root in roots):
            logger.advise(
                ArtifactLocationWarning,
                f"Found {kind_name} at unexpected location: {relative}",
                operation="collect",
                target=str(target),
                stage="collected",
                extra={"path_root": str(install_dir)},
            )
        if relative.suffix == ".a":
            static_libraries.append(relative)
        elif relative.suffix == ".h":
            headers.append(relative)

    if not headers or not static_libraries:
        raise EmptyBuildArtifact(
            f"Install tree of {target} holds no {'header' if not headers else 'static library'}.",
            hint="Check the configure and install logs of this target.",
            context={"target": str(target), "install_dir": str(install_dir)},
        )
    return BuildArtifact(
        target=target,
        install_dir=install_dir,
        headers=tuple(headers),
        static_libraries=tuple(static_libraries),
    )


__all__ = ["ARTIFACT_KINDS", "collect_artifact"]
