"""Static archive fusion across the architectures of one platform group."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from xcfbuild.errors import MergeSetMismatch
from xcfbuild.models import BuildArtifact, PlatformGroup
from xcfbuild.observability import StructuredLogger
from xcfbuild.process import ToolRunner


def library_sets(artifacts: Sequence[BuildArtifact]) -> dict[str, dict[str, Path]]:
    """Map each architecture to its static libraries, keyed by file name."""
    sets: dict[str, dict[str, Path]] = {}
    for artifact in artifacts:
        libraries: dict[str, Path] = {}
        for relative in artifact.static_libraries:
            libraries[relative.name] = artifact.install_dir / relative
        sets[artifact.target.arch] = libraries
    return sets


def check_merge_set(group: PlatformGroup, sets: dict[str, dict[str, Path]]) -> tuple[str, ...]:
    """Return the library names shared by every architecture, or fail if they differ."""
    names = {arch: frozenset(libraries) for arch, libraries in sets.items()}
    reference = next(iter(names.values()), frozenset())
    if any(arch_names != reference for arch_names in names.values()):
        every_name = frozenset().union(*names.values())
        context = {"group": str(group)}
        for arch in sorted(names):
            missing = sorted(every_name - names[arch])
            if missing:
                context[f"missing.{arch}"] = ", ".join(missing)
        raise MergeSetMismatch(
            f"Architectures of {group} installed different static libraries.",
            hint="Every architecture of a platform must install the same library files.",
            context=context,
        )
    return tuple(sorted(reference))


def fuse_archives(
    runner: ToolRunner,
    group: PlatformGroup,
    artifacts: Sequence[BuildArtifact],
    output_dir: Path,
    *,
    logger: StructuredLogger,
    skip_existing: bool = False,
) -> tuple[Path, ...]:
    """``lipo -create`` each library name into one multi-architecture archive.

    The merge set is checked before anything is written.
    """
    sets = library_sets(artifacts)
    names = check_merge_set(group, sets)
    output_dir.mkdir(parents=True, exist_ok=True)

    fused: list[Path] = []
    for name in names:
        output = output_dir / name
        fused.append(output)
        if skip_existing and output.exists():
            logger.log(
                operation="merge",
                message=f"Skipping fusion of {name} because {output} exists",
                stage=str(group),
            )
            continue
        inputs = [str(sets[arch][name]) for arch in sorted(sets)]
        runner.run(
            ["xcrun", "lipo", "-create", *inputs, "-output", str(output)],
            cwd=output_dir,
            observer=logger.output_observer(target=None, stage=str(group)),
        )
    return tuple(fused)


def combine_archives(
    runner: ToolRunner,
    archives: Sequence[Path],
    output: Path,
    *,
    logger: StructuredLogger,
    skip_existing: bool = False,
) -> Path:
    """Combine several archives into one with ``libtool -static``."""
    if skip_existing and output.exists():
        logger.log(operation="merge", message=f"Skipping creation of {output} because it exists")
        return output
    output.parent.mkdir(parents=True, exist_ok=True)
    runner.run(
        ["xcrun", "libtool", "-static", "-o", str(output), *(str(a) for a in sorted(archives))],
        cwd=output.parent,
        observer=logger.output_observer(target=None, stage="combine"),
    )
    return output


__all__ = ["check_merge_set", "combine_archives", "fuse_archives", "library_sets"]
