"""Derivation of a dynamic library from fused static archives."""

from __future__ import annotations

import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from xcfbuild.observability import StructuredLogger
from xcfbuild.process import ToolRunner

SYMBOL_TABLE_PREFIX = "__.SYMDEF"


def install_name(product_name: str) -> str:
    return f"@rpath/{product_name}.framework/{product_name}"


@dataclass(frozen=True, slots=True)
class LinkSpec:
    """Per-architecture link inputs: platform flags before objects, libraries after."""

    platform_flags: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()


def thin_archive(
    runner: ToolRunner,
    archive: Path,
    arch: str,
    output: Path,
    *,
    single_arch: bool,
    logger: StructuredLogger,
) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    if single_arch:
        # lipo refuses to thin an archive that has a single architecture.
        shutil.copyfile(archive, output)
        return output
    runner.run(
        ["xcrun", "lipo", str(archive), "-thin", arch, "-output", str(output)],
        cwd=output.parent,
        observer=logger.output_observer(target=None, stage="thin"),
    )
    return output


def extract_members(
    runner: ToolRunner,
    archive: Path,
    scratch: Path,
    *,
    logger: StructuredLogger,
) -> dict[str, Path]:
    """``ar -x`` *archive* into an emptied *scratch* directory."""
    shutil.rmtree(scratch, ignore_errors=True)
    scratch.mkdir(parents=True)
    runner.run(
        ["xcrun", "ar", "-x", str(archive)],
        cwd=scratch,
        observer=logger.output_observer(target=None, stage="extract"),
    )
    return {
        member.name: member
        for member in sorted(scratch.iterdir())
        if member.is_file() and not member.name.startswith(SYMBOL_TABLE_PREFIX)
    }


def collect_objects(
    runner: ToolRunner,
    archives: Sequence[Path],
    arch: str,
    objects_dir: Path,
    *,
    single_arch: bool,
    logger: StructuredLogger,
) -> tuple[Path, ...]:
    """Object files of every archive for *arch*, deduplicated by member name.

    Archives are visited sorted by name and a later archive's member replaces
    an earlier one with the same name.
    """
    members: dict[str, Path] = {}
    for archive in sorted(archives, key=lambda path: path.name):
        thin = thin_archive(
            runner,
            archive,
            arch,
            objects_dir / "thin" / archive.name,
            single_arch=single_arch,
            logger=logger,
        )
        members.update(
            extract_members(runner, thin, objects_dir / "members" / archive.stem, logger=logger)
        )
    return tuple(members[name] for name in sorted(members))


def derive_dynamic_library(
    runner: ToolRunner,
    archives: Sequence[Path],
    link_specs: Mapping[str, LinkSpec],
    *,
    objects_root: Path,
    dylibs_dir: Path,
    product_name: str,
    logger: StructuredLogger,
    skip_existing: bool = False,
) -> Path:
    """Link one dynamic library per architecture and fuse them.

    ``link_specs`` is keyed by architecture; objects for each architecture
    are extracted below ``objects_root/<arch>``.
    """
    output = dylibs_dir / product_name
    if skip_existing and output.exists():
        logger.log(operation="merge", message=f"Skipping creation of {output} because it exists")
        return output

    archs = sorted(link_specs)
    name = install_name(product_name)
    per_arch: list[Path] = []
    for arch in archs:
        objects = collect_objects(
            runner,
            archives,
            arch,
            objects_root / arch,
            single_arch=len(archs) == 1,
            logger=logger,
        )
        arch_output = dylibs_dir / arch / product_name
        arch_output.parent.mkdir(parents=True, exist_ok=True)
        spec = link_specs[arch]
        runner.run(
            [
                "xcrun",
                "clang",
                "-dynamiclib",
                *spec.platform_flags,
                "-install_name",
                name,
                "-o",
                str(arch_output),
                *(str(obj) for obj in objects),
                *spec.libraries,
            ],
            cwd=arch_output.parent,
            observer=logger.output_observer(target=None, stage="link"),
        )
        per_arch.append(arch_output)

    runner.run(
        ["xcrun", "lipo", "-create", *(str(path) for path in per_arch), "-output", str(output)],
        cwd=dylibs_dir,
        observer=logger.output_observer(target=None, stage="link"),
    )
    runner.run(
        ["xcrun", "install_name_tool", "-id", name, str(output)],
        cwd=dylibs_dir,
        observer=logger.output_observer(target=None, stage="link"),
    )
    return output


__all__ = [
    "LinkSpec",
    "collect_objects",
    "derive_dynamic_library",
    "extract_members",
    "install_name",
    "thin_archive",
]
