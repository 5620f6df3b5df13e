"""Staged directory tree of a build.

Every stage reads only from the stage before it. With skip-existing a
stage is reused only while its outputs exist and the inputs it consumed
are unchanged, and recomputing a stage discards the stages after it, so
deleting a stage directory forces that stage and everything downstream to
be recomputed.

::

    <work_dir>/
      downloads/
      build/
        stamps/<target>.cbor
        stamps/stages/{merge-<group>,package}.digest
        step1.sources-and-builds/<target>/
        step2.installs/<target>/
        step3.intermediate-derivatives/{fat-static-libs,lib-objects,dylibs}/<group>/
        step4.final-derivatives/{headers,libs}/<group>/
        step5.final-bundles/
    <result_dir>/
      <Product>-static.xcframework(.zip)
      <Product>-dynamic.xcframework(.zip)
      Package.swift
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from .models import PlatformGroup, TargetTriple, validate_identifier


@dataclass(frozen=True, slots=True)
class BuildLayout:
    work_dir: Path
    result_dir: Path
    product_name: str

    def __post_init__(self) -> None:
        validate_identifier(self.product_name, kind="product name")

    # ── Stage roots ─────────────────────────────────────────────────

    @property
    def downloads_dir(self) -> Path:
        return self.work_dir / "downloads"

    @property
    def build_dir(self) -> Path:
        return self.work_dir / "build"

    @property
    def stamps_dir(self) -> Path:
        return self.build_dir / "stamps"

    @property
    def stage_stamps_dir(self) -> Path:
        return self.stamps_dir / "stages"

    @property
    def sources_dir(self) -> Path:
        return self.build_dir / "step1.sources-and-builds"

    @property
    def installs_dir(self) -> Path:
        return self.build_dir / "step2.installs"

    @property
    def fat_archives_dir(self) -> Path:
        return self.build_dir / "step3.intermediate-derivatives" / "fat-static-libs"

    @property
    def extracted_objects_dir(self) -> Path:
        return self.build_dir / "step3.intermediate-derivatives" / "lib-objects"

    @property
    def derived_dylibs_dir(self) -> Path:
        return self.build_dir / "step3.intermediate-derivatives" / "dylibs"

    @property
    def merged_headers_dir(self) -> Path:
        return self.build_dir / "step4.final-derivatives" / "headers"

    @property
    def merged_libs_dir(self) -> Path:
        return self.build_dir / "step4.final-derivatives" / "libs"

    @property
    def final_bundles_dir(self) -> Path:
        return self.build_dir / "step5.final-bundles"

    def stage_dirs(self) -> tuple[Path, ...]:
        return (
            self.work_dir,
            self.result_dir,
            self.downloads_dir,
            self.build_dir,
            self.stamps_dir,
            self.sources_dir,
            self.installs_dir,
            self.fat_archives_dir,
            self.extracted_objects_dir,
            self.derived_dylibs_dir,
            self.merged_headers_dir,
            self.merged_libs_dir,
            self.final_bundles_dir,
        )

    def ensure(self) -> None:
        """Create every stage directory. Safe to call repeatedly."""
        for directory in self.stage_dirs():
            directory.mkdir(parents=True, exist_ok=True)

    def clean(self) -> None:
        """Remove the build tree and every result."""
        shutil.rmtree(self.build_dir, ignore_errors=True)
        self.discard(self.package_outputs())

    # ── Per-target / per-group paths ────────────────────────────────

    def source_dir(self, target: TargetTriple) -> Path:
        return self.sources_dir / target.dir_name

    def install_dir(self, target: TargetTriple) -> Path:
        return self.installs_dir / target.dir_name

    def fat_archives_for(self, group: PlatformGroup) -> Path:
        return self.fat_archives_dir / group.dir_name

    def objects_for(self, group: PlatformGroup, arch: str) -> Path:
        return self.extracted_objects_dir / group.dir_name / arch

    def dylibs_for(self, group: PlatformGroup) -> Path:
        return self.derived_dylibs_dir / group.dir_name

    def headers_for(self, group: PlatformGroup) -> Path:
        return self.merged_headers_dir / group.dir_name

    def libs_for(self, group: PlatformGroup) -> Path:
        return self.merged_libs_dir / group.dir_name

    def group_outputs(self, group: PlatformGroup) -> tuple[Path, ...]:
        """Everything the merge of *group* writes in steps 3 and 4."""
        return (
            self.fat_archives_for(group),
            self.extracted_objects_dir / group.dir_name,
            self.dylibs_for(group),
            self.headers_for(group),
            self.libs_for(group),
        )

    def package_outputs(self) -> tuple[Path, ...]:
        """Staged bundles of step 5 and every result."""
        return (
            self.final_bundles_dir / self.static_bundle_name,
            self.final_bundles_dir / self.dynamic_bundle_name,
            self.static_bundle,
            self.dynamic_bundle,
            self.static_archive,
            self.dynamic_archive,
            self.package_descriptor,
        )

    def discard(self, paths: tuple[Path, ...]) -> None:
        for path in paths:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)

    # ── Product names and results ───────────────────────────────────

    @property
    def static_library_name(self) -> str:
        return f"lib{self.product_name}.a"

    @property
    def framework_name(self) -> str:
        return f"{self.product_name}.framework"

    @property
    def static_bundle_name(self) -> str:
        return f"{self.product_name}-static.xcframework"

    @property
    def dynamic_bundle_name(self) -> str:
        return f"{self.product_name}-dynamic.xcframework"

    @property
    def static_bundle(self) -> Path:
        return self.result_dir / self.static_bundle_name

    @property
    def dynamic_bundle(self) -> Path:
        return self.result_dir / self.dynamic_bundle_name

    @property
    def static_archive(self) -> Path:
        return self.result_dir / f"{self.static_bundle_name}.zip"

    @property
    def dynamic_archive(self) -> Path:
        return self.result_dir / f"{self.dynamic_bundle_name}.zip"

    @property
    def package_descriptor(self) -> Path:
        return self.result_dir / "Package.swift"


__all__ = ["BuildLayout"]
