"""Final bundles, their archives and the package descriptor."""

from __future__ import annotations

import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from xcfbuild.context import BuildContext
from xcfbuild.errors import ConsistencyError
from xcfbuild.fetch.http import file_sha256
from xcfbuild.manifest import BundleManifest, ExternalManifestEntry, write_manifest
from xcfbuild.models import MergedPlatformArtifact, TargetTriple
from xcfbuild.package.archive import archive_checksum, write_deterministic_zip
from xcfbuild.package.bundle import write_dynamic_subbundle, write_static_subbundle
from xcfbuild.package.descriptor import BinaryTarget, render_package_descriptor
from xcfbuild.stamps import PACKAGE_STAGE, StageStamps, file_digests, inputs_digest

EntryWriter = Callable[[Path], list[ExternalManifestEntry]]


@dataclass(frozen=True, slots=True)
class PackageResult:
    static_bundle: Path
    dynamic_bundle: Path
    static_archive: Path
    dynamic_archive: Path
    static_checksum: str
    dynamic_checksum: str
    package_descriptor: Path


@dataclass(slots=True)
class PackageAssembler:
    context: BuildContext

    def assemble(self, merged: Sequence[MergedPlatformArtifact]) -> PackageResult:
        if not merged:
            raise ConsistencyError("No merged platform artifact to package.")
        layout = self.context.layout
        config = self.context.config
        ordered = sorted(merged, key=lambda artifact: artifact.group)
        product = layout.product_name

        stages = StageStamps(layout.stage_stamps_dir)
        digest = self.inputs_digest(ordered)
        reuse = (
            config.skip_existing
            and stages.matches(PACKAGE_STAGE, digest)
            and all(path.exists() for path in layout.package_outputs())
        )
        if not reuse:
            stages.discard(PACKAGE_STAGE)
            layout.discard(layout.package_outputs())

        def static_entries(staging: Path) -> list[ExternalManifestEntry]:
            return [write_static_subbundle(m, staging, product_name=product) for m in ordered]

        def dynamic_entries(staging: Path) -> list[ExternalManifestEntry]:
            return [
                write_dynamic_subbundle(
                    m,
                    staging,
                    product_name=product,
                    version=config.library_version,
                    bundle_identifier=f"{config.bundle_identifier_prefix}.{product}",
                    min_os_version=config.min_sdk_version(
                        TargetTriple(sdk=m.group.sdk, platform=m.group.platform, arch=m.archs[0])
                    ),
                )
                for m in ordered
            ]

        static_bundle = self._bundle(layout.static_bundle, static_entries, reuse=reuse)
        dynamic_bundle = self._bundle(layout.dynamic_bundle, dynamic_entries, reuse=reuse)
        static_archive = self._archive(static_bundle, layout.static_archive, reuse=reuse)
        dynamic_archive = self._archive(dynamic_bundle, layout.dynamic_archive, reuse=reuse)
        static_checksum = archive_checksum(static_archive)
        dynamic_checksum = archive_checksum(dynamic_archive)

        descriptor = layout.package_descriptor
        if reuse:
            self._skip(descriptor)
        else:
            targets = [
                BinaryTarget(
                    name=archive.name.removesuffix(".xcframework.zip"),
                    url=f"{config.release_url}/{archive.name}",
                    checksum=checksum,
                )
                for archive, checksum in (
                    (static_archive, static_checksum),
                    (dynamic_archive, dynamic_checksum),
                )
            ]
            platforms = {
                sdk: config.min_sdk_versions[sdk]
                for sdk in {m.group.sdk for m in ordered}
                if sdk in config.min_sdk_versions
            }
            descriptor.write_text(
                render_package_descriptor(product, targets, platforms=platforms),
                encoding="utf-8",
            )
            self.context.logger.log(operation="package", message=f"Wrote {descriptor}")

        stages.save(PACKAGE_STAGE, digest)
        return PackageResult(
            static_bundle=static_bundle,
            dynamic_bundle=dynamic_bundle,
            static_archive=static_archive,
            dynamic_archive=dynamic_archive,
            static_checksum=static_checksum,
            dynamic_checksum=dynamic_checksum,
            package_descriptor=descriptor,
        )

    def inputs_digest(self, ordered: Sequence[MergedPlatformArtifact]) -> str:
        config = self.context.config
        return inputs_digest(
            {
                "product": self.context.layout.product_name,
                "version": config.library_version,
                "bundle_identifier_prefix": config.bundle_identifier_prefix,
                "min_sdk_versions": dict(config.min_sdk_versions),
                "release_url": config.release_url,
                "groups": {
                    merged.group.dir_name: {
                        "archs": list(merged.archs),
                        "static_library": file_sha256(merged.static_library),
                        "dynamic_library": file_sha256(merged.dynamic_library),
                        "headers": file_digests(
                            merged.headers_dir,
                            (
                                path.relative_to(merged.headers_dir)
                                for path in merged.headers_dir.rglob("*")
                                if path.is_file()
                            ),
                        ),
                    }
                    for merged in ordered
                },
            }
        )

    def _bundle(self, result: Path, write_entries: EntryWriter, *, reuse: bool) -> Path:
        """Stage the bundle under step5, write its manifest, then publish it."""
        if reuse:
            self._skip(result)
            return result
        staging = self.context.layout.final_bundles_dir / result.name
        shutil.rmtree(staging, ignore_errors=True)
        staging.mkdir(parents=True)
        entries = write_entries(staging)
        write_manifest(BundleManifest(libraries=tuple(entries)), staging)

        shutil.rmtree(result, ignore_errors=True)
        shutil.copytree(staging, result)
        self.context.logger.log(operation="package", message=f"Created {result}")
        return result

    def _archive(self, bundle: Path, archive: Path, *, reuse: bool) -> Path:
        if reuse:
            self._skip(archive)
            return archive
        write_deterministic_zip(bundle, archive)
        self.context.logger.log(operation="package", message=f"Archived {bundle} into {archive}")
        return archive

    def _skip(self, path: Path) -> None:
        self.context.logger.log(
            operation="package",
            message=f"Skipping creation of {path} because it already exists",
        )


__all__ = ["PackageAssembler", "PackageResult"]
