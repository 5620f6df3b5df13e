"""Per-platform-group merge: archive fusion, header reconciliation, dylib derivation."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from xcfbuild.builders.flags import platform_flags
from xcfbuild.context import BuildContext
from xcfbuild.errors import ConsistencyError
from xcfbuild.manifest import DependencyMap
from xcfbuild.merge.archives import combine_archives, fuse_archives
from xcfbuild.merge.dylib import LinkSpec, derive_dynamic_library
from xcfbuild.merge.headers import reconcile_headers, write_headers
from xcfbuild.models import BuildArtifact, MergedPlatformArtifact, PlatformGroup, TargetTriple
from xcfbuild.stamps import PACKAGE_STAGE, StageStamps, file_digests, inputs_digest, merge_stage


def group_artifacts(
    artifacts: Iterable[BuildArtifact],
) -> dict[PlatformGroup, tuple[BuildArtifact, ...]]:
    """Group artifacts by (sdk, platform), each group in architecture order."""
    groups: dict[PlatformGroup, list[BuildArtifact]] = defaultdict(list)
    for artifact in artifacts:
        groups[artifact.target.group].append(artifact)
    return {
        group: tuple(sorted(members, key=lambda artifact: artifact.target.arch))
        for group, members in sorted(groups.items())
    }


@dataclass(slots=True)
class MergeEngine:
    context: BuildContext
    dependencies: DependencyMap

    def link_spec(self, target: TargetTriple) -> LinkSpec:
        config = self.context.config
        return LinkSpec(
            platform_flags=platform_flags(
                target,
                developer_dir=self.context.developer_dir,
                sdk_version=config.sdk_version(target),
                min_version=config.min_sdk_version(target),
            ),
            libraries=self.dependencies.linker_flags(target),
        )

    def inputs_digest(
        self,
        group: PlatformGroup,
        artifacts: Sequence[BuildArtifact],
        link_specs: dict[str, LinkSpec],
    ) -> str:
        return inputs_digest(
            {
                "group": group.dir_name,
                "product": self.context.layout.product_name,
                "artifacts": {
                    artifact.target.arch: {
                        "libraries": file_digests(artifact.install_dir, artifact.static_libraries),
                        "headers": file_digests(artifact.install_dir, artifact.headers),
                    }
                    for artifact in artifacts
                },
                "link": {
                    arch: [list(spec.platform_flags), list(spec.libraries)]
                    for arch, spec in sorted(link_specs.items())
                },
            }
        )

    def merge(
        self,
        group: PlatformGroup,
        artifacts: Sequence[BuildArtifact],
    ) -> MergedPlatformArtifact:
        if not artifacts or any(artifact.target.group != group for artifact in artifacts):
            raise ConsistencyError(
                f"Merge of {group} received artifacts of another group.",
                context={"group": str(group)},
            )
        layout = self.context.layout
        logger = self.context.logger
        archs = tuple(sorted(artifact.target.arch for artifact in artifacts))
        link_specs = {
            artifact.target.arch: self.link_spec(artifact.target) for artifact in artifacts
        }

        stage = merge_stage(group)
        stages = StageStamps(layout.stage_stamps_dir)
        digest = self.inputs_digest(group, artifacts, link_specs)
        skip_existing = (
            self.context.config.skip_existing
            and stages.matches(stage, digest)
            and all(path.exists() for path in layout.group_outputs(group))
        )
        if skip_existing:
            message = f"Reusing merged outputs of {group}"
        else:
            # Stale or partial outputs of this group and the packaging after it.
            stages.discard(stage, PACKAGE_STAGE)
            layout.discard(layout.group_outputs(group))
            message = f"Merging {group} ({', '.join(archs)})"
        logger.log(operation="merge", message=message, stage=str(group))

        fat_archives = fuse_archives(
            self.context.runner,
            group,
            artifacts,
            layout.fat_archives_for(group),
            logger=logger,
            skip_existing=skip_existing,
        )
        static_library = combine_archives(
            self.context.runner,
            fat_archives,
            layout.libs_for(group) / layout.static_library_name,
            logger=logger,
            skip_existing=skip_existing,
        )

        headers = reconcile_headers(
            group,
            artifacts,
            product_name=layout.product_name,
            logger=logger,
        )
        headers_dir = write_headers(headers, layout.headers_for(group), skip_existing=skip_existing)

        dynamic_library = derive_dynamic_library(
            self.context.runner,
            fat_archives,
            link_specs,
            objects_root=layout.extracted_objects_dir / group.dir_name,
            dylibs_dir=layout.dylibs_for(group),
            product_name=layout.product_name,
            logger=logger,
            skip_existing=skip_existing,
        )

        stages.save(stage, digest)
        return MergedPlatformArtifact(
            group=group,
            archs=archs,
            fat_archives=fat_archives,
            static_library=static_library,
            headers_dir=headers_dir,
            dynamic_library=dynamic_library,
            header_divergences=tuple(headers.divergences),
        )

    def merge_all(self, artifacts: Iterable[BuildArtifact]) -> tuple[MergedPlatformArtifact, ...]:
        return tuple(
            self.merge(group, members) for group, members in group_artifacts(artifacts).items()
        )


__all__ = ["MergeEngine", "group_artifacts"]
