"""Per-target build state machine.

``Pending -> SourceReady -> Patched -> Configured -> Built -> Installed ->
Collected -> Done``, or ``Pending -> Done`` when an existing install tree is
reused. Reuse also needs the target's source tree. A target only ever
writes below its own source and install directories and its own stamp; a
rebuild also discards the stage stamps of its platform group and of the
packaging, so both are recomputed from the new install.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from xcfbuild.builders.collect import collect_artifact
from xcfbuild.builders.flags import Toolchain, target_toolchain
from xcfbuild.builders.patches import PatchSet, apply_patches
from xcfbuild.context import BuildContext
from xcfbuild.errors import StaleArtifactWarning
from xcfbuild.fetch import SourceTarball
from xcfbuild.manifest import DependencyMap
from xcfbuild.models import TargetBuild, TargetState, TargetTriple
from xcfbuild.stamps import PACKAGE_STAGE, BuildStamp, StageStamps, StampStore, merge_stage


@dataclass(slots=True)
class TargetBuilder:
    context: BuildContext
    tarball: SourceTarball
    dependencies: DependencyMap

    def toolchain(self, target: TargetTriple) -> Toolchain:
        return target_toolchain(
            target,
            config=self.context.config,
            developer_dir=self.context.developer_dir,
            install_dir=self.context.layout.install_dir(target),
            dependencies=self.dependencies,
        )

    def stamp(self, target: TargetTriple, toolchain: Toolchain) -> BuildStamp:
        return BuildStamp(
            target=target.dir_name,
            library_version=self.context.config.library_version,
            source_sha256=self.tarball.sha256,
            configure_args=toolchain.configure_args,
            env=toolchain.env,
        )

    def build(self, target: TargetTriple) -> TargetBuild:
        layout = self.context.layout
        logger = self.context.logger
        source_dir = layout.source_dir(target)
        install_dir = layout.install_dir(target)
        toolchain = self.toolchain(target)
        stamp = self.stamp(target, toolchain)
        stamps = StampStore(layout.stamps_dir)
        states = [TargetState.PENDING]

        if self.context.config.skip_existing and install_dir.exists() and source_dir.exists():
            logger.log(
                operation="build",
                message=f"Skipping building of target {target} because {install_dir} exists",
                target=str(target),
                stage=TargetState.DONE,
            )
            if stamps.matches(stamp) is False:
                logger.advise(
                    StaleArtifactWarning,
                    f"Reusing install tree of {target} built from different inputs",
                    operation="build",
                    target=str(target),
                    stage=TargetState.DONE,
                    extra={"install_dir": str(install_dir)},
                )
            artifact = collect_artifact(target, install_dir, logger=logger)
            states.append(TargetState.DONE)
            return TargetBuild(artifact=artifact, states=tuple(states), skipped=True)

        StageStamps(layout.stage_stamps_dir).discard(merge_stage(target.group), PACKAGE_STAGE)
        source_root = self.tarball.extract(source_dir)
        self._enter(target, states, TargetState.SOURCE_READY, f"Sources ready in {source_root}")

        patches = PatchSet.for_target(
            target,
            header_namespace=self.dependencies.header_namespace(target),
            upstream_namespace=self.context.config.dependency_header_namespace,
        )
        if not apply_patches(source_root, patches):
            logger.log(
                operation="build",
                message="Sources already patched",
                target=str(target),
                stage=TargetState.PATCHED,
            )
        self._enter(target, states, TargetState.PATCHED, "Sources patched")

        shutil.rmtree(install_dir, ignore_errors=True)
        self._run(
            target,
            source_root,
            toolchain,
            "configure",
            "sh",
            "./configure",
            *toolchain.configure_args,
        )
        self._enter(target, states, TargetState.CONFIGURED, "Configured")

        self._run(target, source_root, toolchain, "depend", "make", "depend")
        self._run(target, source_root, toolchain, "build", "make", f"-j{self.context.jobs}")
        self._enter(target, states, TargetState.BUILT, "Built")

        self._run(target, source_root, toolchain, "install", "make", "install")
        stamps.save(stamp)
        self._enter(target, states, TargetState.INSTALLED, f"Installed in {install_dir}")

        artifact = collect_artifact(target, install_dir, logger=logger)
        self._enter(target, states, TargetState.COLLECTED, "Artifacts collected")
        states.append(TargetState.DONE)
        return TargetBuild(artifact=artifact, states=tuple(states))

    def _run(
        self,
        target: TargetTriple,
        cwd: Path,
        toolchain: Toolchain,
        stage: str,
        *argv: str,
    ) -> str:
        logger = self.context.logger
        logger.log(
            operation="build",
            message=f"Running {' '.join(argv)}",
            target=str(target),
            stage=stage,
        )
        return self.context.runner.run(
            toolchain.xcrun(*argv),
            cwd=cwd,
            env=toolchain.env,
            observer=logger.output_observer(target=str(target), stage=stage),
        )

    def _enter(
        self,
        target: TargetTriple,
        states: list[TargetState],
        state: TargetState,
        message: str,
    ) -> None:
        states.append(state)
        self.context.logger.log(operation="build", message=message, target=str(target), stage=state)


__all__ = ["TargetBuilder"]
