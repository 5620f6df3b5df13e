"""End-to-end build: fetch, resolve, build every target, merge, package.

Merges start only once every target build has finished and the assembler
only once every platform group has been merged. The first failing target
cancels the builds that have not started yet and aborts the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import httpx

from .builders import TargetBuilder
from .context import BuildContext
from .errors import ConfigurationError, XcfBuildError
from .fetch import DependencySource, SourceTarball, fetch_tarball
from .fetch.http import DEFAULT_TIMEOUT
from .manifest import DependencyMap, load_dependency_map
from .merge import MergeEngine
from .models import MergedPlatformArtifact, TargetBuild, TargetTriple
from .package import PackageAssembler, PackageResult


@dataclass(frozen=True, slots=True)
class PipelineResult:
    builds: tuple[TargetBuild, ...]
    merged: tuple[MergedPlatformArtifact, ...]
    package: PackageResult
    dependency_bundle: Path


async def fetch_inputs(
    context: BuildContext,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[SourceTarball, Path]:
    """Download the source tarball and the dependency bundle concurrently."""
    config = context.config
    if config.dependency_url is None:
        raise ConfigurationError(
            "No dependency bundle URL configured.",
            hint="Pass --dependency-url with the URL of the OpenSSL bundle.",
        )
    dependency = DependencySource(
        url=config.dependency_url,
        expected_sha256=config.expected_dependency_sha256,
        skip_existing=config.skip_existing,
    )
    layout = context.layout
    async with httpx.AsyncClient(
        transport=transport,
        timeout=DEFAULT_TIMEOUT,
        follow_redirects=True,
    ) as client:
        tarball, bundle = await asyncio.gather(
            fetch_tarball(
                config.source_url,
                layout.downloads_dir,
                sha256=config.expected_source_sha256,
                logger=context.logger,
                client=client,
            ),
            dependency.fetch(
                layout.work_dir,
                downloads_dir=layout.downloads_dir,
                logger=context.logger,
                client=client,
            ),
        )
    return tarball, bundle


def check_dependency_coverage(dependencies: DependencyMap, targets: Sequence[TargetTriple]) -> None:
    for target in targets:
        dependencies.path_for(target)


def build_targets(
    context: BuildContext,
    builder: TargetBuilder,
    targets: Sequence[TargetTriple],
) -> tuple[TargetBuild, ...]:
    results: dict[TargetTriple, TargetBuild] = {}
    with ThreadPoolExecutor(
        max_workers=max(1, min(context.jobs, len(targets))),
        thread_name_prefix="xcfbuild",
    ) as pool:
        futures: dict[Future[TargetBuild], TargetTriple] = {
            pool.submit(builder.build, target): target for target in targets
        }
        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return tuple(results[target] for target in targets)


def run_pipeline(
    context: BuildContext,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PipelineResult:
    config = context.config
    layout = context.layout
    logger = context.logger
    targets = config.parsed_targets()

    try:
        if config.clean:
            logger.log(operation="pipeline", message=f"Cleaning {layout.build_dir}")
            layout.clean()
        layout.ensure()

        tarball, bundle = asyncio.run(fetch_inputs(context, transport=transport))
        dependencies = load_dependency_map(bundle)
        check_dependency_coverage(dependencies, targets)
        logger.log(
            operation="pipeline",
            message=f"Building {len(targets)} targets with {context.jobs} jobs",
        )

        builds = build_targets(
            context,
            TargetBuilder(context=context, tarball=tarball, dependencies=dependencies),
            targets,
        )
        merged = MergeEngine(context=context, dependencies=dependencies).merge_all(
            build.artifact for build in builds
        )
        package = PackageAssembler(context=context).assemble(merged)
    except XcfBuildError as exc:
        logger.log(operation="pipeline", message=str(exc), level="error", extra=exc.to_dict())
        raise

    logger.log(
        operation="pipeline",
        message=f"Created {package.static_archive.name} and {package.dynamic_archive.name}",
        extra={
            package.static_archive.name: package.static_checksum,
            package.dynamic_archive.name: package.dynamic_checksum,
        },
    )
    return PipelineResult(
        builds=builds,
        merged=merged,
        package=package,
        dependency_bundle=bundle,
    )


__all__ = [
    "PipelineResult",
    "build_targets",
    "check_dependency_coverage",
    "fetch_inputs",
    "run_pipeline",
]
