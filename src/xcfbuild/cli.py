"""Command line entry point.

Usage:
    xcfbuild --dependency-url https://.../COpenSSL-static.xcframework.zip
    xcfbuild --target iOS-iOS-arm64 --target iOS-iOS_Simulator-arm64 --skip-existing
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

import httpx

from .config import DEFAULT_MIN_SDK_VERSIONS, DEFAULT_TARGETS, BuildConfig
from .context import BuildContext
from .errors import ConfigurationError, XcfBuildError
from .observability import StructuredLogger
from .pipeline import run_pipeline
from .process import ToolRunner


def build_parser() -> argparse.ArgumentParser:
    defaults = BuildConfig()
    parser = argparse.ArgumentParser(
        prog="xcfbuild",
        description="Cross-build OpenLDAP for Apple platforms and package it as XCFrameworks",
    )
    parser.add_argument("--work-dir", type=Path, default=defaults.work_dir, help="Work directory")
    parser.add_argument("--result-dir", type=Path, help="Where results go (default: work dir)")
    parser.add_argument("--product-name", default=defaults.product_name, help="Product name")
    parser.add_argument("--version", default=defaults.library_version, help="Library version")
    parser.add_argument("--source-url-template", default=defaults.source_url_template)
    parser.add_argument("--source-sha256", help="Expected SHA-256 of the source tarball")
    parser.add_argument("--dependency-url", help="URL of the OpenSSL bundle (zip or directory)")
    parser.add_argument("--dependency-sha256", help="Expected SHA-256 of the dependency archive")
    parser.add_argument("--release-url-template", default=defaults.release_url_template)
    parser.add_argument(
        "--target",
        action="append",
        dest="targets",
        metavar="SDK-PLATFORM-ARCH",
        help="Target to build; repeat for several (default: every supported target)",
    )
    parser.add_argument(
        "--sdk-version",
        action="append",
        default=[],
        metavar="PLATFORM=VERSION",
        help="SDK version to build against for a platform",
    )
    parser.add_argument(
        "--min-sdk-version",
        action="append",
        default=[],
        metavar="SDK=VERSION",
        help="Deployment target for an SDK (macCatalyst for Mac Catalyst)",
    )
    parser.add_argument("--skip-existing", action="store_true", help="Reuse existing outputs")
    parser.add_argument("--clean", action="store_true", help="Remove previous build outputs first")
    parser.add_argument("--disable-bitcode", action="store_true", help="Do not embed bitcode")
    parser.add_argument("--jobs", type=int, help="Parallel builds (default: CPU count)")
    parser.add_argument("--log-json", type=Path, help="Write the structured log as JSON lines")
    parser.add_argument("--verbose", action="store_true", help="Echo tool output")
    return parser


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    min_sdk_versions = dict(DEFAULT_MIN_SDK_VERSIONS)
    min_sdk_versions.update(_key_values(args.min_sdk_version, option="--min-sdk-version"))
    return BuildConfig(
        work_dir=args.work_dir,
        result_dir=args.result_dir,
        product_name=args.product_name,
        library_version=args.version,
        source_url_template=args.source_url_template,
        expected_source_sha256=args.source_sha256,
        dependency_url=args.dependency_url,
        expected_dependency_sha256=args.dependency_sha256,
        release_url_template=args.release_url_template,
        targets=tuple(args.targets) if args.targets else DEFAULT_TARGETS,
        sdk_versions=_key_values(args.sdk_version, option="--sdk-version"),
        min_sdk_versions=min_sdk_versions,
        disable_bitcode=args.disable_bitcode,
        skip_existing=args.skip_existing,
        clean=args.clean,
        jobs=args.jobs,
    )


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: ToolRunner | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    sink = _open_sink(args.log_json)
    logger = StructuredLogger(
        stream=sys.stderr,
        echo_level="debug" if args.verbose else "info",
        sink=sink,
    )
    try:
        config = config_from_args(args)
        context = BuildContext.create(config, runner=runner, logger=logger)
        result = run_pipeline(context, transport=transport)
    except XcfBuildError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        if sink is not None:
            sink.close()

    print(result.package.static_archive)
    print(result.package.dynamic_archive)
    print(result.package.package_descriptor)
    return 0


def _open_sink(path: Path | None) -> TextIO | None:
    if path is None:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8")


def _key_values(items: Sequence[str], *, option: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key or not value:
            raise ConfigurationError(
                f"Invalid {option} value {item!r}.",
                hint="Use KEY=VALUE.",
                context={"option": option},
            )
        values[key] = value
    return values


__all__ = ["build_parser", "config_from_args", "main"]
