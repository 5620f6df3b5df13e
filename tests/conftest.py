"""Shared test fixtures.

``FakeToolchain`` stands in for xcrun and the Apple command line tools.
Archives and dynamic libraries it produces are JSON documents mapping each
architecture slice to its members, so fusion, thinning, extraction and
linking can be checked without Xcode.
"""

from __future__ import annotations

import json
import tarfile
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from xcfbuild.config import BuildConfig
from xcfbuild.context import BuildContext
from xcfbuild.errors import ToolchainError
from xcfbuild.manifest import BundleManifest, ExternalManifestEntry, write_manifest
from xcfbuild.observability import OutputObserver, StructuredLogger

DEVELOPER_DIR = Path("/Applications/Xcode.app/Contents/Developer")
LIBRARY_VERSION = "2.5.5"

DEFAULT_LIBRARIES: dict[str, tuple[str, ...]] = {
    "libldap.a": ("bind.o", "search.o", "util.o"),
    "liblber.a": ("decode.o", "encode.o", "util.o"),
}

CONFIGURE_SCRIPT = """#!/bin/sh
if test "$cross_compiling" = yes; then :
  { { $as_echo "$as_me:${as_lineno-$LINENO}: error: in \\`$ac_pwd':" >&5
as_fn_error $? "cannot run test program while cross compiling
See \\`config.log' for more details" "$LINENO" 5; }
fi
"""

LIBLUTIL_MAKEFILE = """SRCS = base64.c entropy.c sasl.c signal.c hash.c passfile.c \\
\tmd5.c passwd.c sha1.c getpass.c lockf.c utils.c uuid.c sockpair.c \\
\tmeter.c detach.c
OBJS = base64.o entropy.o sasl.o signal.o hash.o passfile.o \\
\tmd5.o passwd.o sha1.o getpass.o lockf.o utils.o uuid.o sockpair.o \\
\tmeter.o detach.o
"""

TLS_SOURCE = """#include "portable.h"
#include <openssl/ssl.h>
#include "openssl/err.h"
"""


def read_fake(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def write_fake(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def fake_archive(arch: str, library: str, members: Sequence[str]) -> dict[str, Any]:
    return {
        "format": "archive",
        "slices": {arch: {name: f"{library}:{name}:{arch}" for name in members}},
    }


@dataclass
class FakeToolchain:
    """In-process implementation of the tool runner protocol."""

    libraries: Mapping[str, Sequence[str]] = field(default_factory=lambda: dict(DEFAULT_LIBRARIES))
    divergent_headers: frozenset[str] = frozenset()
    missing_libraries: Mapping[str, frozenset[str]] = field(default_factory=dict)
    fail_when: Callable[[tuple[str, ...]], bool] | None = None
    calls: list[tuple[tuple[str, ...], Path, dict[str, str]]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        observer: OutputObserver | None = None,
    ) -> str:
        command = tuple(str(part) for part in argv)
        with self._lock:
            self.calls.append((command, Path(cwd), dict(env or {})))
        if self.fail_when is not None and self.fail_when(command):
            raise ToolchainError("fake tool failed", argv=command, returncode=2, output="boom\n")

        if command == ("xcode-select", "-print-path"):
            return f"{DEVELOPER_DIR}\n"
        if command[0] != "xcrun":
            raise ToolchainError("not run through xcrun", argv=command)

        tool, args = command[1], list(command[2:])
        handler = getattr(self, f"_{tool.replace('_', '')}", None)
        if handler is None:
            raise ToolchainError(f"unknown tool {tool}", argv=command)
        output = handler(args, Path(cwd), dict(env or {}))
        if observer is not None:
            for line in output.splitlines(keepends=True):
                observer(line)
        return output

    def commands(self, tool: str) -> list[tuple[str, ...]]:
        return [call[0] for call in self.calls if len(call[0]) > 1 and call[0][1] == tool]

    # ── autotools ───────────────────────────────────────────────────

    def _sh(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        assert args[0] == "./configure"
        prefix = next(arg.split("=", 1)[1] for arg in args if arg.startswith("--prefix="))
        cflags = env["CFLAGS"].split()
        arch = cflags[cflags.index("-arch") + 1]
        write_fake(cwd / "config.fake.json", {"prefix": prefix, "arch": arch, "args": args[1:]})
        return "checking for gcc... clang\nconfigure: creating ./config.status\n"

    def _make(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        config = read_fake(cwd / "config.fake.json")
        if args == ["depend"]:
            return "making dependencies\n"
        if args and args[0].startswith("-j"):
            (cwd / "built.marker").write_text(config["arch"], encoding="utf-8")
            return "making all\n"
        if args == ["install"]:
            assert (cwd / "built.marker").exists()
            self._install(Path(config["prefix"]), config["arch"])
            return "making install\n"
        raise ToolchainError("unknown make invocation", argv=("make", *args))

    def _install(self, prefix: Path, arch: str) -> None:
        include = prefix / "include"
        include.mkdir(parents=True, exist_ok=True)
        (include / "lber.h").write_text("#include <lber_types.h>\n", encoding="utf-8")
        (include / "lber_types.h").write_text("typedef int ber_int_t;\n", encoding="utf-8")
        features = "#define LDAP_API_FEATURE_X_OPENLDAP 1\n"
        if "ldap_features.h" in self.divergent_headers:
            features += f"/* generated for {arch} */\n"
        (include / "ldap_features.h").write_text(features, encoding="utf-8")
        (include / "ldap.h").write_text(
            '#include <lber.h>\n#include "ldap_features.h"\n#include <stdio.h>\n',
            encoding="utf-8",
        )

        missing = self.missing_libraries.get(arch, frozenset())
        for library, members in self.libraries.items():
            if library in missing:
                continue
            write_fake(prefix / "lib" / library, fake_archive(arch, library, members))
        (prefix / "lib" / "libldap.la").write_text("# libtool\n", encoding="utf-8")
        (prefix / "lib" / "pkgconfig").mkdir(parents=True, exist_ok=True)
        (prefix / "lib" / "pkgconfig" / "ldap.pc").write_text("Name: ldap\n", encoding="utf-8")
        (prefix / "bin").mkdir(parents=True, exist_ok=True)
        (prefix / "bin" / "ldapsearch").write_text("binary\n", encoding="utf-8")

    # ── binary tools ────────────────────────────────────────────────

    def _lipo(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        output = Path(args[args.index("-output") + 1])
        if args[0] == "-create":
            inputs = [Path(arg) for arg in args[1 : args.index("-output")]]
            fused: dict[str, Any] = {"format": read_fake(inputs[0])["format"], "slices": {}}
            for path in inputs:
                for arch, content in read_fake(path)["slices"].items():
                    if arch in fused["slices"]:
                        raise ToolchainError("duplicate architecture", argv=("lipo", *args))
                    fused["slices"][arch] = content
            write_fake(output, fused)
            return ""
        source = read_fake(Path(args[0]))
        arch = args[args.index("-thin") + 1]
        if len(source["slices"]) < 2:
            raise ToolchainError("input file must be a fat file", argv=("lipo", *args))
        write_fake(output, {"format": source["format"], "slices": {arch: source["slices"][arch]}})
        return ""

    def _ar(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        assert args[0] == "-x"
        slices = read_fake(Path(args[1]))["slices"]
        if len(slices) != 1:
            raise ToolchainError("fat archive", argv=("ar", *args))
        (members,) = slices.values()
        (cwd / "__.SYMDEF SORTED").write_text("symbols", encoding="utf-8")
        for name, content in members.items():
            (cwd / name).write_text(content, encoding="utf-8")
        return ""

    def _libtool(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        assert args[0] == "-static"
        output = Path(args[args.index("-o") + 1])
        inputs = [Path(arg) for arg in args[args.index("-o") + 2 :]]
        combined: dict[str, dict[str, str]] = {}
        for path in inputs:
            for arch, members in read_fake(path)["slices"].items():
                combined.setdefault(arch, {}).update(members)
        write_fake(output, {"format": "archive", "slices": combined})
        return ""

    def _clang(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        assert args[0] == "-dynamiclib"
        arch = args[args.index("-arch") + 1]
        output = Path(args[args.index("-o") + 1])
        objects = {
            Path(arg).name: Path(arg).read_text(encoding="utf-8")
            for arg in args
            if arg.endswith(".o")
        }
        write_fake(
            output,
            {
                "format": "dylib",
                "slices": {
                    arch: {
                        "install_name": args[args.index("-install_name") + 1],
                        "libraries": [arg for arg in args if arg.startswith(("-l", "-L"))],
                        "objects": objects,
                    }
                },
            },
        )
        return ""

    def _installnametool(self, args: list[str], cwd: Path, env: dict[str, str]) -> str:
        assert args[0] == "-id"
        path = Path(args[2])
        payload = read_fake(path)
        payload["id"] = args[1]
        write_fake(path, payload)
        return ""


def make_source_tarball(directory: Path, version: str = LIBRARY_VERSION) -> Path:
    root = directory / f"openldap-{version}"
    (root / "libraries" / "liblutil").mkdir(parents=True)
    (root / "libraries" / "libldap").mkdir(parents=True)
    (root / "configure").write_text(CONFIGURE_SCRIPT, encoding="utf-8")
    (root / "libraries" / "liblutil" / "Makefile.in").write_text(LIBLUTIL_MAKEFILE, encoding="utf-8")
    (root / "libraries" / "libldap" / "tls_o.c").write_text(TLS_SOURCE, encoding="utf-8")
    tarball = directory / f"openldap-{version}.tgz"
    with tarfile.open(tarball, "w:gz") as tar:
        tar.add(root, arcname=root.name)
    return tarball


def make_dependency_bundle(
    directory: Path,
    entries: Sequence[tuple[str, str | None, Sequence[str]]],
    *,
    name: str = "COpenSSL-static.xcframework",
    library: str = "libCOpenSSL.a",
    namespaced_headers: bool = True,
) -> Path:
    """Create a static bundle with one sub-bundle per (platform, variant, archs) entry."""
    bundle = directory / name
    libraries = []
    for platform, variant, archs in entries:
        identifier = f"{platform}-{'_'.join(sorted(archs))}" + (f"-{variant}" if variant else "")
        subbundle = bundle / identifier
        headers = subbundle / "Headers" / ("openssl" if namespaced_headers else "")
        headers.mkdir(parents=True, exist_ok=True)
        (headers / "ssl.h").write_text("/* ssl */\n", encoding="utf-8")
        (subbundle / library).write_text("archive\n", encoding="utf-8")
        libraries.append(
            ExternalManifestEntry(
                identifier=identifier,
                library_path=library,
                architectures=tuple(archs),
                platform=platform,
                platform_variant=variant,
                headers_path="Headers",
            )
        )
    write_manifest(BundleManifest(libraries=tuple(libraries)), bundle)
    return bundle


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def source_tarball(tmp_path: Path) -> Path:
    return make_source_tarball(tmp_path / "upstream")


@pytest.fixture
def dependency_bundle(tmp_path: Path) -> Path:
    return make_dependency_bundle(
        tmp_path / "deps",
        [
            ("macos", None, ("arm64", "x86_64")),
            ("ios", None, ("arm64",)),
            ("ios", "simulator", ("arm64", "x86_64")),
            ("ios", "maccatalyst", ("arm64", "x86_64")),
        ],
    )


@pytest.fixture
def make_config(
    tmp_path: Path,
    source_tarball: Path,
    dependency_bundle: Path,
) -> Callable[..., BuildConfig]:
    def factory(**overrides: Any) -> BuildConfig:
        values: dict[str, Any] = {
            "work_dir": tmp_path / "work",
            "result_dir": tmp_path / "result",
            "library_version": LIBRARY_VERSION,
            "source_url_template": f"{source_tarball.parent.as_uri()}/openldap-{{{{ version }}}}.tgz",
            "dependency_url": dependency_bundle.as_uri(),
            "targets": ("macOS-macOS-arm64", "macOS-macOS-x86_64", "iOS-iOS-arm64"),
            "jobs": 2,
        }
        values.update(overrides)
        return BuildConfig(**values)

    return factory


@pytest.fixture
def make_context(
    make_config: Callable[..., BuildConfig],
    fake_toolchain: FakeToolchain,
) -> Callable[..., BuildContext]:
    def factory(runner: FakeToolchain | None = None, **overrides: Any) -> BuildContext:
        return BuildContext.create(
            make_config(**overrides),
            runner=runner if runner is not None else fake_toolchain,
            logger=StructuredLogger(),
            developer_dir_path=DEVELOPER_DIR,
        )

    return factory
