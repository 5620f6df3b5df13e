"""Resolution of a bundle manifest into a per-target lookup."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from xcfbuild.errors import (
    ConsistencyError,
    DuplicateTargetInManifest,
    EmptyManifest,
    InconsistentLibraryName,
    InvalidIdentifier,
    InvalidManifestEntry,
    UnsupportedManifestEntry,
)
from xcfbuild.manifest.io import read_manifest
from xcfbuild.manifest.model import BundleManifest, ExternalManifestEntry
from xcfbuild.manifest.platforms import group_for
from xcfbuild.models import TargetTriple

FRAMEWORK_SUFFIX = ".framework"


@dataclass(frozen=True, slots=True)
class DependencyMap:
    """Where each target's sub-bundle of a dependency lives."""

    library_name: str
    subbundles: Mapping[TargetTriple, Path]
    headers: Mapping[TargetTriple, Path | None]

    @property
    def is_framework(self) -> bool:
        return self.library_name.endswith(FRAMEWORK_SUFFIX)

    @property
    def module_name(self) -> str:
        """``libssl.a`` gives ``ssl``, ``COpenSSL.framework`` gives ``COpenSSL``."""
        stem = PurePosixPath(self.library_name).stem
        if not self.is_framework and stem.startswith("lib"):
            stem = stem[3:]
        return stem

    def path_for(self, target: TargetTriple) -> Path:
        try:
            return self.subbundles[target]
        except KeyError:
            raise ConsistencyError(
                f"Dependency has no sub-bundle for target {target}.",
                hint="Use a dependency bundle that covers every requested target.",
                context={"target": str(target), "library": self.library_name},
            ) from None

    def headers_dir(self, target: TargetTriple) -> Path | None:
        self.path_for(target)
        return self.headers.get(target)

    def header_namespace(self, target: TargetTriple) -> str:
        """Directory name the dependency's headers are included through.

        When the headers directory holds a single directory (``openssl/``) and
        no loose header, that directory is the namespace; otherwise headers sit
        directly in it and are reached through the module name. Module maps
        next to the directory are ignored.
        """
        headers_dir = self.headers_dir(target)
        if headers_dir is not None and headers_dir.is_dir():
            directories = sorted(child for child in headers_dir.iterdir() if child.is_dir())
            loose_headers = any(headers_dir.glob("*.h"))
            if len(directories) == 1 and not loose_headers:
                return directories[0].name
        return self.module_name

    def compiler_flags(self, target: TargetTriple) -> tuple[str, ...]:
        flags: list[str] = []
        if self.is_framework:
            flags.append(f"-F{self.path_for(target)}")
        headers_dir = self.headers_dir(target)
        if headers_dir is not None:
            flags.append(f"-I{headers_dir}")
        return tuple(flags)

    def linker_flags(self, target: TargetTriple) -> tuple[str, ...]:
        subbundle = self.path_for(target)
        if self.is_framework:
            return (f"-F{subbundle}", "-framework", self.module_name)
        return (f"-L{subbundle}", f"-l{self.module_name}")


def resolve_manifest(manifest: BundleManifest, bundle_dir: Path) -> DependencyMap:
    """Expand every (entry, architecture) pair into one target."""
    if not manifest.libraries:
        raise EmptyManifest(
            "Dependency bundle lists no libraries.",
            context={"bundle": str(bundle_dir)},
        )

    library_names = {entry.library_name for entry in manifest.libraries}
    if len(library_names) != 1:
        raise InconsistentLibraryName(
            "Dependency bundle entries disagree on the library name.",
            context={"bundle": str(bundle_dir), "names": ", ".join(sorted(library_names))},
        )

    subbundles: dict[TargetTriple, Path] = {}
    headers: dict[TargetTriple, Path | None] = {}
    for entry in manifest.libraries:
        group = group_for(entry.platform, entry.platform_variant)
        if group is None:
            raise UnsupportedManifestEntry(
                "Dependency bundle entry names an unsupported platform.",
                context={
                    "identifier": entry.identifier,
                    "platform": entry.platform,
                    "variant": entry.platform_variant or "",
                },
            )
        subbundle = bundle_dir / entry.identifier
        for arch in entry.architectures:
            try:
                target = TargetTriple(sdk=group.sdk, platform=group.platform, arch=arch)
            except InvalidIdentifier as exc:
                raise InvalidManifestEntry(
                    f"Dependency bundle entry lists an invalid architecture {arch!r}.",
                    context={"identifier": entry.identifier, "arch": arch},
                ) from exc
            if target in subbundles:
                raise DuplicateTargetInManifest(
                    f"Two dependency bundle entries provide target {target}.",
                    context={"target": str(target), "identifier": entry.identifier},
                )
            subbundles[target] = subbundle
            headers[target] = entry_headers_dir(entry, subbundle)

    return DependencyMap(library_name=library_names.pop(), subbundles=subbundles, headers=headers)


def entry_headers_dir(entry: ExternalManifestEntry, subbundle: Path) -> Path | None:
    if entry.headers_path is not None:
        return subbundle / entry.headers_path
    if entry.library_name.endswith(FRAMEWORK_SUFFIX):
        return subbundle / entry.library_path / "Headers"
    return None


def load_dependency_map(bundle_dir: str | Path) -> DependencyMap:
    bundle_path = Path(bundle_dir)
    return resolve_manifest(read_manifest(bundle_path), bundle_path)


__all__ = ["DependencyMap", "entry_headers_dir", "load_dependency_map", "resolve_manifest"]
