"""Multi-platform bundle manifests: model, codec and dependency resolution."""

from .io import MANIFEST_NAME, parse_manifest, read_manifest, serialize_manifest, write_manifest
from .model import BundleManifest, ExternalManifestEntry
from .platforms import bundle_platform, group_for, library_identifier
from .resolve import DependencyMap, load_dependency_map, resolve_manifest

__all__ = [
    "BundleManifest",
    "DependencyMap",
    "ExternalManifestEntry",
    "MANIFEST_NAME",
    "bundle_platform",
    "group_for",
    "library_identifier",
    "load_dependency_map",
    "parse_manifest",
    "read_manifest",
    "resolve_manifest",
    "serialize_manifest",
    "write_manifest",
]
