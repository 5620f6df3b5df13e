"""Bundle manifest (``Info.plist``) parser and serializer."""

from __future__ import annotations

import plistlib
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from xcfbuild.errors import InvalidManifestEntry, MalformedManifest, UnsupportedManifestVersion
from xcfbuild.manifest.model import (
    FORMAT_VERSION,
    PACKAGE_TYPE,
    BundleManifest,
    ExternalManifestEntry,
)
from xcfbuild.models import IDENTIFIER_PATTERN

MANIFEST_NAME = "Info.plist"


def serialize_manifest(manifest: BundleManifest) -> bytes:
    payload = {
        "AvailableLibraries": [_entry_payload(entry) for entry in manifest.libraries],
        "CFBundlePackageType": manifest.package_type,
        "XCFrameworkFormatVersion": manifest.format_version,
    }
    return plistlib.dumps(payload, fmt=plistlib.FMT_XML, sort_keys=True)


def parse_manifest(raw: bytes) -> BundleManifest:
    try:
        payload = plistlib.loads(raw)
    except (plistlib.InvalidFileException, ExpatError, ValueError) as exc:
        raise MalformedManifest("Bundle manifest is not a property list.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise MalformedManifest("Bundle manifest is not a dictionary.")

    package_type = payload.get("CFBundlePackageType")
    format_version = payload.get("XCFrameworkFormatVersion")
    if package_type != PACKAGE_TYPE or format_version != FORMAT_VERSION:
        raise UnsupportedManifestVersion(
            "Unsupported bundle manifest.",
            hint=f"Expected package type {PACKAGE_TYPE} and format version {FORMAT_VERSION}.",
            context={"package_type": str(package_type), "format_version": str(format_version)},
        )

    libraries_raw = payload.get("AvailableLibraries")
    if not isinstance(libraries_raw, list):
        raise InvalidManifestEntry("Invalid bundle manifest `AvailableLibraries` value.")
    libraries = tuple(_parse_entry(item, index) for index, item in enumerate(libraries_raw))
    return BundleManifest(
        libraries=libraries,
        package_type=package_type,
        format_version=format_version,
    )


def read_manifest(bundle_dir: str | Path) -> BundleManifest:
    manifest_path = Path(bundle_dir) / MANIFEST_NAME
    try:
        raw = manifest_path.read_bytes()
    except FileNotFoundError as exc:
        raise MalformedManifest(
            "Bundle manifest does not exist.",
            context={"path": str(manifest_path)},
        ) from exc
    return parse_manifest(raw)


def write_manifest(manifest: BundleManifest, bundle_dir: str | Path) -> Path:
    manifest_path = Path(bundle_dir) / MANIFEST_NAME
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest_path.write_bytes(serialize_manifest(manifest))
    return manifest_path


def _entry_payload(entry: ExternalManifestEntry) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "LibraryIdentifier": entry.identifier,
        "LibraryPath": entry.library_path,
        "SupportedArchitectures": list(entry.architectures),
        "SupportedPlatform": entry.platform,
    }
    if entry.platform_variant is not None:
        payload["SupportedPlatformVariant"] = entry.platform_variant
    if entry.headers_path is not None:
        payload["HeadersPath"] = entry.headers_path
    return payload


def _parse_entry(item: Any, index: int) -> ExternalManifestEntry:
    if not isinstance(item, dict):
        raise InvalidManifestEntry(
            "Invalid library entry in bundle manifest.",
            context={"index": str(index)},
        )
    return ExternalManifestEntry(
        identifier=_required_str(item, "LibraryIdentifier", index),
        library_path=_required_str(item, "LibraryPath", index),
        architectures=_required_identifier_list(item, "SupportedArchitectures", index),
        platform=_required_str(item, "SupportedPlatform", index),
        platform_variant=_optional_str(item, "SupportedPlatformVariant", index),
        headers_path=_optional_str(item, "HeadersPath", index),
    )


def _required_str(payload: dict[str, Any], key: str, index: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidManifestEntry(
            f"Invalid bundle manifest `{key}` value.",
            context={"index": str(index), "key": key},
        )
    return value


def _optional_str(payload: dict[str, Any], key: str, index: int) -> str | None:
    if key not in payload:
        return None
    return _required_str(payload, key, index)


def _required_str_list(payload: dict[str, Any], key: str, index: int) -> tuple[str, ...]:
    value = payload.get(key)
    if (
        not isinstance(value, list)
        or not value
        or not all(isinstance(item, str) and item for item in value)
    ):
        raise InvalidManifestEntry(
            f"Invalid bundle manifest `{key}` value.",
            context={"index": str(index), "key": key},
        )
    return tuple(value)


def _required_identifier_list(payload: dict[str, Any], key: str, index: int) -> tuple[str, ...]:
    values = _required_str_list(payload, key, index)
    invalid = [value for value in values if not IDENTIFIER_PATTERN.fullmatch(value)]
    if invalid:
        raise InvalidManifestEntry(
            f"Invalid bundle manifest `{key}` value.",
            hint="Architecture names use only ASCII letters, digits and underscore.",
            context={"index": str(index), "key": key, "value": ", ".join(invalid)},
        )
    return values


__all__ = [
    "MANIFEST_NAME",
    "parse_manifest",
    "read_manifest",
    "serialize_manifest",
    "write_manifest",
]
