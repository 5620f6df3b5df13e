"""Build configuration and URL template helpers."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .errors import ConfigurationError
from .models import TargetTriple, validate_identifier

ALLOWED_URL_SCHEMES = ("http", "https", "file")

DEFAULT_TARGETS = (
    "macOS-macOS-x86_64",
    "macOS-macOS-arm64",
    "iOS-iOS-arm64",
    "iOS-iOS_Simulator-x86_64",
    "iOS-iOS_Simulator-arm64",
    "iOS-macOS-x86_64",
    "iOS-macOS-arm64",
    "tvOS-tvOS-arm64",
    "tvOS-tvOS_Simulator-x86_64",
    "tvOS-tvOS_Simulator-arm64",
    "watchOS-watchOS-armv7k",
    "watchOS-watchOS-arm64_32",
    "watchOS-watchOS_Simulator-x86_64",
    "watchOS-watchOS_Simulator-arm64",
)

DEFAULT_MIN_SDK_VERSIONS = {
    "macOS": "10.13",
    "iOS": "12.0",
    "tvOS": "12.0",
    "watchOS": "4.0",
}

# Mac Catalyst needs a newer deployment target than plain iOS.
MAC_CATALYST_MIN_VERSION = "13.1"

DEFAULT_CONFIGURE_ARGS = (
    "--disable-slapd",
    "--without-cyrus-sasl",
    "--with-tls=openssl",
    "--with-yielding_select=yes",
)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def expand_template(template: str, **values: str) -> str:
    """Replace ``{{ name }}`` placeholders; unknown names are an error."""

    def substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            raise ConfigurationError(
                f"Unknown placeholder `{{{{ {key} }}}}` in template.",
                hint=f"Supported placeholders: {', '.join(sorted(values))}.",
                context={"template": template},
            )
        return values[key]

    return _PLACEHOLDER.sub(substitute, template)


def validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ConfigurationError(
            f"Unsupported URL scheme in {url!r}.",
            hint="Use an http, https or file URL.",
            context={"url": url},
        )
    if not parsed.path or parsed.path.endswith("/"):
        raise ConfigurationError(
            f"URL {url!r} does not name a file.",
            context={"url": url},
        )
    return url


@dataclass(frozen=True, slots=True)
class BuildConfig:
    work_dir: Path = field(default_factory=lambda: Path("openldap-workdir"))
    result_dir: Path | None = None
    product_name: str = "COpenLDAP"
    library_version: str = "2.5.5"
    source_url_template: str = (
        "https://www.openldap.org/software/download/OpenLDAP/openldap-release/"
        "openldap-{{ version }}.tgz"
    )
    expected_source_sha256: str | None = None
    dependency_url: str | None = None
    expected_dependency_sha256: str | None = None
    release_url_template: str = (
        "https://github.com/xcode-actions/COpenLDAP/releases/download/{{ version }}"
    )
    targets: tuple[str, ...] = DEFAULT_TARGETS
    sdk_versions: Mapping[str, str] = field(default_factory=dict)
    min_sdk_versions: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_MIN_SDK_VERSIONS)
    )
    configure_args: tuple[str, ...] = DEFAULT_CONFIGURE_ARGS
    dependency_header_namespace: str = "openssl"
    bundle_identifier_prefix: str = "com.xcode-actions"
    disable_bitcode: bool = False
    skip_existing: bool = False
    clean: bool = False
    jobs: int | None = None

    def __post_init__(self) -> None:
        validate_identifier(self.product_name, kind="product name")
        if self.jobs is not None and self.jobs < 1:
            raise ConfigurationError("jobs must be at least 1.", context={"jobs": str(self.jobs)})

    @property
    def result_root(self) -> Path:
        return self.result_dir if self.result_dir is not None else self.work_dir

    @property
    def source_url(self) -> str:
        return validate_url(expand_template(self.source_url_template, version=self.library_version))

    @property
    def release_url(self) -> str:
        return expand_template(self.release_url_template, version=self.library_version).rstrip("/")

    def parsed_targets(self) -> tuple[TargetTriple, ...]:
        if not self.targets:
            raise ConfigurationError("At least one target is required.")
        parsed = tuple(TargetTriple.parse(value) for value in self.targets)
        if len(set(parsed)) != len(parsed):
            raise ConfigurationError(
                "The target list contains duplicates.",
                context={"targets": ", ".join(self.targets)},
            )
        return parsed

    def sdk_version(self, target: TargetTriple) -> str:
        """SDK version suffix of the sysroot, keyed by platform; empty selects the default SDK."""
        return self.sdk_versions.get(target.platform, "")

    def min_sdk_version(self, target: TargetTriple) -> str | None:
        if target.group.is_mac_catalyst:
            return self.min_sdk_versions.get("macCatalyst", MAC_CATALYST_MIN_VERSION)
        return self.min_sdk_versions.get(target.sdk)


__all__ = [
    "ALLOWED_URL_SCHEMES",
    "BuildConfig",
    "DEFAULT_TARGETS",
    "expand_template",
    "validate_url",
]
