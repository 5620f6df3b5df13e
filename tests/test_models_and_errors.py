import pytest

from xcfbuild.errors import (
    ConfigurationError,
    ConsistencyError,
    ErrorCode,
    IntegrityError,
    InvalidIdentifier,
    MergeSetMismatch,
    ToolchainError,
    UnsupportedManifestEntry,
)
from xcfbuild.models import PlatformGroup, TargetTriple, validate_identifier


def test_target_triple_parses_and_derives_names() -> None:
    target = TargetTriple.parse("iOS-iOS_Simulator-arm64")

    assert target == TargetTriple(sdk="iOS", platform="iOS_Simulator", arch="arm64")
    assert target.dir_name == "iOS-iOS_Simulator-arm64"
    assert str(target) == "iOS-iOS_Simulator-arm64"
    assert target.legacy_platform_name == "iPhoneSimulator"
    assert target.platform_version_name == "ios-simulator"
    assert target.host_triple == "aarch64-apple-darwin"
    assert target.group == PlatformGroup(sdk="iOS", platform="iOS_Simulator")
    assert target.group.dir_name == "iOS-iOS_Simulator"


def test_mac_catalyst_target_uses_macos_sdk_names() -> None:
    target = TargetTriple.parse("iOS-macOS-x86_64")

    assert target.legacy_platform_name == "MacOSX"
    assert target.platform_version_name == "mac-catalyst"
    assert target.group.is_mac_catalyst is True
    assert target.is_native_macos is False
    assert TargetTriple.parse("macOS-macOS-arm64").is_native_macos is True


def test_unknown_platforms_fall_back_to_derived_names() -> None:
    target = TargetTriple(sdk="xrOS", platform="xrOS_Simulator", arch="arm64_32")

    assert target.legacy_platform_name == "xrOSSimulator"
    assert target.platform_version_name == "xros-simulator"
    assert target.host_triple == "arm-apple-darwin"
    assert TargetTriple(sdk="macOS", platform="macOS", arch="riscv").host_triple == (
        "riscv-apple-darwin"
    )


@pytest.mark.parametrize(
    "value",
    ["iOS-iOS", "iOS-iOS-arm64-extra", "iOS--arm64", "iOS-iOS/x-arm64", ""],
)
def test_malformed_targets_are_configuration_errors(value: str) -> None:
    with pytest.raises(ConfigurationError):
        TargetTriple.parse(value)


def test_identifier_charset_is_enforced() -> None:
    assert validate_identifier("COpenLDAP_2") == "COpenLDAP_2"
    with pytest.raises(InvalidIdentifier) as excinfo:
        validate_identifier("COpen.LDAP", kind="product name")

    assert isinstance(excinfo.value, ConfigurationError)
    assert excinfo.value.context["kind"] == "product name"
    with pytest.raises(InvalidIdentifier):
        TargetTriple(sdk="iOS", platform="iOS Simulator", arch="arm64")


def test_targets_sort_and_hash_consistently() -> None:
    targets = {TargetTriple.parse("macOS-macOS-x86_64"), TargetTriple.parse("macOS-macOS-arm64")}

    assert sorted(targets)[0].arch == "arm64"
    assert TargetTriple.parse("macOS-macOS-arm64") in targets


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ConfigurationError("bad input"),
        IntegrityError("hash mismatch"),
        ToolchainError("make failed"),
        ConsistencyError("bad manifest"),
    ]
    codes = [error.code for error in errors]

    assert codes == [
        ErrorCode.CONFIGURATION,
        ErrorCode.INTEGRITY,
        ErrorCode.TOOLCHAIN,
        ErrorCode.CONSISTENCY,
    ]
    assert isinstance(MergeSetMismatch("x"), ConsistencyError)
    assert UnsupportedManifestEntry("x").code == "E_CONSISTENCY"


def test_error_payload_contains_hint_and_context() -> None:
    error = IntegrityError(
        "Downloaded content hash mismatch.",
        hint="Check the checksum.",
        context={"url": "https://example.invalid/a.tgz"},
    )
    payload = error.to_dict()

    assert payload["code"] == "E_INTEGRITY"
    assert payload["hint"] == "Check the checksum."
    assert payload["context"] == {"url": "https://example.invalid/a.tgz"}
    assert "Hint: Check the checksum." in str(error)


def test_toolchain_error_keeps_full_output_and_tail_in_context() -> None:
    output = "x" * 5000 + "the end\n"
    error = ToolchainError("make failed", argv=("xcrun", "make"), returncode=2, output=output)

    assert error.output == output
    assert error.argv == ("xcrun", "make")
    assert error.returncode == 2
    assert error.context["command"] == "xcrun make"
    assert error.context["returncode"] == "2"
    assert error.context["output"].endswith("the end\n")
    assert len(error.context["output"]) == 2000
