from pathlib import Path

import pytest

from xcfbuild.errors import InvalidIdentifier
from xcfbuild.layout import BuildLayout
from xcfbuild.models import PlatformGroup, TargetTriple


def _layout(tmp_path: Path) -> BuildLayout:
    return BuildLayout(
        work_dir=tmp_path / "work",
        result_dir=tmp_path / "out",
        product_name="COpenLDAP",
    )


def test_layout_stage_directories_follow_step_names(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    build = tmp_path / "work" / "build"

    assert layout.downloads_dir == tmp_path / "work" / "downloads"
    assert layout.sources_dir == build / "step1.sources-and-builds"
    assert layout.installs_dir == build / "step2.installs"
    assert layout.fat_archives_dir == build / "step3.intermediate-derivatives" / "fat-static-libs"
    assert layout.extracted_objects_dir == build / "step3.intermediate-derivatives" / "lib-objects"
    assert layout.derived_dylibs_dir == build / "step3.intermediate-derivatives" / "dylibs"
    assert layout.merged_headers_dir == build / "step4.final-derivatives" / "headers"
    assert layout.merged_libs_dir == build / "step4.final-derivatives" / "libs"
    assert layout.final_bundles_dir == build / "step5.final-bundles"


def test_layout_per_target_and_group_paths(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    target = TargetTriple.parse("iOS-iOS_Simulator-arm64")
    group = PlatformGroup(sdk="iOS", platform="iOS_Simulator")

    assert layout.source_dir(target) == layout.sources_dir / "iOS-iOS_Simulator-arm64"
    assert layout.install_dir(target) == layout.installs_dir / "iOS-iOS_Simulator-arm64"
    assert layout.fat_archives_for(group) == layout.fat_archives_dir / "iOS-iOS_Simulator"
    assert layout.objects_for(group, "arm64") == (
        layout.extracted_objects_dir / "iOS-iOS_Simulator" / "arm64"
    )
    assert layout.headers_for(group) == layout.merged_headers_dir / "iOS-iOS_Simulator"


def test_layout_result_paths(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    assert layout.static_library_name == "libCOpenLDAP.a"
    assert layout.static_bundle == tmp_path / "out" / "COpenLDAP-static.xcframework"
    assert layout.dynamic_bundle == tmp_path / "out" / "COpenLDAP-dynamic.xcframework"
    assert layout.static_archive.name == "COpenLDAP-static.xcframework.zip"
    assert layout.dynamic_archive.name == "COpenLDAP-dynamic.xcframework.zip"
    assert layout.package_descriptor == tmp_path / "out" / "Package.swift"


def test_ensure_is_idempotent_and_clean_removes_outputs(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    layout.ensure()
    layout.ensure()

    assert all(directory.is_dir() for directory in layout.stage_dirs())

    layout.static_bundle.mkdir()
    layout.static_archive.write_bytes(b"zip")
    layout.package_descriptor.write_text("// swift", encoding="utf-8")
    (layout.downloads_dir / "openldap.tgz").write_bytes(b"tgz")
    layout.clean()

    assert not layout.build_dir.exists()
    assert not layout.static_bundle.exists()
    assert not layout.static_archive.exists()
    assert not layout.package_descriptor.exists()
    assert (layout.downloads_dir / "openldap.tgz").exists()


def test_layout_rejects_invalid_product_name(tmp_path: Path) -> None:
    with pytest.raises(InvalidIdentifier):
        BuildLayout(work_dir=tmp_path, result_dir=tmp_path, product_name="../escape")


def test_discarding_a_group_leaves_other_groups_alone(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    layout.ensure()
    macos = PlatformGroup("macOS", "macOS")
    ios = PlatformGroup("iOS", "iOS")
    for group in (macos, ios):
        for path in layout.group_outputs(group):
            path.mkdir(parents=True)
            (path / "out").write_text("x", encoding="utf-8")
    layout.static_archive.write_bytes(b"zip")

    layout.discard(layout.group_outputs(macos))
    layout.discard(layout.package_outputs())

    assert not any(path.exists() for path in layout.group_outputs(macos))
    assert all(path.exists() for path in layout.group_outputs(ios))
    assert layout.stage_stamps_dir == tmp_path / "work" / "build" / "stamps" / "stages"
    assert not layout.static_archive.exists()
    assert layout.result_dir.is_dir()
