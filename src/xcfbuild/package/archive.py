"""Deterministic zip archives of bundle directories."""

from __future__ import annotations

import os
import stat
import zipfile
from pathlib import Path

from xcfbuild.fetch.http import file_sha256

# Earliest timestamp the zip format can store.
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
DIRECTORY_MODE = 0o40755
FILE_MODE = 0o100644
EXECUTABLE_MODE = 0o100755
EXCLUDED_NAMES = frozenset({".DS_Store"})


def write_deterministic_zip(source_dir: Path, archive: Path) -> Path:
    """Zip *source_dir* so that equal trees always give byte-identical archives.

    Entries are sorted and rooted at the directory's name; timestamps are
    fixed and permissions normalised to 0755 (directories, executables) or
    0644.
    """
    archive.parent.mkdir(parents=True, exist_ok=True)
    temp_path = archive.with_name(archive.name + ".part")
    root = source_dir.name
    entries = sorted(
        path
        for path in source_dir.rglob("*")
        if not any(part in EXCLUDED_NAMES for part in path.relative_to(source_dir).parts)
    )
    try:
        with zipfile.ZipFile(temp_path, "w") as zf:
            _write_entry(zf, f"{root}/", None, DIRECTORY_MODE)
            for path in entries:
                name = f"{root}/{path.relative_to(source_dir).as_posix()}"
                if path.is_dir():
                    _write_entry(zf, f"{name}/", None, DIRECTORY_MODE)
                else:
                    executable = bool(path.stat().st_mode & stat.S_IXUSR)
                    mode = EXECUTABLE_MODE if executable else FILE_MODE
                    _write_entry(zf, name, path.read_bytes(), mode)
        os.replace(temp_path, archive)
    finally:
        temp_path.unlink(missing_ok=True)
    return archive


def archive_checksum(archive: Path) -> str:
    return file_sha256(archive)


def _write_entry(zf: zipfile.ZipFile, name: str, data: bytes | None, mode: int) -> None:
    info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
    info.create_system = 3
    info.external_attr = mode << 16
    if data is None:
        info.external_attr |= 0x10
        zf.writestr(info, b"")
    else:
        info.compress_type = zipfile.ZIP_DEFLATED
        zf.writestr(info, data)


__all__ = ["FIXED_DATE_TIME", "archive_checksum", "write_deterministic_zip"]
