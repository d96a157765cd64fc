"""File helpers shared by the judging machinery."""

from __future__ import annotations

import os
import secrets
import shutil
import stat
import tempfile

_TEMP_DIR_ATTEMPTS = 100


def make_temp_dir() -> str:
    """Create a fresh, randomly named directory in the system temp dir."""
    base = tempfile.gettempdir()
    for _ in range(_TEMP_DIR_ATTEMPTS):
        dir_path = os.path.join(base, secrets.token_hex(16))
        try:
            os.makedirs(dir_path, mode=0o777)
        except FileExistsError:
            continue
        return dir_path
    raise OSError("unable to create temp directory")


def copy_file(source: str, target: str) -> None:
    """Copy file contents and permission bits from source to target."""
    mode = stat.S_IMODE(os.stat(source).st_mode)
    shutil.copyfile(source, target)
    os.chmod(target, mode)


def copy_file_rec(source: str, target: str) -> None:
    """Copy a file, creating the target's parent directories first."""
    os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
    copy_file(source, target)


def read_file(name: str, limit: int) -> str:
    """Read at most ``limit`` bytes of a file as text.

    Invalid UTF-8 sequences are dropped; when the file holds more than
    ``limit`` bytes the result ends with ``"..."``.
    """
    with open(name, "rb") as file:
        data = file.read(limit + 1)
    if len(data) > limit:
        return data[:limit].decode("utf-8", errors="ignore") + "..."
    return data.decode("utf-8", errors="ignore")