"""Working-directory layout and simple file backup/restore helpers."""

from __future__ import annotations

import shutil
from pathlib import Path

WORK_DIRECTORIES = ("extracted", "patched", "output", "temp", "logs", "scripts")
BACKUP_SUFFIX = ".backup"


def create_directory_structure(base_path) -> None:
    """Create the standard working directories under ``base_path``."""
    base = Path(base_path)
    for name in WORK_DIRECTORIES:
        (base / name).mkdir(parents=True, exist_ok=True)


def cleanup_temp_files(base_path) -> None:
    """Remove the ``temp`` entry under ``base_path`` if it exists."""
    temp = Path(base_path) / "temp"
    if temp.is_dir() and not temp.is_symlink():
        shutil.rmtree(temp)
    elif temp.exists() or temp.is_symlink():
        temp.unlink()


def _backup_path(file_path) -> Path:
    return Path(str(file_path) + BACKUP_SUFFIX)


def backup_file(file_path) -> Path:
    """Copy ``file_path`` to ``file_path.backup`` and return the backup path."""
    backup = _backup_path(file_path)
    shutil.copyfile(file_path, backup)
    return backup


def restore_file(file_path) -> None:
    """Overwrite ``file_path`` with the contents of its backup."""
    backup = _backup_path(file_path)
    if not backup.exists():
        raise FileNotFoundError(f"backup file does not exist: {backup}")
    shutil.copyfile(backup, file_path)