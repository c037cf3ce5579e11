"""
Filesystem helpers for wikihist.io (local files).

Responsibilities
- Directory creation, fsync and atomic renames for the write path:
  tmp write -> fsync -> atomic rename.
- Whole-directory publish: a staging directory replaces the published one with two
  renames, so readers see either the old tree or the new one.

Notes
- Atomicity via os.replace holds only when src and dst are on the same filesystem;
  staging directories are therefore created next to their final location.
"""

from __future__ import annotations

import os
import shutil
import uuid


def makedirs(path: str, exist_ok: bool = True) -> None:
    """Create directories recursively (thin wrapper around os.makedirs)."""
    os.makedirs(path, exist_ok=exist_ok)


def fsync_path(path: str) -> None:
    """
    Open a path read-only and fsync its file descriptor.

    Notes:
        Used after a library wrote to a path directly (pyarrow, polars) and before
        the atomic rename.
    """
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def rename_atomic(src: str, dst: str) -> None:
    """Atomically rename src -> dst on the same filesystem."""
    os.replace(src, dst)


def remove_quietly(path: str) -> None:
    """Remove a file or a directory tree if it exists."""
    if os.path.isdir(path):
        shutil.rmtree(path, ignore_errors=True)
    elif os.path.exists(path):
        os.remove(path)


def replace_dir(src: str, dst: str) -> None:
    """
    Publish directory ``src`` at ``dst``, replacing any previous content.

    The previous ``dst`` is first moved aside, then ``src`` is renamed into place and
    the old tree is deleted. If the second rename fails the old tree is put back.
    """
    parent = os.path.dirname(os.path.abspath(dst))
    makedirs(parent)
    backup = None
    if os.path.exists(dst):
        backup = os.path.join(parent, f".{os.path.basename(dst)}.old-{uuid.uuid4().hex}")
        os.replace(dst, backup)
    try:
        os.replace(src, dst)
    except OSError:
        if backup is not None:
            os.replace(backup, dst)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def walk_parquet_files(root: str) -> list[str]:
    """
    Recursively collect all *.parquet under a root directory, sorted by path.

    Returns:
        list[str]: Full paths; [] when root does not exist.
    """
    out: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.endswith(".parquet"):
                out.append(os.path.join(dirpath, name))
    return sorted(out)
