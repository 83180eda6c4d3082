"""Working-tree file helpers used by the client and the mock builder."""

from __future__ import annotations

import os
from collections.abc import Iterable


def write_file(root: str, rel_path: str, blob: bytes) -> str:
    """Write ``blob`` to ``root/rel_path``, creating parent directories."""
    full_path = os.path.join(root, rel_path)
    os.makedirs(os.path.dirname(full_path) or root, exist_ok=True)
    with open(full_path, "wb") as fh:
        fh.write(blob)
    return full_path


def read_tree(path: str, ignore_file: Iterable[str] = (), ignore_dir: Iterable[str] = ()) -> dict[str, bytes]:
    """Read a file, or every file below a directory, into ``path -> bytes``.

    A missing path yields an empty mapping.  Directories whose name is in
    ``ignore_dir`` are not descended into, and files whose name contains any
    entry of ``ignore_file`` are skipped.  Keys are normalised paths built on
    top of ``path``.
    """
    ignore_file = list(ignore_file)
    ignore_dir = set(ignore_dir)
    result: dict[str, bytes] = {}

    path = os.path.normpath(path)
    if not os.path.exists(path):
        return result

    if not os.path.isdir(path):
        with open(path, "rb") as fh:
            result[path] = fh.read()
        return result

    for dirpath, dirnames, filenames in os.walk(path):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore_dir)
        for name in sorted(filenames):
            if any(pattern in name for pattern in ignore_file):
                continue
            full_path = os.path.join(dirpath, name)
            with open(full_path, "rb") as fh:
                result[full_path] = fh.read()
    return result


def read_files(
    root: str,
    paths: Iterable[str],
    ignore_file: Iterable[str] = (),
    ignore_dir: Iterable[str] = (),
    absolute_path: bool = False,
) -> dict[str, bytes]:
    """Read ``paths`` (relative to ``root``) into ``path -> bytes``.

    With ``absolute_path`` the keys are full paths, otherwise they are
    relative to ``root``.
    """
    root = os.path.normpath(root)
    ignore_file = list(ignore_file)
    ignore_dir = list(ignore_dir)
    result: dict[str, bytes] = {}
    for rel in paths:
        for full_path, blob in read_tree(os.path.join(root, rel), ignore_file, ignore_dir).items():
            key = full_path if absolute_path else os.path.relpath(full_path, root)
            result[key] = blob
    return result
