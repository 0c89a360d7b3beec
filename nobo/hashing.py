"""Content hashing for the NoBo build cache.

Digests are SHA-256 over raw file bytes, so they do not depend on file
order, timestamps or platform line endings of anything but the file itself.

Key functions:
    hash_file: Digest a single file.
    snapshot_content: Digest every file under a content root.
    iter_content_files: Walk a directory, skipping dot-files.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from pathlib import Path

from .models import ContentSnapshot

_CHUNK_SIZE = 64 * 1024


def hash_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file's bytes.

    Args:
        path: File to digest.

    Returns:
        64 character hexadecimal digest.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def iter_content_files(root: Path, recursive: bool = True) -> Iterator[Path]:
    """Yield regular files under root in sorted order.

    Files and directories whose name starts with a dot are skipped, so editor
    swap files and .DS_Store never show up as content changes.

    Args:
        root: Directory to walk. Missing directories yield nothing.
        recursive: Whether to descend into subdirectories.
    """
    if not root.is_dir():
        return
    for path in sorted(root.iterdir()):
        if path.name.startswith("."):
            continue
        if path.is_dir():
            if recursive:
                yield from iter_content_files(path, recursive=True)
        elif path.is_file():
            yield path


def snapshot_content(content_root: Path) -> ContentSnapshot:
    """Compute a ContentSnapshot of a content root.

    Every non-dot file under the content root is digested exactly once.
    Posts are the files directly inside posts/, keyed by file name. Theme
    files are keyed by their POSIX path relative to themes/. The config
    digest is None when config.json does not exist. Everything else
    (uploads, plugins, nested post folders) lands in files, keyed by its
    POSIX path relative to the content root.

    Args:
        content_root: Directory holding posts/, config.json and themes/.

    Returns:
        Snapshot with one entry per file currently present.
    """
    snapshot = ContentSnapshot()
    for path in iter_content_files(content_root):
        parts = path.relative_to(content_root).parts
        digest = hash_file(path)
        if parts == ("config.json",):
            snapshot.config = digest
        elif parts[0] == "posts" and len(parts) == 2:
            snapshot.posts[parts[1]] = digest
        elif parts[0] == "themes" and len(parts) > 1:
            snapshot.themes["/".join(parts[1:])] = digest
        else:
            snapshot.files["/".join(parts)] = digest
    return snapshot
