"""Reading and writing persisted cache state.

The cache file and the build marker are small JSON documents. Loaders
return None for missing files and raise ValueError for files that exist but
cannot be used; writers replace files atomically so a crash mid-write never
leaves a half-written record behind.

Key functions:
- load_cache_record / save_cache_record: The CacheRecord at the cache path.
- load_marker / save_marker: The VCSMarker inside the output directory.
- remove_file: Delete a state file if present.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from .models import CACHE_FORMAT_VERSION, CacheRecord, VCSMarker


def load_cache_record(path: Path) -> CacheRecord | None:
    """Load the CacheRecord stored at path.

    Args:
        path: Location of the cache file.

    Returns:
        The record, or None if the file does not exist.

    Raises:
        ValueError: If the file is unreadable, not valid JSON, malformed or
            written by a different format version.
    """
    payload = _read_json(path)
    if payload is None:
        return None
    record = CacheRecord.from_dict(payload)
    if record.version != CACHE_FORMAT_VERSION:
        raise ValueError(
            f"{path}: cache format {record.version!r} is not {CACHE_FORMAT_VERSION!r}"
        )
    return record


def save_cache_record(path: Path, record: CacheRecord) -> None:
    """Write record to path, replacing any previous cache file."""
    _write_json(path, record.to_dict())


def load_marker(path: Path) -> VCSMarker | None:
    """Load the VCSMarker stored at path.

    Returns:
        The marker, or None if the file does not exist.

    Raises:
        ValueError: If the file exists but cannot be parsed.
    """
    payload = _read_json(path)
    if payload is None:
        return None
    return VCSMarker.from_dict(payload)


def save_marker(path: Path, marker: VCSMarker) -> None:
    """Write marker to path, replacing any previous marker."""
    _write_json(path, marker.to_dict())


def remove_file(path: Path) -> bool:
    """Delete path if it is a file.

    Directories and other non-files are left alone; loaders treat them as
    missing state.

    Returns:
        True if a file was removed.

    Raises:
        OSError: If the file exists but cannot be deleted.
    """
    if not path.is_file():
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def touch_file(path: Path) -> None:
    """Create path (and its parent directory) if it does not exist."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)


def _read_json(path: Path) -> Any:
    if not path.is_file():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"{path}: cannot read ({exc})") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc.msg})") from exc


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
