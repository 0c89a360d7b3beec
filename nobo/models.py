"""Data models for the NoBo build cache.

This module contains the records the cache engine reads, writes and returns.
All persisted records serialize to JSON with camelCase keys so cache files
stay readable by the rest of the NoBo toolchain.

Key classes:
- ContentSnapshot: Digests of every file under the content root.
- CacheRecord: Snapshot persisted after a successful build.
- VCSMarker: Revision and snapshot stored inside the output directory.
- StrategyResult: Outcome of a single cache decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

CACHE_FORMAT_VERSION = "1"

NO_CACHE_AVAILABLE = "no-cache-available"
FORCED = "forced"


class StrategyName(str, Enum):
    """Identifier of the strategy that produced a result."""

    LOCAL = "local"
    VCS = "vcs"
    CI = "ci"
    NONE = "none"


@dataclass
class StrategyResult:
    """Outcome of a cache validity decision.

    Attributes:
        is_valid: True when the previous build output can be reused.
        changes: Ordered change descriptors, for display only.
        strategy: Strategy that produced this result.
    """

    is_valid: bool
    changes: list[str] = field(default_factory=list)
    strategy: StrategyName = StrategyName.NONE

    @classmethod
    def no_cache(cls) -> StrategyResult:
        return cls(False, [NO_CACHE_AVAILABLE], StrategyName.NONE)

    @classmethod
    def forced(cls) -> StrategyResult:
        return cls(False, [FORCED], StrategyName.NONE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "changes": list(self.changes),
            "strategyName": self.strategy.value,
        }


@dataclass
class ContentSnapshot:
    """Digests of the content tree, split into posts, config, themes and files.

    Attributes:
        posts: Post file name to digest.
        config: Digest of config.json, or None when the file is absent.
        themes: Theme file path (POSIX, relative to the themes dir) to digest.
        files: Every other content file (POSIX, relative to the content
            root), such as uploads, plugins and nested post folders.
    """

    posts: dict[str, str] = field(default_factory=dict)
    config: str | None = None
    themes: dict[str, str] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "posts": dict(sorted(self.posts.items())),
            "config": self.config,
            "themes": dict(sorted(self.themes.items())),
            "files": dict(sorted(self.files.items())),
        }

    @classmethod
    def from_dict(cls, data: Any) -> ContentSnapshot:
        """Build a snapshot from its JSON form.

        Raises:
            ValueError: If the payload does not have the snapshot shape.
        """
        if not isinstance(data, dict):
            raise ValueError("snapshot must be a JSON object")
        namespaces = {}
        for key in ("posts", "themes", "files"):
            value = data.get(key, {})
            if not isinstance(value, dict):
                raise ValueError(f"snapshot {key} must be a JSON object")
            namespaces[key] = {str(k): str(v) for k, v in value.items()}
        config = data.get("config")
        if config is not None and not isinstance(config, str):
            raise ValueError("snapshot config digest must be a string")
        return cls(config=config, **namespaces)


@dataclass
class CacheRecord:
    """Snapshot persisted after a successful build.

    Attributes:
        hashes: Content snapshot at build time.
        last_build: When the build finished (UTC).
        version: Cache file format version.
    """

    hashes: ContentSnapshot
    last_build: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = CACHE_FORMAT_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastBuild": self.last_build.isoformat(),
            "hashes": self.hashes.to_dict(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> CacheRecord:
        if not isinstance(data, dict):
            raise ValueError("cache record must be a JSON object")
        if "hashes" not in data:
            raise ValueError("cache record has no hashes")
        return cls(
            hashes=ContentSnapshot.from_dict(data["hashes"]),
            last_build=_parse_timestamp(data.get("lastBuild")),
            version=str(data.get("version", "")),
        )


@dataclass
class VCSMarker:
    """Build marker written into the output directory under version control.

    Attributes:
        commit: Revision checked out when the output was built.
        hashes: Content snapshot at build time.
        build_time: When the build finished (UTC).
    """

    commit: str
    hashes: ContentSnapshot
    build_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "commit": self.commit,
            "buildTime": self.build_time.isoformat(),
            "hashes": self.hashes.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> VCSMarker:
        if not isinstance(data, dict):
            raise ValueError("build marker must be a JSON object")
        commit = data.get("commit")
        if not isinstance(commit, str) or not commit:
            raise ValueError("build marker has no commit")
        return cls(
            commit=commit,
            hashes=ContentSnapshot.from_dict(data.get("hashes", {})),
            build_time=_parse_timestamp(data.get("buildTime")),
        )


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp or epoch milliseconds into an aware datetime.

    Args:
        value: Timestamp as stored in a cache file.

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError(f"invalid timestamp: {value!r}") from exc
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"invalid timestamp: {value!r}")
