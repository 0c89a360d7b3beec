"""Cache validity strategies for NoBo.

Each strategy answers the same question, "can the previous build output be
reused?", from a different kind of evidence. A strategy returns None when it
cannot answer, and the registry moves on to the next one.

Key classes:
- LocalHashStrategy: Compares content digests with the stored CacheRecord.
- VCSStrategy: Compares the git revision with the build marker.
- RecencyStrategy: Compares file mtimes with a recent output artifact (CI).
- StrategyRegistry: Priority-ordered list of strategies.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator

from .cache_store import load_cache_record, load_marker
from .config import CacheSettings
from .hashing import iter_content_files, snapshot_content
from .models import ContentSnapshot, StrategyName, StrategyResult
from .protocols import CacheStrategy, VersionControl
from .vcs import VCSError

logger = logging.getLogger(__name__)


class BaseCacheStrategy(ABC):
    """Base class for cache strategies.

    Provides the output directory precondition shared by every strategy:
    without a finished previous build there is nothing to reuse. Output left
    behind by a build that never completed does not count.
    """

    def __init__(self, settings: CacheSettings):
        self.settings = settings

    @property
    @abstractmethod
    def name(self) -> StrategyName:
        """Return the identifier reported in results."""
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return strategy priority (higher = tried first)."""
        ...

    @abstractmethod
    def attempt(self) -> StrategyResult | None:
        """Decide cache validity, or return None to decline."""
        ...

    def has_output(self) -> bool:
        if self.settings.pending_path.exists():
            logger.debug("%s: build pending at %s", self.name.value, self.settings.pending_path)
            return False
        return self.settings.output_dir.is_dir()

    def result(self, changes: list[str]) -> StrategyResult:
        return StrategyResult(not changes, changes, self.name)


class LocalHashStrategy(BaseCacheStrategy):
    """Compares a fresh content snapshot with the stored CacheRecord."""

    @property
    def name(self) -> StrategyName:
        return StrategyName.LOCAL

    @property
    def priority(self) -> int:
        return 300

    def attempt(self) -> StrategyResult | None:
        if not self.has_output():
            logger.debug("local: no output directory at %s", self.settings.output_dir)
            return None
        try:
            record = load_cache_record(self.settings.cache_file)
        except ValueError as exc:
            logger.warning("local: ignoring unusable cache file: %s", exc)
            return None
        if record is None:
            logger.debug("local: no cache file at %s", self.settings.cache_file)
            return None

        current = snapshot_content(self.settings.content_root)
        return self.result(diff_snapshots(record.hashes, current))


class VCSStrategy(BaseCacheStrategy):
    """Compares the checked out revision with the build marker's revision."""

    def __init__(self, settings: CacheSettings, vcs: VersionControl):
        super().__init__(settings)
        self.vcs = vcs

    @property
    def name(self) -> StrategyName:
        return StrategyName.VCS

    @property
    def priority(self) -> int:
        return 200

    def attempt(self) -> StrategyResult | None:
        if not self.has_output():
            logger.debug("vcs: no output directory at %s", self.settings.output_dir)
            return None
        if not self.vcs.is_repository():
            logger.debug("vcs: %s is not under version control", self.settings.content_root)
            return None
        try:
            marker = load_marker(self.settings.marker_path)
        except ValueError as exc:
            logger.warning("vcs: ignoring unusable build marker: %s", exc)
            return None
        if marker is None:
            logger.debug("vcs: no build marker at %s", self.settings.marker_path)
            return None

        try:
            revision = self.vcs.current_revision()
            if marker.commit == revision:
                return self.result([])
            changed = self.vcs.changed_files(marker.commit, revision)
        except VCSError as exc:
            logger.warning("vcs: cannot compare with %s: %s", marker.commit, exc)
            return None
        return self.result([f"git:{path}" for path in changed])


class RecencyStrategy(BaseCacheStrategy):
    """Compares content mtimes with the mtime of a recent output artifact.

    Intended for CI checkouts where neither the cache file nor git history
    is available but the output directory was restored moments ago.
    """

    def __init__(
        self, settings: CacheSettings, clock: Callable[[], float] = time.time
    ):
        super().__init__(settings)
        self.clock = clock

    @property
    def name(self) -> StrategyName:
        return StrategyName.CI

    @property
    def priority(self) -> int:
        return 100

    def attempt(self) -> StrategyResult | None:
        artifact = self.settings.artifact_path
        if not self.has_output() or not artifact.is_file():
            logger.debug("ci: no build artifact at %s", artifact)
            return None
        build_time = artifact.stat().st_mtime
        age = self.clock() - build_time
        if abs(age) > self.settings.freshness_window:
            logger.debug(
                "ci: build is %.0fs old, outside the %.0fs window",
                age,
                self.settings.freshness_window,
            )
            return None

        root = self.settings.content_root
        changes = [
            f"modified:{path.relative_to(root).as_posix()}"
            for path in iter_content_files(root)
            if path.stat().st_mtime > build_time
        ]
        return self.result(changes)


class StrategyRegistry:
    """Registry of cache strategies, kept sorted by priority (highest first)."""

    def __init__(self):
        """Initialize an empty registry."""
        self._strategies: list[CacheStrategy] = []

    def register(self, strategy: CacheStrategy) -> None:
        """Register a strategy.

        Args:
            strategy: Strategy to add. Ties keep registration order.
        """
        self._strategies.append(strategy)
        self._strategies.sort(key=lambda s: s.priority, reverse=True)

    def __iter__(self) -> Iterator[CacheStrategy]:
        return iter(list(self._strategies))

    def __len__(self) -> int:
        return len(self._strategies)


def diff_snapshots(old: ContentSnapshot, new: ContentSnapshot) -> list[str]:
    """Describe the differences between two content snapshots.

    Args:
        old: Snapshot recorded at the previous build.
        new: Snapshot of the current content tree.

    Returns:
        Change descriptors: changed and removed posts, config, changed and
        removed theme files, then every other content file. Empty when the
        snapshots match.
    """
    changes = _diff_mapping(old.posts, new.posts, "post")
    if old.config != new.config:
        changes.append("config")
    changes.extend(_diff_mapping(old.themes, new.themes, "theme"))
    changes.extend(_diff_mapping(old.files, new.files, "file"))
    return changes


def _diff_mapping(old: dict[str, str], new: dict[str, str], kind: str) -> list[str]:
    changes = [f"{kind}:{key}" for key in sorted(new) if old.get(key) != new[key]]
    changes.extend(f"removed-{kind}:{key}" for key in sorted(old) if key not in new)
    return changes


def create_default_registry(
    settings: CacheSettings,
    vcs: VersionControl,
    clock: Callable[[], float] = time.time,
) -> StrategyRegistry:
    """Create a registry with the local, VCS and recency strategies.

    Args:
        settings: Resolved project settings.
        vcs: Version-control backend for the content root.
        clock: Source of the current time for the recency strategy.

    Returns:
        Configured StrategyRegistry.
    """
    registry = StrategyRegistry()
    registry.register(LocalHashStrategy(settings))
    registry.register(VCSStrategy(settings, vcs))
    registry.register(RecencyStrategy(settings, clock))
    return registry
