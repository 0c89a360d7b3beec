"""Build cache decision engine for NoBo.

The engine runs the registered strategies in priority order and returns the
first answer. It never raises: a strategy that fails is skipped, and when no
strategy can answer the engine asks for a rebuild.

Key classes:
- CacheEngine: Decide cache validity, persist cache state after a build.
- CacheStatus: Stored cache state, for display.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .cache_store import (
    load_cache_record,
    load_marker,
    remove_file,
    save_cache_record,
    save_marker,
    touch_file,
)
from .config import CacheSettings
from .hashing import snapshot_content
from .models import CacheRecord, StrategyResult, VCSMarker
from .protocols import VersionControl
from .strategies import StrategyRegistry, create_default_registry
from .vcs import GitRepository, VCSError

logger = logging.getLogger(__name__)


@dataclass
class CacheStatus:
    """Snapshot of the persisted cache state.

    Attributes:
        cache_file: Location of the CacheRecord.
        record: Loaded record, or None if missing or unusable.
        marker_path: Location of the VCSMarker.
        marker: Loaded marker, or None if missing or unusable.
        problems: Messages for files that exist but could not be loaded.
        pending: True while a rebuild is in progress or was interrupted.
    """

    cache_file: Path
    record: CacheRecord | None
    marker_path: Path
    marker: VCSMarker | None
    problems: list[str] = field(default_factory=list)
    pending: bool = False


class CacheEngine:
    """Decides whether a NoBo site needs rebuilding.

    Attributes:
        settings: Resolved project settings.
        vcs: Version-control backend for the content root.
        registry: Strategies tried by check(), highest priority first.
    """

    def __init__(
        self,
        settings: CacheSettings,
        vcs: VersionControl | None = None,
        registry: StrategyRegistry | None = None,
    ):
        self.settings = settings
        if vcs is None:
            vcs = GitRepository(settings.content_root, settings.vcs_timeout)
        self.vcs = vcs
        if registry is None:
            registry = create_default_registry(settings, vcs)
        self.registry = registry

    def check(self) -> StrategyResult:
        """Return the first answer of the registered strategies.

        Returns:
            The first non-None strategy result, or a "no-cache-available"
            result asking for a rebuild when every strategy declines.
        """
        for strategy in self.registry:
            try:
                result = strategy.attempt()
            except Exception as exc:
                logger.warning(
                    "Cache strategy %s failed, skipping: %s",
                    strategy.name.value,
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                continue
            if result is not None:
                logger.info(
                    "Cache %s by %s strategy%s",
                    "valid" if result.is_valid else "invalid",
                    result.strategy.value,
                    _summarize(result.changes),
                )
                return result
        logger.info("No cache strategy could decide, rebuilding")
        return StrategyResult.no_cache()

    def begin_build(self) -> bool:
        """Invalidate the cache before the output is rebuilt.

        Removes the cache file and build marker and leaves a pending
        sentinel behind. Until finish_build() runs, every strategy declines,
        so a build that fails or is killed half way never looks current.

        Returns:
            True if the old state was removed and the sentinel written.
        """
        if not self._discard(self.settings.cache_file, self.settings.marker_path):
            return False
        try:
            touch_file(self.settings.pending_path)
        except OSError as exc:
            logger.warning("Could not mark build as pending: %s", exc)
            return False
        logger.debug("Marked build pending at %s", self.settings.pending_path)
        return True

    def finish_build(self) -> bool:
        """Record the new cache state and clear the pending sentinel.

        Returns:
            True if the cache state was written and the sentinel removed.
        """
        ok = self.persist()
        return self._discard(self.settings.pending_path) and ok

    def persist(self) -> bool:
        """Record the current content state after a successful build.

        Writes the CacheRecord and, under version control, the VCSMarker.
        Failures are logged, never raised. A file that could not be written
        is removed so an older record cannot vouch for the new output.

        Returns:
            True if every applicable file was written.
        """
        try:
            snapshot = snapshot_content(self.settings.content_root)
        except OSError as exc:
            logger.warning("Could not hash content for the build cache: %s", exc)
            self._discard(self.settings.cache_file, self.settings.marker_path)
            return False

        record = CacheRecord(hashes=snapshot)
        ok = True
        try:
            save_cache_record(self.settings.cache_file, record)
            logger.debug("Wrote cache file %s", self.settings.cache_file)
        except OSError as exc:
            logger.warning("Could not write cache file %s: %s", self.settings.cache_file, exc)
            self._discard(self.settings.cache_file)
            ok = False

        if not self.vcs.is_repository():
            self._discard(self.settings.marker_path)
            return ok
        try:
            revision = self.vcs.current_revision()
            marker = VCSMarker(commit=revision, hashes=snapshot, build_time=record.last_build)
            save_marker(self.settings.marker_path, marker)
            logger.debug("Wrote build marker %s at %s", self.settings.marker_path, revision)
        except (VCSError, OSError) as exc:
            logger.warning("Could not write build marker: %s", exc)
            self._discard(self.settings.marker_path)
            ok = False
        return ok

    def status(self) -> CacheStatus:
        """Load the persisted cache state without deciding anything."""
        problems: list[str] = []
        try:
            record = load_cache_record(self.settings.cache_file)
        except ValueError as exc:
            record = None
            problems.append(str(exc))
        try:
            marker = load_marker(self.settings.marker_path)
        except ValueError as exc:
            marker = None
            problems.append(str(exc))
        return CacheStatus(
            cache_file=self.settings.cache_file,
            record=record,
            marker_path=self.settings.marker_path,
            marker=marker,
            problems=problems,
            pending=self.settings.pending_path.exists(),
        )

    def clear(self) -> list[Path]:
        """Delete the cache file and build marker.

        Returns:
            Paths that were removed.
        """
        removed = []
        for path in (self.settings.cache_file, self.settings.marker_path):
            if remove_file(path):
                logger.info("Removed %s", path)
                removed.append(path)
        return removed

    def _discard(self, *paths: Path) -> bool:
        ok = True
        for path in paths:
            try:
                remove_file(path)
            except OSError as exc:
                logger.warning("Could not remove stale %s: %s", path, exc)
                ok = False
        return ok


def _summarize(changes: list[str], limit: int = 5) -> str:
    if not changes:
        return ""
    shown = ", ".join(changes[:limit])
    if len(changes) > limit:
        shown += f", ... ({len(changes) - limit} more)"
    return f": {shown}"
