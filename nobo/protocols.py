"""Protocol definitions for NoBo.

These protocols describe the seams of the cache engine so strategies and the
version-control backend can be swapped, or replaced by fakes in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import StrategyName, StrategyResult


@runtime_checkable
class CacheStrategy(Protocol):
    """Protocol for deciding whether the previous build can be reused.

    Each implementation inspects one kind of observable state (stored
    hashes, git history, file timestamps).
    """

    @abstractmethod
    def attempt(self) -> StrategyResult | None:
        """Decide cache validity.

        Returns:
            A StrategyResult, or None when the strategy's preconditions are
            not met and the next strategy should be tried.
        """
        ...

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


@runtime_checkable
class VersionControl(Protocol):
    """Protocol for the version-control queries the cache engine needs."""

    @abstractmethod
    def is_repository(self) -> bool:
        """Return True when the content root is under version control."""
        ...

    @abstractmethod
    def current_revision(self) -> str:
        """Return the identifier of the checked out revision.

        Raises:
            VCSError: If the revision cannot be determined.
        """
        ...

    @abstractmethod
    def changed_files(self, old_revision: str, new_revision: str) -> list[str]:
        """List content files that differ between two revisions.

        Raises:
            VCSError: If the diff cannot be computed.
        """
        ...
