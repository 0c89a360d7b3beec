"""Incremental site build for NoBo.

This module drives a production build: it asks the cache engine whether the
previous output is still current, runs the external build command when it
is not, records the new cache state and hardens the output.

Key functions:
- run_build: Main entry point for a cached build.
- harden_output: Remove the admin area from the public output.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .config import CacheSettings, force_rebuild_requested, load_settings
from .engine import CacheEngine
from .executable_utils import resolve_command
from .models import StrategyResult

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], Path], int]


class BuildError(Exception):
    """Error during the external build step.

    Attributes:
        command: The command that was run.
        message: Human-readable error message.
        returncode: Exit status of the command, if it ran.
    """

    def __init__(
        self,
        command: Sequence[str],
        message: str,
        returncode: int | None = None,
    ):
        self.command = list(command)
        self.message = message
        self.returncode = returncode
        super().__init__(f"{' '.join(self.command)}: {message}")


@dataclass
class BuildOutcome:
    """Result of a cached build.

    Attributes:
        rebuilt: Whether the build command ran.
        result: Cache decision that led to this outcome.
        output_dir: Directory holding the site output.
        hardened: Whether the admin area had to be removed from the output.
        cache_saved: Whether the cache state was recorded after the build.
    """

    rebuilt: bool
    result: StrategyResult
    output_dir: Path
    hardened: bool = False
    cache_saved: bool = False


def run_build(
    project_root: Path,
    force: bool = False,
    settings: CacheSettings | None = None,
    engine: CacheEngine | None = None,
    runner: CommandRunner | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildOutcome:
    """Build the site unless the previous output can be reused.

    Args:
        project_root: Root directory of the project.
        force: Skip the cache check and always rebuild.
        settings: Optional pre-loaded settings (loaded from nobo.yaml otherwise).
        engine: Optional cache engine (built from settings otherwise).
        runner: Callable running the build command, returning its exit status.
        environ: Environment to read NOBO_FORCE_REBUILD from.

    Returns:
        BuildOutcome describing what happened.

    Raises:
        BuildError: If the build command is missing or fails. The cache is
            invalidated before the command runs and stays invalid then.
    """
    settings = settings or load_settings(project_root)
    engine = engine or CacheEngine(settings)
    runner = runner or _run_command

    if force or force_rebuild_requested(environ):
        logger.info("Forced rebuild, skipping cache check")
        result = StrategyResult.forced()
    else:
        result = engine.check()

    outcome = BuildOutcome(rebuilt=False, result=result, output_dir=settings.output_dir)
    if result.is_valid:
        logger.info("Output in %s is up to date, skipping build", settings.output_dir)
    else:
        if not engine.begin_build():
            raise BuildError(settings.build_command, "could not invalidate the build cache")
        _build(settings, runner)
        outcome.rebuilt = True
        outcome.cache_saved = engine.finish_build()

    outcome.hardened = harden_output(settings)
    return outcome


def harden_output(settings: CacheSettings) -> bool:
    """Remove the admin area from the built output.

    Returns:
        True if an admin directory was found and removed.
    """
    admin_output = settings.output_dir / settings.admin_dir
    if not admin_output.is_dir():
        return False
    shutil.rmtree(admin_output)
    logger.info("Removed %s from the public output", admin_output)
    return True


def _build(settings: CacheSettings, runner: CommandRunner) -> None:
    command = resolve_command(settings.build_command, settings.project_root)
    logger.info("Running %s", " ".join(command))
    with _admin_pages_aside(settings):
        try:
            returncode = runner(command, settings.project_root)
        except OSError as exc:
            raise BuildError(command, f"could not start: {exc}") from exc
    if returncode != 0:
        raise BuildError(command, f"exited with status {returncode}", returncode)


@contextmanager
def _admin_pages_aside(settings: CacheSettings) -> Iterator[None]:
    """Move the admin pages out of the pages directory for the build.

    The pages are restored afterwards, including when the build fails. A
    leftover aside directory from an interrupted build is restored first.
    """
    if settings.pages_dir is None:
        yield
        return
    admin_pages = settings.pages_dir / settings.admin_dir
    aside = settings.pages_dir.parent / f".{settings.admin_dir}-aside"

    if aside.exists():
        if admin_pages.exists():
            raise BuildError(
                settings.build_command,
                f"both {admin_pages} and {aside} exist; remove one and retry",
            )
        logger.warning("Restoring admin pages left at %s by an earlier build", aside)
        shutil.move(str(aside), str(admin_pages))

    if not admin_pages.exists():
        yield
        return

    shutil.move(str(admin_pages), str(aside))
    logger.debug("Moved %s aside for the public build", admin_pages)
    try:
        yield
    finally:
        shutil.move(str(aside), str(admin_pages))
        logger.debug("Restored %s", admin_pages)


def _run_command(command: Sequence[str], cwd: Path) -> int:
    return subprocess.run(list(command), cwd=cwd, check=False).returncode
