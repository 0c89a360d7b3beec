"""Command-line interface for NoBo builds.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site, reusing the previous output when it is current.
- check: Report whether the previous output is current, without building.
- cache status: Show the stored cache state.
- cache clear: Delete the stored cache state.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click

from . import __version__
from .config import ConfigError, load_settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def _configure_logging(level_name: str) -> None:
    env_override = os.getenv("NOBO_LOG_LEVEL")
    level_str = (env_override or level_name or "info").upper()
    if level_str not in {lvl.upper() for lvl in LOG_LEVELS}:
        level_str = "INFO"
    logging.basicConfig(
        level=getattr(logging, level_str, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", level_str)


def _load_engine():
    from .engine import CacheEngine

    try:
        settings = load_settings(Path.cwd())
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    return CacheEngine(settings)


@click.group()
@click.version_option(version=__version__, prog_name="nobo")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Logging level",
)
def cli(log_level: str):
    """NoBo incremental site builder."""
    _configure_logging(log_level)


@cli.command()
@click.option("--force", is_flag=True, help="Rebuild even if the cache is valid")
def build(force: bool):
    """Build the site into the output directory."""
    from .build import BuildError, run_build

    engine = _load_engine()
    try:
        outcome = run_build(
            engine.settings.project_root,
            force=force,
            settings=engine.settings,
            engine=engine,
        )
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Command: {' '.join(exc.command)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    if outcome.rebuilt:
        click.echo(f"Built site into {outcome.output_dir}")
        if not outcome.cache_saved:
            click.echo(
                click.style("Cache not saved; the next build will run in full", fg="yellow"),
                err=True,
            )
    else:
        click.echo(
            f"Output in {outcome.output_dir} is up to date "
            f"({outcome.result.strategy.value} cache)"
        )
    if outcome.hardened:
        click.echo("Removed admin pages from the output")


@cli.command()
def check():
    """Report whether the previous output can be reused."""
    engine = _load_engine()
    result = engine.check()
    if result.is_valid:
        click.echo(f"Cache valid ({result.strategy.value})")
        return
    click.echo(f"Rebuild needed ({result.strategy.value})")
    for change in result.changes:
        click.echo(f"  {change}")
    raise SystemExit(1)


@cli.group()
def cache():
    """Inspect or reset the build cache."""


@cache.command()
def status():
    """Show the stored cache state."""
    engine = _load_engine()
    state = engine.status()
    if state.record is None:
        click.echo(f"Cache file: none ({state.cache_file})")
    else:
        record = state.record
        click.echo(f"Cache file: {state.cache_file}")
        click.echo(f"  Last build: {record.last_build.isoformat()}")
        click.echo(f"  Posts: {len(record.hashes.posts)}")
        click.echo(f"  Theme files: {len(record.hashes.themes)}")
        click.echo(f"  Other files: {len(record.hashes.files)}")
        click.echo(f"  Config: {'yes' if record.hashes.config else 'no'}")
    if state.marker is None:
        click.echo(f"Build marker: none ({state.marker_path})")
    else:
        click.echo(f"Build marker: {state.marker_path}")
        click.echo(f"  Commit: {state.marker.commit}")
        click.echo(f"  Build time: {state.marker.build_time.isoformat()}")
    if state.pending:
        click.echo(click.style("Build pending: the last rebuild did not finish", fg="yellow"))
    for problem in state.problems:
        click.echo(click.style(f"Unusable: {problem}", fg="yellow"), err=True)


@cache.command()
def clear():
    """Delete the cache file and build marker."""
    engine = _load_engine()
    removed = engine.clear()
    if not removed:
        click.echo("Nothing to clear")
        return
    for path in removed:
        click.echo(f"Removed {path}")


def main():
    """Entry point for the CLI application."""
    cli()
