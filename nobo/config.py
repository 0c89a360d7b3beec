"""Configuration loading for NoBo builds.

Settings come from an optional nobo.yaml in the project root, merged over
DEFAULT_CONFIG. Every path the cache engine touches is resolved here so the
engine never depends on the current working directory.

Key functions:
- load_config: Load raw configuration values from nobo.yaml.
- load_settings: Resolve configuration into a CacheSettings instance.
- force_rebuild_requested: Check the NOBO_FORCE_REBUILD environment override.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "nobo.yaml"
FORCE_REBUILD_ENV = "NOBO_FORCE_REBUILD"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "output_dir": "out",
    "cache_file": ".nobo-cache.json",
    "marker_file": ".nobo-build.json",
    "canonical_artifact": "index.html",
    "freshness_window": 3600,
    "vcs_timeout": 30,
    "build_command": "next build",
    "pages_dir": "pages",
    "admin_dir": "admin",
}

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when nobo.yaml cannot be read or holds invalid values."""


@dataclass(frozen=True)
class CacheSettings:
    """Resolved settings for the cache engine and build pipeline.

    Attributes:
        project_root: Root directory of the site project.
        content_root: Directory holding posts, config.json and themes.
        output_dir: Directory holding the built site.
        cache_file: Path of the persisted CacheRecord.
        marker_file: File name of the VCSMarker inside output_dir.
        canonical_artifact: Output file whose mtime marks the build time.
        freshness_window: Seconds a build stays eligible for the recency check.
        vcs_timeout: Seconds allowed for each git invocation.
        build_command: Argument list of the external build command.
        pages_dir: Source pages directory of the site.
        admin_dir: Name of the admin area excluded from public output.
    """

    project_root: Path
    content_root: Path
    output_dir: Path
    cache_file: Path
    marker_file: str = DEFAULT_CONFIG["marker_file"]
    canonical_artifact: str = DEFAULT_CONFIG["canonical_artifact"]
    freshness_window: float = DEFAULT_CONFIG["freshness_window"]
    vcs_timeout: float = DEFAULT_CONFIG["vcs_timeout"]
    build_command: tuple[str, ...] = ("next", "build")
    pages_dir: Path | None = None
    admin_dir: str = DEFAULT_CONFIG["admin_dir"]

    @property
    def posts_dir(self) -> Path:
        return self.content_root / "posts"

    @property
    def config_path(self) -> Path:
        return self.content_root / "config.json"

    @property
    def themes_dir(self) -> Path:
        return self.content_root / "themes"

    @property
    def marker_path(self) -> Path:
        return self.output_dir / self.marker_file

    @property
    def artifact_path(self) -> Path:
        return self.output_dir / self.canonical_artifact

    @property
    def pending_path(self) -> Path:
        """Sentinel present while the output is being rebuilt."""
        return self.cache_file.with_name(self.cache_file.name + ".pending")


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from nobo.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if not config_path.exists():
        return config
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path}: invalid YAML ({exc})") from exc
    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")
    config.update(loaded)
    return config


def load_settings(
    project_root: Path, overrides: Mapping[str, Any] | None = None
) -> CacheSettings:
    """Resolve project configuration into CacheSettings.

    Relative paths are resolved against the project root. The build command
    may be given as a string (split with shell rules) or a list.

    Args:
        project_root: Root directory of the project.
        overrides: Optional values that take precedence over nobo.yaml.

    Returns:
        Frozen CacheSettings instance.

    Raises:
        ConfigError: If a value has the wrong type or range.
    """
    root = Path(project_root).resolve()
    config = load_config(root)
    if overrides:
        config.update(overrides)

    freshness = _number(config, "freshness_window")
    timeout = _number(config, "vcs_timeout")
    if freshness < 0:
        raise ConfigError("freshness_window must not be negative")
    if timeout <= 0:
        raise ConfigError("vcs_timeout must be positive")

    marker_file = str(config["marker_file"])
    if not marker_file or Path(marker_file).name != marker_file:
        raise ConfigError("marker_file must be a plain file name")

    return CacheSettings(
        project_root=root,
        content_root=_resolve(root, config["content_dir"]),
        output_dir=_resolve(root, config["output_dir"]),
        cache_file=_resolve(root, config["cache_file"]),
        marker_file=marker_file,
        canonical_artifact=str(config["canonical_artifact"]),
        freshness_window=freshness,
        vcs_timeout=timeout,
        build_command=_command(config.get("build_command")),
        pages_dir=_resolve(root, config["pages_dir"]),
        admin_dir=str(config["admin_dir"]),
    )


def force_rebuild_requested(environ: Mapping[str, str] | None = None) -> bool:
    """Return True when the environment asks to skip the cache check."""
    env = os.environ if environ is None else environ
    return env.get(FORCE_REBUILD_ENV, "").strip().lower() in _TRUTHY


def _resolve(root: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else root / path


def _number(config: Mapping[str, Any], key: str) -> float:
    value = config.get(key)
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc


def _command(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        parts = shlex.split(value)
    elif isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        raise ConfigError(f"build_command must be a string or list, got {value!r}")
    if not parts:
        raise ConfigError("build_command must not be empty")
    return tuple(parts)
