"""Executable discovery utilities for NoBo.

The build command of a NoBo site is usually a Node tool installed in the
project (next, astro). Like npm scripts, project-local binaries win over
the system PATH.

Functions:
    find_executable: Locate an executable in node_modules/.bin or PATH.
    resolve_command: Replace the program of a command with its full path.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence
from pathlib import Path


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in local node_modules or PATH.

    Args:
        name: Name of the executable to find (e.g., 'next', 'git').
        project_root: Optional project root whose node_modules/.bin is
            searched before PATH.

    Returns:
        Full path to the executable if found, None otherwise.

    Examples:
        >>> find_executable('next', Path('/my/site'))
        '/my/site/node_modules/.bin/next'

        >>> find_executable('git')
        '/usr/bin/git'
    """
    if project_root is not None:
        local_bin = project_root / "node_modules" / ".bin"
        found = shutil.which(name, path=str(local_bin))
        if found:
            return found
    return shutil.which(name)


def resolve_command(
    command: Sequence[str], project_root: Path | None = None
) -> list[str]:
    """Return command with its program resolved to a full path when possible.

    Commands whose program already contains a path separator, or that cannot
    be found, are returned unchanged so the OS reports the failure.
    """
    args = list(command)
    if not args or os.sep in args[0] or (os.altsep and os.altsep in args[0]):
        return args
    found = find_executable(args[0], project_root)
    if found:
        args[0] = found
    return args
