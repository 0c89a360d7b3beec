"""NoBo incremental build cache.

This package decides whether a NoBo static site needs rebuilding. It stores
content digests after each build, compares them (or the git revision, or
file timestamps on CI) on the next run, and only invokes the site's build
command when something changed.

The main entry point is the CLI module, which provides commands for building
the site and inspecting the cache.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
