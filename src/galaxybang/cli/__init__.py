"""galaxybang CLI.

Generate and validate universes from the command line.

Usage:
    uv run galaxybang --help
"""

from galaxybang.cli.app import app

__all__ = ["app"]
