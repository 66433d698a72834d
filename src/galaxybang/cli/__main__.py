"""Entry point for running the CLI as a module.

Usage:
    python -m galaxybang.cli
"""

from galaxybang.cli.app import app

if __name__ == "__main__":
    app()
