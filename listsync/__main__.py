"""
Entry point for running listsync as a module.

Usage:
    python -m listsync --help
    python -m listsync tick
    python -m listsync worker --once
"""

from listsync.cli import cli

if __name__ == "__main__":
    cli()
