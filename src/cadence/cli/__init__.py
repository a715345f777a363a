"""
CLI layer for cadence.

A Typer application whose sub-commands delegate to the operations layer
(``cadence.ops``). All business logic lives in ops; this package handles
argument parsing, coloured output and table formatting.

Entry point::

    cadence --help
"""

from cadence.cli.app import app

__all__ = ["app"]
