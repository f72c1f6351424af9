"""Record store CLI.

Operator commands for reading, writing and searching records through any
registered driver. Built with Click and Rich.
"""

from recordstore.cli.main import cli

__all__ = ["cli"]
