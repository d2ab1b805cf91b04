"""CLI subcommands."""

from mergemend.command.conflicts import ConflictsCommand

__all__ = ["ConflictsCommand"]
