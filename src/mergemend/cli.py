#!/usr/bin/env python3
"""Mergemend CLI - merge conflict analysis and resolution."""

import asyncio
import sys

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from mergemend.command.conflicts import ConflictsCommand
from mergemend.core.config import State
from mergemend.core.log import logger


class CliState(State):
    """Analyze and resolve git merge conflicts.

    Reads the conflicted files of an in-progress merge, rebase,
    cherry-pick or revert, classifies every conflict, proposes
    resolutions (optionally with a language model) and writes the
    chosen ones back.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.llm.model openai:gpt-4o)
    2. Environment variables (MERGEMEND_CONFIG__LLM__MODEL=...)
    3. .env file
    4. YAML: --include files, ./mergemend.yaml, user config dir,
       package defaults
    """

    conflicts: CliSubCommand[ConflictsCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
