"""Conflicts command - analyze and resolve merge conflicts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from mergemend.core.log import logger

if TYPE_CHECKING:
    from mergemend.core.config import State


class ConflictsCommand(BaseModel):
    """Analyze merge conflicts and optionally resolve them.

    Without options, lists every conflict section with its
    classification. --suggest lists candidate resolutions per section,
    --apply writes the model-authored (or smart merge) candidate into
    each file, and --resolve asks for a choice per section.
    """

    file: str | None = Field(
        default=None,
        description="Only handle conflicted files whose path contains this",
    )
    suggest: bool = Field(
        default=False,
        description="Show suggested resolutions for every section",
    )
    apply: bool = Field(
        default=False,
        description="Apply AI-suggested resolutions to the files",
    )
    resolve: bool = Field(
        default=False,
        description="Interactively resolve conflicts section by section",
    )
    json_output: bool = Field(
        default=False,
        alias="json",
        description="Print the analysis (and suggestions) as JSON",
    )
    no_ai: bool = Field(
        default=False,
        alias="no-ai",
        description="Use heuristics only, never call the model",
    )

    model_config = ConfigDict(populate_by_name=True)

    async def run_workflow(self, state: State) -> int:
        """Run the conflicts workflow.

        Args:
            state: State instance

        Returns:
            Exit code (0=success, 1=nothing matched or apply failures)
        """
        conflicts = state.runtime.conflicts
        conflicts.file_filter = self.file
        conflicts.suggest = self.suggest
        conflicts.apply = self.apply
        conflicts.resolve = self.resolve
        conflicts.json_output = self.json_output
        conflicts.use_ai = not self.no_ai

        from mergemend.workflow.graph import create_workflow
        from mergemend.workflow.nodes import InspectRepository

        workflow = create_workflow()

        async with workflow.iter(InspectRepository(), state=state) as run:
            async for _node in run:
                pass

        exit_code = run.result.output
        logger.info(f"Conflicts workflow finished with exit code {exit_code}")
        return exit_code
