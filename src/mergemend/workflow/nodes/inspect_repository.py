"""InspectRepository node - snapshot the repository and pick files."""

from __future__ import annotations

import sys
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from mergemend.conflict.models import MergeState
from mergemend.core.config import State
from mergemend.core.log import logger
from mergemend.git.inspector import GitInspector


@dataclass
class InspectRepository(BaseNode[State, None, int]):
    """Build the repository context and stop early when there is
    nothing to resolve."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> ReportConflicts | End[int]:
        """Inspect the working tree.

        Returns:
            ReportConflicts: Conflicted files remain after filtering
            End[int]: No merge in progress, no conflicts, or no file
                matched the filter
        """
        config = ctx.state.config
        conflicts = ctx.state.runtime.conflicts
        conflicts.status = "running"

        inspector = GitInspector(
            workdir=config.git.workdir,
            commands=config.commands.get("git"),
        )
        context = inspector.build_repo_context()

        if context.merge_state is MergeState.NONE:
            print("No merge in progress.")
            conflicts.context = context
            conflicts.status = "complete"
            return End(0)

        if not context.conflicted_files:
            print(f"Merge state: {context.merge_state.value}")
            print("No conflicts detected. You can continue with:")
            print(f"  git {context.merge_state.continue_command}")
            conflicts.context = context
            conflicts.status = "complete"
            return End(0)

        if conflicts.file_filter:
            matching = [
                f for f in context.conflicted_files
                if conflicts.file_filter in f.path
            ]
            if not matching:
                print(
                    "No conflicts found in files matching: "
                    f"{conflicts.file_filter}",
                    file=sys.stderr,
                )
                conflicts.context = context
                conflicts.status = "failed"
                return End(1)

            logger.debug(
                f"Filter '{conflicts.file_filter}' kept "
                f"{len(matching)} of {len(context.conflicted_files)} file(s)"
            )
            context = context.model_copy(
                update={"conflicted_files": matching}
            )

        conflicts.context = context

        from mergemend.workflow.nodes.report_conflicts import ReportConflicts
        return ReportConflicts()
