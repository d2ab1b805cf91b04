"""SuggestResolutions node - generate candidate resolutions."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import TypeAdapter
from pydantic_graph import BaseNode, End, GraphRunContext

from mergemend.conflict.models import ConflictResolution
from mergemend.conflict.strategy import (
    ConflictCollaborator,
    ResolutionStrategyGenerator,
)
from mergemend.core.config import State
from mergemend.core.log import logger
from mergemend.model.resolver import AgentCollaborator
from mergemend.report import RESET, YELLOW, render_suggestions

_resolutions_adapter = TypeAdapter(list[ConflictResolution])


def build_collaborator(state: State) -> ConflictCollaborator | None:
    """Model collaborator for this run, or None for heuristics only."""
    llm = state.config.llm
    if not state.runtime.conflicts.use_ai:
        logger.info("Model collaborator disabled for this run")
        return None
    if not llm.available:
        logger.info("No model configured, using smart merge suggestions")
        return None
    return AgentCollaborator(
        llm,
        prompts=state.config.prompts,
        agents=state.config.agents,
    )


@dataclass
class SuggestResolutions(BaseNode[State, None, int]):
    """Produce ordered candidates for every conflict section."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> ApplyResolutions | InteractiveResolve | End[int]:
        """Generate candidates and print them when asked.

        Returns:
            ApplyResolutions: --apply was given
            InteractiveResolve: --resolve was given without --apply
            End[int]: Nothing left to do
        """
        conflicts = ctx.state.runtime.conflicts
        generator = ResolutionStrategyGenerator(
            collaborator=build_collaborator(ctx.state),
            timeout=ctx.state.config.llm.timeout,
        )

        if not conflicts.json_output:
            print(f"{YELLOW}Generating resolutions...{RESET}")
        resolutions = await generator.suggest(conflicts.context)
        conflicts.resolutions = resolutions
        logger.info(f"Generated {len(resolutions)} candidate resolution(s)")

        if conflicts.suggest:
            if conflicts.json_output:
                print(
                    _resolutions_adapter.dump_json(
                        resolutions, indent=2
                    ).decode()
                )
            else:
                print(render_suggestions(resolutions))

        if conflicts.apply:
            from mergemend.workflow.nodes.apply import ApplyResolutions
            return ApplyResolutions()

        if conflicts.resolve:
            from mergemend.workflow.nodes.resolve import InteractiveResolve
            return InteractiveResolve()

        conflicts.status = "complete"
        return End(0)
