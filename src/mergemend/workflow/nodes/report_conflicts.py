"""ReportConflicts node - classify and print every conflict."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from mergemend.conflict.classifier import analyze_conflicts
from mergemend.core.config import State
from mergemend.report import render_analysis

HINTS = [
    "Use --suggest to see suggested resolutions.",
    "Use --apply to auto-apply AI resolutions.",
    "Use --resolve to interactively resolve conflicts.",
]


@dataclass
class ReportConflicts(BaseNode[State, None, int]):
    """Print the conflict analysis and route to the requested steps."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> SuggestResolutions | InteractiveResolve | End[int]:
        conflicts = ctx.state.runtime.conflicts
        analysis = analyze_conflicts(conflicts.context)
        conflicts.analysis = analysis

        if conflicts.json_output:
            print(analysis.model_dump_json(indent=2))
        else:
            print(render_analysis(analysis))

        if conflicts.suggest or conflicts.apply:
            from mergemend.workflow.nodes.suggest import SuggestResolutions
            return SuggestResolutions()

        if conflicts.resolve:
            from mergemend.workflow.nodes.resolve import InteractiveResolve
            return InteractiveResolve()

        if not conflicts.json_output:
            print("\n".join(HINTS))
        conflicts.status = "complete"
        return End(0)
