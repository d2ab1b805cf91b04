"""ApplyResolutions node - write model-authored resolutions to disk."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from mergemend.conflict.models import ApplySummary, ResolutionStrategy
from mergemend.conflict.patch import apply_resolutions
from mergemend.core.config import State
from mergemend.report import RESET, YELLOW, render_apply_summary


@dataclass
class ApplyResolutions(BaseNode[State, None, int]):
    """Apply every ai_suggested candidate, batched per file."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> InteractiveResolve | End[int]:
        """Apply candidates and report per-file results.

        Returns:
            InteractiveResolve: --resolve was also given
            End[int]: 1 if any resolution failed to apply, else 0
        """
        conflicts = ctx.state.runtime.conflicts
        candidates = [
            r for r in conflicts.resolutions
            if r.strategy is ResolutionStrategy.AI_SUGGESTED
        ]

        summary = ApplySummary()
        if candidates:
            summary = apply_resolutions(
                candidates, workdir=ctx.state.config.git.workdir
            )
        conflicts.summary = summary

        if conflicts.json_output:
            print(summary.model_dump_json(indent=2))
        else:
            print()
            print(f"{YELLOW}Applying AI Resolutions...{RESET}")
            if candidates:
                print(render_apply_summary(
                    summary, conflicts.context.merge_state
                ))
            else:
                print("-" * 40)
                print("No AI resolutions available to apply.")

        if conflicts.resolve:
            from mergemend.workflow.nodes.resolve import InteractiveResolve
            return InteractiveResolve()

        conflicts.status = "failed" if summary.failed else "complete"
        return End(1 if summary.failed else 0)
