"""InteractiveResolve node - let the user pick a side per section."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from mergemend.conflict.models import (
    ConflictResolution,
    ConflictSection,
    ResolutionStrategy,
)
from mergemend.conflict.parser import parse_file
from mergemend.conflict.patch import apply_resolution
from mergemend.conflict.strategy import combine_text
from mergemend.core.config import State
from mergemend.core.log import logger
from mergemend.report import (
    BLUE,
    CYAN,
    GREEN,
    RED,
    RESET,
    YELLOW,
    next_steps,
    preview,
)

OPTIONS = [
    "1. Accept ours",
    "2. Accept theirs",
    "3. Combine (ours + theirs)",
    "4. Skip this conflict",
]


def chosen_text(section: ConflictSection, choice: str) -> str | None:
    """Replacement text for a menu choice, None to skip."""
    return {
        "1": section.ours,
        "2": section.theirs,
        "3": combine_text(section),
    }.get(choice.strip())


def shifted(section: ConflictSection, offset: int) -> ConflictSection:
    """Section moved by offset lines after an earlier edit."""
    if not offset:
        return section
    return section.model_copy(update={
        "start_line": section.start_line + offset,
        "end_line": section.end_line + offset,
    })


@dataclass
class InteractiveResolve(BaseNode[State, None, int]):
    """Prompt for each section and apply the choice immediately."""

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        """Walk every conflicted file top to bottom.

        Files are re-parsed first so that earlier --apply edits are
        taken into account.

        Returns:
            End[int]: 1 if an earlier --apply step had failures, else 0
        """
        conflicts = ctx.state.runtime.conflicts
        workdir = ctx.state.config.git.workdir

        print(f"{YELLOW}Interactive Resolution Mode{RESET}")
        print("For each conflict, choose a resolution strategy:")
        print()

        for conflicted in conflicts.context.conflicted_files:
            print(f"{CYAN}{conflicted.path}{RESET}")
            if self._resolve_file(conflicted.path, workdir):
                conflicts.resolved_files.append(conflicted.path)

        print()
        if conflicts.resolved_files:
            print("Resolved files:")
            for path in conflicts.resolved_files:
                print(f"  {path}")
            print("\n".join(next_steps(
                conflicts.resolved_files, conflicts.context.merge_state
            )))
        else:
            print("No conflicts were resolved.")

        summary = conflicts.summary
        failed = summary is not None and summary.failed > 0
        conflicts.status = "failed" if failed else "complete"
        return End(1 if failed else 0)

    def _resolve_file(self, path: str, workdir) -> bool:
        """Prompt for every section of one file.

        Returns:
            True if at least one section was resolved
        """
        resolved = False
        offset = 0
        for section in parse_file(workdir / path):
            section = shifted(section, offset)
            print(
                f"\n  Conflict at lines "
                f"{section.start_line}-{section.end_line}:"
            )
            print(f"  {GREEN}Ours ({section.ours_label}):{RESET}")
            print(preview(section.ours))
            print(f"  {BLUE}Theirs ({section.theirs_label}):{RESET}")
            print(preview(section.theirs))
            print()
            print("  Options:")
            for option in OPTIONS:
                print(f"    {option}")

            try:
                choice = input("  Choose [1-4]: ")
            except EOFError:
                choice = ""
            text = chosen_text(section, choice)

            if text is None:
                print(f"  {YELLOW}Skipped.{RESET}")
                continue

            resolution = ConflictResolution(
                path=path,
                section=section,
                strategy=ResolutionStrategy.MANUAL,
                description="Manual resolution",
                resolved_text=text,
            )
            if apply_resolution(resolution, workdir=workdir):
                print(f"  {GREEN}Resolution applied.{RESET}")
                logger.info(
                    f"Manual resolution applied to {path}",
                    path=path,
                    start_line=section.start_line,
                )
                height = section.end_line - section.start_line + 1
                offset += len(text.split("\n")) - height
                resolved = True
            else:
                print(f"  {RED}Failed to apply resolution.{RESET}")
        return resolved
