"""Render conflict reports and resolution results for the terminal."""

from __future__ import annotations

from itertools import groupby

from mergemend.conflict.models import (
    ApplySummary,
    ConflictAnalysis,
    ConflictResolution,
    ConflictType,
    MergeState,
    ResolutionStrategy,
)

RESET = "\033[0m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"

TYPE_COLORS = {
    ConflictType.SAME_CHANGE: GREEN,
    ConflictType.ADJACENT_CHANGES: YELLOW,
}

STRATEGY_COLORS = {
    ResolutionStrategy.AI_SUGGESTED: MAGENTA,
    ResolutionStrategy.ACCEPT_OURS: GREEN,
    ResolutionStrategy.ACCEPT_THEIRS: BLUE,
}

PREVIEW_LINES = 5


def preview(content: str, indent: str = "    ") -> str:
    """First few lines of a text block, indented."""
    if not content:
        return f"{indent}(empty)"

    lines = content.split("\n")
    out = [f"{indent}{line}" for line in lines[:PREVIEW_LINES]]
    if len(lines) > PREVIEW_LINES:
        out.append(f"{indent}... ({len(lines) - PREVIEW_LINES} more lines)")
    return "\n".join(out)


def render_analysis(analysis: ConflictAnalysis) -> str:
    """Human-readable conflict report."""
    out = [
        f"{YELLOW}Merge State:{RESET} {analysis.merge_state.value}",
        f"{YELLOW}Total Conflicts:{RESET} {analysis.total_conflicts} "
        f"in {analysis.conflicted_file_count} file(s)",
        "",
    ]
    for file in analysis.files:
        out.append(
            f"{CYAN}{file.path}{RESET} ({file.conflict_count} conflict(s))"
        )
        for section in file.sections:
            color = TYPE_COLORS.get(section.conflict_type, RED)
            out += [
                f"  Lines {section.start_line}-{section.end_line}: "
                f"{color}{section.conflict_type.value}{RESET}",
                f"    {section.description}",
                f"    Ours: {section.ours_label} | "
                f"Theirs: {section.theirs_label}",
            ]
        out.append("")
    return "\n".join(out)


def render_suggestions(resolutions: list[ConflictResolution]) -> str:
    """Candidate resolutions grouped by file and section."""
    out = ["-" * 40]
    for path, by_file in groupby(resolutions, key=lambda r: r.path):
        out.append(f"{CYAN}{path}{RESET}")
        for (start, end), by_section in groupby(
            by_file, key=lambda r: (r.section.start_line, r.section.end_line)
        ):
            out.append(f"  Lines {start}-{end}:")
            for number, resolution in enumerate(by_section, start=1):
                color = STRATEGY_COLORS.get(resolution.strategy, YELLOW)
                out.append(
                    f"    {number}. {color}[{resolution.strategy.value}]"
                    f"{RESET} {resolution.description}"
                )
        out.append("")
    return "\n".join(out)


def render_apply_summary(
    summary: ApplySummary, merge_state: MergeState
) -> str:
    """Per-file apply results, totals and next steps."""
    out = ["-" * 40]
    for result in summary.files:
        if result.error is None and result.applied:
            status = f"{GREEN}{result.applied} conflict(s) resolved{RESET}"
            if result.failed:
                status += f", {RED}{result.failed} failed{RESET}"
        else:
            status = f"{RED}Failed to apply{RESET}"
        out.append(f"  {result.path}: {status}")

    out += ["", f"Applied: {summary.applied}, Failed: {summary.failed}"]

    if summary.failed:
        out += [
            "",
            "Some conflicts could not be located; the files may have "
            "changed since analysis. Re-run to analyze again.",
        ]
    if summary.applied:
        out += next_steps(
            [r.path for r in summary.files if r.applied], merge_state
        )
    return "\n".join(out)


def next_steps(paths: list[str], merge_state: MergeState) -> list[str]:
    """Instructions for finishing the operation after resolving."""
    quoted = " ".join(f'"{p}"' for p in paths)
    return [
        "",
        "Next steps:",
        "  1. Review the resolved files",
        f"  2. git add {quoted}",
        f"  3. git {merge_state.continue_command}",
    ]
