"""Classify conflict sections and build the conflict report."""

from mergemend.conflict.models import (
    ConflictAnalysis,
    ConflictSection,
    ConflictSectionAnalysis,
    ConflictType,
    FileConflictAnalysis,
    RepoContext,
)

DESCRIPTIONS = {
    ConflictType.OURS_DELETED: (
        "Our side deleted this content, theirs modified it"
    ),
    ConflictType.THEIRS_DELETED: (
        "Their side deleted this content, ours modified it"
    ),
    ConflictType.SAME_CHANGE: "Both sides made identical changes",
    ConflictType.OVERLAPPING_CHANGES: (
        "Both sides modified the same lines differently"
    ),
    ConflictType.ADJACENT_CHANGES: (
        "Changes are adjacent and may be mergeable"
    ),
}


def is_blank(text: str) -> bool:
    """True for empty or whitespace-only text."""
    return not text.strip()


def content_lines(text: str) -> set[str]:
    """Non-empty lines of a text block."""
    return {line for line in text.split("\n") if line}


def classify(section: ConflictSection) -> tuple[ConflictType, str]:
    """Assign a conflict category to a section.

    Args:
        section: Parsed conflict section

    Returns:
        Tuple of (conflict type, human-readable description)
    """
    ours_blank = is_blank(section.ours)
    theirs_blank = is_blank(section.theirs)

    if ours_blank and not theirs_blank:
        conflict_type = ConflictType.OURS_DELETED
    elif theirs_blank and not ours_blank:
        conflict_type = ConflictType.THEIRS_DELETED
    elif section.ours == section.theirs:
        conflict_type = ConflictType.SAME_CHANGE
    elif content_lines(section.ours) & content_lines(section.theirs):
        conflict_type = ConflictType.OVERLAPPING_CHANGES
    else:
        conflict_type = ConflictType.ADJACENT_CHANGES

    return conflict_type, DESCRIPTIONS[conflict_type]


def analyze_section(section: ConflictSection) -> ConflictSectionAnalysis:
    """Build the report entry for one section."""
    conflict_type, description = classify(section)
    return ConflictSectionAnalysis(
        start_line=section.start_line,
        end_line=section.end_line,
        ours_label=section.ours_label,
        theirs_label=section.theirs_label,
        conflict_type=conflict_type,
        description=description,
    )


def analyze_conflicts(context: RepoContext) -> ConflictAnalysis:
    """Build a conflict report from a repository snapshot.

    The report is derived data; it is recomputed on every call and
    never stored.
    """
    files = [
        FileConflictAnalysis(
            path=conflicted.path,
            conflict_count=len(conflicted.sections),
            sections=[analyze_section(s) for s in conflicted.sections],
        )
        for conflicted in context.conflicted_files
    ]

    return ConflictAnalysis(
        merge_state=context.merge_state,
        total_conflicts=sum(f.conflict_count for f in files),
        conflicted_file_count=len(files),
        merge_message=context.merge_message,
        files=files,
    )
