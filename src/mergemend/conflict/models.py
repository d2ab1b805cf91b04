"""Conflict, resolution and repository snapshot models."""

from __future__ import annotations

from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


class MergeState(str, Enum):
    """Which multi-step git operation is in progress, if any."""

    NONE = "none"
    MERGING = "merging"
    REBASING = "rebasing"
    CHERRY_PICKING = "cherry_picking"
    REVERTING = "reverting"

    @property
    def continue_command(self) -> str:
        """Git subcommand that finishes this operation."""
        return {
            MergeState.MERGING: "merge --continue",
            MergeState.REBASING: "rebase --continue",
            MergeState.CHERRY_PICKING: "cherry-pick --continue",
            MergeState.REVERTING: "revert --continue",
        }.get(self, "commit")


class ConflictType(str, Enum):
    """Semantic category of a single conflict section."""

    OURS_DELETED = "ours_deleted"
    THEIRS_DELETED = "theirs_deleted"
    SAME_CHANGE = "same_change"
    OVERLAPPING_CHANGES = "overlapping_changes"
    ADJACENT_CHANGES = "adjacent_changes"


class ResolutionStrategy(str, Enum):
    """How a candidate resolution was produced."""

    ACCEPT_OURS = "accept_ours"
    ACCEPT_THEIRS = "accept_theirs"
    COMBINE_BOTH = "combine_both"
    AI_SUGGESTED = "ai_suggested"
    MANUAL = "manual"


class ResolutionConfidence(str, Enum):
    """Confidence reported by the model collaborator."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConflictSection(BaseModel):
    """One <<<<<<< ... >>>>>>> region of a file.

    Line numbers are 1-based and point at the marker lines
    themselves. The section describes one specific version of the
    file and goes stale if the file changes afterwards.
    """

    model_config = ConfigDict(frozen=True)

    start_line: int
    end_line: int
    ours_label: str = ""
    theirs_label: str = ""
    ours: str = ""
    base: str = ""
    theirs: str = ""

    @model_validator(mode="after")
    def _check_line_order(self) -> ConflictSection:
        if self.start_line >= self.end_line:
            raise ValueError(
                f"start_line ({self.start_line}) must precede "
                f"end_line ({self.end_line})"
            )
        return self


class ConflictedFile(BaseModel):
    """A conflicted path and the sections found in it, top to bottom."""

    model_config = ConfigDict(frozen=True)

    path: str
    sections: list[ConflictSection] = Field(default_factory=list)

    @property
    def has_actionable_conflicts(self) -> bool:
        """False when git lists the file but no markers were parsed."""
        return bool(self.sections)


class RepoContext(BaseModel):
    """Snapshot of repository state at one point in time."""

    model_config = ConfigDict(frozen=True)

    current_branch: str = ""
    status: str = ""
    last_commit: str = ""
    remotes: str = ""
    merge_state: MergeState = MergeState.NONE
    conflicted_files: list[ConflictedFile] = Field(default_factory=list)
    merge_head: str = ""
    merge_message: str = ""

    @model_validator(mode="after")
    def _no_conflicts_without_merge(self) -> RepoContext:
        if self.merge_state is MergeState.NONE and self.conflicted_files:
            raise ValueError(
                "conflicted_files must be empty when no merge is in "
                "progress"
            )
        return self


class ConflictSectionAnalysis(BaseModel):
    """Classification of one conflict section."""

    start_line: int
    end_line: int
    ours_label: str
    theirs_label: str
    conflict_type: ConflictType
    description: str


class FileConflictAnalysis(BaseModel):
    """Per-file part of a conflict report."""

    path: str
    conflict_count: int
    sections: list[ConflictSectionAnalysis] = Field(default_factory=list)


class ConflictAnalysis(BaseModel):
    """Conflict report for the whole working tree."""

    merge_state: MergeState
    total_conflicts: int
    conflicted_file_count: int
    merge_message: str = ""
    files: list[FileConflictAnalysis] = Field(default_factory=list)


class AiResolution(BaseModel):
    """Structured answer from the model collaborator."""

    resolved_text: str = Field(
        description=(
            "Replacement text for the whole conflict region, without "
            "any conflict markers"
        )
    )
    explanation: str = Field(
        description="One or two sentences on how both sides were merged"
    )
    confidence: ResolutionConfidence = Field(
        default=ResolutionConfidence.LOW,
        description="How confident the merge is correct: low, medium, high",
    )


class ConflictResolution(BaseModel):
    """Candidate replacement for exactly one section of one file."""

    model_config = ConfigDict(frozen=True)

    path: str
    section: ConflictSection
    strategy: ResolutionStrategy
    description: str
    resolved_text: str
    confidence: ResolutionConfidence | None = None


class FileApplyResult(BaseModel):
    """Outcome of applying a group of resolutions to one file."""

    path: str
    applied: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.failed == 0


class ApplySummary(BaseModel):
    """Outcome of applying resolutions across files."""

    files: list[FileApplyResult] = Field(default_factory=list)

    @computed_field
    @property
    def applied(self) -> int:
        return sum(f.applied for f in self.files)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(f.failed for f in self.files)


__all__ = [
    "MergeState",
    "ConflictType",
    "ResolutionStrategy",
    "ResolutionConfidence",
    "ConflictSection",
    "ConflictedFile",
    "RepoContext",
    "ConflictSectionAnalysis",
    "FileConflictAnalysis",
    "ConflictAnalysis",
    "AiResolution",
    "ConflictResolution",
    "FileApplyResult",
    "ApplySummary",
]
