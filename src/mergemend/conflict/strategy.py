"""Generate candidate resolutions for conflict sections."""

from __future__ import annotations

import asyncio
from pathlib import PurePath
from typing import Protocol, runtime_checkable

from mergemend.conflict.classifier import is_blank
from mergemend.conflict.models import (
    AiResolution,
    ConflictedFile,
    ConflictResolution,
    ConflictSection,
    RepoContext,
    ResolutionStrategy,
)
from mergemend.core.log import logger

DEFAULT_TIMEOUT = 120.0


@runtime_checkable
class ConflictCollaborator(Protocol):
    """Anything that can propose a merged version of a section."""

    async def resolve_conflict(
        self, section: ConflictSection, path: str, extension: str
    ) -> AiResolution:
        """Return a proposed resolution. May raise any exception."""
        ...


def combine_text(section: ConflictSection) -> str:
    """Naive concatenation, ours first."""
    return section.ours + "\n" + section.theirs


def smart_merge(section: ConflictSection) -> str:
    """Union both sides line by line.

    Lines present on both sides come first (in the order they appear
    on our side, without duplicates), then lines only we have, then
    lines only they have.
    """
    ours_lines = section.ours.split("\n")
    theirs_lines = section.theirs.split("\n")
    theirs_set = set(theirs_lines)

    common = list(dict.fromkeys(
        line for line in ours_lines if line in theirs_set
    ))
    common_set = set(common)
    ours_unique = [line for line in ours_lines if line not in common_set]
    theirs_unique = [
        line for line in theirs_lines if line not in common_set
    ]

    return "\n".join(common + ours_unique + theirs_unique)


def smart_merge_resolution(
    path: str, section: ConflictSection
) -> ConflictResolution | None:
    """Heuristic candidate, or None when it adds nothing over combine."""
    merged = smart_merge(section)
    if merged == combine_text(section):
        return None

    return ConflictResolution(
        path=path,
        section=section,
        strategy=ResolutionStrategy.AI_SUGGESTED,
        description="Smart merge (combines unique changes from both sides)",
        resolved_text=merged,
    )


def resolution_commands(resolution: ConflictResolution) -> list[str]:
    """Git commands to run once a resolution has been applied."""
    return [f'git add "{resolution.path}"']


class ResolutionStrategyGenerator:
    """Produce ordered candidate resolutions for conflict sections.

    Candidates per section are always in this order: accept ours,
    accept theirs, combine both (when both sides have content), then
    one model-authored or smart-merge candidate (when applicable).
    Generating candidates never touches the file system.
    """

    def __init__(
        self,
        collaborator: ConflictCollaborator | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        """Initialize generator.

        Args:
            collaborator: Optional model collaborator. When None the
                smart-merge heuristic is used instead.
            timeout: Seconds to wait for the collaborator per section,
                or None to wait indefinitely
        """
        self.collaborator = collaborator
        self.timeout = timeout

    async def suggest_for_section(
        self, path: str, section: ConflictSection
    ) -> list[ConflictResolution]:
        """Candidate resolutions for one section."""
        resolutions = [
            ConflictResolution(
                path=path,
                section=section,
                strategy=ResolutionStrategy.ACCEPT_OURS,
                description=f"Accept our changes ({section.ours_label})",
                resolved_text=section.ours,
            ),
            ConflictResolution(
                path=path,
                section=section,
                strategy=ResolutionStrategy.ACCEPT_THEIRS,
                description=(
                    f"Accept their changes ({section.theirs_label})"
                ),
                resolved_text=section.theirs,
            ),
        ]

        if is_blank(section.ours) or is_blank(section.theirs):
            return resolutions

        resolutions.append(ConflictResolution(
            path=path,
            section=section,
            strategy=ResolutionStrategy.COMBINE_BOTH,
            description="Combine both changes (ours first, then theirs)",
            resolved_text=combine_text(section),
        ))

        suggestion = None
        if self.collaborator is not None:
            suggestion = await self._ask_collaborator(path, section)
        if suggestion is None:
            suggestion = smart_merge_resolution(path, section)
        if suggestion is not None:
            resolutions.append(suggestion)

        return resolutions

    async def _ask_collaborator(
        self, path: str, section: ConflictSection
    ) -> ConflictResolution | None:
        """Call the collaborator once; None on any failure."""
        extension = PurePath(path).suffix
        try:
            answer = await asyncio.wait_for(
                self.collaborator.resolve_conflict(section, path, extension),
                timeout=self.timeout,
            )
            result = AiResolution.model_validate(answer, from_attributes=True)
        except Exception as e:
            logger.warning(
                f"Model resolution failed for {path}:"
                f"{section.start_line}, using smart merge instead",
                path=path,
                start_line=section.start_line,
                exception_type=type(e).__name__,
                exception_message=str(e),
            )
            return None

        confidence = result.confidence.value
        return ConflictResolution(
            path=path,
            section=section,
            strategy=ResolutionStrategy.AI_SUGGESTED,
            description=f"AI suggestion ({confidence}): {result.explanation}",
            resolved_text=result.resolved_text,
            confidence=result.confidence,
        )

    async def suggest_for_file(
        self, conflicted: ConflictedFile
    ) -> list[ConflictResolution]:
        """Candidate resolutions for every section of one file."""
        resolutions = []
        for section in conflicted.sections:
            resolutions.extend(
                await self.suggest_for_section(conflicted.path, section)
            )
        return resolutions

    async def suggest(
        self, context: RepoContext
    ) -> list[ConflictResolution]:
        """Candidate resolutions for every conflicted file."""
        resolutions = []
        for conflicted in context.conflicted_files:
            with logger.span(
                "Suggesting resolutions",
                path=conflicted.path,
                sections=len(conflicted.sections),
            ):
                resolutions.extend(await self.suggest_for_file(conflicted))
        return resolutions
