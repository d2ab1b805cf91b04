"""Rewrite conflicted files with chosen resolutions."""

from __future__ import annotations

from pathlib import Path

from mergemend.conflict.models import (
    ApplySummary,
    ConflictResolution,
    ConflictSection,
    FileApplyResult,
)
from mergemend.conflict.parser import OURS_MARKER, THEIRS_MARKER, marker_label
from mergemend.core.log import logger
from mergemend.core.textfile import read_text, write_text


def _label_matches(line: str, label: str) -> bool:
    return not label or marker_label(line) == label


def find_marker_pair(
    lines: list[str], section: ConflictSection
) -> tuple[int, int] | None:
    """Locate the marker lines of a section in the current file lines.

    If both recorded marker lines still hold markers, they are used
    directly. Otherwise the file is scanned: an opening marker matches
    when its label equals the section's ours label or when it sits on
    the recorded start line, and the closing marker is the next
    >>>>>>> after it whose label equals the theirs label or which sits
    on the recorded end line. An empty label on the section matches
    any marker.

    Args:
        lines: File content split on newlines
        section: Section recorded when the file was parsed

    Returns:
        Zero-based (start, end) indexes of the marker lines, or None
    """
    first, last = section.start_line - 1, section.end_line - 1
    if (
        0 <= first and last < len(lines)
        and lines[first].startswith(OURS_MARKER)
        and lines[last].startswith(THEIRS_MARKER)
        and not any(
            line.startswith(OURS_MARKER) for line in lines[first + 1:last]
        )
    ):
        return first, last

    # TODO: label matching can pick the wrong pair when several
    # sections share labels and the file was edited after parsing.
    start = None
    for index, line in enumerate(lines):
        if start is None:
            if line.startswith(OURS_MARKER) and (
                _label_matches(line, section.ours_label)
                or index + 1 == section.start_line
            ):
                start = index
        elif line.startswith(THEIRS_MARKER) and (
            _label_matches(line, section.theirs_label)
            or index + 1 == section.end_line
        ):
            return start, index
    return None


def replace_section(
    text: str, section: ConflictSection, resolved_text: str
) -> str | None:
    """Splice resolved text over a section's marker region.

    Returns:
        The new text, or None when the markers could not be found
    """
    lines = text.split("\n")
    pair = find_marker_pair(lines, section)
    if pair is None:
        return None

    start, end = pair
    lines[start:end + 1] = resolved_text.split("\n")
    return "\n".join(lines)


def _resolve_path(path: str, workdir: Path | None) -> Path:
    return Path(workdir) / path if workdir else Path(path)


def apply_resolution(
    resolution: ConflictResolution, workdir: Path | None = None
) -> bool:
    """Apply one resolution to its file.

    Args:
        resolution: Chosen resolution
        workdir: Directory the resolution path is relative to

    Returns:
        True if the file was rewritten, False if the file is missing,
        the markers were not found, or an I/O error occurred
    """
    file_path = _resolve_path(resolution.path, workdir)

    try:
        text = read_text(file_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read {file_path}: {e}")
        return False

    new_text = replace_section(
        text, resolution.section, resolution.resolved_text
    )
    if new_text is None or new_text == text:
        logger.info(
            f"No change made to {resolution.path}",
            path=resolution.path,
            start_line=resolution.section.start_line,
        )
        return False

    try:
        write_text(file_path, new_text)
    except OSError as e:
        logger.error(f"Failed to write {file_path}: {e}")
        return False

    logger.debug(
        f"Applied {resolution.strategy.value} to {resolution.path}",
        path=resolution.path,
        start_line=resolution.section.start_line,
    )
    return True


def apply_file_resolutions(
    path: str,
    resolutions: list[ConflictResolution],
    workdir: Path | None = None,
) -> FileApplyResult:
    """Apply several resolutions to the same file.

    Resolutions are applied from the bottom of the file upwards
    (descending start line) so that every replacement only shifts
    lines below the sections still waiting to be applied. The file is
    read once and written once.

    Args:
        path: File the resolutions target; others are ignored
        resolutions: Chosen resolutions, at most one per section
        workdir: Directory the path is relative to

    Returns:
        Counts of applied and failed sections
    """
    ordered = sorted(
        (r for r in resolutions if r.path == path),
        key=lambda r: r.section.start_line,
        reverse=True,
    )
    file_path = _resolve_path(path, workdir)

    try:
        text = read_text(file_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read {file_path}: {e}")
        return FileApplyResult(path=path, failed=len(ordered), error=str(e))

    applied = 0
    failed = 0
    for resolution in ordered:
        new_text = replace_section(
            text, resolution.section, resolution.resolved_text
        )
        if new_text is None:
            logger.warning(
                f"Conflict markers not found in {path}",
                path=path,
                start_line=resolution.section.start_line,
                end_line=resolution.section.end_line,
            )
            failed += 1
            continue
        text = new_text
        applied += 1

    if applied:
        try:
            write_text(file_path, text)
        except OSError as e:
            logger.error(f"Failed to write {file_path}: {e}")
            return FileApplyResult(
                path=path, failed=len(ordered), error=str(e)
            )

    return FileApplyResult(path=path, applied=applied, failed=failed)


def apply_resolutions(
    resolutions: list[ConflictResolution], workdir: Path | None = None
) -> ApplySummary:
    """Apply chosen resolutions grouped by file.

    Files are handled independently: a failure in one file does not
    roll back files already written.
    """
    grouped: dict[str, list[ConflictResolution]] = {}
    for resolution in resolutions:
        grouped.setdefault(resolution.path, []).append(resolution)

    summary = ApplySummary()
    for path, group in grouped.items():
        with logger.span("Applying resolutions", path=path, count=len(group)):
            result = apply_file_resolutions(path, group, workdir)
        summary.files.append(result)
        logger.info(
            f"{path}: {result.applied} applied, {result.failed} failed",
            path=path,
            applied=result.applied,
            failed=result.failed,
        )

    return summary
