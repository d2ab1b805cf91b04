"""Parse git conflict markers into structured sections.

The parser is a small finite state machine. ``step`` maps the current
state and one line to the next state plus the action the driver should
take, so the transition table can be tested line by line without any
file I/O. ``parse`` drives the machine over a whole text and collects
the finished sections.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from mergemend.conflict.models import ConflictSection
from mergemend.core.log import logger
from mergemend.core.textfile import read_text

OURS_MARKER = "<<<<<<<"
BASE_MARKER = "|||||||"
SEPARATOR_MARKER = "======="
THEIRS_MARKER = ">>>>>>>"


class ParseState(Enum):
    """Where the parser is relative to a conflict region."""

    OUTSIDE = "outside"
    OURS = "ours"
    BASE = "base"
    THEIRS = "theirs"


class Action(Enum):
    """Side effect requested by a state transition."""

    OPEN = "open"
    BASE = "base"
    SEPARATOR = "separator"
    CLOSE = "close"
    APPEND = "append"
    SKIP = "skip"


def marker_label(line: str) -> str:
    """Return the text following a 7-character conflict marker."""
    return line[len(OURS_MARKER):].strip()


def step(state: ParseState, line: str) -> tuple[ParseState, Action]:
    """Advance the state machine by one line.

    Args:
        state: Current parser state
        line: Line being consumed (without trailing newline)

    Returns:
        Tuple of (next state, action for the driver)
    """
    # A new opening marker always starts a fresh section, dropping
    # any unterminated one that came before it.
    if line.startswith(OURS_MARKER):
        return ParseState.OURS, Action.OPEN

    if state is ParseState.OUTSIDE:
        return state, Action.SKIP

    if line.startswith(BASE_MARKER):
        return ParseState.BASE, Action.BASE
    if line.startswith(SEPARATOR_MARKER):
        return ParseState.THEIRS, Action.SEPARATOR
    if line.startswith(THEIRS_MARKER):
        return ParseState.OUTSIDE, Action.CLOSE

    return state, Action.APPEND


def parse(text: str) -> list[ConflictSection]:
    """Extract conflict sections from file content.

    Lines are split on ``\\n`` only; carriage returns stay part of the
    line content so CRLF files round-trip unchanged through patching.

    Args:
        text: Full file content

    Returns:
        Sections in the order they appear in the file. Sections that
        are never closed by a >>>>>>> marker are not returned.
    """
    sections = []
    state = ParseState.OUTSIDE
    buffers: dict[ParseState, list[str]] = {}
    start_line = 0
    ours_label = ""

    for index, line in enumerate(text.split("\n")):
        previous = state
        state, action = step(state, line)

        if action is Action.OPEN:
            start_line = index + 1
            ours_label = marker_label(line)
            buffers = {
                ParseState.OURS: [],
                ParseState.BASE: [],
                ParseState.THEIRS: [],
            }
        elif action is Action.APPEND:
            buffers[previous].append(line)
        elif action is Action.CLOSE:
            sections.append(ConflictSection(
                start_line=start_line,
                end_line=index + 1,
                ours_label=ours_label,
                theirs_label=marker_label(line),
                ours="\n".join(buffers[ParseState.OURS]),
                base="\n".join(buffers[ParseState.BASE]),
                theirs="\n".join(buffers[ParseState.THEIRS]),
            ))

    if state is not ParseState.OUTSIDE:
        logger.debug(
            "Dropping unterminated conflict section",
            start_line=start_line,
        )

    return sections


def parse_file(path: Path) -> list[ConflictSection]:
    """Read a file and parse its conflict markers.

    Read errors are logged and produce an empty list; they never
    propagate to the caller.
    """
    try:
        text = read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(
            f"Could not read {path} for conflict markers: {e}",
            path=str(path),
        )
        return []
    return parse(text)
