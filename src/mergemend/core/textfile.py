"""Whole-file text access without newline translation.

``Path.read_text`` turns ``\\r\\n`` into ``\\n``. Conflict files are read
and written as raw UTF-8 instead so a CRLF file keeps its line endings
after a section is replaced.
"""

from pathlib import Path


def read_text(path: Path) -> str:
    """Read a file as UTF-8, keeping carriage returns."""
    return Path(path).read_bytes().decode("utf-8")


def write_text(path: Path, text: str) -> None:
    """Write text as UTF-8 exactly as given."""
    Path(path).write_bytes(text.encode("utf-8"))
