"""Read-only inspection of a git working tree."""

from __future__ import annotations

from pathlib import Path

from mergemend.conflict.models import (
    ConflictedFile,
    MergeState,
    RepoContext,
)
from mergemend.conflict.parser import parse_file
from mergemend.core.log import logger
from mergemend.core.runner import Runner

DEFAULT_COMMANDS = {
    "git_dir": "git rev-parse --git-dir",
    "current_branch": "git rev-parse --abbrev-ref HEAD",
    "status_porcelain": "git -c core.quotePath=false status --porcelain",
    "last_commit": "git log -1 --pretty=%B",
    "remotes": "git remote -v",
    "rev_parse": "git rev-parse {ref}",
}

# Porcelain XY codes of unmerged paths
UNMERGED_CODES = {"UU", "AA", "DD", "AU", "UA", "DU", "UD"}

# Marker files in the git directory, in detection priority order
STATE_MARKERS = [
    (MergeState.MERGING, ["MERGE_HEAD"]),
    (MergeState.REBASING, ["rebase-merge", "rebase-apply"]),
    (MergeState.CHERRY_PICKING, ["CHERRY_PICK_HEAD"]),
    (MergeState.REVERTING, ["REVERT_HEAD"]),
]

# Single-character escapes git uses inside quoted paths
C_ESCAPES = {
    "a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13,
    '"': 34, "\\": 92,
}


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of a path.

    Quoted paths escape control characters, quotes and backslashes,
    and (with core.quotePath on) every non-ASCII byte as octal.
    """
    if len(path) < 2 or not (path[0] == path[-1] == '"'):
        return path

    body = path[1:-1]
    raw = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "\\" or i + 1 == len(body):
            raw += char.encode("utf-8")
            i += 1
            continue
        escape = body[i + 1]
        octal = body[i + 1:i + 4]
        if escape in C_ESCAPES:
            raw.append(C_ESCAPES[escape])
            i += 2
        elif len(octal) == 3 and all(c in "01234567" for c in octal):
            raw.append(int(octal, 8) & 0xFF)
            i += 4
        else:
            raw += char.encode("utf-8")
            i += 1
    return raw.decode("utf-8", errors="surrogateescape")


def unmerged_paths(status: str) -> list[str]:
    """Paths git status --porcelain reports as unmerged."""
    paths = []
    for line in status.split("\n"):
        if len(line) >= 3 and line[:2] in UNMERGED_CODES:
            paths.append(unquote_path(line[3:].rstrip("\r")))
    return paths


class GitInspector:
    """Run read-only git queries against one working tree.

    Every query degrades to an empty result when git is missing or
    the directory is not a repository; nothing here raises for those
    cases.
    """

    def __init__(
        self,
        workdir: Path,
        commands: dict[str, str] | None = None,
        runner: Runner | None = None,
    ):
        """Initialize inspector.

        Args:
            workdir: Working tree to inspect
            commands: Git command templates (config.commands["git"]);
                missing entries fall back to built-in defaults
            runner: Command runner (a new Runner when omitted)
        """
        self.workdir = Path(workdir)
        self.commands = {**DEFAULT_COMMANDS, **(commands or {})}
        self.runner = runner or Runner()

    def run_git(self, name: str, **params) -> str:
        """Run a named git query; stdout without trailing newlines.

        Leading whitespace is kept; porcelain status lines start with it.

        Returns:
            Command output, or "" on any failure
        """
        command = self.commands[name].format(**params)
        try:
            result = self.runner.execute(
                command, cwd=self.workdir, check=False
            )
        except Exception as e:
            logger.debug(f"git query '{name}' failed: {e}")
            return ""

        if result.exited != 0:
            logger.debug(
                f"git query '{name}' exited with {result.exited}",
                stderr=result.stderr.strip(),
            )
            return ""
        return result.stdout.rstrip("\r\n")

    def git_dir(self) -> Path | None:
        """Absolute path of the repository's git directory."""
        output = self.run_git("git_dir")
        if not output:
            return None
        path = Path(output)
        return path if path.is_absolute() else self.workdir / path

    def detect_merge_state(self) -> MergeState:
        """Which merge-like operation is in progress.

        Checks marker files in priority order; the first one present
        wins. Failures are reported as MergeState.NONE.
        """
        git_dir = self.git_dir()
        if git_dir is None:
            return MergeState.NONE

        try:
            for state, markers in STATE_MARKERS:
                if any((git_dir / marker).exists() for marker in markers):
                    return state
        except OSError as e:
            logger.debug(f"Merge state detection failed: {e}")

        return MergeState.NONE

    def conflicted_files(
        self, status: str | None = None
    ) -> list[ConflictedFile]:
        """Unmerged files with their parsed conflict sections.

        Files that no longer exist in the working tree (for example
        deleted on one side) are listed with no sections.
        """
        if status is None:
            status = self.run_git("status_porcelain")

        files = []
        for path in unmerged_paths(status):
            file_path = self.workdir / path
            sections = parse_file(file_path) if file_path.is_file() else []
            logger.debug(
                f"Found {len(sections)} conflict(s) in {path}",
                path=path,
            )
            files.append(ConflictedFile(path=path, sections=sections))
        return files

    def merge_message(self) -> str:
        """Contents of MERGE_MSG, or "" when absent or unreadable."""
        git_dir = self.git_dir()
        if git_dir is None:
            return ""
        try:
            return (git_dir / "MERGE_MSG").read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return ""

    def build_repo_context(self) -> RepoContext:
        """Snapshot branch, status, remotes and any merge in progress."""
        with logger.span("Inspecting repository", workdir=str(self.workdir)):
            status = self.run_git("status_porcelain")
            merge_state = self.detect_merge_state()

            fields = {}
            if merge_state is not MergeState.NONE:
                fields = {
                    "conflicted_files": self.conflicted_files(status),
                    "merge_head": self.run_git(
                        "rev_parse", ref="MERGE_HEAD"
                    ),
                    "merge_message": self.merge_message(),
                }

            context = RepoContext(
                current_branch=self.run_git("current_branch"),
                status=status,
                last_commit=self.run_git("last_commit"),
                remotes=self.run_git("remotes"),
                merge_state=merge_state,
                **fields,
            )

        logger.info(
            f"Merge state: {context.merge_state.value}",
            branch=context.current_branch,
            conflicted_files=len(context.conflicted_files),
        )
        return context
