"""Tests for the conflicts command workflow."""

import asyncio
import json
import os

import pytest

from mergemend.command.conflicts import ConflictsCommand
from mergemend.conflict.models import (
    AiResolution,
    ConflictedFile,
    MergeState,
    RepoContext,
)
from mergemend.conflict.parser import parse_file
from mergemend.core.config import State
from mergemend.workflow.graph import create_workflow
from mergemend.workflow.nodes import suggest as suggest_node

OVERLAP = (
    "top\n"
    "<<<<<<< HEAD\nx\ny\n=======\nx\nz\n>>>>>>> feature\n"
    "middle\n"
    "<<<<<<< HEAD\nfoo\n=======\nbar\n>>>>>>> feature\n"
    "bottom\n"
)
DELETED = "<<<<<<< HEAD\n=======\nnew content\n>>>>>>> feature\n"


class StubInspector:
    """GitInspector replacement returning a prepared context."""

    context = RepoContext()

    def __init__(self, workdir, commands=None, runner=None):
        self.workdir = workdir

    def build_repo_context(self):
        return StubInspector.context


@pytest.fixture
def repo(tmp_path, monkeypatch, argv):
    """Working tree with two conflicted files and a stubbed inspector."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "mergemend.core.yaml_settings.user_config_dir",
        lambda *args, **kwargs: str(tmp_path / "user-config"),
    )
    for name in list(os.environ):
        if name.startswith("MERGEMEND_"):
            monkeypatch.delenv(name)
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_bytes(OVERLAP.encode())
    (tmp_path / "notes.txt").write_bytes(DELETED.encode())

    StubInspector.context = RepoContext(
        current_branch="main",
        merge_state=MergeState.MERGING,
        conflicted_files=[
            ConflictedFile(
                path="src/app.py",
                sections=parse_file(tmp_path / "src" / "app.py"),
            ),
            ConflictedFile(
                path="notes.txt",
                sections=parse_file(tmp_path / "notes.txt"),
            ),
        ],
    )
    monkeypatch.setattr(
        "mergemend.workflow.nodes.inspect_repository.GitInspector",
        StubInspector,
    )
    return tmp_path


def make_state(workdir, model=None):
    return State(config={
        "git": {"workdir": str(workdir)},
        "llm": {"model": model},
    })


def run(command, state):
    return asyncio.run(command.run_workflow(state))


def test_no_merge_in_progress(repo, capsys):
    StubInspector.context = RepoContext(status=" M a.txt")
    state = make_state(repo)

    assert run(ConflictsCommand(), state) == 0

    assert capsys.readouterr().out.strip() == "No merge in progress."
    assert state.runtime.conflicts.status == "complete"


def test_merge_without_conflicts(repo, capsys):
    StubInspector.context = RepoContext(merge_state=MergeState.REBASING)

    assert run(ConflictsCommand(), make_state(repo)) == 0

    out = capsys.readouterr().out
    assert "No conflicts detected" in out
    assert "git rebase --continue" in out


def test_report_lists_sections_and_hints(repo, capsys):
    state = make_state(repo)

    assert run(ConflictsCommand(), state) == 0

    out = capsys.readouterr().out
    assert "Total Conflicts:\x1b[0m 3 in 2 file(s)" in out
    assert "src/app.py" in out
    assert "overlapping_changes" in out
    assert "ours_deleted" in out
    assert "Use --resolve" in out
    assert state.runtime.conflicts.analysis.total_conflicts == 3
    assert (repo / "src" / "app.py").read_bytes() == OVERLAP.encode()


def test_file_filter(repo, capsys):
    state = make_state(repo)

    assert run(ConflictsCommand(file="notes"), state) == 0

    out = capsys.readouterr().out
    assert "1 in 1 file(s)" in out
    assert [f.path for f in state.runtime.conflicts.context.conflicted_files
            ] == ["notes.txt"]


def test_file_filter_without_match(repo, capsys):
    assert run(ConflictsCommand(file="nothing"), make_state(repo)) == 1

    err = capsys.readouterr().err
    assert "No conflicts found in files matching: nothing" in err


def test_json_report(repo, capsys):
    assert run(ConflictsCommand(json_output=True), make_state(repo)) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["merge_state"] == "merging"
    assert report["total_conflicts"] == 3
    assert report["files"][0]["sections"][0]["conflict_type"] == (
        "overlapping_changes"
    )


def test_suggest_lists_candidates_without_model(repo, capsys):
    state = make_state(repo)

    assert run(ConflictsCommand(suggest=True), state) == 0

    out = capsys.readouterr().out
    assert "Lines 2-8:" in out
    assert "[accept_ours]" in out
    assert "[ai_suggested]\x1b[0m Smart merge" in out
    strategies = [
        r.strategy.value for r in state.runtime.conflicts.resolutions
    ]
    assert strategies == [
        "accept_ours", "accept_theirs", "combine_both", "ai_suggested",
        "accept_ours", "accept_theirs", "combine_both",
        "accept_ours", "accept_theirs",
    ]
    assert (repo / "src" / "app.py").read_bytes() == OVERLAP.encode()


def test_suggest_json(repo, capsys):
    assert run(
        ConflictsCommand(suggest=True, json_output=True), make_state(repo)
    ) == 0

    out = capsys.readouterr().out
    decoder = json.JSONDecoder()
    _, end = decoder.raw_decode(out)
    suggestions, _ = decoder.raw_decode(out[end:].lstrip())
    assert suggestions[0]["strategy"] == "accept_ours"
    assert suggestions[0]["path"] == "src/app.py"


def test_apply_writes_suggested_resolutions(repo, capsys):
    state = make_state(repo)

    assert run(ConflictsCommand(apply=True), state) == 0

    out = capsys.readouterr().out
    assert "Applied: 1, Failed: 0" in out
    assert 'git add "src/app.py"' in out
    assert "git merge --continue" in out
    assert (repo / "src" / "app.py").read_bytes() == (
        "top\nx\ny\nz\nmiddle\n"
        "<<<<<<< HEAD\nfoo\n=======\nbar\n>>>>>>> feature\n"
        "bottom\n"
    ).encode()
    assert (repo / "notes.txt").read_bytes() == DELETED.encode()


def test_apply_json_prints_only_json(repo, capsys):
    assert run(
        ConflictsCommand(apply=True, json_output=True), make_state(repo)
    ) == 0

    out = capsys.readouterr().out
    decoder = json.JSONDecoder()
    report, end = decoder.raw_decode(out)
    rest = out[end:].lstrip()
    summary, end = decoder.raw_decode(rest)
    assert rest[end:].strip() == ""
    assert report["total_conflicts"] == 3
    assert summary["applied"] == 1
    assert summary["failed"] == 0
    assert summary["files"] == [
        {"path": "src/app.py", "applied": 1, "failed": 0, "error": None}
    ]
    assert "\033[" not in out


def test_create_workflow_builds_node_graph():
    graph = create_workflow()

    assert set(graph.node_defs) == {
        "InspectRepository",
        "ReportConflicts",
        "SuggestResolutions",
        "ApplyResolutions",
        "InteractiveResolve",
    }


def test_apply_with_collaborator(repo, capsys, monkeypatch):
    class Collaborator:
        async def resolve_conflict(self, section, path, extension):
            return AiResolution(
                resolved_text=f"merged {section.start_line}",
                explanation="test",
            )

    monkeypatch.setattr(
        suggest_node, "AgentCollaborator", lambda *a, **kw: Collaborator()
    )
    state = make_state(repo, model="test")

    assert run(ConflictsCommand(apply=True), state) == 0

    assert "Applied: 2, Failed: 0" in capsys.readouterr().out
    assert (repo / "src" / "app.py").read_bytes() == (
        b"top\nmerged 2\nmiddle\nmerged 10\nbottom\n"
    )


def test_no_ai_skips_collaborator(repo, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("collaborator must not be built")

    monkeypatch.setattr(suggest_node, "AgentCollaborator", fail)
    state = make_state(repo, model="test")

    assert run(ConflictsCommand(suggest=True, no_ai=True), state) == 0
    assert state.runtime.conflicts.use_ai is False


def test_apply_reports_stale_sections(repo, capsys):
    """Files edited after inspection make the apply step fail."""
    state = make_state(repo)
    (repo / "src" / "app.py").write_bytes(b"already resolved\n")

    assert run(ConflictsCommand(apply=True), state) == 1

    out = capsys.readouterr().out
    assert "Applied: 0, Failed: 1" in out
    assert state.runtime.conflicts.status == "failed"


def test_interactive_resolve(repo, capsys, monkeypatch):
    answers = iter(["2", "3", "4"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    state = make_state(repo)

    assert run(ConflictsCommand(resolve=True), state) == 0

    out = capsys.readouterr().out
    assert out.count("Resolution applied.") == 2
    assert "Skipped." in out
    assert 'git add "src/app.py"' in out
    assert state.runtime.conflicts.resolved_files == ["src/app.py"]
    assert (repo / "src" / "app.py").read_bytes() == (
        b"top\nx\nz\nmiddle\nfoo\nbar\nbottom\n"
    )
    assert (repo / "notes.txt").read_bytes() == DELETED.encode()


def test_interactive_resolve_nothing_chosen(repo, capsys, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt="": "4")

    assert run(ConflictsCommand(resolve=True), make_state(repo)) == 0

    assert "No conflicts were resolved." in capsys.readouterr().out


def test_interactive_resolve_end_of_input(repo, capsys, monkeypatch):
    def eof(prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", eof)

    assert run(ConflictsCommand(resolve=True), make_state(repo)) == 0
    assert (repo / "src" / "app.py").read_bytes() == OVERLAP.encode()


def test_apply_then_resolve_sees_remaining_sections(repo, capsys,
                                                    monkeypatch):
    prompts = []

    def answer(prompt=""):
        prompts.append(prompt)
        return "1"

    monkeypatch.setattr("builtins.input", answer)
    state = make_state(repo)

    assert run(ConflictsCommand(apply=True, resolve=True), state) == 0

    assert len(prompts) == 2
    assert (repo / "src" / "app.py").read_bytes() == (
        b"top\nx\ny\nz\nmiddle\nfoo\nbottom\n"
    )
    assert (repo / "notes.txt").read_bytes() == b"\n"
