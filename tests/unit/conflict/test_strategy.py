"""Tests for candidate resolution generation."""

import asyncio

from pydantic_ai.models import test as model_test

from mergemend.conflict.models import (
    AiResolution,
    ConflictedFile,
    ConflictResolution,
    ConflictSection,
    MergeState,
    RepoContext,
    ResolutionConfidence,
    ResolutionStrategy,
)
from mergemend.conflict.strategy import (
    ConflictCollaborator,
    ResolutionStrategyGenerator,
    combine_text,
    resolution_commands,
    smart_merge,
    smart_merge_resolution,
)
from mergemend.core.config import LLMConfig
from mergemend.model.resolver import AgentCollaborator, build_conflict_prompt


def section(ours, theirs, base=""):
    return ConflictSection(
        start_line=3,
        end_line=7,
        ours_label="HEAD",
        theirs_label="feature",
        ours=ours,
        base=base,
        theirs=theirs,
    )


class FixedCollaborator:
    """Collaborator returning a canned answer and recording calls."""

    def __init__(self, answer):
        self.answer = answer
        self.calls = []

    async def resolve_conflict(self, section, path, extension):
        self.calls.append((section, path, extension))
        return self.answer


class FailingCollaborator:
    async def resolve_conflict(self, section, path, extension):
        raise ConnectionError("model unreachable")


class SlowCollaborator:
    async def resolve_conflict(self, section, path, extension):
        await asyncio.sleep(10)


def suggest(generator, path, sec):
    return asyncio.run(generator.suggest_for_section(path, sec))


def strategies(resolutions):
    return [r.strategy for r in resolutions]


def test_smart_merge_orders_common_then_unique():
    assert smart_merge(section("x\ny", "x\nz")) == "x\ny\nz"


def test_smart_merge_deduplicates_common_lines():
    merged = smart_merge(section("a\nb\na", "b\na\nc"))
    assert merged == "a\nb\nc"


def test_combine_text_puts_ours_first():
    assert combine_text(section("one", "two")) == "one\ntwo"


def test_smart_merge_resolution_suppressed_when_equal_to_combine():
    """No shared lines means smart merge is just concatenation."""
    assert smart_merge_resolution("a.py", section("foo", "bar")) is None


def test_smart_merge_resolution_candidate():
    resolution = smart_merge_resolution("a.py", section("x\ny", "x\nz"))

    assert resolution.strategy is ResolutionStrategy.AI_SUGGESTED
    assert resolution.resolved_text == "x\ny\nz"
    assert resolution.description.startswith("Smart merge")
    assert resolution.confidence is None


def test_candidates_without_collaborator():
    """Overlapping change: ours, theirs, combine, smart merge."""
    resolutions = suggest(
        ResolutionStrategyGenerator(), "a.py", section("x\ny", "x\nz")
    )

    assert strategies(resolutions) == [
        ResolutionStrategy.ACCEPT_OURS,
        ResolutionStrategy.ACCEPT_THEIRS,
        ResolutionStrategy.COMBINE_BOTH,
        ResolutionStrategy.AI_SUGGESTED,
    ]
    assert resolutions[0].resolved_text == "x\ny"
    assert resolutions[1].resolved_text == "x\nz"
    assert resolutions[2].resolved_text == "x\ny\nx\nz"
    assert resolutions[3].resolved_text == "x\ny\nz"
    assert "HEAD" in resolutions[0].description
    assert "feature" in resolutions[1].description


def test_adjacent_change_has_no_smart_merge_candidate():
    resolutions = suggest(
        ResolutionStrategyGenerator(), "a.py", section("foo", "bar")
    )
    assert strategies(resolutions) == [
        ResolutionStrategy.ACCEPT_OURS,
        ResolutionStrategy.ACCEPT_THEIRS,
        ResolutionStrategy.COMBINE_BOTH,
    ]


def test_blank_side_only_gets_accept_candidates():
    """Deleted on our side: no combine and no suggestion."""
    collaborator = FixedCollaborator(
        AiResolution(resolved_text="x", explanation="y")
    )
    generator = ResolutionStrategyGenerator(collaborator)

    resolutions = suggest(generator, "a.py", section("", "new content"))

    assert strategies(resolutions) == [
        ResolutionStrategy.ACCEPT_OURS,
        ResolutionStrategy.ACCEPT_THEIRS,
    ]
    assert resolutions[1].resolved_text == "new content"
    assert collaborator.calls == []


def test_collaborator_answer_replaces_smart_merge():
    answer = AiResolution(
        resolved_text="x\ny\nz",
        explanation="Kept both additions",
        confidence=ResolutionConfidence.HIGH,
    )
    collaborator = FixedCollaborator(answer)
    generator = ResolutionStrategyGenerator(collaborator)

    resolutions = suggest(generator, "src/app.py", section("x\ny", "x\nz"))

    assert len(resolutions) == 4
    suggestion = resolutions[3]
    assert suggestion.strategy is ResolutionStrategy.AI_SUGGESTED
    assert suggestion.resolved_text == "x\ny\nz"
    assert suggestion.confidence is ResolutionConfidence.HIGH
    assert suggestion.description == (
        "AI suggestion (high): Kept both additions"
    )
    (_, path, extension), = collaborator.calls
    assert path == "src/app.py"
    assert extension == ".py"


def test_collaborator_is_called_even_without_overlap():
    collaborator = FixedCollaborator(
        AiResolution(resolved_text="merged", explanation="ok")
    )
    generator = ResolutionStrategyGenerator(collaborator)

    resolutions = suggest(generator, "Makefile", section("foo", "bar"))

    assert resolutions[-1].resolved_text == "merged"
    assert collaborator.calls[0][2] == ""


def test_collaborator_failure_falls_back_to_smart_merge():
    generator = ResolutionStrategyGenerator(FailingCollaborator())

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    assert resolutions[-1].description.startswith("Smart merge")


def test_collaborator_timeout_falls_back_to_smart_merge():
    generator = ResolutionStrategyGenerator(SlowCollaborator(), timeout=0.01)

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    assert resolutions[-1].description.startswith("Smart merge")


def test_malformed_collaborator_answer_falls_back_to_smart_merge():
    generator = ResolutionStrategyGenerator(
        FixedCollaborator({"resolved_text": "x"})
    )

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    assert resolutions[-1].description.startswith("Smart merge")
    assert resolutions[-1].resolved_text == "x\ny\nz"


def test_collaborator_answer_of_none_falls_back_to_smart_merge():
    generator = ResolutionStrategyGenerator(FixedCollaborator(None))

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    assert strategies(resolutions)[-1] is ResolutionStrategy.AI_SUGGESTED
    assert resolutions[-1].description.startswith("Smart merge")


def test_suggest_over_context_keeps_file_and_section_order():
    first = section("x\ny", "x\nz")
    second = ConflictSection(
        start_line=10, end_line=14, ours="", theirs="t"
    )
    context = RepoContext(
        merge_state=MergeState.MERGING,
        conflicted_files=[
            ConflictedFile(path="a.py", sections=[first]),
            ConflictedFile(path="b.py", sections=[second]),
        ],
    )

    resolutions = asyncio.run(ResolutionStrategyGenerator().suggest(context))

    assert [(r.path, r.section.start_line) for r in resolutions] == [
        ("a.py", 3), ("a.py", 3), ("a.py", 3), ("a.py", 3),
        ("b.py", 10), ("b.py", 10),
    ]


def test_resolution_commands():
    resolution = ConflictResolution(
        path="dir/my file.txt",
        section=section("a", "b"),
        strategy=ResolutionStrategy.ACCEPT_OURS,
        description="Accept ours",
        resolved_text="a",
    )

    assert resolution_commands(resolution) == ['git add "dir/my file.txt"']


def test_agent_collaborator_satisfies_protocol():
    assert isinstance(
        AgentCollaborator(LLMConfig(model="test")), ConflictCollaborator
    )


def test_agent_collaborator_with_test_model():
    model = model_test.TestModel(custom_output_args={
        "resolved_text": "x\ny\nz",
        "explanation": "Union of both sides",
        "confidence": "medium",
    })
    collaborator = AgentCollaborator(LLMConfig(), model=model)
    generator = ResolutionStrategyGenerator(collaborator)

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    suggestion = resolutions[-1]
    assert suggestion.resolved_text == "x\ny\nz"
    assert suggestion.confidence is ResolutionConfidence.MEDIUM
    assert suggestion.description == (
        "AI suggestion (medium): Union of both sides"
    )


def test_agent_collaborator_without_model_falls_back():
    """Missing model is a collaborator failure, not a crash."""
    collaborator = AgentCollaborator(LLMConfig(model=None))
    generator = ResolutionStrategyGenerator(collaborator)

    resolutions = suggest(generator, "a.py", section("x\ny", "x\nz"))

    assert resolutions[-1].description.startswith("Smart merge")


def test_build_conflict_prompt_includes_base_only_when_present():
    two_way = build_conflict_prompt(section("ours", "theirs"), "a.py", ".py")
    three_way = build_conflict_prompt(
        section("ours", "theirs", base="ancestor"), "a.py", ".py"
    )

    assert "File: a.py (.py)" in two_way
    assert "Conflict at lines 3-7" in two_way
    assert "Label: HEAD" in two_way
    assert "Label: feature" in two_way
    assert "BASE" not in two_way
    assert "BASE (common ancestor)" in three_way
    assert "ancestor" in three_way
    assert two_way.index("ours") < two_way.index("theirs")
