"""LLM model wrappers."""

from mergemend.model.resolver import AgentCollaborator, build_conflict_prompt

__all__ = [
    "AgentCollaborator",
    "build_conflict_prompt",
]
