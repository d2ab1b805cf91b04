"""Model collaborator that proposes conflict resolutions via pydantic-ai."""

from __future__ import annotations

from contextlib import contextmanager

from pydantic_ai import Agent, providers
from pydantic_ai.models import Model

from mergemend.conflict.models import AiResolution, ConflictSection
from mergemend.core.config import LLMConfig
from mergemend.core.log import logger

DEFAULT_SYSTEM_PROMPT = "You are a git merge conflict resolver."
DEFAULT_RETRIES = 2


@contextmanager
def inject_provider_params(llm_config: LLMConfig):
    """Pass api_key/base_url from config to pydantic-ai providers.

    pydantic-ai builds providers from the model name alone, so
    infer_provider is patched for the duration of agent construction
    and restored afterwards.
    """
    kwargs = {}
    if llm_config.api_key:
        kwargs['api_key'] = llm_config.api_key
    if llm_config.base_url:
        kwargs['base_url'] = llm_config.base_url

    if not kwargs:
        yield
        return

    original_infer_provider = providers.infer_provider

    def patched_infer_provider(provider_name: str):
        provider_class = providers.infer_provider_class(provider_name)
        return provider_class(**kwargs)

    try:
        providers.infer_provider = patched_infer_provider
        yield
    finally:
        providers.infer_provider = original_infer_provider


def _fenced(text: str) -> list[str]:
    return ["```", text, "```"]


def build_conflict_prompt(
    section: ConflictSection, path: str, extension: str
) -> str:
    """User prompt describing one conflict section."""
    lines = [
        f"File: {path} ({extension or 'no extension'})",
        f"Conflict at lines {section.start_line}-{section.end_line}",
        "",
        "=== OUR CHANGES (current branch) ===",
        f"Label: {section.ours_label}",
        *_fenced(section.ours),
        "",
    ]
    if section.base:
        lines += [
            "=== BASE (common ancestor) ===",
            *_fenced(section.base),
            "",
        ]
    lines += [
        "=== THEIR CHANGES (incoming branch) ===",
        f"Label: {section.theirs_label}",
        *_fenced(section.theirs),
        "",
        "Please analyze both changes and provide a merged resolution "
        "that preserves the intent of both sides.",
    ]
    return "\n".join(lines)


class AgentCollaborator:
    """Resolve single conflict sections with a pydantic-ai agent.

    The agent returns an AiResolution as structured output. Failures
    propagate; ResolutionStrategyGenerator treats them as advisory and
    falls back to its heuristic.
    """

    def __init__(
        self,
        llm_config: LLMConfig,
        prompts: dict | None = None,
        agents: dict | None = None,
        model: Model | str | None = None,
    ):
        """Initialize collaborator.

        Args:
            llm_config: Model name, credentials and endpoint
            prompts: config.prompts; "resolver.system" overrides the
                system prompt
            agents: config.agents; "resolver.retries" overrides the
                output validation retry count
            model: Model instance or name to use instead of
                llm_config.model
        """
        self.llm_config = llm_config
        self.model = model or llm_config.model
        self.system_prompt = (
            (prompts or {}).get('resolver', {}).get('system')
            or DEFAULT_SYSTEM_PROMPT
        )
        self.retries = (
            (agents or {}).get('resolver', {}).get('retries', DEFAULT_RETRIES)
        )
        self._agent = None

    @property
    def agent(self) -> Agent:
        """Agent built on first use."""
        if self._agent is None:
            if self.model is None:
                raise ValueError("No model configured for conflict resolution")
            with inject_provider_params(self.llm_config):
                self._agent = Agent(
                    self.model,
                    output_type=AiResolution,
                    system_prompt=self.system_prompt,
                    retries=self.retries,
                )
            logger.debug(f"Resolver agent created for model {self.model}")
        return self._agent

    async def resolve_conflict(
        self, section: ConflictSection, path: str, extension: str
    ) -> AiResolution:
        """Ask the model for a merged version of one section."""
        prompt = build_conflict_prompt(section, path, extension)
        logger.debug(
            f"Requesting model resolution for {path}:{section.start_line}",
            prompt_length=len(prompt),
        )
        logger.trace(f"Conflict prompt:\n{prompt}")

        result = await self.agent.run(prompt)
        resolution = result.output

        logger.info(
            f"Model resolution for {path}:{section.start_line} "
            f"({resolution.confidence.value})",
            path=path,
            confidence=resolution.confidence.value,
        )
        return resolution
