"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mergemend.core.base import BaseConfig, BaseState
from mergemend.core.log import Logger
from mergemend.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules available to {name.attr} templates in YAML values, e.g.
# {platformdirs.user_state_dir} or {os.sep}. Callables are invoked with
# the application name, which suits the platformdirs helpers.
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
}


class GitConfig(BaseConfig):
    """Repository location."""

    workdir: Path = Field(
        default_factory=Path.cwd,
        description="Working tree to inspect (default: current directory)",
    )


class LLMConfig(BaseConfig):
    """Model collaborator settings."""

    enabled: bool = Field(
        default=True,
        description="Ask the model for a resolution of each conflict",
    )
    model: str | None = Field(
        default=None,
        description=(
            "pydantic-ai model name, 'provider:model' "
            "(e.g. openai:gpt-4o, anthropic:claude-sonnet-4-0). "
            "Unset disables the collaborator."
        ),
    )
    api_key: str | None = Field(
        default=None,
        description=(
            "API key for the provider. If not set, the provider reads "
            "its own environment variable (e.g. OPENAI_API_KEY)"
        ),
    )
    base_url: str | None = Field(
        default=None,
        description="Override API base URL for compatible endpoints",
    )
    timeout: float = Field(
        default=120.0,
        description="Seconds to wait for one conflict resolution",
    )

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.model)


class Config(BaseConfig):
    """Configuration loaded from YAML/env/CLI."""

    logger: Logger | None = Field(
        default=None,
        description="Logger configuration and runtime instance",
    )
    git: GitConfig = Field(
        default_factory=GitConfig,
        description="Repository settings",
    )
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="Model collaborator settings",
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "mergemend"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )
    commands: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Command templates organized by category (git, ...)",
    )
    prompts: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Prompt templates for the model collaborator",
    )
    agents: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Agent settings for the model collaborator",
    )

    @model_validator(mode='after')
    def _setup_logger(self) -> Config:
        """Install the global logger from the loaded logger section."""
        from mergemend.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger()

        setup_logger(
            log_root=self.log_root,
            run_name="conflicts",
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def close(self):
        """Close the global logger as well as child sections."""
        from mergemend.core.log import logger
        logger.close()
        super().close()


class ConflictsState(BaseState):
    """Runtime state of the conflicts workflow."""

    file_filter: str | None = Field(
        default=None,
        description="Only handle conflicted files whose path contains this",
    )
    suggest: bool = Field(default=False, description="List candidates")
    apply: bool = Field(
        default=False, description="Apply model-authored candidates"
    )
    resolve: bool = Field(default=False, description="Resolve interactively")
    json_output: bool = Field(
        default=False, description="Print reports as JSON"
    )
    use_ai: bool = Field(
        default=True, description="Ask the model collaborator"
    )
    context: Any = Field(
        default=None,
        description="RepoContext captured by the inspection step",
    )
    analysis: Any = Field(
        default=None,
        description="ConflictAnalysis derived from the context",
    )
    resolutions: list = Field(
        default_factory=list,
        description="Candidate resolutions from the generator",
    )
    summary: Any = Field(
        default=None,
        description="ApplySummary of the last apply step",
    )
    resolved_files: list[str] = Field(
        default_factory=list,
        description="Files changed by interactive resolution",
    )
    status: str = Field(
        default="pending",
        description="Workflow status: pending, running, complete, failed",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """All runtime state, by workflow."""

    conflicts: ConflictsState = Field(
        default_factory=ConflictsState,
        description="Conflicts workflow runtime state",
    )


class State(BaseSettings):
    """Configuration plus runtime state; flows through every workflow."""

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates during workflow execution)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MERGEMEND_",
        env_nested_delimiter="__",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init args, environment, .env, YAML, secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> State:
        """Replace {config.*} and {module.*} templates in all values."""
        self._substitute_recursive(self)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i])

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {dotted.path} templates with attribute values.

        Unknown paths are left untouched, so command templates such as
        ``{path}`` survive until they are formatted at call time.

        Examples:
            "{config.git.workdir}/build" -> "/home/user/repo/build"
            "{platformdirs.user_log_dir}" -> "~/.local/state/mergemend/log"
        """
        def replace_template(match):
            parts = match.group(1).split(".")

            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('mergemend', appauthor=False)
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(r'\{([a-z._]+)\}', replace_template, value)


__all__ = ["State", "Config", "GitConfig", "LLMConfig", "BaseConfig"]
