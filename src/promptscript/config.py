"""Provider credentials and preferences, passed explicitly to services."""

import os
from enum import Enum

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class AIProvider(str, Enum):
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return _PROVIDER_NAMES[self]


_PROVIDER_NAMES = {
    AIProvider.OPENAI: "OpenAI",
    AIProvider.CLAUDE: "Claude (Anthropic)",
    AIProvider.GEMINI: "Gemini (Google)",
}


class AITaskType(str, Enum):
    SCRIPT_GENERATION = "Script Generation"
    SCRIPT_PARSING = "Script Parsing"
    CHARACTER_ANALYSIS = "Character Analysis"
    SETTING_ANALYSIS = "Setting Analysis"

    @property
    def recommended_provider(self) -> AIProvider:
        if self in (AITaskType.CHARACTER_ANALYSIS, AITaskType.SETTING_ANALYSIS):
            return AIProvider.OPENAI
        return AIProvider.CLAUDE


def _quality_from_env(default: float) -> float:
    raw = os.getenv("PROMPTSCRIPT_QUALITY_VS_COST", "").strip()
    if not raw:
        return default
    msg = f"PROMPTSCRIPT_QUALITY_VS_COST must be a number between 0 and 1, got {raw!r}"
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(msg) from e
    if not 0.0 <= value <= 1.0:
        raise ValueError(msg)
    return value


class Settings(BaseModel):
    """API keys, model names and provider preferences."""

    openai_api_key: str = ""
    claude_api_key: str = ""
    gemini_api_key: str = ""

    openai_model: str = "gpt-4o"
    claude_model: str = "claude-3-5-sonnet-20241022"
    gemini_model: str = "gemini-1.5-pro"

    # 0 favours cheaper providers, 1 favours higher quality ones.
    quality_vs_cost: float = Field(0.5, ge=0.0, le=1.0)
    preferred_providers: dict[AITaskType, AIProvider] = Field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment, loading ``.env`` first.

        The ``.env`` file is looked up from the working directory.

        Raises:
            ValueError: If ``PROMPTSCRIPT_QUALITY_VS_COST`` is not a number
                in [0, 1].

        """
        load_dotenv(find_dotenv(usecwd=True))
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            claude_api_key=(
                os.getenv("ANTHROPIC_API_KEY") or os.getenv("CLAUDE_API_KEY", "")
            ),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            openai_model=os.getenv("PROMPTSCRIPT_OPENAI_MODEL", defaults.openai_model),
            claude_model=os.getenv("PROMPTSCRIPT_CLAUDE_MODEL", defaults.claude_model),
            gemini_model=os.getenv("PROMPTSCRIPT_GEMINI_MODEL", defaults.gemini_model),
            quality_vs_cost=_quality_from_env(defaults.quality_vs_cost),
        )

    def api_key(self, provider: AIProvider) -> str:
        if provider is AIProvider.OPENAI:
            return self.openai_api_key
        if provider is AIProvider.CLAUDE:
            return self.claude_api_key
        return self.gemini_api_key

    def model(self, provider: AIProvider) -> str:
        if provider is AIProvider.OPENAI:
            return self.openai_model
        if provider is AIProvider.CLAUDE:
            return self.claude_model
        return self.gemini_model

    def is_configured(self, provider: AIProvider) -> bool:
        return bool(self.api_key(provider))

    def configured_providers(self) -> list[AIProvider]:
        return [p for p in AIProvider if self.is_configured(p)]

    def best_provider(self, task: AITaskType) -> AIProvider | None:
        """Pick a configured provider for ``task``.

        The preferred (or recommended) provider wins when it has a key.
        Otherwise the order follows ``quality_vs_cost``.
        """
        preferred = self.preferred_providers.get(task, task.recommended_provider)
        if self.is_configured(preferred):
            return preferred

        if self.quality_vs_cost > 0.7:
            order = (AIProvider.CLAUDE, AIProvider.OPENAI, AIProvider.GEMINI)
        elif self.quality_vs_cost < 0.3:
            order = (AIProvider.GEMINI, AIProvider.OPENAI, AIProvider.CLAUDE)
        else:
            order = (AIProvider.OPENAI, AIProvider.CLAUDE, AIProvider.GEMINI)

        return next((p for p in order if self.is_configured(p)), None)

    def fallback_provider(self, exclude: AIProvider) -> AIProvider | None:
        """First configured provider other than ``exclude``."""
        return next(
            (p for p in self.configured_providers() if p is not exclude),
            None,
        )
