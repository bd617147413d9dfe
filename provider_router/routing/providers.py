"""Provider catalog and availability.

Providers are a closed enum; the capability table (which models each
provider offers) and the per-task model preference are explicit, so adding
a provider means adding an enum member, a catalog entry and a latency row.

Availability is derived from Settings: a provider is available when its
credentials are configured.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, assert_never

import structlog

from provider_router.routing.classifier import TaskCategory

if TYPE_CHECKING:
    from provider_router.config import Settings

log = structlog.get_logger(__name__)


class Provider(StrEnum):
    """Supported model vendors, in default-preference order."""

    GOOGLE = "google"
    HF = "hf"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True)
class ModelOption:
    value: str
    label: str


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of a provider.

    Attributes:
        name: Display name
        api_key_name: Environment variable holding the credential
        default_model: Model used for forced selections and fallback decisions
        models: Catalog of offered models, most capable first
    """

    name: str
    api_key_name: str
    default_model: str
    models: tuple[ModelOption, ...]

    def __post_init__(self) -> None:
        if not self.models:
            raise ValueError(f"Provider {self.name} must offer at least one model")


PROVIDER_CATALOG: dict[Provider, ProviderConfig] = {
    Provider.GOOGLE: ProviderConfig(
        name="Google Gemini",
        api_key_name="GOOGLE_GENERATIVE_AI_API_KEY",
        default_model="gemini-2.5-flash",
        models=(
            ModelOption("gemini-2.5-pro", "Gemini 2.5 Pro"),
            ModelOption("gemini-2.5-flash", "Gemini 2.5 Flash"),
            ModelOption("gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite"),
            ModelOption("gemini-2.0-flash", "Gemini 2.0 Flash"),
            ModelOption("gemini-1.5-pro", "Gemini 1.5 Pro"),
            ModelOption("gemini-1.5-flash", "Gemini 1.5 Flash"),
        ),
    ),
    Provider.HF: ProviderConfig(
        name="Hugging Face",
        api_key_name="HF_TOKEN",
        default_model="meta-llama/Llama-3.2-3B-Instruct",
        models=(
            ModelOption("deepseek-ai/DeepSeek-V3-0324", "DeepSeek V3"),
            ModelOption("meta-llama/Llama-3.2-3B-Instruct", "Llama 3.2 3B"),
            ModelOption("meta-llama/Llama-3.1-8B-Instruct", "Llama 3.1 8B"),
            ModelOption("Qwen/Qwen3-235B-A22B-Instruct-2507", "Qwen3 235B"),
        ),
    ),
    Provider.OPENAI: ProviderConfig(
        name="OpenAI",
        api_key_name="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
        models=(
            ModelOption("gpt-4o", "GPT-4o"),
            ModelOption("gpt-4o-mini", "GPT-4o Mini"),
            ModelOption("gpt-4-turbo", "GPT-4 Turbo"),
            ModelOption("gpt-4", "GPT-4"),
        ),
    ),
    Provider.ANTHROPIC: ProviderConfig(
        name="Anthropic Claude",
        api_key_name="ANTHROPIC_API_KEY",
        default_model="claude-3-5-sonnet-20241022",
        models=(
            ModelOption("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
            ModelOption("claude-3-opus-20240229", "Claude 3 Opus"),
            ModelOption("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
            ModelOption("claude-3-haiku-20240307", "Claude 3 Haiku"),
        ),
    ),
}

# Typical time-to-complete in milliseconds
LATENCY_ESTIMATES_MS: dict[tuple[Provider, str], float] = {
    (Provider.GOOGLE, "gemini-2.5-flash"): 500.0,
    (Provider.GOOGLE, "gemini-2.5-pro"): 1500.0,
    (Provider.ANTHROPIC, "claude-3-5-sonnet-20241022"): 2000.0,
    (Provider.HF, "deepseek-ai/DeepSeek-V3-0324"): 3000.0,
    (Provider.OPENAI, "gpt-4o-mini"): 800.0,
}
DEFAULT_LATENCY_MS = 2000.0


def preferred_model_keywords(task_type: TaskCategory) -> tuple[str, ...]:
    """Model-name keywords to look for, in priority order, for a task."""
    match task_type:
        case TaskCategory.CODE_GENERATION | TaskCategory.CODE_DEBUGGING | TaskCategory.CODE_REVIEW:
            return ("code", "coder", "deepseek")
        case TaskCategory.REASONING:
            return ("claude", "deepseek", "gpt-4", "pro")
        case TaskCategory.CREATIVE_WRITING:
            return ("claude", "gpt-4", "pro")
        case TaskCategory.TRANSLATION:
            return ("flash", "3b", "7b")
        case (
            TaskCategory.GENERAL_CONVERSATION
            | TaskCategory.SUMMARIZATION
            | TaskCategory.MATH_CALCULATION
            | TaskCategory.DATA_ANALYSIS
            | TaskCategory.RESEARCH
        ):
            return ("flash", "3b")
        case _:
            assert_never(task_type)


def find_model(models: Iterable[ModelOption], keywords: Iterable[str]) -> str | None:
    """First model whose value or label contains a keyword (keyword order wins)."""
    models = tuple(models)
    for keyword in keywords:
        needle = keyword.lower()
        for model in models:
            if needle in model.value.lower() or needle in model.label.lower():
                return model.value
    return None


def estimate_latency_ms(provider: Provider, model: str) -> float:
    return LATENCY_ESTIMATES_MS.get((provider, model), DEFAULT_LATENCY_MS)


class ProviderRegistry:
    """Availability and capability lookups over the provider catalog."""

    def __init__(
        self,
        available: Iterable[Provider],
        catalog: dict[Provider, ProviderConfig] | None = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else PROVIDER_CATALOG
        wanted = set(available)
        # Keep enum order so candidate lists are deterministic
        self._available = tuple(p for p in Provider if p in wanted and p in self._catalog)

        log.info(
            "provider_registry.initialized",
            available=[p.value for p in self._available],
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderRegistry:
        """Build a registry whose availability mirrors configured credentials."""
        credentials = {
            Provider.GOOGLE: settings.google_generative_ai_api_key,
            Provider.OPENAI: settings.openai_api_key,
            Provider.ANTHROPIC: settings.anthropic_api_key,
            Provider.HF: settings.hf_token or settings.huggingface_hub_token,
        }
        available = [
            provider
            for provider, secret in credentials.items()
            if secret is not None and secret.get_secret_value()
        ]
        return cls(available)

    @property
    def available_providers(self) -> tuple[Provider, ...]:
        return self._available

    def is_available(self, provider: Provider) -> bool:
        return provider in self._available

    def config(self, provider: Provider) -> ProviderConfig:
        return self._catalog[provider]

    def default_model(self, provider: Provider) -> str:
        return self._catalog[provider].default_model

    def recommend_model(self, provider: Provider, task_type: TaskCategory) -> str | None:
        """Best catalog model of a provider for a task.

        Falls back to the provider's first catalog model when no keyword
        matches. Returns None only for a provider missing from the catalog.
        """
        provider_config = self._catalog.get(provider)
        if provider_config is None:
            return None
        return (
            find_model(provider_config.models, preferred_model_keywords(task_type))
            or provider_config.models[0].value
        )

    def default_provider(self) -> Provider:
        """Provider used for fallback decisions: google if available, else first available."""
        if Provider.GOOGLE in self._available:
            return Provider.GOOGLE
        if self._available:
            return self._available[0]
        return Provider.GOOGLE
