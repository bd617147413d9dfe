"""Tests for the provider catalog and ProviderRegistry."""

from __future__ import annotations

import pytest

from provider_router.config import Environment, Settings
from provider_router.routing.classifier import TaskCategory
from provider_router.routing.providers import (
    DEFAULT_LATENCY_MS,
    PROVIDER_CATALOG,
    ModelOption,
    Provider,
    ProviderConfig,
    ProviderRegistry,
    estimate_latency_ms,
    find_model,
    preferred_model_keywords,
)


@pytest.fixture(autouse=True)
def _no_credentials_in_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "HF_TOKEN",
        "HUGGINGFACE_HUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


def _settings(**credentials: str) -> Settings:
    return Settings(_env_file=None, environment=Environment.TEST, **credentials)


class TestAvailability:
    """Availability follows configured credentials."""

    def test_no_credentials_means_no_providers(self):
        registry = ProviderRegistry.from_settings(_settings())
        assert registry.available_providers == ()

    def test_credentials_enable_providers_in_enum_order(self):
        registry = ProviderRegistry.from_settings(
            _settings(anthropic_api_key="a", google_generative_ai_api_key="g")
        )
        assert registry.available_providers == (Provider.GOOGLE, Provider.ANTHROPIC)

    def test_either_hf_token_enables_hf(self):
        registry = ProviderRegistry.from_settings(_settings(huggingface_hub_token="hf"))
        assert registry.is_available(Provider.HF)

    def test_empty_secret_does_not_enable_provider(self):
        registry = ProviderRegistry.from_settings(_settings(openai_api_key=""))
        assert not registry.is_available(Provider.OPENAI)


class TestDefaultProvider:

    def test_google_preferred_when_available(self, registry: ProviderRegistry):
        assert registry.default_provider() == Provider.GOOGLE

    def test_first_available_when_google_missing(self):
        registry = ProviderRegistry([Provider.ANTHROPIC, Provider.OPENAI])
        assert registry.default_provider() == Provider.OPENAI

    def test_google_when_nothing_available(self):
        assert ProviderRegistry([]).default_provider() == Provider.GOOGLE


class TestRecommendModel:

    def test_code_tasks_prefer_deepseek_on_hf(self, registry: ProviderRegistry):
        model = registry.recommend_model(Provider.HF, TaskCategory.CODE_GENERATION)
        assert model == "deepseek-ai/DeepSeek-V3-0324"

    def test_conversation_prefers_flash_on_google(self, registry: ProviderRegistry):
        model = registry.recommend_model(Provider.GOOGLE, TaskCategory.GENERAL_CONVERSATION)
        assert model == "gemini-2.5-flash"

    def test_reasoning_prefers_claude(self, registry: ProviderRegistry):
        model = registry.recommend_model(Provider.ANTHROPIC, TaskCategory.REASONING)
        assert model == "claude-3-5-sonnet-20241022"

    def test_no_keyword_match_falls_back_to_first_model(self, registry: ProviderRegistry):
        model = registry.recommend_model(Provider.OPENAI, TaskCategory.TRANSLATION)
        assert model == PROVIDER_CATALOG[Provider.OPENAI].models[0].value

    def test_provider_missing_from_catalog(self):
        registry = ProviderRegistry(
            list(Provider),
            catalog={Provider.GOOGLE: PROVIDER_CATALOG[Provider.GOOGLE]},
        )
        assert registry.available_providers == (Provider.GOOGLE,)
        assert registry.recommend_model(Provider.OPENAI, TaskCategory.RESEARCH) is None

    @pytest.mark.parametrize("task_type", list(TaskCategory))
    def test_every_task_type_has_keywords(self, task_type: TaskCategory):
        assert preferred_model_keywords(task_type)

    @pytest.mark.parametrize("provider", list(Provider))
    @pytest.mark.parametrize("task_type", list(TaskCategory))
    def test_every_pair_recommends_a_catalog_model(
        self,
        registry: ProviderRegistry,
        provider: Provider,
        task_type: TaskCategory,
    ):
        model = registry.recommend_model(provider, task_type)
        assert model in {m.value for m in PROVIDER_CATALOG[provider].models}


def test_find_model_keyword_order_wins():
    models = (ModelOption("a-flash", "A Flash"), ModelOption("b-pro", "B Pro"))
    assert find_model(models, ("pro", "flash")) == "b-pro"
    assert find_model(models, ("turbo",)) is None


def test_find_model_matches_label():
    models = (ModelOption("x1", "Coder Large"),)
    assert find_model(models, ("coder",)) == "x1"


def test_latency_table_and_default():
    assert estimate_latency_ms(Provider.GOOGLE, "gemini-2.5-flash") == 500.0
    assert estimate_latency_ms(Provider.OPENAI, "gpt-4") == DEFAULT_LATENCY_MS


def test_hub_llama_uses_default_latency():
    assert estimate_latency_ms(Provider.HF, "meta-llama/Llama-3.2-3B-Instruct") == DEFAULT_LATENCY_MS
    assert estimate_latency_ms(Provider.HF, "deepseek-ai/DeepSeek-V3-0324") == 3000.0


def test_provider_config_requires_models():
    with pytest.raises(ValueError):
        ProviderConfig(name="Empty", api_key_name="X", default_model="m", models=())
