import pytest
from dataclasses import replace
from types import SimpleNamespace

from llm import get_llm_provider
from llm.factory import SUPPORTED_PROVIDERS
from llm.prompts.loader import PromptManager
from llm.providers.openai import OPENROUTER_BASE_URL, OpenAIProvider


class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _with_fake_client(provider, content):
    completions = _FakeCompletions(content)
    provider.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return completions


class TestGetLLMProvider:
    def test_disabled(self, test_config):
        assert get_llm_provider(test_config) is None

    def test_enabled_without_provider(self, test_config):
        assert get_llm_provider(replace(test_config, llm_enabled=True)) is None

    def test_unknown_provider(self, test_config):
        config = replace(test_config, llm_enabled=True, llm_provider="anthropic", llm_api_key="k")

        with pytest.raises(ValueError, match="Unknown LLM provider"):
            get_llm_provider(config)

    def test_missing_api_key(self, test_config):
        config = replace(test_config, llm_enabled=True, llm_provider="openai")

        with pytest.raises(ValueError, match="api_key not configured"):
            get_llm_provider(config)

    def test_openai(self, test_config):
        config = replace(
            test_config, llm_enabled=True, llm_provider="openai", llm_api_key="sk-test", llm_model="gpt-4o"
        )

        provider = get_llm_provider(config)

        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"

    def test_openrouter_uses_default_base_url(self, test_config):
        config = replace(test_config, llm_enabled=True, llm_provider="openrouter", llm_api_key="or-test")

        provider = get_llm_provider(config)

        assert str(provider.client.base_url).rstrip("/") == OPENROUTER_BASE_URL

    def test_supported_providers(self):
        assert SUPPORTED_PROVIDERS == ("openai", "openrouter")


class TestOpenAIProvider:
    def test_complete_sends_prompts_and_parameters(self):
        provider = OpenAIProvider(api_key="sk-test")
        completions = _with_fake_client(provider, '[{"index": 1}]')

        text = provider.complete(
            "system", "user", {"model": "gpt-4o-mini", "temperature": 0.2, "max_tokens": 500}
        )

        assert text == '[{"index": 1}]'
        request = completions.requests[0]
        assert request["model"] == "gpt-4o-mini"
        assert request["temperature"] == 0.2
        assert request["max_tokens"] == 500
        assert request["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "user"},
        ]

    def test_configured_model_overrides_prompt(self):
        provider = OpenAIProvider(api_key="sk-test", model="gpt-4o")
        completions = _with_fake_client(provider, "[]")

        provider.complete("s", "u", {"model": "gpt-4o-mini"})

        assert completions.requests[0]["model"] == "gpt-4o"

    def test_defaults(self):
        provider = OpenAIProvider(api_key="sk-test")
        completions = _with_fake_client(provider, "[]")

        provider.complete("s", "u", {})

        assert completions.requests[0]["temperature"] == 0.1
        assert completions.requests[0]["max_tokens"] == 2000

    def test_no_choices_returns_empty_text(self):
        provider = OpenAIProvider(api_key="sk-test")
        _with_fake_client(provider, None)

        assert provider.complete("s", "u", {}) == ""


class TestPromptManager:
    def test_render_categorization_prompt(self):
        manager = PromptManager()

        prompt = manager.render_prompt(
            "categorization",
            {
                "categories": "Food, Other",
                "preferences": "",
                "liabilities": "",
                "transactions": '1. "STARBUCKS" - $5.75 (expense)',
            },
        )

        assert prompt["version"] == "2"
        assert prompt["parameters"]["model"] == "gpt-4o-mini"
        assert prompt["system_prompt"].startswith("You are a financial transaction")
        assert "(one of: Food, Other)" in prompt["user_prompt"]
        assert '1. "STARBUCKS" - $5.75 (expense)' in prompt["user_prompt"]
        # Doubled braces in the template come out as literal JSON
        assert '{"index": 1, "category": "Food"' in prompt["user_prompt"]

    def test_render_section(self):
        manager = PromptManager()

        text = manager.render_section(
            "categorization", "preferences_template", {"preference_lines": "- be nice"}
        )

        assert "USER'S CATEGORIZATION PREFERENCES" in text
        assert "- be nice" in text

    def test_missing_variable(self):
        with pytest.raises(ValueError, match="needs variable"):
            PromptManager().render_prompt("categorization", {"categories": "Food"})

    def test_missing_prompt_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PromptManager(tmp_path).load_prompt("nope")

    def test_custom_prompts_dir_and_cache(self, tmp_path):
        (tmp_path / "greet.yaml").write_text(
            "system_prompt: hi\nuser_prompt_template: 'Hello {name}'\n"
        )
        manager = PromptManager(tmp_path)

        assert manager.render_prompt("greet", {"name": "Sam"})["user_prompt"] == "Hello Sam"
        (tmp_path / "greet.yaml").unlink()
        assert manager.render_prompt("greet", {"name": "Kim"})["version"] == "unknown"
