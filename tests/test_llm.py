"""Tests for text generation providers."""

from unittest.mock import MagicMock, patch

import pytest

from memkeep.config import LLMConfig
from memkeep.exceptions import InvalidConfigError, LLMOperationError
from memkeep.llm import GenerateOptions, Message, create_llm
from memkeep.llm.litellm_provider import LiteLLMProvider, get_model_params


def make_response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class TestGetModelParams:
    def test_openai_defaults(self):
        params = get_model_params(LLMConfig(provider="openai", api_key="sk-test"))
        assert params["model"] == "openai/gpt-4o-mini"
        assert params["api_key"] == "sk-test"
        assert "api_base" not in params

    def test_qwen_maps_to_dashscope(self):
        params = get_model_params(LLMConfig(provider="qwen", model="qwen-max"))
        assert params["model"] == "dashscope/qwen-max"
        assert params["api_base"] == "https://dashscope.aliyuncs.com/compatible-mode/v1"

    def test_ollama_gets_placeholder_key(self):
        params = get_model_params(LLMConfig(provider="ollama", model="qwen2.5:7b"))
        assert params["model"] == "ollama/qwen2.5:7b"
        assert params["api_key"] == "ollama"
        assert params["api_base"] == "http://localhost:11434"

    def test_custom_base_url_and_parameters(self):
        params = get_model_params(
            LLMConfig(provider="deepseek", base_url="http://proxy:8000", parameters={"seed": 7})
        )
        assert params["api_base"] == "http://proxy:8000"
        assert params["seed"] == 7

    def test_unknown_provider(self):
        config = LLMConfig.model_construct(provider="mystery", api_key=None, model=None, base_url=None, parameters={})
        with pytest.raises(InvalidConfigError):
            get_model_params(config)


class TestLiteLLMProvider:
    @patch("memkeep.llm.litellm_provider.litellm.completion")
    def test_generate(self, mock_completion):
        mock_completion.return_value = make_response("Hello!")
        provider = LiteLLMProvider(LLMConfig(provider="openai", api_key="k"))

        assert provider.generate("Hi") == "Hello!"

        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 1000
        assert kwargs["top_p"] == 1.0
        assert "stop" not in kwargs

    @patch("memkeep.llm.litellm_provider.litellm.completion")
    def test_generate_with_messages_and_options(self, mock_completion):
        mock_completion.return_value = make_response("ok")
        provider = LiteLLMProvider(LLMConfig(provider="openai"))

        provider.generate_with_messages(
            [Message(role="system", content="Be brief"), Message(role="user", content="Hi")],
            GenerateOptions(temperature=0.1, max_tokens=50, stop=["\n"]),
        )

        kwargs = mock_completion.call_args.kwargs
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 50
        assert kwargs["stop"] == ["\n"]

    @patch("memkeep.llm.litellm_provider.litellm.completion")
    def test_failure_wrapped(self, mock_completion):
        mock_completion.side_effect = RuntimeError("rate limited")
        provider = LiteLLMProvider(LLMConfig(provider="openai"))

        with pytest.raises(LLMOperationError, match="rate limited") as exc_info:
            provider.generate("Hi")
        assert exc_info.value.op == "generate"

    @patch("memkeep.llm.litellm_provider.litellm.completion")
    def test_no_choices(self, mock_completion):
        response = MagicMock()
        response.choices = []
        mock_completion.return_value = response

        with pytest.raises(LLMOperationError, match="no choices"):
            LiteLLMProvider(LLMConfig(provider="openai")).generate("Hi")

    def test_create_llm(self):
        assert isinstance(create_llm(LLMConfig(provider="anthropic", api_key="k")), LiteLLMProvider)
