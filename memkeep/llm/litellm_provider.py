"""LiteLLM-backed text generation for every supported vendor."""

import logging
from typing import Any, Dict, List, Optional

import litellm

from memkeep.config import LLM_DEFAULTS, LLMConfig
from memkeep.exceptions import InvalidConfigError, LLMOperationError
from memkeep.llm.base import GenerateOptions, LLMProvider, Message

logger = logging.getLogger(__name__)

# memkeep provider name -> LiteLLM model prefix
LITELLM_PREFIXES = {
    "openai": "openai",
    "qwen": "dashscope",
    "deepseek": "deepseek",
    "ollama": "ollama",
    "anthropic": "anthropic",
}


def get_model_params(config: LLMConfig) -> Dict[str, Any]:
    """Build the base parameters for ``litellm.completion()``.

    Examples:
        >>> get_model_params(LLMConfig(provider="openai", model="gpt-4o-mini"))["model"]
        'openai/gpt-4o-mini'
    """
    prefix = LITELLM_PREFIXES.get(config.provider)
    if prefix is None:
        raise InvalidConfigError(f"unknown LLM provider '{config.provider}'")

    default_model, default_base_url = LLM_DEFAULTS[config.provider]
    params: Dict[str, Any] = dict(config.parameters)
    params["model"] = f"{prefix}/{config.model or default_model}"

    base_url = config.base_url or default_base_url
    if base_url:
        params["api_base"] = base_url

    if config.api_key:
        params["api_key"] = config.api_key
    elif config.provider == "ollama":
        params["api_key"] = "ollama"  # Ollama doesn't need real API key

    return params


class LiteLLMProvider(LLMProvider):
    """Calls ``litellm.completion`` with provider-specific model IDs."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.params = get_model_params(config)

    def generate_with_messages(self, messages: List[Message], options: Optional[GenerateOptions] = None) -> str:
        options = options or GenerateOptions()
        params = dict(self.params)
        params.update(
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            top_p=options.top_p,
        )
        if options.stop:
            params["stop"] = options.stop

        try:
            response = litellm.completion(**params)
        except Exception as e:
            raise LLMOperationError(f"{self.params['model']} request failed: {e}", op="generate") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise LLMOperationError(f"{self.params['model']} returned no choices", op="generate")
        return choices[0].message.content or ""
