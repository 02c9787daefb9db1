"""Text generation providers."""

from memkeep.config import LLMConfig
from memkeep.llm.base import GenerateOptions, LLMProvider, Message


def create_llm(config: LLMConfig) -> LLMProvider:
    """Build the text generation provider for ``config``."""
    from memkeep.llm.litellm_provider import LiteLLMProvider

    return LiteLLMProvider(config)


__all__ = ["GenerateOptions", "LLMProvider", "Message", "create_llm"]
