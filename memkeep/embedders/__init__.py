"""Embedding providers."""

from memkeep.config import EmbedderConfig
from memkeep.embedders.base import EmbeddingProvider
from memkeep.embedders.fastembed_provider import FastEmbedProvider
from memkeep.embedders.http import OpenAIEmbedder, QwenEmbedder


def create_embedder(config: EmbedderConfig) -> EmbeddingProvider:
    """Build the embedding provider named by ``config.provider``."""
    if config.provider == "fastembed":
        kwargs = {"dimensions": config.dimensions}
        if config.model:
            kwargs["model_name"] = config.model
        return FastEmbedProvider(**kwargs)

    provider_cls = OpenAIEmbedder if config.provider == "openai" else QwenEmbedder
    return provider_cls(
        api_key=config.api_key,
        model=config.model,
        base_url=config.base_url,
        dimensions=config.dimensions,
        timeout=config.timeout,
    )


__all__ = ["EmbeddingProvider", "FastEmbedProvider", "OpenAIEmbedder", "QwenEmbedder", "create_embedder"]
