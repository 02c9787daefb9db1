"""Local embedding generation with fastembed."""

import logging
from typing import List, Optional

from memkeep.context import OperationContext, check_context
from memkeep.embedders.base import EmbeddingProvider
from memkeep.exceptions import EmbeddingFailedError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"

# Known dimensions to avoid loading a model just for its dimension
KNOWN_DIMENSIONS = {
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
}


def get_embedding_dimension(model_name: str = DEFAULT_MODEL) -> Optional[int]:
    """Get the embedding dimension for a known model, or None if unknown.

    Common dimensions:
    - BAAI/bge-small-en-v1.5: 384
    - all-MiniLM-L6-v2: 384
    """
    return KNOWN_DIMENSIONS.get(model_name)


class FastEmbedProvider(EmbeddingProvider):
    """Runs a fastembed ONNX model in-process. The model loads on first use."""

    def __init__(self, model_name: str = DEFAULT_MODEL, dimensions: Optional[int] = None):
        self.model_name = model_name
        self._dimensions = dimensions or get_embedding_dimension(model_name)
        self._model = None

    def _get_model(self):
        if self._model is None:
            try:
                from fastembed import TextEmbedding
            except ImportError as e:
                raise ImportError(
                    "fastembed is required for local embeddings. Install with: pip install memkeep[local]"
                ) from e

            logger.debug(f"Loading embedding model {self.model_name}")
            self._model = TextEmbedding(model_name=self.model_name)
        return self._model

    def embed(self, text: str, ctx: Optional[OperationContext] = None) -> List[float]:
        return self.embed_batch([text], ctx=ctx)[0]

    def embed_batch(self, texts: List[str], ctx: Optional[OperationContext] = None) -> List[List[float]]:
        check_context(ctx)
        model = self._get_model()
        try:
            vectors = [vector.tolist() for vector in model.embed(texts)]
        except Exception as e:
            raise EmbeddingFailedError(f"fastembed failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingFailedError(f"expected {len(texts)} embeddings, got {len(vectors)}")
        if self._dimensions is None and vectors:
            self._dimensions = len(vectors[0])
        return vectors

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            # Fall back to getting dimension from model
            self._dimensions = len(self.embed("test"))
        return self._dimensions

    def close(self) -> None:
        self._model = None
