"""Test configuration and fixtures."""

import hashlib
import math
from typing import Dict, List, Optional

import numpy as np
import pytest

from memkeep.config import IntelligenceConfig
from memkeep.context import OperationContext, check_context
from memkeep.embedders.base import EmbeddingProvider
from memkeep.exceptions import EmbeddingFailedError
from memkeep.memory import MemoryClient
from memkeep.storage.memory_store import InMemoryVectorStore

DIMS = 4

# "likes" vs "loves" sit at cosine 0.97, above the default duplicate threshold
COFFEE_VECTORS = {
    "User likes coffee": [1.0, 0.0, 0.0, 0.0],
    "User loves coffee": [0.97, math.sqrt(1 - 0.97**2), 0.0, 0.0],
    "User likes tea": [0.0, 0.0, 1.0, 0.0],
    "coffee": [0.9, 0.1, 0.0, 0.0],
}


class FakeEmbedder(EmbeddingProvider):
    """Deterministic embedder: fixed vectors for known texts, hashed vectors otherwise."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dims: int = DIMS):
        self.vectors = dict(vectors or {})
        self.dims = dims
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None
        self.closed = False

    def _vector(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:8], "big")
        return np.random.default_rng(seed).standard_normal(self.dims).tolist()

    def embed(self, text: str, ctx: Optional[OperationContext] = None) -> List[float]:
        return self.embed_batch([text], ctx=ctx)[0]

    def embed_batch(self, texts: List[str], ctx: Optional[OperationContext] = None) -> List[List[float]]:
        check_context(ctx)
        self.calls.extend(texts)
        if self.fail_with is not None:
            raise self.fail_with
        return [self._vector(t) for t in texts]

    @property
    def dimensions(self) -> int:
        return self.dims

    def close(self) -> None:
        self.closed = True


class FailingEmbedder(FakeEmbedder):
    def __init__(self, error: Optional[Exception] = None):
        super().__init__()
        self.fail_with = error or EmbeddingFailedError("provider down")


@pytest.fixture
def embedder():
    return FakeEmbedder(COFFEE_VECTORS)


@pytest.fixture
def store():
    return InMemoryVectorStore(dimensions=DIMS)


@pytest.fixture
def client(store, embedder):
    """Client with dedup enabled, backed by the in-memory store."""
    c = MemoryClient(store, embedder, intelligence=IntelligenceConfig(enabled=True))
    yield c
    c.close()


@pytest.fixture
def plain_client(store, embedder):
    """Client with dedup disabled."""
    c = MemoryClient(store, embedder)
    yield c
    c.close()


@pytest.fixture
def isolated_xdg(tmp_path, monkeypatch):
    """Point XDG config and data dirs at a temp directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path
