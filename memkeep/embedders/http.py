"""Embedding providers that call hosted HTTP APIs."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from memkeep.context import OperationContext, check_context
from memkeep.embedders.base import EmbeddingProvider
from memkeep.exceptions import ConnectionFailedError, EmbeddingFailedError, InvalidConfigError

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_DEFAULT_MODEL = "text-embedding-3-small"
QWEN_BASE_URL = "https://dashscope.aliyuncs.com/api/v1"
QWEN_DEFAULT_MODEL = "text-embedding-v4"

OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class HTTPEmbeddingProvider(EmbeddingProvider):
    """Shared request handling for JSON-over-HTTP embedding APIs.

    Args:
        api_key: Bearer token sent with every request
        model: Model name
        base_url: API base URL (no trailing slash needed)
        dimensions: Vector dimension; also requested from the API when set explicitly
        timeout: Request timeout in seconds; an operation deadline can shorten it
        http_client: Pre-configured ``httpx.Client`` (closed by the caller, not by the provider)
    """

    default_base_url = ""
    default_model = ""
    default_dimensions = 1536

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.requested_dimensions = dimensions
        self.timeout = timeout
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, url: str, payload: Dict[str, Any], ctx: Optional[OperationContext]) -> Dict[str, Any]:
        check_context(ctx)
        timeout = self.timeout
        remaining = ctx.remaining() if ctx is not None else None
        if remaining is not None:
            timeout = min(timeout, remaining)

        try:
            response = self.client.post(url, json=payload, headers=self._headers(), timeout=timeout)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ConnectionFailedError(f"embedding request timed out after {timeout} seconds") from e
        except httpx.HTTPStatusError as e:
            raise EmbeddingFailedError(
                f"API request failed with status {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise ConnectionFailedError(f"embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingFailedError(f"invalid JSON response: {e}") from e

    def embed(self, text: str, ctx: Optional[OperationContext] = None) -> List[float]:
        return self.embed_batch([text], ctx=ctx)[0]

    @property
    def dimensions(self) -> int:
        return self.requested_dimensions or self.default_dimensions

    def close(self) -> None:
        if self._owns_client:
            self.client.close()


class OpenAIEmbedder(HTTPEmbeddingProvider):
    """OpenAI-compatible ``/embeddings`` endpoint."""

    default_base_url = OPENAI_BASE_URL
    default_model = OPENAI_DEFAULT_MODEL

    @property
    def dimensions(self) -> int:
        return self.requested_dimensions or OPENAI_DIMENSIONS.get(self.model, self.default_dimensions)

    def embed_batch(self, texts: List[str], ctx: Optional[OperationContext] = None) -> List[List[float]]:
        payload: Dict[str, Any] = {"model": self.model, "input": texts}
        if self.requested_dimensions:
            payload["dimensions"] = self.requested_dimensions

        result = self._post(f"{self.base_url}/embeddings", payload, ctx)

        data = result.get("data") or []
        if len(data) != len(texts):
            raise EmbeddingFailedError(
                f"unexpected number of results from OpenAI API (got {len(data)}, expected {len(texts)})"
            )
        data = sorted(data, key=lambda item: item.get("index", 0))
        return [[float(x) for x in item["embedding"]] for item in data]


class QwenEmbedder(HTTPEmbeddingProvider):
    """Alibaba DashScope text-embedding API."""

    default_base_url = QWEN_BASE_URL
    default_model = QWEN_DEFAULT_MODEL

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        if not api_key:
            raise InvalidConfigError("API key is required for the qwen embedder")
        super().__init__(api_key=api_key, **kwargs)

    def embed_batch(self, texts: List[str], ctx: Optional[OperationContext] = None) -> List[List[float]]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": {"texts": texts},
            "parameters": {"dimension": self.dimensions},
            "text_type": "document",
        }

        result = self._post(f"{self.base_url}/services/embeddings/text-embedding/text-embedding", payload, ctx)

        embeddings = (result.get("output") or {}).get("embeddings") or []
        if len(embeddings) != len(texts):
            raise EmbeddingFailedError(
                f"unexpected number of results from Qwen API (got {len(embeddings)}, expected {len(texts)})"
            )
        embeddings = sorted(embeddings, key=lambda item: item.get("text_index", 0))
        return [[float(x) for x in item["embedding"]] for item in embeddings]
