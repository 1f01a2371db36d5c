"""
Embedders - Text to vector capability for the retrieval pipeline

The Retriever depends only on the Embedder protocol:
    embed(text) -> list[float]
    embed_batch(texts) -> list[list[float]]   (one vector per input, same order)

Implementations:
- OllamaEmbedder: local models through the Ollama API (nomic-embed-text, ...)
- OpenAIEmbedder: hosted models through the OpenAI API (text-embedding-3-small, ...)

Every transport failure or timeout surfaces as EmbeddingUnavailable;
empty input is a caller bug and raises ValueError.

Usage:
    from retrieval.embedder import OllamaEmbedder

    embedder = OllamaEmbedder(model="nomic-embed-text", timeout=30.0)
    vector = embedder.embed("An example sentence")
"""

import logging
from typing import Optional, Protocol, Sequence

import httpx
import ollama
import openai

from common.exceptions import EmbeddingUnavailable, InvalidConfiguration

from .config import RetrievalConfig

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Maps text to a fixed-dimension float vector."""

    def embed(self, text: str) -> list[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        ...


def _require_text(texts: Sequence[str]) -> None:
    for i, text in enumerate(texts):
        if not text:
            raise ValueError(f"Cannot embed empty text (input {i})")


class OllamaEmbedder:
    """
    Generates text embeddings using a local Ollama model.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        timeout: float = 30.0,
    ):
        """
        Initialize the embedder.

        Args:
            model: Ollama model name for embeddings.
            base_url: Ollama API base URL.
            timeout: Seconds to wait for each embedding request.
        """
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._client = ollama.Client(host=base_url, timeout=timeout)
        self._dimensions: Optional[int] = None

    @property
    def dimensions(self) -> Optional[int]:
        """Return the embedding dimensions (available after first embed call)."""
        return self._dimensions

    def embed(self, text: str) -> list[float]:
        """
        Generate an embedding for a single text.

        Raises:
            ValueError: If the text is empty.
            EmbeddingUnavailable: If Ollama fails or times out.
        """
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts in one request.

        Returns:
            One embedding per input text, in input order.

        Raises:
            ValueError: If any text is empty.
            EmbeddingUnavailable: If Ollama fails, times out, or returns
                a different number of vectors than texts.
        """
        if not texts:
            return []
        _require_text(texts)
        logger.debug(f"Embedding {len(texts)} texts with Ollama model {self.model}")

        try:
            response = self._client.embed(model=self.model, input=list(texts))
        except ollama.ResponseError as e:
            raise EmbeddingUnavailable(
                f"Ollama embedding failed for model '{self.model}'",
                service="ollama",
                original_error=e,
            ) from e
        except httpx.TimeoutException as e:
            raise EmbeddingUnavailable(
                f"Ollama embedding request exceeded {self.timeout}s",
                service="ollama",
                timed_out=True,
                original_error=e,
            ) from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise EmbeddingUnavailable(
                f"Cannot connect to Ollama at {self.base_url}. "
                f"Is Ollama running? Start it with: ollama serve",
                service="ollama",
                original_error=e,
            ) from e

        embeddings = [list(vector) for vector in response["embeddings"]]
        if len(embeddings) != len(texts):
            raise EmbeddingUnavailable(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} texts",
                service="ollama",
            )
        self._dimensions = len(embeddings[0])
        return embeddings

    def health_check(self) -> dict[str, bool | str]:
        """
        Check if Ollama is running and the embedding model is available.

        Returns:
            Dict with 'healthy' (bool), 'ollama_running' (bool),
            'model_available' (bool), and 'error' (str, if any).
        """
        result = {
            "healthy": False,
            "ollama_running": False,
            "model_available": False,
            "model": self.model,
            "error": "",
        }

        try:
            models = self._client.list()
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            result["error"] = f"Cannot connect to Ollama: {e}"
            return result

        result["ollama_running"] = True
        model_names = [m.model for m in models.models]
        # "nomic-embed-text" matches "nomic-embed-text:latest"
        result["model_available"] = any(
            name.startswith(self.model) for name in model_names
        )
        if result["model_available"]:
            result["healthy"] = True
        else:
            result["error"] = (
                f"Model '{self.model}' not found. "
                f"Available: {model_names}. "
                f"Pull it with: ollama pull {self.model}"
            )
        return result


class OpenAIEmbedder:
    """
    Generates text embeddings using the OpenAI embeddings API.

    SDK-level retries are disabled; callers retry with their own policy.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[openai.OpenAI] = None,
    ):
        self.model = model
        self.timeout = timeout
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._dimensions: Optional[int] = None

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        _require_text(texts)
        logger.debug(f"Embedding {len(texts)} texts with OpenAI model {self.model}")

        try:
            response = self._client.embeddings.create(model=self.model, input=list(texts))
        except openai.APITimeoutError as e:
            raise EmbeddingUnavailable(
                f"OpenAI embedding request exceeded {self.timeout}s",
                service="openai",
                timed_out=True,
                original_error=e,
            ) from e
        except openai.APIError as e:
            raise EmbeddingUnavailable(
                f"OpenAI embedding failed for model '{self.model}'",
                service="openai",
                original_error=e,
            ) from e

        # The API may return items out of order; each carries its input index
        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(texts):
            raise EmbeddingUnavailable(
                f"OpenAI returned {len(items)} embeddings for {len(texts)} texts",
                service="openai",
            )
        embeddings = [list(item.embedding) for item in items]
        self._dimensions = len(embeddings[0])
        return embeddings


def build_embedder(config: RetrievalConfig) -> Embedder:
    """Create the embedder selected by ``config.embedding_provider``."""
    if config.embedding_provider == "ollama":
        return OllamaEmbedder(
            model=config.embedding_model,
            base_url=config.ollama_base_url,
            timeout=config.embed_timeout,
        )
    if config.embedding_provider == "openai":
        return OpenAIEmbedder(
            model=config.embedding_model,
            api_key=config.openai_api_key,
            timeout=config.embed_timeout,
        )
    raise InvalidConfiguration(f"Unsupported embedding provider: {config.embedding_provider}")
