import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence
from urllib.parse import quote

import numpy as np
import requests

from literag.exceptions import ConfigurationError, ProviderError, ValidationError

logger = logging.getLogger(__name__)


class EmbeddingsProvider(ABC):
    """
    Turns texts into vectors.

    ``embed`` must return one vector per input text, in input order, all of
    the same dimension, and must be deterministic for a fixed model. An
    empty input returns an empty list without contacting any backend.
    """

    @abstractmethod
    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        ...

    def embed_query(self, query: str) -> List[float]:
        """Embed a single string as a one-element batch."""
        vectors = self.embed([query])
        if len(vectors) != 1:
            raise ValidationError(
                f"Embeddings provider returned {len(vectors)} vectors for 1 query"
            )
        return vectors[0]


class FunctionEmbeddings(EmbeddingsProvider):
    """Wraps any ``texts -> vectors`` callable (handy for tests and local models)."""

    def __init__(self, fn: Callable[[List[str]], Sequence[Sequence[float]]]):
        self.fn = fn

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if not texts:
            return []
        return [list(vector) for vector in self.fn(texts)]


class OpenAIEmbeddings(EmbeddingsProvider):
    """
    OpenAI embeddings through the official SDK.

    Args:
        api_key:         OpenAI API key. Falls back to OPENAI_API_KEY env var.
        model:           Embedding model name.
        batch_size:      Number of texts per API call. Larger = faster but
                         may hit token-per-minute limits.
        base_url:        Optional alternative endpoint (proxies, Azure, etc).
        request_timeout: Timeout in seconds for each API call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        batch_size: int = 100,
        base_url: Optional[str] = None,
        request_timeout: float = 60,
    ):
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not resolved_key:
            raise ConfigurationError(
                "OpenAIEmbeddings requires an API key. Pass api_key= or set OPENAI_API_KEY."
            )
        try:
            import openai  # type: ignore
        except ImportError:
            raise ImportError(
                "openai package is required. Install it with: pip install openai"
            )

        self.model = model
        self.batch_size = batch_size
        self.request_timeout = request_timeout
        self._openai = openai
        self._client = openai.OpenAI(api_key=resolved_key, base_url=base_url)

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if not texts:
            return []

        all_vectors: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]

            # Retry once on rate-limit errors
            for attempt in range(2):
                try:
                    response = self._client.embeddings.create(
                        model=self.model, input=batch, timeout=self.request_timeout
                    )
                    break
                except self._openai.RateLimitError:
                    if attempt == 0:
                        logger.warning("OpenAI rate limit hit; retrying in 5s")
                        time.sleep(5)
                    else:
                        raise

            data = sorted(response.data, key=lambda item: item.index)
            all_vectors.extend(list(item.embedding) for item in data)

        return all_vectors

    def __repr__(self) -> str:
        return f"OpenAIEmbeddings(model={self.model!r})"


class HuggingFaceEmbeddings(EmbeddingsProvider):
    """
    Hugging Face Inference API feature-extraction embeddings over HTTP.

    Args:
        api_token:       HF token. Falls back to HUGGINGFACE_API_TOKEN env var.
        model:           Model id on the Hub.
        request_timeout: Timeout in seconds for each request.
    """

    BASE_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction/"

    def __init__(
        self,
        api_token: Optional[str] = None,
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        request_timeout: float = 60,
        session: Optional[requests.Session] = None,
    ):
        token = api_token or os.environ.get("HUGGINGFACE_API_TOKEN", "")
        if not token:
            raise ConfigurationError(
                "HuggingFaceEmbeddings requires an API token. "
                "Pass api_token= or set HUGGINGFACE_API_TOKEN."
            )
        self.api_token = token
        self.model = model
        self.request_timeout = request_timeout
        self.url = self.BASE_URL + quote(model, safe="")
        self._session = session or requests.Session()

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if not texts:
            return []

        response = self._session.post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_token}"},
            json=texts[0] if len(texts) == 1 else texts,
            timeout=self.request_timeout,
        )
        if not response.ok:
            raise ProviderError(
                f"HuggingFace embeddings failed: {response.status_code} "
                f"{response.reason} {response.text}",
                provider="huggingface",
                status_code=response.status_code,
            )
        return normalize_embedding_response(response.json())

    def __repr__(self) -> str:
        return f"HuggingFaceEmbeddings(model={self.model!r})"


def normalize_embedding_response(payload) -> List[List[float]]:
    """
    Coerce a feature-extraction response into a batch of vectors.

    A flat list of numbers is a single embedding and gets wrapped; a list of
    lists is already a batch; anything else yields an empty batch.
    """
    if not isinstance(payload, list) or not payload:
        return []
    if isinstance(payload[0], (int, float)):
        return [list(payload)]
    if isinstance(payload[0], list):
        return [list(row) for row in payload]
    return []


class SentenceTransformerEmbeddings(EmbeddingsProvider):
    """Use a sentence-transformers model running locally (no API key needed)."""

    def __init__(self, model: str = "all-MiniLM-L6-v2"):
        self.model = model
        self._local_model = None  # lazy-loaded on first use

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if not texts:
            return []
        if self._local_model is None:
            try:
                from sentence_transformers import SentenceTransformer  # type: ignore
            except ImportError:
                raise ImportError(
                    "sentence-transformers is required for local embeddings. "
                    "Install it with: pip install sentence-transformers"
                )
            self._local_model = SentenceTransformer(self.model)

        vectors = self._local_model.encode(texts, convert_to_numpy=True)
        return vectors.astype(np.float32).tolist()

    def __repr__(self) -> str:
        return f"SentenceTransformerEmbeddings(model={self.model!r})"


class Embedder(EmbeddingsProvider):
    """
    Picks an embeddings backend from a ``backend:model`` string.

    Supports:
        - ``openai:<model>``  OpenAI embeddings API (default)
        - ``hf:<model>``      Hugging Face Inference API
        - ``local:<model>``   any sentence-transformers model

    Output vectors are L2-normalised by default. Cosine ranking is unaffected
    but stored vectors become directly usable with inner-product indexes.

    Args:
        model:     Backend-prefixed model name. No prefix means OpenAI.
        normalize: L2-normalise each returned vector.
        api_key:   Credential for the chosen remote backend.
        **kwargs:  Passed through to the backend adapter.
    """

    BACKENDS = ("openai", "hf", "local")

    def __init__(
        self,
        model: str = "openai:text-embedding-3-small",
        normalize: bool = True,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        self.model = model
        self.normalize = normalize
        backend, name = self._parse_model(model)
        self.backend = backend

        if backend == "openai":
            self._provider = OpenAIEmbeddings(api_key=api_key, model=name, **kwargs)
        elif backend == "hf":
            self._provider = HuggingFaceEmbeddings(api_token=api_key, model=name, **kwargs)
        elif backend == "local":
            self._provider = SentenceTransformerEmbeddings(model=name)
        else:
            raise ConfigurationError(
                f"Unknown embedding backend '{backend}'. Supported: {self.BACKENDS}"
            )

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        vectors = self._provider.embed(texts)
        if not vectors or not self.normalize:
            return vectors

        # L2-normalise so downstream cosine similarity is just a dot product
        matrix = np.asarray(vectors, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms = np.where(norms == 0, 1, norms)  # avoid divide-by-zero
        return (matrix / norms).tolist()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_model(model: str):
        """Split 'backend:model_name' into (backend, model_name)."""
        if ":" in model:
            backend, name = model.split(":", 1)
            return backend.lower(), name
        # Default to OpenAI if no prefix given
        return "openai", model

    def __repr__(self) -> str:
        return f"Embedder(model={self.model!r}, normalize={self.normalize})"
