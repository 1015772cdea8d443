import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import List, NamedTuple, Optional, Sequence, Tuple

from literag.chunker import Chunk
from literag.exceptions import ValidationError
from literag.search_index import SearchIndex
from literag.similarity import Vector, rank_by_cosine, to_vector

logger = logging.getLogger(__name__)


class ScoredMatch(NamedTuple):
    """A stored chunk paired with its similarity to a query."""

    chunk: Chunk
    score: float


class VectorStore(ABC):
    """Owns chunks and their embedding vectors and answers top-k queries."""

    @abstractmethod
    def add(self, chunks: Sequence[Chunk]) -> None:
        """Append chunks. Every chunk must already carry an embedding."""

    @abstractmethod
    def search(self, query_vector: Vector, top_k: int = 5) -> List[ScoredMatch]:
        """Return the ``top_k`` most similar chunks, best first."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class MemoryVectorStore(VectorStore):
    """
    An in-memory vector store.

    Chunks and vectors are kept in two parallel lists; a chunk's position is
    its identity for ranking. By default every search is an exact cosine
    scan. Passing a ``search_index`` (e.g. GraphSearchIndex) switches to that
    index instead; it is rebuilt from a snapshot of the vectors whenever the
    store has grown since the last build.

    Not safe for concurrent writers.
    """

    def __init__(self, search_index: Optional[SearchIndex] = None):
        self._chunks: List[Chunk] = []
        self._embeddings: List[List[float]] = []
        self._search_index = search_index
        self._indexed_size = -1  # collection size at last index build

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def add(self, chunks: Sequence[Chunk]) -> None:
        """
        Add chunks that already carry embeddings.

        Raises:
            ValidationError: if any chunk has no embedding, or one that
                cannot be read as a numeric vector. Nothing is added in that case.
        """
        chunks = list(chunks)
        vectors = []
        for chunk in chunks:
            if chunk.embedding is None:
                raise ValidationError(
                    f"Chunk '{chunk.id}' has no embedding; embed chunks before adding them"
                )
            try:
                vectors.append(to_vector(chunk.embedding))
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    f"Chunk '{chunk.id}' has an invalid embedding: {exc}"
                ) from exc

        self._chunks.extend(chunks)
        self._embeddings.extend(vectors)

    def search(self, query_vector: Vector, top_k: int = 5) -> List[ScoredMatch]:
        """
        Find the top_k most similar chunks to the query vector.

        Scores are cosine similarities in [-1, 1]; ties keep insertion order.
        """
        if not self._chunks:
            return []
        ranked = self._rank(to_vector(query_vector), top_k)
        return [ScoredMatch(self._chunks[idx], score) for idx, score in ranked]

    def _rank(self, query: List[float], top_k: int) -> List[Tuple[int, float]]:
        if self._search_index is None:
            return rank_by_cosine(self._embeddings, query, top_k)
        if self._indexed_size != len(self._embeddings):
            self._search_index.build(list(self._embeddings))
            self._indexed_size = len(self._embeddings)
        return self._search_index.query(query, top_k)

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    @property
    def chunks(self) -> Tuple[Chunk, ...]:
        return tuple(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chunks={len(self._chunks)})"


class FileVectorStore(MemoryVectorStore):
    """
    A MemoryVectorStore persisted to a JSON file.

    Use ``FileVectorStore.open(path)`` to get a store already loaded from
    disk. The whole file is rewritten after every ``add``.

    File layout::

        {"chunks": [<chunk record>, ...], "embeddings": [[float, ...], ...]}
    """

    def __init__(self, path: str, search_index: Optional[SearchIndex] = None):
        super().__init__(search_index=search_index)
        self.path = path

    @classmethod
    def open(cls, path: str, search_index: Optional[SearchIndex] = None) -> "FileVectorStore":
        """
        Load the store at ``path``. A missing file yields an empty store.
        """
        store = cls(path, search_index=search_index)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except FileNotFoundError:
            logger.debug("No vector store at %s yet; starting empty", path)
            return store

        records = payload.get("chunks") or []
        embeddings = payload.get("embeddings") or []
        if len(records) != len(embeddings):
            raise ValidationError(
                f"Corrupt vector store {path}: {len(records)} chunks but "
                f"{len(embeddings)} embeddings"
            )
        for record, embedding in zip(records, embeddings):
            chunk = Chunk.from_dict(record)
            chunk.embedding = embedding
            store._chunks.append(chunk)
            store._embeddings.append(embedding)

        logger.debug("Loaded %d chunks from %s", len(store), path)
        return store

    def add(self, chunks: Sequence[Chunk]) -> None:
        super().add(chunks)
        self.save()

    def save(self) -> None:
        """Rewrite the whole store to ``self.path``."""
        payload = {
            "chunks": [_record(chunk) for chunk in self._chunks],
            "embeddings": self._embeddings,
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
        ) as fh:
            tmp_path = fh.name
            try:
                json.dump(payload, fh, indent=2)
            except BaseException:
                fh.close()
                os.unlink(tmp_path)
                raise
        try:
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug("Saved %d chunks to %s", len(self._chunks), self.path)

    def __repr__(self) -> str:
        return f"FileVectorStore(path={self.path!r}, chunks={len(self._chunks)})"


def _record(chunk: Chunk) -> dict:
    # Vectors live in the parallel "embeddings" list only.
    record = chunk.to_dict()
    record.pop("embedding", None)
    return record
