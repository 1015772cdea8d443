import logging
import re
from typing import Dict, List, Optional, Union

from literag.document_loader import Document, Metadata
from literag.similarity import to_vector

logger = logging.getLogger(__name__)

# Whitespace that follows sentence-ending punctuation.
DEFAULT_SENTENCE_BOUNDARY = r"(?<=[.!?])\s+"


class Chunk:
    """A piece of a document produced by the chunker."""

    def __init__(
        self,
        id: str,
        doc_id: str,
        text: str,
        embedding: Optional[List[float]] = None,
        metadata: Optional[Metadata] = None,
    ):
        self.id = id
        self.doc_id = doc_id
        self.text = text
        self.embedding = embedding
        self.metadata = metadata if metadata is not None else {}

    def with_embedding(self, embedding) -> "Chunk":
        """Return a copy of this chunk carrying ``embedding``."""
        return Chunk(
            id=self.id,
            doc_id=self.doc_id,
            text=self.text,
            embedding=to_vector(embedding),
            metadata=dict(self.metadata),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "doc_id": self.doc_id,
            "text": self.text,
            "embedding": self.embedding,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Chunk":
        return cls(
            id=data["id"],
            doc_id=data["doc_id"],
            text=data["text"],
            embedding=data.get("embedding"),
            metadata=data.get("metadata") or {},
        )

    def __repr__(self):
        preview = self.text[:50].replace("\n", " ")
        return f"Chunk(id='{self.id}', text='{preview}...')"


class TextChunker:
    """
    Splits Document objects into bounded, overlapping Chunk objects.

    Strategy: sentence packing.

    The text is cut into sentences on ``sentence_boundary``. Sentences are
    packed greedily into a buffer (joined by single spaces) until the next
    one would push it past ``chunk_size``. The buffer is then emitted and
    the next buffer starts with the last ``chunk_overlap`` characters of the
    emitted one, so context carries across chunk boundaries. A sentence that
    is longer than ``chunk_size`` on its own is hard-sliced into windows.

    Args:
        chunk_size:        Soft ceiling on chunk length in characters.
        chunk_overlap:     Characters of trailing context carried into the
                           next chunk.
        sentence_boundary: Regex (string or compiled) matching the gap
                           between sentences.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
        sentence_boundary: Union[str, re.Pattern] = DEFAULT_SENTENCE_BOUNDARY,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        if isinstance(sentence_boundary, str):
            sentence_boundary = re.compile(sentence_boundary)
        self.sentence_boundary = sentence_boundary

    def chunk(self, document: Document) -> List[Chunk]:
        """Split one Document into Chunks with ids ``<doc id>::<n>``."""
        chunks = []
        for idx, chunk_text in enumerate(self.split_text(document.text)):
            chunks.append(
                Chunk(
                    id=f"{document.id}::{idx}",
                    doc_id=document.id,
                    text=chunk_text,
                    metadata=dict(document.metadata),
                )
            )
        logger.debug("Document %s split into %d chunks", document.id, len(chunks))
        return chunks

    def split_documents(self, documents: List[Document]) -> List[Chunk]:
        """Split a list of Documents into Chunks."""
        all_chunks = []
        for doc in documents:
            all_chunks.extend(self.chunk(doc))
        return all_chunks

    # ------------------------------------------------------------------
    # Splitting logic
    # ------------------------------------------------------------------

    def split_text(self, text: str) -> List[str]:
        """Return the chunk texts for ``text`` in document order."""
        sentences = [s.strip() for s in self.sentence_boundary.split(text)]
        sentences = [s for s in sentences if s]

        chunks: List[str] = []
        current = ""

        for sentence in sentences:
            if len((current + " " + sentence).strip()) <= self.chunk_size:
                current = f"{current} {sentence}" if current else sentence
                continue

            if current:
                chunks.append(current)
                if len(sentence) > self.chunk_size:
                    chunks.extend(self._slice(sentence))
                    current = ""
                else:
                    current = self._seed(current, sentence)
            else:
                chunks.extend(self._slice(sentence))

        if current:
            chunks.append(current)
        return chunks

    def _tail(self, text: str, limit: int) -> str:
        if limit <= 0:
            return ""
        return text[max(0, len(text) - limit):]

    def _seed(self, previous: str, sentence: str) -> str:
        """
        Start a new buffer: overlap from ``previous`` followed by ``sentence``.

        The overlap is shortened when the full amount would push the new
        buffer past chunk_size.
        """
        room = self.chunk_size - len(sentence) - 1
        overlap = self._tail(previous, min(self.chunk_overlap, room))
        return (overlap + " " + sentence).strip()

    def _slice(self, sentence: str) -> List[str]:
        """Hard-split an oversized sentence into chunk_size windows."""
        windows = []
        start = 0
        while start < len(sentence):
            window = sentence[start:start + self.chunk_size]
            windows.append(window)
            step = self.chunk_size - len(self._tail(window, self.chunk_overlap))
            # Always move forward, even when overlap >= chunk_size.
            start += step if step > 0 else self.chunk_size
        return windows

    def __repr__(self) -> str:
        return (
            f"TextChunker(chunk_size={self.chunk_size}, "
            f"chunk_overlap={self.chunk_overlap})"
        )


def chunk_document(document: Document, **options) -> List[Chunk]:
    """Chunk a single document with a throwaway TextChunker."""
    return TextChunker(**options).chunk(document)
