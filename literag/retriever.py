from typing import List, Optional

from literag.embedder import EmbeddingsProvider
from literag.vector_store import ScoredMatch, VectorStore


class Retriever:
    """
    Retrieves the most relevant document chunks for a given query.

    Embeds the query with the same provider used at ingestion time, then
    asks the vector store for the top-k chunks by cosine similarity.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: EmbeddingsProvider,
        top_k: int = 5,
        score_threshold: Optional[float] = None,
    ):
        """
        Args:
            vector_store: A populated VectorStore instance.
            embedder: The same provider used when the store was filled.
            top_k: Number of top results to return.
            score_threshold: If set, only return results with similarity >= threshold.
        """
        self.vector_store = vector_store
        self.embedder = embedder
        self.top_k = top_k
        self.score_threshold = score_threshold

    def retrieve(self, query: str, top_k: Optional[int] = None) -> List[ScoredMatch]:
        """
        Retrieve the most relevant chunks for the given query.

        Args:
            query: The user's natural language question.
            top_k: Override the default top_k for this call.

        Returns:
            ScoredMatch tuples sorted by score desc.
        """
        k = top_k if top_k is not None else self.top_k

        matches = self.vector_store.search(self.embedder.embed_query(query), k)

        if self.score_threshold is None:
            return matches
        # Results are sorted, so stop at the first one below the threshold.
        kept = []
        for match in matches:
            if match.score < self.score_threshold:
                break
            kept.append(match)
        return kept

    def __repr__(self) -> str:
        return (
            f"Retriever(top_k={self.top_k}, "
            f"score_threshold={self.score_threshold}, "
            f"embedder={self.embedder.__class__.__name__})"
        )
