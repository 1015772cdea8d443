"""
Vector search indexes.

GraphSearchIndex is a lightweight approximate nearest-neighbour index: it
links every vector to a handful of random neighbours and answers queries
with a multi-start greedy walk over that graph. Small collections skip the
graph and use exact ranking. Construction is seeded from the collection
shape, so the same input always yields the same graph and the same answers.

FaissSearchIndex offers the same build/query contract on top of FAISS.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from literag.exceptions import IndexNotReadyError, ValidationError
from literag.similarity import Vector, cosine_similarity, rank_by_cosine

logger = logging.getLogger(__name__)

GRAPH_SEED = 1234567
QUERY_SEED = 98765


class SearchIndex(ABC):
    """Build-once, query-many index over a snapshot of vectors."""

    @abstractmethod
    def build(self, vectors: Sequence[Vector]) -> None:
        """Index ``vectors``, discarding anything built before."""

    @abstractmethod
    def query(self, vector: Vector, top_k: int) -> List[Tuple[int, float]]:
        """Return up to ``top_k`` (position, score) pairs, best first."""

    @property
    @abstractmethod
    def is_built(self) -> bool:
        ...


class LinearCongruentialGenerator:
    """
    32-bit LCG (Numerical Recipes constants) yielding floats in [0, 1].

    Each instance owns its state, so independent indexes never share a
    random stream.
    """

    MULTIPLIER = 1664525
    INCREMENT = 1013904223
    MASK = 0xFFFFFFFF

    def __init__(self, seed: int):
        self.state = seed & self.MASK

    def random(self) -> float:
        self.state = (self.MULTIPLIER * self.state + self.INCREMENT) & self.MASK
        return self.state / self.MASK

    def randrange(self, n: int) -> int:
        """Integer in [0, n)."""
        return min(n - 1, int(math.floor(self.random() * n)))


RandomFactory = Callable[[int], LinearCongruentialGenerator]


class _Graph:
    """Immutable snapshot of a built index."""

    def __init__(self, vectors: List[Vector], dims: int, neighbors: List[Tuple[int, ...]]):
        self.vectors = vectors
        self.dims = dims
        self.neighbors = neighbors


class GraphSearchIndex(SearchIndex):
    """
    Approximate top-k search over a random proximity graph.

    Args:
        max_neighbors:   Upper bound on each node's out-degree (at least 2).
        exact_threshold: Collections of this size or smaller are ranked
                         exactly instead of walked.
        rng_factory:     Callable taking an integer seed and returning a
                         generator with ``random()`` and ``randrange(n)``.
    """

    def __init__(
        self,
        max_neighbors: int = 8,
        exact_threshold: int = 64,
        rng_factory: RandomFactory = LinearCongruentialGenerator,
    ):
        self.max_neighbors = max(2, int(max_neighbors))
        self.exact_threshold = exact_threshold
        self.rng_factory = rng_factory
        self._graph: Optional[_Graph] = None

    @property
    def is_built(self) -> bool:
        return self._graph is not None

    def build(self, vectors: Sequence[Vector]) -> None:
        vectors = list(vectors)
        n = len(vectors)
        if n == 0:
            self._graph = _Graph([], 0, [])
            return

        dims = len(vectors[0])
        rnd = self.rng_factory(n ^ dims ^ GRAPH_SEED)

        neighbors: List[Tuple[int, ...]] = []
        for i in range(n):
            degree = min(
                self.max_neighbors,
                max(2, int(math.floor(rnd.random() * self.max_neighbors)) + 2),
            )
            # Only n - 1 distinct non-self nodes exist.
            degree = min(degree, n - 1)
            chosen: List[int] = []
            seen: Set[int] = set()
            while len(chosen) < degree:
                candidate = rnd.randrange(n)
                if candidate != i and candidate not in seen:
                    seen.add(candidate)
                    chosen.append(candidate)
            neighbors.append(tuple(chosen))

        # Swap in the finished graph in one step so readers never see a
        # half-built index.
        self._graph = _Graph(vectors, dims, neighbors)
        logger.debug("Built proximity graph: nodes=%d dims=%d", n, dims)

    def neighbors(self, position: int) -> Tuple[int, ...]:
        return self._require_graph().neighbors[position]

    def query(self, vector: Vector, top_k: int) -> List[Tuple[int, float]]:
        graph = self._require_graph()
        n = len(graph.vectors)
        if n == 0 or top_k <= 0:
            return []
        if n <= self.exact_threshold:
            return rank_by_cosine(graph.vectors, vector, top_k)

        starts = min(5, max(1, n // 200))
        rnd = self.rng_factory(n ^ len(vector) ^ QUERY_SEED)
        scores: Dict[int, float] = {}
        visited: Set[int] = set()
        candidates: Set[int] = set()

        def score_of(position: int) -> float:
            if position not in scores:
                scores[position] = cosine_similarity(graph.vectors[position], vector)
            return scores[position]

        for _ in range(starts):
            current = rnd.randrange(n)
            while True:
                visited.add(current)
                best, best_score = current, score_of(current)
                for nb in graph.neighbors[current]:
                    if nb in visited:
                        continue
                    candidates.add(nb)
                    nb_score = score_of(nb)
                    if nb_score > best_score:
                        best, best_score = nb, nb_score
                if best == current:
                    break
                current = best
            candidates.add(current)

        # Nodes walked through are candidates too.
        candidates |= visited
        ranked = sorted(candidates, key=lambda pos: (-score_of(pos), pos))
        return [(pos, scores[pos]) for pos in ranked[:top_k]]

    def _require_graph(self) -> _Graph:
        if self._graph is None:
            raise IndexNotReadyError("Index not built: call build() before query()")
        return self._graph

    def __len__(self) -> int:
        return len(self._graph.vectors) if self._graph is not None else 0

    def __repr__(self) -> str:
        return (
            f"GraphSearchIndex(nodes={len(self)}, "
            f"max_neighbors={self.max_neighbors}, built={self.is_built})"
        )


class FaissSearchIndex(SearchIndex):
    """
    Exact cosine search backed by a FAISS inner-product index.

    Vectors are L2-normalised on build so inner product equals cosine
    similarity. Unlike GraphSearchIndex, every vector must share one
    dimension.
    """

    def __init__(self):
        self._index = None
        self._size = 0
        self._dim = None
        self._built = False

    @property
    def is_built(self) -> bool:
        return self._built

    def build(self, vectors: Sequence[Vector]) -> None:
        import faiss  # type: ignore

        vectors = list(vectors)
        if not vectors:
            self._index, self._size, self._dim, self._built = None, 0, None, True
            return

        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise ValidationError(
                f"FaissSearchIndex requires a single vector dimension, got {sorted(dims)}"
            )
        dim = dims.pop()

        matrix = _normalise_rows(np.asarray(vectors, dtype=np.float32))
        index = faiss.IndexFlatIP(dim)
        index.add(matrix)

        self._index, self._size, self._dim, self._built = index, len(vectors), dim, True
        logger.debug("Built FAISS index: vectors=%d dims=%d", len(vectors), dim)

    def query(self, vector: Vector, top_k: int) -> List[Tuple[int, float]]:
        if not self._built:
            raise IndexNotReadyError("Index not built: call build() before query()")
        if self._size == 0 or top_k <= 0:
            return []
        if len(vector) != self._dim:
            # Same leniency as the cosine kernel: mismatches score 0.
            return [(idx, 0.0) for idx in range(min(top_k, self._size))]

        query = _normalise_rows(np.asarray(vector, dtype=np.float32).reshape(1, -1))
        k = min(top_k, self._size)
        scores, indices = self._index.search(query, k)

        results = []
        for score, idx in zip(scores[0], indices[0]):
            if idx == -1:  # FAISS uses -1 for unfilled slots
                continue
            results.append((int(idx), max(-1.0, min(1.0, float(score)))))
        results.sort(key=lambda pair: (-pair[1], pair[0]))
        return results

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"FaissSearchIndex(vectors={self._size}, dim={self._dim})"


def _normalise_rows(matrix: np.ndarray) -> np.ndarray:
    matrix = np.nan_to_num(matrix, nan=0.0)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms = np.where(norms == 0, 1, norms)  # zero vectors stay zero
    return np.ascontiguousarray(matrix / norms, dtype=np.float32)
