"""
Cosine similarity and exact top-k ranking.

Both functions are deliberately lenient: vectors of different length, empty
vectors and zero vectors all score 0.0 instead of raising. Callers that mix
embedding models in one store get poor rankings rather than crashes.
"""

import math
from typing import List, Sequence, Tuple

import numpy as np

Vector = Sequence[float]


def to_vector(values) -> List[float]:
    """Coerce a sequence or numpy array into a plain list of floats.

    Missing components (None) become NaN, which the kernel reads as 0.
    """
    return np.asarray(values, dtype=np.float64).ravel().tolist()


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine of the angle between ``a`` and ``b``.

    Returns a float in [-1, 1], or 0.0 if the vectors differ in length, are
    empty, have zero norm, or the norm product is not finite. NaN components
    are treated as 0.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    va = np.where(np.isnan(va), 0.0, va)
    vb = np.where(np.isnan(vb), 0.0, vb)

    with np.errstate(over="ignore", invalid="ignore"):
        dot = float(np.dot(va, vb))
        norm_a = float(np.dot(va, va))
        norm_b = float(np.dot(vb, vb))

    # sqrt(x * x) == x exactly, so identical vectors score exactly 1.0.
    product = norm_a * norm_b
    if math.isfinite(product) and product > 0.0:
        denom = math.sqrt(product)
    else:
        denom = math.sqrt(norm_a) * math.sqrt(norm_b)

    if not math.isfinite(denom) or denom == 0.0:
        return 0.0
    score = dot / denom
    if not math.isfinite(score):
        return 0.0
    # Floating point error can push identical vectors a hair past 1.
    return max(-1.0, min(1.0, score))


def rank_by_cosine(
    vectors: Sequence[Vector], query: Vector, top_k: int
) -> List[Tuple[int, float]]:
    """
    Score every vector against ``query`` and return the best ``top_k``.

    Returns (index, score) pairs sorted by score descending. Equal scores
    are ordered by ascending index so the result is fully deterministic.
    """
    if top_k <= 0:
        return []
    scored = [(idx, cosine_similarity(vec, query)) for idx, vec in enumerate(vectors)]
    scored.sort(key=lambda pair: (-pair[1], pair[0]))
    return scored[:top_k]
