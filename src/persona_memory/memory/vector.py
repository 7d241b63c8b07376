from __future__ import annotations

import math
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

Vector = Sequence[float]


def cosine_similarity(a: Optional[Vector], b: Optional[Vector]) -> float:
    """Cosine similarity of two equal-length vectors, in ``[-1, 1]``.

    Absent, empty or differently-sized vectors compare as ``0.0``, as does
    any vector with a zero norm.  Never raises for shape problems.
    """
    if not a or not b:
        return 0.0
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (na * nb)))


def rank_by_similarity(query: Optional[Vector], items: Iterable[T],
                       embedding_of: Callable[[T], Optional[Vector]]) -> List[Tuple[int, T, float]]:
    """Score every item against *query*, best first.

    Returns ``(index, item, similarity)`` triples.  The sort is stable, so
    equal scores keep the original order of *items*.
    """
    scored = [(idx, item, cosine_similarity(query, embedding_of(item)))
              for idx, item in enumerate(items)]
    scored.sort(key=lambda x: x[2], reverse=True)
    return scored
