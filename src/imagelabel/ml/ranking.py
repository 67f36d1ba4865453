"""Top-K selection over a probability vector.

Ranking is by ``(score, index)`` pairs: higher scores first, and among equal
scores the lower index first. NaN scores rank below every number.
"""

from __future__ import annotations

import heapq
import math
from typing import TYPE_CHECKING

from imagelabel.errors import EmptyInputError, InvalidKError

if TYPE_CHECKING:
    from collections.abc import Sequence


def _rank_key(scores: Sequence[float], index: int) -> tuple[int, float, int]:
    value = float(scores[index])
    if math.isnan(value):
        return (1, 0.0, index)
    return (0, -value, index)


def top_k_indices(scores: Sequence[float], k: int) -> list[int]:
    """Return the indices of the ``k`` highest scores, best first.

    Args:
        scores: Non-empty sequence of per-class scores (list, tuple or 1-D array).
        k: Number of indices to return, ``1 <= k <= len(scores)``.

    Returns:
        ``k`` distinct indices into ``scores`` in descending score order.
        Equal scores are returned in ascending index order.

    Raises:
        EmptyInputError: If ``scores`` is empty.
        InvalidKError: If ``k`` is out of range.
    """
    size = len(scores)
    if size == 0:
        raise EmptyInputError
    if k <= 0 or k > size:
        raise InvalidKError(k, size)

    return heapq.nsmallest(k, range(size), key=lambda i: _rank_key(scores, i))


def best_index(scores: Sequence[float]) -> int:
    """Return the index of the highest score (first occurrence on ties)."""
    return top_k_indices(scores, 1)[0]
