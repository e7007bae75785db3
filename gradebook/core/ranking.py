"""
Standard competition ranking ("1224" ranking).

Values are sorted in descending order; equal values share a rank and the next
distinct value takes its 1-based position in the sorted list, so [18, 15, 15, 10]
ranks as [1, 2, 2, 4]. There is no secondary tie-break: ties keep their input order.
"""

from typing import Dict, Hashable, List, Sequence, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)


def competition_ranks(entries: Sequence[Tuple[K, float]]) -> List[Tuple[K, float, int]]:
    """Return (key, value, rank) triples in descending value order."""
    ordered = sorted(entries, key=lambda item: item[1], reverse=True)
    ranked: List[Tuple[K, float, int]] = []
    current_rank = 1
    for i, (key, value) in enumerate(ordered):
        if i > 0 and value < ordered[i - 1][1]:
            current_rank = i + 1
        ranked.append((key, value, current_rank))
    return ranked


def rank_map(entries: Sequence[Tuple[K, float]]) -> Dict[K, int]:
    return {key: rank for key, _, rank in competition_ranks(entries)}
