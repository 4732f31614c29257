"""
Result Fusion - Merging and rescoring search results

Scores stay on the scale the vector store returned (higher is more
relevant). No normalization is applied across modes: hybrid search merges
local and global scores as-is, and local search rescales by a constant
factor.
"""

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from flowrag.types import SearchResult


def merge_results(*result_lists: Sequence[SearchResult], limit: Optional[int] = None) -> List[SearchResult]:
    """
    Merge result lists, keeping the first occurrence of each id

    Args:
        result_lists: Lists in priority order; on duplicate ids the
            earlier list's result (and score) wins
        limit: Truncate the merged list

    Returns:
        Deduplicated results sorted by score, descending
    """
    seen = set()
    merged: List[SearchResult] = []
    for results in result_lists:
        for result in results:
            if result.id in seen:
                continue
            seen.add(result.id)
            merged.append(result)

    merged.sort(key=lambda r: r.score, reverse=True)
    return merged[:limit] if limit is not None else merged


def _scale(score: float, factor: float) -> float:
    # Dividing negative scores keeps "factor > 1 means more relevant"
    return score * factor if score >= 0 else score / factor


def boost_entity_matches(
    results: Sequence[SearchResult],
    entity_names: Iterable[str],
    boost: float = 1.5,
    penalty: float = 0.5,
) -> List[SearchResult]:
    """
    Rescale results by whether their content mentions an entity

    Matching is case-insensitive substring containment. Non-matching
    results are penalized, never dropped, so the result count is
    unchanged. With no entity names the input order and scores are kept.

    Returns:
        Rescaled results sorted by score, descending
    """
    names = [n.lower() for n in entity_names if n]
    if not names:
        return list(results)

    rescored = []
    for result in results:
        content = result.content.lower()
        matched = any(name in content for name in names)
        rescored.append(replace(result, score=_scale(result.score, boost if matched else penalty)))

    rescored.sort(key=lambda r: r.score, reverse=True)
    return rescored


def get_fusion_stats(local_results: Sequence[SearchResult], global_results: Sequence[SearchResult]) -> dict:
    """Overlap statistics between the two halves of a hybrid search"""
    local_ids = {r.id for r in local_results}
    global_ids = {r.id for r in global_results}
    return {
        'local_only': len(local_ids - global_ids),
        'global_only': len(global_ids - local_ids),
        'both_modes': len(local_ids & global_ids),
        'total_results': len(local_ids | global_ids),
    }
