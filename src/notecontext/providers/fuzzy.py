"""Fuzzy matching over search items backed by RapidFuzz."""
from __future__ import annotations

from typing import List, Optional, Sequence

from rapidfuzz import fuzz

from notecontext.models import FuzzyMatch, FuzzyResult, SearchItem

from .base import FuzzyMatcher


def _fold(text: str) -> str:
    """Lowercase *text* one character at a time, keeping its length.

    Characters whose lowercase form is longer (``"İ"``) are left as they are,
    so offsets into the folded text are offsets into *text*.
    """

    folded: List[str] = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


class RapidFuzzMatcher(FuzzyMatcher):
    """Score each key with RapidFuzz partial-ratio alignment.

    ``threshold`` is a tolerance in ``[0, 1]``: ``0`` accepts only exact
    substring matches, ``1`` accepts anything. A key matches when its
    similarity is at least ``1 - threshold``; an item's score is the best
    similarity of its matching keys. Matching is case-insensitive.
    """

    def search(
        self,
        items: Sequence[SearchItem],
        query: str,
        *,
        keys: Sequence[str],
        threshold: float,
        include_score: bool = True,
        include_matches: bool = True,
    ) -> List[FuzzyResult]:
        needle = _fold(query.strip())
        if not needle:
            return []
        cutoff = max(0.0, min(1.0, 1.0 - threshold)) * 100.0

        results: List[FuzzyResult] = []
        for refindex, item in enumerate(items):
            best = 0.0
            matches: List[FuzzyMatch] = []
            for key in keys:
                value = item.field(key)
                match = self._match_key(key, value, needle, cutoff)
                if match is None:
                    continue
                similarity, found = match
                best = max(best, similarity)
                matches.append(found)
            if not matches:
                continue
            results.append(
                FuzzyResult(
                    item=item,
                    score=best if include_score else 1.0,
                    matches=matches if include_matches else [],
                    refindex=refindex,
                )
            )

        results.sort(key=lambda result: result.score, reverse=True)
        return results

    @staticmethod
    def _match_key(
        key: str, value: str, needle: str, cutoff: float
    ) -> Optional[tuple[float, FuzzyMatch]]:
        if not value:
            return None
        alignment = fuzz.partial_ratio_alignment(needle, _fold(value), score_cutoff=cutoff)
        if alignment is None or alignment.score <= 0:
            return None
        start = max(0, min(alignment.dest_start, len(value) - 1))
        end = max(start, min(alignment.dest_end, len(value)) - 1)
        return alignment.score / 100.0, FuzzyMatch(key=key, indices=[(start, end)], value=value)


__all__ = ["RapidFuzzMatcher"]
