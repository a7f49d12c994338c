"""
Name similarity scorers.

A scorer returns a distance: 0.0 for identical names, 1.0 for names with
nothing in common. Both implementations compare case-folded names with
whitespace collapsed, using difflib's ratio.
"""

from difflib import SequenceMatcher
from typing import Protocol

from ..normalization import normalize_name


class SimilarityScorer(Protocol):
    def score(self, a: str, b: str) -> float:
        ...


class SequenceRatioScorer:
    """Distance from difflib's matching-blocks ratio over the whole name."""

    name = "sequence"

    def score(self, a: str, b: str) -> float:
        left, right = normalize_name(a), normalize_name(b)
        if not left or not right:
            return 1.0
        if left == right:
            return 0.0
        return 1.0 - SequenceMatcher(None, left, right).ratio()


class TokenSortScorer(SequenceRatioScorer):
    """
    Same as SequenceRatioScorer but over the name's tokens in sorted order,
    so "Smith Jane" and "Jane Smith" score 0.0.
    """

    name = "token-sort"

    def score(self, a: str, b: str) -> float:
        left = " ".join(sorted(normalize_name(a).split()))
        right = " ".join(sorted(normalize_name(b).split()))
        return super().score(left, right)


_SCORERS = {
    SequenceRatioScorer.name: SequenceRatioScorer,
    TokenSortScorer.name: TokenSortScorer,
}


def build_scorer(name: str) -> SimilarityScorer:
    try:
        return _SCORERS[name]()
    except KeyError:
        raise ValueError(f"Unknown scorer {name!r}; expected one of {sorted(_SCORERS)}") from None
