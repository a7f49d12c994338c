"""
Identity matching between HR records and directory entries.
"""

from .matcher import IdentityMatcher, index_by_employee_id
from .scorer import SequenceRatioScorer, SimilarityScorer, TokenSortScorer, build_scorer

__all__ = [
    "IdentityMatcher",
    "index_by_employee_id",
    "SimilarityScorer",
    "SequenceRatioScorer",
    "TokenSortScorer",
    "build_scorer",
]
