"""
Pairing of HR records with directory entries.

Two passes over the whole batch:

1. Exact: the source employee id looked up in an index of directory
   entries by employee id.
2. Fuzzy: records left over with a usable name are scored against every
   entry not already claimed, and the closest one within the threshold is
   taken.

Matching is a pure function of its input; the same records and entries
always give the same pairs.
"""

import logging

from ..config import MatchingSettings
from ..models import DirectoryEntry, MatchedPair, MatchMethod, SourceRecord
from .scorer import SimilarityScorer, build_scorer

logger = logging.getLogger(__name__)


def index_by_employee_id(entries: list[DirectoryEntry]) -> dict[str, DirectoryEntry]:
    """
    Map employee id to entry.

    Entries without an id are left out. When two entries carry the same id
    the one with the smaller path wins.
    """
    index: dict[str, DirectoryEntry] = {}
    for entry in sorted(entries, key=lambda e: e.unique_path):
        key = (entry.employee_id or "").strip()
        if not key:
            continue
        if key in index:
            logger.warning(
                f"Duplicate employeeID {key} on {entry.unique_path}; "
                f"keeping {index[key].unique_path}"
            )
            continue
        index[key] = entry
    return index


class IdentityMatcher:
    """
    Args:
        settings: Fuzzy matching switches and threshold
        scorer: Distance function; built from ``settings.scorer`` when omitted
    """

    def __init__(self, settings: MatchingSettings | None = None, scorer: SimilarityScorer | None = None):
        self.settings = settings or MatchingSettings()
        self.scorer = scorer or build_scorer(self.settings.scorer)

    def match(
        self,
        source_records: list[SourceRecord],
        directory_entries: list[DirectoryEntry],
    ) -> list[MatchedPair]:
        """
        Pair every source record with at most one directory entry.

        Returns:
            One MatchedPair per source record, in input order. Records with
            no acceptable entry come back tagged ``unmatched``.
        """
        index = index_by_employee_id(directory_entries)
        pairs: list[MatchedPair | None] = [None] * len(source_records)
        claimed: set[str] = set()

        for position, record in enumerate(source_records):
            entry = index.get((record.employee_id or "").strip()) if record.employee_id else None
            if entry is not None:
                pairs[position] = MatchedPair(record, entry, MatchMethod.EXACT_KEY, 0.0)
                claimed.add(entry.unique_path)

        # Stable candidate order so ties resolve to the smaller path
        candidates = sorted(
            (e for e in directory_entries if e.match_name),
            key=lambda e: e.unique_path,
        )

        for position, record in enumerate(source_records):
            if pairs[position] is not None:
                continue
            pair = None
            if self.settings.fuzzy_enabled and record.full_name and record.full_name.strip():
                pair = self._fuzzy_match(record, candidates, claimed)
            if pair is None:
                logger.warning(
                    f"No directory match for employee {record.employee_id} ({record.full_name})"
                )
                pair = MatchedPair(record, None, MatchMethod.UNMATCHED)
            pairs[position] = pair

        return pairs

    def _fuzzy_match(
        self,
        record: SourceRecord,
        candidates: list[DirectoryEntry],
        claimed: set[str],
    ) -> MatchedPair | None:
        best: DirectoryEntry | None = None
        best_distance = 1.0
        for entry in candidates:
            if entry.unique_path in claimed:
                continue
            distance = self.scorer.score(record.full_name, entry.match_name)
            # Strict less-than keeps the first (smallest path) on ties
            if best is None or distance < best_distance:
                best, best_distance = entry, distance

        if best is None or best_distance > self.settings.fuzzy_threshold:
            return None

        claimed.add(best.unique_path)
        logger.info(
            f"Fuzzy matched {record.employee_id} ({record.full_name}) to "
            f"{best.unique_path} at distance {best_distance:.3f}"
        )
        return MatchedPair(record, best, MatchMethod.FUZZY_NAME, best_distance)
