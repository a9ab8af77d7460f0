"""
Engine — Batch Classification and Session Index

Orchestrates the core components:
  - classify_all():  EntityMatcher + ViolationScorer over a record batch
  - IncidentIndex:   a loaded record set plus its dictionary, with
                     query / filter / pattern reload

Annotations are computed for the whole batch first and then attached
in one serial pass, so a record never carries a match from one
dictionary and a score from another run.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Sequence

from conflictscan.entities import EntityMatcher, MatchGroup, MatchResult, is_stale
from conflictscan.filters import FilterCriteria, apply_filters
from conflictscan.patterns import EntrySource, PatternDictionary, load_patterns
from conflictscan.query import evaluate_query
from conflictscan.records import Record, records_from_rows
from conflictscan.violations import ScoreResult, ViolationScorer, violation_scorer

logger = logging.getLogger(__name__)

__all__ = [
    "classify_all",
    "load_patterns",
    "evaluate_query",
    "apply_filters",
    "IncidentIndex",
]


def _annotate(
    shard: Sequence[Record], matcher: EntityMatcher, scorer: ViolationScorer,
) -> list[tuple[MatchResult, ScoreResult]]:
    return [(matcher.match(r), scorer.score(r)) for r in shard]


def _shards(records: list[Record], workers: int) -> list[list[Record]]:
    size = max(1, -(-len(records) // workers))
    return [records[i:i + size] for i in range(0, len(records), size)]


def classify_all(
    records: Iterable[Record],
    dictionary: PatternDictionary,
    workers: int = 1,
    scorer: Optional[ViolationScorer] = None,
) -> list[Record]:
    """
    Annotate every record with its entity match and violation score.

    Args:
        records: Records to annotate. Existing annotations are replaced.
        dictionary: Pattern dictionary for entity matching.
        workers: Threads used to compute results. Attachment is serial
            regardless.
        scorer: Override the module scorer (tests, calibration).

    Returns:
        The same records, in input order.
    """
    records = list(records)
    matcher = EntityMatcher(dictionary)
    scorer = scorer or violation_scorer
    start = time.time()

    if workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            parts = pool.map(lambda s: _annotate(s, matcher, scorer), _shards(records, workers))
            results = [pair for part in parts for pair in part]
    else:
        results = _annotate(records, matcher, scorer)

    group_counts = {g.value: 0 for g in MatchGroup}
    positive = 0
    for record, (match, score) in zip(records, results):
        record.match = match
        record.score = score
        group_counts[match.group.value] += 1
        if score.positive:
            positive += 1

    duration = int((time.time() - start) * 1000)
    logger.info(
        f"Classified {len(records)} records: {positive} positive",
        extra={
            "record_count": len(records),
            "system_count": group_counts[MatchGroup.SYSTEM.value],
            "unit_count": group_counts[MatchGroup.UNIT.value],
            "flag_count": group_counts[MatchGroup.FLAG.value],
            "positive_count": positive,
            "dictionary_version": dictionary.version[:12],
            "duration_ms": duration,
        },
    )
    return records


# ============================================================
# SESSION INDEX
# ============================================================

class IncidentIndex:
    """
    A classified record set bound to one pattern dictionary.

    A pattern reload annotates copies of the records and swaps the whole
    set in under a lock, so query() and filter() never see a set where
    only some records carry the new dictionary's matches.
    """

    def __init__(self, records: Iterable[Record], dictionary: PatternDictionary, workers: int = 1):
        self._lock = threading.Lock()
        self._workers = workers
        self._dictionary = dictionary
        self._records = classify_all(records, dictionary, workers=workers)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Mapping[str, Any]],
        dictionary: PatternDictionary,
        workers: int = 1,
    ) -> "IncidentIndex":
        """Normalise raw rows and classify them."""
        return cls(records_from_rows(rows), dictionary, workers=workers)

    @property
    def dictionary(self) -> PatternDictionary:
        return self._dictionary

    @property
    def records(self) -> list[Record]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def reload_patterns(
        self,
        system_entries: Optional[EntrySource] = None,
        unit_entries: Optional[EntrySource] = None,
        dictionary: Optional[PatternDictionary] = None,
    ) -> PatternDictionary:
        """
        Swap in a new dictionary and re-annotate every record.

        Pass either a prebuilt dictionary or raw entries for load_patterns().
        """
        if dictionary is None:
            dictionary = load_patterns(system_entries, unit_entries)
        with self._lock:
            current = list(self._records)

        # Annotate fresh copies; snapshots already handed out keep their annotations
        fresh = classify_all(
            [replace(r, match=None, score=None) for r in current],
            dictionary,
            workers=self._workers,
        )
        with self._lock:
            self._records = fresh
            self._dictionary = dictionary
        return dictionary

    def query(self, query: str) -> list[Record]:
        """Boolean query over the record set. Raises MalformedQuery."""
        with self._lock:
            return evaluate_query(query, self._records)

    def filter(self, criteria: Optional[FilterCriteria]) -> list[Record]:
        with self._lock:
            return apply_filters(criteria, self._records)

    def stale_records(self) -> list[Record]:
        """Records whose cached match was produced by another dictionary."""
        with self._lock:
            return [r for r in self._records if is_stale(r, self._dictionary)]
