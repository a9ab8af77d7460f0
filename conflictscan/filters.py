"""
Filter Pipeline — Query + Predicate Composition

Combines the boolean query with flat per-record predicates into a single
pass/fail decision:

  1. Boolean query over the full record set (if a query is given)
  2. Date range (inclusive)
  3. Score tier (all / likely / strong)
  4. System / unit selection
  5. Explicit record ids, locations and free-text entities

The result is the logical conjunction of the above. Evaluation order
only matters for speed.

Selections are passed in as an immutable FilterCriteria value owned by
the caller. There is no shared selection state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from conflictscan.entities import MatchGroup
from conflictscan.errors import MalformedQuery
from conflictscan.query import literal_search, query_evaluator
from conflictscan.records import Record, parse_date
from conflictscan.violations import STRONG_TIER_SCORE

logger = logging.getLogger(__name__)


class ScoreTier(str, Enum):
    ALL = "all"
    LIKELY = "likely"     # Positive classification
    STRONG = "strong"     # Score at or above STRONG_TIER_SCORE


DateLike = Union[date, str, None]


@dataclass(frozen=True)
class FilterCriteria:
    """Every criterion is optional; an empty one does not constrain."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    score_tier: ScoreTier = ScoreTier.ALL
    systems: frozenset[str] = field(default_factory=frozenset)
    units: frozenset[str] = field(default_factory=frozenset)
    record_ids: frozenset[str] = field(default_factory=frozenset)
    locations: frozenset[str] = field(default_factory=frozenset)
    entities: frozenset[str] = field(default_factory=frozenset)
    query: str = ""

    @classmethod
    def build(
        cls,
        start_date: DateLike = None,
        end_date: DateLike = None,
        score_tier: Union[ScoreTier, str] = ScoreTier.ALL,
        systems: Iterable[str] = (),
        units: Iterable[str] = (),
        record_ids: Iterable[str] = (),
        locations: Iterable[str] = (),
        entities: Iterable[str] = (),
        query: Optional[str] = "",
    ) -> "FilterCriteria":
        """Build criteria from loose inputs (ISO date strings, lists, tier names)."""
        start = parse_date(start_date)
        end = parse_date(end_date)
        if start_date and start is None:
            raise ValueError(f"Invalid start date: {start_date!r}")
        if end_date and end is None:
            raise ValueError(f"Invalid end date: {end_date!r}")
        return cls(
            start_date=start,
            end_date=end,
            score_tier=ScoreTier(score_tier),
            systems=frozenset(systems),
            units=frozenset(units),
            record_ids=frozenset(record_ids),
            locations=frozenset(locations),
            entities=frozenset(entities),
            query=query or "",
        )

    @property
    def has_entity_filter(self) -> bool:
        return bool(self.systems or self.units)

    def active_count(self) -> int:
        """Number of selected systems and units."""
        return len(self.systems) + len(self.units)


# ============================================================
# PREDICATES
# ============================================================

def passes_date_range(record: Record, criteria: FilterCriteria) -> bool:
    if criteria.start_date is None and criteria.end_date is None:
        return True
    event_date = record.event_date
    if event_date is None:
        return False
    if criteria.start_date is not None and event_date < criteria.start_date:
        return False
    if criteria.end_date is not None and event_date > criteria.end_date:
        return False
    return True


def passes_score_tier(record: Record, tier: Union[ScoreTier, str]) -> bool:
    tier = ScoreTier(tier)
    if tier is ScoreTier.ALL:
        return True
    if record.score is None:
        return False
    if tier is ScoreTier.LIKELY:
        return record.score.positive
    return record.score.score >= STRONG_TIER_SCORE


def passes_entity_filters(record: Record, systems: frozenset[str], units: frozenset[str]) -> bool:
    """
    System / unit selection.

    With both kinds selected the result is the union: a record passes
    when it matched a selected system or a selected unit. Records
    without an entity match never pass while any selection is active.
    """
    if not systems and not units:
        return True

    match = record.match
    if match is None or match.key is None:
        return False

    if match.group is MatchGroup.SYSTEM:
        return match.key in systems
    if match.group is MatchGroup.UNIT:
        return match.key in units
    return False


def passes_selections(record: Record, criteria: FilterCriteria) -> bool:
    if criteria.record_ids and record.record_id not in criteria.record_ids:
        return False
    if criteria.locations and record.location not in criteria.locations:
        return False
    if criteria.entities:
        names = record.entity_names
        if not names or not any(n in criteria.entities for n in names):
            return False
    return True


def passes_record_filters(record: Record, criteria: FilterCriteria) -> bool:
    """Every non-query predicate for one record."""
    return (
        passes_date_range(record, criteria)
        and passes_score_tier(record, criteria.score_tier)
        and passes_entity_filters(record, criteria.systems, criteria.units)
        and passes_selections(record, criteria)
    )


# ============================================================
# PIPELINE
# ============================================================

def run_query(query: str, records: Sequence[Record]) -> list[Record]:
    """
    Boolean query with literal fallback.

    An unparsable query is treated as one literal substring so a typo
    in the syntax narrows the results instead of failing the request.
    """
    try:
        return query_evaluator.evaluate(query, records)
    except MalformedQuery as e:
        logger.warning(
            f"Malformed query, falling back to literal search: {e.message}",
            extra={"query": query, "error": e.message},
        )
        return literal_search(query, records)


def apply_filters(criteria: Optional[FilterCriteria], records: Sequence[Record]) -> list[Record]:
    """
    Filter records by the given criteria.

    Args:
        criteria: Selections to apply; None applies nothing.
        records: Records annotated by classify_all(). Records without
            annotations fail score-tier and entity selections.

    Returns:
        Matching records in input order.
    """
    records = list(records)
    if criteria is None:
        return records

    candidates = records
    if criteria.query and criteria.query.strip():
        candidates = run_query(criteria.query, records)

    return [r for r in candidates if passes_record_filters(r, criteria)]


# ============================================================
# DATE PRESETS
# ============================================================

DATE_PRESETS = (
    "today", "yesterday", "last7days", "last30days",
    "thisMonth", "lastMonth", "thisYear", "all",
)


def date_preset_range(preset: str, today: Optional[date] = None) -> tuple[Optional[date], Optional[date]]:
    """
    Inclusive (start, end) bounds for a named preset.

    "all" gives (None, None). Unknown names raise ValueError.
    """
    today = today or date.today()

    if preset == "today":
        return today, today
    if preset == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if preset == "last7days":
        return today - timedelta(days=7), today
    if preset == "last30days":
        return today - timedelta(days=30), today
    if preset == "thisMonth":
        return today.replace(day=1), today
    if preset == "lastMonth":
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return last_month_end.replace(day=1), last_month_end
    if preset == "thisYear":
        return date(today.year, 1, 1), today
    if preset == "all":
        return None, None

    raise ValueError(f"Unknown date preset: {preset}")
