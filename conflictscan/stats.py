"""
Aggregate counts over annotated records.

Used by the API. Entity and severity counts
read cached annotations only; records that were never classified are
ignored there. Timeline and location counts read the record fields.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Iterable, Optional

from conflictscan.entities import MatchGroup, Side
from conflictscan.records import Record
from conflictscan.violations import severity_band


def get_counts(records: Iterable[Record]) -> tuple[dict[str, int], dict[str, int]]:
    """Per-key record counts for systems and units, most frequent first."""
    systems: Counter = Counter()
    units: Counter = Counter()
    for record in records:
        match = record.match
        if match is None or match.key is None:
            continue
        if match.group is MatchGroup.SYSTEM:
            systems[match.key] += 1
        elif match.group is MatchGroup.UNIT:
            units[match.key] += 1
    return dict(systems.most_common()), dict(units.most_common())


def side_counts(records: Iterable[Record]) -> dict[str, int]:
    counts = {side.value: 0 for side in Side}
    for record in records:
        if record.match is not None:
            counts[record.match.side.value] += 1
    return counts


def severity_distribution(records: Iterable[Record]) -> dict[str, int]:
    """Records per severity band. Unscored and non-positive records count as none."""
    counts = {"none": 0, "low": 0, "medium": 0, "high": 0}
    for record in records:
        counts[severity_band(record.score)] += 1
    return counts


def top_systems(records: Iterable[Record], limit: int = 10) -> list[tuple[str, int]]:
    systems, _ = get_counts(records)
    return list(systems.items())[:limit]


def top_units(records: Iterable[Record], limit: int = 10) -> list[tuple[str, int]]:
    _, units = get_counts(records)
    return list(units.items())[:limit]


# Placeholder values the ingestion step writes for missing dates and places
_UNKNOWN_VALUES = frozenset({"unknown", "undefined"})


def timeline_counts(records: Iterable[Record], since: Optional[date] = None) -> dict[str, int]:
    """
    Records per event date (ISO string), oldest first.

    Missing, placeholder and unparsable dates are skipped, as are dates
    before `since` when it is given.
    """
    counts: Counter = Counter()
    for record in records:
        day = record.event_date
        if day is None or (since is not None and day < since):
            continue
        counts[day.isoformat()] += 1
    return dict(sorted(counts.items()))


def top_locations(records: Iterable[Record], limit: int = 10) -> list[tuple[str, int]]:
    """Most frequent event locations, ignoring empty and placeholder values."""
    counts: Counter = Counter()
    for record in records:
        location = record.location.strip()
        if not location or location.lower() in _UNKNOWN_VALUES:
            continue
        counts[location] += 1
    return counts.most_common(limit)
