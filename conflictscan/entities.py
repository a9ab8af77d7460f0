"""
Entity Matcher — Systems, Units and Side

For each record, finds the first dictionary entry whose pattern matches
the record's entity-bearing text. Systems are checked before units and,
within a group, entries are tried in declared order. The first hit wins,
not the most specific one.

The belligerent side is derived independently from two keyword sets.
If both sides fire, or neither does, the side is unknown.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from conflictscan.patterns import PatternDictionary
from conflictscan.records import Record

logger = logging.getLogger(__name__)


class MatchGroup(str, Enum):
    SYSTEM = "system"
    UNIT = "unit"
    FLAG = "flag"      # No entity, but a side was identified
    NONE = "none"


class Side(str, Enum):
    UA = "ua"
    RU = "ru"
    UNKNOWN = "unk"


# Text fields searched for entities, in concatenation order
ENTITY_FIELDS: tuple[str, ...] = (
    "osint_entities",
    "mm_entities",
    "event_description",
    "translated_text",
    "message_text",
)

UA_INDICATORS: tuple[re.Pattern, ...] = (
    re.compile(r"\bukrain", re.IGNORECASE),
    re.compile(r"\bafu\b", re.IGNORECASE),
    re.compile(r"зсу", re.IGNORECASE),
    re.compile(r"україн", re.IGNORECASE),
)

RU_INDICATORS: tuple[re.Pattern, ...] = (
    re.compile(r"\bruss", re.IGNORECASE),
    re.compile(r"вс\s?рф", re.IGNORECASE),
    re.compile(r"вооруж.*сил", re.IGNORECASE),
    re.compile(r"рашист", re.IGNORECASE),
)


@dataclass(frozen=True)
class MatchResult:
    """Entity classification attached to a record."""
    key: Optional[str]
    group: MatchGroup
    side: Side
    dictionary_version: str = ""

    @property
    def matched(self) -> bool:
        return self.key is not None

    def to_dict(self) -> dict:
        return {"key": self.key, "group": self.group.value, "side": self.side.value}


def derive_side(
    text: str,
    ua_indicators: Sequence[re.Pattern] = UA_INDICATORS,
    ru_indicators: Sequence[re.Pattern] = RU_INDICATORS,
) -> Side:
    """Side from keyword sets. Ambiguous or silent text is unknown."""
    if not text:
        return Side.UNKNOWN
    ua = any(p.search(text) for p in ua_indicators)
    ru = any(p.search(text) for p in ru_indicators)
    if ua and not ru:
        return Side.UA
    if ru and not ua:
        return Side.RU
    return Side.UNKNOWN


class EntityMatcher:
    """
    First-match entity classifier over a PatternDictionary.

    Holds no mutable state; the same dictionary and record text always
    give the same MatchResult.
    """

    def __init__(
        self,
        dictionary: PatternDictionary,
        ua_indicators: Sequence[re.Pattern] = UA_INDICATORS,
        ru_indicators: Sequence[re.Pattern] = RU_INDICATORS,
    ):
        self._dictionary = dictionary
        self._ua = tuple(ua_indicators)
        self._ru = tuple(ru_indicators)

    @property
    def dictionary(self) -> PatternDictionary:
        return self._dictionary

    def search_text(self, record: Record) -> str:
        return record.joined(ENTITY_FIELDS).lower()

    def match(self, record: Record) -> MatchResult:
        """Classify one record."""
        version = self._dictionary.version
        text = self.search_text(record)
        if not text.strip():
            return MatchResult(None, MatchGroup.NONE, Side.UNKNOWN, version)

        side = derive_side(text, self._ua, self._ru)

        for entry in self._dictionary.systems:
            if entry.search(text):
                return MatchResult(entry.key, MatchGroup.SYSTEM, side, version)

        for entry in self._dictionary.units:
            if entry.search(text):
                return MatchResult(entry.key, MatchGroup.UNIT, side, version)

        if side is not Side.UNKNOWN:
            return MatchResult(None, MatchGroup.FLAG, side, version)
        return MatchResult(None, MatchGroup.NONE, Side.UNKNOWN, version)

    def precompute_all(self, records: Iterable[Record]) -> dict[str, int]:
        """
        Match every record and attach the result as its cached annotation.

        Returns group counts for logging and diagnostics.
        """
        records = list(records)
        results = [self.match(r) for r in records]

        counts = {g.value: 0 for g in MatchGroup}
        for record, result in zip(records, results):
            record.match = result
            counts[result.group.value] += 1

        logger.info(
            f"Entity matching complete for {len(records)} records",
            extra={
                "record_count": len(records),
                "system_count": counts[MatchGroup.SYSTEM.value],
                "unit_count": counts[MatchGroup.UNIT.value],
                "flag_count": counts[MatchGroup.FLAG.value],
                "dictionary_version": self._dictionary.version[:12],
            },
        )
        return counts


def is_stale(record: Record, dictionary: PatternDictionary) -> bool:
    """True when the record's cached match predates the given dictionary."""
    return record.match is None or record.match.dictionary_version != dictionary.version
