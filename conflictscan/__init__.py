"""
ConflictScan — Incident Classification and Search Engine

Classifies conflict incident records against a dictionary of named
weapon systems and military units, scores them for likely violations
of the laws of armed conflict, and filters them with boolean queries.

Public API:
  - load_patterns:   Compile system/unit entries into a PatternDictionary
  - classify_all:    Batch entity matching + violation scoring
  - evaluate_query:  Boolean AND / OR / NOT query over records
  - apply_filters:   Query + date / tier / entity selections
  - IncidentIndex:   Classified record set with pattern reload
  - violation_scorer: Deterministic evidence scorer (module singleton)

Usage:
    from conflictscan import IncidentIndex, FilterCriteria, default_dictionary
    index = IncidentIndex.from_rows(rows, default_dictionary())
    hits = index.filter(FilterCriteria.build(query="shahed", score_tier="likely"))
"""

__version__ = "1.0.0"

from conflictscan.errors import (
    ConflictScanError,
    InvalidPattern,
    MalformedQuery,
    PatternLoadError,
)
from conflictscan.records import Record, records_from_rows
from conflictscan.patterns import (
    PatternDictionary,
    PatternEntry,
    load_patterns,
    load_patterns_file,
    default_dictionary,
)
from conflictscan.entities import EntityMatcher, MatchGroup, MatchResult, Side
from conflictscan.violations import ScoreResult, ViolationScorer, violation_scorer, severity_band
from conflictscan.query import parse_query, evaluate_query
from conflictscan.filters import FilterCriteria, ScoreTier, apply_filters, date_preset_range
from conflictscan.engine import IncidentIndex, classify_all

__all__ = [
    "ConflictScanError",
    "InvalidPattern",
    "MalformedQuery",
    "PatternLoadError",
    "Record",
    "records_from_rows",
    "PatternDictionary",
    "PatternEntry",
    "load_patterns",
    "load_patterns_file",
    "default_dictionary",
    "EntityMatcher",
    "MatchGroup",
    "MatchResult",
    "Side",
    "ScoreResult",
    "ViolationScorer",
    "violation_scorer",
    "severity_band",
    "parse_query",
    "evaluate_query",
    "FilterCriteria",
    "ScoreTier",
    "apply_filters",
    "date_preset_range",
    "IncidentIndex",
    "classify_all",
]
