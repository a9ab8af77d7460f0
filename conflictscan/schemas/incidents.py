"""
API Schemas — Request and Response Models

Pydantic models for the ConflictScan API.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional
from pydantic import BaseModel, Field

from conflictscan.config import settings


# ============================================================
# RECORDS
# ============================================================

class RowsRequest(BaseModel):
    """Raw incident rows, one object per upstream CSV row."""
    rows: list[dict[str, Any]] = Field(..., max_length=settings.MAX_RECORDS,
                                       description="Incident rows keyed by field name.")

    model_config = {"json_schema_extra": {"examples": [
        {"rows": [{
            "event_id": "e1",
            "event_date": "2024-03-02",
            "event_description": "Shahed drone strike hit residential building, civilians killed",
        }]},
    ]}}


class MatchResponse(BaseModel):
    key: Optional[str] = None
    group: str
    side: str


class ScoreResponse(BaseModel):
    tag: str
    score: int
    reasons: list[str]
    negated: bool = False
    band: str


class ClassifiedRecord(BaseModel):
    record_id: str
    event_date: Optional[date] = None
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    match: MatchResponse
    score: ScoreResponse


class ClassifyResponse(BaseModel):
    """POST /classify response body."""
    records: list[ClassifiedRecord]
    total: int
    positive: int
    system_counts: dict[str, int]
    unit_counts: dict[str, int]
    severity: dict[str, int]
    timeline: dict[str, int]
    top_locations: dict[str, int]
    top_units: dict[str, int]
    dictionary_version: str


# ============================================================
# QUERY / FILTER
# ============================================================

class QueryRequest(RowsRequest):
    """POST /query request body."""
    query: str = Field("", max_length=2_000,
                       description="Boolean query: terms joined by AND, OR, NOT, with parentheses.")


class QueryResponse(BaseModel):
    query: str
    ids: list[str]
    total: int
    matched: int


class CriteriaModel(BaseModel):
    """Filter selections. Every field is optional."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    date_preset: Optional[str] = Field(
        None, pattern="^(today|yesterday|last7days|last30days|thisMonth|lastMonth|thisYear|all)$",
        description="Named range; ignored when start_date or end_date is given.",
    )
    score_tier: str = Field("all", pattern="^(all|likely|strong)$")
    systems: list[str] = Field(default_factory=list)
    units: list[str] = Field(default_factory=list)
    record_ids: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    query: str = Field("", max_length=2_000)


class FilterRequest(RowsRequest):
    """POST /filter request body."""
    criteria: CriteriaModel = Field(default_factory=CriteriaModel)


class FilterResponse(BaseModel):
    records: list[ClassifiedRecord]
    total: int
    matched: int


# ============================================================
# PATTERNS / HEALTH
# ============================================================

class SkippedPattern(BaseModel):
    key: str
    group: str
    reason: str


class PatternsResponse(BaseModel):
    dictionary_version: str
    systems: list[str]
    units: list[str]
    skipped: list[SkippedPattern]
    categories: list[dict]


class HealthResponse(BaseModel):
    status: str
    version: str
    engine_version: str
    scorer_version: str
    system_patterns: int
    unit_patterns: int
    skipped_patterns: int
