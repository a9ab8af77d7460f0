"""
Incident Records

A Record is an opaque bag of named text fields with a stable identifier.
The engine never changes field values; derived annotations (entity match,
violation score) live in separate slots and are written once per batch.

Row normalisation mirrors the upstream ingestion step:
  - identifier from event_id, else message_url, else the row index
  - numeric coordinates
  - sections split out of the free-form multimodal analysis blob
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

if TYPE_CHECKING:
    from conflictscan.entities import MatchResult
    from conflictscan.violations import ScoreResult


# ============================================================
# ANALYSIS BLOB SECTIONS
# ============================================================

# Current heading style: "### 2. OSINT Analysis"
_SECTION_PATTERNS = {
    "mm_summary": re.compile(r"###\s*1\.\s*Multimodal Summary\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
    "mm_osint": re.compile(r"###\s*2\.\s*OSINT Analysis\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
    "mm_political": re.compile(r"###\s*3\.\s*Political Analysis\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
    "mm_topics": re.compile(r"###\s*4\.\s*Topic Modeling\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
    "mm_entities": re.compile(r"###\s*5\.\s*Named Entities\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
    "mm_sentiment": re.compile(r"###\s*6\.\s*Sentiment Analysis\s*\n+([\s\S]*?)(?=\n###|$)", re.IGNORECASE),
}

# Legacy heading style: "**2. OSINT Analysis**", bounded by the next numbered heading
_LEGACY_SECTION_PATTERNS = {
    "mm_summary": re.compile(r"\*\*1\.\s*Multimodal Summary\*\*\s*\n+([\s\S]*?)(?=\n\*\*2\.|$)", re.IGNORECASE),
    "mm_osint": re.compile(r"\*\*2\.\s*OSINT Analysis\*\*\s*\n+([\s\S]*?)(?=\n\*\*3\.|$)", re.IGNORECASE),
    "mm_political": re.compile(r"\*\*3\.\s*Political Analysis\*\*\s*\n+([\s\S]*?)(?=\n\*\*4\.|$)", re.IGNORECASE),
    "mm_topics": re.compile(r"\*\*4\.\s*Topic Modeling\*\*\s*\n+([\s\S]*?)(?=\n\*\*5\.|$)", re.IGNORECASE),
    "mm_entities": re.compile(r"\*\*5\.\s*Named Entities\*\*\s*\n+([\s\S]*?)(?=\n\*\*6\.|$)", re.IGNORECASE),
    "mm_sentiment": re.compile(r"\*\*6\.\s*Sentiment Analysis\*\*\s*\n+([\s\S]*?)(?=\n\*\*7\.|$)", re.IGNORECASE),
}


def parse_analysis_sections(text: Any) -> dict[str, str]:
    """
    Split a multimodal analysis blob into its numbered sections.

    The legacy bold-heading format is only consulted when no section in
    the current format was found. Non-text values have no sections.
    """
    if not text or not isinstance(text, str):
        return {}

    sections: dict[str, str] = {}
    for key, pattern in _SECTION_PATTERNS.items():
        match = pattern.search(text)
        if match:
            sections[key] = match.group(1).strip()

    if sections:
        return sections

    for key, pattern in _LEGACY_SECTION_PATTERNS.items():
        match = pattern.search(text)
        if match:
            sections[key] = match.group(1).strip()
    return sections


# ============================================================
# RECORD
# ============================================================

def _parse_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_date(value: Any) -> Optional[date]:
    """ISO date prefix (YYYY-MM-DD) of a value; None when absent or unparsable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def derive_record_id(row: Mapping[str, Any], index: int) -> str:
    """Stable identifier: event_id, else the message URL tail, else the row index."""
    event_id = row.get("event_id")
    if event_id not in (None, ""):
        return str(event_id)

    url = row.get("message_url")
    url = url if isinstance(url, str) else ""
    if "/" in url:
        return "msg_" + url.split("/")[-1]

    return f"event_{index:06d}"


@dataclass(eq=False)
class Record:
    """A single incident record plus its cached annotations."""

    record_id: str
    fields: Mapping[str, Any]
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    has_timestamp: bool = False
    match: Optional["MatchResult"] = field(default=None, repr=False)
    score: Optional["ScoreResult"] = field(default=None, repr=False)

    def __post_init__(self):
        self.fields = MappingProxyType(dict(self.fields))
        self._serialized: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], index: int = 0) -> "Record":
        """Normalise one ingested row into a Record."""
        fields = {k: v for k, v in row.items() if v is not None}
        record_id = derive_record_id(fields, index)
        fields["event_id"] = record_id

        for key, value in parse_analysis_sections(fields.get("multimodal_analysis")).items():
            fields.setdefault(key, value)

        message_date = fields.get("message_date") or ""
        return cls(
            record_id=record_id,
            fields=fields,
            latitude=_parse_float(fields.get("event_lat")),
            longitude=_parse_float(fields.get("event_lng")),
            has_timestamp=" " in str(message_date).strip(),
        )

    def get(self, name: str, default: str = "") -> str:
        """Field value as text; missing or empty fields give the default."""
        value = self.fields.get(name)
        if value is None or value == "":
            return default
        return str(value)

    def joined(self, names: Iterable[str]) -> str:
        """Concatenate the named text fields, skipping missing ones."""
        return " ".join(v for v in (self.get(n) for n in names) if v)

    @property
    def event_date(self) -> Optional[date]:
        return parse_date(self.fields.get("event_date"))

    @property
    def location(self) -> str:
        return self.get("event_location")

    @property
    def entity_names(self) -> list[str]:
        """Comma-separated free-text entities from the OSINT annotation."""
        raw = self.get("osint_entities")
        if not raw:
            return []
        return [part.strip() for part in raw.split(",") if part.strip()]

    def serialized(self) -> str:
        """Lowercased JSON of all fields, used for literal query matching."""
        if self._serialized is None:
            self._serialized = json.dumps(
                dict(self.fields), ensure_ascii=False, default=str,
            ).lower()
        return self._serialized

    def __hash__(self) -> int:
        return hash(self.record_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.record_id == other.record_id


def records_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Record]:
    """Normalise a sequence of ingested rows."""
    return [Record.from_row(row, index) for index, row in enumerate(rows)]
