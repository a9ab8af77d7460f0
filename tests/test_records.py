"""
Tests for row normalisation and the Record model.
"""

from datetime import date

import pytest

from conflictscan.records import (
    Record,
    derive_record_id,
    parse_analysis_sections,
    parse_date,
    records_from_rows,
)


CURRENT_BLOB = """### 1. Multimodal Summary
Video shows a strike on a warehouse.

### 2. OSINT Analysis
Geolocated to the northern district.

### 5. Named Entities
Shahed, 74th Brigade
"""

LEGACY_BLOB = """**1. Multimodal Summary**
Smoke over the port.
**2. OSINT Analysis**
Matches satellite imagery.
**3. Political Analysis**
Statement from the regional governor.
"""


class TestRecordId:
    def test_event_id_preferred(self):
        assert derive_record_id({"event_id": "abc", "message_url": "https://t.me/x/9"}, 3) == "abc"

    def test_message_url_tail(self):
        assert derive_record_id({"message_url": "https://t.me/channel/12345"}, 3) == "msg_12345"

    def test_index_fallback(self):
        assert derive_record_id({}, 7) == "event_000007"

    def test_numeric_event_id(self):
        assert derive_record_id({"event_id": 42}, 0) == "42"

    def test_non_text_message_url_ignored(self):
        assert derive_record_id({"message_url": 12345}, 2) == "event_000002"
        assert derive_record_id({"message_url": ["https://t.me/x/1"]}, 2) == "event_000002"


class TestAnalysisSections:
    def test_current_headings(self):
        sections = parse_analysis_sections(CURRENT_BLOB)
        assert sections["mm_summary"] == "Video shows a strike on a warehouse."
        assert sections["mm_osint"] == "Geolocated to the northern district."
        assert sections["mm_entities"] == "Shahed, 74th Brigade"
        assert "mm_political" not in sections

    def test_legacy_headings(self):
        sections = parse_analysis_sections(LEGACY_BLOB)
        assert sections["mm_summary"] == "Smoke over the port."
        assert sections["mm_osint"] == "Matches satellite imagery."
        assert sections["mm_political"] == "Statement from the regional governor."

    def test_empty(self):
        assert parse_analysis_sections("") == {}
        assert parse_analysis_sections(None) == {}

    def test_non_text_blob(self):
        assert parse_analysis_sections(7) == {}
        assert parse_analysis_sections({"summary": "### 1. Multimodal Summary\nx"}) == {}


class TestRecord:
    def test_from_row_normalises(self):
        r = Record.from_row({
            "message_url": "https://t.me/channel/77",
            "event_lat": "50.45",
            "event_lng": "bad",
            "event_date": "2024-03-02T10:00:00",
            "message_date": "2024-03-02 09:58",
            "multimodal_analysis": CURRENT_BLOB,
        }, 0)
        assert r.record_id == "msg_77"
        assert r.fields["event_id"] == "msg_77"
        assert r.latitude == pytest.approx(50.45)
        assert r.longitude is None
        assert r.event_date == date(2024, 3, 2)
        assert r.has_timestamp is True
        assert r.fields["mm_osint"] == "Geolocated to the northern district."
        assert r.fields["multimodal_analysis"] == CURRENT_BLOB

    def test_existing_section_field_not_replaced(self):
        r = Record.from_row({"event_id": "1", "mm_osint": "kept", "multimodal_analysis": CURRENT_BLOB})
        assert r.fields["mm_osint"] == "kept"

    def test_fields_are_read_only(self):
        r = Record.from_row({"event_id": "1", "message_text": "hello"})
        with pytest.raises(TypeError):
            r.fields["message_text"] = "changed"

    def test_get_missing_field(self):
        r = Record.from_row({"event_id": "1", "message_text": ""})
        assert r.get("message_text") == ""
        assert r.get("nope", "x") == "x"

    def test_joined_skips_missing(self):
        r = Record.from_row({"event_id": "1", "a": "one", "c": "three"})
        assert r.joined(["a", "b", "c"]) == "one three"

    def test_entity_names(self):
        r = Record.from_row({"event_id": "1", "osint_entities": "Shahed, Kharkiv , ,Azov"})
        assert r.entity_names == ["Shahed", "Kharkiv", "Azov"]

    def test_serialized_is_lowercase(self):
        r = Record.from_row({"event_id": "1", "message_text": "Kinzhal LAUNCH"})
        assert "kinzhal launch" in r.serialized()

    def test_identity_by_record_id(self):
        a = Record.from_row({"event_id": "same", "message_text": "a"})
        b = Record.from_row({"event_id": "same", "message_text": "b"})
        assert a == b
        assert len({a, b}) == 1

    def test_records_from_rows_indexes(self):
        records = records_from_rows([{"message_text": "a"}, {"message_text": "b"}])
        assert [r.record_id for r in records] == ["event_000000", "event_000001"]

    def test_non_text_values_accepted(self):
        r = Record.from_row({
            "message_url": 12345,
            "multimodal_analysis": {"summary": "strike"},
            "event_location": 7,
            "event_date": {"day": 2},
        }, 4)
        assert r.record_id == "event_000004"
        assert "mm_summary" not in r.fields
        assert r.location == "7"
        assert r.event_date is None
        assert "strike" in r.serialized()


class TestParseDate:
    def test_iso_prefix(self):
        assert parse_date("2023-11-05 12:00:00") == date(2023, 11, 5)

    def test_unparsable(self):
        assert parse_date("yesterday") is None
        assert parse_date("") is None
        assert parse_date(None) is None

    def test_date_passthrough(self):
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)
