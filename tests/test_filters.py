"""
Tests for the filter pipeline: criteria, predicates, presets.
"""

from datetime import date

import pytest

from conflictscan.engine import classify_all
from conflictscan.filters import (
    DATE_PRESETS,
    FilterCriteria,
    ScoreTier,
    apply_filters,
    date_preset_range,
    passes_entity_filters,
    run_query,
)
from conflictscan.patterns import load_patterns
from conflictscan.records import Record


def _dictionary():
    return load_patterns(
        [("Shahed", r"\b(shahed)\b"), ("Lancet", r"\blancet\b")],
        [("74th Brigade", r"\b74th brigade\b")],
    )


ROWS = [
    {"event_id": "shahed", "event_date": "2024-03-01", "event_location": "Odesa",
     "event_description": "Shahed drone strike hit residential building, civilians killed"},
    {"event_id": "brigade", "event_date": "2024-03-05", "event_location": "Pokrovsk",
     "osint_entities": "74th Brigade, Pokrovsk", "message_text": "74th Brigade held the line"},
    {"event_id": "lancet", "event_date": "2024-03-10", "event_location": "Bakhmut",
     "message_text": "Lancet hit a howitzer"},
    {"event_id": "plain", "event_date": "2024-04-01", "event_location": "Odesa",
     "message_text": "Air raid alert lifted"},
    {"event_id": "crime", "event_date": "2024-02-20", "event_location": "Kherson",
     "message_text": "Troops executed prisoners of war, a war crime"},
    {"event_id": "undated", "message_text": "Shahed wreckage found"},
]


@pytest.fixture
def records():
    return classify_all([Record.from_row(r, i) for i, r in enumerate(ROWS)], _dictionary())


def ids(records):
    return [r.record_id for r in records]


class TestCriteria:
    def test_none_applies_nothing(self, records):
        assert apply_filters(None, records) == records

    def test_empty_criteria_keeps_all(self, records):
        assert apply_filters(FilterCriteria(), records) == records

    def test_build_from_strings(self):
        c = FilterCriteria.build(start_date="2024-03-01", end_date="2024-03-31",
                                 score_tier="likely", systems=["Shahed"])
        assert c.start_date == date(2024, 3, 1)
        assert c.score_tier is ScoreTier.LIKELY
        assert c.systems == frozenset({"Shahed"})
        assert c.active_count() == 1
        assert c.has_entity_filter

    def test_build_rejects_bad_date(self):
        with pytest.raises(ValueError):
            FilterCriteria.build(start_date="March first")

    def test_build_rejects_bad_tier(self):
        with pytest.raises(ValueError):
            FilterCriteria.build(score_tier="certain")

    def test_criteria_immutable(self):
        c = FilterCriteria()
        with pytest.raises(Exception):
            c.query = "x"


class TestEntitySelection:
    def test_union_of_systems_and_units(self, records):
        c = FilterCriteria.build(systems=["Shahed"], units=["74th Brigade"])
        assert ids(apply_filters(c, records)) == ["shahed", "brigade", "undated"]

    def test_systems_only(self, records):
        c = FilterCriteria.build(systems=["Lancet"])
        assert ids(apply_filters(c, records)) == ["lancet"]

    def test_unmatched_excluded_while_selection_active(self, records):
        c = FilterCriteria.build(units=["74th Brigade"])
        assert "plain" not in ids(apply_filters(c, records))

    def test_unannotated_record_fails(self):
        r = Record.from_row({"event_id": "x", "message_text": "shahed"})
        assert not passes_entity_filters(r, frozenset({"Shahed"}), frozenset())

    def test_no_selection_passes_unannotated(self):
        r = Record.from_row({"event_id": "x"})
        assert passes_entity_filters(r, frozenset(), frozenset())


class TestScoreTier:
    def test_likely(self, records):
        c = FilterCriteria.build(score_tier="likely")
        assert ids(apply_filters(c, records)) == ["shahed", "crime"]

    def test_strong(self, records):
        c = FilterCriteria.build(score_tier=ScoreTier.STRONG)
        assert ids(apply_filters(c, records)) == ["crime"]

    def test_unscored_fails_tier(self):
        r = Record.from_row({"event_id": "x"})
        assert apply_filters(FilterCriteria.build(score_tier="likely"), [r]) == []

    def test_plain_string_tier(self, records):
        assert ids(apply_filters(FilterCriteria(score_tier="likely"), records)) == ["shahed", "crime"]
        assert len(apply_filters(FilterCriteria(score_tier="all"), records)) == len(ROWS)

    def test_unknown_string_tier_rejected(self, records):
        with pytest.raises(ValueError):
            apply_filters(FilterCriteria(score_tier="certain"), records)


class TestDateRange:
    def test_inclusive_bounds(self, records):
        c = FilterCriteria.build(start_date="2024-03-01", end_date="2024-03-10")
        assert ids(apply_filters(c, records)) == ["shahed", "brigade", "lancet"]

    def test_open_end(self, records):
        c = FilterCriteria.build(start_date="2024-03-06")
        assert ids(apply_filters(c, records)) == ["lancet", "plain"]

    def test_undated_fails_when_bounded(self, records):
        c = FilterCriteria.build(end_date="2030-01-01")
        assert "undated" not in ids(apply_filters(c, records))


class TestSelections:
    def test_record_ids(self, records):
        c = FilterCriteria.build(record_ids=["plain", "lancet"])
        assert ids(apply_filters(c, records)) == ["lancet", "plain"]

    def test_locations(self, records):
        c = FilterCriteria.build(locations=["Odesa"])
        assert ids(apply_filters(c, records)) == ["shahed", "plain"]

    def test_entities(self, records):
        c = FilterCriteria.build(entities=["Pokrovsk"])
        assert ids(apply_filters(c, records)) == ["brigade"]


class TestQueryComposition:
    def test_query_and_predicates_conjoined(self, records):
        c = FilterCriteria.build(query="shahed", start_date="2024-01-01")
        assert ids(apply_filters(c, records)) == ["shahed"]

    def test_query_with_entity_union(self, records):
        c = FilterCriteria.build(query="odesa OR pokrovsk", systems=["Shahed"], units=["74th Brigade"])
        assert ids(apply_filters(c, records)) == ["shahed", "brigade"]

    def test_malformed_query_falls_back_to_literal(self, records):
        c = FilterCriteria.build(query="(shahed")
        assert apply_filters(c, records) == []

    def test_fallback_matches_literal_text(self):
        records = [Record.from_row({"event_id": "p", "message_text": "note (shahed"})]
        assert ids(run_query("(shahed", records)) == ["p"]

    def test_order_preserved(self, records):
        c = FilterCriteria.build(query="shahed OR lancet OR brigade")
        assert ids(apply_filters(c, records)) == ["shahed", "brigade", "lancet", "undated"]


class TestDatePresets:
    TODAY = date(2024, 3, 15)

    def test_today(self):
        assert date_preset_range("today", self.TODAY) == (self.TODAY, self.TODAY)

    def test_yesterday(self):
        assert date_preset_range("yesterday", self.TODAY) == (date(2024, 3, 14), date(2024, 3, 14))

    def test_last7days(self):
        assert date_preset_range("last7days", self.TODAY) == (date(2024, 3, 8), self.TODAY)

    def test_last30days(self):
        assert date_preset_range("last30days", self.TODAY) == (date(2024, 2, 14), self.TODAY)

    def test_this_month(self):
        assert date_preset_range("thisMonth", self.TODAY) == (date(2024, 3, 1), self.TODAY)

    def test_last_month(self):
        assert date_preset_range("lastMonth", self.TODAY) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_last_month_in_january(self):
        assert date_preset_range("lastMonth", date(2024, 1, 10)) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_this_year(self):
        assert date_preset_range("thisYear", self.TODAY) == (date(2024, 1, 1), self.TODAY)

    def test_all(self):
        assert date_preset_range("all", self.TODAY) == (None, None)

    def test_unknown(self):
        with pytest.raises(ValueError):
            date_preset_range("fortnight", self.TODAY)

    def test_every_preset_resolves(self):
        for preset in DATE_PRESETS:
            date_preset_range(preset, self.TODAY)
