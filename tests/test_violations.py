"""
Tests for the violation scorer.

The evidence tables are fixed; these tests pin their weights, caps,
denial handling and the positive classification rule.
"""

import pytest

from conflictscan.records import Record
from conflictscan.violations import (
    EVIDENCE_CATEGORIES,
    MIN_POSITIVE_SCORE,
    NO_FINDING,
    SCORER_VERSION,
    TAG_NONE,
    TAG_POSITIVE,
    ScoreResult,
    ViolationScorer,
    severity_band,
    violation_scorer,
)


def score(text: str) -> ScoreResult:
    return violation_scorer.score_text(text.lower())


class TestContextGate:
    def test_no_war_context(self):
        assert score("Civilians gathered at the market for the festival.") == NO_FINDING

    def test_empty_text(self):
        assert score("") == NO_FINDING

    def test_context_without_evidence(self):
        r = score("Artillery duel continued along the front line.")
        assert r.tag == TAG_NONE
        assert r.score == 0


class TestExamples:
    def test_shahed_example_positive(self):
        r = score("Shahed drone strike hit residential building, civilians killed")
        assert r.tag == TAG_POSITIVE
        assert r.score >= MIN_POSITIVE_SCORE
        assert r.reasons == ("protected", "firemode")
        assert r.score == 3

    def test_explicit_and_treatment(self):
        r = score("Russian forces executed prisoners of war; officials call it a war crime.")
        assert r.reasons[:2] == ("explicit", "treatment")
        assert r.score == 4 + 2 * 2
        assert r.positive

    def test_prohibited_and_indiscriminate(self):
        r = score("Cluster munitions used in an indiscriminate attack on the city market, killing children.")
        assert set(r.reasons) == {"protected", "prohibited", "indiscriminate"}
        assert r.score == 2 + 2 + 2


class TestWeights:
    def test_explicit_counted_once(self):
        one = score("Missile attack described as a war crime.")
        two = score("Missile attack described as a war crime and genocide, a war crime under the geneva convention.")
        assert one.score == 4
        assert two.score == 4

    def test_treatment_capped(self):
        r = score(
            "Soldiers executed, tortured and raped detainees, beheaded a pow, "
            "deported families and took hostages."
        )
        assert "treatment" in r.reasons
        assert r.score == 6

    def test_protected_capped(self):
        r = score(
            "Missile attack on a hospital, school, church and apartment building; "
            "children and civilians among the victims."
        )
        assert r.reasons[0] == "protected"
        assert r.score == 3

    def test_prohibited_capped(self):
        r = score("Troops used cluster munitions, white phosphorus, thermobaric rockets and chemical weapons.")
        assert r.reasons == ("prohibited",)
        assert r.score == 4

    def test_firemode_alone_is_not_evidence(self):
        r = score("Heavy shelling and airstrikes on enemy positions.")
        assert r.score == 0
        assert r.tag == TAG_NONE

    def test_firemode_needs_treatment_or_protected(self):
        r = score("Artillery shelling with cluster munitions near the front.")
        assert "firemode" not in r.reasons
        assert r.reasons == ("prohibited",)

    def test_firemode_modifier(self):
        without = score("Attack killed civilians.")
        with_mode = score("Shelling killed civilians.")
        assert with_mode.score == without.score + 1

    def test_single_protected_below_threshold(self):
        r = score("Strike near a school.")
        assert r.score == 1
        assert r.tag == TAG_NONE

    def test_monotonic_in_evidence(self):
        base = score("Missile strike was a war crime.")
        more = score("Missile strike on civilians in a residential area was a war crime.")
        assert more.score >= base.score

    def test_reasons_follow_category_order(self):
        r = score("Indiscriminate shelling of civilians, a war crime.")
        order = [c.id for c in EVIDENCE_CATEGORIES]
        assert list(r.reasons) == sorted(r.reasons, key=order.index)

    def test_urls_ignored(self):
        r = violation_scorer.score(Record.from_row({
            "event_id": "1",
            "message_text": "Drone strike reported https://example.com/war-crime/civilians",
        }))
        assert r.score == 0


class TestNegation:
    def test_denial_only_text(self):
        r = score("Military spokesman: no evidence of war crimes after the strike.")
        assert r.tag == TAG_NONE
        assert r.score == 0
        assert r.negated is True

    def test_no_civilian_casualties(self):
        r = score("The drone was shot down, no civilian casualties.")
        assert r == ScoreResult(tag=TAG_NONE, score=0, negated=True)

    def test_denial_overrides_weak_evidence(self):
        r = score("Shelling near a school; the army denied targeting civilians.")
        assert r.tag == TAG_NONE
        assert r.score == 0

    def test_strong_evidence_halved_not_zeroed(self):
        r = score(
            "Russian forces executed prisoners of war and tortured hostages, "
            "while the ministry denies any war crimes."
        )
        assert r.negated is True
        assert r.tag == TAG_NONE
        assert r.score == 3
        assert "treatment" in r.reasons


class TestRecordScoring:
    def test_scores_across_fields(self):
        r = violation_scorer.score(Record.from_row({
            "event_id": "1",
            "event_description": "Missile strike on Odesa port",
            "translated_text": "A hospital and a kindergarten were damaged",
        }))
        assert r.positive
        assert "protected" in r.reasons

    def test_deterministic(self):
        record = Record.from_row({"event_id": "1", "message_text": "Shelling of a hospital."})
        assert violation_scorer.score(record) == violation_scorer.score(record)


class TestSeverityBand:
    @pytest.mark.parametrize("value,band", [(2, "low"), (3, "low"), (4, "medium"), (6, "medium"), (7, "high"), (10, "high")])
    def test_positive_bands(self, value, band):
        assert severity_band(ScoreResult(tag=TAG_POSITIVE, score=value)) == band

    def test_non_positive_is_none(self):
        assert severity_band(ScoreResult(tag=TAG_NONE, score=5, negated=True)) == "none"
        assert severity_band(None) == "none"

    def test_to_dict_includes_band(self):
        d = ScoreResult(tag=TAG_POSITIVE, score=8, reasons=("explicit",)).to_dict()
        assert d["band"] == "high"
        assert d["reasons"] == ["explicit"]


class TestCategories:
    def test_describes_all_categories(self):
        cats = ViolationScorer().get_categories()
        assert [c["id"] for c in cats] == [
            "explicit", "treatment", "protected", "prohibited", "indiscriminate", "firemode",
        ]

    def test_version_constant(self):
        assert SCORER_VERSION == "1.0.0"
