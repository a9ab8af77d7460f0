"""
Violation Scorer — Fixed Evidence Rule Tables

Scores how strongly an incident record suggests a violation of the laws
of armed conflict. Deterministic, regex-based, no shared state.

The scorer defines:
  1. A cheap context gate (is this about fighting or weapons at all?)
  2. Six independent evidence categories with capped weights
  3. A denial list that overrides weak evidence
  4. The classification rule for a positive finding

The rule tables are module constants. They do not learn or adapt;
changing them is a versioned release.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from conflictscan.records import Record

SCORER_VERSION = "1.0.0"


# ============================================================
# DATA STRUCTURES
# ============================================================

TAG_POSITIVE = "positive"
TAG_NONE = "none"


@dataclass(frozen=True)
class ScoreResult:
    """Result of scoring one record."""
    tag: str                    # "positive" | "none"
    score: int                  # >= 0
    reasons: tuple[str, ...] = ()   # Triggered categories, in evaluation order
    negated: bool = False
    scorer_version: str = SCORER_VERSION

    @property
    def positive(self) -> bool:
        return self.tag == TAG_POSITIVE

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "score": self.score,
            "reasons": list(self.reasons),
            "negated": self.negated,
            "band": severity_band(self),
        }


NO_FINDING = ScoreResult(tag=TAG_NONE, score=0)


@dataclass(frozen=True)
class EvidenceCategory:
    """
    One evidence rule group.

    Scoring mode:
      - "once":   ``weight`` added once if any indicator matches
      - "count":  ``weight`` per distinct matching indicator, capped at ``cap``
      - "modifier": ``weight`` added once, only when a category named in
        ``requires`` is already present
    """
    id: str
    description: str
    mode: str
    weight: int
    indicators: tuple[re.Pattern, ...]
    cap: Optional[int] = None
    requires: tuple[str, ...] = field(default_factory=tuple)
    core: bool = True   # Counts towards the core-evidence requirement


def _rx(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# ============================================================
# TEXT ASSEMBLY
# ============================================================

# Superset of the entity fields, including the analysis blob and its sections
SCORED_FIELDS: tuple[str, ...] = (
    "mm_osint",
    "mm_political",
    "mm_entities",
    "mm_summary",
    "osint_events",
    "event_description",
    "translated_text",
    "message_text",
    "multimodal_analysis",
)

_URL = re.compile(r"https?://\S+", re.IGNORECASE)

# Gate: without any of these the text is not about fighting or weapons
WAR_CONTEXT = re.compile(
    r"\b(missile|rocket|drone|uav|artillery|shell|shelling|bomb|bombing|airstrike|"
    r"strike|attack|front|battle|military|tank|mlrs|grenade|mortar|loitering|"
    r"troops|soldiers?|army|forces|occupiers?|explosion)\b",
    re.IGNORECASE,
)


# ============================================================
# DENIALS
# ============================================================

NEGATION_PATTERNS: tuple[re.Pattern, ...] = _rx(
    r"\bno (?:potential )?war crimes?\b",
    r"\bnot a war crime\b",
    r"\bno (?:indication|evidence|sign) of (?:any )?(?:war crimes?|violations?|civilian (?:harm|casualties))\b",
    r"\bclaims? of war crimes? (?:are|is|were|was) (?:false|unfounded|fabricated)\b",
    r"\bden(?:y|ied|ies|ying) (?:any )?(?:war crimes?|targeting civilians|involvement)\b",
    r"\bno civilian casualties\b",
)


# ============================================================
# EVIDENCE CATEGORIES
# ============================================================

EXPLICIT = EvidenceCategory(
    id="explicit",
    description="Legal-violation phrasing",
    mode="once",
    weight=4,
    indicators=_rx(
        r"\bwar crimes?\b",
        r"\bcrimes? against humanity\b",
        r"\bgenocide\b",
        r"\bviolat\w* (?:of )?(?:international humanitarian law|the laws? (?:of|and customs of) war|"
        r"the geneva conventions?|ihl)\b",
        r"\bbreach\w* of the geneva conventions?\b",
        r"\bgeneva conventions?\b",
    ),
)

TREATMENT = EvidenceCategory(
    id="treatment",
    description="Execution, torture, abuse of prisoners, forced displacement",
    mode="count",
    weight=2,
    cap=6,
    indicators=_rx(
        r"\b(?:summary executions?|executed|executions?|massacres?)\b",
        r"\btortur\w*",
        r"\b(?:rape|raped|sexual violence)\b",
        r"\bbehead(?:ed|ing)?\b",
        r"\bpows?\b|\bprisoners? of war\b",
        r"\b(?:deportation|deported|forced displacement|forcibly (?:transferred|displaced))\b",
        r"\b(?:hostages?|human shields?)\b",
    ),
)

PROTECTED = EvidenceCategory(
    id="protected",
    description="Civilians, protected sites, vulnerable groups, cultural heritage",
    mode="count",
    weight=1,
    cap=3,
    indicators=_rx(
        r"\bcivilians?\b",
        r"\b(?:residential|apartment|housing|market)\b",
        r"\b(?:church|mosque|temple|cathedral|synagogue|monastery)\b",
        r"\b(?:school|kindergarten|university)\b",
        r"\b(?:hospital|ambulance|clinic|medics?|maternity)\b",
        r"\b(?:children|child|women|elderly|refugees?)\b",
        r"\b(?:cultural heritage|museum|monument|historic (?:site|centre|center))\b",
        r"\b(?:humanitarian (?:convoy|corridor|aid)|evacuation (?:bus|convoy|route))\b",
    ),
)

PROHIBITED = EvidenceCategory(
    id="prohibited",
    description="Cluster, chemical, biological, incendiary or thermobaric means",
    mode="count",
    weight=2,
    cap=4,
    indicators=_rx(
        r"\bcluster (?:munitions?|bombs?|shells?)\b",
        r"\bwhite phosphorus\b|\bphosphorus (?:munitions?|shells?)\b|\bincendiary\b",
        r"\b(?:thermobaric|vacuum bomb)\b",
        r"\b(?:chemical (?:weapons?|agents?|attack)|chloropicrin|nerve agent|sarin|chlorine gas)\b",
        r"\b(?:biological (?:weapons?|agents?)|bioweapons?)\b",
        r"\b(?:banned|prohibited) (?:weapons?|munitions?)\b",
        r"\b(?:anti-personnel (?:land)?mines?|butterfly mines?|pfm-1)\b",
    ),
)

INDISCRIMINATE = EvidenceCategory(
    id="indiscriminate",
    description="Indiscriminate or disproportionate attack phrasing",
    mode="once",
    weight=2,
    indicators=_rx(
        r"\bindiscriminat\w*",
        r"\bdisproportionate\w*",
        r"\b(?:carpet bomb\w*|area bombardment|blanket shelling)\b",
        r"\bdeliberate(?:ly)? (?:target\w*|strik\w*|shell\w*) (?:of )?civilians?\b",
    ),
)

FIREMODE = EvidenceCategory(
    id="firemode",
    description="Generic strike verbs; strengthens existing evidence only",
    mode="modifier",
    weight=1,
    requires=("treatment", "protected"),
    core=False,
    indicators=_rx(
        r"\b(?:shell(?:ing|ed)?|bomb(?:ing|ed)?|airstrikes?|missile strikes?|rocket strikes?)\b",
        r"\b(?:drone strikes?|loitering (?:munitions?|drones?))\b",
        r"\b(?:artillery|mlrs|mortars?)\b",
    ),
)

# Evaluation order; also the order of ScoreResult.reasons
EVIDENCE_CATEGORIES: tuple[EvidenceCategory, ...] = (
    EXPLICIT, TREATMENT, PROTECTED, PROHIBITED, INDISCRIMINATE, FIREMODE,
)


# ============================================================
# THRESHOLDS
# ============================================================

MIN_POSITIVE_SCORE = 2        # Positive needs core evidence and at least this score
STRONG_EVIDENCE_SCORE = 4     # Below this, a denial zeroes the result
STRONG_TIER_SCORE = 4         # "strong" filter tier lower bound
MEDIUM_BAND_SCORE = 4
HIGH_BAND_SCORE = 7


# ============================================================
# THE SCORER
# ============================================================

class ViolationScorer:
    """
    Evidence-weighted violation scorer. Deterministic. No shared state.

    Instantiated once as a module singleton; the categories it evaluates
    are the module-level tables above.
    """

    def __init__(self, categories: tuple[EvidenceCategory, ...] = EVIDENCE_CATEGORIES):
        self._categories = categories

    @staticmethod
    def prepare_text(record: Record) -> str:
        """Scored fields, URLs removed, lowercased."""
        return _URL.sub(" ", record.joined(SCORED_FIELDS)).lower()

    def score(self, record: Record) -> ScoreResult:
        """Score one record."""
        return self.score_text(self.prepare_text(record))

    def score_text(self, text: str) -> ScoreResult:
        """Score already-assembled text."""
        if not text or not WAR_CONTEXT.search(text):
            return NO_FINDING

        # Denials are located first and removed from the evidence text,
        # so "no evidence of war crimes" never counts as explicit evidence
        negated = False
        evidence_text = text
        for pattern in NEGATION_PATTERNS:
            if pattern.search(evidence_text):
                negated = True
                evidence_text = pattern.sub(" ", evidence_text)

        score = 0
        reasons: list[str] = []
        present: set[str] = set()
        has_core = False

        for category in self._categories:
            gained = self._category_weight(category, evidence_text, present)
            if gained <= 0:
                continue
            score += gained
            present.add(category.id)
            reasons.append(category.id)
            if category.core:
                has_core = True

        if negated:
            if score < STRONG_EVIDENCE_SCORE:
                return ScoreResult(tag=TAG_NONE, score=0, negated=True)
            return ScoreResult(
                tag=TAG_NONE,
                score=max(1, score // 2),
                reasons=tuple(reasons),
                negated=True,
            )

        tag = TAG_POSITIVE if has_core and score >= MIN_POSITIVE_SCORE else TAG_NONE
        return ScoreResult(tag=tag, score=score, reasons=tuple(reasons))

    @staticmethod
    def _category_weight(category: EvidenceCategory, text: str, present: set[str]) -> int:
        if category.mode == "modifier":
            if not present.intersection(category.requires):
                return 0
            return category.weight if any(p.search(text) for p in category.indicators) else 0

        hits = sum(1 for p in category.indicators if p.search(text))
        if hits == 0:
            return 0
        if category.mode == "once":
            return category.weight
        total = hits * category.weight
        return min(total, category.cap) if category.cap is not None else total

    def get_categories(self) -> list[dict]:
        """Describe the active rule tables (for the /patterns endpoint)."""
        return [
            {
                "id": c.id,
                "description": c.description,
                "mode": c.mode,
                "weight": c.weight,
                "cap": c.cap,
                "indicators": len(c.indicators),
            }
            for c in self._categories
        ]


def severity_band(result: Optional[ScoreResult]) -> str:
    """Bucket a positive result into low / medium / high; anything else is none."""
    if result is None or not result.positive:
        return "none"
    if result.score >= HIGH_BAND_SCORE:
        return "high"
    if result.score >= MEDIUM_BAND_SCORE:
        return "medium"
    return "low"


# ============================================================
# SINGLETON: instantiated once, never mutated
# ============================================================

violation_scorer = ViolationScorer()
