"""
Benchmark Runner — Precision/Recall/F1 per Evidence Category

Runs the calibration corpus through the violation scorer and compares
its output against human labels. Produces:

  1. Per-category precision, recall, F1
  2. Tag accuracy (positive / none) against the expected tag
  3. Average score for clean vs. labelled samples
  4. Specific misses and false alarms for manual review
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from conflictscan.violations import EVIDENCE_CATEGORIES, ViolationScorer, violation_scorer
from calibration.corpus_parser import CalibrationSample, parse_all_corpora


@dataclass
class CategoryMetrics:
    """Precision/recall metrics for a single evidence category."""
    category: str
    true_positives: int = 0   # Scorer fired, human tagged
    false_positives: int = 0  # Scorer fired, human didn't tag
    false_negatives: int = 0  # Human tagged, scorer missed
    true_negatives: int = 0

    @property
    def precision(self) -> float:
        denom = self.true_positives + self.false_positives
        return self.true_positives / denom if denom > 0 else 0.0

    @property
    def recall(self) -> float:
        denom = self.true_positives + self.false_negatives
        return self.true_positives / denom if denom > 0 else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if (p + r) > 0 else 0.0

    @property
    def support(self) -> int:
        """Number of human-labelled positives for this category."""
        return self.true_positives + self.false_negatives


@dataclass
class BenchmarkResult:
    """Full benchmark output."""
    total_samples: int
    clean_samples: int
    labelled_samples: int
    category_metrics: dict[str, CategoryMetrics]
    tag_accuracy: float          # Scorer tag == expected tag
    overall_precision: float     # Macro-averaged over categories with support
    overall_recall: float
    overall_f1: float
    avg_score_clean: float
    avg_score_labelled: float
    tag_mismatches: list[dict]
    false_positives: list[dict]   # Category fired on a sample not tagged with it
    false_negatives: list[dict]   # Tagged category the scorer missed


def run_benchmark(
    corpus_dir: str | Path = "calibration/corpus",
    scorer: Optional[ViolationScorer] = None,
    samples: Optional[list[CalibrationSample]] = None,
) -> BenchmarkResult:
    """
    Run the calibration benchmark.

    Args:
        corpus_dir: Directory containing corpus .txt files.
        scorer: Scorer to evaluate; the module singleton by default.
        samples: Pre-parsed samples; overrides corpus_dir.
    """
    scorer = scorer or violation_scorer
    if samples is None:
        samples = parse_all_corpora(corpus_dir)
    if not samples:
        raise ValueError(f"No samples found in {corpus_dir}")

    metrics = {c.id: CategoryMetrics(category=c.id) for c in EVIDENCE_CATEGORIES}

    tag_mismatches = []
    false_positives_detail = []
    false_negatives_detail = []
    clean_scores = []
    labelled_scores = []
    correct_tags = 0

    for sample in samples:
        result = scorer.score_text(sample.text.lower())
        sample.engine_result = result.to_dict()

        fired = set(result.reasons)
        expected = set(sample.tags)

        if result.tag == sample.expected:
            correct_tags += 1
        else:
            tag_mismatches.append({
                "expected": sample.expected,
                "actual": result.tag,
                "score": result.score,
                "text": sample.text[:200],
                "source": sample.source,
                "notes": sample.notes,
            })

        if sample.is_clean:
            clean_scores.append(result.score)
        else:
            labelled_scores.append(result.score)

        for cid, cm in metrics.items():
            engine_has = cid in fired
            human_has = cid in expected
            if engine_has and human_has:
                cm.true_positives += 1
            elif engine_has:
                cm.false_positives += 1
                false_positives_detail.append({
                    "category": cid,
                    "text": sample.text[:200],
                    "source": sample.source,
                    "human_tags": sample.tags,
                })
            elif human_has:
                cm.false_negatives += 1
                false_negatives_detail.append({
                    "category": cid,
                    "text": sample.text[:200],
                    "source": sample.source,
                    "notes": sample.notes,
                })
            else:
                cm.true_negatives += 1

    active = [m for m in metrics.values() if m.support > 0]
    if active:
        overall_precision = sum(m.precision for m in active) / len(active)
        overall_recall = sum(m.recall for m in active) / len(active)
        overall_f1 = sum(m.f1 for m in active) / len(active)
    else:
        overall_precision = overall_recall = overall_f1 = 0.0

    avg_clean = sum(clean_scores) / len(clean_scores) if clean_scores else 0.0
    avg_labelled = sum(labelled_scores) / len(labelled_scores) if labelled_scores else 0.0

    return BenchmarkResult(
        total_samples=len(samples),
        clean_samples=len(clean_scores),
        labelled_samples=len(labelled_scores),
        category_metrics=metrics,
        tag_accuracy=round(correct_tags / len(samples), 4),
        overall_precision=round(overall_precision, 4),
        overall_recall=round(overall_recall, 4),
        overall_f1=round(overall_f1, 4),
        avg_score_clean=round(avg_clean, 2),
        avg_score_labelled=round(avg_labelled, 2),
        tag_mismatches=tag_mismatches,
        false_positives=false_positives_detail,
        false_negatives=false_negatives_detail,
    )


def format_report(result: BenchmarkResult) -> str:
    """Format benchmark results as a human-readable report."""
    lines = [
        "=" * 60,
        "CONFLICTSCAN SCORER CALIBRATION REPORT",
        "=" * 60,
        "",
        f"Samples: {result.total_samples} "
        f"({result.clean_samples} clean, {result.labelled_samples} labelled)",
        "",
        "--- OVERALL METRICS ---",
        f"Tag accuracy: {result.tag_accuracy:.1%}",
        f"Precision:    {result.overall_precision:.1%}",
        f"Recall:       {result.overall_recall:.1%}",
        f"F1 Score:     {result.overall_f1:.1%}",
        "",
        "--- SCORE SEPARATION ---",
        f"Avg score (clean samples):     {result.avg_score_clean}",
        f"Avg score (labelled samples):  {result.avg_score_labelled}",
        "",
        "--- PER-CATEGORY BREAKDOWN ---",
        f"{'Category':<16} {'Prec':>6} {'Recall':>6} {'F1':>6} {'TP':>4} {'FP':>4} {'FN':>4} {'Support':>7}",
        "-" * 64,
    ]

    for m in sorted(result.category_metrics.values(), key=lambda m: (-m.support, -m.f1)):
        lines.append(
            f"{m.category:<16} {m.precision:>5.0%} {m.recall:>6.0%} "
            f"{m.f1:>5.0%} {m.true_positives:>4} {m.false_positives:>4} "
            f"{m.false_negatives:>4} {m.support:>7}"
        )

    if result.tag_mismatches:
        lines.extend(["", "--- TAG MISMATCHES ---"])
        for mm in result.tag_mismatches[:10]:
            lines.append(
                f"  expected {mm['expected']}, got {mm['actual']} "
                f"(score {mm['score']}): {mm['text'][:70]}..."
            )

    if result.false_negatives:
        lines.extend(["", "--- MISSES (Scorer missed a labelled category) ---"])
        for fn in result.false_negatives[:10]:
            lines.append(f"  [{fn['category']}] {fn['text'][:80]}...")
            if fn.get("notes"):
                lines.append(f"    Notes: {fn['notes']}")

    lines.extend(["", "=" * 60])
    return "\n".join(lines)


def report_dict(result: BenchmarkResult) -> dict:
    return {
        "total_samples": result.total_samples,
        "clean_samples": result.clean_samples,
        "labelled_samples": result.labelled_samples,
        "overall": {
            "tag_accuracy": result.tag_accuracy,
            "precision": result.overall_precision,
            "recall": result.overall_recall,
            "f1": result.overall_f1,
        },
        "score": {
            "avg_clean": result.avg_score_clean,
            "avg_labelled": result.avg_score_labelled,
        },
        "per_category": {
            cid: {
                "precision": m.precision,
                "recall": m.recall,
                "f1": m.f1,
                "tp": m.true_positives,
                "fp": m.false_positives,
                "fn": m.false_negatives,
                "support": m.support,
            }
            for cid, m in result.category_metrics.items()
        },
        "tag_mismatches": result.tag_mismatches,
        "false_positives": result.false_positives,
        "false_negatives": result.false_negatives,
    }


def save_report(result: BenchmarkResult, output_dir: str | Path = "calibration/reports"):
    """Save benchmark results as both human-readable report and JSON."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / "calibration_report.txt"
    report_path.write_text(format_report(result), encoding="utf-8")

    json_path = output_dir / "calibration_report.json"
    json_path.write_text(json.dumps(report_dict(result), indent=2), encoding="utf-8")

    return report_path, json_path
