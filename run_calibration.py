#!/usr/bin/env python3
"""
run_calibration.py — Run the scorer calibration benchmark.

Usage:
    python run_calibration.py                       # Full run
    python run_calibration.py --corpus-dir path/    # Custom corpus location
    python run_calibration.py --json                # Output JSON only (for CI)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from calibration.corpus_parser import parse_all_corpora
from calibration.benchmark import run_benchmark, format_report, report_dict, save_report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="ConflictScan Scorer Calibration Runner")
    parser.add_argument(
        "--corpus-dir",
        default="calibration/corpus",
        help="Path to corpus directory (default: calibration/corpus)",
    )
    parser.add_argument(
        "--output-dir",
        default="calibration/reports",
        help="Directory for output reports (default: calibration/reports)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON only (for CI/automation)",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Print the report without writing files",
    )
    args = parser.parse_args(argv)

    corpus_dir = Path(args.corpus_dir)
    if not corpus_dir.exists():
        print(f"Error: Corpus directory not found: {corpus_dir}")
        return 1

    samples = parse_all_corpora(corpus_dir)
    if not samples:
        print(f"Error: No samples found in {corpus_dir}")
        return 1

    result = run_benchmark(samples=samples)

    if args.json:
        print(json.dumps(report_dict(result), indent=2))
    else:
        print(f"Loaded {len(samples)} samples from {corpus_dir}")
        print(format_report(result))

    if not args.no_save:
        report_path, json_path = save_report(result, args.output_dir)
        if not args.json:
            print(f"\nReport saved to: {report_path}")
            print(f"JSON saved to:   {json_path}")

    # Exit code for CI
    if result.tag_accuracy < 0.8 and result.total_samples > 5:
        print("\nTag accuracy below 80% — calibration failing")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
