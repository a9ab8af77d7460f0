"""
Corpus Parser — Reads Labelled Calibration Passages

Parses the simple text format used for calibration corpus files.
Each sample is a passage preceded by metadata lines, separated by
'---' delimiters.

Format:
    ---
    tags: protected, firemode
    expected: positive
    source: Telegram channel repost, 2023-07-14
    notes: Strike on an apartment block

    The actual passage text goes here. It can span
    multiple lines.

    ---

`tags` lists the evidence categories a reader expects the scorer to
find, or `clean`. `expected` is the expected tag; it defaults to
`none` for clean samples and `positive` otherwise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from conflictscan.violations import EVIDENCE_CATEGORIES, TAG_NONE, TAG_POSITIVE

KNOWN_TAGS = frozenset(c.id for c in EVIDENCE_CATEGORIES) | {"clean"}


@dataclass
class CalibrationSample:
    """A single labelled sample from the calibration corpus."""
    text: str
    tags: list[str]               # Expected evidence categories (or ["clean"])
    expected: str                 # "positive" | "none"
    source: str
    notes: str
    is_clean: bool

    # Populated after scoring
    engine_result: Optional[dict] = None


def parse_corpus(filepath: str | Path) -> list[CalibrationSample]:
    """
    Parse a calibration corpus file into a list of samples.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: a sample uses an unknown tag or expected value.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Corpus file not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")

    # Split on lines that are just --- (with optional whitespace)
    blocks = re.split(r"(?:^|\n)\s*---\s*(?:\n|$)", content)

    samples = []
    for block in blocks:
        block = block.strip()
        if not block:
            continue

        sample = _parse_block(block)
        if sample:
            samples.append(sample)

    return samples


def _parse_block(block: str) -> Optional[CalibrationSample]:
    """Parse a single sample block."""
    metadata = {}
    text_lines = []
    in_text = False

    for line in block.split("\n"):
        stripped = line.strip()
        if stripped.startswith("#"):
            continue

        if not in_text:
            match = re.match(r"^(tags|expected|source|notes)\s*:\s*(.+)$", stripped, re.IGNORECASE)
            if match:
                metadata[match.group(1).lower()] = match.group(2).strip()
            elif stripped:
                # First non-metadata, non-empty line starts the text
                in_text = True
                text_lines.append(line)
        else:
            text_lines.append(line)

    text = "\n".join(text_lines).strip()
    if not text:
        return None

    raw_tags = metadata.get("tags", "clean")
    tags = [t.strip().lower() for t in raw_tags.split(",") if t.strip()] or ["clean"]
    unknown = [t for t in tags if t not in KNOWN_TAGS]
    if unknown:
        raise ValueError(f"Unknown calibration tags {unknown} in sample: {text[:60]!r}")

    is_clean = "clean" in tags
    expected = metadata.get("expected", TAG_NONE if is_clean else TAG_POSITIVE).lower()
    if expected not in (TAG_POSITIVE, TAG_NONE):
        raise ValueError(f"Invalid expected tag {expected!r} in sample: {text[:60]!r}")

    return CalibrationSample(
        text=text,
        tags=[] if is_clean else tags,
        expected=expected,
        source=metadata.get("source", "unknown"),
        notes=metadata.get("notes", ""),
        is_clean=is_clean,
    )


def parse_all_corpora(corpus_dir: str | Path) -> list[CalibrationSample]:
    """Parse all .txt corpus files in a directory."""
    corpus_dir = Path(corpus_dir)
    samples = []
    for filepath in sorted(corpus_dir.glob("*.txt")):
        samples.extend(parse_corpus(filepath))
    return samples
