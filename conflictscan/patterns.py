"""
Pattern Dictionary — Named Systems and Units

An ordered, immutable mapping of symbolic keys to compiled,
case-insensitive regular expressions, partitioned into two groups:

  - systems: military materiel (drones, missiles, air defence, ...)
  - units:   organisational units (brigades, regiments, ...)

Declared order is part of the contract: entity matching is
first-match-wins, so the order entries were loaded in decides ties.

Uncompilable entries are excluded at load time and reported as
InvalidPattern diagnostics. They never surface as per-record failures.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from conflictscan.errors import InvalidPattern, PatternLoadError

logger = logging.getLogger(__name__)

SYSTEM = "system"
UNIT = "unit"

DEFAULT_PATTERNS_PATH = Path(__file__).resolve().parent / "data" / "entities.json"

EntrySource = Union[Mapping[str, str], Iterable[Any]]


@dataclass(frozen=True)
class PatternEntry:
    """One compiled dictionary entry."""
    key: str
    group: str              # "system" | "unit"
    pattern: re.Pattern

    @property
    def source(self) -> str:
        return self.pattern.pattern

    def search(self, text: str) -> bool:
        return self.pattern.search(text) is not None


class PatternDictionary:
    """
    Immutable, ordered dictionary of system and unit patterns.

    Instances are built by load_patterns(); the version fingerprint
    changes whenever the accepted entries change, which is how cached
    entity matches are recognised as stale.
    """

    def __init__(
        self,
        systems: tuple[PatternEntry, ...] = (),
        units: tuple[PatternEntry, ...] = (),
        skipped: tuple[InvalidPattern, ...] = (),
    ):
        self._systems = tuple(systems)
        self._units = tuple(units)
        self._skipped = tuple(skipped)
        self._version = _fingerprint(self._systems, self._units)

    @property
    def systems(self) -> tuple[PatternEntry, ...]:
        return self._systems

    @property
    def units(self) -> tuple[PatternEntry, ...]:
        return self._units

    @property
    def skipped(self) -> tuple[InvalidPattern, ...]:
        """Diagnostics for entries excluded at load time."""
        return self._skipped

    @property
    def skipped_keys(self) -> list[str]:
        return [s.key for s in self._skipped]

    @property
    def version(self) -> str:
        return self._version

    def system_keys(self) -> list[str]:
        return [e.key for e in self._systems]

    def unit_keys(self) -> list[str]:
        return [e.key for e in self._units]

    def __len__(self) -> int:
        return len(self._systems) + len(self._units)

    def is_empty(self) -> bool:
        return len(self) == 0

    def __repr__(self) -> str:
        return (
            f"PatternDictionary(systems={len(self._systems)}, "
            f"units={len(self._units)}, skipped={len(self._skipped)}, "
            f"version={self._version[:12]})"
        )


def _fingerprint(systems: tuple[PatternEntry, ...], units: tuple[PatternEntry, ...]) -> str:
    """SHA-256 over the accepted entries, in declared order."""
    raw = json.dumps(
        [[e.group, e.key, e.source] for e in systems + units],
        ensure_ascii=False,
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _iter_entries(entries: Optional[EntrySource], group: str) -> list[tuple[str, str]]:
    """Normalise a mapping or a sequence of (key, pattern) pairs."""
    if entries is None:
        return []
    if isinstance(entries, Mapping):
        items = list(entries.items())
    else:
        items = list(entries)

    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, (tuple, list)) or len(item) != 2:
            raise PatternLoadError(
                f"Malformed {group} entry: expected (key, pattern), got {item!r}",
                context={"group": group},
            )
        key, pattern_text = item
        if not isinstance(key, str) or not isinstance(pattern_text, str):
            raise PatternLoadError(
                f"Malformed {group} entry: key and pattern must be strings ({key!r})",
                context={"group": group},
            )
        if key in seen:
            raise PatternLoadError(
                f"Duplicate {group} key: {key}",
                context={"group": group, "key": key},
            )
        seen.add(key)
        pairs.append((key, pattern_text))
    return pairs


def _compile_group(
    pairs: list[tuple[str, str]], group: str, skipped: list[InvalidPattern],
) -> tuple[PatternEntry, ...]:
    compiled = []
    for key, pattern_text in pairs:
        try:
            pattern = re.compile(pattern_text, re.IGNORECASE)
        except re.error as e:
            diagnostic = InvalidPattern(key, group, pattern_text, str(e))
            skipped.append(diagnostic)
            logger.warning(str(diagnostic))
            continue
        compiled.append(PatternEntry(key=key, group=group, pattern=pattern))
    return tuple(compiled)


def load_patterns(
    system_entries: Optional[EntrySource],
    unit_entries: Optional[EntrySource],
) -> PatternDictionary:
    """
    Compile system and unit entries into a PatternDictionary.

    Args:
        system_entries: (key, pattern_text) pairs, or a mapping iterated
            in insertion order.
        unit_entries: Same shape as system_entries.

    Returns:
        The loaded dictionary. Entries whose regex fails to compile are
        excluded and listed in ``dictionary.skipped``.

    Raises:
        PatternLoadError: an entry is not a (str, str) pair, or a key is
            repeated within its group.
    """
    system_pairs = _iter_entries(system_entries, SYSTEM)
    unit_pairs = _iter_entries(unit_entries, UNIT)

    skipped: list[InvalidPattern] = []
    systems = _compile_group(system_pairs, SYSTEM, skipped)
    units = _compile_group(unit_pairs, UNIT, skipped)

    dictionary = PatternDictionary(systems=systems, units=units, skipped=tuple(skipped))
    logger.info(
        f"Patterns loaded: {len(systems)} systems, {len(units)} units",
        extra={
            "system_count": len(systems),
            "unit_count": len(units),
            "skipped_count": len(skipped),
            "skipped_keys": dictionary.skipped_keys or None,
            "dictionary_version": dictionary.version[:12],
        },
    )
    return dictionary


def load_patterns_file(path: Union[str, Path]) -> PatternDictionary:
    """
    Load an entities.json file: {"SYSTEMS": {key: regex}, "UNITS": {key: regex}}.

    Raises:
        PatternLoadError: the file is missing, not valid JSON, or not
            shaped as above.
    """
    path = Path(path)
    if not path.exists():
        raise PatternLoadError(f"Pattern file not found: {path}", context={"path": str(path)})

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PatternLoadError(
            f"Pattern file is not valid JSON: {path} ({e})",
            context={"path": str(path)},
        ) from e

    if not isinstance(data, dict):
        raise PatternLoadError(
            f"Pattern file must contain a JSON object: {path}",
            context={"path": str(path)},
        )

    systems = data.get("SYSTEMS", {})
    units = data.get("UNITS", {})
    for name, section in (("SYSTEMS", systems), ("UNITS", units)):
        if not isinstance(section, dict):
            raise PatternLoadError(
                f"'{name}' in {path} must be an object of key -> regex",
                context={"path": str(path)},
            )
    return load_patterns(systems, units)


def default_dictionary() -> PatternDictionary:
    """The bundled dictionary shipped with the package."""
    return load_patterns_file(DEFAULT_PATTERNS_PATH)
