"""Eurovision voting rules: venues, point scales and voting-system eras."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

FINAL = "final"
SEMIFINAL1 = "semifinal1"
SEMIFINAL2 = "semifinal2"
VENUE_TYPES: Tuple[str, ...] = (FINAL, SEMIFINAL1, SEMIFINAL2)

VENUE_DISPLAY_NAMES: Dict[str, str] = {
    FINAL: "Final",
    SEMIFINAL1: "Semi Final 1",
    SEMIFINAL2: "Semi Final 2",
}

JURY = "jury"
TELEVOTE = "televote"
COMBINED = "combined"
VOTE_TYPES: Tuple[str, ...] = (JURY, TELEVOTE, COMBINED)

JURY_ONLY = "jury-only"
TELEVOTE_ONLY = "televote-only"
HYBRID = "hybrid"
MIXED = "mixed"

EUROVISION_POINTS: Tuple[int, ...] = (12, 10, 8, 7, 6, 5, 4, 3, 2, 1)

FIRST_CONTEST_YEAR = 1956
# Latest contest covered by the song history exports.
LAST_CONTEST_YEAR = 2025
CANCELLED_YEARS = frozenset({2020})
# Split jury/televote results are published from this year on.
MODERN_VOTING_YEAR = 2016
SEMIFINAL_ERA_YEAR = 2004
TWO_SEMIFINALS_YEAR = 2008
# Pre-qualification rounds held before the semifinal era.
QUALIFICATION_ROUND_YEARS = frozenset({1993, 1996})

# Inclusive year ranges; a None venue entry applies to every venue.
_VOTING_ERAS: List[Tuple[int, int, Optional[str], str]] = [
    (FIRST_CONTEST_YEAR, 1996, None, JURY_ONLY),
    (1997, 2003, None, MIXED),
    (2004, 2008, None, TELEVOTE_ONLY),
    (2009, 2022, None, HYBRID),
    (2023, 9999, FINAL, HYBRID),
    (2023, 9999, None, TELEVOTE_ONLY),
]

_CLI_VENUE_CODES = {"sm1": SEMIFINAL1, "sm2": SEMIFINAL2, "sm": SEMIFINAL1}
_ROUND_CODE_PATTERN = re.compile(r"^(?:\d{4})?\s*(sf1|sf2|sf|f)$")


def is_cancelled(year: int) -> bool:
    return year in CANCELLED_YEARS


def has_modern_voting_system(year: int) -> bool:
    """Return True when the contest publishes jury and televote results separately."""

    return year >= MODERN_VOTING_YEAR


def voting_system(year: int, venue: str = FINAL) -> str:
    """Classify how the points of a venue were decided in a given year."""

    if year < FIRST_CONTEST_YEAR:
        raise ValueError(f"No contest was held in {year}")
    if is_cancelled(year):
        raise ValueError(f"The {year} contest was cancelled")
    venue = parse_venue(venue)
    for start, end, era_venue, system in _VOTING_ERAS:
        if start <= year <= end and (era_venue is None or era_venue == venue):
            return system
    raise ValueError(f"No voting system known for {year}")


def should_show_separate_votes(year: int, venue: Optional[str] = None) -> bool:
    """Only show separate jury and televote data where both channels were published."""

    if not has_modern_voting_system(year):
        return False
    if venue is None:
        return True
    return voting_system(year, venue) == HYBRID


def venues_for_year(year: int) -> List[str]:
    if year < FIRST_CONTEST_YEAR or is_cancelled(year):
        return []
    if year >= TWO_SEMIFINALS_YEAR:
        return [FINAL, SEMIFINAL1, SEMIFINAL2]
    if year >= SEMIFINAL_ERA_YEAR or year in QUALIFICATION_ROUND_YEARS:
        return [FINAL, SEMIFINAL1]
    return [FINAL]


def is_valid_point_value(points: int, year: int) -> bool:
    if points <= 0:
        return False
    if year >= 1975:
        return points in EUROVISION_POINTS
    return True


def parse_venue(code: str) -> str:
    """Map database values, CLI venue codes and spreadsheet round codes to a venue type.

    ``sf`` without a number is treated as the first semifinal, matching the
    single semifinal of 2004-2007.
    """

    text = (code or "").strip().lower()
    if text in VENUE_TYPES:
        return text
    if text in _CLI_VENUE_CODES:
        return _CLI_VENUE_CODES[text]
    match = _ROUND_CODE_PATTERN.match(text)
    if match:
        token = match.group(1)
        if token == "sf2":
            return SEMIFINAL2
        if token.startswith("sf"):
            return SEMIFINAL1
        return FINAL
    raise ValueError(f"Unknown venue '{code}'")


def venue_display_name(venue: str) -> str:
    return VENUE_DISPLAY_NAMES.get(venue, venue)


def venue_sort_key(venue: str) -> Tuple[int, str]:
    """Final first, then the semifinals in order."""

    return (0 if venue == FINAL else 1, venue)
