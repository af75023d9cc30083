"""Parsers for the historical contest exports.

Three formats are handled:

* per-country song histories (``Poland.csv``): semicolon separated with a
  ``YEAR;SONG;PLACE;POINTS;QUALIFICATION`` header, where the SONG cell spans
  two physical lines (title, then artist);
* per-venue vote matrices (``2019_final_jury.csv``): one row per receiving
  country, one column per giving country plus a ``total`` column;
* the 1975-2019 spreadsheet with one row per individual vote.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from . import eurovision
from .countries import normalise_country_name


logger = logging.getLogger(__name__)

SONG_COLUMNS = ("YEAR", "SONG", "PLACE", "POINTS", "QUALIFICATION")
NO_VALUE_MARKERS = frozenset({"", "–", "-", "—"})

_RECORD_START = re.compile(r"^\d{4};")
_PLACE_PATTERN = re.compile(r"^#?(\d+)$")
_INT_PREFIX = re.compile(r"^-?\d+")
_SEMIFINAL_WITH_NUMBER = re.compile(r"#(\d+) in semi-?final (\d)")
_SEMIFINAL_GENERIC = re.compile(r"#(\d+) in semi-?final")
_QUALIFICATION_ROUND = re.compile(r"#(\d+) in qualification")

Resolver = Callable[[Optional[str]], Optional[int]]


@dataclass
class SongRecord:
    """Raw cells of one logical row of a song history CSV."""

    year: str
    song: str
    place: str
    points: str
    qualification: str


@dataclass
class ParsedSong:
    year: int
    title: str
    artist: str
    final_place: Optional[int]
    points: Optional[int]
    qualified: Optional[bool]
    venue_type: str

    def key(self) -> str:
        return f"{self.year}-{self.venue_type}"


@dataclass
class CountryVotes:
    country_id: int
    jury_points: int = 0
    televote_points: int = 0
    total_points: int = 0


@dataclass
class VoteCell:
    from_country_id: int
    to_country_id: int
    points: int


@dataclass
class SheetVote:
    year: int
    round_code: str
    edition: str
    venue_type: str
    vote_type: str
    from_country: str
    to_country: str
    points: int


def _parse_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = _INT_PREFIX.match(str(value).strip())
    if not match:
        return None
    return int(match.group(0))


def _strip_quotes(value: str) -> str:
    text = value.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


def _is_not_qualified(place: str) -> bool:
    return place.replace("’", "'").lower() == "didn't qualify"


def _semifinal_from_text(qualification: str) -> str:
    if "semi-final 2" in qualification or "semifinal 2" in qualification:
        return eurovision.SEMIFINAL2
    return eurovision.SEMIFINAL1


# ---- song history CSV -------------------------------------------------------


def read_song_records(text: str) -> List[SongRecord]:
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("CSV file must have at least a header and one data row")

    header = [column.strip().strip("\ufeff") for column in lines[0].split(";")]
    missing = [column for column in SONG_COLUMNS if column not in header]
    if missing:
        raise ValueError("CSV must have columns: " + ", ".join(SONG_COLUMNS))
    indexes = [header.index(column) for column in SONG_COLUMNS]

    raw_rows: List[str] = []
    current = ""
    for line in lines[1:]:
        if _RECORD_START.match(line):
            if current:
                raw_rows.append(current)
            current = line
        elif current:
            # Continuation of a multi-line SONG cell (the artist line).
            current += "\n" + line
        else:
            logger.warning("Ignoring line before the first record: %r", line)
    if current:
        raw_rows.append(current)

    records: List[SongRecord] = []
    for raw in raw_rows:
        cols = raw.split(";")
        if len(cols) < len(SONG_COLUMNS):
            logger.warning("Skipping malformed row: %r", raw)
            continue
        cells = [cols[index].strip() if index < len(cols) else "" for index in indexes]
        records.append(SongRecord(*cells))
    return records


def parse_song_record(record: SongRecord, max_year: Optional[int] = None) -> List[ParsedSong]:
    """Turn one CSV record into the song rows it describes.

    A semifinal-era country that qualified yields two songs: its semifinal
    performance and its final performance.
    """

    max_year = max_year or eurovision.LAST_CONTEST_YEAR
    year = _parse_int(record.year)
    if year is None or year < eurovision.FIRST_CONTEST_YEAR or year > max_year:
        return []
    if eurovision.is_cancelled(year):
        return []

    lines = [line.strip() for line in record.song.strip().split("\n") if line.strip()]
    if len(lines) < 2:
        logger.warning("Skipping %s: invalid song/artist format", year)
        return []
    title = _strip_quotes(lines[0])
    artist = _strip_quotes(lines[1])

    place = record.place.strip()
    not_qualified = _is_not_qualified(place)
    final_place: Optional[int] = None
    if place not in NO_VALUE_MARKERS and not not_qualified:
        match = _PLACE_PATTERN.match(place)
        if match:
            final_place = int(match.group(1))

    points: Optional[int] = None
    if record.points.strip() not in NO_VALUE_MARKERS:
        points = _parse_int(record.points)

    qualification = record.qualification.strip()
    qualified: Optional[bool] = None
    venue_type = eurovision.FINAL
    semifinal_place: Optional[int] = None

    if (
        "Big 5" in qualification
        or "Big 4" in qualification
        or qualification == "winner"
        or "Top-10" in qualification
    ):
        qualified = True
    elif "cancelled" in qualification:
        return []
    elif "#" in qualification and (
        "in semi-final" in qualification
        or "in semifinal" in qualification
        or "in qualification" in qualification
    ):
        with_number = _SEMIFINAL_WITH_NUMBER.search(qualification)
        generic = _SEMIFINAL_GENERIC.search(qualification)
        qualification_round = _QUALIFICATION_ROUND.search(qualification)
        if with_number:
            semifinal_place = int(with_number.group(1))
            venue_type = eurovision.SEMIFINAL1 if with_number.group(2) == "1" else eurovision.SEMIFINAL2
        elif generic:
            semifinal_place = int(generic.group(1))
            venue_type = eurovision.SEMIFINAL1
        elif qualification_round:
            semifinal_place = int(qualification_round.group(1))
            venue_type = eurovision.SEMIFINAL1
        else:
            venue_type = _semifinal_from_text(qualification)
        qualified = not not_qualified
    elif "semi-final" in qualification or "semifinal" in qualification:
        venue_type = _semifinal_from_text(qualification)
        qualified = not not_qualified
    elif not_qualified:
        qualified = False
        venue_type = _semifinal_from_text(qualification)
    elif final_place is not None:
        qualified = True

    songs: List[ParsedSong] = []
    if year >= eurovision.SEMIFINAL_ERA_YEAR:
        if venue_type != eurovision.FINAL:
            # Semifinal points are not tracked in this format.
            songs.append(ParsedSong(year, title, artist, semifinal_place, None, qualified, venue_type))
        if qualified:
            songs.append(ParsedSong(year, title, artist, final_place, points, True, eurovision.FINAL))
    elif semifinal_place is not None:
        songs.append(
            ParsedSong(year, title, artist, semifinal_place, None, final_place is not None, eurovision.SEMIFINAL1)
        )
        if final_place is not None:
            songs.append(ParsedSong(year, title, artist, final_place, points, True, eurovision.FINAL))
    else:
        songs.append(ParsedSong(year, title, artist, final_place, points, None, eurovision.FINAL))
    return songs


def parse_song_csv(text: str, max_year: Optional[int] = None) -> List[ParsedSong]:
    songs: List[ParsedSong] = []
    for record in read_song_records(text):
        songs.extend(parse_song_record(record, max_year=max_year))
    return songs


# ---- vote matrix CSV --------------------------------------------------------


def read_vote_matrix(text: str) -> List[Dict[str, Optional[str]]]:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return []
    headers = [header.strip().strip("\ufeff") for header in lines[0].split(";")]
    rows: List[Dict[str, Optional[str]]] = []
    for line in lines[1:]:
        values = line.split(";")
        row: Dict[str, Optional[str]] = {}
        for index, header in enumerate(headers):
            value = values[index].strip() if index < len(values) else ""
            row[header] = value or None
        rows.append(row)
    return rows


def country_totals(
    jury_rows: Iterable[Dict[str, Optional[str]]],
    televote_rows: Iterable[Dict[str, Optional[str]]],
    resolve: Resolver,
) -> List[CountryVotes]:
    """Sum the ``total`` column of the jury and televote matrices per receiving country."""

    totals: Dict[int, CountryVotes] = {}
    for rows, attr in ((jury_rows, "jury_points"), (televote_rows, "televote_points")):
        for row in rows:
            country_id = resolve(row.get("to_country"))
            if not country_id:
                continue
            entry = totals.setdefault(country_id, CountryVotes(country_id=country_id))
            setattr(entry, attr, _parse_int(row.get("total")) or 0)

    result = list(totals.values())
    for entry in result:
        entry.total_points = entry.jury_points + entry.televote_points
    return result


def vote_cells(
    rows: Iterable[Dict[str, Optional[str]]], resolve: Resolver, year: Optional[int] = None
) -> List[VoteCell]:
    """Individual votes of a matrix; cells outside the year's point scale are dropped."""

    cells: List[VoteCell] = []
    for row in rows:
        to_name = row.get("to_country")
        to_country_id = resolve(to_name)
        if not to_country_id:
            logger.warning("Unknown to_country: %s", to_name)
            continue
        for from_name, raw_points in row.items():
            if from_name in ("to_country", "total"):
                continue
            points = _parse_int(raw_points)
            if not points:
                continue
            if year is not None and not eurovision.is_valid_point_value(points, year):
                logger.warning("Ignoring invalid %s points from %s to %s in %s", points, from_name, to_name, year)
                continue
            from_country_id = resolve(from_name)
            if not from_country_id:
                continue
            if from_country_id == to_country_id:
                logger.warning("Ignoring self vote by %s", from_name)
                continue
            cells.append(VoteCell(from_country_id, to_country_id, points))
    return cells


# ---- 1975-2019 spreadsheet --------------------------------------------------


def venue_from_edition(edition: str) -> str:
    code = (edition or "").lower()
    if "sf2" in code:
        return eurovision.SEMIFINAL2
    if "sf" in code:
        return eurovision.SEMIFINAL1
    return eurovision.FINAL


def parse_sheet_row(values: Sequence[Any]) -> Optional[SheetVote]:
    """Parse ``(year, round, edition, J/T, from, to, points, duplicate)`` cells."""

    cells = list(values) + [None] * (8 - len(values))
    year = _parse_int(cells[0]) or 0
    from_country = normalise_country_name(cells[4])
    to_country = normalise_country_name(cells[5])
    points = _parse_int(cells[6]) or 0
    is_self_vote = str(cells[7] or "").strip().lower() == "x"

    if not year or not from_country or not to_country or points <= 0 or is_self_vote:
        return None
    if not eurovision.is_valid_point_value(points, year):
        logger.warning("Ignoring invalid %s points from %s to %s in %s", points, from_country, to_country, year)
        return None

    edition = str(cells[2] or "")
    return SheetVote(
        year=year,
        round_code=str(cells[1] or ""),
        edition=edition,
        venue_type=venue_from_edition(edition),
        vote_type=eurovision.JURY if str(cells[3] or "").strip().upper() == "J" else eurovision.TELEVOTE,
        from_country=from_country,
        to_country=to_country,
        points=points,
    )
