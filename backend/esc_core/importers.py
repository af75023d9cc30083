"""Load historical exports into the database through a DataStore."""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from . import eurovision
from .countries import CountryResolver, country_code, country_slug, normalise_country_name
from .parsing import country_totals, parse_sheet_row, parse_song_csv, read_vote_matrix, vote_cells
from .store import DataStore


logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "eurovision_song_contest_1975_2019.xlsx"

HOSTS: Dict[int, Tuple[str, str]] = {
    2015: ("Austria", "Vienna"),
    2016: ("Sweden", "Stockholm"),
    2017: ("Ukraine", "Kyiv"),
    2018: ("Portugal", "Lisbon"),
    2019: ("Israel", "Tel Aviv"),
}

# (year, country) -> (title, artist, final place): winners and a few notable entries.
KNOWN_SONGS: Dict[Tuple[int, str], Tuple[str, str, Optional[int]]] = {
    (1975, "The Netherlands"): ("Ding-a-dong", "Teach-In", 1),
    (1976, "United Kingdom"): ("Save Your Kisses for Me", "Brotherhood of Man", 1),
    (1977, "France"): ("L'oiseau et l'enfant", "Marie Myriam", 1),
    (1978, "Israel"): ("A-Ba-Ni-Bi", "Izhar Cohen & the Alphabeta", 1),
    (1979, "Israel"): ("Hallelujah", "Milk and Honey", 1),
    (1980, "Ireland"): ("What's Another Year", "Johnny Logan", 1),
    (1981, "United Kingdom"): ("Making Your Mind Up", "Bucks Fizz", 1),
    (1982, "Germany"): ("Ein bißchen Frieden", "Nicole", 1),
    (1983, "Luxembourg"): ("Si la vie est cadeau", "Corinne Hermès", 1),
    (1984, "Sweden"): ("Diggi-Loo Diggi-Ley", "Herreys", 1),
    (1985, "Norway"): ("La det swinge", "Bobbysocks", 1),
    (1986, "Belgium"): ("J'aime la vie", "Sandra Kim", 1),
    (1987, "Ireland"): ("Hold Me Now", "Johnny Logan", 1),
    (1988, "Switzerland"): ("Ne partez pas sans moi", "Celine Dion", 1),
    (1989, "Yugoslavia"): ("Rock Me", "Riva", 1),
    (1990, "Italy"): ("Insieme: 1992", "Toto Cutugno", 1),
    (1991, "Sweden"): ("Fångad av en stormvind", "Carola", 1),
    (1992, "Ireland"): ("Why Me?", "Linda Martin", 1),
    (1993, "Ireland"): ("In Your Eyes", "Niamh Kavanagh", 1),
    (1994, "Ireland"): ("Rock 'n' Roll Kids", "Paul Harrington & Charlie McGettigan", 1),
    (1995, "Norway"): ("Nocturne", "Secret Garden", 1),
    (1996, "Ireland"): ("The Voice", "Eimear Quinn", 1),
    (1997, "United Kingdom"): ("Love Shine a Light", "Katrina & The Waves", 1),
    (1998, "Israel"): ("Diva", "Dana International", 1),
    (1999, "Sweden"): ("Take Me to Your Heaven", "Charlotte Nilsson", 1),
    (2000, "Denmark"): ("Fly on the Wings of Love", "Olsen Brothers", 1),
    (2001, "Estonia"): ("Everybody", "Tanel Padar, Dave Benton & 2XL", 1),
    (2002, "Latvia"): ("I Wanna", "Marie N", 1),
    (2003, "Turkey"): ("Everyway That I Can", "Sertab Erener", 1),
    (2004, "Ukraine"): ("Wild Dances", "Ruslana", 1),
    (2005, "Greece"): ("My Number One", "Helena Paparizou", 1),
    (2006, "Finland"): ("Hard Rock Hallelujah", "Lordi", 1),
    (2007, "Serbia"): ("Molitva", "Marija Šerifović", 1),
    (2008, "Russia"): ("Believe", "Dima Bilan", 1),
    (2009, "Norway"): ("Fairytale", "Alexander Rybak", 1),
    (2010, "Germany"): ("Satellite", "Lena", 1),
    (2011, "Azerbaijan"): ("Running Scared", "Ell & Nikki", 1),
    (2012, "Sweden"): ("Euphoria", "Loreen", 1),
    (2013, "Denmark"): ("Only Teardrops", "Emmelie de Forest", 1),
    (2014, "Austria"): ("Rise Like a Phoenix", "Conchita Wurst", 1),
    (2015, "Sweden"): ("Heroes", "Måns Zelmerlöw", 1),
    (2016, "Ukraine"): ("1944", "Jamala", 1),
    (2017, "Portugal"): ("Amar pelos dois", "Salvador Sobral", 1),
    (2017, "Bulgaria"): ("Beautiful Mess", "Kristian Kostov", 2),
    (2017, "Moldova"): ("Hey Mamma", "SunStroke Project", 3),
    (2017, "Belgium"): ("City Lights", "Blanche", 4),
    (2017, "Sweden"): ("I Can't Go On", "Robin Bengtsson", 5),
    (2018, "Israel"): ("Toy", "Netta", 1),
    (2018, "Cyprus"): ("Fuego", "Eleni Foureira", 2),
    (2018, "Austria"): ("Nobody but You", "Cesár Sampson", 3),
    (2018, "Germany"): ("You Let Me Walk Alone", "Michael Schulte", 4),
    (2018, "Italy"): ("Non mi avete fatto niente", "Ermal Meta & Fabrizio Moro", 5),
    (2019, "The Netherlands"): ("Arcade", "Duncan Laurence", 1),
    (2019, "Italy"): ("Soldi", "Mahmood", 2),
    (2019, "Russia"): ("Scream", "Sergey Lazarev", 3),
    (2019, "Switzerland"): ("She Got Me", "Luca Hänni", 4),
    (2019, "Sweden"): ("Too Late for Love", "John Lundvik", 5),
    (2019, "Norway"): ("Spirit in the Sky", "KEiiNO", 6),
}


@dataclass
class SongImportSummary:
    country: str
    updated: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class VoteImportSummary:
    year: int
    venue_type: str
    contest_id: int = 0
    venue_id: int = 0
    songs: int = 0
    jury_votes: int = 0
    televote_votes: int = 0


@dataclass
class PopulateSummary:
    rows: int = 0
    countries: int = 0
    contests: int = 0
    venues: int = 0
    songs: int = 0
    votes: int = 0
    errors: List[str] = field(default_factory=list)


def import_songs(store: DataStore, country_name: str, csv_text: str, max_year: Optional[int] = None) -> SongImportSummary:
    """Update or insert a country's song history from its CSV export."""

    name = normalise_country_name(country_name)
    country_id = store.find_country_id(name)
    if not country_id:
        raise LookupError(f"Country {country_name} not found in database")

    songs = parse_song_csv(csv_text, max_year=max_year)
    existing = store.get_existing_songs(country_id)
    contest_ids: Dict[int, Optional[int]] = {}
    summary = SongImportSummary(country=name)

    for song in songs:
        if song.year not in contest_ids:
            contest_ids[song.year] = store.get_contest_id(song.year)
        contest_id = contest_ids[song.year]
        if not contest_id:
            logger.warning("Skipping %s: contest not found", song.year)
            summary.skipped += 1
            continue

        fields = {
            "title": song.title,
            "artist": song.artist,
            "final_place": song.final_place,
            "points": song.points,
            "qualified": song.qualified,
        }
        current = existing.get(song.key())
        try:
            if current:
                store.update_song(current["id"], fields)
                summary.updated += 1
                logger.info("Updated %s (%s): %s - %s", song.year, song.venue_type, song.artist, song.title)
            else:
                created = store.insert_song(
                    {**fields, "contest_id": contest_id, "country_id": country_id, "venue_type": song.venue_type}
                )
                existing[song.key()] = created
                summary.inserted += 1
                logger.info("Inserted %s (%s): %s - %s", song.year, song.venue_type, song.artist, song.title)
        except RuntimeError as exc:
            logger.error("Failed to store %s (%s): %s", song.year, song.venue_type, exc)
            summary.failed += 1

    return summary


def vote_file_paths(data_dir: Path, year: int, venue_code: str) -> Tuple[Path, Path]:
    return (
        data_dir / f"{year}_{venue_code}_jury.csv",
        data_dir / f"{year}_{venue_code}_public.csv",
    )


def _read_matrix(path: Path) -> List[Dict[str, Optional[str]]]:
    if not path.exists():
        logger.warning("File not found: %s", path)
        return []
    logger.info("Parsing votes from %s", path)
    return read_vote_matrix(path.read_text(encoding="utf-8-sig"))


def import_votes(store: DataStore, year: int, venue_code: str, data_dir: Path) -> VoteImportSummary:
    """Replace the songs and votes of one contest venue with the contents of its vote matrices.

    Songs are created as ``TBD`` placeholders carrying the total points; the
    song importer fills in titles and artists later.
    """

    venue_type = eurovision.parse_venue(venue_code)
    jury_path, public_path = vote_file_paths(data_dir, year, venue_code)
    jury_rows = _read_matrix(jury_path)
    televote_rows = _read_matrix(public_path)

    resolver = CountryResolver(store)
    totals = country_totals(jury_rows, televote_rows, resolver)
    if not totals:
        raise ValueError("No countries found in CSV files. Please check the file format.")

    summary = VoteImportSummary(year=year, venue_type=venue_type)
    summary.contest_id = store.get_or_create_contest(year)
    venue = store.get_or_create_venue(summary.contest_id, venue_type)
    summary.venue_id = venue["id"]

    # Votes reference songs, so they go first.
    store.delete_votes(summary.contest_id, summary.venue_id)
    store.delete_songs(summary.contest_id, venue["type"])

    created = store.insert_songs(
        [
            {
                "contest_id": summary.contest_id,
                "country_id": entry.country_id,
                "venue_type": venue["type"],
                "artist": "TBD",
                "title": "TBD",
                "points": entry.total_points,
            }
            for entry in totals
        ]
    )
    song_ids = {row["country_id"]: row["id"] for row in created if "country_id" in row and "id" in row}
    summary.songs = len(created)

    for rows, vote_type in ((jury_rows, eurovision.JURY), (televote_rows, eurovision.TELEVOTE)):
        votes = []
        for cell in vote_cells(rows, resolver, year=year):
            song_id = song_ids.get(cell.to_country_id)
            if not song_id:
                logger.warning("No song found for country id %s", cell.to_country_id)
                continue
            votes.append(
                {
                    "contest_id": summary.contest_id,
                    "from_country_id": cell.from_country_id,
                    "to_country_id": cell.to_country_id,
                    "points": cell.points,
                    "venue_id": summary.venue_id,
                    "jury_or_televote": vote_type,
                    "song_id": song_id,
                }
            )
        inserted = store.insert_votes(votes) if votes else 0
        if vote_type == eurovision.JURY:
            summary.jury_votes = inserted
        else:
            summary.televote_votes = inserted

    return summary


def load_sheet_rows(path: Path) -> Iterator[Sequence[Any]]:
    """Yield the value rows of the first worksheet, skipping the header."""

    try:
        workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError) as exc:
        raise ValueError(f"Cannot read spreadsheet {path}: {exc}") from exc
    try:
        sheet = workbook.worksheets[0]
        for row in sheet.iter_rows(min_row=2, values_only=True):
            yield row
    finally:
        workbook.close()


def populate_database(store: DataStore, rows: Iterable[Sequence[Any]], cleanup: bool = False) -> PopulateSummary:
    """Create countries, contests, venues, songs and votes from the per-vote spreadsheet."""

    if cleanup:
        logger.info("Cleaning up database")
        store.clean_database()

    summary = PopulateSummary()
    sheet_votes = []
    for row in rows:
        summary.rows += 1
        vote = parse_sheet_row(row)
        if vote is not None:
            sheet_votes.append(vote)

    country_names: Dict[str, None] = {}
    years: Dict[int, None] = {}
    venue_keys: Dict[Tuple[int, str], None] = {}
    for vote in sheet_votes:
        country_names.setdefault(vote.from_country)
        country_names.setdefault(vote.to_country)
        years.setdefault(vote.year)
        venue_keys.setdefault((vote.year, vote.venue_type))

    # Countries that fail to insert are looked up instead.
    resolver = CountryResolver(store)
    for name in country_names:
        record = {"name": name, "code": country_code(name), "slug": country_slug(name)}
        try:
            resolver.remember(name, store.insert_country(record)["id"])
            summary.countries += 1
        except RuntimeError as exc:
            summary.errors.append(f"country {name}: {exc}")
            logger.error("Error inserting country %s: %s", name, exc)

    contest_ids: Dict[int, int] = {}
    for year in years:
        host_country, host_city = HOSTS.get(year, ("Unknown", "Unknown"))
        try:
            contest_ids[year] = store.insert_contest(
                {"year": year, "host_country": host_country, "host_city": host_city}
            )["id"]
            summary.contests += 1
        except RuntimeError as exc:
            summary.errors.append(f"contest {year}: {exc}")
            logger.error("Error inserting contest for year %s: %s", year, exc)

    venue_ids: Dict[Tuple[int, str], int] = {}
    for year, venue_type in venue_keys:
        contest_id = contest_ids.get(year)
        if not contest_id:
            continue
        try:
            venue_ids[(year, venue_type)] = store.get_or_create_venue(contest_id, venue_type)["id"]
            summary.venues += 1
        except RuntimeError as exc:
            summary.errors.append(f"venue {year} {venue_type}: {exc}")
            logger.error("Error inserting venue for contest %s, type %s: %s", year, venue_type, exc)

    song_ids: Dict[Tuple[int, str, str], int] = {}
    votes: List[Dict[str, Any]] = []
    for vote in sheet_votes:
        contest_id = contest_ids.get(vote.year)
        from_id = resolver(vote.from_country)
        to_id = resolver(vote.to_country)
        venue_id = venue_ids.get((vote.year, vote.venue_type))
        if not (contest_id and from_id and to_id and venue_id):
            logger.error(
                "Missing reference for vote: year=%s, from=%s, to=%s", vote.year, vote.from_country, vote.to_country
            )
            continue

        song_key = (vote.year, vote.to_country, vote.venue_type)
        if song_key not in song_ids:
            title, artist, final_place = KNOWN_SONGS.get(
                (vote.year, vote.to_country),
                (f"Song from {vote.to_country}", f"Artist from {vote.to_country}", None),
            )
            if vote.venue_type != eurovision.FINAL:
                final_place = None
            try:
                song_ids[song_key] = store.insert_song(
                    {
                        "contest_id": contest_id,
                        "country_id": to_id,
                        "title": title,
                        "artist": artist,
                        "final_place": final_place,
                        "venue_type": vote.venue_type,
                    }
                )["id"]
                summary.songs += 1
            except RuntimeError as exc:
                summary.errors.append(f"song {song_key}: {exc}")
                logger.error("Error inserting song for %s: %s", song_key, exc)
                continue

        votes.append(
            {
                "contest_id": contest_id,
                "from_country_id": from_id,
                "to_country_id": to_id,
                "points": vote.points,
                "venue_id": venue_id,
                "jury_or_televote": vote.vote_type,
                "song_id": song_ids[song_key],
            }
        )

    summary.votes = store.insert_votes(votes) if votes else 0
    return summary
