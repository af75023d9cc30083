from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl
import pytest

from esc_core import importers

SONGS_CSV = """YEAR;SONG;PLACE;POINTS;QUALIFICATION
2019;"Fire of Love (Pali się)
Tulia";Didn't qualify;–;#11 in semi-final 1
2017;"Flashlight
Kasia Moś";#22;64;#9 in semi-final 1
1994;"To nie ja!
Edyta Górniak";#2;166;
"""


class RecordingStore:
    def __init__(self, countries: Optional[Dict[str, int]] = None, contests: Optional[Dict[int, int]] = None) -> None:
        self.countries = dict(countries or {})
        self.contests = dict(contests or {})
        self.existing: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.updated: List[tuple] = []
        self.inserted_songs: List[Dict[str, Any]] = []
        self.votes: List[Dict[str, Any]] = []
        self.fail_song_inserts = False
        self.fail_countries: set[str] = set()
        self._next_id = 100

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def find_country_id(self, name: str) -> Optional[int]:
        return self.countries.get(name)

    def get_existing_songs(self, country_id: int) -> Dict[str, Dict[str, Any]]:
        return dict(self.existing)

    def get_contest_id(self, year: int) -> Optional[int]:
        self.calls.append(("get_contest_id", year))
        return self.contests.get(year)

    def update_song(self, song_id: int, fields: Dict[str, Any]) -> None:
        self.updated.append((song_id, fields))

    def insert_song(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_song_inserts:
            raise RuntimeError("Supabase insert into songs failed")
        self.inserted_songs.append(record)
        return {"id": self._id(), **record}

    def insert_songs(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.inserted_songs.extend(records)
        return [{"id": self._id(), "country_id": record["country_id"]} for record in records]

    def get_or_create_contest(self, year: int) -> int:
        self.calls.append(("get_or_create_contest", year))
        return self.contests.setdefault(year, self._id())

    def get_or_create_venue(self, contest_id: int, venue_type: str) -> Dict[str, Any]:
        self.calls.append(("get_or_create_venue", contest_id, venue_type))
        return {"id": 500 + len(self.calls), "type": venue_type}

    def delete_votes(self, contest_id: int, venue_id: int) -> None:
        self.calls.append(("delete_votes", contest_id, venue_id))

    def delete_songs(self, contest_id: int, venue_type: str) -> None:
        self.calls.append(("delete_songs", contest_id, venue_type))

    def insert_votes(self, votes: List[Dict[str, Any]], batch_size: int = 100) -> int:
        self.calls.append(("insert_votes", len(votes)))
        self.votes.extend(votes)
        return len(votes)

    def insert_country(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if record["name"] in self.fail_countries:
            raise RuntimeError("Supabase insert into countries failed")
        country_id = self._id()
        self.countries[record["name"]] = country_id
        self.calls.append(("insert_country", record["name"], record["code"], record["slug"]))
        return {"id": country_id, **record}

    def insert_contest(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert_contest", record["year"], record["host_country"], record["host_city"]))
        return {"id": self._id(), **record}

    def clean_database(self) -> None:
        self.calls.append(("clean_database",))


def test_import_songs_updates_inserts_and_skips() -> None:
    store = RecordingStore(countries={"Poland": 5}, contests={2017: 10, 2019: 12})
    store.existing = {"2017-final": {"id": 99}}

    summary = importers.import_songs(store, "Poland", SONGS_CSV, max_year=2025)

    assert (summary.updated, summary.inserted, summary.skipped, summary.failed) == (1, 2, 1, 0)
    assert store.updated[0][0] == 99
    assert store.updated[0][1]["final_place"] == 22
    assert store.updated[0][1]["points"] == 64
    assert [(s["contest_id"], s["venue_type"], s["final_place"]) for s in store.inserted_songs] == [
        (12, "semifinal1", 11),
        (10, "semifinal1", 9),
    ]
    assert all(s["country_id"] == 5 for s in store.inserted_songs)
    # One contest lookup per year.
    assert [c for c in store.calls if c[0] == "get_contest_id"] == [
        ("get_contest_id", 2019),
        ("get_contest_id", 2017),
        ("get_contest_id", 1994),
    ]


def test_import_songs_unknown_country() -> None:
    with pytest.raises(LookupError, match="Atlantis"):
        importers.import_songs(RecordingStore(), "Atlantis", SONGS_CSV)


def test_import_songs_counts_failed_writes() -> None:
    store = RecordingStore(countries={"Poland": 5}, contests={2017: 10, 2019: 12})
    store.fail_song_inserts = True

    summary = importers.import_songs(store, "Poland", SONGS_CSV, max_year=2025)

    assert summary.failed == 3
    assert summary.inserted == 0


def test_import_votes_replaces_venue_songs_and_votes(tmp_path: Path) -> None:
    (tmp_path / "2019_final_jury.csv").write_text(
        "to_country;total;Sweden;Norway\nSweden;12;;12\nNorway;10;10;\n", encoding="utf-8"
    )
    (tmp_path / "2019_final_public.csv").write_text(
        "\ufeffto_country;total;Sweden;Norway\nSweden;8;;8\nNorway;12;12;\n", encoding="utf-8"
    )
    store = RecordingStore(countries={"Sweden": 1, "Norway": 2}, contests={2019: 7})

    summary = importers.import_votes(store, 2019, "final", tmp_path)

    assert (summary.contest_id, summary.venue_type) == (7, "final")
    assert (summary.songs, summary.jury_votes, summary.televote_votes) == (2, 2, 2)
    names = [call[0] for call in store.calls]
    assert names.index("delete_votes") < names.index("delete_songs")
    assert [(s["country_id"], s["points"], s["title"]) for s in store.inserted_songs] == [
        (1, 20, "TBD"),
        (2, 22, "TBD"),
    ]
    jury = [v for v in store.votes if v["jury_or_televote"] == "jury"]
    assert [(v["from_country_id"], v["to_country_id"], v["points"]) for v in jury] == [(2, 1, 12), (1, 2, 10)]
    assert all(v["venue_id"] == summary.venue_id and v["contest_id"] == 7 for v in store.votes)
    assert jury[0]["song_id"] != jury[1]["song_id"]


def test_import_votes_semifinal_code(tmp_path: Path) -> None:
    (tmp_path / "2019_sm2_jury.csv").write_text("to_country;total;Norway\nSweden;12;12\n", encoding="utf-8")
    store = RecordingStore(countries={"Sweden": 1, "Norway": 2}, contests={2019: 7})

    summary = importers.import_votes(store, 2019, "sm2", tmp_path)

    assert summary.venue_type == "semifinal2"
    assert summary.televote_votes == 0
    assert ("delete_songs", 7, "semifinal2") in store.calls


def test_import_votes_without_files(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="No countries found"):
        importers.import_votes(RecordingStore(), 2019, "final", tmp_path)


SHEET_ROWS = [
    (2019, "f", "2019f", "J", "Sweden", "Netherlands", 12, None),
    (2019, "f", "2019f", "T", "Norway", "Netherlands", 10, None),
    (2019, "sf1", "2019sf1", "J", "Netherlands", "Sweden", 8, None),
    (2019, "f", "2019f", "J", "Sweden", "Sweden", 12, "x"),
]


def test_populate_database_creates_all_entities() -> None:
    store = RecordingStore()

    summary = importers.populate_database(store, SHEET_ROWS, cleanup=True)

    assert store.calls[0] == ("clean_database",)
    assert (summary.rows, summary.countries, summary.contests, summary.venues) == (4, 3, 1, 2)
    assert (summary.songs, summary.votes) == (2, 3)
    assert ("insert_contest", 2019, "Israel", "Tel Aviv") in store.calls
    assert ("insert_country", "The Netherlands", "THE NETHER", "the-netherlands") in store.calls

    by_venue = {song["venue_type"]: song for song in store.inserted_songs}
    assert (by_venue["final"]["title"], by_venue["final"]["final_place"]) == ("Arcade", 1)
    assert (by_venue["semifinal1"]["title"], by_venue["semifinal1"]["final_place"]) == ("Too Late for Love", None)
    assert [c for c in store.calls if c[0] == "insert_votes"] == [("insert_votes", 3)]


def test_populate_database_uses_placeholders_and_reports_errors() -> None:
    store = RecordingStore()
    store.fail_countries = {"Norway"}
    rows = [
        (2001, "f", "2001f", "J", "Norway", "Malta", 12, None),
        (2001, "f", "2001f", "J", "Sweden", "Malta", 10, None),
    ]

    summary = importers.populate_database(store, rows)

    assert ("clean_database",) not in store.calls
    assert ("insert_contest", 2001, "Unknown", "Unknown") in store.calls
    assert summary.errors == ["country Norway: Supabase insert into countries failed"]
    assert store.inserted_songs[0]["title"] == "Song from Malta"
    assert summary.votes == 1


def test_load_sheet_rows_skips_header(tmp_path: Path) -> None:
    path = tmp_path / "votes.xlsx"
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Year", "(semi-) final", "Edition", "Jury or Televoting", "From country", "To country", "Points", "Duplicate"])
    for row in SHEET_ROWS:
        sheet.append(list(row))
    workbook.save(path)

    rows = list(importers.load_sheet_rows(path))

    assert len(rows) == 4
    assert rows[0][:7] == (2019, "f", "2019f", "J", "Sweden", "Netherlands", 12)
    assert rows[3][7] == "x"


def test_populate_database_finds_countries_that_already_exist() -> None:
    store = RecordingStore(countries={"Norway": 2})
    store.fail_countries = {"Norway"}
    rows = [
        (2001, "f", "2001f", "J", "Norway", "Malta", 12, None),
        (2001, "f", "2001f", "J", "Sweden", "Malta", 10, None),
    ]

    summary = importers.populate_database(store, rows)

    assert summary.countries == 2
    assert summary.votes == 2
    assert [v["from_country_id"] for v in store.votes][0] == 2


def test_populate_database_skips_points_outside_the_scale() -> None:
    store = RecordingStore()
    rows = [
        (1980, "f", "1980f", "J", "Sweden", "Norway", 9, None),
        (1980, "f", "1980f", "J", "Denmark", "Norway", 12, None),
    ]

    summary = importers.populate_database(store, rows)

    assert summary.rows == 2
    assert summary.votes == 1
    assert store.votes[0]["points"] == 12


def test_import_votes_skips_points_outside_the_scale(tmp_path: Path) -> None:
    (tmp_path / "2019_final_jury.csv").write_text(
        "to_country;total;Sweden;Norway\nSweden;9;;9\nNorway;12;12;\n", encoding="utf-8"
    )
    store = RecordingStore(countries={"Sweden": 1, "Norway": 2}, contests={2019: 7})

    summary = importers.import_votes(store, 2019, "final", tmp_path)

    assert summary.jury_votes == 1
    assert [(v["from_country_id"], v["to_country_id"], v["points"]) for v in store.votes] == [(1, 2, 12)]
