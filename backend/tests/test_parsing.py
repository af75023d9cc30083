from typing import Dict, Optional

import pytest

from esc_core import eurovision
from esc_core.parsing import (
    CountryVotes,
    SongRecord,
    VoteCell,
    country_totals,
    parse_sheet_row,
    parse_song_csv,
    parse_song_record,
    read_song_records,
    read_vote_matrix,
    venue_from_edition,
    vote_cells,
)

POLAND_CSV = """YEAR;SONG;PLACE;POINTS;QUALIFICATION
2019;"Fire of Love (Pali się)
Tulia";Didn't qualify;–;#11 in semi-final 1
2018;"Light Me Up
Gromee feat. Lukas Meijer";Didn't qualify
2017;"Flashlight
Kasia Moś";#22;64;#9 in semi-final 1
2020;"Empires
Alicja";–;–;cancelled
1996;"Chcę znać swój grzech...
Kasia Kowalska";#15;31;#23 in qualification
1994;"To nie ja!
Edyta Górniak";#2;166;
"""

COUNTRY_IDS: Dict[str, int] = {"Sweden": 1, "Norway": 2, "Denmark": 3}


def _resolve(name: Optional[str]) -> Optional[int]:
    return COUNTRY_IDS.get(name or "")


def test_read_song_records_joins_multiline_song_cells() -> None:
    records = read_song_records(POLAND_CSV)

    # The 2018 row has too few columns and is dropped.
    assert [r.year for r in records] == ["2019", "2017", "2020", "1996", "1994"]
    assert records[0].song == '"Fire of Love (Pali się)\nTulia"'
    assert records[0].qualification == "#11 in semi-final 1"


def test_read_song_records_requires_header_and_rows() -> None:
    with pytest.raises(ValueError):
        read_song_records("YEAR;SONG;PLACE;POINTS;QUALIFICATION\n")
    with pytest.raises(ValueError):
        read_song_records("YEAR;TITLE;PLACE\n2019;x;1\n")


def test_parse_song_csv_applies_qualification_rules() -> None:
    songs = parse_song_csv(POLAND_CSV, max_year=2025)
    by_key = {song.key(): song for song in songs}

    assert sorted(by_key) == [
        "1994-final",
        "1996-final",
        "1996-semifinal1",
        "2017-final",
        "2017-semifinal1",
        "2019-semifinal1",
    ]

    eliminated = by_key["2019-semifinal1"]
    assert eliminated.title == "Fire of Love (Pali się)"
    assert eliminated.artist == "Tulia"
    assert eliminated.final_place == 11
    assert eliminated.points is None
    assert eliminated.qualified is False

    semifinal = by_key["2017-semifinal1"]
    assert (semifinal.final_place, semifinal.points, semifinal.qualified) == (9, None, True)
    final = by_key["2017-final"]
    assert (final.final_place, final.points, final.qualified) == (22, 64, True)

    qualification_round = by_key["1996-semifinal1"]
    assert (qualification_round.final_place, qualification_round.qualified) == (23, True)
    assert by_key["1996-final"].final_place == 15

    early = by_key["1994-final"]
    assert (early.final_place, early.points, early.qualified) == (2, 166, None)


def test_parse_song_csv_ignores_future_years() -> None:
    songs = parse_song_csv(POLAND_CSV, max_year=2010)
    assert {song.year for song in songs} == {1994, 1996}


def test_parse_song_record_stops_at_last_contest_year() -> None:
    record = SongRecord("2026", "Title\nArtist", "#3", "200", "Big 5")

    assert parse_song_record(record) == []
    assert [song.year for song in parse_song_record(record, max_year=2026)] == [2026]
    assert parse_song_record(SongRecord("2025", "Title\nArtist", "#3", "200", "Big 5"))[0].points == 200


def test_automatic_finalist_gets_final_entry_only() -> None:
    text = 'YEAR;SONG;PLACE;POINTS;QUALIFICATION\n2019;"Bigger than Us\nMichael Rice";#26;11;Big 5\n'
    songs = parse_song_csv(text, max_year=2025)

    assert len(songs) == 1
    assert songs[0].venue_type == eurovision.FINAL
    assert songs[0].qualified is True
    assert songs[0].final_place == 26


def test_read_vote_matrix_turns_blank_cells_into_none() -> None:
    rows = read_vote_matrix("to_country;total;Sweden;Norway\nSweden;12;;12\n")

    assert rows == [{"to_country": "Sweden", "total": "12", "Sweden": None, "Norway": "12"}]
    assert read_vote_matrix("") == []


def test_vote_cells_skip_blank_zero_unknown_and_self_votes() -> None:
    rows = read_vote_matrix(
        "to_country;total;Sweden;Norway;Denmark;Atlantis\n"
        "Sweden;20;;12;8;1\n"
        "Norway;10;10;;;\n"
        "Denmark;5;5;0;3;\n"
        "Atlantis;7;7;;;\n"
    )

    assert vote_cells(rows, _resolve) == [
        VoteCell(from_country_id=2, to_country_id=1, points=12),
        VoteCell(from_country_id=3, to_country_id=1, points=8),
        VoteCell(from_country_id=1, to_country_id=2, points=10),
        VoteCell(from_country_id=1, to_country_id=3, points=5),
    ]


def test_vote_cells_drop_points_outside_the_scale() -> None:
    rows = read_vote_matrix("to_country;total;Sweden;Norway\nSweden;9;;9\nNorway;12;12;\n")

    assert vote_cells(rows, _resolve, year=2019) == [VoteCell(from_country_id=1, to_country_id=2, points=12)]
    # Before 1975 any positive score counts.
    assert len(vote_cells(rows, _resolve, year=1970)) == 2


def test_country_totals_sum_jury_and_televote() -> None:
    jury = read_vote_matrix("to_country;total\nSweden;20\nNorway;10\nDenmark;8\nAtlantis;3\n")
    televote = read_vote_matrix("to_country;total\nSweden;15\nDenmark;4\n")

    assert country_totals(jury, televote, _resolve) == [
        CountryVotes(country_id=1, jury_points=20, televote_points=15, total_points=35),
        CountryVotes(country_id=2, jury_points=10, televote_points=0, total_points=10),
        CountryVotes(country_id=3, jury_points=8, televote_points=4, total_points=12),
    ]


def test_parse_sheet_row() -> None:
    vote = parse_sheet_row((2019, "f", "2019f", "J", "Sweden", "Netherlands", 12, None))

    assert vote is not None
    assert vote.venue_type == eurovision.FINAL
    assert vote.vote_type == eurovision.JURY
    assert vote.to_country == "The Netherlands"
    assert vote.points == 12

    televote = parse_sheet_row((2019, "sf2", "2019sf2", "T", "Norway", "Sweden", "8", None))
    assert televote is not None
    assert (televote.venue_type, televote.vote_type, televote.points) == (eurovision.SEMIFINAL2, eurovision.TELEVOTE, 8)


@pytest.mark.parametrize(
    "row",
    [
        (2019, "f", "2019f", "J", "Norway", "Norway", 12, "x"),
        (2019, "f", "2019f", "J", "Norway", "Sweden", 0, None),
        (1980, "f", "1980f", "J", "Sweden", "Norway", 9, None),
        (None, "f", "2019f", "J", "Norway", "Sweden", 12, None),
        (2019, "f", "2019f", "J", "", "Sweden", 12, None),
        (2019,),
    ],
)
def test_parse_sheet_row_rejects_invalid_rows(row) -> None:
    assert parse_sheet_row(row) is None


def test_venue_from_edition() -> None:
    assert venue_from_edition("2019sf1") == eurovision.SEMIFINAL1
    assert venue_from_edition("2019sf2") == eurovision.SEMIFINAL2
    assert venue_from_edition("2005sf") == eurovision.SEMIFINAL1
    assert venue_from_edition("2019f") == eurovision.FINAL
