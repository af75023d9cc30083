from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app import main as main_module

CONTEST = {"id": 1, "year": 2019, "host_country": "Israel", "host_city": "Tel Aviv", "created_at": "2024-01-01"}
SWEDEN = {"id": 3, "name": "Sweden", "code": "SWEDEN", "slug": "sweden"}
FINAL_SONG = {
    "id": 30,
    "contest_id": 1,
    "country_id": 3,
    "venue_type": "final",
    "title": "Too Late for Love",
    "artist": "John Lundvik",
    "final_place": 5,
    "points": 334,
    "qualified": True,
}


class _ApiStore:
    def get_contests(self) -> List[Dict[str, Any]]:
        return [dict(CONTEST)]

    def get_countries(self) -> List[Dict[str, Any]]:
        return [dict(SWEDEN)]

    def get_contest_data_completeness(self, contest_id: int) -> Dict[str, int]:
        return {"songCompleteness": 100, "voteCompleteness": 100, "completenessPercentage": 100}

    def get_contest_by_year(self, year: int) -> Optional[Dict[str, Any]]:
        return dict(CONTEST) if year == 2019 else None

    def get_songs_by_contest_with_points(self, contest_id: int) -> List[Dict[str, Any]]:
        return [
            {"id": 30, "country_name": "Sweden", "country_id": 3, "artist": "John Lundvik", "title": "Too Late for Love", "venue_type": "final", "juryPoints": 241, "televotePoints": 93, "totalPoints": 334},
            {"id": 40, "country_name": "Italy", "country_id": 4, "artist": "Mahmood", "title": "Soldi", "venue_type": "final", "juryPoints": 219, "televotePoints": 253, "totalPoints": 472},
        ]

    def get_country(self, country_id: int) -> Optional[Dict[str, Any]]:
        return dict(SWEDEN) if country_id == 3 else None

    def get_country_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return dict(SWEDEN) if slug == "sweden" else None

    def get_song(self, contest_id: int, country_id: int, venue_type: str) -> Optional[Dict[str, Any]]:
        return dict(FINAL_SONG) if country_id == 3 and venue_type == "final" else None

    def get_semifinal_song(self, contest_id: int, country_id: int) -> Optional[Dict[str, Any]]:
        return None

    def get_votes_by_song(self, song_id: int) -> Dict[str, Optional[int]]:
        return {"juryPoints": 241, "televotePoints": 93, "totalPoints": 334}

    def get_song_position(self, song_id: int, venue_type: str) -> Optional[int]:
        return 5

    def get_votes_received_by_country(self, song_id: int) -> List[Dict[str, Any]]:
        if song_id != 30:
            raise ValueError("Song not found")
        return [{"fromCountryName": "Norway", "juryPoints": 12, "televotePoints": None}]

    def get_votes_given_by_country(self, country_id: int, contest_id: int, venue_type: str) -> List[Dict[str, Any]]:
        return [{"points": 12, "toCountryName": "Italy", "artist": "Mahmood", "title": "Soldi", "voteType": "jury"}]

    def get_participating_countries(self, contest_id: int, venue_type: str) -> List[Dict[str, Any]]:
        return [{"id": 3, "name": "Sweden"}, {"id": 4, "name": "Italy"}]

    def get_country_performance_history(self, country_id: int) -> List[Dict[str, Any]]:
        return [
            {"year": 2015, "finalPlace": 1, "semifinalPlace": 1, "venueType": "final", "qualified": True, "pointsFinal": 365, "pointsSemifinal": None, "artist": "Måns Zelmerlöw", "title": "Heroes"},
        ]

    def get_country_voting_stats_given(self, country_id: int) -> List[Dict[str, Any]]:
        return [{"countryId": 6, "countryName": "Norway", "totalPoints": 200}]

    def get_country_voting_stats_received(self, country_id: int) -> List[Dict[str, Any]]:
        return [{"countryId": 6, "countryName": "Norway", "totalPoints": 250}]


class _BrokenStore(_ApiStore):
    def get_contests(self) -> List[Dict[str, Any]]:
        raise RuntimeError("Supabase query on contests failed: timeout")

    def get_contest_by_year(self, year: int) -> Optional[Dict[str, Any]]:
        raise RuntimeError("Supabase query on contests failed: timeout")


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    fake = _ApiStore()
    monkeypatch.setattr(main_module, "store", lambda: fake)
    return TestClient(main_module.app)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_home_page(client: TestClient) -> None:
    body = client.get("/").json()

    assert body["contests"][0]["hostCity"] == "Tel Aviv"
    assert body["contests"][0]["songCompletenessColor"] == "#22c55e"
    assert body["countries"][0]["name"] == "Sweden"
    assert body["errors"] == {}


def test_list_contests_and_countries(client: TestClient) -> None:
    contests = client.get("/contests").json()["contests"]
    assert contests == [
        {"id": 1, "year": 2019, "hostCountry": "Israel", "hostCity": "Tel Aviv", "slogan": None, "logoUrl": None}
    ]
    countries = client.get("/countries").json()["countries"]
    assert countries[0]["slug"] == "sweden"


def test_contest_page(client: TestClient) -> None:
    response = client.get("/contest/2019")

    assert response.status_code == 200
    final = response.json()["venues"][0]
    assert final["votingSystem"] == "hybrid"
    assert [(s["countryName"], s["position"], s["totalPoints"]) for s in final["songs"]] == [
        ("Italy", 1, 472),
        ("Sweden", 2, 334),
    ]


def test_contest_page_errors(client: TestClient) -> None:
    assert client.get("/contest/1955").status_code == 404
    assert client.get("/contest/latest").status_code == 422


def test_country_contest_pages(client: TestClient) -> None:
    by_id = client.get("/contest/2019/country/3")
    by_slug = client.get("/contest/2019/sweden")

    assert by_id.status_code == 200
    assert by_slug.status_code == 200
    body = by_id.json()
    assert body == by_slug.json()
    assert body["song"]["finalPlace"] == 5
    assert body["final"]["pointsBreakdown"]["juryPoints"] == 241
    assert body["final"]["juryVotesGiven"][0]["toCountryName"] == "Italy"
    assert body["final"]["votesReceived"] == [
        {"fromCountryName": "Norway", "juryPoints": 12, "televotePoints": None},
        {"fromCountryName": "Italy", "juryPoints": 0, "televotePoints": 0},
    ]
    assert body["semifinal"] is None
    assert body["finalVotesGiven"][0]["voteType"] == "jury"

    assert client.get("/contest/2019/atlantis").status_code == 404
    assert client.get("/contest/2019/country/99").status_code == 404


def test_country_page(client: TestClient) -> None:
    body = client.get("/country/3").json()

    assert body["summary"]["wins"] == 1
    assert body["performances"][0]["pointsFinal"] == 365
    assert body["votesReceived"][0]["rank"] == 1
    assert body["votesReceivedMap"] == {"Norway": "#ffa057"}
    assert client.get("/country/99").status_code == 404


def test_song_points_and_votes(client: TestClient) -> None:
    assert client.get("/songs/30/points").json() == {"juryPoints": 241, "televotePoints": 93, "totalPoints": 334}
    assert client.get("/songs/30/votes").json()["votes"][0]["fromCountryName"] == "Norway"

    missing = client.get("/songs/99/votes")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Song not found"


def test_voting_system(client: TestClient) -> None:
    body = client.get("/voting-system/2023").json()

    assert body["modern"] is True
    assert [(v["venueType"], v["votingSystem"], v["showSeparateVotes"]) for v in body["venues"]] == [
        ("final", "hybrid", True),
        ("semifinal1", "televote-only", False),
        ("semifinal2", "televote-only", False),
    ]
    assert client.get("/voting-system/2020").status_code == 400


def test_supabase_failures_map_to_bad_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _BrokenStore()
    monkeypatch.setattr(main_module, "store", lambda: fake)
    client = TestClient(main_module.app)

    assert client.get("/contests").status_code == 502
    assert client.get("/contest/2019").status_code == 502
    # The home page degrades instead of failing.
    home = client.get("/")
    assert home.status_code == 200
    assert "contests" in home.json()["errors"]
