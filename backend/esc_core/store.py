from __future__ import annotations

import logging
import os
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

import httpx

from . import eurovision
from .countries import country_slug


logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = frozenset({"", "TBD"})
PLACEHOLDER_PREFIXES = ("Song from ", "Artist from ")

VOTES_FROM_COUNTRY = "from_country:countries!votes_from_country_id_fkey(name)"
VOTES_TO_COUNTRY = "to_country:countries!votes_to_country_id_fkey(name)"


class DataStore:
    """Eurovision contest data backed by the Supabase REST API."""

    def __init__(self) -> None:
        self.supabase_url = os.getenv("SUPABASE_URL", "")
        self.supabase_key = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or os.getenv("SUPABASE_ANON_KEY")
            or os.getenv("SUPABASE_KEY")
            or ""
        )
        self.supabase_schema = os.getenv("SUPABASE_SCHEMA", "public")
        self.contests_table = os.getenv("SUPABASE_CONTESTS_TABLE", "contests")
        self.countries_table = os.getenv("SUPABASE_COUNTRIES_TABLE", "countries")
        self.venues_table = os.getenv("SUPABASE_VENUES_TABLE", "venues")
        self.songs_table = os.getenv("SUPABASE_SONGS_TABLE", "songs")
        self.votes_table = os.getenv("SUPABASE_VOTES_TABLE", "votes")
        try:
            self.timeout = float(os.getenv("SUPABASE_TIMEOUT", "10"))
        except ValueError:
            self.timeout = 10.0
        self.page_size = 1000

    @property
    def configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    # ------------------------------------------------------------------
    # Contests and countries

    def get_contests(self) -> List[Dict[str, Any]]:
        return self._select(self.contests_table, {"select": "*", "order": "year.desc"})

    def get_contest_by_year(self, year: int) -> Optional[Dict[str, Any]]:
        return self._select_one(self.contests_table, {"select": "*", "year": f"eq.{year}"})

    def get_contest(self, contest_id: int) -> Optional[Dict[str, Any]]:
        return self._select_one(self.contests_table, {"select": "*", "id": f"eq.{contest_id}"})

    def get_countries(self) -> List[Dict[str, Any]]:
        return self._select(self.countries_table, {"select": "*", "order": "name.asc"})

    def get_country(self, country_id: int) -> Optional[Dict[str, Any]]:
        return self._select_one(self.countries_table, {"select": "*", "id": f"eq.{country_id}"})

    def get_country_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        slug = (slug or "").strip().lower()
        if not slug:
            return None
        row = self._select_one(self.countries_table, {"select": "*", "slug": f"eq.{slug}"})
        if row:
            return row
        # Older rows have no slug column value; derive it from the name.
        for country in self.get_countries():
            if country_slug(str(country.get("name") or "")) == slug:
                return country
        return None

    # ------------------------------------------------------------------
    # Songs

    def get_songs_by_contest(self, contest_id: int) -> List[Dict[str, Any]]:
        rows = self._select(
            self.songs_table,
            {
                "select": "*,countries:country_id(name)",
                "contest_id": f"eq.{contest_id}",
                "order": "venue_type.asc",
            },
        )
        songs = []
        for row in rows:
            country = row.pop("countries", None) or {}
            row["country_name"] = country.get("name") or "Unknown"
            songs.append(row)
        return songs

    def get_song(self, contest_id: int, country_id: int, venue_type: str) -> Optional[Dict[str, Any]]:
        return self._select_one(
            self.songs_table,
            {
                "select": "*",
                "contest_id": f"eq.{contest_id}",
                "country_id": f"eq.{country_id}",
                "venue_type": f"eq.{venue_type}",
            },
        )

    def get_semifinal_song(self, contest_id: int, country_id: int) -> Optional[Dict[str, Any]]:
        return self._select_one(
            self.songs_table,
            {
                "select": "*",
                "contest_id": f"eq.{contest_id}",
                "country_id": f"eq.{country_id}",
                "venue_type": f"in.({eurovision.SEMIFINAL1},{eurovision.SEMIFINAL2})",
                "order": "venue_type.asc",
            },
        )

    def get_song_by_country_slug(self, contest_id: int, slug: str) -> Optional[Dict[str, Any]]:
        country = self.get_country_by_slug(slug)
        if not country:
            return None
        country_id = country.get("id")
        song = self.get_song(contest_id, country_id, eurovision.FINAL) or self.get_semifinal_song(
            contest_id, country_id
        )
        if not song:
            return None
        song["country_name"] = country.get("name") or "Unknown"
        song["country_slug"] = country.get("slug") or country_slug(str(country.get("name") or ""))
        song["country_id"] = country_id or song.get("country_id")
        return song

    def get_votes_by_song(self, song_id: int) -> Dict[str, Optional[int]]:
        rows = self._rpc("get_song_points", {"song_id_param": song_id})
        result: Dict[str, Optional[int]] = {"juryPoints": None, "televotePoints": None, "totalPoints": None}
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            first = rows[0]
            result["juryPoints"] = first.get("jury_points") or None
            result["televotePoints"] = first.get("televote_points") or None
            result["totalPoints"] = first.get("total_points") or None
        return result

    def get_songs_by_contest_with_points(self, contest_id: int) -> List[Dict[str, Any]]:
        rows = self._rpc("get_songs_with_points", {"contest_id_param": contest_id})
        if not isinstance(rows, list):
            return []
        songs = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            songs.append(
                {
                    "id": row.get("id"),
                    "country_name": str(row.get("country_name") or "Unknown"),
                    "country_id": row.get("country_id"),
                    "artist": str(row.get("artist") or ""),
                    "title": str(row.get("title") or ""),
                    "venue_type": row.get("venue_type"),
                    "juryPoints": row.get("jury_points") or None,
                    "televotePoints": row.get("televote_points") or None,
                    "totalPoints": row.get("total_points") or None,
                }
            )
        return songs

    def get_song_position(self, song_id: int, venue_type: str) -> Optional[int]:
        position = self._rpc(
            "get_song_position",
            {"song_id_param": song_id, "venue_type_param": venue_type},
        )
        if isinstance(position, list):
            position = position[0] if position else None
        if isinstance(position, dict):
            position = next(iter(position.values()), None)
        try:
            return int(position) or None
        except (TypeError, ValueError):
            return None

    def get_participating_countries(self, contest_id: int, venue_type: str) -> List[Dict[str, Any]]:
        rows = self._select(
            self.songs_table,
            {
                "select": "country_id,countries:country_id(id,name)",
                "contest_id": f"eq.{contest_id}",
                "venue_type": f"eq.{venue_type}",
            },
        )
        unique: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
        for row in rows:
            country = row.get("countries")
            if isinstance(country, dict) and country.get("id") not in unique:
                unique[country["id"]] = {"id": country["id"], "name": country.get("name")}
        return list(unique.values())

    # ------------------------------------------------------------------
    # Votes

    def get_venue(self, contest_id: int, venue_type: str) -> Optional[Dict[str, Any]]:
        return self._select_one(
            self.venues_table,
            {"select": "id,type", "contest_id": f"eq.{contest_id}", "type": f"eq.{venue_type}"},
        )

    def get_votes_received_by_country(self, song_id: int) -> List[Dict[str, Any]]:
        """Jury and televote points the song's country received at the song's venue."""

        song = self._select_one(
            self.songs_table,
            {"select": "id,venue_type,contest_id,country_id", "id": f"eq.{song_id}"},
        )
        if not song:
            raise ValueError("Song not found")
        venue = self.get_venue(song["contest_id"], song["venue_type"])
        if not venue:
            raise ValueError("Venue not found")

        rows = self._select_all(
            self.votes_table,
            {
                "select": f"points,from_country_id,to_country_id,jury_or_televote,{VOTES_FROM_COUNTRY}",
                "venue_id": f"eq.{venue['id']}",
                "to_country_id": f"eq.{song['country_id']}",
                "jury_or_televote": f"in.({eurovision.JURY},{eurovision.TELEVOTE})",
                "order": "id.asc",
            },
        )

        by_country: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
        for vote_type, field in ((eurovision.JURY, "juryPoints"), (eurovision.TELEVOTE, "televotePoints")):
            for vote in rows:
                if vote.get("jury_or_televote") != vote_type:
                    continue
                from_id = vote.get("from_country_id")
                entry = by_country.get(from_id)
                if entry is None:
                    entry = {
                        "fromCountryName": (vote.get("from_country") or {}).get("name") or "Unknown",
                        "juryPoints": None,
                        "televotePoints": None,
                    }
                    by_country[from_id] = entry
                entry[field] = vote.get("points")

        votes = list(by_country.values())
        logger.debug("Found %d votes for song %s", len(votes), song_id)
        return votes

    def get_votes_given_by_country(self, country_id: int, contest_id: int, venue_type: str) -> List[Dict[str, Any]]:
        venue = self.get_venue(contest_id, venue_type)
        if not venue:
            return []
        rows = self._select_all(
            self.votes_table,
            {
                "select": f"points,jury_or_televote,to_country_id,{VOTES_TO_COUNTRY},songs:song_id(artist,title)",
                "venue_id": f"eq.{venue['id']}",
                "from_country_id": f"eq.{country_id}",
                "order": "points.desc",
            },
        )
        votes = []
        for row in rows:
            song = row.get("songs") or {}
            votes.append(
                {
                    "points": row.get("points"),
                    "toCountryName": (row.get("to_country") or {}).get("name") or "Unknown",
                    "artist": song.get("artist") or "",
                    "title": song.get("title") or "",
                    "voteType": row.get("jury_or_televote"),
                }
            )
        votes.sort(key=lambda item: -(item["points"] or 0))
        return votes

    def get_country_voting_stats_given(self, country_id: int) -> List[Dict[str, Any]]:
        rows = self._select_all(
            self.votes_table,
            {
                "select": f"id,points,to_country_id,{VOTES_TO_COUNTRY}",
                "from_country_id": f"eq.{country_id}",
                "order": "id.asc",
            },
        )
        return self._voting_totals(rows, "to_country_id", "to_country")

    def get_country_voting_stats_received(self, country_id: int) -> List[Dict[str, Any]]:
        rows = self._select_all(
            self.votes_table,
            {
                "select": f"id,points,from_country_id,{VOTES_FROM_COUNTRY}",
                "to_country_id": f"eq.{country_id}",
                "order": "id.asc",
            },
        )
        return self._voting_totals(rows, "from_country_id", "from_country")

    @staticmethod
    def _voting_totals(rows: Iterable[Dict[str, Any]], id_field: str, name_field: str) -> List[Dict[str, Any]]:
        totals: Dict[int, Dict[str, Any]] = {}
        for row in rows:
            other_id = row.get(id_field)
            if other_id is None:
                continue
            entry = totals.setdefault(
                other_id,
                {
                    "countryId": other_id,
                    "countryName": (row.get(name_field) or {}).get("name") or "Unknown",
                    "totalPoints": 0,
                },
            )
            entry["totalPoints"] += row.get("points") or 0
        return sorted(totals.values(), key=lambda item: (-item["totalPoints"], item["countryName"]))

    # ------------------------------------------------------------------
    # Country history and data completeness

    def get_country_performance_history(self, country_id: int) -> List[Dict[str, Any]]:
        rows = self._select(
            self.songs_table,
            {
                "select": "id,venue_type,final_place,points,qualified,artist,title,contests:contest_id(year)",
                "country_id": f"eq.{country_id}",
            },
        )

        by_year: Dict[int, Dict[str, Any]] = {}
        for row in rows:
            year = (row.get("contests") or {}).get("year")
            if year is None:
                continue
            entry = by_year.setdefault(
                year,
                {
                    "year": year,
                    "finalPlace": None,
                    "semifinalPlace": None,
                    "venueType": None,
                    "qualified": None,
                    "pointsFinal": None,
                    "pointsSemifinal": None,
                    "artist": row.get("artist"),
                    "title": row.get("title"),
                    "_final": False,
                },
            )
            if row.get("venue_type") == eurovision.FINAL:
                entry["_final"] = True
                entry["finalPlace"] = row.get("final_place")
                entry["pointsFinal"] = row.get("points")
                entry["venueType"] = eurovision.FINAL
                entry["artist"] = row.get("artist") or entry["artist"]
                entry["title"] = row.get("title") or entry["title"]
                if entry["semifinalPlace"] is None:
                    entry["qualified"] = row.get("qualified")
                else:
                    entry["qualified"] = True
            else:
                entry["semifinalPlace"] = row.get("final_place")
                entry["pointsSemifinal"] = row.get("points")
                if not entry["_final"]:
                    entry["venueType"] = row.get("venue_type")
                    entry["qualified"] = False if row.get("qualified") is None else bool(row.get("qualified"))
                else:
                    entry["qualified"] = True

        history = []
        for year in sorted(by_year):
            entry = by_year[year]
            entry.pop("_final", None)
            history.append(entry)
        return history

    def get_contest_data_completeness(self, contest_id: int) -> Dict[str, int]:
        songs = self._select(
            self.songs_table,
            {"select": "id,artist,title", "contest_id": f"eq.{contest_id}"},
        )
        complete_songs = [song for song in songs if not self._is_placeholder_song(song)]
        song_completeness = round(100 * len(complete_songs) / len(songs)) if songs else 0

        contest = self.get_contest(contest_id)
        venues = self._select(
            self.venues_table,
            {"select": "id,type", "contest_id": f"eq.{contest_id}"},
        )
        expected = len(venues)
        if contest and contest.get("year"):
            expected = max(expected, len(eurovision.venues_for_year(int(contest["year"]))))
        venues_with_votes = 0
        for venue in venues:
            if self._select_one(self.votes_table, {"select": "id", "venue_id": f"eq.{venue['id']}"}):
                venues_with_votes += 1
        vote_completeness = round(100 * venues_with_votes / expected) if expected else 0

        return {
            "songCompleteness": song_completeness,
            "voteCompleteness": vote_completeness,
            "completenessPercentage": round((song_completeness + vote_completeness) / 2),
        }

    @staticmethod
    def _is_placeholder_song(song: Dict[str, Any]) -> bool:
        for field in ("artist", "title"):
            value = str(song.get(field) or "").strip()
            if value in PLACEHOLDER_VALUES or value.startswith(PLACEHOLDER_PREFIXES):
                return True
        return False

    # ------------------------------------------------------------------
    # Import helpers

    def find_country_id(self, name: str) -> Optional[int]:
        row = self._select_one(self.countries_table, {"select": "id", "name": f"ilike.{name}"})
        return row.get("id") if row else None

    def insert_country(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert_one(self.countries_table, record)

    def get_contest_id(self, year: int) -> Optional[int]:
        row = self._select_one(self.contests_table, {"select": "id", "year": f"eq.{year}"})
        return row.get("id") if row else None

    def insert_contest(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert_one(self.contests_table, record)

    def get_or_create_contest(self, year: int, host_country: str = "TBD", host_city: str = "TBD") -> int:
        contest_id = self.get_contest_id(year)
        if contest_id:
            return contest_id
        row = self.insert_contest({"year": year, "host_country": host_country, "host_city": host_city})
        return row["id"]

    def get_or_create_venue(self, contest_id: int, venue_type: str) -> Dict[str, Any]:
        venue = self.get_venue(contest_id, venue_type)
        if venue:
            return {"id": venue["id"], "type": venue.get("type") or venue_type}
        row = self._insert_one(self.venues_table, {"contest_id": contest_id, "type": venue_type})
        return {"id": row["id"], "type": row.get("type") or venue_type}

    def get_existing_songs(self, country_id: int) -> Dict[str, Dict[str, Any]]:
        rows = self._select(
            self.songs_table,
            {
                "select": "id,title,artist,final_place,points,qualified,venue_type,contests!inner(year)",
                "country_id": f"eq.{country_id}",
            },
        )
        existing: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            year = (row.get("contests") or {}).get("year")
            if year is None:
                continue
            existing[f"{year}-{row.get('venue_type')}"] = row
        return existing

    def insert_song(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert_one(self.songs_table, record)

    def insert_songs(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not records:
            return []
        return self._insert(self.songs_table, records, select="id,country_id")

    def update_song(self, song_id: int, fields: Dict[str, Any]) -> None:
        self._update(self.songs_table, {"id": f"eq.{song_id}"}, fields)

    def delete_songs(self, contest_id: int, venue_type: str) -> None:
        self._delete(self.songs_table, {"contest_id": f"eq.{contest_id}", "venue_type": f"eq.{venue_type}"})

    def delete_votes(self, contest_id: int, venue_id: int) -> None:
        self._delete(self.votes_table, {"contest_id": f"eq.{contest_id}", "venue_id": f"eq.{venue_id}"})

    def insert_votes(self, votes: List[Dict[str, Any]], batch_size: int = 100) -> int:
        inserted = 0
        for start in range(0, len(votes), batch_size):
            batch = votes[start : start + batch_size]
            try:
                self._insert(self.votes_table, batch, returning=False)
            except RuntimeError as exc:
                raise RuntimeError(f"Vote batch {start // batch_size + 1} failed: {exc}") from exc
            inserted += len(batch)
        return inserted

    def clean_database(self) -> None:
        # Dependants first.
        for table in (
            self.votes_table,
            self.songs_table,
            self.venues_table,
            self.contests_table,
            self.countries_table,
        ):
            self._delete(table, {"id": "neq.0"})

    # ---- internal Supabase helpers -------------------------------------------------

    def _require_config(self) -> None:
        if not self.configured:
            raise RuntimeError("Supabase configuration is incomplete (set SUPABASE_URL and a key)")

    def _supabase_endpoint(self, table: str) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self, prefer: str | None = None, include_content_profile: bool = True) -> Dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.supabase_key}",
            "Accept": "application/json",
        }
        if include_content_profile and self.supabase_schema and self.supabase_schema != "public":
            headers["Content-Profile"] = self.supabase_schema
        if self.supabase_schema and self.supabase_schema != "public":
            headers["Accept-Profile"] = self.supabase_schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, endpoint: str, what: str, **kwargs: Any) -> Any:
        self._require_config()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = getattr(client, method)(endpoint, **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_supabase_detail(exc.response)
            raise RuntimeError(f"Supabase {what} failed: {detail or exc}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Supabase {what} failed: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RuntimeError(f"Unexpected payload from Supabase {what}") from exc

    def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._request(
            "get",
            self._supabase_endpoint(table),
            f"query on {table}",
            params=params,
            headers=self._supabase_headers(include_content_profile=False),
        )
        if not isinstance(rows, list):
            raise RuntimeError(f"Unexpected payload from Supabase {table} endpoint")
        return [row for row in rows if isinstance(row, dict)]

    def _select_one(self, table: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._select(table, {**params, "limit": 1})
        return rows[0] if rows else None

    def _select_all(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Page through a query; PostgREST caps single responses at its max-rows setting."""

        collected: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self._select(table, {**params, "limit": self.page_size, "offset": offset})
            collected.extend(page)
            if len(page) < self.page_size:
                return collected
            offset += self.page_size

    def _insert(
        self,
        table: str,
        records: Any,
        select: str | None = None,
        returning: bool = True,
    ) -> List[Dict[str, Any]]:
        headers = self._supabase_headers("return=representation" if returning else "return=minimal")
        headers["Content-Type"] = "application/json"
        params: Dict[str, Any] = {}
        if returning and select:
            params["select"] = select
        rows = self._request(
            "post",
            self._supabase_endpoint(table),
            f"insert into {table}",
            params=params,
            json=records,
            headers=headers,
        )
        if isinstance(rows, dict):
            return [rows]
        if isinstance(rows, list):
            return [row for row in rows if isinstance(row, dict)]
        return []

    def _insert_one(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._insert(table, record, select="*")
        if not rows:
            raise RuntimeError(f"Unexpected response when inserting into {table}")
        return rows[0]

    def _update(self, table: str, filters: Dict[str, Any], fields: Dict[str, Any]) -> None:
        headers = self._supabase_headers("return=minimal")
        headers["Content-Type"] = "application/json"
        self._request(
            "patch",
            self._supabase_endpoint(table),
            f"update of {table}",
            params=filters,
            json=fields,
            headers=headers,
        )

    def _delete(self, table: str, filters: Dict[str, Any]) -> None:
        self._request(
            "delete",
            self._supabase_endpoint(table),
            f"delete from {table}",
            params=filters,
            headers=self._supabase_headers("return=minimal"),
        )

    def _rpc(self, function: str, args: Dict[str, Any]) -> Any:
        headers = self._supabase_headers()
        headers["Content-Type"] = "application/json"
        return self._request(
            "post",
            f"{self.supabase_url.rstrip('/')}/rest/v1/rpc/{function}",
            f"rpc {function}",
            params={},
            json=args,
            headers=headers,
        )

    def _extract_supabase_detail(self, response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            for key in ("message", "detail", "error", "hint", "code"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None
