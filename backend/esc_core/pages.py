"""Page documents for the site routes, composed from DataStore queries.

A failing secondary query does not fail the page: its message is recorded
under ``errors`` and the section falls back to an empty value. Missing
contests, countries and songs raise ``LookupError``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from . import charts, eurovision
from .store import DataStore


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _section(errors: Dict[str, str], name: str, loader: Callable[[], T], default: T) -> T:
    try:
        return loader()
    except (RuntimeError, ValueError) as exc:
        logger.warning("Failed to load %s: %s", name, exc)
        errors[name] = str(exc)
        return default


def home_page(store: DataStore) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    contests = _section(errors, "contests", store.get_contests, [])
    countries = _section(errors, "countries", store.get_countries, [])

    contest_cards = []
    for contest in contests:
        completeness = _section(
            errors,
            f"completeness:{contest.get('year')}",
            lambda: store.get_contest_data_completeness(contest["id"]),
            {"songCompleteness": 0, "voteCompleteness": 0, "completenessPercentage": 0},
        )
        contest_cards.append(
            {
                **contest,
                **completeness,
                "songCompletenessColor": charts.completeness_color(completeness["songCompleteness"]),
                "voteCompletenessColor": charts.completeness_color(completeness["voteCompleteness"]),
            }
        )

    return {"contests": contest_cards, "countries": countries, "errors": errors}


def contest_page(store: DataStore, year: int) -> Dict[str, Any]:
    contest = store.get_contest_by_year(year)
    if not contest:
        raise LookupError(f"No contest found for {year}")

    errors: Dict[str, str] = {}
    songs = _section(errors, "songs", lambda: store.get_songs_by_contest_with_points(contest["id"]), [])

    by_venue: Dict[str, List[Dict[str, Any]]] = {}
    for song in songs:
        by_venue.setdefault(song.get("venue_type") or eurovision.FINAL, []).append(song)

    venues = []
    for venue_type in sorted(by_venue, key=eurovision.venue_sort_key):
        venue_songs = sorted(by_venue[venue_type], key=lambda s: -(s.get("totalPoints") or 0))
        for index, song in enumerate(venue_songs):
            song["position"] = index + 1
        venues.append(
            {
                "type": venue_type,
                "name": eurovision.venue_display_name(venue_type),
                "votingSystem": _voting_system_or_none(year, venue_type),
                "showSeparateVotes": _separate_votes(year, venue_type),
                "songs": venue_songs,
                "chart": charts.voting_chart_series(
                    [s["country_name"] for s in venue_songs],
                    [s.get("juryPoints") for s in venue_songs],
                    [s.get("televotePoints") for s in venue_songs],
                ),
            }
        )

    return {"contest": contest, "venues": venues, "errors": errors}


def country_page(store: DataStore, country_id: int) -> Dict[str, Any]:
    country = store.get_country(country_id)
    if not country:
        raise LookupError(f"No country with id {country_id}")

    errors: Dict[str, str] = {}
    performances = _section(errors, "history", lambda: store.get_country_performance_history(country_id), [])
    given = _section(errors, "votesGiven", lambda: store.get_country_voting_stats_given(country_id), [])
    received = _section(errors, "votesReceived", lambda: store.get_country_voting_stats_received(country_id), [])

    final_places = [p["finalPlace"] for p in performances if p.get("finalPlace") is not None]
    years = [p["year"] for p in performances]
    summary = {
        "appearances": len(performances),
        "firstYear": min(years) if years else None,
        "lastYear": max(years) if years else None,
        "finals": len(final_places),
        "wins": sum(1 for place in final_places if place == 1),
        "bestPlace": min(final_places) if final_places else None,
    }

    return {
        "country": country,
        "summary": summary,
        "performances": performances,
        "historyChart": charts.history_series(performances),
        "votesGiven": charts.top_items(given),
        "votesReceived": charts.top_items(received),
        "votesGivenMap": charts.map_colors(given),
        "votesReceivedMap": charts.map_colors(received),
        "errors": errors,
    }


def country_contest_page(store: DataStore, year: int, country_id: int) -> Dict[str, Any]:
    contest = store.get_contest_by_year(year)
    if not contest:
        raise LookupError(f"No contest found for {year}")
    country = store.get_country(country_id)
    if not country:
        raise LookupError(f"No country with id {country_id}")

    contest_id = contest["id"]
    song = store.get_song(contest_id, country_id, eurovision.FINAL) or store.get_semifinal_song(
        contest_id, country_id
    )
    if not song:
        raise LookupError(f"{country.get('name')} has no song in {year}")

    errors: Dict[str, str] = {}
    final_section: Optional[Dict[str, Any]] = None
    semifinal_section: Optional[Dict[str, Any]] = None
    if song.get("venue_type") == eurovision.FINAL:
        final_section = _performance_section(store, year, contest_id, country_id, song, errors)
        semifinal_song = _section(
            errors, "semifinalSong", lambda: store.get_semifinal_song(contest_id, country_id), None
        )
        if semifinal_song:
            semifinal_section = _performance_section(store, year, contest_id, country_id, semifinal_song, errors)
    else:
        semifinal_section = _performance_section(store, year, contest_id, country_id, song, errors)

    # Countries eliminated in a semifinal still vote in the final.
    final_votes_given = (
        final_section["votesGiven"]
        if final_section
        else _section(
            errors,
            "finalVotesGiven",
            lambda: store.get_votes_given_by_country(country_id, contest_id, eurovision.FINAL),
            [],
        )
    )

    return {
        "contest": contest,
        "country": country,
        "song": song,
        "qualified": song.get("qualified") is True or (final_section is not None and semifinal_section is not None),
        "final": final_section,
        "semifinal": semifinal_section,
        "finalVotesGiven": final_votes_given,
        "errors": errors,
    }


def country_slug_page(store: DataStore, year: int, slug: str) -> Dict[str, Any]:
    country = store.get_country_by_slug(slug)
    if not country:
        raise LookupError(f"No country with slug '{slug}'")
    return country_contest_page(store, year, country["id"])


def _performance_section(
    store: DataStore,
    year: int,
    contest_id: int,
    country_id: int,
    song: Dict[str, Any],
    errors: Dict[str, str],
) -> Dict[str, Any]:
    venue_type = song.get("venue_type") or eurovision.FINAL
    empty_points = {"juryPoints": None, "televotePoints": None, "totalPoints": None}
    points = _section(errors, f"{venue_type}:points", lambda: store.get_votes_by_song(song["id"]), empty_points)
    position = _section(errors, f"{venue_type}:position", lambda: store.get_song_position(song["id"], venue_type), None)
    received = _section(
        errors, f"{venue_type}:votesReceived", lambda: store.get_votes_received_by_country(song["id"]), []
    )
    given = _section(
        errors,
        f"{venue_type}:votesGiven",
        lambda: store.get_votes_given_by_country(country_id, contest_id, venue_type),
        [],
    )
    participants = _section(
        errors,
        f"{venue_type}:countries",
        lambda: store.get_participating_countries(contest_id, venue_type),
        [],
    )
    received = _with_silent_voters(received, participants, country_id)

    return {
        "venueType": venue_type,
        "venueName": eurovision.venue_display_name(venue_type),
        "votingSystem": _voting_system_or_none(year, venue_type),
        "showSeparateVotes": _separate_votes(year, venue_type),
        "song": song,
        "points": points,
        "pointsBreakdown": charts.points_breakdown(
            year, points["juryPoints"], points["televotePoints"], points["totalPoints"]
        ),
        "position": position,
        "votesReceived": received,
        "votesReceivedChart": charts.votes_received_series(received),
        "votesGiven": given,
        "juryVotesGiven": charts.vote_slots(given, eurovision.JURY),
        "televoteVotesGiven": charts.vote_slots(given, eurovision.TELEVOTE),
        "participatingCountries": participants,
    }


def _with_silent_voters(
    received: List[Dict[str, Any]], participants: List[Dict[str, Any]], country_id: int
) -> List[Dict[str, Any]]:
    """Add a zero row for every other participant that gave the song no points."""

    seen = {str(vote.get("fromCountryName") or "").lower() for vote in received}
    merged = list(received)
    for participant in participants:
        name = participant.get("name")
        if not name or participant.get("id") == country_id or name.lower() in seen:
            continue
        seen.add(name.lower())
        merged.append({"fromCountryName": name, "juryPoints": 0, "televotePoints": 0})
    return merged


def _voting_system_or_none(year: int, venue_type: str) -> Optional[str]:
    try:
        return eurovision.voting_system(year, venue_type)
    except ValueError:
        return None


def _separate_votes(year: int, venue_type: str) -> bool:
    try:
        return eurovision.should_show_separate_votes(year, venue_type)
    except ValueError:
        return False
