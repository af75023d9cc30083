"""Chart series for the contest and country pages.

These functions shape query results into the data the front end plots; they
do not render anything.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import eurovision
from .countries import map_name

DEFAULT_WORST_FINAL_PLACE = 26
# Semifinal places are drawn below the final places, offset so the best
# non-qualifier (11th) sits just under the worst finalist.
SEMIFINAL_PLACE_OFFSET = 10

LIGHT_COLOR = (255, 244, 230)  # #fff4e6
BASE_COLOR = (255, 160, 87)  # #ffa057
DARK_COLOR = (204, 122, 61)  # #cc7a3d

COMPLETENESS_RED = "#ef4444"
COMPLETENESS_YELLOW = "#eab308"
COMPLETENESS_GREEN = "#22c55e"


def points_breakdown(
    year: int,
    jury_points: Optional[int],
    televote_points: Optional[int],
    total_points: Optional[int],
) -> Optional[Dict[str, Optional[int]]]:
    """Jury/televote split for the points gauge, or None before split results existed."""

    if not eurovision.has_modern_voting_system(year):
        return None
    return {
        "juryPoints": jury_points if jury_points is not None else 0,
        "televotePoints": televote_points if televote_points is not None else 0,
        "totalPoints": total_points,
    }


def votes_received_series(votes: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    has_both = any(v.get("juryPoints") is not None for v in votes) and any(
        v.get("televotePoints") is not None for v in votes
    )
    rows = [
        {
            "fromCountryName": vote.get("fromCountryName") or "Unknown",
            "juryPoints": vote.get("juryPoints"),
            "televotePoints": vote.get("televotePoints"),
            "totalPoints": (vote.get("juryPoints") or 0) + (vote.get("televotePoints") or 0),
        }
        for vote in votes
    ]
    # Ascending for a horizontal bar chart (first row is drawn at the bottom);
    # ties read Z to A so they appear alphabetically from the top.
    rows.sort(key=lambda row: row["fromCountryName"], reverse=True)
    rows.sort(key=lambda row: row["totalPoints"])
    return {
        "hasBothTypes": has_both,
        "countries": [row["fromCountryName"] for row in rows],
        "juryPoints": [row["juryPoints"] for row in rows],
        "televotePoints": [row["televotePoints"] for row in rows],
        "rows": rows,
    }


def voting_chart_series(
    countries: Sequence[str],
    jury_votes: Sequence[Optional[int]],
    televote_votes: Sequence[Optional[int]],
) -> Dict[str, Any]:
    has_jury = any(v is not None and v > 0 for v in jury_votes)
    has_televote = any(v is not None and v > 0 for v in televote_votes)
    rows = []
    for index, country in enumerate(countries):
        jury = jury_votes[index] if index < len(jury_votes) and jury_votes[index] is not None else 0
        televote = (
            televote_votes[index] if index < len(televote_votes) and televote_votes[index] is not None else 0
        )
        rows.append({"country": country, "jury": jury, "televote": televote, "total": jury + televote})
    rows.sort(key=lambda row: row["total"])
    return {
        "hasBothTypes": has_jury and has_televote,
        "countries": [row["country"] for row in rows],
        "juryPoints": [row["jury"] for row in rows],
        "televotePoints": [row["televote"] for row in rows],
    }


def history_series(performances: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Line chart of final places, with semifinal-only years drawn below the finalists."""

    if not performances:
        return {
            "points": [],
            "data": [],
            "startYear": None,
            "endYear": None,
            "worstFinalPlace": DEFAULT_WORST_FINAL_PLACE,
            "wins": [],
            "separator": None,
            "yMax": DEFAULT_WORST_FINAL_PLACE,
        }

    finals = [p for p in performances if p.get("finalPlace") is not None]
    semifinal_only = [
        p for p in performances if p.get("semifinalPlace") is not None and p.get("finalPlace") is None
    ]
    worst_final_place = max((p["finalPlace"] for p in finals), default=DEFAULT_WORST_FINAL_PLACE)

    points: List[Dict[str, Any]] = []
    for p in finals:
        points.append(
            {
                "year": p["year"],
                "position": p["finalPlace"],
                "type": "final",
                "originalPosition": p["finalPlace"],
                "artist": p.get("artist"),
                "title": p.get("title"),
            }
        )
    for p in semifinal_only:
        points.append(
            {
                "year": p["year"],
                "position": worst_final_place + (p["semifinalPlace"] - SEMIFINAL_PLACE_OFFSET),
                "type": "semifinal",
                "originalPosition": p["semifinalPlace"],
                "artist": p.get("artist"),
                "title": p.get("title"),
            }
        )
    points.sort(key=lambda point: point["year"])

    by_year = {}
    for point in points:
        by_year.setdefault(point["year"], point)
    years = [p["year"] for p in performances]
    data: List[Tuple[int, Optional[int]]] = []
    for year in range(min(years), max(years) + 1):
        point = by_year.get(year)
        # None leaves a gap in the line for years without participation.
        data.append((year, point["position"] if point else None))

    y_max = max([worst_final_place] + [p["position"] for p in points if p["type"] == "semifinal"])
    return {
        "points": points,
        "data": data,
        "startYear": min(years),
        "endYear": max(years),
        "worstFinalPlace": worst_final_place,
        "wins": [p["year"] for p in finals if p["finalPlace"] == 1],
        "separator": worst_final_place + 0.5 if semifinal_only else None,
        "yMax": y_max,
    }


def _interpolate(start: Tuple[int, int, int], end: Tuple[int, int, int], factor: float) -> Tuple[int, ...]:
    return tuple(int(math.floor(a + (b - a) * factor + 0.5)) for a, b in zip(start, end))


def point_color(points: int, min_points: int, max_points: int) -> str:
    if max_points == min_points:
        return "#ffa057"
    normalised = (points - min_points) / (max_points - min_points)
    if normalised < 0.5:
        r, g, b = _interpolate(LIGHT_COLOR, BASE_COLOR, normalised * 2)
    else:
        r, g, b = _interpolate(BASE_COLOR, DARK_COLOR, (normalised - 0.5) * 2)
    return f"rgb({r}, {g}, {b})"


def map_colors(stats: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """Fill colour per map country name; countries without data are absent."""

    if not stats:
        return {}
    values = [int(item.get("totalPoints") or 0) for item in stats]
    low, high = min(values), max(values)
    colors: Dict[str, str] = {}
    for item, value in zip(stats, values):
        name = str(item.get("countryName") or "")
        if not name:
            continue
        colors[map_name(name)] = point_color(value, low, high)
    return colors


def completeness_color(percentage: int) -> str:
    if percentage < 25:
        return COMPLETENESS_RED
    if percentage < 100:
        return COMPLETENESS_YELLOW
    return COMPLETENESS_GREEN


def top_items(stats: Sequence[Dict[str, Any]], max_items: int = 10) -> List[Dict[str, Any]]:
    return [dict(item, rank=index + 1) for index, item in enumerate(stats[:max_items])]


def vote_slots(votes: Sequence[Dict[str, Any]], vote_type: str) -> List[Dict[str, Any]]:
    """One slot per Eurovision point value (12 down to 1) for a jury or televote list."""

    by_points: Dict[int, Dict[str, Any]] = {}
    for vote in votes:
        if vote.get("voteType") == vote_type and vote.get("points") is not None:
            by_points[int(vote["points"])] = vote
    slots = []
    for value in eurovision.EUROVISION_POINTS:
        vote = by_points.get(value)
        slots.append(
            {
                "points": value,
                "toCountryName": vote.get("toCountryName") if vote else None,
                "artist": vote.get("artist") if vote else None,
                "title": vote.get("title") if vote else None,
            }
        )
    return slots
