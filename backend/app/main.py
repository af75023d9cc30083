from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from esc_core import DataStore, eurovision, pages

app = FastAPI(title="Eurovision Stats API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)


class ContestModel(BaseModel):
    id: int
    year: int
    host_country: Optional[str] = Field(default=None, alias="hostCountry")
    host_city: Optional[str] = Field(default=None, alias="hostCity")
    slogan: Optional[str] = None
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")

    model_config = ConfigDict(populate_by_name=True)


class ContestCardModel(ContestModel):
    song_completeness: int = Field(default=0, alias="songCompleteness")
    vote_completeness: int = Field(default=0, alias="voteCompleteness")
    completeness_percentage: int = Field(default=0, alias="completenessPercentage")
    song_completeness_color: str = Field(alias="songCompletenessColor")
    vote_completeness_color: str = Field(alias="voteCompletenessColor")


class CountryModel(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    slug: Optional[str] = None
    flag_url: Optional[str] = Field(default=None, alias="flagUrl")

    model_config = ConfigDict(populate_by_name=True)


class ContestListResponse(BaseModel):
    contests: List[ContestModel]


class CountryListResponse(BaseModel):
    countries: List[CountryModel]


class SongModel(BaseModel):
    id: int
    contest_id: Optional[int] = Field(default=None, alias="contestId")
    country_id: Optional[int] = Field(default=None, alias="countryId")
    title: Optional[str] = None
    artist: Optional[str] = None
    venue_type: Optional[str] = Field(default=None, alias="venueType")
    final_place: Optional[int] = Field(default=None, alias="finalPlace")
    points: Optional[int] = None
    qualified: Optional[bool] = None
    running_order: Optional[int] = Field(default=None, alias="runningOrder")
    youtube_url: Optional[str] = Field(default=None, alias="youtubeUrl")
    spotify_url: Optional[str] = Field(default=None, alias="spotifyUrl")

    model_config = ConfigDict(populate_by_name=True)


class SongPointsResponse(BaseModel):
    jury_points: Optional[int] = Field(default=None, alias="juryPoints")
    televote_points: Optional[int] = Field(default=None, alias="televotePoints")
    total_points: Optional[int] = Field(default=None, alias="totalPoints")

    model_config = ConfigDict(populate_by_name=True)


class VoteReceivedModel(BaseModel):
    from_country_name: str = Field(alias="fromCountryName")
    jury_points: Optional[int] = Field(default=None, alias="juryPoints")
    televote_points: Optional[int] = Field(default=None, alias="televotePoints")

    model_config = ConfigDict(populate_by_name=True)


class SongVotesResponse(BaseModel):
    votes: List[VoteReceivedModel]


class VoteGivenModel(BaseModel):
    points: Optional[int] = None
    to_country_name: str = Field(alias="toCountryName")
    artist: str = ""
    title: str = ""
    vote_type: Optional[str] = Field(default=None, alias="voteType")

    model_config = ConfigDict(populate_by_name=True)


class VoteSlotModel(BaseModel):
    points: int
    to_country_name: Optional[str] = Field(default=None, alias="toCountryName")
    artist: Optional[str] = None
    title: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class VotingStatModel(BaseModel):
    country_id: int = Field(alias="countryId")
    country_name: str = Field(alias="countryName")
    total_points: int = Field(alias="totalPoints")
    rank: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class ParticipantModel(BaseModel):
    id: int
    name: Optional[str] = None


class VenueVotingSystemModel(BaseModel):
    venue_type: str = Field(alias="venueType")
    name: str
    voting_system: str = Field(alias="votingSystem")
    show_separate_votes: bool = Field(alias="showSeparateVotes")

    model_config = ConfigDict(populate_by_name=True)


class VotingSystemResponse(BaseModel):
    year: int
    modern: bool
    venues: List[VenueVotingSystemModel]


class HomePageResponse(BaseModel):
    contests: List[ContestCardModel]
    countries: List[CountryModel]
    errors: Dict[str, str] = Field(default_factory=dict)


class ContestSongModel(BaseModel):
    id: int
    country_name: str = Field(alias="countryName")
    country_id: Optional[int] = Field(default=None, alias="countryId")
    artist: str = ""
    title: str = ""
    venue_type: Optional[str] = Field(default=None, alias="venueType")
    jury_points: Optional[int] = Field(default=None, alias="juryPoints")
    televote_points: Optional[int] = Field(default=None, alias="televotePoints")
    total_points: Optional[int] = Field(default=None, alias="totalPoints")
    position: int

    model_config = ConfigDict(populate_by_name=True)


class ContestVenueModel(BaseModel):
    type: str
    name: str
    voting_system: Optional[str] = Field(default=None, alias="votingSystem")
    show_separate_votes: bool = Field(alias="showSeparateVotes")
    songs: List[ContestSongModel]
    chart: Dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)


class ContestPageResponse(BaseModel):
    contest: ContestModel
    venues: List[ContestVenueModel]
    errors: Dict[str, str] = Field(default_factory=dict)


class CountrySummaryModel(BaseModel):
    appearances: int
    first_year: Optional[int] = Field(default=None, alias="firstYear")
    last_year: Optional[int] = Field(default=None, alias="lastYear")
    finals: int
    wins: int
    best_place: Optional[int] = Field(default=None, alias="bestPlace")

    model_config = ConfigDict(populate_by_name=True)


class PerformanceModel(BaseModel):
    year: int
    final_place: Optional[int] = Field(default=None, alias="finalPlace")
    semifinal_place: Optional[int] = Field(default=None, alias="semifinalPlace")
    venue_type: Optional[str] = Field(default=None, alias="venueType")
    qualified: Optional[bool] = None
    points_final: Optional[int] = Field(default=None, alias="pointsFinal")
    points_semifinal: Optional[int] = Field(default=None, alias="pointsSemifinal")
    artist: Optional[str] = None
    title: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CountryPageResponse(BaseModel):
    country: CountryModel
    summary: CountrySummaryModel
    performances: List[PerformanceModel]
    history_chart: Dict[str, Any] = Field(alias="historyChart")
    votes_given: List[VotingStatModel] = Field(alias="votesGiven")
    votes_received: List[VotingStatModel] = Field(alias="votesReceived")
    votes_given_map: Dict[str, str] = Field(alias="votesGivenMap")
    votes_received_map: Dict[str, str] = Field(alias="votesReceivedMap")
    errors: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class PerformanceSectionModel(BaseModel):
    venue_type: str = Field(alias="venueType")
    venue_name: str = Field(alias="venueName")
    voting_system: Optional[str] = Field(default=None, alias="votingSystem")
    show_separate_votes: bool = Field(alias="showSeparateVotes")
    song: SongModel
    points: SongPointsResponse
    points_breakdown: Optional[SongPointsResponse] = Field(default=None, alias="pointsBreakdown")
    position: Optional[int] = None
    votes_received: List[VoteReceivedModel] = Field(alias="votesReceived")
    votes_received_chart: Dict[str, Any] = Field(alias="votesReceivedChart")
    votes_given: List[VoteGivenModel] = Field(alias="votesGiven")
    jury_votes_given: List[VoteSlotModel] = Field(alias="juryVotesGiven")
    televote_votes_given: List[VoteSlotModel] = Field(alias="televoteVotesGiven")
    participating_countries: List[ParticipantModel] = Field(alias="participatingCountries")

    model_config = ConfigDict(populate_by_name=True)


class CountryContestPageResponse(BaseModel):
    contest: ContestModel
    country: CountryModel
    song: SongModel
    qualified: bool
    final: Optional[PerformanceSectionModel] = None
    semifinal: Optional[PerformanceSectionModel] = None
    final_votes_given: List[VoteGivenModel] = Field(alias="finalVotesGiven")
    errors: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


@lru_cache(maxsize=1)
def store() -> DataStore:
    return DataStore()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/", response_model=HomePageResponse)
def home():
    return HomePageResponse(**pages.home_page(store()))


@app.get("/contests", response_model=ContestListResponse)
def list_contests():
    try:
        contests = store().get_contests()
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ContestListResponse(contests=[ContestModel(**item) for item in contests])


@app.get("/countries", response_model=CountryListResponse)
def list_countries():
    try:
        countries = store().get_countries()
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CountryListResponse(countries=[CountryModel(**item) for item in countries])


@app.get("/contest/{year}", response_model=ContestPageResponse)
def contest(year: int):
    try:
        page = pages.contest_page(store(), year)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ContestPageResponse(**page)


# Registered before the slug route so "country" is never taken for a slug.
@app.get("/contest/{year}/country/{country_id}", response_model=CountryContestPageResponse)
def contest_country(year: int, country_id: int):
    try:
        page = pages.country_contest_page(store(), year, country_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CountryContestPageResponse(**page)


@app.get("/contest/{year}/{country_slug}", response_model=CountryContestPageResponse)
def contest_country_by_slug(year: int, country_slug: str):
    try:
        page = pages.country_slug_page(store(), year, country_slug)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CountryContestPageResponse(**page)


@app.get("/country/{country_id}", response_model=CountryPageResponse)
def country(country_id: int):
    try:
        page = pages.country_page(store(), country_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CountryPageResponse(**page)


@app.get("/songs/{song_id}/points", response_model=SongPointsResponse)
def song_points(song_id: int):
    try:
        points = store().get_votes_by_song(song_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SongPointsResponse(**points)


@app.get("/songs/{song_id}/votes", response_model=SongVotesResponse)
def song_votes(song_id: int):
    try:
        votes = store().get_votes_received_by_country(song_id)
    except ValueError as exc:
        if str(exc) in ("Song not found", "Venue not found"):
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SongVotesResponse(votes=[VoteReceivedModel(**vote) for vote in votes])


@app.get("/voting-system/{year}", response_model=VotingSystemResponse)
def voting_system(year: int):
    try:
        eurovision.voting_system(year)
        venues = [
            VenueVotingSystemModel(
                venue_type=venue_type,
                name=eurovision.venue_display_name(venue_type),
                voting_system=eurovision.voting_system(year, venue_type),
                show_separate_votes=eurovision.should_show_separate_votes(year, venue_type),
            )
            for venue_type in eurovision.venues_for_year(year)
        ]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return VotingSystemResponse(year=year, modern=eurovision.has_modern_voting_system(year), venues=venues)
