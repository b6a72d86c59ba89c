"""
Circuit Season API
FastAPI wrapper around the circuit season engine
"""

import sys
import os
import uuid
import time
from datetime import date
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from circuit import (
    AdvanceUnit,
    CalendarBlockedError,
    MapResult,
    MatchResult,
    Season,
    SeasonConfig,
    StateMachineError,
    create_season,
)
from circuit.competition import summarize_matches
from circuit.config import REGIONS
from circuit.season_calendar import CalendarEvent
from circuit.tournament import MultiStageTournament, Tournament
from circuit.transitions import list_transitions


app = FastAPI(title="Circuit Season API", version="1.0.0")

sessions: Dict[str, dict] = {}


@app.get("/api/health")
def health_check():
    return {"status": "ok", "sessions": len(sessions)}


class CreateSeasonRequest(BaseModel):
    season_year: int = 2026
    start_date: Optional[date] = None
    seed: Optional[int] = None
    user_team_id: Optional[str] = None
    regions: List[str] = list(REGIONS)
    teams_per_region: int = 12
    strict_qualification: bool = False


class AdvanceRequest(BaseModel):
    unit: str = "day"


class MapResultModel(BaseModel):
    map_name: str
    score_team_a: int
    score_team_b: int
    winner_id: str


class MatchResultModel(BaseModel):
    winner_id: str
    loser_id: str
    score_team_a: int = 0
    score_team_b: int = 0
    maps: List[MapResultModel] = []


class PlayMatchRequest(BaseModel):
    result: Optional[MatchResultModel] = None


class TransitionRequest(BaseModel):
    region: Optional[str] = None


# ═══════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════

def _get_session(session_id: str) -> dict:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    return sessions[session_id]


def _require_season(session: dict) -> Season:
    if session.get("season") is None:
        raise HTTPException(status_code=400, detail="No season created in this session")
    return session["season"]


def _require_tournament(season: Season, tournament_id: str) -> Tournament:
    tournament = season.state.tournaments.get(tournament_id)
    if tournament is None:
        raise HTTPException(status_code=404, detail=f"Tournament {tournament_id} not found")
    return tournament


def _to_match_result(model: MatchResultModel) -> MatchResult:
    return MatchResult(
        winner_id=model.winner_id,
        loser_id=model.loser_id,
        score_team_a=model.score_team_a,
        score_team_b=model.score_team_b,
        maps=[MapResult(m.map_name, m.score_team_a, m.score_team_b, m.winner_id) for m in model.maps],
    )


def _serialize_event(event: CalendarEvent) -> dict:
    return event.to_dict()


def _serialize_tournament(tournament: Tournament, season: Season) -> dict:
    d = tournament.to_dict()
    d["champion_name"] = season.state.team_name(tournament.champion_id) if tournament.champion_id else None
    d["bracket_status"] = tournament.bracket_status()
    d["match_counts"] = summarize_matches(tournament.all_matches())
    return d


def _serialize_standings(tournament: Tournament, season: Season) -> list:
    rows = []
    for entry in tournament.standings:
        row = entry.to_dict()
        row["team_name"] = season.state.team_name(entry.team_id)
        rows.append(row)
    return rows


def _serialize_season_status(season: Season) -> dict:
    calendar = season.state.calendar
    return {
        "season_year": season.config.season_year,
        "current_date": calendar.current_date.isoformat(),
        "current_phase": calendar.current_phase.value,
        "version": season.state.version,
        "user_team_id": season.state.user_team_id,
        "tournaments": len(season.state.tournaments),
        "is_complete": season.is_complete,
    }


# ═══════════════════════════════════════════════════════════════
# SESSIONS
# ═══════════════════════════════════════════════════════════════

@app.post("/sessions")
def create_session():
    session_id = str(uuid.uuid4())
    now = time.time()
    sessions[session_id] = {
        "season": None,
        "created_at": now,
    }
    return {"session_id": session_id, "created_at": now}


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    del sessions[session_id]
    return {"deleted": True}


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    session = _get_session(session_id)
    result = {
        "session_id": session_id,
        "created_at": session["created_at"],
        "has_season": session["season"] is not None,
    }
    if session["season"] is not None:
        result["season_status"] = _serialize_season_status(session["season"])
    return result


# ═══════════════════════════════════════════════════════════════
# SEASON
# ═══════════════════════════════════════════════════════════════

@app.post("/sessions/{session_id}/season")
def create_season_endpoint(session_id: str, req: CreateSeasonRequest):
    session = _get_session(session_id)
    config = SeasonConfig(
        season_year=req.season_year,
        start_date=req.start_date or date(req.season_year, 1, 1),
        regions=list(req.regions),
        teams_per_region=req.teams_per_region,
        strict_qualification=req.strict_qualification,
    )
    try:
        season = create_season(config, user_team_id=req.user_team_id, seed=req.seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session["season"] = season
    return _serialize_season_status(season)


@app.get("/sessions/{session_id}/season")
def get_season_status(session_id: str):
    season = _require_season(_get_session(session_id))
    status = _serialize_season_status(season)
    status["champions"] = season.phase_champions()
    return status


@app.get("/sessions/{session_id}/teams")
def list_teams(session_id: str, region: Optional[str] = Query(None)):
    season = _require_season(_get_session(session_id))
    teams = [t for t in season.state.teams.values() if region is None or t.region == region]
    return {"teams": [t.to_dict() for t in teams]}


# ═══════════════════════════════════════════════════════════════
# CALENDAR
# ═══════════════════════════════════════════════════════════════

@app.get("/sessions/{session_id}/calendar")
def get_calendar(session_id: str, limit: int = Query(20, ge=1, le=500)):
    season = _require_season(_get_session(session_id))
    calendar = season.state.calendar
    pending = season.scheduler.pending_user_match()
    return {
        "calendar": calendar.to_dict(),
        "today": [_serialize_event(e) for e in calendar.events_on(calendar.current_date, include_processed=True)],
        "upcoming": [_serialize_event(e) for e in calendar.upcoming(limit=limit)],
        "pending_user_match": _serialize_event(pending) if pending else None,
    }


@app.post("/sessions/{session_id}/calendar/advance")
def advance_calendar(session_id: str, req: AdvanceRequest):
    season = _require_season(_get_session(session_id))
    try:
        unit = AdvanceUnit(req.unit)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown advance unit '{req.unit}'")
    try:
        result = season.advance(unit)
    except CalendarBlockedError as e:
        raise HTTPException(status_code=409, detail={
            "error": str(e),
            "event": _serialize_event(e.event) if e.event is not None else None,
        })
    return result.to_dict()


@app.post("/sessions/{session_id}/calendar/events/{event_id}/play")
def play_user_match(session_id: str, event_id: str, req: PlayMatchRequest):
    season = _require_season(_get_session(session_id))
    if season.state.calendar.get_event(event_id) is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    result = _to_match_result(req.result) if req.result is not None else None
    try:
        played = season.scheduler.play_user_match(event_id, result)
    except StateMachineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not played.success:
        raise HTTPException(status_code=400, detail=played.error)
    return played.to_dict()


@app.post("/sessions/{session_id}/calendar/events/{event_id}/processed")
def mark_event_processed(session_id: str, event_id: str):
    season = _require_season(_get_session(session_id))
    if not season.scheduler.mark_event_processed(event_id):
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return {"event_id": event_id, "processed": True}


# ═══════════════════════════════════════════════════════════════
# TOURNAMENTS
# ═══════════════════════════════════════════════════════════════

@app.get("/sessions/{session_id}/tournaments")
def list_tournaments(session_id: str, phase: Optional[str] = Query(None)):
    season = _require_season(_get_session(session_id))
    tournaments = [
        t for t in season.state.tournaments.values()
        if phase is None or t.phase == phase
    ]
    return {"tournaments": [t.summary() for t in tournaments]}


@app.get("/sessions/{session_id}/tournaments/{tournament_id}")
def get_tournament(session_id: str, tournament_id: str):
    season = _require_season(_get_session(session_id))
    return _serialize_tournament(_require_tournament(season, tournament_id), season)


@app.get("/sessions/{session_id}/tournaments/{tournament_id}/standings")
def get_standings(session_id: str, tournament_id: str):
    season = _require_season(_get_session(session_id))
    tournament = _require_tournament(season, tournament_id)
    season.tournaments.calculate_standings(tournament_id)
    result = {
        "tournament_id": tournament_id,
        "standings": _serialize_standings(tournament, season),
    }
    if isinstance(tournament, MultiStageTournament) and tournament.swiss_stage is not None:
        result["swiss"] = tournament.swiss_stage.to_dict()["standings"]
    return result


@app.post("/sessions/{session_id}/tournaments/{tournament_id}/simulate")
def simulate_tournament(session_id: str, tournament_id: str):
    season = _require_season(_get_session(session_id))
    _require_tournament(season, tournament_id)
    try:
        result = season.tournaments.simulate_tournament(tournament_id)
    except StateMachineError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    season.scheduler.clear_tournament_events(tournament_id)
    return _serialize_tournament(result.tournament, season)


# ═══════════════════════════════════════════════════════════════
# TRANSITIONS
# ═══════════════════════════════════════════════════════════════

@app.get("/transitions")
def get_transitions():
    return {"transitions": [c.to_dict() for c in list_transitions()]}


@app.post("/sessions/{session_id}/transitions/{config_id}")
def execute_transition(session_id: str, config_id: str, req: TransitionRequest):
    season = _require_season(_get_session(session_id))
    result = season.transitions.execute_transition(config_id, region=req.region)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result.to_dict()
