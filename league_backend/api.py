"""
REST API for the league backend.
Thin wrappers around the league service and persistence.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from league_backend.auth import decode_token
from league_backend.models import LeagueStatus, PointsSystem
from league_backend.persistence import ClubRepository, get_connection, init_db
from league_backend.persistence.db import get_db_path
from league_backend.services.errors import (
    AlreadyGenerated,
    ClubAlreadyRegistered,
    ClubNotInLeague,
    DivisionNotFound,
    FixtureNotFound,
    InsufficientClubs,
    InvalidResult,
    InvalidState,
    LeagueError,
    LeagueFull,
    LeagueNotFound,
    VersionConflict,
)
from league_backend.services.league_service import LeagueService

# ---------- Logging ----------
_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
_handler = logging.StreamHandler()
_handler.setFormatter(_formatter)
root_logger = logging.getLogger()
root_logger.setLevel(os.environ.get("LEAGUE_LOG_LEVEL", "INFO").upper())
root_logger.handlers = [_handler]
logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db(db_path=get_db_path())
    yield


def _cors_origins() -> list[str]:
    raw = os.environ.get("LEAGUE_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    return [o.strip() for o in raw.split(",") if o.strip()]


# ---------- FastAPI app ----------
app = FastAPI(
    title="League Competition API",
    description="Fixture generation, standings and disqualification for club leagues",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

service = LeagueService()
security = HTTPBearer(auto_error=False)


# ---------- Error translation ----------

_ERROR_STATUS: dict[type[LeagueError], int] = {
    LeagueNotFound: 404,
    DivisionNotFound: 404,
    FixtureNotFound: 404,
    ClubNotInLeague: 404,
    InvalidState: 409,
    AlreadyGenerated: 409,
    ClubAlreadyRegistered: 409,
    VersionConflict: 409,
    InsufficientClubs: 400,
    LeagueFull: 400,
    InvalidResult: 400,
}


@app.exception_handler(LeagueError)
async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), 400)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, status_code, type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


# ---------- Request/Response models ----------


class UpsertClubRequest(BaseModel):
    id: str | None = Field(None, description="Club id from the surrounding application")
    name: str = Field(..., min_length=1, max_length=200)


class PointsSystemBody(BaseModel):
    win: int = Field(3, ge=0)
    draw: int = Field(1, ge=0)
    loss: int = Field(0, ge=0)


class CreateLeagueRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    season: str | None = Field(None, max_length=50)
    min_clubs: int | None = Field(None, ge=2)
    max_clubs: int | None = Field(None, ge=2)
    points_system: PointsSystemBody | None = None
    divisions: list[str] | None = Field(None, description="Division names; default a single 'Division 1'")
    registration_deadline: datetime | None = Field(
        None, description="Registration refused after this instant (naive = UTC)"
    )


class AddDivisionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class RegisterClubRequest(BaseModel):
    club_id: str = Field(..., min_length=1)
    division_id: str | None = None


class GenerateFixturesRequest(BaseModel):
    double_round: bool = Field(False, description="Home-and-away double round-robin")


class RecordResultRequest(BaseModel):
    home_goals: int = Field(..., ge=0)
    away_goals: int = Field(..., ge=0)


class UpdateScheduleRequest(BaseModel):
    date: str | None = None
    time: str | None = None
    venue_id: str | None = None
    official_id: str | None = None


class DisqualifyClubRequest(BaseModel):
    club_id: str = Field(..., min_length=1)
    reason: str | None = Field(None, max_length=500)


def _get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str | None:
    """Return user_id from JWT or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def _require_organizer(conn, league_id: str, user_id: str | None) -> None:
    if not user_id:
        raise HTTPException(status_code=401, detail="Login required to manage leagues")
    league = service.get_league(conn, league_id)
    if league.organizer_id != user_id:
        raise HTTPException(status_code=403, detail="Only the league organizer can manage this league")


# ---------- Clubs ----------


@app.post("/clubs")
def upsert_club(req: UpsertClubRequest) -> dict[str, Any]:
    """Create or rename a club directory record. Names feed the standings tiebreak."""
    with db_conn() as conn:
        club = ClubRepository().upsert(conn, req.name, id=req.id)
        return club.to_dict()


# ---------- Leagues ----------


@app.post("/leagues")
def create_league(
    req: CreateLeagueRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Create a league. Caller becomes the organizer; league starts in 'draft'."""
    if not user_id_from_token:
        raise HTTPException(status_code=401, detail="Login required to create league")
    if req.min_clubs is not None and req.max_clubs is not None and req.min_clubs > req.max_clubs:
        raise HTTPException(status_code=400, detail="min_clubs cannot exceed max_clubs")
    points = PointsSystem(**req.points_system.model_dump()) if req.points_system else None
    with db_conn() as conn:
        league = service.create_league(
            conn,
            req.name,
            user_id_from_token,
            season=req.season,
            min_clubs=req.min_clubs,
            max_clubs=req.max_clubs,
            points_system=points,
            division_names=req.divisions,
            registration_deadline=req.registration_deadline,
        )
        return league.to_dict()


@app.get("/leagues")
def list_leagues(
    status: LeagueStatus | None = Query(None, description="Only leagues in this status"),
) -> dict[str, Any]:
    with db_conn() as conn:
        leagues = service.list_leagues(conn, status=status)
        return {
            "leagues": [
                {
                    "id": l.id,
                    "name": l.name,
                    "season": l.season,
                    "organizer_id": l.organizer_id,
                    "status": l.status.value,
                    "club_count": len(l.all_club_ids()),
                    "max_clubs": l.max_clubs,
                }
                for l in leagues
            ]
        }


@app.get("/leagues/{league_id}")
def get_league(league_id: str) -> dict[str, Any]:
    """League with divisions, memberships, fixtures and disqualification records."""
    with db_conn() as conn:
        return service.get_league(conn, league_id).to_dict()


@app.post("/leagues/{league_id}/divisions")
def add_division(
    league_id: str,
    req: AddDivisionRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        return service.add_division(conn, league_id, req.name).to_dict()


@app.post("/leagues/{league_id}/open-registration")
def open_registration(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        league = service.open_registration(conn, league_id)
        return {"league_id": league.id, "status": league.status.value}


@app.post("/leagues/{league_id}/clubs")
def register_club(
    league_id: str,
    req: RegisterClubRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Register a club. League must be in registration with registration open."""
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        division = service.register_club(conn, league_id, req.club_id, division_id=req.division_id)
        return {"league_id": league_id, "division_id": division.id, "club_id": req.club_id, "registered": True}


@app.post("/leagues/{league_id}/close-registration")
def close_registration(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        league = service.close_registration(conn, league_id)
        return {"league_id": league.id, "status": league.status.value, "registration_closed": True}


@app.post("/leagues/{league_id}/divisions/{division_id}/fixtures")
def generate_fixtures(
    league_id: str,
    division_id: str,
    req: GenerateFixturesRequest | None = None,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Generate the division's round-robin. Fails on a second call for the same division."""
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        fixtures = service.generate_fixtures(
            conn, league_id, division_id, double_round=req.double_round if req else False
        )
        league = service.get_league(conn, league_id)
        return {
            "league_id": league_id,
            "division_id": division_id,
            "league_status": league.status.value,
            "fixtures": [f.to_dict() for f in fixtures],
        }


@app.get("/leagues/{league_id}/divisions/{division_id}/standings")
def get_standings(league_id: str, division_id: str) -> dict[str, Any]:
    """Standings recomputed from the fixture list on every read."""
    with db_conn() as conn:
        rows = service.calculate_standings(conn, league_id, division_id)
        return {"league_id": league_id, "division_id": division_id, "standings": [r.to_dict() for r in rows]}


@app.post("/leagues/{league_id}/fixtures/{fixture_id}/result")
def record_result(
    league_id: str,
    fixture_id: str,
    req: RecordResultRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        rows = service.record_result(conn, league_id, fixture_id, req.home_goals, req.away_goals)
        return {
            "league_id": league_id,
            "fixture_id": fixture_id,
            "status": "completed",
            "standings": [r.to_dict() for r in rows],
        }


@app.patch("/leagues/{league_id}/fixtures/{fixture_id}/schedule")
def update_fixture_schedule(
    league_id: str,
    fixture_id: str,
    req: UpdateScheduleRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        # Only fields present in the body change; an explicit null clears one
        service.update_fixture_schedule(conn, league_id, fixture_id, **req.model_dump(exclude_unset=True))
        fixture = service.get_league(conn, league_id).find_fixture(fixture_id)
        return fixture.to_dict()


@app.post("/leagues/{league_id}/disqualify")
def disqualify_club(
    league_id: str,
    req: DisqualifyClubRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Disqualify a club: cancel its unplayed fixtures and rebuild its division's table without it."""
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        outcome = service.disqualify_club(conn, league_id, req.club_id, reason=req.reason)
        return {"league_id": league_id, "club_id": req.club_id, **outcome.to_dict()}


@app.post("/leagues/{league_id}/complete")
def complete_season(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        league = service.complete_season(conn, league_id)
        return {"league_id": league.id, "status": league.status.value}


@app.post("/leagues/{league_id}/cancel")
def cancel_league(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        league = service.cancel_league(conn, league_id)
        return {"league_id": league.id, "status": league.status.value}


@app.delete("/leagues/{league_id}")
def delete_league(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Delete a draft or cancelled league with its divisions and fixtures."""
    with db_conn() as conn:
        _require_organizer(conn, league_id, user_id_from_token)
        service.delete_league(conn, league_id)
        return {"league_id": league_id, "deleted": True}

# ---------- Run with: uvicorn league_backend.api:app --reload ----------
