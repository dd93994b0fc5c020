"""
REST API for the padel league backend.
Thin wrappers around LeagueService and the repositories; authorization lives here.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import date
from typing import Any, AsyncGenerator, Generator, Iterator

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from padel_league.auth import create_access_token, decode_token, hash_password, verify_password
from padel_league.config import (
    CORS_ORIGINS,
    DEFAULT_MAX_TEAMS,
    DEFAULT_MIN_TEAMS,
    DEFAULT_POINTS_PER_LOSS,
    DEFAULT_POINTS_PER_WIN,
    configure_logging,
)
from padel_league.errors import NotFoundError, PadelLeagueError, StorageFailure
from padel_league.models import League, MatchFormat
from padel_league.persistence import (
    FixtureRepository,
    LeagueRepository,
    TeamRepository,
    UserRepository,
    get_connection,
    get_db_path,
    init_db,
)
from padel_league.services.league_service import LeagueService

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def _domain_errors(action: str) -> Iterator[None]:
    """Map domain errors to HTTP responses: 404 not found, 400 bad input, 500 storage."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageFailure as e:
        logger.error("Failed to %s: %s", action, e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to {action}")
    except (PadelLeagueError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Padel League API",
    description="Round-robin scheduling, match results and standings for padel leagues",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


# ---------- Request/Response models ----------


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    name: str | None = Field(None, max_length=100)


class LoginRequest(BaseModel):
    username: str
    password: str


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=30)
    member_ids: list[str] | None = Field(
        None, max_length=2, description="User accounts playing for the team; defaults to the creator"
    )


class CreateLeagueRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    start_date: date
    end_date: date
    venue: str | None = Field(None, max_length=200)
    registration_deadline: date | None = None
    match_format: MatchFormat = MatchFormat.BEST_OF_3
    points_per_win: int = Field(DEFAULT_POINTS_PER_WIN, ge=1)
    points_per_loss: int = Field(DEFAULT_POINTS_PER_LOSS, ge=0)
    min_teams: int = Field(DEFAULT_MIN_TEAMS, ge=2)
    max_teams: int = Field(DEFAULT_MAX_TEAMS, ge=2)


class LeagueStatusRequest(BaseModel):
    status: str


class RegisterTeamRequest(BaseModel):
    team_id: str


class CreateMatchRequest(BaseModel):
    league_id: str
    team_a_id: str
    team_b_id: str
    scheduled_date: date
    location: str | None = Field(None, max_length=200)


class UpdateMatchRequest(BaseModel):
    scheduled_date: date | None = None
    location: str | None = Field(None, max_length=200)
    status: str | None = None
    notes: str | None = Field(None, max_length=500)


class SubmitResultRequest(BaseModel):
    team_a_score: list[int] = Field(..., description="Games won by team A in each set")
    team_b_score: list[int] = Field(..., description="Games won by team B in each set")
    notes: str | None = Field(None, max_length=500)


# ---------- Auth helpers ----------


def _get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str | None:
    """Return user_id from JWT or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def _require_user(user_id: str | None, action: str) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Login required to {action}")
    return user_id


def _require_organizer(league: League, user_id: str, action: str) -> None:
    if league.organizer_id != user_id:
        raise HTTPException(status_code=403, detail=f"Only the league organizer can {action}")


# ---------- Accounts ----------


@app.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create an account. Passwords hashed, never stored plain."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.get_by_username(conn, req.username):
            raise HTTPException(status_code=400, detail="Username already taken")
        user = user_repo.create_with_password(conn, req.username, hash_password(req.password), name=req.name)
        return {"user_id": user.id, "username": user.username, "token": create_access_token(user.id)}


@app.post("/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Returns a JWT bearer token."""
    with db_conn() as conn:
        user = UserRepository().get_by_username(conn, req.username)
        if user is None or not user.password_hash or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        return {"user_id": user.id, "username": user.username, "token": create_access_token(user.id)}


# ---------- Teams ----------


@app.post("/teams")
def create_team(
    req: CreateTeamRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    uid = _require_user(user_id_from_token, "create a team")
    members = req.member_ids if req.member_ids is not None else [uid]
    if len(set(members)) != len(members):
        raise HTTPException(status_code=400, detail="Team members must be distinct")
    with db_conn() as conn:
        team = TeamRepository().create(conn, req.name, uid, members)
        return team.to_dict()


@app.get("/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return team.to_dict()


# ---------- Leagues ----------


@app.post("/leagues")
def create_league(
    req: CreateLeagueRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Create a league in draft status. Creator is the organizer."""
    uid = _require_user(user_id_from_token, "create a league")
    if req.end_date <= req.start_date:
        raise HTTPException(status_code=400, detail="End date must be after the start date")
    if req.min_teams > req.max_teams:
        raise HTTPException(status_code=400, detail="Minimum teams must be less than or equal to maximum teams")
    if req.registration_deadline is not None and req.registration_deadline > req.start_date:
        raise HTTPException(status_code=400, detail="Registration deadline must be before or on the start date")
    with db_conn() as conn:
        league = LeagueRepository().create(
            conn,
            req.name,
            uid,
            req.start_date,
            req.end_date,
            venue=req.venue,
            match_format=req.match_format.value,
            points_per_win=req.points_per_win,
            points_per_loss=req.points_per_loss,
            min_teams=req.min_teams,
            max_teams=req.max_teams,
            registration_deadline=req.registration_deadline,
        )
        return league.to_dict()


@app.get("/leagues")
def list_leagues() -> dict[str, Any]:
    with db_conn() as conn:
        return {"leagues": [l.to_dict() for l in LeagueRepository().list_all(conn)]}


@app.get("/leagues/{league_id}")
def get_league(league_id: str) -> dict[str, Any]:
    """League with registered team ids."""
    with db_conn() as conn:
        league_repo = LeagueRepository()
        league = league_repo.get(conn, league_id)
        if league is None:
            raise HTTPException(status_code=404, detail="League not found")
        out = league.to_dict()
        out["team_ids"] = league_repo.list_team_ids(conn, league_id)
        return out


@app.post("/leagues/{league_id}/status")
def update_league_status(
    league_id: str,
    req: LeagueStatusRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    uid = _require_user(user_id_from_token, "change league status")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("update league status"):
            _require_organizer(svc.get_league(conn, league_id), uid, "change the league status")
            svc.transition_league_status(conn, league_id, req.status)
            return svc.get_league(conn, league_id).to_dict()


@app.post("/leagues/{league_id}/teams")
def register_team(
    league_id: str,
    req: RegisterTeamRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Register a team. Allowed for the organizer or a member of the team."""
    uid = _require_user(user_id_from_token, "register a team")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("register team"):
            league = svc.get_league(conn, league_id)
            team = TeamRepository().get(conn, req.team_id)
            if team is None:
                raise NotFoundError("Team", req.team_id)
            if league.organizer_id != uid and not team.has_member(uid) and team.created_by != uid:
                raise HTTPException(status_code=403, detail="Only the organizer or a team member can register a team")
            svc.register_team(conn, league_id, req.team_id)
        return {"league_id": league_id, "team_id": req.team_id, "registered": True}


@app.get("/leagues/{league_id}/teams")
def list_league_teams(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        with _domain_errors("fetch league teams"):
            teams = LeagueService().list_league_teams(conn, league_id)
        return {"league_id": league_id, "teams": [t.to_dict() for t in teams]}


@app.delete("/leagues/{league_id}/teams/{team_id}", status_code=204)
def unregister_team(
    league_id: str,
    team_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> Response:
    """Withdraw a team before the league starts. Organizer or a member of the team."""
    uid = _require_user(user_id_from_token, "remove a team")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("remove team"):
            league = svc.get_league(conn, league_id)
            team = TeamRepository().get(conn, team_id)
            if team is None:
                raise NotFoundError("Team", team_id)
            if league.organizer_id != uid and not team.has_member(uid) and team.created_by != uid:
                raise HTTPException(status_code=403, detail="Only the organizer or a team member can remove a team")
            svc.unregister_team(conn, league_id, team_id)
    return Response(status_code=204)


# ---------- Schedule ----------


@app.get("/leagues/{league_id}/schedule")
def get_schedule(league_id: str) -> dict[str, Any]:
    """All fixtures of a league in chronological order."""
    with db_conn() as conn:
        with _domain_errors("fetch league schedule"):
            fixtures = LeagueService().list_schedule(conn, league_id)
        return {"league_id": league_id, "matches": [f.to_dict() for f in fixtures]}


@app.post("/leagues/{league_id}/schedule")
def generate_schedule(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Generate the round-robin. Organizer only; league in draft or registration; no fixtures yet."""
    uid = _require_user(user_id_from_token, "generate a schedule")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("generate league schedule"):
            _require_organizer(svc.get_league(conn, league_id), uid, "generate a schedule")
            created = svc.generate_league_schedule(conn, league_id)
        return {
            "message": f"Successfully generated {len(created)} matches",
            "matches": [f.to_dict() for f in created],
        }


@app.delete("/leagues/{league_id}/schedule", status_code=204)
def clear_schedule(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> Response:
    uid = _require_user(user_id_from_token, "clear a schedule")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("clear league schedule"):
            _require_organizer(svc.get_league(conn, league_id), uid, "clear a schedule")
            svc.clear_league_schedule(conn, league_id)
    return Response(status_code=204)


# ---------- Matches ----------


@app.get("/matches")
def list_matches(
    league_id: str | None = None,
    team_id: str | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> dict[str, Any]:
    """Matches in date order, filtered and paginated."""
    with db_conn() as conn:
        fixtures, total = FixtureRepository().list_filtered(
            conn,
            league_id=league_id,
            team_id=team_id,
            status=status,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return {
            "matches": [f.to_dict() for f in fixtures],
            "pagination": {"total": total, "page": page, "limit": limit, "pages": -(-total // limit)},
        }


@app.post("/matches", status_code=201)
def create_match(
    req: CreateMatchRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Schedule a single match between two registered teams. Organizer only."""
    uid = _require_user(user_id_from_token, "schedule a match")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("schedule match"):
            _require_organizer(svc.get_league(conn, req.league_id), uid, "schedule matches")
            fixture = svc.create_fixture(
                conn, req.league_id, req.team_a_id, req.team_b_id, req.scheduled_date, location=req.location
            )
        return fixture.to_dict()


@app.get("/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        with _domain_errors("fetch match"):
            return LeagueService().get_fixture(conn, match_id).to_dict()


@app.patch("/matches/{match_id}")
def update_match(
    match_id: str,
    req: UpdateMatchRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Update match details (no result here). Organizer only; not for completed or canceled matches."""
    uid = _require_user(user_id_from_token, "update a match")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("update match"):
            fixture = svc.get_fixture(conn, match_id)
            _require_organizer(svc.get_league(conn, fixture.league_id or ""), uid, "update match details")
            updated = svc.update_fixture_details(
                conn, match_id,
                scheduled_date=req.scheduled_date, location=req.location, notes=req.notes, status=req.status,
            )
            return updated.to_dict()


@app.post("/matches/{match_id}/result")
def submit_result(
    match_id: str,
    req: SubmitResultRequest,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Submit a result. Organizer or a member of either team; match must be scheduled or in progress."""
    uid = _require_user(user_id_from_token, "submit a result")
    with db_conn() as conn:
        svc = LeagueService()
        team_repo = TeamRepository()
        with _domain_errors("submit match result"):
            fixture = svc.get_fixture(conn, match_id)
            league = svc.get_league(conn, fixture.league_id or "")
            team_a = team_repo.get(conn, fixture.team_a_id)
            team_b = team_repo.get(conn, fixture.team_b_id)
            if team_a is None or team_b is None:
                raise HTTPException(status_code=404, detail="One or both teams not found")
            if league.organizer_id != uid and not team_a.has_member(uid) and not team_b.has_member(uid):
                raise HTTPException(
                    status_code=403, detail="Only league organizers or team members can submit results"
                )
            updated, standings = svc.submit_match_result(
                conn, match_id, req.team_a_score, req.team_b_score, submitted_by=uid, notes=req.notes
            )
        return {
            "match": updated.to_dict(),
            "rankings": [e.to_dict() for e in standings.ranking],
        }


# ---------- Rankings ----------


@app.get("/leagues/{league_id}/rankings")
def get_rankings(league_id: str) -> dict[str, Any]:
    """Standings sorted by rank."""
    with db_conn() as conn:
        with _domain_errors("fetch league rankings"):
            entries = LeagueService().get_standings(conn, league_id)
        return {"league_id": league_id, "rankings": [e.to_dict() for e in entries]}


@app.post("/leagues/{league_id}/rankings/recompute")
def recompute_rankings(
    league_id: str,
    user_id_from_token: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    """Rebuild standings from completed matches. Organizer only."""
    uid = _require_user(user_id_from_token, "recompute rankings")
    with db_conn() as conn:
        svc = LeagueService()
        with _domain_errors("recompute league rankings"):
            _require_organizer(svc.get_league(conn, league_id), uid, "recompute rankings")
            entries = svc.recompute_standings(conn, league_id)
        return {"league_id": league_id, "rankings": [e.to_dict() for e in entries]}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


# ---------- Run with: uvicorn padel_league.api:app --reload ----------
