"""
Data models for the padel league backend.
Domain objects only; no persistence or API logic.

League-centric architecture: teams register to leagues; a league's schedule is a
round-robin of fixtures; completed fixtures feed per-team standings entries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


# ---------- League status (state machine) ----------
class LeagueStatus(str, Enum):
    """League lifecycle: draft → registration → active → completed (or canceled)."""
    DRAFT = "draft"
    REGISTRATION = "registration"  # Accepting teams
    ACTIVE = "active"  # Matches in progress
    COMPLETED = "completed"
    CANCELED = "canceled"


# ---------- Fixture status ----------
class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    POSTPONED = "postponed"


class MatchFormat(str, Enum):
    BEST_OF_3 = "bestOf3"
    BEST_OF_5 = "bestOf5"
    SINGLE_SET = "singleSet"


# Statuses from which a result may be submitted
SUBMITTABLE_MATCH_STATUSES = frozenset({MatchStatus.SCHEDULED.value, MatchStatus.IN_PROGRESS.value})

# Statuses in which a league's schedule may be generated or cleared
SCHEDULABLE_LEAGUE_STATUSES = frozenset({LeagueStatus.DRAFT.value, LeagueStatus.REGISTRATION.value})


# ---------- User ----------
@dataclass
class User:
    """An account. password_hash is never plain text."""
    id: str
    username: str
    name: str
    created_at: datetime
    password_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """
    A padel pair. member_ids are the user accounts allowed to submit results
    on the team's behalf. The scheduling and standings core only needs the id.
    """
    id: str
    name: str
    created_by: str
    created_at: datetime
    is_active: bool = True
    member_ids: list[str] = field(default_factory=list)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_by": self.created_by,
            "is_active": self.is_active,
            "member_ids": list(self.member_ids),
            "created_at": self.created_at.isoformat(),
        }


# ---------- League ----------
@dataclass
class League:
    """
    Competition container. Owns its fixtures and standings entries.
    schedule_generated flips once the round-robin has been persisted.
    """
    id: str
    name: str
    organizer_id: str
    start_date: date
    end_date: date
    status: str  # LeagueStatus value
    created_at: datetime
    venue: str | None = None
    match_format: str = MatchFormat.BEST_OF_3.value
    points_per_win: int = 3
    points_per_loss: int = 0
    min_teams: int = 4
    max_teams: int = 16
    schedule_generated: bool = False
    registration_deadline: date | None = None  # last day teams may register

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "organizer_id": self.organizer_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "match_format": self.match_format,
            "points_per_win": self.points_per_win,
            "points_per_loss": self.points_per_loss,
            "min_teams": self.min_teams,
            "max_teams": self.max_teams,
            "schedule_generated": self.schedule_generated,
            "created_at": self.created_at.isoformat(),
        }
        if self.venue is not None:
            d["venue"] = self.venue
        if self.registration_deadline is not None:
            d["registration_deadline"] = self.registration_deadline.isoformat()
        return d


# ---------- MatchResult ----------
@dataclass(frozen=True)
class MatchResult:
    """
    Per-set games for each side, in play order. winner is optional on input;
    when present it must agree with the set count.
    """
    sets_a: tuple[int, ...]
    sets_b: tuple[int, ...]
    winner: str | None = None

    @classmethod
    def from_scores(cls, sets_a: list[int], sets_b: list[int], winner: str | None = None) -> "MatchResult":
        return cls(sets_a=tuple(sets_a), sets_b=tuple(sets_b), winner=winner)

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_a_score": list(self.sets_a),
            "team_b_score": list(self.sets_b),
            "winner": self.winner,
        }


# ---------- Fixture (league match) ----------
@dataclass
class Fixture:
    """
    A scheduled or played pairing of two teams within a league.
    id is None until the fixture has been persisted.
    """
    league_id: str | None
    team_a_id: str
    team_b_id: str
    scheduled_date: date
    status: str = MatchStatus.SCHEDULED.value
    location: str | None = None
    id: str | None = None
    result: MatchResult | None = None
    notes: str | None = None
    submitted_by: str | None = None
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "league_id": self.league_id,
            "team_a_id": self.team_a_id,
            "team_b_id": self.team_b_id,
            "scheduled_date": self.scheduled_date.isoformat(),
            "location": self.location,
            "status": self.status,
        }
        if self.result is not None:
            d["result"] = self.result.to_dict()
        if self.notes is not None:
            d["notes"] = self.notes
        if self.submitted_by is not None:
            d["submitted_by"] = self.submitted_by
        if self.actual_start_time is not None:
            d["actual_start_time"] = self.actual_start_time.isoformat()
        if self.actual_end_time is not None:
            d["actual_end_time"] = self.actual_end_time.isoformat()
        if self.created_at is not None:
            d["created_at"] = self.created_at.isoformat()
        return d


# ---------- StandingsEntry ----------
@dataclass(frozen=True)
class StandingsEntry:
    """
    One team's cumulative record in one league. Immutable snapshot: the
    standings engine builds a new entry for every update.
    """
    league_id: str
    team_id: str
    rank: int = 1
    matches_played: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    points: int = 0
    last_updated: datetime | None = None

    @property
    def win_percentage(self) -> float:
        if self.matches_played == 0:
            return 0.0
        return self.matches_won / self.matches_played * 100

    @property
    def set_differential(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def game_differential(self) -> int:
        return self.games_won - self.games_lost

    def to_dict(self) -> dict[str, Any]:
        return {
            "league_id": self.league_id,
            "team_id": self.team_id,
            "rank": self.rank,
            "matches_played": self.matches_played,
            "matches_won": self.matches_won,
            "matches_lost": self.matches_lost,
            "sets_won": self.sets_won,
            "sets_lost": self.sets_lost,
            "games_won": self.games_won,
            "games_lost": self.games_lost,
            "points": self.points,
            "win_percentage": round(self.win_percentage, 1),
            "set_differential": self.set_differential,
            "game_differential": self.game_differential,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
