"""
League-centric service: state machines, guards, scheduling and result workflows.
Generate schedule: round-robin over registered teams. Submit result: complete the
fixture and feed the standings engine.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable

from padel_league.errors import (
    LeagueTransitionError,
    MatchStatusError,
    NotFoundError,
    RegistrationError,
    ScheduleError,
)
from padel_league.models import (
    SCHEDULABLE_LEAGUE_STATUSES,
    SUBMITTABLE_MATCH_STATUSES,
    Fixture,
    League,
    LeagueStatus,
    MatchResult,
    MatchStatus,
    StandingsEntry,
    Team,
)
from padel_league.persistence.db import storage_errors
from padel_league.persistence.repositories import (
    FixtureRepository,
    LeagueRepository,
    TeamRepository,
)
from padel_league.services.scheduling import generate_schedule
from padel_league.services.standings import StandingsEngine, StandingsUpdate, validate_result

logger = logging.getLogger(__name__)


# ---------- Valid transitions ----------

_VALID_LEAGUE_TRANSITIONS: dict[str, set[str]] = {
    LeagueStatus.DRAFT.value: {LeagueStatus.REGISTRATION.value, LeagueStatus.ACTIVE.value, LeagueStatus.CANCELED.value},
    LeagueStatus.REGISTRATION.value: {LeagueStatus.ACTIVE.value, LeagueStatus.CANCELED.value},
    LeagueStatus.ACTIVE.value: {LeagueStatus.COMPLETED.value, LeagueStatus.CANCELED.value},
    LeagueStatus.COMPLETED.value: set(),
    LeagueStatus.CANCELED.value: set(),
}

# completed is reached only through submit_match_result
_VALID_MATCH_TRANSITIONS: dict[str, set[str]] = {
    MatchStatus.SCHEDULED.value: {MatchStatus.IN_PROGRESS.value, MatchStatus.POSTPONED.value, MatchStatus.CANCELED.value},
    MatchStatus.IN_PROGRESS.value: {MatchStatus.POSTPONED.value, MatchStatus.CANCELED.value},
    MatchStatus.POSTPONED.value: {MatchStatus.SCHEDULED.value, MatchStatus.CANCELED.value},
    MatchStatus.COMPLETED.value: set(),
    MatchStatus.CANCELED.value: set(),
}


def _status_value(status: str) -> str:
    """Accept either an enum member or its raw string."""
    return status.value if isinstance(status, Enum) else status


def is_valid_match_transition(current: str, new: str) -> bool:
    return _status_value(new) in _VALID_MATCH_TRANSITIONS.get(_status_value(current), set())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- LeagueService ----------


class LeagueService:
    """
    Domain logic for leagues: status transitions, registration, schedule and results.
    Persistence is delegated to repositories, which may be injected.
    """

    def __init__(
        self,
        league_repo: LeagueRepository | None = None,
        team_repo: TeamRepository | None = None,
        fixture_repo: FixtureRepository | None = None,
        standings_engine: StandingsEngine | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._league_repo = league_repo or LeagueRepository()
        self._team_repo = team_repo or TeamRepository()
        self._fixture_repo = fixture_repo or FixtureRepository()
        self._standings = standings_engine or StandingsEngine()
        self._clock = clock

    # ---------- Lookups ----------

    def get_league(self, conn: sqlite3.Connection, league_id: str) -> League:
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError("League", league_id)
        return league

    def get_fixture(self, conn: sqlite3.Connection, match_id: str) -> Fixture:
        fixture = self._fixture_repo.get(conn, match_id)
        if fixture is None:
            raise NotFoundError("Match", match_id)
        return fixture

    # ---------- League status ----------

    def transition_league_status(self, conn: sqlite3.Connection, league_id: str, new_status: str) -> None:
        """
        Transition league to new_status if valid.
        Valid: draft -> registration -> active -> completed; any open state -> canceled.
        """
        league = self.get_league(conn, league_id)
        current = league.status
        new_status = _status_value(new_status)
        allowed = _VALID_LEAGUE_TRANSITIONS.get(current, set())
        if new_status not in allowed:
            raise LeagueTransitionError(
                f"Invalid transition: {current} -> {new_status}. Allowed from {current}: {sorted(allowed)}"
            )
        if new_status == LeagueStatus.ACTIVE.value:
            registered = len(self._league_repo.list_team_ids(conn, league_id))
            if registered < league.min_teams:
                raise LeagueTransitionError(
                    f"League must have at least {league.min_teams} teams to be activated (has {registered})"
                )
        self._league_repo.update_status(conn, league_id, new_status)
        logger.info("League %s: %s -> %s", league_id, current, new_status)

    # ---------- Registration ----------

    def register_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        """
        Add a team to a league that is still in draft or registration, not full and
        not past its registration deadline.
        """
        league = self.get_league(conn, league_id)
        if league.status not in SCHEDULABLE_LEAGUE_STATUSES:
            raise RegistrationError(f"League is not accepting teams (current: {league.status})")
        if league.registration_deadline is not None and self._clock().date() > league.registration_deadline:
            raise RegistrationError("Registration deadline has passed")
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        if not team.is_active:
            raise RegistrationError(f"Team {team_id} is not active")
        if self._league_repo.has_team(conn, league_id, team_id):
            raise RegistrationError("Team is already registered in this league")
        if len(self._league_repo.list_team_ids(conn, league_id)) >= league.max_teams:
            raise RegistrationError("League is full")
        self._league_repo.add_team(conn, league_id, team_id)

    def unregister_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        """Withdraw a team before the league starts. A generated schedule must be cleared first."""
        league = self.get_league(conn, league_id)
        if league.status not in SCHEDULABLE_LEAGUE_STATUSES:
            raise RegistrationError("Teams cannot be removed once the league is active or completed")
        if self._team_repo.get(conn, team_id) is None:
            raise NotFoundError("Team", team_id)
        if not self._league_repo.has_team(conn, league_id, team_id):
            raise RegistrationError("Team is not in this league")
        if league.schedule_generated:
            raise RegistrationError("Clear the league schedule before removing teams")
        self._league_repo.remove_team(conn, league_id, team_id)
        logger.info("League %s: team %s withdrawn", league_id, team_id)

    def list_league_teams(self, conn: sqlite3.Connection, league_id: str) -> list[Team]:
        """Registered teams in registration order."""
        self.get_league(conn, league_id)
        teams = [self._team_repo.get(conn, tid) for tid in self._league_repo.list_team_ids(conn, league_id)]
        return [t for t in teams if t is not None]

    # ---------- Schedule ----------

    def generate_league_schedule(self, conn: sqlite3.Connection, league_id: str) -> list[Fixture]:
        """
        Generate and persist the round-robin for the league's registered teams, then
        mark the schedule as generated. League must be in draft or registration with
        no fixtures yet.
        """
        league = self.get_league(conn, league_id)
        if league.status not in SCHEDULABLE_LEAGUE_STATUSES:
            raise LeagueTransitionError(
                f"Schedule can only be generated for leagues in draft or registration status (current: {league.status})"
            )
        if league.schedule_generated or self._fixture_repo.count_by_league(conn, league_id) > 0:
            raise ScheduleError("Schedule already exists for this league")
        team_ids = self._league_repo.list_team_ids(conn, league_id)
        fixtures = generate_schedule(
            team_ids, league.start_date, league.end_date, venue=league.venue, league_id=league_id
        )
        with storage_errors(f"persisting schedule for league {league_id}"):
            created = self._fixture_repo.create_many(conn, fixtures)
            self._league_repo.set_schedule_generated(conn, league_id, True)
        logger.info("League %s: schedule of %d fixtures persisted", league_id, len(created))
        return created

    def clear_league_schedule(self, conn: sqlite3.Connection, league_id: str) -> int:
        """Delete every fixture of a league that has not started yet. Returns the number deleted."""
        league = self.get_league(conn, league_id)
        if league.status not in SCHEDULABLE_LEAGUE_STATUSES:
            raise LeagueTransitionError(
                f"Schedule can only be cleared for leagues in draft or registration status (current: {league.status})"
            )
        deleted = self._fixture_repo.delete_by_league(conn, league_id)
        self._league_repo.set_schedule_generated(conn, league_id, False)
        logger.info("League %s: schedule cleared (%d fixtures)", league_id, deleted)
        return deleted

    def list_schedule(self, conn: sqlite3.Connection, league_id: str) -> list[Fixture]:
        self.get_league(conn, league_id)
        return self._fixture_repo.list_by_league(conn, league_id)

    # ---------- Fixtures ----------

    def create_fixture(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        team_a_id: str,
        team_b_id: str,
        scheduled_date: date,
        location: str | None = None,
    ) -> Fixture:
        """Schedule one extra match between two registered teams of an open or running league."""
        league = self.get_league(conn, league_id)
        if league.status not in SCHEDULABLE_LEAGUE_STATUSES | {LeagueStatus.ACTIVE.value}:
            raise LeagueTransitionError(
                f"Cannot schedule matches for leagues that are not in draft, registration, or active status "
                f"(current: {league.status})"
            )
        if team_a_id == team_b_id:
            raise ScheduleError("Teams must be different")
        for team_id in (team_a_id, team_b_id):
            if self._team_repo.get(conn, team_id) is None:
                raise NotFoundError("Team", team_id)
        registered = set(self._league_repo.list_team_ids(conn, league_id))
        if team_a_id not in registered or team_b_id not in registered:
            raise ScheduleError("Both teams must be registered for the league")
        fixture = Fixture(
            league_id=league_id,
            team_a_id=team_a_id,
            team_b_id=team_b_id,
            scheduled_date=scheduled_date,
            location=location if location is not None else league.venue,
        )
        created = self._fixture_repo.create_many(conn, [fixture])[0]
        logger.info("League %s: match %s scheduled (%s vs %s)", league_id, created.id, team_a_id, team_b_id)
        return created

    def update_fixture_details(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        scheduled_date: date | None = None,
        location: str | None = None,
        notes: str | None = None,
        status: str | None = None,
    ) -> Fixture:
        """
        Reschedule or annotate a fixture that has not been completed or canceled,
        optionally moving its status too. Nothing is written unless every change is valid.
        """
        fixture = self.get_fixture(conn, match_id)
        if fixture.status in (MatchStatus.COMPLETED.value, MatchStatus.CANCELED.value):
            raise MatchStatusError("Cannot update matches that are completed or canceled")
        if status is not None:
            status = _status_value(status)
            self._check_match_transition(fixture, status)
        self._fixture_repo.update_details(
            conn, match_id, scheduled_date=scheduled_date, location=location, notes=notes
        )
        if status is not None:
            self._write_match_status(conn, fixture, status)
        return self.get_fixture(conn, match_id)

    def transition_match_status(self, conn: sqlite3.Connection, match_id: str, new_status: str) -> Fixture:
        """
        Move a fixture along its lifecycle. Starting records the start time; cancelling
        drops any partial result. Completion goes through submit_match_result.
        """
        fixture = self.get_fixture(conn, match_id)
        new_status = _status_value(new_status)
        self._check_match_transition(fixture, new_status)
        self._write_match_status(conn, fixture, new_status)
        return self.get_fixture(conn, match_id)

    def _check_match_transition(self, fixture: Fixture, new_status: str) -> None:
        if not is_valid_match_transition(fixture.status, new_status):
            raise MatchStatusError(f"Invalid status transition from {fixture.status} to {new_status}")

    def _write_match_status(self, conn: sqlite3.Connection, fixture: Fixture, new_status: str) -> None:
        match_id = fixture.id or ""
        started = self._clock() if new_status == MatchStatus.IN_PROGRESS.value else None
        self._fixture_repo.update_status(conn, match_id, new_status, actual_start_time=started)
        if new_status == MatchStatus.CANCELED.value:
            self._fixture_repo.clear_result(conn, match_id)
        logger.info("Match %s: %s -> %s", match_id, fixture.status, new_status)

    def submit_match_result(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        sets_a: list[int],
        sets_b: list[int],
        submitted_by: str | None = None,
        notes: str | None = None,
    ) -> tuple[Fixture, StandingsUpdate]:
        """
        Record a result for a scheduled or in-progress fixture and update standings.
        The fixture is completed only after validation passes, and before standings
        change: a failed completion leaves standings untouched, and a standings failure
        after completion is repaired with recompute_standings, never by resubmitting.
        """
        fixture = self.get_fixture(conn, match_id)
        league = self.get_league(conn, fixture.league_id or "")
        if fixture.status not in SUBMITTABLE_MATCH_STATUSES:
            raise MatchStatusError("Results can only be submitted for scheduled or in-progress matches")
        tally = validate_result(MatchResult.from_scores(sets_a, sets_b))
        winner = fixture.team_a_id if tally.a_won else fixture.team_b_id
        result = MatchResult.from_scores(sets_a, sets_b, winner=winner)

        with storage_errors(f"completing match {match_id}"):
            self._fixture_repo.save_result(conn, match_id, result, submitted_by, self._clock(), notes=notes)
        # fixture still holds the pre-completion status the engine gates on
        update = self._standings.apply_fixture_result(
            conn, fixture, result, league.points_per_win, league.points_per_loss
        )
        return self.get_fixture(conn, match_id), update

    # ---------- Standings ----------

    def get_standings(self, conn: sqlite3.Connection, league_id: str) -> list[StandingsEntry]:
        self.get_league(conn, league_id)
        return self._standings.get_standings(conn, league_id)

    def recompute_standings(self, conn: sqlite3.Connection, league_id: str) -> list[StandingsEntry]:
        """Rebuild standings from the league's completed fixtures."""
        league = self.get_league(conn, league_id)
        fixtures = self._fixture_repo.list_by_league(conn, league_id)
        return self._standings.recompute_standings(
            conn, league_id, fixtures, league.points_per_win, league.points_per_loss
        )
