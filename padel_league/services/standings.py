"""
Standings engine: turns one completed match into updated standings entries and a
fresh league ranking.

Every step is a pure function over immutable StandingsEntry snapshots except the
engine methods, which load, transform and persist through an injected
StandingsRepository. Validation happens before the first write; storage errors
surface as StorageFailure and are not rolled back (callers that need atomicity
wrap the call in their own transaction).

The engine does not detect duplicate submissions: applying the same result twice
counts it twice. Callers gate on the fixture status (see apply_fixture_result).
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterable

from padel_league.errors import InvalidResult, MatchStatusError, NoWinner
from padel_league.models import (
    SUBMITTABLE_MATCH_STATUSES,
    Fixture,
    MatchResult,
    MatchStatus,
    StandingsEntry,
)
from padel_league.persistence.db import storage_errors
from padel_league.persistence.repositories import StandingsRepository

logger = logging.getLogger(__name__)


# ---------- Result validation ----------


@dataclass(frozen=True)
class SetTally:
    """Set and game totals for both sides of one validated result."""
    sets_won_a: int
    sets_won_b: int
    games_won_a: int
    games_won_b: int

    @property
    def a_won(self) -> bool:
        return self.sets_won_a > self.sets_won_b


def _is_score(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_result(
    result: MatchResult, team_a_id: str | None = None, team_b_id: str | None = None
) -> SetTally:
    """
    Check the result rules and return its tally.
    Raises InvalidResult for mismatched set counts, zero sets, bad scores, a tied set
    or a declared winner that disagrees with the sets; NoWinner for a tie in sets.
    """
    sets_a, sets_b = list(result.sets_a), list(result.sets_b)
    if len(sets_a) != len(sets_b):
        raise InvalidResult("Scores must have the same number of sets")
    if not sets_a:
        raise InvalidResult("At least one set must be played")
    if not all(_is_score(s) for s in sets_a + sets_b):
        raise InvalidResult("Set scores must be non-negative integers")

    won_a = won_b = 0
    for a, b in zip(sets_a, sets_b):
        if a == b:
            raise InvalidResult("Ties are not allowed in sets")
        if a > b:
            won_a += 1
        else:
            won_b += 1
    if won_a == won_b:
        raise NoWinner("Match must have a winner")

    tally = SetTally(
        sets_won_a=won_a,
        sets_won_b=won_b,
        games_won_a=sum(sets_a),
        games_won_b=sum(sets_b),
    )
    if result.winner is not None and team_a_id is not None and team_b_id is not None:
        expected = team_a_id if tally.a_won else team_b_id
        if result.winner != expected:
            raise InvalidResult(f"Declared winner {result.winner} does not match set scores")
    return tally


# ---------- Pure transformations ----------


def record_result(
    entry: StandingsEntry,
    won: bool,
    sets_won: int,
    sets_lost: int,
    games_won: int,
    games_lost: int,
    points_per_win: int,
    points_per_loss: int,
    now: datetime,
) -> StandingsEntry:
    """Return entry with one more match played from this side's point of view."""
    return replace(
        entry,
        matches_played=entry.matches_played + 1,
        matches_won=entry.matches_won + (1 if won else 0),
        matches_lost=entry.matches_lost + (0 if won else 1),
        points=entry.points + (points_per_win if won else points_per_loss),
        sets_won=entry.sets_won + sets_won,
        sets_lost=entry.sets_lost + sets_lost,
        games_won=entry.games_won + games_won,
        games_lost=entry.games_lost + games_lost,
        last_updated=now,
    )


def apply_tally(
    entry_a: StandingsEntry,
    entry_b: StandingsEntry,
    tally: SetTally,
    points_per_win: int,
    points_per_loss: int,
    now: datetime,
) -> tuple[StandingsEntry, StandingsEntry]:
    """Apply one match to both sides from the same tally: one win and one loss in total."""
    new_a = record_result(
        entry_a, tally.a_won,
        tally.sets_won_a, tally.sets_won_b, tally.games_won_a, tally.games_won_b,
        points_per_win, points_per_loss, now,
    )
    new_b = record_result(
        entry_b, not tally.a_won,
        tally.sets_won_b, tally.sets_won_a, tally.games_won_b, tally.games_won_a,
        points_per_win, points_per_loss, now,
    )
    return new_a, new_b


def ranking_key(entry: StandingsEntry) -> tuple[int, int, str]:
    # points desc, matches won desc, then team id for a deterministic order
    return (-entry.points, -entry.matches_won, entry.team_id)


def rank_entries(entries: Iterable[StandingsEntry]) -> list[StandingsEntry]:
    """Sort entries into league order and number them 1..N."""
    ordered = sorted(entries, key=ranking_key)
    return [replace(e, rank=i) for i, e in enumerate(ordered, start=1)]


@dataclass(frozen=True)
class StandingsUpdate:
    """What one applied result produced: both updated entries and the league ranking."""
    entry_a: StandingsEntry
    entry_b: StandingsEntry
    ranking: list[StandingsEntry]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- StandingsEngine ----------


class StandingsEngine:
    """
    Applies completed results to a league's standings.
    Persistence is delegated to the injected repository.
    """

    def __init__(
        self,
        standings_repo: StandingsRepository | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._standings_repo = standings_repo or StandingsRepository()
        self._clock = clock

    def apply_match_result(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        team_a_id: str,
        team_b_id: str,
        result: MatchResult,
        points_per_win: int,
        points_per_loss: int,
    ) -> StandingsUpdate:
        """
        Validate result, update both teams' entries (created zeroed when missing),
        persist them, then re-rank and persist the whole league.
        """
        if team_a_id == team_b_id:
            raise InvalidResult("A team cannot play itself")
        if points_per_win < 0 or points_per_loss < 0:
            raise ValueError("Points per win and per loss must be non-negative")
        tally = validate_result(result, team_a_id, team_b_id)

        now = self._clock()
        with storage_errors(f"standings update for league {league_id}"):
            entry_a = self._load_or_zero(conn, league_id, team_a_id)
            entry_b = self._load_or_zero(conn, league_id, team_b_id)
            new_a, new_b = apply_tally(entry_a, entry_b, tally, points_per_win, points_per_loss, now)
            self._standings_repo.save(conn, new_a)
            self._standings_repo.save(conn, new_b)
            ranking = self._rerank(conn, league_id)

        by_team = {e.team_id: e for e in ranking}
        winner = team_a_id if tally.a_won else team_b_id
        logger.info(
            "League %s: %s beat %s (%d-%d in sets); %d teams re-ranked",
            league_id, winner, team_b_id if tally.a_won else team_a_id,
            max(tally.sets_won_a, tally.sets_won_b), min(tally.sets_won_a, tally.sets_won_b),
            len(ranking),
        )
        return StandingsUpdate(entry_a=by_team[team_a_id], entry_b=by_team[team_b_id], ranking=ranking)

    def apply_fixture_result(
        self,
        conn: sqlite3.Connection,
        fixture: Fixture,
        result: MatchResult,
        points_per_win: int,
        points_per_loss: int,
    ) -> StandingsUpdate:
        """apply_match_result for a stored fixture, refusing fixtures that cannot take a result."""
        if fixture.status not in SUBMITTABLE_MATCH_STATUSES:
            raise MatchStatusError(
                f"Results can only be submitted for scheduled or in-progress matches (current: {fixture.status})"
            )
        if fixture.league_id is None:
            raise MatchStatusError("Fixture is not attached to a league")
        return self.apply_match_result(
            conn, fixture.league_id, fixture.team_a_id, fixture.team_b_id,
            result, points_per_win, points_per_loss,
        )

    def get_standings(self, conn: sqlite3.Connection, league_id: str) -> list[StandingsEntry]:
        with storage_errors(f"reading standings for league {league_id}"):
            return self._standings_repo.list_by_league(conn, league_id)

    def recompute_standings(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        fixtures: Iterable[Fixture],
        points_per_win: int,
        points_per_loss: int,
    ) -> list[StandingsEntry]:
        """
        Rebuild the league's standings from scratch out of its completed fixtures.
        Fixtures without a valid stored result are skipped.
        """
        now = self._clock()
        entries: dict[str, StandingsEntry] = {}
        for f in fixtures:
            if f.status != MatchStatus.COMPLETED.value or f.result is None:
                continue
            try:
                tally = validate_result(f.result, f.team_a_id, f.team_b_id)
            except InvalidResult as e:
                logger.warning("Skipping fixture %s during recompute: %s", f.id, e)
                continue
            a = entries.get(f.team_a_id) or StandingsEntry(league_id=league_id, team_id=f.team_a_id)
            b = entries.get(f.team_b_id) or StandingsEntry(league_id=league_id, team_id=f.team_b_id)
            entries[f.team_a_id], entries[f.team_b_id] = apply_tally(
                a, b, tally, points_per_win, points_per_loss, now
            )
        ranking = rank_entries(entries.values())
        with storage_errors(f"recomputing standings for league {league_id}"):
            self._standings_repo.delete_by_league(conn, league_id)
            for entry in ranking:
                self._standings_repo.save(conn, entry)
        logger.info("League %s: standings rebuilt for %d teams", league_id, len(ranking))
        return ranking

    def _load_or_zero(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> StandingsEntry:
        existing = self._standings_repo.get(conn, league_id, team_id)
        if existing is not None:
            return existing
        return StandingsEntry(league_id=league_id, team_id=team_id)

    def _rerank(self, conn: sqlite3.Connection, league_id: str) -> list[StandingsEntry]:
        ranking = rank_entries(self._standings_repo.list_by_league(conn, league_id))
        for entry in ranking:
            self._standings_repo.update_rank(conn, league_id, entry.team_id, entry.rank)
        return ranking
