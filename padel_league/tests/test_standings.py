"""
Tests for the standings engine: result validation, symmetric stat updates,
ranking order and persistence behaviour.
"""
from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone

import pytest

from padel_league.errors import InvalidResult, MatchStatusError, NoWinner, StorageFailure
from padel_league.models import Fixture, MatchResult, StandingsEntry
from padel_league.persistence.db import get_connection, init_db
from padel_league.persistence.repositories import StandingsRepository
from padel_league.services.standings import (
    StandingsEngine,
    rank_entries,
    record_result,
    validate_result,
)

LEAGUE = "league-1"
NOW = datetime(2025, 3, 10, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB with schema."""
    db_path = tmp_path / "standings_test.db"
    init_db(db_path=db_path)
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def engine():
    return StandingsEngine(clock=lambda: NOW)


def _result(a: list[int], b: list[int]) -> MatchResult:
    return MatchResult.from_scores(a, b)


# ---------- validate_result ----------


def test_validate_result_tally():
    tally = validate_result(_result([6, 4, 6], [3, 6, 2]))
    assert (tally.sets_won_a, tally.sets_won_b) == (2, 1)
    assert (tally.games_won_a, tally.games_won_b) == (16, 11)
    assert tally.a_won is True


@pytest.mark.parametrize(
    "sets_a, sets_b",
    [
        ([6, 6], [6, 6]),  # tied sets
        ([6, 4, 7], [4, 6, 7]),  # one tied set
        ([6, 4], [3]),  # mismatched lengths
        ([], []),  # zero sets
        ([6, -1], [3, 6]),  # negative score
    ],
)
def test_validate_result_rejects(sets_a, sets_b):
    with pytest.raises(InvalidResult):
        validate_result(_result(sets_a, sets_b))


def test_tied_set_count_is_no_winner():
    with pytest.raises(NoWinner):
        validate_result(_result([6, 3], [4, 6]))
    assert issubclass(NoWinner, InvalidResult)


def test_declared_winner_must_match_sets():
    result = MatchResult.from_scores([6, 6], [2, 3], winner="B")
    with pytest.raises(InvalidResult):
        validate_result(result, "A", "B")
    ok = MatchResult.from_scores([6, 6], [2, 3], winner="A")
    assert validate_result(ok, "A", "B").a_won


# ---------- pure transformations ----------


def test_record_result_returns_new_snapshot():
    entry = StandingsEntry(league_id=LEAGUE, team_id="A")
    updated = record_result(entry, True, 2, 1, 16, 11, 3, 0, NOW)
    assert entry.matches_played == 0
    assert updated.matches_played == 1
    assert updated.matches_won == 1 and updated.matches_lost == 0
    assert updated.points == 3
    assert updated.last_updated == NOW


def test_rank_entries_tie_broken_by_matches_won():
    """Points [9, 9, 6] and wins [3, 2, 2] rank 1, 2, 3 in listed order."""
    entries = [
        StandingsEntry(league_id=LEAGUE, team_id="z", points=9, matches_won=3),
        StandingsEntry(league_id=LEAGUE, team_id="y", points=9, matches_won=2),
        StandingsEntry(league_id=LEAGUE, team_id="x", points=6, matches_won=2),
    ]
    ranked = rank_entries(reversed(entries))
    assert [e.team_id for e in ranked] == ["z", "y", "x"]
    assert [e.rank for e in ranked] == [1, 2, 3]


def test_rank_entries_exact_tie_ordered_by_team_id():
    entries = [
        StandingsEntry(league_id=LEAGUE, team_id="m", points=3, matches_won=1),
        StandingsEntry(league_id=LEAGUE, team_id="b", points=3, matches_won=1),
    ]
    assert [e.team_id for e in rank_entries(entries)] == ["b", "m"]


def test_derived_values():
    entry = StandingsEntry(
        league_id=LEAGUE, team_id="A", matches_played=4, matches_won=3,
        sets_won=7, sets_lost=3, games_won=50, games_lost=41,
    )
    assert entry.win_percentage == 75.0
    assert entry.set_differential == 4
    assert entry.game_differential == 9
    assert StandingsEntry(league_id=LEAGUE, team_id="B").win_percentage == 0.0


# ---------- StandingsEngine ----------


def test_apply_match_result_symmetric(db_conn, engine):
    """A beats B 6-3 4-6 6-2: one win and one loss, sets and games mirrored."""
    update = engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6, 4, 6], [3, 6, 2]), 3, 1)
    a, b = update.entry_a, update.entry_b
    assert (a.matches_played, a.matches_won, a.matches_lost) == (1, 1, 0)
    assert (b.matches_played, b.matches_won, b.matches_lost) == (1, 0, 1)
    assert (a.sets_won, a.sets_lost, b.sets_won, b.sets_lost) == (2, 1, 1, 2)
    assert (a.games_won, a.games_lost) == (16, 11)
    assert (b.games_won, b.games_lost) == (11, 16)
    assert a.points == 3 and b.points == 1
    assert a.rank == 1 and b.rank == 2
    assert a.last_updated == NOW


def test_entries_persisted_and_created_lazily(db_conn, engine):
    repo = StandingsRepository()
    assert repo.get(db_conn, LEAGUE, "A") is None
    engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6, 6], [1, 2]), 3, 0)
    stored_a = repo.get(db_conn, LEAGUE, "A")
    stored_b = repo.get(db_conn, LEAGUE, "B")
    assert stored_a is not None and stored_a.matches_won == 1 and stored_a.rank == 1
    assert stored_b is not None and stored_b.matches_lost == 1 and stored_b.rank == 2
    assert stored_a.last_updated == NOW


def test_invalid_result_writes_nothing(db_conn, engine):
    with pytest.raises(InvalidResult):
        engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6, 6], [6, 6]), 3, 0)
    assert StandingsRepository().list_by_league(db_conn, LEAGUE) == []


def test_same_team_rejected(db_conn, engine):
    with pytest.raises(InvalidResult):
        engine.apply_match_result(db_conn, LEAGUE, "A", "A", _result([6], [3]), 3, 0)


def test_no_duplicate_detection(db_conn, engine):
    """Applying the same result twice counts it twice; callers gate on match status."""
    result = _result([6, 6], [3, 4])
    engine.apply_match_result(db_conn, LEAGUE, "A", "B", result, 3, 0)
    update = engine.apply_match_result(db_conn, LEAGUE, "A", "B", result, 3, 0)
    assert update.entry_a.matches_played == 2
    assert update.entry_a.points == 6
    assert update.entry_b.matches_lost == 2


def test_rerank_moves_teams_not_in_the_match(db_conn, engine):
    engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6, 6], [1, 1]), 3, 0)
    engine.apply_match_result(db_conn, LEAGUE, "C", "B", _result([6, 6], [1, 1]), 3, 0)
    ranks = {e.team_id: e.rank for e in engine.get_standings(db_conn, LEAGUE)}
    assert ranks == {"A": 1, "C": 2, "B": 3}

    update = engine.apply_match_result(db_conn, LEAGUE, "C", "A", _result([6, 6], [4, 4]), 3, 0)
    assert [e.team_id for e in update.ranking] == ["C", "A", "B"]
    stored = engine.get_standings(db_conn, LEAGUE)
    assert [(e.team_id, e.rank) for e in stored] == [("C", 1), ("A", 2), ("B", 3)]


def test_leagues_are_independent(db_conn, engine):
    engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6], [0]), 3, 0)
    engine.apply_match_result(db_conn, "league-2", "B", "A", _result([6], [0]), 3, 0)
    assert engine.get_standings(db_conn, LEAGUE)[0].team_id == "A"
    assert engine.get_standings(db_conn, "league-2")[0].team_id == "B"


def test_apply_fixture_result_refuses_completed(db_conn, engine):
    fixture = Fixture(
        league_id=LEAGUE, team_a_id="A", team_b_id="B",
        scheduled_date=date(2025, 3, 1), status="completed", id="m1",
    )
    with pytest.raises(MatchStatusError):
        engine.apply_fixture_result(db_conn, fixture, _result([6], [2]), 3, 0)
    assert StandingsRepository().list_by_league(db_conn, LEAGUE) == []


def test_apply_fixture_result_accepts_in_progress(db_conn, engine):
    fixture = Fixture(
        league_id=LEAGUE, team_a_id="A", team_b_id="B",
        scheduled_date=date(2025, 3, 1), status="in_progress", id="m1",
    )
    update = engine.apply_fixture_result(db_conn, fixture, _result([2, 6, 3], [6, 4, 6]), 3, 1)
    assert update.entry_b.matches_won == 1
    assert update.entry_a.points == 1


class _FailingRankRepository(StandingsRepository):
    def update_rank(self, conn, league_id, team_id, rank):
        raise sqlite3.OperationalError("disk I/O error")


def test_storage_failure_during_rerank_is_not_rolled_back(db_conn):
    engine = StandingsEngine(standings_repo=_FailingRankRepository(), clock=lambda: NOW)
    with pytest.raises(StorageFailure):
        engine.apply_match_result(db_conn, LEAGUE, "A", "B", _result([6], [2]), 3, 0)
    # stats saved before the failure stay saved
    stored = StandingsRepository().get(db_conn, LEAGUE, "A")
    assert stored is not None and stored.matches_won == 1


def test_recompute_standings_from_fixtures(db_conn, engine):
    def done(mid, a, b, sa, sb):
        return Fixture(
            league_id=LEAGUE, team_a_id=a, team_b_id=b, scheduled_date=date(2025, 3, 1),
            status="completed", id=mid, result=MatchResult.from_scores(sa, sb),
        )

    fixtures = [
        done("m1", "A", "B", [6, 6], [2, 3]),
        done("m2", "B", "C", [6, 3, 6], [4, 6, 1]),
        Fixture(league_id=LEAGUE, team_a_id="A", team_b_id="C", scheduled_date=date(2025, 3, 2), id="m3"),
    ]
    # stale data that the rebuild must discard
    engine.apply_match_result(db_conn, LEAGUE, "C", "A", _result([6], [0]), 3, 0)

    ranking = engine.recompute_standings(db_conn, LEAGUE, fixtures, 3, 0)
    by_team = {e.team_id: e for e in ranking}
    assert by_team["A"].matches_played == 1 and by_team["A"].points == 3
    assert by_team["B"].matches_played == 2 and by_team["B"].points == 3
    assert by_team["C"].matches_played == 1 and by_team["C"].points == 0
    # A and B tie on points and wins; team id decides
    assert [e.team_id for e in ranking] == ["A", "B", "C"]
    assert [e.team_id for e in engine.get_standings(db_conn, LEAGUE)] == ["A", "B", "C"]
