"""
Repository interfaces for padel league data.
No business logic, only read/write operations. Each call takes the
connection so the caller decides the transaction scope.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import date, datetime, timezone

from padel_league.models import (
    Fixture,
    League,
    LeagueStatus,
    MatchFormat,
    MatchResult,
    MatchStatus,
    StandingsEntry,
    Team,
    User,
)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------- UserRepository ----------


class UserRepository:
    """Accounts for login. password_hash is stored, never the password."""

    def create_with_password(
        self, conn: sqlite3.Connection, username: str, password_hash: str, name: str | None = None
    ) -> User:
        uid = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        display_name = name or username
        conn.execute(
            "INSERT INTO users (id, username, name, password_hash, created_at) VALUES (?, ?, ?, ?, ?)",
            (uid, username, display_name, password_hash, now),
        )
        conn.commit()
        return User(
            id=uid, username=username, name=display_name,
            created_at=datetime.fromisoformat(now), password_hash=password_hash,
        )

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, name, password_hash, created_at FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        return _row_to_user(row) if row else None


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        name=row["name"],
        created_at=_parse_datetime(row["created_at"]),
        password_hash=row["password_hash"],
    )


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams and their member accounts."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        created_by: str,
        member_ids: list[str] | None = None,
        id: str | None = None,
    ) -> Team:
        tid = id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        members = list(member_ids or [])
        conn.execute(
            "INSERT INTO teams (id, name, created_by, is_active, created_at) VALUES (?, ?, ?, 1, ?)",
            (tid, name, created_by, now),
        )
        for pos, uid in enumerate(members, start=1):
            conn.execute(
                "INSERT INTO team_members (team_id, user_id, position) VALUES (?, ?, ?)",
                (tid, uid, pos),
            )
        conn.commit()
        return Team(
            id=tid, name=name, created_by=created_by,
            created_at=datetime.fromisoformat(now), member_ids=members,
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(
            "SELECT id, name, created_by, is_active, created_at FROM teams WHERE id = ?",
            (team_id,),
        ).fetchone()
        if row is None:
            return None
        return Team(
            id=row["id"],
            name=row["name"],
            created_by=row["created_by"],
            created_at=_parse_datetime(row["created_at"]),
            is_active=bool(row["is_active"]),
            member_ids=self.get_member_ids(conn, team_id),
        )

    def get_member_ids(self, conn: sqlite3.Connection, team_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT user_id FROM team_members WHERE team_id = ? ORDER BY position",
            (team_id,),
        ).fetchall()
        return [r["user_id"] for r in rows]

    def set_active(self, conn: sqlite3.Connection, team_id: str, is_active: bool) -> None:
        conn.execute("UPDATE teams SET is_active = ? WHERE id = ?", (1 if is_active else 0, team_id))
        conn.commit()


# ---------- LeagueRepository ----------


_LEAGUE_COLS = (
    "id, name, organizer_id, start_date, end_date, venue, status, match_format, "
    "points_per_win, points_per_loss, min_teams, max_teams, schedule_generated, created_at, "
    "registration_deadline"
)


class LeagueRepository:
    """CRUD for leagues and their registered teams. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        organizer_id: str,
        start_date: date,
        end_date: date,
        venue: str | None = None,
        match_format: str = MatchFormat.BEST_OF_3.value,
        points_per_win: int = 3,
        points_per_loss: int = 0,
        min_teams: int = 4,
        max_teams: int = 16,
        registration_deadline: date | None = None,
        id: str | None = None,
    ) -> League:
        lid = id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            f"INSERT INTO leagues ({_LEAGUE_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)",
            (
                lid, name, organizer_id, start_date.isoformat(), end_date.isoformat(), venue,
                LeagueStatus.DRAFT.value, match_format, points_per_win, points_per_loss,
                min_teams, max_teams, now,
                registration_deadline.isoformat() if registration_deadline else None,
            ),
        )
        conn.commit()
        return self.get(conn, lid)  # type: ignore[return-value]

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(f"SELECT {_LEAGUE_COLS} FROM leagues WHERE id = ?", (league_id,)).fetchone()
        return _row_to_league(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[League]:
        rows = conn.execute(f"SELECT {_LEAGUE_COLS} FROM leagues ORDER BY created_at").fetchall()
        return [_row_to_league(r) for r in rows]

    def update_status(self, conn: sqlite3.Connection, league_id: str, status: str) -> None:
        conn.execute("UPDATE leagues SET status = ? WHERE id = ?", (status, league_id))
        conn.commit()

    def set_schedule_generated(self, conn: sqlite3.Connection, league_id: str, generated: bool) -> None:
        conn.execute(
            "UPDATE leagues SET schedule_generated = ? WHERE id = ?",
            (1 if generated else 0, league_id),
        )
        conn.commit()

    def add_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            """INSERT INTO league_teams (league_id, team_id, position, joined_at)
               VALUES (?, ?, (SELECT COALESCE(MAX(position), 0) + 1 FROM league_teams WHERE league_id = ?), ?)""",
            (league_id, team_id, league_id, now),
        )
        conn.commit()

    def list_team_ids(self, conn: sqlite3.Connection, league_id: str) -> list[str]:
        """Registered team ids in registration order."""
        rows = conn.execute(
            "SELECT team_id FROM league_teams WHERE league_id = ? ORDER BY position",
            (league_id,),
        ).fetchall()
        return [r["team_id"] for r in rows]

    def has_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM league_teams WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        ).fetchone()
        return row is not None

    def remove_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        conn.execute("DELETE FROM league_teams WHERE league_id = ? AND team_id = ?", (league_id, team_id))
        conn.commit()


def _row_to_league(row: sqlite3.Row) -> League:
    return League(
        id=row["id"],
        name=row["name"],
        organizer_id=row["organizer_id"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        status=row["status"],
        created_at=_parse_datetime(row["created_at"]),
        venue=row["venue"],
        match_format=row["match_format"],
        points_per_win=row["points_per_win"],
        points_per_loss=row["points_per_loss"],
        min_teams=row["min_teams"],
        max_teams=row["max_teams"],
        schedule_generated=bool(row["schedule_generated"]),
        registration_deadline=date.fromisoformat(row["registration_deadline"]) if row["registration_deadline"] else None,
    )


# ---------- FixtureRepository ----------


_MATCH_COLS = (
    "id, league_id, team_a_id, team_b_id, scheduled_date, location, status, "
    "team_a_score, team_b_score, winner_id, notes, submitted_by, "
    "actual_start_time, actual_end_time, created_at"
)


class FixtureRepository:
    """CRUD for league fixtures (matches)."""

    def create_many(self, conn: sqlite3.Connection, fixtures: list[Fixture]) -> list[Fixture]:
        """Insert fixtures in the given order; returns copies carrying their new ids."""
        now = datetime.now(timezone.utc).isoformat()
        created: list[Fixture] = []
        for f in fixtures:
            mid = f.id or str(uuid.uuid4())
            conn.execute(
                """INSERT INTO matches (
                    id, league_id, sequence, team_a_id, team_b_id, scheduled_date,
                    location, status, created_at
                ) VALUES (
                    ?, ?, (SELECT COALESCE(MAX(sequence), -1) + 1 FROM matches WHERE league_id = ?),
                    ?, ?, ?, ?, ?, ?
                )""",
                (
                    mid, f.league_id, f.league_id, f.team_a_id, f.team_b_id,
                    f.scheduled_date.isoformat(), f.location, f.status, now,
                ),
            )
            created.append(Fixture(
                league_id=f.league_id,
                team_a_id=f.team_a_id,
                team_b_id=f.team_b_id,
                scheduled_date=f.scheduled_date,
                status=f.status,
                location=f.location,
                id=mid,
                created_at=datetime.fromisoformat(now),
            ))
        conn.commit()
        return created

    def get(self, conn: sqlite3.Connection, match_id: str) -> Fixture | None:
        row = conn.execute(f"SELECT {_MATCH_COLS} FROM matches WHERE id = ?", (match_id,)).fetchone()
        return _row_to_fixture(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Fixture]:
        """Fixtures in chronological (and generation) order."""
        rows = conn.execute(
            f"SELECT {_MATCH_COLS} FROM matches WHERE league_id = ? ORDER BY scheduled_date, sequence",
            (league_id,),
        ).fetchall()
        return [_row_to_fixture(r) for r in rows]

    def count_by_league(self, conn: sqlite3.Connection, league_id: str) -> int:
        row = conn.execute("SELECT COUNT(*) AS n FROM matches WHERE league_id = ?", (league_id,)).fetchone()
        return int(row["n"])

    def list_filtered(
        self,
        conn: sqlite3.Connection,
        league_id: str | None = None,
        team_id: str | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Fixture], int]:
        """One page of fixtures matching every given filter, plus the total match count."""
        clauses: list[str] = []
        params: list[object] = []
        if league_id is not None:
            clauses.append("league_id = ?")
            params.append(league_id)
        if team_id is not None:
            clauses.append("(team_a_id = ? OR team_b_id = ?)")
            params.extend([team_id, team_id])
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if start_date is not None:
            clauses.append("scheduled_date >= ?")
            params.append(start_date.isoformat())
        if end_date is not None:
            clauses.append("scheduled_date <= ?")
            params.append(end_date.isoformat())
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        total = conn.execute(f"SELECT COUNT(*) AS n FROM matches{where}", params).fetchone()["n"]
        rows = conn.execute(
            f"SELECT {_MATCH_COLS} FROM matches{where} ORDER BY scheduled_date, sequence LIMIT ? OFFSET ?",
            [*params, limit, offset],
        ).fetchall()
        return [_row_to_fixture(r) for r in rows], int(total)

    def delete_by_league(self, conn: sqlite3.Connection, league_id: str) -> int:
        cur = conn.execute("DELETE FROM matches WHERE league_id = ?", (league_id,))
        conn.commit()
        return cur.rowcount

    def update_details(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        scheduled_date: date | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> None:
        if scheduled_date is not None:
            conn.execute("UPDATE matches SET scheduled_date = ? WHERE id = ?", (scheduled_date.isoformat(), match_id))
        if location is not None:
            conn.execute("UPDATE matches SET location = ? WHERE id = ?", (location, match_id))
        if notes is not None:
            conn.execute("UPDATE matches SET notes = ? WHERE id = ?", (notes, match_id))
        conn.commit()

    def update_status(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        status: str,
        actual_start_time: datetime | None = None,
    ) -> None:
        if actual_start_time is not None:
            conn.execute(
                "UPDATE matches SET status = ?, actual_start_time = ? WHERE id = ?",
                (status, actual_start_time.isoformat(), match_id),
            )
        else:
            conn.execute("UPDATE matches SET status = ? WHERE id = ?", (status, match_id))
        conn.commit()

    def clear_result(self, conn: sqlite3.Connection, match_id: str) -> None:
        conn.execute(
            """UPDATE matches SET team_a_score = NULL, team_b_score = NULL, winner_id = NULL
               WHERE id = ?""",
            (match_id,),
        )
        conn.commit()

    def save_result(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        result: MatchResult,
        submitted_by: str | None,
        ended_at: datetime,
        notes: str | None = None,
    ) -> None:
        """Store the result and mark the fixture completed. notes=None keeps existing notes."""
        conn.execute(
            """UPDATE matches SET
                team_a_score = ?, team_b_score = ?, winner_id = ?, status = ?,
                actual_end_time = ?, submitted_by = ?, notes = COALESCE(?, notes)
               WHERE id = ?""",
            (
                json.dumps(list(result.sets_a)),
                json.dumps(list(result.sets_b)),
                result.winner,
                MatchStatus.COMPLETED.value,
                ended_at.isoformat(),
                submitted_by,
                notes,
                match_id,
            ),
        )
        conn.commit()


def _row_to_fixture(row: sqlite3.Row) -> Fixture:
    result = None
    if row["team_a_score"] is not None and row["team_b_score"] is not None:
        result = MatchResult.from_scores(
            json.loads(row["team_a_score"]),
            json.loads(row["team_b_score"]),
            winner=row["winner_id"],
        )
    return Fixture(
        id=row["id"],
        league_id=row["league_id"],
        team_a_id=row["team_a_id"],
        team_b_id=row["team_b_id"],
        scheduled_date=date.fromisoformat(row["scheduled_date"]),
        location=row["location"],
        status=row["status"],
        result=result,
        notes=row["notes"],
        submitted_by=row["submitted_by"],
        actual_start_time=_parse_optional_datetime(row["actual_start_time"]),
        actual_end_time=_parse_optional_datetime(row["actual_end_time"]),
        created_at=_parse_optional_datetime(row["created_at"]),
    )


# ---------- StandingsRepository ----------


_RANKING_COLS = (
    "league_id, team_id, rank, matches_played, matches_won, matches_lost, "
    "sets_won, sets_lost, games_won, games_lost, points, last_updated"
)


class StandingsRepository:
    """Per-(league, team) standings entries. Writes are upserts of whole snapshots."""

    def get(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> StandingsEntry | None:
        row = conn.execute(
            f"SELECT {_RANKING_COLS} FROM rankings WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        ).fetchone()
        return _row_to_entry(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[StandingsEntry]:
        """Entries ordered by stored rank (team_id breaks equal ranks)."""
        rows = conn.execute(
            f"SELECT {_RANKING_COLS} FROM rankings WHERE league_id = ? ORDER BY rank, team_id",
            (league_id,),
        ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def save(self, conn: sqlite3.Connection, entry: StandingsEntry) -> None:
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            f"""INSERT INTO rankings ({_RANKING_COLS}, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (league_id, team_id) DO UPDATE SET
                    rank = excluded.rank,
                    matches_played = excluded.matches_played,
                    matches_won = excluded.matches_won,
                    matches_lost = excluded.matches_lost,
                    sets_won = excluded.sets_won,
                    sets_lost = excluded.sets_lost,
                    games_won = excluded.games_won,
                    games_lost = excluded.games_lost,
                    points = excluded.points,
                    last_updated = excluded.last_updated""",
            (
                entry.league_id, entry.team_id, entry.rank,
                entry.matches_played, entry.matches_won, entry.matches_lost,
                entry.sets_won, entry.sets_lost, entry.games_won, entry.games_lost,
                entry.points, _iso(entry.last_updated), now,
            ),
        )
        conn.commit()

    def update_rank(self, conn: sqlite3.Connection, league_id: str, team_id: str, rank: int) -> None:
        conn.execute(
            "UPDATE rankings SET rank = ? WHERE league_id = ? AND team_id = ?",
            (rank, league_id, team_id),
        )
        conn.commit()

    def delete_by_league(self, conn: sqlite3.Connection, league_id: str) -> None:
        conn.execute("DELETE FROM rankings WHERE league_id = ?", (league_id,))
        conn.commit()


def _row_to_entry(row: sqlite3.Row) -> StandingsEntry:
    return StandingsEntry(
        league_id=row["league_id"],
        team_id=row["team_id"],
        rank=row["rank"],
        matches_played=row["matches_played"],
        matches_won=row["matches_won"],
        matches_lost=row["matches_lost"],
        sets_won=row["sets_won"],
        sets_lost=row["sets_lost"],
        games_won=row["games_won"],
        games_lost=row["games_lost"],
        points=row["points"],
        last_updated=_parse_optional_datetime(row["last_updated"]),
    )
