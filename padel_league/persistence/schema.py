"""
SQLite schema for padel league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        name TEXT NOT NULL,
        password_hash TEXT,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def teams_schema() -> str:
    """A padel pair. team_members lists the user accounts that play for it."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_by TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (created_by) REFERENCES users(id)
    );
    CREATE TABLE IF NOT EXISTS team_members (
        team_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        PRIMARY KEY (team_id, user_id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_team_members_user ON team_members(user_id);
    """


def leagues_schema() -> str:
    """status: draft | registration | active | completed | canceled."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        organizer_id TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        venue TEXT,
        registration_deadline TEXT,
        status TEXT NOT NULL DEFAULT 'draft',
        match_format TEXT NOT NULL DEFAULT 'bestOf3',
        points_per_win INTEGER NOT NULL DEFAULT 3,
        points_per_loss INTEGER NOT NULL DEFAULT 0,
        min_teams INTEGER NOT NULL DEFAULT 4,
        max_teams INTEGER NOT NULL DEFAULT 16,
        schedule_generated INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (organizer_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_leagues_organizer ON leagues(organizer_id);
    CREATE INDEX IF NOT EXISTS ix_leagues_status ON leagues(status);
    """


def league_teams_schema() -> str:
    """Registration join table. position keeps registration order for the scheduler."""
    return """
    CREATE TABLE IF NOT EXISTS league_teams (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (league_id, team_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_league_teams_team ON league_teams(team_id);
    """


def matches_schema() -> str:
    """Fixtures. Set scores stored as JSON arrays; NULL until a result is submitted."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        sequence INTEGER NOT NULL,
        team_a_id TEXT NOT NULL,
        team_b_id TEXT NOT NULL,
        scheduled_date TEXT NOT NULL,
        location TEXT,
        status TEXT NOT NULL DEFAULT 'scheduled',
        team_a_score TEXT,
        team_b_score TEXT,
        winner_id TEXT,
        notes TEXT,
        submitted_by TEXT,
        actual_start_time TEXT,
        actual_end_time TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (team_a_id) REFERENCES teams(id),
        FOREIGN KEY (team_b_id) REFERENCES teams(id),
        CHECK (team_a_id <> team_b_id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_league_date ON matches(league_id, scheduled_date);
    CREATE INDEX IF NOT EXISTS ix_matches_teams ON matches(team_a_id, team_b_id);
    CREATE INDEX IF NOT EXISTS ix_matches_status ON matches(status);
    """


def rankings_schema() -> str:
    """One standings entry per (league, team)."""
    return """
    CREATE TABLE IF NOT EXISTS rankings (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        rank INTEGER NOT NULL DEFAULT 1 CHECK (rank >= 1),
        matches_played INTEGER NOT NULL DEFAULT 0 CHECK (matches_played >= 0),
        matches_won INTEGER NOT NULL DEFAULT 0 CHECK (matches_won >= 0),
        matches_lost INTEGER NOT NULL DEFAULT 0 CHECK (matches_lost >= 0),
        sets_won INTEGER NOT NULL DEFAULT 0 CHECK (sets_won >= 0),
        sets_lost INTEGER NOT NULL DEFAULT 0 CHECK (sets_lost >= 0),
        games_won INTEGER NOT NULL DEFAULT 0 CHECK (games_won >= 0),
        games_lost INTEGER NOT NULL DEFAULT 0 CHECK (games_lost >= 0),
        points INTEGER NOT NULL DEFAULT 0 CHECK (points >= 0),
        last_updated TEXT,
        created_at TEXT NOT NULL,
        PRIMARY KEY (league_id, team_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_rankings_league_rank ON rankings(league_id, rank);
    CREATE INDEX IF NOT EXISTS ix_rankings_league_points ON rankings(league_id, points DESC);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, teams, leagues, league_teams, matches, rankings."""
    return "\n".join([
        users_schema(),
        teams_schema(),
        leagues_schema(),
        league_teams_schema(),
        matches_schema(),
        rankings_schema(),
    ])
