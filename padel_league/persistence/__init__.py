"""
Persistence layer for padel league data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, get_db_path, init_db, set_db_path, storage_errors
from .repositories import (
    UserRepository,
    TeamRepository,
    LeagueRepository,
    FixtureRepository,
    StandingsRepository,
)

__all__ = [
    "get_connection",
    "get_db_path",
    "init_db",
    "set_db_path",
    "storage_errors",
    "UserRepository",
    "TeamRepository",
    "LeagueRepository",
    "FixtureRepository",
    "StandingsRepository",
]
