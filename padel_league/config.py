"""
Runtime settings read from the environment, plus logging setup.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

# League defaults (applied when a league is created without explicit values)
DEFAULT_POINTS_PER_WIN = 3
DEFAULT_POINTS_PER_LOSS = 0
DEFAULT_MIN_TEAMS = 4
DEFAULT_MAX_TEAMS = 16

JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "padel-league-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("PADEL_LEAGUE_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def default_db_path() -> Path:
    """PADEL_LEAGUE_DB_PATH if set, else <project root>/data/padel_league.db."""
    env = os.environ.get("PADEL_LEAGUE_DB_PATH")
    if env:
        return Path(env)
    return project_root() / "data" / "padel_league.db"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once. Level from argument, PADEL_LEAGUE_LOG_LEVEL, or INFO."""
    name = (level or os.environ.get("PADEL_LEAGUE_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
