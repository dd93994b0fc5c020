"""
Service layer: domain logic, state machines, scheduling and standings.
scheduling is pure; standings and league_service orchestrate persistence.
"""
from .scheduling import generate_schedule, round_robin_pairings
from .standings import StandingsEngine, StandingsUpdate, rank_entries, validate_result
from .league_service import LeagueService

__all__ = [
    "generate_schedule",
    "round_robin_pairings",
    "StandingsEngine",
    "StandingsUpdate",
    "rank_entries",
    "validate_result",
    "LeagueService",
]
