"""
Domain exceptions.
Validation errors subclass ValueError so callers can catch them as bad input;
StorageFailure is the one error that is not the caller's fault.
"""
from __future__ import annotations


class PadelLeagueError(Exception):
    """Base class for every domain error."""


# ---------- Scheduling ----------


class ScheduleError(PadelLeagueError, ValueError):
    """A schedule cannot be generated from the given inputs."""


class InsufficientParticipants(ScheduleError):
    """Fewer than two participants."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"At least 2 teams are required to generate a schedule (got {count})")


class DuplicateParticipants(ScheduleError):
    """The participant list repeats an id."""


class InsufficientSchedulingWindow(ScheduleError):
    """Not enough days between start and end date for one match per day."""

    def __init__(self, total_days: int, total_matches: int):
        self.total_days = total_days
        self.total_matches = total_matches
        super().__init__(
            f"Not enough days ({total_days}) to schedule all matches ({total_matches})"
        )


# ---------- Results ----------


class InvalidResult(PadelLeagueError, ValueError):
    """Set scores violate the match result rules."""


class NoWinner(InvalidResult):
    """Both sides won the same number of sets."""


# ---------- Workflow state ----------


class LeagueTransitionError(PadelLeagueError, ValueError):
    """Invalid league status transition (e.g. draft -> completed)."""


class MatchStatusError(PadelLeagueError, ValueError):
    """The fixture's status does not allow the requested operation."""


class RegistrationError(PadelLeagueError, ValueError):
    """A team cannot be registered to a league."""


class NotFoundError(PadelLeagueError, LookupError):
    """A league, team or fixture does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


# ---------- Storage ----------


class StorageFailure(PadelLeagueError, RuntimeError):
    """The underlying store failed. Earlier writes in the same call are not rolled back."""
