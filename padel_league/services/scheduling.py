"""
Deterministic round-robin schedule generation for leagues.

Round-robin is used so every team plays every other team exactly once. Matches are
spread across the league's date window: one fixture every floor(days / matches)
days, in generation order.

BYE handling: when the number of teams is odd, we add a virtual BYE. Any pairing with
BYE produces no fixture, so each team sits out exactly one round.

Uses the circle method: fix first slot, rotate others each round. Same team list
ordering yields the same schedule (deterministic for persistence).
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Sequence

from padel_league.errors import (
    DuplicateParticipants,
    InsufficientParticipants,
    InsufficientSchedulingWindow,
)
from padel_league.models import Fixture, MatchStatus

logger = logging.getLogger(__name__)


class _Bye:
    """Placeholder opponent for odd-sized leagues. Never equal to a real id."""

    def __repr__(self) -> str:
        return "BYE"


BYE = _Bye()


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _whole_days(start: date, end: date) -> int:
    """Floored days from start to end. A plain date facing a datetime counts from midnight."""
    if isinstance(start, datetime) and not isinstance(end, datetime):
        end = datetime.combine(end, time.min, tzinfo=start.tzinfo)
    elif isinstance(end, datetime) and not isinstance(start, datetime):
        start = datetime.combine(start, time.min, tzinfo=end.tzinfo)
    return (end - start).days


def round_robin_pairings(team_ids: Sequence[str]) -> list[tuple[int, str, str]]:
    """
    Generate round-robin pairings: (round_number, team_a_id, team_b_id), 1-based rounds.
    Pairs involving BYE are omitted. Deterministic: same team list => same pairings.
    """
    slots: list[str | _Bye] = list(team_ids)
    if len(slots) < 2:
        return []
    if len(slots) % 2 == 1:
        slots.append(BYE)
    n = len(slots)  # n is even
    result: list[tuple[int, str, str]] = []
    # Round 0 pairs (0, n-1), (1, n-2), ...; afterwards slot 0 stays and the
    # last slot moves to position 1: [0, n-1, 1, 2, ..., n-2].
    for rnd in range(n - 1):
        for i in range(n // 2):
            a, b = slots[i], slots[n - 1 - i]
            if a is BYE or b is BYE:
                continue
            result.append((rnd + 1, a, b))  # type: ignore[arg-type]
        slots = [slots[0], slots[-1]] + slots[1:-1]
    return result


def generate_schedule(
    participant_ids: Sequence[str],
    start_date: date,
    end_date: date,
    venue: str | None = None,
    league_id: str | None = None,
) -> list[Fixture]:
    """
    Return the league's fixtures in generation order (round-major), which is also
    chronological. Every unordered pair appears exactly once; nothing is persisted.

    Raises InsufficientParticipants for fewer than 2 teams, DuplicateParticipants when
    an id repeats, and InsufficientSchedulingWindow when the window holds fewer whole
    days than there are matches.
    """
    ids = list(participant_ids)
    n = len(ids)
    if n < 2:
        raise InsufficientParticipants(n)
    if len(set(ids)) != n:
        raise DuplicateParticipants("Participant ids must be distinct")

    total_matches = n * (n - 1) // 2
    total_days = _whole_days(start_date, end_date)
    if total_days < total_matches:
        raise InsufficientSchedulingWindow(total_days, total_matches)

    days_between = total_days // total_matches
    first_day = _as_date(start_date)
    fixtures = [
        Fixture(
            league_id=league_id,
            team_a_id=a,
            team_b_id=b,
            scheduled_date=first_day + timedelta(days=k * days_between),
            status=MatchStatus.SCHEDULED.value,
            location=venue,
        )
        for k, (_, a, b) in enumerate(round_robin_pairings(ids))
    ]
    logger.info(
        "Generated %d fixtures for %d teams over %d days (every %d days)",
        len(fixtures), n, total_days, days_between,
    )
    return fixtures
