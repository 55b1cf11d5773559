"""
Deterministic round-robin fixture generation for league divisions.

Round-robin is used so every club plays every other club exactly once (single) or
twice with home and away swapped (double). A single round-robin has N-1 rounds
for N even and N rounds for N odd; each club plays at most one fixture per round.

BYE handling: when the number of clubs is odd we add a virtual BYE in the fixed
slot of the circle. Every real club then rotates past it exactly once and sits
that round out. Fixtures against the BYE are never emitted.

Uses the circle method: fix the first slot, rotate the others each round. Club
ids are sorted first, so the same club set yields the same schedule regardless
of registration order.
"""
from __future__ import annotations

import logging
import uuid

from league_backend.models import Fixture, FixtureStatus, League
from league_backend.services import state_machine
from league_backend.services.errors import (
    AlreadyGenerated,
    DivisionNotFound,
    InsufficientClubs,
    InvalidState,
)

logger = logging.getLogger(__name__)

# Sentinel for the bye slot when the number of clubs is odd
BYE = None

MIN_CLUBS = 2


def round_robin_pairings(club_ids: list[str], double_round: bool = False) -> list[tuple[int, str, str]]:
    """
    Generate round-robin pairings: (round_number, home_club_id, away_club_id).
    Bye pairings are omitted. Deterministic: same club set => same schedule.

    Home/away: the pair holding the fixed slot alternates home by round parity;
    in every other pair the top-row slot is at home. Across one round-robin no
    club gets more than one extra home fixture compared with any other club.
    """
    if len(club_ids) < MIN_CLUBS:
        return []
    if len(set(club_ids)) != len(club_ids):
        raise ValueError("Duplicate club ids in round-robin input")
    slots: list[str | None] = sorted(club_ids)
    if len(slots) % 2 == 1:
        slots.insert(0, BYE)
    N = len(slots)  # N is even
    rounds = N - 1
    first_half: list[tuple[int, str, str]] = []
    # Circle method: indices 0..N-1. Fix 0, rotate 1..N-1 each round.
    # Round 1 pairs (0, N-1), (1, N-2), ...; then order becomes [0, N-1, 1, 2, ..., N-2].
    order = list(range(N))
    for rnd in range(rounds):
        for i in range(N // 2):
            home = slots[order[i]]
            away = slots[order[N - 1 - i]]
            if i == 0 and rnd % 2 == 1:
                home, away = away, home
            if home is BYE or away is BYE:
                continue
            first_half.append((rnd + 1, home, away))
        order = [order[0]] + [order[N - 1]] + order[1 : N - 1]
    if not double_round:
        return first_half
    # Mirrored second half: swap home/away, continue round numbers after the first half
    second_half = [(rnd + rounds, away, home) for rnd, home, away in first_half]
    return first_half + second_half


def build_fixtures(
    league_id: str,
    division_id: str,
    club_ids: list[str],
    double_round: bool = False,
) -> list[Fixture]:
    """Turn pairings into scheduled Fixture values with fresh ids."""
    return [
        Fixture(
            id=str(uuid.uuid4()),
            league_id=league_id,
            division_id=division_id,
            round=rnd,
            home_club_id=home,
            away_club_id=away,
            status=FixtureStatus.SCHEDULED,
        )
        for rnd, home, away in round_robin_pairings(club_ids, double_round=double_round)
    ]


def generate_division_fixtures(league: League, division_id: str, double_round: bool = False) -> list[Fixture]:
    """
    Validate and build the full fixture list for one division. Does not touch league.

    Raises InvalidState (league not registration_closed, or a disqualified club still
    listed), DivisionNotFound, AlreadyGenerated, InsufficientClubs.
    """
    state_machine.assert_can_generate(league)
    division = league.division(division_id)
    if division is None:
        raise DivisionNotFound(league.id, division_id)
    if division.has_fixtures():
        raise AlreadyGenerated(league.id, division_id, len(division.fixtures))
    disqualified = league.disqualified_club_ids().intersection(division.club_ids)
    if disqualified:
        raise InvalidState(
            league.id,
            league.status.value,
            "generate fixtures",
            detail=f"division {division_id} lists disqualified clubs: {', '.join(sorted(disqualified))}",
        )
    required = max(MIN_CLUBS, league.min_clubs or 0)
    if len(division.club_ids) < required:
        raise InsufficientClubs(league.id, division_id, len(division.club_ids), required)
    fixtures = build_fixtures(league.id, division_id, division.club_ids, double_round=double_round)
    logger.info(
        "Generated %d fixtures over %d rounds for division %s of league %s (double_round=%s)",
        len(fixtures),
        max(f.round for f in fixtures),
        division_id,
        league.id,
        double_round,
    )
    return fixtures
