"""
Standings calculation: a pure projection of a division's fixtures into an ordered table.

Only completed fixtures count. Order: points, goal difference, goals for (all
descending), head-to-head when exactly two clubs are level on all three, then
club name and club id (ascending) so the table is fully deterministic.
"""
from __future__ import annotations

from itertools import groupby
from typing import Callable, Iterable

from league_backend.models import Fixture, FixtureStatus, League, PointsSystem, StandingsEntry
from league_backend.services.errors import DivisionNotFound

ClubNameResolver = Callable[[str], str]


def _identity_name(club_id: str) -> str:
    return club_id


def _credit(row: StandingsEntry | None, scored: int, conceded: int, points_system: PointsSystem) -> None:
    # Opponent rows are absent for clubs no longer in the division
    if row is None:
        return
    row.played += 1
    row.goals_for += scored
    row.goals_against += conceded
    if scored > conceded:
        row.won += 1
        row.points += points_system.win
    elif scored < conceded:
        row.lost += 1
        row.points += points_system.loss
    else:
        row.drawn += 1
        row.points += points_system.draw


def _tie_key(row: StandingsEntry) -> tuple[int, int, int]:
    return (row.points, row.goal_difference, row.goals_for)


def _sort_key(row: StandingsEntry) -> tuple:
    return (-row.points, -row.goal_difference, -row.goals_for, row.club_name, row.club_id)


def head_to_head_points(
    club_a: str,
    club_b: str,
    fixtures: Iterable[Fixture],
    points_system: PointsSystem,
) -> tuple[int, int]:
    """Points each club took from their completed fixtures against each other."""
    a_points = b_points = 0
    for f in fixtures:
        if f.status != FixtureStatus.COMPLETED or f.result is None:
            continue
        if {f.home_club_id, f.away_club_id} != {club_a, club_b}:
            continue
        a_goals, b_goals = (
            (f.result.home_goals, f.result.away_goals)
            if f.home_club_id == club_a
            else (f.result.away_goals, f.result.home_goals)
        )
        if a_goals > b_goals:
            a_points += points_system.win
            b_points += points_system.loss
        elif a_goals < b_goals:
            a_points += points_system.loss
            b_points += points_system.win
        else:
            a_points += points_system.draw
            b_points += points_system.draw
    return a_points, b_points


def _apply_head_to_head(
    ordered: list[StandingsEntry],
    fixtures: list[Fixture],
    points_system: PointsSystem,
) -> list[StandingsEntry]:
    result: list[StandingsEntry] = []
    for _, group in groupby(ordered, key=_tie_key):
        tied = list(group)
        if len(tied) == 2:
            first, second = tied
            first_pts, second_pts = head_to_head_points(first.club_id, second.club_id, fixtures, points_system)
            if second_pts > first_pts:
                tied = [second, first]
        result.extend(tied)
    return result


def calculate_division_standings(
    club_ids: Iterable[str],
    fixtures: Iterable[Fixture],
    points_system: PointsSystem | None = None,
    club_name: ClubNameResolver | None = None,
) -> list[StandingsEntry]:
    """
    Build the ordered table for one division.
    Every member gets a row (all zeros if unplayed); non-members never do.
    Never mutates the fixtures; same input => identical output.
    """
    points_system = points_system or PointsSystem()
    resolve = club_name or _identity_name
    fixture_list = list(fixtures)
    rows: dict[str, StandingsEntry] = {}
    for cid in club_ids:
        if cid not in rows:
            rows[cid] = StandingsEntry(club_id=cid, club_name=resolve(cid))
    for f in fixture_list:
        if f.status != FixtureStatus.COMPLETED or f.result is None:
            continue
        _credit(rows.get(f.home_club_id), f.result.home_goals, f.result.away_goals, points_system)
        _credit(rows.get(f.away_club_id), f.result.away_goals, f.result.home_goals, points_system)
    for row in rows.values():
        row.goal_difference = row.goals_for - row.goals_against
    ordered = sorted(rows.values(), key=_sort_key)
    ordered = _apply_head_to_head(ordered, fixture_list, points_system)
    for position, row in enumerate(ordered, start=1):
        row.position = position
    return ordered


def standings_for_division(
    league: League,
    division_id: str,
    club_name: ClubNameResolver | None = None,
) -> list[StandingsEntry]:
    division = league.division(division_id)
    if division is None:
        raise DivisionNotFound(league.id, division_id)
    return calculate_division_standings(
        division.club_ids, division.fixtures, league.points_system, club_name
    )
