"""
Disqualification cascade.

Removing a club from an active league: drop it from its division, cancel its
unplayed fixtures, apply the policy to its played fixtures, and rebuild the
division table without it. Works on a copy; the input league is never mutated,
so a failure leaves nothing half-applied.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from league_backend.models import (
    DisqualificationPolicy,
    DisqualificationRecord,
    Fixture,
    FixtureResult,
    FixtureStatus,
    League,
    StandingsEntry,
)
from league_backend.services import state_machine
from league_backend.services.errors import ClubNotInLeague
from league_backend.services.standings import ClubNameResolver, calculate_division_standings

logger = logging.getLogger(__name__)


@dataclass
class DisqualificationOutcome:
    league: League
    record: DisqualificationRecord
    cancelled_fixture_ids: list[str] = field(default_factory=list)
    updated_standings: list[StandingsEntry] = field(default_factory=list)
    # Subsets describing the non-default policy effects
    voided_fixture_ids: list[str] = field(default_factory=list)
    walkover_fixture_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cancelled_fixture_ids": list(self.cancelled_fixture_ids),
            "updated_standings": [row.to_dict() for row in self.updated_standings],
            "voided_fixture_ids": list(self.voided_fixture_ids),
            "walkover_fixture_ids": list(self.walkover_fixture_ids),
            "record": self.record.to_dict(),
        }


def _walkover(fixture: Fixture, disqualified_club_id: str, goals: int) -> Fixture:
    if fixture.home_club_id == disqualified_club_id:
        result = FixtureResult(home_goals=0, away_goals=goals, walkover=True)
    else:
        result = FixtureResult(home_goals=goals, away_goals=0, walkover=True)
    return replace(fixture, status=FixtureStatus.COMPLETED, result=result, schedule=None)


def _cancel(fixture: Fixture) -> Fixture:
    return replace(fixture, status=FixtureStatus.CANCELLED, result=None, schedule=None)


def disqualify(
    league: League,
    club_id: str,
    reason: str | None = None,
    policy: DisqualificationPolicy | None = None,
    club_name: ClubNameResolver | None = None,
    now: datetime | None = None,
) -> DisqualificationOutcome:
    """
    Compute the league after disqualifying club_id.

    Raises InvalidState unless the league is registration_closed or active, and
    ClubNotInLeague when the club holds no division membership.
    """
    policy = policy or DisqualificationPolicy()
    state_machine.assert_can_disqualify(league)
    if league.division_of_club(club_id) is None:
        raise ClubNotInLeague(league.id, club_id)

    updated = copy.deepcopy(league)
    division = updated.division_of_club(club_id)
    division.club_ids = [cid for cid in division.club_ids if cid != club_id]

    outcome_fixtures: list[Fixture] = []
    cancelled: list[str] = []
    voided: list[str] = []
    walkovers: list[str] = []
    for f in division.fixtures:
        if not f.involves(club_id):
            outcome_fixtures.append(f)
            continue
        if f.status == FixtureStatus.SCHEDULED:
            if policy.award_walkovers:
                outcome_fixtures.append(_walkover(f, club_id, policy.walkover_goals))
                walkovers.append(f.id)
            else:
                outcome_fixtures.append(_cancel(f))
                cancelled.append(f.id)
        elif f.status == FixtureStatus.COMPLETED and policy.void_completed_results:
            outcome_fixtures.append(_cancel(f))
            cancelled.append(f.id)
            voided.append(f.id)
        else:
            outcome_fixtures.append(f)
    division.fixtures = outcome_fixtures

    record = DisqualificationRecord(
        club_id=club_id,
        division_id=division.id,
        reason=reason,
        disqualified_at=now or datetime.now(timezone.utc),
    )
    updated.disqualifications = list(updated.disqualifications) + [record]

    table = calculate_division_standings(
        division.club_ids, division.fixtures, updated.points_system, club_name
    )
    logger.info(
        "Disqualified club %s from division %s of league %s: %d cancelled, %d voided, %d walkovers",
        club_id,
        division.id,
        league.id,
        len(cancelled),
        len(voided),
        len(walkovers),
    )
    return DisqualificationOutcome(
        league=updated,
        record=record,
        cancelled_fixture_ids=cancelled,
        updated_standings=table,
        voided_fixture_ids=voided,
        walkover_fixture_ids=walkovers,
    )
