"""
Tests for the league lifecycle: transitions and operation guards.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from league_backend.models import Division, Fixture, League, LeagueStatus
from league_backend.services import state_machine
from league_backend.services.errors import InvalidState


def _league(status: LeagueStatus, divisions: list[Division] | None = None) -> League:
    return League(
        id="L1",
        name="Test League",
        organizer_id="org-1",
        status=status,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        divisions=divisions or [],
    )


def _fixture(division_id: str) -> Fixture:
    return Fixture(id=f"F-{division_id}", league_id="L1", division_id=division_id, round=1,
                   home_club_id="A", away_club_id="B")


@pytest.mark.parametrize(
    "current, new_status",
    [
        (LeagueStatus.DRAFT, LeagueStatus.REGISTRATION),
        (LeagueStatus.REGISTRATION, LeagueStatus.REGISTRATION_CLOSED),
        (LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.ACTIVE),
        (LeagueStatus.ACTIVE, LeagueStatus.COMPLETED),
        (LeagueStatus.DRAFT, LeagueStatus.CANCELLED),
        (LeagueStatus.REGISTRATION, LeagueStatus.CANCELLED),
        (LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.CANCELLED),
        (LeagueStatus.ACTIVE, LeagueStatus.CANCELLED),
        (LeagueStatus.COMPLETED, LeagueStatus.CANCELLED),
    ],
)
def test_valid_transitions(current, new_status):
    updated = state_machine.transition(_league(current), new_status)
    assert updated.status == new_status


@pytest.mark.parametrize(
    "current, new_status",
    [
        (LeagueStatus.DRAFT, LeagueStatus.ACTIVE),
        (LeagueStatus.REGISTRATION, LeagueStatus.DRAFT),
        (LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.REGISTRATION),
        (LeagueStatus.ACTIVE, LeagueStatus.REGISTRATION_CLOSED),
        (LeagueStatus.COMPLETED, LeagueStatus.ACTIVE),
        (LeagueStatus.CANCELLED, LeagueStatus.DRAFT),
        (LeagueStatus.CANCELLED, LeagueStatus.CANCELLED),
    ],
)
def test_invalid_transitions(current, new_status):
    league = _league(current)
    with pytest.raises(InvalidState) as exc_info:
        state_machine.transition(league, new_status)
    assert exc_info.value.current == current.value
    assert league.status == current


def test_transition_does_not_mutate_input():
    league = _league(LeagueStatus.DRAFT)
    state_machine.transition(league, LeagueStatus.REGISTRATION)
    assert league.status == LeagueStatus.DRAFT


def test_closing_registration_sets_flag_permanently():
    league = state_machine.transition(_league(LeagueStatus.REGISTRATION), LeagueStatus.REGISTRATION_CLOSED)
    assert league.registration_closed is True
    league = state_machine.transition(league, LeagueStatus.ACTIVE)
    assert league.registration_closed is True


def test_generation_guard():
    state_machine.assert_can_generate(_league(LeagueStatus.REGISTRATION_CLOSED))
    for status in (LeagueStatus.DRAFT, LeagueStatus.REGISTRATION, LeagueStatus.ACTIVE,
                   LeagueStatus.COMPLETED, LeagueStatus.CANCELLED):
        with pytest.raises(InvalidState):
            state_machine.assert_can_generate(_league(status))


def test_disqualification_guard():
    state_machine.assert_can_disqualify(_league(LeagueStatus.REGISTRATION_CLOSED))
    state_machine.assert_can_disqualify(_league(LeagueStatus.ACTIVE))
    for status in (LeagueStatus.DRAFT, LeagueStatus.REGISTRATION, LeagueStatus.COMPLETED, LeagueStatus.CANCELLED):
        with pytest.raises(InvalidState):
            state_machine.assert_can_disqualify(_league(status))


def test_registration_guard():
    state_machine.assert_can_register(_league(LeagueStatus.REGISTRATION))
    with pytest.raises(InvalidState):
        state_machine.assert_can_register(_league(LeagueStatus.DRAFT))
    closed_flag = _league(LeagueStatus.REGISTRATION)
    closed_flag.registration_closed = True
    with pytest.raises(InvalidState) as exc_info:
        state_machine.assert_can_register(closed_flag)
    assert "registration is closed" in str(exc_info.value)


def test_registration_guard_honours_deadline():
    league = _league(LeagueStatus.REGISTRATION)
    league.registration_deadline = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    state_machine.assert_can_register(league, now=datetime(2026, 3, 1, 11, 59, tzinfo=timezone.utc))
    with pytest.raises(InvalidState) as exc_info:
        state_machine.assert_can_register(league, now=datetime(2026, 3, 1, 12, 1, tzinfo=timezone.utc))
    assert "registration deadline passed" in str(exc_info.value)


def test_delete_guard():
    state_machine.assert_can_delete(_league(LeagueStatus.DRAFT))
    state_machine.assert_can_delete(_league(LeagueStatus.CANCELLED))
    for status in (LeagueStatus.REGISTRATION, LeagueStatus.REGISTRATION_CLOSED,
                   LeagueStatus.ACTIVE, LeagueStatus.COMPLETED):
        with pytest.raises(InvalidState):
            state_machine.assert_can_delete(_league(status))


def test_should_activate_once_every_schedulable_division_has_fixtures():
    d1 = Division(id="D1", league_id="L1", name="D1", order=1, club_ids=["A", "B"])
    d2 = Division(id="D2", league_id="L1", name="D2", order=2, club_ids=["C", "D"])
    lonely = Division(id="D3", league_id="L1", name="D3", order=3, club_ids=["E"])
    league = _league(LeagueStatus.REGISTRATION_CLOSED, [d1, d2, lonely])
    assert state_machine.should_activate(league) is False
    d1.fixtures = [_fixture("D1")]
    assert state_machine.should_activate(league) is False
    d2.fixtures = [_fixture("D2")]
    # D3 cannot be scheduled and does not hold activation back
    assert state_machine.should_activate(league) is True


def test_should_activate_false_outside_registration_closed():
    d1 = Division(id="D1", league_id="L1", name="D1", order=1, club_ids=["A", "B"], fixtures=[_fixture("D1")])
    assert state_machine.should_activate(_league(LeagueStatus.ACTIVE, [d1])) is False
    assert state_machine.should_activate(_league(LeagueStatus.REGISTRATION_CLOSED, [])) is False
