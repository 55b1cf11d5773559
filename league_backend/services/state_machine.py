"""
League lifecycle: valid transitions and operation guards.
Pure functions over a League value; no persistence.

draft → registration → registration_closed → active → completed,
and any status except cancelled → cancelled.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from league_backend.models import League, LeagueStatus
from league_backend.services.errors import InvalidState

# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[LeagueStatus, set[LeagueStatus]] = {
    LeagueStatus.DRAFT: {LeagueStatus.REGISTRATION, LeagueStatus.CANCELLED},
    LeagueStatus.REGISTRATION: {LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.CANCELLED},
    # registration_closed -> active is implicit (fixtures generated or first result)
    LeagueStatus.REGISTRATION_CLOSED: {LeagueStatus.ACTIVE, LeagueStatus.CANCELLED},
    LeagueStatus.ACTIVE: {LeagueStatus.COMPLETED, LeagueStatus.CANCELLED},
    # A completed season can still be annulled
    LeagueStatus.COMPLETED: {LeagueStatus.CANCELLED},
    LeagueStatus.CANCELLED: set(),
}

_GENERATE_STATES = {LeagueStatus.REGISTRATION_CLOSED}
_DISQUALIFY_STATES = {LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.ACTIVE}
_RESULT_STATES = {LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.ACTIVE}
_SCHEDULE_STATES = {LeagueStatus.REGISTRATION_CLOSED, LeagueStatus.ACTIVE}
_DIVISION_EDIT_STATES = {LeagueStatus.DRAFT, LeagueStatus.REGISTRATION}
_DELETE_STATES = {LeagueStatus.DRAFT, LeagueStatus.CANCELLED}


def allowed_transitions(current: LeagueStatus) -> set[LeagueStatus]:
    return set(_VALID_TRANSITIONS.get(current, set()))


def can_transition(current: LeagueStatus, new_status: LeagueStatus) -> bool:
    return new_status in _VALID_TRANSITIONS.get(current, set())


def transition(league: League, new_status: LeagueStatus) -> League:
    """
    Return a copy of league moved to new_status.
    Closing registration also sets registration_closed, which is never cleared.
    """
    if not can_transition(league.status, new_status):
        allowed = sorted(s.value for s in allowed_transitions(league.status))
        raise InvalidState(
            league.id,
            league.status.value,
            f"move to {new_status.value}",
            detail=f"allowed: {', '.join(allowed) or 'none'}",
        )
    registration_closed = league.registration_closed or new_status == LeagueStatus.REGISTRATION_CLOSED
    return replace(league, status=new_status, registration_closed=registration_closed)


def should_activate(league: League) -> bool:
    """
    True once every schedulable division (two or more clubs) has fixtures.
    Only meaningful while registration is closed.
    """
    if league.status != LeagueStatus.REGISTRATION_CLOSED:
        return False
    schedulable = [d for d in league.divisions if len(d.club_ids) >= 2]
    return bool(schedulable) and all(d.has_fixtures() for d in schedulable)


# ---------- Guards ----------


def _require(league: League, states: set[LeagueStatus], operation: str) -> None:
    if league.status not in states:
        raise InvalidState(league.id, league.status.value, operation)


def assert_can_generate(league: League) -> None:
    """Fixture generation only while registration is closed and the season has not started."""
    _require(league, _GENERATE_STATES, "generate fixtures")


def assert_can_disqualify(league: League) -> None:
    _require(league, _DISQUALIFY_STATES, "disqualify a club")


def assert_can_record_result(league: League) -> None:
    _require(league, _RESULT_STATES, "record a result")


def assert_can_update_schedule(league: League) -> None:
    _require(league, _SCHEDULE_STATES, "update a fixture schedule")


def assert_can_edit_divisions(league: League) -> None:
    _require(league, _DIVISION_EDIT_STATES, "add a division")


def assert_can_register(league: League, now: datetime | None = None) -> None:
    """
    Clubs join only while the league is in registration, registration is open
    and the registration deadline (if any) has not passed.
    """
    if league.status != LeagueStatus.REGISTRATION or league.registration_closed:
        raise InvalidState(
            league.id,
            league.status.value,
            "register a club",
            detail="registration is closed" if league.registration_closed else None,
        )
    if league.registration_deadline is not None:
        now = now or datetime.now(timezone.utc)
        if now > league.registration_deadline:
            raise InvalidState(
                league.id,
                league.status.value,
                "register a club",
                detail="registration deadline passed",
            )


def assert_can_delete(league: League) -> None:
    """Only leagues that never started (draft) or were cancelled can be deleted."""
    _require(league, _DELETE_STATES, "delete the league")
