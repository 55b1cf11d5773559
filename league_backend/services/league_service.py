"""
League-centric service: state machine, guards, fixture generation, results, standings, disqualification.
Every mutation is load snapshot -> pure compute -> commit with version check,
serialized per league id.
"""
from __future__ import annotations

import copy
import logging
import sqlite3
import threading
import uuid
import weakref
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterator

from league_backend.models import (
    DisqualificationPolicy,
    Division,
    Fixture,
    FixtureResult,
    FixtureSchedule,
    FixtureStatus,
    League,
    LeagueStatus,
    PointsSystem,
    StandingsEntry,
)
from league_backend.persistence.repositories import (
    ClubRepository,
    LeagueRepository,
    StandingsCacheRepository,
)
from league_backend.services import state_machine
from league_backend.services.disqualification import DisqualificationOutcome, disqualify
from league_backend.services.errors import (
    ClubAlreadyRegistered,
    DivisionNotFound,
    FixtureNotFound,
    InvalidResult,
    InvalidState,
    LeagueFull,
    LeagueNotFound,
)
from league_backend.services.scheduling import generate_division_fixtures
from league_backend.services.standings import standings_for_division

logger = logging.getLogger(__name__)

DEFAULT_DIVISION_NAME = "Division 1"

# Marks a schedule field the caller did not supply (None clears the field)
UNCHANGED: Any = object()

# ---------- Per-league serialization ----------

# Entries vanish once no operation holds the lock, so the registry stays bounded
_league_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_league_locks_guard = threading.Lock()


@contextmanager
def _serialized(league_id: str) -> Iterator[None]:
    """At most one mutating operation in flight per league id (within this process)."""
    with _league_locks_guard:
        lock = _league_locks.setdefault(league_id, threading.Lock())
    with lock:
        yield


# ---------- LeagueService ----------


class LeagueService:
    """
    Domain logic for leagues: status transitions, registration, fixtures, results,
    standings and disqualification. Persistence is delegated to repositories.
    """

    def __init__(self, policy: DisqualificationPolicy | None = None) -> None:
        self._league_repo = LeagueRepository()
        self._club_repo = ClubRepository()
        self._standings_cache = StandingsCacheRepository()
        self.policy = policy or DisqualificationPolicy()

    # ---------- Reads ----------

    def get_league(self, conn: sqlite3.Connection, league_id: str) -> League:
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise LeagueNotFound(league_id)
        return league

    def list_leagues(self, conn: sqlite3.Connection, status: LeagueStatus | None = None) -> list[League]:
        return self._league_repo.list_all(conn, status=status)

    def calculate_standings(self, conn: sqlite3.Connection, league_id: str, division_id: str) -> list[StandingsEntry]:
        """
        Recompute the division table from the current fixture list.
        Refreshes the derived cache; the cache is never read back here.
        """
        league = self.get_league(conn, league_id)
        table = standings_for_division(league, division_id, self._club_repo.name_resolver(conn))
        self._standings_cache.put(conn, league.id, division_id, league.version, table)
        return table

    # ---------- League setup & lifecycle ----------

    def create_league(
        self,
        conn: sqlite3.Connection,
        name: str,
        organizer_id: str,
        season: str | None = None,
        min_clubs: int | None = None,
        max_clubs: int | None = None,
        points_system: PointsSystem | None = None,
        division_names: list[str] | None = None,
        registration_deadline: datetime | None = None,
    ) -> League:
        """
        Create a league in draft with one or more divisions (default: a single "Division 1").
        A naive registration_deadline is taken as UTC.
        """
        if min_clubs is not None and max_clubs is not None and min_clubs > max_clubs:
            raise ValueError(f"min_clubs ({min_clubs}) cannot exceed max_clubs ({max_clubs})")
        if registration_deadline is not None and registration_deadline.tzinfo is None:
            registration_deadline = registration_deadline.replace(tzinfo=timezone.utc)
        league = self._league_repo.create(
            conn, name, organizer_id, season=season, min_clubs=min_clubs,
            max_clubs=max_clubs, points_system=points_system,
            registration_deadline=registration_deadline,
        )
        names = division_names or [DEFAULT_DIVISION_NAME]
        league.divisions = [
            Division(id=str(uuid.uuid4()), league_id=league.id, name=div_name, order=i)
            for i, div_name in enumerate(names, start=1)
        ]
        saved = self._league_repo.save(conn, league)
        logger.info("Created league %s (%s) with %d division(s)", saved.id, name, len(names))
        return saved

    def add_division(self, conn: sqlite3.Connection, league_id: str, name: str) -> Division:
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            state_machine.assert_can_edit_divisions(league)
            division = Division(
                id=str(uuid.uuid4()),
                league_id=league.id,
                name=name,
                order=max((d.order for d in league.divisions), default=0) + 1,
            )
            self._league_repo.save(conn, replace(league, divisions=league.divisions + [division]))
            return division

    def transition_league_status(self, conn: sqlite3.Connection, league_id: str, new_status: LeagueStatus) -> League:
        """Move league to new_status if the transition is valid."""
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            try:
                updated = state_machine.transition(league, new_status)
            except InvalidState:
                logger.warning("Rejected transition %s -> %s for league %s", league.status.value, new_status.value, league_id)
                raise
            saved = self._league_repo.save(conn, updated)
            logger.info("League %s: %s -> %s", league_id, league.status.value, new_status.value)
            return saved

    def open_registration(self, conn: sqlite3.Connection, league_id: str) -> League:
        return self.transition_league_status(conn, league_id, LeagueStatus.REGISTRATION)

    def close_registration(self, conn: sqlite3.Connection, league_id: str) -> League:
        """Irreversible: registration_closed stays set for the life of the league."""
        return self.transition_league_status(conn, league_id, LeagueStatus.REGISTRATION_CLOSED)

    def complete_season(self, conn: sqlite3.Connection, league_id: str) -> League:
        return self.transition_league_status(conn, league_id, LeagueStatus.COMPLETED)

    def cancel_league(self, conn: sqlite3.Connection, league_id: str) -> League:
        return self.transition_league_status(conn, league_id, LeagueStatus.CANCELLED)

    def delete_league(self, conn: sqlite3.Connection, league_id: str) -> None:
        """Remove a draft or cancelled league together with its divisions and fixtures."""
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            state_machine.assert_can_delete(league)
            self._league_repo.delete(conn, league)
        logger.info("Deleted league %s", league_id)

    # ---------- Registration ----------

    def register_club(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        club_id: str,
        division_id: str | None = None,
    ) -> Division:
        """Add a club to a division (default: the first). A club joins at most one division."""
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            state_machine.assert_can_register(league)
            if club_id in league.all_club_ids():
                raise ClubAlreadyRegistered(league.id, club_id)
            if league.max_clubs is not None and len(league.all_club_ids()) >= league.max_clubs:
                raise LeagueFull(league.id, league.max_clubs)
            updated = copy.deepcopy(league)
            if division_id is None:
                if not updated.divisions:
                    updated.divisions.append(
                        Division(id=str(uuid.uuid4()), league_id=league.id, name=DEFAULT_DIVISION_NAME, order=1)
                    )
                division = updated.divisions[0]
            else:
                division = updated.division(division_id)
                if division is None:
                    raise DivisionNotFound(league.id, division_id)
            division.club_ids.append(club_id)
            self._league_repo.save(conn, updated)
            logger.info("Registered club %s in division %s of league %s", club_id, division.id, league_id)
            return division

    # ---------- Fixtures ----------

    def generate_fixtures(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        division_id: str,
        double_round: bool = False,
    ) -> list[Fixture]:
        """
        Generate the division's round-robin once. All-or-nothing.
        League becomes active once every schedulable division has fixtures.
        """
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            try:
                fixtures = generate_division_fixtures(league, division_id, double_round=double_round)
            except ValueError as e:
                logger.warning("Fixture generation rejected for league %s division %s: %s", league_id, division_id, e)
                raise
            updated = copy.deepcopy(league)
            updated.division(division_id).fixtures = fixtures
            if state_machine.should_activate(updated):
                updated = state_machine.transition(updated, LeagueStatus.ACTIVE)
                logger.info("League %s: registration_closed -> active (all divisions scheduled)", league_id)
            self._league_repo.save(conn, updated)
            return fixtures

    def record_result(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        fixture_id: str,
        home_goals: int,
        away_goals: int,
    ) -> list[StandingsEntry]:
        """Complete a scheduled fixture and return the recalculated division table."""
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            state_machine.assert_can_record_result(league)
            fixture = league.find_fixture(fixture_id)
            if fixture is None:
                raise FixtureNotFound(league.id, fixture_id)
            if fixture.status != FixtureStatus.SCHEDULED:
                raise InvalidState(league.id, fixture.status.value, f"record a result for fixture {fixture_id}")
            if home_goals < 0 or away_goals < 0:
                raise InvalidResult(league.id, fixture_id, "goals cannot be negative")
            updated = copy.deepcopy(league)
            division = updated.division(fixture.division_id)
            division.fixtures = [
                replace(f, status=FixtureStatus.COMPLETED, result=FixtureResult(home_goals, away_goals))
                if f.id == fixture_id else f
                for f in division.fixtures
            ]
            if updated.status == LeagueStatus.REGISTRATION_CLOSED:
                updated = state_machine.transition(updated, LeagueStatus.ACTIVE)
                logger.info("League %s: registration_closed -> active (first result)", league_id)
            saved = self._league_repo.save(conn, updated)
            logger.info("Recorded %d-%d for fixture %s in league %s", home_goals, away_goals, fixture_id, league_id)
            table = standings_for_division(saved, fixture.division_id, self._club_repo.name_resolver(conn))
            self._standings_cache.put(conn, saved.id, fixture.division_id, saved.version, table)
            return table

    def update_fixture_schedule(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        fixture_id: str,
        date: str | None = UNCHANGED,
        time: str | None = UNCHANGED,
        venue_id: str | None = UNCHANGED,
        official_id: str | None = UNCHANGED,
    ) -> None:
        """
        Metadata-only update of a scheduled fixture.
        Omitted fields keep their value; an explicit None clears the field.
        """
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            fixture = league.find_fixture(fixture_id)
            if fixture is None:
                raise FixtureNotFound(league.id, fixture_id)
            state_machine.assert_can_update_schedule(league)
            if fixture.status != FixtureStatus.SCHEDULED:
                raise InvalidState(league.id, fixture.status.value, f"update the schedule of fixture {fixture_id}")
            current = fixture.schedule or FixtureSchedule()
            schedule = FixtureSchedule(
                date=current.date if date is UNCHANGED else date,
                time=current.time if time is UNCHANGED else time,
                venue_id=current.venue_id if venue_id is UNCHANGED else venue_id,
                official_id=current.official_id if official_id is UNCHANGED else official_id,
            )
            updated = copy.deepcopy(league)
            division = updated.division(fixture.division_id)
            division.fixtures = [
                replace(f, schedule=schedule) if f.id == fixture_id else f for f in division.fixtures
            ]
            self._league_repo.save(conn, updated)

    # ---------- Disqualification ----------

    def disqualify_club(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        club_id: str,
        reason: str | None = None,
    ) -> DisqualificationOutcome:
        """
        Remove club_id from the league as one unit: membership, unplayed fixtures,
        policy on played fixtures, rebuilt table without the club.
        """
        with _serialized(league_id):
            league = self.get_league(conn, league_id)
            try:
                outcome = disqualify(
                    league, club_id, reason=reason, policy=self.policy,
                    club_name=self._club_repo.name_resolver(conn),
                )
            except ValueError as e:
                logger.warning("Disqualification rejected for club %s in league %s: %s", club_id, league_id, e)
                raise
            saved = self._league_repo.save(conn, outcome.league)
            outcome.league = saved
            self._standings_cache.put(
                conn, saved.id, outcome.record.division_id, saved.version, outcome.updated_standings
            )
            return outcome
