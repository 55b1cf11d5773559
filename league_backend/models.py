"""
Data models for the league backend.
Domain objects only: no persistence or API logic.

League-centric aggregate: a league owns divisions; a division owns its club ids
and its fixture list. Standings are derived from fixtures and never stored as
the source of truth.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- League status (state machine) ----------
class LeagueStatus(str, Enum):
    """League lifecycle: draft → registration → registration_closed → active → completed."""
    DRAFT = "draft"
    REGISTRATION = "registration"  # Accepting clubs
    REGISTRATION_CLOSED = "registration_closed"  # Clubs frozen, fixtures may be generated
    ACTIVE = "active"  # Results being recorded
    COMPLETED = "completed"  # Season over
    CANCELLED = "cancelled"


# ---------- Fixture status ----------
class FixtureStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ---------- Points system ----------
@dataclass(frozen=True)
class PointsSystem:
    win: int = 3
    draw: int = 1
    loss: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"win": self.win, "draw": self.draw, "loss": self.loss}


# ---------- Disqualification policy ----------
@dataclass(frozen=True)
class DisqualificationPolicy:
    """
    What happens to a disqualified club's fixtures beyond cancelling the unplayed ones.
    Defaults: completed results stand, opponents get no walkover.
    """
    void_completed_results: bool = False
    award_walkovers: bool = False
    walkover_goals: int = 3


# ---------- Club (directory record) ----------
@dataclass
class Club:
    """Club record supplied by the surrounding application. Only the name is used here."""
    id: str
    name: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": self.created_at.isoformat()}


# ---------- Fixture ----------
@dataclass(frozen=True)
class FixtureResult:
    home_goals: int
    away_goals: int
    walkover: bool = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"home_goals": self.home_goals, "away_goals": self.away_goals}
        if self.walkover:
            d["walkover"] = True
        return d


@dataclass(frozen=True)
class FixtureSchedule:
    """Scheduling metadata. Opaque to the league core; passed through unchanged."""
    date: str | None = None
    time: str | None = None
    venue_id: str | None = None
    official_id: str | None = None

    def is_empty(self) -> bool:
        return self.date is None and self.time is None and self.venue_id is None and self.official_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "time": self.time,
            "venue_id": self.venue_id,
            "official_id": self.official_id,
        }


@dataclass
class Fixture:
    """
    One match between two clubs of a division.
    completed => result is set; cancelled => result is None.
    """
    id: str
    league_id: str
    division_id: str
    round: int  # 1-based
    home_club_id: str
    away_club_id: str
    status: FixtureStatus = FixtureStatus.SCHEDULED
    result: FixtureResult | None = None
    schedule: FixtureSchedule | None = None

    def involves(self, club_id: str) -> bool:
        return club_id in (self.home_club_id, self.away_club_id)

    def opponent_of(self, club_id: str) -> str | None:
        if club_id == self.home_club_id:
            return self.away_club_id
        if club_id == self.away_club_id:
            return self.home_club_id
        return None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "league_id": self.league_id,
            "division_id": self.division_id,
            "round": self.round,
            "home_club_id": self.home_club_id,
            "away_club_id": self.away_club_id,
            "status": self.status.value,
        }
        if self.result is not None:
            d["result"] = self.result.to_dict()
        if self.schedule is not None and not self.schedule.is_empty():
            d["schedule"] = self.schedule.to_dict()
        return d


# ---------- Division ----------
@dataclass
class Division:
    """
    Partition of a league's clubs with its own fixture list and table.
    A club id appears in at most one division per league.
    """
    id: str
    league_id: str
    name: str
    order: int
    club_ids: list[str] = field(default_factory=list)
    fixtures: list[Fixture] = field(default_factory=list)

    def has_fixtures(self) -> bool:
        return len(self.fixtures) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "league_id": self.league_id,
            "name": self.name,
            "order": self.order,
            "club_ids": list(self.club_ids),
            "fixtures": [f.to_dict() for f in self.fixtures],
        }


# ---------- Disqualification ----------
@dataclass(frozen=True)
class DisqualificationRecord:
    club_id: str
    division_id: str
    reason: str | None
    disqualified_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "club_id": self.club_id,
            "division_id": self.division_id,
            "reason": self.reason,
            "disqualified_at": self.disqualified_at.isoformat(),
        }


# ---------- League ----------
@dataclass
class League:
    """
    Competition container. Owns divisions, fixtures (through divisions) and status.
    version is bumped on every committed mutation (optimistic concurrency).
    """
    id: str
    name: str
    organizer_id: str
    status: LeagueStatus
    created_at: datetime
    season: str | None = None
    registration_closed: bool = False
    min_clubs: int | None = None
    max_clubs: int | None = None
    registration_deadline: datetime | None = None  # timezone-aware; registration refused after it
    points_system: PointsSystem = field(default_factory=PointsSystem)
    divisions: list[Division] = field(default_factory=list)
    disqualifications: list[DisqualificationRecord] = field(default_factory=list)
    version: int = 0

    def all_club_ids(self) -> list[str]:
        return [cid for div in self.divisions for cid in div.club_ids]

    def division(self, division_id: str) -> Division | None:
        for div in self.divisions:
            if div.id == division_id:
                return div
        return None

    def division_of_club(self, club_id: str) -> Division | None:
        for div in self.divisions:
            if club_id in div.club_ids:
                return div
        return None

    def find_fixture(self, fixture_id: str) -> Fixture | None:
        for div in self.divisions:
            for f in div.fixtures:
                if f.id == fixture_id:
                    return f
        return None

    def disqualified_club_ids(self) -> set[str]:
        return {r.club_id for r in self.disqualifications}

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "organizer_id": self.organizer_id,
            "status": self.status.value,
            "registration_closed": self.registration_closed,
            "points_system": self.points_system.to_dict(),
            "created_at": self.created_at.isoformat(),
            "version": self.version,
            "divisions": [div.to_dict() for div in self.divisions],
        }
        if self.season is not None:
            d["season"] = self.season
        if self.min_clubs is not None:
            d["min_clubs"] = self.min_clubs
        if self.max_clubs is not None:
            d["max_clubs"] = self.max_clubs
        if self.registration_deadline is not None:
            d["registration_deadline"] = self.registration_deadline.isoformat()
        if self.disqualifications:
            d["disqualifications"] = [r.to_dict() for r in self.disqualifications]
        return d


# ---------- Standings ----------
@dataclass
class StandingsEntry:
    """One table row. Derived from completed fixtures; rebuilt on every calculation."""
    club_id: str
    club_name: str
    position: int = 0
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "club_id": self.club_id,
            "club_name": self.club_name,
            "position": self.position,
            "played": self.played,
            "won": self.won,
            "drawn": self.drawn,
            "lost": self.lost,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
        }
