"""
Repository interfaces for league data.
No business logic: only read/write operations.

The league aggregate (league row, divisions, memberships, fixtures,
disqualification records) is loaded as one snapshot and committed as one unit
with an optimistic version check.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from league_backend.models import (
    Club,
    DisqualificationRecord,
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
from league_backend.services.errors import VersionConflict

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _format_optional_datetime(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


# ---------- ClubRepository ----------


class ClubRepository:
    """Club directory. Records come from the surrounding application; only names are used."""

    def upsert(self, conn: sqlite3.Connection, name: str, id: str | None = None) -> Club:
        cid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO clubs (id, name, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET name = excluded.name",
            (cid, name, now),
        )
        conn.commit()
        return self.get(conn, cid) or Club(id=cid, name=name, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, club_id: str) -> Club | None:
        row = conn.execute("SELECT id, name, created_at FROM clubs WHERE id = ?", (club_id,)).fetchone()
        if row is None:
            return None
        return Club(id=row["id"], name=row["name"], created_at=_parse_datetime(row["created_at"]))

    def list_all(self, conn: sqlite3.Connection) -> list[Club]:
        rows = conn.execute("SELECT id, name, created_at FROM clubs ORDER BY name, id").fetchall()
        return [Club(id=r["id"], name=r["name"], created_at=_parse_datetime(r["created_at"])) for r in rows]

    def name_resolver(self, conn: sqlite3.Connection) -> Callable[[str], str]:
        """Snapshot of the directory as a club_id -> name function. Unknown ids resolve to themselves."""
        names = {r["id"]: r["name"] for r in conn.execute("SELECT id, name FROM clubs").fetchall()}
        return lambda club_id: names.get(club_id, club_id)


# ---------- LeagueRepository ----------


class LeagueRepository:
    """Load and commit league aggregates. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        organizer_id: str,
        season: str | None = None,
        min_clubs: int | None = None,
        max_clubs: int | None = None,
        points_system: PointsSystem | None = None,
        registration_deadline: datetime | None = None,
        id: str | None = None,
    ) -> League:
        lid = id or str(uuid.uuid4())
        points = points_system or PointsSystem()
        now = _now_iso()
        conn.execute(
            "INSERT INTO leagues (id, name, organizer_id, season, status, registration_closed, min_clubs, max_clubs, "
            "registration_deadline, points_win, points_draw, points_loss, version, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?, 0, ?, ?)",
            (
                lid, name, organizer_id, season, LeagueStatus.DRAFT.value, min_clubs, max_clubs,
                _format_optional_datetime(registration_deadline),
                points.win, points.draw, points.loss, now, now,
            ),
        )
        conn.commit()
        return League(
            id=lid, name=name, organizer_id=organizer_id, status=LeagueStatus.DRAFT,
            created_at=_parse_datetime(now), season=season, min_clubs=min_clubs,
            max_clubs=max_clubs, registration_deadline=registration_deadline, points_system=points,
        )

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(
            "SELECT id, name, organizer_id, season, status, registration_closed, min_clubs, max_clubs, "
            "registration_deadline, points_win, points_draw, points_loss, version, created_at "
            "FROM leagues WHERE id = ?",
            (league_id,),
        ).fetchone()
        if row is None:
            return None
        league = League(
            id=row["id"],
            name=row["name"],
            organizer_id=row["organizer_id"],
            status=LeagueStatus(row["status"]),
            created_at=_parse_datetime(row["created_at"]),
            season=row["season"],
            registration_closed=bool(row["registration_closed"]),
            min_clubs=row["min_clubs"],
            max_clubs=row["max_clubs"],
            registration_deadline=(
                _parse_datetime(row["registration_deadline"]) if row["registration_deadline"] else None
            ),
            points_system=PointsSystem(
                win=row["points_win"], draw=row["points_draw"], loss=row["points_loss"]
            ),
            version=row["version"],
        )
        league.divisions = self._load_divisions(conn, league_id)
        league.disqualifications = self._load_disqualifications(conn, league_id)
        return league

    def delete(self, conn: sqlite3.Connection, league: League) -> None:
        """
        Remove the league and everything it owns (cascading foreign keys).
        Same optimistic version check as save.
        """
        try:
            cur = conn.execute(
                "DELETE FROM leagues WHERE id = ? AND version = ?", (league.id, league.version)
            )
            if cur.rowcount == 0:
                raise VersionConflict(league.id, league.version)
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def list_all(self, conn: sqlite3.Connection, status: LeagueStatus | None = None) -> list[League]:
        if status is None:
            rows = conn.execute("SELECT id FROM leagues ORDER BY created_at DESC").fetchall()
        else:
            rows = conn.execute(
                "SELECT id FROM leagues WHERE status = ? ORDER BY created_at DESC", (status.value,)
            ).fetchall()
        result: list[League] = []
        for r in rows:
            league = self.get(conn, r["id"])
            if league is not None:
                result.append(league)
        return result

    def _load_divisions(self, conn: sqlite3.Connection, league_id: str) -> list[Division]:
        div_rows = conn.execute(
            "SELECT id, league_id, name, sort_order FROM divisions WHERE league_id = ? ORDER BY sort_order, id",
            (league_id,),
        ).fetchall()
        divisions: list[Division] = []
        for d in div_rows:
            club_rows = conn.execute(
                "SELECT club_id FROM division_clubs WHERE division_id = ? ORDER BY position",
                (d["id"],),
            ).fetchall()
            fixture_rows = conn.execute(
                "SELECT * FROM fixtures WHERE division_id = ? ORDER BY round, id",
                (d["id"],),
            ).fetchall()
            divisions.append(Division(
                id=d["id"],
                league_id=d["league_id"],
                name=d["name"],
                order=d["sort_order"],
                club_ids=[r["club_id"] for r in club_rows],
                fixtures=[_row_to_fixture(r) for r in fixture_rows],
            ))
        return divisions

    def _load_disqualifications(self, conn: sqlite3.Connection, league_id: str) -> list[DisqualificationRecord]:
        rows = conn.execute(
            "SELECT club_id, division_id, reason, disqualified_at FROM disqualifications "
            "WHERE league_id = ? ORDER BY disqualified_at",
            (league_id,),
        ).fetchall()
        return [
            DisqualificationRecord(
                club_id=r["club_id"],
                division_id=r["division_id"],
                reason=r["reason"],
                disqualified_at=_parse_datetime(r["disqualified_at"]),
            )
            for r in rows
        ]

    def save(self, conn: sqlite3.Connection, league: League) -> League:
        """
        Commit the whole aggregate in one transaction.
        league.version must match the stored version; raises VersionConflict otherwise.
        Returns the league with its new version.
        """
        try:
            cur = conn.execute(
                "UPDATE leagues SET name = ?, season = ?, status = ?, registration_closed = ?, min_clubs = ?, "
                "max_clubs = ?, registration_deadline = ?, points_win = ?, points_draw = ?, points_loss = ?, "
                "version = version + 1, updated_at = ? WHERE id = ? AND version = ?",
                (
                    league.name,
                    league.season,
                    league.status.value,
                    int(league.registration_closed),
                    league.min_clubs,
                    league.max_clubs,
                    _format_optional_datetime(league.registration_deadline),
                    league.points_system.win,
                    league.points_system.draw,
                    league.points_system.loss,
                    _now_iso(),
                    league.id,
                    league.version,
                ),
            )
            if cur.rowcount == 0:
                raise VersionConflict(league.id, league.version)
            conn.execute("DELETE FROM fixtures WHERE league_id = ?", (league.id,))
            conn.execute("DELETE FROM division_clubs WHERE league_id = ?", (league.id,))
            conn.execute("DELETE FROM disqualifications WHERE league_id = ?", (league.id,))
            for div in league.divisions:
                conn.execute(
                    "INSERT INTO divisions (id, league_id, name, sort_order) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET name = excluded.name, sort_order = excluded.sort_order",
                    (div.id, league.id, div.name, div.order),
                )
                conn.executemany(
                    "INSERT INTO division_clubs (league_id, division_id, club_id, position) VALUES (?, ?, ?, ?)",
                    [(league.id, div.id, cid, pos) for pos, cid in enumerate(div.club_ids)],
                )
                conn.executemany(
                    "INSERT INTO fixtures (id, league_id, division_id, round, home_club_id, away_club_id, status, "
                    "home_goals, away_goals, walkover, scheduled_date, scheduled_time, venue_id, official_id) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [_fixture_to_row(f) for f in div.fixtures],
                )
            conn.executemany(
                "INSERT INTO disqualifications (league_id, club_id, division_id, reason, disqualified_at) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (league.id, r.club_id, r.division_id, r.reason, r.disqualified_at.isoformat())
                    for r in league.disqualifications
                ],
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        return replace(league, version=league.version + 1)


def _row_to_fixture(r: sqlite3.Row) -> Fixture:
    status = FixtureStatus(r["status"])
    result = None
    if r["home_goals"] is not None and r["away_goals"] is not None:
        result = FixtureResult(home_goals=r["home_goals"], away_goals=r["away_goals"], walkover=bool(r["walkover"]))
    schedule = FixtureSchedule(
        date=r["scheduled_date"],
        time=r["scheduled_time"],
        venue_id=r["venue_id"],
        official_id=r["official_id"],
    )
    return Fixture(
        id=r["id"],
        league_id=r["league_id"],
        division_id=r["division_id"],
        round=r["round"],
        home_club_id=r["home_club_id"],
        away_club_id=r["away_club_id"],
        status=status,
        result=result,
        schedule=None if schedule.is_empty() else schedule,
    )


def _fixture_to_row(f: Fixture) -> tuple[Any, ...]:
    schedule = f.schedule or FixtureSchedule()
    return (
        f.id,
        f.league_id,
        f.division_id,
        f.round,
        f.home_club_id,
        f.away_club_id,
        f.status.value,
        f.result.home_goals if f.result else None,
        f.result.away_goals if f.result else None,
        int(f.result.walkover) if f.result else 0,
        schedule.date,
        schedule.time,
        schedule.venue_id,
        schedule.official_id,
    )


# ---------- StandingsCacheRepository ----------


class StandingsCacheRepository:
    """
    Derived standings kept for display. Tagged with the league version they came from;
    a table computed from an older version never replaces a newer one.
    """

    def put(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        division_id: str,
        league_version: int,
        rows: list[StandingsEntry],
    ) -> None:
        conn.execute(
            "INSERT INTO standings_cache (league_id, division_id, league_version, rows_json, computed_at) "
            "VALUES (?, ?, ?, ?, ?) ON CONFLICT(league_id, division_id) DO UPDATE SET "
            "league_version = excluded.league_version, rows_json = excluded.rows_json, "
            "computed_at = excluded.computed_at "
            "WHERE excluded.league_version >= standings_cache.league_version",
            (league_id, division_id, league_version, json.dumps([r.to_dict() for r in rows]), _now_iso()),
        )
        conn.commit()

    def get(self, conn: sqlite3.Connection, league_id: str, division_id: str) -> dict[str, Any] | None:
        row = conn.execute(
            "SELECT league_version, rows_json, computed_at FROM standings_cache WHERE league_id = ? AND division_id = ?",
            (league_id, division_id),
        ).fetchone()
        if row is None:
            return None
        return {
            "derived": True,
            "league_version": row["league_version"],
            "computed_at": row["computed_at"],
            "rows": json.loads(row["rows_json"]),
        }
