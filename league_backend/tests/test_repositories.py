"""
Tests for the league aggregate repository: round-trip, optimistic versioning, rollback.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from league_backend.models import (
    DisqualificationRecord,
    Division,
    Fixture,
    FixtureResult,
    FixtureSchedule,
    FixtureStatus,
    LeagueStatus,
    StandingsEntry,
)
from league_backend.persistence.db import get_connection, init_db, set_db_path
from league_backend.persistence.repositories import (
    ClubRepository,
    LeagueRepository,
    StandingsCacheRepository,
)
from league_backend.services.errors import VersionConflict


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "repo_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def repo():
    return LeagueRepository()


def _populated(league):
    fixtures = [
        Fixture(id="F1", league_id=league.id, division_id="D1", round=1, home_club_id="A", away_club_id="B",
                status=FixtureStatus.COMPLETED, result=FixtureResult(2, 2)),
        Fixture(id="F2", league_id=league.id, division_id="D1", round=2, home_club_id="B", away_club_id="C",
                schedule=FixtureSchedule(date="2026-05-01", time="19:30", venue_id="V9")),
        Fixture(id="F3", league_id=league.id, division_id="D1", round=3, home_club_id="C", away_club_id="A",
                status=FixtureStatus.COMPLETED, result=FixtureResult(3, 0, walkover=True)),
    ]
    return replace(
        league,
        status=LeagueStatus.ACTIVE,
        registration_closed=True,
        divisions=[
            Division(id="D1", league_id=league.id, name="Premier", order=1, club_ids=["C", "A", "B"],
                     fixtures=fixtures),
            Division(id="D2", league_id=league.id, name="Championship", order=2, club_ids=[]),
        ],
        disqualifications=[
            DisqualificationRecord(club_id="Z", division_id="D1", reason=None,
                                   disqualified_at=datetime(2026, 2, 1, tzinfo=timezone.utc)),
        ],
    )


def test_create_and_get(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1", season="2026", max_clubs=10)
    stored = repo.get(db_conn, league.id)
    assert stored == league
    assert stored.version == 0
    assert repo.get(db_conn, "missing") is None


def test_aggregate_round_trip(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    saved = repo.save(db_conn, _populated(league))
    assert saved.version == 1
    stored = repo.get(db_conn, league.id)
    assert stored == saved
    # Membership order is preserved
    assert stored.divisions[0].club_ids == ["C", "A", "B"]
    assert stored.find_fixture("F2").schedule.time == "19:30"
    assert stored.find_fixture("F3").result.walkover is True


def test_save_replaces_children(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    saved = repo.save(db_conn, _populated(league))
    trimmed = replace(saved, divisions=[replace(saved.divisions[0], fixtures=saved.divisions[0].fixtures[:1]),
                                        saved.divisions[1]])
    repo.save(db_conn, trimmed)
    stored = repo.get(db_conn, league.id)
    assert [f.id for f in stored.divisions[0].fixtures] == ["F1"]


def test_stale_save_raises_version_conflict(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    repo.save(db_conn, replace(league, name="First writer"))
    with pytest.raises(VersionConflict) as exc_info:
        repo.save(db_conn, replace(league, name="Second writer"))
    assert exc_info.value.expected_version == 0
    assert repo.get(db_conn, league.id).name == "First writer"


def test_failed_save_rolls_back(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    saved = repo.save(db_conn, _populated(league))
    # Same club in two divisions violates the membership uniqueness index
    broken = replace(saved, name="Broken", divisions=[
        saved.divisions[0], replace(saved.divisions[1], club_ids=["A"]),
    ])
    with pytest.raises(Exception):
        repo.save(db_conn, broken)
    stored = repo.get(db_conn, league.id)
    assert stored == saved


def test_list_all_filters_by_status(db_conn, repo):
    a = repo.create(db_conn, "A", "org-1")
    b = repo.create(db_conn, "B", "org-1")
    repo.save(db_conn, replace(b, status=LeagueStatus.REGISTRATION))
    assert {lg.id for lg in repo.list_all(db_conn)} == {a.id, b.id}
    assert [lg.id for lg in repo.list_all(db_conn, status=LeagueStatus.DRAFT)] == [a.id]


def test_club_directory_names(db_conn):
    clubs = ClubRepository()
    clubs.upsert(db_conn, "Ashford", id="c1")
    clubs.upsert(db_conn, "Ashford Town", id="c1")
    assert clubs.get(db_conn, "c1").name == "Ashford Town"
    resolve = clubs.name_resolver(db_conn)
    assert resolve("c1") == "Ashford Town"
    assert resolve("unknown") == "unknown"


def test_standings_cache_is_tagged_with_version(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    cache = StandingsCacheRepository()
    assert cache.get(db_conn, league.id, "D1") is None
    cache.put(db_conn, league.id, "D1", 3, [StandingsEntry(club_id="A", club_name="Ashford", position=1)])
    cache.put(db_conn, league.id, "D1", 4, [StandingsEntry(club_id="B", club_name="Belmont", position=1)])
    cached = cache.get(db_conn, league.id, "D1")
    assert cached["derived"] is True
    assert cached["league_version"] == 4
    assert [row["club_id"] for row in cached["rows"]] == ["B"]


def test_standings_cache_keeps_newer_version(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    cache = StandingsCacheRepository()
    cache.put(db_conn, league.id, "D1", 5, [StandingsEntry(club_id="B", club_name="Belmont", position=1)])
    # A slower writer finishing late with an older table
    cache.put(db_conn, league.id, "D1", 4, [StandingsEntry(club_id="A", club_name="Ashford", position=1)])
    cached = cache.get(db_conn, league.id, "D1")
    assert cached["league_version"] == 5
    assert [row["club_id"] for row in cached["rows"]] == ["B"]


def test_registration_deadline_round_trip(db_conn, repo):
    deadline = datetime(2026, 8, 31, 23, 59, tzinfo=timezone.utc)
    league = repo.create(db_conn, "Test League", "org-1", registration_deadline=deadline)
    assert repo.get(db_conn, league.id).registration_deadline == deadline
    saved = repo.save(db_conn, replace(league, registration_deadline=None))
    assert repo.get(db_conn, league.id).registration_deadline is None
    assert saved.version == 1


def test_delete_cascades_to_children(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    saved = repo.save(db_conn, _populated(league))
    StandingsCacheRepository().put(db_conn, league.id, "D1", saved.version, [])
    repo.delete(db_conn, saved)
    assert repo.get(db_conn, league.id) is None
    for table in ("divisions", "division_clubs", "fixtures", "disqualifications", "standings_cache"):
        count = db_conn.execute(f"SELECT COUNT(*) FROM {table} WHERE league_id = ?", (league.id,)).fetchone()[0]
        assert count == 0, table


def test_stale_delete_raises_version_conflict(db_conn, repo):
    league = repo.create(db_conn, "Test League", "org-1")
    repo.save(db_conn, replace(league, name="Renamed"))
    with pytest.raises(VersionConflict):
        repo.delete(db_conn, league)
    assert repo.get(db_conn, league.id).name == "Renamed"
