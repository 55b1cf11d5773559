"""
SQLite schema for league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def clubs_schema() -> str:
    """Club directory records supplied by the surrounding application. Names only."""
    return """
    CREATE TABLE IF NOT EXISTS clubs (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """


def leagues_schema() -> str:
    """Competition container. status: draft | registration | registration_closed | active | completed | cancelled."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        organizer_id TEXT NOT NULL,
        season TEXT,
        status TEXT NOT NULL DEFAULT 'draft',
        registration_closed INTEGER NOT NULL DEFAULT 0,
        min_clubs INTEGER,
        max_clubs INTEGER,
        registration_deadline TEXT,
        points_win INTEGER NOT NULL DEFAULT 3,
        points_draw INTEGER NOT NULL DEFAULT 1,
        points_loss INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT
    );
    CREATE INDEX IF NOT EXISTS ix_leagues_organizer ON leagues(organizer_id);
    CREATE INDEX IF NOT EXISTS ix_leagues_status ON leagues(status);
    """


def divisions_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS divisions (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        name TEXT NOT NULL,
        sort_order INTEGER NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS ix_divisions_league ON divisions(league_id);
    """


def division_clubs_schema() -> str:
    """Club membership. A club is registered in at most one division per league."""
    return """
    CREATE TABLE IF NOT EXISTS division_clubs (
        league_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        club_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        PRIMARY KEY (division_id, club_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE,
        FOREIGN KEY (division_id) REFERENCES divisions(id) ON DELETE CASCADE
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_division_clubs_league_club ON division_clubs(league_id, club_id);
    """


def fixtures_schema() -> str:
    """Fixture within a division. completed => goals set; cancelled => goals NULL."""
    return """
    CREATE TABLE IF NOT EXISTS fixtures (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        round INTEGER NOT NULL,
        home_club_id TEXT NOT NULL,
        away_club_id TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'scheduled',
        home_goals INTEGER,
        away_goals INTEGER,
        walkover INTEGER NOT NULL DEFAULT 0,
        scheduled_date TEXT,
        scheduled_time TEXT,
        venue_id TEXT,
        official_id TEXT,
        CHECK (home_club_id <> away_club_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE,
        FOREIGN KEY (division_id) REFERENCES divisions(id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS ix_fixtures_division ON fixtures(division_id);
    CREATE INDEX IF NOT EXISTS ix_fixtures_league ON fixtures(league_id);
    """


def disqualifications_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS disqualifications (
        league_id TEXT NOT NULL,
        club_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        reason TEXT,
        disqualified_at TEXT NOT NULL,
        PRIMARY KEY (league_id, club_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE
    );
    """


def standings_cache_schema() -> str:
    """Derived copy of the last computed table, for display only. Never the source of truth."""
    return """
    CREATE TABLE IF NOT EXISTS standings_cache (
        league_id TEXT NOT NULL,
        division_id TEXT NOT NULL,
        league_version INTEGER NOT NULL,
        rows_json TEXT NOT NULL,
        computed_at TEXT NOT NULL,
        PRIMARY KEY (league_id, division_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE
    );
    """


def all_schema_sql() -> str:
    """Full schema in dependency order."""
    return (
        clubs_schema()
        + leagues_schema()
        + divisions_schema()
        + division_clubs_schema()
        + fixtures_schema()
        + disqualifications_schema()
        + standings_cache_schema()
    )
