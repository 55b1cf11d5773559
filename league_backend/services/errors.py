"""
Typed failures for league operations.
Each error carries the identifiers needed to build a precise user-facing message.
"""
from __future__ import annotations


class LeagueError(ValueError):
    """Base class for every league operation failure."""

    def __init__(self, message: str, league_id: str | None = None) -> None:
        super().__init__(message)
        self.league_id = league_id


class LeagueNotFound(LeagueError):
    def __init__(self, league_id: str) -> None:
        super().__init__(f"League not found: {league_id}", league_id)


class DivisionNotFound(LeagueError):
    def __init__(self, league_id: str, division_id: str) -> None:
        super().__init__(f"Division {division_id} not found in league {league_id}", league_id)
        self.division_id = division_id


class InvalidState(LeagueError):
    """Operation illegal for the current league (or fixture) status."""

    def __init__(
        self,
        league_id: str,
        current: str,
        operation: str,
        detail: str | None = None,
    ) -> None:
        message = f"Cannot {operation} in league {league_id}: status is {current}"
        if detail:
            message += f" ({detail})"
        super().__init__(message, league_id)
        self.current = current
        self.operation = operation
        self.detail = detail


class InsufficientClubs(LeagueError):
    def __init__(self, league_id: str, division_id: str, club_count: int, required: int) -> None:
        super().__init__(
            f"Division {division_id} in league {league_id} has {club_count} clubs; at least {required} required",
            league_id,
        )
        self.division_id = division_id
        self.club_count = club_count
        self.required = required


class AlreadyGenerated(LeagueError):
    def __init__(self, league_id: str, division_id: str, fixture_count: int) -> None:
        super().__init__(
            f"Fixtures already generated for division {division_id} in league {league_id} "
            f"({fixture_count} fixtures)",
            league_id,
        )
        self.division_id = division_id
        self.fixture_count = fixture_count


class ClubNotInLeague(LeagueError):
    def __init__(self, league_id: str, club_id: str) -> None:
        super().__init__(f"Club {club_id} is not registered in any division of league {league_id}", league_id)
        self.club_id = club_id


class ClubAlreadyRegistered(LeagueError):
    def __init__(self, league_id: str, club_id: str) -> None:
        super().__init__(f"Club {club_id} is already registered in league {league_id}", league_id)
        self.club_id = club_id


class LeagueFull(LeagueError):
    def __init__(self, league_id: str, max_clubs: int) -> None:
        super().__init__(f"League {league_id} is full (max {max_clubs} clubs)", league_id)
        self.max_clubs = max_clubs


class FixtureNotFound(LeagueError):
    def __init__(self, league_id: str, fixture_id: str) -> None:
        super().__init__(f"Fixture {fixture_id} not found in league {league_id}", league_id)
        self.fixture_id = fixture_id


class InvalidResult(LeagueError):
    def __init__(self, league_id: str, fixture_id: str, detail: str) -> None:
        super().__init__(f"Invalid result for fixture {fixture_id} in league {league_id}: {detail}", league_id)
        self.fixture_id = fixture_id


class VersionConflict(LeagueError):
    """The league changed between load and commit."""

    def __init__(self, league_id: str, expected_version: int) -> None:
        super().__init__(
            f"League {league_id} was modified concurrently (expected version {expected_version})",
            league_id,
        )
        self.expected_version = expected_version
