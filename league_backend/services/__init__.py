"""
Service layer: domain logic, state machine, fixture generation, standings, disqualification.
Pure computation lives in scheduling / standings / disqualification; league_service
orchestrates persistence (import it from league_backend.services.league_service).
"""
from .errors import (
    AlreadyGenerated,
    ClubAlreadyRegistered,
    ClubNotInLeague,
    DivisionNotFound,
    FixtureNotFound,
    InsufficientClubs,
    InvalidResult,
    InvalidState,
    LeagueError,
    LeagueFull,
    LeagueNotFound,
    VersionConflict,
)
from .scheduling import generate_division_fixtures, round_robin_pairings
from .standings import calculate_division_standings
from .disqualification import DisqualificationOutcome, disqualify

__all__ = [
    "AlreadyGenerated",
    "ClubAlreadyRegistered",
    "ClubNotInLeague",
    "DivisionNotFound",
    "FixtureNotFound",
    "InsufficientClubs",
    "InvalidResult",
    "InvalidState",
    "LeagueError",
    "LeagueFull",
    "LeagueNotFound",
    "VersionConflict",
    "generate_division_fixtures",
    "round_robin_pairings",
    "calculate_division_standings",
    "DisqualificationOutcome",
    "disqualify",
]
