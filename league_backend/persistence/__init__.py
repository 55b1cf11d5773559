"""
Persistence layer for league data.
No business logic: only read/write interfaces.
"""
from .db import get_connection, init_db
from .repositories import (
    ClubRepository,
    LeagueRepository,
    StandingsCacheRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "ClubRepository",
    "LeagueRepository",
    "StandingsCacheRepository",
]
