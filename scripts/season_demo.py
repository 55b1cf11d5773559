#!/usr/bin/env python3
"""
Season demo: Create league → Register clubs → Generate fixtures → Record results → Disqualify → Standings.
Run from project root: python3 scripts/season_demo.py
"""
from __future__ import annotations

import logging
import random
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from league_backend.persistence import ClubRepository, get_connection, init_db
from league_backend.persistence.db import set_db_path
from league_backend.services.league_service import LeagueService

CLUBS = ["Ashford Rovers", "Belmont Athletic", "Cranley Town", "Dunmore United", "Eastgate Albion"]


def _print_table(rows) -> None:
    print(f"  {'Pos':>3}  {'Club':<18} {'P':>2} {'W':>2} {'D':>2} {'L':>2} {'GF':>3} {'GA':>3} {'GD':>4} {'Pts':>4}")
    for r in rows:
        print(
            f"  {r.position:>3}  {r.club_name:<18} {r.played:>2} {r.won:>2} {r.drawn:>2} {r.lost:>2} "
            f"{r.goals_for:>3} {r.goals_against:>3} {r.goal_difference:>+4} {r.points:>4}"
        )


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Use data/season_demo.db for demo (distinct from league.db)
    db_path = PROJECT_ROOT / "data" / "season_demo.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    rng = random.Random(2026)
    service = LeagueService()
    conn = get_connection()
    try:
        club_repo = ClubRepository()
        club_ids = [club_repo.upsert(conn, name).id for name in CLUBS]

        # 1. League through registration
        league = service.create_league(conn, "Demo County League", "demo-organizer", season="2026")
        service.open_registration(conn, league.id)
        for cid in club_ids:
            service.register_club(conn, league.id, cid)
        service.close_registration(conn, league.id)
        division_id = league.divisions[0].id
        print(f"Created league: {league.name} (id={league.id}) with {len(club_ids)} clubs")

        # 2. Fixtures
        fixtures = service.generate_fixtures(conn, league.id, division_id, double_round=True)
        rounds = max(f.round for f in fixtures)
        print(f"Generated {len(fixtures)} fixtures over {rounds} rounds")
        print(f"League status: {service.get_league(conn, league.id).status.value}")

        # 3. Play the first half of the season
        for f in sorted(fixtures, key=lambda f: f.round):
            if f.round > rounds // 2:
                break
            service.record_result(conn, league.id, f.id, rng.randint(0, 4), rng.randint(0, 3))
        print("\nStandings at mid-season:")
        _print_table(service.calculate_standings(conn, league.id, division_id))

        # 4. Disqualify the leader
        leader = service.calculate_standings(conn, league.id, division_id)[0]
        outcome = service.disqualify_club(conn, league.id, leader.club_id, reason="ineligible player")
        print(f"\nDisqualified {leader.club_name}: {len(outcome.cancelled_fixture_ids)} fixtures cancelled")
        _print_table(outcome.updated_standings)

        print("\nSeason demo complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
