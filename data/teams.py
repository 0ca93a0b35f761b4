# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Team-by-year directory backed by an injected LookupCache."""

from __future__ import annotations

import logging
from typing import Optional

from data.cache import LookupCache
from models import SeasonPackage, Team

logger = logging.getLogger(__name__)

NAMESPACE = "teams_by_year"


class TeamDirectory:
    """Look up the teams that played in a season.

    Args:
        cache: Cache that holds one table per season year.
    """

    def __init__(self, cache: LookupCache) -> None:
        self._cache = cache

    def register(self, season: SeasonPackage) -> int:
        """Record *season*'s teams.  Returns how many were stored."""
        table = {team_id: team.model_dump() for team_id, team in season.teams.items()}
        self._cache.set(NAMESPACE, {"year": season.year}, table)
        logger.debug("Registered %d teams for %d", len(table), season.year)
        return len(table)

    def _table(self, year: int) -> dict:
        return self._cache.get(NAMESPACE, {"year": year}) or {}

    def teams(self, year: int) -> list[Team]:
        return [Team(**data) for _, data in sorted(self._table(year).items())]

    def get(self, year: int, team_id: str) -> Optional[Team]:
        data = self._table(year).get(team_id)
        return Team(**data) if data else None

    def by_league(self, year: int, league: str) -> list[Team]:
        return [t for t in self.teams(year) if t.league == league]

    def display_name(self, year: int, team_id: str) -> str:
        team = self.get(year, team_id)
        return team.display_name if team else team_id
