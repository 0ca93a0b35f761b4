# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Season-level roster management.

Keeps each team's starting rotation turning over from game to game and
decides when a regular is over their playing-time target and should sit.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional, Protocol

from lineup_builder import starter_quality
from models import BatterStats, PitcherStats

logger = logging.getLogger(__name__)

MAX_ROTATION_SIZE = 5
ROTATION_START_RATE = 0.3
MAX_UNDERAGE_BOOST = 2.0
UNDERAGE_BOOST_MULTIPLIER = 2.0

# (overage fraction of season total, probability of resting)
REST_THRESHOLDS = (
    (0.25, 0.90),
    (0.15, 0.70),
    (0.10, 0.50),
    (0.05, 0.30),
    (0.00, 0.10),
)


@dataclass(frozen=True)
class UsageRecord:
    player_id: str
    actual_season_total: int
    replay_current_total: int


class UsageSource(Protocol):
    def get_usage(self, player_id: str) -> Optional[UsageRecord]: ...


@dataclass(frozen=True)
class RotationSlot:
    pitcher_id: str
    rotation_index: int
    quality: float


@dataclass
class RestDecision:
    should_rest: bool
    reason: str = ""


def _hitter_score(batter: BatterStats) -> float:
    return (batter.rates.vs_lhp.on_base() + batter.rates.vs_rhp.on_base()) / 2


class RosterManager:
    """Rotation and rest decisions across a season.

    Args:
        usage: Source of per-player usage so far this replay.
        rng: Random source for rest decisions.
    """

    def __init__(self, usage: UsageSource, rng: random.Random | None = None) -> None:
        self._usage = usage
        self._rng = rng or random.Random()
        self._rotations: dict[str, list[RotationSlot]] = {}
        self._next: dict[str, int] = {}

    def build_rotations(self, pitchers: dict[str, PitcherStats], team_ids: list[str]) -> None:
        by_team: dict[str, list[PitcherStats]] = {t: [] for t in team_ids}
        for p in pitchers.values():
            by_team.setdefault(p.team_id, []).append(p)
        for team_id, staff in by_team.items():
            qualified = [
                p for p in staff if p.games > 0 and p.start_rate >= ROTATION_START_RATE
            ]
            qualified.sort(key=lambda p: (-starter_quality(p), p.id))
            self._rotations[team_id] = [
                RotationSlot(p.id, i, starter_quality(p))
                for i, p in enumerate(qualified[:MAX_ROTATION_SIZE])
            ]
            self._next[team_id] = 0

    def rotation(self, team_id: str) -> list[RotationSlot]:
        return list(self._rotations.get(team_id, []))

    def next_starter(self, team_id: str) -> Optional[str]:
        """Return today's starter and advance the rotation."""
        rotation = self._rotations.get(team_id)
        if not rotation:
            return None
        index = self._next.get(team_id, 0)
        self._next[team_id] = (index + 1) % len(rotation)
        return rotation[index].pitcher_id

    def should_rest_batter(self, batter_id: str, game_number: int,
                           total_games: int) -> RestDecision:
        usage = self._usage.get_usage(batter_id)
        if usage is None or usage.actual_season_total <= 0 or total_games <= 0:
            return RestDecision(False)

        target = usage.actual_season_total * (game_number / total_games)
        overage = (usage.replay_current_total - target) / usage.actual_season_total
        if overage <= 0:
            return RestDecision(False)

        chance = next((p for threshold, p in REST_THRESHOLDS if overage >= threshold), 0.0)
        if self._rng.random() < chance:
            return RestDecision(True, f"Over target by {overage:.0%}")
        return RestDecision(False)

    def find_replacement(self, resting_id: str, candidates: list[BatterStats],
                         game_number: int, total_games: int) -> Optional[str]:
        """Best on-base candidate, boosted up to 2x when behind their usage target."""
        progress = game_number / total_games if total_games > 0 else 0.0
        best: tuple[float, str] | None = None
        for player in candidates:
            if player.id == resting_id:
                continue
            score = _hitter_score(player)
            usage = self._usage.get_usage(player.id)
            if usage and usage.actual_season_total > 0:
                target = usage.actual_season_total * progress
                underage = (target - usage.replay_current_total) / usage.actual_season_total
                if underage > 0:
                    boost = min(underage * UNDERAGE_BOOST_MULTIPLIER, MAX_UNDERAGE_BOOST - 1)
                    score *= 1 + boost
            key = (score, player.id)
            if best is None or key > best:
                best = key
        return best[1] if best else None
