# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Pinch-hit decisions."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Optional

from managerial.pitching import ManagerGameState, calculate_leverage_index
from managerial.platoon import get_platoon_rates, is_platoon_disadvantage
from models import BatterStats, ThrowHand

EARLIEST_PINCH_HIT_INNING = 6


@dataclass
class PinchHitDecision:
    should_pinch_hit: bool
    pinch_hitter_id: Optional[str] = None
    reason: str = ""


def _ops(batter: BatterStats, pitcher_hand: ThrowHand | str) -> float:
    return get_platoon_rates(batter, pitcher_hand).ops()


def find_best_pinch_hitter(bench: list[BatterStats], pitcher_hand: ThrowHand | str,
                           current: BatterStats | None, rng: random.Random,
                           relaxed: bool = False) -> Optional[BatterStats]:
    """Best bench bat against *pitcher_hand*, usually the top one.

    Takes the best improvement 70% of the time, the second 20% and the
    third 10%.  With *relaxed*, anyone within 90% of the current batter's
    OPS qualifies.
    """
    if not bench:
        return None
    current_ops = _ops(current, pitcher_hand) if current else 0.0
    scored = [(b, _ops(b, pitcher_hand)) for b in bench]
    if relaxed:
        candidates = [(b, ops) for b, ops in scored if ops > current_ops or ops >= current_ops * 0.9]
    else:
        candidates = [(b, ops) for b, ops in scored if ops > current_ops]
    if not candidates:
        return None
    candidates.sort(key=lambda c: (-c[1], c[0].id))

    r = rng.random()
    if r < 0.7 or len(candidates) == 1:
        return candidates[0][0]
    if r < 0.9:
        return candidates[1][0]
    return candidates[min(2, len(candidates) - 1)][0]


def should_pinch_hit(state: ManagerGameState, batter: BatterStats, bench: list[BatterStats],
                     pitcher_hand: ThrowHand | str, rng: random.Random,
                     randomness: float = 0.15, relaxed: bool = False) -> PinchHitDecision:
    """Decide whether to send up a pinch hitter for *batter*.

    ``state.score_diff`` is from the batting team's perspective here.
    """
    if state.inning < EARLIEST_PINCH_HIT_INNING:
        return PinchHitDecision(False, reason="Too early")

    leverage = calculate_leverage_index(state)
    min_leverage = 0.7 if relaxed else 1.0
    if leverage < min_leverage:
        return PinchHitDecision(False, reason="Low leverage")

    disadvantage = is_platoon_disadvantage(batter.bats, pitcher_hand)
    platoon_required_leverage = 0.7 if relaxed else 2.0
    if not disadvantage and leverage < platoon_required_leverage:
        return PinchHitDecision(False, reason="No platoon disadvantage")

    option = find_best_pinch_hitter(bench, pitcher_hand, batter, rng, relaxed)
    if option is None:
        return PinchHitDecision(False, reason="No better bench option")

    if leverage >= 2.0 and disadvantage:
        chance = 1.0 if relaxed else 0.8
    elif leverage >= 2.0:
        chance = 0.95 if relaxed else 0.5
    elif disadvantage and leverage >= 1.3:
        chance = 0.95 if relaxed else 0.6
    elif state.inning >= 8 and abs(state.score_diff) <= 2:
        chance = 0.9 if relaxed else 0.4
    elif relaxed:
        chance = 0.95
    else:
        chance = 0.0

    chance = min(chance + randomness, 1.0)
    if rng.random() < chance:
        return PinchHitDecision(
            True, option.id, f"Pinch hit for {batter.name} ({option.name})",
        )
    return PinchHitDecision(False, reason="Manager stayed with batter")


def get_available_bench(roster: Iterable[BatterStats], lineup_ids: Iterable[str],
                        used_ids: Iterable[str]) -> list[BatterStats]:
    """Roster players neither in the lineup nor already used this game."""
    blocked = set(lineup_ids) | set(used_ids)
    return [b for b in roster if b.id not in blocked]
