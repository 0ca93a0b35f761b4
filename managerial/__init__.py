"""Managerial decisions: pitching changes, bullpen roles, pinch hitting."""

from managerial.classifier import (
    LeaguePitchingNorms,
    calculate_league_norms,
    calculate_pitcher_quality,
    classify_pitchers,
)
from managerial.pitching import (
    BullpenState,
    ManagerGameState,
    PitcherRole,
    PitchingDecision,
    PullDecisionOptions,
    calculate_leverage_index,
    reduce_stamina,
    select_reliever,
    should_pull_pitcher,
)
from managerial.platoon import add_noise, get_platoon_rates, is_platoon_disadvantage
from managerial.roster_manager import RosterManager, UsageRecord
from managerial.substitutions import (
    PinchHitDecision,
    find_best_pinch_hitter,
    get_available_bench,
    should_pinch_hit,
)

__all__ = [
    "BullpenState",
    "LeaguePitchingNorms",
    "ManagerGameState",
    "PinchHitDecision",
    "PitcherRole",
    "PitchingDecision",
    "PullDecisionOptions",
    "RosterManager",
    "UsageRecord",
    "add_noise",
    "calculate_league_norms",
    "calculate_leverage_index",
    "calculate_pitcher_quality",
    "classify_pitchers",
    "find_best_pinch_hitter",
    "get_available_bench",
    "get_platoon_rates",
    "is_platoon_disadvantage",
    "reduce_stamina",
    "select_reliever",
    "should_pinch_hit",
    "should_pull_pitcher",
]
