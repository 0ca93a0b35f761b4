# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Era-specific batting-order strategies.

Managers built lineups differently across baseball history.  Each strategy
here takes the nine (or eight) hitters with their fielding positions and
returns them in batting order.  Seasons inside a transition decade blend two
adjacent strategies, slot by slot, in proportion to how far into the decade
the season falls.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from models import BatterStats


class EraStrategy(str, Enum):
    TRADITIONAL = "traditional"
    COMPOSITE = "composite"
    EARLY_ANALYTICS = "early-analytics"
    MODERN = "modern"


@dataclass(frozen=True)
class EraDetection:
    primary: EraStrategy
    secondary: Optional[EraStrategy]
    blend_factor: float  # weight given to the primary strategy, 0-1


# (batter, fielding position)
Hitter = tuple[BatterStats, int]


# ---------------------------------------------------------------------------
# Era detection
# ---------------------------------------------------------------------------

def detect_era(year: int) -> EraDetection:
    """Pick the strategy (or pair of strategies) for a season."""
    if year < 1980:
        return EraDetection(EraStrategy.TRADITIONAL, None, 1.0)
    if year >= 2010:
        return EraDetection(EraStrategy.MODERN, None, 1.0)
    if year < 1990:
        return EraDetection(EraStrategy.COMPOSITE, EraStrategy.TRADITIONAL, (year - 1980) / 10)
    if year < 2000:
        return EraDetection(EraStrategy.EARLY_ANALYTICS, EraStrategy.COMPOSITE, (year - 1990) / 10)
    return EraDetection(EraStrategy.MODERN, EraStrategy.EARLY_ANALYTICS, (year - 2000) / 10)


def is_transition_year(year: int) -> bool:
    return 1980 <= year < 2010


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def batter_score(batter: BatterStats) -> float:
    """OPS weighted 70/30 toward the split vs right-handed pitching."""
    return batter.rates.vs_rhp.ops() * 0.7 + batter.rates.vs_lhp.ops() * 0.3


def batter_obp(batter: BatterStats) -> float:
    return batter.rates.vs_rhp.on_base() * 0.7 + batter.rates.vs_lhp.on_base() * 0.3


def _ranked(hitters: list[Hitter]) -> list[Hitter]:
    # Ties broken on id so ordering never depends on input order.
    return sorted(hitters, key=lambda h: (-batter_score(h[0]), h[0].id))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

# Preferred fielding positions for batting slots 1-8: (primary, secondary).
TRADITIONAL_SLOT_ARCHETYPES: list[tuple[list[int], list[int]]] = [
    ([8, 4, 6], [7, 9]),   # leadoff: speed up the middle
    ([4, 6, 5], [3, 8]),   # contact, move the runner
    ([3, 9, 8], [7, 4]),   # best hitter
    ([3, 7, 9], [5, 8]),   # cleanup
    ([7, 5, 3], [9, 4]),   # protection
    ([9, 5, 7], [3, 8]),
    ([2, 4, 6], [5, 3]),
    ([2, 6], [4, 5]),      # weakest position player
]


def traditional_order(hitters: list[Hitter]) -> list[Hitter]:
    """Archetype lineup: each slot looks for its customary position first."""
    remaining = _ranked(hitters)
    order: list[Hitter] = []
    for primary, secondary in TRADITIONAL_SLOT_ARCHETYPES:
        if not remaining:
            break
        pick = None
        for group in (primary, secondary):
            for position in group:
                pick = next((h for h in remaining if h[1] == position), None)
                if pick:
                    break
            if pick:
                break
        if pick is None:
            pick = remaining[0]
        remaining.remove(pick)
        order.append(pick)
    order.extend(remaining)
    return order


def composite_order(hitters: list[Hitter]) -> list[Hitter]:
    """Best three hitters in the heart of the order, next two as table setters."""
    ranked = _ranked(hitters)
    if len(ranked) < 5:
        return ranked
    heart, rest = ranked[:3], ranked[3:]
    return rest[:2] + heart + rest[2:]


def early_analytics_order(hitters: list[Hitter]) -> list[Hitter]:
    """On-base leadoff, then descending OPS."""
    ranked = _ranked(hitters)
    if not ranked:
        return ranked
    leadoff = max(ranked, key=lambda h: (batter_obp(h[0]), h[0].id))
    ranked.remove(leadoff)
    return [leadoff] + ranked


def modern_order(hitters: list[Hitter]) -> list[Hitter]:
    """Best three bat 1, 2 and 4 (highest OBP leads off); next two bat 3 and 5."""
    ranked = _ranked(hitters)
    if len(ranked) < 5:
        return ranked
    top = ranked[:3]
    leadoff = max(top, key=lambda h: (batter_obp(h[0]), h[0].id))
    top.remove(leadoff)
    second, cleanup = top
    third, fifth = ranked[3], ranked[4]
    return [leadoff, second, third, cleanup, fifth] + ranked[5:]


STRATEGIES: dict[EraStrategy, Callable[[list[Hitter]], list[Hitter]]] = {
    EraStrategy.TRADITIONAL: traditional_order,
    EraStrategy.COMPOSITE: composite_order,
    EraStrategy.EARLY_ANALYTICS: early_analytics_order,
    EraStrategy.MODERN: modern_order,
}


# ---------------------------------------------------------------------------
# Blending
# ---------------------------------------------------------------------------

def blend_orders(primary: list[Hitter], secondary: Optional[list[Hitter]],
                 blend_factor: float, rng: random.Random) -> list[Hitter]:
    """Take each slot from *primary* with probability *blend_factor*.

    A hitter already placed earlier is never placed twice; any slot left
    open is filled with the unused hitters in primary order.
    """
    if secondary is None or blend_factor >= 1.0:
        return list(primary)
    if blend_factor <= 0.0:
        return list(secondary)

    used: set[str] = set()
    slots: list[Optional[Hitter]] = []
    for i, p in enumerate(primary):
        choice = p if rng.random() < blend_factor else secondary[i]
        if choice[0].id in used:
            slots.append(None)
        else:
            slots.append(choice)
            used.add(choice[0].id)

    leftovers = [h for h in primary if h[0].id not in used]
    return [s if s is not None else leftovers.pop(0) for s in slots]


def build_batting_order(hitters: list[Hitter], year: int, rng: random.Random,
                        strategy: EraStrategy | None = None) -> tuple[list[Hitter], EraDetection]:
    """Order *hitters* for a season, blending strategies in transition years."""
    era = EraDetection(strategy, None, 1.0) if strategy else detect_era(year)
    primary = STRATEGIES[era.primary](hitters)
    secondary = STRATEGIES[era.secondary](hitters) if era.secondary else None
    return blend_orders(primary, secondary, era.blend_factor, rng), era
