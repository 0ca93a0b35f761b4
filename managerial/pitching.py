# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Pitching management: when to pull a pitcher and whom to bring in.

Workloads are measured in batters faced (BFP).  Starters are judged against
their own season average (or the season norm), with the era inferred from
how deep starters typically went; relievers against their own average capped
by the season norm for the inning band they are pitching in.

A pitcher that has been removed is terminal: ``select_reliever`` never
returns a removed pitcher, the pitcher being replaced, or anyone in the
caller's exclusion set.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, Optional

from models import PitcherRoleKind, RelieverBfpNorms

logger = logging.getLogger(__name__)

DEFAULT_STARTER_BFP = 27.0
DEFAULT_RELIEVER_BFP = 12.0
FALLBACK_RELIEVER_CAPS = (15.0, 10.0, 6.0)  # early, middle, late
BLOWOUT_MARGIN = 5


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ManagerGameState:
    """The slice of game state pitching decisions need.

    ``score_diff`` is from the pitching team's perspective: positive when
    the team in the field is ahead.
    """
    inning: int
    is_top: bool
    outs: int
    bases: tuple[Optional[str], Optional[str], Optional[str]]
    score_diff: int

    @property
    def runners_on(self) -> int:
        return sum(1 for b in self.bases if b is not None)


@dataclass
class PitcherRole:
    pitcher_id: str
    role: PitcherRoleKind = PitcherRoleKind.RELIEVER
    stamina: float = 100.0
    batters_faced: int = 0
    pitches_thrown: int = 0
    avg_bfp_as_starter: Optional[float] = None
    avg_bfp_as_reliever: Optional[float] = None
    hits_allowed: int = 0
    walks_allowed: int = 0
    runs_allowed: int = 0
    is_workhorse: bool = False
    quality: float = 0.0
    removed: bool = False

    @property
    def roughness(self) -> float:
        """Baserunners allowed per batter faced in this outing."""
        if self.batters_faced == 0:
            return 0.0
        return (self.hits_allowed + self.walks_allowed) / self.batters_faced

    def remove(self) -> None:
        self.removed = True

    def to_dict(self) -> dict:
        return {
            "pitcher_id": self.pitcher_id,
            "role": self.role.value,
            "stamina": self.stamina,
            "batters_faced": self.batters_faced,
            "pitches_thrown": self.pitches_thrown,
            "hits_allowed": self.hits_allowed,
            "walks_allowed": self.walks_allowed,
            "runs_allowed": self.runs_allowed,
            "removed": self.removed,
        }


@dataclass
class BullpenState:
    starter: PitcherRole
    closer: Optional[PitcherRole] = None
    setup: list[PitcherRole] = field(default_factory=list)
    long_relief: list[PitcherRole] = field(default_factory=list)
    relievers: list[PitcherRole] = field(default_factory=list)

    def relief_pool(self) -> list[PitcherRole]:
        pool = [self.closer] if self.closer else []
        return pool + self.setup + self.long_relief + self.relievers

    def all_pitchers(self) -> list[PitcherRole]:
        return [self.starter] + self.relief_pool()

    def find(self, pitcher_id: str) -> Optional[PitcherRole]:
        return next((p for p in self.all_pitchers() if p.pitcher_id == pitcher_id), None)

    def available(self, exclude: Iterable[str] = ()) -> list[PitcherRole]:
        excluded = set(exclude)
        return [
            p for p in self.relief_pool()
            if not p.removed and p.pitcher_id not in excluded
        ]

    def to_dict(self) -> dict:
        return {
            "starter": self.starter.to_dict(),
            "closer": self.closer.to_dict() if self.closer else None,
            "setup": [p.to_dict() for p in self.setup],
            "long_relief": [p.to_dict() for p in self.long_relief],
            "relievers": [p.to_dict() for p in self.relievers],
        }


@dataclass
class PitchingDecision:
    should_change: bool
    new_pitcher_id: Optional[str] = None
    reason: str = ""


@dataclass
class PullDecisionOptions:
    season_reliever_bfp: Optional[RelieverBfpNorms] = None
    season_starter_bfp: Optional[float] = None


# ---------------------------------------------------------------------------
# Leverage and stamina
# ---------------------------------------------------------------------------

def calculate_leverage_index(state: ManagerGameState) -> float:
    """Simplified leverage index; 1.0 is an average situation."""
    inning = state.inning
    li = 1.0
    if inning >= 7:
        li = 1.2
    if inning >= 8:
        li = 1.5
    if inning >= 9:
        li = 2.0
    if inning > 9:
        li = 2.0 + (inning - 9) * 0.2

    margin = abs(state.score_diff)
    if margin <= 1:
        li *= 1.5
    elif margin <= 2:
        li *= 1.2
    elif margin <= 3:
        li *= 1.1
    elif margin >= 5:
        li *= 0.7

    if state.score_diff == 0 and inning >= 9:
        li *= 2.0

    li *= {0: 1.0, 1: 1.1, 2: 1.3, 3: 1.8}[state.runners_on]

    if state.outs == 0:
        li *= 1.1
    elif state.outs == 2:
        li *= 1.2
    return li


def reduce_stamina(current: float, pitches_in_pa: float, max_pitches: float) -> float:
    """Stamina drains faster the more tired the pitcher already is."""
    fatigue_factor = 1 + (max_pitches - current) / 100
    return max(0.0, current - pitches_in_pa * fatigue_factor)


# ---------------------------------------------------------------------------
# Reliever selection
# ---------------------------------------------------------------------------

def _first(pool: list[PitcherRole], rng: random.Random | None) -> Optional[PitcherRole]:
    if not pool:
        return None
    if rng is not None:
        return rng.choice(pool)
    return pool[0]


def select_reliever(state: ManagerGameState, bullpen: BullpenState,
                    exclude_pitcher_id: str | None = None,
                    rng: random.Random | None = None,
                    excluded: Iterable[str] = ()) -> Optional[PitcherRole]:
    """Pick the reliever a manager would use in this situation.

    Returns ``None`` when nobody eligible is left.
    """
    blocked = set(excluded)
    if exclude_pitcher_id:
        blocked.add(exclude_pitcher_id)
    blocked.add(bullpen.starter.pitcher_id)
    avail = {p.pitcher_id for p in bullpen.available(blocked)}

    def pick(group: list[PitcherRole]) -> list[PitcherRole]:
        return [p for p in group if p.pitcher_id in avail]

    closer = pick([bullpen.closer] if bullpen.closer else [])
    setup = pick(bullpen.setup)
    long_relief = pick(bullpen.long_relief)
    middle = pick(bullpen.relievers)

    lead = state.score_diff
    inning = state.inning

    # (candidates, shuffle) in order of preference.  Closer and setup roles
    # are fixed so they are never shuffled.
    if inning >= 9 and 1 <= lead <= 3:
        order = [(closer, False), (setup, False), (middle, True), (long_relief, True)]
    elif abs(lead) >= BLOWOUT_MARGIN:
        rested = sorted(middle + long_relief, key=lambda p: (-p.stamina, p.pitcher_id))
        order = [(rested, False), (setup, False), (closer, False)]
    elif inning >= 7:
        order = [(setup, False), (middle, True), (long_relief, True), (closer, False)]
    else:
        order = [(long_relief, True), (middle, True), (setup, False), (closer, False)]

    for group, shuffle in order:
        choice = _first(group, rng if shuffle else None)
        if choice is not None:
            if choice.removed or choice.pitcher_id in blocked:
                logger.warning("Refusing ineligible reliever %s", choice.pitcher_id)
                continue
            return choice
    return None


# ---------------------------------------------------------------------------
# Pull decision
# ---------------------------------------------------------------------------

def _change(state: ManagerGameState, pitcher: PitcherRole, bullpen: BullpenState,
            rng: random.Random, excluded: Iterable[str], reason: str) -> PitchingDecision:
    reliever = select_reliever(state, bullpen, pitcher.pitcher_id, rng, excluded)
    if reliever is None:
        return PitchingDecision(False, None, f"{reason}; no reliever available")
    return PitchingDecision(True, reliever.pitcher_id, reason)


def _starter_decision(state: ManagerGameState, pitcher: PitcherRole, bullpen: BullpenState,
                      rng: random.Random, randomness: float,
                      options: PullDecisionOptions,
                      excluded: Iterable[str]) -> PitchingDecision:
    typical = pitcher.avg_bfp_as_starter or options.season_starter_bfp or DEFAULT_STARTER_BFP
    early_era = typical > 29
    middle_era = 27 <= typical <= 29
    bfp = pitcher.batters_faced
    roughness = pitcher.roughness
    diff = state.score_diff

    if bfp >= typical * 1.5:
        return _change(state, pitcher, bullpen, rng, excluded,
                       f"Exceeded limit ({bfp} BFP)")

    threshold = typical if (early_era or middle_era) else typical * 0.55
    if bfp >= threshold:
        chance = 0.5
        if early_era or middle_era:
            if roughness < 0.2:
                chance -= 0.25
            elif roughness > 0.4:
                chance += 0.15
            if diff >= 4:
                chance -= 0.15
            elif diff <= -2 or 0 <= diff <= 2:
                chance += 0.15
            if state.inning >= 8 and diff > 0 and roughness < 0.3:
                chance -= 0.25
            if early_era:
                if roughness < 0.3:
                    chance -= 0.2
                if bfp < typical * 1.2 and roughness < 0.4:
                    chance = min(chance, 0.3)
            elif roughness < 0.25:
                chance -= 0.1
        elif roughness < 0.1:
            chance -= 0.1
        if pitcher.is_workhorse:
            chance -= 0.15

        chance = max(0.1, min(chance + randomness, 1.0))
        if rng.random() < chance:
            decision = _change(state, pitcher, bullpen, rng, excluded,
                               f"BFP count ({bfp}/{typical:.0f} avg)")
            if decision.should_change:
                return decision

    if bfp >= typical * 0.8 and roughness > 0.5:
        if rng.random() < 0.4 + randomness:
            decision = _change(state, pitcher, bullpen, rng, excluded, "Pitching ineffectively")
            if decision.should_change:
                return decision

    return PitchingDecision(False)


def _reliever_cap(inning: int, options: PullDecisionOptions) -> float:
    norms = options.season_reliever_bfp
    early, middle, late = (
        (norms.early, norms.middle, norms.late) if norms else FALLBACK_RELIEVER_CAPS
    )
    if inning <= 3:
        return early
    if inning <= 6:
        return middle
    return late


def _reliever_decision(state: ManagerGameState, pitcher: PitcherRole, bullpen: BullpenState,
                       rng: random.Random, randomness: float,
                       options: PullDecisionOptions,
                       excluded: Iterable[str]) -> PitchingDecision:
    cap = _reliever_cap(state.inning, options)
    typical = min(pitcher.avg_bfp_as_reliever or DEFAULT_RELIEVER_BFP, cap)
    variance = 0.15 if cap > 10 else 0.30
    lower = typical * (1 - variance)
    upper = typical * (1 + variance)
    bfp = pitcher.batters_faced

    if bfp >= upper:
        return _change(state, pitcher, bullpen, rng, excluded,
                       f"Exceeded limit ({bfp} BFP)")

    if bfp >= lower:
        progress = (bfp - lower) / (upper - lower) if upper > lower else 1.0
        chance = 0.3 + progress * 0.4
        if state.inning >= 9:
            chance += 0.15
        elif state.inning >= 7:
            chance += 0.1
        chance = min(chance + randomness, 1.0)
        if rng.random() < chance:
            decision = _change(state, pitcher, bullpen, rng, excluded,
                               f"BFP count ({bfp}/{typical:.0f} avg)")
            if decision.should_change:
                return decision

    if calculate_leverage_index(state) > 2.0 and bfp >= lower * 0.8:
        if rng.random() < 0.7 + randomness:
            decision = _change(state, pitcher, bullpen, rng, excluded, "High leverage situation")
            if decision.should_change:
                return decision

    return PitchingDecision(False)


def should_pull_pitcher(state: ManagerGameState, pitcher: PitcherRole, bullpen: BullpenState,
                        rng: random.Random, randomness: float = 0.1,
                        options: PullDecisionOptions | None = None,
                        excluded: Iterable[str] = ()) -> PitchingDecision:
    """Decide whether to replace *pitcher*, and with whom.

    ``should_change`` is only ever True together with an eligible
    ``new_pitcher_id``; when the bullpen is exhausted the pitcher stays in
    and ``reason`` says why.
    """
    options = options or PullDecisionOptions()
    excluded = set(excluded)
    if pitcher.role == PitcherRoleKind.STARTER:
        return _starter_decision(state, pitcher, bullpen, rng, randomness, options, excluded)
    return _reliever_decision(state, pitcher, bullpen, rng, randomness, options, excluded)
