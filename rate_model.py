# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Matchup rate model.

Blends a batter's outcome rates, the pitcher's rates allowed and the league
baseline into a single probability distribution over the 16 plate-appearance
outcomes, then samples from it.

The blend is the generalized log5 (odds-ratio) form::

    p(o) ∝ b(o)^α · p(o)^β · l(o)^γ        α = β = 1, γ = -1 by default

Every input is clamped to ``EPSILON`` so zero rates never collapse a term,
and the result is renormalized to sum to exactly 1.  Sampling takes an
injectable ``random.Random`` so full games can be replayed bit-for-bit.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from models import (
    EVENT_RATE_KEYS,
    BatterSplits,
    BatterStats,
    EventRates,
    Hand,
    LeagueRates,
    Outcome,
    PitcherStats,
    ThrowHand,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-6
DEFAULT_RATE_TOLERANCE = 0.25
DISTRIBUTION_TOLERANCE = 1e-6

Distribution = dict[Outcome, float]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RateModelError(ValueError):
    """Raised when a distribution cannot be produced or sampled."""


class RateValidationError(RateModelError):
    """Raised when an input rate table is malformed."""

    def __init__(self, message: str, field: str | None = None,
                 details: list[str] | None = None):
        self.field = field
        self.details = details or []
        super().__init__(message)


# ---------------------------------------------------------------------------
# Matchup
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchupSide:
    """One participant's rates, split by the opponent's handedness."""
    id: str
    handedness: str
    vs_left: EventRates
    vs_right: EventRates

    def vs(self, hand: str) -> EventRates:
        return self.vs_left if hand == "L" else self.vs_right


@dataclass(frozen=True)
class LeagueSide:
    year: int
    vs_left: EventRates
    vs_right: EventRates


@dataclass(frozen=True)
class Matchup:
    batter: MatchupSide
    pitcher: MatchupSide
    league: LeagueSide

    @classmethod
    def build(
        cls,
        batter_id: str,
        bats: Hand | str,
        batter_rates: BatterSplits,
        pitcher: PitcherStats,
        league: LeagueRates,
        year: int,
    ) -> Matchup:
        return cls(
            batter=MatchupSide(
                id=batter_id,
                handedness=Hand(bats).value,
                vs_left=batter_rates.vs_lhp,
                vs_right=batter_rates.vs_rhp,
            ),
            pitcher=MatchupSide(
                id=pitcher.id,
                handedness=ThrowHand(pitcher.throws).value,
                vs_left=pitcher.rates.vs_lhb,
                vs_right=pitcher.rates.vs_rhb,
            ),
            league=LeagueSide(year=year, vs_left=league.vs_lhp, vs_right=league.vs_rhp),
        )

    @classmethod
    def for_batter(cls, batter: BatterStats, pitcher: PitcherStats,
                   league: LeagueRates, year: int) -> Matchup:
        return cls.build(batter.id, batter.bats, batter.rates, pitcher, league, year)


def effective_batter_hand(bats: str, pitcher_throws: str) -> str:
    """Switch hitters bat from the side opposite the pitcher's arm."""
    if bats == "S":
        return "R" if pitcher_throws == "L" else "L"
    return bats


def select_splits(matchup: Matchup) -> tuple[EventRates, EventRates, EventRates]:
    """Return (batter, pitcher, league) rate tables for this handedness pairing."""
    pitcher_hand = matchup.pitcher.handedness
    batter_hand = effective_batter_hand(matchup.batter.handedness, pitcher_hand)
    batter_rates = matchup.batter.vs(pitcher_hand)
    pitcher_rates = matchup.pitcher.vs(batter_hand)
    league = matchup.league
    league_rates = league.vs_left if pitcher_hand == "L" else league.vs_right
    return batter_rates, pitcher_rates, league_rates


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_rates(rates: EventRates | Mapping[Outcome, float], label: str,
                   tolerance: float = DEFAULT_RATE_TOLERANCE) -> None:
    """Raise RateValidationError if *rates* is not a usable probability table."""
    values = rates.as_dict() if isinstance(rates, EventRates) else dict(rates)
    problems = []
    for outcome, value in values.items():
        if not math.isfinite(value) or value < 0.0:
            problems.append(f"{outcome.value}: {value!r}")
    if problems:
        raise RateValidationError(
            f"{label} rates contain invalid values", field=label, details=problems,
        )
    total = sum(values.values())
    if abs(total - 1.0) > tolerance:
        raise RateValidationError(
            f"{label} rates sum to {total:.4f}, expected 1.0 (±{tolerance})",
            field=label,
            details=[f"sum={total}"],
        )


def normalize_rates(rates: EventRates) -> EventRates:
    """Scale *rates* so they sum to exactly 1."""
    total = rates.total()
    if total <= 0.0:
        raise RateModelError("Cannot normalize zero rates")
    return EventRates.from_mapping({o: v / total for o, v in rates.as_dict().items()})


def regress_rates(player: EventRates, league: EventRates, plate_appearances: int,
                  threshold: int = 200) -> EventRates:
    """Regress a small-sample rate table toward the league baseline.

    At ``threshold`` PA or more the player's own rates are used unchanged.
    """
    weight = min(plate_appearances / threshold, 1.0) if threshold > 0 else 1.0
    blended = {
        o: player.get(o) * weight + league.get(o) * (1.0 - weight) for o in Outcome
    }
    return EventRates.from_mapping(blended)


# ---------------------------------------------------------------------------
# Distribution helpers
# ---------------------------------------------------------------------------

def distribution_total(distribution: Mapping[Outcome, float]) -> float:
    return sum(distribution.values())


def exclude_outcomes(distribution: Mapping[Outcome, float],
                     excluded: Iterable[Outcome]) -> Distribution:
    """Zero out *excluded* outcomes and renormalize the rest.

    Raises:
        RateModelError: If no probability mass remains.
    """
    excluded = set(excluded)
    kept = {o: (0.0 if o in excluded else p) for o, p in distribution.items()}
    total = sum(kept.values())
    if total <= 0.0 or not math.isfinite(total):
        raise RateModelError(
            f"No probability mass left after excluding {sorted(o.value for o in excluded)}"
        )
    return {o: p / total for o, p in kept.items()}


def impossible_outcomes(outs: int, first: str | None, second: str | None,
                        third: str | None) -> set[Outcome]:
    """Outcomes that cannot happen in the given base/out situation."""
    impossible: set[Outcome] = set()
    bases_empty = first is None and second is None and third is None
    if bases_empty:
        impossible.update({Outcome.FIELDERS_CHOICE, Outcome.SACRIFICE_BUNT})
    if outs >= 2:
        impossible.update({Outcome.SACRIFICE_FLY, Outcome.SACRIFICE_BUNT})
    if third is None:
        impossible.add(Outcome.SACRIFICE_FLY)
    return impossible


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

@dataclass
class Coefficients:
    batter: float = 1.0
    pitcher: float = 1.0
    league: float = -1.0


class MatchupModel:
    """Generalized log5 matchup model.

    Args:
        coefficients: Blend exponents.  Defaults to standard log5.
        tolerance: How far an input table's sum may drift from 1.0 before
            it is rejected.  Historical small samples need a loose bound.
        rng: Default random source for :meth:`sample`.
    """

    def __init__(self, coefficients: Coefficients | None = None,
                 tolerance: float = DEFAULT_RATE_TOLERANCE,
                 rng: random.Random | None = None) -> None:
        self.coefficients = coefficients or Coefficients()
        self.tolerance = tolerance
        self.rng = rng or random.Random()

    def _blend(self, batter_rate: float, pitcher_rate: float, league_rate: float) -> float:
        c = self.coefficients
        br = max(batter_rate, EPSILON)
        pr = max(pitcher_rate, EPSILON)
        lr = max(league_rate, EPSILON)
        return (br ** c.batter) * (pr ** c.pitcher) * (lr ** c.league)

    def predict(self, matchup: Matchup) -> Distribution:
        """Return the outcome distribution for *matchup*, summing to 1."""
        batter, pitcher, league = select_splits(matchup)
        validate_rates(batter, f"Batter {matchup.batter.id}", self.tolerance)
        validate_rates(pitcher, f"Pitcher {matchup.pitcher.id}", self.tolerance)
        validate_rates(league, f"League {matchup.league.year}", self.tolerance)

        raw = {
            o: self._blend(batter.get(o), pitcher.get(o), league.get(o))
            for o in EVENT_RATE_KEYS
        }
        total = sum(raw.values())
        if total <= 0.0 or not math.isfinite(total):
            raise RateModelError(f"Cannot normalize blended rates (sum={total})")
        distribution = {o: v / total for o, v in raw.items()}

        final = distribution_total(distribution)
        if abs(final - 1.0) > DISTRIBUTION_TOLERANCE:
            raise RateModelError(f"Distribution sums to {final}, expected 1.0")
        return distribution

    def sample(self, distribution: Mapping[Outcome, float],
               rng: random.Random | None = None) -> Outcome:
        """Draw one outcome with a single uniform draw against the CDF.

        Outcomes with no probability mass are never returned.
        """
        r = (rng or self.rng).random()
        cumulative = 0.0
        last: Optional[Outcome] = None
        for outcome in EVENT_RATE_KEYS:
            p = distribution.get(outcome, 0.0)
            if p <= 0.0:
                continue
            last = outcome
            cumulative += p
            if r < cumulative:
                return outcome
        if last is None:
            raise RateModelError("Cannot sample from an empty distribution")
        # Floating-point tail
        return last

    def simulate(self, matchup: Matchup, rng: random.Random | None = None) -> Outcome:
        return self.sample(self.predict(matchup), rng)

    def update_coefficients(self, batter: float, pitcher: float, league: float) -> None:
        self.coefficients = Coefficients(batter=batter, pitcher=pitcher, league=league)
        logger.debug("Rate model coefficients set to %s", self.coefficients)
