# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Handedness matchup helpers."""

from __future__ import annotations

import random

from models import BatterStats, EventRates, Hand, Outcome, ThrowHand


def is_platoon_disadvantage(batter_hand: Hand | str, pitcher_hand: ThrowHand | str) -> bool:
    """Same-handed matchups favour the pitcher; switch hitters never lose it."""
    batter_hand = Hand(batter_hand)
    if batter_hand == Hand.S:
        return False
    return batter_hand.value == ThrowHand(pitcher_hand).value


def get_platoon_rates(batter: BatterStats, pitcher_hand: ThrowHand | str) -> EventRates:
    """The batter's split against a pitcher throwing with *pitcher_hand*."""
    return batter.rates.vs(pitcher_hand)


def add_noise(rates: EventRates, noise: float, rng: random.Random) -> EventRates:
    """Jitter every rate by up to ±noise, clamped to [0, 1].

    The result no longer sums to exactly 1; the rate model renormalizes.
    """
    jittered = {
        o: max(0.0, min(1.0, rates.get(o) + (rng.random() - 0.5) * 2 * noise))
        for o in Outcome
    }
    return EventRates.from_mapping(jittered)
