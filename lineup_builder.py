# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Pre-game lineup construction.

Builds a team's nine batting-order slots and defensive alignment from season
roster data:

1. Defensive positions are filled scarcest first (C, SS, 2B, CF, 3B, 1B, LF,
   RF).  Each pick is a weighted random draw favouring players with more
   actual plate appearances, scaled by how far ahead of or behind their
   prorated season usage they are.
2. With the DH, the best remaining bat is added at position 10.
3. The hitters are ordered by the era strategy for the season.
4. Without the DH, the starting pitcher bats ninth.

A randomized attempt that paints itself into a corner is retried; after
``MAX_ATTEMPTS`` a deterministic assignment is used instead.  A lineup that
fails validation is never returned.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from era_strategy import EraDetection, EraStrategy, batter_score, build_batting_order
from lineup_validator import validate_lineup
from models import (
    POS_1B,
    POS_2B,
    POS_3B,
    POS_C,
    POS_CF,
    POS_DH,
    POS_LF,
    POS_P,
    POS_RF,
    POS_SS,
    BatterStats,
    LineupSlot,
    LineupState,
    PitcherStats,
    SeasonPackage,
    position_name,
)

logger = logging.getLogger(__name__)

POSITION_PRIORITY = (POS_C, POS_SS, POS_2B, POS_CF, POS_3B, POS_1B, POS_LF, POS_RF)
MAX_ATTEMPTS = 10
STARTER_RATE_THRESHOLD = 0.3

# Usage thresholds as a fraction of prorated season target.
SOFT_USAGE_LIMIT = 1.00
STEEP_USAGE_LIMIT = 1.25
HARD_USAGE_CAP = 1.50
MAX_UNDERUSE_BOOST = 2.0

OFF_POSITION_WEIGHT = 0.5


class LineupBuildError(Exception):
    """Raised when a team's roster cannot produce a legal lineup."""

    def __init__(self, message: str, team_id: str | None = None,
                 details: list[str] | None = None):
        self.team_id = team_id
        self.details = details or []
        super().__init__(message)


# ---------------------------------------------------------------------------
# Usage context
# ---------------------------------------------------------------------------

@dataclass
class UsageContext:
    """Replay usage so far, as a ratio of each player's prorated target.

    A ratio of 1.0 means the player is exactly on pace with their real
    season; 0.5 means half the expected playing time.
    Players without an entry are treated as on pace.
    """
    ratios: dict[str, float] = field(default_factory=dict)

    def ratio(self, player_id: str) -> Optional[float]:
        return self.ratios.get(player_id)


def usage_multiplier(ratio: Optional[float]) -> float:
    """Selection-weight multiplier for a player at *ratio* of target usage."""
    if ratio is None:
        return 1.0
    if ratio < SOFT_USAGE_LIMIT:
        return min(MAX_UNDERUSE_BOOST, 1.0 + (SOFT_USAGE_LIMIT - ratio))
    if ratio < STEEP_USAGE_LIMIT:
        # Soft reduction: 1.0 down to 0.7
        return 1.0 - (ratio - SOFT_USAGE_LIMIT) * 1.2
    if ratio < HARD_USAGE_CAP:
        # Steep penalty: 0.3 down to 0.05
        return 0.3 - (ratio - STEEP_USAGE_LIMIT) * 1.0
    return 0.02


def uses_dh(league: str, year: int) -> bool:
    """Historical DH rule: AL from 1973, NL from 2022."""
    if league == "AL":
        return year >= 1973
    if league == "NL":
        return year >= 2022
    return False


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class LineupBuildResult:
    lineup: LineupState
    starting_pitcher: PitcherStats
    era: EraDetection
    warnings: list[str] = field(default_factory=list)
    used_fallback: bool = False


@dataclass
class LineupOptions:
    use_dh: Optional[bool] = None
    strategy: Optional[EraStrategy] = None
    starting_pitcher_id: Optional[str] = None
    excluded_player_ids: frozenset[str] = frozenset()


# ---------------------------------------------------------------------------
# Starting pitcher
# ---------------------------------------------------------------------------

def starter_quality(pitcher: PitcherStats) -> float:
    era_score = 5.0 / pitcher.era if pitcher.era > 0 else 0.0
    whip_score = 2.0 / pitcher.whip if pitcher.whip > 0 else 0.0
    return (pitcher.games_started * 2 + era_score + whip_score
            + pitcher.complete_game_rate * 10)


def select_starting_pitcher(pitchers: list[PitcherStats], rng: random.Random,
                            usage: UsageContext | None = None) -> PitcherStats:
    """Weighted random choice among real starters, modulated by usage."""
    if not pitchers:
        raise LineupBuildError("No pitchers available for selection")
    starters = sorted(
        (p for p in pitchers if p.games > 0 and p.start_rate >= STARTER_RATE_THRESHOLD),
        key=lambda p: p.id,
    )
    if not starters:
        return max(pitchers, key=lambda p: (p.games_started, p.id))
    weights = [
        max(starter_quality(p), 0.01) * usage_multiplier(usage.ratio(p.id) if usage else None)
        for p in starters
    ]
    return rng.choices(starters, weights=weights, k=1)[0]


# ---------------------------------------------------------------------------
# Position assignment
# ---------------------------------------------------------------------------

def _selection_weight(batter: BatterStats, position: int,
                      usage: UsageContext | None) -> float:
    fit = 1.0 if batter.primary_position == position else OFF_POSITION_WEIGHT
    ratio = usage.ratio(batter.id) if usage else None
    return max(batter.pa, 1) * fit * usage_multiplier(ratio)


def _random_assignment(batters: list[BatterStats], rng: random.Random,
                       usage: UsageContext | None) -> Optional[dict[int, BatterStats]]:
    assigned: dict[int, BatterStats] = {}
    used: set[str] = set()
    for position in POSITION_PRIORITY:
        candidates = [b for b in batters if b.id not in used and b.can_play(position)]
        if not candidates:
            return None
        weights = [_selection_weight(b, position, usage) for b in candidates]
        pick = rng.choices(candidates, weights=weights, k=1)[0]
        assigned[position] = pick
        used.add(pick.id)
    return assigned


def _deterministic_assignment(batters: list[BatterStats]) -> Optional[dict[int, BatterStats]]:
    """Backtracking search, most plate appearances first, no randomness."""
    ordered = sorted(batters, key=lambda b: (-b.pa, b.id))

    def place(i: int, used: set[str], assigned: dict[int, BatterStats]):
        if i == len(POSITION_PRIORITY):
            return dict(assigned)
        position = POSITION_PRIORITY[i]
        primaries = [b for b in ordered if b.primary_position == position]
        others = [b for b in ordered if b.primary_position != position]
        for b in primaries + others:
            if b.id in used or not b.can_play(position):
                continue
            used.add(b.id)
            assigned[position] = b
            found = place(i + 1, used, assigned)
            if found:
                return found
            used.discard(b.id)
            del assigned[position]
        return None

    return place(0, set(), {})


def realign_fielders(current: dict[int, BatterStats],
                     bench: list[BatterStats]) -> Optional[dict[int, BatterStats]]:
    """Cover every field position using the players in *current* plus *bench*.

    *current* maps each position to the player standing there now, eligible
    or not.  The search prefers the fewest bench players brought in, then the
    fewest fielders moved.  Players in *current* who are left out of the
    result come out of the game.

    Returns:
        Position -> player, or None when no legal alignment exists.
    """
    home = {b.id: pos for pos, b in current.items()}
    fielders = sorted(current.values(), key=lambda b: b.id)
    reserves = sorted(bench, key=lambda b: (-b.pa, b.id))
    best: list = [None, None]

    def candidates(position: int) -> list[BatterStats]:
        here = [b for b in fielders if home[b.id] == position]
        moved = [b for b in fielders if home[b.id] != position]
        fresh = sorted(reserves, key=lambda b: b.primary_position != position)
        return here + moved + fresh

    def place(i: int, used: set[str], assigned: dict[int, BatterStats], cost: tuple[int, int]):
        if best[0] is not None and cost >= best[0]:
            return
        if i == len(POSITION_PRIORITY):
            best[0], best[1] = cost, dict(assigned)
            return
        position = POSITION_PRIORITY[i]
        for b in candidates(position):
            if b.id in used or not b.can_play(position):
                continue
            if b.id not in home:
                step = (cost[0] + 1, cost[1])
            else:
                step = (cost[0], cost[1] + (home[b.id] != position))
            used.add(b.id)
            assigned[position] = b
            place(i + 1, used, assigned, step)
            used.discard(b.id)
            del assigned[position]

    place(0, set(), {}, (0, 0))
    return best[1]


# ---------------------------------------------------------------------------
# Lineup assembly
# ---------------------------------------------------------------------------

def _assemble(team_id: str, fielders: dict[int, BatterStats], bench: list[BatterStats],
              pitcher: PitcherStats, dh: bool, year: int, rng: random.Random,
              strategy: EraStrategy | None) -> tuple[LineupState, EraDetection]:
    hitters = [(b, pos) for pos, b in fielders.items()]
    if dh:
        if not bench:
            raise LineupBuildError("DH in effect but no hitter left for DH", team_id=team_id)
        dh_batter = max(bench, key=lambda b: (batter_score(b), b.id))
        hitters.append((dh_batter, POS_DH))

    order, era = build_batting_order(hitters, year, rng, strategy)
    slots = [LineupSlot(b.id, pos) for b, pos in order]
    if not dh:
        slots.append(LineupSlot(pitcher.id, POS_P))
    lineup = LineupState(
        team_id=team_id,
        slots=slots,
        current_batter_index=0,
        pitcher_id=pitcher.id,
        uses_dh=dh,
    )
    return lineup, era


def build_lineup(season: SeasonPackage, team_id: str, rng: random.Random,
                 usage: UsageContext | None = None,
                 options: LineupOptions | None = None) -> LineupBuildResult:
    """Build a validated starting lineup for *team_id*.

    Raises:
        LineupBuildError: If the roster cannot field a legal lineup.
    """
    options = options or LineupOptions()
    team = season.teams.get(team_id)
    dh = options.use_dh
    if dh is None:
        dh = uses_dh(team.league, season.year) if team else False

    batters = sorted(
        (b for b in season.batters_for_team(team_id)
         if b.id not in options.excluded_player_ids),
        key=lambda b: b.id,
    )
    pitchers = season.pitchers_for_team(team_id)
    needed = 9 if dh else 8
    if len(batters) < needed:
        raise LineupBuildError(
            f"Team {team_id} has {len(batters)} available batters, need {needed}",
            team_id=team_id,
        )
    if not pitchers:
        raise LineupBuildError(f"Team {team_id} has no pitchers", team_id=team_id)

    if options.starting_pitcher_id:
        starter = season.pitchers.get(options.starting_pitcher_id)
        if starter is None or starter.team_id != team_id:
            raise LineupBuildError(
                f"Starting pitcher {options.starting_pitcher_id} not on team {team_id}",
                team_id=team_id,
            )
    else:
        starter = select_starting_pitcher(pitchers, rng, usage)

    warnings: list[str] = []
    if usage:
        for b in batters:
            ratio = usage.ratio(b.id)
            if ratio is not None and ratio >= HARD_USAGE_CAP:
                warnings.append(f"{b.name} at {ratio:.0%} of usage target (hard cap)")

    last_errors: list[str] = []
    for attempt in range(MAX_ATTEMPTS):
        fielders = _random_assignment(batters, rng, usage)
        if fielders is None:
            continue
        bench = [b for b in batters if b.id not in {f.id for f in fielders.values()}]
        try:
            lineup, era = _assemble(team_id, fielders, bench, starter, dh,
                                    season.year, rng, options.strategy)
        except LineupBuildError as e:
            last_errors = [str(e)]
            continue
        validation = validate_lineup(lineup, season, dh)
        if validation.is_valid:
            warnings.extend(validation.warnings)
            return LineupBuildResult(lineup, starter, era, warnings)
        last_errors = validation.errors
        logger.debug("Lineup attempt %d for %s invalid: %s", attempt + 1, team_id, last_errors)

    fielders = _deterministic_assignment(batters)
    if fielders is None:
        uncovered = [
            position_name(p) for p in POSITION_PRIORITY
            if not any(b.can_play(p) for b in batters)
        ]
        raise LineupBuildError(
            f"Team {team_id} cannot cover every defensive position",
            team_id=team_id,
            details=[f"No eligible player at {p}" for p in uncovered] or last_errors,
        )
    bench = [b for b in batters if b.id not in {f.id for f in fielders.values()}]
    lineup, era = _assemble(team_id, fielders, bench, starter, dh, season.year, rng,
                            options.strategy)
    validation = validate_lineup(lineup, season, dh)
    if not validation.is_valid:
        raise LineupBuildError(
            f"Fallback lineup for {team_id} failed validation",
            team_id=team_id,
            details=validation.errors,
        )
    logger.warning("Using deterministic fallback lineup for %s", team_id)
    warnings.append("Deterministic fallback lineup used")
    warnings.extend(validation.warnings)
    return LineupBuildResult(lineup, starter, era, warnings, used_fallback=True)
