# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Pitcher role classification.

Sorts a team's pitchers into starter, closer, setup, long relief and
general relief using season totals normalized against the league, so that
a 1908 staff and a 2019 staff are both judged against their own era.
"""

from __future__ import annotations

from dataclasses import dataclass

from managerial.pitching import BullpenState, PitcherRole
from models import PitcherRoleKind, PitcherStats

STARTER_START_RATE = 0.5
RELIEVER_START_RATE = 0.2
SWINGMAN_STARTS = 15
CLOSER_SAVES = 5
CLOSER_QUALITY = 1.2
LONG_RELIEF_IP_PER_GAME = 1.3
WORKHORSE_CG_RATE = 0.15
SETUP_COUNT = 2


@dataclass(frozen=True)
class LeaguePitchingNorms:
    year: int
    avg_era: float = 4.00
    avg_whip: float = 1.35
    avg_saves_per_team: float = 0.0
    avg_cg_rate: float = 0.0


@dataclass(frozen=True)
class PitcherQuality:
    pitcher_id: str
    score: float
    is_workhorse: bool
    innings_per_game: float
    role: PitcherRoleKind


def calculate_league_norms(pitchers: list[PitcherStats], year: int,
                           num_teams: int) -> LeaguePitchingNorms:
    """Average ERA, WHIP, saves per team and complete-game rate."""
    if not pitchers:
        return LeaguePitchingNorms(year=year)
    starters = [p for p in pitchers if p.games_started > 0]
    cg_rate = (
        sum(p.complete_game_rate for p in starters) / len(starters) if starters else 0.0
    )
    return LeaguePitchingNorms(
        year=year,
        avg_era=sum(p.era for p in pitchers) / len(pitchers),
        avg_whip=sum(p.whip for p in pitchers) / len(pitchers),
        avg_saves_per_team=sum(p.saves for p in pitchers) / max(num_teams, 1),
        avg_cg_rate=cg_rate,
    )


def era_has_closers(norms: LeaguePitchingNorms) -> bool:
    if norms.year < 1950:
        return False
    if norms.year < 1970:
        return norms.avg_saves_per_team > 5
    if norms.year < 1990:
        return norms.avg_saves_per_team > 12
    return True


def primary_role(pitcher: PitcherStats) -> PitcherRoleKind:
    rate = pitcher.start_rate
    if rate >= STARTER_START_RATE:
        return PitcherRoleKind.STARTER
    if rate <= RELIEVER_START_RATE:
        return PitcherRoleKind.RELIEVER
    return (PitcherRoleKind.STARTER if pitcher.games_started >= SWINGMAN_STARTS
            else PitcherRoleKind.RELIEVER)


def _ratio(league_avg: float, value: float) -> float:
    return league_avg / value if value > 0 else 2.0


def calculate_pitcher_quality(pitcher: PitcherStats, norms: LeaguePitchingNorms,
                              role: PitcherRoleKind) -> PitcherQuality:
    """Era-normalized quality; roughly 1.0 is league average."""
    ip_per_game = pitcher.innings_pitched / pitcher.games if pitcher.games > 0 else 0.0
    cg_rate = pitcher.complete_game_rate
    era_ratio = _ratio(norms.avg_era, pitcher.era)
    whip_ratio = _ratio(norms.avg_whip, pitcher.whip)

    if role == PitcherRoleKind.STARTER:
        score = (pitcher.games_started / 162 * 0.3 + era_ratio * 0.35
                 + whip_ratio * 0.25 + cg_rate * 2)
    else:
        score = pitcher.saves / 30 * 0.4 + era_ratio * 0.3 + whip_ratio * 0.2
        if ip_per_game < 2:
            score += 0.2
        if pitcher.games_started == 0:
            score += 0.1

    return PitcherQuality(
        pitcher_id=pitcher.id,
        score=score,
        is_workhorse=cg_rate >= WORKHORSE_CG_RATE,
        innings_per_game=ip_per_game,
        role=role,
    )


def make_role(pitcher: PitcherStats, role: PitcherRoleKind,
              quality: PitcherQuality | None = None) -> PitcherRole:
    return PitcherRole(
        pitcher_id=pitcher.id,
        role=role,
        avg_bfp_as_starter=pitcher.avg_bfp_as_starter,
        avg_bfp_as_reliever=pitcher.avg_bfp_as_reliever,
        is_workhorse=quality.is_workhorse if quality else False,
        quality=quality.score if quality else 0.0,
    )


def classify_pitchers(pitchers: list[PitcherStats], norms: LeaguePitchingNorms,
                      starter_id: str | None = None) -> BullpenState:
    """Build a bullpen for one team.

    Args:
        pitchers: The team's pitchers.
        norms: League norms for the season.
        starter_id: Today's starter.  Defaults to the best-rated starter.

    Raises:
        ValueError: If no starter can be identified.
    """
    rated = []
    for p in pitchers:
        role = primary_role(p)
        rated.append((p, calculate_pitcher_quality(p, norms, role)))
    by_quality = sorted(rated, key=lambda r: (-r[1].score, r[0].id))

    if starter_id is not None:
        starter_entry = next((r for r in rated if r[0].id == starter_id), None)
        if starter_entry is None:
            raise ValueError(f"Starting pitcher {starter_id} not in pitcher list")
    else:
        starter_entry = next(
            (r for r in by_quality if r[1].role == PitcherRoleKind.STARTER), None
        )
        if starter_entry is None:
            raise ValueError("No starting pitchers available")
    starter = make_role(starter_entry[0], PitcherRoleKind.STARTER, starter_entry[1])

    # Other rotation starters are available out of the bullpen as long men.
    others = [r for r in by_quality if r[0].id != starter.pitcher_id]
    relievers = [r for r in others if r[1].role == PitcherRoleKind.RELIEVER]
    spot_starters = [r for r in others if r[1].role == PitcherRoleKind.STARTER]

    bullpen = BullpenState(starter=starter)
    if era_has_closers(norms) and relievers:
        closer_idx = next((i for i, r in enumerate(relievers) if r[0].saves > 0), 0)
        candidate = relievers[closer_idx]
        if candidate[0].saves >= CLOSER_SAVES or relievers[0][1].score > CLOSER_QUALITY:
            bullpen.closer = make_role(candidate[0], PitcherRoleKind.CLOSER, candidate[1])
            relievers = relievers[:closer_idx] + relievers[closer_idx + 1:]
        bullpen.setup = [
            make_role(p, PitcherRoleKind.RELIEVER, q) for p, q in relievers[:SETUP_COUNT]
        ]
        relievers = relievers[SETUP_COUNT:]

    for p, q in relievers:
        target = (bullpen.long_relief if q.innings_per_game > LONG_RELIEF_IP_PER_GAME
                  else bullpen.relievers)
        target.append(make_role(p, PitcherRoleKind.RELIEVER, q))
    for p, q in spot_starters:
        bullpen.long_relief.append(make_role(p, PitcherRoleKind.RELIEVER, q))
    return bullpen
