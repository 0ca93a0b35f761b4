# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Baseball game simulation engine.

Replays a game plate appearance by plate appearance from season rate data.
Each plate appearance runs the managerial check, asks the rate model for an
outcome distribution, samples it, and feeds the outcome through the
baserunning state machine.  The engine maintains the authoritative game
state, records an ordered play log and produces a box score.

All randomness comes from one seeded ``random.Random`` so a game can be
replayed bit-for-bit.
"""

from __future__ import annotations

import json
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Optional

from baserunning import BaserunningState, TransitionResult, transition
from config import SimulationConfig
from lineup_builder import (
    LineupOptions,
    UsageContext,
    build_lineup,
    realign_fielders,
    uses_dh,
)
from lineup_validator import FIELD_POSITIONS, validate_lineup
from managerial.classifier import calculate_league_norms, classify_pitchers
from managerial.pitching import (
    BullpenState,
    ManagerGameState,
    PitcherRole,
    PullDecisionOptions,
    reduce_stamina,
    select_reliever,
    should_pull_pitcher,
)
from managerial.platoon import add_noise
from managerial.substitutions import (
    find_best_pinch_hitter,
    get_available_bench,
    should_pinch_hit,
)
from models import (
    HIT_OUTCOMES,
    POS_DH,
    POS_P,
    POS_PH,
    BatterSplits,
    BatterStats,
    EventType,
    Hand,
    LineupState,
    Outcome,
    PitcherRoleKind,
    PitcherStats,
    ScheduledGame,
    SeasonPackage,
    position_name,
)
from rate_model import Matchup, MatchupModel, exclude_outcomes, impossible_outcomes, normalize_rates

logger = logging.getLogger(__name__)

REGULATION_INNINGS = 9

# Late, close plate appearances per team per game where a pinch hitter is
# worth considering.  The season's pinch-hits-per-game norm spread over these
# gives the per-PA chance the manager looks at the bench at all.
PINCH_HIT_OPPORTUNITIES = 3.0
# Hard ceiling on voluntary pinch hits, as a multiple of the season norm
PINCH_HIT_CAP_MULTIPLE = 3

# Estimated pitches per plate appearance by outcome
PITCHES_PER_OUTCOME: dict[Outcome, int] = {
    Outcome.STRIKEOUT: 5,
    Outcome.WALK: 6,
    Outcome.HIT_BY_PITCH: 3,
    Outcome.CATCHER_INTERFERENCE: 2,
    Outcome.SACRIFICE_BUNT: 2,
}
DEFAULT_PITCHES_PER_PA = 3

NOT_AT_BATS = frozenset({
    Outcome.WALK,
    Outcome.HIT_BY_PITCH,
    Outcome.CATCHER_INTERFERENCE,
    Outcome.SACRIFICE_FLY,
    Outcome.SACRIFICE_BUNT,
})

OUTCOME_DESCRIPTIONS: dict[Outcome, str] = {
    Outcome.SINGLE: "singles",
    Outcome.DOUBLE: "doubles",
    Outcome.TRIPLE: "triples",
    Outcome.HOME_RUN: "homers",
    Outcome.WALK: "walks",
    Outcome.HIT_BY_PITCH: "is hit by a pitch",
    Outcome.STRIKEOUT: "strikes out",
    Outcome.GROUND_OUT: "grounds out",
    Outcome.FLY_OUT: "flies out",
    Outcome.LINE_OUT: "lines out",
    Outcome.POP_OUT: "pops out",
    Outcome.SACRIFICE_FLY: "hits a sacrifice fly",
    Outcome.SACRIFICE_BUNT: "lays down a sacrifice bunt",
    Outcome.FIELDERS_CHOICE: "reaches on a fielder's choice",
    Outcome.REACHED_ON_ERROR: "reaches on an error",
    Outcome.CATCHER_INTERFERENCE: "reaches on catcher interference",
}


class SimulationError(RuntimeError):
    """Raised when a game cannot continue (not in progress, PA cap hit)."""


def ordinal(n: int) -> str:
    """Return ordinal string for an integer (1st, 2nd, 3rd, etc.)."""
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


# ---------------------------------------------------------------------------
# In-game stat tracking
# ---------------------------------------------------------------------------

@dataclass
class BatterGameStats:
    pa: int = 0
    ab: int = 0
    hits: int = 0
    runs: int = 0
    rbi: int = 0
    bb: int = 0
    k: int = 0
    hbp: int = 0
    doubles: int = 0
    triples: int = 0
    hr: int = 0

    def to_dict(self) -> dict:
        return {
            "PA": self.pa, "AB": self.ab, "H": self.hits, "R": self.runs,
            "RBI": self.rbi, "BB": self.bb, "K": self.k, "HBP": self.hbp,
            "2B": self.doubles, "3B": self.triples, "HR": self.hr,
        }

    @classmethod
    def from_dict(cls, d: dict) -> BatterGameStats:
        return cls(
            pa=d.get("PA", 0), ab=d.get("AB", 0), hits=d.get("H", 0), runs=d.get("R", 0),
            rbi=d.get("RBI", 0), bb=d.get("BB", 0), k=d.get("K", 0), hbp=d.get("HBP", 0),
            doubles=d.get("2B", 0), triples=d.get("3B", 0), hr=d.get("HR", 0),
        )


@dataclass
class PitcherGameStats:
    ip_outs: int = 0  # outs recorded (3 = 1.0 IP)
    hits: int = 0
    runs: int = 0
    earned_runs: int = 0
    bb: int = 0
    k: int = 0
    pitches: int = 0
    batters_faced: int = 0
    hr_allowed: int = 0

    @property
    def ip(self) -> float:
        full = self.ip_outs // 3
        partial = self.ip_outs % 3
        return full + partial / 10.0

    def to_dict(self) -> dict:
        return {
            "IP": self.ip, "outs": self.ip_outs, "H": self.hits, "R": self.runs,
            "ER": self.earned_runs, "BB": self.bb, "K": self.k,
            "pitches": self.pitches, "HR": self.hr_allowed,
            "batters_faced": self.batters_faced,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PitcherGameStats:
        return cls(
            ip_outs=d.get("outs", 0), hits=d.get("H", 0), runs=d.get("R", 0),
            earned_runs=d.get("ER", 0), bb=d.get("BB", 0), k=d.get("K", 0),
            pitches=d.get("pitches", 0), batters_faced=d.get("batters_faced", 0),
            hr_allowed=d.get("HR", 0),
        )


# ---------------------------------------------------------------------------
# Play-by-play event
# ---------------------------------------------------------------------------

Bases = tuple[Optional[str], Optional[str], Optional[str]]
EMPTY_BASES: Bases = (None, None, None)


@dataclass
class PlayEvent:
    inning: int
    is_top: bool
    outs_before: int
    description: str
    event_type: EventType = EventType.PLATE_APPEARANCE
    outcome: Optional[Outcome] = None
    batter_id: str = ""
    batter_name: str = ""
    pitcher_id: str = ""
    pitcher_name: str = ""
    runs_scored: int = 0
    earned_runs: int = 0
    unearned_runs: int = 0
    is_summary: bool = False
    runners_before: Bases = EMPTY_BASES
    runners_after: Bases = EMPTY_BASES
    scorer_ids: list[str] = field(default_factory=list)
    score_away: int = 0
    score_home: int = 0
    lineup: Optional[list[dict]] = None
    substituted_player: Optional[str] = None
    position: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "inning": self.inning,
            "is_top": self.is_top,
            "outs_before": self.outs_before,
            "description": self.description,
            "event_type": self.event_type.value,
            "outcome": self.outcome.value if self.outcome else None,
            "batter_id": self.batter_id,
            "batter_name": self.batter_name,
            "pitcher_id": self.pitcher_id,
            "pitcher_name": self.pitcher_name,
            "runs_scored": self.runs_scored,
            "earned_runs": self.earned_runs,
            "unearned_runs": self.unearned_runs,
            "is_summary": self.is_summary,
            "runners_before": list(self.runners_before),
            "runners_after": list(self.runners_after),
            "scorer_ids": list(self.scorer_ids),
            "score": {"away": self.score_away, "home": self.score_home},
            "lineup": self.lineup,
            "substituted_player": self.substituted_player,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PlayEvent:
        score = d.get("score", {})
        return cls(
            inning=d["inning"],
            is_top=d["is_top"],
            outs_before=d.get("outs_before", 0),
            description=d.get("description", ""),
            event_type=EventType(d.get("event_type", EventType.PLATE_APPEARANCE.value)),
            outcome=Outcome(d["outcome"]) if d.get("outcome") else None,
            batter_id=d.get("batter_id", ""),
            batter_name=d.get("batter_name", ""),
            pitcher_id=d.get("pitcher_id", ""),
            pitcher_name=d.get("pitcher_name", ""),
            runs_scored=d.get("runs_scored", 0),
            earned_runs=d.get("earned_runs", 0),
            unearned_runs=d.get("unearned_runs", 0),
            is_summary=d.get("is_summary", False),
            runners_before=tuple(d.get("runners_before") or EMPTY_BASES),
            runners_after=tuple(d.get("runners_after") or EMPTY_BASES),
            scorer_ids=list(d.get("scorer_ids", [])),
            score_away=score.get("away", 0),
            score_home=score.get("home", 0),
            lineup=d.get("lineup"),
            substituted_player=d.get("substituted_player"),
            position=d.get("position"),
        )


# ---------------------------------------------------------------------------
# Team game state
# ---------------------------------------------------------------------------

@dataclass
class TeamGameState:
    """Mutable state for one team during a game."""
    team_id: str
    name: str
    lineup: LineupState
    bullpen: BullpenState
    starter_id: str
    pitchers_used: list[str] = field(default_factory=list)
    batter_stats: dict[str, BatterGameStats] = field(default_factory=dict)
    pitcher_stats: dict[str, PitcherGameStats] = field(default_factory=dict)
    inning_runs: list[int] = field(default_factory=list)
    pinch_hits_used: int = 0
    errors: int = 0
    left_on_base: int = 0
    # batting slot -> position vacated by a pinch hitter, resolved at the half-inning
    pending_positions: dict[int, int] = field(default_factory=dict)

    @property
    def current_pitcher(self) -> PitcherRole:
        role = self.bullpen.find(self.lineup.pitcher_id) if self.lineup.pitcher_id else None
        if role is None:
            raise SimulationError(f"{self.team_id} has no pitcher on the mound")
        return role

    def get_batter_stats(self, player_id: str) -> BatterGameStats:
        if player_id not in self.batter_stats:
            self.batter_stats[player_id] = BatterGameStats()
        return self.batter_stats[player_id]

    def get_pitcher_stats(self, player_id: str) -> PitcherGameStats:
        if player_id not in self.pitcher_stats:
            self.pitcher_stats[player_id] = PitcherGameStats()
        return self.pitcher_stats[player_id]

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "lineup": self.lineup.to_dict(),
            "bullpen": self.bullpen.to_dict(),
            "starter_id": self.starter_id,
            "pitchers_used": list(self.pitchers_used),
            "batter_stats": {k: v.to_dict() for k, v in self.batter_stats.items()},
            "pitcher_stats": {k: v.to_dict() for k, v in self.pitcher_stats.items()},
            "inning_runs": list(self.inning_runs),
            "pinch_hits_used": self.pinch_hits_used,
            "errors": self.errors,
            "left_on_base": self.left_on_base,
            "pending_positions": {str(k): v for k, v in self.pending_positions.items()},
        }


# ---------------------------------------------------------------------------
# Main game state
# ---------------------------------------------------------------------------

@dataclass
class GameMeta:
    game_id: str
    away_team: str
    home_team: str
    use_dh: bool
    seed: int
    date: str = ""

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id, "away_team": self.away_team,
            "home_team": self.home_team, "use_dh": self.use_dh,
            "seed": self.seed, "date": self.date,
        }


@dataclass
class GameState:
    """Authoritative game state.  Plays are stored newest first."""
    meta: GameMeta
    away: TeamGameState
    home: TeamGameState
    inning: int = 1
    is_top: bool = True
    outs: int = 0
    bases: Bases = EMPTY_BASES
    score_away: int = 0
    score_home: int = 0
    plays: list[PlayEvent] = field(default_factory=list)
    home_team_has_batted_in_inning: bool = False
    is_complete: bool = False
    plate_appearances: int = 0
    warnings: list[str] = field(default_factory=list)

    # Current half-inning tallies
    half_runs: int = 0
    half_hits: int = 0
    half_errors: int = 0
    error_in_half: bool = False

    def batting_team(self) -> TeamGameState:
        return self.away if self.is_top else self.home

    def fielding_team(self) -> TeamGameState:
        return self.home if self.is_top else self.away

    def base_state(self) -> BaserunningState:
        return BaserunningState.from_bases(self.outs, self.bases)

    def add_play(self, event: PlayEvent) -> None:
        self.plays.insert(0, event)

    def play_log(self) -> list[PlayEvent]:
        """Plays in the order they happened."""
        return list(reversed(self.plays))

    @property
    def winner(self) -> Optional[str]:
        if not self.is_complete or self.score_home == self.score_away:
            return None
        return self.meta.home_team if self.score_home > self.score_away else self.meta.away_team

    def score_display(self) -> str:
        return f"{self.away.name} {self.score_away}, {self.home.name} {self.score_home}"

    def situation_display(self) -> str:
        half_str = "Top" if self.is_top else "Bot"
        on_bases = [name for name, r in zip(("1st", "2nd", "3rd"), self.bases) if r]
        runners_str = "runners on " + ", ".join(on_bases) if on_bases else "bases empty"
        return f"{half_str} {self.inning}, {self.outs} out, {runners_str}, {self.score_display()}"


# ---------------------------------------------------------------------------
# Simulation engine
# ---------------------------------------------------------------------------

class SimulationEngine:
    """Plays one game from season data.

    The engine is the only writer of its game state and of the three
    substitution-tracking sets (removed players, used pinch hitters,
    mid-game relievers), which are exposed read-only.

    Args:
        season: Validated season package.
        seed: RNG seed.  Random when omitted.
        config: Runtime knobs; defaults to ``SimulationConfig()``.
        rate_noise: Per-PA jitter applied to batter rates (0 disables).
    """

    def __init__(self, season: SeasonPackage, seed: int | None = None,
                 config: SimulationConfig | None = None, rate_noise: float = 0.0):
        config = config or SimulationConfig()
        if seed is None:
            seed = config.seed if config.seed is not None else random.randint(0, 2**31 - 1)
        self.season = season
        self.seed = seed
        self.rng = random.Random(seed)
        self.model = MatchupModel(tolerance=config.rate_tolerance, rng=self.rng)
        self.max_plate_appearances = config.max_plate_appearances
        self.randomness = config.manager_randomness
        self.rate_noise = rate_noise
        self.state: GameState | None = None

        self.league_norms = calculate_league_norms(
            list(season.pitchers.values()), season.year, len(season.teams),
        )
        pitching = season.norms.pitching
        self.pull_options = PullDecisionOptions(
            season_reliever_bfp=pitching.reliever_bfp,
            season_starter_bfp=pitching.starter_bfp,
        )
        pinch_norm = season.norms.substitutions.pinch_hits_per_game
        self.pinch_hit_gate = min(1.0, pinch_norm / PINCH_HIT_OPPORTUNITIES)
        self.pinch_hit_cap = max(1, math.ceil(pinch_norm * PINCH_HIT_CAP_MULTIPLE))

        self._removed_players: set[str] = set()
        self._used_pinch_hitters: set[str] = set()
        self._mid_game_relievers: set[str] = set()
        # team id -> lineup problems already reported this game
        self._reported_lineup_errors: dict[str, set[str]] = {}

    # -------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------

    @property
    def removed_players(self) -> frozenset[str]:
        return frozenset(self._removed_players)

    @property
    def used_pinch_hitters(self) -> frozenset[str]:
        return frozenset(self._used_pinch_hitters)

    @property
    def mid_game_relievers(self) -> frozenset[str]:
        return frozenset(self._mid_game_relievers)

    def _require_state(self) -> GameState:
        if self.state is None:
            raise SimulationError("No game has been initialized")
        return self.state

    def is_complete(self) -> bool:
        return self.state is not None and self.state.is_complete

    # -------------------------------------------------------------------
    # Game initialization
    # -------------------------------------------------------------------

    def _build_team(self, team_id: str, use_dh: bool, usage: UsageContext | None,
                    starter_id: str | None, resting: frozenset[str]) -> TeamGameState:
        result = build_lineup(
            self.season, team_id, self.rng, usage,
            LineupOptions(use_dh=use_dh, starting_pitcher_id=starter_id,
                          excluded_player_ids=resting),
        )
        bullpen = classify_pitchers(
            self.season.pitchers_for_team(team_id), self.league_norms,
            starter_id=result.starting_pitcher.id,
        )
        team = TeamGameState(
            team_id=team_id,
            name=self.season.team_name(team_id),
            lineup=result.lineup,
            bullpen=bullpen,
            starter_id=result.starting_pitcher.id,
            pitchers_used=[result.starting_pitcher.id],
        )
        for warning in result.warnings:
            logger.debug("%s lineup: %s", team_id, warning)
        return team

    def initialize_game(self, game: ScheduledGame, usage: UsageContext | None = None,
                        away_starter_id: str | None = None,
                        home_starter_id: str | None = None,
                        resting: frozenset[str] = frozenset()) -> GameState:
        """Build both lineups and bullpens and return a fresh GameState.

        Raises:
            LineupBuildError: If either roster cannot field a legal lineup.
        """
        use_dh = game.use_dh
        if use_dh is None:
            home = self.season.teams.get(game.home_team)
            use_dh = uses_dh(home.league, self.season.year) if home else False

        self._removed_players.clear()
        self._used_pinch_hitters.clear()
        self._mid_game_relievers.clear()
        self._reported_lineup_errors.clear()

        away = self._build_team(game.away_team, use_dh, usage, away_starter_id, resting)
        home = self._build_team(game.home_team, use_dh, usage, home_starter_id, resting)
        state = GameState(
            meta=GameMeta(
                game_id=game.id, away_team=game.away_team, home_team=game.home_team,
                use_dh=use_dh, seed=self.seed, date=game.date,
            ),
            away=away,
            home=home,
        )
        self.state = state

        for team in (away, home):
            names = ", ".join(
                f"{self.season.player_name(s.player_id)} {position_name(s.position)}"
                for s in team.lineup.slots
            )
            pitcher_note = ""
            if use_dh:
                pitcher_note = f"; P {self.season.player_name(team.starter_id)}"
            state.add_play(PlayEvent(
                inning=1,
                is_top=True,
                outs_before=0,
                description=f"{team.name} lineup: {names}{pitcher_note}",
                event_type=EventType.STARTING_LINEUP,
                lineup=[s.to_dict() for s in team.lineup.slots],
            ))
        logger.info("Game %s: %s at %s (DH %s, seed %d)",
                    game.id, away.name, home.name, use_dh, self.seed)
        return state

    # -------------------------------------------------------------------
    # Player lookups
    # -------------------------------------------------------------------

    def _pitcher_batting(self, pitcher: PitcherStats) -> BatterSplits:
        if pitcher.batting is not None:
            return pitcher.batting
        league = self.season.league
        if league.pitcher_batter is not None:
            return league.pitcher_batter
        return BatterSplits(vs_lhp=league.vs_lhp, vs_rhp=league.vs_rhp)

    def batter_profile(self, player_id: str) -> BatterStats:
        """Batting profile for anyone in a lineup, pitchers included."""
        batter = self.season.batters.get(player_id)
        if batter is not None:
            return batter
        pitcher = self.season.pitchers.get(player_id)
        if pitcher is None:
            raise SimulationError(f"Unknown player {player_id}")
        return BatterStats(
            id=pitcher.id,
            name=pitcher.name,
            bats=Hand(pitcher.throws.value),
            team_id=pitcher.team_id,
            primary_position=POS_P,
            rates=self._pitcher_batting(pitcher),
        )

    def _pitcher_stats(self, pitcher_id: str) -> PitcherStats:
        pitcher = self.season.pitchers.get(pitcher_id)
        if pitcher is None:
            raise SimulationError(f"Unknown pitcher {pitcher_id}")
        return pitcher

    def _manager_state(self, state: GameState, batting_view: bool) -> ManagerGameState:
        batting_diff = (state.score_away - state.score_home if state.is_top
                        else state.score_home - state.score_away)
        return ManagerGameState(
            inning=state.inning,
            is_top=state.is_top,
            outs=state.outs,
            bases=state.bases,
            score_diff=batting_diff if batting_view else -batting_diff,
        )

    # -------------------------------------------------------------------
    # Substitutions
    # -------------------------------------------------------------------

    def _warn(self, state: GameState, message: str) -> None:
        logger.warning(message)
        state.warnings.append(message)

    def change_pitcher(self, state: GameState, team: TeamGameState, new_pitcher_id: str,
                       reason: str = "") -> Optional[PlayEvent]:
        """Bring in *new_pitcher_id* for *team*.  Returns None if refused."""
        old = team.current_pitcher
        if new_pitcher_id == old.pitcher_id:
            self._warn(state, f"Refusing to replace {old.pitcher_id} with the same pitcher")
            return None
        if new_pitcher_id in self._removed_players:
            self._warn(state, f"Refusing re-entry of removed pitcher {new_pitcher_id}")
            return None
        incoming = team.bullpen.find(new_pitcher_id)
        if incoming is None or incoming.removed:
            self._warn(state, f"{new_pitcher_id} is not available in the {team.team_id} bullpen")
            return None

        old.remove()
        self._removed_players.add(old.pitcher_id)
        self._mid_game_relievers.add(new_pitcher_id)
        team.lineup.pitcher_id = new_pitcher_id
        team.pitchers_used.append(new_pitcher_id)
        if not team.lineup.uses_dh:
            index = team.lineup.slot_index_of(old.pitcher_id)
            if index is not None:
                team.lineup.slots[index].player_id = new_pitcher_id

        new_name = self.season.player_name(new_pitcher_id)
        old_name = self.season.player_name(old.pitcher_id)
        desc = f"Pitching change: {new_name} replaces {old_name}"
        if reason:
            desc += f" ({reason})"
        event = PlayEvent(
            inning=state.inning,
            is_top=state.is_top,
            outs_before=state.outs,
            description=desc,
            event_type=EventType.PITCHING_CHANGE,
            pitcher_id=new_pitcher_id,
            pitcher_name=new_name,
            substituted_player=old.pitcher_id,
            position=POS_P,
            runners_before=state.bases,
            runners_after=state.bases,
            score_away=state.score_away,
            score_home=state.score_home,
        )
        state.add_play(event)
        logger.info(desc)
        return event

    def _manage_pitcher(self, state: GameState) -> None:
        team = state.fielding_team()
        pitcher = team.current_pitcher
        decision = should_pull_pitcher(
            self._manager_state(state, batting_view=False), pitcher, team.bullpen, self.rng,
            randomness=self.randomness, options=self.pull_options,
            excluded=self._removed_players,
        )
        if decision.should_change and decision.new_pitcher_id:
            self.change_pitcher(state, team, decision.new_pitcher_id, decision.reason)
        elif decision.reason:
            logger.debug("%s stays in: %s", pitcher.pitcher_id, decision.reason)

    def _relief_available(self, team: TeamGameState) -> bool:
        blocked = self._removed_players | {team.current_pitcher.pitcher_id}
        return bool(team.bullpen.available(blocked))

    def pinch_hit(self, state: GameState, team: TeamGameState, pinch_hitter_id: str,
                  reason: str = "") -> Optional[PlayEvent]:
        """Send *pinch_hitter_id* up for the current batter.  Returns None if refused."""
        index = team.lineup.current_batter_index
        slot = team.lineup.slots[index]
        replaced = slot.player_id
        if pinch_hitter_id == replaced:
            self._warn(state, f"Refusing to pinch hit {pinch_hitter_id} for the same player")
            return None
        if pinch_hitter_id in self._removed_players or pinch_hitter_id in self._used_pinch_hitters:
            self._warn(state, f"Refusing re-entry of {pinch_hitter_id}")
            return None
        if pinch_hitter_id in team.lineup.player_ids():
            self._warn(state, f"{pinch_hitter_id} is already in the lineup")
            return None

        vacated = team.pending_positions.get(index, slot.position)
        team.pending_positions[index] = vacated
        slot.player_id = pinch_hitter_id
        slot.position = POS_PH
        team.pinch_hits_used += 1
        self._used_pinch_hitters.add(pinch_hitter_id)
        if replaced is not None:
            self._removed_players.add(replaced)
            if vacated == POS_P:
                role = team.bullpen.find(replaced)
                if role is not None:
                    role.remove()

        ph_name = self.season.player_name(pinch_hitter_id)
        replaced_name = self.season.player_name(replaced) if replaced else "empty slot"
        desc = f"Pinch hitter: {ph_name} bats for {replaced_name}"
        if reason:
            desc += f" ({reason})"
        event = PlayEvent(
            inning=state.inning,
            is_top=state.is_top,
            outs_before=state.outs,
            description=desc,
            event_type=EventType.PINCH_HIT,
            batter_id=pinch_hitter_id,
            batter_name=ph_name,
            substituted_player=replaced,
            position=POS_PH,
            runners_before=state.bases,
            runners_after=state.bases,
            score_away=state.score_away,
            score_home=state.score_home,
        )
        state.add_play(event)
        logger.info(desc)
        return event

    def _consider_pinch_hit(self, state: GameState) -> None:
        team = state.batting_team()
        slot = team.lineup.current_slot
        if slot.player_id is None or slot.position == POS_PH:
            return

        pitcher_hand = self._pitcher_stats(state.fielding_team().current_pitcher.pitcher_id).throws
        roster = self.season.batters_for_team(team.team_id)
        bench = get_available_bench(
            roster, team.lineup.player_ids(), self._removed_players | self._used_pinch_hitters,
        )
        batting_pitcher = slot.position == POS_P
        mandatory = (
            batting_pitcher
            and not team.lineup.uses_dh
            and slot.player_id in self._mid_game_relievers
        )

        if batting_pitcher and not self._relief_available(team):
            if mandatory:
                self._warn(state, f"No reliever left to replace {slot.player_id}; the pitcher bats")
            return
        if not bench:
            if mandatory:
                self._warn(state, f"No bench bat to hit for reliever {slot.player_id}")
            return

        current = self.batter_profile(slot.player_id)
        index = team.lineup.current_batter_index
        if mandatory:
            # keep back anyone an unresolved pinch hitter's position depends on
            spare = [b for b in bench if self._can_cover_field(team, index, b.id)] or bench
            option = find_best_pinch_hitter(spare, pitcher_hand, current, self.rng, relaxed=True)
            if option is None:
                option = max(spare, key=lambda b: (b.rates.vs(pitcher_hand).ops(), b.id))
            self.pinch_hit(state, team, option.id, "reliever due up")
            return

        if team.pinch_hits_used >= self.pinch_hit_cap:
            return
        if self.rng.random() >= self.pinch_hit_gate:
            return
        decision = should_pinch_hit(
            self._manager_state(state, batting_view=True), current, bench, pitcher_hand,
            self.rng, randomness=self.randomness, relaxed=batting_pitcher,
        )
        if not (decision.should_pinch_hit and decision.pinch_hitter_id):
            return
        if not self._can_cover_field(team, index, decision.pinch_hitter_id):
            logger.debug("No alignment covers the field if %s bats for %s; skipping pinch hit",
                         decision.pinch_hitter_id, slot.player_id)
            return
        self.pinch_hit(state, team, decision.pinch_hitter_id, decision.reason)

    # -------------------------------------------------------------------
    # Half-inning lineup audit
    # -------------------------------------------------------------------

    def _place_reliever(self, state: GameState, team: TeamGameState, index: int) -> None:
        """Bring in a reliever to take over the pitcher's batting slot."""
        outgoing = team.lineup.pitcher_id
        mgr = ManagerGameState(
            inning=state.inning, is_top=state.is_top, outs=0, bases=EMPTY_BASES,
            score_diff=(state.score_home - state.score_away if team is state.home
                        else state.score_away - state.score_home),
        )
        reliever = select_reliever(mgr, team.bullpen, outgoing, self.rng,
                                   excluded=self._removed_players)
        if reliever is None:
            raise SimulationError(f"{team.team_id} has no eligible pitcher to take the mound")

        pinch_hitter = team.lineup.slots[index].player_id
        if pinch_hitter is not None:
            self._removed_players.add(pinch_hitter)
        team.lineup.slots[index].player_id = reliever.pitcher_id
        team.lineup.slots[index].position = POS_P
        team.lineup.pitcher_id = reliever.pitcher_id
        team.pitchers_used.append(reliever.pitcher_id)
        self._mid_game_relievers.add(reliever.pitcher_id)

        name = self.season.player_name(reliever.pitcher_id)
        desc = (f"Pitching change: {name} replaces "
                f"{self.season.player_name(outgoing) if outgoing else 'the pitcher'}, "
                f"batting {ordinal(index + 1)}")
        state.add_play(PlayEvent(
            inning=state.inning, is_top=state.is_top, outs_before=0, description=desc,
            event_type=EventType.PITCHING_CHANGE, pitcher_id=reliever.pitcher_id,
            pitcher_name=name, substituted_player=pinch_hitter, position=POS_P,
            score_away=state.score_away, score_home=state.score_home,
        ))
        logger.info(desc)

    def _bench(self, team: TeamGameState) -> list[BatterStats]:
        return get_available_bench(
            self.season.batters_for_team(team.team_id), team.lineup.player_ids(),
            self._removed_players | self._used_pinch_hitters,
        )

    def _field_slots(self, team: TeamGameState) -> dict[int, int]:
        """Batting slot -> field position, counting pinch hitters at the spot they vacated."""
        slots = {}
        for i, slot in enumerate(team.lineup.slots):
            position = slot.position
            if position == POS_PH:
                position = team.pending_positions.get(i, POS_PH)
            if slot.player_id is not None and position in FIELD_POSITIONS:
                slots[i] = position
        return slots

    def _alignment_inputs(self, team: TeamGameState, replace: dict[int, str] | None = None
                          ) -> tuple[dict[int, BatterStats], list[BatterStats], dict[str, int]]:
        replace = replace or {}
        current: dict[int, BatterStats] = {}
        slot_of: dict[str, int] = {}
        for i, position in self._field_slots(team).items():
            batter = self.season.batters.get(replace.get(i, team.lineup.slots[i].player_id))
            if batter is not None:
                current[position] = batter
                slot_of[batter.id] = i
        taken = set(replace.values())
        bench = [b for b in self._bench(team) if b.id not in taken]
        return current, bench, slot_of

    def _can_cover_field(self, team: TeamGameState, index: int, incoming_id: str) -> bool:
        """Whether every field position can still be covered once *incoming_id* bats at *index*."""
        current, bench, _ = self._alignment_inputs(team, {index: incoming_id})
        return realign_fielders(current, bench) is not None

    def _defensive_sub(self, state: GameState, team: TeamGameState, index: int,
                       position: int) -> None:
        """Resolve a pinch hitter's slot to a real defensive position."""
        slot = team.lineup.slots[index]
        pinch_hitter = slot.player_id
        if position == POS_DH:
            slot.position = POS_DH
            return
        profile = self.season.batters.get(pinch_hitter) if pinch_hitter else None
        if profile is not None and profile.can_play(position):
            slot.position = position
            desc = f"Defensive change: {profile.name} stays in at {position_name(position)}"
            substituted = None
            incoming = pinch_hitter
        else:
            eligible = sorted(
                (b for b in self._bench(team) if b.can_play(position)),
                key=lambda b: (b.primary_position != position, -b.pa, b.id),
            )
            # a straight swap must not strand a position another placeholder needs
            replacement = next(
                (b for b in eligible if self._can_cover_field(team, index, b.id)), None,
            )
            if replacement is None:
                # left for the double switch in _realign
                slot.position = position
                logger.debug("No bench %s for %s; realigning", position_name(position),
                             team.team_id)
                return
            if pinch_hitter is not None:
                self._removed_players.add(pinch_hitter)
            slot.player_id = replacement.id
            slot.position = position
            desc = (f"Defensive change: {replacement.name} replaces "
                    f"{self.season.player_name(pinch_hitter or '')} at {position_name(position)}")
            substituted = pinch_hitter
            incoming = replacement.id

        self._defensive_event(state, desc, incoming or "", substituted, position)

    def _defensive_event(self, state: GameState, desc: str, incoming: str,
                         substituted: Optional[str], position: int) -> None:
        state.add_play(PlayEvent(
            inning=state.inning, is_top=state.is_top, outs_before=0, description=desc,
            event_type=EventType.DEFENSIVE_SUB, batter_id=incoming,
            batter_name=self.season.player_name(incoming),
            substituted_player=substituted, position=position,
            score_away=state.score_away, score_home=state.score_home,
        ))
        logger.info(desc)

    def _realign(self, state: GameState, team: TeamGameState) -> bool:
        """Double switch: move fielders and bring in bench players to cover every position.

        Returns False, changing nothing, when no legal alignment exists.
        """
        current, bench, slot_of = self._alignment_inputs(team)
        if len(current) == len(FIELD_POSITIONS) and all(
                b.can_play(pos) for pos, b in current.items()):
            return True
        plan = realign_fielders(current, bench)
        if plan is None:
            return False
        staying = {b.id for b in plan.values()}
        leaving = sorted(i for pid, i in slot_of.items() if pid not in staying)
        entering = [(pos, b) for pos, b in sorted(plan.items()) if b.id not in slot_of]
        if len(leaving) != len(entering):
            return False

        for position, batter in sorted(plan.items()):
            index = slot_of.get(batter.id)
            if index is None or team.lineup.slots[index].position == position:
                continue
            old = team.lineup.slots[index].position
            team.lineup.slots[index].position = position
            self._defensive_event(
                state, f"Defensive change: {batter.name} moves from {position_name(old)} "
                       f"to {position_name(position)}",
                batter.id, None, position,
            )
        for index, (position, batter) in zip(leaving, entering):
            slot = team.lineup.slots[index]
            outgoing = slot.player_id
            self._removed_players.add(outgoing)
            slot.player_id = batter.id
            slot.position = position
            self._defensive_event(
                state, f"Defensive change: {batter.name} replaces "
                       f"{self.season.player_name(outgoing)}, batting {ordinal(index + 1)}, "
                       f"at {position_name(position)}",
                batter.id, outgoing, position,
            )
        return True

    def audit_lineup(self, state: GameState, team: TeamGameState) -> None:
        """Resolve pinch-hitter placeholders before *team* takes the field.

        Each placeholder becomes either the incoming pitcher at position 1
        (the pinch hitter batted for the pitcher) or a fielder at the
        position that was vacated, never both.  If that leaves a fielder
        somewhere they cannot play, the fielders are realigned with help
        from the bench.  Problems that remain are warned about once.
        """
        for index, vacated in sorted(team.pending_positions.items()):
            if team.lineup.slots[index].position != POS_PH:
                continue
            if vacated == POS_P and not team.lineup.uses_dh:
                self._place_reliever(state, team, index)
            else:
                self._defensive_sub(state, team, index, vacated)
        team.pending_positions.clear()

        if not self._realign(state, team):
            logger.debug("No legal alignment for %s", team.team_id)

        validation = validate_lineup(team.lineup, self.season)
        reported = self._reported_lineup_errors.setdefault(team.team_id, set())
        for error in validation.errors:
            if error not in reported:
                reported.add(error)
                self._warn(state, f"{team.team_id} lineup after audit: {error}")

    # -------------------------------------------------------------------
    # Plate appearance
    # -------------------------------------------------------------------

    def _batter_splits(self, batter: BatterStats) -> BatterSplits:
        splits = batter.rates
        if self.rate_noise <= 0:
            return splits
        return BatterSplits(
            vs_lhp=normalize_rates(add_noise(splits.vs_lhp, self.rate_noise, self.rng)),
            vs_rhp=normalize_rates(add_noise(splits.vs_rhp, self.rate_noise, self.rng)),
        )

    def _sample_outcome(self, state: GameState, batter: BatterStats,
                        pitcher: PitcherStats) -> Outcome:
        matchup = Matchup.build(
            batter.id, batter.bats, self._batter_splits(batter), pitcher,
            self.season.league, self.season.year,
        )
        distribution = self.model.predict(matchup)
        impossible = impossible_outcomes(state.outs, *state.bases)
        if impossible:
            distribution = exclude_outcomes(distribution, impossible)
        return self.model.sample(distribution, self.rng)

    def _walk_off(self, state: GameState, outcome: Outcome, result: TransitionResult,
                  batter_id: str, bases_before: Bases) -> tuple[Outcome, TransitionResult]:
        """Cut a game-ending play down to the go-ahead run.

        Home runs keep every run.  Otherwise only the runs needed to take
        the lead count, extra-base hits are scored as singles, and runners
        who would have scored beyond the winning run are placed on the
        highest open bases.  Runner placement is an approximation.
        """
        needed = state.score_away - state.score_home + 1
        if outcome == Outcome.HOME_RUN or needed < 1 or result.runs_scored <= needed:
            return outcome, result

        scorers = result.scorer_ids[:needed]
        stranded = [r for r in result.scorer_ids[needed:] if r != batter_id]
        if outcome in (Outcome.DOUBLE, Outcome.TRIPLE):
            outcome = Outcome.SINGLE
        runners: list[Optional[str]] = list(result.next_state.bases)
        if outcome == Outcome.SINGLE:
            runners = [r if r != batter_id else None for r in runners]
            runners[0] = batter_id
        for runner in stranded:
            for base in (2, 1, 0):
                if runners[base] is None:
                    runners[base] = runner
                    break
        truncated = TransitionResult(
            next_state=BaserunningState.from_bases(result.next_state.outs, runners),
            runs_scored=needed,
            scorer_ids=scorers,
            advancements=result.advancements,
            out_runner_id=result.out_runner_id,
            outs_recorded=result.outs_recorded,
            inning_over=result.inning_over,
        )
        logger.debug("Walk-off truncated %d runs to %d (bases before %s)",
                     result.runs_scored, needed, bases_before)
        return outcome, truncated

    def _is_walk_off(self, state: GameState, runs: int) -> bool:
        return (not state.is_top and state.inning >= REGULATION_INNINGS
                and state.score_home <= state.score_away
                and state.score_home + runs > state.score_away)

    def _record_stats(self, state: GameState, outcome: Outcome, batter_id: str,
                      pitcher_role: PitcherRole, result: TransitionResult,
                      earned: int) -> None:
        batting = state.batting_team()
        fielding = state.fielding_team()

        bstats = batting.get_batter_stats(batter_id)
        bstats.pa += 1
        if outcome not in NOT_AT_BATS:
            bstats.ab += 1
        if outcome in HIT_OUTCOMES:
            bstats.hits += 1
        if outcome == Outcome.DOUBLE:
            bstats.doubles += 1
        elif outcome == Outcome.TRIPLE:
            bstats.triples += 1
        elif outcome == Outcome.HOME_RUN:
            bstats.hr += 1
        elif outcome == Outcome.WALK:
            bstats.bb += 1
        elif outcome == Outcome.HIT_BY_PITCH:
            bstats.hbp += 1
        elif outcome == Outcome.STRIKEOUT:
            bstats.k += 1
        if outcome != Outcome.REACHED_ON_ERROR:
            bstats.rbi += result.runs_scored
        for scorer in result.scorer_ids:
            batting.get_batter_stats(scorer).runs += 1

        pitches = PITCHES_PER_OUTCOME.get(outcome, DEFAULT_PITCHES_PER_PA)
        pstats = fielding.get_pitcher_stats(pitcher_role.pitcher_id)
        pstats.batters_faced += 1
        pstats.pitches += pitches
        pstats.ip_outs += result.outs_recorded
        pstats.runs += result.runs_scored
        pstats.earned_runs += earned
        if outcome in HIT_OUTCOMES:
            pstats.hits += 1
        if outcome == Outcome.HOME_RUN:
            pstats.hr_allowed += 1
        if outcome == Outcome.WALK:
            pstats.bb += 1
        if outcome == Outcome.STRIKEOUT:
            pstats.k += 1

        pitch_norms = self.season.norms.pitching
        max_pitches = (pitch_norms.starter_pitches.typical_limit
                       if pitcher_role.role == PitcherRoleKind.STARTER
                       else pitch_norms.reliever_pitches.max_pitches)
        pitcher_role.batters_faced += 1
        pitcher_role.pitches_thrown += pitches
        pitcher_role.stamina = reduce_stamina(pitcher_role.stamina, pitches, max_pitches)
        if outcome in HIT_OUTCOMES:
            pitcher_role.hits_allowed += 1
        if outcome in (Outcome.WALK, Outcome.HIT_BY_PITCH):
            pitcher_role.walks_allowed += 1
        pitcher_role.runs_allowed += result.runs_scored

        if outcome == Outcome.REACHED_ON_ERROR:
            fielding.errors += 1

    def _describe(self, batter_name: str, outcome: Outcome, result: TransitionResult) -> str:
        desc = f"{batter_name} {OUTCOME_DESCRIPTIONS[outcome]}"
        if result.out_runner_id:
            desc += f"; {self.season.player_name(result.out_runner_id)} out on the play"
        scorers = [self.season.player_name(s) for s in result.scorer_ids
                   if outcome != Outcome.HOME_RUN or s != result.scorer_ids[-1]]
        if scorers:
            verb = "scores" if len(scorers) == 1 else "score"
            desc += f"; {', '.join(scorers)} {verb}"
        return desc

    def simulate_plate_appearance(self) -> list[PlayEvent]:
        """Play one plate appearance, including any substitutions before it.

        Returns the events it generated in chronological order.

        Raises:
            SimulationError: If the game is over or the PA cap is exceeded.
        """
        state = self._require_state()
        if state.is_complete:
            raise SimulationError("Game is not in progress")
        if state.plate_appearances >= self.max_plate_appearances:
            raise SimulationError(
                f"Plate appearance cap ({self.max_plate_appearances}) exceeded in game "
                f"{state.meta.game_id}"
            )
        first_new = len(state.plays)

        if not state.is_top:
            state.home_team_has_batted_in_inning = True

        self._manage_pitcher(state)
        self._consider_pinch_hit(state)

        batting = state.batting_team()
        fielding = state.fielding_team()
        batter_id = batting.lineup.current_slot.player_id
        if batter_id is None:
            raise SimulationError(f"{batting.team_id} has an empty batting slot")
        batter = self.batter_profile(batter_id)
        pitcher_role = fielding.current_pitcher
        pitcher = self._pitcher_stats(pitcher_role.pitcher_id)

        outcome = self._sample_outcome(state, batter, pitcher)
        bases_before = state.bases
        outs_before = state.outs
        result = transition(state.base_state(), outcome, batter_id)

        walk_off = self._is_walk_off(state, result.runs_scored)
        if walk_off:
            outcome, result = self._walk_off(state, outcome, result, batter_id, bases_before)

        if outcome == Outcome.REACHED_ON_ERROR:
            state.error_in_half = True
            state.half_errors += 1
        unearned = result.runs_scored if state.error_in_half else 0
        earned = result.runs_scored - unearned

        self._record_stats(state, outcome, batter_id, pitcher_role, result, earned)
        state.plate_appearances += 1
        if state.is_top:
            state.score_away += result.runs_scored
        else:
            state.score_home += result.runs_scored
        state.half_runs += result.runs_scored
        if outcome in HIT_OUTCOMES:
            state.half_hits += 1

        event = PlayEvent(
            inning=state.inning,
            is_top=state.is_top,
            outs_before=outs_before,
            description=self._describe(batter.name, outcome, result),
            outcome=outcome,
            batter_id=batter_id,
            batter_name=batter.name,
            pitcher_id=pitcher.id,
            pitcher_name=pitcher.name,
            runs_scored=result.runs_scored,
            earned_runs=earned,
            unearned_runs=unearned,
            runners_before=bases_before,
            runners_after=result.next_state.bases,
            scorer_ids=list(result.scorer_ids),
            score_away=state.score_away,
            score_home=state.score_home,
        )
        state.add_play(event)
        logger.debug("%s | %s", state.situation_display(), event.description)

        batting.lineup.advance()

        state.outs = result.next_state.outs
        state.bases = result.next_state.bases
        if walk_off:
            self._close_half(state, outs=outs_before + result.outs_recorded,
                             lob=result.next_state.runner_count)
            self._finish(state, "Walk-off")
        elif result.inning_over:
            lob = sum(
                1 for r in bases_before
                if r and r not in result.scorer_ids and r != result.out_runner_id
            )
            self._end_half_inning(state, lob)

        return list(reversed(state.plays[: len(state.plays) - first_new]))

    # -------------------------------------------------------------------
    # Half-inning and game flow
    # -------------------------------------------------------------------

    def _close_half(self, state: GameState, outs: int, lob: int) -> None:
        """Append the half-inning summary and record the line score."""
        half = "Top" if state.is_top else "Bottom"
        desc = (f"{half} {ordinal(state.inning)}: {state.half_runs} R, "
                f"{state.half_hits} H, {state.half_errors} E")
        if lob > 0:
            desc += f", {lob} LOB"
        desc += f" - {state.score_display()}"
        state.add_play(PlayEvent(
            inning=state.inning,
            is_top=state.is_top,
            outs_before=outs,
            description=desc,
            is_summary=True,
            score_away=state.score_away,
            score_home=state.score_home,
        ))

        batting = state.batting_team()
        batting.left_on_base += lob
        while len(batting.inning_runs) < state.inning:
            batting.inning_runs.append(0)
        batting.inning_runs[state.inning - 1] = state.half_runs

        state.half_runs = 0
        state.half_hits = 0
        state.half_errors = 0
        state.error_in_half = False

    def _end_half_inning(self, state: GameState, lob: int) -> None:
        self._close_half(state, outs=3, lob=lob)
        finished = state.batting_team()

        if state.is_top:
            state.is_top = False
        else:
            state.is_top = True
            state.inning += 1

        if self._check_complete(state):
            self._finish(state, "Final")
            return
        if state.is_top:
            state.home_team_has_batted_in_inning = False
        self.audit_lineup(state, finished)

    def _check_complete(self, state: GameState) -> bool:
        """Completion predicate, evaluated after every half-inning change."""
        if state.inning < REGULATION_INNINGS:
            return False
        if not state.is_top and state.score_home > state.score_away:
            # Home leads after the top half: the bottom is not played.
            return True
        return (state.is_top and state.inning > REGULATION_INNINGS
                and state.score_away > state.score_home
                and state.home_team_has_batted_in_inning)

    def _finish(self, state: GameState, label: str) -> None:
        state.is_complete = True
        winner = state.winner
        winner_name = self.season.team_name(winner) if winner else "Nobody"
        logger.info("%s: %s wins (%s)", label, winner_name, state.score_display())

    def simulate_game(self, game: ScheduledGame, usage: UsageContext | None = None,
                      away_starter_id: str | None = None,
                      home_starter_id: str | None = None,
                      resting: frozenset[str] = frozenset()) -> GameState:
        """Simulate a complete game with automated management for both teams."""
        state = self.initialize_game(game, usage, away_starter_id, home_starter_id, resting)
        while not state.is_complete:
            self.simulate_plate_appearance()
        return state

    # -------------------------------------------------------------------
    # Box score generation
    # -------------------------------------------------------------------

    def generate_box_score(self, state: GameState | None = None) -> dict:
        """Generate a complete box score for the game."""
        state = state or self._require_state()
        innings = max(len(state.away.inning_runs), len(state.home.inning_runs), 1)

        def team_box(team: TeamGameState, is_home: bool) -> dict:
            # First plate appearance order, then anyone in the lineup who never batted
            order = list(team.batter_stats)
            order += [pid for pid in team.lineup.player_ids() if pid not in order]

            batting_lines = []
            for pid in order:
                index = team.lineup.slot_index_of(pid)
                position = team.lineup.slots[index].position if index is not None else None
                batting_lines.append({
                    "player_id": pid,
                    "name": self.season.player_name(pid),
                    "position": position_name(position) if position else "",
                    **team.get_batter_stats(pid).to_dict(),
                })

            pitching_lines = [
                {"player_id": pid, "name": self.season.player_name(pid),
                 **team.get_pitcher_stats(pid).to_dict()}
                for pid in team.pitchers_used
            ]

            return {
                "team_id": team.team_id,
                "team_name": team.name,
                "inning_runs": list(team.inning_runs),
                "total_runs": state.score_home if is_home else state.score_away,
                "total_hits": sum(s.hits for s in team.batter_stats.values()),
                "errors": team.errors,
                "lob": team.left_on_base,
                "batting": batting_lines,
                "pitching": pitching_lines,
            }

        return {
            "game_id": state.meta.game_id,
            "away": team_box(state.away, False),
            "home": team_box(state.home, True),
            "final_score": {"away": state.score_away, "home": state.score_home},
            "winning_team": state.winner,
            "innings": innings,
            "seed": state.meta.seed,
            "warnings": list(state.warnings),
        }

    def print_box_score(self, state: GameState | None = None) -> str:
        """Generate a formatted box score string."""
        state = state or self._require_state()
        box = self.generate_box_score(state)
        lines = []

        lines.append("=" * 72)
        lines.append("FINAL BOX SCORE" if state.is_complete else "BOX SCORE (in progress)")
        lines.append("=" * 72)

        header = f"{'Team':<20}"
        for i in range(1, box["innings"] + 1):
            header += f" {i:>3}"
        header += "  |   R   H   E"
        lines.append(header)
        lines.append("-" * len(header))

        for side in ("away", "home"):
            team = box[side]
            row = f"{team['team_name']:<20}"
            for i in range(box["innings"]):
                runs = team["inning_runs"][i] if i < len(team["inning_runs"]) else "x"
                row += f" {runs:>3}"
            row += f"  | {team['total_runs']:>3} {team['total_hits']:>3} {team['errors']:>3}"
            lines.append(row)

        lines.append("")
        winner = box["winning_team"]
        lines.append(f"Winner: {self.season.team_name(winner) if winner else '-'}")
        lines.append(f"Seed: {box['seed']}")

        for side in ("away", "home"):
            team = box[side]
            lines.append(f"\n{team['team_name']} Batting:")
            lines.append(f"  {'Name':<22} {'Pos':<4} {'AB':>3} {'H':>3} {'R':>3} {'RBI':>4} {'BB':>3} {'K':>3}")
            lines.append(f"  {'-'*22} {'-'*4} {'-'*3} {'-'*3} {'-'*3} {'-'*4} {'-'*3} {'-'*3}")
            for b in team["batting"]:
                lines.append(
                    f"  {b['name']:<22} {b['position']:<4} {b['AB']:>3} {b['H']:>3} "
                    f"{b['R']:>3} {b['RBI']:>4} {b['BB']:>3} {b['K']:>3}"
                )

        for side in ("away", "home"):
            team = box[side]
            lines.append(f"\n{team['team_name']} Pitching:")
            lines.append(f"  {'Name':<22} {'IP':>5} {'H':>3} {'R':>3} {'ER':>3} {'BB':>3} {'K':>3} {'P':>4}")
            lines.append(f"  {'-'*22} {'-'*5} {'-'*3} {'-'*3} {'-'*3} {'-'*3} {'-'*3} {'-'*4}")
            for p in team["pitching"]:
                lines.append(
                    f"  {p['name']:<22} {p['IP']:>5.1f} {p['H']:>3} {p['R']:>3} "
                    f"{p['ER']:>3} {p['BB']:>3} {p['K']:>3} {p['pitches']:>4}"
                )

        return "\n".join(lines)

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------

    def serialize(self) -> str:
        """Serialize the game, engine sets and RNG position to JSON."""
        state = self._require_state()
        version, internal, gauss = self.rng.getstate()
        payload = game_state_to_dict(state)
        payload["engine"] = {
            "seed": self.seed,
            "rng_state": [version, list(internal), gauss],
            "removed_players": sorted(self._removed_players),
            "used_pinch_hitters": sorted(self._used_pinch_hitters),
            "mid_game_relievers": sorted(self._mid_game_relievers),
        }
        return json.dumps(payload, sort_keys=True)

    def _restore_lineup(self, saved: dict, team_id: str, use_dh: bool,
                        warnings: list[str]) -> LineupState:
        """Use the saved lineup only if every player still belongs to *team_id*."""
        lineup = LineupState.from_dict(saved)
        stale = []
        for pid in lineup.player_ids() + ([lineup.pitcher_id] if lineup.pitcher_id else []):
            player = self.season.batters.get(pid) or self.season.pitchers.get(pid)
            if player is None or player.team_id != team_id:
                stale.append(pid)
            elif pid in self._removed_players and pid != lineup.pitcher_id:
                stale.append(pid)
        if not stale:
            return lineup

        pitcher_id = lineup.pitcher_id
        current = self.season.pitchers.get(pitcher_id) if pitcher_id else None
        keep_pitcher = current is not None and current.team_id == team_id
        result = build_lineup(
            self.season, team_id, self.rng,
            options=LineupOptions(
                use_dh=use_dh,
                starting_pitcher_id=pitcher_id if keep_pitcher else None,
                excluded_player_ids=frozenset(self._removed_players),
            ),
        )
        rebuilt = result.lineup
        rebuilt.current_batter_index = lineup.current_batter_index % len(rebuilt.slots)
        message = f"Rebuilt {team_id} lineup on restore; stale players {stale}"
        logger.warning(message)
        warnings.append(message)
        return rebuilt

    def _restore_team(self, data: dict, use_dh: bool, warnings: list[str]) -> TeamGameState:
        team_id = data["team_id"]
        lineup = self._restore_lineup(data["lineup"], team_id, use_dh, warnings)
        staff = self.season.pitchers_for_team(team_id)
        starter_id = data["starter_id"]
        if starter_id not in {p.id for p in staff}:
            starter_id = None
        bullpen = classify_pitchers(staff, self.league_norms, starter_id=starter_id)

        saved_roles = {}
        for group in ("setup", "long_relief", "relievers"):
            for role in data["bullpen"].get(group, []):
                saved_roles[role["pitcher_id"]] = role
        for key in ("starter", "closer"):
            if data["bullpen"].get(key):
                saved_roles[data["bullpen"][key]["pitcher_id"]] = data["bullpen"][key]
        for role in bullpen.all_pitchers():
            saved = saved_roles.get(role.pitcher_id)
            if saved is None:
                continue
            role.stamina = saved.get("stamina", role.stamina)
            role.batters_faced = saved.get("batters_faced", 0)
            role.pitches_thrown = saved.get("pitches_thrown", 0)
            role.hits_allowed = saved.get("hits_allowed", 0)
            role.walks_allowed = saved.get("walks_allowed", 0)
            role.runs_allowed = saved.get("runs_allowed", 0)
            role.removed = saved.get("removed", False) or role.pitcher_id in self._removed_players

        if lineup.pitcher_id is None or bullpen.find(lineup.pitcher_id) is None:
            raise SimulationError(f"Cannot restore {team_id}: pitcher on the mound is unknown")

        return TeamGameState(
            team_id=team_id,
            name=self.season.team_name(team_id),
            lineup=lineup,
            bullpen=bullpen,
            starter_id=bullpen.starter.pitcher_id,
            pitchers_used=list(data.get("pitchers_used", [])),
            batter_stats={k: BatterGameStats.from_dict(v)
                          for k, v in data.get("batter_stats", {}).items()},
            pitcher_stats={k: PitcherGameStats.from_dict(v)
                           for k, v in data.get("pitcher_stats", {}).items()},
            inning_runs=list(data.get("inning_runs", [])),
            pinch_hits_used=data.get("pinch_hits_used", 0),
            errors=data.get("errors", 0),
            left_on_base=data.get("left_on_base", 0),
            pending_positions={int(k): v for k, v in data.get("pending_positions", {}).items()},
        )

    @classmethod
    def restore(cls, serialized: str, season: SeasonPackage,
                config: SimulationConfig | None = None) -> SimulationEngine:
        """Rebuild an engine from :meth:`serialize` output.

        Lineups are checked against *season*; any lineup naming a player
        who is no longer on that team's roster is rebuilt.
        """
        data = json.loads(serialized)
        engine_data = data["engine"]
        engine = cls(season, seed=engine_data["seed"], config=config)
        version, internal, gauss = engine_data["rng_state"]
        engine.rng.setstate((version, tuple(internal), gauss))
        engine._removed_players = set(engine_data.get("removed_players", []))
        engine._used_pinch_hitters = set(engine_data.get("used_pinch_hitters", []))
        engine._mid_game_relievers = set(engine_data.get("mid_game_relievers", []))

        meta = GameMeta(**data["meta"])
        warnings = list(data.get("warnings", []))
        half = data.get("half", {})
        state = GameState(
            meta=meta,
            away=engine._restore_team(data["away"], meta.use_dh, warnings),
            home=engine._restore_team(data["home"], meta.use_dh, warnings),
            inning=data["inning"],
            is_top=data["is_top"],
            outs=data["outs"],
            bases=tuple(data["bases"]),
            score_away=data["score_away"],
            score_home=data["score_home"],
            plays=[PlayEvent.from_dict(p) for p in data.get("plays", [])],
            home_team_has_batted_in_inning=data.get("home_team_has_batted_in_inning", False),
            is_complete=data.get("is_complete", False),
            plate_appearances=data.get("plate_appearances", 0),
            warnings=warnings,
            half_runs=half.get("runs", 0),
            half_hits=half.get("hits", 0),
            half_errors=half.get("errors", 0),
            error_in_half=half.get("error_in_half", False),
        )
        engine.state = state
        return engine


# ---------------------------------------------------------------------------
# Serialization support
# ---------------------------------------------------------------------------

def game_state_to_dict(game_state: GameState) -> dict:
    """Serialize game state to a dict for JSON persistence."""
    return {
        "meta": game_state.meta.to_dict(),
        "inning": game_state.inning,
        "is_top": game_state.is_top,
        "outs": game_state.outs,
        "bases": list(game_state.bases),
        "score_away": game_state.score_away,
        "score_home": game_state.score_home,
        "is_complete": game_state.is_complete,
        "winner": game_state.winner,
        "home_team_has_batted_in_inning": game_state.home_team_has_batted_in_inning,
        "plate_appearances": game_state.plate_appearances,
        "half": {
            "runs": game_state.half_runs,
            "hits": game_state.half_hits,
            "errors": game_state.half_errors,
            "error_in_half": game_state.error_in_half,
        },
        "warnings": list(game_state.warnings),
        "away": game_state.away.to_dict(),
        "home": game_state.home.to_dict(),
        "plays": [e.to_dict() for e in game_state.plays],
    }


# ---------------------------------------------------------------------------
# CLI entry point for testing
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import sys

    import config as sim_config
    from season_ingestion import load_season

    sim_config.configure_logging("DEBUG" if "-v" in sys.argv or "--verbose" in sys.argv else None)
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    seed = int(args[0]) if args else None

    cfg = sim_config.load_config()
    season = load_season(cfg.season_path)
    if not season.games:
        sys.exit("Season has no scheduled games")
    engine = SimulationEngine(season, seed=seed, config=cfg)
    scheduled = season.games[0]

    print(f"Simulating game with seed {engine.seed}...")
    print(f"{season.team_name(scheduled.away_team)} at {season.team_name(scheduled.home_team)}")

    game = engine.simulate_game(scheduled)

    print()
    print(engine.print_box_score(game))
    pa_count = sum(1 for e in game.plays if e.event_type == EventType.PLATE_APPEARANCE and not e.is_summary)
    print(f"\nTotal plate appearances: {pa_count}")
    print(f"Total play events: {len(game.plays)}")
