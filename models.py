# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for the baseball replay simulation engine.

Everything that arrives from the data-preparation side (season packages,
player rate tables, season norms) is validated here with Pydantic before the
engine ever sees it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Hand(str, Enum):
    L = "L"
    R = "R"
    S = "S"  # switch-hitter


class ThrowHand(str, Enum):
    L = "L"
    R = "R"


class Outcome(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    HOME_RUN = "homeRun"
    WALK = "walk"
    HIT_BY_PITCH = "hitByPitch"
    STRIKEOUT = "strikeout"
    GROUND_OUT = "groundOut"
    FLY_OUT = "flyOut"
    LINE_OUT = "lineOut"
    POP_OUT = "popOut"
    SACRIFICE_FLY = "sacrificeFly"
    SACRIFICE_BUNT = "sacrificeBunt"
    FIELDERS_CHOICE = "fieldersChoice"
    REACHED_ON_ERROR = "reachedOnError"
    CATCHER_INTERFERENCE = "catcherInterference"


class PitcherRoleKind(str, Enum):
    STARTER = "starter"
    RELIEVER = "reliever"
    CLOSER = "closer"


class EventType(str, Enum):
    PLATE_APPEARANCE = "plateAppearance"
    STARTING_LINEUP = "startingLineup"
    PITCHING_CHANGE = "pitchingChange"
    PINCH_HIT = "pinchHit"
    DEFENSIVE_SUB = "defensiveSub"


# Sampling order for the cumulative distribution.  Most frequent outcomes
# first so the draw usually terminates early.
EVENT_RATE_KEYS: tuple[Outcome, ...] = (
    Outcome.GROUND_OUT,
    Outcome.SINGLE,
    Outcome.STRIKEOUT,
    Outcome.FLY_OUT,
    Outcome.WALK,
    Outcome.POP_OUT,
    Outcome.LINE_OUT,
    Outcome.DOUBLE,
    Outcome.HOME_RUN,
    Outcome.REACHED_ON_ERROR,
    Outcome.SACRIFICE_BUNT,
    Outcome.TRIPLE,
    Outcome.HIT_BY_PITCH,
    Outcome.SACRIFICE_FLY,
    Outcome.FIELDERS_CHOICE,
    Outcome.CATCHER_INTERFERENCE,
)

HIT_OUTCOMES = frozenset({
    Outcome.SINGLE, Outcome.DOUBLE, Outcome.TRIPLE, Outcome.HOME_RUN,
})


# ---------------------------------------------------------------------------
# Defensive positions
# ---------------------------------------------------------------------------

POS_P = 1
POS_C = 2
POS_1B = 3
POS_2B = 4
POS_3B = 5
POS_SS = 6
POS_LF = 7
POS_CF = 8
POS_RF = 9
POS_DH = 10
POS_PH = 11
POS_PR = 12

POSITION_NAMES: dict[int, str] = {
    POS_P: "P", POS_C: "C", POS_1B: "1B", POS_2B: "2B", POS_3B: "3B",
    POS_SS: "SS", POS_LF: "LF", POS_CF: "CF", POS_RF: "RF", POS_DH: "DH",
    POS_PH: "PH", POS_PR: "PR",
}


def position_name(position: int) -> str:
    return POSITION_NAMES.get(position, f"Pos{position}")


# ---------------------------------------------------------------------------
# Rate tables
# ---------------------------------------------------------------------------

class EventRates(BaseModel):
    """Probability of each of the 16 plate-appearance outcomes.

    Field names mirror the ``Outcome`` values so that season JSON can be
    loaded without a translation layer.  Values must each lie in [0, 1];
    whether they sum to ~1 is checked by the rate model and at ingestion,
    because historical small samples legitimately drift.
    """
    single: float = Field(default=0.0, ge=0.0, le=1.0)
    double: float = Field(default=0.0, ge=0.0, le=1.0)
    triple: float = Field(default=0.0, ge=0.0, le=1.0)
    homeRun: float = Field(default=0.0, ge=0.0, le=1.0)
    walk: float = Field(default=0.0, ge=0.0, le=1.0)
    hitByPitch: float = Field(default=0.0, ge=0.0, le=1.0)
    strikeout: float = Field(default=0.0, ge=0.0, le=1.0)
    groundOut: float = Field(default=0.0, ge=0.0, le=1.0)
    flyOut: float = Field(default=0.0, ge=0.0, le=1.0)
    lineOut: float = Field(default=0.0, ge=0.0, le=1.0)
    popOut: float = Field(default=0.0, ge=0.0, le=1.0)
    sacrificeFly: float = Field(default=0.0, ge=0.0, le=1.0)
    sacrificeBunt: float = Field(default=0.0, ge=0.0, le=1.0)
    fieldersChoice: float = Field(default=0.0, ge=0.0, le=1.0)
    reachedOnError: float = Field(default=0.0, ge=0.0, le=1.0)
    catcherInterference: float = Field(default=0.0, ge=0.0, le=1.0)

    def get(self, outcome: Outcome) -> float:
        return getattr(self, outcome.value)

    def total(self) -> float:
        return sum(self.get(o) for o in Outcome)

    def as_dict(self) -> dict[Outcome, float]:
        return {o: self.get(o) for o in Outcome}

    @classmethod
    def from_mapping(cls, values: dict) -> EventRates:
        """Build from a mapping keyed by ``Outcome`` or its string value."""
        data = {}
        for key, value in values.items():
            name = key.value if isinstance(key, Outcome) else str(key)
            data[name] = value
        return cls(**data)

    def on_base(self) -> float:
        return (self.single + self.double + self.triple + self.homeRun
                + self.walk + self.hitByPitch)

    def total_bases(self) -> float:
        return self.single + 2 * self.double + 3 * self.triple + 4 * self.homeRun

    def ops(self) -> float:
        """OBP + SLG approximated directly from per-PA rates."""
        return self.on_base() + self.total_bases()


class BatterSplits(BaseModel):
    vs_lhp: EventRates
    vs_rhp: EventRates

    def vs(self, pitcher_hand: ThrowHand | str) -> EventRates:
        return self.vs_lhp if ThrowHand(pitcher_hand) == ThrowHand.L else self.vs_rhp


class PitcherSplits(BaseModel):
    vs_lhb: EventRates
    vs_rhb: EventRates

    def vs(self, batter_hand: Hand | str) -> EventRates:
        return self.vs_lhb if Hand(batter_hand) == Hand.L else self.vs_rhb


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------

class BatterStats(BaseModel):
    """Season batting line and eligibility for one position player."""
    id: str
    name: str
    bats: Hand
    team_id: str
    primary_position: int = Field(ge=1, le=10)
    position_eligibility: dict[int, float] = Field(
        default_factory=dict,
        description="Position number -> innings/outs played there",
    )
    pa: int = Field(default=0, ge=0, description="Actual season plate appearances")
    rates: BatterSplits

    def can_play(self, position: int) -> bool:
        if position == self.primary_position:
            return True
        return self.position_eligibility.get(position, 0) > 0


class PitcherStats(BaseModel):
    """Season pitching line for one pitcher."""
    id: str
    name: str
    throws: ThrowHand
    team_id: str
    games: int = Field(default=0, ge=0)
    games_started: int = Field(default=0, ge=0)
    complete_games: int = Field(default=0, ge=0)
    saves: int = Field(default=0, ge=0)
    innings_pitched: float = Field(default=0.0, ge=0.0)
    era: float = Field(default=4.50, ge=0.0)
    whip: float = Field(default=1.30, ge=0.0)
    avg_bfp_as_starter: Optional[float] = Field(default=None, ge=0.0)
    avg_bfp_as_reliever: Optional[float] = Field(default=None, ge=0.0)
    rates: PitcherSplits
    batting: Optional[BatterSplits] = None

    @field_validator("games_started")
    @classmethod
    def _starts_within_games(cls, v: int, info) -> int:
        games = info.data.get("games")
        if games is not None and v > games:
            raise ValueError(f"games_started ({v}) exceeds games ({games})")
        return v

    @property
    def start_rate(self) -> float:
        return self.games_started / self.games if self.games > 0 else 0.0

    @property
    def complete_game_rate(self) -> float:
        return self.complete_games / self.games_started if self.games_started > 0 else 0.0


# ---------------------------------------------------------------------------
# Season norms
# ---------------------------------------------------------------------------

class StarterPitchNorms(BaseModel):
    fatigue_threshold: int = 85
    typical_limit: int = 100
    hard_limit: int = 120


class RelieverPitchNorms(BaseModel):
    max_pitches: int = 40
    typical_pitches: int = 20


class RelieverBfpNorms(BaseModel):
    """Average reliever batters faced by the inning band they enter in."""
    early: float = Field(default=6.0, gt=0.0)   # innings 1-3
    middle: float = Field(default=4.0, gt=0.0)  # innings 4-6
    late: float = Field(default=3.0, gt=0.0)    # innings 7+


class PitchingNorms(BaseModel):
    starter_pitches: StarterPitchNorms = Field(default_factory=StarterPitchNorms)
    reliever_pitches: RelieverPitchNorms = Field(default_factory=RelieverPitchNorms)
    starter_bfp: float = Field(default=25.0, gt=0.0)
    reliever_bfp: RelieverBfpNorms = Field(default_factory=RelieverBfpNorms)
    reliever_bfp_overall: float = Field(default=4.0, gt=0.0)
    relievers_per_game: float = Field(default=3.0, ge=0.0)
    starter_deep_outing_bfp: float = Field(default=30.0, gt=0.0)


class SubstitutionNorms(BaseModel):
    pinch_hits_per_game: float = Field(default=2.5, ge=0.0)
    defensive_replacements_per_game: float = Field(default=1.5, ge=0.0)


class SeasonNorms(BaseModel):
    year: int
    era: str = ""
    pitching: PitchingNorms = Field(default_factory=PitchingNorms)
    substitutions: SubstitutionNorms = Field(default_factory=SubstitutionNorms)


# ---------------------------------------------------------------------------
# League, teams, schedule
# ---------------------------------------------------------------------------

class LeagueRates(BaseModel):
    vs_lhp: EventRates
    vs_rhp: EventRates
    pitcher_batter: Optional[BatterSplits] = None

    def vs(self, pitcher_hand: ThrowHand | str) -> EventRates:
        return self.vs_lhp if ThrowHand(pitcher_hand) == ThrowHand.L else self.vs_rhp


class Team(BaseModel):
    id: str
    league: str
    city: str
    nickname: str
    games: int = Field(default=162, ge=1, description="Games played in the real season")

    @property
    def display_name(self) -> str:
        return f"{self.city} {self.nickname}"


class ScheduledGame(BaseModel):
    id: str
    date: str
    away_team: str
    home_team: str
    use_dh: Optional[bool] = None


class SeasonMeta(BaseModel):
    year: int = Field(ge=1871, le=2100)
    generated_at: str = ""
    version: str = "1.0"


class SeasonPackage(BaseModel):
    """Everything the engine needs to replay games from one season."""
    meta: SeasonMeta
    norms: SeasonNorms
    batters: dict[str, BatterStats]
    pitchers: dict[str, PitcherStats]
    league: LeagueRates
    teams: dict[str, Team]
    games: list[ScheduledGame] = Field(default_factory=list)

    @property
    def year(self) -> int:
        return self.meta.year

    def batters_for_team(self, team_id: str) -> list[BatterStats]:
        return [b for b in self.batters.values() if b.team_id == team_id]

    def pitchers_for_team(self, team_id: str) -> list[PitcherStats]:
        return [p for p in self.pitchers.values() if p.team_id == team_id]

    def player_name(self, player_id: str) -> str:
        if player_id in self.batters:
            return self.batters[player_id].name
        if player_id in self.pitchers:
            return self.pitchers[player_id].name
        return player_id

    def team_name(self, team_id: str) -> str:
        team = self.teams.get(team_id)
        return team.display_name if team else team_id


# ---------------------------------------------------------------------------
# Runtime lineup state
# ---------------------------------------------------------------------------

@dataclass
class LineupSlot:
    """One batting-order slot: who bats there and where they field."""
    player_id: Optional[str]
    position: int

    def to_dict(self) -> dict:
        return {"player_id": self.player_id, "position": self.position}


@dataclass
class LineupState:
    """A team's nine batting-order slots plus the pitcher on the mound."""
    team_id: str
    slots: list[LineupSlot]
    current_batter_index: int = 0
    pitcher_id: Optional[str] = None
    uses_dh: bool = False

    @property
    def current_slot(self) -> LineupSlot:
        return self.slots[self.current_batter_index]

    def advance(self) -> None:
        self.current_batter_index = (self.current_batter_index + 1) % len(self.slots)

    def player_ids(self) -> list[str]:
        return [s.player_id for s in self.slots if s.player_id is not None]

    def slot_index_of(self, player_id: str) -> int | None:
        for i, slot in enumerate(self.slots):
            if slot.player_id == player_id:
                return i
        return None

    def slot_at_position(self, position: int) -> int | None:
        for i, slot in enumerate(self.slots):
            if slot.position == position:
                return i
        return None

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "slots": [s.to_dict() for s in self.slots],
            "current_batter_index": self.current_batter_index,
            "pitcher_id": self.pitcher_id,
            "uses_dh": self.uses_dh,
        }

    @classmethod
    def from_dict(cls, d: dict) -> LineupState:
        return cls(
            team_id=d["team_id"],
            slots=[LineupSlot(s.get("player_id"), s["position"]) for s in d["slots"]],
            current_batter_index=d.get("current_batter_index", 0),
            pitcher_id=d.get("pitcher_id"),
            uses_dh=d.get("uses_dh", False),
        )
