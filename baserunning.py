# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Baserunning state machine.

``transition(state, outcome, batter_id)`` is a pure function from a base/out
state and a plate-appearance outcome to the next base/out state, the runs
that scored and who scored them.  Each outcome family has its own handler;
all of them are deterministic so identical inputs always produce identical
results.

When a play records the third out the returned ``next_state`` is already the
reset state for the next half-inning (no outs, bases empty).  Runs on a
third-out play only survive for outcomes where the batter reached base.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from models import Outcome


BASES = ("first", "second", "third")


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BaserunningState:
    """Outs in the half-inning plus the runner (player id) on each base."""
    outs: int = 0
    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0 <= self.outs <= 2:
            raise ValueError(f"outs must be 0-2, got {self.outs}")
        occupied = [r for r in (self.first, self.second, self.third) if r is not None]
        if len(occupied) != len(set(occupied)):
            raise ValueError(f"Runner appears on more than one base: {occupied}")

    @classmethod
    def from_bases(cls, outs: int, bases: list[Optional[str]] | tuple) -> BaserunningState:
        return cls(outs=outs, first=bases[0], second=bases[1], third=bases[2])

    @property
    def bases(self) -> tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.first, self.second, self.third)

    @property
    def runner_count(self) -> int:
        return sum(1 for r in self.bases if r is not None)

    @property
    def is_empty(self) -> bool:
        return self.runner_count == 0

    @property
    def is_loaded(self) -> bool:
        return self.runner_count == 3

    def to_dict(self) -> dict:
        return {"outs": self.outs, "bases": list(self.bases)}


@dataclass(frozen=True)
class Advancement:
    runner_id: str
    from_base: str  # "batter", "first", "second", "third"
    to_base: str    # "first", "second", "third", "home"


@dataclass
class TransitionResult:
    next_state: BaserunningState
    runs_scored: int
    scorer_ids: list[str]
    advancements: list[Advancement] = field(default_factory=list)
    out_runner_id: Optional[str] = None
    outs_recorded: int = 0
    inning_over: bool = False


# ---------------------------------------------------------------------------
# Working copy used by the handlers
# ---------------------------------------------------------------------------

class _Play:
    """Mutable scratch state for resolving one play."""

    def __init__(self, state: BaserunningState, batter_id: str) -> None:
        self.outs_before = state.outs
        self.outs = state.outs
        self.runners: dict[str, Optional[str]] = {
            "first": state.first, "second": state.second, "third": state.third,
        }
        self.before = dict(self.runners)
        self.batter_id = batter_id
        self.scorers: list[str] = []
        self.advancements: list[Advancement] = []
        self.out_runner_id: Optional[str] = None

    def occupied(self, base: str) -> bool:
        return self.runners[base] is not None

    def move(self, from_base: str, to_base: str) -> None:
        runner = self.runners[from_base]
        if runner is None:
            return
        self.runners[from_base] = None
        if to_base == "home":
            self.scorers.append(runner)
        else:
            self.runners[to_base] = runner
        self.advancements.append(Advancement(runner, from_base, to_base))

    def score(self, base: str) -> None:
        self.move(base, "home")

    def score_all(self) -> None:
        for base in ("third", "second", "first"):
            self.score(base)

    def batter_to(self, base: str) -> None:
        if base == "home":
            self.scorers.append(self.batter_id)
        else:
            self.runners[base] = self.batter_id
        self.advancements.append(Advancement(self.batter_id, "batter", base))

    def retire(self, base: str) -> None:
        self.out_runner_id = self.runners[base]
        self.runners[base] = None
        self.outs += 1

    def batter_out(self) -> None:
        self.outs += 1


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _single(play: _Play) -> None:
    play.score("third")
    if not play.occupied("third"):
        play.move("second", "third")
    if not play.occupied("second"):
        play.move("first", "second")
    play.batter_to("first")


def _double(play: _Play) -> None:
    play.score_all()
    play.batter_to("second")


def _triple(play: _Play) -> None:
    play.score_all()
    play.batter_to("third")


def _home_run(play: _Play) -> None:
    play.score_all()
    play.batter_to("home")


def _walk(play: _Play) -> None:
    # Only forced runners move; work from the lead base back.
    if play.occupied("first"):
        if play.occupied("second"):
            if play.occupied("third"):
                play.score("third")
            play.move("second", "third")
        play.move("first", "second")
    play.batter_to("first")


def _strikeout(play: _Play) -> None:
    play.batter_out()


def _ground_out(play: _Play) -> None:
    if play.outs_before >= 2:
        play.batter_out()
        return
    if play.occupied("third") and play.outs_before == 1:
        play.score("third")
    if play.occupied("second") and not play.occupied("third"):
        play.move("second", "third")
    if play.occupied("first") and not play.occupied("second"):
        play.move("first", "second")
    play.batter_out()


def _runners_hold_out(play: _Play) -> None:
    play.batter_out()


def _sacrifice_fly(play: _Play) -> None:
    play.score("third")
    play.batter_out()


def _sacrifice_bunt(play: _Play) -> None:
    if play.outs_before >= 2:
        play.batter_out()
        return
    play.score("third")
    if not play.occupied("third"):
        play.move("second", "third")
    if not play.occupied("second"):
        play.move("first", "second")
    play.batter_out()


def _fielders_choice(play: _Play) -> None:
    if not any(play.before.values()):
        play.batter_to("first")
        return

    lead = next(b for b in ("third", "second", "first") if play.before[b] is not None)
    play.retire(lead)

    if lead != "second" and play.before["second"] is not None:
        if play.before["first"] is not None and not play.occupied("third"):
            play.move("second", "third")
    if lead != "first" and play.before["first"] is not None:
        if not play.occupied("second"):
            play.move("first", "second")
    play.batter_to("first")


_HANDLERS: dict[Outcome, Callable[[_Play], None]] = {
    Outcome.SINGLE: _single,
    Outcome.REACHED_ON_ERROR: _single,
    Outcome.DOUBLE: _double,
    Outcome.TRIPLE: _triple,
    Outcome.HOME_RUN: _home_run,
    Outcome.WALK: _walk,
    Outcome.HIT_BY_PITCH: _walk,
    Outcome.CATCHER_INTERFERENCE: _walk,
    Outcome.STRIKEOUT: _strikeout,
    Outcome.GROUND_OUT: _ground_out,
    Outcome.FLY_OUT: _runners_hold_out,
    Outcome.LINE_OUT: _runners_hold_out,
    Outcome.POP_OUT: _runners_hold_out,
    Outcome.SACRIFICE_FLY: _sacrifice_fly,
    Outcome.SACRIFICE_BUNT: _sacrifice_bunt,
    Outcome.FIELDERS_CHOICE: _fielders_choice,
}

# Outs on which no run may count when they end the half-inning.
NO_RUN_THIRD_OUTS = frozenset({
    Outcome.STRIKEOUT,
    Outcome.GROUND_OUT,
    Outcome.FLY_OUT,
    Outcome.LINE_OUT,
    Outcome.POP_OUT,
    Outcome.SACRIFICE_FLY,
    Outcome.SACRIFICE_BUNT,
})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def transition(state: BaserunningState, outcome: Outcome | str,
               batter_id: str) -> TransitionResult:
    """Resolve *outcome* against *state* for the batter *batter_id*."""
    outcome = Outcome(outcome)
    play = _Play(state, batter_id)
    _HANDLERS[outcome](play)

    outs_recorded = play.outs - play.outs_before
    if play.outs >= 3:
        scorers = [] if outcome in NO_RUN_THIRD_OUTS else list(play.scorers)
        return TransitionResult(
            next_state=BaserunningState(),
            runs_scored=len(scorers),
            scorer_ids=scorers,
            advancements=play.advancements,
            out_runner_id=play.out_runner_id,
            outs_recorded=outs_recorded,
            inning_over=True,
        )

    r = play.runners
    return TransitionResult(
        next_state=BaserunningState(
            outs=play.outs, first=r["first"], second=r["second"], third=r["third"],
        ),
        runs_scored=len(play.scorers),
        scorer_ids=list(play.scorers),
        advancements=play.advancements,
        out_runner_id=play.out_runner_id,
        outs_recorded=outs_recorded,
    )
