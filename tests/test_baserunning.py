# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for the baserunning state machine.

Verifies:
1. Hits advance runners the fixed number of bases
2. Walks, HBP and catcher interference only move forced runners
3. Outs: strikeouts and air outs hold runners; ground outs advance them
4. Sacrifice fly / bunt and fielder's choice handling
5. The third out resets the state and discards runs on non-reaching outs
6. Transitions are pure and deterministic
"""

import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from baserunning import NO_RUN_THIRD_OUTS, BaserunningState, transition
from models import Outcome


def state(outs=0, first=None, second=None, third=None):
    return BaserunningState(outs=outs, first=first, second=second, third=third)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class TestState:

    def test_outs_range_enforced(self):
        with pytest.raises(ValueError):
            BaserunningState(outs=3)

    def test_runner_on_two_bases_rejected(self):
        with pytest.raises(ValueError):
            BaserunningState(first="a", second="a")

    def test_from_bases(self):
        s = BaserunningState.from_bases(1, ("a", None, "c"))
        assert s.first == "a" and s.third == "c" and s.outs == 1
        assert s.runner_count == 2
        assert not s.is_empty and not s.is_loaded


# ---------------------------------------------------------------------------
# Hits
# ---------------------------------------------------------------------------

class TestHits:

    def test_single_bases_loaded(self):
        r = transition(state(first="r1", second="r2", third="r3"), Outcome.SINGLE, "b")
        assert r.runs_scored == 1
        assert r.scorer_ids == ["r3"]
        assert r.next_state.bases == ("b", "r1", "r2")

    def test_single_runner_on_second_goes_to_third(self):
        r = transition(state(second="r2"), Outcome.SINGLE, "b")
        assert r.runs_scored == 0
        assert r.next_state.bases == ("b", None, "r2")

    def test_double_clears_bases(self):
        r = transition(state(first="r1", second="r2", third="r3"), Outcome.DOUBLE, "b")
        assert r.runs_scored == 3
        assert r.next_state.bases == (None, "b", None)

    def test_triple(self):
        r = transition(state(first="r1"), Outcome.TRIPLE, "b")
        assert r.scorer_ids == ["r1"]
        assert r.next_state.bases == (None, None, "b")

    def test_grand_slam(self):
        r = transition(state(first="r1", second="r2", third="r3"), Outcome.HOME_RUN, "b")
        assert r.runs_scored == 4
        assert r.scorer_ids[-1] == "b"
        assert r.next_state.is_empty

    def test_reached_on_error_moves_like_single(self):
        r = transition(state(third="r3"), Outcome.REACHED_ON_ERROR, "b")
        assert r.runs_scored == 1
        assert r.next_state.bases == ("b", None, None)
        assert r.outs_recorded == 0


# ---------------------------------------------------------------------------
# Walks
# ---------------------------------------------------------------------------

class TestWalks:

    @pytest.mark.parametrize("outcome", [
        Outcome.WALK, Outcome.HIT_BY_PITCH, Outcome.CATCHER_INTERFERENCE,
    ])
    def test_bases_loaded_forces_run(self, outcome):
        r = transition(state(first="r1", second="r2", third="r3"), outcome, "b")
        assert r.runs_scored == 1
        assert r.next_state.bases == ("b", "r1", "r2")

    def test_runner_on_second_not_forced(self):
        r = transition(state(second="r2"), Outcome.WALK, "b")
        assert r.next_state.bases == ("b", "r2", None)

    def test_first_and_third_only_first_moves(self):
        r = transition(state(first="r1", third="r3"), Outcome.WALK, "b")
        assert r.runs_scored == 0
        assert r.next_state.bases == ("b", "r1", "r3")


# ---------------------------------------------------------------------------
# Outs
# ---------------------------------------------------------------------------

class TestOuts:

    @pytest.mark.parametrize("outcome", [
        Outcome.STRIKEOUT, Outcome.FLY_OUT, Outcome.LINE_OUT, Outcome.POP_OUT,
    ])
    def test_runners_hold(self, outcome):
        r = transition(state(outs=1, first="r1", third="r3"), outcome, "b")
        assert r.runs_scored == 0
        assert r.next_state.outs == 2
        assert r.next_state.bases == ("r1", None, "r3")

    def test_ground_out_advances_runners(self):
        r = transition(state(outs=0, first="r1", second="r2"), Outcome.GROUND_OUT, "b")
        assert r.next_state.outs == 1
        assert r.next_state.bases == (None, "r1", "r2")
        assert r.runs_scored == 0

    def test_ground_out_one_out_scores_from_third(self):
        r = transition(state(outs=1, third="r3"), Outcome.GROUND_OUT, "b")
        assert r.runs_scored == 1
        assert r.next_state.outs == 2

    def test_ground_out_no_outs_runner_on_third_holds(self):
        r = transition(state(outs=0, third="r3"), Outcome.GROUND_OUT, "b")
        assert r.runs_scored == 0
        assert r.next_state.third == "r3"

    def test_ground_out_with_two_outs_resets(self):
        r = transition(state(outs=2, first="r1", second="r2", third="r3"),
                       Outcome.GROUND_OUT, "b")
        assert r.inning_over
        assert r.runs_scored == 0
        assert r.next_state == BaserunningState()

    def test_sacrifice_fly_scores_runner_from_third(self):
        r = transition(state(outs=1, first="r1", third="r3"), Outcome.SACRIFICE_FLY, "b")
        assert r.runs_scored == 1
        assert r.next_state.bases == ("r1", None, None)
        assert r.next_state.outs == 2

    def test_sacrifice_bunt_moves_runners_up(self):
        r = transition(state(outs=0, first="r1"), Outcome.SACRIFICE_BUNT, "b")
        assert r.next_state.bases == (None, "r1", None)
        assert r.next_state.outs == 1

    def test_fielders_choice_retires_lead_runner(self):
        r = transition(state(outs=0, first="r1"), Outcome.FIELDERS_CHOICE, "b")
        assert r.out_runner_id == "r1"
        assert r.next_state.bases == ("b", None, None)
        assert r.next_state.outs == 1

    def test_fielders_choice_first_and_second(self):
        r = transition(state(outs=0, first="r1", second="r2"), Outcome.FIELDERS_CHOICE, "b")
        assert r.out_runner_id == "r2"
        assert r.next_state.bases == ("b", "r1", None)


# ---------------------------------------------------------------------------
# Third out
# ---------------------------------------------------------------------------

class TestThirdOut:

    def test_sac_fly_third_out_discards_run(self):
        # Only reachable when a caller skips situational exclusion
        r = transition(state(outs=2, third="r3"), Outcome.SACRIFICE_FLY, "b")
        assert r.inning_over
        assert r.runs_scored == 0
        assert r.scorer_ids == []

    def test_fielders_choice_third_out_resets(self):
        r = transition(state(outs=2, first="r1"), Outcome.FIELDERS_CHOICE, "b")
        assert r.inning_over
        assert r.outs_recorded == 1
        assert r.next_state.is_empty

    def test_no_run_set_covers_batter_outs(self):
        assert Outcome.STRIKEOUT in NO_RUN_THIRD_OUTS
        assert Outcome.FIELDERS_CHOICE not in NO_RUN_THIRD_OUTS


# ---------------------------------------------------------------------------
# Purity
# ---------------------------------------------------------------------------

class TestDeterminism:

    def test_same_inputs_same_result(self):
        s = state(outs=1, first="r1", second="r2")
        for outcome in Outcome:
            a = transition(s, outcome, "b")
            b = transition(s, outcome, "b")
            assert a.next_state == b.next_state
            assert a.scorer_ids == b.scorer_ids

    def test_input_state_not_mutated(self):
        s = state(outs=1, first="r1")
        transition(s, Outcome.DOUBLE, "b")
        assert s == state(outs=1, first="r1")

    def test_accepts_outcome_string(self):
        r = transition(state(), "homeRun", "b")
        assert r.runs_scored == 1
