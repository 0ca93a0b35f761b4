# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for lineup construction, era batting-order strategies and validation.

Verifies:
1. DH rules by league and year
2. Usage multipliers boost under-used and penalise over-used players
3. build_lineup produces valid lineups with and without the DH
4. Starting pitcher selection and explicit starter overrides
5. Exclusions, short rosters and uncoverable positions
6. Era detection and the four batting-order strategies
7. Slot-by-slot blending never duplicates a hitter
8. validate_lineup errors and warnings
9. Realigning fielders with the fewest bench players, then the fewest moves
"""

import random
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from config import DEFAULT_SEASON_PATH
from era_strategy import (
    EraDetection,
    EraStrategy,
    batter_obp,
    batter_score,
    blend_orders,
    build_batting_order,
    composite_order,
    detect_era,
    early_analytics_order,
    is_transition_year,
    modern_order,
    traditional_order,
)
from lineup_builder import (
    LineupBuildError,
    LineupOptions,
    UsageContext,
    build_lineup,
    realign_fielders,
    select_starting_pitcher,
    starter_quality,
    usage_multiplier,
    uses_dh,
)
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
    LineupSlot,
    LineupState,
)
from season_ingestion import load_season


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="module")
def season():
    return load_season(DEFAULT_SEASON_PATH)


@pytest.fixture
def nya_hitters(season):
    """The nine NYA regulars paired with their primary positions."""
    ids = ["nya_c1", "nya_1b", "nya_2b", "nya_3b", "nya_ss",
           "nya_lf", "nya_cf", "nya_rf", "nya_dh"]
    return [(season.batters[pid], season.batters[pid].primary_position) for pid in ids]


def nya_dh_lineup(**overrides) -> LineupState:
    slots = [
        LineupSlot("nya_cf", POS_CF),
        LineupSlot("nya_ss", POS_SS),
        LineupSlot("nya_1b", POS_1B),
        LineupSlot("nya_dh", POS_DH),
        LineupSlot("nya_3b", POS_3B),
        LineupSlot("nya_lf", POS_LF),
        LineupSlot("nya_rf", POS_RF),
        LineupSlot("nya_2b", POS_2B),
        LineupSlot("nya_c1", POS_C),
    ]
    fields = {"team_id": "NYA", "slots": slots, "pitcher_id": "nya_sp1", "uses_dh": True}
    fields.update(overrides)
    return LineupState(**fields)


def ids_of(order):
    return [b.id for b, _ in order]


# ---------------------------------------------------------------------------
# DH rule and usage
# ---------------------------------------------------------------------------

class TestRules:

    @pytest.mark.parametrize("league,year,expected", [
        ("AL", 1972, False),
        ("AL", 1973, True),
        ("NL", 1985, False),
        ("NL", 2022, True),
        ("FL", 1914, False),
    ])
    def test_uses_dh(self, league, year, expected):
        assert uses_dh(league, year) is expected

    def test_usage_multiplier_neutral_without_data(self):
        assert usage_multiplier(None) == 1.0

    def test_usage_multiplier_boosts_underused(self):
        assert usage_multiplier(0.5) == pytest.approx(1.5)
        assert usage_multiplier(0.0) == pytest.approx(2.0)

    def test_usage_multiplier_penalises_overused(self):
        assert usage_multiplier(1.1) == pytest.approx(0.88)
        assert usage_multiplier(1.3) == pytest.approx(0.25)
        assert usage_multiplier(2.0) == pytest.approx(0.02)

    def test_usage_multiplier_never_increases_with_ratio(self):
        ratios = [i / 20 for i in range(0, 41)]
        values = [usage_multiplier(r) for r in ratios]
        assert all(a >= b for a, b in zip(values, values[1:]))


# ---------------------------------------------------------------------------
# build_lineup
# ---------------------------------------------------------------------------

class TestBuildLineup:

    @pytest.mark.parametrize("seed", range(15))
    def test_dh_lineup_valid(self, season, seed):
        result = build_lineup(season, "NYA", random.Random(seed))
        lineup = result.lineup
        assert lineup.uses_dh
        assert len(lineup.slots) == 9
        assert lineup.slot_at_position(POS_DH) is not None
        assert lineup.slot_at_position(POS_P) is None
        assert lineup.pitcher_id == result.starting_pitcher.id
        assert lineup.pitcher_id not in lineup.player_ids()
        assert validate_lineup(lineup, season).is_valid

    @pytest.mark.parametrize("seed", range(15))
    def test_pitcher_bats_without_dh(self, season, seed):
        result = build_lineup(season, "SLN", random.Random(seed))
        lineup = result.lineup
        assert not lineup.uses_dh
        p_slot = lineup.slot_at_position(POS_P)
        assert p_slot == 8
        assert lineup.slots[p_slot].player_id == result.starting_pitcher.id
        assert lineup.slot_at_position(POS_DH) is None
        assert validate_lineup(lineup, season).is_valid

    def test_every_player_on_the_team(self, season):
        result = build_lineup(season, "BOS", random.Random(3))
        for pid in result.lineup.player_ids():
            assert pid.startswith("bos_")

    def test_same_seed_same_lineup(self, season):
        a = build_lineup(season, "CHN", random.Random(42)).lineup
        b = build_lineup(season, "CHN", random.Random(42)).lineup
        assert a.to_dict() == b.to_dict()

    def test_use_dh_override(self, season):
        result = build_lineup(season, "SLN", random.Random(1), options=LineupOptions(use_dh=True))
        assert result.lineup.uses_dh
        assert result.lineup.slot_at_position(POS_DH) is not None

    def test_1985_uses_blended_composite_era(self, season):
        era = build_lineup(season, "NYA", random.Random(0)).era
        assert era.primary == EraStrategy.COMPOSITE
        assert era.secondary == EraStrategy.TRADITIONAL
        assert era.blend_factor == pytest.approx(0.5)

    def test_explicit_starting_pitcher(self, season):
        result = build_lineup(season, "NYA", random.Random(0),
                              options=LineupOptions(starting_pitcher_id="nya_sp4"))
        assert result.starting_pitcher.id == "nya_sp4"
        assert result.lineup.pitcher_id == "nya_sp4"

    def test_starting_pitcher_from_other_team_rejected(self, season):
        with pytest.raises(LineupBuildError) as exc_info:
            build_lineup(season, "NYA", random.Random(0),
                         options=LineupOptions(starting_pitcher_id="bos_sp1"))
        assert exc_info.value.team_id == "NYA"

    def test_excluded_players_sit(self, season):
        resting = frozenset({"nya_c1", "nya_ss"})
        for seed in range(5):
            result = build_lineup(season, "NYA", random.Random(seed),
                                  options=LineupOptions(excluded_player_ids=resting))
            assert not resting & set(result.lineup.player_ids())
            assert result.lineup.slots[result.lineup.slot_at_position(POS_C)].player_id == "nya_c2"

    def test_short_roster_raises(self, season):
        resting = frozenset({"nya_c2", "nya_ui", "nya_uo", "nya_bb", "nya_dh"})
        with pytest.raises(LineupBuildError, match="available batters"):
            build_lineup(season, "NYA", random.Random(0),
                         options=LineupOptions(excluded_player_ids=resting))

    def test_uncoverable_position_raises_with_details(self, season):
        no_catchers = frozenset({"nya_c1", "nya_c2"})
        with pytest.raises(LineupBuildError) as exc_info:
            build_lineup(season, "NYA", random.Random(0),
                         options=LineupOptions(excluded_player_ids=no_catchers))
        assert "No eligible player at C" in exc_info.value.details

    def test_hard_cap_usage_warns(self, season):
        usage = UsageContext({"nya_cf": 1.6})
        result = build_lineup(season, "NYA", random.Random(0), usage=usage)
        assert any("hard cap" in w for w in result.warnings)

    def test_underused_backup_starts_more_often(self, season):
        neutral = sum(
            "nya_c2" in build_lineup(season, "NYA", random.Random(s)).lineup.player_ids()
            for s in range(60)
        )
        usage = UsageContext({"nya_c1": 1.6, "nya_c2": 0.2})
        boosted = sum(
            "nya_c2" in build_lineup(season, "NYA", random.Random(s), usage=usage).lineup.player_ids()
            for s in range(60)
        )
        assert boosted > neutral


# ---------------------------------------------------------------------------
# Starting pitcher selection
# ---------------------------------------------------------------------------

class TestStartingPitcher:

    def test_only_real_starters_chosen(self, season):
        pitchers = season.pitchers_for_team("NYA")
        rng = random.Random(5)
        picks = {select_starting_pitcher(pitchers, rng).id for _ in range(100)}
        assert picks <= {"nya_sp1", "nya_sp2", "nya_sp3", "nya_sp4", "nya_sp5"}

    def test_empty_staff_raises(self):
        with pytest.raises(LineupBuildError):
            select_starting_pitcher([], random.Random(0))

    def test_no_starters_falls_back_to_most_starts(self, season):
        relievers = [season.pitchers[pid] for pid in ("nya_cl", "nya_su", "nya_lr")]
        assert select_starting_pitcher(relievers, random.Random(0)).id == "nya_lr"

    def test_overused_starters_deprioritised(self, season):
        pitchers = season.pitchers_for_team("NYA")
        usage = UsageContext({pid: 1.8 for pid in ("nya_sp1", "nya_sp2", "nya_sp4", "nya_sp5")})
        rng = random.Random(9)
        picks = [select_starting_pitcher(pitchers, rng, usage).id for _ in range(50)]
        assert picks.count("nya_sp3") > 35

    def test_quality_rewards_starts_and_run_prevention(self, season):
        assert starter_quality(season.pitchers["nya_sp1"]) > starter_quality(season.pitchers["nya_sp5"])


# ---------------------------------------------------------------------------
# Era strategies
# ---------------------------------------------------------------------------

class TestEraStrategy:

    def test_detect_era_bands(self):
        assert detect_era(1975) == EraDetection(EraStrategy.TRADITIONAL, None, 1.0)
        assert detect_era(2015) == EraDetection(EraStrategy.MODERN, None, 1.0)
        nineties = detect_era(1994)
        assert nineties.primary == EraStrategy.EARLY_ANALYTICS
        assert nineties.secondary == EraStrategy.COMPOSITE
        assert nineties.blend_factor == pytest.approx(0.4)

    def test_transition_years(self):
        assert is_transition_year(1980)
        assert is_transition_year(2009)
        assert not is_transition_year(1979)
        assert not is_transition_year(2010)

    @pytest.mark.parametrize("strategy", [
        traditional_order, composite_order, early_analytics_order, modern_order,
    ])
    def test_strategies_are_permutations(self, nya_hitters, strategy):
        order = strategy(nya_hitters)
        assert sorted(ids_of(order)) == sorted(ids_of(nya_hitters))

    def test_composite_heart_of_order(self, nya_hitters):
        ranked = sorted(nya_hitters, key=lambda h: (-batter_score(h[0]), h[0].id))
        order = composite_order(nya_hitters)
        assert set(ids_of(order[2:5])) == set(ids_of(ranked[:3]))

    def test_early_analytics_leads_off_best_obp(self, nya_hitters):
        order = early_analytics_order(nya_hitters)
        best = max(nya_hitters, key=lambda h: (batter_obp(h[0]), h[0].id))
        assert order[0][0].id == best[0].id

    def test_modern_top_three_bat_first_second_fourth(self, nya_hitters):
        ranked = sorted(nya_hitters, key=lambda h: (-batter_score(h[0]), h[0].id))
        order = modern_order(nya_hitters)
        top = set(ids_of(ranked[:3]))
        assert {order[0][0].id, order[1][0].id, order[3][0].id} == top

    def test_traditional_catcher_bats_low(self, nya_hitters):
        order = traditional_order(nya_hitters)
        catcher_slot = ids_of(order).index("nya_c1")
        assert catcher_slot >= 6


class TestBlending:

    def test_full_weight_returns_primary(self, nya_hitters):
        primary = composite_order(nya_hitters)
        secondary = traditional_order(nya_hitters)
        assert blend_orders(primary, secondary, 1.0, random.Random(0)) == primary

    def test_zero_weight_returns_secondary(self, nya_hitters):
        primary = composite_order(nya_hitters)
        secondary = traditional_order(nya_hitters)
        assert blend_orders(primary, secondary, 0.0, random.Random(0)) == secondary

    @pytest.mark.parametrize("seed", range(25))
    def test_partial_blend_never_duplicates(self, nya_hitters, seed):
        primary = modern_order(nya_hitters)
        secondary = traditional_order(nya_hitters)
        blended = blend_orders(primary, secondary, 0.5, random.Random(seed))
        assert len(blended) == 9
        assert sorted(ids_of(blended)) == sorted(ids_of(nya_hitters))

    def test_strategy_override(self, nya_hitters):
        order, era = build_batting_order(nya_hitters, 1985, random.Random(0), EraStrategy.MODERN)
        assert era == EraDetection(EraStrategy.MODERN, None, 1.0)
        assert order == modern_order(nya_hitters)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidateLineup:

    def test_valid_dh_lineup(self, season):
        result = validate_lineup(nya_dh_lineup(), season)
        assert result.is_valid, result.errors
        assert result.warnings == []

    def test_duplicate_player(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[8] = LineupSlot("nya_cf", POS_C)
        result = validate_lineup(lineup, season)
        assert any("more than once" in e for e in result.errors)

    def test_empty_slot(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[0] = LineupSlot(None, POS_CF)
        result = validate_lineup(lineup, season)
        assert "Batting slot 1 is empty" in result.errors
        assert "No player at CF" in result.errors

    def test_wrong_slot_count(self, season):
        lineup = nya_dh_lineup()
        lineup.slots.pop()
        result = validate_lineup(lineup, season)
        assert not result.is_valid
        assert any("expected 9" in e for e in result.errors)

    def test_ineligible_fielder(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[1] = LineupSlot("nya_c2", POS_SS)
        result = validate_lineup(lineup, season)
        assert any("not eligible at SS" in e for e in result.errors)

    def test_off_primary_position_is_warning(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[1] = LineupSlot("nya_ui", POS_SS)
        result = validate_lineup(lineup, season)
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_dh_without_dh_rule(self, season):
        result = validate_lineup(nya_dh_lineup(), season, use_dh=False)
        assert "DH in lineup but the DH is not in effect" in result.errors
        assert "Pitcher missing from batting order" in result.errors

    def test_pitcher_batting_in_dh_lineup(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[3] = LineupSlot("nya_sp1", POS_P)
        result = validate_lineup(lineup, season)
        assert "Pitcher bats in a DH lineup" in result.errors

    def test_unknown_player(self, season):
        lineup = nya_dh_lineup()
        lineup.slots[0] = LineupSlot("ghost", POS_CF)
        result = validate_lineup(lineup, season)
        assert any("Unknown player ghost" in e for e in result.errors)

    def test_to_dict(self, season):
        d = validate_lineup(nya_dh_lineup(), season).to_dict()
        assert d == {"is_valid": True, "errors": [], "warnings": []}


# ---------------------------------------------------------------------------
# Realignment (double switches)
# ---------------------------------------------------------------------------

def field_of(season, **overrides):
    """Position -> BatterStats for the NYA regulars, with *overrides* by position name."""
    by_position = {
        POS_C: "nya_c1", POS_1B: "nya_1b", POS_2B: "nya_2b", POS_3B: "nya_3b",
        POS_SS: "nya_ss", POS_LF: "nya_lf", POS_CF: "nya_cf", POS_RF: "nya_rf",
    }
    names = {"c": POS_C, "first": POS_1B, "second": POS_2B, "third": POS_3B,
             "short": POS_SS, "left": POS_LF, "center": POS_CF, "right": POS_RF}
    for name, pid in overrides.items():
        by_position[names[name]] = pid
    return {pos: season.batters[pid] for pos, pid in by_position.items()}


def plan_ids(plan):
    return {pos: b.id for pos, b in plan.items()}


class TestRealignFielders:

    def test_legal_field_left_alone(self, season):
        current = field_of(season)
        plan = realign_fielders(current, [season.batters["nya_ui"]])
        assert plan_ids(plan) == plan_ids(current)

    def test_swaps_misplaced_fielders_before_using_bench(self, season):
        current = field_of(season, first="nya_3b", third="nya_1b")
        plan = realign_fielders(current, [season.batters["nya_ui"]])
        assert plan[POS_3B].id == "nya_3b"
        assert plan[POS_1B].id == "nya_1b"
        assert "nya_ui" not in plan_ids(plan).values()

    def test_bench_player_enters_where_a_fielder_moved_from(self, season):
        current = field_of(season, second="nya_ui", third="nya_bb")
        bench = [season.batters[pid] for pid in ("nya_c2", "nya_2b", "nya_uo")]
        plan = realign_fielders(current, bench)
        assert plan[POS_3B].id == "nya_ui"
        assert plan[POS_2B].id == "nya_2b"
        assert "nya_bb" not in plan_ids(plan).values()
        assert all(b.can_play(pos) for pos, b in plan.items())

    def test_direct_bench_replacement_preferred_over_moves(self, season):
        current = field_of(season, left="nya_c2")
        bench = [season.batters[pid] for pid in ("nya_uo", "nya_bb")]
        plan = realign_fielders(current, bench)
        assert plan[POS_LF].id == "nya_uo"
        assert plan[POS_RF].id == "nya_rf"

    def test_no_legal_alignment(self, season):
        current = field_of(season, c="nya_bb")
        assert realign_fielders(current, [season.batters["nya_uo"]]) is None
