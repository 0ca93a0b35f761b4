# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for season package ingestion.

Verifies:
1. The bundled sample season loads and validates
2. JSON strings and dicts are both accepted; other payloads are rejected
3. Schema errors are reported with their field location
4. Consistency checks: unknown teams, key/id mismatches, rate sums,
   duplicate or self-played games, norms year
5. Raising variants carry structured error details
6. load_season handles missing and malformed files
"""

import copy
import json
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from config import DEFAULT_SEASON_PATH
from season_ingestion import (
    IngestionError,
    IngestionValidationError,
    check_consistency,
    ingest_season,
    ingest_season_or_raise,
    load_season,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_RAW = json.loads(DEFAULT_SEASON_PATH.read_text())


@pytest.fixture
def payload():
    """A fresh, mutable copy of the sample season document."""
    return copy.deepcopy(_RAW)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestSampleSeason:

    def test_load_sample(self):
        season = load_season(DEFAULT_SEASON_PATH)
        assert season.year == 1985
        assert set(season.teams) == {"NYA", "BOS", "SLN", "CHN"}
        assert len(season.batters) == 52
        assert len(season.pitchers) == 40
        assert len(season.games) == 12

    def test_every_team_fields_a_full_roster(self):
        season = load_season(DEFAULT_SEASON_PATH)
        for team_id in season.teams:
            assert len(season.batters_for_team(team_id)) >= 9
            assert len(season.pitchers_for_team(team_id)) >= 5

    def test_ingest_dict(self, payload):
        result = ingest_season(payload)
        assert result.ok
        assert result.errors == []
        assert result.to_dict() == {"ok": True, "year": 1985, "errors": []}

    def test_ingest_json_string(self, payload):
        result = ingest_season(json.dumps(payload))
        assert result.ok
        assert result.package.team_name("CHN") == "Chicago Cubs"

    def test_sample_is_consistent(self):
        assert check_consistency(load_season(DEFAULT_SEASON_PATH)) == []


# ---------------------------------------------------------------------------
# Payload shape
# ---------------------------------------------------------------------------

class TestPayloadShape:

    def test_invalid_json(self):
        result = ingest_season("{not json")
        assert not result.ok
        assert result.errors[0].startswith("payload: invalid JSON")
        assert result.package is None

    def test_non_object(self):
        result = ingest_season("[1, 2, 3]")
        assert not result.ok
        assert result.errors == ["payload: expected an object, got list"]

    def test_missing_section(self, payload):
        del payload["meta"]
        result = ingest_season(payload)
        assert not result.ok
        assert any(e.startswith("meta:") for e in result.errors)

    def test_bad_handedness(self, payload):
        payload["batters"]["nya_c1"]["bats"] = "X"
        result = ingest_season(payload)
        assert any(e.startswith("batters.nya_c1.bats") for e in result.errors)

    def test_starts_exceed_games(self, payload):
        payload["pitchers"]["nya_sp1"]["games_started"] = 40
        result = ingest_season(payload)
        assert not result.ok
        assert any("exceeds games" in e for e in result.errors)

    def test_year_out_of_range(self, payload):
        payload["meta"]["year"] = 1700
        assert not ingest_season(payload).ok


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------

class TestConsistency:

    def test_unknown_team(self, payload):
        payload["batters"]["nya_c1"]["team_id"] = "XXX"
        result = ingest_season(payload)
        assert "batters.nya_c1: unknown team 'XXX'" in result.errors

    def test_key_mismatch(self, payload):
        payload["pitchers"]["nya_cl"]["id"] = "nya_closer"
        result = ingest_season(payload)
        assert any("key does not match id" in e for e in result.errors)

    def test_rate_sum_out_of_tolerance(self, payload):
        payload["batters"]["nya_ss"]["rates"]["vs_lhp"]["single"] += 0.5
        result = ingest_season(payload)
        assert not result.ok
        assert any(e.startswith("Batter nya_ss vs LHP rates sum to") for e in result.errors)

    def test_small_rate_drift_tolerated(self, payload):
        payload["batters"]["nya_ss"]["rates"]["vs_lhp"]["single"] += 0.05
        assert ingest_season(payload).ok

    def test_tighter_tolerance(self, payload):
        payload["batters"]["nya_ss"]["rates"]["vs_lhp"]["single"] += 0.05
        assert not ingest_season(payload, tolerance=0.01).ok

    def test_league_rates_checked(self, payload):
        payload["league"]["vs_rhp"]["strikeout"] = 0.9
        result = ingest_season(payload)
        assert any(e.startswith("League vs RHP") for e in result.errors)

    def test_duplicate_game_id(self, payload):
        payload["games"].append(dict(payload["games"][0]))
        result = ingest_season(payload)
        assert any("duplicate game id" in e for e in result.errors)

    def test_game_with_unknown_team(self, payload):
        payload["games"][0]["home_team"] = "ZZZ"
        result = ingest_season(payload)
        assert "games[0].home_team: unknown team 'ZZZ'" in result.errors

    def test_team_cannot_play_itself(self, payload):
        payload["games"][0]["away_team"] = payload["games"][0]["home_team"]
        result = ingest_season(payload)
        assert any("cannot play itself" in e for e in result.errors)

    def test_norms_year_mismatch(self, payload):
        payload["norms"]["year"] = 1986
        result = ingest_season(payload)
        assert any(e.startswith("norms.year") for e in result.errors)

    def test_shared_player_id(self, payload):
        pitcher = copy.deepcopy(payload["pitchers"]["nya_cl"])
        pitcher["id"] = "nya_c1"
        payload["pitchers"]["nya_c1"] = pitcher
        result = ingest_season(payload)
        assert "pitchers.nya_c1: id also used by a batter" in result.errors


# ---------------------------------------------------------------------------
# Raising variants
# ---------------------------------------------------------------------------

class TestRaising:

    def test_returns_package(self, payload):
        assert ingest_season_or_raise(payload).year == 1985

    def test_schema_error(self, payload):
        del payload["league"]
        with pytest.raises(IngestionValidationError) as exc_info:
            ingest_season_or_raise(payload)
        locs = [e["loc"] for e in exc_info.value.validation_errors]
        assert "league" in locs
        assert exc_info.value.details

    def test_consistency_error(self, payload):
        payload["games"][0]["home_team"] = "ZZZ"
        with pytest.raises(IngestionError) as exc_info:
            ingest_season_or_raise(payload)
        assert not isinstance(exc_info.value, IngestionValidationError)
        assert "games[0].home_team: unknown team 'ZZZ'" in exc_info.value.details

    def test_invalid_json_string(self):
        with pytest.raises(IngestionError) as exc_info:
            ingest_season_or_raise("{")
        assert exc_info.value.field == "payload"

    def test_non_dict_payload(self):
        with pytest.raises(IngestionError, match="must be a dict"):
            ingest_season_or_raise(42)


class TestLoadSeason:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_season(tmp_path / "nope.json")

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{ broken")
        with pytest.raises(IngestionError, match="Invalid JSON"):
            load_season(path)

    def test_round_trip_through_file(self, tmp_path, payload):
        path = tmp_path / "season.json"
        path.write_text(json.dumps(payload))
        assert load_season(path).year == 1985
