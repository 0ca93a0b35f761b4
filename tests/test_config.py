# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for environment-driven configuration.

Verifies:
1. Defaults apply when no SIM_* variables are set
2. Each variable is read and coerced to its field type
3. Blank values are ignored
4. Out-of-range values raise ValueError naming the field
5. configure_logging resolves level names
"""

import logging
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

import config
from config import DEFAULT_SEASON_PATH, SimulationConfig, load_config


ALL_ENV = (
    config.SEED_ENV,
    config.MAX_PA_ENV,
    config.RATE_TOLERANCE_ENV,
    config.RANDOMNESS_ENV,
    config.LOG_LEVEL_ENV,
    config.SEASON_PATH_ENV,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ALL_ENV:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_defaults(self):
        cfg = load_config()
        assert cfg.seed is None
        assert cfg.max_plate_appearances == 500
        assert cfg.rate_tolerance == 0.25
        assert cfg.manager_randomness == 0.1
        assert cfg.log_level == "WARNING"
        assert cfg.season_path == DEFAULT_SEASON_PATH

    def test_default_season_path_exists(self):
        assert DEFAULT_SEASON_PATH.exists()

    def test_model_matches_loader(self):
        assert load_config() == SimulationConfig()


class TestEnvironment:

    def test_reads_all_variables(self, monkeypatch, tmp_path):
        season_file = tmp_path / "season.json"
        monkeypatch.setenv("SIM_SEED", "1985")
        monkeypatch.setenv("SIM_MAX_PLATE_APPEARANCES", "300")
        monkeypatch.setenv("SIM_RATE_TOLERANCE", "0.1")
        monkeypatch.setenv("SIM_MANAGER_RANDOMNESS", "0")
        monkeypatch.setenv("SIM_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("SIM_SEASON_PATH", str(season_file))
        cfg = load_config()
        assert cfg.seed == 1985
        assert cfg.max_plate_appearances == 300
        assert cfg.rate_tolerance == 0.1
        assert cfg.manager_randomness == 0.0
        assert cfg.log_level == "DEBUG"
        assert cfg.season_path == season_file

    def test_blank_values_ignored(self, monkeypatch):
        monkeypatch.setenv("SIM_SEED", "   ")
        monkeypatch.setenv("SIM_MAX_PLATE_APPEARANCES", "")
        cfg = load_config()
        assert cfg.seed is None
        assert cfg.max_plate_appearances == 500

    def test_whitespace_trimmed(self, monkeypatch):
        monkeypatch.setenv("SIM_SEED", " 42 ")
        assert load_config().seed == 42


class TestValidation:

    def test_pa_cap_too_small(self, monkeypatch):
        monkeypatch.setenv("SIM_MAX_PLATE_APPEARANCES", "10")
        with pytest.raises(ValueError, match="max_plate_appearances"):
            load_config()

    def test_zero_tolerance(self, monkeypatch):
        monkeypatch.setenv("SIM_RATE_TOLERANCE", "0")
        with pytest.raises(ValueError, match="rate_tolerance"):
            load_config()

    def test_non_numeric_seed(self, monkeypatch):
        monkeypatch.setenv("SIM_SEED", "abc")
        with pytest.raises(ValueError, match="Invalid simulation configuration"):
            load_config()

    def test_randomness_above_one(self, monkeypatch):
        monkeypatch.setenv("SIM_MANAGER_RANDOMNESS", "1.5")
        with pytest.raises(ValueError, match="manager_randomness"):
            load_config()

    def test_direct_construction(self):
        with pytest.raises(ValueError):
            SimulationConfig(max_plate_appearances=6000)


class TestConfigureLogging:

    @pytest.fixture
    def captured(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        return calls

    def test_level_name(self, captured):
        config.configure_logging("debug")
        assert captured == [{"level": logging.DEBUG, "format": config.LOG_FORMAT}]

    def test_numeric_level(self, captured):
        config.configure_logging(logging.INFO)
        assert captured[0]["level"] == logging.INFO

    def test_from_environment(self, captured, monkeypatch):
        monkeypatch.setenv("SIM_LOG_LEVEL", "ERROR")
        config.configure_logging()
        assert captured[0]["level"] == logging.ERROR

    def test_unknown_name_falls_back(self, captured):
        config.configure_logging("chatty")
        assert captured[0]["level"] == logging.WARNING
