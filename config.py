"""Centralized configuration for environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

SEED_ENV = "SIM_SEED"
MAX_PA_ENV = "SIM_MAX_PLATE_APPEARANCES"
RATE_TOLERANCE_ENV = "SIM_RATE_TOLERANCE"
RANDOMNESS_ENV = "SIM_MANAGER_RANDOMNESS"
LOG_LEVEL_ENV = "SIM_LOG_LEVEL"
SEASON_PATH_ENV = "SIM_SEASON_PATH"

DEFAULT_SEASON_PATH = Path(__file__).resolve().parent / "data" / "sample_season.json"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class SimulationConfig(BaseModel):
    """Runtime knobs for the simulation engine."""
    seed: Optional[int] = None
    max_plate_appearances: int = Field(default=500, ge=50, le=5000)
    rate_tolerance: float = Field(default=0.25, gt=0.0, le=1.0)
    manager_randomness: float = Field(default=0.1, ge=0.0, le=1.0)
    log_level: str = "WARNING"
    season_path: Path = DEFAULT_SEASON_PATH


def _env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def load_config() -> SimulationConfig:
    """Build a SimulationConfig from ``SIM_*`` environment variables.

    Raises:
        ValueError: If a variable is set to a value outside its valid range.
    """
    raw: dict[str, object] = {}
    for env_name, key in (
        (SEED_ENV, "seed"),
        (MAX_PA_ENV, "max_plate_appearances"),
        (RATE_TOLERANCE_ENV, "rate_tolerance"),
        (RANDOMNESS_ENV, "manager_randomness"),
        (LOG_LEVEL_ENV, "log_level"),
        (SEASON_PATH_ENV, "season_path"),
    ):
        value = _env(env_name)
        if value is not None:
            raw[key] = value
    try:
        return SimulationConfig(**raw)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Invalid simulation configuration: {details}") from e


def configure_logging(level: str | int | None = None) -> None:
    """Configure root logging for CLI entry points."""
    if level is None:
        level = _env(LOG_LEVEL_ENV) or "WARNING"
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
