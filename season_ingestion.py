# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Season package ingestion.

Turns a raw season JSON document (the output of the data-preparation side)
into a validated :class:`SeasonPackage`.  Validation happens in two passes:

1. **Schema** -- the Pydantic models check types, ranges and required keys.
2. **Consistency** -- cross-references the schema cannot express: every
   player's team exists, scheduled games name known teams, record keys match
   player ids, and every rate table sums to ~1 within the rate tolerance.

``ingest_season`` returns an :class:`IngestionResult` rather than raising;
``ingest_season_or_raise`` and ``load_season`` are the raising variants.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from models import EventRates, SeasonPackage
from rate_model import DEFAULT_RATE_TOLERANCE, RateValidationError, validate_rates

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class IngestionError(Exception):
    """Raised when a season payload cannot be ingested."""

    def __init__(self, message: str, field: str | None = None,
                 details: list[str] | None = None):
        self.field = field
        self.details = details or []
        super().__init__(message)


class IngestionValidationError(IngestionError):
    """Raised when a season payload fails Pydantic validation."""

    def __init__(self, message: str, validation_errors: list[dict]):
        self.validation_errors = validation_errors
        super().__init__(message, details=[
            f"{e.get('loc', '?')}: {e.get('msg', '?')}" for e in validation_errors
        ])


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class IngestionResult:
    ok: bool
    package: Optional[SeasonPackage] = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "year": self.package.year if self.package else None,
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Consistency checks
# ---------------------------------------------------------------------------

def _rate_errors(rates: EventRates, label: str, tolerance: float) -> list[str]:
    try:
        validate_rates(rates, label, tolerance)
    except RateValidationError as e:
        return [f"{e}" + (f" ({'; '.join(e.details)})" if e.details else "")]
    return []


def check_consistency(package: SeasonPackage,
                      tolerance: float = DEFAULT_RATE_TOLERANCE) -> list[str]:
    """Cross-reference checks on an already schema-valid package."""
    errors: list[str] = []
    teams = package.teams

    for key, team in teams.items():
        if key != team.id:
            errors.append(f"teams.{key}: key does not match id {team.id!r}")

    for key, batter in package.batters.items():
        if key != batter.id:
            errors.append(f"batters.{key}: key does not match id {batter.id!r}")
        if batter.team_id not in teams:
            errors.append(f"batters.{key}: unknown team {batter.team_id!r}")
        errors += _rate_errors(batter.rates.vs_lhp, f"Batter {key} vs LHP", tolerance)
        errors += _rate_errors(batter.rates.vs_rhp, f"Batter {key} vs RHP", tolerance)

    for key, pitcher in package.pitchers.items():
        if key != pitcher.id:
            errors.append(f"pitchers.{key}: key does not match id {pitcher.id!r}")
        if pitcher.team_id not in teams:
            errors.append(f"pitchers.{key}: unknown team {pitcher.team_id!r}")
        if key in package.batters:
            errors.append(f"pitchers.{key}: id also used by a batter")
        errors += _rate_errors(pitcher.rates.vs_lhb, f"Pitcher {key} vs LHB", tolerance)
        errors += _rate_errors(pitcher.rates.vs_rhb, f"Pitcher {key} vs RHB", tolerance)
        if pitcher.batting is not None:
            errors += _rate_errors(pitcher.batting.vs_lhp, f"Pitcher {key} batting vs LHP", tolerance)
            errors += _rate_errors(pitcher.batting.vs_rhp, f"Pitcher {key} batting vs RHP", tolerance)

    errors += _rate_errors(package.league.vs_lhp, "League vs LHP", tolerance)
    errors += _rate_errors(package.league.vs_rhp, "League vs RHP", tolerance)
    if package.league.pitcher_batter is not None:
        errors += _rate_errors(package.league.pitcher_batter.vs_lhp,
                               "League pitcher batting vs LHP", tolerance)
        errors += _rate_errors(package.league.pitcher_batter.vs_rhp,
                               "League pitcher batting vs RHP", tolerance)

    if package.norms.year != package.meta.year:
        errors.append(
            f"norms.year: {package.norms.year} does not match season {package.meta.year}"
        )

    seen_games: set[str] = set()
    for i, game in enumerate(package.games):
        if game.id in seen_games:
            errors.append(f"games[{i}]: duplicate game id {game.id!r}")
        seen_games.add(game.id)
        for side, team_id in (("away_team", game.away_team), ("home_team", game.home_team)):
            if team_id not in teams:
                errors.append(f"games[{i}].{side}: unknown team {team_id!r}")
        if game.away_team == game.home_team:
            errors.append(f"games[{i}]: team {game.away_team!r} cannot play itself")

    return errors


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _format_validation_errors(exc: ValidationError) -> list[dict]:
    return [
        {
            "loc": ".".join(str(p) for p in e.get("loc", ())),
            "msg": e.get("msg", ""),
            "type": e.get("type", ""),
        }
        for e in exc.errors()
    ]


def ingest_season(payload: dict[str, Any] | str,
                  tolerance: float = DEFAULT_RATE_TOLERANCE) -> IngestionResult:
    """Validate a raw season payload.

    Args:
        payload: The season document as a dict or JSON string.
        tolerance: How far a rate table's sum may drift from 1.0.

    Returns:
        An :class:`IngestionResult`; ``package`` is set only when ``ok``.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            return IngestionResult(ok=False, errors=[f"payload: invalid JSON ({exc})"])

    if not isinstance(payload, dict):
        return IngestionResult(
            ok=False,
            errors=[f"payload: expected an object, got {type(payload).__name__}"],
        )

    try:
        package = SeasonPackage(**payload)
    except ValidationError as exc:
        errors = _format_validation_errors(exc)
        return IngestionResult(
            ok=False, errors=[f"{e['loc']}: {e['msg']}" for e in errors],
        )

    errors = check_consistency(package, tolerance)
    if errors:
        return IngestionResult(ok=False, errors=errors)

    logger.info(
        "Ingested %d season: %d teams, %d batters, %d pitchers, %d games",
        package.year, len(package.teams), len(package.batters),
        len(package.pitchers), len(package.games),
    )
    return IngestionResult(ok=True, package=package)


def ingest_season_or_raise(payload: dict[str, Any] | str,
                           tolerance: float = DEFAULT_RATE_TOLERANCE) -> SeasonPackage:
    """Like :func:`ingest_season` but raises on failure.

    Raises:
        IngestionValidationError: If the payload fails schema validation.
        IngestionError: If the payload is not JSON or fails consistency checks.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise IngestionError(f"Invalid JSON payload: {exc}", field="payload") from exc
    if not isinstance(payload, dict):
        raise IngestionError(
            f"Payload must be a dict or JSON string, got {type(payload).__name__}",
            field="payload",
        )

    try:
        package = SeasonPackage(**payload)
    except ValidationError as exc:
        errors = _format_validation_errors(exc)
        raise IngestionValidationError(
            f"Validation failed with {len(errors)} error(s)",
            validation_errors=errors,
        ) from exc

    problems = check_consistency(package, tolerance)
    if problems:
        raise IngestionError(
            f"Season {package.year} failed {len(problems)} consistency check(s)",
            details=problems,
        )
    return package


def load_season(path: str | Path,
                tolerance: float = DEFAULT_RATE_TOLERANCE) -> SeasonPackage:
    """Load and validate a season JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        IngestionError: On parse/validation errors.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Season file not found: {path}")

    with open(p) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise IngestionError(f"Invalid JSON in {p}: {exc}", field="payload") from exc

    return ingest_season_or_raise(data, tolerance)
