# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Lineup validation.

Checks a LineupState against the rules every lineup must satisfy: nine
filled slots, nine distinct players, every defensive position covered once,
each fielder eligible where they play, and a pitcher at position 1 unless
the designated hitter is in use.  Violations are errors; a player fielding
away from their primary position is only a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from models import (
    POS_DH,
    POS_P,
    LineupState,
    SeasonPackage,
    position_name,
)

LINEUP_SIZE = 9
FIELD_POSITIONS = tuple(range(2, 10))  # C through RF


@dataclass
class LineupValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def validate_lineup(lineup: LineupState, season: SeasonPackage,
                    use_dh: bool | None = None) -> LineupValidation:
    """Validate *lineup* against the roster data in *season*.

    Args:
        lineup: The lineup to check.
        season: Season data used to resolve players and eligibility.
        use_dh: Whether the DH is in effect.  Defaults to ``lineup.uses_dh``.
    """
    result = LineupValidation()
    dh = lineup.uses_dh if use_dh is None else use_dh

    if len(lineup.slots) != LINEUP_SIZE:
        result.errors.append(f"Lineup has {len(lineup.slots)} slots, expected {LINEUP_SIZE}")

    seen: set[str] = set()
    positions: dict[int, str] = {}
    for order, slot in enumerate(lineup.slots, start=1):
        pid = slot.player_id
        if pid is None:
            result.errors.append(f"Batting slot {order} is empty")
            continue
        if pid in seen:
            result.errors.append(f"Player {pid} appears more than once")
        seen.add(pid)

        if slot.position in positions:
            result.errors.append(
                f"Position {position_name(slot.position)} assigned to both "
                f"{positions[slot.position]} and {pid}"
            )
        positions[slot.position] = pid

        batter = season.batters.get(pid)
        pitcher = season.pitchers.get(pid)
        if batter is None and pitcher is None:
            result.errors.append(f"Unknown player {pid} in slot {order}")
            continue

        if slot.position == POS_P:
            if pitcher is None:
                result.errors.append(f"{season.player_name(pid)} at P is not a pitcher")
            elif pid != lineup.pitcher_id and lineup.pitcher_id is not None:
                result.errors.append(
                    f"{season.player_name(pid)} bats at P but {lineup.pitcher_id} is pitching"
                )
        elif slot.position == POS_DH:
            if not dh:
                result.errors.append("DH in lineup but the DH is not in effect")
        elif slot.position in FIELD_POSITIONS:
            if batter is None:
                result.errors.append(
                    f"{season.player_name(pid)} cannot play {position_name(slot.position)}"
                )
            elif not batter.can_play(slot.position):
                result.errors.append(
                    f"{batter.name} is not eligible at {position_name(slot.position)}"
                )
            elif batter.primary_position != slot.position:
                result.warnings.append(
                    f"{batter.name} playing {position_name(slot.position)} "
                    f"(primary {position_name(batter.primary_position)})"
                )
        else:
            result.errors.append(
                f"Slot {order} has non-defensive position {position_name(slot.position)}"
            )

    for position in FIELD_POSITIONS:
        if position not in positions:
            result.errors.append(f"No player at {position_name(position)}")
    if dh:
        if POS_DH not in positions:
            result.errors.append("DH in effect but no DH in lineup")
        if lineup.pitcher_id is None:
            result.errors.append("No pitcher assigned")
        elif lineup.pitcher_id in seen:
            result.errors.append("Pitcher bats in a DH lineup")
    elif POS_P not in positions:
        result.errors.append("Pitcher missing from batting order")

    return result
