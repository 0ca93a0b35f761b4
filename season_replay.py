# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Season replay loop.

Plays a season's schedule game by game.  Every game gets its own
``SimulationEngine`` seeded from the replay seed and the game's schedule
index, so any single game can be reproduced in isolation.  Between games the
replay records playing time in a :class:`UsageTracker`, which feeds the next
game's lineup weights, rotation and rest decisions.

Cancellation and pausing are only honoured between games; a game in
progress always runs to completion.
"""

from __future__ import annotations

import hashlib
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from config import SimulationConfig
from data.cache import LookupCache
from data.teams import TeamDirectory
from lineup_builder import LineupBuildError, UsageContext
from managerial.roster_manager import RosterManager, UsageRecord
from models import ScheduledGame, SeasonPackage
from rate_model import RateModelError
from simulation import GameState, SimulationEngine, SimulationError

logger = logging.getLogger(__name__)

MAX_RESTS_PER_TEAM = 2
MIN_TRACKED_PA = 20
UNDER_USAGE = 0.75
OVER_USAGE = 1.25


class ReplayStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class GameResult:
    game_id: str
    date: str
    away_team: str
    home_team: str
    away_score: int
    home_score: int
    innings: int
    winner: Optional[str]
    seed: int

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "date": self.date,
            "away_team": self.away_team,
            "home_team": self.home_team,
            "away_score": self.away_score,
            "home_score": self.home_score,
            "innings": self.innings,
            "winner": self.winner,
            "seed": self.seed,
        }


@dataclass
class ReplayProgress:
    current_game_index: int
    total_games: int
    percent: int
    current_date: str
    status: ReplayStatus

    def to_dict(self) -> dict:
        return {
            "current_game_index": self.current_game_index,
            "total_games": self.total_games,
            "percent": self.percent,
            "current_date": self.current_date,
            "status": self.status.value,
        }


def game_seed(base_seed: int, index: int) -> int:
    """Stable per-game seed derived from the replay seed and schedule index."""
    digest = hashlib.sha256(f"{base_seed}:{index}".encode()).hexdigest()
    return int(digest[:8], 16)


# ---------------------------------------------------------------------------
# Usage tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageViolation:
    player_id: str
    team_id: str
    ratio: float
    kind: str  # "under" or "over"


class UsageTracker:
    """Replay playing time versus each player's real season.

    Batters are measured in plate appearances, pitchers in games started.
    Targets are prorated by how many of the player's team's real games have been
    replayed.  The replay loop is the only writer, via :meth:`record_game`.
    """

    def __init__(self, season: SeasonPackage) -> None:
        self._teams = {tid: team.games for tid, team in season.teams.items()}
        self._team_of: dict[str, str] = {}
        self._actual: dict[str, int] = {}
        for b in season.batters.values():
            if b.pa >= MIN_TRACKED_PA:
                self._actual[b.id] = b.pa
                self._team_of[b.id] = b.team_id
        for p in season.pitchers.values():
            if p.games_started > 0:
                self._actual[p.id] = p.games_started
                self._team_of[p.id] = p.team_id
        self._replay: dict[str, int] = {pid: 0 for pid in self._actual}
        self._team_games: dict[str, int] = {tid: 0 for tid in self._teams}

    def team_games(self, team_id: str) -> int:
        return self._team_games.get(team_id, 0)

    def season_games(self, team_id: str) -> int:
        return self._teams.get(team_id, 162)

    def get_usage(self, player_id: str) -> Optional[UsageRecord]:
        if player_id not in self._actual:
            return None
        return UsageRecord(player_id, self._actual[player_id], self._replay[player_id])

    def ratio(self, player_id: str) -> Optional[float]:
        """Replay total over the prorated target, or None before the team has played."""
        if player_id not in self._actual:
            return None
        team_id = self._team_of[player_id]
        played = self._team_games.get(team_id, 0)
        if played == 0:
            return None
        target = self._actual[player_id] * played / self.season_games(team_id)
        return self._replay[player_id] / target if target > 0 else None

    def context(self) -> UsageContext:
        ratios = {}
        for player_id in self._actual:
            r = self.ratio(player_id)
            if r is not None:
                ratios[player_id] = r
        return UsageContext(ratios)

    def record_game(self, state: GameState) -> None:
        for team in (state.away, state.home):
            self._team_games[team.team_id] = self._team_games.get(team.team_id, 0) + 1
            for player_id, line in team.batter_stats.items():
                if player_id in self._replay and self._team_of[player_id] == team.team_id:
                    self._replay[player_id] += line.pa
            if team.starter_id in self._replay:
                self._replay[team.starter_id] += 1

    def violations(self) -> list[UsageViolation]:
        out = []
        for player_id in sorted(self._actual):
            r = self.ratio(player_id)
            if r is None:
                continue
            if r < UNDER_USAGE:
                out.append(UsageViolation(player_id, self._team_of[player_id], r, "under"))
            elif r > OVER_USAGE:
                out.append(UsageViolation(player_id, self._team_of[player_id], r, "over"))
        return out


# ---------------------------------------------------------------------------
# Replay loop
# ---------------------------------------------------------------------------

class SeasonReplay:
    """Replay a season's schedule in order.

    Args:
        season: Validated season package.
        seed: Base seed; each game's engine seed is derived from it.
        config: Engine configuration shared by every game.
        cache: Lookup cache for the team directory.  A private in-memory
            cache is created when omitted.
        rate_noise: Per-PA rate jitter passed to each engine.
        on_game_complete: Called with each finished :class:`GameResult`.
    """

    def __init__(self, season: SeasonPackage, seed: int = 0,
                 config: SimulationConfig | None = None,
                 cache: LookupCache | None = None, rate_noise: float = 0.0,
                 on_game_complete: Callable[[GameResult], None] | None = None) -> None:
        self.season = season
        self.seed = seed
        self.config = config or SimulationConfig()
        self.rate_noise = rate_noise
        self.on_game_complete = on_game_complete
        self.schedule: list[ScheduledGame] = list(season.games)
        self.status = ReplayStatus.IDLE
        self.current_game_index = 0
        self.results: list[GameResult] = []
        self.skipped: list[str] = []
        self.warnings: list[str] = []
        self.last_state: GameState | None = None
        self._cancelled = False

        self.usage = UsageTracker(season)
        self.roster = RosterManager(self.usage, random.Random(game_seed(seed, -1)))
        self.roster.build_rotations(season.pitchers, list(season.teams))
        self.teams = TeamDirectory(cache if cache is not None else LookupCache())
        self.teams.register(season)

    # -- status ------------------------------------------------------------

    def _finished(self) -> bool:
        if self.current_game_index >= len(self.schedule):
            if self.status != ReplayStatus.COMPLETED:
                logger.info("Season %d replay complete: %d games played, %d skipped",
                            self.season.year, len(self.results), len(self.skipped))
            self.status = ReplayStatus.COMPLETED
            return True
        return False

    def start(self) -> None:
        if self._finished():
            return
        self._cancelled = False
        self.status = ReplayStatus.PLAYING

    def pause(self) -> None:
        if self.status == ReplayStatus.PLAYING:
            self.status = ReplayStatus.PAUSED

    def resume(self) -> None:
        if self.status == ReplayStatus.PAUSED:
            self.start()

    def cancel(self) -> None:
        """Stop :meth:`run` before the next game starts."""
        self._cancelled = True

    def progress(self) -> ReplayProgress:
        total = len(self.schedule)
        index = self.current_game_index
        return ReplayProgress(
            current_game_index=index,
            total_games=total,
            percent=round(index / total * 100) if total else 0,
            current_date=self.schedule[index].date if index < total else "",
            status=self.status,
        )

    # -- games -------------------------------------------------------------

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _choose_rest(self, team_id: str) -> set[str]:
        played = self.usage.team_games(team_id)
        total = self.usage.season_games(team_id)
        roster = sorted(self.season.batters_for_team(team_id), key=lambda b: (-b.pa, b.id))
        resting: set[str] = set()
        for batter in roster:
            if len(resting) >= MAX_RESTS_PER_TEAM:
                break
            decision = self.roster.should_rest_batter(batter.id, played, total)
            if not decision.should_rest:
                continue
            candidates = [
                b for b in roster
                if b.id != batter.id and b.id not in resting
                and b.can_play(batter.primary_position)
            ]
            replacement = self.roster.find_replacement(batter.id, candidates, played, total)
            if replacement is None:
                continue
            logger.debug("Resting %s (%s); %s expected to play", batter.name,
                         decision.reason, self.season.player_name(replacement))
            resting.add(batter.id)
        return resting

    def _simulate(self, game: ScheduledGame, index: int) -> Optional[GameResult]:
        seed = game_seed(self.seed, index)
        usage = self.usage.context()
        away_starter = self.roster.next_starter(game.away_team)
        home_starter = self.roster.next_starter(game.home_team)
        resting = frozenset(self._choose_rest(game.away_team) | self._choose_rest(game.home_team))

        def play(rest: frozenset[str]) -> GameState:
            engine = SimulationEngine(self.season, seed=seed, config=self.config,
                                      rate_noise=self.rate_noise)
            return engine.simulate_game(game, usage, away_starter, home_starter, rest)

        try:
            try:
                state = play(resting)
            except LineupBuildError:
                if not resting:
                    raise
                logger.warning("Lineup failed with %d rested players in %s; retrying",
                               len(resting), game.id)
                state = play(frozenset())
        except (SimulationError, LineupBuildError, RateModelError) as e:
            self._warn(f"Skipping game {index + 1} ({game.away_team} at {game.home_team}): {e}")
            self.skipped.append(game.id)
            return None

        self.last_state = state
        self.usage.record_game(state)
        for v in self.usage.violations():
            logger.debug("Usage %s: %s at %.0f%% of target", v.kind, v.player_id, v.ratio * 100)

        innings = max(len(state.away.inning_runs), len(state.home.inning_runs))
        return GameResult(
            game_id=game.id,
            date=game.date,
            away_team=game.away_team,
            home_team=game.home_team,
            away_score=state.score_away,
            home_score=state.score_home,
            innings=innings,
            winner=state.winner,
            seed=seed,
        )

    def play_next_game(self) -> Optional[GameResult]:
        """Play the next scheduled game.

        Returns ``None`` when the season is over or the game had to be
        skipped.  Either way the schedule advances.
        """
        if self._finished():
            return None
        if self.status != ReplayStatus.PLAYING:
            self.start()
        index = self.current_game_index
        result = self._simulate(self.schedule[index], index)
        self.current_game_index += 1
        if result is not None:
            self.results.append(result)
            if self.on_game_complete is not None:
                self.on_game_complete(result)
        self._finished()
        return result

    def play_next_day(self) -> list[GameResult]:
        """Play every remaining game on the next scheduled date."""
        if self._finished():
            return []
        date = self.schedule[self.current_game_index].date
        results = []
        while (self.current_game_index < len(self.schedule)
               and self.schedule[self.current_game_index].date == date):
            result = self.play_next_game()
            if result is not None:
                results.append(result)
        return results

    def skip_to_next_game(self) -> Optional[ScheduledGame]:
        """Skip the current game without playing it."""
        if self._finished():
            return None
        game = self.schedule[self.current_game_index]
        self.skipped.append(game.id)
        self.current_game_index += 1
        self._finished()
        return game

    def run(self, max_games: int | None = None) -> list[GameResult]:
        """Play games until the season ends, ``max_games`` are played or cancelled."""
        self.start()
        played: list[GameResult] = []
        attempted = 0
        while self.status == ReplayStatus.PLAYING:
            if self._cancelled:
                logger.info("Replay cancelled before game %d", self.current_game_index + 1)
                self.status = ReplayStatus.PAUSED
                break
            if max_games is not None and attempted >= max_games:
                self.pause()
                break
            result = self.play_next_game()
            attempted += 1
            if result is not None:
                played.append(result)
        return played

    # -- summaries ---------------------------------------------------------

    def standings(self) -> list[dict]:
        """Win-loss records from the games played so far, best first."""
        records = {t.id: {"team_id": t.id, "name": t.display_name, "league": t.league,
                          "W": 0, "L": 0}
                   for t in self.teams.teams(self.season.year)}
        for r in self.results:
            if r.winner is None:
                continue
            loser = r.home_team if r.winner == r.away_team else r.away_team
            records[r.winner]["W"] += 1
            records[loser]["L"] += 1
        return sorted(records.values(), key=lambda rec: (-rec["W"], rec["L"], rec["team_id"]))


if __name__ == "__main__":
    import sys

    import config as sim_config
    from season_ingestion import load_season

    sim_config.configure_logging("DEBUG" if "-v" in sys.argv else None)
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    cfg = sim_config.load_config()
    base_seed = int(args[0]) if args else (cfg.seed or 0)

    replay = SeasonReplay(load_season(cfg.season_path), seed=base_seed, config=cfg)
    for game_result in replay.run():
        print(f"{game_result.date}  {game_result.away_team} {game_result.away_score}"
              f" @ {game_result.home_team} {game_result.home_score}"
              + (f" ({game_result.innings})" if game_result.innings != 9 else ""))
    print()
    for rec in replay.standings():
        print(f"{rec['name']:<28} {rec['W']:>3} {rec['L']:>3}")
