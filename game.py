"""Game session: the guess pipeline plus one strategy object per play mode."""

from __future__ import annotations

import abc
import logging
import random
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Sequence

from daily import PUZZLES, StatsStore, day_id, today_puzzle
from dictionary import DictionaryCache, random_ladder
from models import EngineOptions, GameState, GuessResult, LadderGenerationError, Puzzle, RunSummary
from morph import is_one_morph
from timed import TimedBestStore, TimedRunController
from utils import KeyValueStore, load_config, normalize_word, options_from_config, setup_logging

DEFAULT_LADDER = Puzzle("COLD", "WARM")
INVALID_MOVE_MESSAGE = "Move must add one, drop one, change one, or swap two letters."

Clock = Callable[[], "date | datetime"]


def _moves_text(moves: int) -> str:
    return f"{moves} move{'' if moves == 1 else 's'}"


class ModeStrategy(abc.ABC):
    """Mode-specific behaviour around the shared guess pipeline."""

    name = ""

    def activate(self, session: GameSession) -> None:
        session.reset(DEFAULT_LADDER.start, DEFAULT_LADDER.target)

    def deactivate(self, session: GameSession) -> None:
        pass

    @abc.abstractmethod
    async def on_solved(self, session: GameSession) -> str:
        """Message shown when the ladder reaches its target."""

    def status_line(self, session: GameSession) -> str:
        return ""


class DailyMode(ModeStrategy):
    name = "daily"

    def __init__(self, stats: StatsStore, puzzles: Sequence[Puzzle] = PUZZLES, clock: Clock = datetime.now) -> None:
        self.stats = stats
        self.puzzles = puzzles
        self.clock = clock
        self.day = day_id(clock())
        self.streak = 0

    def activate(self, session: GameSession) -> None:
        self.day, puzzle = today_puzzle(self.clock(), self.puzzles)
        self.streak = self.stats.load_stats().value.streak
        session.reset(puzzle.start, puzzle.target)

    async def on_solved(self, session: GameSession) -> str:
        updated = self.stats.record_win(day_id(self.clock()))
        self.streak = updated.streak
        return f"Nice! Solved in {_moves_text(session.moves)}."

    def status_line(self, session: GameSession) -> str:
        return f"Streak: {self.streak} | Puzzle #{self.day}"


class FreeplayMode(ModeStrategy):
    name = "freeplay"

    async def on_solved(self, session: GameSession) -> str:
        return f"Solved in {_moves_text(session.moves)}."

    async def randomize(self, session: GameSession, length: int) -> bool:
        """Deal a random ladder of `length`; False with a message when that fails."""
        try:
            puzzle = await random_ladder(session.cache, length, session.rng, session.options.ladder_retries)
        except LadderGenerationError as exc:
            logging.warning("Freeplay ladder not generated: %s", exc)
            session.message = "Couldn't load dictionary for that length."
            return False
        session.reset(puzzle.start, puzzle.target)
        return True

    async def next_random(self, session: GameSession) -> bool:
        session.message = "Loading next..."
        if not await self.randomize(session, 4):
            session.message = "Couldn't load the 4-letter dictionary."
            return False
        return True

    def status_line(self, session: GameSession) -> str:
        return "Freeplay mode"


class TimedMode(ModeStrategy):
    name = "timed"

    def __init__(self, controller: TimedRunController, length: int = 4, duration: int = 60) -> None:
        self.controller = controller
        self.length = length
        self.duration = duration

    def activate(self, session: GameSession) -> None:
        # Clean board; the clock only starts with start_run.
        super().activate(session)
        self.controller.on_ladder = lambda puzzle: session.reset(puzzle.start, puzzle.target)
        self.controller.on_finish = lambda summary: self._finished(session, summary)
        self.controller.select(self.length, self.duration)

    def deactivate(self, session: GameSession) -> None:
        self.controller.close()
        self.controller.on_ladder = None
        self.controller.on_finish = None

    def _finished(self, session: GameSession, summary: RunSummary) -> None:
        session.message = summary.message

    def configure(self, length: int, duration: int) -> int:
        self.length = length
        self.duration = duration
        return self.controller.select(length, duration)

    async def start_run(self, session: GameSession) -> bool:
        started = await self.controller.start(self.length, self.duration)
        session.message = self.controller.message
        return started

    def stop_run(self, session: GameSession) -> RunSummary | None:
        return self.controller.stop()

    async def on_solved(self, session: GameSession) -> str:
        if not self.controller.running:
            return f"Solved in {_moves_text(session.moves)}. Start a run to score."
        return await self.controller.on_solved()

    def status_line(self, session: GameSession) -> str:
        return f"Score: {self.controller.score} | PR: {self.controller.best}"


class GameSession:
    """
    One player's ladder plus the active play mode.

    Guesses go through the same pipeline in every mode: normalize, check the
    move rule, check the dictionary, extend the path. Reaching the target
    hands off to the active mode's `on_solved`.
    """

    def __init__(
        self,
        cache: DictionaryCache,
        store: KeyValueStore,
        options: EngineOptions | None = None,
        rng: random.Random | None = None,
        clock: Clock = datetime.now,
        tick_interval: float = 1.0,
    ) -> None:
        self.options = options or EngineOptions()
        self.cache = cache
        self.rng = rng or random.Random()
        self.start = ""
        self.target = ""
        self.path: list[str] = []
        self.state = GameState.PLAYING
        self.message = ""
        self.busy = False
        self.dict_ready = False
        self._ladder_version = 0

        controller = TimedRunController(
            cache,
            TimedBestStore(store),
            rng=self.rng,
            retries=self.options.ladder_retries,
            tick_interval=tick_interval,
        )
        self.modes: dict[str, ModeStrategy] = {
            "daily": DailyMode(StatsStore(store), clock=clock),
            "freeplay": FreeplayMode(),
            "timed": TimedMode(controller, self.options.timed_length, self.options.timed_duration),
        }
        self.mode: ModeStrategy = self.modes["daily"]
        self.mode.activate(self)

    @property
    def current_word(self) -> str:
        return self.path[-1]

    @property
    def moves(self) -> int:
        return len(self.path) - 1

    def reset(self, start: str | None = None, target: str | None = None) -> None:
        """Start the ladder over, optionally with a new start and target."""
        self.start = normalize_word(self.start if start is None else start)
        self.target = normalize_word(self.target if target is None else target)
        self.path = [self.start]
        self.state = GameState.PLAYING
        self.message = ""
        self._ladder_version += 1

    def switch_mode(self, name: str) -> ModeStrategy:
        if name not in self.modes:
            raise ValueError(f"Unknown mode: {name}")
        self.mode.deactivate(self)
        self.mode = self.modes[name]
        self.mode.activate(self)
        return self.mode

    async def prepare(self) -> bool:
        """Warm the dictionary around the start and target lengths."""
        self.dict_ready = False
        lengths = {len(self.start), len(self.target)}
        ok = True
        for length in sorted(lengths):
            results = await self.cache.warm(length)
            ok = ok and all(result.ok for result in results.values())
        self.dict_ready = True
        return ok

    def _result(self, guess: str, status: str, message: str) -> GuessResult:
        self.message = message
        return GuessResult(guess=guess, status=status, message=message, path=list(self.path))

    async def _in_dictionary(self, word: str) -> bool:
        if self.cache.contains_sync(word):
            return True
        return await self.cache.contains_async(word)

    async def submit_guess(self, text: str) -> GuessResult:
        guess = normalize_word(text)
        if self.busy:
            return GuessResult(guess, "busy", "Still checking the previous word.", list(self.path))
        if self.state is not GameState.PLAYING:
            return self._result(guess, "not playing", "This ladder is finished.")
        if not is_one_morph(self.current_word, guess):
            return self._result(guess, "invalid move", INVALID_MOVE_MESSAGE)

        version = self._ladder_version
        self.busy = True
        try:
            found = await self._in_dictionary(guess)
        finally:
            self.busy = False

        if version != self._ladder_version:
            return self._result(guess, "not playing", "The ladder changed before the word was checked.")
        if not found:
            if self.cache.bucket_state(len(guess)) == "failed":
                return self._result(guess, "dictionary unavailable", "Couldn't load the dictionary for that length.")
            return self._result(guess, "not in dictionary", "Not in dictionary.")

        self.path.append(guess)
        if guess != self.target:
            return self._result(guess, "accepted", "")

        self.state = GameState.WON
        solved_path = list(self.path)
        self.busy = True
        try:
            message = await self.mode.on_solved(self)
        finally:
            self.busy = False
        self.message = message
        return GuessResult(guess=guess, status="solved", message=message, path=solved_path)

    def share_text(self, site_url: str | None = None) -> str:
        """Plain-text result summary; putting it on a clipboard is up to the caller."""
        moves = self.moves
        if isinstance(self.mode, DailyMode):
            header = f"Morphonyms #{self.mode.day} \u2014 {_moves_text(moves)}"
        else:
            header = f"Morphonyms ({self.mode.name}) \u2014 {_moves_text(moves)}"
        bar = "\U0001F7E9" * max(moves, 1)
        body = "Path: " + " \u2192 ".join(self.path)
        return "\n".join([header, bar, body, site_url or self.options.site_url])

    def status_line(self) -> str:
        if not self.dict_ready:
            return "Loading dictionary..."
        return self.mode.status_line(self)

    def close(self) -> None:
        """Tear down the active mode, cancelling any timed countdown."""
        self.mode.deactivate(self)


def create_session(config_path: Path | None = None, state_path: Path | None = None) -> GameSession:
    """Build a session from the user config, with file logging switched on."""
    setup_logging()
    options = options_from_config(load_config(config_path))
    cache = DictionaryCache.from_options(options)
    logging.info("Session created with dictionary source %s", type(cache.source).__name__)
    return GameSession(cache, KeyValueStore(state_path), options)
