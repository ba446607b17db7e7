"""Timed scoring runs: countdown handle, personal-best storage, and run control."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable

from dictionary import DictionaryCache, random_ladder
from models import LadderGenerationError, Outcome, Puzzle, RunState, RunSummary
from utils import KeyValueStore


class Countdown:
    """
    Cancellable ticker on the running event loop.

    Calls `on_tick` every `interval` seconds until it returns False or the
    handle is cancelled.
    """

    def __init__(self, on_tick: Callable[[], bool], interval: float = 1.0) -> None:
        self.on_tick = on_tick
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """(Re)start the cadence from a full interval."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.on_tick():
                break

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # A tick that ends the run cancels from inside its own task; that
        # task exits on its own once on_tick returns False.
        if task is not asyncio.current_task():
            task.cancel()


class TimedBestStore:
    """Personal best per (word length, run duration)."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    @staticmethod
    def key(length: int, duration: int) -> str:
        return f"morph_timed_pr_{length}_{duration}"

    def load(self, length: int, duration: int) -> Outcome[int]:
        read = self.store.get(self.key(length, duration))
        if not read.ok:
            return Outcome.defaulted(0, read.error)
        if read.value is None:
            return Outcome.defaulted(0, "No personal best recorded yet")
        try:
            best = int(read.value)
        except ValueError as exc:
            logging.warning("Discarding unreadable personal best for %s: %s", self.key(length, duration), exc)
            return Outcome.defaulted(0, str(exc))
        return Outcome(max(best, 0))

    def save(self, length: int, duration: int, score: int) -> Outcome[bool]:
        return self.store.set(self.key(length, duration), str(score))


class TimedRunController:
    """
    State machine for one timed run at a time.

    Idle -> Running on `start`; Running -> Expired when the clock hits zero;
    Running -> Idle on `stop` or a ladder generation failure. Solving a
    ladder scores a point, deals a fresh ladder and refills the clock.
    """

    def __init__(
        self,
        cache: DictionaryCache,
        best_store: TimedBestStore,
        rng: random.Random | None = None,
        retries: int = 10,
        tick_interval: float = 1.0,
    ) -> None:
        self.cache = cache
        self.best_store = best_store
        self.rng = rng or random.Random()
        self.retries = retries
        self.state = RunState.IDLE
        self.length = 4
        self.duration = 60
        self.score = 0
        self.remaining = 0
        self.best = 0
        self.puzzle: Puzzle | None = None
        self.summary: RunSummary | None = None
        self.message = ""
        self.on_ladder: Callable[[Puzzle], None] | None = None
        self.on_finish: Callable[[RunSummary], None] | None = None
        self._countdown = Countdown(self.tick, tick_interval)

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    @property
    def clock_active(self) -> bool:
        return self._countdown.active

    def select(self, length: int, duration: int) -> int:
        """Choose the run parameters while idle; returns the stored best for them."""
        if self.running:
            raise RuntimeError("Cannot change length or duration during a run")
        self.length = length
        self.duration = duration
        self.remaining = duration
        self.best = self.best_store.load(length, duration).value
        return self.best

    async def _next_ladder(self) -> Puzzle:
        return await random_ladder(self.cache, self.length, self.rng, self.retries)

    def _deal(self, puzzle: Puzzle) -> None:
        self.puzzle = puzzle
        if self.on_ladder is not None:
            self.on_ladder(puzzle)

    async def start(self, length: int, duration: int) -> bool:
        """Begin a new run; False (and still idle) when no ladder could be generated."""
        if self.running:
            self.stop()
        self.select(length, duration)
        self.score = 0
        self.summary = None
        try:
            puzzle = await self._next_ladder()
        except LadderGenerationError as exc:
            logging.warning("Timed run not started: %s", exc)
            self.state = RunState.IDLE
            self.message = "Couldn't load dictionary for that length."
            return False

        self._deal(puzzle)
        self.remaining = duration
        self.state = RunState.RUNNING
        self._countdown.start()
        self.message = "Go!"
        logging.info("Timed run started: length %d, %ds", length, duration)
        return True

    def tick(self) -> bool:
        """Advance the clock one second; returns whether the run is still going."""
        if not self.running:
            return False
        self.remaining = max(self.remaining - 1, 0)
        if self.remaining == 0:
            self.state = RunState.EXPIRED
            self._finalize("Time's up! Run ended.")
            return False
        return True

    async def on_solved(self) -> str:
        """Score the solved ladder and deal the next one with a full clock."""
        if not self.running:
            return self.message
        self.score += 1
        try:
            puzzle = await self._next_ladder()
        except LadderGenerationError as exc:
            logging.warning("Ending timed run early: %s", exc)
            self.state = RunState.IDLE
            self._finalize("Dictionary error. Run ended.")
            return self.message
        if not self.running:
            # The clock ran out or the run was stopped while dealing.
            return self.message

        self._deal(puzzle)
        self.remaining = self.duration
        self._countdown.start()
        self.message = f"{self.score} solved, next!"
        return self.message

    def stop(self) -> RunSummary | None:
        """User stop; None when no run is in progress."""
        if not self.running:
            return None
        self.state = RunState.IDLE
        return self._finalize("Run stopped.")

    def close(self) -> None:
        """Teardown: end any run in progress and make sure the clock is gone."""
        self.stop()
        self._countdown.cancel()

    def _finalize(self, reason: str) -> RunSummary:
        self._countdown.cancel()
        previous = self.best_store.load(self.length, self.duration).value
        new_best = self.score > previous
        if new_best:
            saved = self.best_store.save(self.length, self.duration, self.score)
            if not saved.ok:
                logging.warning("Personal best %d kept in memory only: %s", self.score, saved.error)
            self.best = self.score
            self.message = f"{reason} New PR: {self.score}"
        else:
            self.best = previous
            self.message = f"{reason} Score: {self.score} | PR: {previous}"

        self.summary = RunSummary(
            length=self.length,
            duration=self.duration,
            score=self.score,
            best=self.best,
            new_best=new_best,
            message=self.message,
        )
        logging.info("Timed run finished: score %d, best %d", self.score, self.best)
        if self.on_finish is not None:
            self.on_finish(self.summary)
        return self.summary
