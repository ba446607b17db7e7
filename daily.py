"""Daily puzzle selection and win-streak bookkeeping."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Sequence

from models import Outcome, Puzzle, Stats
from utils import KeyValueStore

STATS_KEY = "morph_stats"
MS_PER_DAY = 86_400_000

PUZZLES: tuple[Puzzle, ...] = (
    Puzzle("COLD", "WARM"),
    Puzzle("FOOL", "FOUR"),
    Puzzle("CODE", "RODE"),
)


def day_id(when: date | datetime | None = None) -> int:
    """
    Local midnight of the given day as epoch milliseconds, floor-divided by
    one day.

    Naive datetimes are taken as local time; aware ones are converted to it,
    so the id changes at local midnight.
    """
    if when is None:
        when = datetime.now()
    if isinstance(when, datetime):
        if when.tzinfo is not None:
            when = when.astimezone()
        when = when.date()
    midnight = datetime(when.year, when.month, when.day)
    return int(midnight.timestamp() * 1000) // MS_PER_DAY


def today_puzzle(
    now: date | datetime | None = None,
    puzzles: Sequence[Puzzle] = PUZZLES,
) -> tuple[int, Puzzle]:
    """Return today's day id and the puzzle it maps to."""
    if not puzzles:
        raise ValueError("Puzzle list is empty")
    current = day_id(now)
    return current, puzzles[current % len(puzzles)]


def _stats_from_json(raw: str) -> Stats:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Stats record is not an object")
    last = data.get("lastWinDayId")
    streak = data.get("streak", 0)
    if last is not None and (isinstance(last, bool) or not isinstance(last, int)):
        raise ValueError(f"Bad lastWinDayId: {last!r}")
    if isinstance(streak, bool) or not isinstance(streak, int) or streak < 0:
        raise ValueError(f"Bad streak: {streak!r}")
    return Stats(last_win_day_id=last, streak=streak)


class StatsStore:
    """Owns the daily win streak and persists it after every change."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.last_save: Outcome[bool] | None = None

    def load_stats(self) -> Outcome[Stats]:
        read = self.store.get(STATS_KEY)
        if not read.ok:
            return Outcome.defaulted(Stats(), read.error)
        if read.value is None:
            return Outcome.defaulted(Stats(), "No stats recorded yet")
        try:
            return Outcome(_stats_from_json(read.value))
        except (ValueError, TypeError) as exc:
            logging.warning("Discarding unreadable stats record: %s", exc)
            return Outcome.defaulted(Stats(), str(exc))

    def save_stats(self, stats: Stats) -> Outcome[bool]:
        payload = json.dumps({"lastWinDayId": stats.last_win_day_id, "streak": stats.streak})
        self.last_save = self.store.set(STATS_KEY, payload)
        return self.last_save

    def record_win(self, day: int) -> Stats:
        """
        Record a daily win.

        A second win on the same day changes nothing. A win the day after
        the previous one extends the streak; any gap restarts it at 1.
        """
        stats = self.load_stats().value
        if stats.last_win_day_id == day:
            return stats

        if stats.last_win_day_id == day - 1:
            updated = Stats(last_win_day_id=day, streak=stats.streak + 1)
        else:
            updated = Stats(last_win_day_id=day, streak=1)

        self.save_stats(updated)
        logging.info("Recorded win for day %d, streak %d", day, updated.streak)
        return updated
