import asyncio
import itertools
from datetime import date
from pathlib import Path

import pytest

from dictionary import DictionaryCache, DirectoryWordSource
from game import DailyMode, FreeplayMode, GameSession, ModeStrategy, TimedMode
from models import DictionaryUnavailable, EngineOptions, GameState, RunState
from utils import KeyValueStore

SAMPLE_DICT = Path(__file__).resolve().parent.parent / "sample_data" / "dict"


class FailingSource(DirectoryWordSource):
    def __init__(self, root: Path, failing: set[int]) -> None:
        super().__init__(root)
        self.failing = failing

    async def fetch(self, length: int) -> str:
        if length in self.failing:
            raise DictionaryUnavailable(length, "offline")
        return await super().fetch(length)


class CyclingChoice:
    def __init__(self, picks: list[str]) -> None:
        self.picks = itertools.cycle(picks)

    def choice(self, seq):
        return next(self.picks)


def make_session(tmp_path, source=None, rng=None, day: date = date(1970, 1, 1)) -> GameSession:
    cache = DictionaryCache(source or DirectoryWordSource(SAMPLE_DICT))
    store = KeyValueStore(tmp_path / "state.json")
    return GameSession(cache, store, EngineOptions(), rng=rng, clock=lambda: day)


def play(session: GameSession, *guesses: str):
    async def run():
        return [await session.submit_guess(guess) for guess in guesses]

    return asyncio.run(run())


def test_daily_session_starts_on_todays_puzzle(tmp_path) -> None:
    session = make_session(tmp_path)
    assert isinstance(session.mode, DailyMode)
    assert (session.start, session.target) == ("COLD", "WARM")
    assert session.path == ["COLD"]
    assert session.state is GameState.PLAYING


def test_daily_solve_records_streak(tmp_path) -> None:
    session = make_session(tmp_path)
    results = play(session, "cord", "CARD", " ward", "WARM")

    assert [r.status for r in results] == ["accepted", "accepted", "accepted", "solved"]
    assert results[-1].message == "Nice! Solved in 4 moves."
    assert results[-1].path == ["COLD", "CORD", "CARD", "WARD", "WARM"]
    assert session.state is GameState.WON
    assert session.mode.streak == 1
    assert session.mode.status_line(session) == "Streak: 1 | Puzzle #0"


def test_streak_continues_next_day(tmp_path) -> None:
    play(make_session(tmp_path, day=date(1970, 1, 1)), "CORD", "CARD", "WARD", "WARM")
    tomorrow = make_session(tmp_path, day=date(1970, 1, 2))
    assert (tomorrow.start, tomorrow.target) == ("FOOL", "FOUR")
    assert tomorrow.mode.streak == 1
    result = play(tomorrow, "FOUL", "FOUR")[-1]
    assert result.status == "solved"
    assert tomorrow.mode.streak == 2


def test_invalid_move_leaves_path_alone(tmp_path) -> None:
    session = make_session(tmp_path)
    result = play(session, "WARM")[0]
    assert result.status == "invalid move"
    assert result.message == "Move must add one, drop one, change one, or swap two letters."
    assert session.path == ["COLD"]


def test_unknown_word_is_rejected(tmp_path) -> None:
    session = make_session(tmp_path)
    result = play(session, "COLX")[0]
    assert result.status == "not in dictionary"
    assert session.path == ["COLD"]


def test_unloadable_length_reports_dictionary_unavailable(tmp_path) -> None:
    session = make_session(tmp_path, source=FailingSource(SAMPLE_DICT, {5}))
    result = play(session, "COLDS")[0]
    assert result.status == "dictionary unavailable"
    assert session.path == ["COLD"]


def test_insertion_and_deletion_moves(tmp_path) -> None:
    session = make_session(tmp_path)
    results = play(session, "COLDS", "COLD", "GOLD")
    assert [r.status for r in results] == ["accepted", "accepted", "accepted"]
    assert session.path == ["COLD", "COLDS", "COLD", "GOLD"]


def test_guesses_after_win_are_refused(tmp_path) -> None:
    session = make_session(tmp_path)
    session.reset("COLD", "GOLD")
    play(session, "GOLD")
    assert play(session, "HOLD")[0].status == "not playing"


def test_busy_session_refuses_overlapping_guess(tmp_path) -> None:
    session = make_session(tmp_path)
    session.busy = True
    result = play(session, "CORD")[0]
    assert result.status == "busy"
    assert session.path == ["COLD"]


def test_reset_restores_start(tmp_path) -> None:
    session = make_session(tmp_path)
    play(session, "CORD", "CARD")
    session.reset()
    assert session.path == ["COLD"]
    session.reset(" cat", "dog ")
    assert (session.start, session.target, session.path) == ("CAT", "DOG", ["CAT"])


def test_prepare_warms_neighbouring_lengths(tmp_path) -> None:
    session = make_session(tmp_path)
    assert asyncio.run(session.prepare())
    assert session.dict_ready
    assert all(session.cache.is_ready(length) for length in (3, 4, 5))


def test_status_line_waits_for_dictionary(tmp_path) -> None:
    session = make_session(tmp_path)
    assert session.status_line() == "Loading dictionary..."
    asyncio.run(session.prepare())
    assert session.status_line() == "Streak: 0 | Puzzle #0"

    session.switch_mode("freeplay")
    assert session.status_line() == "Freeplay mode"


def test_prepare_reports_failed_lengths(tmp_path) -> None:
    session = make_session(tmp_path, source=FailingSource(SAMPLE_DICT, {5}))
    assert asyncio.run(session.prepare()) is False
    assert session.dict_ready


def test_freeplay_custom_and_random_ladders(tmp_path) -> None:
    session = make_session(tmp_path, rng=CyclingChoice(["CAT", "COT"]))
    mode = session.switch_mode("freeplay")
    assert isinstance(mode, FreeplayMode)
    assert (session.start, session.target) == ("COLD", "WARM")

    session.reset("cold", "gold")
    result = play(session, "GOLD")[0]
    assert result.message == "Solved in 1 move."

    assert asyncio.run(mode.randomize(session, 3))
    assert (session.start, session.target) == ("CAT", "COT")
    assert session.state is GameState.PLAYING

    assert asyncio.run(mode.randomize(session, 9)) is False
    assert session.message == "Couldn't load dictionary for that length."


def test_freeplay_next_uses_four_letter_words(tmp_path) -> None:
    session = make_session(tmp_path, rng=CyclingChoice(["FOOL", "FOUR"]))
    mode = session.switch_mode("freeplay")
    assert asyncio.run(mode.next_random(session))
    assert (session.start, session.target) == ("FOOL", "FOUR")


def test_mode_strategy_requires_on_solved() -> None:
    with pytest.raises(TypeError):
        ModeStrategy()

    class Incomplete(ModeStrategy):
        name = "incomplete"

    with pytest.raises(TypeError):
        Incomplete()


def test_unknown_mode_is_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        make_session(tmp_path).switch_mode("marathon")


def test_timed_mode_scores_and_deals_next_ladder(tmp_path) -> None:
    session = make_session(tmp_path, rng=CyclingChoice(["COLD", "GOLD", "WARM", "WORM"]))
    mode = session.switch_mode("timed")
    assert isinstance(mode, TimedMode)
    mode.configure(4, 30)

    async def run():
        assert await mode.start_run(session)
        assert (session.start, session.target) == ("COLD", "GOLD")
        solved = await session.submit_guess("GOLD")
        return solved

    solved = asyncio.run(run())
    assert solved.status == "solved"
    assert solved.path == ["COLD", "GOLD"]
    assert solved.message == "1 solved, next!"
    assert mode.controller.score == 1
    assert (session.start, session.target) == ("WARM", "WORM")
    assert session.state is GameState.PLAYING
    assert mode.controller.remaining == 30

    session.switch_mode("daily")
    assert mode.controller.state is RunState.IDLE
    assert not mode.controller.clock_active
    assert mode.controller.best_store.load(4, 30).value == 1


def test_timed_mode_before_start_does_not_score(tmp_path) -> None:
    session = make_session(tmp_path)
    mode = session.switch_mode("timed")
    session.reset("COLD", "GOLD")
    result = play(session, "GOLD")[0]
    assert result.message == "Solved in 1 move. Start a run to score."
    assert mode.controller.score == 0


def test_share_text_for_daily_and_freeplay(tmp_path) -> None:
    session = make_session(tmp_path)
    play(session, "CORD", "CARD", "WARD", "WARM")
    text = session.share_text("https://example.test")
    assert text.splitlines() == [
        "Morphonyms #0 \u2014 4 moves",
        "\U0001F7E9" * 4,
        "Path: COLD \u2192 CORD \u2192 CARD \u2192 WARD \u2192 WARM",
        "https://example.test",
    ]

    session.switch_mode("freeplay")
    header, bar, body, url = session.share_text().splitlines()
    assert header == "Morphonyms (freeplay) \u2014 0 moves"
    assert bar == "\U0001F7E9"
    assert url == EngineOptions().site_url


def test_create_session_reads_config(tmp_path, monkeypatch) -> None:
    import game

    monkeypatch.setattr(game, "setup_logging", lambda: None)
    config = tmp_path / "config.json"
    config.write_text('{"dict_dir": "%s", "timed_duration": 30}' % SAMPLE_DICT.as_posix(), encoding="utf-8")

    session = game.create_session(config, tmp_path / "state.json")
    assert isinstance(session.cache.source, DirectoryWordSource)
    assert session.options.timed_duration == 30
    assert session.modes["timed"].duration == 30
    assert asyncio.run(session.cache.contains_async("COLD"))


def test_close_cancels_running_countdown(tmp_path) -> None:
    session = make_session(tmp_path, rng=CyclingChoice(["COLD", "GOLD"]))
    mode = session.switch_mode("timed")

    async def run() -> None:
        await mode.start_run(session)
        assert mode.controller.clock_active
        session.close()
        assert not mode.controller.clock_active

    asyncio.run(run())
    assert mode.controller.state is RunState.IDLE
    assert session.message.startswith("Run stopped.")
