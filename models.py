"""Data models shared by the ladder engine, its stores, and play modes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class MoveKind(str, Enum):
    SUBSTITUTION = "substitution"
    TRANSPOSITION = "transposition"
    INSERTION = "insertion"
    DELETION = "deletion"


class GameState(str, Enum):
    PLAYING = "playing"
    WON = "won"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"


class DictionaryUnavailable(Exception):
    """Raised when the word list for a length cannot be fetched or read."""

    def __init__(self, length: int, reason: str = "") -> None:
        self.length = length
        message = f"Could not load {length}-letter word list"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LadderGenerationError(Exception):
    """Raised when no usable random start/target pair can be produced."""


@dataclass(slots=True)
class EngineOptions:
    """Runtime options read from the user config file."""

    dict_dir: str = "sample_data/dict"
    dict_url: str = ""
    min_length: int = 2
    max_length: int = 15
    ladder_retries: int = 10
    timed_length: int = 4
    timed_duration: int = 60
    site_url: str = "https://morphonyms.vercel.app"


@dataclass(slots=True)
class Outcome(Generic[T]):
    """
    Result of a fail-open operation.

    `status` is "ok" when the operation succeeded, or "defaulted" when it
    failed and `value` holds the fallback that was applied instead.
    """

    value: T
    status: str = "ok"
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def defaulted(cls, value: T, error: str) -> Outcome[T]:
        return cls(value=value, status="defaulted", error=error)


@dataclass(frozen=True, slots=True)
class MorphMove:
    """A classified step between two words; `kind` is None for an invalid step."""

    source: str
    target: str
    kind: MoveKind | None

    @property
    def valid(self) -> bool:
        return self.kind is not None


@dataclass(frozen=True, slots=True)
class Puzzle:
    start: str
    target: str


@dataclass(slots=True)
class Stats:
    last_win_day_id: int | None = None
    streak: int = 0


@dataclass(slots=True)
class GuessResult:
    """Outcome of one submitted guess."""

    guess: str
    status: str
    message: str
    path: list[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.status in ("accepted", "solved")


@dataclass(slots=True)
class RunSummary:
    """Final report of a timed run."""

    length: int
    duration: int
    score: int
    best: int
    new_best: bool
    message: str
