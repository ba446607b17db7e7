"""Length-partitioned dictionary cache with on-demand, de-duplicated loads."""

from __future__ import annotations

import asyncio
import logging
import random
from collections import defaultdict
from functools import partial
from pathlib import Path
from typing import Protocol

import requests

from models import DictionaryUnavailable, EngineOptions, LadderGenerationError, Outcome, Puzzle
from utils import is_alpha_word, normalize_word

EMPTY_BUCKET: frozenset[str] = frozenset()


class WordSource(Protocol):
    async def fetch(self, length: int) -> str:
        """Return the raw newline-delimited word list for one length."""
        ...


class DirectoryWordSource:
    """Reads `<root>/<length>.txt` from a local directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, length: int) -> Path:
        return self.root / f"{length}.txt"

    async def fetch(self, length: int) -> str:
        path = self.path_for(length)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8", errors="ignore")
        except OSError as exc:
            raise DictionaryUnavailable(length, str(exc)) from exc


class HttpWordSource:
    """Fetches `<base_url>/<length>.txt` over HTTP."""

    def __init__(self, base_url: str, timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, length: int) -> str:
        return f"{self.base_url}/{length}.txt"

    def _get(self, length: int) -> str:
        response = requests.get(self.url_for(length), timeout=self.timeout)
        response.raise_for_status()
        return response.text

    async def fetch(self, length: int) -> str:
        try:
            return await asyncio.to_thread(self._get, length)
        except requests.RequestException as exc:
            raise DictionaryUnavailable(length, str(exc)) from exc


def build_word_source(options: EngineOptions) -> WordSource:
    """HTTP source when a dictionary URL is configured, local directory otherwise."""
    if options.dict_url:
        return HttpWordSource(options.dict_url)
    return DirectoryWordSource(options.dict_dir)


def parse_word_list(text: str, length: int) -> frozenset[str]:
    """Keep A-Z lines of exactly `length` letters; everything else is dropped."""
    words: set[str] = set()
    for raw_line in text.splitlines():
        word = normalize_word(raw_line)
        if len(word) == length and is_alpha_word(word):
            words.add(word)
    return frozenset(words)


class DictionaryCache:
    """
    Per-length word buckets loaded lazily from a word source.

    At most one load per length is in flight; every caller asking for that
    length while it loads awaits the same task. Loaded buckets are never
    replaced. A failed load is not cached, so the next request retries it.
    """

    def __init__(self, source: WordSource, min_length: int = 2, max_length: int = 15) -> None:
        self.source = source
        self.min_length = min_length
        self.max_length = max_length
        self._buckets: dict[int, frozenset[str]] = {}
        self._loading: dict[int, asyncio.Task[frozenset[str]]] = {}
        self._failed: dict[int, str] = {}
        self._load_counts: dict[int, int] = defaultdict(int)

    @classmethod
    def from_options(cls, options: EngineOptions) -> DictionaryCache:
        return cls(build_word_source(options), options.min_length, options.max_length)

    async def __aenter__(self) -> DictionaryCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def supports(self, length: int) -> bool:
        return self.min_length <= length <= self.max_length

    def is_ready(self, length: int) -> bool:
        return length in self._buckets

    def bucket_state(self, length: int) -> str:
        """One of "loaded", "loading", "failed", or "absent"."""
        if length in self._buckets:
            return "loaded"
        task = self._loading.get(length)
        if task is not None and not task.done():
            return "loading"
        if length in self._failed:
            return "failed"
        return "absent"

    def load_count(self, length: int) -> int:
        """Number of loads started for a length."""
        return self._load_counts[length]

    async def _load(self, length: int) -> frozenset[str]:
        self._load_counts[length] += 1
        text = await self.source.fetch(length)
        bucket = parse_word_list(text, length)
        self._buckets[length] = bucket
        self._failed.pop(length, None)
        logging.info("Loaded %d words of length %d", len(bucket), length)
        return bucket

    def _load_finished(self, length: int, task: asyncio.Task[frozenset[str]]) -> None:
        if self._loading.get(length) is task:
            del self._loading[length]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failed[length] = str(exc)
            logging.warning("Dictionary load failed for length %d: %s", length, exc)

    def _load_task(self, length: int) -> asyncio.Task[frozenset[str]]:
        task = self._loading.get(length)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._load(length))
            task.add_done_callback(partial(self._load_finished, length))
            self._loading[length] = task
        return task

    async def load(self, length: int) -> Outcome[frozenset[str]]:
        """
        Return the bucket for `length`, loading it if needed.

        Unsupported lengths and failed loads give an empty bucket with a
        "defaulted" status.
        """
        bucket = self._buckets.get(length)
        if bucket is not None:
            return Outcome(bucket)
        if not self.supports(length):
            return Outcome.defaulted(EMPTY_BUCKET, f"Unsupported word length {length}")
        try:
            # Shielded so a cancelled caller never cancels the shared load.
            bucket = await asyncio.shield(self._load_task(length))
        except DictionaryUnavailable as exc:
            return Outcome.defaulted(EMPTY_BUCKET, str(exc))
        return Outcome(bucket)

    async def words(self, length: int) -> frozenset[str]:
        return (await self.load(length)).value

    async def warm(self, length: int) -> dict[int, Outcome[frozenset[str]]]:
        """Load the buckets for length-1, length and length+1 together."""
        lengths = [size for size in (length - 1, length, length + 1) if self.supports(size)]
        results = await asyncio.gather(*(self.load(size) for size in lengths))
        return dict(zip(lengths, results))

    def contains_sync(self, word: str) -> bool:
        """
        Fast-path membership check against already loaded buckets.

        False for a word whose bucket is not loaded yet; only
        `contains_async` is authoritative.
        """
        normalized = normalize_word(word)
        bucket = self._buckets.get(len(normalized))
        return bucket is not None and normalized in bucket

    async def contains_async(self, word: str) -> bool:
        normalized = normalize_word(word)
        if not normalized:
            return False
        bucket = await self.words(len(normalized))
        return normalized in bucket

    async def close(self) -> None:
        """Let in-flight loads settle, then drop every bucket."""
        pending = list(self._loading.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._buckets.clear()
        self._failed.clear()
        self._loading.clear()


async def random_ladder(
    cache: DictionaryCache,
    length: int,
    rng: random.Random | None = None,
    retries: int = 10,
) -> Puzzle:
    """
    Pick a random start/target pair of one length from the cache.

    The target is redrawn up to `retries` times while it equals the start.
    """
    await cache.warm(length)
    words = sorted(await cache.words(length))
    if not words:
        raise LadderGenerationError(f"No {length}-letter words available")

    chooser = rng or random.Random()
    start = chooser.choice(words)
    target = chooser.choice(words)
    for _ in range(retries):
        if target != start:
            break
        target = chooser.choice(words)
    if target == start:
        raise LadderGenerationError(f"Could not find two distinct {length}-letter words")
    return Puzzle(start, target)
