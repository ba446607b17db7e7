"""Utility helpers for normalization, config, logging, and local state storage."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import fields
from pathlib import Path
from typing import Any

from models import EngineOptions, Outcome


def _choose_app_dir() -> Path:
    """
    Pick a writable app directory.

    Preferred location is user home, with local workspace fallback when blocked.
    """
    preferred = Path.home() / ".morphonyms"
    try:
        preferred.mkdir(parents=True, exist_ok=True)
        return preferred
    except OSError:
        fallback = Path(".morphonyms")
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


APP_DIR = _choose_app_dir()
CONFIG_PATH = APP_DIR / "config.json"
STATE_PATH = APP_DIR / "state.json"
LOG_PATH = APP_DIR / "app.log"

ALPHA_WORD = re.compile(r"^[A-Z]+$")


def ensure_app_dirs() -> None:
    """Create the app directory if it does not already exist."""
    APP_DIR.mkdir(parents=True, exist_ok=True)


def setup_logging() -> None:
    """Configure file logging once per app run."""
    ensure_app_dirs()
    logging.basicConfig(
        filename=str(LOG_PATH),
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load config from the user home config file."""
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except Exception:
        logging.exception("Failed to load config from %s", config_path)
        return {}
    if not isinstance(data, dict):
        logging.warning("Ignoring config at %s: expected a JSON object", config_path)
        return {}
    return data


def options_from_config(config: dict[str, Any]) -> EngineOptions:
    """
    Build engine options from a config dict.

    Unknown keys are ignored; values of the wrong type fall back to defaults.
    """
    defaults = EngineOptions()
    values: dict[str, Any] = {}
    for item in fields(EngineOptions):
        default = getattr(defaults, item.name)
        raw = config.get(item.name, default)
        if isinstance(default, int):
            try:
                if isinstance(raw, bool):
                    raise TypeError("boolean given for a number")
                raw = int(raw)
            except (TypeError, ValueError):
                logging.warning("Invalid config value for %s: %r", item.name, raw)
                raw = default
        elif isinstance(default, str) and not isinstance(raw, str):
            logging.warning("Invalid config value for %s: %r", item.name, raw)
            raw = default
        values[item.name] = raw

    options = EngineOptions(**values)
    if options.min_length < 1 or options.max_length < options.min_length:
        logging.warning(
            "Invalid length range %d..%d, using defaults", options.min_length, options.max_length
        )
        options.min_length = defaults.min_length
        options.max_length = defaults.max_length
    return options


def normalize_word(text: str) -> str:
    """Canonical word form: trimmed and upper-cased."""
    return text.strip().upper()


def is_alpha_word(word: str) -> bool:
    """True for a non-empty A-Z word."""
    return bool(ALPHA_WORD.match(word))


class KeyValueStore:
    """
    Small string key-value store persisted as one JSON object.

    Reads and writes never raise; failures come back as defaulted outcomes.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else STATE_PATH

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"State file {self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Outcome[str | None]:
        try:
            value = self._read_all().get(key)
        except (OSError, ValueError) as exc:
            logging.exception("Failed to read %s from %s", key, self.path)
            return Outcome.defaulted(None, str(exc))
        if value is not None and not isinstance(value, str):
            value = json.dumps(value)
        return Outcome(value)

    def set(self, key: str, value: str) -> Outcome[bool]:
        try:
            try:
                data = self._read_all()
            except ValueError:
                logging.warning("Replacing unreadable state file %s", self.path)
                data = {}
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            logging.exception("Failed to write %s to %s", key, self.path)
            return Outcome.defaulted(False, str(exc))
        return Outcome(True)
