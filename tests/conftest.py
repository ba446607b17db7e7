import time

import pytest


def set_timezone(monkeypatch, name: str) -> None:
    monkeypatch.setenv("TZ", name)
    time.tzset()


@pytest.fixture(autouse=True)
def utc_timezone(monkeypatch):
    """Day ids follow local midnight, so every test runs in a known zone."""
    if not hasattr(time, "tzset"):
        yield
        return
    set_timezone(monkeypatch, "UTC")
    yield
    monkeypatch.undo()
    time.tzset()
