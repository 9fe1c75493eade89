from pathlib import Path

import pytest

from chunk_search.storage import DuckDBIndexEngine


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, interval: float, function) -> None:  # noqa: ANN001
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class ManualTimerFactory:
    """Stands in for threading.Timer; timers only run when fired."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, interval: float, function) -> ManualTimer:  # noqa: ANN001
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]


def make_words(count: int, prefix: str = "w") -> list[str]:
    return [f"{prefix}{i}" for i in range(count)]


@pytest.fixture()
def engine(tmp_path: Path) -> DuckDBIndexEngine:
    index_engine = DuckDBIndexEngine(str(tmp_path / "index.duckdb"))
    index_engine.initialize()
    return index_engine


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()
