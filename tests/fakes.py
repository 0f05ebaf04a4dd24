# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from todo_keeper.storage.substrate import StorageFullError, StorageUnavailableError


class FakeClock:
    """
    Deterministic clock for the store.

    Every call returns the current instant and then moves it forward by
    `step`, so consecutive writes get distinct, increasing timestamps.
    """

    def __init__(
        self,
        start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeKeyValueStore:
    """
    In-memory durable KeyValueStore with an optional character quota.

    Quota accounting matches FileKeyValueStore: len(key) + len(value) per entry.
    """

    durable = True

    def __init__(self, quota_chars: int | None = None) -> None:
        self.data: dict[str, str] = {}
        self.quota_chars = quota_chars

    def used_chars(self) -> int:
        return sum(len(k) + len(v) for k, v in self.data.items())

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_chars is not None:
            used = self.used_chars()
            if key in self.data:
                used -= len(key) + len(self.data[key])
            if used + len(key) + len(value) > self.quota_chars:
                raise StorageFullError(f"quota exceeded writing {key!r}")
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self.data)

    def __len__(self) -> int:
        return len(self.data)


class BrokenKeyValueStore:
    """Durable store where every operation fails."""

    durable = True

    def get(self, key: str) -> str | None:
        raise StorageUnavailableError("disk gone")

    def set(self, key: str, value: str) -> None:
        raise StorageUnavailableError("disk gone")

    def remove(self, key: str) -> None:
        raise StorageUnavailableError("disk gone")

    def keys(self) -> list[str]:
        raise StorageUnavailableError("disk gone")

    def __len__(self) -> int:
        return 0


@dataclass(slots=True)
class FakeUI:
    """
    Scripted ConsoleUI: answers confirmations from a queue (default: no).
    """

    answers: list[bool] = field(default_factory=list)
    questions: list[str] = field(default_factory=list)
    emitted: list[str] = field(default_factory=list)

    def emit(self, text: str) -> None:
        self.emitted.append(text)

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else False
