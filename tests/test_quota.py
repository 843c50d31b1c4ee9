import threading
from datetime import datetime

from chatrelay.core.quota import QuotaTracker, Scope


class StubConfig:
    def __init__(self, **values):
        self.values = {
            "bot.private_limit": 100,
            "bot.group_limit": 100,
        }
        self.values.update(values)

    def get(self, key, default=None):
        return self.values.get(key, default)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_limit_admits_exactly_limit_requests():
    tracker = QuotaTracker(StubConfig(**{"bot.private_limit": 2}))
    assert tracker.admit(Scope.PRIVATE)
    assert tracker.admit(Scope.PRIVATE)
    assert not tracker.admit(Scope.PRIVATE)


def test_rejected_requests_still_count():
    tracker = QuotaTracker(StubConfig(**{"bot.group_limit": 1}))
    for _ in range(4):
        tracker.admit(Scope.GROUP)
    assert tracker.count(Scope.GROUP) == 4


def test_zero_limit_rejects_everything():
    tracker = QuotaTracker(StubConfig(**{"bot.private_limit": 0}))
    assert not tracker.admit(Scope.PRIVATE)


def test_scopes_are_independent():
    tracker = QuotaTracker(StubConfig(**{"bot.private_limit": 1, "bot.group_limit": 1}))
    assert tracker.admit(Scope.PRIVATE)
    assert not tracker.admit(Scope.PRIVATE)
    assert tracker.admit(Scope.GROUP)


def test_counter_resets_after_midnight():
    clock = FakeClock(datetime(2024, 1, 1, 12, 0, 0))
    tracker = QuotaTracker(StubConfig(**{"bot.private_limit": 1}), clock=clock)
    assert tracker.admit(Scope.PRIVATE)
    clock.now = datetime(2024, 1, 1, 23, 59, 59)
    assert not tracker.admit(Scope.PRIVATE)
    clock.now = datetime(2024, 1, 2, 0, 0, 1)
    assert tracker.admit(Scope.PRIVATE)
    assert tracker.count(Scope.PRIVATE) == 1


def test_reset_after_several_idle_days():
    clock = FakeClock(datetime(2024, 1, 1, 8, 0, 0))
    tracker = QuotaTracker(StubConfig(**{"bot.group_limit": 1}), clock=clock)
    tracker.admit(Scope.GROUP)
    tracker.admit(Scope.GROUP)
    clock.now = datetime(2024, 1, 5, 8, 0, 0)
    assert tracker.admit(Scope.GROUP)


def test_limit_is_read_on_every_call():
    config = StubConfig(**{"bot.private_limit": 1})
    tracker = QuotaTracker(config)
    assert tracker.admit(Scope.PRIVATE)
    assert not tracker.admit(Scope.PRIVATE)
    config.values["bot.private_limit"] = 10
    assert tracker.admit(Scope.PRIVATE)


def test_concurrent_admissions_never_exceed_limit():
    tracker = QuotaTracker(StubConfig(**{"bot.private_limit": 10}))
    results: list[bool] = []
    lock = threading.Lock()

    def worker():
        ok = tracker.admit(Scope.PRIVATE)
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 10
    assert tracker.count(Scope.PRIVATE) == 50
