import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

from loguru import logger

from ..shared.config import Config
from ..shared.config_keys import ConfigKeys

__all__ = ("QuotaCounter", "QuotaTracker", "Scope")

_END_OF_DAY = time(23, 59, 59)


class Scope(str, Enum):
    PRIVATE = "private"
    GROUP = "group"


_LIMIT_KEYS = {
    Scope.PRIVATE: ConfigKeys.BOT_PRIVATE_LIMIT,
    Scope.GROUP: ConfigKeys.BOT_GROUP_LIMIT,
}


@dataclass(slots=True)
class QuotaCounter:
    day: date
    count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > datetime.combine(self.day, _END_OF_DAY, tzinfo=now.tzinfo)

    def reset(self, now: datetime) -> None:
        self.day = now.date()
        self.count = 0


class QuotaTracker:
    """Daily message quota shared by every sender of a scope.

    The counter advances on every call, rejected ones included, and is only
    reset lazily by the first call made after the local day has ended.
    """

    def __init__(
        self,
        config: Config,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config
        self._clock = clock
        self._lock = threading.Lock()
        today = clock().date()
        self._counters = {scope: QuotaCounter(day=today) for scope in Scope}

    def _limit(self, scope: Scope) -> int:
        value = self._config.get(_LIMIT_KEYS[scope])
        if isinstance(value, bool) or not isinstance(value, int):
            return 0
        return value

    def admit(self, scope: Scope) -> bool:
        limit = self._limit(scope)
        now = self._clock()
        with self._lock:
            counter = self._counters[scope]
            if counter.is_expired(now):
                logger.debug(f"Daily {scope.value} quota reset (was {counter.count})")
                counter.reset(now)
            counter.count += 1
            count = counter.count
        if limit >= count:
            return True
        logger.info(f"Daily {scope.value} quota exhausted ({count}/{limit})")
        return False

    def count(self, scope: Scope) -> int:
        with self._lock:
            return self._counters[scope].count
