"""Single-value cache cell with a time-to-live."""

from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60


class ExpiringCache(Generic[T]):
    """Holds one value and forgets it once it is older than ``ttl`` seconds.

    No locking: concurrent refreshes may both miss and both write, last
    write wins.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._value: Optional[T] = None
        self._fetched_at: float = 0.0

    def get(self) -> Optional[T]:
        if self._value is None:
            return None
        if self._clock() - self._fetched_at > self._ttl:
            self._value = None
            return None
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._fetched_at = self._clock()

    def clear(self) -> None:
        self._value = None
