"""Short-lived cache of global transfer settings and the speed unit.

The UI polls transfer settings every few seconds alongside the torrent
list. :class:`TransferSettingsCache` serves a cached value for ``ttl``
seconds, then keeps serving it while one background refresh runs
(stale-while-revalidate). Only the very first read waits for the daemon.

Transmission expresses speeds in kilo-units whose size (1000 or 1024
bytes) is a daemon setting. :class:`SpeedUnitDetector` learns it once.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Awaitable, Callable

from unitorrent.models import TransferSettings
from unitorrent.utils.tasks import BackgroundTaskGroup

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5.0
FALLBACK_SPEED_BYTES = 1000
VALID_SPEED_BYTES = (1000, 1024)


def to_backend(bytes_per_sec: int | float, speed_bytes: int) -> int:
    """Convert bytes/s to backend kilo-units, rounding half up."""
    if bytes_per_sec <= 0:
        return 0
    return int(math.floor(bytes_per_sec / speed_bytes + 0.5))


def from_backend(value: int | float | None, speed_bytes: int) -> int:
    """Convert backend kilo-units to bytes/s."""
    if not value or value < 0:
        return 0
    return int(value * speed_bytes)


class UnitState(str, Enum):
    """Speed unit detection state."""

    UNKNOWN = "unknown"
    LOADING = "loading"
    READY = "ready"


class SpeedUnitDetector:
    """Lazily detects the backend's speed unit.

    ``unknown -> loading -> ready``; a failed load goes back to ``unknown``
    so a later call can retry, and that call's caller gets the fallback.
    """

    def __init__(self) -> None:
        self.state = UnitState.UNKNOWN
        self._value: int | None = None
        self._loading: asyncio.Task[int] | None = None

    @property
    def value(self) -> int | None:
        return self._value if self.state is UnitState.READY else None

    def observe(self, value: object) -> bool:
        """Adopt *value* from an already fetched payload if it is valid."""
        if value in VALID_SPEED_BYTES:
            self._value = int(value)  # type: ignore[call-overload]
            self.state = UnitState.READY
            return True
        return False

    def adopt(self, value: object) -> int:
        """Settle the unit from a session payload, falling back to SI kilo."""
        if not self.observe(value):
            # Daemons that predate the units block use SI kilobytes
            self._value = FALLBACK_SPEED_BYTES
            self.state = UnitState.READY
        return self._value or FALLBACK_SPEED_BYTES

    async def resolve(self, fetch: Callable[[], Awaitable[object]]) -> int:
        """Return the unit, fetching it at most once while ready.

        Args:
            fetch: Coroutine factory returning the raw unit value (or None
                if the daemon does not report one)

        """
        if self.state is UnitState.READY and self._value is not None:
            return self._value
        if self._loading is None:
            self.state = UnitState.LOADING
            self._loading = asyncio.create_task(self._load(fetch))
        return await asyncio.shield(self._loading)

    async def _load(self, fetch: Callable[[], Awaitable[object]]) -> int:
        try:
            raw = await fetch()
        except Exception as e:
            logger.warning(
                "Could not detect speed unit, assuming %d: %s", FALLBACK_SPEED_BYTES, e
            )
            self.state = UnitState.UNKNOWN
            return FALLBACK_SPEED_BYTES
        finally:
            self._loading = None

        return self.adopt(raw)

    def reset(self) -> None:
        """Forget the detected unit."""
        self.state = UnitState.UNKNOWN
        self._value = None


class TransferSettingsCache:
    """TTL cache with a shared, de-duplicated refresh."""

    def __init__(
        self,
        loader: Callable[[], Awaitable[TransferSettings]],
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            loader: Coroutine factory fetching settings from the daemon
            ttl: Seconds a loaded value counts as fresh
            clock: Monotonic time source

        """
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._value: TransferSettings | None = None
        self._loaded_at = -math.inf
        self._generation = 0
        self._refresh: asyncio.Task[TransferSettings] | None = None
        self._tasks = BackgroundTaskGroup()

    @property
    def value(self) -> TransferSettings | None:
        return self._value

    @property
    def refreshing(self) -> bool:
        return self._refresh is not None and not self._refresh.done()

    def is_fresh(self) -> bool:
        return self._value is not None and self._clock() - self._loaded_at < self.ttl

    async def get(self) -> TransferSettings:
        """Return settings, refreshing in the background when stale."""
        if self._value is None:
            return await self.refresh()
        if not self.is_fresh():
            self._start_refresh()
        return self._value

    async def refresh(self) -> TransferSettings:
        """Wait for a refresh, joining one already in flight."""
        return await asyncio.shield(self._start_refresh())

    def prime(self, value: TransferSettings) -> None:
        """Store *value* as freshly loaded."""
        self._generation += 1
        self._value = value
        self._loaded_at = self._clock()

    def invalidate(self) -> None:
        """Mark the cached value stale; the next read refreshes it."""
        self._loaded_at = -math.inf

    def clear(self) -> None:
        """Drop the cached value; the next read waits for the daemon."""
        self._generation += 1
        self._value = None
        self._loaded_at = -math.inf
        self._refresh = None

    def _start_refresh(self) -> asyncio.Task[TransferSettings]:
        if self._refresh is None or self._refresh.done():
            self._refresh = self._tasks.create(
                self._load(self._generation), name="unitorrent-transfer-settings"
            )
            self._refresh.add_done_callback(self._on_refresh_done)
        return self._refresh

    async def _load(self, generation: int) -> TransferSettings:
        value = await self._loader()
        # A clear() or prime() while loading makes this result outdated
        if generation == self._generation:
            self._value = value
            self._loaded_at = self._clock()
        return value

    def _on_refresh_done(self, task: asyncio.Task[TransferSettings]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Transfer settings refresh failed: %s", error)

    async def aclose(self) -> None:
        """Cancel any background refresh."""
        await self._tasks.cancel_and_wait(timeout=1.0)
        self._refresh = None
