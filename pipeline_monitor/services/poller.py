"""Poll scheduler that keeps the job snapshot in sync with the remote service."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"


class Poller:
    """
    Runs fetch+reconcile cycles on the event loop, one at a time.

    After every cycle the poller asks ``should_continue`` whether any job is
    still queued or processing; if none is, it stays idle until ``start`` or
    ``rearm`` is called again. A tick that arrives while a fetch is in flight
    is dropped.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[None]],
        should_continue: Callable[[], bool],
        interval: float = 10.0,
        backoff_factor: float = 1.0,
        max_interval: float = 300.0,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """
        Initialize the Poller.

        Args:
            cycle: Coroutine function performing one fetch+reconcile
            should_continue: Whether another cycle should be scheduled
            interval: Seconds between cycles while jobs are active
            backoff_factor: Interval multiplier per consecutive failure
                (1.0 keeps the interval fixed)
            max_interval: Upper bound for the backed-off interval
            on_error: Called with the exception of a failed cycle
        """
        self._cycle = cycle
        self._should_continue = should_continue
        self.interval = interval
        self.backoff_factor = backoff_factor
        self.max_interval = max_interval
        self._on_error = on_error

        self.state = PollerState.IDLE
        self.fetch_count = 0
        self.coalesced_ticks = 0
        self.consecutive_failures = 0
        self.scheduled_delay: Optional[float] = None

        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._rearm_requested = False
        self._stopped = True

    # ==================== Scheduling ====================

    def next_interval(self) -> float:
        """Delay before the next cycle given the current failure streak."""
        delay = self.interval * (self.backoff_factor ** self.consecutive_failures)
        return min(delay, max(self.max_interval, self.interval))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.scheduled_delay = None

    def _spawn_tick(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.tick())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        self.state = PollerState.SCHEDULED
        self.scheduled_delay = delay
        if delay <= 0:
            self._spawn_tick()
        else:
            self._timer = asyncio.get_running_loop().call_later(delay, self._spawn_tick)
        logger.debug(f"Next poll in {delay}s")

    def _schedule_next(self) -> None:
        if self._stopped:
            return
        if self._rearm_requested:
            self._rearm_requested = False
            self._schedule(0)
        elif self._should_continue():
            self._schedule(self.next_interval())
        else:
            logger.info("No active jobs; polling paused")

    def start(self) -> None:
        """External trigger: poll now and keep polling while jobs are active."""
        self._stopped = False
        self.rearm()

    def rearm(self) -> None:
        """Skip the remaining wait and poll as soon as possible."""
        if self._stopped:
            return
        if self.state == PollerState.FETCHING:
            # Picked up once the in-flight fetch resolves.
            self._rearm_requested = True
            return
        self._schedule(0)

    def stop(self) -> None:
        """Stop scheduling. An in-flight fetch still completes."""
        self._stopped = True
        self._rearm_requested = False
        self._cancel_timer()
        if self.state == PollerState.SCHEDULED:
            self.state = PollerState.IDLE

    @property
    def running(self) -> bool:
        return not self._stopped

    # ==================== Cycle ====================

    async def tick(self) -> bool:
        """
        Run one fetch+reconcile cycle.

        Returns:
            False if the tick was coalesced because a fetch is in flight
        """
        if self.state == PollerState.FETCHING:
            self.coalesced_ticks += 1
            logger.debug("Fetch already in flight; dropping tick")
            return False

        self._cancel_timer()
        self.state = PollerState.FETCHING
        self.fetch_count += 1
        try:
            await self._cycle()
        except Exception as e:
            self.consecutive_failures += 1
            logger.warning(f"Poll failed ({self.consecutive_failures} in a row): {e}")
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as callback_error:
                    logger.error(f"Poll error callback failed: {callback_error}")
        else:
            self.consecutive_failures = 0
        finally:
            self.state = PollerState.IDLE

        self._schedule_next()
        return True

    async def drain(self) -> None:
        """Wait for spawned ticks, including immediately re-armed ones."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
