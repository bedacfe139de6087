"""Polling scheduler for the live strategy loop.

Owns the StrategyState between ticks. Ticks never overlap: each runs
under a lock, and stop() stops scheduling then waits for the in-flight
tick to finish so the state is never left half-updated.
"""

import asyncio
import time
from collections.abc import Callable

from lphedge.logging import get_logger
from lphedge.strategy.live_loop import LiveStrategyLoop
from lphedge.strategy.state import StrategyState, TickResult

logger = get_logger(__name__)

# Back-off after a failed tick before trying again
_ERROR_BACKOFF_SECONDS = 10.0


class LiveStrategyRunner:
    """Runs LiveStrategyLoop.tick on a fixed interval.

    Args:
        loop: The tick evaluator.
        poll_interval_seconds: Seconds between tick starts.
        initial_state: Starting state (fresh by default).
        clock: Returns current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        loop: LiveStrategyLoop,
        poll_interval_seconds: float = 300.0,
        initial_state: StrategyState | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._loop = loop
        self._interval = poll_interval_seconds
        self._state = initial_state or StrategyState()
        self._clock = clock
        self._running = False
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> StrategyState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> TickResult:
        """Run a single tick under the lock and keep its resulting state."""
        async with self._tick_lock:
            result = await self._loop.tick(self._state, int(self._clock() * 1000))
            self._state = result.state
        if result.actions:
            logger.info("strategy_tick_actions", actions=[a.value for a in result.actions])
        return result

    async def start(self) -> None:
        """Tick until stop() is called."""
        logger.info("strategy_runner_starting", interval_seconds=self._interval)
        self._running = True
        self._stop_event.clear()
        try:
            await self._run_loop()
        finally:
            self._running = False
            logger.info("strategy_runner_stopped", exits=self._state.exits)

    async def stop(self) -> None:
        """Stop scheduling ticks and wait for the in-flight one to finish."""
        logger.info("strategy_runner_stopping_gracefully")
        self._running = False
        self._stop_event.set()
        async with self._tick_lock:
            pass

    async def _run_loop(self) -> None:
        while self._running:
            delay = self._interval
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("strategy_tick_error", error=str(e), exc_info=True)
                delay = _ERROR_BACKOFF_SECONDS

            if not self._running:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
