import asyncio
import time
from typing import List, Optional

from core.presence import PresenceTracker
from shared.logging.logger import get_logger

log = get_logger("core.scheduler")


class Scheduler:
    """
    Owns the periodic presence sweep.

    The first sweep runs as soon as the loop starts; after that one sweep is
    fired every ``interval`` seconds. Sweeps are fire-and-forget relative to
    the cadence, so a slow sweep can overlap the next one.
    """

    def __init__(self, tracker: PresenceTracker, interval: float = 15.0):
        self._tracker = tracker
        self._interval = float(interval)

        self._loop_task: Optional[asyncio.Task] = None
        self._sweeps: List[asyncio.Task] = []

        # --------------------------------------------------
        # METRICS (READ-ONLY)
        # --------------------------------------------------
        self._metrics = {
            "sweeps": 0,
            "evicted": 0,
            "failed": 0,
        }

    # ------------------------------------------------------------

    def start(self):
        if self._loop_task and not self._loop_task.done():
            log.warning("Sweep loop already started; skipping")
            return
        log.info(f"Starting presence sweep (every {self._interval:g}s)")
        self._loop_task = asyncio.create_task(self._sweep_loop())

    def get_metrics(self):
        return dict(self._metrics)

    # ------------------------------------------------------------

    async def _run_sweep(self):
        try:
            evicted = await self._tracker.sweep(time.time())
            self._metrics["sweeps"] += 1
            self._metrics["evicted"] += len(evicted)
            if evicted:
                log.info(f"Sweep evicted {len(evicted)} participant(s): {evicted}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._metrics["failed"] += 1
            log.error(f"Sweep failed: {e}")

    async def _sweep_loop(self):
        try:
            while True:
                task = asyncio.create_task(self._run_sweep())
                self._sweeps.append(task)
                self._sweeps = [t for t in self._sweeps if not t.done()]
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            log.debug("sweep loop cancelled")
            raise

    # ------------------------------------------------------------

    async def shutdown(self):
        log.info("Scheduler shutdown initiated")

        all_tasks = [t for t in [self._loop_task, *self._sweeps] if t is not None]
        for task in all_tasks:
            if not task.done():
                task.cancel()

        if all_tasks:
            await asyncio.gather(*all_tasks, return_exceptions=True)

        self._loop_task = None
        self._sweeps.clear()
        log.info(f"Scheduler shutdown complete ({self._metrics})")
