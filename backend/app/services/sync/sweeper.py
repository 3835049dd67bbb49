"""
Background drift sweeper.

Periodically runs the read-path heal over active mirror rows, so items
sold on-chain without a purchase sync are corrected even if nobody reads
them. Disabled when HEAL_SWEEP_INTERVAL_SEC is 0.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.services.sync.controller import SyncController

logger = logging.getLogger(__name__)


class DriftSweeper:
    """Periodic heal loop over active items."""

    def __init__(self, controller: SyncController, interval: int, batch_size: int = 100):
        self.controller = controller
        self.interval = interval
        self.batch_size = batch_size
        self._is_running = False
        self._task: Optional[asyncio.Task] = None

        # Statistics
        self.total_sweeps = 0
        self.total_healed = 0
        self.last_sweep_time: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self):
        if self._is_running:
            logger.warning("DriftSweeper already running")
            return

        self._is_running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("DriftSweeper started with %ds interval", self.interval)

    async def stop(self):
        if not self._is_running:
            return

        logger.info("Stopping DriftSweeper...")
        self._is_running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("DriftSweeper stopped")

    async def _sweep_loop(self):
        while self._is_running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("DriftSweeper error in sweep: %s", e, exc_info=True)

            if self._is_running:
                await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """Single sweep. Skipped while the chain is not ready."""
        if not self.controller.chain.is_ready:
            logger.debug("DriftSweeper: chain not ready, skipping sweep")
            return 0

        healed = await self.controller.heal_active_items(self.batch_size)

        self.total_sweeps += 1
        self.total_healed += healed
        self.last_sweep_time = datetime.utcnow()

        if healed:
            logger.info("DriftSweeper sweep #%d healed %d item(s)", self.total_sweeps, healed)
        return healed
