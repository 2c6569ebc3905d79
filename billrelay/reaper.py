"""Periodic eviction, independent of whether any print client is polling."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .helpers import utcnow
from .stores import BillStore, PendingTokenRegistry

logger = logging.getLogger(__name__)


class EvictionReaper:
    def __init__(
        self,
        bills: BillStore,
        tokens: PendingTokenRegistry,
        bill_retention_seconds: int,
        token_retention_seconds: int,
        interval_seconds: float,
    ) -> None:
        self.bills = bills
        self.tokens = tokens
        self.bill_retention = timedelta(seconds=bill_retention_seconds)
        self.token_retention = timedelta(seconds=token_retention_seconds)
        self.interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        now = now or utcnow()
        bills = self.bills.evict_older_than(now - self.bill_retention)
        tokens = self.tokens.evict_older_than(now - self.token_retention)
        if bills or tokens:
            logger.info("Reaper evicted %d bills, %d tokens", len(bills), len(tokens))
        return len(bills), len(tokens)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Eviction sweep failed")

    def start(self) -> None:
        if self.interval <= 0 or self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Eviction reaper started (every %.0fs)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
