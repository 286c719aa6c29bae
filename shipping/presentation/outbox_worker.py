import asyncio
import logging

from shipping.application.process_outbox_events import ProcessOutboxEventsUseCase

logger = logging.getLogger(__name__)


class OutboxWorker:
    def __init__(self, use_case: ProcessOutboxEventsUseCase, idle_interval: float = 1.0):
        self._use_case = use_case
        self._idle_interval = idle_interval

    async def run_once(self) -> int:
        try:
            return await self._use_case()
        except Exception:
            # A broken database or broker must not kill the worker loop
            logger.error("Outbox relay pass failed", exc_info=True)
            return 0

    async def run(self):
        logger.info("Outbox worker started")
        while True:
            sent = await self.run_once()
            # Drain backlogs quickly, back off when idle
            await asyncio.sleep(0.01 if sent else self._idle_interval)
