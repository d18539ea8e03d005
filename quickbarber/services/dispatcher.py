import asyncio
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, List, Optional

from quickbarber.logging_config import get_logger

logger = get_logger("dispatcher")

Handler = Callable[[bytes], Awaitable[object]]


@dataclass
class DispatcherStats:
    accepted: int = 0
    processed: int = 0
    failed: int = 0
    dropped: int = 0


class WebhookDispatcher:
    """Bounded queue of raw webhook bodies drained by a fixed pool of worker tasks.

    When the pool is not running, ``submit`` handles the body inline instead.
    """

    def __init__(self, handler: Handler, *, workers: int = 4, queue_size: int = 1000):
        self.handler = handler
        self.workers = max(1, workers)
        self.queue_size = queue_size
        self.stats = DispatcherStats()
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [asyncio.create_task(self._worker(i), name=f"webhook-worker-{i}") for i in range(self.workers)]
        logger.info("Webhook workers started", extra={"context": {"workers": self.workers, "queue_size": self.queue_size}})

    async def stop(self) -> None:
        if not self.running:
            return
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        pending = self._queue.qsize() if self._queue is not None else 0
        self._queue = None
        logger.info("Webhook workers stopped", extra={"context": {**asdict(self.stats), "abandoned": pending}})

    async def submit(self, raw_body: bytes) -> bool:
        """Queue a body for processing. Returns False when it was dropped."""
        if not self.running:
            self.stats.accepted += 1
            await self._handle(raw_body)
            return True
        try:
            self._queue.put_nowait(raw_body)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning("Webhook queue full, dropping delivery", extra={"context": {"queue_size": self.queue_size}})
            return False
        self.stats.accepted += 1
        return True

    async def join(self) -> None:
        """Wait until everything queued so far has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _handle(self, raw_body: bytes) -> None:
        try:
            await self.handler(raw_body)
        except Exception:
            self.stats.failed += 1
            logger.error("Webhook processing failed", exc_info=True)
        else:
            self.stats.processed += 1

    async def _worker(self, index: int) -> None:
        while True:
            raw_body = await self._queue.get()
            try:
                await self._handle(raw_body)
            finally:
                self._queue.task_done()
