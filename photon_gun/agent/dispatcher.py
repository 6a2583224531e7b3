"""Result dispatcher — delivers probe results to the registry.

Results arrive from the executor on a bounded queue and are delivered in FIFO
order by a single worker, at least once:

- Unavailable / 5xx: retried in place with exponential backoff
  (1s → 2s → 4s … capped), up to `max_attempts`, then dropped and counted
- 4xx: rejected immediately, never retried
- Queue full: the new result is dropped and counted; probing never blocks

The registry assigns result ids on ingestion, so a retried submission cannot
collide with another result's id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from photon_gun.agent.client import RegistryClient, RegistryError, RegistryUnavailableError
from photon_gun.agent.probe import ProbeResult

logger = logging.getLogger(__name__)

_BACKOFF_FACTOR = 2.0


class DispatchStats:
    def __init__(self) -> None:
        self.delivered = 0
        self.retries = 0
        self.rejected = 0
        self.dropped_queue_full = 0
        self.dropped_after_retries = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "delivered": self.delivered,
            "retries": self.retries,
            "rejected": self.rejected,
            "dropped_queue_full": self.dropped_queue_full,
            "dropped_after_retries": self.dropped_after_retries,
        }


class ResultDispatcher:
    """Bounded queue + single delivery worker with retry/backoff."""

    def __init__(
        self,
        client: RegistryClient,
        queue_size: int = 1000,
        max_attempts: int = 5,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
    ) -> None:
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.stats = DispatchStats()
        self._queue: asyncio.Queue[ProbeResult] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, result: ProbeResult) -> bool:
        """Enqueue a result without blocking. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(result)
        except asyncio.QueueFull:
            self.stats.dropped_queue_full += 1
            logger.warning(
                "Result queue full (%d); dropped result for check %d",
                self._queue.maxsize, result.check_id,
            )
            return False
        return True

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._worker(), name="result-dispatch")
        logger.info("Result dispatcher started (queue=%d, attempts=%d)", self._queue.maxsize, self.max_attempts)

    async def stop(self, drain_timeout: float = 10.0) -> None:
        """Flush what is queued (bounded by `drain_timeout`), then stop."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("Dispatcher stopped with %d undelivered results", self._queue.qsize())

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Result dispatcher stopped: %s", self.stats.to_dict())

    async def _worker(self) -> None:
        while True:
            result = await self._queue.get()
            try:
                await self.deliver(result)
            except Exception:
                logger.exception("Unexpected error delivering result for check %d", result.check_id)
            finally:
                self._queue.task_done()

    def backoff(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return min(self.backoff_base * (_BACKOFF_FACTOR ** (attempt - 1)), self.backoff_max)

    async def deliver(self, result: ProbeResult) -> bool:
        """Deliver one result, retrying transient failures. Returns True on success."""
        submission = result.to_submission()
        error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                stored = await self.client.submit_result(result.check_id, submission)
            except RegistryError as e:
                if not e.is_retryable:
                    self.stats.rejected += 1
                    logger.warning("Registry rejected result for check %d: %s", result.check_id, e.detail)
                    return False
                error = e
            except RegistryUnavailableError as e:
                error = e
            except ValueError as e:
                # A 2xx whose body is not a stored result, e.g. a proxy's HTML page
                logger.warning(
                    "Unreadable registry reply for check %d: %s", result.check_id, e,
                )
                error = e
            else:
                self.stats.delivered += 1
                logger.debug("Result %d stored for check %d", stored.id, result.check_id)
                return True

            if attempt < self.max_attempts:
                delay = self.backoff(attempt)
                self.stats.retries += 1
                logger.debug(
                    "Delivery attempt %d for check %d failed (%s); retrying in %.1fs",
                    attempt, result.check_id, error, delay,
                )
                await asyncio.sleep(delay)

        self.stats.dropped_after_retries += 1
        logger.error(
            "Dropped result for check %d after %d attempts: %s",
            result.check_id, self.max_attempts, error,
        )
        return False
