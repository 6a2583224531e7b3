"""Probe executor — one independent slot per scheduled check.

Each slot probes immediately when started, then every `interval` seconds
measured from the start of the previous probe. Probes of the same check never
overlap: a slot only re-arms once its probe has finished, and an overrunning
probe is followed straight away by the next one (no catch-up burst).

All slots share a worker pool (semaphore) bounding in-flight probes across
the whole fleet; slots beyond the bound wait for a free worker.

Stopping a slot cancels its pending wait. A probe already in flight is left to
finish and its result is still emitted, but the slot is not re-armed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from photon_gun.agent.probe import ProbeResult, probe_timeout, run_probe
from photon_gun.models import Healthcheck

logger = logging.getLogger(__name__)

ProbeFn = Callable[[int, str, float], Awaitable[ProbeResult]]
ResultSink = Callable[[ProbeResult], object]


@dataclass(frozen=True)
class ScheduledCheck:
    """The parameters a slot runs with; replaced, never mutated."""

    check_id: int
    endpoint: str
    interval: float

    @classmethod
    def from_healthcheck(cls, check: Healthcheck) -> ScheduledCheck:
        return cls(check_id=check.id, endpoint=check.endpoint, interval=float(check.interval))


class Slot:
    """Per-check scheduling unit: its task, in-flight flag and stop flag."""

    def __init__(self, check: ScheduledCheck) -> None:
        self.check = check
        self.task: asyncio.Task[None] | None = None
        self.in_flight = False
        self.stopped = False
        self.runs = 0


class ProbeExecutor:
    """Runs probes for every scheduled check on a bounded worker pool."""

    def __init__(
        self,
        on_result: ResultSink,
        probe: ProbeFn | None = None,
        max_concurrent: int = 32,
        max_probe_timeout: float = 10.0,
    ) -> None:
        self.on_result = on_result
        self.max_probe_timeout = max_probe_timeout
        self._probe = probe or self._http_probe
        self._pool = asyncio.Semaphore(max_concurrent)
        self._slots: dict[int, Slot] = {}
        # Stopped slots whose last probe is still in flight
        self._draining: dict[int, asyncio.Task[None]] = {}
        self._http_client: httpx.AsyncClient | None = None

    # ── Schedule view ─────────────────────────────────────────────────────

    @property
    def schedule(self) -> dict[int, ScheduledCheck]:
        """Current check id → parameters, as last applied."""
        return {check_id: slot.check for check_id, slot in self._slots.items()}

    def in_flight(self) -> set[int]:
        ids = {check_id for check_id, slot in self._slots.items() if slot.in_flight}
        return ids | set(self._draining)

    def runs(self, check_id: int) -> int:
        slot = self._slots.get(check_id)
        return slot.runs if slot else 0

    # ── Mutations (called by the synchronizer only) ───────────────────────

    def start(self, check: ScheduledCheck) -> None:
        if check.check_id in self._slots:
            raise ValueError(f"check {check.check_id} is already scheduled")

        slot = Slot(check)
        predecessor = self._draining.get(check.check_id)
        slot.task = asyncio.create_task(
            self._run_slot(slot, predecessor), name=f"probe-{check.check_id}",
        )
        self._slots[check.check_id] = slot
        logger.info(
            "Scheduled check %d: %s every %gs", check.check_id, check.endpoint, check.interval,
        )

    def stop(self, check_id: int) -> None:
        slot = self._slots.pop(check_id, None)
        if slot is None or slot.task is None:
            return

        slot.stopped = True
        if slot.in_flight:
            # Let the probe finish and report; the loop exits without re-arming
            self._draining[check_id] = slot.task
            slot.task.add_done_callback(lambda t: self._drained(check_id, t))
        else:
            slot.task.cancel()
        logger.info("Unscheduled check %d", check_id)

    def replace(self, check: ScheduledCheck) -> None:
        """Stop-then-restart with new parameters."""
        self.stop(check.check_id)
        self.start(check)

    async def shutdown(self) -> None:
        """Stop every slot and wait for in-flight probes to report."""
        tasks = [slot.task for slot in self._slots.values() if slot.task]
        for check_id in list(self._slots):
            self.stop(check_id)
        tasks.extend(self._draining.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Probe executor stopped")

    # ── Internals ─────────────────────────────────────────────────────────

    def _drained(self, check_id: int, task: asyncio.Task[None]) -> None:
        if self._draining.get(check_id) is task:
            del self._draining[check_id]

    async def _http_probe(self, check_id: int, endpoint: str, timeout: float) -> ProbeResult:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return await run_probe(self._http_client, check_id, endpoint, timeout)

    async def _run_slot(self, slot: Slot, predecessor: asyncio.Task[None] | None) -> None:
        check = slot.check
        timeout = probe_timeout(check.interval, self.max_probe_timeout)

        if predecessor is not None and not predecessor.done():
            # Shielded so that stopping this slot never cancels the old probe
            await asyncio.shield(predecessor)

        loop = asyncio.get_running_loop()
        next_start = loop.time()

        while not slot.stopped:
            delay = next_start - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

            async with self._pool:
                started = loop.time()
                start_time = time.time()
                slot.in_flight = True
                try:
                    try:
                        result = await self._probe(check.check_id, check.endpoint, timeout)
                    except Exception as e:
                        logger.exception("Probe for check %d crashed", check.check_id)
                        # A crash is a failed run, never a missing one
                        result = ProbeResult(
                            check_id=check.check_id,
                            start_time=start_time,
                            elapsed_time=int((loop.time() - started) * 1000),
                            passed=False,
                            message=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                        )
                    slot.runs += 1
                    self._emit(result)
                finally:
                    slot.in_flight = False

            next_start = max(started + check.interval, loop.time())

    def _emit(self, result: ProbeResult) -> None:
        try:
            self.on_result(result)
        except Exception:
            logger.exception("Result sink failed for check %d", result.check_id)
