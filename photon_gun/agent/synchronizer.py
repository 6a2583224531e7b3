"""Schedule synchronizer — reconciles the local schedule with the registry.

Features:
- Fixed-period reconciliation against List(enabled=true), paged by id
- Exponential backoff on consecutive failures (30s → 60s → 120s … 300s)
- Instant recovery: resets to the base interval on the first success
- A failed cycle never touches the schedule; the last-known-good set keeps probing
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from photon_gun.agent.client import RegistryClient, RegistryError, RegistryUnavailableError
from photon_gun.agent.executor import ProbeExecutor, ScheduledCheck
from photon_gun.models import Healthcheck

logger = logging.getLogger(__name__)

# Backoff constants
_BASE_INTERVAL = 30.0    # seconds
_MAX_INTERVAL = 300.0    # 5 minutes cap
_BACKOFF_FACTOR = 2.0


@dataclass
class ScheduleDiff:
    started: list[int] = field(default_factory=list)
    stopped: list[int] = field(default_factory=list)
    restarted: list[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.started or self.stopped or self.restarted)


class SyncState:
    """Synchronizer status; empty at startup, replaced on every reconcile."""

    def __init__(self) -> None:
        self.online: bool = False
        self.last_sync: str | None = None
        self.last_attempt: str | None = None
        self.error: str | None = None
        self.scheduled: int = 0
        # Diagnostics
        self.cycles: int = 0
        self.consecutive_failures: int = 0
        self.current_interval: float = _BASE_INTERVAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "online": self.online,
            "last_sync": self.last_sync,
            "last_attempt": self.last_attempt,
            "error": self.error,
            "scheduled": self.scheduled,
            "cycles": self.cycles,
            "consecutive_failures": self.consecutive_failures,
            "current_interval": round(self.current_interval, 1),
        }


class ScheduleSynchronizer:
    """Single writer of the executor's schedule."""

    def __init__(
        self,
        client: RegistryClient,
        executor: ProbeExecutor,
        interval: float = _BASE_INTERVAL,
        max_interval: float = _MAX_INTERVAL,
        page_size: int = 1000,
    ) -> None:
        self.client = client
        self.executor = executor
        self.base_interval = interval
        self.max_interval = max_interval
        self.page_size = page_size
        self.state = SyncState()
        self.state.current_interval = interval
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    async def start(self) -> None:
        """Start the background reconciliation loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sync_loop(), name="schedule-sync")
        logger.info("Schedule synchronizer started (interval=%ss, max=%ss)", self.base_interval, self.max_interval)

    async def stop(self) -> None:
        """Stop the loop; the schedule itself is left to the executor."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Schedule synchronizer stopped")

    async def _sync_loop(self) -> None:
        while self._running:
            await self.sync_once()
            await asyncio.sleep(self.state.current_interval)

    async def sync_once(self) -> bool:
        """One reconciliation cycle. Returns False if the registry could not be read."""
        async with self._lock:
            now = datetime.now(timezone.utc).isoformat()
            self.state.last_attempt = now
            self.state.cycles += 1

            try:
                checks = await self._fetch_enabled()
            except Exception as e:
                self._record_failure(e)
                return False

            diff = self.reconcile(checks)

            if not self.state.online and self.state.consecutive_failures:
                logger.info(
                    "Registry reachable again after %d failed syncs", self.state.consecutive_failures,
                )
            self.state.online = True
            self.state.last_sync = now
            self.state.error = None
            self.state.consecutive_failures = 0
            self.state.current_interval = self.base_interval
            self.state.scheduled = len(self.executor.schedule)

            if diff:
                logger.info(
                    "Schedule reconciled: +%d -%d ~%d (%d scheduled)",
                    len(diff.started), len(diff.stopped), len(diff.restarted), self.state.scheduled,
                )
            return True

    async def _fetch_enabled(self) -> list[Healthcheck]:
        """Read the whole enabled set, one id-ordered page at a time.

        The registry may cap a page below ``page_size``, so only an empty
        page ends the walk. Any failed page fails the whole read.
        """
        checks: list[Healthcheck] = []
        after_id: int | None = None
        while True:
            page = await self.client.list_healthchecks(
                enabled=True, limit=self.page_size, after_id=after_id,
            )
            if not page:
                return checks
            checks.extend(page)
            last_id = page[-1].id
            if after_id is not None and last_id <= after_id:
                raise RuntimeError(f"Registry paging did not advance past id {after_id}")
            after_id = last_id

    def reconcile(self, checks: list[Healthcheck]) -> ScheduleDiff:
        """Apply the enabled-check set to the executor."""
        desired = {
            c.id: ScheduledCheck.from_healthcheck(c) for c in checks if c.enabled
        }
        current = self.executor.schedule
        diff = ScheduleDiff()

        for check_id in sorted(current.keys() - desired.keys()):
            self.executor.stop(check_id)
            diff.stopped.append(check_id)

        for check_id, wanted in sorted(desired.items()):
            running = current.get(check_id)
            if running is None:
                self.executor.start(wanted)
                diff.started.append(check_id)
            elif running != wanted:
                self.executor.replace(wanted)
                diff.restarted.append(check_id)

        return diff

    def _record_failure(self, err: Exception) -> None:
        was_online = self.state.online
        self.state.online = False
        self.state.consecutive_failures += 1

        if isinstance(err, RegistryUnavailableError):
            self.state.error = "Registry unreachable"
        elif isinstance(err, RegistryError):
            self.state.error = str(err)
        else:
            self.state.error = f"{type(err).__name__}: {err}"
            logger.exception("Unexpected error while syncing schedule")

        if was_online:
            logger.warning("Registry went offline: %s", self.state.error)

        # Exponential backoff: base * factor^(failures-1), capped
        self.state.current_interval = min(
            self.base_interval * (_BACKOFF_FACTOR ** (self.state.consecutive_failures - 1)),
            self.max_interval,
        )
        logger.warning(
            "Schedule sync failed (%d consecutive): %s; keeping %d scheduled checks, next sync in %.0fs",
            self.state.consecutive_failures,
            self.state.error,
            len(self.executor.schedule),
            self.state.current_interval,
        )
