"""HTTP probe — one GET against a healthcheck endpoint.

Outcome mapping:
  2xx status...............pass, no message
  any other status.........fail, "<code> <reason>" (ex. "404 Not Found")
  no answer in time........fail, "Timeout: no response within <t>s"
  transport error..........fail, "<ErrorClass>: <text>"
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from photon_gun.models import ResultSubmission

logger = logging.getLogger(__name__)

# Probe timeouts stay strictly below the check interval
TIMEOUT_FRACTION = 0.9


@dataclass
class ProbeResult:
    """Outcome of a single probe, before the store has assigned it an id."""

    check_id: int
    start_time: float  # epoch seconds
    elapsed_time: int  # milliseconds
    passed: bool
    message: str | None = None

    def to_submission(self) -> ResultSubmission:
        return ResultSubmission(
            start_time=self.start_time,
            elapsed_time=self.elapsed_time,
            passed=self.passed,
            message=self.message,
        )


def probe_timeout(interval: float, max_timeout: float) -> float:
    return min(max_timeout, interval * TIMEOUT_FRACTION)


async def _get_status(client: httpx.AsyncClient, endpoint: str, timeout: float) -> httpx.Response:
    # Streamed so the body is never downloaded; only the status matters
    async with client.stream("GET", endpoint, timeout=timeout, follow_redirects=True) as resp:
        return resp


async def run_probe(
    client: httpx.AsyncClient,
    check_id: int,
    endpoint: str,
    timeout: float,
) -> ProbeResult:
    """Probe `endpoint` once. Never raises for endpoint failures."""
    start_time = time.time()
    t0 = time.perf_counter()
    passed = False
    message: str | None = None

    try:
        # httpx timeouts are per phase; wait_for bounds the whole exchange
        resp = await asyncio.wait_for(_get_status(client, endpoint, timeout), timeout)
        if resp.is_success:
            passed = True
        else:
            message = f"{resp.status_code} {resp.reason_phrase}".strip()
    except (asyncio.TimeoutError, httpx.TimeoutException):
        message = f"Timeout: no response within {timeout:g}s"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        message = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__

    elapsed = int((time.perf_counter() - t0) * 1000)
    if passed:
        logger.debug("Check %d: pass (%dms)", check_id, elapsed)
    else:
        logger.info("Check %d: fail (%dms) %s", check_id, elapsed, message)

    return ProbeResult(
        check_id=check_id,
        start_time=start_time,
        elapsed_time=elapsed,
        passed=passed,
        message=message,
    )
