"""Entry point for the probing agent — `photon-agent` console script."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

from photon_gun.agent.client import RegistryClient, RegistryError, RegistryUnavailableError
from photon_gun.agent.config import AgentSettings, agent_settings
from photon_gun.agent.dispatcher import ResultDispatcher
from photon_gun.agent.executor import ProbeExecutor, ProbeFn
from photon_gun.agent.synchronizer import ScheduleSynchronizer

logger = logging.getLogger(__name__)

console = Console()


class AgentConfigError(Exception):
    """Unrecoverable startup misconfiguration."""


class Agent:
    """Process-scoped agent state: synchronizer → executor → dispatcher."""

    def __init__(
        self,
        conf: AgentSettings,
        client: RegistryClient | None = None,
        probe: ProbeFn | None = None,
    ) -> None:
        self.conf = conf
        self.client = client or RegistryClient(conf.registry_url, timeout=conf.registry_timeout)
        self.dispatcher = ResultDispatcher(
            self.client,
            queue_size=conf.result_queue_size,
            max_attempts=conf.dispatch_max_attempts,
            backoff_base=conf.dispatch_backoff_base,
            backoff_max=conf.dispatch_backoff_max,
        )
        self.executor = ProbeExecutor(
            on_result=self.dispatcher.submit,
            probe=probe,
            max_concurrent=conf.max_concurrent_probes,
            max_probe_timeout=conf.probe_timeout,
        )
        self.synchronizer = ScheduleSynchronizer(
            self.client,
            self.executor,
            interval=conf.sync_interval,
            max_interval=conf.sync_max_interval,
            page_size=conf.sync_page_size,
        )

    async def check_registry(self) -> None:
        """Ping the registry. A 4xx means misconfiguration; unreachable is tolerated."""
        try:
            await self.client.ping()
        except RegistryUnavailableError as e:
            logger.warning("Registry not reachable yet (%s); will keep retrying", e)
        except RegistryError as e:
            if not e.is_retryable:
                raise AgentConfigError(f"Registry at {self.client.base_url} rejected ping: {e}") from e
            logger.warning("Registry unhealthy at startup: %s", e)
        else:
            logger.info("Registry reachable at %s", self.client.base_url)

    async def start(self) -> None:
        await self.dispatcher.start()
        await self.synchronizer.start()

    async def stop(self) -> None:
        await self.synchronizer.stop()
        await self.executor.shutdown()
        await self.dispatcher.stop(self.conf.drain_timeout)
        await self.client.aclose()

    def status(self) -> dict[str, Any]:
        return {
            "sync": self.synchronizer.state.to_dict(),
            "scheduled": sorted(self.executor.schedule),
            "pending_results": self.dispatcher.pending,
            "dispatch": self.dispatcher.stats.to_dict(),
        }


def validate_registry_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise AgentConfigError(f"Invalid REGISTRY_URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise AgentConfigError(f"Invalid REGISTRY_URL {url!r}: expected http(s)://host[:port]")


async def run_agent(conf: AgentSettings) -> None:
    validate_registry_url(conf.registry_url)

    agent = Agent(conf)
    try:
        await agent.check_registry()
    except AgentConfigError:
        await agent.client.aclose()
        raise

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await agent.start()
    await stop_event.wait()

    logger.info("Shutdown requested, stopping agent...")
    await agent.stop()
    logger.info("Agent stopped: %s", agent.status()["dispatch"])


def main() -> None:
    """Start the probing agent."""
    logging.basicConfig(
        level=getattr(logging, agent_settings.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    console.print(
        Panel.fit(
            f"[bold]photon-gun agent[/bold]\n"
            f"Registry: {agent_settings.registry_url}\n"
            f"Sync every: {agent_settings.sync_interval:g}s\n"
            f"Worker pool: {agent_settings.max_concurrent_probes} probes\n"
            f"Result queue: {agent_settings.result_queue_size}",
            title="photon-agent",
            border_style="green",
        )
    )

    try:
        asyncio.run(run_agent(agent_settings))
    except AgentConfigError as e:
        logger.error("%s", e)
        console.print(f"[red]error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
