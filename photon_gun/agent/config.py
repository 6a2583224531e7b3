"""Agent configuration — loaded from environment / .env file."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AgentSettings(BaseSettings):
    """Settings specific to the probing agent."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Registry connection
    registry_url: str = "http://127.0.0.1:8000"
    registry_timeout: float = 10.0  # seconds per registry call

    # Schedule synchronizer
    sync_interval: float = 30.0  # seconds between reconciliations
    sync_max_interval: float = 300.0  # backoff cap while the registry is down
    sync_page_size: int = 1000  # checks requested per List page

    # Probe executor
    max_concurrent_probes: int = 32  # worker pool size across all checks
    probe_timeout: float = 10.0  # upper bound; always kept below the check interval

    # Result dispatcher
    result_queue_size: int = 1000
    dispatch_max_attempts: int = 5
    dispatch_backoff_base: float = 1.0
    dispatch_backoff_max: float = 30.0
    drain_timeout: float = 10.0  # seconds to flush queued results on shutdown

    # Logging
    log_level: str = "INFO"


agent_settings = AgentSettings()
