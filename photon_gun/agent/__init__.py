"""Probing agent — schedule synchronizer, probe executor, result dispatcher."""

from .client import RegistryClient, RegistryError, RegistryUnavailableError
from .dispatcher import ResultDispatcher
from .executor import ProbeExecutor, ScheduledCheck
from .probe import ProbeResult, run_probe
from .synchronizer import ScheduleSynchronizer
