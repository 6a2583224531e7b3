"""Registry subsystem — SQLite configuration store and validated service."""

from .service import InvalidArgumentError, NotFoundError, RegistryService, RegistryServiceError
from .store import HealthcheckStore
