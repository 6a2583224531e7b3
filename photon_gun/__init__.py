"""photon-gun — healthcheck registry and probing agent."""

__version__ = "0.1.0"
