"""Observability Layer - loguru sink configuration."""

from billing_simulation.observability.logger import configure_logging

__all__ = ["configure_logging"]
