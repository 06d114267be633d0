"""Persistence Layer - saving and loading simulation results."""

from billing_simulation.persistence.store import ArtifactStore, sanitize_name

__all__ = ["ArtifactStore", "sanitize_name"]
