"""
Benchmark Repository - Static Reference Rate Table

This module provides read-only access to the reference (Medicare-style)
rate table that forms tier 2 of the Pricing Resolver's lookup chain:

    tier 1: RateCache (in-memory, filled by tier 3)
    tier 2: BenchmarkRepository  ← this module, loaded once, never written
    tier 3: oracle lookup

Record format (JSON list):
    {"code": "99213", "description": "OFFICE/OUTPATIENT VISIT EST", "medicareRate": 92.05}

Author: Shubham Singh
Date: January 2026
"""

import json
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from loguru import logger

from billing_simulation.core.exceptions import DatasetLoadError


# =============================================================================
# STAGE 1: REPOSITORY PROTOCOL
# =============================================================================


@runtime_checkable
class BenchmarkRepository(Protocol):
    """Read-only lookup of reference rates and official descriptions by base code."""

    def get_rate(self, code: str) -> Optional[float]:
        ...

    def get_description(self, code: str) -> Optional[str]:
        ...


# =============================================================================
# STAGE 2: IN-MEMORY IMPLEMENTATION
# =============================================================================


class InMemoryBenchmarkRepository:
    """
    Benchmark table backed by plain dicts.

    Used by tests and when no benchmark file is configured.
    """

    def __init__(
        self,
        rates: Optional[Dict[str, float]] = None,
        descriptions: Optional[Dict[str, str]] = None,
    ):
        self._rates = dict(rates or {})
        self._descriptions = dict(descriptions or {})

    def get_rate(self, code: str) -> Optional[float]:
        return self._rates.get(code)

    def get_description(self, code: str) -> Optional[str]:
        return self._descriptions.get(code)

    def __len__(self) -> int:
        return len(self._rates)


# =============================================================================
# STAGE 3: FILE-BASED IMPLEMENTATION
# =============================================================================


class FileBasedBenchmarkRepository(InMemoryBenchmarkRepository):
    """
    Benchmark table loaded from a JSON file.

    What it does:
        Reads the file once (class-level cache keyed by absolute path) and
        serves lookups from memory.

    Why it exists:
        1. Tier 2 must be fast and deterministic (no network)
        2. The table is shared by every pipeline run in the process
        3. Operators can swap the file without code changes

    Example:
        >>> repo = FileBasedBenchmarkRepository("billing_simulation/data/cms_benchmarks.json")
        >>> repo.get_rate("99213")
        92.05
    """

    _dataset_cache: Dict[str, list] = {}

    def __init__(self, dataset_path: str):
        super().__init__()
        self._dataset_path = Path(dataset_path)
        if not self._dataset_path.exists():
            raise DatasetLoadError(str(dataset_path), "File not found")
        self._load_dataset()
        logger.info(f"Benchmark table ready | {len(self._rates)} codes | {self._dataset_path.name}")

    def _load_dataset(self) -> None:
        cache_key = str(self._dataset_path.absolute())

        if cache_key in self._dataset_cache:
            logger.debug(f"Using cached benchmark table: {cache_key}")
            raw_data = self._dataset_cache[cache_key]
        else:
            try:
                with open(self._dataset_path, "r", encoding="utf-8") as f:
                    raw_data = json.load(f)
            except json.JSONDecodeError as e:
                raise DatasetLoadError(str(self._dataset_path), f"Invalid JSON: {e}")
            except OSError as e:
                raise DatasetLoadError(str(self._dataset_path), str(e))

            if not isinstance(raw_data, list):
                raise DatasetLoadError(str(self._dataset_path), "Expected a JSON list of records")
            self._dataset_cache[cache_key] = raw_data

        for record in raw_data:
            code = str(record.get("code", "")).strip()
            rate = record.get("medicareRate")
            if not code or not isinstance(rate, (int, float)) or rate <= 0:
                logger.debug(f"Skipping malformed benchmark record: {record}")
                continue
            self._rates[code] = float(rate)
            if record.get("description"):
                self._descriptions[code] = record["description"]
