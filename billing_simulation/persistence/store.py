"""
Artifact Store - JSON persistence for simulation results.

    save(name, payload)  →  <directory>/<sanitized name>.json
    load(name)           →  payload dict (basename only, no traversal)
    list_names()         →  sorted saved names

Names are reduced to their basename and then to [A-Za-z0-9_-] before they
touch the filesystem, so "../../etc/passwd" lands on "passwd" inside the store.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Union

from loguru import logger

from billing_simulation.core.exceptions import ArtifactNotFoundError, PersistenceError

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")
SUFFIX = ".json"


def sanitize_name(name: str) -> str:
    """
    Example:
        >>> sanitize_name("FMBI-ED-COMM-UPC L1.json")
        'FMBI-ED-COMM-UPC_L1'
    """
    base = Path(str(name)).name
    if base.endswith(SUFFIX):
        base = base[: -len(SUFFIX)]
    cleaned = _UNSAFE.sub("_", base).strip("_")
    if not cleaned:
        raise PersistenceError("Artifact name is empty after sanitizing", context={"name": name})
    return cleaned


class ArtifactStore:
    """Directory of saved simulation results, one JSON file per name."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{sanitize_name(name)}{SUFFIX}"

    def save(self, name: str, payload: Dict[str, Any]) -> Path:
        path = self.path_for(name)
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "w", encoding="utf-8") as file:
                json.dump(payload, file, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}", context={"name": name}) from e

        size_kb = path.stat().st_size / 1024
        logger.info(f"Saved artifact | {path.name} | {size_kb:.1f} KB")
        return path

    def load(self, name: str) -> Dict[str, Any]:
        path = self.path_for(name)
        if not path.is_file():
            raise ArtifactNotFoundError(name)
        try:
            with open(path, "r", encoding="utf-8") as file:
                return json.load(file)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt artifact file {path.name}: {e}", context={"name": name}) from e

    def list_names(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(path.stem for path in self.directory.glob(f"*{SUFFIX}"))
