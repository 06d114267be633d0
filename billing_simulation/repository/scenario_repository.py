"""
Scenario Repository - Catalog of Simulatable Bills

A scenario names the irregularity to plant and the encounter context
(care setting, acuity, payer, optional laterality / prior surgery).
Looking up an id that is not in the catalog raises UnknownScenarioError,
the one fatal error of a generation run.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger

from billing_simulation.core.enums import IrregularityType
from billing_simulation.core.exceptions import DatasetLoadError, UnknownScenarioError
from billing_simulation.core.models import Scenario


class ScenarioRepository:
    """
    Scenario catalog, loaded from a JSON list or built from Scenario objects.

    Example:
        >>> repo = ScenarioRepository.from_file("billing_simulation/data/scenarios.json")
        >>> repo.get("duplicate-er-labs").irregularity
        <IrregularityType.DUPLICATE: 'DUPLICATE'>
    """

    def __init__(self, scenarios: Iterable[Scenario]):
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in scenarios:
            if scenario.scenario_id in self._scenarios:
                logger.warning(f"Duplicate scenario id, keeping last: {scenario.scenario_id}")
            self._scenarios[scenario.scenario_id] = scenario

    @classmethod
    def from_file(cls, path: str) -> "ScenarioRepository":
        file_path = Path(path)
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except FileNotFoundError:
            raise DatasetLoadError(str(file_path), "File not found")
        except json.JSONDecodeError as e:
            raise DatasetLoadError(str(file_path), f"Invalid JSON: {e}")

        try:
            scenarios = [Scenario.from_dict(record) for record in records]
        except (KeyError, ValueError) as e:
            raise DatasetLoadError(str(file_path), f"Invalid scenario record: {e}")

        logger.info(f"Loaded {len(scenarios)} scenarios from {file_path.name}")
        return cls(scenarios)

    def get(self, scenario_id: str) -> Scenario:
        """
        Return the scenario with this id.

        Raises:
            UnknownScenarioError: If the id is not in the catalog
        """
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            raise UnknownScenarioError(scenario_id, available=self.list_ids())
        return scenario

    def find(self, irregularity: IrregularityType) -> List[Scenario]:
        return [s for s in self._scenarios.values() if s.irregularity == irregularity]

    def list_ids(self) -> List[str]:
        return sorted(self._scenarios)

    def first(self, irregularity: Optional[IrregularityType] = None) -> Scenario:
        matches = self.find(irregularity) if irregularity else list(self._scenarios.values())
        if not matches:
            raise UnknownScenarioError(irregularity.value if irregularity else "<any>", self.list_ids())
        return matches[0]

    def __len__(self) -> int:
        return len(self._scenarios)

    def __contains__(self, scenario_id: str) -> bool:
        return scenario_id in self._scenarios
