"""
Plan Operations - the only edits the Compliance Sentinel may make.

    set_field(target, index?, field, value)   target ∈ line | bill | estimate
    duplicate_line(index)                      copy inserted right after index
    add_line(item)                             appended at the end

Operations run in order against the current state of the copy: an index
given after a duplicate_line refers to the list as it is after the
insertion. Every insertion is recorded in an IndexMap so ground truth can
be shifted.
"""

import copy
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from billing_simulation.core.enums import NetworkStatus, PlanOperationType
from billing_simulation.core.models import BillArtifact, GoodFaithEstimate, LineItem
from billing_simulation.core.money import round_currency, sum_currency
from billing_simulation.generation.coding_rules import assign_revenue_code
from billing_simulation.oracle.schemas import PlanOperationEntry
from billing_simulation.reconciliation.index_map import IndexMap

TARGET_LINE = "line"
TARGET_BILL = "bill"
TARGET_ESTIMATE = "estimate"

LINE_FIELDS = ("date", "code", "description", "revenue_code", "quantity", "unit_price", "total", "modifiers")
BILL_FIELDS = (
    "grand_total",
    "adjustments",
    "insurance_paid",
    "network_status",
    "attending_npi",
    "admission_date",
    "discharge_date",
    "statement_date",
    "type_of_bill",
)
ESTIMATE_TOTAL_FIELD = "estimated_total"

_MONEY_FIELDS = ("unit_price", "total", "grand_total", "adjustments", "insurance_paid")
_DATE_FIELDS = ("date", "admission_date", "discharge_date", "statement_date")
# int(float("inf")) raises OverflowError
_BAD_VALUE = (TypeError, ValueError, ArithmeticError)


@dataclass
class PlanOperation:
    op: PlanOperationType
    target: str = TARGET_LINE
    index: Optional[int] = None
    field: Optional[str] = None
    value: Any = None
    item: Optional[Dict[str, Any]] = None

    @classmethod
    def set_line(cls, index: int, field: str, value: Any) -> "PlanOperation":
        return cls(PlanOperationType.SET_FIELD, TARGET_LINE, index=index, field=field, value=value)

    @classmethod
    def set_bill(cls, field: str, value: Any) -> "PlanOperation":
        return cls(PlanOperationType.SET_FIELD, TARGET_BILL, field=field, value=value)

    @classmethod
    def set_estimate(cls, field: str, value: Any) -> "PlanOperation":
        return cls(PlanOperationType.SET_FIELD, TARGET_ESTIMATE, field=field, value=value)

    @classmethod
    def duplicate(cls, index: int) -> "PlanOperation":
        return cls(PlanOperationType.DUPLICATE_LINE, index=index)

    @classmethod
    def add(cls, item: Dict[str, Any]) -> "PlanOperation":
        return cls(PlanOperationType.ADD_LINE, item=dict(item))

    @classmethod
    def from_entry(cls, entry: PlanOperationEntry) -> "PlanOperation":
        return cls(
            op=PlanOperationType(entry.op),
            target=entry.target,
            index=entry.index,
            field=entry.field,
            value=entry.value,
            item=entry.item,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"op": self.op.value}
        if self.op == PlanOperationType.SET_FIELD:
            data.update(target=self.target, field=self.field, value=_jsonable(self.value))
            if self.target == TARGET_LINE:
                data["index"] = self.index
        elif self.op == PlanOperationType.DUPLICATE_LINE:
            data["index"] = self.index
        else:
            data["item"] = {k: _jsonable(v) for k, v in (self.item or {}).items()}
        return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, NetworkStatus):
        return value.value
    return value


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def _money(value: Any) -> float:
    amount = float(value)
    if not math.isfinite(amount):
        raise ValueError(f"amount {value!r} is not a finite number")
    return round_currency(amount)


def _coerce(field: str, value: Any) -> Any:
    """Convert an operation value to the type the model field holds."""
    if field in _MONEY_FIELDS:
        return _money(value)
    if field in _DATE_FIELDS:
        return _as_date(value)
    if field == "quantity":
        return int(value)
    if field == "modifiers":
        return [str(m).strip().upper() for m in (value or []) if str(m).strip()]
    if field == "network_status":
        return NetworkStatus(value)
    return "" if value is None else str(value)


# =============================================================================
# STAGE 1: VALIDATION
# =============================================================================


def validate_plan(artifact: BillArtifact, operations: List[PlanOperation]) -> List[str]:
    """
    Problems that make a plan unusable against this artifact; empty when valid.

    Line counts are tracked through the plan so indices after an insertion
    are checked against the grown list.
    """
    problems: List[str] = []
    size = len(artifact.line_items)

    if not operations:
        return ["plan has no operations"]

    for n, operation in enumerate(operations):
        label = f"operation {n} ({operation.op.value})"
        if operation.op == PlanOperationType.DUPLICATE_LINE:
            if operation.index is None or not 0 <= operation.index < size:
                problems.append(f"{label}: index {operation.index} outside 0..{size - 1}")
                continue
            size += 1

        elif operation.op == PlanOperationType.ADD_LINE:
            item = operation.item or {}
            if "unit_price" not in item or "description" not in item:
                problems.append(f"{label}: item needs description and unit_price")
                continue
            try:
                line_from_item(item, artifact)
            except _BAD_VALUE as e:
                problems.append(f"{label}: bad item ({e})")
                continue
            size += 1

        else:
            if operation.target == TARGET_LINE:
                if operation.index is None or not 0 <= operation.index < size:
                    problems.append(f"{label}: index {operation.index} outside 0..{size - 1}")
                    continue
                if operation.field not in LINE_FIELDS:
                    problems.append(f"{label}: line field '{operation.field}' not editable")
                    continue
            elif operation.target == TARGET_BILL:
                if operation.field not in BILL_FIELDS:
                    problems.append(f"{label}: bill field '{operation.field}' not editable")
                    continue
            elif operation.target == TARGET_ESTIMATE:
                if not operation.field:
                    problems.append(f"{label}: estimate field missing")
                    continue
            else:
                problems.append(f"{label}: unknown target '{operation.target}'")
                continue
            try:
                if operation.target == TARGET_ESTIMATE:
                    _money(operation.value)
                else:
                    _coerce(operation.field, operation.value)
            except _BAD_VALUE as e:
                problems.append(f"{label}: bad value {operation.value!r} ({e})")

    return problems


# =============================================================================
# STAGE 2: APPLICATION
# =============================================================================


def line_from_item(item: Dict[str, Any], artifact: BillArtifact) -> LineItem:
    code = str(item.get("code") or "").strip().upper()
    quantity = int(item.get("quantity", 1))
    unit_price = _money(item["unit_price"])
    return LineItem(
        date=_as_date(item["date"]) if item.get("date") else artifact.admission_date,
        code=code,
        description=str(item["description"]),
        revenue_code=item.get("revenue_code") or assign_revenue_code(code, artifact.care_setting),
        quantity=quantity,
        unit_price=unit_price,
        total=_money(item.get("total", quantity * unit_price)),
        modifiers=_coerce("modifiers", item.get("modifiers", [])),
    )


def clean_estimate(artifact: BillArtifact) -> GoodFaithEstimate:
    """Estimate quoting exactly the billed unit prices."""
    rates: Dict[str, float] = {}
    for item in artifact.line_items:
        if item.code:
            rates.setdefault(item.base_code, item.unit_price)
    return GoodFaithEstimate(unit_rates=rates, estimated_total=estimate_total(artifact, rates))


def estimate_total(artifact: BillArtifact, rates: Dict[str, float]) -> float:
    return sum_currency(
        item.quantity * rates.get(item.base_code, item.unit_price) for item in artifact.line_items
    )


def apply_operations(
    artifact: BillArtifact, operations: List[PlanOperation]
) -> Tuple[BillArtifact, List[int], IndexMap]:
    """
    Apply operations to a deep copy.

    Returns:
        (edited copy, indices of touched lines in the final list,
         map from original line indices to final ones)
    """
    result = copy.deepcopy(artifact)
    index_map = IndexMap.identity(len(result.line_items))
    touched: List[int] = []

    for operation in operations:
        if operation.op == PlanOperationType.DUPLICATE_LINE:
            at = operation.index + 1
            step = IndexMap.insertion(len(result.line_items), at)
            result.line_items.insert(at, copy.deepcopy(result.line_items[operation.index]))
            index_map = index_map.then(step)
            touched = [step.resolve(i) for i in touched] + [operation.index, at]

        elif operation.op == PlanOperationType.ADD_LINE:
            result.line_items.append(line_from_item(operation.item, result))
            touched.append(len(result.line_items) - 1)

        elif operation.target == TARGET_LINE:
            item = result.line_items[operation.index]
            setattr(item, operation.field, _coerce(operation.field, operation.value))
            touched.append(operation.index)

        elif operation.target == TARGET_BILL:
            setattr(result, operation.field, _coerce(operation.field, operation.value))

        else:
            if result.estimate is None:
                result.estimate = clean_estimate(result)
            if operation.field == ESTIMATE_TOTAL_FIELD:
                result.estimate.estimated_total = _money(operation.value)
            else:
                result.estimate.unit_rates[operation.field] = _money(operation.value)
                result.estimate.estimated_total = estimate_total(result, result.estimate.unit_rates)

    return result, sorted(set(touched)), index_map
