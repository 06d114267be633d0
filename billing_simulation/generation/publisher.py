"""
Publisher - Publish Phase

Turns the reconciled (and possibly Sentinel-repaired) artifact into the
document a patient would actually receive:

    BillArtifact ──► provider block + statement header
                 ──► line rows (original order, chronological timestamps)
                 ──► formatted totals, ICD-10 string, labels, notes
                 ──► bill name  FMBI-{setting}-{payer}-{irregularity}-{L1|L2|L3}

The artifact is read, never written: line order and amounts stay exactly as
the audit will see them.

Author: Shubham Singh
Date: January 2026
"""

import random
import string
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger

from billing_simulation.core.constants import (
    CARE_SETTING_ABBREVIATIONS,
    COMPLEXITY_ABBREVIATIONS,
    IRREGULARITY_ABBREVIATIONS,
    PAYER_ABBREVIATIONS,
    PAYMENT_DUE_DAYS,
    STATEMENT_DELAY_DAYS,
)
from billing_simulation.core.enums import Complexity
from billing_simulation.core.models import BillArtifact, ClinicalTruth, Scenario
from billing_simulation.core.money import format_money
from billing_simulation.generation.context import GenerationContext
from billing_simulation.generation.identifiers import generate_reference

DATE_FORMAT = "%m/%d/%Y"
TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M"

FIRST_SERVICE_HOURS = (8, 11)
MINUTES_BETWEEN_SERVICES = (15, 44)

LABELS = {
    "account": "Account #",
    "statement_date": "Statement Date",
    "due_date": "Payment Due",
    "patient_id": "Patient ID",
    "type_of_bill": "Type of Bill",
}

FINANCIAL_ASSISTANCE_NOTE = (
    "You may qualify for financial assistance. Contact our billing office "
    "before the due date to apply."
)


def bill_name(scenario: Scenario, complexity: Optional[Complexity] = None) -> str:
    """
    Example:
        >>> bill_name(scenario)   # emergency, commercial, upcoding, low
        'FMBI-ED-COMM-UPC-L1'
    """
    return "-".join(
        [
            "FMBI",
            CARE_SETTING_ABBREVIATIONS[scenario.care_setting],
            PAYER_ABBREVIATIONS[scenario.payer_class],
            IRREGULARITY_ABBREVIATIONS[scenario.irregularity],
            COMPLEXITY_ABBREVIATIONS[complexity or scenario.complexity],
        ]
    )


def _statement_id(rng: random.Random) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "ST-" + "".join(rng.choice(alphabet) for _ in range(6))


def _fmt(day: Optional[date]) -> str:
    return day.strftime(DATE_FORMAT) if day else ""


def service_timestamps(artifact: BillArtifact, rng: random.Random) -> List[str]:
    """
    One timestamp per line, in line order.

    Each service day starts between 08:00 and 11:59 and every following
    line on that day is 15-44 minutes later, so rows read chronologically
    without moving any line.
    """
    clock: Dict[date, datetime] = {}
    stamps: List[str] = []
    for item in artifact.line_items:
        day = item.date or artifact.admission_date
        if day not in clock:
            start = time(rng.randint(*FIRST_SERVICE_HOURS), rng.randint(0, 59))
            clock[day] = datetime.combine(day, start)
        else:
            clock[day] += timedelta(minutes=rng.randint(*MINUTES_BETWEEN_SERVICES))
        stamps.append(clock[day].strftime(TIMESTAMP_FORMAT))
    return stamps


class Publisher:
    """
    Publish phase agent.

    What it does:
        Builds the printable projection of a bill: provider block, statement
        header, line rows with timestamps, formatted money and notes.

    Why it exists:
        1. Downstream datasets want the document, not the internal model
        2. Identifiers that only exist on paper (statement ID, MRN, due date)
           come from the run's seeded rng, so a seed reproduces the document
        3. The split-billing professional twin is published alongside

    Example:
        >>> document = Publisher().run(artifact, clinical, context)
        >>> document["bill_name"]
        'FMBI-ED-COMM-DUP-L2'
    """

    def run(
        self,
        artifact: BillArtifact,
        clinical: Optional[ClinicalTruth],
        context: GenerationContext,
    ) -> Dict[str, Any]:
        rng = context.rng
        scenario = context.scenario
        name = bill_name(scenario, clinical.acuity if clinical else None)

        document: Dict[str, Any] = {
            "bill_name": name,
            "scenario_id": scenario.scenario_id,
            "scenario_name": scenario.name,
            "bill_data": self._bill_data(artifact, rng),
        }
        if artifact.professional_bill is not None:
            document["professional_bill_data"] = self._bill_data(artifact.professional_bill, rng)

        logger.info(
            f"Publish | {name} | {len(artifact.line_items)} rows | "
            f"Balance due: {format_money(artifact.grand_total)}"
        )
        return document

    def _bill_data(self, artifact: BillArtifact, rng: random.Random) -> Dict[str, Any]:
        facility = artifact.facility
        statement_date = artifact.statement_date or (
            artifact.discharge_date + timedelta(days=rng.randint(*STATEMENT_DELAY_DAYS))
        )
        stamps = service_timestamps(artifact, rng)

        rows = [
            {
                "timestamp": stamp,
                "date": _fmt(item.date),
                "code": item.billed_code,
                "description": item.description,
                "revenue_code": item.revenue_code,
                "quantity": item.quantity,
                "unit_price": format_money(item.unit_price),
                "total": format_money(item.total),
            }
            for item, stamp in zip(artifact.line_items, stamps)
        ]

        notes: List[str] = []
        if not artifact.payer_class.is_insured:
            notes.append(FINANCIAL_ASSISTANCE_NOTE)

        data: Dict[str, Any] = {
            "provider": {
                "name": facility.name,
                "address": facility.location_text,
                "contact": facility.phone,
            },
            "npi": facility.npi,
            "tax_id": facility.tax_id,
            "attending_npi": artifact.attending_npi,
            "track": artifact.track.value,
            "patient_name": artifact.patient_name,
            "patient_dob": _fmt(artifact.patient_dob),
            "patient_id": generate_reference(rng, "MRN-", 7),
            "account_number": artifact.account_number,
            "statement_id": _statement_id(rng),
            "statement_date": _fmt(statement_date),
            "due_date": _fmt(statement_date + timedelta(days=PAYMENT_DUE_DAYS)),
            "admission_date": _fmt(artifact.admission_date),
            "discharge_date": _fmt(artifact.discharge_date),
            "type_of_bill": artifact.type_of_bill,
            "insurance": artifact.insurance_name,
            "network_status": artifact.network_status.value,
            "icd10": "; ".join(
                f"{d.code} - {d.description}" if d.description else d.code for d in artifact.diagnoses
            ),
            "line_items": rows,
            "subtotal": format_money(artifact.subtotal),
            "adjustments": format_money(artifact.adjustments),
            "insurance_paid": format_money(artifact.insurance_paid),
            "grand_total": format_money(artifact.grand_total),
            "labels": dict(LABELS),
            "notes": notes,
        }
        if artifact.estimate is not None:
            data["good_faith_estimate"] = {
                "unit_rates": {code: format_money(rate) for code, rate in artifact.estimate.unit_rates.items()},
                "estimated_total": format_money(artifact.estimate.estimated_total),
            }
        return data
