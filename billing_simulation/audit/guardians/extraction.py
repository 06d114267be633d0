"""
Extraction Guardian - is the bill a well-formed claim at all?

Checks required header fields, charges without a procedure code and the
provider identifiers (NPI checksum and placeholder patterns).
"""

import re
from typing import List

from billing_simulation.audit.guardians.base import AuditContext, Guardian, ScreenResult
from billing_simulation.core.constants import GUARDIAN_EXTRACTION
from billing_simulation.core.enums import Severity, Track
from billing_simulation.core.models import BillArtifact
from billing_simulation.generation.identifiers import is_placeholder_npi, is_valid_npi

CODE_FORMAT = re.compile(r"^(\d{5}|[A-Z]\d{4})$")


class ExtractionGuardian(Guardian):
    name = GUARDIAN_EXTRACTION
    rule = "Every charge needs a valid code, and every provider a valid NPI."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        findings: List[ScreenResult] = []

        if artifact.track == Track.FACILITY and artifact.type_of_bill:
            missing = [
                label
                for label, value in (
                    ("admission date", artifact.admission_date),
                    ("discharge date", artifact.discharge_date),
                    ("patient name", artifact.patient_name),
                    ("account number", artifact.account_number),
                )
                if not value
            ]
            if missing:
                findings.append(
                    ScreenResult.failed(
                        "Missing Required Field",
                        f"Type of bill {artifact.type_of_bill} without {', '.join(missing)}.",
                    )
                )

        ghosts = [i for i, item in enumerate(artifact.line_items) if not item.code and item.total > 0]
        if ghosts:
            findings.append(
                ScreenResult.failed(
                    "Phantom Charge",
                    "Charges with no procedure code: "
                    + ", ".join(
                        f"line {i} '{artifact.line_items[i].description}' {artifact.line_items[i].total:.2f}"
                        for i in ghosts
                    ),
                    severity=Severity.HIGH,
                    overcharge=sum(artifact.line_items[i].total for i in ghosts),
                    line_indices=tuple(ghosts),
                )
            )

        for label, npi in (("Facility", artifact.facility.npi), ("Attending", artifact.attending_npi)):
            if not npi:
                continue
            if is_placeholder_npi(npi) or not is_valid_npi(npi):
                findings.append(
                    ScreenResult.failed(
                        "Invalid Provider Identifier",
                        f"{label} NPI {npi} fails the Luhn check or is a placeholder.",
                        severity=Severity.HIGH,
                    )
                )

        if findings:
            return ScreenResult.from_findings(findings, "")

        malformed = [
            i
            for i, item in enumerate(artifact.line_items)
            if item.code and not CODE_FORMAT.match(item.code)
        ]
        if malformed:
            return ScreenResult.review(
                "Unrecognized code format: "
                + ", ".join(artifact.line_items[i].code for i in malformed),
                line_indices=tuple(malformed),
            )
        return ScreenResult.passed("Header, codes and provider identifiers are well formed.")
