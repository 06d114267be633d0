"""
Audit Prompt Templates

Guardians consult the oracle in two ways:
    FORENSIC  the deterministic screen already failed; the oracle only
              writes the narrative for the finding
    VERDICT   the screen was ambiguous; the oracle decides pass/fail

The Judge uses the oracle for its written justification only.
"""

import json
from typing import List

from billing_simulation.core.models import BillArtifact, ClinicalTruth, GuardianResult

FORENSIC_TEMPLATE = """You are a forensic billing analyst writing up a confirmed audit finding.

**AUDIT RULE:** {guardian} - {rule}

**DETERMINISTIC FINDING:** {finding}

**BILL LINES:**
{lines}

Explain the finding for a patient advocate. Do not contradict the finding and do not
cite lines or codes that are not on the bill.

**RESPOND IN JSON FORMAT:**
{{"evidence": "quote the specific lines and values", "explanation": "why this is a billing problem"}}
"""

VERDICT_TEMPLATE = """You are the {guardian} auditor reviewing a medical bill.

**AUDIT RULE:** {rule}

**WHY YOUR JUDGEMENT IS NEEDED:** {finding}

**MEDICAL RECORD:**
{record}

**BILL:**
{bill}

**RESPOND IN JSON FORMAT:**
{{
    "passed": true,
    "evidence": "specific lines and values you relied on",
    "failure_type": "short label or null",
    "explanation": "one or two sentences or null",
    "severity": "Low|Medium|High",
    "overcharge_potential": 0.0
}}
"""

JUDGE_TEMPLATE = """You are the audit quality judge for a synthetic medical bill.

**INTENDED IRREGULARITY:** {irregularity}
**VERDICT (already decided):** {verdict}
**FIDELITY SCORE (already decided):** {score}

**GUARDIAN RESULTS:**
{results}

**DETERMINISTIC FINDINGS:**
{findings}

Write a short justification of the verdict. Do not change the verdict or the score.

**RESPOND IN JSON FORMAT:**
{{"justification": "two or three sentences"}}
"""


def format_lines(artifact: BillArtifact) -> str:
    rows = []
    for index, item in enumerate(artifact.line_items):
        rows.append(
            f"[{index}] {item.date} {item.billed_code or '(no code)'} rev {item.revenue_code} "
            f"{item.description} qty {item.quantity} @ {item.unit_price:.2f} = {item.total:.2f}"
        )
    return "\n".join(rows) or "(no lines)"


def format_bill(artifact: BillArtifact) -> str:
    header = {
        "type_of_bill": artifact.type_of_bill,
        "care_setting": artifact.care_setting.value,
        "payer": artifact.payer_class.value,
        "network_status": artifact.network_status.value,
        "admission_date": str(artifact.admission_date),
        "discharge_date": str(artifact.discharge_date),
        "facility_npi": artifact.facility.npi,
        "attending_npi": artifact.attending_npi,
        "subtotal": artifact.subtotal,
        "adjustments": artifact.adjustments,
        "insurance_paid": artifact.insurance_paid,
        "grand_total": artifact.grand_total,
    }
    return f"{json.dumps(header, indent=2)}\n{format_lines(artifact)}"


def format_record(clinical: ClinicalTruth) -> str:
    if clinical is None:
        return "(not available)"
    return (
        f"Acuity: {clinical.acuity.value}\n"
        f"Side: {clinical.laterality or 'not documented'}\n"
        f"{clinical.encounter.text}"
    )


def format_results(results: List[GuardianResult]) -> str:
    return "\n".join(f"- {r.guardian}: {r.status} | {r.evidence}" for r in results)
