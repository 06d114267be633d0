"""
Financial Guardians - arithmetic, pricing and patient-liability rules.

    Math              line totals, subtotal and amount due close
    Price Sentry      unit prices against payer-adjusted reference rates
    Good Faith Est.   self-pay bills against the quoted estimate
    Balance Billing   insured patients billed out-of-network

All four are fully deterministic; the oracle only narrates failures.

Author: Shubham Singh
Date: January 2026
"""

from typing import List, Optional

from billing_simulation.audit.guardians.base import AuditContext, Guardian, ScreenResult
from billing_simulation.core.constants import (
    GFE_LINE_TOLERANCE,
    GUARDIAN_BALANCE_BILLING,
    GUARDIAN_GFE,
    GUARDIAN_MATH,
    GUARDIAN_PRICE,
    MATH_TOLERANCE,
)
from billing_simulation.core.enums import NetworkStatus, Severity
from billing_simulation.core.models import BillArtifact
from billing_simulation.core.money import round_currency
from billing_simulation.pricing.resolver import modifier_factor, payer_multiplier

OUTLIER_MINOR = "MINOR"
OUTLIER_MAJOR = "MAJOR"
OUTLIER_EXTREME = "EXTREME"

_OUTLIER_ORDER = [OUTLIER_MINOR, OUTLIER_MAJOR, OUTLIER_EXTREME]

_OUTLIER_SEVERITY = {
    OUTLIER_MINOR: Severity.LOW,
    OUTLIER_MAJOR: Severity.MEDIUM,
    OUTLIER_EXTREME: Severity.HIGH,
}


# =============================================================================
# MATH
# =============================================================================


class MathGuardian(Guardian):
    name = GUARDIAN_MATH
    rule = "Line totals, subtotal and amount due must be arithmetically consistent."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        findings: List[ScreenResult] = []

        wrong_lines = [
            i
            for i, item in enumerate(artifact.line_items)
            if abs(item.total - item.expected_total()) > MATH_TOLERANCE
        ]
        if wrong_lines:
            detail = "; ".join(
                f"line {i}: {artifact.line_items[i].quantity} x {artifact.line_items[i].unit_price:.2f} "
                f"billed as {artifact.line_items[i].total:.2f}"
                for i in wrong_lines
            )
            findings.append(
                ScreenResult.failed(
                    "Line Total Mismatch",
                    detail,
                    overcharge=sum(
                        artifact.line_items[i].total - artifact.line_items[i].expected_total()
                        for i in wrong_lines
                    ),
                    line_indices=tuple(wrong_lines),
                )
            )

        expected_subtotal = artifact.expected_subtotal()
        if abs(artifact.subtotal - expected_subtotal) > MATH_TOLERANCE:
            findings.append(
                ScreenResult.failed(
                    "Subtotal Mismatch",
                    f"Subtotal {artifact.subtotal:.2f}, lines sum to {expected_subtotal:.2f}.",
                    overcharge=artifact.subtotal - expected_subtotal,
                )
            )

        expected_due = artifact.expected_grand_total()
        if abs(artifact.grand_total - expected_due) > MATH_TOLERANCE:
            findings.append(
                ScreenResult.failed(
                    "Balance Mismatch",
                    f"Amount due {artifact.grand_total:.2f}, expected {expected_due:.2f} "
                    f"(subtotal - adjustments - insurance).",
                    severity=Severity.HIGH,
                    overcharge=artifact.grand_total - expected_due,
                )
            )

        return ScreenResult.from_findings(findings, "All totals close.")


# =============================================================================
# PRICE SENTRY
# =============================================================================


def price_outlier_category(
    unit_price: float, threshold: float, major_factor: float, extreme_factor: float
) -> Optional[str]:
    """
    Grade a unit price against its outlier threshold.

    >>> price_outlier_category(2695.0, 1500.0, 1.2, 2.0)
    'MAJOR'
    """
    if unit_price <= threshold:
        return None
    if unit_price > threshold * extreme_factor:
        return OUTLIER_EXTREME
    if unit_price > threshold * major_factor:
        return OUTLIER_MAJOR
    return OUTLIER_MINOR


class PriceSentryGuardian(Guardian):
    """
    Price gouging detector.

    threshold = payer multiplier × reference rate × modifier factor × sensitivity

    A unit price above the threshold is an outlier, graded MINOR, MAJOR
    (above major factor × threshold) or EXTREME (above extreme factor ×
    threshold).
    """

    name = GUARDIAN_PRICE
    rule = "Unit prices must stay within the payer-adjusted reference range."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        if context.resolver is None:
            return ScreenResult.passed("Reference pricing unavailable; prices not compared.")

        config = context.config
        multiplier = payer_multiplier(artifact.payer_class)
        outliers = []

        for i, item in enumerate(artifact.line_items):
            if not item.code:
                continue
            reference = context.resolver.resolve_rate(item.code, item.description)
            threshold = round_currency(
                multiplier * reference * modifier_factor(item.modifiers) * config.price_sensitivity
            )
            category = price_outlier_category(
                item.unit_price, threshold, config.major_outlier_factor, config.extreme_outlier_factor
            )
            if category is None:
                continue
            outliers.append((i, item, threshold, category))

        if not outliers:
            return ScreenResult.passed(
                f"All unit prices within {config.price_sensitivity}x the payer-adjusted reference."
            )

        worst = max((category for *_, category in outliers), key=_OUTLIER_ORDER.index)
        detail = "; ".join(
            f"line {i} {item.billed_code} {item.unit_price:.2f} vs threshold {threshold:.2f} ({category})"
            for i, item, threshold, category in outliers
        )
        return ScreenResult.failed(
            "Price Outlier",
            detail,
            severity=_OUTLIER_SEVERITY[worst],
            overcharge=sum((item.unit_price - threshold) * item.quantity for _, item, threshold, _ in outliers),
            line_indices=tuple(i for i, *_ in outliers),
        )


# =============================================================================
# GOOD FAITH ESTIMATE
# =============================================================================


class GoodFaithEstimateGuardian(Guardian):
    name = GUARDIAN_GFE
    rule = "Self-pay charges may not exceed the good faith estimate by the dispute threshold."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        estimate = artifact.estimate
        if estimate is None:
            return ScreenResult.passed("No good faith estimate on file.")

        over = [
            i
            for i, item in enumerate(artifact.line_items)
            if item.code
            and item.unit_price > estimate.unit_rates.get(item.base_code, item.unit_price) + GFE_LINE_TOLERANCE
        ]
        excess = round_currency(artifact.subtotal - estimate.estimated_total)

        if not over and excess < context.config.gfe_threshold:
            return ScreenResult.passed(
                f"Charges {artifact.subtotal:.2f} within estimate {estimate.estimated_total:.2f}."
            )

        detail = ", ".join(
            f"line {i} {artifact.line_items[i].base_code} "
            f"{artifact.line_items[i].unit_price:.2f} > quoted "
            f"{estimate.unit_rates[artifact.line_items[i].base_code]:.2f}"
            for i in over
        )
        return ScreenResult.failed(
            "Estimate Exceeded",
            f"Billed {artifact.subtotal:.2f} against estimate {estimate.estimated_total:.2f}"
            f"{'; ' + detail if detail else ''}.",
            severity=Severity.HIGH if excess >= context.config.gfe_threshold else Severity.MEDIUM,
            overcharge=excess,
            line_indices=tuple(over),
        )


# =============================================================================
# BALANCE BILLING
# =============================================================================


class BalanceBillingGuardian(Guardian):
    name = GUARDIAN_BALANCE_BILLING
    rule = "Insured patients may not be billed beyond cost sharing by out-of-network providers."

    def screen(self, artifact: BillArtifact, context: AuditContext) -> ScreenResult:
        if not artifact.payer_class.is_insured:
            return ScreenResult.passed("Self-pay bill; no network protections apply.")
        if artifact.network_status != NetworkStatus.OUT_OF_NETWORK:
            return ScreenResult.passed("Provider is in network.")

        threshold = context.config.copay_threshold
        if artifact.grand_total <= threshold:
            return ScreenResult.passed(
                f"Out-of-network balance {artifact.grand_total:.2f} within cost sharing."
            )
        return ScreenResult.failed(
            "Surprise Balance Bill",
            f"Out-of-network balance {artifact.grand_total:.2f} exceeds the {threshold:.2f} "
            f"cost-sharing threshold; adjustments {artifact.adjustments:.2f}.",
            severity=Severity.HIGH,
            overcharge=artifact.grand_total - threshold,
        )
