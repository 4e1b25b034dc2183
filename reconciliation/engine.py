"""Reconciliation engine for vendor lunch invoices.

Exposes high-level function:
- reconcile(invoice, system) -> ReconciliationResult

The invoice side is LLM-extracted and untrusted; the system side is computed
from the order ledger with the month's price table. Counts and amounts are
integers and must match exactly.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.models import InvoiceSummary
from core.observability import get_logger

logger = get_logger(__name__)


# =============================================================================
# Configuration & Data Structures
# =============================================================================

# Fields compared between invoice and system, in diff order
RECONCILED_FIELDS = ("total_count", "total_amount")


class Severity(str, Enum):
    BLOCK = "BLOCK"
    INFO = "INFO"


class CheckResult:
    """Result of a single reconciliation check."""

    def __init__(
        self,
        check_id: str,
        severity: Severity,
        passed: bool,
        message: str,
        evidence: Optional[Dict] = None,
    ):
        self.check_id = check_id
        self.severity = severity
        self.passed = passed
        self.message = message
        self.evidence = evidence or {}

    def to_dict(self) -> Dict:
        return {
            "check_id": self.check_id,
            "severity": self.severity.value,
            "passed": self.passed,
            "message": self.message,
            "evidence": self.evidence,
        }


class ReconciliationResult(BaseModel):
    """Outcome of comparing an invoice against the system aggregate.

    Attributes:
        is_match: True only when no field differs
        diffs: One human-readable line per mismatched field
        checks: Serialized CheckResult for every compared field
        invoice: Invoice-side summary
        system: System-side summary
    """
    is_match: bool
    diffs: List[str] = Field(default_factory=list)
    checks: List[dict] = Field(default_factory=list)
    invoice: InvoiceSummary
    system: InvoiceSummary


# =============================================================================
# Individual Check Functions
# =============================================================================

def check_field(field_name: str, invoice: InvoiceSummary, system: InvoiceSummary) -> CheckResult:
    """Exact equality of one integer field."""
    invoice_value = getattr(invoice, field_name)
    system_value = getattr(system, field_name)
    evidence = {"field": field_name, "invoice": invoice_value, "system": system_value}

    if invoice_value == system_value:
        return CheckResult(
            check_id=f"{field_name.upper()}_MATCH",
            severity=Severity.INFO,
            passed=True,
            message=f"{field_name} matches: {invoice_value}",
            evidence=evidence,
        )

    return CheckResult(
        check_id=f"{field_name.upper()}_MATCH",
        severity=Severity.BLOCK,
        passed=False,
        message=f"{field_name} mismatch: invoice={invoice_value}, system={system_value}",
        evidence=evidence,
    )


# =============================================================================
# Main Reconciliation Engine
# =============================================================================

def reconcile(invoice: InvoiceSummary, system: InvoiceSummary) -> ReconciliationResult:
    """Compare total_count and total_amount of invoice and system summaries.

    Args:
        invoice: Summary extracted from the vendor invoice
        system: Summary aggregated from the order ledger

    Returns:
        ReconciliationResult; is_match is True only with zero diffs
    """
    if invoice.target_month != system.target_month:
        logger.warning(
            f"Reconciling different months: invoice={invoice.target_month}, "
            f"system={system.target_month}"
        )

    checks = [check_field(name, invoice, system) for name in RECONCILED_FIELDS]
    diffs = [c.message for c in checks if not c.passed]

    result = ReconciliationResult(
        is_match=not diffs,
        diffs=diffs,
        checks=[c.to_dict() for c in checks],
        invoice=invoice,
        system=system,
    )

    logger.info(
        f"Reconciliation {'matched' if result.is_match else 'mismatched'} "
        f"for {invoice.target_month}",
        extra_fields={"diffs": len(diffs)},
    )
    return result
