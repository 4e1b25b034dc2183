"""Invoice reconciliation against ledger aggregates."""

from reconciliation.engine import (
    reconcile,
    check_field,
    CheckResult,
    ReconciliationResult,
    Severity,
    RECONCILED_FIELDS,
)

__all__ = [
    "reconcile",
    "check_field",
    "CheckResult",
    "ReconciliationResult",
    "Severity",
    "RECONCILED_FIELDS",
]
