"""
Reconciliation tests: exact integer equality on total count and amount.
"""

import pytest


def summary(total_count=20, total_amount=13600, month="2025/12"):
    from core.models import InvoiceSummary
    return InvoiceSummary(target_month=month, total_count=total_count, total_amount=total_amount)


class TestReconcile:
    """reconcile(invoice, system)."""

    def test_exact_match(self):
        from reconciliation.engine import reconcile
        result = reconcile(summary(), summary())
        assert result.is_match is True
        assert result.diffs == []
        assert all(c["passed"] for c in result.checks)

    @pytest.mark.parametrize("field,invoice_kwargs", [
        ("total_count", {"total_count": 21}),
        ("total_amount", {"total_amount": 13601}),
    ])
    def test_off_by_one_names_field(self, field, invoice_kwargs):
        """Changing one field by 1 yields exactly one diff naming that field."""
        from reconciliation.engine import reconcile
        result = reconcile(summary(**invoice_kwargs), summary())
        assert result.is_match is False
        assert len(result.diffs) == 1
        assert result.diffs[0].startswith(f"{field} mismatch")

    def test_both_fields_differ(self):
        from reconciliation.engine import reconcile
        result = reconcile(summary(19, 12920), summary())
        assert result.diffs == [
            "total_count mismatch: invoice=19, system=20",
            "total_amount mismatch: invoice=12920, system=13600",
        ]

    def test_blocking_checks_serialized(self):
        from reconciliation.engine import Severity, reconcile
        result = reconcile(summary(total_amount=1), summary())
        failed = [c for c in result.checks if not c["passed"]]
        assert failed[0]["severity"] == Severity.BLOCK.value
        assert failed[0]["evidence"] == {"field": "total_amount", "invoice": 1, "system": 13600}


class TestInvoiceSummaryParsing:
    """LLM-shaped invoice JSON."""

    def test_camel_case_and_currency_strings(self):
        from core.models import InvoiceSummary
        invoice = InvoiceSummary.model_validate({
            "targetMonth": "2025年12月",
            "countLarge": "3",
            "countRegular": 15,
            "countSmall": "2個",
            "totalAmount": "¥13,600",
        })
        assert invoice.target_month == "2025/12"
        assert invoice.total_count == 20
        assert invoice.total_amount == 13600

    def test_explicit_total_count_kept(self):
        from core.models import InvoiceSummary
        invoice = InvoiceSummary.model_validate({
            "targetMonth": "2025-12", "totalCount": 20, "totalAmount": 13600,
        })
        assert invoice.total_count == 20
