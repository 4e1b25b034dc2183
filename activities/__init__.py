"""Job entry points.

Every job takes a JobContext, is a coroutine, logs its own failures and
never raises to the caller.
"""

from activities.context import JobContext, build_context
from activities.detect_changes import (
    ChangeDetectionResult,
    detect_week_changes,
    detect_order_changes_and_notify,
)
from activities.weekly_order import (
    WeeklyOrderResult,
    find_order_week,
    process_weekly_orders,
)
from activities.invoices import (
    InvoiceOutcome,
    InvoiceStatus,
    compute_system_summary,
    process_invoice_pdf,
    process_invoices,
)
from activities.menus import (
    MenuIngestResult,
    save_menu_attachments,
    process_menu_pdfs,
)

__all__ = [
    "JobContext",
    "build_context",
    # Change detection
    "ChangeDetectionResult",
    "detect_week_changes",
    "detect_order_changes_and_notify",
    # Weekly order
    "WeeklyOrderResult",
    "find_order_week",
    "process_weekly_orders",
    # Invoices
    "InvoiceOutcome",
    "InvoiceStatus",
    "compute_system_summary",
    "process_invoice_pdf",
    "process_invoices",
    # Menus
    "MenuIngestResult",
    "save_menu_attachments",
    "process_menu_pdfs",
]
