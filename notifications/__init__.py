"""Message builders for chat posts and email drafts."""

from notifications.messages import (
    format_change_set_for_chat,
    format_quantity_changes,
    format_card_changes,
    sort_entries,
    order_email_subject,
    order_email_body,
    invoice_approval_subject,
    invoice_approval_body,
    invoice_discrepancy_alert,
)

__all__ = [
    "format_change_set_for_chat",
    "format_quantity_changes",
    "format_card_changes",
    "sort_entries",
    "order_email_subject",
    "order_email_body",
    "invoice_approval_subject",
    "invoice_approval_body",
    "invoice_discrepancy_alert",
]
