"""Order change detection between a saved snapshot and the current ledger."""

from changes.differ import diff, order_key, sort_quantity_changes

__all__ = ["diff", "order_key", "sort_quantity_changes"]
