"""Google Sheets, Drive and Gmail connectors."""

from connectors.google.client import GoogleServices, get_credentials, SCOPES
from connectors.google.sheets import (
    SheetTable,
    SheetsOrderLedger,
    SheetsMenuBook,
    SheetsGrid,
    DriveOrderCards,
    SheetSnapshotStore,
    a1_range,
    column_letter,
)
from connectors.google.gmail import GmailClient, build_mime_message

__all__ = [
    "GoogleServices",
    "get_credentials",
    "SCOPES",
    "SheetTable",
    "SheetsOrderLedger",
    "SheetsMenuBook",
    "SheetsGrid",
    "DriveOrderCards",
    "SheetSnapshotStore",
    "a1_range",
    "column_letter",
    "GmailClient",
    "build_mime_message",
]
