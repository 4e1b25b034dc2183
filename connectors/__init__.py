"""External collaborator interfaces and adapters.

Provider adapters live in subpackages (google, slack) and are imported
explicitly by the jobs that need them.
"""

from connectors.base import (
    ConnectorError,
    SheetAccessError,
    MailError,
    ChatPostError,
    MailMessage,
    MailThread,
    ChatReceipt,
    OrderLedger,
    MenuBook,
    OrderCardRepository,
    ChatNotifier,
    MailClient,
    build_order_email_query,
)

__all__ = [
    "ConnectorError",
    "SheetAccessError",
    "MailError",
    "ChatPostError",
    "MailMessage",
    "MailThread",
    "ChatReceipt",
    "OrderLedger",
    "MenuBook",
    "OrderCardRepository",
    "ChatNotifier",
    "MailClient",
    "build_order_email_query",
]
