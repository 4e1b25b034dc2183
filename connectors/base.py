"""Abstract collaborator interfaces.

This module defines what the jobs need from the outside world. It is
intentionally provider-agnostic: no Google, Slack or OpenAI specifics here.

Implementations:
1. Read order rows from the ledger
2. Look up and append menu rows
3. Open and export monthly order cards
4. Post chat messages
5. Search mail, create drafts, mark threads processed

Key Design Principles:
- Methods return canonical models (OrderRecord, Attachment, MailThread)
- Jobs depend ONLY on these interfaces and receive them by injection
- Adapters raise ConnectorError subclasses; chat posting returns a Result
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from core.models import Attachment, MenuItem, OrderRecord
from core.result import Result
from order_card.grid import OrderCardGrid


# =============================================================================
# Errors
# =============================================================================

class ConnectorError(Exception):
    """Base exception for collaborator failures."""
    def __init__(self, message: str, status_code: int = 0, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class SheetAccessError(ConnectorError):
    """Spreadsheet or Drive call failed, or an expected sheet is missing."""
    pass


class MailError(ConnectorError):
    """Mail search, download or draft creation failed."""
    pass


class ChatPostError(ConnectorError):
    """Chat API rejected the message or could not be reached."""
    pass


# =============================================================================
# Mail models
# =============================================================================

class MailMessage(BaseModel):
    """One message of a mail thread with its downloaded attachments."""
    id: str
    thread_id: str
    subject: str = ""
    sent_at: Optional[datetime] = None
    attachments: List[Attachment] = Field(default_factory=list)


class MailThread(BaseModel):
    """A mail thread; starred threads have already been processed."""
    id: str
    starred: bool = False
    messages: List[MailMessage] = Field(default_factory=list)


class ChatReceipt(BaseModel):
    """Successful chat post."""
    channel: str
    ts: str


# =============================================================================
# Queries
# =============================================================================

SENT_ORDER_SUBJECT_WORDS = ("弁当", "お弁当")
SENT_ORDER_LOOKBACK_DAYS = 30


def build_order_email_query(start: date, end: date) -> str:
    """Mail search for an already-sent weekly order, e.g.

    in:sent subject:12/15 subject:12/19 subject:弁当 subject:お弁当 newer_than:30d
    """
    parts = [
        "in:sent",
        f"subject:{start.month}/{start.day}",
        f"subject:{end.month}/{end.day}",
    ]
    parts.extend(f"subject:{word}" for word in SENT_ORDER_SUBJECT_WORDS)
    parts.append(f"newer_than:{SENT_ORDER_LOOKBACK_DAYS}d")
    return " ".join(parts)


# =============================================================================
# Interfaces
# =============================================================================

class OrderLedger(ABC):
    """Read-only access to the order history table."""

    @abstractmethod
    def get_orders_for_dates(self, dates: Iterable[date]) -> List[OrderRecord]:
        """Rows whose date exactly matches one of dates."""
        ...


class MenuBook(ABC):
    """The menu table: dated rows appended from vendor menu PDFs."""

    @abstractmethod
    def menu_dates(self, dates: Iterable[date]) -> List[date]:
        """The subset of dates that have at least one menu row."""
        ...

    @abstractmethod
    def append_menu(self, items: Sequence[MenuItem]) -> int:
        """Append rows; returns the number written."""
        ...

    def has_menu_for(self, dates: Iterable[date]) -> bool:
        return bool(self.menu_dates(dates))


class OrderCardRepository(ABC):
    """Monthly order-card spreadsheets, addressed by YYYY.MM."""

    @abstractmethod
    def open_month(self, month_key: str) -> Optional[OrderCardGrid]:
        """The month's card, or None when it does not exist."""
        ...

    @abstractmethod
    def export_xlsx(self, month_key: str) -> Optional[Attachment]:
        """The month's card as an .xlsx attachment, or None when missing."""
        ...


class ChatNotifier(ABC):
    """Chat sink. Never raises; failures come back as Err."""

    @abstractmethod
    async def post(self, message: str, channel: Optional[str] = None) -> Result:
        """Ok(ChatReceipt) or Err(reason)."""
        ...


class MailClient(ABC):
    """Mailbox search, drafts and processed-markers."""

    @abstractmethod
    def search(self, query: str, max_results: int = 20) -> List[MailThread]:
        ...

    @abstractmethod
    def create_draft(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> Optional[str]:
        """Create a draft and return its id."""
        ...

    @abstractmethod
    def mark_processed(self, thread_id: str) -> None:
        ...

    def has_sent_order_email(self, start: date, end: date) -> bool:
        """True when a weekly order mail covering start..end is in the sent box."""
        return bool(self.search(build_order_email_query(start, end), max_results=1))
