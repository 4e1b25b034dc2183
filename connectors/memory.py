"""In-memory collaborators for dry runs and tests."""

from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from core.models import Attachment, MenuItem, OrderRecord
from core.result import Err, Ok, Result
from connectors.base import (
    ChatNotifier,
    ChatReceipt,
    MailClient,
    MailThread,
    MenuBook,
    OrderCardRepository,
    OrderLedger,
)
from order_card.grid import InMemoryGrid


class InMemoryLedger(OrderLedger):
    def __init__(self, records: Iterable[OrderRecord] = ()):
        self.records = list(records)

    def get_orders_for_dates(self, dates: Iterable[date]) -> List[OrderRecord]:
        wanted = set(dates)
        return [r for r in self.records if r.date in wanted]


class InMemoryMenuBook(MenuBook):
    def __init__(self, items: Iterable[MenuItem] = ()):
        self.items = list(items)

    def menu_dates(self, dates: Iterable[date]) -> List[date]:
        present = {item.date for item in self.items}
        return [d for d in dates if d in present]

    def append_menu(self, items: Sequence[MenuItem]) -> int:
        self.items.extend(items)
        return len(items)


class InMemoryOrderCards(OrderCardRepository):
    def __init__(self, month_keys: Iterable[str] = ()):
        self.grids: Dict[str, InMemoryGrid] = {
            key: InMemoryGrid(name=f"OrderCard{key}") for key in month_keys
        }

    def open_month(self, month_key: str) -> Optional[InMemoryGrid]:
        return self.grids.get(month_key)

    def export_xlsx(self, month_key: str) -> Optional[Attachment]:
        grid = self.grids.get(month_key)
        if grid is None:
            return None
        return Attachment(
            name=f"{grid.name}.xlsx",
            content=repr(sorted(grid.cells.items())).encode("utf-8"),
            mime_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


class RecordingChat(ChatNotifier):
    """Keeps every posted message; fail=True makes every post an Err."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[str] = []

    async def post(self, message: str, channel: Optional[str] = None) -> Result:
        if self.fail:
            return Err("chat unavailable")
        self.messages.append(message)
        return Ok(ChatReceipt(channel=channel or "memory", ts=str(len(self.messages))))


class InMemoryMailbox(MailClient):
    """Threads are matched by exact query string."""

    def __init__(self, threads_by_query: Optional[Dict[str, List[MailThread]]] = None):
        self.threads_by_query = threads_by_query or {}
        self.drafts: List[dict] = []
        self.processed: List[str] = []

    def search(self, query: str, max_results: int = 20) -> List[MailThread]:
        return list(self.threads_by_query.get(query, []))[:max_results]

    def create_draft(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> Optional[str]:
        self.drafts.append({
            "to": to,
            "subject": subject,
            "body": body,
            "attachments": list(attachments),
        })
        return f"draft-{len(self.drafts)}"

    def mark_processed(self, thread_id: str) -> None:
        self.processed.append(thread_id)
