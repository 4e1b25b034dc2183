"""Collaborators handed to every job.

Jobs receive a JobContext instead of reaching for global services, so tests
can pass in-memory fakes and the CLI can pass the Google/Slack adapters.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from connectors.base import ChatNotifier, MailClient, MenuBook, OrderCardRepository, OrderLedger
from core.config import REPO_ROOT, AppConfig
from core.observability import get_logger
from snapshots.store import SnapshotStore

logger = get_logger(__name__)


@dataclass
class JobContext:
    """Configuration plus every external collaborator a job may touch.

    Attributes:
        config: Loaded AppConfig for this run
        ledger: Order history reader
        menu_book: Menu table
        order_cards: Monthly order-card spreadsheets
        snapshots: Snapshot store
        chat: Chat sink
        mail: Mailbox
        llm_client: Optional pre-built OpenAI client (tests pass a mock)
        now: Fixed clock for the run; None means the wall clock
    """
    config: AppConfig
    ledger: OrderLedger
    menu_book: MenuBook
    order_cards: OrderCardRepository
    snapshots: SnapshotStore
    chat: ChatNotifier
    mail: MailClient
    llm_client: Any = None
    now: Optional[datetime] = None

    def clock(self) -> datetime:
        return self.now or datetime.now()

    @property
    def artifacts_dir(self) -> Path:
        path = Path(self.config.artifacts_dir)
        return path if path.is_absolute() else REPO_ROOT / path


def build_context(config: AppConfig) -> JobContext:
    """Wire the Google, Slack and snapshot adapters from configuration.

    Raises:
        ValueError: SPREADSHEET_ID or ORDER_CARD_FOLDER_ID is not set
    """
    from connectors.google import (
        DriveOrderCards,
        GmailClient,
        GoogleServices,
        SheetSnapshotStore,
        SheetsMenuBook,
        SheetsOrderLedger,
        SheetTable,
    )
    from connectors.slack import SlackNotifier
    from snapshots.db import SqliteSnapshotStore

    missing = config.missing("spreadsheet_id", "order_card_folder_id")
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")

    google = GoogleServices(config.google_token_file)

    def table(sheet_name: str) -> SheetTable:
        return SheetTable(google.sheets, config.spreadsheet_id, sheet_name)

    if config.snapshot_backend == "sqlite":
        db_path = Path(config.snapshot_db_path)
        snapshots = SqliteSnapshotStore(db_path if db_path.is_absolute() else REPO_ROOT / db_path)
    else:
        snapshots = SheetSnapshotStore(table(config.snapshot_sheet))
    logger.debug(f"Snapshot backend: {config.snapshot_backend}")

    return JobContext(
        config=config,
        ledger=SheetsOrderLedger(table(config.order_history_sheet)),
        menu_book=SheetsMenuBook(table(config.menu_sheet)),
        order_cards=DriveOrderCards(google.drive, google.sheets, config.order_card_folder_id),
        snapshots=snapshots,
        chat=SlackNotifier(config.slack_bot_token, config.slack_channel_id),
        mail=GmailClient(google.gmail),
    )
