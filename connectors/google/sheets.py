"""Google Sheets / Drive adapters.

Sheet layouts (row 1 is a header, data starts at row 2):
- Order history: C=person, D=date, E=store, G=size, H=count
- Menu: A=date, B=store, C=menu
- Snapshots: A=period key, B=date, C=person, D=size, E=count, F=saved at

Monthly order cards are separate spreadsheets named ``{prefix}{YYYY.MM}`` in
one Drive folder; only their first sheet is used.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence

from googleapiclient.errors import HttpError
from pydantic import ValidationError

from connectors.base import MenuBook, OrderCardRepository, OrderLedger, SheetAccessError
from core.models import Attachment, MenuItem, OrderRecord, format_date
from core.observability import get_logger
from order_card.grid import OrderCardGrid
from snapshots.store import SnapshotStore, snapshot_rows

logger = get_logger(__name__)

ORDER_CARD_NAME_PREFIX = "オーダーカード"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"

# 0-based column indexes
ORDER_PERSON_COL = 2
ORDER_DATE_COL = 3
ORDER_SIZE_COL = 6
ORDER_COUNT_COL = 7

MENU_DATE_COL = 0

SNAPSHOT_HEADERS = ["period_key", "date", "person", "size", "count", "saved_at"]


def column_letter(column: int) -> str:
    """1 -> A, 27 -> AA."""
    letters = ""
    while column > 0:
        column, rem = divmod(column - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def a1_range(sheet_name: str, row: int, column: int, num_rows: int, num_columns: int) -> str:
    start = f"{column_letter(column)}{row}"
    end = f"{column_letter(column + num_columns - 1)}{row + num_rows - 1}"
    return f"'{sheet_name}'!{start}:{end}"


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else ""


class SheetTable:
    """Thin wrapper over spreadsheets().values() for one sheet."""

    def __init__(self, sheets_service, spreadsheet_id: str, sheet_name: str):
        self.service = sheets_service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def _values(self):
        return self.service.spreadsheets().values()

    def read_rows(self, columns: str = "A:Z", start_row: int = 2) -> List[List[Any]]:
        first, last = columns.split(":")
        rng = f"'{self.sheet_name}'!{first}{start_row}:{last}"
        try:
            resp = self._values().get(spreadsheetId=self.spreadsheet_id, range=rng).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to read {rng}: {e}", getattr(e.resp, "status", 0)) from e
        return resp.get("values", [])

    def append_rows(self, rows: List[List[Any]]) -> None:
        if not rows:
            return
        try:
            self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"'{self.sheet_name}'!A1",
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to append to {self.sheet_name}: {e}") from e

    def update(self, rng: str, rows: List[List[Any]]) -> None:
        try:
            self._values().update(
                spreadsheetId=self.spreadsheet_id,
                range=rng,
                valueInputOption="USER_ENTERED",
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to write {rng}: {e}") from e

    def clear(self, rng: str) -> None:
        try:
            self._values().clear(spreadsheetId=self.spreadsheet_id, range=rng, body={}).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to clear {rng}: {e}") from e

    def sheet_id(self) -> int:
        try:
            meta = self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties(sheetId,title)",
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to read sheet ids: {e}", getattr(e.resp, "status", 0)) from e
        for sheet in meta.get("sheets", []):
            if sheet["properties"]["title"] == self.sheet_name:
                return sheet["properties"]["sheetId"]
        raise SheetAccessError(f"Sheet {self.sheet_name} not found")

    def delete_rows(self, row_numbers: Iterable[int]) -> int:
        """Delete the given 1-based sheet rows, bottom up, in one batchUpdate."""
        rows = sorted(set(row_numbers), reverse=True)
        if not rows:
            return 0

        # contiguous runs as (first, last), highest first
        runs = []
        for row in rows:
            if runs and runs[-1][0] == row + 1:
                runs[-1] = (row, runs[-1][1])
            else:
                runs.append((row, row))

        sheet_id = self.sheet_id()
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": first - 1,
                        "endIndex": last,
                    }
                }
            }
            for first, last in runs
        ]
        try:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": requests},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to delete rows from {self.sheet_name}: {e}") from e
        return len(rows)

    def ensure_exists(self, headers: Optional[List[str]] = None) -> None:
        """Create the sheet (with a header row) when the spreadsheet lacks it."""
        try:
            meta = self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties.title",
            ).execute()
            titles = [s["properties"]["title"] for s in meta.get("sheets", [])]
            if self.sheet_name in titles:
                return
            logger.info(f"Creating sheet {self.sheet_name}")
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": self.sheet_name}}}]},
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to create sheet {self.sheet_name}: {e}") from e
        if headers:
            self.update(f"'{self.sheet_name}'!A1", [headers])


# =============================================================================
# Ledger / menu
# =============================================================================

class SheetsOrderLedger(OrderLedger):
    def __init__(self, table: SheetTable):
        self.table = table

    def get_orders_for_dates(self, dates: Iterable[date]) -> List[OrderRecord]:
        wanted = set(dates)
        records = []
        for row in self.table.read_rows("A:H"):
            person = str(_cell(row, ORDER_PERSON_COL)).strip()
            raw_date = _cell(row, ORDER_DATE_COL)
            if not person or not raw_date:
                continue
            try:
                record = OrderRecord(
                    date=raw_date,
                    person=person,
                    size=str(_cell(row, ORDER_SIZE_COL)),
                    count=_cell(row, ORDER_COUNT_COL),
                )
            except ValidationError:
                logger.debug(f"Skipping order row with unreadable date: {raw_date!r}")
                continue
            if record.date in wanted:
                records.append(record)

        logger.info(f"Read {len(records)} order row(s) for {len(wanted)} date(s)")
        return records


class SheetsMenuBook(MenuBook):
    def __init__(self, table: SheetTable):
        self.table = table

    def menu_dates(self, dates: Iterable[date]) -> List[date]:
        present = set()
        for row in self.table.read_rows("A:C"):
            try:
                present.add(MenuItem(date=_cell(row, MENU_DATE_COL)).date)
            except ValidationError:
                continue
        return [d for d in dates if d in present]

    def append_menu(self, items: Sequence[MenuItem]) -> int:
        rows = [[format_date(item.date), item.store_name, item.menu] for item in items]
        self.table.append_rows(rows)
        logger.info(f"Appended {len(rows)} menu row(s) to {self.table.sheet_name}")
        return len(rows)


# =============================================================================
# Order cards
# =============================================================================

class SheetsGrid(OrderCardGrid):
    """OrderCardGrid over the first sheet of an order-card spreadsheet."""

    def __init__(self, table: SheetTable, name: str = ""):
        self.table = table
        self.name = name

    def read_values(self, row: int, column: int, num_rows: int, num_columns: int) -> List[List[Any]]:
        rng = a1_range(self.table.sheet_name, row, column, num_rows, num_columns)
        try:
            resp = self.table._values().get(spreadsheetId=self.table.spreadsheet_id, range=rng).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to read {rng}: {e}") from e
        values = resp.get("values", [])
        # The API trims trailing blanks; pad back to the requested shape
        return [
            [(values[r][c] if r < len(values) and c < len(values[r]) else "") for c in range(num_columns)]
            for r in range(num_rows)
        ]

    def clear_range(self, row: int, column: int, num_rows: int, num_columns: int) -> None:
        self.table.clear(a1_range(self.table.sheet_name, row, column, num_rows, num_columns))

    def write_values(self, row: int, column: int, values: Sequence[Sequence[Any]]) -> None:
        num_rows = len(values)
        num_columns = max((len(v) for v in values), default=0)
        if not num_rows or not num_columns:
            return
        rng = a1_range(self.table.sheet_name, row, column, num_rows, num_columns)
        self.table.update(rng, [list(v) for v in values])


class DriveOrderCards(OrderCardRepository):
    """Monthly order cards stored as spreadsheets in one Drive folder."""

    def __init__(self, drive_service, sheets_service, folder_id: str, prefix: str = ORDER_CARD_NAME_PREFIX):
        self.drive = drive_service
        self.sheets = sheets_service
        self.folder_id = folder_id
        self.prefix = prefix

    def file_name(self, month_key: str) -> str:
        return f"{self.prefix}{month_key}"

    def _find_file(self, month_key: str) -> Optional[dict]:
        name = self.file_name(month_key)
        query = (
            f"name = '{name}' and "
            f"'{self.folder_id}' in parents and "
            f"mimeType = '{SPREADSHEET_MIME_TYPE}' and "
            f"trashed = false"
        )
        try:
            resp = self.drive.files().list(q=query, fields="files(id, name)", pageSize=1).execute()
        except HttpError as e:
            raise SheetAccessError(f"Drive search for {name} failed: {e}") from e
        files = resp.get("files", [])
        return files[0] if files else None

    def open_month(self, month_key: str) -> Optional[SheetsGrid]:
        found = self._find_file(month_key)
        if not found:
            logger.error(f"Order card {self.file_name(month_key)} not found in folder")
            return None
        try:
            meta = self.sheets.spreadsheets().get(
                spreadsheetId=found["id"],
                fields="sheets.properties.title",
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to open {found['name']}: {e}") from e
        first_sheet = meta["sheets"][0]["properties"]["title"]
        return SheetsGrid(SheetTable(self.sheets, found["id"], first_sheet), name=found["name"])

    def export_xlsx(self, month_key: str) -> Optional[Attachment]:
        found = self._find_file(month_key)
        if not found:
            return None
        try:
            content = self.drive.files().export(fileId=found["id"], mimeType=XLSX_MIME_TYPE).execute()
        except HttpError as e:
            raise SheetAccessError(f"Failed to export {found['name']}: {e}") from e
        return Attachment(name=f"{found['name']}.xlsx", content=content, mime_type=XLSX_MIME_TYPE)


# =============================================================================
# Snapshots
# =============================================================================

class SheetSnapshotStore(SnapshotStore):
    """Snapshots kept in a sheet of the main spreadsheet.

    save() deletes only the period's rows and then appends the new ones, so
    a failed write never touches other periods.
    """

    def __init__(self, table: SheetTable):
        self.table = table
        self.table.ensure_exists(SNAPSHOT_HEADERS)

    def save(self, period_key: str, records: Iterable[OrderRecord]) -> int:
        rows = snapshot_rows(records)
        # body starts at sheet row 2
        stale = [
            index + 2
            for index, row in enumerate(self.table.read_rows("A:F"))
            if _cell(row, 0) == period_key
        ]
        removed = self.table.delete_rows(stale)
        if removed:
            logger.info(f"Removed {removed} existing snapshot row(s) for {period_key}")

        saved_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.table.append_rows([
            [period_key, format_date(r.date), r.person, r.size, r.count, saved_at]
            for r in rows
        ])
        logger.info(f"Saved snapshot {period_key}: {len(rows)} row(s)")
        return len(rows)

    def load(self, period_key: str) -> Optional[List[OrderRecord]]:
        records = []
        for row in self.table.read_rows("A:F"):
            if _cell(row, 0) != period_key:
                continue
            try:
                records.append(OrderRecord(
                    date=_cell(row, 1),
                    person=_cell(row, 2),
                    size=_cell(row, 3) or "regular",
                    count=_cell(row, 4),
                ))
            except ValidationError:
                logger.warning(
                    f"Skipping unreadable snapshot row for {period_key}",
                    extra_fields={"row": [str(v) for v in row]},
                )
        if not records:
            logger.debug(f"No snapshot stored for {period_key}")
            return None
        logger.info(f"Loaded snapshot {period_key}: {len(records)} row(s)")
        return records
