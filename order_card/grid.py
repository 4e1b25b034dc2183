"""Cell-grid contract for monthly order cards.

Rows and columns are 1-based, as in the spreadsheet UI. Blank cells read
back as "".
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple


class OrderCardGrid(ABC):
    """The first sheet of one month's order card."""

    name: str = ""

    @abstractmethod
    def read_values(self, row: int, column: int, num_rows: int, num_columns: int) -> List[List[Any]]:
        """Return a num_rows x num_columns block starting at (row, column)."""
        ...

    @abstractmethod
    def clear_range(self, row: int, column: int, num_rows: int, num_columns: int) -> None:
        """Blank every cell of the block."""
        ...

    @abstractmethod
    def write_values(self, row: int, column: int, values: Sequence[Sequence[Any]]) -> None:
        """Write a rectangular matrix with its top-left cell at (row, column)."""
        ...


class InMemoryGrid(OrderCardGrid):
    """Sparse dict-backed grid for dry runs and tests."""

    def __init__(self, name: str = "in-memory"):
        self.name = name
        self.cells: Dict[Tuple[int, int], Any] = {}

    def read_values(self, row: int, column: int, num_rows: int, num_columns: int) -> List[List[Any]]:
        return [
            [self.cells.get((r, c), "") for c in range(column, column + num_columns)]
            for r in range(row, row + num_rows)
        ]

    def clear_range(self, row: int, column: int, num_rows: int, num_columns: int) -> None:
        for r in range(row, row + num_rows):
            for c in range(column, column + num_columns):
                self.cells.pop((r, c), None)

    def write_values(self, row: int, column: int, values: Sequence[Sequence[Any]]) -> None:
        for r_offset, line in enumerate(values):
            for c_offset, value in enumerate(line):
                key = (row + r_offset, column + c_offset)
                if value in ("", None):
                    self.cells.pop(key, None)
                else:
                    self.cells[key] = value

    def snapshot(self) -> Dict[Tuple[int, int], Any]:
        return dict(self.cells)
