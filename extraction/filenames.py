"""Menu PDF file-name helpers.

Vendors send menus named like ``2024.12.pdf``, ``2024.12pdf.pdf`` or
``2024.9[更新済み].pdf``. Processed files get a ``_processed`` suffix before
the extension and are skipped on later runs.
"""

import re
from typing import Optional, Tuple

PROCESSED_SUFFIX = "_processed"

_PDF_AFTER_DIGITS = re.compile(r"(\d{2,4})(?:pdf|PDF)")
_DISALLOWED = re.compile(r"[^a-zA-Z0-9.]")
_DOUBLE_PDF = re.compile(r"(?:\.pdf)?\.pdf$", re.IGNORECASE)
_YEAR_MONTH = re.compile(r"(\d{4})\.(\d{1,2})(?!\d)")


def normalize_file_name(original: Optional[str]) -> str:
    """'24pdf.pdf' -> '24.pdf', '2024.9[更新済み].pdf' -> '2024.9.pdf'."""
    if not original:
        return ""
    name = _PDF_AFTER_DIGITS.sub(r"\1.", original, count=1)
    name = _DISALLOWED.sub("", name)
    name = re.sub(r"\.{2,}", ".", name)
    return _DOUBLE_PDF.sub(".pdf", name)


def extract_year_month(file_name: Optional[str]) -> Optional[Tuple[str, str]]:
    """('2024', '12') from '2024.12.pdf'; months are zero-padded."""
    if not file_name:
        return None
    match = _YEAR_MONTH.search(file_name)
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return match.group(1), f"{month:02d}"


def add_processed_suffix(file_name: str, suffix: str = PROCESSED_SUFFIX) -> str:
    return re.sub(r"\.pdf$", f"{suffix}.pdf", file_name, flags=re.IGNORECASE)


def has_processed_suffix(file_name: Optional[str], suffix: str = PROCESSED_SUFFIX) -> bool:
    return bool(file_name) and suffix in file_name
