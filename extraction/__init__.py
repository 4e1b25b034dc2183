"""LLM-based PDF extraction and menu file-name helpers."""

from extraction.runner import (
    parse_pdf,
    parse_json_str,
    strip_code_fences,
    extract_invoice_summary,
    extract_menu,
    read_prompt,
)
from extraction.filenames import (
    PROCESSED_SUFFIX,
    normalize_file_name,
    extract_year_month,
    add_processed_suffix,
    has_processed_suffix,
)

__all__ = [
    "parse_pdf",
    "parse_json_str",
    "strip_code_fences",
    "extract_invoice_summary",
    "extract_menu",
    "read_prompt",
    "PROCESSED_SUFFIX",
    "normalize_file_name",
    "extract_year_month",
    "add_processed_suffix",
    "has_processed_suffix",
]
