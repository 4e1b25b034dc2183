"""LLM extraction for vendor PDFs.

Exposes high-level functions for extracting documents from PDFs:
- parse_pdf(pdf_bytes, prompt, model, api_key) -> Result[JSON]
- extract_invoice_summary(pdf_bytes, ...) -> Result[InvoiceSummary]
- extract_menu(pdf_bytes, ..., year, month, store_name) -> Result[List[MenuItem]]

Pages are rendered to PNG and sent to a vision model in one request. The
model's answer may be wrapped in markdown fences; anything that still does
not parse is an extraction failure for that document only.
"""

import base64
import json
import re
from pathlib import Path
from typing import Any, List, Optional

import fitz
import openai
from pydantic import ValidationError

from core.models import InvoiceSummary, MenuItem
from core.observability import get_logger
from core.result import Err, Ok, Result

logger = get_logger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
PROMPTS_DIR = REPO_ROOT / "prompts"

INVOICE_PROMPT_FILE = "invoice.txt"
MENU_PROMPT_FILE = "menu.txt"

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


# =============================================================================
# Configuration & Utilities
# =============================================================================

def read_prompt(name: str) -> str:
    """Read a prompt template from the prompts directory."""
    return (PROMPTS_DIR / name).read_text(encoding="utf-8")


def page_to_png_b64(page: fitz.Page, zoom: float = 2.0) -> str:
    """Convert a PDF page to base64-encoded PNG for vision API."""
    mat = fitz.Matrix(zoom, zoom)
    pix = page.get_pixmap(matrix=mat, alpha=False)
    png_bytes = pix.tobytes("png")
    return base64.b64encode(png_bytes).decode("ascii")


def pdf_to_images(pdf_bytes: bytes, max_pages: int = 10) -> List[str]:
    """Render up to max_pages pages of an in-memory PDF."""
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return [page_to_png_b64(doc.load_page(i)) for i in range(min(doc.page_count, max_pages))]


def call_openai_vision(prompt: str, images_b64: List[str], api_key: str, model: str, client=None) -> str:
    """One chat completion with the prompt and page images; returns the text."""
    client = client or openai.OpenAI(api_key=api_key, timeout=600.0)

    content = [{"type": "text", "text": prompt}]
    for img in images_b64:
        content.append({
            "type": "image_url",
            "image_url": {"url": f"data:image/png;base64,{img}", "detail": "high"},
        })

    logger.info(f"Sending {len(images_b64)} page image(s) to {model}")
    response = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": content}],
        temperature=0,
        max_tokens=4096,
    )
    return response.choices[0].message.content or ""


def strip_code_fences(raw_text: str) -> str:
    return _FENCE.sub("", raw_text).strip()


def parse_json_str(raw_text: str) -> Any:
    """Parse JSON from LLM response, extracting the object or array if needed.

    Raises:
        json.JSONDecodeError: No parseable JSON in the text
    """
    text = strip_code_fences(raw_text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Try the outermost bracket pair that opens first
        pairs = sorted(
            (("{", "}"), ("[", "]")),
            key=lambda pair: text.find(pair[0]) if pair[0] in text else len(text),
        )
        for open_char, close_char in pairs:
            start = text.find(open_char)
            end = text.rfind(close_char)
            if start >= 0 and end > start:
                try:
                    return json.loads(text[start:end + 1])
                except json.JSONDecodeError:
                    continue
        raise


# =============================================================================
# Document Extraction Functions
# =============================================================================

def parse_pdf(pdf_bytes: bytes, prompt: str, model: str, api_key: str, client=None) -> Result:
    """Send a PDF to the model and parse its JSON answer.

    Returns:
        Ok(parsed JSON) or Err(reason). Nothing is retried.
    """
    try:
        images = pdf_to_images(pdf_bytes)
    except (RuntimeError, ValueError) as e:
        logger.warning(f"Unreadable PDF: {e}")
        return Err(f"unreadable PDF: {e}")
    if not images:
        return Err("PDF has no pages")

    try:
        raw = call_openai_vision(prompt, images, api_key, model, client=client)
    except openai.OpenAIError as e:
        logger.error(f"LLM request failed: {e}")
        return Err(f"LLM request failed: {e}")

    try:
        return Ok(parse_json_str(raw))
    except json.JSONDecodeError:
        logger.warning("LLM response contained no valid JSON", extra_fields={"response": raw[:500]})
        return Err("LLM response is not JSON", raw)


def extract_invoice_summary(
    pdf_bytes: bytes,
    api_key: str,
    model: str,
    prompt: Optional[str] = None,
    client=None,
) -> Result:
    """Extract the monthly totals from a vendor invoice PDF.

    Returns:
        Ok(InvoiceSummary) or Err(reason)
    """
    result = parse_pdf(pdf_bytes, prompt or read_prompt(INVOICE_PROMPT_FILE), model, api_key, client=client)
    if isinstance(result, Err):
        return result

    parsed = result.value
    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict):
        logger.warning("Invoice extraction returned a non-object JSON value")
        return Err("invoice JSON is not an object", parsed)

    try:
        summary = InvoiceSummary.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Invoice JSON failed validation: {e.error_count()} error(s)")
        return Err("invoice JSON failed validation", str(e))

    logger.info(
        f"Extracted invoice for {summary.target_month}",
        extra_fields={"total_count": summary.total_count, "total_amount": summary.total_amount},
    )
    return Ok(summary)


def _menu_day(raw_date: Any) -> Optional[int]:
    """Day of month from '2024/12/16', '2024-12-16', '12/16' or '16'."""
    if raw_date is None:
        return None
    parts = [p for p in re.split(r"[/\-.]", str(raw_date).strip()) if p]
    if not parts or not parts[-1].isdigit():
        return None
    return int(parts[-1])


def extract_menu(
    pdf_bytes: bytes,
    api_key: str,
    model: str,
    year: str,
    month: str,
    store_name: str = "",
    prompt: Optional[str] = None,
    client=None,
) -> Result:
    """Extract dated menu rows; the year and month come from the file name.

    Returns:
        Ok(list of MenuItem sorted by date) or Err(reason). Entries whose
        day is unreadable or not a real date of the month are dropped.
    """
    result = parse_pdf(pdf_bytes, prompt or read_prompt(MENU_PROMPT_FILE), model, api_key, client=client)
    if isinstance(result, Err):
        return result

    parsed = result.value
    if isinstance(parsed, dict):
        parsed = parsed.get("menus") or parsed.get("items") or []
    if not isinstance(parsed, list):
        return Err("menu JSON is not a list", parsed)

    items = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        day = _menu_day(entry.get("date"))
        if day is None:
            continue
        try:
            items.append(MenuItem(
                date=f"{year}/{month}/{day:02d}",
                store_name=store_name,
                menu=str(entry.get("menu") or ""),
            ))
        except ValidationError:
            logger.debug(f"Dropping menu entry with invalid date: {entry.get('date')!r}")

    if not items:
        return Err("no dated menu entries extracted")

    items.sort(key=lambda item: item.date)
    logger.info(f"Extracted {len(items)} menu item(s) for {year}/{month}")
    return Ok(items)
