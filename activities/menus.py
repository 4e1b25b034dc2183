"""Menu ingest jobs.

save_menu_attachments copies menu PDFs from unprocessed mail threads into
the local inbox; process_menu_pdfs reads every unprocessed PDF in the inbox,
appends its dated menu rows to the menu sheet and renames the file with the
processed suffix.
"""

import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from activities.context import JobContext
from connectors.base import ConnectorError
from core.observability import get_logger, log_job_complete, log_job_error, log_job_start, with_correlation
from core.result import is_ok
from extraction.filenames import (
    add_processed_suffix,
    extract_year_month,
    has_processed_suffix,
    normalize_file_name,
)
from extraction.runner import extract_menu
from storage.artifacts import put_bytes

logger = get_logger(__name__)

JOB_NAME = "menus"


@dataclass
class MenuIngestResult:
    file_name: str
    processed_name: str
    target_month: str
    items_written: int


def menu_inbox(ctx: JobContext) -> Path:
    return ctx.artifacts_dir / "menus"


def save_menu_attachments(ctx: JobContext, inbox: Optional[Path] = None) -> List[Path]:
    """Save PDF attachments of unstarred menu threads under normalized names."""
    inbox = inbox or menu_inbox(ctx)
    saved: List[Path] = []

    if not ctx.config.gmail_query_menu:
        logger.error("GMAIL_QUERY_MENU is not set; no menu mail fetched")
        return saved

    for thread in ctx.mail.search(ctx.config.gmail_query_menu):
        if thread.starred:
            continue
        for message in thread.messages:
            for attachment in message.attachments:
                if not attachment.name.lower().endswith(".pdf"):
                    continue
                name = normalize_file_name(attachment.name) or attachment.name
                target = inbox / name
                if target.exists() or (inbox / add_processed_suffix(name)).exists():
                    logger.debug(f"{name} already in the menu inbox")
                    continue
                put_bytes(attachment.content, target)
                saved.append(target)
                logger.info(f"Saved menu attachment {attachment.name} as {name}")
        ctx.mail.mark_processed(thread.id)

    return saved


def ingest_menu_file(ctx: JobContext, path: Path) -> Optional[MenuIngestResult]:
    """Extract and append one menu PDF. None when the file is skipped or fails."""
    with with_correlation(file_name=path.name):
        year_month = extract_year_month(normalize_file_name(path.name))
        if year_month is None:
            logger.error(f"Cannot read year and month from {path.name}; skipping")
            return None
        year, month = year_month

        extracted = extract_menu(
            path.read_bytes(),
            api_key=ctx.config.openai_api_key,
            model=ctx.config.llm_model,
            year=year,
            month=month,
            store_name=ctx.config.store_name or "",
            prompt=ctx.config.menu_prompt,
            client=ctx.llm_client,
        )
        if not is_ok(extracted):
            logger.warning(f"No menu data extracted from {path.name}: {extracted.reason}")
            return None

        written = ctx.menu_book.append_menu(extracted.value)
        processed = path.with_name(add_processed_suffix(path.name))
        path.rename(processed)
        logger.info(f"Processed {path.name} -> {processed.name}", extra_fields={"items": written})

        return MenuIngestResult(
            file_name=path.name,
            processed_name=processed.name,
            target_month=f"{year}/{month}",
            items_written=written,
        )


async def process_menu_pdfs(ctx: JobContext, inbox: Optional[Path] = None, fetch_mail: bool = True) -> List[MenuIngestResult]:
    """Fetch menu mail (optionally) and ingest every unprocessed PDF. Never raises."""
    inbox = inbox or menu_inbox(ctx)
    started = time.monotonic()
    results: List[MenuIngestResult] = []

    with with_correlation(run_id=uuid.uuid4().hex[:12], job=JOB_NAME):
        log_job_start(JOB_NAME, inbox=str(inbox))

        missing = ctx.config.missing("openai_api_key")
        if missing:
            log_job_error(JOB_NAME, f"missing settings: {', '.join(missing)}")
            return results

        try:
            if fetch_mail:
                save_menu_attachments(ctx, inbox)
        except ConnectorError as e:
            logger.error(f"Menu mail fetch failed: {e}")
        except Exception:
            logger.exception("Menu mail fetch failed")

        if not inbox.exists():
            logger.info(f"Menu inbox {inbox} does not exist")
            return results

        for path in sorted(inbox.glob("*.pdf")):
            if has_processed_suffix(path.name):
                continue
            try:
                result = ingest_menu_file(ctx, path)
            except ConnectorError as e:
                logger.error(f"Menu file {path.name} failed: {e}")
                continue
            except Exception:
                logger.exception(f"Menu file {path.name} failed")
                continue
            if result is not None:
                results.append(result)

        if not results:
            logger.info("No new menu PDFs processed")
        log_job_complete(
            JOB_NAME,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            files=len(results),
        )
    return results
