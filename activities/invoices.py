"""Invoice reconciliation job.

Each PDF attached to an unprocessed invoice mail is stored, read by the LLM,
and compared against the month's orders priced with that month's table.
A match drafts an approval mail to general affairs with the PDF attached;
a mismatch posts an alert to chat. Mismatches are never approved.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional

from activities.context import JobContext
from connectors.base import ConnectorError
from core.models import Attachment, InvoiceSummary
from core.observability import get_logger, log_job_complete, log_job_error, log_job_start, with_correlation
from core.result import is_ok
from extraction.runner import extract_invoice_summary
from notifications.messages import invoice_approval_body, invoice_approval_subject, invoice_discrepancy_alert
from orders.aggregation import aggregate_month
from orders.calendar import month_days
from reconciliation.engine import ReconciliationResult, reconcile
from storage.artifacts import get_bytes, put_bytes, put_json, unique_path

logger = get_logger(__name__)

JOB_NAME = "invoices"
MAX_MESSAGE_AGE = timedelta(days=30)


class InvoiceStatus(str, Enum):
    DRAFTED = "DRAFTED"                      # matched, approval draft created
    ALERTED = "ALERTED"                      # mismatched, chat alert posted
    ALERT_FAILED = "ALERT_FAILED"            # mismatched, chat post failed
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    NO_PRICE_TABLE = "NO_PRICE_TABLE"
    FAILED = "FAILED"


@dataclass
class InvoiceOutcome:
    """What happened to one invoice PDF."""
    file_name: str
    status: InvoiceStatus
    target_month: Optional[str] = None
    diffs: List[str] = field(default_factory=list)
    stored_at: Optional[str] = None
    draft_id: Optional[str] = None


def is_pdf(attachment: Attachment) -> bool:
    return attachment.mime_type == "application/pdf" or attachment.name.lower().endswith(".pdf")


def compute_system_summary(ctx: JobContext, target_month: str) -> Optional[InvoiceSummary]:
    """Aggregate the ledger for target_month; None when no price table is configured."""
    price_table = ctx.config.price_table_for(target_month)
    if price_table is None:
        logger.error(f"No price table configured for {target_month}")
        return None
    records = ctx.ledger.get_orders_for_dates(month_days(target_month))
    return aggregate_month(records, target_month, price_table)


async def dispatch_reconciliation(
    ctx: JobContext,
    result: ReconciliationResult,
    attachment: Attachment,
    outcome: InvoiceOutcome,
) -> InvoiceOutcome:
    if result.is_match:
        outcome.draft_id = ctx.mail.create_draft(
            ctx.config.general_affairs_email,
            invoice_approval_subject(result.invoice),
            invoice_approval_body(result.invoice, ctx.config.general_affairs_name),
            [attachment],
        )
        outcome.status = InvoiceStatus.DRAFTED
        return outcome

    posted = await ctx.chat.post(invoice_discrepancy_alert(result, attachment.name), ctx.config.slack_channel_id)
    if not is_ok(posted):
        logger.error(f"Discrepancy alert could not be posted: {posted.reason}")
        outcome.status = InvoiceStatus.ALERT_FAILED
    else:
        outcome.status = InvoiceStatus.ALERTED
    return outcome


async def process_invoice_pdf(ctx: JobContext, attachment: Attachment) -> InvoiceOutcome:
    """Store, extract, reconcile and dispatch one PDF. Never raises."""
    with with_correlation(file_name=attachment.name):
        outcome = InvoiceOutcome(file_name=attachment.name, status=InvoiceStatus.FAILED)
        try:
            invoice_dir = ctx.artifacts_dir / "invoices"
            ref = put_bytes(attachment.content, unique_path(invoice_dir, Path(attachment.name).name))
            outcome.stored_at = ref.storage_uri
            logger.info(f"Stored invoice PDF at {ref.storage_uri}")

            extracted = extract_invoice_summary(
                get_bytes(ref),
                api_key=ctx.config.openai_api_key,
                model=ctx.config.llm_model,
                prompt=ctx.config.invoice_prompt,
                client=ctx.llm_client,
            )
            if not is_ok(extracted):
                logger.warning(f"Invoice extraction failed: {extracted.reason}")
                outcome.status = InvoiceStatus.EXTRACTION_FAILED
                return outcome

            invoice = extracted.value
            outcome.target_month = invoice.target_month
            with with_correlation(target_month=invoice.target_month):
                system = compute_system_summary(ctx, invoice.target_month)
                if system is None:
                    outcome.status = InvoiceStatus.NO_PRICE_TABLE
                    return outcome

                result = reconcile(invoice, system)
                outcome.diffs = list(result.diffs)
                pdf_path = Path(ref.storage_uri)
                put_json(result, pdf_path.parent / f"{pdf_path.stem}.reconciliation.json")
                return await dispatch_reconciliation(ctx, result, attachment, outcome)
        except Exception:
            logger.exception(f"Invoice {attachment.name} failed")
            outcome.status = InvoiceStatus.FAILED
            return outcome


async def process_invoices(ctx: JobContext) -> List[InvoiceOutcome]:
    """Handle every unstarred invoice thread, then star it. Never raises."""
    started = time.monotonic()
    outcomes: List[InvoiceOutcome] = []

    with with_correlation(run_id=uuid.uuid4().hex[:12], job=JOB_NAME):
        log_job_start(JOB_NAME)

        missing = ctx.config.missing("gmail_query_invoice", "openai_api_key", "general_affairs_email")
        if missing:
            log_job_error(JOB_NAME, f"missing settings: {', '.join(missing)}")
            return outcomes

        cutoff = ctx.clock() - MAX_MESSAGE_AGE
        try:
            threads = ctx.mail.search(ctx.config.gmail_query_invoice)
            if not threads:
                logger.info("No invoice mail found")

            for thread in threads:
                if thread.starred:
                    continue
                for message in thread.messages:
                    # Threads also return older replies; only recent messages count
                    if message.sent_at is not None and message.sent_at < cutoff:
                        continue
                    for attachment in message.attachments:
                        if is_pdf(attachment):
                            outcomes.append(await process_invoice_pdf(ctx, attachment))
                ctx.mail.mark_processed(thread.id)
                logger.info(f"Marked invoice thread {thread.id} processed")
        except ConnectorError as e:
            log_job_error(JOB_NAME, f"collaborator failure: {e}")
            return outcomes
        except Exception as e:
            logger.exception("Invoice processing aborted")
            log_job_error(JOB_NAME, str(e))
            return outcomes

        log_job_complete(
            JOB_NAME,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            pdfs=len(outcomes),
        )
    return outcomes
