"""Order-change detection job.

For this week and next week, once the weekly order mail has gone out, the
current ledger rows are compared against the snapshot taken when the order
was sent. Any added or cancelled line rewrites the order card, replaces the
snapshot, posts a chat message and drafts an updated order mail.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from activities.context import JobContext
from changes.differ import diff
from connectors.base import ConnectorError
from core.models import ChangeSet
from core.observability import get_logger, log_job_complete, log_job_error, log_job_start, with_correlation
from core.result import is_ok
from notifications.messages import (
    format_change_set_for_chat,
    format_quantity_changes,
    order_email_body,
    order_email_subject,
)
from order_card.writer import write_orders_by_month
from orders.aggregation import aggregate_by_date_and_size
from orders.calendar import current_weekdays, generate_period_key, group_dates_by_month, next_weekdays

logger = get_logger(__name__)

JOB_NAME = "detect_order_changes"


@dataclass
class ChangeDetectionResult:
    """Committed changes for one week.

    Attributes:
        week_type: "current" or "next"
        period_start: Monday of the week
        period_end: Friday of the week
        period_key: Snapshot key of the week
        changes: Added, cancelled and per-date/size quantity changes
        chat_posted: Whether the chat message went out
        draft_id: Id of the vendor mail draft, if one was created
    """
    week_type: str
    period_start: date
    period_end: date
    period_key: str
    changes: ChangeSet
    chat_posted: bool = False
    draft_id: Optional[str] = None
    months_written: List[str] = field(default_factory=list)


def detect_week_changes(ctx: JobContext, weekdays: Sequence[date], week_type: str) -> Optional[ChangeDetectionResult]:
    """Detect and commit changes for one week.

    Returns None when the order has not been sent, on the first run for the
    period (the snapshot is created), or when nothing was added or cancelled.
    """
    start, end = weekdays[0], weekdays[-1]
    period_key = generate_period_key(start, end)

    with with_correlation(period_key=period_key, week_type=week_type):
        if not ctx.mail.has_sent_order_email(start, end):
            logger.info(f"Order mail for {period_key} not sent yet; skipping")
            return None

        current = ctx.ledger.get_orders_for_dates(weekdays)
        previous = ctx.snapshots.load(period_key)

        if previous is None:
            if current:
                ctx.snapshots.save(period_key, current)
                logger.info(f"First run for {period_key}: saved {len(current)} row(s) as snapshot")
            else:
                logger.info(f"First run for {period_key}: no orders, nothing to snapshot")
            return None

        changes = diff(previous, current)
        if not changes.has_changes:
            logger.info(f"No order changes for {period_key}")
            return None

        logger.info(
            f"Order changes for {period_key}",
            extra_fields={"added": len(changes.added), "cancelled": len(changes.cancelled)},
        )

        written = write_orders_by_month(ctx.order_cards, aggregate_by_date_and_size(current), weekdays)
        ctx.snapshots.save(period_key, current)

        return ChangeDetectionResult(
            week_type=week_type,
            period_start=start,
            period_end=end,
            period_key=period_key,
            changes=changes,
            months_written=sorted(written),
        )


async def notify_changes(ctx: JobContext, result: ChangeDetectionResult) -> ChangeDetectionResult:
    """Post the change summary to chat and draft the updated order mail."""
    with with_correlation(period_key=result.period_key, week_type=result.week_type):
        message = format_change_set_for_chat(
            result.changes, result.week_type, result.period_start, result.period_end, ctx.clock(),
        )
        posted = await ctx.chat.post(message, ctx.config.slack_channel_id)
        result.chat_posted = is_ok(posted)
        if not result.chat_posted:
            logger.error(f"Chat notification failed: {posted.reason}")

        if not ctx.config.vendor_email:
            logger.error("VENDOR_EMAIL is not set; skipping order mail draft")
            return result

        attachments = []
        for key in group_dates_by_month([result.period_start, result.period_end]):
            exported = ctx.order_cards.export_xlsx(key)
            if exported is None:
                logger.error(f"Order card export failed for {key}")
                continue
            attachments.append(exported)
        if not attachments:
            logger.error("No order cards exported; skipping order mail draft")
            return result

        result.draft_id = ctx.mail.create_draft(
            ctx.config.vendor_email,
            order_email_subject(result.period_start, result.period_end),
            order_email_body(
                ctx.config.store_name,
                ctx.config.sender_name,
                format_quantity_changes(result.changes),
                is_change=True,
            ),
            attachments,
        )
        return result


async def detect_order_changes_and_notify(ctx: JobContext, today: Optional[date] = None) -> List[ChangeDetectionResult]:
    """Run change detection for the current and the next week.

    Never raises: collaborator failures end that week's detection, anything
    else ends the run; both are logged.
    """
    today = today or ctx.clock().date()
    results: List[ChangeDetectionResult] = []
    started = time.monotonic()

    with with_correlation(run_id=uuid.uuid4().hex[:12], job=JOB_NAME):
        log_job_start(JOB_NAME, today=today.isoformat())
        try:
            for week_type, weekdays in (("current", current_weekdays(today)), ("next", next_weekdays(today))):
                try:
                    detected = detect_week_changes(ctx, weekdays, week_type)
                    if detected is not None:
                        results.append(await notify_changes(ctx, detected))
                except ConnectorError as e:
                    logger.error(f"{week_type} week skipped after collaborator failure: {e}")
        except Exception as e:
            logger.exception("Change detection aborted")
            log_job_error(JOB_NAME, str(e))
            return results

        log_job_complete(
            JOB_NAME,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            weeks_changed=len(results),
        )
    return results
