"""Weekly order job.

Finds the next week that has a menu, writes its orders onto the monthly
order card(s), drafts the order mail to the vendor with the cards attached,
and only then stores the snapshot used by change detection.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from activities.context import JobContext
from connectors.base import ConnectorError
from core.observability import get_logger, log_job_complete, log_job_error, log_job_start, with_correlation
from notifications.messages import format_card_changes, order_email_body, order_email_subject
from order_card.writer import CardChange, write_orders_by_month
from orders.aggregation import aggregate_by_date_and_size
from orders.calendar import generate_period_key, next_weekdays

logger = get_logger(__name__)

JOB_NAME = "weekly_order"
MAX_WEEKS_AHEAD = 4


@dataclass
class WeeklyOrderResult:
    """A drafted weekly order.

    Attributes:
        period_key: Snapshot key of the ordered week
        period_start: Monday of the week
        period_end: Friday of the week
        order_count: Ledger rows ordered for the week
        draft_id: Vendor mail draft id
        card_changes: Order-card cells changed, per YYYY.MM
    """
    period_key: str
    period_start: date
    period_end: date
    order_count: int
    draft_id: str
    card_changes: Dict[str, List[CardChange]] = field(default_factory=dict)


def find_order_week(ctx: JobContext, today: date) -> Optional[List[date]]:
    """Weekdays of the first week after today (up to four weeks ahead) with menu rows."""
    for offset in range(MAX_WEEKS_AHEAD):
        weekdays = next_weekdays(today + timedelta(weeks=offset))
        if ctx.menu_book.has_menu_for(weekdays):
            return weekdays
    return None


def place_weekly_order(ctx: JobContext, weekdays: List[date]) -> Optional[WeeklyOrderResult]:
    start, end = weekdays[0], weekdays[-1]
    period_key = generate_period_key(start, end)

    with with_correlation(period_key=period_key, week_type="next"):
        if ctx.mail.has_sent_order_email(start, end):
            logger.info(f"Order mail for {period_key} already sent; skipping")
            return None

        orders = ctx.ledger.get_orders_for_dates(weekdays)
        if not orders:
            logger.warning(f"No orders for {period_key}; nothing to send")
            return None

        card_changes = write_orders_by_month(ctx.order_cards, aggregate_by_date_and_size(orders), weekdays)
        if not card_changes:
            logger.error(f"No order card could be written for {period_key}")
            return None

        attachments = [a for a in (ctx.order_cards.export_xlsx(key) for key in card_changes) if a is not None]
        if not attachments:
            logger.error("No order cards exported; not drafting the order mail")
            return None

        all_changes = [c for changes in card_changes.values() for c in changes]
        draft_id = ctx.mail.create_draft(
            ctx.config.vendor_email,
            order_email_subject(start, end),
            order_email_body(ctx.config.store_name, ctx.config.sender_name, format_card_changes(all_changes)),
            attachments,
        )
        if not draft_id:
            logger.error("Order mail draft was not created; snapshot not saved")
            return None

        ctx.snapshots.save(period_key, orders)
        logger.info(f"Drafted order mail for {period_key}", extra_fields={"orders": len(orders)})

        return WeeklyOrderResult(
            period_key=period_key,
            period_start=start,
            period_end=end,
            order_count=len(orders),
            draft_id=draft_id,
            card_changes=card_changes,
        )


async def process_weekly_orders(ctx: JobContext, today: Optional[date] = None) -> Optional[WeeklyOrderResult]:
    """Draft next week's order. Returns None when nothing was drafted; never raises."""
    today = today or ctx.clock().date()
    started = time.monotonic()

    with with_correlation(run_id=uuid.uuid4().hex[:12], job=JOB_NAME):
        log_job_start(JOB_NAME, today=today.isoformat())

        missing = ctx.config.missing("vendor_email")
        if missing:
            log_job_error(JOB_NAME, f"missing settings: {', '.join(missing)}")
            return None

        try:
            weekdays = find_order_week(ctx, today)
            if weekdays is None:
                logger.info(f"No menu found within {MAX_WEEKS_AHEAD} weeks")
                result = None
            else:
                result = place_weekly_order(ctx, weekdays)
        except ConnectorError as e:
            log_job_error(JOB_NAME, f"collaborator failure: {e}")
            return None
        except Exception as e:
            logger.exception("Weekly order aborted")
            log_job_error(JOB_NAME, str(e))
            return None

        log_job_complete(
            JOB_NAME,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            drafted=result is not None,
        )
        return result
