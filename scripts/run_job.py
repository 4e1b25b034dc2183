"""Run one lunch-order job once.

Usage:
    python scripts/run_job.py weekly-order
    python scripts/run_job.py detect-changes --today 2025-12-16
    python scripts/run_job.py invoices
    python scripts/run_job.py menus --inbox ./artifacts/menus --no-mail

Scheduling is left to cron (or any other trigger); this script never
retries and always exits 0 unless configuration is unusable.
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from activities import (
    build_context,
    detect_order_changes_and_notify,
    process_invoices,
    process_menu_pdfs,
    process_weekly_orders,
)
from core.config import ConfigLoader
from core.observability import configure_logging, get_logger

JOBS = ("weekly-order", "detect-changes", "invoices", "menus")


async def run(job: str, ctx, today=None, inbox=None, fetch_mail=True):
    if job == "weekly-order":
        return await process_weekly_orders(ctx, today)
    if job == "detect-changes":
        return await detect_order_changes_and_notify(ctx, today)
    if job == "invoices":
        return await process_invoices(ctx)
    if job == "menus":
        return await process_menu_pdfs(ctx, inbox, fetch_mail=fetch_mail)
    raise ValueError(f"Unknown job: {job}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a lunch-order automation job once")
    parser.add_argument("job", choices=JOBS, help="Job to run")
    parser.add_argument("--today", type=date.fromisoformat, help="Override today's date (YYYY-MM-DD)")
    parser.add_argument("--inbox", type=Path, help="Menu PDF inbox directory (menus job)")
    parser.add_argument("--no-mail", action="store_true", help="Do not fetch menu mail (menus job)")
    parser.add_argument("--env-file", type=Path, help="Path to a .env file")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    args = parser.parse_args(argv)

    loader = ConfigLoader(args.env_file) if args.env_file else ConfigLoader()
    logger = get_logger("scripts.run_job")
    try:
        config = loader.get()
    except ValidationError as e:
        configure_logging(json_format=args.json_logs, force=True)
        logger.error(f"Cannot start {args.job}: invalid configuration: {e}")
        return 2
    configure_logging(level=config.log_level, json_format=args.json_logs or config.log_json, force=True)

    try:
        ctx = build_context(config)
    except (ValueError, RuntimeError) as e:
        logger.error(f"Cannot start {args.job}: {e}")
        return 2

    result = asyncio.run(run(args.job, ctx, args.today, args.inbox, not args.no_mail))
    logger.info(f"{args.job} finished", extra_fields={"result": repr(result)[:500]})
    return 0


if __name__ == "__main__":
    sys.exit(main())
