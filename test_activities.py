"""
Job tests against in-memory collaborators.

Every job is a coroutine run with asyncio.run; ledger, menu book, order
cards, snapshots, chat and mailbox are the fakes from connectors.memory and
snapshots.store, and LLM extraction is patched at the job module.
"""

import asyncio
from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

TODAY = date(2025, 12, 16)  # Tuesday
CURRENT_WEEK = [date(2025, 12, d) for d in range(15, 20)]
NEXT_WEEK = [date(2025, 12, d) for d in range(22, 27)]

SETTINGS = {
    "VENDOR_EMAIL": "shop@example.com",
    "STORE_NAME": "Bento Shop",
    "SENDER_NAME": "Sato",
    "SLACK_CHANNEL_ID": "C123",
    "GENERAL_AFFAIRS_NAME": "Suzuki",
    "GENERAL_AFFAIRS_EMAIL": "soumu@example.com",
    "GMAIL_QUERY_INVOICE": "subject:請求書",
    "GMAIL_QUERY_MENU": "subject:メニュー",
    "OPENAI_API_KEY": "sk-test",
    "PRICE_1_8": "700",
    "PRICE_9_13": "680",
    "PRICE_14_PLUS": "650",
}


def rec(d, person, size="regular", count=1):
    from core.models import OrderRecord
    return OrderRecord(date=d, person=person, size=size, count=count)


def sent(*weeks):
    """Mailbox threads that make the order mail for each week look sent."""
    from connectors.base import MailThread, build_order_email_query
    return {
        build_order_email_query(week[0], week[-1]): [MailThread(id=f"sent-{week[0]}")]
        for week in weeks
    }


def make_context(
    tmp_path,
    records=(),
    menu=(),
    threads=None,
    months=("2025.12",),
    settings=None,
    chat_fail=False,
    now=datetime(2025, 12, 16, 9, 0),
):
    from activities import JobContext
    from connectors.memory import (
        InMemoryLedger,
        InMemoryMailbox,
        InMemoryMenuBook,
        InMemoryOrderCards,
        RecordingChat,
    )
    from core.config import AppConfig
    from snapshots.store import InMemorySnapshotStore

    values = dict(SETTINGS if settings is None else settings)
    values["ARTIFACTS_DIR"] = str(tmp_path / "artifacts")
    return JobContext(
        config=AppConfig.from_mapping(values),
        ledger=InMemoryLedger(records),
        menu_book=InMemoryMenuBook(menu),
        order_cards=InMemoryOrderCards(months),
        snapshots=InMemorySnapshotStore(),
        chat=RecordingChat(fail=chat_fail),
        mail=InMemoryMailbox(threads or {}),
        now=now,
    )


# =============================================================================
# Change detection
# =============================================================================

class TestDetectChanges:
    """detect_order_changes_and_notify over the current and next week."""

    def test_not_sent_does_nothing(self, tmp_path):
        from activities import detect_order_changes_and_notify

        ctx = make_context(tmp_path, records=[rec(CURRENT_WEEK[1], "Taro")])
        assert asyncio.run(detect_order_changes_and_notify(ctx, TODAY)) == []
        assert ctx.snapshots.period_keys() == []
        assert ctx.chat.messages == []

    def test_first_run_creates_snapshot(self, tmp_path):
        from activities import detect_order_changes_and_notify

        ctx = make_context(tmp_path, records=[rec(CURRENT_WEEK[1], "Taro")], threads=sent(CURRENT_WEEK))
        assert asyncio.run(detect_order_changes_and_notify(ctx, TODAY)) == []
        assert [r.person for r in ctx.snapshots.load("2025.12.15-12.19")] == ["Taro"]
        assert ctx.chat.messages == []
        assert ctx.mail.drafts == []

    def test_first_run_without_orders_saves_nothing(self, tmp_path):
        from activities import detect_order_changes_and_notify

        ctx = make_context(tmp_path, threads=sent(CURRENT_WEEK))
        asyncio.run(detect_order_changes_and_notify(ctx, TODAY))
        assert ctx.snapshots.load("2025.12.15-12.19") is None

    def test_no_changes(self, tmp_path):
        from activities import detect_order_changes_and_notify

        records = [rec(CURRENT_WEEK[1], "Taro")]
        ctx = make_context(tmp_path, records=records, threads=sent(CURRENT_WEEK))
        ctx.snapshots.save("2025.12.15-12.19", records)

        assert asyncio.run(detect_order_changes_and_notify(ctx, TODAY)) == []
        assert ctx.chat.messages == []
        assert ctx.order_cards.grids["2025.12"].cells == {}

    def test_changes_committed_and_notified(self, tmp_path):
        from activities import detect_order_changes_and_notify

        tue = CURRENT_WEEK[1]
        previous = [rec(tue, "Taro"), rec(tue, "Hanako", "大盛")]
        current = [rec(tue, "Taro"), rec(tue, "Jiro", "大盛"), rec(tue, "Ken", "小盛")]
        ctx = make_context(tmp_path, records=current, threads=sent(CURRENT_WEEK))
        ctx.snapshots.save("2025.12.15-12.19", previous)

        results = asyncio.run(detect_order_changes_and_notify(ctx, TODAY))

        assert len(results) == 1
        result = results[0]
        assert result.week_type == "current"
        assert result.period_key == "2025.12.15-12.19"
        assert sorted(e.person for e in result.changes.added) == ["Jiro", "Ken"]
        assert [e.person for e in result.changes.cancelled] == ["Hanako"]
        assert result.months_written == ["2025.12"]
        assert result.chat_posted is True
        assert result.draft_id == "draft-1"

        # snapshot replaced with the current orders
        assert sorted(r.person for r in ctx.snapshots.load("2025.12.15-12.19")) == ["Jiro", "Ken", "Taro"]

        # week 3 block, Tuesday column: large 1, regular 1, small 1
        assert ctx.order_cards.grids["2025.12"].cells == {(18, 6): 1, (19, 6): 1, (20, 6): 1}

        message = ctx.chat.messages[0]
        assert "今週のお弁当注文に変更がありました" in message
        assert "• 12/16(火) Jiro 大盛 ×1" in message
        assert "• 12/16(火) Hanako 大盛 ×1" in message

        draft = ctx.mail.drafts[0]
        assert draft["to"] == "shop@example.com"
        assert draft["subject"] == "12/15~12/19のお弁当について"
        assert "【数量変更】\n12/16(火) 小盛0個 → 1個" in draft["body"]
        assert [a.name for a in draft["attachments"]] == ["OrderCard2025.12.xlsx"]

    def test_chat_failure_still_drafts(self, tmp_path):
        from activities import detect_order_changes_and_notify

        ctx = make_context(
            tmp_path, records=[rec(NEXT_WEEK[0], "Jiro")], threads=sent(NEXT_WEEK), chat_fail=True,
        )
        ctx.snapshots.save("2025.12.22-12.26", [rec(NEXT_WEEK[0], "Taro")])

        results = asyncio.run(detect_order_changes_and_notify(ctx, TODAY))
        assert [r.week_type for r in results] == ["next"]
        assert results[0].chat_posted is False
        assert results[0].draft_id is not None

    def test_missing_vendor_email_skips_draft(self, tmp_path):
        from activities import detect_order_changes_and_notify

        settings = {k: v for k, v in SETTINGS.items() if k != "VENDOR_EMAIL"}
        ctx = make_context(
            tmp_path, records=[rec(CURRENT_WEEK[0], "Jiro")], threads=sent(CURRENT_WEEK), settings=settings,
        )
        ctx.snapshots.save("2025.12.15-12.19", [rec(CURRENT_WEEK[0], "Taro")])

        results = asyncio.run(detect_order_changes_and_notify(ctx, TODAY))
        assert results[0].chat_posted is True
        assert results[0].draft_id is None
        assert ctx.mail.drafts == []

    def test_ledger_failure_skips_week_only(self, tmp_path):
        """A collaborator error on one week does not stop the other."""
        from activities import detect_order_changes_and_notify
        from connectors.base import SheetAccessError

        ctx = make_context(tmp_path, records=[rec(NEXT_WEEK[0], "Jiro")], threads=sent(CURRENT_WEEK, NEXT_WEEK))
        ctx.snapshots.save("2025.12.22-12.26", [rec(NEXT_WEEK[0], "Taro")])
        real_get = ctx.ledger.get_orders_for_dates

        def flaky(dates):
            dates = list(dates)
            if dates[0] == CURRENT_WEEK[0]:
                raise SheetAccessError("quota exceeded", 429)
            return real_get(dates)

        ctx.ledger.get_orders_for_dates = flaky
        results = asyncio.run(detect_order_changes_and_notify(ctx, TODAY))
        assert [r.week_type for r in results] == ["next"]

    def test_unexpected_error_does_not_raise(self, tmp_path):
        from activities import detect_order_changes_and_notify

        ctx = make_context(tmp_path, threads=sent(CURRENT_WEEK))

        def broken(dates):
            raise KeyError("column")

        ctx.ledger.get_orders_for_dates = broken
        assert asyncio.run(detect_order_changes_and_notify(ctx, TODAY)) == []


# =============================================================================
# Weekly order
# =============================================================================

class TestWeeklyOrder:
    """process_weekly_orders."""

    def menu(self, *dates):
        from core.models import MenuItem
        return [MenuItem(date=d, store_name="Bento Shop", menu="日替わり") for d in dates]

    def test_find_order_week(self, tmp_path):
        from activities import find_order_week

        ctx = make_context(tmp_path, menu=self.menu(date(2025, 12, 30)))
        assert find_order_week(ctx, TODAY) == [
            date(2025, 12, 29), date(2025, 12, 30), date(2025, 12, 31), date(2026, 1, 1), date(2026, 1, 2),
        ]
        assert find_order_week(make_context(tmp_path), TODAY) is None

    def test_drafts_order_and_saves_snapshot(self, tmp_path):
        from activities import process_weekly_orders

        records = [rec(NEXT_WEEK[0], "Taro", "大盛"), rec(NEXT_WEEK[0], "Hanako"), rec(NEXT_WEEK[2], "Jiro", "小盛", 2)]
        ctx = make_context(tmp_path, records=records, menu=self.menu(*NEXT_WEEK))

        result = asyncio.run(process_weekly_orders(ctx, TODAY))

        assert result is not None
        assert result.period_key == "2025.12.22-12.26"
        assert result.order_count == 3
        assert result.draft_id == "draft-1"
        assert len(ctx.snapshots.load("2025.12.22-12.26")) == 3

        # week 4 block starts at row 23; Monday column 4, Wednesday column 8
        assert ctx.order_cards.grids["2025.12"].cells == {(23, 4): 1, (24, 4): 1, (25, 8): 2}

        draft = ctx.mail.drafts[0]
        assert draft["subject"] == "12/22~12/26のお弁当について"
        assert "次回のお弁当のオーダーカード" in draft["body"]
        assert "【数量変更】" not in draft["body"]
        assert len(draft["attachments"]) == 1

    def test_card_edit_listed_in_body(self, tmp_path):
        """Values already on the card show up as quantity changes."""
        from activities import process_weekly_orders

        ctx = make_context(tmp_path, records=[rec(NEXT_WEEK[0], "Taro", "大盛", 2)], menu=self.menu(*NEXT_WEEK))
        ctx.order_cards.grids["2025.12"].cells[(23, 4)] = 1

        asyncio.run(process_weekly_orders(ctx, TODAY))
        assert "【数量変更】\n12/22(月) 大盛1個 → 2個" in ctx.mail.drafts[0]["body"]

    def test_already_sent(self, tmp_path):
        from activities import process_weekly_orders

        ctx = make_context(
            tmp_path, records=[rec(NEXT_WEEK[0], "Taro")], menu=self.menu(*NEXT_WEEK), threads=sent(NEXT_WEEK),
        )
        assert asyncio.run(process_weekly_orders(ctx, TODAY)) is None
        assert ctx.mail.drafts == []
        assert ctx.snapshots.load("2025.12.22-12.26") is None

    def test_no_orders(self, tmp_path):
        from activities import process_weekly_orders

        ctx = make_context(tmp_path, menu=self.menu(*NEXT_WEEK))
        assert asyncio.run(process_weekly_orders(ctx, TODAY)) is None
        assert ctx.mail.drafts == []

    def test_missing_card_no_draft(self, tmp_path):
        from activities import process_weekly_orders

        ctx = make_context(tmp_path, records=[rec(NEXT_WEEK[0], "Taro")], menu=self.menu(*NEXT_WEEK), months=())
        assert asyncio.run(process_weekly_orders(ctx, TODAY)) is None
        assert ctx.snapshots.load("2025.12.22-12.26") is None

    def test_missing_vendor_email(self, tmp_path):
        from activities import process_weekly_orders

        settings = {k: v for k, v in SETTINGS.items() if k != "VENDOR_EMAIL"}
        ctx = make_context(tmp_path, records=[rec(NEXT_WEEK[0], "Taro")], menu=self.menu(*NEXT_WEEK), settings=settings)
        assert asyncio.run(process_weekly_orders(ctx, TODAY)) is None


# =============================================================================
# Invoices
# =============================================================================

def december_orders(count=20):
    days = [d for d in (date(2025, 12, n) for n in range(1, 32)) if d.weekday() < 5]
    return [rec(days[i % len(days)], f"P{i}") for i in range(count)]


def invoice_thread(thread_id="inv-1", starred=False, sent_at=datetime(2026, 1, 3, 10, 0), name="2025-12.pdf"):
    from connectors.base import MailMessage, MailThread
    from core.models import Attachment
    return MailThread(id=thread_id, starred=starred, messages=[MailMessage(
        id=f"{thread_id}-m1",
        thread_id=thread_id,
        subject="12月分ご請求書",
        sent_at=sent_at,
        attachments=[
            Attachment(name=name, content=b"%PDF-invoice"),
            Attachment(name="logo.png", content=b"png", mime_type="image/png"),
        ],
    )])


def invoice(total_count=20, total_amount=13000):
    from core.models import InvoiceSummary
    return InvoiceSummary(target_month="2025/12", total_count=total_count, total_amount=total_amount)


class TestInvoices:
    """process_invoices with extraction patched."""

    def run(self, ctx, extracted):
        from activities import process_invoices
        with patch("activities.invoices.extract_invoice_summary", return_value=extracted) as extract:
            outcomes = asyncio.run(process_invoices(ctx))
        return outcomes, extract

    def context(self, tmp_path, threads, **kwargs):
        return make_context(
            tmp_path,
            records=december_orders(),
            threads={"subject:請求書": threads},
            now=datetime(2026, 1, 5, 9, 0),
            **kwargs,
        )

    def test_match_drafts_approval(self, tmp_path):
        from activities import InvoiceStatus
        from core.result import Ok

        ctx = self.context(tmp_path, [invoice_thread()])
        outcomes, extract = self.run(ctx, Ok(invoice()))

        assert [o.status for o in outcomes] == [InvoiceStatus.DRAFTED]
        assert outcomes[0].target_month == "2025/12"
        assert extract.call_count == 1  # the PNG is not an invoice
        assert extract.call_args.args[0] == b"%PDF-invoice"

        draft = ctx.mail.drafts[0]
        assert draft["to"] == "soumu@example.com"
        assert draft["subject"] == "【お弁当代申請】2025/12分請求書"
        assert [a.name for a in draft["attachments"]] == ["2025-12.pdf"]
        assert ctx.chat.messages == []
        assert ctx.mail.processed == ["inv-1"]

        stored = Path(outcomes[0].stored_at)
        assert stored.read_bytes() == b"%PDF-invoice"
        assert (stored.parent / "2025-12.reconciliation.json").exists()

    def test_mismatch_alerts_never_approves(self, tmp_path):
        from activities import InvoiceStatus
        from core.result import Ok

        ctx = self.context(tmp_path, [invoice_thread()])
        outcomes, _ = self.run(ctx, Ok(invoice(total_amount=13600)))

        assert outcomes[0].status == InvoiceStatus.ALERTED
        assert outcomes[0].diffs == ["total_amount mismatch: invoice=13600, system=13000"]
        assert ctx.mail.drafts == []
        assert "請求書の金額不一致を検知しました" in ctx.chat.messages[0]

    def test_alert_failure_reported(self, tmp_path):
        from activities import InvoiceStatus
        from core.result import Ok

        ctx = self.context(tmp_path, [invoice_thread()], chat_fail=True)
        outcomes, _ = self.run(ctx, Ok(invoice(total_count=19)))
        assert outcomes[0].status == InvoiceStatus.ALERT_FAILED
        assert ctx.mail.drafts == []

    def test_extraction_failure_is_per_file(self, tmp_path):
        from activities import InvoiceStatus
        from core.result import Err

        ctx = self.context(tmp_path, [invoice_thread("inv-1"), invoice_thread("inv-2")])
        outcomes, _ = self.run(ctx, Err("LLM response is not JSON"))
        assert [o.status for o in outcomes] == [InvoiceStatus.EXTRACTION_FAILED] * 2
        assert ctx.mail.processed == ["inv-1", "inv-2"]

    def test_skips_starred_and_old(self, tmp_path):
        from core.result import Ok

        ctx = self.context(tmp_path, [
            invoice_thread("done", starred=True),
            invoice_thread("old", sent_at=datetime(2025, 11, 1, 10, 0)),
        ])
        outcomes, extract = self.run(ctx, Ok(invoice()))
        assert outcomes == []
        extract.assert_not_called()
        assert ctx.mail.processed == ["old"]

    def test_no_price_table(self, tmp_path):
        from activities import InvoiceStatus
        from core.result import Ok

        settings = {k: v for k, v in SETTINGS.items() if not k.startswith("PRICE_")}
        ctx = self.context(tmp_path, [invoice_thread()], settings=settings)
        outcomes, _ = self.run(ctx, Ok(invoice()))
        assert outcomes[0].status == InvoiceStatus.NO_PRICE_TABLE
        assert ctx.mail.drafts == [] and ctx.chat.messages == []

    def test_missing_settings(self, tmp_path):
        from core.result import Ok

        settings = {k: v for k, v in SETTINGS.items() if k != "OPENAI_API_KEY"}
        ctx = self.context(tmp_path, [invoice_thread()], settings=settings)
        outcomes, extract = self.run(ctx, Ok(invoice()))
        assert outcomes == []
        extract.assert_not_called()
        assert ctx.mail.processed == []

    def test_compute_system_summary(self, tmp_path):
        from activities import compute_system_summary

        ctx = make_context(tmp_path, records=december_orders(9) + [rec(date(2026, 1, 5), "Next")])
        summary = compute_system_summary(ctx, "2025/12")
        assert summary.total_count == 9
        assert summary.total_amount == 9 * 680


# =============================================================================
# Menus
# =============================================================================

def menu_items(month="2024/12"):
    from core.models import MenuItem
    return [
        MenuItem(date=f"{month}/02", store_name="Bento Shop", menu="鮭弁当"),
        MenuItem(date=f"{month}/03", store_name="Bento Shop", menu="唐揚げ弁当"),
    ]


class TestMenus:
    """process_menu_pdfs and save_menu_attachments."""

    def test_ingests_and_renames(self, tmp_path):
        from activities import process_menu_pdfs
        from core.result import Ok

        inbox = tmp_path / "menus"
        inbox.mkdir()
        (inbox / "2024.12.pdf").write_bytes(b"%PDF-menu")
        (inbox / "2024.11_processed.pdf").write_bytes(b"%PDF-old")
        (inbox / "menu.pdf").write_bytes(b"%PDF-unknown")

        ctx = make_context(tmp_path)
        with patch("activities.menus.extract_menu", return_value=Ok(menu_items())) as extract:
            results = asyncio.run(process_menu_pdfs(ctx, inbox, fetch_mail=False))

        assert [(r.file_name, r.processed_name, r.target_month, r.items_written) for r in results] == [
            ("2024.12.pdf", "2024.12_processed.pdf", "2024/12", 2),
        ]
        assert extract.call_count == 1
        assert extract.call_args.kwargs["year"] == "2024"
        assert extract.call_args.kwargs["month"] == "12"
        assert extract.call_args.kwargs["store_name"] == "Bento Shop"
        assert (inbox / "2024.12_processed.pdf").exists()
        assert not (inbox / "2024.12.pdf").exists()
        assert (inbox / "menu.pdf").exists()
        assert [i.menu for i in ctx.menu_book.items] == ["鮭弁当", "唐揚げ弁当"]

    def test_failed_extraction_leaves_file(self, tmp_path):
        from activities import process_menu_pdfs
        from core.result import Err

        inbox = tmp_path / "menus"
        inbox.mkdir()
        (inbox / "2024.12.pdf").write_bytes(b"%PDF-menu")

        ctx = make_context(tmp_path)
        with patch("activities.menus.extract_menu", return_value=Err("no dated menu entries extracted")):
            assert asyncio.run(process_menu_pdfs(ctx, inbox, fetch_mail=False)) == []
        assert (inbox / "2024.12.pdf").exists()
        assert ctx.menu_book.items == []

    def test_missing_api_key(self, tmp_path):
        from activities import process_menu_pdfs

        settings = {k: v for k, v in SETTINGS.items() if k != "OPENAI_API_KEY"}
        ctx = make_context(tmp_path, settings=settings)
        with patch("activities.menus.extract_menu") as extract:
            assert asyncio.run(process_menu_pdfs(ctx, tmp_path, fetch_mail=False)) == []
        extract.assert_not_called()

    def test_save_attachments(self, tmp_path):
        from activities import save_menu_attachments
        from connectors.base import MailMessage, MailThread
        from core.models import Attachment

        def thread(thread_id, name, starred=False):
            return MailThread(id=thread_id, starred=starred, messages=[MailMessage(
                id=f"{thread_id}-m1",
                thread_id=thread_id,
                attachments=[Attachment(name=name, content=b"%PDF-" + thread_id.encode())],
            )])

        inbox = tmp_path / "menus"
        inbox.mkdir()
        (inbox / "2024.11_processed.pdf").write_bytes(b"%PDF-old")

        ctx = make_context(tmp_path, threads={"subject:メニュー": [
            thread("new", "2024.12pdf.pdf"),
            thread("again", "2024.11.pdf"),
            thread("starred", "2025.01.pdf", starred=True),
        ]})
        saved = save_menu_attachments(ctx, inbox)

        assert [p.name for p in saved] == ["2024.12.pdf"]
        assert (inbox / "2024.12.pdf").read_bytes() == b"%PDF-new"
        assert not (inbox / "2025.01.pdf").exists()
        assert ctx.mail.processed == ["new", "again"]

    def test_fetch_then_ingest(self, tmp_path):
        from activities import process_menu_pdfs
        from connectors.base import MailMessage, MailThread
        from core.models import Attachment
        from core.result import Ok

        ctx = make_context(tmp_path, threads={"subject:メニュー": [MailThread(id="m", messages=[MailMessage(
            id="m1", thread_id="m", attachments=[Attachment(name="2024.12.pdf", content=b"%PDF")],
        )])]})
        with patch("activities.menus.extract_menu", return_value=Ok(menu_items())):
            results = asyncio.run(process_menu_pdfs(ctx))

        assert [r.processed_name for r in results] == ["2024.12_processed.pdf"]
        assert (tmp_path / "artifacts" / "menus" / "2024.12_processed.pdf").exists()

    def test_mail_fetch_error_does_not_escape(self, tmp_path):
        from activities import process_menu_pdfs

        ctx = make_context(tmp_path)
        with patch.object(ctx.mail, "search", side_effect=RuntimeError("token revoked")):
            assert asyncio.run(process_menu_pdfs(ctx, tmp_path / "menus")) == []

    def test_unwritable_inbox_still_ingests_existing_files(self, tmp_path):
        from activities import process_menu_pdfs
        from core.result import Ok

        inbox = tmp_path / "menus"
        inbox.mkdir()
        (inbox / "2024.12.pdf").write_bytes(b"%PDF-menu")

        ctx = make_context(tmp_path)
        with patch("activities.menus.save_menu_attachments", side_effect=OSError(28, "No space left on device")), \
                patch("activities.menus.extract_menu", return_value=Ok(menu_items())):
            results = asyncio.run(process_menu_pdfs(ctx, inbox))

        assert [r.processed_name for r in results] == ["2024.12_processed.pdf"]
