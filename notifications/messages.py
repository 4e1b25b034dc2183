"""Plain-text chat and email bodies.

Vendor- and office-facing text is Japanese; sizes are shown with the
order-card labels (大盛/普通/小盛).
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from core.models import ChangeSet, InvoiceSummary, OrderChangeEntry, SizeCategory
from order_card.writer import CardChange
from orders.calendar import format_month_day_with_weekday, format_period
from orders.sizes import SIZE_LABELS, SIZE_ORDER
from reconciliation.engine import ReconciliationResult

WEEK_TYPE_LABELS = {"current": "今週", "next": "次回"}

ORDER_SUBJECT_SUFFIX = "のお弁当について"
ORDER_GREETING = "様\n\nいつもお世話になります。"
ORDER_BODY_MAIN = "次回のお弁当のオーダーカードを添付の通り送付させて頂きます。"
ORDER_CHANGE_BODY_MAIN = "ご注文内容に変更がありましたので、更新したオーダーカードを添付の通り送付させて頂きます。"
ORDER_CLOSING = "以上、よろしくお願いいたします。"


def _size_rank(size: SizeCategory) -> int:
    return SIZE_ORDER.index(size)


def _yen(amount: Optional[int]) -> str:
    return f"{amount or 0:,}円"


# =============================================================================
# Order changes (chat)
# =============================================================================

def _entry_line(entry: OrderChangeEntry) -> str:
    return (
        f"• {format_month_day_with_weekday(entry.date)} {entry.person} "
        f"{SIZE_LABELS[entry.size]} ×{entry.count}"
    )


def sort_entries(entries: Iterable[OrderChangeEntry]) -> List[OrderChangeEntry]:
    """By date, then size (large first), then person."""
    return sorted(entries, key=lambda e: (e.date, _size_rank(e.size), e.person))


def format_change_set_for_chat(
    changes: ChangeSet,
    week_type: str,
    start: date,
    end: date,
    detected_at: Optional[datetime] = None,
) -> str:
    detected_at = detected_at or datetime.now()
    label = WEEK_TYPE_LABELS.get(week_type, week_type)
    lines = [
        f"🍱 *{label}のお弁当注文に変更がありました*",
        f"期間: {format_period(start, end)}",
        f"検知日時: {detected_at.strftime('%Y-%m-%d %H:%M:%S')}",
    ]

    if changes.added:
        lines.append("")
        lines.append(f"*■ 追加 ({len(changes.added)}件)*")
        lines.extend(_entry_line(e) for e in sort_entries(changes.added))

    if changes.cancelled:
        lines.append("")
        lines.append(f"*■ キャンセル ({len(changes.cancelled)}件)*")
        lines.extend(_entry_line(e) for e in sort_entries(changes.cancelled))

    quantity_lines = format_quantity_changes(changes)
    if quantity_lines:
        lines.append("")
        lines.append("*■ 数量の変化*")
        lines.append(quantity_lines)

    return "\n".join(lines)


# =============================================================================
# Vendor order email
# =============================================================================

def _quantity_line(d: date, size: SizeCategory, before: int, after: int) -> str:
    return f"{format_month_day_with_weekday(d)} {SIZE_LABELS[size]}{before}個 → {after}個"


def format_quantity_changes(changes: ChangeSet) -> str:
    """Net per-date/size changes of a ChangeSet, one line each."""
    ordered = sorted(changes.quantity_changes, key=lambda q: (q.date, _size_rank(q.size)))
    return "\n".join(_quantity_line(q.date, q.size, q.before, q.after) for q in ordered)


def format_card_changes(card_changes: Iterable[CardChange]) -> str:
    """Order-card cell changes, or "" when every previous value was zero (a new order)."""
    card_changes = list(card_changes)
    if not any(c.previous > 0 for c in card_changes):
        return ""
    ordered = sorted(card_changes, key=lambda c: (c.date, _size_rank(c.size)))
    return "\n".join(_quantity_line(c.date, c.size, c.previous, c.current) for c in ordered)


def order_email_subject(start: date, end: date) -> str:
    """e.g. 12/09~12/12のお弁当について"""
    return f"{start.month}/{start.day:02d}~{end.month}/{end.day:02d}{ORDER_SUBJECT_SUFFIX}"


def order_email_body(
    store_name: Optional[str],
    sender_name: Optional[str],
    quantity_text: str = "",
    is_change: bool = False,
) -> str:
    lines = [f"{store_name or ''}{ORDER_GREETING}"]
    if sender_name:
        lines.append(f"{sender_name}です。")
    lines.append("")
    lines.append(ORDER_CHANGE_BODY_MAIN if is_change else ORDER_BODY_MAIN)
    lines.append("")
    if quantity_text:
        lines.append("【数量変更】")
        lines.append(quantity_text)
        lines.append("")
    lines.append(ORDER_CLOSING)
    return "\n".join(lines)


# =============================================================================
# Invoices
# =============================================================================

def invoice_approval_subject(invoice: InvoiceSummary) -> str:
    return f"【お弁当代申請】{invoice.target_month}分請求書"


def invoice_approval_body(invoice: InvoiceSummary, recipient_name: Optional[str]) -> str:
    return (
        f"{recipient_name or ''}様\n\n"
        "お疲れ様です。\n"
        f"{invoice.target_month}分のお弁当代の請求書を受領しましたので、申請いたします。\n\n"
        "■請求内容\n"
        f"- 対象月: {invoice.target_month}\n"
        f"- 合計個数: {invoice.total_count}個\n"
        f"- 請求金額: {_yen(invoice.total_amount)}\n\n"
        "請求書PDFを添付しております。\n"
        "ご確認のほど、よろしくお願いいたします。"
    )


def _counts_line(summary: InvoiceSummary) -> str:
    return (
        f"大盛{summary.count_large} / 普通{summary.count_regular} / 小盛{summary.count_small}"
    )


def invoice_discrepancy_alert(result: ReconciliationResult, file_name: Optional[str] = None) -> str:
    invoice, system = result.invoice, result.system
    lines = [
        "⚠️ *請求書の金額不一致を検知しました*",
        "",
        "請求書の内容と、注文履歴の集計結果が一致しませんでした。",
        "確認をお願いします。",
    ]
    if file_name:
        lines.append(f"ファイル: {file_name}")
    lines += [
        "",
        "*■ 差異の内容*",
        *[f"• {diff}" for diff in result.diffs],
        "",
        "*■ 請求書データ*",
        f"対象月: {invoice.target_month}",
        f"内訳: {_counts_line(invoice)}",
        f"個数: {invoice.total_count}個",
        f"金額: {_yen(invoice.total_amount)}",
        "",
        "*■ システム集計データ*",
        f"対象月: {system.target_month}",
        f"内訳: {_counts_line(system)}",
        f"個数: {system.total_count}個",
        f"金額: {_yen(system.total_amount)}",
    ]
    return "\n".join(lines)
