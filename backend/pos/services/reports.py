"""
pos/services/reports.py - Reporting consumer over finalized transactions.

Aggregation runs over `FinalizedTransaction` records as returned by
`SaleRepository.list_transactions()`; nothing here talks to Firestore.
Sums stay in Decimal and are rounded once, when the report is built.
"""
from collections import OrderedDict
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pos.core.money import ZERO, round_money
from pos.schemas.reports import PaymentMethodTotal, SalesReport, TopItem, TrendPoint
from pos.schemas.transaction import FinalizedTransaction, method_display_name

TOP_ITEMS_LIMIT = 10

# look-back window per period; "today" starts at midnight instead
PERIOD_DAYS = {
    "week": 7,
    "month": 30,
    "3months": 90,
    "6months": 180,
    "year": 365,
}

# how many trend points a chart shows
_TREND_POINTS = {"today": 24, "week": 7}
_DEFAULT_TREND_POINTS = 15


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        return now - timedelta(days=PERIOD_DAYS[period])
    except KeyError:
        raise ValueError(f"Unknown report period: {period!r}") from None


def _money(value: Decimal) -> float:
    return float(round_money(value))


def empty_report(**meta) -> SalesReport:
    return SalesReport(**meta)


def build_sales_report(transactions: Iterable[FinalizedTransaction], **meta) -> SalesReport:
    """
    Summary of a set of completed sales:

    - total sales, transaction count, average ticket, total tax
    - totals and tender counts per payment method (first-seen order)
    - the ten best-selling items by quantity, with their revenue
    """
    txns = list(transactions)
    if not txns:
        return empty_report(**meta)

    total_sales = sum((t.grand_total for t in txns), ZERO)
    total_tax = sum((t.tax_amount for t in txns), ZERO)

    method_totals: Dict[str, Decimal] = OrderedDict()
    method_counts: Dict[str, int] = {}
    items: Dict[str, Dict] = OrderedDict()

    for txn in txns:
        for tender in txn.tenders:
            method_totals[tender.method] = method_totals.get(tender.method, ZERO) + tender.amount
            method_counts[tender.method] = method_counts.get(tender.method, 0) + 1
        for line in txn.lines:
            row = items.setdefault(line.name, {"quantity": 0, "revenue": ZERO})
            row["quantity"] += line.quantity
            row["revenue"] += line.unit_price * line.quantity

    payment_methods = [
        PaymentMethodTotal(
            method=method,
            method_name=method_display_name(method),
            total_amount=_money(amount),
            count=method_counts[method],
        )
        for method, amount in method_totals.items()
    ]

    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(items.items(), key=lambda kv: kv[1]["quantity"], reverse=True)
    top_items = [
        TopItem(name=name, total_quantity=row["quantity"], total_revenue=_money(row["revenue"]))
        for name, row in ranked[:TOP_ITEMS_LIMIT]
    ]

    return SalesReport(
        total_sales=_money(total_sales),
        transaction_count=len(txns),
        avg_transaction=_money(total_sales / len(txns)),
        total_tax=_money(total_tax),
        payment_methods=payment_methods,
        top_items=top_items,
        **meta,
    )


def _trend_label(moment: datetime, period: str) -> str:
    if period == "today":
        return f"{moment.hour}:00"
    if period == "week":
        return moment.strftime("%a")
    if period == "year":
        return moment.strftime("%b")
    return f"{moment.strftime('%b')} {moment.day}"


def sales_trend(
    transactions: Iterable[FinalizedTransaction],
    period: str,
    tz: Optional[tzinfo] = None,
) -> List[TrendPoint]:
    """Grand totals bucketed by hour (today), weekday (week), month (year) or day, oldest first."""
    buckets: Dict[str, Decimal] = OrderedDict()
    for txn in sorted(transactions, key=lambda t: t.completed_at):
        moment = txn.completed_at.astimezone(tz) if tz else txn.completed_at
        label = _trend_label(moment, period)
        buckets[label] = buckets.get(label, ZERO) + txn.grand_total

    points = [TrendPoint(label=label, value=_money(value)) for label, value in buckets.items()]
    return points[-_TREND_POINTS.get(period, _DEFAULT_TREND_POINTS):]
