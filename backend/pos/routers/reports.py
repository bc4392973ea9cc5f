"""
pos/routers/reports.py - Sales reports (managers).

- GET /reports/sales?period=today|week|month|3months|6months|year
- GET /reports/sales/range?start=&end=
- GET /reports/trend?period=
- GET /reports/transactions?limit=&period=   recent sales with lines and payments (receipt lookup)
"""
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pos.core.deps import get_sales
from pos.core.security import require_manager
from pos.repositories.sales import SaleRepository
from pos.schemas.reports import Period, SalesReport, TrendPoint
from pos.schemas.transaction import ReceiptOut
from pos.services.reports import build_sales_report, period_start, sales_trend

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(require_manager)])


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.get("/sales", response_model=SalesReport, summary="Sales Report")
def sales_report(
    period: Period = Query("today", description="Look-back window"),
    sales: SaleRepository = Depends(get_sales),
):
    now = datetime.now(timezone.utc)
    start = period_start(period, now)
    txns = sales.list_transactions(start=start, end=now)
    return build_sales_report(txns, period=period, start_date=start, end_date=now)


@router.get("/sales/range", response_model=SalesReport, summary="Sales Report (custom range)")
def sales_report_range(
    start: datetime = Query(..., description="Inclusive start (ISO 8601)"),
    end: datetime = Query(..., description="Inclusive end (ISO 8601)"),
    sales: SaleRepository = Depends(get_sales),
):
    start, end = _utc(start), _utc(end)
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not be before start")
    txns = sales.list_transactions(start=start, end=end)
    return build_sales_report(txns, period="custom", start_date=start, end_date=end)


@router.get("/trend", response_model=List[TrendPoint], summary="Sales Trend")
def trend(
    period: Period = Query("week", description="Look-back window"),
    sales: SaleRepository = Depends(get_sales),
):
    now = datetime.now(timezone.utc)
    txns = sales.list_transactions(start=period_start(period, now), end=now)
    return sales_trend(txns, period)


@router.get("/transactions", response_model=List[ReceiptOut], summary="Recent Transactions")
def recent_transactions(
    limit: int = Query(50, ge=1, le=1000, description="Newest first, at most this many"),
    period: Optional[Period] = Query(None, description="Only sales inside this look-back window"),
    sales: SaleRepository = Depends(get_sales),
):
    start = period_start(period, datetime.now(timezone.utc)) if period else None
    return [ReceiptOut.from_transaction(t) for t in sales.list_transactions(start=start, limit=limit)]
