# pos/schemas/reports.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Period = Literal["today", "week", "month", "3months", "6months", "year"]


class PaymentMethodTotal(BaseModel):
    method: str
    method_name: str
    total_amount: float
    count: int


class TopItem(BaseModel):
    name: str
    total_quantity: int
    total_revenue: float


class SalesReport(BaseModel):
    period: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_sales: float = 0.0
    transaction_count: int = 0
    avg_transaction: float = 0.0
    total_tax: float = 0.0
    payment_methods: List[PaymentMethodTotal] = Field(default_factory=list)
    top_items: List[TopItem] = Field(default_factory=list)


class TrendPoint(BaseModel):
    label: str
    value: float
