# pos/schemas/transaction.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pos.core.money import ZERO, DiscountType, round_money

# Known tender methods (id -> display name). Any other non-empty id is accepted as-is.
PAYMENT_METHODS: Dict[str, str] = {
    "cash": "Cash",
    "visa": "Visa",
    "mastercard": "Mastercard",
    "amex": "American Express",
    "debit": "Debit Card",
}


def method_display_name(method: str) -> str:
    return PAYMENT_METHODS.get(method, method.replace("_", " ").title())


class TenderEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = Field(..., min_length=1, description="cash | visa | mastercard | amex | debit | ...")
    amount: Decimal = Field(..., gt=0)

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def method_name(self) -> str:
        return method_display_name(self.method)


# Snapshot of one sold line
class FinalizedLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    name: str
    sku: str = ""
    unit_price: Decimal
    quantity: int = Field(..., ge=1)
    line_total: Decimal
    category_name: Optional[str] = None


class FinalizedTransaction(BaseModel):
    """Immutable completed-sale record; ownership passes to the sales repository."""
    model_config = ConfigDict(frozen=True)

    receipt_number: str
    completed_at: datetime
    cashier_id: Optional[str] = None
    lines: Tuple[FinalizedLine, ...]
    item_count: int
    subtotal: Decimal
    discount_type: DiscountType = DiscountType.AMOUNT
    discount_value: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_rate: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    tenders: Tuple[TenderEntry, ...]
    total_tendered: Decimal
    change_due: Decimal
    # set by the repository once stored
    transaction_id: Optional[str] = None


# ---------- API output ----------

class TenderOut(BaseModel):
    index: int
    method: str
    method_name: str
    amount: float


class PaymentOut(BaseModel):
    status: str
    amount_due: float
    total_tendered: float
    remaining_balance: float
    change_due: float
    can_finalize: bool
    tenders: List[TenderOut] = Field(default_factory=list)


class ReceiptLineOut(BaseModel):
    item_id: str
    name: str
    sku: str
    price: float
    quantity: int
    total: float


class ReceiptOut(BaseModel):
    transaction_id: Optional[str] = None
    receipt_number: str
    date: datetime
    cashier_id: Optional[str] = None
    items: List[ReceiptLineOut]
    item_count: int
    subtotal: float
    discount_amount: float
    tax: float
    total: float
    payments: List[TenderOut]
    change: float

    @classmethod
    def from_transaction(cls, txn: FinalizedTransaction) -> "ReceiptOut":
        return cls(
            transaction_id=txn.transaction_id,
            receipt_number=txn.receipt_number,
            date=txn.completed_at,
            cashier_id=txn.cashier_id,
            items=[
                ReceiptLineOut(
                    item_id=line.item_id,
                    name=line.name,
                    sku=line.sku,
                    price=float(round_money(line.unit_price)),
                    quantity=line.quantity,
                    total=float(round_money(line.line_total)),
                )
                for line in txn.lines
            ],
            item_count=txn.item_count,
            subtotal=float(round_money(txn.subtotal)),
            discount_amount=float(round_money(txn.discount_amount)),
            tax=float(round_money(txn.tax_amount)),
            total=float(round_money(txn.grand_total)),
            payments=[
                TenderOut(index=i, method=t.method, method_name=t.method_name, amount=float(round_money(t.amount)))
                for i, t in enumerate(txn.tenders)
            ],
            change=float(round_money(txn.change_due)),
        )
