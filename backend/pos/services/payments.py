"""
pos/services/payments.py - Multi-tender payment reconciliation.

A `PaymentLedger` belongs to exactly one sale. Its status is derived from the
tenders and the amount due:

    EMPTY -> ACCUMULATING -> SATISFIED -> FINALIZED
                  ^              |
                  +--------------+   (a removed tender drops below the threshold)

FINALIZED is terminal; the checkout session starts a fresh ledger for the next sale.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pos.core.errors import (
    IncompletePaymentError,
    IndexOutOfRangeError,
    InvalidTenderError,
    PaymentFinalizedError,
)
from pos.core.money import ZERO, round_money, to_decimal
from pos.schemas.cart import CartState
from pos.schemas.transaction import FinalizedLine, FinalizedTransaction, TenderEntry
from pos.services.cart_engine import CartEngine

DEFAULT_TOLERANCE = Decimal("0.01")


class PaymentStatus(str, Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    SATISFIED = "satisfied"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class LedgerSnapshot:
    amount_due: Decimal
    tenders: Tuple[TenderEntry, ...]
    finalized: bool


class PaymentLedger:
    def __init__(self, amount_due=ZERO, tolerance=DEFAULT_TOLERANCE):
        self.amount_due = to_decimal(amount_due)
        self.tolerance = to_decimal(tolerance)
        self._tenders: List[TenderEntry] = []
        self._finalized = False

    @property
    def tenders(self) -> Tuple[TenderEntry, ...]:
        return tuple(self._tenders)

    @property
    def status(self) -> PaymentStatus:
        if self._finalized:
            return PaymentStatus.FINALIZED
        if not self._tenders:
            return PaymentStatus.EMPTY
        if self.can_finalize():
            return PaymentStatus.SATISFIED
        return PaymentStatus.ACCUMULATING

    # ---------- mutations ----------

    def set_amount_due(self, amount_due) -> None:
        self._ensure_open()
        self.amount_due = to_decimal(amount_due)

    def add_tender(self, method: str, amount) -> TenderEntry:
        self._ensure_open()
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidTenderError("Please enter a valid payment amount")
        if not method or not str(method).strip():
            raise InvalidTenderError("Please select a payment method")
        entry = TenderEntry(method=method, amount=amount)
        self._tenders.append(entry)
        return entry

    def add_exact_cash(self) -> TenderEntry:
        """Tender exactly the outstanding balance in cash."""
        self._ensure_open()
        remaining = self.remaining_balance()
        if remaining <= 0:
            raise InvalidTenderError("Nothing left to pay")
        return self.add_tender("cash", remaining)

    def remove_tender(self, index: int) -> TenderEntry:
        self._ensure_open()
        if index < 0 or index >= len(self._tenders):
            raise IndexOutOfRangeError(index, len(self._tenders))
        return self._tenders.pop(index)

    # ---------- derived reads ----------

    def total_tendered(self) -> Decimal:
        return sum((t.amount for t in self._tenders), ZERO)

    def remaining_balance(self) -> Decimal:
        return self.amount_due - self.total_tendered()

    def change_due(self) -> Decimal:
        return max(ZERO, self.total_tendered() - self.amount_due)

    def can_finalize(self) -> bool:
        return self.remaining_balance() <= self.tolerance

    def would_overpay(self, amount) -> bool:
        """True when `amount` exceeds a still-positive balance (worth a confirmation prompt)."""
        remaining = self.remaining_balance()
        return remaining > 0 and to_decimal(amount) > remaining

    # ---------- finalize ----------

    def finalize(
        self,
        cart: CartState,
        engine: CartEngine,
        receipt_ids: Callable[[datetime], str],
        cashier_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[FinalizedTransaction, CartState]:
        """
        Produce the completed-sale snapshot together with the cleared cart.
        Raises IncompletePaymentError (and changes nothing) while a balance remains.
        """
        self._ensure_open()
        remaining = cart.grand_total - self.total_tendered()
        if remaining > self.tolerance:
            raise IncompletePaymentError(round_money(remaining))

        completed_at = now or datetime.now(timezone.utc)
        txn = FinalizedTransaction(
            receipt_number=receipt_ids(completed_at),
            completed_at=completed_at,
            cashier_id=cashier_id,
            lines=tuple(
                FinalizedLine(
                    item_id=line.item_id,
                    name=line.name,
                    sku=line.sku,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                    category_name=line.category_name,
                )
                for line in cart.lines
            ),
            item_count=cart.item_count,
            subtotal=cart.subtotal,
            discount_type=cart.discount_type,
            discount_value=cart.discount_value,
            discount_amount=cart.discount_amount,
            tax_rate=engine.tax_rate,
            tax_amount=cart.tax_amount,
            grand_total=cart.grand_total,
            tenders=self.tenders,
            total_tendered=self.total_tendered(),
            change_due=max(ZERO, self.total_tendered() - cart.grand_total),
        )
        cleared = engine.clear_cart(cart)
        self.amount_due = cart.grand_total
        self._finalized = True
        return txn, cleared

    # ---------- rollback support ----------

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(self.amount_due, self.tenders, self._finalized)

    def restore(self, snap: LedgerSnapshot) -> None:
        self.amount_due = snap.amount_due
        self._tenders = list(snap.tenders)
        self._finalized = snap.finalized

    def _ensure_open(self) -> None:
        if self._finalized:
            raise PaymentFinalizedError()
