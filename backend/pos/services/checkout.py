"""
pos/services/checkout.py - Orchestration around the Cart Engine and Payment Reconciliation.

One `CheckoutSession` holds the in-progress sale of one cashier. It is the only
place where the pure cart transitions and the payment ledger meet the outside
world (inventory lookups, the sales repository) and it owns the rules the pure
layers leave to their caller:

- stock checks when an item is added from the register,
- the discount policy (no negative values, percentage <= 100),
- lockout while a sale is being written, and the rollback when that write fails.

Endpoints run in a thread pool, so every transition happens under the session lock.
The slow repository write happens outside the lock with the session marked FINALIZING.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from pos.core.errors import (
    CartLockedError,
    CheckoutValidationError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidTenderError,
    ItemNotFoundError,
    OutOfStockError,
    PosError,
)
from pos.core.money import HUNDRED, ZERO, DiscountType, format_currency, to_decimal
from pos.schemas.cart import CartState
from pos.schemas.inventory import InventoryItem
from pos.schemas.transaction import FinalizedTransaction, TenderEntry
from pos.services.cart_engine import CartEngine
from pos.services.payments import DEFAULT_TOLERANCE, PaymentLedger
from pos.services.receipts import generate_receipt_number

logger = logging.getLogger("pos.checkout")


class InventoryLookup(Protocol):
    def lookup(self, code: str) -> Optional[InventoryItem]: ...


class SaleStore(Protocol):
    def save(self, txn: FinalizedTransaction) -> str: ...


class SessionStatus(str, Enum):
    OPEN = "open"
    FINALIZING = "finalizing"


class CheckoutSession:
    def __init__(
        self,
        engine: CartEngine,
        cashier_id: Optional[str] = None,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        receipt_ids: Callable[[datetime], str] = generate_receipt_number,
        clock: Optional[Callable[[], datetime]] = None,
        currency: str = "USD",
    ):
        self.engine = engine
        self.cashier_id = cashier_id
        self.tolerance = to_decimal(tolerance)
        self.receipt_ids = receipt_ids
        self.clock = clock
        self.currency = currency
        self.status = SessionStatus.OPEN
        self.last_sale: Optional[FinalizedTransaction] = None
        self.touched_at = datetime.now(timezone.utc)
        self._cart = engine.empty()
        self._ledger = PaymentLedger(ZERO, self.tolerance)
        self._lock = threading.Lock()

    @property
    def cart(self) -> CartState:
        return self._cart

    @property
    def ledger(self) -> PaymentLedger:
        return self._ledger

    @property
    def is_finalizing(self) -> bool:
        return self.status == SessionStatus.FINALIZING

    def _ensure_open(self) -> None:
        if self.status == SessionStatus.FINALIZING:
            raise CartLockedError()
        self.touched_at = datetime.now(timezone.utc)

    def _apply(self, transition: Callable[[CartState], CartState]) -> CartState:
        with self._lock:
            self._ensure_open()
            self._cart = transition(self._cart)
            self._ledger.set_amount_due(self._cart.grand_total)
            return self._cart

    # ---------- cart ----------

    def add_item(self, item: InventoryItem, enforce_stock: bool = True) -> CartState:
        """Add one unit. With enforce_stock the register refuses what the shelf cannot cover."""
        def transition(cart: CartState) -> CartState:
            if enforce_stock:
                if item.stock <= 0:
                    raise OutOfStockError(item.item_id, item.name)
                in_cart = cart.quantity_of(item.item_id)
                if in_cart >= item.stock:
                    raise InsufficientStockError(item.item_id, item.name, in_cart + 1, item.stock)
            return self.engine.add_item(cart, item)

        return self._apply(transition)

    def scan(self, code: str, inventory: InventoryLookup, enforce_stock: bool = True) -> CartState:
        item = inventory.lookup(code)
        if item is None:
            raise ItemNotFoundError(code)
        return self.add_item(item, enforce_stock=enforce_stock)

    def remove_item(self, item_id: str) -> CartState:
        return self._apply(lambda cart: self.engine.remove_item(cart, item_id))

    def update_quantity(self, item_id: str, quantity: int) -> CartState:
        return self._apply(lambda cart: self.engine.update_quantity(cart, item_id, quantity))

    def clear_cart(self) -> CartState:
        return self._apply(self.engine.clear_cart)

    def apply_discount(self, value, discount_type=DiscountType.AMOUNT) -> CartState:
        value = to_decimal(value)
        discount_type = DiscountType(discount_type)
        if value < 0:
            raise InvalidDiscountError("Please enter a valid discount amount")
        if discount_type == DiscountType.PERCENTAGE and value > HUNDRED:
            raise InvalidDiscountError("Percentage discount cannot exceed 100%")
        return self._apply(lambda cart: self.engine.set_discount(cart, value, discount_type))

    def remove_discount(self) -> CartState:
        return self._apply(lambda cart: self.engine.set_discount(cart, ZERO, DiscountType.AMOUNT))

    def validate(self) -> List[PosError]:
        return self.engine.validate_for_checkout(self._cart)

    # ---------- tenders ----------

    def add_tender(self, method: str, amount, allow_overpay: bool = True) -> TenderEntry:
        with self._lock:
            self._ensure_open()
            if not allow_overpay and self._ledger.would_overpay(amount):
                raise InvalidTenderError("Payment amount exceeds the remaining balance")
            return self._ledger.add_tender(method, amount)

    def add_exact_cash(self) -> TenderEntry:
        with self._lock:
            self._ensure_open()
            return self._ledger.add_exact_cash()

    def remove_tender(self, index: int) -> TenderEntry:
        with self._lock:
            self._ensure_open()
            return self._ledger.remove_tender(index)

    # ---------- completion ----------

    def finalize(self, sales: SaleStore) -> FinalizedTransaction:
        """
        Validate, snapshot, write, then clear. If the write fails the cart and the
        tenders are exactly as they were and the error propagates (retryable).
        """
        with self._lock:
            self._ensure_open()
            violations = self.validate()
            if violations:
                raise CheckoutValidationError(violations)
            cart_before = self._cart
            ledger_before = self._ledger.snapshot()
            now = self.clock() if self.clock else None
            txn, cleared = self._ledger.finalize(
                cart_before, self.engine, self.receipt_ids, cashier_id=self.cashier_id, now=now,
            )
            self.status = SessionStatus.FINALIZING

        try:
            transaction_id = sales.save(txn)
        except Exception as exc:
            with self._lock:
                self._cart = cart_before
                self._ledger.restore(ledger_before)
                self.status = SessionStatus.OPEN
            logger.warning("Sale %s rolled back: %s", txn.receipt_number, exc)
            raise

        txn = txn.model_copy(update={"transaction_id": transaction_id})
        with self._lock:
            self._cart = cleared
            self._ledger = PaymentLedger(ZERO, self.tolerance)
            self.status = SessionStatus.OPEN
            self.last_sale = txn
        logger.info(
            "Sale %s completed by %s: %s", txn.receipt_number, self.cashier_id, format_currency(txn.grand_total, self.currency),
        )
        return txn

    def abandon(self) -> None:
        """Drop the sale in progress: empty cart, fresh ledger."""
        with self._lock:
            self._ensure_open()
            self._cart = self.engine.empty()
            self._ledger = PaymentLedger(ZERO, self.tolerance)


class SessionRegistry:
    """One in-progress sale per cashier."""

    def __init__(self, factory: Callable[[str], CheckoutSession]):
        self._factory = factory
        self._sessions: Dict[str, CheckoutSession] = {}
        self._lock = threading.Lock()

    def get(self, cashier_id: str) -> CheckoutSession:
        with self._lock:
            session = self._sessions.get(cashier_id)
            if session is None:
                session = self._factory(cashier_id)
                self._sessions[cashier_id] = session
            return session

    def drop(self, cashier_id: str) -> None:
        with self._lock:
            self._sessions.pop(cashier_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def prune_idle(self, max_idle: timedelta, now: Optional[datetime] = None) -> int:
        """Forget sales nobody touched for `max_idle`. Sessions being finalized are kept."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            stale = [
                cashier_id for cashier_id, session in self._sessions.items()
                if not session.is_finalizing and now - session.touched_at > max_idle
            ]
            for cashier_id in stale:
                del self._sessions[cashier_id]
        if stale:
            logger.info("Dropped %s idle checkout session(s)", len(stale))
        return len(stale)
