import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import FIXED_NOW, FakeInventory, FakeSales, make_item
from pos.core.errors import (
    CartLockedError,
    CheckoutValidationError,
    EmptyCartError,
    IncompletePaymentError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidTenderError,
    ItemNotFoundError,
    OutOfStockError,
    PersistenceFailure,
)
from pos.core.money import DiscountType
from pos.services.cart_engine import CartEngine
from pos.services.checkout import CheckoutSession, SessionRegistry, SessionStatus
from pos.services.payments import PaymentStatus


def test_adding_keeps_amount_due_in_sync(session, coffee):
    session.add_item(coffee)
    session.add_item(coffee)
    assert session.cart.subtotal == Decimal("3.00")
    assert session.ledger.amount_due == session.cart.grand_total


def test_add_out_of_stock_item(session):
    with pytest.raises(OutOfStockError):
        session.add_item(make_item("gone", stock=0))
    assert session.cart.is_empty


def test_add_past_available_stock(session, bagel):
    for _ in range(3):
        session.add_item(bagel)
    with pytest.raises(InsufficientStockError) as exc:
        session.add_item(bagel)
    assert exc.value.requested == 4
    assert session.cart.quantity_of("item-2") == 3


def test_stock_check_can_be_skipped(session, bagel):
    for _ in range(4):
        session.add_item(bagel, enforce_stock=False)
    assert session.cart.quantity_of("item-2") == 4


def test_scan_resolves_barcode(session, coffee):
    inventory = FakeInventory([coffee])
    session.scan("12345678", inventory)
    assert session.cart.quantity_of("item-1") == 1


def test_scan_unknown_code(session):
    with pytest.raises(ItemNotFoundError):
        session.scan("00000000", FakeInventory())


def test_discount_policy(session, coffee):
    session.add_item(coffee)
    with pytest.raises(InvalidDiscountError):
        session.apply_discount(Decimal("101"), DiscountType.PERCENTAGE)
    with pytest.raises(InvalidDiscountError):
        session.apply_discount(Decimal("-1"))
    session.apply_discount(Decimal("100"), DiscountType.PERCENTAGE)
    assert session.cart.grand_total == Decimal("0")
    session.remove_discount()
    assert session.cart.discount_amount == Decimal("0")


def test_finalize_empty_cart(session):
    with pytest.raises(CheckoutValidationError) as exc:
        session.finalize(FakeSales())
    assert isinstance(exc.value.errors[0], EmptyCartError)


def test_finalize_blocked_by_stock(session):
    session.add_item(make_item("milk", name="Milk", stock=5))
    session.update_quantity("milk", 6)
    session.add_tender("cash", Decimal("100"))
    with pytest.raises(CheckoutValidationError) as exc:
        session.finalize(FakeSales())
    assert len(exc.value.errors) == 1
    assert exc.value.errors[0].item_id == "milk"


def test_finalize_requires_full_payment(session, coffee):
    session.add_item(coffee)
    with pytest.raises(IncompletePaymentError):
        session.finalize(FakeSales())
    assert session.status == SessionStatus.OPEN


def test_overpay_can_be_refused(session, coffee):
    session.add_item(coffee)
    with pytest.raises(InvalidTenderError):
        session.add_tender("cash", Decimal("2"), allow_overpay=False)
    assert session.ledger.tenders == ()

    session.add_tender("visa", Decimal("1"), allow_overpay=False)
    with pytest.raises(InvalidTenderError):
        session.add_tender("cash", Decimal("1"), allow_overpay=False)
    session.add_tender("cash", Decimal("1"))
    assert session.ledger.change_due() == Decimal("0.3725")


def test_successful_checkout_clears_cart_and_starts_fresh_ledger(session, coffee):
    sales = FakeSales()
    session.add_item(coffee)
    session.add_tender("cash", Decimal("5"))
    old_ledger = session.ledger

    txn = session.finalize(sales)

    assert txn.transaction_id == "txn-1"
    assert txn.receipt_number == "RCP20240315TEST0001"
    assert txn.completed_at == FIXED_NOW
    assert txn.cashier_id == "cashier-1"
    assert sales.saved[0].grand_total == Decimal("1.6275")
    assert session.cart.is_empty
    assert session.ledger is not old_ledger
    assert session.ledger.status == PaymentStatus.EMPTY
    assert session.last_sale == txn
    assert session.status == SessionStatus.OPEN


def test_persistence_failure_rolls_back(session, coffee, bagel):
    session.add_item(coffee)
    session.add_item(bagel)
    session.apply_discount(Decimal("10"), DiscountType.PERCENTAGE)
    session.add_tender("visa", Decimal("3"))
    session.add_tender("cash", Decimal("2"))
    cart_before = session.cart
    tenders_before = session.ledger.tenders

    with pytest.raises(PersistenceFailure) as exc:
        session.finalize(FakeSales(fail=True))

    assert exc.value.retryable
    assert session.cart == cart_before
    assert session.ledger.tenders == tenders_before
    assert session.ledger.status == PaymentStatus.SATISFIED
    assert session.status == SessionStatus.OPEN

    # retry succeeds with the same sale
    txn = session.finalize(FakeSales())
    assert txn.grand_total == cart_before.grand_total


class BlockingSales(FakeSales):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def save(self, txn):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().save(txn)


def test_mutations_are_locked_while_finalizing(session, coffee):
    session.add_item(coffee)
    session.add_exact_cash()
    sales = BlockingSales()
    worker = threading.Thread(target=session.finalize, args=(sales,))
    worker.start()
    try:
        assert sales.entered.wait(timeout=5)
        assert session.is_finalizing
        with pytest.raises(CartLockedError):
            session.add_item(coffee)
        with pytest.raises(CartLockedError):
            session.add_tender("cash", Decimal("1"))
        with pytest.raises(CartLockedError):
            session.clear_cart()
        with pytest.raises(CartLockedError):
            session.finalize(FakeSales())
    finally:
        sales.release.set()
        worker.join(timeout=5)
    assert session.cart.is_empty
    assert len(sales.saved) == 1


def test_abandon_discards_sale(session, coffee):
    session.add_item(coffee)
    session.add_tender("cash", Decimal("1"))
    session.abandon()
    assert session.cart.is_empty
    assert session.ledger.tenders == ()


def _factory(cashier_id):
    return CheckoutSession(CartEngine(Decimal("0.085")), cashier_id=cashier_id)


def test_registry_keeps_one_session_per_cashier():
    registry = SessionRegistry(_factory)
    first = registry.get("a")
    assert registry.get("a") is first
    assert registry.get("b") is not first
    assert len(registry) == 2
    registry.drop("a")
    assert registry.get("a") is not first


def test_registry_prunes_idle_sessions():
    registry = SessionRegistry(_factory)
    stale = registry.get("a")
    fresh = registry.get("b")
    fresh.add_item(make_item("x"))
    stale.touched_at = fresh.touched_at - timedelta(hours=3)

    dropped = registry.prune_idle(timedelta(hours=2), now=fresh.touched_at + timedelta(minutes=1))

    assert dropped == 1
    assert registry.get("b") is fresh
    assert registry.get("a") is not stale
