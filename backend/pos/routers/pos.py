"""
pos/routers/pos.py - Register endpoints: cart, tenders, checkout.

Each signed-in cashier has one sale in progress (`CheckoutSession`), kept in memory
by the `SessionRegistry`. Cart endpoints return the full priced cart so the client
never recomputes totals; payment endpoints return the ledger view.

Cart
- GET    /pos/cart
- POST   /pos/cart/items              {code} or {item_id}, one unit, refused past available stock
- PUT    /pos/cart/items/{item_id}    {quantity}, 0 or less removes the line
- DELETE /pos/cart/items/{item_id}
- DELETE /pos/cart
- PUT    /pos/cart/discount           {value, type}
- DELETE /pos/cart/discount
- GET    /pos/cart/validation         -> what would block checkout right now

Payment
- GET    /pos/payment
- POST   /pos/payment/tenders         {method, amount}
- POST   /pos/payment/tenders/exact-cash
- DELETE /pos/payment/tenders/{index}
- POST   /pos/checkout                -> receipt; 503 (retryable) leaves cart and tenders untouched
- POST   /pos/abandon

Errors are `PosError` subclasses rendered by the app-level handler.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pos.core.deps import get_inventory, get_registry, get_sales, get_session
from pos.core.errors import ItemNotFoundError
from pos.core.money import round_money
from pos.core.security import get_principal
from pos.repositories.inventory import InventoryRepository
from pos.repositories.sales import SaleRepository
from pos.schemas.cart import CartOut
from pos.schemas.pos import AddItemBody, DiscountBody, QuantityBody, TenderBody
from pos.schemas.principal import Principal
from pos.schemas.transaction import PaymentOut, ReceiptOut, TenderOut
from pos.services.checkout import CheckoutSession, SessionRegistry
from pos.services.payments import PaymentLedger

router = APIRouter(prefix="/pos", tags=["POS"], dependencies=[Depends(get_principal)])


class ValidationOut(BaseModel):
    ok: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)


def _cart_out(session: CheckoutSession) -> CartOut:
    return CartOut.from_state(session.cart, locked=session.is_finalizing)


def _payment_out(ledger: PaymentLedger) -> PaymentOut:
    return PaymentOut(
        status=ledger.status.value,
        amount_due=float(round_money(ledger.amount_due)),
        total_tendered=float(round_money(ledger.total_tendered())),
        remaining_balance=float(round_money(ledger.remaining_balance())),
        change_due=float(round_money(ledger.change_due())),
        can_finalize=ledger.can_finalize(),
        tenders=[
            TenderOut(index=i, method=t.method, method_name=t.method_name, amount=float(round_money(t.amount)))
            for i, t in enumerate(ledger.tenders)
        ],
    )


# ---------- cart ----------

@router.get("/cart", response_model=CartOut, summary="Current Cart")
def get_cart(session: CheckoutSession = Depends(get_session)):
    return _cart_out(session)


@router.post("/cart/items", response_model=CartOut, summary="Add Item")
def add_item(
    body: AddItemBody,
    session: CheckoutSession = Depends(get_session),
    inventory: InventoryRepository = Depends(get_inventory),
):
    if body.item_id:
        item = inventory.get(body.item_id)
        if item is None:
            raise ItemNotFoundError(body.item_id)
        session.add_item(item)
    else:
        session.scan(body.code, inventory)
    return _cart_out(session)


@router.put("/cart/items/{item_id}", response_model=CartOut, summary="Set Quantity")
def set_quantity(item_id: str, body: QuantityBody, session: CheckoutSession = Depends(get_session)):
    session.update_quantity(item_id, body.quantity)
    return _cart_out(session)


@router.delete("/cart/items/{item_id}", response_model=CartOut, summary="Remove Item")
def remove_item(item_id: str, session: CheckoutSession = Depends(get_session)):
    session.remove_item(item_id)
    return _cart_out(session)


@router.delete("/cart", response_model=CartOut, summary="Clear Cart")
def clear_cart(session: CheckoutSession = Depends(get_session)):
    session.clear_cart()
    return _cart_out(session)


@router.put("/cart/discount", response_model=CartOut, summary="Apply Discount")
def apply_discount(body: DiscountBody, session: CheckoutSession = Depends(get_session)):
    session.apply_discount(body.value, body.type)
    return _cart_out(session)


@router.delete("/cart/discount", response_model=CartOut, summary="Remove Discount")
def remove_discount(session: CheckoutSession = Depends(get_session)):
    session.remove_discount()
    return _cart_out(session)


@router.get("/cart/validation", response_model=ValidationOut, summary="Checkout Readiness")
def validate_cart(session: CheckoutSession = Depends(get_session)):
    errors = session.validate()
    return ValidationOut(ok=not errors, errors=[e.to_dict() for e in errors])


# ---------- payment ----------

@router.get("/payment", response_model=PaymentOut, summary="Payment Status")
def get_payment(session: CheckoutSession = Depends(get_session)):
    return _payment_out(session.ledger)


@router.post("/payment/tenders", response_model=PaymentOut, summary="Add Tender")
def add_tender(
    body: TenderBody,
    allow_overpay: bool = Query(True, description="False refuses an amount above the remaining balance"),
    session: CheckoutSession = Depends(get_session),
):
    session.add_tender(body.method, body.amount, allow_overpay=allow_overpay)
    return _payment_out(session.ledger)


@router.post("/payment/tenders/exact-cash", response_model=PaymentOut, summary="Exact Cash")
def add_exact_cash(session: CheckoutSession = Depends(get_session)):
    session.add_exact_cash()
    return _payment_out(session.ledger)


@router.delete("/payment/tenders/{index}", response_model=PaymentOut, summary="Remove Tender")
def remove_tender(index: int, session: CheckoutSession = Depends(get_session)):
    session.remove_tender(index)
    return _payment_out(session.ledger)


# ---------- completion ----------

@router.post("/checkout", response_model=ReceiptOut, summary="Complete Sale")
def checkout(
    session: CheckoutSession = Depends(get_session),
    sales: SaleRepository = Depends(get_sales),
):
    return ReceiptOut.from_transaction(session.finalize(sales))


@router.post("/abandon", response_model=CartOut, summary="Abandon Sale")
def abandon(
    principal: Principal = Depends(get_principal),
    session: CheckoutSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_registry),
):
    session.abandon()
    registry.drop(principal.uid)
    return _cart_out(session)
