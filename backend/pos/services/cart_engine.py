"""
pos/services/cart_engine.py - Cart Engine: pure transitions over CartState.

`CartEngine.reduce(state, action)` is the single dispatch point; it never mutates
its input and recomputes every derived amount from the lines on each call, so
repeated edits cannot accumulate rounding drift.

Example
    engine = CartEngine(tax_rate=Decimal("0.085"))
    state = engine.add_item(CartState(), item)
    state = engine.set_discount(state, Decimal("10"), DiscountType.PERCENTAGE)
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple, Union

from pos.core.errors import EmptyCartError, InsufficientStockError, InvalidDiscountError, PosError
from pos.core.money import DiscountType, compute_totals, subtotal_of, to_decimal
from pos.schemas.cart import CartLine, CartState
from pos.schemas.inventory import InventoryItem


# ---------- actions ----------

@dataclass(frozen=True)
class AddItem:
    item: InventoryItem


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    item_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class SetDiscount:
    value: Decimal
    discount_type: DiscountType = DiscountType.AMOUNT


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart, SetDiscount]


class CartEngine:
    def __init__(self, tax_rate: Decimal):
        tax_rate = to_decimal(tax_rate)
        if tax_rate < 0:
            raise ValueError("tax_rate must be >= 0")
        self.tax_rate = tax_rate

    # ---------- dispatch ----------

    def reduce(self, state: CartState, action: CartAction) -> CartState:
        if isinstance(action, AddItem):
            return self._add(state, action.item)
        if isinstance(action, RemoveItem):
            return self._remove(state, action.item_id)
        if isinstance(action, UpdateQuantity):
            if action.quantity <= 0:
                return self._remove(state, action.item_id)
            return self._set_quantity(state, action.item_id, action.quantity)
        if isinstance(action, ClearCart):
            return CartState()
        if isinstance(action, SetDiscount):
            return self._set_discount(state, to_decimal(action.value), DiscountType(action.discount_type))
        raise TypeError(f"Unknown cart action: {action!r}")

    # ---------- convenience wrappers ----------

    def add_item(self, state: CartState, item: InventoryItem) -> CartState:
        return self.reduce(state, AddItem(item))

    def remove_item(self, state: CartState, item_id: str) -> CartState:
        return self.reduce(state, RemoveItem(item_id))

    def update_quantity(self, state: CartState, item_id: str, quantity: int) -> CartState:
        return self.reduce(state, UpdateQuantity(item_id, quantity))

    def clear_cart(self, state: CartState) -> CartState:
        return self.reduce(state, ClearCart())

    def set_discount(self, state: CartState, value, discount_type=DiscountType.AMOUNT) -> CartState:
        return self.reduce(state, SetDiscount(to_decimal(value), DiscountType(discount_type)))

    def empty(self) -> CartState:
        return CartState()

    # ---------- validation ----------

    @staticmethod
    def validate_for_checkout(state: CartState) -> List[PosError]:
        """Every violation found, in line order. Empty list means checkout may proceed."""
        if state.is_empty:
            return [EmptyCartError()]
        return [
            InsufficientStockError(line.item_id, line.name, line.quantity, line.available_stock)
            for line in state.lines
            if line.exceeds_stock
        ]

    # ---------- transitions ----------

    def _add(self, state: CartState, item: InventoryItem) -> CartState:
        if state.is_in_cart(item.item_id):
            lines = tuple(
                line.model_copy(update={"quantity": line.quantity + 1}) if line.item_id == item.item_id else line
                for line in state.lines
            )
        else:
            new_line = CartLine(
                item_id=item.item_id,
                name=item.name,
                sku=item.sku,
                unit_price=item.unit_price,
                quantity=1,
                available_stock=item.stock,
                barcode=item.barcode,
                category_name=item.category_name,
            )
            lines = state.lines + (new_line,)
        return self._recompute(lines, state.discount_value, state.discount_type)

    def _remove(self, state: CartState, item_id: str) -> CartState:
        if not state.is_in_cart(item_id):
            return state
        lines = tuple(line for line in state.lines if line.item_id != item_id)
        return self._recompute(lines, state.discount_value, state.discount_type)

    def _set_quantity(self, state: CartState, item_id: str, quantity: int) -> CartState:
        if not state.is_in_cart(item_id):
            return state
        lines = tuple(
            line.model_copy(update={"quantity": quantity}) if line.item_id == item_id else line
            for line in state.lines
        )
        return self._recompute(lines, state.discount_value, state.discount_type)

    def _set_discount(self, state: CartState, value: Decimal, discount_type: DiscountType) -> CartState:
        if value < 0:
            raise InvalidDiscountError("Discount cannot be negative")
        return self._recompute(state.lines, value, discount_type)

    def _recompute(
        self,
        lines: Tuple[CartLine, ...],
        discount_value: Decimal,
        discount_type: DiscountType,
    ) -> CartState:
        totals = compute_totals(
            subtotal_of((line.unit_price, line.quantity) for line in lines),
            discount_value,
            discount_type,
            self.tax_rate,
        )
        return CartState(
            lines=lines,
            discount_value=discount_value,
            discount_type=discount_type,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
            grand_total=totals.grand_total,
        )


__all__ = [
    "AddItem",
    "RemoveItem",
    "UpdateQuantity",
    "ClearCart",
    "SetDiscount",
    "CartAction",
    "CartEngine",
]
