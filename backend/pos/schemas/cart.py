"""
pos/schemas/cart.py - Pydantic models for the in-progress sale (cart lines and cart state).
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from pos.core.money import ZERO, DiscountType, round_money


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1, description="ID of the inventory item")
    name: str = Field(..., description="Name of the item")
    sku: str = Field("", description="SKU of the item")
    unit_price: Decimal = Field(..., ge=0, description="Price per unit at the time of adding to cart")
    quantity: int = Field(..., ge=1, description="Quantity of the item in the cart")
    available_stock: int = Field(..., ge=0, description="Stock snapshot taken when the line was created")
    barcode: Optional[str] = None
    category_name: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def exceeds_stock(self) -> bool:
        return self.quantity > self.available_stock


class CartState(BaseModel):
    """Cart aggregate. Derived amounts are only ever written by CartEngine."""
    model_config = ConfigDict(frozen=True)

    lines: Tuple[CartLine, ...] = ()
    discount_value: Decimal = Field(ZERO, ge=0)
    discount_type: DiscountType = DiscountType.AMOUNT
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    grand_total: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def discounted_subtotal(self) -> Decimal:
        return self.grand_total - self.tax_amount

    def line_for(self, item_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.item_id == item_id:
                return line
        return None

    def is_in_cart(self, item_id: str) -> bool:
        return self.line_for(item_id) is not None

    def quantity_of(self, item_id: str) -> int:
        line = self.line_for(item_id)
        return line.quantity if line else 0


# ---------- API output ----------

class CartLineOut(BaseModel):
    item_id: str
    name: str
    sku: str
    price: float
    quantity: int
    total: float
    available_stock: int


class CartOut(BaseModel):
    items: List[CartLineOut] = Field(default_factory=list)
    item_count: int = 0
    subtotal: float = 0.0
    discount: float = Field(0.0, description="Discount value as entered")
    discount_type: DiscountType = DiscountType.AMOUNT
    discount_amount: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    locked: bool = Field(False, description="True while the sale is being finalized")

    @classmethod
    def from_state(cls, state: CartState, locked: bool = False) -> "CartOut":
        return cls(
            items=[
                CartLineOut(
                    item_id=line.item_id,
                    name=line.name,
                    sku=line.sku,
                    price=float(round_money(line.unit_price)),
                    quantity=line.quantity,
                    total=float(round_money(line.line_total)),
                    available_stock=line.available_stock,
                )
                for line in state.lines
            ],
            item_count=state.item_count,
            subtotal=float(round_money(state.subtotal)),
            discount=float(state.discount_value),
            discount_type=state.discount_type,
            discount_amount=float(round_money(state.discount_amount)),
            tax=float(round_money(state.tax_amount)),
            total=float(round_money(state.grand_total)),
            locked=locked,
        )
