from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from pos.core.errors import ItemNotFoundError, PersistenceFailure
from pos.schemas.inventory import InventoryItem, ItemCreate, ItemUpdate
from pos.services.cart_engine import CartEngine
from pos.services.checkout import CheckoutSession

TAX_RATE = Decimal("0.085")
FIXED_NOW = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


def make_item(item_id="item-1", name="Coffee", price="1.50", stock=10, sku=None, barcode=None, **extra) -> InventoryItem:
    return InventoryItem(
        item_id=item_id,
        name=name,
        sku=sku if sku is not None else item_id.upper(),
        unit_price=Decimal(str(price)),
        stock=stock,
        barcode=barcode,
        **extra,
    )


class FakeInventory:
    """In-memory stand-in for InventoryRepository."""

    def __init__(self, items=()):
        self.items: Dict[str, InventoryItem] = {it.item_id: it for it in items}
        self._seq = 0

    def get(self, item_id: str) -> Optional[InventoryItem]:
        return self.items.get(item_id)

    def find_by_sku(self, sku: str) -> Optional[InventoryItem]:
        return next((it for it in self.items.values() if it.sku == sku), None)

    def find_by_barcode(self, barcode: str) -> Optional[InventoryItem]:
        return next((it for it in self.items.values() if it.barcode == barcode), None)

    def lookup(self, code: str) -> Optional[InventoryItem]:
        return self.get(code) or self.find_by_sku(code) or self.find_by_barcode(code)

    def list_items(self) -> List[InventoryItem]:
        return sorted(self.items.values(), key=lambda it: it.name.lower())

    def search(self, query: str) -> List[InventoryItem]:
        term = query.lower()
        return [it for it in self.list_items() if term in it.name.lower() or term in it.sku.lower()]

    def low_stock(self, threshold: Optional[int] = None) -> List[InventoryItem]:
        return [it for it in self.list_items() if it.stock <= (threshold or 10)]

    def create(self, payload: ItemCreate) -> InventoryItem:
        self._seq += 1
        item = InventoryItem(
            item_id=f"new-{self._seq}",
            name=payload.name,
            sku=payload.sku or f"SKU{self._seq}",
            unit_price=payload.price,
            stock=payload.stock,
            barcode=payload.barcode,
            min_stock=payload.min_stock,
            category_name=payload.category_name,
        )
        self.items[item.item_id] = item
        return item

    def update(self, item_id: str, payload: ItemUpdate) -> InventoryItem:
        item = self.items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        patch = payload.model_dump(exclude_unset=True)
        if "price" in patch:
            patch["unit_price"] = patch.pop("price")
        item = item.model_copy(update=patch)
        self.items[item_id] = item
        return item

    def delete(self, item_id: str) -> None:
        if self.items.pop(item_id, None) is None:
            raise ItemNotFoundError(item_id)


class FakeSales:
    """In-memory stand-in for SaleRepository; `fail=True` simulates a write failure."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    def save(self, txn) -> str:
        if self.fail:
            raise PersistenceFailure("Failed to record transaction: backend unavailable")
        txn_id = f"txn-{len(self.saved) + 1}"
        self.saved.append(txn.model_copy(update={"transaction_id": txn_id}))
        return txn_id

    def list_transactions(self, start=None, end=None, limit=1000):
        return [
            t for t in sorted(self.saved, key=lambda t: t.completed_at, reverse=True)
            if (start is None or t.completed_at >= start) and (end is None or t.completed_at <= end)
        ][:limit]


@pytest.fixture
def engine():
    return CartEngine(TAX_RATE)


@pytest.fixture
def coffee():
    return make_item("item-1", "Coffee", "1.50", stock=5, barcode="12345678")


@pytest.fixture
def bagel():
    return make_item("item-2", "Bagel", "2.25", stock=3)


@pytest.fixture
def session(engine):
    return CheckoutSession(
        engine,
        cashier_id="cashier-1",
        receipt_ids=lambda now: "RCP20240315TEST0001",
        clock=lambda: FIXED_NOW,
    )
