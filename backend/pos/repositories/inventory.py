"""
pos/repositories/inventory.py - Firestore inventory lookup collaborator.

Items live in the (prefix-aware) `items` collection and are scoped by `userId`,
the Firebase uid of the store owner. Lookups return `InventoryItem` or None.
"""
import logging
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, FieldFilter
from pydantic import ValidationError

from pos.config import collection_name, get_db, get_settings
from pos.core.errors import ItemNotFoundError, PersistenceFailure
from pos.schemas.inventory import InventoryItem, ItemCreate, ItemUpdate
from pos.services.receipts import generate_sku

logger = logging.getLogger("pos.inventory")

ITEMS = "items"

# ItemCreate/ItemUpdate field -> Firestore field
_FIELD_MAP = {
    "name": "name",
    "sku": "sku",
    "barcode": "barcode",
    "price": "price",
    "stock": "stock",
    "min_stock": "minStock",
    "category_name": "categoryName",
    "tax_rate": "taxRate",
}


def _to_firestore(values: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in values.items():
        field = _FIELD_MAP.get(key)
        if field is None:
            continue
        # Firestore has no Decimal type
        if key in ("price", "tax_rate") and value is not None:
            value = float(value)
        out[field] = value
    return out


class InventoryRepository:
    def __init__(self, owner_id: str, db=None):
        self.owner_id = owner_id
        self.db = db if db is not None else get_db()

    @property
    def _items(self):
        return self.db.collection(collection_name(ITEMS))

    def _owned(self):
        return self._items.where(filter=FieldFilter("userId", "==", self.owner_id))

    def _to_item(self, snap) -> Optional[InventoryItem]:
        data = snap.to_dict() or {}
        try:
            return InventoryItem.from_doc(snap.id, data)
        except ValidationError as exc:
            logger.debug("Skip malformed item %s: %s", snap.id, exc)
            return None

    def _first(self, field: str, value: str) -> Optional[InventoryItem]:
        try:
            snaps = list(self._owned().where(filter=FieldFilter(field, "==", value)).limit(1).stream())
        except GoogleAPIError as exc:
            logger.exception("Inventory query on %s failed", field)
            raise PersistenceFailure(f"Inventory lookup failed: {exc}") from exc
        return self._to_item(snaps[0]) if snaps else None

    # ---------- lookup ----------

    def get(self, item_id: str) -> Optional[InventoryItem]:
        try:
            snap = self._items.document(item_id).get()
        except GoogleAPIError as exc:
            logger.exception("Inventory get %s failed", item_id)
            raise PersistenceFailure(f"Inventory lookup failed: {exc}") from exc
        if not snap.exists:
            return None
        if (snap.to_dict() or {}).get("userId") != self.owner_id:
            return None
        return self._to_item(snap)

    def find_by_sku(self, sku: str) -> Optional[InventoryItem]:
        return self._first("sku", sku)

    def find_by_barcode(self, barcode: str) -> Optional[InventoryItem]:
        return self._first("barcode", barcode)

    def lookup(self, code: str) -> Optional[InventoryItem]:
        """Resolve a scanned or typed code: document id, then SKU, then barcode."""
        code = (code or "").strip()
        if not code:
            return None
        # document ids cannot contain "/"
        if "/" not in code:
            item = self.get(code)
            if item:
                return item
        return self.find_by_sku(code) or self.find_by_barcode(code)

    def list_items(self) -> List[InventoryItem]:
        try:
            snaps = list(self._owned().stream())
        except GoogleAPIError as exc:
            logger.exception("Inventory list failed")
            raise PersistenceFailure(f"Inventory list failed: {exc}") from exc
        items = [item for item in (self._to_item(s) for s in snaps) if item]
        items.sort(key=lambda it: it.name.lower())
        return items

    def search(self, query: str) -> List[InventoryItem]:
        # Firestore has no full-text search; filter client side
        term = (query or "").strip().lower()
        if not term:
            return []
        return [
            it for it in self.list_items()
            if term in it.name.lower() or term in it.sku.lower() or (it.barcode and term in it.barcode)
        ]

    def low_stock(self, threshold: Optional[int] = None) -> List[InventoryItem]:
        default = get_settings().low_stock_threshold if threshold is None else threshold
        return [
            it for it in self.list_items()
            if it.stock <= (it.min_stock if it.min_stock is not None else default)
        ]

    # ---------- management ----------

    def create(self, payload: ItemCreate) -> InventoryItem:
        values = payload.model_dump()
        if not values.get("sku"):
            values["sku"] = generate_sku(payload.name)
        doc = _to_firestore(values)
        doc.update({"userId": self.owner_id, "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP})
        ref = self._items.document()
        try:
            ref.set(doc)
        except GoogleAPIError as exc:
            logger.exception("Inventory create failed")
            raise PersistenceFailure(f"Could not save item: {exc}") from exc
        logger.info("Created item %s (%s)", ref.id, values["sku"])
        return InventoryItem.from_doc(ref.id, doc)

    def update(self, item_id: str, payload: ItemUpdate) -> InventoryItem:
        if self.get(item_id) is None:
            raise ItemNotFoundError(item_id)
        patch = _to_firestore(payload.model_dump(exclude_unset=True))
        patch["updatedAt"] = SERVER_TIMESTAMP
        try:
            self._items.document(item_id).update(patch)
        except GoogleAPIError as exc:
            logger.exception("Inventory update %s failed", item_id)
            raise PersistenceFailure(f"Could not update item: {exc}") from exc
        return self.get(item_id)

    def delete(self, item_id: str) -> None:
        if self.get(item_id) is None:
            raise ItemNotFoundError(item_id)
        try:
            self._items.document(item_id).delete()
        except GoogleAPIError as exc:
            logger.exception("Inventory delete %s failed", item_id)
            raise PersistenceFailure(f"Could not delete item: {exc}") from exc
