"""
pos/schemas/inventory.py - Pydantic models for inventory items.

`InventoryItem` is the typed shape the inventory lookup returns and the Cart Engine
accepts; raw Firestore documents are validated into it at the repository boundary.

Firestore `items/{id}` document fields:
| Field         | Type     | Notes |
|---------------|----------|-------|
| name          | str      | |
| sku           | str      | |
| barcode       | str      | optional, digits only, >= 8 chars |
| price         | number   | unit price, >= 0 |
| stock         | int      | >= 0 |
| minStock      | int      | low-stock threshold (optional) |
| categoryName  | str      | optional |
| taxRate       | number   | stored but NOT used for pricing (cart applies one flat rate) |
| userId        | str      | owner (Firebase uid) |
"""
import re
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_BARCODE_RE = re.compile(r"^\d{8,}$")


def is_valid_barcode(barcode: Optional[str]) -> bool:
    return bool(barcode) and bool(_BARCODE_RE.match(barcode))


class InventoryItem(BaseModel):
    """An item record as returned by the inventory lookup."""
    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1, description="Firestore document id")
    name: str = Field(..., description="Display name")
    sku: str = Field("", description="Stock keeping unit")
    unit_price: Decimal = Field(..., ge=0, description="Price per unit")
    stock: int = Field(0, ge=0, description="Units on hand")
    barcode: Optional[str] = Field(None, description="EAN/UPC barcode")
    category_name: Optional[str] = Field(None, description="Category display name")
    min_stock: Optional[int] = Field(None, ge=0, description="Low-stock threshold for this item")
    tax_rate: Optional[Decimal] = Field(None, ge=0, description="Per-item tax rate (stored, unused by pricing)")

    @field_validator("unit_price", "tax_rate", mode="before")
    @classmethod
    def _decimal_from_float(cls, v):
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @classmethod
    def from_doc(cls, doc_id: str, data: Dict[str, Any]) -> "InventoryItem":
        # negative stock can appear after concurrent sales; clamp instead of rejecting the record
        return cls(
            item_id=doc_id,
            name=data.get("name", "") or "",
            sku=data.get("sku", "") or "",
            unit_price=data.get("price", 0) or 0,
            stock=max(0, int(data.get("stock", 0) or 0)),
            barcode=data.get("barcode") or None,
            category_name=data.get("categoryName") or None,
            min_stock=data.get("minStock"),
            tax_rate=data.get("taxRate"),
        )


class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Item name")
    sku: Optional[str] = Field(None, description="SKU; generated from the name when omitted")
    barcode: Optional[str] = Field(None, description="Digits only, at least 8")
    price: Decimal = Field(..., ge=0, description="Unit price")
    stock: int = Field(0, ge=0, description="Initial stock")
    min_stock: Optional[int] = Field(None, ge=0, description="Low-stock threshold")
    category_name: Optional[str] = Field(None, description="Category display name")
    tax_rate: Optional[Decimal] = Field(None, ge=0, description="Stored only")

    @field_validator("barcode")
    @classmethod
    def _check_barcode(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        if not v:
            return None
        if not is_valid_barcode(v):
            raise ValueError("barcode must be at least 8 digits")
        return v

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ItemUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    category_name: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0)

    @field_validator("barcode")
    @classmethod
    def _check_barcode(cls, v: Optional[str]) -> Optional[str]:
        # blank clears the stored barcode
        v = (v or "").strip()
        if not v:
            return None
        if not is_valid_barcode(v):
            raise ValueError("barcode must be at least 8 digits")
        return v


class ItemOut(BaseModel):
    id: str
    name: str
    sku: str
    barcode: Optional[str] = None
    price: float
    stock: int
    min_stock: Optional[int] = None
    category_name: Optional[str] = None
    low_stock: bool = False

    @classmethod
    def from_item(cls, item: InventoryItem, low_stock_threshold: int) -> "ItemOut":
        threshold = item.min_stock if item.min_stock is not None else low_stock_threshold
        return cls(
            id=item.item_id,
            name=item.name,
            sku=item.sku,
            barcode=item.barcode,
            price=float(item.unit_price),
            stock=item.stock,
            min_stock=item.min_stock,
            category_name=item.category_name,
            low_stock=item.stock <= threshold,
        )
