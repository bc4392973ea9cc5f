# pos/schemas/pos.py
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from pos.core.money import DiscountType

# scanners and copy/paste leave these behind
_INVISIBLE = ("\u200b", "\u200c", "\u200d", "\ufeff", "\xa0")


def _clean_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    for ch in _INVISIBLE:
        v = v.replace(ch, "")
    return v or None


class AddItemBody(BaseModel):
    """Add one unit, either by scanned/typed code (id, SKU or barcode) or by item id."""
    code: Optional[str] = Field(None, description="Barcode, SKU or item id")
    item_id: Optional[str] = Field(None, description="Inventory item id")

    @field_validator("code", "item_id", mode="before")
    @classmethod
    def _clean(cls, v):
        return _clean_code(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def _one_of(self):
        if not self.code and not self.item_id:
            raise ValueError("Either code or item_id is required")
        return self


class QuantityBody(BaseModel):
    quantity: int = Field(..., le=10000, description="New quantity; 0 or less removes the line")


class DiscountBody(BaseModel):
    value: Decimal = Field(..., description="Amount in currency units, or percent when type is percentage")
    type: DiscountType = DiscountType.AMOUNT


class TenderBody(BaseModel):
    method: str = Field(..., min_length=1, description="cash | visa | mastercard | amex | debit | ...")
    amount: Decimal = Field(..., description="Amount applied by this tender")
