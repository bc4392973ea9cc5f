# pos/routers/payment_methods.py
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pos.core.security import get_principal
from pos.schemas.transaction import PAYMENT_METHODS

router = APIRouter(prefix="/payment-methods", tags=["Payment Methods"], dependencies=[Depends(get_principal)])


class PaymentMethodOut(BaseModel):
    id: str
    name: str


@router.get("", response_model=List[PaymentMethodOut], summary="Payment Methods")
def list_payment_methods():
    """Tender methods the register offers, in display order."""
    return [PaymentMethodOut(id=key, name=name) for key, name in PAYMENT_METHODS.items()]
