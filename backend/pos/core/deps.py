# pos/core/deps.py
"""FastAPI dependency providers; tests replace them through `app.dependency_overrides`."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from pos.config import Settings, get_settings
from pos.core.security import get_principal
from pos.repositories.inventory import InventoryRepository
from pos.repositories.sales import SaleRepository
from pos.schemas.principal import Principal
from pos.services.cart_engine import CartEngine
from pos.services.checkout import CheckoutSession, SessionRegistry


def get_inventory(principal: Principal = Depends(get_principal)) -> InventoryRepository:
    return InventoryRepository(principal.owner_id)


def get_sales(principal: Principal = Depends(get_principal)) -> SaleRepository:
    return SaleRepository(principal.owner_id)


def build_session(cashier_id: str, settings: Optional[Settings] = None) -> CheckoutSession:
    settings = settings or get_settings()
    return CheckoutSession(
        CartEngine(settings.tax_rate),
        cashier_id=cashier_id,
        tolerance=settings.payment_tolerance,
        currency=settings.currency,
    )


@lru_cache
def get_registry() -> SessionRegistry:
    return SessionRegistry(build_session)


def get_session(
    principal: Principal = Depends(get_principal),
    registry: SessionRegistry = Depends(get_registry),
) -> CheckoutSession:
    return registry.get(principal.uid)
