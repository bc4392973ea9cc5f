"""
pos/routers/inventory.py - Inventory endpoints.

Reads are open to every signed-in user of the store (the register needs them);
create/update/delete require a manager.

- GET    /inventory                 -> all items, by name
- GET    /inventory/lookup/{code}   -> resolve a scanned or typed code (id, SKU, barcode)
- GET    /inventory/search?q=       -> name / SKU / barcode contains
- GET    /inventory/low-stock       -> stock at or below the item's (or the default) threshold
- GET    /inventory/{item_id}
- POST   /inventory                 (manager)
- PATCH  /inventory/{item_id}       (manager)
- DELETE /inventory/{item_id}       (manager)
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from pos.config import Settings, get_settings
from pos.core.deps import get_inventory
from pos.core.errors import ItemNotFoundError
from pos.core.security import get_principal, require_manager
from pos.repositories.inventory import InventoryRepository
from pos.schemas.inventory import ItemCreate, ItemOut, ItemUpdate

router = APIRouter(prefix="/inventory", tags=["Inventory"], dependencies=[Depends(get_principal)])


@router.get("", response_model=List[ItemOut], summary="List Items")
def list_items(
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    return [ItemOut.from_item(it, settings.low_stock_threshold) for it in repo.list_items()]


@router.get("/lookup/{code}", response_model=ItemOut, summary="Lookup by Code")
def lookup_item(
    code: str,
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    item = repo.lookup(code)
    if item is None:
        raise ItemNotFoundError(code)
    return ItemOut.from_item(item, settings.low_stock_threshold)


@router.get("/search", response_model=List[ItemOut], summary="Search Items")
def search_items(
    q: str = Query(..., min_length=1, description="Part of the name, SKU or barcode"),
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    return [ItemOut.from_item(it, settings.low_stock_threshold) for it in repo.search(q)]


@router.get("/low-stock", response_model=List[ItemOut], summary="Low Stock Items")
def low_stock_items(
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    threshold = settings.low_stock_threshold
    return [ItemOut.from_item(it, threshold) for it in repo.low_stock(threshold)]


@router.get("/{item_id}", response_model=ItemOut, summary="Get Item")
def get_item(
    item_id: str,
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    item = repo.get(item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    return ItemOut.from_item(item, settings.low_stock_threshold)


@router.post(
    "",
    response_model=ItemOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_manager)],
    summary="Create Item",
)
def create_item(
    payload: ItemCreate,
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    return ItemOut.from_item(repo.create(payload), settings.low_stock_threshold)


@router.patch("/{item_id}", response_model=ItemOut, dependencies=[Depends(require_manager)], summary="Update Item")
def update_item(
    item_id: str,
    payload: ItemUpdate,
    repo: InventoryRepository = Depends(get_inventory),
    settings: Settings = Depends(get_settings),
):
    return ItemOut.from_item(repo.update(item_id, payload), settings.low_stock_threshold)


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_manager)],
    summary="Delete Item",
)
def delete_item(item_id: str, repo: InventoryRepository = Depends(get_inventory)):
    repo.delete(item_id)
