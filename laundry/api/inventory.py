"""
Laundry Service — Inventory routes (admin)
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import require_admin
from laundry.db.database import get_db
from laundry.models import User
from laundry.schemas.admin import InventoryCreateRequest, InventoryResponse, InventoryUpdateRequest
from laundry.services import inventory as inventory_service

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryResponse])
async def list_inventory(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await inventory_service.list_items(db)


@router.get("/low-stock", response_model=list[InventoryResponse])
async def low_stock(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await inventory_service.low_stock_items(db)


@router.post("", response_model=InventoryResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: InventoryCreateRequest, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)
):
    return await inventory_service.create_item(db, payload)


@router.patch("/{item_id}", response_model=InventoryResponse)
async def update_item(
    item_id: str,
    payload: InventoryUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Uses optimistic locking; pass expected_version to fail fast on stale edits."""
    return await inventory_service.update_item(db, item_id, payload)
