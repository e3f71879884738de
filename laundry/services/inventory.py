"""
Laundry Service — Inventory operations with optimistic locking
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.core.errors import ConflictError, NotFoundError
from laundry.core.optimistic_lock import StaleDataError, with_optimistic_retry
from laundry.models import InventoryItem
from laundry.models.inventory import StockStatus
from laundry.schemas.admin import InventoryCreateRequest, InventoryUpdateRequest

logger = logging.getLogger(__name__)


async def list_items(db: AsyncSession) -> list[InventoryItem]:
    result = await db.execute(select(InventoryItem).order_by(InventoryItem.category, InventoryItem.name))
    return list(result.scalars().all())


async def low_stock_items(db: AsyncSession) -> list[InventoryItem]:
    """Everything at or below its minimum, out-of-stock items included."""
    return [i for i in await list_items(db) if i.stock_status is not StockStatus.IN_STOCK]


async def create_item(db: AsyncSession, payload: InventoryCreateRequest) -> InventoryItem:
    now = datetime.now(tz=timezone.utc)
    item = InventoryItem(
        id=str(uuid.uuid4()),
        **payload.model_dump(),
        version_id=1,
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    await db.commit()
    logger.info("Inventory item %s (%s) created with quantity %s", item.name, item.id, item.quantity)
    return item


@with_optimistic_retry()
async def update_item(db: AsyncSession, item_id: str, payload: InventoryUpdateRequest) -> InventoryItem:
    """
    READ current row + version_id, then
    UPDATE ... WHERE version_id = <read_version>. A concurrent writer turns
    the UPDATE into a no-op (rowcount 0) and the decorator retries.
    """
    result = await db.execute(
        select(InventoryItem).where(InventoryItem.id == item_id).execution_options(populate_existing=True)
    )
    item: InventoryItem | None = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item not found.")
    db.expunge(item)

    if payload.expected_version is not None and item.version_id != payload.expected_version:
        raise ConflictError(
            f"Inventory item '{item.name}' was updated by someone else. Reload and try again.",
            current_version=item.version_id,
        )

    changes: dict[str, Any] = payload.model_dump(exclude_none=True, exclude={"expected_version"})
    changes["updated_at"] = datetime.now(tz=timezone.utc)
    current_version = item.version_id

    result = await db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.version_id == current_version)
        .values(**changes, version_id=current_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise StaleDataError("Optimistic lock conflict: inventory version changed concurrently.")
    await db.commit()

    for key, value in changes.items():
        setattr(item, key, value)
    item.version_id = current_version + 1
    if item.stock_status is not StockStatus.IN_STOCK:
        logger.warning("Inventory item %s is %s (%s left)", item.name, item.stock_status.value, item.quantity)
    return item
