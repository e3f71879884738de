"""
Laundry Service — Order reminder scheduler

While an order sits in `pending` without a staff acknowledgement, staff and
admins are re-notified every REMINDER_INTERVAL_SECONDS. One asyncio task per
order, all owned by a single ReminderScheduler held on app.state and passed
to callers by reference.

Timers do not survive a restart; restore() re-derives them from the orders
table (status = pending AND viewed_at IS NULL) during application startup.
"""
import asyncio
import logging
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.domain.lifecycle import OrderStatus
from laundry.models import Order
from laundry.services.notifications import NotificationService

logger = logging.getLogger(__name__)


class ReminderScheduler:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        notifier: NotificationService,
        interval_seconds: float = 120.0,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self.interval_seconds = interval_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._counts: dict[str, int] = {}

    @property
    def active_order_ids(self) -> list[str]:
        return list(self._tasks)

    def is_active(self, order_id: str) -> bool:
        return order_id in self._tasks

    def reminder_count(self, order_id: str) -> int:
        return self._counts.get(order_id, 0)

    def start(self, order_id: str) -> None:
        """(Re)start reminders for an order. An existing timer is replaced."""
        self.stop(order_id)
        self._counts.setdefault(order_id, 0)
        self._tasks[order_id] = asyncio.create_task(
            self._run(order_id), name=f"order-reminder:{order_id}"
        )

    def stop(self, order_id: str) -> bool:
        task = self._tasks.pop(order_id, None)
        self._counts.pop(order_id, None)
        if task is None:
            return False
        task.cancel()
        logger.info("Stopped reminders for order %s", order_id)
        return True

    async def _needs_attention(self, db: AsyncSession, order_id: str) -> Order | None:
        order = await db.get(Order, order_id, populate_existing=True)
        if order is None or order.status != OrderStatus.PENDING.value or order.viewed_at is not None:
            return None
        return order

    async def _run(self, order_id: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    async with self._session_factory() as db:
                        order = await self._needs_attention(db, order_id)
                        if order is None:
                            break
                        count = self._counts.get(order_id, 0) + 1
                        await self._notifier.order_reminder(db, order, count)
                    self._counts[order_id] = count
                    logger.info("Reminder %d sent for order %s", count, order_id)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Reminder tick failed for order %s", order_id)
        finally:
            if self._tasks.get(order_id) is asyncio.current_task():
                self._tasks.pop(order_id, None)
                self._counts.pop(order_id, None)

    async def restore(self) -> int:
        """Restart reminders for every pending order nobody has acknowledged yet."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Order.id).where(
                    Order.status == OrderStatus.PENDING.value,
                    Order.viewed_at.is_(None),
                )
            )
            order_ids = result.scalars().all()
        for order_id in order_ids:
            self.start(order_id)
        if order_ids:
            logger.info("Restored reminders for %d pending orders", len(order_ids))
        return len(order_ids)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._counts.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
