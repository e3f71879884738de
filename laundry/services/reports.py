"""
Laundry Service — Business summary for the admin reports screen

Revenue counts delivered orders only, at their final price when the weight
was confirmed and the estimate otherwise. Orders in other currencies are
left out of money figures; counts cover the selected currency only.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.domain.lifecycle import OrderStatus, is_terminal
from laundry.models import Order, PaymentStatus, Role, User
from laundry.schemas.admin import ReportSummary, ServiceStat
from laundry.services.inventory import low_stock_items

logger = logging.getLogger(__name__)

NEW_CUSTOMER_WINDOW = timedelta(days=30)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def order_value(order: Order) -> Decimal:
    return order.final_total if order.final_total is not None else order.estimated_total


async def summary(db: AsyncSession, days: int, currency: str) -> ReportSummary:
    """`days=0` covers every order on record."""
    now = datetime.now(tz=timezone.utc)
    query = select(Order).where(Order.currency == currency)
    if days:
        query = query.where(Order.created_at >= now - timedelta(days=days))
    orders = list((await db.execute(query)).scalars().all())

    by_status = Counter(o.status for o in orders)
    delivered = [o for o in orders if o.status == OrderStatus.DELIVERED.value]
    revenue = sum((order_value(o) for o in delivered), Decimal("0"))
    outstanding = sum(
        (order_value(o) for o in orders
         if o.payment_status != PaymentStatus.PAID.value and o.status != OrderStatus.CANCELLED.value),
        Decimal("0"),
    )

    services: dict[str, ServiceStat] = {}
    for o in delivered:
        stat = services.setdefault(o.service_id, ServiceStat(service_id=o.service_id, orders=0, revenue=Decimal("0")))
        stat.orders += 1
        stat.revenue += order_value(o)

    customers = (await db.execute(select(User).where(User.role == Role.CUSTOMER.value))).scalars().all()
    per_customer = Counter(o.customer_id for o in orders)
    low_stock = await low_stock_items(db)

    pending = by_status[OrderStatus.PENDING.value] + by_status[OrderStatus.PENDING_PICKUP.value]
    report = ReportSummary(
        period_days=days,
        currency=currency,
        total_orders=len(orders),
        delivered_orders=len(delivered),
        cancelled_orders=by_status[OrderStatus.CANCELLED.value],
        pending_orders=pending,
        in_progress_orders=sum(1 for o in orders if not is_terminal(o.status)) - pending,
        total_revenue=revenue,
        average_order_value=(revenue / len(delivered)).quantize(Decimal("0.01")) if delivered else Decimal("0"),
        outstanding_payments=outstanding,
        orders_by_status=dict(by_status),
        services=sorted(services.values(), key=lambda s: s.revenue, reverse=True),
        total_customers=len(customers),
        new_customers=sum(1 for c in customers if _aware(c.created_at) >= now - NEW_CUSTOMER_WINDOW),
        returning_customers=sum(1 for count in per_customer.values() if count > 1),
        low_stock_items=len(low_stock),
    )
    logger.info("Report generated for %s days in %s: %d orders", days or "all", currency, len(orders))
    return report
