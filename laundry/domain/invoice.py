"""
Invoice Assembler — flat, print-ready view of an order.

Produces a plain structure only; rendering to PDF/HTML happens elsewhere.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from laundry.domain.lifecycle import status_label
from laundry.domain.pricing import PricingCatalog

VAT_RATE = Decimal("0.18")  # fixed business rule, applied to every invoice
VAT_LABEL = "VAT (18%)"
PAYMENT_METHOD_LABELS = {
    "cash_on_delivery": "Cash on Delivery",
    "mobile_money": "Mobile Money",
    "bank_transfer": "Bank Transfer",
}


@dataclass
class BusinessIdentity:
    name: str
    tagline: str
    phone: str
    email: str
    address: str


@dataclass
class Scheduling:
    pickup_date: str | None = None
    pickup_time: str | None = None
    delivery_date: str | None = None
    delivery_time: str | None = None
    pickup_address: str | None = None
    delivery_address: str | None = None


@dataclass
class LineItem:
    description: str
    quantity: Decimal
    unit: str
    unit_rate: Decimal
    line_total: Decimal


@dataclass
class Invoice:
    invoice_number: str
    order_number: str
    issued_at: str
    currency: str
    header: dict[str, str]
    bill_to: dict[str, str | None]
    scheduling: dict[str, str | None]
    line_items: list[LineItem] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    tax_label: str = VAT_LABEL
    tax: Decimal = Decimal("0")
    delivery_fee: Decimal | None = None
    delivery_distance_km: int | None = None
    grand_total: Decimal = Decimal("0")
    payment: dict[str, str] = field(default_factory=dict)
    status: dict[str, str | None] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def assemble_invoice(
    order: Any,
    scheduling: Scheduling,
    catalog: PricingCatalog,
    business: BusinessIdentity,
    issued_at: datetime | None = None,
) -> Invoice:
    table = catalog.table(order.currency)
    weight = order.actual_weight if order.actual_weight is not None else order.estimated_weight
    breakdown = catalog.breakdown(
        order.service_id,
        weight,
        [(a["id"], Decimal(str(a.get("quantity", 1)))) for a in (order.add_ons or [])],
        currency=order.currency,
    )

    lines = [LineItem(
        description=f"{breakdown.service_name} Laundry",
        quantity=breakdown.weight_kg if breakdown.weight_kg is not None else Decimal("0"),
        unit="kg",
        unit_rate=breakdown.rate_per_kg,
        line_total=breakdown.service_cost,
    )]
    for add_on in breakdown.add_on_lines:
        rate = catalog.add_on(add_on.id, order.currency)
        lines.append(LineItem(
            description=add_on.name,
            quantity=add_on.quantity,
            unit=rate.unit,
            unit_rate=add_on.unit_price,
            line_total=add_on.total,
        ))

    subtotal = breakdown.subtotal
    tax = table.money(subtotal * VAT_RATE)
    delivery_fee = Decimal(str(order.delivery_fee or 0))
    has_delivery = (order.rounded_distance_km or 0) > 0
    grand_total = subtotal + tax + (delivery_fee if has_delivery else Decimal("0"))

    updated = order.updated_at or order.created_at
    issued = issued_at or datetime.now()
    return Invoice(
        invoice_number=f"INV-{order.order_number}",
        order_number=order.order_number,
        issued_at=issued.isoformat(),
        currency=table.code,
        header=asdict(business),
        bill_to={
            "name": order.customer_name,
            "phone": order.customer_phone,
            "email": order.customer_email,
            "address": scheduling.delivery_address or scheduling.pickup_address,
        },
        scheduling=asdict(scheduling),
        line_items=lines,
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee if has_delivery else None,
        delivery_distance_km=order.rounded_distance_km if has_delivery else None,
        grand_total=grand_total,
        payment={
            "method": PAYMENT_METHOD_LABELS.get(order.payment_method, "Cash on Delivery"),
            "status": order.payment_status or "pending",
        },
        status={
            "code": order.status,
            "label": status_label(order.status),
            "last_updated": updated.isoformat() if updated else None,
        },
    )
