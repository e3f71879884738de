"""
Laundry Service — Notification, inventory and report schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, computed_field

from laundry.models.inventory import stock_status


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    user_id: str | None
    priority: str
    order_id: str | None
    data: dict[str, Any]
    read: bool
    read_at: datetime | None
    viewed: bool
    viewed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    priority: str = Field("normal", pattern=r"^(low|normal|high|urgent)$")
    audience: str = Field("all", pattern=r"^(all|customer|staff|admin)$")


class IndividualNotificationRequest(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    priority: str = Field("normal", pattern=r"^(low|normal|high|urgent)$")


class InventoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field("supplies", max_length=100)
    quantity: Decimal = Field(Decimal("0"), ge=0)
    min_stock: Decimal = Field(Decimal("0"), ge=0)
    unit: str = Field("unit", max_length=32)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)


class InventoryUpdateRequest(BaseModel):
    quantity: Decimal | None = Field(None, ge=0)
    min_stock: Decimal | None = Field(None, ge=0)
    unit_cost: Decimal | None = Field(None, ge=0)
    category: str | None = Field(None, max_length=100)
    expected_version: int | None = Field(None, ge=1)


class InventoryResponse(BaseModel):
    id: str
    name: str
    category: str
    quantity: Decimal
    min_stock: Decimal
    unit: str
    unit_cost: Decimal
    version_id: int
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def stock_status(self) -> str:
        return stock_status(self.quantity, self.min_stock).value


class ServiceStat(BaseModel):
    service_id: str
    orders: int
    revenue: Decimal


class ReportSummary(BaseModel):
    period_days: int
    currency: str
    total_orders: int
    delivered_orders: int
    cancelled_orders: int
    pending_orders: int
    in_progress_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    outstanding_payments: Decimal
    orders_by_status: dict[str, int]
    services: list[ServiceStat]
    total_customers: int
    new_customers: int
    returning_customers: int
    low_stock_items: int
