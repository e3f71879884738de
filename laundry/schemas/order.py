"""
Laundry Service — Order / pricing Pydantic schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, EmailStr, Field, computed_field

from laundry.domain.lifecycle import get_allowed_next_statuses, status_label


class AddOnRequest(BaseModel):
    id: str = Field(..., examples=["suit"])
    quantity: Decimal = Field(Decimal("1"), gt=0, le=100, decimal_places=2)


class QuoteRequest(BaseModel):
    service_id: str = Field(..., examples=["standard"])
    weight: Decimal | None = Field(None, gt=0, le=500, decimal_places=2)
    add_ons: list[AddOnRequest] = Field(default_factory=list, max_length=20)
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)


class AddOnLineResponse(BaseModel):
    id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    pricing: str
    total: Decimal


class QuoteResponse(BaseModel):
    currency: str
    service_id: str
    service_name: str
    rate_per_kg: Decimal
    weight_kg: Decimal | None
    service_cost: Decimal
    add_ons: list[AddOnLineResponse]
    add_ons_total: Decimal
    distance_km: float
    rounded_distance_km: int
    distance_label: str | None = None
    delivery_fee: Decimal
    subtotal: Decimal
    total: Decimal
    weight_deferred: bool


class CheckoutRequest(QuoteRequest):
    other_service: str | None = Field(None, max_length=255)
    number_of_pieces: int | None = Field(None, ge=1, le=1000)
    special_instructions: str | None = Field(None, max_length=500)
    photo_urls: list[str] = Field(default_factory=list, max_length=10)
    phone: str | None = Field(None, max_length=32)
    pickup_address: str = Field(..., max_length=500)
    delivery_address: str | None = Field(None, max_length=500)
    pickup_date: str | None = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    pickup_time: str | None = None
    delivery_date: str | None = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    delivery_time: str | None = None
    payment_method: str = Field("cash_on_delivery", pattern=r"^(cash_on_delivery|mobile_money|bank_transfer)$")


class StatusUpdateRequest(BaseModel):
    status: str
    expected_version: int | None = Field(None, ge=1)


class ForceStatusRequest(StatusUpdateRequest):
    reason: str = Field(..., min_length=3, max_length=500)


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)
    expected_version: int | None = Field(None, ge=1)


class WeightRequest(BaseModel):
    actual_weight: Decimal = Field(..., gt=0, le=500, decimal_places=2)
    expected_version: int | None = Field(None, ge=1)


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    customer_name: str
    customer_phone: str | None
    customer_email: str | None
    service_id: str
    add_ons: list[dict[str, Any]]
    other_service: str | None
    estimated_weight: Decimal | None
    actual_weight: Decimal | None
    number_of_pieces: int | None
    special_instructions: str | None
    photo_urls: list[str]
    pickup_address: str
    delivery_address: str | None
    pickup_lat: float | None
    pickup_lng: float | None
    pickup_date: str | None
    pickup_time: str | None
    delivery_date: str | None
    delivery_time: str | None
    currency: str
    distance_km: float
    rounded_distance_km: int
    delivery_fee: Decimal
    estimated_total: Decimal
    final_total: Decimal | None
    weight_confirmed: bool
    status: str
    payment_status: str
    payment_method: str
    status_timestamps: dict[str, str]
    notes: list[dict[str, Any]]
    assigned_staff_id: str | None
    viewed_at: datetime | None
    created_by: str
    version_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def status_label(self) -> str:
        return status_label(self.status)

    @computed_field
    @property
    def allowed_next_statuses(self) -> list[str]:
        return get_allowed_next_statuses(self.status)


class NextStatusesResponse(BaseModel):
    order_id: str
    status: str
    status_label: str
    allowed: list[str]
    version_id: int


class WalkInRequest(BaseModel):
    """Staff registers a walk-in customer together with their first order."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., max_length=32)
    email: EmailStr | None = None
    address: str = Field(..., max_length=500)
    service_id: str
    estimated_weight: Decimal | None = Field(None, gt=0, le=500, decimal_places=2)
    add_ons: list[AddOnRequest] = Field(default_factory=list, max_length=20)
    pickup_date: str | None = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    pickup_time: str | None = None
    notes: str | None = Field(None, max_length=500)
    currency: str | None = Field(None, min_length=3, max_length=3)


class WalkInResponse(BaseModel):
    customer_id: str
    customer_name: str
    order: OrderResponse
    invitation_code: str
    invitation_link: str
