"""
Laundry Service — Staff counter routes (walk-in registration)
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import get_catalog, get_notifier, require_staff
from laundry.db.database import get_db
from laundry.domain.pricing import PricingCatalog
from laundry.models import User
from laundry.schemas.order import OrderResponse, WalkInRequest, WalkInResponse
from laundry.services import orders as order_service
from laundry.services.notifications import NotificationService

router = APIRouter(prefix="/staff", tags=["staff"])


@router.post("/walk-in", response_model=WalkInResponse, status_code=status.HTTP_201_CREATED)
async def register_walk_in(
    payload: WalkInRequest,
    request: Request,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
    notifier: NotificationService = Depends(get_notifier),
):
    """
    Register a customer who walked in, with their first order awaiting pickup.
    The returned invitation link lets the customer claim the account later.
    """
    customer, order, link = await order_service.register_walk_in(
        db, staff, payload, catalog, notifier, invitation_base_url=str(request.base_url)
    )
    return WalkInResponse(
        customer_id=customer.id,
        customer_name=customer.name,
        order=OrderResponse.model_validate(order),
        invitation_code=customer.invitation_code,
        invitation_link=link,
    )
