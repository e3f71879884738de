"""
Laundry Service — Public pricing routes (catalog + quote)
"""
from fastapi import APIRouter, Depends

from laundry.api.deps import get_catalog, get_origin
from laundry.domain.distance import Coordinate
from laundry.domain.pricing import PricingCatalog
from laundry.schemas.order import QuoteRequest, QuoteResponse
from laundry.services import orders as order_service

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/catalog")
async def catalog_view(currency: str | None = None, catalog: PricingCatalog = Depends(get_catalog)):
    table = catalog.table(currency)
    return {
        "currency": table.code,
        "symbol": table.symbol,
        "currencies": catalog.currencies,
        "delivery_fee_per_km": table.delivery_fee_per_km,
        "minimum_order_amount": table.minimum_order_amount,
        "services": [
            {
                "id": s.id,
                "name": s.name,
                "price_per_kg": s.price_per_kg,
                "delivery_time": s.delivery_time,
                "description": s.description,
            }
            for s in table.services.values()
        ],
        "add_ons": [
            {
                "id": a.id,
                "name": a.name,
                "unit": a.unit,
                "pricing": a.pricing,
                "price": a.unit_price,
                "max_price": a.max_price,
                "description": a.description,
            }
            for a in table.add_ons.values()
        ],
    }


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    payload: QuoteRequest,
    catalog: PricingCatalog = Depends(get_catalog),
    origin: Coordinate = Depends(get_origin),
):
    """Price a basket before checkout. Without a weight only add-ons and delivery are charged."""
    return order_service.quote(payload, catalog, origin).as_dict()
