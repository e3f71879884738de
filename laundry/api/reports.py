"""
Laundry Service — Reports routes (admin)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import get_catalog, require_admin
from laundry.db.database import get_db
from laundry.domain.pricing import PricingCatalog
from laundry.models import User
from laundry.schemas.admin import ReportSummary
from laundry.services import reports as report_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=ReportSummary)
async def summary(
    days: int = Query(7, ge=0, le=3650, description="Look-back window in days; 0 means all time"),
    currency: str | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
):
    return await report_service.summary(db, days, catalog.table(currency).code)
