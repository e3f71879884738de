"""
Laundry Service — Screen access check for client-side routing
"""
from fastapi import APIRouter, Depends, Query

from laundry.api.deps import get_optional_user
from laundry.domain.access import check_route
from laundry.models import User
from laundry.schemas.auth import AccessCheckResponse

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/check", response_model=AccessCheckResponse)
async def check(path: str = Query(..., min_length=1), user: User | None = Depends(get_optional_user)):
    """Answer whether the caller may open `path`, and where to send them if not."""
    decision = check_route(
        user.role if user else None,
        user.is_active if user else None,
        path,
    )
    return AccessCheckResponse(**decision.__dict__)
