"""Admin dashboard widget endpoints."""
from typing import Dict

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.api.deps import get_current_user, get_db
from charmshop.schemas.analytics import ApiResponse
from charmshop.services.dashboard_widget_service import DashboardWidgetService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/dashboard", dependencies=[Depends(get_current_user)])


@router.get("/widgets", response_model=ApiResponse)
async def get_dashboard_widgets(
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """
    All dashboard widgets in one payload.

    Cached widgets are served from analytics_cache while fresh and recomputed otherwise.
    """
    service = DashboardWidgetService(db)
    widgets = await service.get_all_widgets()
    return ApiResponse(data=widgets, message="Dashboard widgets data retrieved successfully")


@router.post("/widgets/refresh", response_model=ApiResponse)
async def refresh_dashboard_widgets(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user),
) -> ApiResponse:
    """Drop cached widget rows and recompute every widget."""
    service = DashboardWidgetService(db)
    widgets = await service.refresh_all_cached_widgets()
    logger.info("dashboard_widgets_refreshed", user_id=current_user.get("sub"))
    return ApiResponse(data=widgets, message="Dashboard widgets refreshed successfully")
