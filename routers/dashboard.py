"""Dashboard statistics endpoint for tool authors."""
import logging
from fastapi import APIRouter, Depends, HTTPException

from config import load_settings_from_env
from models.dashboard import DashboardStats
from services.auth import get_current_user
from services.database import get_db
from services.errors import BuilderCentralError
from services.statistics import StatisticsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: dict = Depends(get_current_user),
    db = Depends(get_db),
):
    """Views, likes and shares with 30-day trends, the recent activity feed and trending tools.

    401 without a caller identity, 404 when the caller has no users row; anything
    else is reported as a generic 500 so the client can fall back to local figures.
    """
    try:
        return StatisticsAggregator(db, load_settings_from_env()).compute_dashboard(current_user.get("id"))
    except BuilderCentralError:
        raise
    except Exception as e:
        logger.error(f"Dashboard stats error for user {current_user.get('id')}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error retrieving dashboard statistics")
