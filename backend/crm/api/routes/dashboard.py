from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm.api.deps import get_db, require
from crm.core.permissions import Action, Resource
from crm.core.security import SessionUser
from crm.schemas.dashboard import DashboardStats
from crm.services.dashboard_service import get_stats

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(require(Action.READ, Resource.ANALYTICS)),
):
    """Store-wide counts and revenue (cents) for the dashboard cards."""
    return DashboardStats(**get_stats(db))
