"""
Professional endpoints: balance, instant payouts and dashboard
"""
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.models import PayoutStatus, Profile
from app.db.session import get_db
from app.routes.auth import require_professional
from app.schemas.payout import (
    BalanceResponse,
    InstantPayoutRequest,
    PayoutTransferResponse,
    ProDashboardStats,
    UrgentTask,
)
from app.services.balance_service import balance_service
from app.services.payout_service import payout_service
from app.services.pro_dashboard_service import pro_dashboard_service
from app.utils.pagination import PaginatedResponse, paginate_query

router = APIRouter(
    prefix="/api/pro",
    tags=["professional"]
)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
):
    return balance_service.get_balance_breakdown(db, current_user.id)


@router.get("/payouts/instant")
async def get_instant_payout_info(
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
) -> Dict:
    """Balance, eligibility, fee info and estimate for an instant payout"""
    return payout_service.get_instant_payout_overview(db, current_user.id)


@router.post("/payouts/instant", response_model=PayoutTransferResponse, status_code=status.HTTP_201_CREATED)
async def request_instant_payout(
    request: InstantPayoutRequest,
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
):
    """
    Cash out available balance now.
    400 on validation errors, 429 over the daily limit, 502 when Stripe rejects the payout.
    """
    return payout_service.request_instant_payout(db, current_user.id, request.amount)


@router.get("/payouts", response_model=PaginatedResponse[PayoutTransferResponse])
async def list_payouts(
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
):
    query = payout_service.list_payouts_query(db, current_user.id, status_filter)
    return paginate_query(query, page, page_size, PayoutTransferResponse.model_validate)


@router.get("/dashboard/stats", response_model=ProDashboardStats)
async def get_dashboard_stats(
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
):
    return pro_dashboard_service.get_stats(db, current_user)


@router.get("/tasks/urgent", response_model=List[UrgentTask])
async def get_urgent_tasks(
    current_user: Profile = Depends(require_professional),
    db: Session = Depends(get_db)
):
    return pro_dashboard_service.get_urgent_tasks(db, current_user)
