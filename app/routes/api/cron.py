"""
Scheduled jobs, called by the platform scheduler with Authorization: Bearer $CRON_SECRET
"""
from fastapi import APIRouter, Depends, Header, HTTPException, status
from typing import Optional
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging_config import logger
from app.core.webhook_security import constant_time_compare
from app.db.session import get_db
from app.services.balance_service import balance_service
from app.services.payout_batch_service import payout_batch_service
from app.services.rebook_nudge_service import rebook_nudge_service

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"]
)


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not constant_time_compare(authorization, f"Bearer {settings.CRON_SECRET}"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.api_route("/send-rebook-nudges", methods=["GET", "POST"], dependencies=[Depends(verify_cron_secret)])
async def send_rebook_nudges(db: Session = Depends(get_db)):
    results = rebook_nudge_service.send_due_nudges(db)
    return {"success": True, "results": results}


@router.api_route("/process-clearances", methods=["GET", "POST"], dependencies=[Depends(verify_cron_secret)])
async def process_clearances(db: Session = Depends(get_db)):
    return {"success": True, **balance_service.process_due_clearances(db)}


@router.api_route("/process-payout-batch", methods=["GET", "POST"], dependencies=[Depends(verify_cron_secret)])
async def process_payout_batch(dry_run: bool = False, db: Session = Depends(get_db)):
    """Tuesday and Friday batch payouts; dry_run=true previews without paying"""
    return {"success": True, **payout_batch_service.run(db, dry_run=dry_run)}
