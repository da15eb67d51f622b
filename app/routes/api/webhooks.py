"""
Provider webhooks: Stripe, PayPal and background checks (Checkr / Truora)

Signatures are verified against the raw body before anything is parsed or stored.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.background_check_service import background_check_service
from app.services.webhook_service import WebhookResult, webhook_service
from app.utils.websocket_manager import websocket_manager

router = APIRouter(
    prefix="/api/webhooks",
    tags=["webhooks"]
)


async def _broadcast(result: WebhookResult):
    for event in result.broadcasts:
        await websocket_manager.send_notification(event["notification_type"], event["data"])


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    result = webhook_service.handle_stripe(db, payload, request.headers.get("stripe-signature"))
    await _broadcast(result)
    return result.to_response()


@router.post("/paypal")
async def paypal_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    result = webhook_service.handle_paypal(db, payload, dict(request.headers))
    await _broadcast(result)
    return result.to_response()


@router.post("/background-checks")
async def background_check_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    result = background_check_service.handle_webhook(db, payload, dict(request.headers))
    await _broadcast(result)
    return result.to_response()
