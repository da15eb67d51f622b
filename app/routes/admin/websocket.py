"""
WebSocket routes for admin notifications
"""
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.db.models import UserRole
from app.db.session import get_db
from app.routes.auth import get_user_from_token
from app.utils.websocket_manager import websocket_manager
from app.core.logging_config import logger

router = APIRouter(
    prefix="/admin/ws",
    tags=["admin-websocket"]
)


@router.websocket("/notifications")
async def websocket_notifications(websocket: WebSocket, db: Session = Depends(get_db)):
    """
    WebSocket endpoint for admin notifications

    Only authenticated admin users can connect (JWT in the `token` query parameter).
    Sends real-time notifications for disputes, failed payments, moderation and payouts.
    """
    # Accept connection first (required before we can send/close)
    await websocket.accept()

    access_token = websocket.query_params.get("token")
    user = None
    if access_token:
        try:
            user = get_user_from_token(access_token, db)
        except HTTPException as e:
            logger.warning(f"WebSocket token rejected: {e.detail}")

    if not user or user.role != UserRole.ADMIN:
        await websocket.close(code=1008, reason="Admin access required")
        return

    await websocket_manager.connect(websocket, user.id)
    await websocket_manager.send_personal_message({
        "type": "connected",
        "message": "Connected to notification service"
    }, websocket)

    # Keep connection alive and handle messages
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        websocket_manager.disconnect(websocket)
