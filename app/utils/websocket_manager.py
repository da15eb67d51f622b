"""
Admin alert hub: pushes dispute, payment, moderation and payout alerts
to every open admin dashboard over WebSocket
"""
from typing import Dict, Set
from fastapi import WebSocket

from app.core.logging_config import logger
from app.db.models import utcnow

ALERT_TYPES = {
    "dispute_opened",
    "dispute_resolved",
    "payment_failed",
    "payout_failed",
    "moderation",
}


class AdminAlertHub:
    """Tracks admin dashboard sockets; one admin may have several tabs open"""

    def __init__(self):
        self.connections: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, admin_id: int):
        """Register an accepted socket for an admin"""
        self.connections.setdefault(admin_id, set()).add(websocket)
        logger.info(f"Admin {admin_id} connected to alerts ({self.connection_count} open)")

    def disconnect(self, websocket: WebSocket):
        for admin_id, sockets in list(self.connections.items()):
            if websocket in sockets:
                sockets.discard(websocket)
                if not sockets:
                    del self.connections[admin_id]
                logger.info(f"Admin {admin_id} disconnected from alerts")
                return

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self.connections.values())

    async def _send(self, websocket: WebSocket, message: dict) -> bool:
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending admin alert: {str(e)}")
            return False
        return True

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        if not await self._send(websocket, message):
            self.disconnect(websocket)

    async def send_notification(self, alert_type: str, data: dict) -> int:
        """
        Broadcast an alert to all connected admins

        Args:
            alert_type: one of ALERT_TYPES
            data: alert payload (ids and amounts, JSON-serializable)

        Returns:
            Number of sockets the alert reached
        """
        if alert_type not in ALERT_TYPES:
            raise ValueError(f"Unknown admin alert type: {alert_type}")

        message = {
            "type": "notification",
            "notification_type": alert_type,
            "data": data,
            "sent_at": utcnow().isoformat(),
        }

        delivered = 0
        stale = []
        for sockets in list(self.connections.values()):
            for websocket in list(sockets):
                if await self._send(websocket, message):
                    delivered += 1
                else:
                    stale.append(websocket)

        for websocket in stale:
            self.disconnect(websocket)

        if delivered:
            logger.debug(f"Admin alert {alert_type} delivered to {delivered} socket(s)")
        return delivered


# Global instance
websocket_manager = AdminAlertHub()
