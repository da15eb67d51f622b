import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from app.core.security import create_access_token
from app.utils.websocket_manager import AdminAlertHub


def _token(user) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


class FakeSocket:
    def __init__(self, broken: bool = False):
        self.sent = []
        self.broken = broken

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(message)


def test_admin_receives_greeting_and_pong(client, admin):
    with client.websocket_connect(f"/admin/ws/notifications?token={_token(admin)}") as ws:
        assert ws.receive_json()["type"] == "connected"
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_customer_socket_is_closed(client, customer):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/admin/ws/notifications?token={_token(customer)}") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_hub_broadcasts_and_drops_dead_sockets():
    hub = AdminAlertHub()
    healthy, second_tab, dead = FakeSocket(), FakeSocket(), FakeSocket(broken=True)

    async def scenario():
        await hub.connect(healthy, 1)
        await hub.connect(second_tab, 1)
        await hub.connect(dead, 2)
        return await hub.send_notification("payment_failed", {"booking_id": 7})

    delivered = asyncio.run(scenario())

    assert delivered == 2
    assert healthy.sent[0]["notification_type"] == "payment_failed"
    assert healthy.sent[0]["data"] == {"booking_id": 7}
    assert "sent_at" in second_tab.sent[0]
    assert hub.connection_count == 2
    assert 2 not in hub.connections


def test_hub_rejects_unknown_alert_types():
    with pytest.raises(ValueError):
        asyncio.run(AdminAlertHub().send_notification("car_rented", {}))
