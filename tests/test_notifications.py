from app.db.models import Notification, PushToken
from app.services.notification_service import notification_service
from app.utils import tasks


def _inbox(db, user, count: int = 3):
    for i in range(count):
        db.add(Notification(
            user_id=user.id, title=f"Aviso {i}", body="Tu reserva fue actualizada", notification_type="booking_update"
        ))
    db.commit()
    return db.query(Notification).filter(Notification.user_id == user.id).order_by(Notification.id).all()


def test_list_is_scoped_to_current_user(client, db, customer, other_customer, headers_for):
    _inbox(db, customer, 3)
    _inbox(db, other_customer, 2)

    response = client.get("/api/notifications", headers=headers_for(customer))

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert [n["title"] for n in data["items"]] == ["Aviso 2", "Aviso 1", "Aviso 0"]


def test_unread_count_and_mark_read(client, db, customer, headers_for):
    notifications = _inbox(db, customer, 2)
    headers = headers_for(customer)

    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread_count": 2}

    response = client.post(f"/api/notifications/{notifications[0].id}/read", headers=headers)

    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert response.json()["read_at"] is not None
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread_count": 1}

    unread = client.get("/api/notifications", params={"unread_only": True}, headers=headers).json()
    assert [n["id"] for n in unread["items"]] == [notifications[1].id]


def test_cannot_read_another_users_notification(client, db, customer, other_customer, headers_for):
    notifications = _inbox(db, other_customer, 1)

    response = client.post(f"/api/notifications/{notifications[0].id}/read", headers=headers_for(customer))

    assert response.status_code == 404
    assert response.json()["error"] == "Notification not found"
    db.refresh(notifications[0])
    assert notifications[0].is_read is False


def test_mark_all_read(client, db, customer, other_customer, headers_for):
    _inbox(db, customer, 3)
    _inbox(db, other_customer, 1)

    response = client.post("/api/notifications/read-all", headers=headers_for(customer))

    assert response.json() == {"success": True, "updated": 3}
    assert client.get("/api/notifications/unread-count", headers=headers_for(other_customer)).json() == {
        "unread_count": 1
    }


def test_inbox_requires_login(client):
    assert client.get("/api/notifications").status_code == 401


def test_push_token_moves_to_latest_user(client, db, customer, other_customer, headers_for):
    body = {"token": "ExponentPushToken[abc123def456]", "platform": "ios"}

    first = client.post("/api/notifications/push-tokens", json=body, headers=headers_for(customer))
    second = client.post("/api/notifications/push-tokens", json=body, headers=headers_for(other_customer))

    assert first.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    token = db.query(PushToken).one()
    db.refresh(token)
    assert token.user_id == other_customer.id


def test_push_token_platform_is_validated(client, customer, headers_for):
    response = client.post(
        "/api/notifications/push-tokens",
        json={"token": "ExponentPushToken[abc123def456]", "platform": "blackberry"},
        headers=headers_for(customer),
    )
    assert response.status_code == 422


def _capture_deliveries(monkeypatch):
    started = []
    monkeypatch.setattr(tasks, "schedule_task", lambda func, *args, **kwargs: started.append(func.__name__))
    return started


def test_delivery_starts_only_after_commit(db, customer, monkeypatch):
    started = _capture_deliveries(monkeypatch)
    db.add(PushToken(user_id=customer.id, token="ExponentPushToken[abc123def456]", platform="ios"))
    db.commit()

    notification_service.notify(db, customer, "background_check", send_email=True, status="clear")

    assert started == []
    db.commit()
    assert started == ["send", "send_notification_email"]
    assert db.query(Notification).filter(Notification.user_id == customer.id).count() == 1


def test_rolled_back_notification_is_never_delivered(db, customer, monkeypatch):
    started = _capture_deliveries(monkeypatch)

    notification_service.notify(db, customer, "background_check", send_email=True, status="clear")
    db.rollback()
    db.commit()

    assert started == []
    assert db.query(Notification).count() == 0
