from datetime import timedelta

import pytest

from conftest import PRODUCT_PAGE, SECRET_KEY, SERVICE_KEY, add_wishlist_item, auth_headers
from purrview.api.auth import create_access_token
from purrview.storage.models import Achievement, Notification, utcnow

FOOTLOCKER_URL = "https://www.footlocker.com/product/air-max-90/12345.html"


def _notify(notifications, user_id="user-1", **kwargs):
    return notifications.create(
        user_id=user_id,
        notification_type="price_alert",
        title="Price Drop Alert",
        message="Air Max 90 dropped to $89.99",
        **kwargs,
    )


def test_health_needs_no_auth(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/items/1/check-price"),
        ("post", "/achievements/check"),
        ("get", "/achievements"),
        ("get", "/notifications"),
        ("put", "/notifications/1/read"),
        ("post", "/notifications/mark-all-read"),
        ("delete", "/notifications/1"),
    ],
)
def test_user_routes_require_bearer_token(client, method, path):
    response = getattr(client, method)(path)

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["errorCategory"] == "unauthorized"


def test_token_signed_with_other_key_is_rejected(client, db):
    for _ in range(10):
        db.add_item("user-1", status="owned", brand="Nike")
    headers = {"Authorization": f"Bearer {create_access_token('user-1', 'wrong-secret')}"}

    response = client.post("/achievements/check", headers=headers)

    assert response.status_code == 401
    assert db.get_unlocked_keys("user-1") == set()


def test_expired_token_is_rejected(client):
    token = create_access_token("user-1", SECRET_KEY, expires_minutes=-5)

    response = client.get("/notifications", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_check_price_returns_refreshed_price(client, db, retailer_pages):
    retailer_pages[FOOTLOCKER_URL] = (200, PRODUCT_PAGE)
    item = add_wishlist_item(db)

    response = client.post(f"/items/{item.id}/check-price", headers=auth_headers("user-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["price"] == 89.99
    assert body["storeName"] == "Foot Locker"


def test_check_price_now_accepts_item_id_in_body(client, db, retailer_pages):
    retailer_pages[FOOTLOCKER_URL] = (200, PRODUCT_PAGE)
    item = add_wishlist_item(db)

    response = client.post("/check-price-now", json={"itemId": item.id}, headers=auth_headers("user-1"))

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_check_price_now_requires_item_id(client):
    response = client.post("/check-price-now", json={}, headers=auth_headers("user-1"))

    assert response.status_code == 400


def test_check_price_for_unknown_retailer_is_a_reported_failure(client, db):
    item = add_wishlist_item(db, product_url="https://www.some-boutique.example/shoes/1")

    response = client.post(f"/items/{item.id}/check-price", headers=auth_headers("user-1"))

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["errorCategory"] == "unsupported_retailer"


def test_check_price_for_foreign_item_is_not_found(client, db):
    item = add_wishlist_item(db, user_id="user-2")

    response = client.post(f"/items/{item.id}/check-price", headers=auth_headers("user-1"))

    assert response.status_code == 404
    assert response.json()["errorCategory"] == "not_found"


def test_check_price_with_tracking_disabled_is_bad_request(client, db):
    item = add_wishlist_item(db, auto_price_tracking_enabled=False)

    response = client.post(f"/items/{item.id}/check-price", headers=auth_headers("user-1"))

    assert response.status_code == 400


def test_achievement_check_and_listing(client, db):
    for i in range(10):
        db.add_item("user-1", status="owned", brand="Nike", model=f"Model {i}")

    first = client.post("/achievements/check", headers=auth_headers("user-1"))
    second = client.post("/achievements/check", headers=auth_headers("user-1"))
    listing = client.get("/achievements", headers=auth_headers("user-1"))

    assert first.json() == {"success": True, "unlocked": ["wardrobe_10"]}
    assert second.json() == {"success": True, "unlocked": []}

    body = listing.json()
    assert body["unlockedCount"] == 1
    assert body["achievements"][0]["achievement_key"] == "wardrobe_10"
    assert body["achievements"][0]["name"] == "Collection Starter"

    with db.session() as session:
        assert session.query(Achievement).count() == 1


def test_cleanup_requires_service_key(client):
    assert client.post("/internal/notifications/cleanup").status_code == 401
    assert (
        client.post("/internal/notifications/cleanup", headers={"X-Service-Key": "nope"}).status_code
        == 401
    )


def test_cleanup_rejects_non_ascii_service_key(client):
    response = client.post(
        "/internal/notifications/cleanup", headers={"X-Service-Key": "clé".encode("utf-8")}
    )

    assert response.status_code == 401
    assert response.json()["errorCategory"] == "unauthorized"


def test_cleanup_deletes_expired_notifications(client, notifications):
    _notify(notifications, expiry_at=utcnow() - timedelta(days=1))
    _notify(notifications, expiry_at=utcnow() + timedelta(days=1))

    response = client.post("/internal/notifications/cleanup", headers={"X-Service-Key": SERVICE_KEY})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Cleanup completed", "deletedCount": 1}


def test_cleanup_failure_returns_server_error(client, db):
    with db.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE notifications")

    response = client.post("/internal/notifications/cleanup", headers={"X-Service-Key": SERVICE_KEY})

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_mark_read_returns_notification(client, notifications):
    notification = _notify(notifications)

    response = client.put(f"/notifications/{notification.id}/read", headers=auth_headers("user-1"))

    assert response.status_code == 200
    body = response.json()["notification"]
    assert body["id"] == notification.id
    assert body["is_read"] is True
    assert body["read_at"] is not None


def test_mark_read_of_foreign_notification_is_not_found(client, db, notifications):
    notification = _notify(notifications, user_id="user-2")

    response = client.put(f"/notifications/{notification.id}/read", headers=auth_headers("user-1"))

    assert response.status_code == 404
    with db.session() as session:
        assert session.get(Notification, notification.id).is_read is False


def test_mark_all_read_reports_count(client, notifications):
    _notify(notifications)
    _notify(notifications)
    _notify(notifications, user_id="user-2")

    response = client.post("/notifications/mark-all-read", headers=auth_headers("user-1"))

    assert response.json() == {"success": True, "markedCount": 2}
    assert notifications.unread_count("user-2") == 1


def test_list_notifications_with_cursor(client, notifications):
    for _ in range(3):
        _notify(notifications)

    first = client.get("/notifications", params={"limit": 2}, headers=auth_headers("user-1")).json()

    assert len(first["notifications"]) == 2
    assert first["hasMore"] is True
    assert first["unreadCount"] == 3

    second = client.get(
        "/notifications",
        params={"limit": 2, "cursor": first["nextCursor"], "cursor_id": first["nextCursorId"]},
        headers=auth_headers("user-1"),
    ).json()

    assert len(second["notifications"]) == 1
    assert second["hasMore"] is False
    assert second["nextCursor"] is None
    assert second["nextCursorId"] is None


def test_snooze_dismiss_and_delete(client, notifications):
    snoozed = _notify(notifications)
    dismissed = _notify(notifications)
    deleted = _notify(notifications)
    headers = auth_headers("user-1")

    response = client.put(f"/notifications/{snoozed.id}/snooze", json={"days": 2}, headers=headers)
    assert response.status_code == 200
    assert response.json()["notification"]["snoozed_until"] is not None

    response = client.post(
        "/notifications/dismiss-by-type",
        json={"notification_type": "price_alert", "ids": [dismissed.id]},
        headers=headers,
    )
    assert response.json() == {"success": True, "dismissed": 1}

    assert client.delete(f"/notifications/{deleted.id}", headers=headers).json() == {"success": True}
    assert client.delete(f"/notifications/{deleted.id}", headers=headers).status_code == 404

    visible = client.get("/notifications", headers=headers).json()["notifications"]
    assert [n["id"] for n in visible] == [dismissed.id]


def test_snooze_rejects_non_positive_days(client, notifications):
    notification = _notify(notifications)

    response = client.put(
        f"/notifications/{notification.id}/snooze", json={"days": 0}, headers=auth_headers("user-1")
    )

    assert response.status_code == 400
