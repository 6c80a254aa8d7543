from datetime import datetime, timedelta

import pytest

from purrview.errors import NotFoundError, ValidationError
from purrview.storage.models import Notification, utcnow


def _create(notifications, user_id="user-1", notification_type="price_alert", **kwargs):
    return notifications.create(
        user_id=user_id,
        notification_type=notification_type,
        title="Price Drop Alert",
        message="Air Max 90 dropped to $89.99",
        **kwargs,
    )


def _get(db, notification_id):
    with db.session() as session:
        notification = session.get(Notification, notification_id)
        if notification:
            session.expunge(notification)
        return notification


def test_create_defaults_to_low_severity_and_thirty_day_expiry(notifications):
    notification = _create(notifications)

    assert notification.severity == "low"
    assert notification.is_read is False
    assert notification.read_at is None
    assert notification.expiry_at - notification.created_at == timedelta(days=30)


def test_create_rejects_unknown_severity(notifications):
    with pytest.raises(ValidationError):
        _create(notifications, severity="urgent")


def test_sweep_deletes_only_rows_strictly_before_now(db, notifications):
    now = datetime(2025, 6, 1, 2, 0, 0)
    expired = _create(notifications, expiry_at=now - timedelta(seconds=1))
    boundary = _create(notifications, expiry_at=now)
    future = _create(notifications, expiry_at=now + timedelta(days=1))

    result = notifications.sweep_expired(now=now)

    assert result == {"success": True, "message": "Cleanup completed", "deletedCount": 1}
    assert _get(db, expired.id) is None
    assert _get(db, boundary.id) is not None
    assert _get(db, future.id) is not None


def test_sweep_covers_all_users(db, notifications):
    now = utcnow()
    _create(notifications, user_id="user-1", expiry_at=now - timedelta(days=1))
    _create(notifications, user_id="user-2", expiry_at=now - timedelta(days=2))

    assert notifications.sweep_expired(now=now)["deletedCount"] == 2


def test_sweep_reports_storage_failure(db, notifications):
    with db.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE notifications")

    result = notifications.sweep_expired()

    assert result["success"] is False
    assert result["deletedCount"] == 0


def test_mark_read_sets_read_at(db, notifications):
    notification = _create(notifications)

    updated = notifications.mark_read("user-1", notification.id)

    assert updated.is_read is True
    assert updated.read_at is not None


def test_mark_read_keeps_first_read_at(notifications):
    notification = _create(notifications)

    first = notifications.mark_read("user-1", notification.id).read_at
    second = notifications.mark_read("user-1", notification.id).read_at

    assert first == second


def test_mark_read_of_foreign_notification_is_not_found_and_unchanged(db, notifications):
    notification = _create(notifications, user_id="user-2")

    with pytest.raises(NotFoundError):
        notifications.mark_read("user-1", notification.id)

    untouched = _get(db, notification.id)
    assert untouched.is_read is False
    assert untouched.read_at is None


def test_mark_read_of_missing_notification_is_not_found(notifications):
    with pytest.raises(NotFoundError):
        notifications.mark_read("user-1", 9999)


def test_mark_all_read_counts_only_callers_unread_rows(db, notifications):
    for _ in range(3):
        _create(notifications)
    already_read = _create(notifications)
    notifications.mark_read("user-1", already_read.id)
    other = _create(notifications, user_id="user-2")

    assert notifications.mark_all_read("user-1") == 3
    assert notifications.unread_count("user-1") == 0
    assert notifications.mark_all_read("user-1") == 0

    assert _get(db, other.id).is_read is False


def test_list_paginates_newest_first_with_cursor(notifications):
    base = datetime(2025, 1, 1)
    ids = []
    for minute in range(5):
        notification = _create(notifications)
        ids.append(notification.id)
        _set_created_at(notifications.db, notification.id, base + timedelta(minutes=minute))

    first = notifications.list_for_user("user-1", limit=2)
    assert [n.id for n in first["notifications"]] == [ids[4], ids[3]]
    assert first["has_more"] is True

    second = notifications.list_for_user(
        "user-1", limit=2, cursor=first["next_cursor"], cursor_id=first["next_cursor_id"]
    )
    assert [n.id for n in second["notifications"]] == [ids[2], ids[1]]

    third = notifications.list_for_user(
        "user-1", limit=2, cursor=second["next_cursor"], cursor_id=second["next_cursor_id"]
    )
    assert [n.id for n in third["notifications"]] == [ids[0]]
    assert third["has_more"] is False
    assert third["next_cursor"] is None


def _set_created_at(db, notification_id, created_at):
    with db.session() as session:
        session.get(Notification, notification_id).created_at = created_at


def test_list_cursor_does_not_skip_rows_sharing_created_at(notifications):
    created_at = datetime(2025, 1, 1, 12, 0, 0)
    ids = []
    for _ in range(4):
        notification = _create(notifications)
        ids.append(notification.id)
        _set_created_at(notifications.db, notification.id, created_at)

    first = notifications.list_for_user("user-1", limit=2)
    assert [n.id for n in first["notifications"]] == [ids[3], ids[2]]
    assert first["next_cursor"] == created_at
    assert first["next_cursor_id"] == ids[2]

    second = notifications.list_for_user(
        "user-1", limit=2, cursor=first["next_cursor"], cursor_id=first["next_cursor_id"]
    )
    assert [n.id for n in second["notifications"]] == [ids[1], ids[0]]
    assert second["has_more"] is False


def test_list_hides_snoozed_and_filters_unread(notifications):
    snoozed = _create(notifications)
    read = _create(notifications)
    unread = _create(notifications)
    notifications.snooze("user-1", snoozed.id, days=3)
    notifications.mark_read("user-1", read.id)

    visible = notifications.list_for_user("user-1")["notifications"]
    assert {n.id for n in visible} == {read.id, unread.id}

    unread_only = notifications.list_for_user("user-1", unread_only=True)["notifications"]
    assert [n.id for n in unread_only] == [unread.id]


@pytest.mark.parametrize("days", [0, -1, 1.5, True])
def test_snooze_requires_positive_whole_days(notifications, days):
    notification = _create(notifications)

    with pytest.raises(ValidationError):
        notifications.snooze("user-1", notification.id, days=days)


def test_dismiss_by_type_marks_matching_rows_read(db, notifications):
    alert = _create(notifications, notification_type="price_alert")
    unlock = _create(notifications, notification_type="achievement_unlock")

    dismissed = notifications.dismiss_by_type("user-1", "price_alert", [alert.id, unlock.id])

    assert dismissed == 1
    assert _get(db, alert.id).read_at is not None
    assert _get(db, unlock.id).is_read is False


def test_dismiss_by_type_requires_ids(notifications):
    with pytest.raises(ValidationError):
        notifications.dismiss_by_type("user-1", "price_alert", [])


def test_delete_only_removes_callers_row(db, notifications):
    mine = _create(notifications)
    theirs = _create(notifications, user_id="user-2")

    notifications.delete("user-1", mine.id)
    with pytest.raises(NotFoundError):
        notifications.delete("user-1", theirs.id)

    assert _get(db, mine.id) is None
    assert _get(db, theirs.id) is not None


def test_has_unread_matches_metadata(notifications):
    _create(notifications, metadata={"item_id": 7, "target_reached": True})

    assert notifications.has_unread("user-1", "price_alert", item_id=7, target_reached=True)
    assert not notifications.has_unread("user-1", "price_alert", item_id=8, target_reached=True)
