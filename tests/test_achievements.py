import pytest

from purrview.achievements import ACHIEVEMENTS, AchievementChecker
from purrview.achievements.definitions import METRICS
from purrview.storage.models import Achievement, Notification


def _add_owned(db, count, user_id="user-1", **fields):
    for i in range(count):
        values = {"brand": f"Brand {i}", "model": f"Model {i}", "category": "sneakers", "status": "owned"}
        values.update(fields)
        db.add_item(user_id, **values)


def _unlock_notifications(db, user_id="user-1"):
    with db.session() as session:
        rows = (
            session.query(Notification)
            .filter(
                Notification.user_id == user_id,
                Notification.notification_type == "achievement_unlock",
            )
            .all()
        )
        session.expunge_all()
        return rows


@pytest.fixture
def checker(db, notifications):
    return AchievementChecker(db, notifications)


def test_catalog_keys_are_unique_and_metrics_known():
    keys = [rule.key for rule in ACHIEVEMENTS]
    assert len(keys) == len(set(keys))
    assert all(rule.metric in METRICS for rule in ACHIEVEMENTS)


def test_crossing_threshold_unlocks_once(db, checker):
    _add_owned(db, 10, brand="Nike")

    assert checker.check("user-1") == ["wardrobe_10"]
    assert checker.check("user-1") == []

    with db.session() as session:
        assert session.query(Achievement).filter(Achievement.user_id == "user-1").count() == 1
    assert len(_unlock_notifications(db)) == 1


def test_later_milestones_unlock_only_new_keys(db, checker):
    _add_owned(db, 10, brand="Nike")
    checker.check("user-1")

    _add_owned(db, 5, brand="Nike")

    assert checker.check("user-1") == ["wardrobe_15"]
    assert db.get_unlocked_keys("user-1") == {"wardrobe_10", "wardrobe_15"}


def test_several_rules_unlock_in_catalog_order(db, checker):
    _add_owned(db, 10, wear_count=1)
    for i in range(5):
        db.add_item("user-1", brand="Nike", category=f"category-{i}", status="wishlisted")
    db.add_item("user-1", brand="Nike", category="boots", status="owned", wear_count=0)

    unlocked = checker.check("user-1")

    catalog_order = [rule.key for rule in ACHIEVEMENTS]
    assert unlocked == sorted(unlocked, key=catalog_order.index)
    assert {"wardrobe_10", "wishlist_5", "wears_10", "brand_explorer_10"} <= set(unlocked)
    assert "category_explorer_5" not in unlocked


def test_no_unlocks_below_thresholds(db, checker):
    _add_owned(db, 9)

    assert checker.check("user-1") == []
    assert _unlock_notifications(db) == []


def test_concurrent_unlock_creates_no_duplicate_notification(db, checker):
    _add_owned(db, 10, brand="Nike")
    # Another request inserted the row after this call's pre-check
    db.get_unlocked_keys = lambda user_id: set()
    db.insert_achievement("user-1", "wardrobe_10")

    assert checker.check("user-1") == []
    assert _unlock_notifications(db) == []


def test_unlock_notification_carries_achievement_metadata(db, checker):
    _add_owned(db, 10, brand="Nike")

    checker.check("user-1")

    [notification] = _unlock_notifications(db)
    assert notification.title == "Achievement Unlocked: Collection Starter"
    assert notification.severity == "low"
    assert notification.payload["achievement_id"] == "wardrobe_10"
    assert notification.payload["points"] == 10


def test_notifications_can_be_disabled(db, notifications):
    _add_owned(db, 10, brand="Nike")
    checker = AchievementChecker(db, notifications, notify=False)

    assert checker.check("user-1") == ["wardrobe_10"]
    assert _unlock_notifications(db) == []


def test_other_users_data_does_not_count(db, checker):
    _add_owned(db, 10, user_id="user-2")

    assert checker.check("user-1") == []
    assert checker.check("user-2")[0] == "wardrobe_10"
